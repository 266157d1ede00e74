"""
Configuration objects for the space-time cube layout engine.

Exposes the time scaling, iteration budget, distances, force selection and
annealing schedule, enabling experiments without editing core logic.
Configurations can be loaded from YAML files.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Tuple

import yaml

from .enums import ForceKind

DEFAULT_FORCES: Tuple[ForceKind, ...] = (
    ForceKind.GRAVITY,
    ForceKind.NODE_REPULSION,
    ForceKind.EDGE_REPULSION,
    ForceKind.CONNECTION_ATTRACTION,
    ForceKind.TIME_STRAIGHTENING,
    ForceKind.MENTAL_MAP_PRESERVATION,
)

CLUSTER_FORCES: Tuple[ForceKind, ...] = (
    ForceKind.POLE_ATTRACTION,
    ForceKind.CIRCUMFERENCE_REPULSION,
    ForceKind.NON_CLUSTER_NODES_REPULSION,
)


@dataclass
class LayoutConfig:
    """
    Configuration for `LayoutEngine` behavior.

    Distances are in layout units; times are in the units of the dynamic graph.
    """

    # Time axis: mirror Z units per original time unit
    time_factor: float = 1.0

    # Budget; iterate() arguments override these
    iterations: int = 100
    max_seconds: float | None = None

    # Desired distances
    node_node_distance: float = 20.0
    edge_edge_distance: float = 15.0

    # Enabled forces, applied in this order
    forces: Tuple[ForceKind, ...] = DEFAULT_FORCES

    # (initial, final) force exponents
    node_repulsion_exponents: Tuple[float, float] = (1.0, 2.0)
    edge_repulsion_exponents: Tuple[float, float] = (1.0, 3.0)
    connection_exponents: Tuple[float, float] = (4.0, 2.0)

    # Cluster forces
    cluster_radius: float = 12.5
    pole_attraction_factor: float = 50.0
    circumference_repulsion_factor: float = 60.0

    # Annealing: temperature cools linearly over the budget, and no node moves
    # more than max_movement * temperature in the plane per iteration
    initial_temperature: float = 1.0
    final_temperature: float = 0.0
    max_movement: float = 10.0

    # Mirror nodes whose position is never changed, by original node id
    pinned_nodes: Tuple[str, ...] = ()
    pin_cluster_poles: bool = False

    # Extra regular bends every bend_granularity time units
    bend_granularity: float | None = None

    epsilon: float = 1e-6
    parallel_forces: bool = False
    # Write the final layout back into the original position timelines
    sync_original: bool = True

    def __post_init__(self):
        if not self.time_factor > 0:
            raise ValueError(f"time_factor must be positive, got {self.time_factor}")
        if self.iterations < 0:
            raise ValueError(f"iterations must be non-negative, got {self.iterations}")
        if not 0.0 <= self.final_temperature <= self.initial_temperature <= 1.0:
            raise ValueError("temperatures must satisfy 0 <= final <= initial <= 1")
        try:
            self.forces = tuple(ForceKind[f.upper()] if isinstance(f, str) else f for f in self.forces)
        except KeyError as e:
            raise ValueError(f"Unknown force kind {e}") from None
        self.pinned_nodes = tuple(self.pinned_nodes)
        for name in ("node_repulsion_exponents", "edge_repulsion_exponents", "connection_exponents"):
            value = tuple(float(v) for v in getattr(self, name))
            if len(value) != 2:
                raise ValueError(f"{name} must be an (initial, final) pair")
            setattr(self, name, value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LayoutConfig":
        """
        Build a configuration from a plain mapping (e.g. parsed YAML).

        Raises:
            ValueError: on unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["forces"] = [kind.name.lower() for kind in self.forces]
        data["pinned_nodes"] = list(self.pinned_nodes)
        for name in ("node_repulsion_exponents", "edge_repulsion_exponents", "connection_exponents"):
            data[name] = list(data[name])
        return data


def load_config(path: str) -> LayoutConfig:
    """Load a `LayoutConfig` from a YAML file; an empty file gives the defaults."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return LayoutConfig.from_dict(data)
