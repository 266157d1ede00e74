"""
Core enumerations for the space-time cube layout system.

This module defines the tags shared by the layout components: the kinds of
forces the engine can compose, the origin of a mirror node, the interpolation
rules of timeline functions, the presence merging modes and the reasons an
iteration run can stop.
"""

from enum import Enum, auto


class ForceKind(Enum):
    """
    Closed set of forces understood by the layout engine.

    Each kind is paired with one frozen parameter dataclass in
    `stcube_core.forces` and one compute function in its dispatch table.
    """

    GRAVITY = auto()
    """Unit pull of every mirror node toward the centroid of the layout."""

    NODE_REPULSION = auto()
    """Repulsion between mirror nodes of different trajectories."""

    EDGE_REPULSION = auto()
    """Point-segment repulsion between trajectories of different nodes."""

    CONNECTION_ATTRACTION = auto()
    """Attraction between trajectories joined by a dynamic edge."""

    TIME_STRAIGHTENING = auto()
    """Smoothing and straightening of each trajectory along the time axis."""

    MENTAL_MAP_PRESERVATION = auto()
    """Pull of each bend toward its neighbours along the same trajectory."""

    POLE_ATTRACTION = auto()
    """Pull of cluster members toward their cluster pole."""

    CIRCUMFERENCE_REPULSION = auto()
    """Push of cluster members away from the cluster boundary face."""

    NON_CLUSTER_NODES_REPULSION = auto()
    """Push of non-member nodes away from cluster poles."""


class OriginKind(Enum):
    """
    Origin of a node of the mirror graph.

    - REAL: first or last node of a trajectory (a mirror line extremity)
    - BEND: interior bend synthesised at a topology change or by granularity
    """

    REAL = auto()
    BEND = auto()


class Interpolation(Enum):
    """Interpolation rules for functions that transition between two values."""

    LINEAR = auto()
    SMOOTH_STEP = auto()

    def apply(self, fraction: float) -> float:
        """Map a linear fraction in [0, 1] to the interpolated fraction."""
        fraction = max(0.0, min(1.0, fraction))
        if self is Interpolation.SMOOTH_STEP:
            return fraction * fraction * (3.0 - 2.0 * fraction)
        return fraction


class PresenceMode(Enum):
    """
    Modes for handling presence functions of appeared nodes and edges.

    - PLAIN: coalesce overlapping or touching presences
    - KEEP_APPEARED_NODE: once a node appears it stays until the data end
    - KEEP_APPEARED_EDGES: nodes and edges both stay once appeared
    """

    PLAIN = auto()
    KEEP_APPEARED_NODE = auto()
    KEEP_APPEARED_EDGES = auto()


class StopReason(Enum):
    """Why an iteration run returned."""

    COMPLETED = auto()
    """The requested number of iterations was executed."""

    TIME_BUDGET = auto()
    """The wall-clock budget was exhausted."""

    CANCELLED = auto()
    """An external stop signal was received."""
