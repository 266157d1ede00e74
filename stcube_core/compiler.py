"""
YAML compiler for dynamic graphs.

This module compiles a YAML description of nodes, edges and clusters whose
presence and position change over time into a `DyGraph` ready for layout.

YAML schema (minimal):

nodes:
  - id: a
    presence: [[0, 10]]      # closed intervals; a single number is an instant
    position: [0, 0]         # constant position
    size: 2
    label: Alice
  - id: b
    presence: [[0, 4], [6, 10]]
    position:                # or timed transitions
      - {interval: [0, 5], from: [0, 0], to: [10, 0], interpolation: smooth_step}
edges:
  - {source: a, target: b, presence: [[2, 4]]}
clusters:
  - {pole: a, members: [b]}

Optional top-level keys:
- presence_mode: plain | keep_appeared_node | keep_appeared_edges
- end_time: data end time used by the keep_appeared modes
- fading: fade-in/out duration; gives every element a fading color timeline
- scatter: place nodes without a position uniformly in [0, scatter)^2; when
  clusters are declared every node is placed around the cluster poles instead
- seed: random seed of the scatter (default 73)

Notes:
- A node without `presence` is present over the whole span of the description.
- Edge ids default to "source-target".
"""

from __future__ import annotations

from typing import Any, Dict, List

import numpy as np
import yaml

from .dygraph import BLACK, DyGraph
from .enums import Interpolation, PresenceMode
from .evolution import Evolution, FunctionConst, FunctionRect
from .interval import Interval
from .placement import DEFAULT_SEED, scatter_nodes, scatter_nodes_around_cluster_poles
from .presence import merge_and_color, merge_presence_functions


def _interval(entry: Any) -> Interval:
    if isinstance(entry, (int, float)):
        return Interval.closed(float(entry), float(entry))
    if isinstance(entry, (list, tuple)) and len(entry) == 2:
        return Interval.closed(float(entry[0]), float(entry[1]))
    raise ValueError(f"Invalid interval {entry!r}: expected a number or a [start, end] pair")


def _intervals(entries: Any) -> List[Interval]:
    if entries is None:
        return []
    if isinstance(entries, (int, float)):
        return [_interval(entries)]
    if isinstance(entries, (list, tuple)) and len(entries) == 2 and all(
        isinstance(v, (int, float)) for v in entries
    ):
        # a single [start, end] pair
        return [_interval(entries)]
    return [_interval(e) for e in entries]


def _position(node_id: str, value: Any) -> Evolution:
    if isinstance(value, (list, tuple)) and value and all(isinstance(v, (int, float)) for v in value):
        return Evolution(np.asarray(value, dtype=float))
    evolution = None
    for step in value or []:
        if not isinstance(step, dict) or "interval" not in step or "from" not in step:
            raise ValueError(f"Invalid position step for node '{node_id}': {step!r}")
        start = np.asarray(step["from"], dtype=float)
        if evolution is None:
            evolution = Evolution(start)
        interval = _interval(step["interval"])
        if "to" in step:
            interpolation = Interpolation[str(step.get("interpolation", "linear")).upper()]
            evolution.insert(FunctionRect(interval, start, np.asarray(step["to"], dtype=float), interpolation))
        else:
            evolution.insert(FunctionConst(interval, start))
    if evolution is None:
        raise ValueError(f"Node '{node_id}' has an empty position")
    return evolution


def compile_from_dict(spec: Dict[str, Any]) -> DyGraph:
    """
    Compile a YAML-parsed dictionary into a `DyGraph`.

    Args:
        spec: Parsed YAML dictionary

    Returns:
        DyGraph: The compiled dynamic graph

    Raises:
        ValueError: on malformed entries or references to undeclared nodes
    """
    g = DyGraph()
    unplaced = []
    pending_presence = []

    for entry in spec.get("nodes", []) or []:
        if isinstance(entry, str):
            entry = {"id": entry}
        node_id = entry.get("id")
        if not node_id:
            # skip ill-formed entry
            continue
        node = g.new_node(str(node_id))
        if "presence" in entry:
            for interval in _intervals(entry["presence"]):
                node.presence.insert(FunctionConst(interval, True))
        else:
            pending_presence.append(node)
        if "position" in entry:
            node.position = _position(node.id, entry["position"])
        else:
            unplaced.append(node.id)
        if "size" in entry:
            node.size = Evolution(float(entry["size"]))
        if "label" in entry:
            node.label = Evolution(str(entry["label"]))

    for entry in spec.get("edges", []) or []:
        source, target = str(entry.get("source")), str(entry.get("target"))
        for endpoint in (source, target):
            if endpoint not in g.nodes:
                raise ValueError(f"Edge {source}-{target} references undeclared node '{endpoint}'")
        edge = g.new_edge(source, target, entry.get("id"))
        for interval in _intervals(entry.get("presence")):
            edge.presence.insert(FunctionConst(interval, True))

    for entry in spec.get("clusters", []) or []:
        pole = str(entry.get("pole"))
        if pole not in g.nodes:
            raise ValueError(f"Cluster pole '{pole}' is not a declared node")
        members = [str(m) for m in entry.get("members", []) or []]
        cluster = g.new_cluster(pole, members)
        if "presence" in entry:
            cluster.presence = Evolution(False)
            for interval in _intervals(entry["presence"]):
                cluster.presence.insert(FunctionConst(interval, True))

    span = g.time_span()
    for node in pending_presence:
        if span is not None:
            node.presence.insert(FunctionConst(span, True))

    mode = PresenceMode[str(spec.get("presence_mode", "plain")).upper()]
    end_time = float(spec.get("end_time", span.right if span is not None else 0.0))
    if "fading" in spec:
        merge_and_color(g, end_time, mode, BLACK, BLACK, float(spec["fading"]))
    else:
        merge_presence_functions(g, end_time, mode)

    if "scatter" in spec and unplaced:
        seed = int(spec.get("seed", DEFAULT_SEED))
        if g.clusters:
            scatter_nodes_around_cluster_poles(g, non_member_distance=float(spec["scatter"]), seed=seed)
        else:
            placed = set(g.nodes) - set(unplaced)
            scatter_nodes(g, float(spec["scatter"]), seed=seed, exclude=placed)

    return g


def compile_from_yaml(yaml_text: str) -> DyGraph:
    """Compile from YAML text into a `DyGraph`."""
    data = yaml.safe_load(yaml_text) or {}
    return compile_from_dict(data)


def compile_from_file(path: str) -> DyGraph:
    """Compile from a YAML file path into a `DyGraph`."""
    with open(path, "r", encoding="utf-8") as f:
        txt = f.read()
    return compile_from_yaml(txt)
