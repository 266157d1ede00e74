"""
Metrics utilities for space-time cube layouts.

This module provides:
- Convenience helpers to read timing statistics from a run or from the engine
- Layout quality measures computed on the mirror graph

The LayoutEngine records the following statistics in `engine.stats`:
- iterations: iterations executed since construction or reset
- running_time: wall-clock seconds spent iterating
- runs: number of completed `iterate` calls
- last_max_displacement: largest planar displacement of the last iteration
- last_force_norms: per force kind, largest vector of the last iteration
"""

from __future__ import annotations
from typing import Any, Dict, List

import numpy as np

from .geometry import e2d
from .synchroniser import SpaceTimeCubeSynchroniser, point_at_z


def format_running_time(statistics) -> str:
    """Running time of a `LayoutStatistics` as seconds with two decimals, e.g. '1.27'."""
    return f"{statistics.running_time:.2f}"


def total_iterations(engine) -> int:
    """Return the number of iterations the engine executed since construction or reset."""
    return int(engine.stats.get("iterations", 0))


def total_running_time(engine) -> float:
    return float(engine.stats.get("running_time", 0.0))


def trajectory_movement(synchroniser: SpaceTimeCubeSynchroniser) -> Dict[str, float]:
    """
    Planar distance travelled by each original node along its trajectories.

    A perfectly straight vertical trajectory (a node that never moves) has
    movement 0. Gaps between two presences of the same node are not counted.

    Returns:
        Dictionary mapping original node IDs to their total planar movement
    """
    graph = synchroniser.mirror_graph
    movement = {}
    for node_id in synchroniser.original_graph.nodes:
        total = 0.0
        for line in synchroniser.mirror_lines(node_id):
            points = [graph.nodes[nid].pos for nid in line.nodes]
            total += sum(e2d.distance(a, b) for a, b in zip(points, points[1:]))
        movement[node_id] = total
    return movement


def connection_distances(synchroniser: SpaceTimeCubeSynchroniser) -> List[float]:
    """
    Planar distance between the two trajectories of every connection, measured
    at the start and at the end of the connection window.
    """
    graph = synchroniser.mirror_graph

    def position(nid: str) -> np.ndarray:
        return graph.nodes[nid].pos

    distances = []
    for connection in synchroniser.mirror_connections():
        for z in (connection.mirror_interval.left, connection.mirror_interval.right):
            a = point_at_z(connection.source_line, z, position)
            b = point_at_z(connection.target_line, z, position)
            if a is not None and b is not None:
                distances.append(e2d.distance(a, b))
    return distances


def layout_quality(synchroniser: SpaceTimeCubeSynchroniser) -> Dict[str, Any]:
    """
    Summary of the layout quality measures.

    Returns:
        dict with keys: mean_movement, max_movement, mean_connection_distance,
        max_connection_distance
    """
    movement = list(trajectory_movement(synchroniser).values())
    distances = connection_distances(synchroniser)
    return {
        "mean_movement": float(np.mean(movement)) if movement else 0.0,
        "max_movement": float(np.max(movement)) if movement else 0.0,
        "mean_connection_distance": float(np.mean(distances)) if distances else 0.0,
        "max_connection_distance": float(np.max(distances)) if distances else 0.0,
    }
