"""
Deterministic initial placement of dynamic graph nodes.

The layout engine starts from the positions stored in the dynamic graph, so
every node needs one. These helpers assign constant positions with a seeded
generator so that runs are reproducible.
"""

from __future__ import annotations

import math
from typing import Iterable

import numpy as np

from .dygraph import DyGraph
from .evolution import Evolution

DEFAULT_SEED = 73


def coordinates_over_circle(count: int, num_vertices: int, radius: float = 200.0) -> np.ndarray:
    """Position of vertex `count` of a regular polygon with `num_vertices` vertices."""
    angle = 2 * math.pi * count / max(1, num_vertices)
    return np.array([radius * math.cos(angle), radius * math.sin(angle)])


def scatter_nodes(
    graph: DyGraph, distance: float, seed: int = DEFAULT_SEED, exclude: Iterable[str] = ()
) -> None:
    """Place every node (except `exclude`) uniformly in [0, distance)^2."""
    rng = np.random.default_rng(seed)
    excluded = set(exclude)
    for node_id in sorted(graph.nodes):
        if node_id in excluded:
            continue
        graph.nodes[node_id].position = Evolution(rng.random(2) * distance)


def scatter_nodes_around_cluster_poles(
    graph: DyGraph,
    pole_radius: float = 50.0,
    member_distance: float = 12.5,
    non_member_distance: float = 200.0,
    seed: int = DEFAULT_SEED,
) -> None:
    """
    Place cluster poles evenly on a circle, members in a square around their
    pole, and the remaining nodes uniformly in [0, non_member_distance)^2.
    A node belonging to several clusters is placed around the first one.
    """
    rng = np.random.default_rng(seed)
    done = set()
    poles = graph.poles()
    for count, pole in enumerate(poles, start=1):
        pole_pos = coordinates_over_circle(count, len(poles), pole_radius)
        graph.nodes[pole].position = Evolution(pole_pos)
        done.add(pole)
        for member in graph.clusters[pole].members:
            if member in done:
                continue
            offset = rng.uniform(-member_distance, member_distance, size=2)
            graph.nodes[member].position = Evolution(pole_pos + offset)
            done.add(member)

    for node_id in sorted(graph.nodes):
        if node_id not in done:
            graph.nodes[node_id].position = Evolution(rng.random(2) * non_member_distance)
