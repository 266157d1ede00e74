"""
Dynamic graph container.

A dynamic graph holds nodes, edges and clusters whose attributes are
`Evolution` timelines: presence, position, size, color and label change over a
continuous time axis. `snapshot_at` resolves every timeline at one time and
returns a plain static `Graph`, which is what animation frames are made of.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from .errors import NoSuchElementError
from .evolution import Evolution
from .graph import Cluster, Edge, Graph, Node
from .interval import Interval

Color = Tuple[float, float, float, float]

TRANSPARENT: Color = (0.0, 0.0, 0.0, 0.0)
BLACK: Color = (0.0, 0.0, 0.0, 1.0)


@dataclass
class DyNode:
    """A node of a dynamic graph with its attribute timelines."""

    id: str
    presence: Evolution = field(default_factory=lambda: Evolution(False))
    position: Evolution = field(default_factory=lambda: Evolution(np.zeros(2)))
    size: Evolution = field(default_factory=lambda: Evolution(1.0))
    color: Evolution = field(default_factory=lambda: Evolution(BLACK))
    label: Evolution = field(default_factory=lambda: Evolution(""))


@dataclass
class DyEdge:
    """An undirected edge of a dynamic graph."""

    id: str
    source: str
    target: str
    presence: Evolution = field(default_factory=lambda: Evolution(False))
    color: Evolution = field(default_factory=lambda: Evolution(BLACK))

    def other(self, node_id: str) -> str:
        return self.target if node_id == self.source else self.source


@dataclass
class DyCluster(Cluster):
    """A cluster whose visibility and stroke color evolve over time."""

    presence: Evolution = field(default_factory=lambda: Evolution(True))
    color: Evolution = field(default_factory=lambda: Evolution(BLACK))


class DyGraph:
    """
    Container for a dynamic graph.

    Attributes:
        nodes: Dictionary mapping node IDs to DyNode objects
        edges: Dictionary mapping edge IDs to DyEdge objects
        clusters: Dictionary mapping pole IDs to DyCluster objects
    """

    def __init__(self):
        self.nodes: Dict[str, DyNode] = {}
        self.edges: Dict[str, DyEdge] = {}
        self.clusters: Dict[str, DyCluster] = {}
        self._incident: Dict[str, List[str]] = {}

    # ----- construction -----
    def add_node(self, node: DyNode) -> DyNode:
        assert node.id not in self.nodes, f"Duplicate node id '{node.id}'"
        self.nodes[node.id] = node
        self._incident.setdefault(node.id, [])
        return node

    def new_node(self, node_id: str, position: Optional[Iterable[float]] = None) -> DyNode:
        node = DyNode(node_id)
        if position is not None:
            node.position = Evolution(np.asarray(list(position), dtype=float))
        return self.add_node(node)

    def add_edge(self, edge: DyEdge) -> DyEdge:
        assert (
            edge.source in self.nodes and edge.target in self.nodes
        ), "Both source and target nodes must exist"
        assert edge.id not in self.edges, f"Duplicate edge id '{edge.id}'"
        self.edges[edge.id] = edge
        self._incident[edge.source].append(edge.id)
        if edge.target != edge.source:
            self._incident[edge.target].append(edge.id)
        return edge

    def new_edge(self, source: str, target: str, edge_id: Optional[str] = None) -> DyEdge:
        edge_id = edge_id or f"{source}-{target}"
        return self.add_edge(DyEdge(edge_id, source, target))

    def new_cluster(self, pole: str, members: Optional[Iterable[str]] = None) -> DyCluster:
        """Create a cluster around `pole`; every node involved must already exist."""
        if pole not in self.nodes:
            raise NoSuchElementError(f"No node '{pole}' to use as cluster pole")
        cluster = DyCluster(pole)
        for member in members or []:
            if member not in self.nodes:
                raise NoSuchElementError(f"No node '{member}' to add to cluster '{pole}'")
            cluster.add_member(member)
        self.clusters[pole] = cluster
        return cluster

    # ----- lookup -----
    def get_node(self, node_id: str) -> DyNode:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise NoSuchElementError(f"No node '{node_id}' in dynamic graph") from None

    def get_cluster(self, pole: str) -> Optional[DyCluster]:
        return self.clusters.get(pole)

    def poles(self) -> List[str]:
        return list(self.clusters)

    def incident_edges(self, node_id: str) -> List[DyEdge]:
        return [self.edges[eid] for eid in self._incident.get(node_id, [])]

    def time_span(self) -> Optional[Interval]:
        """Closed interval covering every node and edge presence function."""
        lefts, rights = [], []
        for element in list(self.nodes.values()) + list(self.edges.values()):
            for fn in element.presence:
                lefts.append(fn.interval.left)
                rights.append(fn.interval.right)
        if not lefts:
            return None
        return Interval.closed(min(lefts), max(rights))

    # ----- snapshots -----
    def snapshot_at(self, t: float) -> Graph:
        """
        Static graph of the elements present at time `t`, with every attribute
        resolved at `t`. Edges are kept only when both extremities are present.
        """
        snapshot = Graph()
        for node_id, dy_node in self.nodes.items():
            if not dy_node.presence.value_at(t):
                continue
            snapshot.add_node(
                Node(
                    node_id,
                    pos=np.asarray(dy_node.position.value_at(t), dtype=float),
                    size=float(dy_node.size.value_at(t)),
                    meta={
                        "color": dy_node.color.value_at(t),
                        "label": dy_node.label.value_at(t),
                    },
                )
            )

        for edge_id, dy_edge in self.edges.items():
            if not dy_edge.presence.value_at(t):
                continue
            if dy_edge.source in snapshot.nodes and dy_edge.target in snapshot.nodes:
                snapshot.add_edge(
                    Edge(edge_id, dy_edge.source, dy_edge.target, meta={"color": dy_edge.color.value_at(t)})
                )

        for pole, dy_cluster in self.clusters.items():
            if pole not in snapshot.nodes or not dy_cluster.presence.value_at(t):
                continue
            members = [m for m in dy_cluster.members if m in snapshot.nodes]
            snapshot.add_cluster(Cluster(pole, members))

        return snapshot
