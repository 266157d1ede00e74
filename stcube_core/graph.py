"""
Static graph data structures.

This module defines the plain property graph used both for the mirror graph
of the space-time cube and for time snapshots of a dynamic graph:
- Origin: tag linking a mirror node back to the dynamic graph
- Node: identity-bearing element with a 3D position and free-form metadata
- Edge: undirected connection between two nodes
- Cluster: non-owning grouping of nodes around a pole
- Graph: container for nodes, edges and clusters with utility methods
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import numpy as np

from .enums import OriginKind
from .errors import NoSuchElementError

try:
    import networkx as nx

    HAS_NETWORKX = True
except ImportError:
    HAS_NETWORKX = False


@dataclass(frozen=True)
class Origin:
    """
    Where a mirror node comes from.

    Attributes:
        kind: REAL for trajectory extremities, BEND for interior bends
        node_id: id of the dynamic graph node owning the trajectory
        time: time (in original units) the mirror node stands for
        line_index: index of the trajectory among the node's mirror lines
    """

    kind: OriginKind
    node_id: str
    time: float
    line_index: int = 0

    @property
    def is_bend(self) -> bool:
        return self.kind is OriginKind.BEND


@dataclass
class Node:
    """
    A node of a static graph.

    Attributes:
        id: Unique identifier for this node
        pos: 3D position (x, y in the drawing plane, z along time)
        size: glyph diameter used by distance computations
        origin: link to the dynamic graph, set on mirror nodes only
        meta: additional attributes (label, color, ...)
    """

    id: str
    pos: np.ndarray = field(default_factory=lambda: np.zeros(3))
    size: float = 1.0
    origin: Optional[Origin] = None
    meta: dict = field(default_factory=dict)

    def __post_init__(self):
        self.pos = np.asarray(self.pos, dtype=float).ravel()
        if self.pos.size < 3:
            self.pos = np.concatenate([self.pos, np.zeros(3 - self.pos.size)])


@dataclass
class Edge:
    """
    An undirected connection between two nodes.

    Attributes:
        id: Unique identifier for this edge
        source: id of the first extremity
        target: id of the second extremity
        meta: additional attributes
    """

    id: str
    source: str
    target: str
    meta: dict = field(default_factory=dict)

    def other(self, node_id: str) -> str:
        return self.target if node_id == self.source else self.source


@dataclass
class Cluster:
    """
    A pole node plus the nodes grouped around it. The cluster id is the pole id.

    Membership and pole status are stored independently; queries are only
    meaningful once construction is complete.
    """

    pole: str
    members: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.pole in self.members:
            raise ValueError(f"Node '{self.pole}' cannot be a member of its own cluster")

    @property
    def id(self) -> str:
        return self.pole

    def add_member(self, node_id: str) -> None:
        if node_id == self.pole:
            raise ValueError(f"Node '{node_id}' cannot be a member of its own cluster")
        if node_id not in self.members:
            self.members.append(node_id)

    def add_members(self, node_ids: Iterable[str]) -> None:
        for node_id in node_ids:
            self.add_member(node_id)

    def is_node_member(self, node_id: str) -> bool:
        return node_id in self.members

    def is_node_pole(self, node_id: str) -> bool:
        return node_id == self.pole


class Graph:
    """
    Container for the nodes, edges and clusters of a static graph.

    Nodes and edges are owned by the graph; every other component refers to
    them by id. Incident edges are indexed per node for neighbourhood queries.

    Attributes:
        nodes: Dictionary mapping node IDs to Node objects
        edges: Dictionary mapping edge IDs to Edge objects
        clusters: Dictionary mapping pole IDs to Cluster objects
    """

    def __init__(self):
        """Initialize an empty graph."""
        self.nodes: Dict[str, Node] = {}
        self.edges: Dict[str, Edge] = {}
        self.clusters: Dict[str, Cluster] = {}
        self._incident: Dict[str, List[str]] = {}

    def add_node(self, node: Node) -> Node:
        assert node.id not in self.nodes, f"Duplicate node id '{node.id}'"
        self.nodes[node.id] = node
        self._incident.setdefault(node.id, [])
        return node

    def add_edge(self, edge: Edge) -> Edge:
        """
        Add an edge between existing nodes.

        Raises:
            AssertionError: If an extremity does not exist or the id is taken
        """
        assert (
            edge.source in self.nodes and edge.target in self.nodes
        ), "Both source and target nodes must exist"
        assert edge.id not in self.edges, f"Duplicate edge id '{edge.id}'"
        self.edges[edge.id] = edge
        self._incident[edge.source].append(edge.id)
        if edge.target != edge.source:
            self._incident[edge.target].append(edge.id)
        return edge

    def add_cluster(self, cluster: Cluster) -> Cluster:
        assert cluster.pole in self.nodes, "Cluster pole must exist"
        self.clusters[cluster.id] = cluster
        return cluster

    def get_node(self, node_id: str) -> Node:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise NoSuchElementError(f"No node '{node_id}' in graph") from None

    def get_edge(self, edge_id: str) -> Edge:
        try:
            return self.edges[edge_id]
        except KeyError:
            raise NoSuchElementError(f"No edge '{edge_id}' in graph") from None

    def incident_edges(self, node_id: str) -> List[Edge]:
        return [self.edges[eid] for eid in self._incident.get(node_id, [])]

    def neighbors(self, node_id: str) -> List[str]:
        return [self.edges[eid].other(node_id) for eid in self._incident.get(node_id, [])]

    def degree(self, node_id: str) -> int:
        return len(self._incident.get(node_id, []))

    def node_count(self) -> int:
        return len(self.nodes)

    def edge_count(self) -> int:
        return len(self.edges)

    def positions(self) -> Dict[str, np.ndarray]:
        return {nid: n.pos.copy() for nid, n in self.nodes.items()}

    def to_networkx(self) -> "nx.Graph":
        """
        Convert the graph to a NetworkX Graph for export/visualization.

        Positions are flattened into x, y, z attributes and origin tags into
        origin_kind / origin_node / origin_time so that GraphML can store them.

        Raises:
            ImportError: If NetworkX is not available
        """
        if not HAS_NETWORKX:
            raise ImportError(
                "NetworkX is required for graph conversion. Install with: pip install networkx"
            )

        G = nx.Graph()
        for node_id, node in self.nodes.items():
            node_attrs = {
                "x": float(node.pos[0]),
                "y": float(node.pos[1]),
                "z": float(node.pos[2]),
                "size": float(node.size),
            }
            if node.origin is not None:
                node_attrs["origin_kind"] = node.origin.kind.name
                node_attrs["origin_node"] = node.origin.node_id
                node_attrs["origin_time"] = float(node.origin.time)
            for k, v in node.meta.items():
                if isinstance(v, (str, int, float, bool)):
                    node_attrs[f"meta_{k}"] = v
            G.add_node(node_id, **node_attrs)

        for edge_id, edge in self.edges.items():
            edge_attrs = {"id": edge_id}
            for k, v in edge.meta.items():
                if isinstance(v, (str, int, float, bool)):
                    edge_attrs[f"meta_{k}"] = v
            G.add_edge(edge.source, edge.target, **edge_attrs)

        return G

    def export_graphml(self, filepath: str) -> None:
        """
        Export the graph to GraphML format.

        Args:
            filepath: Path where to save the GraphML file

        Raises:
            ImportError: If NetworkX is not available
        """
        nx_graph = self.to_networkx()
        nx.write_graphml(nx_graph, filepath)

    def validate_graph_integrity(self) -> Dict[str, List[str]]:
        """
        Structural validation of the graph.

        Checks for:
        - Invalid edge references
        - Non-finite node positions
        - Cluster members or poles missing from the graph

        Returns:
            Dictionary of validation issues by category (empty categories removed)
        """
        issues = {
            "invalid_edges": [],
            "invalid_positions": [],
            "invalid_clusters": [],
        }

        for edge_id, edge in self.edges.items():
            if edge.source not in self.nodes:
                issues["invalid_edges"].append(
                    f"Edge '{edge_id}' references non-existent source: {edge.source}"
                )
            if edge.target not in self.nodes:
                issues["invalid_edges"].append(
                    f"Edge '{edge_id}' references non-existent target: {edge.target}"
                )

        for node_id, node in self.nodes.items():
            if not np.all(np.isfinite(node.pos)):
                issues["invalid_positions"].append(f"Node '{node_id}' has non-finite position {node.pos}")

        for pole_id, cluster in self.clusters.items():
            if pole_id not in self.nodes:
                issues["invalid_clusters"].append(f"Cluster pole '{pole_id}' is not a node")
            for member in cluster.members:
                if member not in self.nodes:
                    issues["invalid_clusters"].append(
                        f"Cluster '{pole_id}' member '{member}' is not a node"
                    )

        return {k: v for k, v in issues.items() if v}

    def connected_components(self) -> List[List[str]]:
        """
        Find all connected components of the graph.

        Returns:
            List of sorted lists of node IDs, one per component
        """
        visited = set()
        components = []

        for start in self.nodes:
            if start in visited:
                continue
            component = []
            stack = [start]
            visited.add(start)
            while stack:
                node_id = stack.pop()
                component.append(node_id)
                for neighbor in self.neighbors(node_id):
                    if neighbor not in visited:
                        visited.add(neighbor)
                        stack.append(neighbor)
            components.append(sorted(component))

        return components

    def get_graph_statistics(self) -> Dict[str, Any]:
        """
        Summary statistics of the graph.

        Returns:
            Dictionary with node/edge/cluster counts, degree summary, bend
            counts and the bounding box of node positions
        """
        degrees = [self.degree(nid) for nid in self.nodes]
        bends = sum(1 for n in self.nodes.values() if n.origin is not None and n.origin.is_bend)
        stats: Dict[str, Any] = {
            "nodes": self.node_count(),
            "edges": self.edge_count(),
            "clusters": len(self.clusters),
            "bends": bends,
            "components": len(self.connected_components()),
            "max_degree": max(degrees) if degrees else 0,
            "avg_degree": (sum(degrees) / len(degrees)) if degrees else 0.0,
        }
        if self.nodes:
            arr = np.array([n.pos for n in self.nodes.values()])
            stats["bounds"] = {
                "min": [float(v) for v in arr.min(axis=0)],
                "max": [float(v) for v in arr.max(axis=0)],
            }
        return stats
