"""
Spatial locator over the mirror graph.

The locator answers box and proximity queries so that repulsion forces only
look at candidates near each element instead of every pair. Nodes are indexed
with a KD-tree and segments by their axis-aligned bounding boxes. The index is
a snapshot of one position array: it must be rebuilt whenever positions move.
"""

from __future__ import annotations

from typing import Dict, List, Union

import numpy as np
from scipy.spatial import cKDTree

from .errors import NoSuchElementError
from .geometry import Box
from .graph import Edge, Graph, Node


class SpatialLocator:
    """
    Box and proximity index for the nodes and edges of a static graph.

    Args:
        graph: the graph whose elements are indexed
        positions: (n, 3) array of node positions
        index: node id to row of `positions`
    """

    def __init__(self, graph: Graph, positions: np.ndarray, index: Dict[str, int]):
        self._positions = positions
        self._index = index
        self._node_ids: List[str] = [""] * len(index)
        for node_id, row in index.items():
            self._node_ids[row] = node_id
        self._tree = cKDTree(positions) if len(positions) else None

        self._edge_ids: List[str] = sorted(graph.edges)
        self._edge_rows: Dict[str, int] = {eid: i for i, eid in enumerate(self._edge_ids)}
        if self._edge_ids:
            src = np.array([index[graph.edges[eid].source] for eid in self._edge_ids])
            tgt = np.array([index[graph.edges[eid].target] for eid in self._edge_ids])
            self._edge_lower = np.minimum(positions[src], positions[tgt])
            self._edge_upper = np.maximum(positions[src], positions[tgt])
        else:
            self._edge_lower = np.zeros((0, 3))
            self._edge_upper = np.zeros((0, 3))

    @classmethod
    def build(cls, graph: Graph, positions: np.ndarray, index: Dict[str, int]) -> "SpatialLocator":
        return cls(graph, positions, index)

    def get_box(self, element: Union[Node, Edge, str]) -> Box:
        """
        Bounding box of a node (a point box) or of an edge.

        Raises:
            NoSuchElementError: if the element is not indexed
        """
        if isinstance(element, Edge) or (isinstance(element, str) and element not in self._index):
            edge_id = element.id if isinstance(element, Edge) else element
            if edge_id not in self._edge_rows:
                raise NoSuchElementError(f"No element '{edge_id}' in locator")
            row = self._edge_rows[edge_id]
            return Box(self._edge_lower[row].copy(), self._edge_upper[row].copy())
        node_id = element.id if isinstance(element, Node) else element
        if node_id not in self._index:
            raise NoSuchElementError(f"No node '{node_id}' in locator")
        pos = self._positions[self._index[node_id]]
        return Box(pos.copy(), pos.copy())

    def nodes_in_box(self, box: Box) -> List[str]:
        if not len(self._positions):
            return []
        inside = np.all((self._positions >= box.lower) & (self._positions <= box.upper), axis=1)
        return [self._node_ids[i] for i in np.flatnonzero(inside)]

    def edges_fully_in_box(self, box: Box) -> List[str]:
        inside = np.all((self._edge_lower >= box.lower) & (self._edge_upper <= box.upper), axis=1)
        return [self._edge_ids[i] for i in np.flatnonzero(inside)]

    def edges_partially_in_box(self, box: Box) -> List[str]:
        """Edges whose bounding box intersects `box`."""
        touching = np.all((self._edge_upper >= box.lower) & (self._edge_lower <= box.upper), axis=1)
        return [self._edge_ids[i] for i in np.flatnonzero(touching)]

    def close_nodes(self, node_id: str, distance: float) -> List[str]:
        """Nodes within `distance` (3D) of `node_id`, excluding the node itself."""
        if node_id not in self._index:
            raise NoSuchElementError(f"No node '{node_id}' in locator")
        row = self._index[node_id]
        found = self._tree.query_ball_point(self._positions[row], r=distance)
        return [self._node_ids[i] for i in sorted(found) if i != row]

    def close_pairs(self, distance: float) -> np.ndarray:
        """(k, 2) array of row pairs closer than `distance`, each pair once with i < j."""
        if self._tree is None:
            return np.zeros((0, 2), dtype=int)
        return self._tree.query_pairs(r=distance, output_type="ndarray")
