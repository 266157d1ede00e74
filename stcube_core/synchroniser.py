"""
Space-time cube synchroniser.

The synchroniser builds a static 3D mirror graph from a dynamic graph. Each
continuous presence of an original node becomes a mirror line: a chain of
mirror nodes going up the Z axis, which encodes time scaled by the time
factor. Bends are inserted wherever the incident-edge topology of the node
changes, so that forces can bend the trajectory at those moments. Each time
window in which an original edge joins two trajectories is exposed as a
mirror connection.

The mirror graph topology is built once and stays frozen while the layout
iterates; only node positions change.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set, Union

import numpy as np

from .dygraph import DyGraph, DyNode
from .enums import OriginKind
from .errors import NoSuchElementError, SynchronisationError
from .evolution import Evolution, FunctionConst, FunctionRect, presence_intervals
from .geometry import restr
from .graph import Edge, Graph, Node, Origin
from .interval import Interval
from .interval_tree import IntervalTree

logger = logging.getLogger(__name__)

TIME_EPSILON = 1e-9


@dataclass
class MirrorLine:
    """
    Trajectory of one original node over one continuous presence.

    Attributes:
        node_id: id of the original node
        index: position of this line among the node's lines, in time order
        interval: presence interval in original time units
        mirror_interval: the same interval on the Z axis
        nodes: mirror node ids from the bottom (earliest) to the top
        segments: mirror edge ids joining consecutive `nodes`
    """

    node_id: str
    index: int
    interval: Interval
    mirror_interval: Interval
    nodes: List[str]
    segments: List[str]

    @property
    def source(self) -> str:
        return self.nodes[0]

    @property
    def target(self) -> str:
        return self.nodes[-1]

    @property
    def bends(self) -> List[str]:
        return self.nodes[1:-1]


@dataclass(frozen=True)
class MirrorConnection:
    """
    Time window in which an original edge joins two mirror lines.

    Attributes:
        edge_id: id of the original edge
        source_line: line of the edge source during the window
        target_line: line of the edge target during the window
        interval: the window in original time units
        mirror_interval: the window on the Z axis
    """

    edge_id: str
    source_line: MirrorLine
    target_line: MirrorLine
    interval: Interval
    mirror_interval: Interval


def point_at_z(line: MirrorLine, z: float, position: Callable[[str], np.ndarray]) -> Optional[np.ndarray]:
    """
    Point of `line` at height `z`, interpolated between its chain nodes.

    Args:
        line: the mirror line
        z: height on the time axis
        position: accessor returning the 3D position of a mirror node id

    Returns:
        3D point, or None when `z` is outside the line
    """
    points = [position(nid) for nid in line.nodes]
    if len(points) == 1:
        return points[0].copy() if abs(points[0][2] - z) <= TIME_EPSILON else None
    if z < points[0][2] - TIME_EPSILON or z > points[-1][2] + TIME_EPSILON:
        return None
    for a, b in zip(points, points[1:]):
        if a[2] - TIME_EPSILON <= z <= b[2] + TIME_EPSILON:
            span = b[2] - a[2]
            factor = 0.0 if span <= TIME_EPSILON else (z - a[2]) / span
            return a + (b - a) * factor
    return points[-1].copy()


def _dedupe_sorted(times: Sequence[float]) -> List[float]:
    result: List[float] = []
    for t in sorted(times):
        if not result or t - result[-1] > TIME_EPSILON:
            result.append(t)
    return result


def _covers(outer: Interval, inner: Interval) -> bool:
    return outer.intersection(inner) == inner


class SpaceTimeCubeSynchroniser:
    """
    Keeps a mirror graph in sync with a dynamic graph.

    Args:
        original: the dynamic graph
        time_factor: mirror Z units per original time unit (must be > 0)
        bend_granularity: if set, extra bends are inserted so that no segment
            spans more than this many original time units

    Raises:
        SynchronisationError: if an edge is present while one of its
            extremities is not
    """

    def __init__(self, original: DyGraph, time_factor: float, bend_granularity: Optional[float] = None):
        if not time_factor > 0:
            raise ValueError(f"time_factor must be positive, got {time_factor}")
        if bend_granularity is not None and not bend_granularity > 0:
            raise ValueError(f"bend_granularity must be positive, got {bend_granularity}")
        self._original = original
        self.time_factor = float(time_factor)
        self.bend_granularity = bend_granularity
        self._mirror = Graph()
        self._lines: Dict[str, IntervalTree[MirrorLine]] = {}
        self._line_of_segment: Dict[str, MirrorLine] = {}
        self._line_of_node: Dict[str, MirrorLine] = {}
        self._junctions: Set[str] = set()
        self._connections: List[MirrorConnection] = []
        self._build()

    @classmethod
    def build(
        cls, original: DyGraph, time_factor: float, bend_granularity: Optional[float] = None
    ) -> "SpaceTimeCubeSynchroniser":
        return cls(original, time_factor, bend_granularity)

    # ----- construction -----
    def _build(self) -> None:
        node_presences = {nid: presence_intervals(n.presence) for nid, n in self._original.nodes.items()}
        edge_presences = {eid: presence_intervals(e.presence) for eid, e in self._original.edges.items()}
        self._check_consistency(node_presences, edge_presences)

        for node_id in sorted(self._original.nodes):
            tree: IntervalTree[MirrorLine] = IntervalTree()
            for index, interval in enumerate(node_presences[node_id]):
                boundaries = self._edge_boundaries(node_id, interval, edge_presences)
                tree.insert(interval, self._build_line(node_id, index, interval, boundaries))
            self._lines[node_id] = tree

        for edge_id in sorted(self._original.edges):
            edge = self._original.edges[edge_id]
            for interval in edge_presences[edge_id]:
                for source_line in self._lines[edge.source].overlapping(interval):
                    for target_line in self._lines[edge.target].overlapping(interval):
                        window = interval.intersection(source_line.interval)
                        window = window.intersection(target_line.interval) if window is not None else None
                        if window is None:
                            continue
                        self._connections.append(
                            MirrorConnection(edge_id, source_line, target_line, window, window.scaled(self.time_factor))
                        )

        logger.info(
            "Built mirror graph: %d nodes (%d bends), %d segments, %d connections",
            self._mirror.node_count(),
            sum(1 for n in self._mirror.nodes.values() if n.origin.is_bend),
            self._mirror.edge_count(),
            len(self._connections),
        )

    def _check_consistency(self, node_presences, edge_presences) -> None:
        for edge_id, edge in self._original.edges.items():
            for endpoint in (edge.source, edge.target):
                if endpoint not in self._original.nodes:
                    raise SynchronisationError(f"Edge '{edge_id}' references unknown node '{endpoint}'")
                for interval in edge_presences[edge_id]:
                    if not any(_covers(p, interval) for p in node_presences[endpoint]):
                        raise SynchronisationError(
                            f"Edge '{edge_id}' is present during {interval} "
                            f"but its extremity '{endpoint}' is not"
                        )

    def _edge_boundaries(self, node_id: str, line_interval: Interval, edge_presences) -> List[float]:
        times = []
        for edge in self._original.incident_edges(node_id):
            for interval in edge_presences[edge.id]:
                for t in (interval.left, interval.right):
                    if line_interval.left + TIME_EPSILON < t < line_interval.right - TIME_EPSILON:
                        times.append(t)
        return _dedupe_sorted(times)

    def _regular_bends(self, line_interval: Interval) -> List[float]:
        if self.bend_granularity is None or line_interval.width == 0:
            return []
        pieces = int(math.ceil(line_interval.width / self.bend_granularity - TIME_EPSILON))
        step = line_interval.width / max(1, pieces)
        return [line_interval.left + j * step for j in range(1, pieces)]

    def _build_line(self, node_id: str, index: int, interval: Interval, boundaries: List[float]) -> MirrorLine:
        dy_node = self._original.nodes[node_id]
        if interval.width == 0:
            times = [interval.left]
        else:
            times = [interval.left] + _dedupe_sorted(boundaries + self._regular_bends(interval)) + [interval.right]

        node_ids: List[str] = []
        for j, t in enumerate(times):
            extremity = j == 0 or j == len(times) - 1
            mirror_id = node_id if (index == 0 and j == 0) else f"{node_id}#{index}.{j}"
            xy = restr(dy_node.position.value_at(t), 2)
            self._mirror.add_node(
                Node(
                    mirror_id,
                    pos=np.array([xy[0], xy[1], t * self.time_factor]),
                    size=float(dy_node.size.value_at(t)),
                    origin=Origin(OriginKind.REAL if extremity else OriginKind.BEND, node_id, t, index),
                )
            )
            if not extremity and any(abs(t - b) <= TIME_EPSILON for b in boundaries):
                self._junctions.add(mirror_id)
            node_ids.append(mirror_id)

        segment_ids: List[str] = []
        for j, (a, b) in enumerate(zip(node_ids, node_ids[1:])):
            segment_id = f"{node_id}#{index}/{j}"
            self._mirror.add_edge(Edge(segment_id, a, b, meta={"node": node_id, "line": index}))
            segment_ids.append(segment_id)

        line = MirrorLine(node_id, index, interval, interval.scaled(self.time_factor), node_ids, segment_ids)
        for nid in node_ids:
            self._line_of_node[nid] = line
        for sid in segment_ids:
            self._line_of_segment[sid] = line
        return line

    # ----- accessors -----
    @property
    def original_graph(self) -> DyGraph:
        return self._original

    @property
    def mirror_graph(self) -> Graph:
        return self._mirror

    def _mirror_node(self, node: Union[Node, str]) -> Node:
        node_id = node.id if isinstance(node, Node) else node
        return self._mirror.get_node(node_id)

    def get_direct_node(self, node: Union[Node, str]) -> DyNode:
        """Original node a mirror node stands for (bends resolve to their trajectory owner)."""
        return self._original.get_node(self._mirror_node(node).origin.node_id)

    def get_direct_nodes(self) -> List[Node]:
        """Mirror nodes standing directly for an original node, one per node with a presence."""
        return [self._mirror.nodes[nid] for nid in sorted(self._original.nodes) if nid in self._mirror.nodes]

    def get_original_edge(self, mirror_edge: Union[Edge, str]) -> MirrorLine:
        """Trajectory (the unsegmented line) a mirror segment belongs to."""
        edge_id = mirror_edge.id if isinstance(mirror_edge, Edge) else mirror_edge
        try:
            return self._line_of_segment[edge_id]
        except KeyError:
            raise NoSuchElementError(f"No mirror segment '{edge_id}'") from None

    def get_original_node(self, element: Union[Edge, str, MirrorLine]) -> DyNode:
        """Original node owning a mirror segment or a mirror line."""
        line = element if isinstance(element, MirrorLine) else self.get_original_edge(element)
        return self._original.get_node(line.node_id)

    def line_of(self, mirror_node: Union[Node, str]) -> MirrorLine:
        return self._line_of_node[self._mirror_node(mirror_node).id]

    def mirror_lines(self, node: Union[DyNode, str]) -> IntervalTree[MirrorLine]:
        node_id = node.id if isinstance(node, DyNode) else node
        try:
            return self._lines[node_id]
        except KeyError:
            raise NoSuchElementError(f"No original node '{node_id}'") from None

    def mirror_connections(self) -> List[MirrorConnection]:
        return list(self._connections)

    def trajectory_nodes(self, node: Union[DyNode, str]) -> List[str]:
        """Every mirror node of every line of `node`, in time order."""
        result: List[str] = []
        for line in self.mirror_lines(node):
            result.extend(line.nodes)
        return result

    def is_junction(self, mirror_node: Union[Node, str]) -> bool:
        """True for bends inserted where an incident edge appears or disappears."""
        return self._mirror_node(mirror_node).id in self._junctions

    # ----- write back -----
    def update_original_positions(self, positions: Optional[Mapping[str, np.ndarray]] = None) -> None:
        """
        Rewrite the position timelines of the original graph from the mirror
        node positions: each segment becomes a linear transition between its
        extremities, so snapshots of the original graph follow the layout.

        Args:
            positions: mirror node id to position; defaults to the positions
                stored in the mirror graph
        """

        def xy(node: Node) -> np.ndarray:
            pos = positions[node.id] if positions is not None else node.pos
            return restr(pos, 2)

        for node_id, tree in self._lines.items():
            lines = list(tree)
            if not lines:
                continue
            evolution = Evolution(xy(self._mirror.nodes[lines[0].source]))
            for line in lines:
                chain = [self._mirror.nodes[nid] for nid in line.nodes]
                if len(chain) == 1:
                    instant = Interval.closed(line.interval.left, line.interval.left)
                    evolution.insert(FunctionConst(instant, xy(chain[0])))
                    continue
                for j, (a, b) in enumerate(zip(chain, chain[1:])):
                    last = j == len(chain) - 2
                    window = (Interval.closed if last else Interval.right_closed)(a.origin.time, b.origin.time)
                    evolution.insert(FunctionRect(window, xy(a), xy(b)))
            self._original.nodes[node_id].position = evolution
