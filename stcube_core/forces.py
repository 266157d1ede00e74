"""
Modular force system for the space-time cube layout.

Every force is a small frozen dataclass holding only its own parameters and
tagged with a `ForceKind`. `compute_forces` dispatches a force to its compute
function, which reads the mirror graph through a `ForceContext` and returns a
fresh (n, 3) field of force vectors, one row per mirror node. Force functions
never move nodes and never touch the graph topology; the engine sums the
fields and applies the displacement once per iteration.

Temperature runs from 1 (hot, first iteration) to 0 (cold, last iteration).
Exponents interpolate from their initial (hot) to their final (cold) value.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Dict, List, Optional, Tuple, Union

import numpy as np

from .enums import ForceKind
from .geometry import DEFAULT_EPSILON, Geom, restr
from .graph import Graph
from .interval import Interval
from .locator import SpatialLocator
from .synchroniser import MirrorLine, SpaceTimeCubeSynchroniser, point_at_z

if TYPE_CHECKING:
    from .config import LayoutConfig

MINIMAL_DISTANCE = 0.01
MINIMAL_ANGLE = 0.01


# ----- distances -----
@dataclass(frozen=True)
class DyDistances:
    """
    Current and desired distance between two elements.

    Attributes:
        current_distance: distance at the current temperature, never below
            `MINIMAL_DISTANCE`
        desired_distance: ideal distance between the element centres
    """

    current_distance: float
    desired_distance: float

    def __post_init__(self):
        object.__setattr__(self, "current_distance", max(MINIMAL_DISTANCE, float(self.current_distance)))

    def magnitude(self, exponent: float) -> float:
        """(desired / current) ** exponent."""
        return (self.desired_distance / self.current_distance) ** exponent

    @classmethod
    def between(
        cls,
        a: np.ndarray,
        b: np.ndarray,
        a_size: float,
        b_size: float,
        desired_distance: float,
        temperature: float,
        geom: Geom,
    ) -> "DyDistances":
        """
        Distances between two round glyphs. Glyphs grow linearly from zero
        size at temperature 1 to full size at temperature 0; the desired
        distance is measured between glyph borders at full size.
        """
        distance_at_zero_size = geom.distance(a, b)
        radius_at_full_size = min(distance_at_zero_size, (a_size + b_size) / 2.0)
        current_radius = radius_at_full_size * (1.0 - temperature)
        return cls(
            distance_at_zero_size - current_radius,
            desired_distance + radius_at_full_size - current_radius,
        )


def interpolate_exponent(initial: float, final: float, temperature: float) -> float:
    return final + (initial - final) * temperature


# ----- force parameters -----
@dataclass(frozen=True)
class Gravity:
    """Unit pull of every mirror node toward the layout centroid, computed once per run."""

    kind: ClassVar[ForceKind] = ForceKind.GRAVITY


@dataclass(frozen=True)
class NodeRepulsion:
    """Repulsion between mirror nodes of different trajectories."""

    kind: ClassVar[ForceKind] = ForceKind.NODE_REPULSION
    desired_distance: float = 20.0
    activity_factor: float = 3.0
    """Multiple of the desired distance beyond which nodes ignore each other."""
    initial_exponent: float = 1.0
    final_exponent: float = 2.0


@dataclass(frozen=True)
class EdgeRepulsion:
    """Point-segment repulsion between trajectories of different nodes."""

    kind: ClassVar[ForceKind] = ForceKind.EDGE_REPULSION
    desired_distance: float = 15.0
    initial_exponent: float = 1.0
    final_exponent: float = 3.0
    inner_box_factor: float = 4.0
    outer_box_factor: float = 9.0


@dataclass(frozen=True)
class ConnectionAttraction:
    """Attraction between trajectories joined by a dynamic edge."""

    kind: ClassVar[ForceKind] = ForceKind.CONNECTION_ATTRACTION
    desired_distance: float = 15.0
    initial_exponent: float = 4.0
    final_exponent: float = 2.0


@dataclass(frozen=True)
class TimeStraightening:
    """Smoothing and straightening of trajectories along the time axis."""

    kind: ClassVar[ForceKind] = ForceKind.TIME_STRAIGHTENING
    desired_distance: float = 20.0

    @property
    def smoothing_distance(self) -> float:
        return self.desired_distance / 5.0


@dataclass(frozen=True)
class MentalMapPreservation:
    """Pull of each bend toward the bends around it on its own trajectory."""

    kind: ClassVar[ForceKind] = ForceKind.MENTAL_MAP_PRESERVATION
    desired_distance: float = 20.0
    window: int = 5


@dataclass(frozen=True)
class PoleAttraction:
    kind: ClassVar[ForceKind] = ForceKind.POLE_ATTRACTION
    attraction_factor: float = 50.0


@dataclass(frozen=True)
class CircumferenceRepulsion:
    """Push of cluster members out of the polygonal face drawn around their pole."""

    kind: ClassVar[ForceKind] = ForceKind.CIRCUMFERENCE_REPULSION
    radius: float = 12.5
    repulsion_factor: float = 60.0
    face_degree: int = 32


@dataclass(frozen=True)
class NonClusterNodesRepulsion:
    kind: ClassVar[ForceKind] = ForceKind.NON_CLUSTER_NODES_REPULSION
    radius: float = 12.5
    distance_margin: float = 10.0
    initial_exponent: float = 4.0
    final_exponent: float = 2.0

    @property
    def desired_distance(self) -> float:
        return self.radius + self.distance_margin


Force = Union[
    Gravity,
    NodeRepulsion,
    EdgeRepulsion,
    ConnectionAttraction,
    TimeStraightening,
    MentalMapPreservation,
    PoleAttraction,
    CircumferenceRepulsion,
    NonClusterNodesRepulsion,
]


# ----- context -----
@dataclass(frozen=True)
class ForceContext:
    """
    Read-only view of the layout state handed to every force function.

    Attributes:
        synchroniser: mirror/original graph mapping
        graph: the mirror graph (topology only; positions live in `positions`)
        index: mirror node id to row of `positions`
        positions: (n, 3) positions for this iteration, not writable
        sizes: (n,) glyph sizes
        locator: spatial index built from `positions`
        temperature: annealing temperature in [0, 1]
        eps: tolerance of geometric comparisons
        cache: run-scoped storage for values computed once per run
    """

    synchroniser: SpaceTimeCubeSynchroniser
    graph: Graph
    index: Dict[str, int]
    positions: np.ndarray
    sizes: np.ndarray
    locator: SpatialLocator
    temperature: float
    eps: float = DEFAULT_EPSILON
    cache: Dict[str, Any] = field(default_factory=dict)

    @property
    def e2d(self) -> Geom:
        return Geom(2, self.eps)

    @property
    def e3d(self) -> Geom:
        return Geom(3, self.eps)

    def row(self, node_id: str) -> int:
        return self.index[node_id]

    def pos(self, node_id: str) -> np.ndarray:
        return self.positions[self.index[node_id]]

    def zeros(self) -> np.ndarray:
        return np.zeros_like(self.positions)


def _cached(ctx: ForceContext, key: str, compute: Callable[[], Any]) -> Any:
    if key not in ctx.cache:
        ctx.cache[key] = compute()
    return ctx.cache[key]


def _owners(ctx: ForceContext) -> List[str]:
    def compute():
        owners = [""] * len(ctx.index)
        for node_id, row in ctx.index.items():
            owners[row] = ctx.graph.nodes[node_id].origin.node_id
        return owners

    return _cached(ctx, "owners", compute)


def _plane(vector: np.ndarray) -> np.ndarray:
    out = np.zeros(3)
    out[:2] = vector[:2]
    return out


def _cluster_members(ctx: ForceContext) -> List[Tuple[str, int, MirrorLine]]:
    """
    (pole id, member mirror row, pole line) for every mirror node of every
    member trajectory that has a present cluster and a present pole.
    """

    def compute():
        result = []
        sync = ctx.synchroniser
        for pole, cluster in sorted(sync.original_graph.clusters.items()):
            for member in cluster.members:
                for mirror_id in sync.trajectory_nodes(member):
                    t = ctx.graph.nodes[mirror_id].origin.time
                    if not cluster.presence.value_at(t):
                        continue
                    pole_lines = sync.mirror_lines(pole).at(t)
                    if pole_lines:
                        result.append((pole, ctx.row(mirror_id), pole_lines[0]))
        return result

    return _cached(ctx, "cluster_members", compute)


def _pole_point(ctx: ForceContext, line: MirrorLine, z: float) -> Optional[np.ndarray]:
    return point_at_z(line, z, ctx.pos)


# ----- compute functions -----
def _gravity(force: Gravity, ctx: ForceContext) -> np.ndarray:
    out = ctx.zeros()
    if not len(ctx.positions):
        return out
    centre = _cached(ctx, "gravity_centre", lambda: ctx.positions[:, :2].mean(axis=0))
    geom = ctx.e2d
    for row in range(len(ctx.positions)):
        out[row, :2] = geom.unit_vector(centre - ctx.positions[row, :2])
    return out


def _node_repulsion(force: NodeRepulsion, ctx: ForceContext) -> np.ndarray:
    out = ctx.zeros()
    owners = _owners(ctx)
    geom = ctx.e2d
    exponent = interpolate_exponent(force.initial_exponent, force.final_exponent, ctx.temperature)
    for i, j in ctx.locator.close_pairs(force.desired_distance * force.activity_factor):
        if owners[i] == owners[j]:
            continue
        a, b = ctx.positions[i], ctx.positions[j]
        distances = DyDistances.between(
            a, b, ctx.sizes[i], ctx.sizes[j], force.desired_distance, ctx.temperature, ctx.e3d
        )
        push = _plane(geom.unit_vector(a - b)) * distances.magnitude(exponent)
        out[i] += push
        out[j] -= push
    return out


def _edge_repulsion(force: EdgeRepulsion, ctx: ForceContext) -> np.ndarray:
    out = ctx.zeros()
    sync = ctx.synchroniser
    geom = ctx.e3d
    exponent = interpolate_exponent(force.initial_exponent, force.final_exponent, ctx.temperature)
    edges = ctx.graph.edges

    def repel(a: int, c: int, d: int) -> None:
        a_pos, c_pos, d_pos = ctx.positions[a], ctx.positions[c], ctx.positions[d]
        if geom.almost_equal(a_pos, c_pos) or geom.almost_equal(a_pos, d_pos):
            return
        relation = geom.point_segment_relation(a_pos, c_pos, d_pos)
        unit = geom.unit_vector(relation.closest_point - a_pos)
        base = unit * DyDistances(relation.distance, force.desired_distance).magnitude(exponent)
        out[a] -= base
        if relation.is_projection_included:
            projection = relation.projection if relation.projection is not None else a_pos
            balance = geom.magnitude(projection - c_pos) / geom.magnitude(d_pos - c_pos)
            out[c] += base * (1.0 - balance)
            out[d] += base * balance
        else:
            out[c] += base
            out[d] += base

    done = set()
    for seed_id in sorted(edges):
        seed = edges[seed_id]
        if seed.source in done and seed.target in done:
            continue
        seed_box = ctx.locator.get_box(seed_id)
        inner = ctx.locator.edges_fully_in_box(seed_box.expand(force.inner_box_factor * force.desired_distance))
        outer = ctx.locator.edges_partially_in_box(seed_box.expand(force.outer_box_factor * force.desired_distance))
        if seed_id not in inner:
            inner.append(seed_id)

        for first_id in inner:
            first = edges[first_id]
            if first.source in done and first.target in done:
                continue
            first_owner = sync.get_original_edge(first_id).node_id
            a, b = ctx.row(first.source), ctx.row(first.target)
            for second_id in outer:
                if sync.get_original_edge(second_id).node_id == first_owner:
                    continue
                second = edges[second_id]
                c, d = ctx.row(second.source), ctx.row(second.target)
                if first.source not in done:
                    repel(a, c, d)
                if first.target not in done:
                    repel(b, c, d)
            done.add(first.source)
            done.add(first.target)
    return out


def _connection_attraction(force: ConnectionAttraction, ctx: ForceContext) -> np.ndarray:
    out = ctx.zeros()
    geom = ctx.e2d
    exponent = interpolate_exponent(force.initial_exponent, force.final_exponent, ctx.temperature)
    edges = ctx.graph.edges

    def rows(segment_id: str) -> Tuple[int, int]:
        segment = edges[segment_id]
        return ctx.row(segment.source), ctx.row(segment.target)

    def z_interval(segment_rows: Tuple[int, int]) -> Interval:
        return Interval.closed(ctx.positions[segment_rows[0], 2], ctx.positions[segment_rows[1], 2])

    def value_at_z(segment_rows: Tuple[int, int], z: float) -> np.ndarray:
        source, target = ctx.positions[segment_rows[0]], ctx.positions[segment_rows[1]]
        span = target[2] - source[2]
        if span == 0:
            return source
        return source + (target - source) * ((z - source[2]) / span)

    def apply(vector, z, a, b, a_int, b_int, a_ratio, b_ratio) -> None:
        current = geom.magnitude(vector)
        if geom.almost_zero(current):
            return
        base = _plane(geom.unit_vector(vector)) * (current / force.desired_distance) ** exponent
        a_balance = (z - a_int.left) / a_int.width if a_int.width > 0 else 0.5
        b_balance = (z - b_int.left) / b_int.width if b_int.width > 0 else 0.5
        out[a[0]] += base * (a_ratio * (1.0 - a_balance))
        out[a[1]] += base * (a_ratio * a_balance)
        out[b[0]] -= base * (b_ratio * (1.0 - b_balance))
        out[b[1]] -= base * (b_ratio * b_balance)

    for connection in ctx.synchroniser.mirror_connections():
        for a_id in connection.source_line.segments:
            a = rows(a_id)
            a_int = z_interval(a)
            a_and_conn = a_int.intersection(connection.mirror_interval)
            if a_and_conn is None:
                continue
            for b_id in connection.target_line.segments:
                b = rows(b_id)
                b_int = z_interval(b)
                b_and_conn = b_int.intersection(connection.mirror_interval)
                if b_and_conn is None:
                    continue
                overlap = a_and_conn.intersection(b_and_conn)
                if overlap is None:
                    continue
                a_ratio = 1.0 if a_int.width == 0 else overlap.width / a_int.width
                b_ratio = 1.0 if b_int.width == 0 else overlap.width / b_int.width
                for z in (overlap.left, overlap.right):
                    vector = value_at_z(b, z) - value_at_z(a, z)
                    apply(vector, z, a, b, a_int, b_int, a_ratio, b_ratio)
    return out


def _time_straightening(force: TimeStraightening, ctx: ForceContext) -> np.ndarray:
    out = ctx.zeros()
    sync = ctx.synchroniser
    geom = ctx.e3d
    for node_id in sorted(sync.original_graph.nodes):
        mirror_ids = sync.trajectory_nodes(node_id)
        if len(mirror_ids) < 2:
            continue
        chain = [ctx.row(nid) for nid in mirror_ids]
        junctions = [sync.is_junction(nid) for nid in mirror_ids]

        # smoothing
        for i, row in enumerate(chain):
            current = ctx.positions[row]
            if i == 0 or i == len(chain) - 1:
                other = ctx.positions[chain[i - 1] if i != 0 else chain[1]]
                desired = (other + current) / 2.0
                desired[2] = current[2]
                vector = desired - current
            else:
                before, after = ctx.positions[chain[i - 1]], ctx.positions[chain[i + 1]]
                if not junctions[i]:
                    mid = (before + after) / 2.0
                else:
                    span = after[2] - before[2]
                    factor = (current[2] - before[2]) / span if span != 0 else 0.5
                    mid = before + (after - before) * factor
                centroid = mid + (current - mid) / 3.0
                vector = centroid - current
            magnitude = geom.magnitude(vector)
            if magnitude > 0:
                out[row] += geom.unit_vector(vector) * (magnitude / force.smoothing_distance) ** 2

        # straightening
        for i in range(len(chain) - 1):
            for j in range(i + 1, len(chain)):
                source, target = chain[i], chain[j]
                vector3d = ctx.positions[target] - ctx.positions[source]
                vector2d = _plane(vector3d)
                if geom.almost_zero(vector3d[2]) or geom.almost_zero(vector2d):
                    continue
                angle = max(geom.between_angle(vector3d, vector2d), MINIMAL_ANGLE)
                pull = vector2d * ((math.pi / 2.0 - angle) / angle)
                out[source] += pull
                out[target] -= pull
    return out


def _mental_map_preservation(force: MentalMapPreservation, ctx: ForceContext) -> np.ndarray:
    out = ctx.zeros()
    sync = ctx.synchroniser
    geom = ctx.e2d
    for node_id in sorted(sync.original_graph.nodes):
        chain = [ctx.row(nid) for nid in sync.trajectory_nodes(node_id)]
        for i, row in enumerate(chain):
            window = chain[max(i - force.window, 0):i] + chain[i + 1:i + 1 + force.window]
            current = ctx.positions[row]
            weight_sum = 0.0
            centre = np.zeros(3)
            for near in window:
                near_pos = ctx.positions[near]
                if not geom.almost_equal(near_pos[2], current[2]):
                    weight = 1.0 / abs(near_pos[2] - current[2])
                    centre += near_pos * weight
                    weight_sum += weight
            if not geom.almost_zero(weight_sum):
                vector = (centre / weight_sum) - current
                pull = geom.unit_vector(vector) * (weight_sum * geom.magnitude(vector) / force.desired_distance)
                out[row, :2] += pull
    return out


def _pole_attraction(force: PoleAttraction, ctx: ForceContext) -> np.ndarray:
    out = ctx.zeros()
    geom = ctx.e2d
    for _pole, row, pole_line in _cluster_members(ctx):
        member = ctx.positions[row]
        pole_point = _pole_point(ctx, pole_line, member[2])
        if pole_point is None:
            continue
        out[row, :2] += geom.unit_vector(pole_point - member) * force.attraction_factor
    return out


def face_boundary(centre: np.ndarray, radius: float, degree: int = 32) -> np.ndarray:
    """(degree, 2) vertices of a regular polygon approximating a circle."""
    angles = 2.0 * np.pi * np.arange(degree) / degree
    return np.column_stack([centre[0] + radius * np.cos(angles), centre[1] + radius * np.sin(angles)])


def _circumference_repulsion(force: CircumferenceRepulsion, ctx: ForceContext) -> np.ndarray:
    out = ctx.zeros()
    geom = ctx.e2d
    for _pole, row, pole_line in _cluster_members(ctx):
        member = ctx.positions[row]
        pole_point = _pole_point(ctx, pole_line, member[2])
        if pole_point is None:
            continue
        face = face_boundary(pole_point, force.radius, force.face_degree)
        nearest = None
        for k in range(len(face)):
            relation = geom.point_segment_relation(member, face[k], face[(k + 1) % len(face)])
            if nearest is None or relation.distance < nearest.distance:
                nearest = relation
        if geom.distance(member, pole_point) >= geom.distance(nearest.closest_point, pole_point):
            continue
        push = geom.unit_vector(nearest.closest_point - restr(member, 2))
        out[row, :2] += push * force.repulsion_factor * (1.0 + nearest.distance / force.radius)
    return out


def _non_cluster_nodes_repulsion(force: NonClusterNodesRepulsion, ctx: ForceContext) -> np.ndarray:
    out = ctx.zeros()
    sync = ctx.synchroniser
    owners = _owners(ctx)
    geom = ctx.e2d
    exponent = interpolate_exponent(force.initial_exponent, force.final_exponent, ctx.temperature)

    clustered = set()
    for pole, cluster in sync.original_graph.clusters.items():
        clustered.add(pole)
        clustered.update(cluster.members)

    for pole in sorted(sync.original_graph.clusters):
        for pole_mirror in sync.trajectory_nodes(pole):
            p = ctx.row(pole_mirror)
            for candidate in ctx.locator.close_nodes(pole_mirror, force.desired_distance):
                q = ctx.row(candidate)
                if owners[q] in clustered:
                    continue
                distances = DyDistances.between(
                    ctx.positions[p],
                    ctx.positions[q],
                    ctx.sizes[p],
                    ctx.sizes[q],
                    force.desired_distance,
                    ctx.temperature,
                    geom,
                )
                push = _plane(geom.unit_vector(ctx.positions[q] - ctx.positions[p])) * distances.magnitude(exponent)
                out[q] += push
                out[p] -= push
    return out


_DISPATCH: Dict[ForceKind, Callable[[Any, ForceContext], np.ndarray]] = {
    ForceKind.GRAVITY: _gravity,
    ForceKind.NODE_REPULSION: _node_repulsion,
    ForceKind.EDGE_REPULSION: _edge_repulsion,
    ForceKind.CONNECTION_ATTRACTION: _connection_attraction,
    ForceKind.TIME_STRAIGHTENING: _time_straightening,
    ForceKind.MENTAL_MAP_PRESERVATION: _mental_map_preservation,
    ForceKind.POLE_ATTRACTION: _pole_attraction,
    ForceKind.CIRCUMFERENCE_REPULSION: _circumference_repulsion,
    ForceKind.NON_CLUSTER_NODES_REPULSION: _non_cluster_nodes_repulsion,
}


def compute_forces(force: Force, ctx: ForceContext) -> np.ndarray:
    """
    Compute the force field of `force` for the state in `ctx`.

    Returns:
        (n, 3) array of force vectors, one row per mirror node
    """
    return _DISPATCH[force.kind](force, ctx)


def build_forces(config: "LayoutConfig") -> List[Force]:
    """Instantiate the forces enabled in `config`, in the configured order."""
    factories: Dict[ForceKind, Callable[[], Force]] = {
        ForceKind.GRAVITY: Gravity,
        ForceKind.NODE_REPULSION: lambda: NodeRepulsion(
            config.node_node_distance,
            initial_exponent=config.node_repulsion_exponents[0],
            final_exponent=config.node_repulsion_exponents[1],
        ),
        ForceKind.EDGE_REPULSION: lambda: EdgeRepulsion(
            config.edge_edge_distance,
            initial_exponent=config.edge_repulsion_exponents[0],
            final_exponent=config.edge_repulsion_exponents[1],
        ),
        ForceKind.CONNECTION_ATTRACTION: lambda: ConnectionAttraction(
            config.edge_edge_distance,
            initial_exponent=config.connection_exponents[0],
            final_exponent=config.connection_exponents[1],
        ),
        ForceKind.TIME_STRAIGHTENING: lambda: TimeStraightening(config.node_node_distance),
        ForceKind.MENTAL_MAP_PRESERVATION: lambda: MentalMapPreservation(config.node_node_distance),
        ForceKind.POLE_ATTRACTION: lambda: PoleAttraction(config.pole_attraction_factor),
        ForceKind.CIRCUMFERENCE_REPULSION: lambda: CircumferenceRepulsion(
            config.cluster_radius, config.circumference_repulsion_factor
        ),
        ForceKind.NON_CLUSTER_NODES_REPULSION: lambda: NonClusterNodesRepulsion(config.cluster_radius),
    }
    return [factories[kind]() for kind in config.forces]
