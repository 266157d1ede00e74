"""
Unit tests for the space-time cube synchroniser.

These tests validate the mirror graph built from a dynamic graph: trajectory
chains, bends at edge boundaries, mirror connections, the lookups between
the two graphs, and the write back of laid out positions.
"""

import numpy as np
import pytest

from stcube_core.dygraph import DyGraph, DyEdge
from stcube_core.enums import OriginKind
from stcube_core.errors import NoSuchElementError, SynchronisationError
from stcube_core.evolution import FunctionConst
from stcube_core.interval import Interval
from stcube_core.synchroniser import SpaceTimeCubeSynchroniser, point_at_z


def present(element, *intervals):
    for left, right in intervals:
        element.presence.insert(FunctionConst(Interval.closed(left, right), True))
    return element


def bends(sync):
    return [n for n in sync.mirror_graph.nodes.values() if n.origin.is_bend]


def two_node_graph(edge_interval=None):
    g = DyGraph()
    present(g.new_node("a", (0, 0)), (0, 10))
    present(g.new_node("b", (10, 0)), (0, 10))
    if edge_interval is not None:
        present(g.new_edge("a", "b"), edge_interval)
    return g


class TestMirrorLines:
    """Test the trajectory chains of the mirror graph."""

    def test_single_node_gives_single_segment(self):
        g = DyGraph()
        present(g.new_node("a", (3, 4)), (0, 10))
        sync = SpaceTimeCubeSynchroniser(g, 1.0)

        assert sync.mirror_graph.node_count() == 2
        assert sync.mirror_graph.edge_count() == 1
        assert bends(sync) == []
        np.testing.assert_allclose(sync.mirror_graph.nodes["a"].pos, [3, 4, 0])
        np.testing.assert_allclose(sync.mirror_graph.nodes["a#0.1"].pos, [3, 4, 10])

    def test_time_factor_scales_z(self):
        g = DyGraph()
        present(g.new_node("a"), (1, 4))
        sync = SpaceTimeCubeSynchroniser(g, 2.5)
        line = list(sync.mirror_lines("a"))[0]
        assert line.mirror_interval == Interval.closed(2.5, 10)
        assert sync.mirror_graph.nodes[line.target].pos[2] == pytest.approx(10.0)
        assert sync.mirror_graph.nodes[line.target].origin.time == 4.0

    def test_extremities_are_real_and_interior_nodes_are_bends(self):
        sync = SpaceTimeCubeSynchroniser(two_node_graph((2, 4)), 1.0)
        line = list(sync.mirror_lines("a"))[0]
        kinds = [sync.mirror_graph.nodes[nid].origin.kind for nid in line.nodes]
        assert kinds == [OriginKind.REAL, OriginKind.BEND, OriginKind.BEND, OriginKind.REAL]
        assert [sync.mirror_graph.nodes[nid].origin.time for nid in line.nodes] == [0, 2, 4, 10]

    def test_edge_boundaries_insert_four_bends(self):
        sync = SpaceTimeCubeSynchroniser(two_node_graph((2, 4)), 1.0)
        found = bends(sync)
        assert len(found) == 4
        assert sorted(n.origin.time for n in found) == [2, 2, 4, 4]
        assert all(sync.is_junction(n) for n in found)

    def test_shared_boundaries_are_not_duplicated(self):
        g = two_node_graph((2, 4))
        present(g.new_node("c", (5, 5)), (0, 10))
        present(g.new_edge("a", "c"), (4, 6))
        sync = SpaceTimeCubeSynchroniser(g, 1.0)
        line = list(sync.mirror_lines("a"))[0]
        assert [sync.mirror_graph.nodes[nid].origin.time for nid in line.bends] == [2, 4, 6]

    def test_edge_over_whole_presence_adds_no_bend(self):
        sync = SpaceTimeCubeSynchroniser(two_node_graph((0, 10)), 1.0)
        assert bends(sync) == []
        assert sync.mirror_graph.node_count() == 4

    def test_bend_granularity(self):
        g = DyGraph()
        present(g.new_node("a"), (0, 10))
        sync = SpaceTimeCubeSynchroniser(g, 1.0, bend_granularity=2.0)
        found = bends(sync)
        assert sorted(n.origin.time for n in found) == pytest.approx([2, 4, 6, 8])
        assert not any(sync.is_junction(n) for n in found)

    def test_one_line_per_presence(self):
        g = DyGraph()
        present(g.new_node("a"), (0, 2), (5, 8))
        sync = SpaceTimeCubeSynchroniser(g, 1.0)
        lines = list(sync.mirror_lines("a"))
        assert [line.index for line in lines] == [0, 1]
        assert lines[1].nodes == ["a#1.0", "a#1.1"]
        assert sync.mirror_lines("a").at(6)[0].index == 1
        assert sync.mirror_lines("a").at(3) == []
        assert sync.trajectory_nodes("a") == ["a", "a#0.1", "a#1.0", "a#1.1"]

    def test_overridden_absence_splits_the_trajectory(self):
        g = DyGraph()
        a = present(g.new_node("a"), (0, 10))
        a.presence.insert(FunctionConst(Interval.closed(3, 5), False))
        sync = SpaceTimeCubeSynchroniser(g, 1.0)
        lines = list(sync.mirror_lines("a"))
        assert [line.interval for line in lines] == [Interval.right_closed(0, 3), Interval.left_closed(5, 10)]
        assert sync.mirror_lines("a").at(4) == []

    def test_instant_presence(self):
        g = DyGraph()
        g.new_node("a").presence.insert(FunctionConst(Interval.closed(3, 3), True))
        sync = SpaceTimeCubeSynchroniser(g, 1.0)
        line = list(sync.mirror_lines("a"))[0]
        assert line.nodes == ["a"]
        assert line.segments == []
        assert sync.mirror_graph.edge_count() == 0

    def test_absent_node_has_no_line(self):
        g = DyGraph()
        g.new_node("ghost")
        sync = SpaceTimeCubeSynchroniser(g, 1.0)
        assert len(sync.mirror_lines("ghost")) == 0
        assert sync.get_direct_nodes() == []


class TestMirrorConnections:
    def test_connection_window(self):
        sync = SpaceTimeCubeSynchroniser(two_node_graph((2, 4)), 3.0)
        connections = sync.mirror_connections()
        assert len(connections) == 1
        connection = connections[0]
        assert connection.edge_id == "a-b"
        assert connection.interval == Interval.closed(2, 4)
        assert connection.mirror_interval == Interval.closed(6, 12)
        assert connection.source_line.node_id == "a"
        assert connection.target_line.node_id == "b"

    def test_connection_per_line(self):
        g = DyGraph()
        present(g.new_node("a"), (0, 2), (5, 8))
        present(g.new_node("b"), (0, 10))
        present(g.new_edge("a", "b"), (1, 2), (6, 7))
        sync = SpaceTimeCubeSynchroniser(g, 1.0)
        assert [c.source_line.index for c in sync.mirror_connections()] == [0, 1]

    def test_connections_are_a_copy(self):
        sync = SpaceTimeCubeSynchroniser(two_node_graph((2, 4)), 1.0)
        sync.mirror_connections().clear()
        assert len(sync.mirror_connections()) == 1


class TestConsistency:
    """Test construction errors."""

    def test_edge_outliving_an_extremity(self):
        g = DyGraph()
        present(g.new_node("a"), (0, 10))
        present(g.new_node("b"), (0, 5))
        present(g.new_edge("a", "b"), (0, 10))
        with pytest.raises(SynchronisationError):
            SpaceTimeCubeSynchroniser(g, 1.0)

    def test_edge_across_a_presence_gap(self):
        g = DyGraph()
        present(g.new_node("a"), (0, 4), (6, 10))
        present(g.new_node("b"), (0, 10))
        present(g.new_edge("a", "b"), (3, 7))
        with pytest.raises(SynchronisationError):
            SpaceTimeCubeSynchroniser(g, 1.0)

    def test_edge_during_an_overridden_absence(self):
        g = DyGraph()
        a = present(g.new_node("a"), (0, 10))
        a.presence.insert(FunctionConst(Interval.closed(3, 5), False))
        present(g.new_node("b"), (0, 10))
        present(g.new_edge("a", "b"), (3, 5))
        with pytest.raises(SynchronisationError):
            SpaceTimeCubeSynchroniser(g, 1.0)

    def test_edge_to_unknown_node(self):
        g = DyGraph()
        present(g.new_node("a"), (0, 10))
        g.edges["bad"] = present(DyEdge("bad", "a", "ghost"), (0, 1))
        with pytest.raises(SynchronisationError):
            SpaceTimeCubeSynchroniser(g, 1.0)

    def test_invalid_factors(self):
        with pytest.raises(ValueError):
            SpaceTimeCubeSynchroniser(DyGraph(), 0.0)
        with pytest.raises(ValueError):
            SpaceTimeCubeSynchroniser(DyGraph(), 1.0, bend_granularity=-1.0)


class TestLookups:
    """Test the mapping between mirror and original elements."""

    def test_direct_nodes(self):
        sync = SpaceTimeCubeSynchroniser.build(two_node_graph((2, 4)), 1.0)
        assert [n.id for n in sync.get_direct_nodes()] == ["a", "b"]
        assert sync.get_direct_node("a#0.2").id == "a"
        assert sync.get_direct_node(sync.mirror_graph.nodes["b"]).id == "b"

    def test_original_edge_and_node_of_a_segment(self):
        sync = SpaceTimeCubeSynchroniser(two_node_graph((2, 4)), 1.0)
        line = sync.get_original_edge("a#0/1")
        assert line.node_id == "a"
        assert line.segments == ["a#0/0", "a#0/1", "a#0/2"]
        assert sync.get_original_node("a#0/1").id == "a"
        assert sync.get_original_node(line).id == "a"
        assert sync.line_of("a#0.3") is line

    def test_unknown_elements(self):
        sync = SpaceTimeCubeSynchroniser(two_node_graph(), 1.0)
        with pytest.raises(NoSuchElementError):
            sync.get_original_edge("nope")
        with pytest.raises(NoSuchElementError):
            sync.mirror_lines("nope")
        with pytest.raises(NoSuchElementError):
            sync.get_direct_node("nope")


class TestWriteBack:
    def test_point_at_z(self):
        sync = SpaceTimeCubeSynchroniser(two_node_graph(), 1.0)
        sync.mirror_graph.nodes["a#0.1"].pos = np.array([10.0, 0.0, 10.0])
        line = sync.line_of("a")

        def position(nid):
            return sync.mirror_graph.nodes[nid].pos

        np.testing.assert_allclose(point_at_z(line, 5.0, position), [5, 0, 5])
        assert point_at_z(line, 11.0, position) is None

    def test_update_original_positions(self):
        g = two_node_graph()
        sync = SpaceTimeCubeSynchroniser(g, 1.0)
        sync.mirror_graph.nodes["a#0.1"].pos = np.array([10.0, 4.0, 10.0])
        sync.update_original_positions()
        position = g.nodes["a"].position
        np.testing.assert_allclose(position.value_at(0), [0, 0])
        np.testing.assert_allclose(position.value_at(5), [5, 2])
        np.testing.assert_allclose(position.value_at(10), [10, 4])

    def test_update_from_explicit_positions(self):
        g = two_node_graph((2, 4))
        sync = SpaceTimeCubeSynchroniser(g, 1.0)
        positions = {nid: np.array([1.0, 1.0, n.pos[2]]) for nid, n in sync.mirror_graph.nodes.items()}
        sync.update_original_positions(positions)
        np.testing.assert_allclose(g.nodes["b"].position.value_at(3), [1, 1])
        # mirror graph itself is left untouched
        np.testing.assert_allclose(sync.mirror_graph.nodes["b"].pos[:2], [10, 0])
