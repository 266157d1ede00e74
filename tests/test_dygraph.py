"""
Unit tests for the dynamic graph, presence merging and initial placement.
"""

import numpy as np
import pytest

from stcube_core.dygraph import BLACK, TRANSPARENT, DyGraph
from stcube_core.enums import PresenceMode
from stcube_core.errors import NoSuchElementError
from stcube_core.evolution import Evolution, FunctionConst, presence_intervals
from stcube_core.interval import Interval
from stcube_core.placement import coordinates_over_circle, scatter_nodes, scatter_nodes_around_cluster_poles
from stcube_core.presence import merge_and_color, merge_presence_functions, set_appearance


def present(node_or_edge, *intervals):
    for left, right in intervals:
        node_or_edge.presence.insert(FunctionConst(Interval.closed(left, right), True))
    return node_or_edge


class TestDyGraph:
    """Test construction and lookup of dynamic graphs."""

    def test_new_edge_default_id(self):
        g = DyGraph()
        g.new_node("a")
        g.new_node("b")
        edge = g.new_edge("a", "b")
        assert edge.id == "a-b"
        assert [e.id for e in g.incident_edges("b")] == ["a-b"]

    def test_new_node_with_constant_position(self):
        g = DyGraph()
        node = g.new_node("a", (3, 4))
        np.testing.assert_allclose(node.position.value_at(123.0), [3, 4])

    def test_cluster_requires_known_nodes(self):
        g = DyGraph()
        g.new_node("p")
        with pytest.raises(NoSuchElementError):
            g.new_cluster("ghost")
        with pytest.raises(NoSuchElementError):
            g.new_cluster("p", ["ghost"])

    def test_get_node(self):
        g = DyGraph()
        g.new_node("a")
        assert g.get_node("a").id == "a"
        with pytest.raises(NoSuchElementError):
            g.get_node("b")

    def test_time_span(self):
        g = DyGraph()
        assert g.time_span() is None
        present(g.new_node("a"), (2, 5))
        present(g.new_node("b"), (0, 3), (7, 9))
        assert g.time_span() == Interval.closed(0, 9)


class TestSnapshots:
    """Test static snapshots of dynamic graphs."""

    def build_graph(self):
        g = DyGraph()
        present(g.new_node("a", (0, 0)), (0, 10))
        present(g.new_node("b", (5, 5)), (0, 4))
        present(g.new_node("p", (1, 1)), (0, 10))
        present(g.new_edge("a", "b"), (0, 10))
        cluster = g.new_cluster("p", ["a", "b"])
        cluster.presence = Evolution(False)
        cluster.presence.insert(FunctionConst(Interval.closed(2, 8), True))
        return g

    def test_snapshot_keeps_present_elements(self):
        snapshot = self.build_graph().snapshot_at(3)
        assert set(snapshot.nodes) == {"a", "b", "p"}
        assert set(snapshot.edges) == {"a-b"}
        assert snapshot.clusters["p"].members == ["a", "b"]
        np.testing.assert_allclose(snapshot.nodes["b"].pos, [5, 5, 0])

    def test_edges_need_both_extremities(self):
        snapshot = self.build_graph().snapshot_at(6)
        assert "b" not in snapshot.nodes
        assert snapshot.edges == {}
        assert snapshot.clusters["p"].members == ["a"]

    def test_cluster_presence(self):
        snapshot = self.build_graph().snapshot_at(9)
        assert snapshot.clusters == {}

    def test_snapshot_meta(self):
        g = self.build_graph()
        g.nodes["a"].label = Evolution("Alice")
        snapshot = g.snapshot_at(1)
        assert snapshot.nodes["a"].meta["label"] == "Alice"
        assert snapshot.nodes["a"].meta["color"] == BLACK


class TestPresenceMerging:
    """Test presence merging modes and appearance fading."""

    def build_graph(self):
        g = DyGraph()
        present(g.new_node("a"), (1, 3), (2, 5), (8, 9))
        present(g.new_node("b"), (0, 10))
        present(g.new_edge("a", "b"), (1, 2), (2, 3))
        return g

    def test_plain_mode_coalesces(self):
        g = self.build_graph()
        merge_presence_functions(g, 10.0)
        assert presence_intervals(g.nodes["a"].presence) == [Interval.closed(1, 5), Interval.closed(8, 9)]
        assert len(g.nodes["a"].presence) == 2
        assert len(g.edges["a-b"].presence) == 1

    def test_keep_appeared_node(self):
        g = self.build_graph()
        merge_presence_functions(g, 10.0, PresenceMode.KEEP_APPEARED_NODE)
        assert presence_intervals(g.nodes["a"].presence) == [Interval.closed(1, 10)]
        assert presence_intervals(g.edges["a-b"].presence) == [Interval.closed(1, 3)]

    def test_keep_appeared_edges(self):
        g = self.build_graph()
        merge_presence_functions(g, 10.0, PresenceMode.KEEP_APPEARED_EDGES)
        assert presence_intervals(g.edges["a-b"].presence) == [Interval.closed(1, 10)]

    def test_keep_appeared_node_starts_at_first_true_presence(self):
        g = DyGraph()
        node = g.new_node("a")
        node.presence.insert(FunctionConst(Interval.closed(0, 2), False))
        node.presence.insert(FunctionConst(Interval.closed(4, 5), True))
        merge_presence_functions(g, 10.0, PresenceMode.KEEP_APPEARED_NODE)
        assert presence_intervals(node.presence) == [Interval.closed(4, 10)]

    def test_set_appearance_fades_in_and_out(self):
        presence = Evolution(False, [FunctionConst(Interval.closed(0, 10), True)])
        color = Evolution(TRANSPARENT)
        set_appearance(presence, color, BLACK, 2.0)
        assert color.value_at(0) == pytest.approx(TRANSPARENT)
        assert color.value_at(1)[3] == pytest.approx(0.5)
        assert color.value_at(5) == BLACK
        assert color.value_at(10)[3] == pytest.approx(0.0)

    def test_short_presence_fades_meet_in_the_middle(self):
        presence = Evolution(False, [FunctionConst(Interval.closed(0, 2), True)])
        color = Evolution(TRANSPARENT)
        set_appearance(presence, color, BLACK, 2.0)
        assert len(color) == 2
        assert color.value_at(1)[3] == pytest.approx(1.0)

    def test_absences_get_no_fade(self):
        presence = Evolution(False, [FunctionConst(Interval.closed(0, 10), True)])
        presence.insert(FunctionConst(Interval.closed(20, 30), False))
        color = Evolution(TRANSPARENT)
        set_appearance(presence, color, BLACK, 2.0)
        assert len(color) == 3
        assert color.value_at(25) == pytest.approx(TRANSPARENT)

    def test_merge_and_color(self):
        g = self.build_graph()
        merge_and_color(g, 10.0, PresenceMode.PLAIN, BLACK, BLACK, 0.5)
        assert g.nodes["b"].color.value_at(5) == BLACK
        assert g.edges["a-b"].color.value_at(1)[3] == pytest.approx(0.0)


class TestPlacement:
    """Test seeded initial placement."""

    def build_graph(self):
        g = DyGraph()
        for nid in ("p", "q", "m1", "m2", "other"):
            g.new_node(nid)
        g.new_cluster("p", ["m1"])
        g.new_cluster("q", ["m2"])
        return g

    def test_scatter_is_reproducible_and_bounded(self):
        g1, g2 = self.build_graph(), self.build_graph()
        scatter_nodes(g1, 50.0, seed=1)
        scatter_nodes(g2, 50.0, seed=1)
        for nid in g1.nodes:
            pos = g1.nodes[nid].position.value_at(0)
            np.testing.assert_allclose(pos, g2.nodes[nid].position.value_at(0))
            assert np.all(pos >= 0) and np.all(pos < 50)

    def test_scatter_respects_exclusions(self):
        g = self.build_graph()
        g.nodes["p"].position = Evolution(np.array([-5.0, -5.0]))
        scatter_nodes(g, 50.0, exclude=["p"])
        np.testing.assert_allclose(g.nodes["p"].position.value_at(0), [-5, -5])

    def test_members_placed_around_their_pole(self):
        g = self.build_graph()
        scatter_nodes_around_cluster_poles(g, pole_radius=50.0, member_distance=10.0)
        np.testing.assert_allclose(g.nodes["p"].position.value_at(0), coordinates_over_circle(1, 2, 50.0))
        pole = g.nodes["q"].position.value_at(0)
        member = g.nodes["m2"].position.value_at(0)
        assert np.all(np.abs(member - pole) <= 10.0)
