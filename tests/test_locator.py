"""
Unit tests for the spatial locator.
"""

import numpy as np
import pytest

from stcube_core.errors import NoSuchElementError
from stcube_core.geometry import Box
from stcube_core.graph import Edge, Graph, Node
from stcube_core.locator import SpatialLocator


def build_locator():
    g = Graph()
    points = {
        "a0": [0, 0, 0],
        "a1": [0, 0, 10],
        "b0": [3, 0, 0],
        "b1": [3, 0, 10],
        "far": [100, 100, 0],
    }
    for nid, pos in points.items():
        g.add_node(Node(nid, pos=pos))
    g.add_edge(Edge("a", "a0", "a1"))
    g.add_edge(Edge("b", "b0", "b1"))
    ids = sorted(g.nodes)
    index = {nid: row for row, nid in enumerate(ids)}
    positions = np.array([g.nodes[nid].pos for nid in ids])
    return SpatialLocator.build(g, positions, index)


class TestBoxes:
    def test_node_box_is_a_point(self):
        box = build_locator().get_box("b0")
        np.testing.assert_allclose(box.lower, [3, 0, 0])
        np.testing.assert_allclose(box.upper, [3, 0, 0])

    def test_edge_box(self):
        locator = build_locator()
        box = locator.get_box("b")
        np.testing.assert_allclose(box.lower, [3, 0, 0])
        np.testing.assert_allclose(box.upper, [3, 0, 10])
        np.testing.assert_allclose(locator.get_box(Edge("a", "a0", "a1")).upper, [0, 0, 10])

    def test_unknown_element(self):
        with pytest.raises(NoSuchElementError):
            build_locator().get_box("nope")


class TestQueries:
    def test_nodes_in_box(self):
        locator = build_locator()
        box = Box(np.array([-1.0, -1.0, -1.0]), np.array([4.0, 1.0, 1.0]))
        assert sorted(locator.nodes_in_box(box)) == ["a0", "b0"]

    def test_edges_fully_and_partially_in_box(self):
        locator = build_locator()
        box = Box(np.array([-1.0, -1.0, -1.0]), np.array([1.0, 1.0, 11.0]))
        assert locator.edges_fully_in_box(box) == ["a"]
        low = Box(np.array([-1.0, -1.0, -1.0]), np.array([4.0, 1.0, 5.0]))
        assert locator.edges_fully_in_box(low) == []
        assert locator.edges_partially_in_box(low) == ["a", "b"]

    def test_close_nodes_excludes_the_node_itself(self):
        locator = build_locator()
        assert locator.close_nodes("a0", 5.0) == ["b0"]
        assert locator.close_nodes("far", 5.0) == []
        with pytest.raises(NoSuchElementError):
            locator.close_nodes("nope", 1.0)

    def test_close_pairs(self):
        locator = build_locator()
        pairs = {tuple(p) for p in locator.close_pairs(5.0).tolist()}
        # rows follow sorted ids: a0, a1, b0, b1, far
        assert pairs == {(0, 2), (1, 3)}

    def test_empty_graph(self):
        locator = SpatialLocator(Graph(), np.zeros((0, 3)), {})
        assert locator.close_pairs(1.0).shape == (0, 2)
        assert locator.nodes_in_box(Box(np.zeros(3), np.ones(3))) == []
        assert locator.edges_partially_in_box(Box(np.zeros(3), np.ones(3))) == []
