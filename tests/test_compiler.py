"""
Unit tests for the YAML compiler module.

These tests validate dynamic graph construction from dictionary specs, YAML
text, and files, including presence parsing, timed positions, clusters,
presence modes, fading and seeded scattering.
"""

import os

import numpy as np
import pytest

from stcube_core.compiler import compile_from_dict, compile_from_file, compile_from_yaml
from stcube_core.dygraph import DyGraph
from stcube_core.evolution import presence_intervals
from stcube_core.interval import Interval
from stcube_core.synchroniser import SpaceTimeCubeSynchroniser

SCRIPTS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "scripts")


class TestCompileFromDict:
    def test_nodes_edges_and_labels(self):
        spec = {
            "nodes": [
                {"id": "a", "presence": [[0, 10]], "position": [1, 2], "size": 3, "label": "Alice"},
                {"id": "b", "presence": [[0, 4], [6, 10]]},
            ],
            "edges": [{"source": "a", "target": "b", "presence": [[2, 4]]}],
        }
        g: DyGraph = compile_from_dict(spec)

        assert set(g.nodes) == {"a", "b"}
        assert presence_intervals(g.nodes["b"].presence) == [Interval.closed(0, 4), Interval.closed(6, 10)]
        np.testing.assert_allclose(g.nodes["a"].position.value_at(5), [1, 2])
        assert g.nodes["a"].size.value_at(5) == 3.0
        assert g.nodes["a"].label.value_at(5) == "Alice"
        assert presence_intervals(g.edges["a-b"].presence) == [Interval.closed(2, 4)]

    def test_presence_shorthands(self):
        spec = {
            "nodes": [
                {"id": "pair", "presence": [1, 3]},
                {"id": "instant", "presence": 5},
                "bare",
            ],
        }
        g = compile_from_dict(spec)
        assert presence_intervals(g.nodes["pair"].presence) == [Interval.closed(1, 3)]
        assert presence_intervals(g.nodes["instant"].presence) == [Interval.closed(5, 5)]
        # nodes without presence span the whole description
        assert presence_intervals(g.nodes["bare"].presence) == [Interval.closed(1, 5)]

    def test_timed_positions(self):
        spec = {
            "nodes": [
                {
                    "id": "a",
                    "presence": [[0, 10]],
                    "position": [
                        {"interval": [0, 4], "from": [0, 0], "to": [8, 0]},
                        {"interval": [4, 10], "from": [8, 0]},
                    ],
                }
            ]
        }
        g = compile_from_dict(spec)
        np.testing.assert_allclose(g.nodes["a"].position.value_at(2), [4, 0])
        np.testing.assert_allclose(g.nodes["a"].position.value_at(7), [8, 0])

    def test_custom_edge_id(self):
        spec = {
            "nodes": [{"id": "a"}, {"id": "b"}],
            "edges": [{"id": "friends", "source": "a", "target": "b", "presence": [[0, 1]]}],
        }
        assert set(compile_from_dict(spec).edges) == {"friends"}

    def test_clusters(self):
        spec = {
            "nodes": [{"id": "p", "presence": [[0, 10]]}, {"id": "m", "presence": [[0, 10]]}],
            "clusters": [{"pole": "p", "members": ["m"], "presence": [[2, 3]]}],
        }
        g = compile_from_dict(spec)
        cluster = g.clusters["p"]
        assert cluster.members == ["m"]
        assert cluster.presence.value_at(2.5)
        assert not cluster.presence.value_at(5)

    def test_undeclared_references(self):
        with pytest.raises(ValueError, match="undeclared"):
            compile_from_dict({"nodes": [{"id": "a"}], "edges": [{"source": "a", "target": "zz"}]})
        with pytest.raises(ValueError):
            compile_from_dict({"nodes": [{"id": "a"}], "clusters": [{"pole": "zz"}]})

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            compile_from_dict({"nodes": [{"id": "a", "presence": [[0, 1, 2]]}]})

    def test_invalid_position_step(self):
        with pytest.raises(ValueError):
            compile_from_dict({"nodes": [{"id": "a", "presence": [[0, 1]], "position": [{"to": [1, 1]}]}]})

    def test_keep_appeared_node_mode(self):
        spec = {
            "presence_mode": "keep_appeared_node",
            "end_time": 20,
            "nodes": [{"id": "a", "presence": [[2, 3], [5, 6]]}],
        }
        g = compile_from_dict(spec)
        assert presence_intervals(g.nodes["a"].presence) == [Interval.closed(2, 20)]

    def test_fading(self):
        spec = {"fading": 1.0, "nodes": [{"id": "a", "presence": [[0, 10]]}]}
        g = compile_from_dict(spec)
        assert g.nodes["a"].color.value_at(0)[3] == pytest.approx(0.0)
        assert g.nodes["a"].color.value_at(5)[3] == pytest.approx(1.0)

    def test_scatter_is_seeded(self):
        spec = {
            "scatter": 100,
            "seed": 5,
            "nodes": [{"id": "a"}, {"id": "b"}, {"id": "fixed", "position": [-1, -1]}],
        }
        g1, g2 = compile_from_dict(spec), compile_from_dict(spec)
        np.testing.assert_allclose(g1.nodes["a"].position.value_at(0), g2.nodes["a"].position.value_at(0))
        np.testing.assert_allclose(g1.nodes["fixed"].position.value_at(0), [-1, -1])


class TestCompileFromYamlAndFile:
    def test_compile_from_yaml(self):
        text = """
nodes:
  - {id: a, presence: [[0, 4]]}
  - {id: b, presence: [[0, 4]]}
edges:
  - {source: a, target: b, presence: [[1, 2]]}
"""
        g = compile_from_yaml(text)
        assert set(g.edges) == {"a-b"}

    def test_empty_yaml(self):
        g = compile_from_yaml("")
        assert g.nodes == {}

    def test_compile_from_file(self, tmp_path):
        path = tmp_path / "g.yaml"
        path.write_text("nodes:\n  - {id: solo, presence: [[0, 1]]}\n")
        g = compile_from_file(str(path))
        assert list(g.nodes) == ["solo"]

    @pytest.mark.parametrize("name", ["two_nodes.yaml", "contacts.yaml", "locations.yaml"])
    def test_sample_graphs_synchronise(self, name):
        g = compile_from_file(os.path.join(SCRIPTS_DIR, name))
        sync = SpaceTimeCubeSynchroniser(g, 1.0)
        assert len(sync.get_direct_nodes()) == len(g.nodes)
