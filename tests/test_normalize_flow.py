"""
Tests for normalize_flow — boundary conversion and malformed-input detection.
"""

from tools.normalize_flow import default_label, normalize_flow


class TestAccommodations:
    def test_object_keyed_nodes_become_a_list(self):
        raw = {
            "nodes": {
                "start": {"id": "start", "type": "start"},
                "t": {"id": "t", "type": "timer"},
            },
            "edges": {"e1": {"id": "e1", "source": "start", "target": "t"}},
        }
        result = normalize_flow(raw)
        assert result["errors"] == []
        assert [n["id"] for n in result["flow"]["nodes"]] == ["start", "t"]
        assert [e["id"] for e in result["flow"]["edges"]] == ["e1"]

    def test_missing_lists_become_empty(self):
        result = normalize_flow({})
        assert result == {"flow": {"nodes": [], "edges": []}, "errors": []}

    def test_planner_node_is_lifted_into_data(self):
        raw = {"nodes": [{"id": "t", "type": "timer", "config": {"duration": 5}}], "edges": []}
        node = normalize_flow(raw)["flow"]["nodes"][0]
        assert "config" not in node
        assert node["data"] == {
            "config": {"duration": 5},
            "label": "Timer",
            "type": "timer",
            "description": "",
            "status": "idle",
        }
        assert node["position"] == {"x": 0, "y": 0}

    def test_editor_node_is_kept(self):
        node = {
            "id": "t", "type": "timer", "position": {"x": 10, "y": 20},
            "data": {"label": "Every Minute", "type": "timer", "config": {"duration": 60},
                     "description": "tick", "status": "success"},
        }
        out = normalize_flow({"nodes": [node], "edges": []})["flow"]["nodes"][0]
        assert out == node

    def test_non_numeric_coordinates_become_zero(self):
        raw = {"nodes": [
            {"id": "a", "type": "timer", "position": {"x": "200", "y": None}},
            {"id": "b", "type": "timer", "position": {"x": True, "y": 7.5}},
            {"id": "c", "type": "timer", "position": "left"},
        ]}
        nodes = normalize_flow(raw)["flow"]["nodes"]
        assert [n["position"] for n in nodes] == [
            {"x": 0, "y": 0}, {"x": 0, "y": 7.5}, {"x": 0, "y": 0},
        ]

    def test_integer_ids_become_strings(self):
        raw = {"nodes": [{"id": 1, "type": "start"}, {"id": 2, "type": "timer"}],
               "edges": [{"id": 3, "source": 1, "target": 2}]}
        flow = normalize_flow(raw)["flow"]
        assert flow["edges"][0] == {"id": "3", "source": "1", "target": "2"}

    def test_input_is_not_mutated(self):
        raw = {"nodes": [{"id": "t", "type": "timer", "config": {"duration": 5}}]}
        normalize_flow(raw)
        assert raw == {"nodes": [{"id": "t", "type": "timer", "config": {"duration": 5}}]}

    def test_default_label(self):
        assert default_label("marketData") == "MarketData"


class TestMalformedInput:
    def test_non_object_flow(self):
        result = normalize_flow([1, 2])
        assert result["flow"] == {"nodes": [], "edges": []}
        assert "got: list" in result["errors"][0]

    def test_nodes_not_array(self):
        result = normalize_flow({"nodes": "oops", "edges": []})
        assert result["errors"] == ["Flow 'nodes' must be an array, got: str"]

    def test_node_problems(self):
        raw = {"nodes": [
            "junk",
            {"type": "timer"},
            {"id": "a"},
            {"id": "b", "type": "timer"},
            {"id": "b", "type": "logger"},
        ], "edges": []}
        result = normalize_flow(raw)
        assert result["errors"] == [
            "Node at index 0 must be an object",
            "Node at index 1 is missing 'id'",
            "Node a is missing 'type'",
            "Duplicate node id: b",
        ]
        assert [n["id"] for n in result["flow"]["nodes"]] == ["b"]

    def test_edge_problems(self):
        raw = {"nodes": [], "edges": [
            {"id": "e1", "from": "a", "to": "b"},
            {"id": "e2", "source": "a"},
            {"source": "a", "target": "b"},
            {"id": "e4", "source": "a", "target": "b"},
            {"id": "e4", "source": "b", "target": "a"},
        ]}
        result = normalize_flow(raw)
        assert result["errors"] == [
            "Edge e1: edges must use 'source' and 'target', not 'from' and 'to'",
            "Edge e2 is missing 'source' or 'target'",
            "Edge at index 2 is missing 'id'",
            "Duplicate edge id: e4",
        ]
        assert len(result["flow"]["edges"]) == 1
