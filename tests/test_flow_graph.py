"""
Tests for flow_graph — the id-keyed index and its mutation helpers.
"""

from conftest import make_edge, make_node
from tools.flow_graph import (
    add_edge,
    add_node,
    build_flow_index,
    inbound_edges,
    move_edge_source,
    node_label,
    nodes_of_type,
    outbound_edges,
    primary_predecessor,
    reachable_from,
    retarget_edge,
    start_node,
    unique_id,
)


def _flow():
    return {
        "nodes": [
            make_node("start", "start", label="Start"),
            make_node("a", "timer", label="Tick"),
            make_node("b", "logger"),
            make_node("c", "logger"),
        ],
        "edges": [
            make_edge("e1", "start", "a"),
            make_edge("e2", "a", "b"),
            make_edge("e3", "c", "b"),
            make_edge("e4", "b", "a"),
        ],
    }


class TestIndex:
    def test_lookup_tables(self):
        idx = build_flow_index(_flow())
        assert set(idx["nodes_by_id"]) == {"start", "a", "b", "c"}
        assert idx["start_ids"] == ["start"]
        assert [e["id"] for e in inbound_edges(idx, "b")] == ["e2", "e3"]
        assert [e["id"] for e in outbound_edges(idx, "a")] == ["e2"]
        assert start_node(idx)["id"] == "start"

    def test_first_inbound_edge_wins(self):
        idx = build_flow_index(_flow())
        assert primary_predecessor(idx, "b") == "a"
        assert primary_predecessor(idx, "start") is None

    def test_reachability_follows_cycles(self):
        idx = build_flow_index(_flow())
        assert reachable_from(idx, "start") == {"a", "b"}
        assert "a" in reachable_from(idx, "a")
        assert reachable_from(idx, "c") == {"a", "b"}

    def test_nodes_of_type_keeps_node_order(self):
        idx = build_flow_index(_flow())
        assert [n["id"] for n in nodes_of_type(idx, "logger")] == ["b", "c"]

    def test_node_label_falls_back_to_id(self):
        assert node_label(make_node("a", "timer", label="Tick")) == "Tick"
        assert node_label({"id": "bare", "type": "timer"}) == "bare"


class TestMutation:
    def test_unique_id_avoids_node_and_edge_ids(self):
        idx = build_flow_index(_flow())
        assert unique_id(idx, "fresh") == "fresh"
        assert unique_id(idx, "a") == "a_2"
        assert unique_id(idx, "e1") == "e1_2"

    def test_add_node_and_edge_update_flow_and_index(self):
        flow = _flow()
        idx = build_flow_index(flow)
        add_node(idx, make_node("d", "logger"))
        add_edge(idx, make_edge("e5", "c", "d"))
        assert flow["nodes"][-1]["id"] == "d"
        assert flow["edges"][-1]["id"] == "e5"
        assert [e["id"] for e in inbound_edges(idx, "d")] == ["e5"]

    def test_retarget_edge(self):
        flow = _flow()
        idx = build_flow_index(flow)
        edge = flow["edges"][0]
        retarget_edge(idx, edge, "c")
        assert edge["target"] == "c"
        assert [e["id"] for e in inbound_edges(idx, "a")] == ["e4"]
        assert [e["id"] for e in inbound_edges(idx, "c")] == ["e1"]

    def test_move_edge_source(self):
        flow = _flow()
        idx = build_flow_index(flow)
        edge = flow["edges"][1]
        move_edge_source(idx, edge, "c")
        assert edge["source"] == "c"
        assert outbound_edges(idx, "a") == []
        assert [e["id"] for e in outbound_edges(idx, "c")] == ["e3", "e2"]
