"""
Flow Graph Index

Builds an id-keyed index over a flow's nodes and edges in one pass:
- nodes_by_id: node dicts by id (references, not copies)
- outgoing / incoming: edge lists per node id, in edge order
- start_ids: ids of every 'start' node

The auto-fix engine builds one index per pass and keeps it current as it
inserts nodes and rewires edges, so discovery stays a linear scan while
lookups and rewrites are O(1).

Multiple inbound edges on one node are tolerated. When a single data
predecessor is needed, the first inbound edge in edge order wins.

Deterministic. No network calls.
"""

from collections import defaultdict, deque


def build_flow_index(flow):
    """Index a (normalized) flow.

    Args:
        flow: dict with 'nodes' and 'edges' lists.

    Returns:
        dict with:
            - nodes_by_id: dict id -> node
            - outgoing: dict id -> list of edges whose source is id
            - incoming: dict id -> list of edges whose target is id
            - start_ids: list of start node ids in node order
            - flow: the indexed flow
    """
    nodes_by_id = {}
    start_ids = []
    for node in flow.get("nodes", []):
        nid = node.get("id")
        if nid in nodes_by_id:
            continue
        nodes_by_id[nid] = node
        if node.get("type") == "start":
            start_ids.append(nid)

    outgoing = defaultdict(list)
    incoming = defaultdict(list)
    for edge in flow.get("edges", []):
        outgoing[edge.get("source")].append(edge)
        incoming[edge.get("target")].append(edge)

    return {
        "nodes_by_id": nodes_by_id,
        "outgoing": outgoing,
        "incoming": incoming,
        "start_ids": start_ids,
        "flow": flow,
    }


def nodes_of_type(index, node_type):
    """Nodes of the given type, in node order."""
    return [n for n in index["nodes_by_id"].values() if n.get("type") == node_type]


def inbound_edges(index, node_id):
    return list(index["incoming"].get(node_id, []))


def outbound_edges(index, node_id):
    return list(index["outgoing"].get(node_id, []))


def start_node(index):
    """The first start node, or None."""
    if not index["start_ids"]:
        return None
    return index["nodes_by_id"][index["start_ids"][0]]


def primary_predecessor(index, node_id):
    """Id of the node feeding node_id's data: the first inbound edge's source."""
    edges = index["incoming"].get(node_id, [])
    if not edges:
        return None
    return edges[0].get("source")


def reachable_from(index, node_id):
    """Set of node ids reachable from node_id (excluding node_id unless on a cycle)."""
    visited = set()
    queue = deque(e.get("target") for e in index["outgoing"].get(node_id, []))
    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        for edge in index["outgoing"].get(current, []):
            if edge.get("target") not in visited:
                queue.append(edge.get("target"))
    return visited


def unique_id(index, base):
    """Return base, or base_2, base_3, ... whichever is not a node or edge id yet."""
    taken = set(index["nodes_by_id"].keys())
    taken.update(e.get("id") for e in index["flow"].get("edges", []))
    if base not in taken:
        return base
    n = 2
    while f"{base}_{n}" in taken:
        n += 1
    return f"{base}_{n}"


def add_node(index, node):
    """Append a node to the flow and the index."""
    index["flow"]["nodes"].append(node)
    index["nodes_by_id"][node["id"]] = node


def add_edge(index, edge):
    """Append an edge to the flow and the index."""
    index["flow"]["edges"].append(edge)
    index["outgoing"][edge["source"]].append(edge)
    index["incoming"][edge["target"]].append(edge)


def retarget_edge(index, edge, new_target):
    """Point an existing edge at a different target, keeping the index current."""
    _discard(index["incoming"][edge["target"]], edge)
    edge["target"] = new_target
    index["incoming"][new_target].append(edge)


def move_edge_source(index, edge, new_source):
    """Move an existing edge's source to a different node, keeping the index current."""
    _discard(index["outgoing"][edge["source"]], edge)
    edge["source"] = new_source
    index["outgoing"][new_source].append(edge)


def _discard(edges, edge):
    for i, candidate in enumerate(edges):
        if candidate is edge:
            del edges[i]
            return


def node_label(node):
    """Human-readable name for messages: data.label, else the node id."""
    data = node.get("data")
    if isinstance(data, dict) and isinstance(data.get("label"), str) and data["label"].strip():
        return data["label"]
    return str(node.get("id"))


# --- Self-check ---
if __name__ == "__main__":
    print("=== Flow Graph Index Self-Check ===\n")

    flow = {
        "nodes": [{"id": "start", "type": "start"}, {"id": "a", "type": "timer"},
                  {"id": "b", "type": "logger"}],
        "edges": [{"id": "e1", "source": "start", "target": "a"},
                  {"id": "e2", "source": "a", "target": "b"},
                  {"id": "e3", "source": "b", "target": "a"}],
    }
    idx = build_flow_index(flow)
    assert idx["start_ids"] == ["start"]
    assert primary_predecessor(idx, "a") == "start"
    assert reachable_from(idx, "start") == {"a", "b"}
    assert "a" in reachable_from(idx, "a")
    print("  [OK] Index, predecessor and reachability")

    assert unique_id(idx, "e1") == "e1_2"
    assert unique_id(idx, "fresh") == "fresh"
    print("  [OK] Unique ids")

    print("\n=== All flow graph checks passed ===")
