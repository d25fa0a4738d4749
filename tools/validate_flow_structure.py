"""
Flow Structure Validator

Checks the graph-level invariants of a (normalized) flow. Every check
runs independently, so one flow can report several problems at once.

Input: flow (dict) with 'nodes' and 'edges' lists
Output: list of error strings (empty ⇒ structurally sound)

Checks:
  1. Exactly one start node
  2. Every non-start node has an inbound edge; start has none
  3. Every edge's source and target exist
  4. No edge carries a 'condition' property; conditional outputs use only
     the 'true' / 'false' handles, at most one edge each
  5. Declared variables have unique identifier names and a known type

Structural errors are never auto-fixed. Deterministic. Never mutates its input.
"""

from tools.flow_graph import build_flow_index, node_label
from tools.variable_binding import IDENTIFIER_PATTERN, VARIABLE_TYPES, declared_variables

CONDITIONAL_HANDLES = ("true", "false")


def validate_flow_structure(flow):
    """Run every structural check against a flow.

    Args:
        flow: Normalized flow dict.

    Returns:
        List of error strings, in check order.
    """
    errors = []

    def _check(condition, message):
        if not condition:
            errors.append(message)
        return bool(condition)

    index = build_flow_index(flow)
    nodes = flow.get("nodes", [])
    edges = flow.get("edges", [])
    nodes_by_id = index["nodes_by_id"]

    # 1. Exactly one start node
    start_count = len(index["start_ids"])
    _check(start_count == 1, f"Flow must contain exactly one Start node (found {start_count})")

    # 2. Input connections
    for node in nodes:
        label = node_label(node)
        has_input = bool(index["incoming"].get(node.get("id")))
        if node.get("type") == "start":
            _check(not has_input, f"{label}: Start node must not have input connections")
        else:
            _check(has_input, f"{label}: Missing input connection")

    # 3. Edge endpoints
    for edge in edges:
        eid = edge.get("id")
        source = edge.get("source")
        target = edge.get("target")
        _check(source in nodes_by_id, f"Edge {eid}: source node '{source}' does not exist")
        _check(target in nodes_by_id, f"Edge {eid}: target node '{target}' does not exist")

    # 4. Branch outputs are selected by handle, never by edge payload
    for edge in edges:
        _check("condition" not in edge,
               f"Edge {edge.get('id')}: must not carry a 'condition' property; "
               f"use sourceHandle 'true' or 'false' on a Conditional node")

    for node in nodes:
        if node.get("type") != "conditional":
            continue
        label = node_label(node)
        handle_counts = {}
        for edge in index["outgoing"].get(node.get("id"), []):
            handle = edge.get("sourceHandle")
            if handle is None:
                continue
            if not _check(handle in CONDITIONAL_HANDLES,
                          f"{label}: output handle must be 'true' or 'false', got: {handle!r}"):
                continue
            handle_counts[handle] = handle_counts.get(handle, 0) + 1
        for handle in CONDITIONAL_HANDLES:
            _check(handle_counts.get(handle, 0) <= 1,
                   f"{label}: must have at most one '{handle}' output connection")

    # 5. Declared variables
    seen = set()
    for i, decl in enumerate(declared_variables(flow)):
        name = decl.get("name")
        if not _check(isinstance(name, str) and IDENTIFIER_PATTERN.match(name),
                      f"Start: variable at position {i + 1} must have an identifier name, got: {name!r}"):
            continue
        _check(name not in seen, f"Start: duplicate variable name '{name}'")
        seen.add(name)
        _check(decl.get("type") in VARIABLE_TYPES,
               f"Start: variable '{name}' must have a type in {sorted(VARIABLE_TYPES)}, "
               f"got: {decl.get('type')!r}")

    return errors


# --- Self-check ---
if __name__ == "__main__":
    print("=== Flow Structure Validator Self-Check ===\n")

    no_start = {"nodes": [{"id": "t", "type": "timer", "data": {"label": "Timer"}}], "edges": []}
    errs = validate_flow_structure(no_start)
    assert "Flow must contain exactly one Start node (found 0)" in errs
    print("  [OK] Zero start nodes rejected")

    lonely = {
        "nodes": [{"id": "start", "type": "start", "data": {"label": "Start"}},
                  {"id": "c", "type": "conditional", "data": {"label": "Check"}}],
        "edges": [],
    }
    assert validate_flow_structure(lonely) == ["Check: Missing input connection"]
    print("  [OK] Missing input connection")

    branchy = {
        "nodes": [{"id": "start", "type": "start"}, {"id": "c", "type": "conditional"}],
        "edges": [{"id": "e1", "source": "start", "target": "c"},
                  {"id": "e2", "source": "c", "target": "ghost", "condition": "x > 1"}],
    }
    errs = validate_flow_structure(branchy)
    assert any("does not exist" in e for e in errs)
    assert any("'condition'" in e for e in errs)
    print("  [OK] Dangling edge and condition payload")

    print("\n=== All structure checks passed ===")
