"""
Flow Auto-Fix

Detects and repairs the three broken-but-common flow shapes the planner
produces for price-monitoring workflows. Runs once, after validation, on a
deep copy of the flow.

Input:
    flow (dict) — normalized flow
    catalog (dict, optional) — loaded node catalog (labels for added nodes)

Output:
    dict with:
        - fixed: bool — True if at least one fix was applied
        - flow: dict — the (potentially repaired) flow
        - warnings: list of warning strings, one per applied fix

Fixes only apply to monitoring flows (flows with a marketData node).
Supported fixes, attempted in this order against the same evolving flow:
    missing_initialization: monitoring flow never resets its tracking
        variable → add a 'set <var> = 0' variable node before the timer
    percentage_derivation: subtract + divide with no multiply by 100
        → splice a multiply node after the divide and rescale conditionals
    timer_connection: timer with no inbound edge → connect it from start

Each fix is atomic: its whole precondition holds and its whole rewrite is
applied, or nothing changes. The engine never re-validates; callers must
re-run both validators against the returned flow.

Deterministic. No network calls. Never mutates its input.
"""

import copy

from tools.flow_graph import (
    add_edge,
    add_node,
    build_flow_index,
    inbound_edges,
    move_edge_source,
    nodes_of_type,
    outbound_edges,
    reachable_from,
    retarget_edge,
    start_node,
    unique_id,
)
from tools.logger import log
from tools.node_catalog_loader import get_default_catalog, get_node_type
from tools.variable_binding import declared_variables, node_config, value_to_text

NODE_SPACING = 200

PERCENTAGE_VARIABLE = "priceChangePercentage"
MONITORING_NODE_TYPES = ("marketData", "arithmetic", "conditional", "timer")
MONITORING_NAME_HINTS = ("previous", "percentage", "change")

WARNING_MISSING_INITIALIZATION = "Added missing variable initialization for percentage monitoring"
WARNING_PERCENTAGE_DERIVATION = "Fixed incomplete percentage calculation (added missing multiply by 100 step)"
WARNING_TIMER_CONNECTION = "Fixed timer node connections for monitoring workflow"


def attempt_fix(flow, catalog=None):
    """Apply every fix whose precondition holds, in order, in one pass.

    Args:
        flow: Normalized flow dict (deep-copied, not mutated).
        catalog: Loaded node catalog. Defaults to the process-wide catalog.

    Returns:
        dict with fixed, flow, warnings.
    """
    if catalog is None:
        catalog = get_default_catalog()

    fixed_flow = copy.deepcopy(flow)
    if not isinstance(fixed_flow.get("nodes"), list):
        fixed_flow["nodes"] = []
    if not isinstance(fixed_flow.get("edges"), list):
        fixed_flow["edges"] = []

    index = build_flow_index(fixed_flow)
    context = {"catalog": catalog, "pending_init": {}}
    warnings = []

    for fix_name, (handler, warning) in _FIX_HANDLERS.items():
        if handler(index, context):
            warnings.append(warning)
            log("autofix.applied", fix=fix_name,
                node_count=len(fixed_flow["nodes"]), edge_count=len(fixed_flow["edges"]))

    return {"fixed": bool(warnings), "flow": fixed_flow, "warnings": warnings}


# ===== Helpers =====

def _position(node):
    """Layout coordinates of a node; anything non-numeric counts as 0."""
    position = node.get("position")
    if not isinstance(position, dict):
        return 0, 0
    return tuple(
        value if isinstance(value, (int, float)) and not isinstance(value, bool) else 0
        for value in (position.get("x"), position.get("y"))
    )


def _new_node(context, node_id, node_type, position, config, description):
    entry = get_node_type(context["catalog"], node_type) or {}
    return {
        "id": node_id,
        "type": node_type,
        "position": {"x": position[0], "y": position[1]},
        "data": {
            "label": entry.get("label", node_type.capitalize()),
            "type": node_type,
            "config": config,
            "description": description,
            "status": "idle",
        },
    }


def _connect(index, base_id, source, target):
    add_edge(index, {
        "id": unique_id(index, base_id),
        "source": source,
        "target": target,
        "type": "default",
    })


def _operation(node):
    return value_to_text(node_config(node).get("operation"))


def _is_monitoring_flow(index):
    return bool(nodes_of_type(index, "marketData"))


# ===== Fixes =====

def _fix_missing_initialization(index, context):
    """Add 'set <tracking var> = 0' before the timer of a monitoring flow."""
    for node_type in MONITORING_NODE_TYPES:
        if not nodes_of_type(index, node_type):
            return False

    names = [
        d.get("name") for d in declared_variables(index["flow"])
        if isinstance(d.get("name"), str)
    ]
    if not any(hint in name.lower() for name in names for hint in MONITORING_NAME_HINTS):
        return False

    tracking = next((name for name in names if "previous" in name.lower()), None)
    if tracking is None:
        log("autofix.skipped", fix="missing_initialization", reason="no tracking variable")
        return False

    for node in nodes_of_type(index, "variable"):
        config = node_config(node)
        if (config.get("operation") == "set"
                and config.get("variableName") == tracking
                and config.get("value") in (0, "0")
                and not isinstance(config.get("value"), bool)):
            return False

    timer = nodes_of_type(index, "timer")[0]
    timer_id = timer["id"]
    x, y = _position(timer)
    init_id = unique_id(index, "autofix_init")
    init_node = _new_node(
        context, init_id, "variable", (x - NODE_SPACING, y),
        {"operation": "set", "variableName": tracking, "value": "0"},
        "Auto-added: Initialize tracking variable",
    )

    feeding = inbound_edges(index, timer_id)
    if not feeding:
        # Wired up by the timer connection fix.
        add_node(index, init_node)
        context["pending_init"][timer_id] = init_id
        return True

    downstream = reachable_from(index, timer_id)
    forward = [e for e in feeding if e.get("source") not in downstream]
    start = start_node(index)
    start_id = start["id"] if start else None

    add_node(index, init_node)
    if forward:
        chosen = next((e for e in forward if e.get("source") == start_id), forward[0])
        retarget_edge(index, chosen, init_id)
    elif start_id is not None:
        _connect(index, "autofix_edge_start_init", start_id, init_id)
    _connect(index, "autofix_edge_init", init_id, timer_id)
    return True


def _fix_percentage_derivation(index, context):
    """Splice divide -> multiply by 100 -> (divide's old targets)."""
    if not _is_monitoring_flow(index):
        return False

    arithmetic = nodes_of_type(index, "arithmetic")
    operations = [_operation(n) for n in arithmetic]
    if "subtract" not in operations or "divide" not in operations:
        return False

    for node in arithmetic:
        value2 = node_config(node).get("value2")
        if _operation(node) == "multiply" and value2 in (100, "100") and not isinstance(value2, bool):
            return False

    divide = next(n for n in arithmetic if _operation(n) == "divide")
    ratio = value_to_text(node_config(divide).get("outputVariable"))
    ratio = ratio.strip() if ratio else ""
    if not ratio:
        log("autofix.skipped", fix="percentage_derivation", reason="divide has no outputVariable",
            node_id=divide["id"])
        return False

    outgoing = outbound_edges(index, divide["id"])
    if not outgoing:
        log("autofix.skipped", fix="percentage_derivation", reason="divide has no outgoing edge",
            node_id=divide["id"])
        return False

    x, y = _position(divide)
    multiply_id = unique_id(index, "autofix_multiply100")
    add_node(index, _new_node(
        context, multiply_id, "arithmetic", (x + NODE_SPACING, y),
        {"operation": "multiply", "value1": ratio, "value2": "100",
         "outputVariable": PERCENTAGE_VARIABLE},
        "Auto-added: Convert ratio to percentage",
    ))
    for edge in outgoing:
        move_edge_source(index, edge, multiply_id)
    _connect(index, "autofix_edge_multiply", divide["id"], multiply_id)

    for node in nodes_of_type(index, "conditional"):
        config = node_config(node)
        value1 = value_to_text(config.get("value1"))
        if value1 is None or value1.strip() != ratio:
            continue
        config["value1"] = PERCENTAGE_VARIABLE
        value2 = config.get("value2")
        if isinstance(value2, str) and value2.strip() == "0.1":
            config["value2"] = "10"
        elif isinstance(value2, (int, float)) and not isinstance(value2, bool) and value2 == 0.1:
            config["value2"] = 10

    return True


def _fix_timer_connection(index, context):
    """Feed every input-less timer from the start node."""
    if not _is_monitoring_flow(index):
        return False

    start = start_node(index)
    if start is None:
        return False

    fixed = False
    for timer in nodes_of_type(index, "timer"):
        timer_id = timer["id"]
        if inbound_edges(index, timer_id):
            continue
        init_id = context["pending_init"].pop(timer_id, None)
        if init_id is not None:
            _connect(index, "autofix_edge_start_init", start["id"], init_id)
            _connect(index, "autofix_edge_init", init_id, timer_id)
        else:
            _connect(index, "autofix_timer_input", start["id"], timer_id)
        fixed = True
    return fixed


# Fix handler dispatch table (order matters)
_FIX_HANDLERS = {
    "missing_initialization": (_fix_missing_initialization, WARNING_MISSING_INITIALIZATION),
    "percentage_derivation": (_fix_percentage_derivation, WARNING_PERCENTAGE_DERIVATION),
    "timer_connection": (_fix_timer_connection, WARNING_TIMER_CONNECTION),
}


# --- Self-check ---
if __name__ == "__main__":
    print("=== Flow Auto-Fix Self-Check ===\n")

    broken = {
        "nodes": [
            {"id": "start", "type": "start", "data": {"label": "Start", "config": {}}},
            {"id": "timer", "type": "timer", "data": {"label": "Timer", "config": {"duration": 60}}},
            {"id": "md", "type": "marketData", "data": {"label": "Price", "config": {
                "symbol": "SEI", "outputVariable": "price"}}},
        ],
        "edges": [{"id": "e1", "source": "timer", "target": "md"}],
    }
    result = attempt_fix(broken)
    assert result["warnings"] == [WARNING_TIMER_CONNECTION]
    assert len(broken["edges"]) == 1
    print("  [OK] Disconnected timer connected, input untouched")

    again = attempt_fix(result["flow"])
    assert again["fixed"] is False
    print("  [OK] Second pass is a no-op")

    print("\n=== All auto-fix checks passed ===")
