"""
Normalize Flow

Converts a candidate flow from the editor or the planner into the canonical
{nodes: [...], edges: [...]} shape before any validation runs.

Accommodations (not errors):
  - nodes / edges given as an object keyed by id → their values, in order
  - missing nodes / edges → empty arrays
  - planner-shaped nodes ({id, type, position, config}) → config, label and
    description lifted into node.data with status 'idle'
  - missing position, or a non-numeric x / y → 0
  - integer ids → strings

Malformed input (reported, entry dropped from the normalized flow):
  - nodes / edges that are not arrays after conversion
  - entries that are not objects
  - nodes without id or type, duplicate node ids
  - edges using 'from' / 'to', edges without id, source or target,
    duplicate edge ids

This tool does NOT check graph invariants (validate_flow_structure does).

Deterministic. Input is deep-copied, never mutated.
"""

import copy


def normalize_flow(raw):
    """Normalize a candidate flow.

    Args:
        raw: Candidate flow (any JSON-like value).

    Returns:
        dict with:
            - flow: normalized flow dict (always has 'nodes' and 'edges' lists)
            - errors: list of malformed-input error strings
    """
    errors = []

    if not isinstance(raw, dict):
        return {
            "flow": {"nodes": [], "edges": []},
            "errors": [f"Flow must be an object with 'nodes' and 'edges', got: {type(raw).__name__}"],
        }

    flow = copy.deepcopy(raw)

    nodes = _as_sequence(flow.get("nodes"), "nodes", errors)
    edges = _as_sequence(flow.get("edges"), "edges", errors)

    normalized_nodes = []
    seen_nodes = set()
    for i, node in enumerate(nodes):
        if not isinstance(node, dict):
            errors.append(f"Node at index {i} must be an object")
            continue

        nid = _as_id(node.get("id"))
        if nid is None:
            errors.append(f"Node at index {i} is missing 'id'")
            continue
        node["id"] = nid

        node_type = node.get("type")
        if not isinstance(node_type, str) or not node_type.strip():
            errors.append(f"Node {nid} is missing 'type'")
            continue

        if nid in seen_nodes:
            errors.append(f"Duplicate node id: {nid}")
            continue
        seen_nodes.add(nid)

        normalized_nodes.append(_normalize_node(node))

    normalized_edges = []
    seen_edges = set()
    for i, edge in enumerate(edges):
        if not isinstance(edge, dict):
            errors.append(f"Edge at index {i} must be an object")
            continue

        eid = _as_id(edge.get("id"))
        label = eid if eid is not None else f"at index {i}"

        if "source" not in edge and "target" not in edge and ("from" in edge or "to" in edge):
            errors.append(f"Edge {label}: edges must use 'source' and 'target', not 'from' and 'to'")
            continue

        source = _as_id(edge.get("source"))
        target = _as_id(edge.get("target"))
        if source is None or target is None:
            errors.append(f"Edge {label} is missing 'source' or 'target'")
            continue

        if eid is None:
            errors.append(f"Edge at index {i} is missing 'id'")
            continue

        if eid in seen_edges:
            errors.append(f"Duplicate edge id: {eid}")
            continue
        seen_edges.add(eid)

        edge["id"] = eid
        edge["source"] = source
        edge["target"] = target
        normalized_edges.append(edge)

    flow["nodes"] = normalized_nodes
    flow["edges"] = normalized_edges

    return {"flow": flow, "errors": errors}


def default_label(node_type):
    """Editor-style label for a node type: 'timer' -> 'Timer'."""
    return node_type[:1].upper() + node_type[1:]


def _as_sequence(value, name, errors):
    if value is None:
        return []
    if isinstance(value, dict):
        return list(value.values())
    if not isinstance(value, list):
        errors.append(f"Flow '{name}' must be an array, got: {type(value).__name__}")
        return []
    return value


def _as_id(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value
    return None


def _is_coordinate(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _normalize_node(node):
    node_type = node["type"]
    data = node.get("data")
    if not isinstance(data, dict):
        data = {}

    for key in ("config", "label", "description"):
        if key not in data and key in node:
            data[key] = node.pop(key)

    if not isinstance(data.get("config"), dict):
        data["config"] = {}
    if not isinstance(data.get("label"), str) or not data["label"].strip():
        data["label"] = default_label(node_type)
    data.setdefault("type", node_type)
    data.setdefault("description", "")
    data.setdefault("status", "idle")
    node["data"] = data

    position = node.get("position")
    if not isinstance(position, dict):
        position = {}
    node["position"] = position
    for axis in ("x", "y"):
        if not _is_coordinate(position.get(axis)):
            position[axis] = 0

    return node
