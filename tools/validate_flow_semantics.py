"""
Flow Semantics Validator

Checks every non-start node's configuration against the node catalog and
the variables the flow makes available. Runs after the structure
validator; the two never share error strings.

Input: flow (dict), catalog (dict from node_catalog_loader, optional)
Output: list of error strings, each "<nodeLabel>: <field> must be <constraint>"

Per-type checks are dispatched through _SEMANTIC_HANDLERS. A catalog type
without a handler falls back to the catalog-driven check of its plain
fields. On top of the per-type checks, every node gets:
  - option membership for any field with catalog options
  - output-variable clash detection against start declarations
  - {var.prop} reference checks inside template fields

Deterministic. Never mutates its input.
"""

import json

from tools.flow_graph import node_label
from tools.node_catalog_loader import (
    fields_with_role,
    get_default_catalog,
    get_node_type,
    output_variable_type,
)
from tools.variable_binding import (
    IDENTIFIER_PATTERN,
    VARIABLE_TYPES,
    build_symbol_table,
    check_property_path,
    check_value,
    declared_variables,
    extract_template_references,
    literal_matches_type,
    node_config,
    parse_reference,
    value_to_text,
)


def validate_flow_semantics(flow, catalog=None):
    """Validate node configurations.

    Args:
        flow: Normalized, structurally sound flow dict.
        catalog: Loaded node catalog. Defaults to the process-wide catalog.

    Returns:
        List of error strings in node order.
    """
    if catalog is None:
        catalog = get_default_catalog()

    errors = []
    symbols = build_symbol_table(flow, catalog)

    errors.extend(_check_default_values(flow))

    for node in flow.get("nodes", []):
        node_type = node.get("type")
        if node_type == "start":
            continue

        label = node_label(node)
        entry = get_node_type(catalog, node_type)
        if entry is None:
            errors.append(f"{label}: type must be a known node type, got: {node_type!r}")
            continue

        config = node_config(node)
        handler = _SEMANTIC_HANDLERS.get(node_type, _check_catalog_fields)
        errors.extend(handler(label, config, entry, symbols))
        errors.extend(_check_options(label, config, entry))
        errors.extend(_check_output_variables(label, config, entry, flow))
        errors.extend(_check_templates(label, config, entry, symbols))

    return errors


# ===== Message helpers =====

def _is_set(value):
    text = value_to_text(value)
    return text is not None and bool(text.strip())


def _field_error(label, field, value, expected_type, symbols):
    """Check one field value; return an error string or None."""
    reason = check_value(value, expected_type, symbols)
    if reason is None:
        return None
    return _describe(label, field, value, expected_type, reason, symbols)


def _describe(label, field, value, expected_type, reason, symbols):
    text = value_to_text(value)
    text = text.strip() if text is not None else text

    if reason == "missing":
        return f"{label}: {field} must be set"
    if reason == "type_mismatch":
        return (f"{label}: {field} must be {_article(expected_type)} {expected_type} value or "
                f"{_article(expected_type)} {expected_type} variable, got: {text!r}")

    ref = parse_reference(text, list(symbols.values()))
    name = ref.name
    if reason == "scalar_property":
        prop = ref.path[0]
        return (f"{label}: {field} must end at '{name}.{prop}', which is a "
                f"{symbols[name]['properties'][prop]}, got: {text!r}")
    if reason == "unknown_variable":
        return f"{label}: {field} must reference a known variable, got: {text!r}"
    if reason == "direct_value_path":
        return (f"{label}: {field} must reference '{name}' directly, not through a property "
                f"path (blockchain results are plain values)")
    if reason == "not_an_object":
        return (f"{label}: {field} must reference an object variable in a property path, "
                f"'{name}' is a {symbols[name]['type']}")
    if reason == "unknown_property":
        known = ", ".join(sorted(symbols[name]["properties"]))
        return f"{label}: {field} must reference a property of '{name}' ({known}), got: {text!r}"
    return f"{label}: {field} is invalid"


def _article(word):
    return "an" if word and word[0] in "aeiou" else "a"


def _options_text(entry, field):
    return ", ".join(entry["configSchema"][field].get("options", []))


def _require_option(label, config, entry, field):
    """Presence check for an enumerated field; membership is _check_options' job."""
    if _is_set(config.get(field)):
        return []
    return [f"{label}: {field} must be one of {_options_text(entry, field)}"]


# ===== Per-type handlers =====

def _check_conditional(label, config, entry, symbols):
    errors = _require_option(label, config, entry, "operator")
    for field in ("value1", "value2"):
        err = _field_error(label, field, config.get(field), "any", symbols)
        if err:
            errors.append(err)
    return errors


def _check_arithmetic(label, config, entry, symbols):
    errors = _require_option(label, config, entry, "operation")
    for field in ("value1", "value2"):
        value = config.get(field)
        if isinstance(value, (dict, list)):
            errors.append(f"{label}: {field} must be a flat number or variable reference, "
                          f"not a nested operation")
            continue
        err = _field_error(label, field, value, "number", symbols)
        if err:
            errors.append(err)
    return errors


def _check_variable(label, config, entry, symbols):
    errors = _require_option(label, config, entry, "operation")
    operation = value_to_text(config.get("operation"))

    name = value_to_text(config.get("variableName"))
    name = name.strip() if name else ""
    if not name:
        errors.append(f"{label}: variableName must be set")
    elif name not in symbols:
        errors.append(f"{label}: variableName must be a declared variable, got: {name!r}")
    elif operation in ("increment", "decrement") and symbols[name]["type"] != "number":
        errors.append(f"{label}: variableName must be a number variable to {operation}, "
                      f"'{name}' is a {symbols[name]['type']}")

    if operation == "set":
        err = _field_error(label, "value", config.get("value"), "any", symbols)
        if err:
            errors.append(err)

    if operation in ("increment", "decrement") and config.get("amount") is not None:
        err = _field_error(label, "amount", config.get("amount"), "number", symbols)
        if err:
            errors.append(err)

    return errors


_LOOP_FIELDS = {
    "while": [("condition", "boolean")],
    "for": [("startValue", "number"), ("endValue", "number")],
    "foreach": [("collection", "array")],
}


def _check_loop(label, config, entry, symbols):
    errors = []
    loop_type = value_to_text(config.get("loopType")) or "while"
    for field, expected in _LOOP_FIELDS.get(loop_type, []):
        err = _field_error(label, field, config.get(field), expected, symbols)
        if err:
            errors.append(err)

    if config.get("maxIterations") is not None:
        err = _field_error(label, "maxIterations", config.get("maxIterations"), "number", symbols)
        if err:
            errors.append(err)
    return errors


def _check_timer(label, config, entry, symbols):
    errors = []
    err = _field_error(label, "duration", config.get("duration"), "number", symbols)
    if err:
        errors.append(err)
    if config.get("repeatCount") is not None:
        err = _field_error(label, "repeatCount", config.get("repeatCount"), "number", symbols)
        if err:
            errors.append(err)
    return errors


def _check_blockchain(label, config, entry, symbols):
    errors = []

    if _is_set(config.get("selectedTool")):
        params = config.get("toolParameters")
        if isinstance(params, str):
            try:
                params = json.loads(params)
            except ValueError:
                params = None
        if not isinstance(params, dict):
            errors.append(f"{label}: toolParameters must be an object")
        else:
            for key, value in params.items():
                if not _is_set(value):
                    errors.append(f"{label}: toolParameters.{key} must be set")
        return errors

    operation = value_to_text(config.get("operation"))
    if not _is_set(operation):
        errors.append(f"{label}: operation must be one of {_options_text(entry, 'operation')} "
                      f"(or selectedTool must be set)")
        return errors

    if operation in ("getBalance", "transfer"):
        err = _field_error(label, "address", config.get("address"), "string", symbols)
        if err:
            errors.append(err)
    if operation == "transfer":
        err = _field_error(label, "amount", config.get("amount"), "number", symbols)
        if err:
            errors.append(err)
    return errors


def _check_custom(label, config, entry, symbols):
    if not config:
        return [f"{label}: config must be non-empty"]
    return []


def _check_catalog_fields(label, config, entry, symbols):
    """Fallback: required plain fields must be set; set plain fields must match their type."""
    errors = []
    for field, field_spec in entry.get("configSchema", {}).items():
        if field_spec.get("role") != "plain":
            continue
        if "options" in field_spec:
            if field_spec.get("required"):
                errors.extend(_require_option(label, config, entry, field))
            continue
        value = config.get(field)
        if not _is_set(value):
            if field_spec.get("required"):
                errors.append(f"{label}: {field} must be set")
            continue
        err = _field_error(label, field, value, field_spec.get("type"), symbols)
        if err:
            errors.append(err)
    return errors


# ===== Checks shared by every node type =====

def _check_options(label, config, entry):
    errors = []
    for field, field_spec in entry.get("configSchema", {}).items():
        options = field_spec.get("options")
        value = config.get(field)
        if not options or not _is_set(value):
            continue
        text = value_to_text(value).strip()
        if text not in options:
            errors.append(f"{label}: {field} must be one of {', '.join(options)}, got: {text!r}")
    return errors


def _check_output_variables(label, config, entry, flow):
    errors = []
    declared = {d.get("name"): d for d in declared_variables(flow)}
    for field in fields_with_role(entry, "output-variable-name"):
        value = config.get(field)
        if not _is_set(value):
            if entry["configSchema"][field].get("required"):
                errors.append(f"{label}: {field} must be set")
            continue

        name = value_to_text(value).strip()
        if not IDENTIFIER_PATTERN.match(name):
            errors.append(f"{label}: {field} must be a valid variable name, got: {name!r}")
            continue

        produced = output_variable_type(entry, config)
        decl = declared.get(name)
        if decl is not None and decl.get("type") in VARIABLE_TYPES and decl.get("type") != produced:
            errors.append(f"{label}: {field} must be a {produced} variable, "
                          f"'{name}' is declared as {decl.get('type')}")
    return errors


def _check_templates(label, config, entry, symbols):
    errors = []
    for field in fields_with_role(entry, "template"):
        value = config.get(field)
        if not _is_set(value):
            if entry["configSchema"][field].get("required"):
                errors.append(f"{label}: {field} must be set")
            continue
        for ref in extract_template_references(value):
            reason = check_property_path(ref.name, ref.path, None, symbols)
            if reason is not None:
                errors.append(_describe(label, field, ref.raw, None, reason, symbols))
    return errors


def _check_default_values(flow):
    errors = []
    for decl in declared_variables(flow):
        name = decl.get("name")
        var_type = decl.get("type")
        default = decl.get("defaultValue")
        if var_type not in VARIABLE_TYPES or var_type == "string" or not _is_set(default):
            continue
        if not literal_matches_type(value_to_text(default), var_type):
            errors.append(f"Start: defaultValue of '{name}' must be a {var_type}, "
                          f"got: {value_to_text(default)!r}")
    return errors


# Semantic handler dispatch table
_SEMANTIC_HANDLERS = {
    "conditional": _check_conditional,
    "arithmetic": _check_arithmetic,
    "variable": _check_variable,
    "loop": _check_loop,
    "timer": _check_timer,
    "blockchain": _check_blockchain,
    "custom": _check_custom,
}


# --- Self-check ---
if __name__ == "__main__":
    print("=== Flow Semantics Validator Self-Check ===\n")

    flow = {
        "nodes": [
            {"id": "start", "type": "start", "data": {"label": "Start", "config": {
                "variables": [{"name": "wallet", "type": "string"}]}}},
            {"id": "b1", "type": "blockchain", "data": {"label": "Balance", "config": {
                "operation": "getBalance", "address": "wallet", "outputVariable": "bal"}}},
            {"id": "a1", "type": "arithmetic", "data": {"label": "Double", "config": {
                "operation": "multiply", "value1": "{bal.balance}", "value2": "2"}}},
        ],
        "edges": [],
    }
    errs = validate_flow_semantics(flow)
    assert len(errs) == 1 and "Double: value1" in errs[0], errs
    print("  [OK] Blockchain output used as object is rejected")

    flow["nodes"][2]["data"]["config"]["value1"] = "bal"
    assert validate_flow_semantics(flow) == []
    print("  [OK] Direct blockchain reference accepted")

    print("\n=== All semantics checks passed ===")
