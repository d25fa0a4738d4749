"""
Variable Binding Model

Resolves how a configuration field's value refers to data. A value is one of:
  - a literal matching the expected primitive type ("42", "true", "sei")
  - a bare declared variable name ("previousPrice")
  - a brace-delimited property path into an object variable ("{price.price_usd}")

Both the semantic validator and the auto-fix engine read values through this
module so the three reference forms are parsed in exactly one place.

Deterministic. No network calls.
"""

import json
import math
import re
from collections import namedtuple

from tools.node_catalog_loader import (
    fields_with_role,
    get_node_type,
    is_direct_value,
    output_variable_type,
)

VARIABLE_TYPES = {"string", "number", "boolean", "array", "object"}

LITERAL = "literal"
DECLARED_VARIABLE = "declared_variable"
PROPERTY_PATH = "property_path"
INVALID = "invalid"

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
PROPERTY_PATH_PATTERN = re.compile(
    r"^\{([A-Za-z_][A-Za-z0-9_]*)((?:\.[A-Za-z_][A-Za-z0-9_]*)+)\}$"
)
TEMPLATE_REFERENCE_PATTERN = re.compile(
    r"\{([A-Za-z_][A-Za-z0-9_]*)((?:\.[A-Za-z_][A-Za-z0-9_]*)+)\}"
)

BOOLEAN_LITERALS = {"true", "false", "0", "1"}

Reference = namedtuple("Reference", ["kind", "raw", "name", "path"])


def value_to_text(value):
    """Render a raw config value as the string form the binding rules read.

    Planner output carries numbers, booleans and nested JSON next to plain
    strings; they are compared in their JSON spelling.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _names(declared_variables):
    names = {}
    for decl in declared_variables or []:
        if isinstance(decl, dict) and isinstance(decl.get("name"), str):
            names.setdefault(decl["name"], decl)
    return names


def resolve_reference_kind(value, declared_variables=None):
    """Classify a config value.

    Args:
        value: Raw config value.
        declared_variables: List of VariableDeclaration dicts.

    Returns:
        One of LITERAL, DECLARED_VARIABLE, PROPERTY_PATH, INVALID.
    """
    text = value_to_text(value)
    if text is None:
        return INVALID
    text = text.strip()
    if not text:
        return INVALID
    if text in _names(declared_variables):
        return DECLARED_VARIABLE
    if PROPERTY_PATH_PATTERN.match(text):
        return PROPERTY_PATH
    return LITERAL


def parse_reference(value, declared_variables=None):
    """Parse a config value into a Reference(kind, raw, name, path).

    name is the variable name for DECLARED_VARIABLE and PROPERTY_PATH
    references; path is the list of property segments (empty otherwise).
    """
    kind = resolve_reference_kind(value, declared_variables)
    text = value_to_text(value)
    raw = text.strip() if text is not None else None

    if kind == DECLARED_VARIABLE:
        return Reference(kind, raw, raw, [])
    if kind == PROPERTY_PATH:
        match = PROPERTY_PATH_PATTERN.match(raw)
        return Reference(kind, raw, match.group(1), match.group(2).lstrip(".").split("."))
    return Reference(kind, raw, None, [])


def literal_matches_type(text, expected_type):
    """Sniff whether a literal string is a valid value of expected_type."""
    text = text.strip()
    if not text:
        return False

    if expected_type == "number":
        if "_" in text:
            return False
        try:
            return math.isfinite(float(text))
        except ValueError:
            return False

    if expected_type == "boolean":
        return text.lower() in BOOLEAN_LITERALS

    if expected_type in ("array", "object"):
        try:
            parsed = json.loads(text)
        except ValueError:
            return False
        return isinstance(parsed, list) if expected_type == "array" else isinstance(parsed, dict)

    return True


def is_valid_for_expected_type(value, expected_type=None, declared_variables=None):
    """Check a config value against the type its field expects.

    A declared variable is accepted only when its declared type equals
    expected_type; there is no coercion between declared types. Anything
    else falls back to literal sniffing. Without an expected_type every
    non-empty value is accepted.

    Args:
        value: Raw config value.
        expected_type: One of VARIABLE_TYPES, "any" or None.
        declared_variables: List of VariableDeclaration dicts.

    Returns:
        bool
    """
    text = value_to_text(value)
    if text is None:
        return False
    text = text.strip()
    if not text:
        return False

    declared = _names(declared_variables).get(text)
    if declared is not None:
        if expected_type in (None, "any"):
            return True
        return declared.get("type") == expected_type

    if expected_type in (None, "any"):
        return True
    return literal_matches_type(text, expected_type)


def extract_template_references(text):
    """Extract every {var.prop} reference embedded in a message template.

    Args:
        text: Template string (non-strings yield no references).

    Returns:
        List of PROPERTY_PATH References in order of appearance.
    """
    if not isinstance(text, str):
        return []
    return [
        Reference(PROPERTY_PATH, match.group(0), match.group(1),
                  match.group(2).lstrip(".").split("."))
        for match in TEMPLATE_REFERENCE_PATTERN.finditer(text)
    ]


def find_start_node(flow):
    """First node of type 'start', or None."""
    for node in flow.get("nodes", []):
        if isinstance(node, dict) and node.get("type") == "start":
            return node
    return None


def node_config(node):
    """The node's config dict (empty when absent or malformed)."""
    data = node.get("data")
    if not isinstance(data, dict):
        return {}
    config = data.get("config")
    return config if isinstance(config, dict) else {}


def declared_variables(flow):
    """VariableDeclarations from the start node, in declaration order."""
    start = find_start_node(flow)
    if start is None:
        return []
    variables = node_config(start).get("variables")
    if not isinstance(variables, list):
        return []
    return [v for v in variables if isinstance(v, dict)]


def build_symbol_table(flow, catalog):
    """Index every variable the graph makes available.

    Start declarations come first. A node's output-variable-name field
    declares its variable implicitly with the type the node produces; when
    it writes into a start-declared name, the declared type is kept and the
    producer is recorded. With several producers the first node wins.

    Returns:
        dict name -> symbol with keys:
            name, type, declared (bool), producer (node id or None),
            direct (bool), properties (dict or None)
    """
    symbols = {}
    for decl in declared_variables(flow):
        name = decl.get("name")
        if not isinstance(name, str) or name in symbols:
            continue
        symbols[name] = {
            "name": name,
            "type": decl.get("type"),
            "declared": True,
            "producer": None,
            "direct": False,
            "properties": None,
        }

    for node in flow.get("nodes", []):
        if not isinstance(node, dict) or node.get("type") == "start":
            continue
        entry = get_node_type(catalog, node.get("type"))
        if entry is None:
            continue
        config = node_config(node)
        for field in fields_with_role(entry, "output-variable-name"):
            name = config.get(field)
            if not isinstance(name, str) or not IDENTIFIER_PATTERN.match(name.strip()):
                continue
            name = name.strip()
            produced = output_variable_type(entry, config)
            output_schema = entry.get("outputSchema")
            properties = output_schema if isinstance(output_schema, dict) and produced == "object" else None

            symbol = symbols.get(name)
            if symbol is None:
                symbols[name] = {
                    "name": name,
                    "type": produced,
                    "declared": False,
                    "producer": node.get("id"),
                    "direct": is_direct_value(entry),
                    "properties": properties,
                }
            elif symbol["producer"] is None:
                symbol["producer"] = node.get("id")
                symbol["direct"] = is_direct_value(entry)
                symbol["properties"] = properties

    return symbols


def check_value(value, expected_type, symbols):
    """Check a value against expected_type using the full symbol table.

    Returns:
        None when the value is acceptable, otherwise a reason code:
        "missing", "type_mismatch", "unknown_variable",
        "direct_value_path", "not_an_object", "unknown_property",
        "scalar_property".
    """
    text = value_to_text(value)
    if text is None or not text.strip():
        return "missing"
    text = text.strip()

    match = PROPERTY_PATH_PATTERN.match(text)
    if match and text not in symbols:
        return check_property_path(match.group(1), match.group(2).lstrip(".").split("."),
                                   expected_type, symbols)

    if is_valid_for_expected_type(text, expected_type, list(symbols.values())):
        return None
    return "type_mismatch"


def check_property_path(name, path, expected_type, symbols):
    """Check a {name.path} reference; see check_value for reason codes."""
    symbol = symbols.get(name)
    if symbol is None:
        return "unknown_variable"
    if symbol["direct"]:
        return "direct_value_path"
    if symbol["type"] != "object":
        return "not_an_object"

    properties = symbol["properties"]
    if properties is None:
        return None
    if path[0] not in properties:
        return "unknown_property"

    prop_type = properties[path[0]]
    if len(path) > 1:
        return None if prop_type in ("object", "any") else "scalar_property"
    if prop_type == "any" or expected_type in (None, "any"):
        return None
    return None if prop_type == expected_type else "type_mismatch"


# --- Self-check ---
if __name__ == "__main__":
    print("=== Variable Binding Self-Check ===\n")

    decls = [{"name": "threshold", "type": "number"}, {"name": "label", "type": "string"}]

    assert resolve_reference_kind("threshold", decls) == DECLARED_VARIABLE
    assert resolve_reference_kind("{price.price_usd}", decls) == PROPERTY_PATH
    assert resolve_reference_kind("42", decls) == LITERAL
    assert resolve_reference_kind("   ", decls) == INVALID
    print("  [OK] Reference kinds")

    assert is_valid_for_expected_type("threshold", "number", decls)
    assert not is_valid_for_expected_type("label", "number", decls)
    assert is_valid_for_expected_type("1e3", "number", decls)
    assert not is_valid_for_expected_type("abc", "number", decls)
    assert is_valid_for_expected_type("FALSE", "boolean", decls)
    assert is_valid_for_expected_type("[1, 2]", "array", decls)
    assert not is_valid_for_expected_type("{}", "array", decls)
    print("  [OK] Expected type checks")

    refs = extract_template_references("Price {price.price_usd} moved {change.pct}%")
    assert [r.name for r in refs] == ["price", "change"]
    print("  [OK] Template references")

    print("\n=== All variable binding checks passed ===")
