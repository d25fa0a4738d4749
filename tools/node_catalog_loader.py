"""
Node Catalog Loader

Loads and indexes the static node catalog from disk. Each node type owns
exactly one entry: inputSchema, outputSchema and configSchema. The
catalog is read once per process and treated as immutable afterwards.

Input: catalog_path (str) — path to node_catalog.json
Output: dict keyed by node type with full schema metadata

Deterministic. No network calls.
"""

import json
import os

from tools.logger import log

DIRECT_VALUE = "__direct_value__"

VALID_FIELD_TYPES = {"string", "number", "boolean", "array", "object", "any"}
VALID_ROLES = {
    "plain", "output-variable-name", "tool-selector", "tool-parameters",
    "variable-declarations", "variable-name", "template",
}
REQUIRED_ENTRY_FIELDS = ["type", "description", "inputSchema", "outputSchema", "configSchema"]

_default_catalog = None


def load_node_catalog(catalog_path=None):
    """Load the node catalog and return an indexed dict.

    Args:
        catalog_path: Path to node_catalog.json. Defaults to the
                      FLOWGUARD_CATALOG_PATH environment variable, then to
                      node_catalog.json in the same directory.

    Returns:
        dict with keys:
            - catalog_version: str
            - node_types: dict keyed by node type
            - node_type_count: int

    Raises:
        FileNotFoundError: If the catalog file does not exist.
        ValueError: If the catalog is malformed.
    """
    if catalog_path is None:
        catalog_path = os.environ.get("FLOWGUARD_CATALOG_PATH") or os.path.join(
            os.path.dirname(__file__), "node_catalog.json"
        )

    if not os.path.exists(catalog_path):
        raise FileNotFoundError(f"Node catalog not found at: {catalog_path}")

    with open(catalog_path, "r") as f:
        raw = json.load(f)

    if "catalog_version" not in raw:
        raise ValueError("Catalog missing 'catalog_version' field")
    if "node_types" not in raw or not isinstance(raw["node_types"], dict):
        raise ValueError("Catalog missing 'node_types' dict")

    node_types = {}
    for node_type, entry in raw["node_types"].items():
        missing = [f for f in REQUIRED_ENTRY_FIELDS if f not in entry]
        if missing:
            raise ValueError(f"Node type '{node_type}' missing required fields: {missing}")

        if entry["type"] != node_type:
            raise ValueError(
                f"Node type key '{node_type}' does not match type '{entry['type']}'"
            )

        output_schema = entry["outputSchema"]
        if not isinstance(output_schema, dict) and output_schema != DIRECT_VALUE:
            raise ValueError(
                f"Node type '{node_type}' outputSchema must be an object or '{DIRECT_VALUE}'"
            )

        if not isinstance(entry["configSchema"], dict):
            raise ValueError(f"Node type '{node_type}' configSchema must be an object")

        for field, field_spec in entry["configSchema"].items():
            if field_spec.get("type") not in VALID_FIELD_TYPES:
                raise ValueError(
                    f"Node type '{node_type}' field '{field}' has invalid type: "
                    f"{field_spec.get('type')!r}"
                )
            if field_spec.get("role") not in VALID_ROLES:
                raise ValueError(
                    f"Node type '{node_type}' field '{field}' has invalid role: "
                    f"{field_spec.get('role')!r}"
                )

        node_types[node_type] = entry

    log("catalog.loaded", path=catalog_path, node_type_count=len(node_types))

    return {
        "catalog_version": raw["catalog_version"],
        "node_types": node_types,
        "node_type_count": len(node_types),
    }


def get_default_catalog():
    """Return the process-wide catalog, loading it on first use."""
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = load_node_catalog()
    return _default_catalog


def get_node_type(catalog, node_type):
    """Look up a single node type.

    Args:
        catalog: The loaded catalog dict from load_node_catalog().
        node_type: The node type tag (e.g., 'marketData').

    Returns:
        Catalog entry dict, or None if not found.
    """
    return catalog["node_types"].get(node_type)


def list_node_types(catalog):
    """Sorted list of every node type tag in the catalog."""
    return sorted(catalog["node_types"].keys())


def is_direct_value(entry):
    """True when the node's result is a bare scalar instead of an object."""
    return entry is not None and entry.get("outputSchema") == DIRECT_VALUE


def direct_value_type(entry, config):
    """Scalar type produced by a direct-value node for a given config.

    Balance-style operations return a plain number; transactions and any
    other tool return a plain string (a tx hash or tool-specific text).
    """
    config = config or {}
    operation = config.get("operation")
    value_types = entry.get("directValueTypes", {})
    if operation in value_types:
        return value_types[operation]

    tool = config.get("selectedTool")
    if isinstance(tool, str) and tool:
        return "number" if "balance" in tool.lower() else "string"

    return "number"


def output_variable_type(entry, config):
    """Type of the variable a node binds to its output-variable-name field.

    Returns:
        A VariableDeclaration type string, or None if the node type has no
        output-variable-name field.
    """
    for field_spec in entry.get("configSchema", {}).values():
        if field_spec.get("role") != "output-variable-name":
            continue
        produces = field_spec.get("produces", "object")
        if produces == DIRECT_VALUE:
            return direct_value_type(entry, config)
        return produces
    return None


def fields_with_role(entry, role):
    """Names of the config fields carrying the given role."""
    return [
        name for name, field_spec in entry.get("configSchema", {}).items()
        if field_spec.get("role") == role
    ]


# --- Self-check ---
if __name__ == "__main__":
    print("=== Node Catalog Loader Self-Check ===\n")

    cat = load_node_catalog()
    print(f"Catalog version: {cat['catalog_version']}")
    print(f"Node type count: {cat['node_type_count']}")

    for t in ["start", "marketData", "blockchain", "arithmetic", "conditional", "timer"]:
        entry = get_node_type(cat, t)
        assert entry is not None, f"Node type '{t}' not found in catalog"
        print(f"  [OK] {t}")

    assert get_node_type(cat, "teleport") is None
    assert is_direct_value(get_node_type(cat, "blockchain"))
    assert not is_direct_value(get_node_type(cat, "marketData"))
    print("  [OK] Direct-value sentinel only on blockchain")

    bc = get_node_type(cat, "blockchain")
    assert direct_value_type(bc, {"operation": "getBalance"}) == "number"
    assert direct_value_type(bc, {"operation": "transfer"}) == "string"
    assert direct_value_type(bc, {"selectedTool": "sei_erc20_balance"}) == "number"
    print("  [OK] Direct value types resolved")

    print(f"\n=== All checks passed ({cat['node_type_count']} node types validated) ===")
