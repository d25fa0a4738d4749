"""
Tests for node_catalog_loader — catalog loading, lookups and output typing.
"""

import json

import pytest

from tools.node_catalog_loader import (
    DIRECT_VALUE,
    direct_value_type,
    fields_with_role,
    get_default_catalog,
    get_node_type,
    is_direct_value,
    list_node_types,
    load_node_catalog,
    output_variable_type,
)

ALL_TYPES = [
    "start", "marketData", "blockchain", "arithmetic", "conditional", "telegram",
    "userApproval", "timer", "variable", "loop", "logger", "llm",
    "smartContractRead", "smartContractWrite", "custom",
]


def _write_catalog(tmp_path, node_types):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"catalog_version": "9.9.9", "node_types": node_types}))
    return str(path)


class TestLoadCatalog:
    def test_bundled_catalog_has_every_node_type(self, catalog):
        assert sorted(ALL_TYPES) == list_node_types(catalog)
        assert catalog["node_type_count"] == len(ALL_TYPES)

    def test_every_entry_has_three_schemas(self, catalog):
        for entry in catalog["node_types"].values():
            assert "inputSchema" in entry
            assert "outputSchema" in entry
            assert "configSchema" in entry

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_node_catalog(str(tmp_path / "nope.json"))

    def test_entry_missing_schema_raises(self, tmp_path):
        path = _write_catalog(tmp_path, {
            "timer": {"type": "timer", "description": "t", "inputSchema": {}, "configSchema": {}},
        })
        with pytest.raises(ValueError, match="missing required fields"):
            load_node_catalog(path)

    def test_key_type_mismatch_raises(self, tmp_path):
        path = _write_catalog(tmp_path, {
            "timer": {"type": "delay", "description": "t", "inputSchema": {},
                      "outputSchema": {}, "configSchema": {}},
        })
        with pytest.raises(ValueError, match="does not match"):
            load_node_catalog(path)

    def test_unknown_field_role_raises(self, tmp_path):
        path = _write_catalog(tmp_path, {
            "timer": {"type": "timer", "description": "t", "inputSchema": {}, "outputSchema": {},
                      "configSchema": {"duration": {"type": "number", "role": "magic"}}},
        })
        with pytest.raises(ValueError, match="invalid role"):
            load_node_catalog(path)

    def test_env_override(self, tmp_path, monkeypatch):
        path = _write_catalog(tmp_path, {
            "custom": {"type": "custom", "description": "c", "inputSchema": {},
                       "outputSchema": {}, "configSchema": {}},
        })
        monkeypatch.setenv("FLOWGUARD_CATALOG_PATH", path)
        cat = load_node_catalog()
        assert cat["catalog_version"] == "9.9.9"
        assert list_node_types(cat) == ["custom"]

    def test_default_catalog_is_cached(self):
        assert get_default_catalog() is get_default_catalog()


class TestLookups:
    def test_unknown_type_is_none(self, catalog):
        assert get_node_type(catalog, "teleport") is None

    def test_only_blockchain_is_direct_value(self, catalog):
        direct = [t for t, e in catalog["node_types"].items() if is_direct_value(e)]
        assert direct == ["blockchain"]
        assert catalog["node_types"]["blockchain"]["outputSchema"] == DIRECT_VALUE

    def test_direct_value_types(self, catalog):
        bc = get_node_type(catalog, "blockchain")
        assert direct_value_type(bc, {"operation": "getBalance"}) == "number"
        assert direct_value_type(bc, {"operation": "transfer"}) == "string"
        assert direct_value_type(bc, {"selectedTool": "sei_get_native_balance"}) == "number"
        assert direct_value_type(bc, {"selectedTool": "sei_swap_tokens"}) == "string"

    @pytest.mark.parametrize("node_type,expected", [
        ("arithmetic", "number"),
        ("conditional", "boolean"),
        ("marketData", "object"),
        ("variable", None),
    ])
    def test_output_variable_type(self, catalog, node_type, expected):
        assert output_variable_type(get_node_type(catalog, node_type), {}) == expected

    def test_fields_with_role(self, catalog):
        assert fields_with_role(get_node_type(catalog, "telegram"), "template") == ["message"]
        assert fields_with_role(get_node_type(catalog, "blockchain"), "tool-selector") == ["selectedTool"]
