"""Tests for the node registry and catalog definitions."""

import json

import pytest
from pydantic import ValidationError

from stepflow.core.exceptions import RegistryError
from stepflow.registry import BindingRequirement, NodeDefinition, NodeRegistry


def _definition(node_type, **extra):
    return {"metadata": {"type": node_type, "name": node_type.title()}, **extra}


class TestBuiltinCatalog:
    def test_contains_core_types(self, registry):
        for node_type in (
            "entry",
            "return",
            "http-request",
            "kv-get",
            "kv-put",
            "d1-query",
            "transform",
            "conditional-router",
            "sleep",
            "validate",
            "mcp-tool-input",
            "mcp-tool-output",
            "ai-gateway",
            "workers-ai",
            "for-each",
            "wait-event",
        ):
            assert registry.has_type(node_type), node_type

    def test_list_types_is_sorted(self, registry):
        types = registry.list_types()

        assert types == sorted(types)
        assert [d.type for d in registry.definitions()] == types

    def test_schema_defaults(self, registry):
        """Storage nodes default to the conventional binding names."""
        assert registry.schema_default("kv-get", "namespace") == "KV"
        assert registry.schema_default("d1-query", "database") == "DB"
        assert registry.schema_default("http-request", "method") == "GET"
        assert registry.schema_default("http-request", "nothing") is None
        assert registry.schema_default("unknown-type", "namespace") is None

    def test_ai_cache_binding_is_optional(self, registry):
        requirements = {r.kind: r for r in registry.get_definition("ai-gateway").bindings}

        assert requirements["ai"].required is True
        assert requirements["kv"].required is False
        assert requirements["kv"].config_field == "cacheNamespace"


class TestRegistration:
    def test_register_dict(self):
        registry = NodeRegistry()

        definition = registry.register(_definition("custom", configSchema={"type": "object"}))

        assert isinstance(definition, NodeDefinition)
        assert registry.get_definition("custom").config_schema == {"type": "object"}

    def test_later_registration_overrides(self):
        registry = NodeRegistry([_definition("custom"), _definition("custom", configSchema={"type": "object"})])

        assert registry.get_definition("custom").config_schema == {"type": "object"}

    def test_invalid_definition_raises_registry_error(self):
        with pytest.raises(RegistryError, match="Invalid node definition"):
            NodeRegistry().register({"metadata": {"name": "no type"}})

    def test_unknown_binding_kind_is_rejected(self):
        with pytest.raises(ValidationError, match="Invalid binding kind"):
            BindingRequirement(kind="queue", name="Q")


class TestCatalogFiles:
    def test_round_trip_through_file(self, tmp_path, registry):
        path = tmp_path / "catalog" / "nodes.json"
        registry.save(path)

        loaded = NodeRegistry.from_file(path)

        assert loaded.list_types() == registry.list_types()
        assert loaded.schema_default("kv-put", "namespace") == "KV"

    def test_list_format(self, tmp_path):
        path = tmp_path / "nodes.json"
        path.write_text(json.dumps([_definition("custom")]))

        assert NodeRegistry.from_file(path).list_types() == ["custom"]

    def test_include_builtin_overlays_file(self, tmp_path):
        """File entries override built-ins of the same type."""
        override = _definition(
            "kv-put",
            configSchema={"type": "object", "properties": {"namespace": {"type": "string", "default": "CACHE_KV"}}},
        )
        path = tmp_path / "nodes.json"
        path.write_text(json.dumps({"nodes": [override]}))

        registry = NodeRegistry.from_file(path, include_builtin=True)

        assert registry.has_type("http-request")
        assert registry.schema_default("kv-put", "namespace") == "CACHE_KV"

    def test_missing_file(self, tmp_path):
        with pytest.raises(RegistryError, match="not found"):
            NodeRegistry.from_file(tmp_path / "missing.json")

    def test_unparseable_file(self, tmp_path):
        path = tmp_path / "nodes.json"
        path.write_text("{oops")

        with pytest.raises(RegistryError, match="Failed to parse"):
            NodeRegistry.from_file(path)

    def test_wrong_shape(self, tmp_path):
        path = tmp_path / "nodes.json"
        path.write_text(json.dumps({"types": []}))

        with pytest.raises(RegistryError, match="must be a list"):
            NodeRegistry.from_file(path)
