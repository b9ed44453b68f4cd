"""Tests for structural graph validation."""

import json

import pytest

from stepflow.core.graph_schema import (
    ValidationError,
    collect_config_errors,
    collect_graph_errors,
    load_graph_file,
    validate_graph_document,
)


class TestCollectGraphErrors:
    def test_valid_document(self, linear_graph):
        assert collect_graph_errors(linear_graph) == []

    def test_missing_nodes(self):
        errors = collect_graph_errors({"edges": []})

        assert errors == ["root: 'nodes' is a required property"]

    def test_nested_path_formatting(self):
        errors = collect_graph_errors({"nodes": [{"id": "a"}, {"id": 3}]})

        assert errors == ["nodes[1].id: 3 is not of type 'string'"]


class TestValidateGraphDocument:
    def test_returns_parsed_json_string(self):
        document = validate_graph_document('{"nodes": [{"id": "n1", "type": "entry"}]}')

        assert document["nodes"][0]["id"] == "n1"

    def test_invalid_json(self):
        with pytest.raises(ValueError, match="Invalid JSON"):
            validate_graph_document("{not json")

    def test_first_error_carries_path_and_suggestion(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_graph_document({"nodes": []})

        assert exc_info.value.path == "nodes"
        assert exc_info.value.suggestion == "Add at least one node to the workflow"

    def test_required_field_suggestion(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_graph_document({"nodes": [{"type": "entry"}]})

        assert exc_info.value.suggestion == "Add the required field 'id'"
        assert "at nodes[0]" in str(exc_info.value)


class TestConfigErrors:
    def test_empty_schema_accepts_anything(self):
        assert collect_config_errors({"whatever": 1}, {}) == []

    def test_prefixes_config_path(self):
        schema = {"type": "object", "properties": {"ttl": {"type": "integer"}}, "required": ["key"]}

        errors = collect_config_errors({"ttl": "soon"}, schema)

        assert "config: 'key' is a required property" in errors
        assert "config.ttl: 'soon' is not of type 'integer'" in errors


class TestLoadGraphFile:
    def test_loads_object(self, tmp_path, linear_graph):
        path = tmp_path / "graph.json"
        path.write_text(json.dumps(linear_graph))

        assert load_graph_file(path) == linear_graph

    def test_rejects_non_object(self, tmp_path):
        path = tmp_path / "graph.json"
        path.write_text("[1, 2]")

        with pytest.raises(ValueError, match="must be a JSON object"):
            load_graph_file(path)

    def test_rejects_bad_json(self, tmp_path):
        path = tmp_path / "graph.json"
        path.write_text("{")

        with pytest.raises(ValueError, match="Invalid JSON"):
            load_graph_file(path)
