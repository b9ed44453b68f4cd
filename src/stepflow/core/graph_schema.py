"""JSON Schema definition and structural validation for workflow graphs.

Structural validation runs on the raw document before it is turned into
typed models, so that a malformed graph is reported with readable paths
(``nodes[2].id``) instead of a model parsing traceback.
"""

import json
import logging
from pathlib import Path
from typing import Any, Union

import jsonschema
from jsonschema import Draft7Validator
from jsonschema.exceptions import ValidationError as JsonSchemaValidationError

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Structural validation error with a field path and an optional suggestion.

    Attributes:
        message (str): The validation error message
        path (str): Dotted path to the invalid field (e.g., "nodes[0].type")
        suggestion (str): Optional suggestion for fixing the error
    """

    def __init__(self, message: str, path: str = "", suggestion: str = ""):
        self.message = message
        self.path = path
        self.suggestion = suggestion

        full_message = "Validation error"
        if path:
            full_message += f" at {path}"
        full_message += f": {message}"
        if suggestion:
            full_message += f"\n{suggestion}"

        super().__init__(full_message)


GRAPH_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "id": {"type": "string", "description": "Identifier of the workflow"},
        "name": {"type": "string", "description": "Human-readable workflow name"},
        "nodes": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "type": {"type": "string"},
                    "position": {
                        "type": "object",
                        "properties": {"x": {"type": "number"}, "y": {"type": "number"}},
                    },
                    "config": {"type": "object"},
                    "data": {
                        "type": "object",
                        "properties": {
                            "label": {"type": ["string", "null"]},
                            "stepName": {"type": ["string", "null"]},
                            "config": {"type": "object"},
                        },
                    },
                },
                "required": ["id"],
            },
        },
        "edges": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": ["string", "null"]},
                    "source": {"type": "string", "minLength": 1},
                    "target": {"type": "string", "minLength": 1},
                    "sourceHandle": {"type": ["string", "null"]},
                },
                "required": ["source", "target"],
            },
            "default": [],
        },
    },
    "required": ["nodes"],
}


def _format_path(path: list) -> str:
    """Format a jsonschema path into a readable string like ``nodes[0].type``."""
    formatted = ""
    for i, component in enumerate(path):
        if isinstance(component, int):
            formatted += f"[{component}]"
        else:
            if i > 0:
                formatted += "."
            formatted += str(component)
    return formatted or "root"


def _get_suggestion(error: JsonSchemaValidationError) -> str:
    if error.validator == "required":
        match = error.message.split("'")
        if len(match) >= 2:
            return f"Add the required field '{match[1]}'"
        return "Add the missing required field"
    elif error.validator == "type":
        expected = error.validator_value
        actual = type(error.instance).__name__
        return f"Change type from '{actual}' to '{expected}'"
    elif error.validator == "minItems":
        return "Add at least one node to the workflow"
    elif error.validator == "minLength":
        return "Use a non-empty value"
    return ""


def _iter_schema_errors(data: Any, schema: dict[str, Any]) -> list[JsonSchemaValidationError]:
    validator = Draft7Validator(schema)
    try:
        validator.check_schema(schema)
    except jsonschema.SchemaError as e:
        raise RuntimeError(f"Schema definition error: {e}") from e
    return sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path))


def collect_graph_errors(data: Any) -> list[str]:
    """Return every structural problem in a raw graph document as a readable string."""
    messages = []
    for error in _iter_schema_errors(data, GRAPH_SCHEMA):
        path = _format_path(list(error.absolute_path))
        messages.append(f"{path}: {error.message}")
    return messages


def collect_config_errors(config: dict[str, Any], schema: dict[str, Any]) -> list[str]:
    """Validate a node's config against its registered JSON Schema.

    Returns:
        Readable error strings, empty when the config is valid
    """
    if not schema:
        return []
    messages = []
    for error in _iter_schema_errors(config, schema):
        path = _format_path(list(error.absolute_path))
        prefix = "config" if path == "root" else f"config.{path}"
        messages.append(f"{prefix}: {error.message}")
    return messages


def validate_graph_document(data: Union[dict[str, Any], str]) -> dict[str, Any]:
    """Validate a graph document against GRAPH_SCHEMA and return it as a dict.

    Args:
        data: The graph (dict or JSON string)

    Returns:
        The parsed document

    Raises:
        ValidationError: On the first structural problem, with path and suggestion
        ValueError: If JSON parsing fails

    Example:
        >>> validate_graph_document({"nodes": [{"id": "n1", "type": "entry"}]})
        {'nodes': [{'id': 'n1', 'type': 'entry'}]}
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {e}") from e

    errors = _iter_schema_errors(data, GRAPH_SCHEMA)
    if errors:
        error = errors[0]
        raise ValidationError(
            message=error.message,
            path=_format_path(list(error.absolute_path)),
            suggestion=_get_suggestion(error),
        )
    return data  # type: ignore[return-value]


def load_graph_file(path: Union[str, Path]) -> dict[str, Any]:
    """Read a graph document from disk without validating it."""
    file_path = Path(path)
    logger.debug("Loading graph document", extra={"path": str(file_path)})
    try:
        with open(file_path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Graph document in {file_path} must be a JSON object")
    return data
