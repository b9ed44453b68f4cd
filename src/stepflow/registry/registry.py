"""Node registry: the read-only catalog of node types consumed by the compiler."""

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from stepflow.core.exceptions import RegistryError

from .builtin_catalog import BUILTIN_NODE_DEFINITIONS
from .node_definition import NodeDefinition

logger = logging.getLogger(__name__)


class NodeRegistry:
    """Catalog of node definitions keyed by type.

    The registry is constructed explicitly and handed to the compiler, so a
    compile never depends on ambient state.
    """

    def __init__(self, definitions: Optional[Iterable[Union[NodeDefinition, dict[str, Any]]]] = None):
        self._definitions: dict[str, NodeDefinition] = {}
        for definition in definitions or []:
            self.register(definition)

    @classmethod
    def builtin(cls) -> "NodeRegistry":
        """Registry populated with the built-in node catalog."""
        return cls(BUILTIN_NODE_DEFINITIONS)

    @classmethod
    def from_file(cls, registry_path: Union[str, Path], include_builtin: bool = False) -> "NodeRegistry":
        """Load a catalog from a JSON file.

        The file holds either a list of definitions or ``{"nodes": [...]}``.

        Args:
            registry_path: Path to the catalog JSON file
            include_builtin: Start from the built-in catalog and let the file override it

        Raises:
            RegistryError: If the file is missing, unparseable or holds invalid definitions
        """
        path = Path(registry_path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise RegistryError(f"Node catalog not found: {path}") from e
        except json.JSONDecodeError as e:
            raise RegistryError(f"Failed to parse node catalog {path}: {e}") from e

        entries = data.get("nodes") if isinstance(data, dict) else data
        if not isinstance(entries, list):
            raise RegistryError(f"Node catalog {path} must be a list of definitions or {{'nodes': [...]}}")

        registry = cls.builtin() if include_builtin else cls()
        for entry in entries:
            registry.register(entry)
        logger.debug(f"Loaded {len(entries)} node definition(s) from {path}")
        return registry

    def register(self, definition: Union[NodeDefinition, dict[str, Any]]) -> NodeDefinition:
        if not isinstance(definition, NodeDefinition):
            try:
                definition = NodeDefinition.model_validate(definition)
            except PydanticValidationError as e:
                raise RegistryError(f"Invalid node definition: {e}") from e
        self._definitions[definition.type] = definition
        return definition

    def get_definition(self, node_type: str) -> Optional[NodeDefinition]:
        return self._definitions.get(node_type)

    def has_type(self, node_type: str) -> bool:
        return node_type in self._definitions

    def schema_default(self, node_type: str, field: str) -> Any:
        definition = self.get_definition(node_type)
        if definition is None:
            return None
        return definition.schema_default(field)

    def list_types(self) -> list[str]:
        return sorted(self._definitions)

    def definitions(self) -> list[NodeDefinition]:
        return [self._definitions[node_type] for node_type in self.list_types()]

    def save(self, registry_path: Union[str, Path]) -> None:
        """Write the catalog to a JSON file readable by ``from_file``."""
        path = Path(registry_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"nodes": [d.model_dump(by_alias=True, exclude_none=True) for d in self.definitions()]}
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
