"""Pydantic models describing catalog entries for node types."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

BINDING_KINDS = ("kv", "d1", "ai", "r2", "durable_object", "workflow")


class BindingRequirement(BaseModel):
    """An abstract resource a node type needs at deploy time.

    ``config_field`` names the config key that may override ``name``.
    """

    model_config = ConfigDict(populate_by_name=True)

    kind: str
    name: str
    required: bool = True
    description: str = ""
    config_field: Optional[str] = Field(default=None, alias="configField")

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v: str) -> str:
        if v not in BINDING_KINDS:
            raise ValueError(f"Invalid binding kind: {v}. Must be one of: {', '.join(BINDING_KINDS)}")
        return v


class NodeMetadata(BaseModel):
    type: str
    name: str
    description: str = ""
    category: str = "utils"


class NodeDefinition(BaseModel):
    """Catalog entry for one node type."""

    model_config = ConfigDict(populate_by_name=True)

    metadata: NodeMetadata
    config_schema: dict[str, Any] = Field(default_factory=dict, alias="configSchema")
    bindings: list[BindingRequirement] = Field(default_factory=list)
    examples: list[dict[str, Any]] = Field(default_factory=list)
    preset_output: Optional[dict[str, Any]] = Field(default=None, alias="presetOutput")

    @property
    def type(self) -> str:
        return self.metadata.type

    def schema_default(self, field: str) -> Any:
        """Return the default declared for a top-level config property, or None."""
        properties = self.config_schema.get("properties", {})
        return properties.get(field, {}).get("default")
