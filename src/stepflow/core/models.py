"""Pydantic models for workflow graphs and compiled artifacts."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

ENTRY_NODE_TYPES = ("entry", "mcp-tool-input")
RETURN_NODE_TYPES = ("return", "mcp-tool-output")
TOOL_INPUT_NODE_TYPE = "mcp-tool-input"

CyclePolicy = Literal["error", "fallback"]


class Position(BaseModel):
    """Canvas position of a node. Carried through, never interpreted."""

    x: float = 0
    y: float = 0


class NodeData(BaseModel):
    """Display and configuration payload of a node."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    label: Optional[str] = None
    step_name: Optional[str] = Field(default=None, alias="stepName")
    config: dict[str, Any] = Field(default_factory=dict)


class Node(BaseModel):
    """A typed unit of work in the graph."""

    model_config = ConfigDict(extra="allow")

    id: str
    type: str = ""
    position: Optional[Position] = None
    data: NodeData = Field(default_factory=NodeData)

    @model_validator(mode="before")
    @classmethod
    def fold_top_level_config(cls, values: Any) -> Any:
        """Accept ``config`` next to ``data`` and merge it into ``data.config``."""
        if not isinstance(values, dict) or "config" not in values:
            return values
        values = dict(values)
        top_config = values.pop("config") or {}
        data = dict(values.get("data") or {})
        data["config"] = {**top_config, **(data.get("config") or {})}
        values["data"] = data
        return values

    @property
    def config(self) -> dict[str, Any]:
        return self.data.config

    @property
    def display_name(self) -> str:
        """Label shown in runtime logs: label, else type, else id."""
        return self.data.label or self.type or self.id


class Edge(BaseModel):
    """A directed link between two nodes, optionally keyed by a source handle."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")


class WorkflowGraph(BaseModel):
    """The node/edge document compiled by stepflow."""

    model_config = ConfigDict(extra="allow")

    id: str = "workflow"
    name: str = "workflow"
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    def node_by_id(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def incoming(self, node_id: str) -> list[Edge]:
        return [edge for edge in self.edges if edge.target == node_id]

    def outgoing(self, node_id: str) -> list[Edge]:
        return [edge for edge in self.edges if edge.source == node_id]

    def tool_input_node(self) -> Optional[Node]:
        """Return the first tool-input node, which switches the module to dual mode."""
        for node in self.nodes:
            if node.type == TOOL_INPUT_NODE_TYPE:
                return node
        return None


class CamelModel(BaseModel):
    """Base for output models that serialise with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CompileOptions(CamelModel):
    """Optional knobs for a single compile call."""

    deployment_name: Optional[str] = None
    class_name: Optional[str] = None
    entry_node_id: Optional[str] = None
    cycle_policy: Optional[CyclePolicy] = None


class BindingUsage(CamelModel):
    node_id: str
    node_type: str


class Binding(CamelModel):
    """An external resource the compiled module needs at deploy time."""

    name: str
    kind: str
    required: bool = True
    description: Optional[str] = None
    usage_sites: list[BindingUsage] = Field(default_factory=list)

    @property
    def usage_count(self) -> int:
        return len(self.usage_sites)


class CompiledArtifact(CamelModel):
    """Everything produced by one compile call."""

    module_source: str
    entrypoint_class_name: str
    bindings: list[Binding] = Field(default_factory=list)
    deployment_descriptor: dict[str, Any] = Field(default_factory=dict)
    tool_manifest: Optional[dict[str, Any]] = None
    warnings: list[str] = Field(default_factory=list)
    execution_order: list[str] = Field(default_factory=list)
    step_names: dict[str, str] = Field(default_factory=dict)
