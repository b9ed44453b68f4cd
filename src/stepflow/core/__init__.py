"""Core stepflow modules for workflow graph representation and validation."""

from .exceptions import CompilationError, CycleError, GraphValidationError, RegistryError, StepflowError
from .graph_schema import GRAPH_SCHEMA, ValidationError, load_graph_file, validate_graph_document
from .graph_validator import GraphValidator, ValidationReport
from .models import (
    Binding,
    BindingUsage,
    CompiledArtifact,
    CompileOptions,
    Edge,
    Node,
    NodeData,
    Position,
    WorkflowGraph,
)
from .sequencer import build_execution_order
from .settings import CompilerSettings, SettingsManager, StepflowSettings

__all__ = [
    "GRAPH_SCHEMA",
    "Binding",
    "BindingUsage",
    "CompilationError",
    "CompileOptions",
    "CompiledArtifact",
    "CompilerSettings",
    "CycleError",
    "Edge",
    "GraphValidationError",
    "GraphValidator",
    "Node",
    "NodeData",
    "Position",
    "RegistryError",
    "SettingsManager",
    "StepflowError",
    "StepflowSettings",
    "ValidationError",
    "ValidationReport",
    "WorkflowGraph",
    "build_execution_order",
    "load_graph_file",
    "validate_graph_document",
]
