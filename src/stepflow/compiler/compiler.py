"""Workflow graph compiler.

Compilation is pure: the same graph, registry and settings always produce a
byte-identical module and binding list. Nothing here touches the network or
the filesystem.
"""

import json
import logging
from typing import Any, Optional, Union

from stepflow.core.graph_validator import GraphValidator, ValidationReport
from stepflow.core.models import CompiledArtifact, CompileOptions, WorkflowGraph
from stepflow.core.settings import CompilerSettings
from stepflow.registry import NodeRegistry

from .pipeline import create_compile_flow

logger = logging.getLogger(__name__)

GraphInput = Union[WorkflowGraph, dict[str, Any], str]


def _as_document(graph: GraphInput) -> Union[WorkflowGraph, dict[str, Any]]:
    if isinstance(graph, str):
        try:
            return json.loads(graph)  # type: ignore[no-any-return]
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON: {e}") from e
    return graph


class WorkflowCompiler:
    """Compiles workflow graphs against an injected node registry.

    Example:
        >>> compiler = WorkflowCompiler(NodeRegistry.builtin())
        >>> artifact = compiler.compile(graph, CompileOptions(deployment_name="orders"))
        >>> artifact.entrypoint_class_name
        'OrdersWorkflow'
    """

    def __init__(self, registry: Optional[NodeRegistry] = None, settings: Optional[CompilerSettings] = None):
        self.registry = registry if registry is not None else NodeRegistry.builtin()
        self.settings = settings or CompilerSettings()

    def validate(self, graph: GraphInput, entry_node_id: Optional[str] = None) -> ValidationReport:
        """Validate without compiling."""
        return GraphValidator(self.registry).validate(_as_document(graph), entry_node_id=entry_node_id)

    def compile(self, graph: GraphInput, options: Optional[CompileOptions] = None) -> CompiledArtifact:
        """Compile a graph into a module, bindings and deployment descriptor.

        Args:
            graph: WorkflowGraph, raw document or JSON string
            options: Deployment name, class name, entry node and cycle policy overrides

        Returns:
            A fresh CompiledArtifact

        Raises:
            GraphValidationError: If the graph has validation errors
            CycleError: If the graph has a cycle and the cycle policy is "error"
            CompilationError: If a node's config cannot be turned into code
        """
        shared: dict[str, Any] = {
            "graph_input": _as_document(graph),
            "options": options or CompileOptions(),
            "registry": self.registry,
            "settings": self.settings,
        }
        logger.info("Starting compilation", extra={"phase": "init"})
        create_compile_flow().run(shared)
        return shared["artifact"]  # type: ignore[no-any-return]


def compile_graph(
    graph: GraphInput,
    options: Optional[CompileOptions] = None,
    registry: Optional[NodeRegistry] = None,
    settings: Optional[CompilerSettings] = None,
) -> CompiledArtifact:
    """Compile with a one-off compiler; see ``WorkflowCompiler.compile``."""
    return WorkflowCompiler(registry, settings).compile(graph, options)
