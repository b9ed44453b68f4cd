"""Fixtures for generator-level tests."""

import pytest

from stepflow.compiler.expressions import ExpressionResolver
from stepflow.compiler.generators import GenerationContext
from stepflow.compiler.step_names import build_step_names
from stepflow.core.models import WorkflowGraph
from stepflow.core.settings import CompilerSettings


@pytest.fixture
def context(registry):
    """Build a GenerationContext for a graph document."""

    def _context(document, settings=None, node_registry=None):
        graph = WorkflowGraph.model_validate(document)
        step_names = build_step_names(graph)
        return GenerationContext(
            graph=graph,
            step_names=step_names,
            resolver=ExpressionResolver(step_names, [node.id for node in graph.nodes]),
            registry=node_registry or registry,
            settings=settings or CompilerSettings(),
        )

    return _context
