"""Generator registry and the shared pieces every node generator uses.

A generator is a function ``(node, ctx) -> str`` that returns the body of a
node's fragment. ``generate_node_code`` looks the generator up by node type,
wraps the body in the logging envelope, and falls back to a passthrough for
types nobody registered.
"""

import logging
import textwrap
from dataclasses import dataclass, field
from typing import Callable, Optional

from stepflow.compiler.expressions import RESULTS_VAR, STATE_VAR, ExpressionResolver, js_literal
from stepflow.core.models import Node, WorkflowGraph
from stepflow.core.settings import CompilerSettings
from stepflow.registry import NodeRegistry

logger = logging.getLogger(__name__)

INDENT = "  "
FRAGMENT_INDENT = INDENT * 2


@dataclass
class GenerationContext:
    """Everything a generator may read about the graph being compiled."""

    graph: WorkflowGraph
    step_names: dict[str, str]
    resolver: ExpressionResolver
    registry: NodeRegistry
    settings: CompilerSettings = field(default_factory=CompilerSettings)

    def step_name(self, node: Node) -> str:
        return self.step_names[node.id]

    def state_ref(self, node: Node) -> str:
        return f"{STATE_VAR}[{js_literal(node.id)}]"

    def result_ref(self, node: Node) -> str:
        return f"{RESULTS_VAR}.{self.step_name(node)}"

    def input_expression(self, node: Node) -> str:
        """Output of the first incoming edge's source, else the event payload."""
        incoming = self.graph.incoming(node.id)
        if not incoming:
            return "event.payload"
        return f"{STATE_VAR}[{js_literal(incoming[0].source)}]?.output || event.payload"

    def routes(self, node: Node) -> dict[str, list[str]]:
        """Targets of this node's edges grouped by source handle."""
        routes: dict[str, list[str]] = {}
        for edge in self.graph.outgoing(node.id):
            if edge.source_handle:
                routes.setdefault(edge.source_handle, []).append(edge.target)
        return routes


Generator = Callable[[Node, GenerationContext], str]

_GENERATORS: dict[str, Generator] = {}


def register_generator(*node_types: str) -> Callable[[Generator], Generator]:
    """Register a generator function for one or more node types."""

    def decorator(func: Generator) -> Generator:
        for node_type in node_types:
            if node_type in _GENERATORS and _GENERATORS[node_type] is not func:
                logger.debug(f"Replacing generator for node type '{node_type}'")
            _GENERATORS[node_type] = func
        return func

    return decorator


def get_generator(node_type: str) -> Optional[Generator]:
    return _GENERATORS.get(node_type)


def registered_types() -> list[str]:
    return sorted(_GENERATORS)


def block(*lines: str) -> str:
    return "\n".join(lines)


def indent(code: str, prefix: str = INDENT) -> str:
    return textwrap.indent(code, prefix, lambda line: bool(line.strip()))


def durable_step(node: Node, ctx: GenerationContext, body: str, result_var: str = "result") -> str:
    """Wrap body code in ``step.do`` and record input and output state.

    The body runs with ``inputData`` in scope and must assign ``result_var``.
    """
    step = ctx.step_name(node)
    return block(
        f"{ctx.result_ref(node)} = await step.do({js_literal(step)}, async () => {{",
        f"{INDENT}const inputData = {ctx.input_expression(node)};",
        indent(body),
        f"{INDENT}{ctx.state_ref(node)} = {{ input: inputData, output: {result_var} }};",
        f"{INDENT}return {result_var};",
        "});",
    )


def passthrough(node: Node, ctx: GenerationContext) -> str:
    return block(
        f"// Unsupported node type {js_literal(node.type)} ({node.id}): passing input through",
        f"{ctx.state_ref(node)} = {{ input: {ctx.input_expression(node)}, output: {ctx.input_expression(node)} }};",
        f"{ctx.result_ref(node)} = {ctx.state_ref(node)}.output;",
    )


def _log_event(event_type: str, node: Node, extra: str = "") -> str:
    fields = (
        f"type: {js_literal(event_type)}, nodeId: {js_literal(node.id)}, nodeName: {js_literal(node.display_name)}, "
        f"nodeType: {js_literal(node.type)}, timestamp: Date.now(), instanceId: event.instanceId"
    )
    if extra:
        fields += f", {extra}"
    return f"console.log(JSON.stringify({{ {fields} }}));"


def wrap_in_envelope(node: Node, body: str) -> str:
    """Surround a fragment with start, success and error log events."""
    marker = f"{node.type} ({' '.join(node.display_name.split())}) [{node.id}]"
    return block(
        f"// === NODE START: {marker} ===",
        "try {",
        indent(_log_event("WF_NODE_START", node)),
        indent(body),
        indent(_log_event("WF_NODE_END", node, "success: true")),
        "} catch (error) {",
        indent("const errorMessage = error instanceof Error ? error.message : String(error);"),
        indent(_log_event("WF_NODE_ERROR", node, "success: false, error: errorMessage")),
        indent("throw error;"),
        "}",
        f"// === NODE END: {marker} ===",
    )


def generate_node_code(node: Node, ctx: GenerationContext) -> str:
    """Generate the complete, envelope-wrapped fragment for one node."""
    generator = get_generator(node.type)
    if generator is None:
        logger.debug(f"No generator for type '{node.type}' on node '{node.id}'; using passthrough")
        body = passthrough(node, ctx)
    else:
        body = generator(node, ctx)
    return wrap_in_envelope(node, body)
