"""Compile pipeline built from pocketflow nodes.

Validate → Sequence → Generate → CollectBindings → Assemble, all sharing one
dict. A graph with errors, or a cycle under the strict policy, is routed to
RejectGraphNode, which raises.

Shared store keys:
    graph_input, options, registry, settings   (set by the caller)
    report, graph                              (ValidateGraphNode)
    execution_order, step_names                (SequenceNode)
    fragments                                  (GenerateCodeNode)
    bindings                                   (CollectBindingsNode)
    artifact                                   (AssembleNode)
"""

import logging
from typing import Any

from pocketflow import Flow, Node

from stepflow.core.exceptions import CompilationError, CycleError, GraphValidationError
from stepflow.core.graph_validator import GraphValidator, ValidationReport
from stepflow.core.models import RETURN_NODE_TYPES, Binding, CompiledArtifact, CompileOptions
from stepflow.core.sequencer import build_execution_order

from .assembler import (
    assemble_module,
    build_deployment_descriptor,
    build_tool_manifest,
    entrypoint_class_name,
    tool_server_bindings,
)
from .bindings import BindingCollector
from .expressions import ExpressionResolver
from .generators import GenerationContext, generate_node_code
from .step_names import build_step_names

logger = logging.getLogger(__name__)


class ValidateGraphNode(Node):
    """Run the graph validator and choose the route."""

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        options: CompileOptions = shared["options"]
        return {
            "graph": shared["graph_input"],
            "registry": shared["registry"],
            "entry_node_id": options.entry_node_id,
        }

    def exec(self, prep_res: dict[str, Any]) -> ValidationReport:
        validator = GraphValidator(prep_res["registry"])
        return validator.validate(prep_res["graph"], entry_node_id=prep_res["entry_node_id"])

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: ValidationReport) -> str:
        shared["report"] = exec_res
        if not exec_res.is_valid:
            logger.info(f"Graph rejected with {len(exec_res.errors)} error(s)", extra={"phase": "validation"})
            return "invalid"

        shared["graph"] = exec_res.graph
        policy = shared["options"].cycle_policy or shared["settings"].cycle_policy
        if exec_res.has_cycle and policy == "error":
            logger.info("Graph rejected: cycle under strict policy", extra={"phase": "validation"})
            return "cyclic"

        logger.debug("Graph validated", extra={"phase": "validation"})
        return "valid"


class RejectGraphNode(Node):
    """Raise the error that matches the validation outcome."""

    def prep(self, shared: dict[str, Any]) -> ValidationReport:
        return shared["report"]  # type: ignore[no-any-return]

    def exec(self, prep_res: ValidationReport) -> None:
        if prep_res.errors:
            raise GraphValidationError(prep_res.errors, prep_res.warnings)
        raise CycleError()


class SequenceNode(Node):
    def prep(self, shared: dict[str, Any]) -> Any:
        return shared["graph"]

    def exec(self, prep_res: Any) -> tuple[list[str], dict[str, str]]:
        return build_execution_order(prep_res), build_step_names(prep_res)

    def post(self, shared: dict[str, Any], prep_res: Any, exec_res: tuple[list[str], dict[str, str]]) -> str:
        shared["execution_order"], shared["step_names"] = exec_res
        if shared["report"].has_cycle:
            shared["report"].warnings.append("Compiled in declaration order because the graph has a cycle")
        logger.debug(f"Execution order: {', '.join(exec_res[0])}", extra={"phase": "sequencing"})
        return "default"


class GenerateCodeNode(Node):
    """Generate one envelope-wrapped fragment per node, in execution order."""

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        graph = shared["graph"]
        step_names = shared["step_names"]
        ctx = GenerationContext(
            graph=graph,
            step_names=step_names,
            resolver=ExpressionResolver(step_names, (node.id for node in graph.nodes)),
            registry=shared["registry"],
            settings=shared["settings"],
        )
        return {"ctx": ctx, "order": shared["execution_order"]}

    def exec(self, prep_res: dict[str, Any]) -> list[str]:
        ctx: GenerationContext = prep_res["ctx"]
        fragments = []
        for node_id in prep_res["order"]:
            node = ctx.graph.node_by_id(node_id)
            if node is None:
                continue
            try:
                fragments.append(generate_node_code(node, ctx))
            except (TypeError, ValueError, KeyError) as e:
                raise CompilationError(
                    f"Failed to generate code: {e}",
                    phase="code_generation",
                    node_id=node.id,
                    node_type=node.type,
                    suggestion="Check the node's config values against its schema",
                ) from e
        return fragments

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: list[str]) -> str:
        shared["fragments"] = exec_res
        logger.debug(f"Generated {len(exec_res)} fragment(s)", extra={"phase": "code_generation"})
        return "default"


class CollectBindingsNode(Node):
    """Independent pass over the node list; does not depend on generated code."""

    def prep(self, shared: dict[str, Any]) -> tuple[BindingCollector, Any]:
        return BindingCollector(shared["registry"], shared["settings"]), shared["graph"]

    def exec(self, prep_res: tuple[BindingCollector, Any]) -> list[Binding]:
        collector, graph = prep_res
        return collector.collect(graph)

    def post(self, shared: dict[str, Any], prep_res: Any, exec_res: list[Binding]) -> str:
        shared["bindings"] = exec_res
        return "default"


class AssembleNode(Node):
    """Build the module, descriptor and tool manifest into a CompiledArtifact."""

    def prep(self, shared: dict[str, Any]) -> dict[str, Any]:
        return {
            "graph": shared["graph"],
            "options": shared["options"],
            "settings": shared["settings"],
            "fragments": shared["fragments"],
            "bindings": shared["bindings"],
            "step_names": shared["step_names"],
            "execution_order": shared["execution_order"],
            "warnings": shared["report"].warnings,
        }

    def exec(self, prep_res: dict[str, Any]) -> CompiledArtifact:
        graph = prep_res["graph"]
        options: CompileOptions = prep_res["options"]
        step_names: dict[str, str] = prep_res["step_names"]

        workflow_name = options.deployment_name or graph.name or graph.id
        class_name = options.class_name or entrypoint_class_name(workflow_name)
        tool_node = graph.tool_input_node()
        bindings = list(prep_res["bindings"])

        output_step = None
        manifest = None
        if tool_node is not None:
            output_node = next((n for n in graph.nodes if n.type == "mcp-tool-output"), None)
            if output_node is None:
                output_node = next((n for n in graph.nodes if n.type in RETURN_NODE_TYPES), None)
            output_step = step_names.get(output_node.id) if output_node is not None else None
            manifest = build_tool_manifest(tool_node, workflow_name)
            bindings.extend(tool_server_bindings(class_name, tool_node))

        module_source = assemble_module(
            prep_res["fragments"], class_name, workflow_name, tool_node=tool_node, output_step=output_step
        )
        descriptor = build_deployment_descriptor(
            workflow_name, class_name, bindings, prep_res["settings"], dual_mode=tool_node is not None
        )
        return CompiledArtifact(
            module_source=module_source,
            entrypoint_class_name=class_name,
            bindings=bindings,
            deployment_descriptor=descriptor,
            tool_manifest=manifest,
            warnings=list(prep_res["warnings"]),
            execution_order=list(prep_res["execution_order"]),
            step_names=dict(step_names),
        )

    def post(self, shared: dict[str, Any], prep_res: dict[str, Any], exec_res: CompiledArtifact) -> str:
        shared["artifact"] = exec_res
        logger.info(
            f"Compiled {exec_res.entrypoint_class_name} with {len(exec_res.bindings)} binding(s)",
            extra={"phase": "assembly"},
        )
        return "default"


def create_compile_flow() -> Flow:
    """Create a fresh compile pipeline. Nodes hold no state between compiles."""
    validate = ValidateGraphNode()
    reject = RejectGraphNode()
    sequence = SequenceNode()
    generate = GenerateCodeNode()
    collect = CollectBindingsNode()
    assemble = AssembleNode()

    validate - "invalid" >> reject
    validate - "cyclic" >> reject
    validate - "valid" >> sequence
    sequence >> generate
    generate >> collect
    collect >> assemble

    return Flow(start=validate)
