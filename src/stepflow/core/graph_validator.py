"""Graph validation for workflow documents.

Checks accumulate into a report of errors (fatal to compile) and warnings
(informational) rather than stopping at the first failure. The validator
never raises for a bad graph; the compiler decides what to do with the
report, including whether a cycle aborts compilation.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .graph_schema import collect_config_errors, collect_graph_errors
from .models import ENTRY_NODE_TYPES, RETURN_NODE_TYPES, WorkflowGraph

if TYPE_CHECKING:
    from stepflow.registry import NodeRegistry

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    """Outcome of validating one graph."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    has_cycle: bool = False
    entry_node_id: Optional[str] = None
    graph: Optional[WorkflowGraph] = None

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "hasCycle": self.has_cycle,
            "entryNodeId": self.entry_node_id,
        }


class GraphValidator:
    """Runs every structural and semantic check on a workflow graph."""

    def __init__(self, registry: Optional["NodeRegistry"] = None):
        self.registry = registry

    def validate(
        self,
        graph: Union[WorkflowGraph, dict[str, Any]],
        entry_node_id: Optional[str] = None,
    ) -> ValidationReport:
        """Validate a graph document or model.

        Args:
            graph: Raw document or parsed WorkflowGraph
            entry_node_id: Explicit entry node; otherwise the first entry-type node

        Returns:
            ValidationReport with errors, warnings, cycle flag and resolved entry
        """
        report = ValidationReport()

        if isinstance(graph, dict):
            structure_errors = collect_graph_errors(graph)
            if structure_errors:
                report.errors.extend(f"Structure: {message}" for message in structure_errors)
                logger.debug(f"Validation found {len(report.errors)} structural errors")
                return report
            try:
                graph = WorkflowGraph.model_validate(graph)
            except PydanticValidationError as e:
                report.errors.append(f"Structure: {e}")
                return report

        report.graph = graph

        report.errors.extend(self._check_node_ids(graph))
        report.errors.extend(self._check_node_types(graph))
        edge_errors, edge_warnings = self._check_edges(graph)
        report.errors.extend(edge_errors)
        report.warnings.extend(edge_warnings)

        if self.registry is not None:
            config_errors, type_warnings = self._check_against_registry(graph, self.registry)
            report.errors.extend(config_errors)
            report.warnings.extend(type_warnings)

        report.has_cycle = self._detect_cycle(graph)
        if report.has_cycle:
            report.warnings.append("Workflow graph contains a cycle")

        entry, entry_errors, entry_warnings = self._resolve_entry(graph, entry_node_id)
        report.entry_node_id = entry
        report.errors.extend(entry_errors)
        report.warnings.extend(entry_warnings)

        if not any(node.type in RETURN_NODE_TYPES for node in graph.nodes):
            report.warnings.append("Workflow has no return node; deployed runs will return only step results")

        if report.errors:
            logger.debug(f"Validation found {len(report.errors)} errors")
        elif report.warnings:
            logger.debug(f"Validation passed with {len(report.warnings)} warning(s)")
        else:
            logger.debug("Validation passed")

        return report

    @staticmethod
    def _check_node_ids(graph: WorkflowGraph) -> list[str]:
        errors = []
        seen: set[str] = set()
        reported: set[str] = set()
        for node in graph.nodes:
            if node.id in seen and node.id not in reported:
                errors.append(f"Duplicate node id '{node.id}'")
                reported.add(node.id)
            seen.add(node.id)
        return errors

    @staticmethod
    def _check_node_types(graph: WorkflowGraph) -> list[str]:
        return [f"Node '{node.id}' is missing a type" for node in graph.nodes if not node.type.strip()]

    @staticmethod
    def _check_edges(graph: WorkflowGraph) -> tuple[list[str], list[str]]:
        errors: list[str] = []
        warnings: list[str] = []
        node_ids = {node.id for node in graph.nodes}
        seen_edge_ids: set[str] = set()

        for index, edge in enumerate(graph.edges):
            edge_id = edge.id
            if not edge_id:
                edge_id = f"e-{edge.source}-{edge.target}"
                warnings.append(f"Edge {index} ({edge.source} -> {edge.target}) has no id; assigned '{edge_id}'")
            if edge_id in seen_edge_ids:
                errors.append(f"Duplicate edge id '{edge_id}'")
            seen_edge_ids.add(edge_id)

            if edge.source not in node_ids:
                errors.append(f"Edge '{edge_id}' references non-existent source node '{edge.source}'")
            if edge.target not in node_ids:
                errors.append(f"Edge '{edge_id}' references non-existent target node '{edge.target}'")
            if edge.source == edge.target:
                warnings.append(f"Edge '{edge_id}' is a self-loop on node '{edge.source}'")

        return errors, warnings

    @staticmethod
    def _check_against_registry(graph: WorkflowGraph, registry: "NodeRegistry") -> tuple[list[str], list[str]]:
        errors: list[str] = []
        warnings: list[str] = []
        for node in graph.nodes:
            if not node.type:
                continue
            definition = registry.get_definition(node.type)
            if definition is None:
                warnings.append(f"Node '{node.id}' has unknown type '{node.type}'; it will compile to a passthrough")
                continue
            for message in collect_config_errors(node.config, definition.config_schema):
                errors.append(f"Node '{node.id}' ({node.type}) {message}")
        return errors, warnings

    @staticmethod
    def _detect_cycle(graph: WorkflowGraph) -> bool:
        """Depth-first search with a recursion stack.

        A node reached again while still on the stack closes a cycle.
        """
        successors: dict[str, list[str]] = {node.id: [] for node in graph.nodes}
        for edge in graph.edges:
            if edge.source in successors and edge.target in successors:
                successors[edge.source].append(edge.target)

        visited: set[str] = set()
        on_stack: set[str] = set()

        for root in successors:
            if root in visited:
                continue
            stack = [(root, iter(successors[root]))]
            visited.add(root)
            on_stack.add(root)
            while stack:
                node_id, children = stack[-1]
                child = next(children, None)
                if child is None:
                    stack.pop()
                    on_stack.discard(node_id)
                    continue
                if child in on_stack:
                    return True
                if child not in visited:
                    visited.add(child)
                    on_stack.add(child)
                    stack.append((child, iter(successors[child])))
        return False

    @staticmethod
    def _resolve_entry(
        graph: WorkflowGraph, entry_node_id: Optional[str]
    ) -> tuple[Optional[str], list[str], list[str]]:
        errors: list[str] = []
        warnings: list[str] = []
        entries = [node.id for node in graph.nodes if node.type in ENTRY_NODE_TYPES]

        if len(entries) > 1:
            warnings.append(f"Workflow has {len(entries)} entry nodes ({', '.join(entries)}); expected exactly one")

        if entry_node_id:
            if graph.node_by_id(entry_node_id) is None:
                errors.append(f"Entry node '{entry_node_id}' does not exist")
                return None, errors, warnings
            return entry_node_id, errors, warnings

        if not entries:
            errors.append("Workflow must have an entry node")
            return None, errors, warnings
        return entries[0], errors, warnings
