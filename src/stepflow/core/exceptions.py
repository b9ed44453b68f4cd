"""Custom exceptions for stepflow."""

from typing import Any, Optional


class StepflowError(Exception):
    """Base exception for all stepflow errors."""

    pass


class GraphValidationError(StepflowError):
    """Raised when a workflow graph fails validation and cannot be compiled.

    Attributes:
        errors: Every fatal problem found in the graph
        warnings: Non-fatal problems found alongside the errors
    """

    def __init__(self, errors: list[str], warnings: Optional[list[str]] = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])

        lines = [f"Workflow graph is invalid ({len(self.errors)} error(s)):"]
        lines.extend(f"  - {error}" for error in self.errors)
        super().__init__("\n".join(lines))


class CompilationError(StepflowError):
    """Error during graph compilation with rich context.

    Attributes:
        phase: The compilation phase where the error occurred
        node_id: ID of the node being compiled (if applicable)
        node_type: Type of the node being compiled (if applicable)
        details: Additional context about the error
        suggestion: Helpful suggestion for fixing the error
    """

    def __init__(
        self,
        message: str,
        phase: str = "unknown",
        node_id: Optional[str] = None,
        node_type: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ):
        self.phase = phase
        self.node_id = node_id
        self.node_type = node_type
        self.details = details or {}
        self.suggestion = suggestion

        parts = [f"compiler: {message}"]
        if phase != "unknown":
            parts.append(f"Phase: {phase}")
        if node_id:
            parts.append(f"Node ID: {node_id}")
        if node_type:
            parts.append(f"Node Type: {node_type}")
        if suggestion:
            parts.append(f"Suggestion: {suggestion}")

        super().__init__("\n".join(parts))


class CycleError(CompilationError):
    """Raised when a cyclic graph is compiled under the strict cycle policy."""

    def __init__(self, message: str = "Workflow graph contains a cycle"):
        super().__init__(
            message,
            phase="sequencing",
            suggestion="Remove the edge that closes the cycle, or compile with --allow-cycles",
        )


class RegistryError(StepflowError):
    """Raised when a node catalog cannot be loaded or is malformed."""

    pass
