"""Template expression resolution for generated code.

Config strings may reference other nodes with ``{{ ... }}``:

- ``{{state.<nodeId>.<path>}}`` reads the node's recorded state
  (``_workflowState["<nodeId>"]``), defaulting to ``.output``.
- ``{{<nodeRef>.<path>}}`` is the legacy form. ``nodeRef`` is tried as a
  step name first (``_workflowResults.<step>``), then as a node id.

Every reference rewrites to some accessor. A reference to a node that does
not exist only shows up at runtime as an undefined value.
"""

import json
import logging
import re
from collections.abc import Iterable
from typing import Any

logger = logging.getLogger(__name__)

STATE_VAR = "_workflowState"
RESULTS_VAR = "_workflowResults"
STATE_PREFIX = "state."

_IDENTIFIER_SEGMENT = re.compile(r"^([A-Za-z_$][\w$]*)((?:\[\d+\])*)$")


def js_literal(value: Any) -> str:
    """Serialize a plain value as a JavaScript literal."""
    return json.dumps(value)


def render_path(segments: Iterable[str]) -> str:
    """Render dotted path segments as a property access chain.

    Examples:
        >>> render_path(["output", "body"])
        '.output.body'
        >>> render_path(["items", "0", "first-name"])
        '.items[0]["first-name"]'
    """
    rendered = ""
    for segment in segments:
        if not segment:
            continue
        match = _IDENTIFIER_SEGMENT.match(segment)
        if match:
            rendered += f".{match.group(1)}{match.group(2)}"
        elif segment.isdigit():
            rendered += f"[{segment}]"
        else:
            rendered += f"[{js_literal(segment)}]"
    return rendered


def _escape_template_text(text: str) -> str:
    return (
        text.replace("\\", "\\\\").replace("`", "\\`").replace("${", "\\${").replace("\n", "\\n").replace("\r", "\\r")
    )


class ExpressionResolver:
    """Rewrites ``{{ ... }}`` references into state accessors for one graph."""

    TEMPLATE_PATTERN = re.compile(r"\{\{([^}]+)\}\}")

    def __init__(self, step_names: dict[str, str], node_ids: Iterable[str] = ()):
        self.step_names = step_names
        self.node_ids = set(node_ids) | set(step_names)
        self._steps = set(step_names.values())

    @staticmethod
    def has_templates(value: Any) -> bool:
        """Check if a value, or anything nested in it, contains a template."""
        if isinstance(value, str):
            return ExpressionResolver.TEMPLATE_PATTERN.search(value) is not None
        elif isinstance(value, dict):
            return any(ExpressionResolver.has_templates(v) for v in value.values())
        elif isinstance(value, list):
            return any(ExpressionResolver.has_templates(item) for item in value)
        return False

    @staticmethod
    def extract_expressions(value: str) -> list[str]:
        """Return the trimmed inner text of every template in a string, in order."""
        return [match.strip() for match in ExpressionResolver.TEMPLATE_PATTERN.findall(value)]

    @staticmethod
    def is_single_template(value: str) -> bool:
        return ExpressionResolver.TEMPLATE_PATTERN.fullmatch(value.strip()) is not None

    def state_accessor(self, node_id: str, path: list[str]) -> str:
        return f"{STATE_VAR}[{js_literal(node_id)}]{render_path(path or ['output'])}"

    def resolve_reference(self, expression: str) -> str:
        """Rewrite the inner text of one template into an accessor expression."""
        expression = expression.strip()
        if expression.startswith(STATE_PREFIX):
            node_id, *rest = expression[len(STATE_PREFIX) :].split(".")
            return self.state_accessor(node_id, rest)

        node_ref, *rest = expression.split(".")
        if node_ref in self._steps:
            return f"{RESULTS_VAR}.{node_ref}{render_path(rest)}"
        if node_ref not in self.node_ids:
            logger.debug(f"Template reference '{expression}' does not match a step or node; treating as node id")
        return self.state_accessor(node_ref, rest)

    def resolve_string(self, value: str) -> str:
        """Turn a config string into a JavaScript expression.

        A string that is exactly one template becomes the bare accessor, mixed
        text becomes a template literal, and plain text a string literal.
        """
        if not self.has_templates(value):
            return js_literal(value)
        stripped = value.strip()
        if self.is_single_template(stripped) and stripped == value:
            return self.resolve_reference(self.extract_expressions(value)[0])

        parts = []
        position = 0
        for match in self.TEMPLATE_PATTERN.finditer(value):
            parts.append(_escape_template_text(value[position : match.start()]))
            parts.append("${" + self.resolve_reference(match.group(1)) + "}")
            position = match.end()
        parts.append(_escape_template_text(value[position:]))
        return "`" + "".join(parts) + "`"

    def resolve_code(self, code: str) -> str:
        """Substitute accessors for templates inside user-authored code."""
        return self.TEMPLATE_PATTERN.sub(lambda match: self.resolve_reference(match.group(1)), code)

    def render_value(self, value: Any) -> str:
        """Render any config value as a JavaScript expression.

        Strings go through ``resolve_string``; dicts and lists are rendered as
        literals with templates resolved at any depth.
        """
        if isinstance(value, str):
            return self.resolve_string(value)
        if isinstance(value, dict):
            if not value:
                return "{}"
            items = ", ".join(f"{js_literal(str(key))}: {self.render_value(item)}" for key, item in value.items())
            return "{ " + items + " }"
        if isinstance(value, list):
            return "[" + ", ".join(self.render_value(item) for item in value) + "]"
        return js_literal(value)
