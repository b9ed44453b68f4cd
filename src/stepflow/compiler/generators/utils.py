"""Generators for transform, sleep, wait-event and validate nodes.

Transform code is embedded as written and runs with the deployer's full
trust inside the generated module.
"""

import logging
import re
from typing import Any, Optional

from stepflow.compiler.expressions import js_literal, render_path
from stepflow.core.models import Node

from .base import GenerationContext, block, durable_step, indent, register_generator

logger = logging.getLogger(__name__)

_FREE_INPUT_NAMES = re.compile(r"""(?:(?<=\.\.\.)|(?<![\w$."']))(input|data)\b""")
_RETURN_KEYWORD = re.compile(r"\breturn\b")
_STATEMENT_START = re.compile(r"^(const|let|var|if|for|while|switch|try|throw|function)\b")

SLEEP_UNITS_MS = {
    "ms": 1,
    "millisecond": 1,
    "milliseconds": 1,
    "s": 1000,
    "second": 1000,
    "seconds": 1000,
    "m": 60_000,
    "minute": 60_000,
    "minutes": 60_000,
    "h": 3_600_000,
    "hour": 3_600_000,
    "hours": 3_600_000,
    "d": 86_400_000,
    "day": 86_400_000,
    "days": 86_400_000,
    "w": 604_800_000,
    "week": 604_800_000,
    "weeks": 604_800_000,
}
DEFAULT_SLEEP_MS = 1000


def rewrite_transform_code(code: str) -> str:
    """Point ``input``/``data`` at ``inputData`` and shape the code as an expression.

    A lone ``return <expr>`` or a bare expression is used directly; anything
    with statements becomes an async IIFE.
    """
    code = _FREE_INPUT_NAMES.sub("inputData", code.strip())
    if not code:
        return "inputData"

    single_line = "\n" not in code and ";" not in code.rstrip(";")
    if single_line and code.startswith("return "):
        return f"({code[len('return '):].rstrip(';').strip()})"
    if single_line and not _RETURN_KEYWORD.search(code) and not _STATEMENT_START.match(code):
        return f"({code.rstrip(';')})"
    return "await (async () => {\n" + indent(code) + "\n})()"


@register_generator("transform")
def generate_transform(node: Node, ctx: GenerationContext) -> str:
    code = node.config.get("code") or "return inputData;"
    expression = rewrite_transform_code(ctx.resolver.resolve_code(code))
    return durable_step(node, ctx, f"const result = {expression};")


def sleep_plan(config: dict[str, Any]) -> tuple[str, Any]:
    """Classify a sleep config as ("relative", ms) or ("absolute", timestamp)."""
    duration = config.get("duration", config.get("ms"))
    if isinstance(duration, (int, float)) and not isinstance(duration, bool):
        return "relative", int(duration)
    if isinstance(duration, dict):
        if duration.get("type") == "absolute" and duration.get("timestamp") is not None:
            return "absolute", duration["timestamp"]
        unit = str(duration.get("unit", "seconds"))
        multiplier = SLEEP_UNITS_MS.get(unit)
        if multiplier is None:
            logger.warning(f"Unknown sleep unit '{unit}'; treating as seconds")
            multiplier = 1000
        return "relative", int(float(duration.get("value", 1)) * multiplier)
    return "relative", DEFAULT_SLEEP_MS


@register_generator("sleep")
def generate_sleep(node: Node, ctx: GenerationContext) -> str:
    kind, amount = sleep_plan(node.config)
    step = js_literal(ctx.step_name(node))
    if kind == "absolute":
        wait = f"await step.sleepUntil({step}, new Date({js_literal(amount)}));"
        output = f"{{ until: {js_literal(amount)} }}"
    else:
        wait = f"await step.sleep({step}, {amount});"
        output = f"{{ sleptMs: {amount} }}"
    return block(
        f"const inputData = {ctx.input_expression(node)};",
        wait,
        f"{ctx.state_ref(node)} = {{ input: inputData, output: {output} }};",
        f"{ctx.result_ref(node)} = {ctx.state_ref(node)}.output;",
    )


def wait_timeout_ms(config: dict[str, Any]) -> Optional[int]:
    timeout = config.get("timeout")
    if not isinstance(timeout, dict) or timeout.get("value") is None:
        return None
    unit = str(timeout.get("unit", "seconds"))
    multiplier = SLEEP_UNITS_MS.get(unit)
    if multiplier is None:
        logger.warning(f"Unknown timeout unit '{unit}'; treating as seconds")
        multiplier = 1000
    return int(float(timeout["value"]) * multiplier)


@register_generator("wait-event")
def generate_wait_event(node: Node, ctx: GenerationContext) -> str:
    """Durable wait for an external event.

    The runtime throws when the wait times out; ``timeoutBehavior: "continue"``
    turns that into ``{event: null, timedOut: true}``.
    """
    event_type = node.config.get("eventType")
    if not isinstance(event_type, str) or not event_type:
        raise ValueError(f"wait-event node '{node.id}' needs an eventType")

    options = f"type: {js_literal(event_type)}"
    timeout_ms = wait_timeout_ms(node.config)
    if timeout_ms is not None:
        options += f", timeout: {timeout_ms}"
    wait = f"received = await step.waitForEvent({js_literal(ctx.step_name(node))}, {{ {options} }});"

    if node.config.get("timeoutBehavior", "error") == "continue":
        wait_lines = [
            "try {",
            indent(wait),
            "} catch (error) {",
            indent("timedOut = true;"),
            "}",
        ]
    else:
        wait_lines = [wait]

    return block(
        f"const inputData = {ctx.input_expression(node)};",
        "let received = null;",
        "let timedOut = false;",
        *wait_lines,
        f"{ctx.state_ref(node)} = {{ input: inputData, output: {{ event: received, timedOut }} }};",
        f"{ctx.result_ref(node)} = {ctx.state_ref(node)}.output;",
    )


def _rule_check(rule: dict[str, Any], ctx: GenerationContext) -> str:
    """JavaScript that pushes to ``errors`` when one rule fails."""
    rule_type = rule.get("type", "")
    field = str(rule.get("field", ""))
    value = "data" + render_path(field.split(".")) if field else "data"
    message = js_literal(rule.get("message") or f"{field or 'value'} failed {rule_type} validation")
    push = f"errors.push({{ field: {js_literal(field)}, rule: {js_literal(rule_type)}, message: {message} }});"
    present = "value !== undefined && value !== null"

    if rule_type == "required":
        message = js_literal(rule.get("message") or f"{field} is required")
        push = f"errors.push({{ field: {js_literal(field)}, rule: \"required\", message: {message} }});"
        failed = 'value === undefined || value === null || value === ""'
    elif rule_type == "email":
        failed = f"{present} && !/^[^\\s@]+@[^\\s@]+\\.[^\\s@]+$/.test(String(value))"
    elif rule_type == "url":
        failed = f"{present} && !/^https?:\\/\\//i.test(String(value))"
    elif rule_type == "length":
        low, high = int(rule.get("min", 0)), int(rule.get("max", 1000))
        size = "(Array.isArray(value) ? value.length : String(value).length)"
        failed = f"{present} && ({size} < {low} || {size} > {high})"
    elif rule_type == "range":
        low, high = js_literal(rule.get("min", 0)), js_literal(rule.get("max", 1000))
        failed = f"{present} && (Number.isNaN(Number(value)) || Number(value) < {low} || Number(value) > {high})"
    elif rule_type == "regex":
        failed = f"{present} && !new RegExp({js_literal(str(rule.get('pattern', '')))}).test(String(value))"
    elif rule_type == "custom":
        if rule.get("expression"):
            failed = f"!({ctx.resolver.resolve_code(str(rule['expression']))})"
        else:
            custom = ctx.resolver.resolve_code(str(rule.get("customCode", "")))
            return block("{", f"  const value = {value};", indent(custom), "}")
    else:
        return f"// Unsupported validation rule {js_literal(rule_type)} on field {js_literal(field)}"

    return block("{", f"  const value = {value};", f"  if ({failed}) {{", f"    {push}", "  }", "}")


@register_generator("validate")
def generate_validate(node: Node, ctx: GenerationContext) -> str:
    rules = [rule for rule in node.config.get("rules") or [] if isinstance(rule, dict)]
    policy = node.config.get("onFailure", "error")

    lines = ["const data = event.payload || {};", "const errors = [];"]
    lines.extend(_rule_check(rule, ctx) for rule in rules)
    lines.append("const valid = errors.length === 0;")
    if policy == "error":
        lines.extend(
            [
                "if (!valid) {",
                '  throw new Error("Validation failed: " + errors.map((e) => e.message).join(", "));',
                "}",
            ]
        )
    lines.append(
        'const result = { valid, errors, data: valid ? data : null, message: valid ? "Validation passed" : '
        '"Validation failed" };'
    )
    return durable_step(node, ctx, block(*lines))
