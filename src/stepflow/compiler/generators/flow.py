"""Generators for flow-control nodes: entry, return, branching, iteration and tool aliases."""

import logging
from typing import Any

from stepflow.compiler.expressions import ExpressionResolver, js_literal, render_path
from stepflow.compiler.step_names import IDENTIFIER_PATTERN, RESERVED_WORDS
from stepflow.core.models import Node

from .base import GenerationContext, block, durable_step, register_generator

logger = logging.getLogger(__name__)

COMPARISON_OPERATORS = {
    "===": "===",
    "!==": "!==",
    "==": "==",
    "!=": "!=",
    ">": ">",
    "<": "<",
    ">=": ">=",
    "<=": "<=",
    "equals": "===",
    "notEquals": "!==",
    "greaterThan": ">",
    "lessThan": "<",
}


def _parameter_names(parameters: Any) -> list[str]:
    names = []
    for parameter in parameters or []:
        name = parameter.get("name") if isinstance(parameter, dict) else parameter
        if isinstance(name, str) and name:
            names.append(name)
    return names


def _payload_fragment(node: Node, ctx: GenerationContext, names: list[str], payload_expr: str) -> str:
    state = ctx.state_ref(node)
    if not names:
        output = "event.payload"
        lines = [f"{state} = {{ input: event.payload, output: {output} }};"]
    else:
        fields = ", ".join(f"{js_literal(name)}: payload[{js_literal(name)}]" for name in names)
        lines = [
            f"const payload = {payload_expr};",
            f"{state} = {{ input: event.payload, output: {{ {fields} }} }};",
        ]
    lines.append(f"{ctx.result_ref(node)} = {state}.output;")
    return block(*lines)


@register_generator("entry")
def generate_entry(node: Node, ctx: GenerationContext) -> str:
    return _payload_fragment(node, ctx, _parameter_names(node.config.get("params")), "event.payload || {}")


@register_generator("mcp-tool-input")
def generate_tool_input(node: Node, ctx: GenerationContext) -> str:
    return _payload_fragment(node, ctx, _parameter_names(node.config.get("parameters")), "event.payload || {}")


def value_source_expression(source: dict[str, Any], resolver: ExpressionResolver, key: str = "value") -> str:
    """Render a ``{type, value|content}`` source: expression, variable or literal."""
    kind = source.get("type", "static")
    raw = source.get(key, source.get("content"))
    if kind == "expression":
        return resolver.resolve_code(str(raw)) if raw not in (None, "") else "undefined"
    if kind == "variable":
        if isinstance(raw, str) and not resolver.has_templates(raw):
            return resolver.resolve_reference(raw)
        return resolver.render_value(raw)
    return resolver.render_value(raw)


def return_value_expression(node: Node, resolver: ExpressionResolver) -> str:
    config = node.config
    if "value" in config and config["value"] is not None:
        return resolver.render_value(config["value"])
    return_value = config.get("returnValue")
    if isinstance(return_value, dict) and return_value.get("value", return_value.get("content")) is not None:
        return value_source_expression(return_value, resolver)
    return js_literal("success")


@register_generator("return")
def generate_return(node: Node, ctx: GenerationContext) -> str:
    return durable_step(node, ctx, f"const result = {return_value_expression(node, ctx.resolver)};")


@register_generator("mcp-tool-output")
def generate_tool_output(node: Node, ctx: GenerationContext) -> str:
    structure = node.config.get("responseStructure")
    if isinstance(structure, dict) and structure.get("value", structure.get("content")) is not None:
        value = value_source_expression(structure, ctx.resolver)
    else:
        value = "inputData"

    output_format = node.config.get("format", "json")
    if output_format == "text":
        content = "{ content: [{ type: \"text\", text: String(value) }] }"
    elif output_format == "object":
        content = "{ content: [{ type: \"text\", text: JSON.stringify(value) }], structuredContent: value }"
    else:
        content = "{ content: [{ type: \"text\", text: JSON.stringify(value) }] }"
    return durable_step(node, ctx, block(f"const value = {value};", f"const result = {content};"))


def _path_expression(path: str, node: Node, ctx: GenerationContext) -> str:
    """Render a comparison operand given as a path or template.

    Templates resolve normally; ``event.*`` and ``inputData.*`` paths are read
    as written; ``state.<id>.*`` reads another node's recorded state; anything
    else is a field of the event payload. A node never reads its own state.
    """
    resolver = ctx.resolver
    if resolver.has_templates(path):
        return resolver.resolve_string(path)
    segments = path.split(".")
    head = segments[0]
    if head == "event":
        return "event" + render_path(segments[1:])
    if head in ("inputData", "input", "data"):
        return "inputData" + render_path(segments[1:])
    if head == "state" and len(segments) > 1:
        if segments[1] != node.id:
            return resolver.resolve_reference(path)
        logger.warning(f"Node '{node.id}' references its own state in '{path}'; reading the payload instead")
        segments = segments[2:]
    return "event.payload" + render_path(segments)


def _operand(value: Any, ctx: GenerationContext) -> str:
    if isinstance(value, str) and ctx.resolver.has_templates(value):
        return ctx.resolver.resolve_string(value)
    return js_literal(value)


def _comparison(node: Node, ctx: GenerationContext) -> tuple[str, str]:
    """Return (JavaScript condition, human-readable description)."""
    condition = node.config.get("condition")
    if isinstance(condition, dict) and condition.get("type", "simple") == "simple" and "left" in condition:
        operator = condition.get("operator", "===")
        left = _path_expression(str(condition["left"]), node, ctx)
        right = _operand(condition.get("right"), ctx)
        description = f"{condition['left']} {operator} {condition.get('right')}"
        if operator == "contains":
            return f"String({left}).includes(String({right}))", description
        if operator not in COMPARISON_OPERATORS:
            logger.warning(f"Unsupported operator '{operator}' on node '{node.id}'; using ===")
        return f"{left} {COMPARISON_OPERATORS.get(operator, '===')} {right}", description

    expression = None
    if isinstance(condition, dict):
        expression = condition.get("expression")
    expression = expression or node.config.get("expression")
    if isinstance(expression, str) and expression.strip():
        return ctx.resolver.resolve_code(expression), expression
    return "true", "true"


def _routes_line(node: Node, ctx: GenerationContext) -> str:
    routes = ctx.routes(node)
    entries = ", ".join(f"{js_literal(handle)}: {js_literal(targets)}" for handle, targets in routes.items())
    return f"const routes = {{ {entries} }};" if entries else "const routes = {};"


@register_generator("conditional-inline")
def generate_condition(node: Node, ctx: GenerationContext) -> str:
    expression, description = _comparison(node, ctx)
    return durable_step(
        node,
        ctx,
        block(
            f"const conditionResult = Boolean({expression});",
            'const branch = conditionResult ? "true" : "false";',
            _routes_line(node, ctx),
            f"const result = {{ branch, result: conditionResult, condition: {js_literal(description)}, "
            "next: routes[branch] || [] };",
        ),
    )


@register_generator("conditional-router")
def generate_router(node: Node, ctx: GenerationContext) -> str:
    cases = node.config.get("cases")
    if not cases or "conditionPath" not in node.config:
        return generate_condition(node, ctx)

    default_case = next((c.get("case") for c in cases if c.get("isDefault")), None)
    matchable = [c for c in cases if not c.get("isDefault")]

    lines = [
        f"const conditionValue = {_path_expression(str(node.config['conditionPath']), node, ctx)};",
        f"let branch = {js_literal(default_case)};",
    ]
    for index, case in enumerate(matchable):
        keyword = "if" if index == 0 else "} else if"
        lines.append(f"{keyword} (conditionValue === {_operand(case.get('value'), ctx)}) {{")
        lines.append(f"  branch = {js_literal(case.get('case'))};")
    if matchable:
        lines.append("}")

    routing = ", ".join(f"{js_literal(c.get('case'))}: branch === {js_literal(c.get('case'))}" for c in cases)
    lines.extend(
        [
            f"const routing = {{ {routing} }};",
            _routes_line(node, ctx),
            "const result = { branch, result: branch !== null, value: conditionValue, routing, "
            "next: routes[branch] || [] };",
        ]
    )
    return durable_step(node, ctx, block(*lines))


_LOOP_LOCALS = frozenset({"inputData", "inputArray", "items", "results", "errors", "result", "settled", "position"})


def _loop_variable(node: Node, key: str, default: str) -> str:
    name = node.config.get(key) or default
    if not IDENTIFIER_PATTERN.match(name) or name in RESERVED_WORDS or name in _LOOP_LOCALS:
        raise ValueError(f"for-each node '{node.id}' cannot use '{name}' as {key}")
    return name


def _error_message(value: str) -> str:
    return f"{value} instanceof Error ? {value}.message : String({value})"


@register_generator("for-each")
def generate_for_each(node: Node, ctx: GenerationContext) -> str:
    """Iterate over a resolved array inside one durable step.

    Each item is mapped through ``expression`` (default: the item itself).
    Failed items are collected in ``errors`` unless ``continueOnError`` is off.
    """
    config = node.config
    item_name = _loop_variable(node, "itemName", "item")
    index_name = _loop_variable(node, "indexName", "index")
    if item_name == index_name:
        raise ValueError(f"for-each node '{node.id}' uses '{item_name}' for both item and index")

    source = _path_expression(str(config.get("array") or "items"), node, ctx)
    mapped = ctx.resolver.resolve_code(str(config["expression"])) if config.get("expression") else item_name
    limit = int(config.get("maxIterations", 1000))
    continue_on_error = config.get("continueOnError", True)

    lines = [
        f"const inputArray = {source} ?? [];",
        "if (!Array.isArray(inputArray)) {",
        '  throw new Error("for-each expects an array, got " + typeof inputArray);',
        "}",
        f"const items = inputArray.slice(0, {limit});",
        "const results = [];",
        "const errors = [];",
    ]
    if config.get("parallel"):
        lines.extend(
            [
                f"const settled = await Promise.allSettled(items.map(async ({item_name}, {index_name}) => {mapped}));",
                "for (let position = 0; position < settled.length; position++) {",
                '  if (settled[position].status === "fulfilled") {',
                "    results.push(settled[position].value);",
                "  } else {",
            ]
        )
        if not continue_on_error:
            lines.append("    throw settled[position].reason;")
        lines.extend(
            [
                f"    errors.push({{ index: position, error: {_error_message('settled[position].reason')} }});",
                "  }",
                "}",
            ]
        )
    else:
        lines.extend(
            [
                f"for (let {index_name} = 0; {index_name} < items.length; {index_name}++) {{",
                f"  const {item_name} = items[{index_name}];",
                "  try {",
                f"    results.push({mapped});",
                "  } catch (error) {",
            ]
        )
        if not continue_on_error:
            lines.append("    throw error;")
        lines.extend(
            [
                f"    errors.push({{ index: {index_name}, error: {_error_message('error')} }});",
                "  }",
                "}",
            ]
        )
    lines.append("const result = { items, results, count: results.length, errors };")
    return durable_step(node, ctx, block(*lines))
