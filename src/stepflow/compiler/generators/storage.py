"""Key-value and D1 database generators.

D1 failures are caught and returned as ``{success: false, error}``; KV
failures propagate like any other step error.
"""

import logging
from typing import Any

from stepflow.compiler.bindings import d1_database, kv_namespace
from stepflow.compiler.expressions import js_literal
from stepflow.core.models import Node

from .base import GenerationContext, block, durable_step, register_generator
from .flow import value_source_expression

logger = logging.getLogger(__name__)

KV_READ_TYPES = ("text", "json", "arrayBuffer", "stream")


def _env_binding(name: str) -> str:
    return f"this.env[{js_literal(name)}]"


@register_generator("kv-get")
def generate_kv_get(node: Node, ctx: GenerationContext) -> str:
    namespace = kv_namespace(node, ctx.registry)
    read_type = node.config.get("type", "text")
    if read_type not in KV_READ_TYPES:
        read_type = "text"
    lines = [
        f"const key = {ctx.resolver.render_value(node.config.get('key', 'default-key'))};",
        f"const value = await {_env_binding(namespace)}.get(key, {js_literal(read_type)});",
    ]
    if node.config.get("throwIfMissing"):
        lines.extend(["if (value === null) {", "  throw new Error(`Key not found: ${key}`);", "}"])
    lines.append("const result = { value, exists: value !== null, metadata: value !== null ? { key } : null };")
    return durable_step(node, ctx, block(*lines))


def _put_options(options: Any, ctx: GenerationContext) -> str:
    if not isinstance(options, dict):
        return ""
    entries = []
    for field in ("expirationTtl", "expiration"):
        if options.get(field):
            entries.append(f"{field}: {int(options[field])}")
    if options.get("metadata"):
        entries.append(f"metadata: {ctx.resolver.render_value(options['metadata'])}")
    return ", { " + ", ".join(entries) + " }" if entries else ""


@register_generator("kv-put")
def generate_kv_put(node: Node, ctx: GenerationContext) -> str:
    namespace = kv_namespace(node, ctx.registry)
    value_config = node.config.get("value")
    if isinstance(value_config, dict):
        value = value_source_expression(value_config, ctx.resolver, key="content")
    else:
        value = ctx.resolver.render_value(value_config) if value_config is not None else "inputData"

    return durable_step(
        node,
        ctx,
        block(
            f"const key = {ctx.resolver.render_value(node.config.get('key', 'default-key'))};",
            f"const value = {value};",
            'const stored = typeof value === "string" ? value : JSON.stringify(value);',
            f"await {_env_binding(namespace)}.put(key, stored{_put_options(node.config.get('options'), ctx)});",
            "const result = { success: true, key };",
        ),
    )


def _param_values(params: Any, ctx: GenerationContext) -> list[str]:
    values = []
    for param in params or []:
        raw = param.get("value") if isinstance(param, dict) else param
        values.append(ctx.resolver.render_value(raw))
    return values


@register_generator("d1-query")
def generate_d1_query(node: Node, ctx: GenerationContext) -> str:
    database = d1_database(node)
    query = node.config.get("query") or "SELECT 1"
    if ctx.resolver.has_templates(query):
        logger.warning(f"Node '{node.id}' interpolates templates into SQL text; prefer bound params")

    params = _param_values(node.config.get("params"), ctx)
    statement = f"{_env_binding(database)}.prepare({ctx.resolver.render_value(query)})"
    if params:
        statement += f".bind({', '.join(params)})"

    return_type = node.config.get("returnType", "all")
    if return_type == "first":
        execute = [
            "const row = await statement.first();",
            "result = { success: true, results: row === null ? [] : [row], row, meta: {} };",
        ]
    elif return_type == "run":
        execute = [
            "const runResult = await statement.run();",
            "result = { success: runResult.success ?? true, results: [], meta: runResult.meta ?? {} };",
        ]
    else:
        execute = [
            "const queryResult = await statement.all();",
            "result = { success: queryResult.success ?? true, results: queryResult.results ?? [], "
            "meta: queryResult.meta ?? {} };",
        ]

    return durable_step(
        node,
        ctx,
        block(
            "let result;",
            "try {",
            f"  const statement = {statement};",
            *(f"  {line}" for line in execute),
            "} catch (error) {",
            "  const message = error instanceof Error ? error.message : String(error);",
            "  result = { success: false, error: message, results: [], meta: {} };",
            "}",
        ),
    )
