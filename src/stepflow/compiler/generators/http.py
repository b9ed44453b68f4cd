"""HTTP request generator. Non-2xx responses throw so the platform retries the step."""

import json
from typing import Any

from stepflow.compiler.expressions import js_literal
from stepflow.core.models import Node

from .base import GenerationContext, block, durable_step, register_generator

BODYLESS_METHODS = ("GET", "HEAD")


def _header_pairs(headers: Any) -> list[tuple[str, Any]]:
    if isinstance(headers, dict):
        return [(str(key), value) for key, value in headers.items()]
    pairs = []
    for header in headers or []:
        if isinstance(header, dict) and header.get("key"):
            pairs.append((str(header["key"]), header.get("value", "")))
    return pairs


def _body_expression(body: Any, ctx: GenerationContext) -> tuple[str, str]:
    """Return (JavaScript body expression, content type) or ("", "") for no body."""
    if not isinstance(body, dict):
        return "", ""
    body_type = body.get("type", "none")
    content = body.get("content")
    resolver = ctx.resolver
    if body_type == "none" or content is None:
        return "", ""

    if body_type == "json":
        if isinstance(content, str) and not resolver.has_templates(content):
            try:
                content = json.loads(content)
            except json.JSONDecodeError:
                pass
        return f"JSON.stringify({resolver.render_value(content)})", "application/json"
    if body_type == "form":
        return f"new URLSearchParams({resolver.render_value(content)})", ""
    return f"String({resolver.render_value(content)})", "text/plain"


@register_generator("http-request")
def generate_http_request(node: Node, ctx: GenerationContext) -> str:
    config = node.config
    resolver = ctx.resolver
    method = str(config.get("method") or "GET").upper()
    timeout = int(config.get("timeout") or ctx.settings.default_http_timeout_ms)

    headers = _header_pairs(config.get("headers"))
    body_expr, content_type = ("", "") if method in BODYLESS_METHODS else _body_expression(config.get("body"), ctx)
    if content_type and not any(key.lower() == "content-type" for key, _ in headers):
        headers.append(("Content-Type", content_type))
    header_entries = ", ".join(f"{js_literal(key)}: {resolver.render_value(value)}" for key, value in headers)

    lines = [
        f"const url = {resolver.render_value(config.get('url', ''))};",
        f"const headers = {{ {header_entries} }};" if header_entries else "const headers = {};",
        f"const init = {{ method: {js_literal(method)}, headers, signal: AbortSignal.timeout({timeout}) }};",
    ]
    if body_expr:
        lines.append(f"init.body = {body_expr};")
    lines.extend(
        [
            "const response = await fetch(url, init);",
            "if (!response.ok) {",
            "  throw new Error(`HTTP ${response.status}: ${response.statusText}`);",
            "}",
            'const contentType = response.headers.get("content-type") || "";',
            'const body = contentType.includes("application/json") ? await response.json() : await response.text();',
            "const result = { status: response.status, headers: Object.fromEntries(response.headers.entries()), body };",
        ]
    )
    return durable_step(node, ctx, block(*lines))
