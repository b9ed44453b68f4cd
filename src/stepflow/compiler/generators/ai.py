"""Model inference generators for ai-gateway and workers-ai nodes."""

from typing import Optional

from stepflow.compiler.bindings import AI_BINDING, ai_cache_namespace, ai_cache_ttl
from stepflow.compiler.expressions import js_literal
from stepflow.core.models import Node

from .base import GenerationContext, block, durable_step, register_generator


def _inference_options(node: Node, default_temperature: Optional[float]) -> list[str]:
    options = []
    temperature = node.config.get("temperature", default_temperature)
    if temperature is not None:
        options.append(f"temperature: {js_literal(temperature)}")
    if node.config.get("maxTokens") is not None:
        options.append(f"max_tokens: {int(node.config['maxTokens'])}")
    return options


def _cache_lines(node: Node, ctx: GenerationContext) -> tuple[list[str], list[str]]:
    """Lines that read the cache before the call and write it after."""
    namespace = ai_cache_namespace(node, ctx.registry, ctx.settings)
    if namespace is None:
        return [], []
    cache = f"this.env[{js_literal(namespace)}]"
    before = [
        'const digest = await crypto.subtle.digest("SHA-256", new TextEncoder().encode(model + ":" + prompt));',
        'const cacheKey = "ai:" + Array.from(new Uint8Array(digest), (b) => b.toString(16).padStart(2, "0")).join("");',
        f'const cached = await {cache}.get(cacheKey, "json");',
        "if (cached !== null) {",
        f"  {ctx.state_ref(node)} = {{ input: inputData, output: cached }};",
        "  return cached;",
        "}",
    ]
    after = [
        f"await {cache}.put(cacheKey, JSON.stringify(result), {{ expirationTtl: {ai_cache_ttl(node, ctx.settings)} }});",
    ]
    return before, after


def _model_and_prompt(node: Node, ctx: GenerationContext) -> list[str]:
    model = node.config.get("model") or ctx.settings.default_ai_model
    prompt = node.config.get("prompt")
    prompt_expr = ctx.resolver.render_value(prompt) if prompt is not None else "JSON.stringify(inputData)"
    return [f"const model = {ctx.resolver.render_value(model)};", f"const prompt = String({prompt_expr});"]


@register_generator("ai-gateway")
def generate_ai_gateway(node: Node, ctx: GenerationContext) -> str:
    before, after = _cache_lines(node, ctx)
    options = ", ".join(['messages: [{ role: "user", content: prompt }]', *_inference_options(node, 0.7)])
    call = f"await this.env.{AI_BINDING}.run(model, {{ {options} }}"
    if node.config.get("gatewayId"):
        call += f", {{ gateway: {{ id: {js_literal(node.config['gatewayId'])} }} }}"
    call += ")"
    return durable_step(
        node,
        ctx,
        block(
            *_model_and_prompt(node, ctx),
            *before,
            f"const response = {call};",
            "const result = { response, text: response?.response ?? response?.text ?? JSON.stringify(response), "
            "usage: response?.usage ?? null };",
            *after,
        ),
    )


@register_generator("workers-ai")
def generate_workers_ai(node: Node, ctx: GenerationContext) -> str:
    before, after = _cache_lines(node, ctx)
    options = ", ".join(["prompt", *_inference_options(node, None)])
    return durable_step(
        node,
        ctx,
        block(
            *_model_and_prompt(node, ctx),
            *before,
            f"const response = await this.env.{AI_BINDING}.run(model, {{ {options} }});",
            "const result = { response, text: response?.response ?? JSON.stringify(response) };",
            *after,
        ),
    )
