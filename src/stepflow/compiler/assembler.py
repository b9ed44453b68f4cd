"""Module assembly, deployment descriptor and tool manifest generation.

The assembler stitches envelope-wrapped node fragments, in execution order,
into one module. A graph with a tool-input node is assembled in dual mode:
the same workflow is also served as a single MCP tool.
"""

import logging
import re
from typing import Any, Optional

from stepflow.core.models import Binding, BindingUsage, Node
from stepflow.core.settings import CompilerSettings

from .bindings import MCP_OBJECT_BINDING, deployment_sections
from .expressions import js_literal
from .generators.base import indent

logger = logging.getLogger(__name__)

TOOL_MANIFEST_VERSION = "1.0.0"
TOOL_POLL_ATTEMPTS = 60
TOOL_POLL_INTERVAL_MS = 1000

_ZOD_TYPES = {
    "string": "z.string()",
    "number": "z.number()",
    "boolean": "z.boolean()",
    "array": "z.array(z.any())",
    "object": "z.record(z.any())",
}


def slugify(name: str) -> str:
    """Lowercase, dash-separated deployment name.

    Examples:
        >>> slugify("Order Pipeline v2")
        'order-pipeline-v2'
    """
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "workflow"


def entrypoint_class_name(name: str) -> str:
    """PascalCase class name ending in ``Workflow``."""
    words = [word for word in re.split(r"[^A-Za-z0-9]+", name) if word]
    base = "".join(word[:1].upper() + word[1:] for word in words)
    if not base:
        base = "Generated"
    if base[0].isdigit():
        base = "W" + base
    return base if base.endswith("Workflow") else f"{base}Workflow"


def workflow_binding_name(class_name: str) -> str:
    return re.sub(r"[^A-Z0-9]", "_", class_name.upper()) + "_WORKFLOW"


def _single_line(text: str) -> str:
    return " ".join(text.split())


def _parameters(node: Node) -> list[dict[str, Any]]:
    return [p for p in node.config.get("parameters") or [] if isinstance(p, dict) and p.get("name")]


def tool_name(node: Node, workflow_name: str) -> str:
    return node.config.get("toolName") or f"{slugify(workflow_name).replace('-', '_')}_tool"


def build_tool_manifest(node: Node, workflow_name: str) -> dict[str, Any]:
    """JSON-Schema tool manifest derived from a tool-input node's parameter list."""
    properties: dict[str, Any] = {}
    required: list[str] = []
    for parameter in _parameters(node):
        name = parameter["name"]
        param_type = parameter.get("type", "string")
        if param_type == "array":
            schema: dict[str, Any] = {"type": "array", "items": {"type": "string"}}
        elif param_type == "object":
            schema = {"type": "object", "additionalProperties": True}
        else:
            schema = {"type": param_type}
        schema["description"] = parameter.get("description") or f"{name} parameter"
        properties[name] = schema
        if parameter.get("required"):
            required.append(name)

    return {
        "name": tool_name(node, workflow_name),
        "description": node.config.get("description") or f"Execute {workflow_name} via MCP",
        "version": TOOL_MANIFEST_VERSION,
        "inputSchema": {"type": "object", "properties": properties, "required": required},
    }


def _zod_shape(node: Node) -> str:
    fields = []
    for parameter in _parameters(node):
        zod = _ZOD_TYPES.get(parameter.get("type", "string"), "z.any()")
        if parameter.get("description"):
            zod += f".describe({js_literal(parameter['description'])})"
        if not parameter.get("required"):
            zod += ".optional()"
        fields.append(f"{js_literal(parameter['name'])}: {zod}")
    return "{ " + ", ".join(fields) + " }" if fields else "{}"


def _workflow_handler_lines(binding: str) -> list[str]:
    return [
        "const url = new URL(request.url);",
        'const instanceId = url.searchParams.get("instanceId");',
        "if (instanceId) {",
        f"  const instance = await env.{binding}.get(instanceId);",
        "  return Response.json({ id: instanceId, status: await instance.status() });",
        "}",
        "let params = {};",
        'if (request.method === "POST") {',
        "  try {",
        "    params = await request.json();",
        "  } catch {",
        "    params = {};",
        "  }",
        "}",
        f"const instance = await env.{binding}.create({{ id: crypto.randomUUID(), params }});",
        "return Response.json({ id: instance.id, details: await instance.status() });",
    ]


def _entrypoint_class(class_name: str, workflow_name: str, fragments: list[str]) -> str:
    name = js_literal(workflow_name)
    body = "\n\n".join(fragments)
    return "\n".join(
        [
            f"export class {class_name} extends WorkflowEntrypoint {{",
            "  async run(event, step) {",
            f'    console.log(JSON.stringify({{ type: "WF_START", workflow: {name}, timestamp: Date.now(), '
            "instanceId: event.instanceId }));",
            "    const _workflowResults = {};",
            "    const _workflowState = {};",
            "",
            indent(body, "    "),
            "",
            f'    console.log(JSON.stringify({{ type: "WF_END", workflow: {name}, timestamp: Date.now(), '
            "instanceId: event.instanceId }));",
            "    return _workflowResults;",
            "  }",
            "}",
        ]
    )


def _tool_server_class(
    mcp_class: str, binding: str, tool_node: Node, workflow_name: str, output_step: Optional[str]
) -> str:
    manifest = build_tool_manifest(tool_node, workflow_name)
    output = f"status.output?.[{js_literal(output_step)}]" if output_step else "status.output"
    return "\n".join(
        [
            f"export class {mcp_class} extends McpAgent {{",
            f"  server = new McpServer({{ name: {js_literal(manifest['name'])}, "
            f"version: {js_literal(TOOL_MANIFEST_VERSION)} }});",
            "",
            "  async init() {",
            "    this.server.tool(",
            f"      {js_literal(manifest['name'])},",
            f"      {js_literal(manifest['description'])},",
            f"      {_zod_shape(tool_node)},",
            "      async (args) => {",
            f"        const instance = await this.env.{binding}.create({{ id: crypto.randomUUID(), params: args }});",
            "        let status = await instance.status();",
            f"        for (let attempt = 0; attempt < {TOOL_POLL_ATTEMPTS}; attempt++) {{",
            '          if (["complete", "errored", "terminated"].includes(status.status)) break;',
            f"          await new Promise((resolve) => setTimeout(resolve, {TOOL_POLL_INTERVAL_MS}));",
            "          status = await instance.status();",
            "        }",
            f"        const output = {output};",
            '        if (status.status === "complete" && output?.content) return output;',
            "        return {",
            '          content: [{ type: "text", text: JSON.stringify(output ?? status) }],',
            '          isError: status.status !== "complete",',
            "        };",
            "      }",
            "    );",
            "  }",
            "}",
        ]
    )


def assemble_module(
    fragments: list[str],
    class_name: str,
    workflow_name: str,
    tool_node: Optional[Node] = None,
    output_step: Optional[str] = None,
) -> str:
    """Build the complete module source.

    Args:
        fragments: Envelope-wrapped node fragments in execution order
        class_name: Name of the generated entrypoint class
        workflow_name: Display name used in comments and log events
        tool_node: Tool-input node; when given the module is built in dual mode
        output_step: Step name whose result the tool server returns
    """
    binding = workflow_binding_name(class_name)
    imports = ['import { WorkflowEntrypoint } from "cloudflare:workers";']
    if tool_node is not None:
        imports.extend(
            [
                'import { McpAgent } from "agents/mcp";',
                'import { McpServer } from "@modelcontextprotocol/sdk/server/mcp.js";',
                'import { z } from "zod";',
            ]
        )

    sections = [
        f"// Generated by stepflow from workflow {js_literal(_single_line(workflow_name))}",
        "\n".join(imports),
        _entrypoint_class(class_name, workflow_name, fragments),
    ]

    handler = _workflow_handler_lines(binding)
    if tool_node is None:
        handler_block = indent("\n".join(handler), "    ")
        sections.append("\n".join(["export default {", "  async fetch(request, env) {", handler_block, "  },", "};"]))
    else:
        mcp_class = f"{class_name}MCP"
        sections.append(_tool_server_class(mcp_class, binding, tool_node, workflow_name, output_step))
        routes = [
            'if (new URL(request.url).pathname.startsWith("/sse")) {',
            f'  return {mcp_class}.serveSSE("/sse").fetch(request, env, ctx);',
            "}",
            'if (new URL(request.url).pathname.startsWith("/mcp")) {',
            f'  return {mcp_class}.serve("/mcp").fetch(request, env, ctx);',
            "}",
        ]
        sections.append(
            "\n".join(
                [
                    "export default {",
                    "  async fetch(request, env, ctx) {",
                    indent("\n".join(routes + handler), "    "),
                    "  },",
                    "};",
                ]
            )
        )

    return "\n\n".join(sections) + "\n"


def tool_server_bindings(class_name: str, tool_node: Node) -> list[Binding]:
    """Extra bindings a dual-mode module needs: the tool server object and the workflow."""
    usage = [BindingUsage(node_id=tool_node.id, node_type=tool_node.type)]
    return [
        Binding(
            name=MCP_OBJECT_BINDING,
            kind="durable_object",
            required=True,
            description=f"Durable object hosting {class_name}MCP",
            usage_sites=usage,
        ),
        Binding(
            name=workflow_binding_name(class_name),
            kind="workflow",
            required=True,
            description=f"Workflow binding for {class_name}",
            usage_sites=list(usage),
        ),
    ]


def build_deployment_descriptor(
    deployment_name: str,
    class_name: str,
    bindings: list[Binding],
    settings: CompilerSettings,
    dual_mode: bool = False,
) -> dict[str, Any]:
    """Deployment descriptor (wrangler configuration) for the compiled module."""
    slug = slugify(deployment_name)
    descriptor: dict[str, Any] = {
        "name": f"{slug}-worker",
        "main": settings.main_module,
        "compatibility_date": settings.compatibility_date,
        "workflows": [{"name": slug, "binding": workflow_binding_name(class_name), "class_name": class_name}],
    }
    descriptor.update(deployment_sections(bindings))
    if dual_mode:
        mcp_class = f"{class_name}MCP"
        descriptor["compatibility_flags"] = ["nodejs_compat"]
        descriptor["durable_objects"] = {"bindings": [{"class_name": mcp_class, "name": MCP_OBJECT_BINDING}]}
        descriptor["migrations"] = [{"tag": "v1", "new_sqlite_classes": [mcp_class]}]
    return descriptor
