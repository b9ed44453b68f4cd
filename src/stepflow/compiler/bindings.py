"""Binding name resolution and collection.

The name rules here are shared by the code generators and the collector, so
the binding a fragment reads from ``this.env`` is always the binding the
deployment descriptor declares.
"""

import logging
import re
from typing import Any, Optional

from stepflow.core.models import Binding, BindingUsage, Node, WorkflowGraph
from stepflow.core.settings import CompilerSettings
from stepflow.registry import (
    DEFAULT_AI_BINDING,
    DEFAULT_D1_BINDING,
    DEFAULT_KV_BINDING,
    BindingRequirement,
    NodeRegistry,
)

logger = logging.getLogger(__name__)

AI_BINDING = DEFAULT_AI_BINDING
MCP_OBJECT_BINDING = "MCP_OBJECT"

_UNSAFE_BINDING_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def sanitize_binding_name(name: str) -> str:
    return _UNSAFE_BINDING_CHARS.sub("_", name)


def kv_namespace(node: Node, registry: NodeRegistry, field: str = "namespace") -> str:
    """Resolve the KV binding a node reads or writes.

    Priority: an explicit config value other than ``"default"``, then the node
    type's schema default for the field, then ``"KV"``.
    """
    configured = node.config.get(field)
    if isinstance(configured, str) and configured and configured != "default":
        name = configured
    else:
        name = registry.schema_default(node.type, field) or DEFAULT_KV_BINDING
    return sanitize_binding_name(str(name))


def d1_database(node: Node, field: str = "database") -> str:
    """Resolve the D1 binding: config value, else ``"DB"``."""
    configured = node.config.get(field)
    return sanitize_binding_name(str(configured or DEFAULT_D1_BINDING))


def ai_cache_ttl(node: Node, settings: CompilerSettings) -> int:
    """Cache TTL in seconds for an AI node; 0 means no caching.

    ai-gateway caches by default, workers-ai only when asked to.
    """
    configured = node.config.get("cacheTTL")
    if configured is not None:
        return max(int(configured), 0)
    return settings.ai_cache_ttl if node.type == "ai-gateway" else 0


def ai_cache_namespace(node: Node, registry: NodeRegistry, settings: CompilerSettings) -> Optional[str]:
    if ai_cache_ttl(node, settings) <= 0:
        return None
    return kv_namespace(node, registry, field="cacheNamespace")


def resolve_requirement_name(
    node: Node,
    requirement: BindingRequirement,
    registry: NodeRegistry,
    settings: CompilerSettings,
) -> Optional[str]:
    """Concrete binding name for one requirement of one node, or None if unused."""
    if requirement.kind == "ai":
        return AI_BINDING
    if requirement.kind == "kv":
        if requirement.config_field == "cacheNamespace":
            return ai_cache_namespace(node, registry, settings)
        if requirement.config_field:
            return kv_namespace(node, registry, field=requirement.config_field)
        return sanitize_binding_name(requirement.name)
    if requirement.kind == "d1":
        return d1_database(node, field=requirement.config_field or "database")

    configured = node.config.get(requirement.config_field) if requirement.config_field else None
    return sanitize_binding_name(str(configured or requirement.name))


class BindingCollector:
    """Aggregates the bindings a graph needs, merged by (kind, name)."""

    def __init__(self, registry: NodeRegistry, settings: Optional[CompilerSettings] = None):
        self.registry = registry
        self.settings = settings or CompilerSettings()

    def collect(self, graph: WorkflowGraph) -> list[Binding]:
        merged: dict[tuple[str, str], Binding] = {}
        for node in graph.nodes:
            definition = self.registry.get_definition(node.type)
            if definition is None:
                continue
            for requirement in definition.bindings:
                name = resolve_requirement_name(node, requirement, self.registry, self.settings)
                if name is None:
                    continue
                key = (requirement.kind, name)
                binding = merged.get(key)
                if binding is None:
                    binding = Binding(
                        name=name,
                        kind=requirement.kind,
                        required=requirement.required,
                        description=requirement.description or None,
                    )
                    merged[key] = binding
                else:
                    binding.required = binding.required or requirement.required
                binding.usage_sites.append(BindingUsage(node_id=node.id, node_type=node.type))

        bindings = list(merged.values())
        logger.debug(f"Collected {len(bindings)} binding(s)", extra={"phase": "bindings"})
        return bindings


def deployment_sections(bindings: list[Binding]) -> dict[str, Any]:
    """Descriptor sections that declare resource bindings for deployment."""
    sections: dict[str, Any] = {}
    kv = [{"binding": b.name, "id": "", "preview_id": ""} for b in bindings if b.kind == "kv"]
    d1 = [{"binding": b.name, "database_name": b.name.lower(), "database_id": ""} for b in bindings if b.kind == "d1"]
    r2 = [{"binding": b.name, "bucket_name": b.name.lower().replace("_", "-")} for b in bindings if b.kind == "r2"]
    if kv:
        sections["kv_namespaces"] = kv
    if d1:
        sections["d1_databases"] = d1
    if any(b.kind == "ai" for b in bindings):
        sections["ai"] = {"binding": AI_BINDING}
    if r2:
        sections["r2_buckets"] = r2
    return sections
