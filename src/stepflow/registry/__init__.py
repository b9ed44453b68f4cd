"""Node catalog consumed read-only by the compiler."""

from .builtin_catalog import (
    BUILTIN_NODE_DEFINITIONS,
    DEFAULT_AI_BINDING,
    DEFAULT_AI_MODEL,
    DEFAULT_D1_BINDING,
    DEFAULT_KV_BINDING,
)
from .node_definition import BindingRequirement, NodeDefinition, NodeMetadata
from .registry import NodeRegistry

__all__ = [
    "BUILTIN_NODE_DEFINITIONS",
    "DEFAULT_AI_BINDING",
    "DEFAULT_AI_MODEL",
    "DEFAULT_D1_BINDING",
    "DEFAULT_KV_BINDING",
    "BindingRequirement",
    "NodeDefinition",
    "NodeMetadata",
    "NodeRegistry",
]
