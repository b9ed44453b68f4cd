"""Per-node code generators, registered by node type.

Importing this package registers every built-in generator.
"""

from . import ai, flow, http, storage, utils
from .base import (
    GenerationContext,
    generate_node_code,
    get_generator,
    register_generator,
    registered_types,
    wrap_in_envelope,
)

__all__ = [
    "GenerationContext",
    "ai",
    "flow",
    "generate_node_code",
    "get_generator",
    "http",
    "register_generator",
    "registered_types",
    "storage",
    "utils",
    "wrap_in_envelope",
]
