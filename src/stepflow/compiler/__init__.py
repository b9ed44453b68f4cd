"""Workflow graph to runtime module compiler."""

from .assembler import build_tool_manifest, entrypoint_class_name, slugify, workflow_binding_name
from .bindings import BindingCollector, d1_database, kv_namespace, sanitize_binding_name
from .compiler import WorkflowCompiler, compile_graph
from .decompiler import decompile_module
from .expressions import ExpressionResolver
from .generators import GenerationContext, register_generator, registered_types
from .pipeline import create_compile_flow
from .step_names import build_step_names, to_identifier

__all__ = [
    "BindingCollector",
    "ExpressionResolver",
    "GenerationContext",
    "WorkflowCompiler",
    "build_step_names",
    "build_tool_manifest",
    "compile_graph",
    "create_compile_flow",
    "d1_database",
    "decompile_module",
    "entrypoint_class_name",
    "kv_namespace",
    "register_generator",
    "registered_types",
    "sanitize_binding_name",
    "slugify",
    "to_identifier",
    "workflow_binding_name",
]
