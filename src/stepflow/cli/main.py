"""Command-line interface for stepflow."""

import json
import sys
from pathlib import Path
from typing import Any, Optional

import click

from stepflow.compiler import WorkflowCompiler, decompile_module
from stepflow.core.exceptions import StepflowError
from stepflow.core.graph_schema import load_graph_file
from stepflow.core.models import CompiledArtifact, CompileOptions
from stepflow.core.settings import SettingsManager
from stepflow.registry import NodeRegistry

from .commands.nodes import nodes
from .commands.settings import settings
from .logging_config import configure_logging

VERSION = "0.1.0"


def _load_registry(registry_path: Optional[str]) -> NodeRegistry:
    if registry_path:
        return NodeRegistry.from_file(registry_path, include_builtin=True)
    return NodeRegistry.builtin()


def _load_document(graph_file: str) -> dict[str, Any]:
    try:
        return load_graph_file(graph_file)
    except (OSError, ValueError) as e:
        click.echo(f"❌ Could not read graph: {e}", err=True)
        sys.exit(1)


def _fail(error: Exception) -> None:
    click.echo(f"❌ {error}", err=True)
    sys.exit(1)


def _write_artifact(artifact: CompiledArtifact, out_dir: Path, main_module: str) -> list[Path]:
    """Write the files a deployment needs under out_dir."""
    written = []
    module_path = out_dir / main_module
    module_path.parent.mkdir(parents=True, exist_ok=True)
    module_path.write_text(artifact.module_source, encoding="utf-8")
    written.append(module_path)

    files: dict[str, Any] = {
        "wrangler.json": artifact.deployment_descriptor,
        "bindings.json": [binding.to_dict() for binding in artifact.bindings],
    }
    if artifact.tool_manifest is not None:
        files["mcp-manifest.json"] = artifact.tool_manifest
    for name, payload in files.items():
        path = out_dir / name
        path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        written.append(path)
    return written


@click.group(invoke_without_command=True)
@click.option("--verbose", "-v", is_flag=True, help="Show progress logs")
@click.option("--version", is_flag=True, help="Show the stepflow version")
@click.pass_context
def main(ctx: click.Context, verbose: bool, version: bool) -> None:
    """stepflow - compile workflow graphs into durable workflow modules."""
    configure_logging(verbose)
    if version:
        click.echo(f"stepflow version {VERSION}")
        ctx.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@main.command(name="compile")
@click.argument("graph_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--name", "deployment_name", help="Deployment name (defaults to the graph name)")
@click.option("--class-name", help="Entrypoint class name")
@click.option("--entry", "entry_node_id", help="Explicit entry node id")
@click.option("--out-dir", type=click.Path(file_okay=False), help="Write module and descriptors here")
@click.option("--json", "output_json", is_flag=True, help="Print the full artifact as JSON")
@click.option("--allow-cycles", is_flag=True, help="Compile cyclic graphs in declaration order")
@click.option("--registry", "registry_path", type=click.Path(exists=True, dir_okay=False), help="Node catalog JSON")
def compile_command(
    graph_file: str,
    deployment_name: str | None,
    class_name: str | None,
    entry_node_id: str | None,
    out_dir: str | None,
    output_json: bool,
    allow_cycles: bool,
    registry_path: str | None,
) -> None:
    """Compile GRAPH_FILE into a workflow module."""
    document = _load_document(graph_file)
    compiler_settings = SettingsManager().load().compiler
    options = CompileOptions(
        deployment_name=deployment_name,
        class_name=class_name,
        entry_node_id=entry_node_id,
        cycle_policy="fallback" if allow_cycles else None,
    )
    try:
        compiler = WorkflowCompiler(_load_registry(registry_path), compiler_settings)
        artifact = compiler.compile(document, options)
    except StepflowError as e:
        _fail(e)
        return

    for warning in artifact.warnings:
        click.echo(f"⚠️  {warning}", err=True)

    if out_dir:
        for path in _write_artifact(artifact, Path(out_dir), compiler_settings.main_module):
            click.echo(f"✓ Wrote {path}")
    elif output_json:
        click.echo(json.dumps(artifact.to_dict(), indent=2))
    else:
        click.echo(artifact.module_source, nl=False)


@main.command(name="validate")
@click.argument("graph_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--entry", "entry_node_id", help="Explicit entry node id")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--registry", "registry_path", type=click.Path(exists=True, dir_okay=False), help="Node catalog JSON")
def validate_command(graph_file: str, entry_node_id: str | None, output_json: bool, registry_path: str | None) -> None:
    """Validate GRAPH_FILE and report errors and warnings."""
    document = _load_document(graph_file)
    try:
        report = WorkflowCompiler(_load_registry(registry_path)).validate(document, entry_node_id)
    except StepflowError as e:
        _fail(e)
        return

    if output_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        for error in report.errors:
            click.echo(f"❌ {error}")
        for warning in report.warnings:
            click.echo(f"⚠️  {warning}")
        if report.is_valid:
            click.echo("✓ Graph is valid")
    if not report.is_valid:
        sys.exit(1)


@main.command(name="decompile")
@click.argument("module_file", type=click.Path(exists=True, dir_okay=False))
def decompile_command(module_file: str) -> None:
    """Recover a graph skeleton from a generated MODULE_FILE."""
    try:
        graph = decompile_module(Path(module_file).read_text(encoding="utf-8"))
    except ValueError as e:
        _fail(e)
        return
    click.echo(json.dumps(graph, indent=2))


main.add_command(nodes)
main.add_command(settings)
