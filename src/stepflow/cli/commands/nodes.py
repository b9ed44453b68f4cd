"""Node catalog commands for stepflow CLI."""

import json
import sys

import click

from stepflow.compiler import registered_types
from stepflow.core.exceptions import RegistryError
from stepflow.registry import NodeRegistry


def _registry(registry_path: str | None) -> NodeRegistry:
    if not registry_path:
        return NodeRegistry.builtin()
    try:
        return NodeRegistry.from_file(registry_path, include_builtin=True)
    except RegistryError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)


@click.group(name="nodes")
def nodes() -> None:
    """Browse the node catalog."""
    pass


@nodes.command(name="list")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--registry", "registry_path", type=click.Path(exists=True, dir_okay=False), help="Node catalog JSON")
def list_nodes(output_json: bool, registry_path: str | None) -> None:
    """List available node types."""
    registry = _registry(registry_path)
    generated = set(registered_types())
    rows = [
        {
            "type": definition.type,
            "name": definition.metadata.name,
            "category": definition.metadata.category,
            "description": definition.metadata.description,
            "hasGenerator": definition.type in generated,
        }
        for definition in registry.definitions()
    ]
    if output_json:
        click.echo(json.dumps(rows, indent=2))
        return

    width = max((len(row["type"]) for row in rows), default=0)
    for row in rows:
        marker = "" if row["hasGenerator"] else "  (passthrough)"
        click.echo(f"{row['type']:<{width}}  [{row['category']}] {row['description']}{marker}")


@nodes.command(name="describe")
@click.argument("node_type")
@click.option("--registry", "registry_path", type=click.Path(exists=True, dir_okay=False), help="Node catalog JSON")
def describe_node(node_type: str, registry_path: str | None) -> None:
    """Show the config schema and bindings of NODE_TYPE."""
    definition = _registry(registry_path).get_definition(node_type)
    if definition is None:
        click.echo(f"❌ Unknown node type '{node_type}'", err=True)
        sys.exit(1)
    click.echo(json.dumps(definition.model_dump(by_alias=True, exclude_none=True), indent=2))


@nodes.command(name="export")
@click.argument("output_path", type=click.Path(dir_okay=False))
@click.option("--registry", "registry_path", type=click.Path(exists=True, dir_okay=False), help="Node catalog JSON")
def export_nodes(output_path: str, registry_path: str | None) -> None:
    """Write the node catalog to OUTPUT_PATH as an editable JSON file."""
    registry = _registry(registry_path)
    try:
        registry.save(output_path)
    except OSError as e:
        click.echo(f"❌ Failed to write node catalog: {e}", err=True)
        sys.exit(1)
    click.echo(f"✓ Exported {len(registry.list_types())} node type(s) to {output_path}")
