"""Settings commands for stepflow CLI."""

import json
import sys

import click
from pydantic import ValidationError

from stepflow.core.settings import CompilerSettings, SettingsManager


@click.group(name="settings")
def settings() -> None:
    """Show and change compiler settings."""
    pass


@settings.command(name="show")
def show_settings() -> None:
    """Show the effective settings, environment overrides included."""
    manager = SettingsManager()
    click.echo(f"Settings file: {manager.settings_path}")
    click.echo(json.dumps(manager.load().model_dump(), indent=2))


@settings.command(name="set")
@click.argument("key", type=click.Choice(sorted(CompilerSettings.model_fields)))
@click.argument("value")
def set_setting(key: str, value: str) -> None:
    """Set a compiler setting, e.g. ``stepflow settings set cycle_policy fallback``."""
    manager = SettingsManager()
    current = manager.reload()
    try:
        updated = CompilerSettings.model_validate({**current.compiler.model_dump(), key: value})
    except ValidationError as e:
        click.echo(f"❌ Invalid value for {key}: {e.errors()[0]['msg']}", err=True)
        sys.exit(1)
    current.compiler = updated
    manager.save(current)
    click.echo(f"✓ Set {key} = {getattr(updated, key)}")
