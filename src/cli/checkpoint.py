"""Checkpoint commands for inspecting and resetting run progress."""

import json
from pathlib import Path

import typer

from src.cli.utils import (
    DEFAULT_CONFIG_PATH,
    display_error,
    display_success,
    display_warning,
    handle_errors,
    load_config,
)
from src.services.checkpoint_service import CheckpointService

# Create checkpoint sub-app
checkpoint_app = typer.Typer(help="Inspect or reset the backfill checkpoint")


@checkpoint_app.command(name="show")
@handle_errors
def checkpoint_show(
    config_path: Path = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to pipeline config YAML"
    ),
):
    """Print the persisted checkpoint."""
    config = load_config(config_path)
    service = CheckpointService(config.checkpoint)

    try:
        if not service.exists():
            display_warning("No checkpoint found. The next run starts from offset 0.")
            return

        checkpoint = service.load()
        typer.echo(json.dumps(checkpoint.to_record(), indent=2))
    finally:
        service.close()


@checkpoint_app.command(name="clear")
@handle_errors
def checkpoint_clear(
    config_path: Path = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c", help="Path to pipeline config YAML"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete the checkpoint, including the failed-key list."""
    config = load_config(config_path)
    service = CheckpointService(config.checkpoint)

    try:
        if not service.exists():
            display_warning("No checkpoint to clear.")
            return

        if not yes:
            typer.confirm(
                "This resets the offset to 0 and forgets failed keys. Continue?",
                abort=True,
            )

        cleared = service.clear()
    finally:
        service.close()

    if cleared:
        display_success("Checkpoint cleared.")
    else:
        display_error("Failed to clear checkpoint.")
        raise typer.Exit(code=1)
