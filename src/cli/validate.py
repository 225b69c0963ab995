"""Validate command for configuration files."""

from pathlib import Path

import typer

from src.services.config_manager import ConfigManager
from src.cli.utils import handle_errors, display_success, display_error


@handle_errors
def validate_command(
    config_path: Path = typer.Argument(..., help="Config file to validate"),
):
    """Validate configuration file syntax and semantics."""
    try:
        manager = ConfigManager(config_path=str(config_path))
        config = manager.load_config()
    except Exception as e:
        display_error(f"Validation failed: {e}")
        raise typer.Exit(code=1)

    display_success("Configuration is valid! ✅")
    typer.echo(f" - Table: {config.store.table} (key: {config.store.key_field})")
    typer.echo(f" - Checkpoint: {config.checkpoint.backend.value} in {config.checkpoint.checkpoint_dir}")
