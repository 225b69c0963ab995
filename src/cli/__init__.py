"""Backfill CLI Package.

Provides command-line interface for the profile embedding backfill.

Usage:
    python -m src.cli run --config config/pipeline_config.yaml
    python -m src.cli run --dry-run
    python -m src.cli checkpoint show
    python -m src.cli checkpoint clear --yes
    python -m src.cli validate config/pipeline_config.yaml
"""

import typer

from src.cli.run import run_command
from src.cli.validate import validate_command
from src.cli.checkpoint import checkpoint_app

# Create main app
app = typer.Typer(help="Resumable profile summary + embedding backfill")

# Register individual commands
app.command(name="run")(run_command)
app.command(name="validate")(validate_command)

# Register sub-applications
app.add_typer(checkpoint_app, name="checkpoint")

__all__ = [
    "app",
    "run_command",
    "validate_command",
    "checkpoint_app",
]
