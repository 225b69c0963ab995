"""Run command for the embedding backfill.

Handles pipeline execution and result display.
"""

import asyncio
from pathlib import Path

import typer

from src.cli.utils import (
    DEFAULT_CONFIG_PATH,
    display_error,
    display_info,
    display_success,
    display_warning,
    handle_errors,
    load_config,
    logger,
)
from src.models.config import PipelineConfig
from src.observability import (
    bind_context,
    clear_context,
    correlation_id_context,
    new_run_id,
    write_metrics_textfile,
)
from src.orchestration import BatchOrchestrator, RunResult, RunStatus

EXIT_HALTED = 2
EXIT_INTERRUPTED = 130


@handle_errors
def run_command(
    config_path: Path = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        "-c",
        help="Path to pipeline config YAML",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Validate config and show the resume point only"
    ),
):
    """Generate summaries and embeddings for users that lack them."""
    config = load_config(config_path)

    orchestrator = BatchOrchestrator.from_config(config)

    if dry_run:
        try:
            _display_dry_run(config, orchestrator)
        finally:
            orchestrator.checkpoint_service.close()
        return

    run_id = new_run_id()
    display_info(f"Starting backfill run {run_id}...")

    # Carried by every entry of the run, including enrichment tasks
    bind_context(table=config.store.table, checkpoint=config.checkpoint.name)

    with correlation_id_context(run_id):
        try:
            result = asyncio.run(orchestrator.run())
        except KeyboardInterrupt:
            logger.warning("run_interrupted", run_id=run_id)
            display_warning("Interrupted. Progress up to the last page is checkpointed.")
            raise typer.Exit(code=EXIT_INTERRUPTED)
        finally:
            write_metrics_textfile(config.metrics_textfile)
            orchestrator.checkpoint_service.close()
            clear_context()

    _display_results(result)

    if result.status == RunStatus.HALTED:
        raise typer.Exit(code=EXIT_HALTED)


def _display_dry_run(config: PipelineConfig, orchestrator: BatchOrchestrator) -> None:
    checkpoint = orchestrator.checkpoint_service.load()

    display_success("Dry run: Configuration valid.")
    typer.echo(f" - Source: {config.store.url} ({config.store.table})")
    typer.echo(f" - Page size: {config.batch.page_size}")
    typer.echo(f" - Parallel limit: {config.batch.parallel_limit}")
    typer.echo(f" - Max retries: {config.batch.max_retries}")
    typer.echo(f" - Delay between requests: {config.batch.delay_between_requests_ms}ms")
    typer.echo(f" - Resume offset: {checkpoint.last_processed_offset}")
    typer.echo(f" - Previously failed keys: {len(checkpoint.failed_keys)}")


def _display_results(result: RunResult) -> None:
    typer.echo("")
    if result.status == RunStatus.COMPLETED:
        typer.secho("Processing completed successfully!", fg=typer.colors.GREEN, bold=True)
    else:
        display_error("Stopped due to consecutive errors. Progress saved to checkpoint.")

    typer.echo(f"  Processed: {result.stats.processed}")
    typer.echo(
        f"  Skipped: {result.stats.skipped}"
        f" ({result.stats.already_enriched} already enriched)"
    )
    typer.echo(f"  Failed: {result.stats.failed}")
    typer.echo(f"  Pages: {result.pages_processed}")
    typer.echo(f"  Offset: {result.start_offset} -> {result.final_offset}")
    typer.echo(f"  Total processed (all runs): {result.total_processed}")
    typer.echo(f"  Store retries: {result.store_retries}")

    if result.failed_keys:
        display_warning(f"  Failed keys recorded: {result.failed_keys}")
