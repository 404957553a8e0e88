"""
Main CLI entry point for the Supabase Migrator.

This module provides the command-line interface using Click with Rich
formatting for progress and run summaries.
"""

import asyncio
import sys
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from supabase_migrator import __version__
from supabase_migrator.core.exceptions import ConfigurationError
from supabase_migrator.models.config import MigrationConfig, load_config
from supabase_migrator.models.session import MigrationSession, RunState, Stage, StageResult, StageStatus
from supabase_migrator.monitoring.report import load_failed_object_ids, render_summary, write_report
from supabase_migrator.orchestrator.orchestrator import MigrationOrchestrator
from supabase_migrator.transfer.base import TransferProgress
from supabase_migrator.utils.logging import setup_logging

console = Console()

EXIT_ABORTED = 1
EXIT_OBJECT_FAILURES = 2

STAGE_CHOICES = [stage.value for stage in Stage]


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.option('--log-file', type=click.Path(dir_okay=False), help='Also write logs to this file')
@click.option('--json-logs', is_flag=True, help='Emit structured JSON log lines')
@click.pass_context
def main(ctx: click.Context, version: bool, verbose: bool, log_file: Optional[str], json_logs: bool):
    """
    Supabase Migrator

    Copies a Supabase project's database, migration history, encryption
    root key and storage objects to another instance.
    """
    if version:
        console.print(f"Supabase Migrator version {__version__}")
        sys.exit(0)

    setup_logging(
        level="DEBUG" if verbose else "INFO",
        log_file=log_file,
        structured_logging=json_logs,
        console=console
    )

    if ctx.invoked_subcommand is None:
        console.print(f"[bold blue]Supabase Migrator[/bold blue] {__version__}")
        console.print("\n[yellow]Use --help to see available commands[/yellow]")
        console.print("\n[dim]Quick start:[/dim]")
        console.print("  [cyan]supabase-migrator migrate -c migration.yaml[/cyan]  - Run the full migration")
        console.print("  [cyan]supabase-migrator storage -c migration.yaml[/cyan]  - Copy storage objects only")


def _load(config_path: Optional[str]) -> MigrationConfig:
    try:
        return load_config(config_path)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {escape(e.message)}")
        sys.exit(EXIT_ABORTED)


def _execute(
    config: MigrationConfig,
    stages: List[Stage],
    object_ids: Optional[List[str]] = None
) -> MigrationSession:
    orchestrator = MigrationOrchestrator(config)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Starting migration...", total=None)

        def on_stage(stage: Stage, result: StageResult):
            if result.status == StageStatus.RUNNING:
                progress.update(task, description=result.title)

        def on_transfer(snapshot: TransferProgress):
            progress.update(
                task,
                description=(
                    f"Migrating storage objects: {snapshot.transferred_files} done, "
                    f"{snapshot.failed_files} failed"
                )
            )

        orchestrator.add_progress_callback(on_stage)
        orchestrator.set_transfer_progress_callback(on_transfer)
        return asyncio.run(orchestrator.run(stages=stages, object_ids=object_ids))


def _finish(session: MigrationSession, report_file: Optional[str], strict: bool) -> None:
    render_summary(session, console)

    if report_file:
        path = write_report(session, report_file)
        console.print(f"[dim]Report written to {escape(str(path))}[/dim]")

    if session.state == RunState.ABORTED:
        sys.exit(EXIT_ABORTED)

    transfer = session.transfer_report or {}
    if strict and transfer.get("failed_count"):
        sys.exit(EXIT_OBJECT_FAILURES)


@main.command()
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True, dir_okay=False),
              help='Configuration file (YAML or JSON)')
@click.option('--skip', 'skip', multiple=True, type=click.Choice(STAGE_CHOICES),
              help='Skip a stage (repeatable)')
@click.option('--report', 'report_file', type=click.Path(dir_okay=False), help='Write a JSON report to this file')
@click.option('--strict', is_flag=True, help='Exit with status 2 if any storage object failed')
def migrate(config_path: Optional[str], skip: Tuple[str, ...], report_file: Optional[str], strict: bool):
    """Run the full migration pipeline."""
    config = _load(config_path)
    skipped = set(config.options.skip_stages) | {Stage(value) for value in skip}
    stages = [stage for stage in Stage if stage not in skipped]

    session = _execute(config, stages)
    _finish(session, report_file or config.options.report_file, strict)


@main.command()
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True, dir_okay=False),
              help='Configuration file (YAML or JSON)')
@click.option('--retry-failed', 'retry_report', type=click.Path(exists=True, dir_okay=False),
              help='Only transfer the objects listed as failed in this JSON report')
@click.option('--concurrency', type=click.IntRange(1, 32), help='Objects transferred in parallel')
@click.option('--report', 'report_file', type=click.Path(dir_okay=False), help='Write a JSON report to this file')
@click.option('--strict', is_flag=True, help='Exit with status 2 if any storage object failed')
def storage(
    config_path: Optional[str],
    retry_report: Optional[str],
    concurrency: Optional[int],
    report_file: Optional[str],
    strict: bool
):
    """Copy storage objects only."""
    config = _load(config_path)
    if concurrency:
        config.storage.max_concurrency = concurrency

    object_ids = None
    if retry_report:
        try:
            object_ids = load_failed_object_ids(retry_report)
        except ConfigurationError as e:
            console.print(f"[red]{escape(e.message)}[/red]")
            sys.exit(EXIT_ABORTED)
        if not object_ids:
            console.print("[green]No failed objects in the report, nothing to retry[/green]")
            return
        console.print(f"Retrying {len(object_ids)} failed objects")

    session = _execute(config, [Stage.OBJECT_TRANSFER], object_ids=object_ids)
    _finish(session, report_file or config.options.report_file, strict)


if __name__ == "__main__":
    main()
