"""
Run summaries and reports.

render_summary() prints the stage-by-stage outcome of a run, plus the
failed objects of the transfer stage, to a Rich console. write_report()
saves the same information as JSON; the failed object ids in that file
drive a failure-only rerun of the transfer stage.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from supabase_migrator.core.exceptions import ConfigurationError
from supabase_migrator.models.session import MigrationSession, RunState, Stage, StageStatus

POST_MIGRATION_CHECKLIST = [
    "Enable necessary extensions in your self-hosted Supabase",
    "Set up column encryption key if you use it",
    "Set passwords for any custom roles with login attributes",
    "Enable publication on tables for Realtime functionality",
    "Verify and reconfigure webhooks and triggers",
    "Test thoroughly to ensure all data and functionality has been correctly migrated",
]

_STATUS_STYLES = {
    StageStatus.COMPLETED: "green",
    StageStatus.FAILED: "bold red",
    StageStatus.SKIPPED: "dim",
    StageStatus.RUNNING: "yellow",
    StageStatus.PENDING: "dim",
}


def build_report(session: MigrationSession) -> Dict[str, Any]:
    """Build the JSON-serializable summary of a run."""
    return {
        "run_id": session.id,
        "state": session.state.value,
        "aborted_stage": session.aborted_stage.value if session.aborted_stage else None,
        "error": session.error,
        "start_time": session.start_time.isoformat() if session.start_time else None,
        "end_time": session.end_time.isoformat() if session.end_time else None,
        "duration": session.duration,
        "stages": [
            {
                "stage": result.stage.value,
                "status": result.status.value,
                "duration": result.duration,
                "error": result.error,
                "error_code": result.error_code,
            }
            for result in session.stages
        ],
        "object_transfer": session.transfer_report,
    }


def write_report(session: MigrationSession, path: Union[str, Path]) -> Path:
    """Write the run summary as JSON and return the file path."""
    report_path = Path(path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    with open(report_path, 'w', encoding='utf-8') as f:
        json.dump(build_report(session), f, indent=2)
    return report_path


def load_failed_object_ids(path: Union[str, Path]) -> List[str]:
    """
    Read the failed object ids from a previous JSON report.

    Raises:
        ConfigurationError: If the report cannot be read
    """
    report_path = Path(path)
    try:
        with open(report_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read report {report_path}: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Report {report_path} is not a JSON object")

    try:
        transfer = data.get("object_transfer") or {}
        return [str(entry["object_id"]) for entry in transfer.get("failed") or []]
    except (AttributeError, KeyError, TypeError) as e:
        raise ConfigurationError(f"Report {report_path} has malformed failed object entries: {e}")


def _transfer_only(session: MigrationSession) -> bool:
    ran = [result.stage for result in session.stages if result.status != StageStatus.SKIPPED]
    return ran == [Stage.OBJECT_TRANSFER]


def render_summary(session: MigrationSession, console: Optional[Console] = None) -> None:
    """Print the run summary."""
    console = console or Console()

    stages = Table(title="Migration stages")
    stages.add_column("Stage")
    stages.add_column("Status")
    stages.add_column("Duration", justify="right")
    stages.add_column("Details")

    for result in session.stages:
        duration = f"{result.duration:.1f}s" if result.duration is not None else "-"
        stages.add_row(
            result.title,
            f"[{_STATUS_STYLES[result.status]}]{result.status.value}[/]",
            duration,
            escape(result.error or ""),
        )
    console.print(stages)

    transfer = session.transfer_report
    if transfer is not None:
        console.print(
            f"Objects: [green]{transfer['succeeded']} succeeded[/green], "
            f"[red]{transfer['failed_count']} failed[/red] "
            f"({transfer['total_bytes']} bytes, "
            f"{len(transfer['buckets_created'])} buckets created)"
        )
        if transfer["failed"]:
            failed = Table(title="Failed objects")
            failed.add_column("Object id")
            failed.add_column("Path")
            failed.add_column("Phase")
            failed.add_column("Reason")
            for entry in transfer["failed"]:
                failed.add_row(
                    escape(entry["object_id"]),
                    escape(f"{entry['bucket_id']}/{entry['name']}"),
                    entry["phase"] or "",
                    escape(entry["reason"] or ""),
                )
            console.print(failed)

    if session.state == RunState.COMPLETED and _transfer_only(session):
        console.print(Panel.fit(
            "[bold green]Storage transfer completed[/bold green]",
            title="Migration Result",
            border_style="green"
        ))
    elif session.state == RunState.COMPLETED:
        checklist = "\n".join(f"{i}. {item}" for i, item in enumerate(POST_MIGRATION_CHECKLIST, start=1))
        console.print(Panel.fit(
            "[bold green]Migration completed successfully![/bold green]\n"
            f"Please remember to:\n{checklist}",
            title="Migration Result",
            border_style="green"
        ))
    elif session.state == RunState.ABORTED:
        stage = session.aborted_stage.value if session.aborted_stage else "unknown"
        console.print(Panel.fit(
            f"[bold red]Migration aborted[/bold red] at stage [bold]{stage}[/bold]\n"
            f"Error: {escape(session.error or '')}",
            title="Migration Result",
            border_style="red"
        ))
