"""Command-line interface for clip-stitch.

Uses Typer for a modern, type-hinted CLI experience.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from clip_stitch import __version__
from clip_stitch.config import PipelineSettings, ffmpeg_config_from_env, load_settings
from clip_stitch.errors import ClipStitchError, ConfigurationError, format_error_for_display
from clip_stitch.ffmpeg_binary import get_dependency_report
from clip_stitch.logging import LogConfig, LogLevel, configure_logging
from clip_stitch.pipeline import Pipeline, PipelineReport
from clip_stitch.storage import StorageError, atomic_write_json
from clip_stitch.store import NotionArtifactStore, NotionInstructionStore, create_notion_client

app = typer.Typer(
    name="clip-stitch",
    help="Extract clips listed in Notion and stitch them into videos and GIFs.",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"clip-stitch version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Clip Stitch - batch clip extraction and recombination.

    Reads unprocessed instructions from the Notion input database, cuts each
    clip with ffmpeg, joins clips that share a set code, format and output
    base, and records each finished video or GIF in the output database.
    """
    pass


async def _run_pipeline(settings: PipelineSettings) -> PipelineReport:
    async with create_notion_client(settings.notion_secret) as client:
        pipeline = Pipeline(
            settings,
            NotionInstructionStore(client, settings.input_database_id),
            NotionArtifactStore(client, settings.output_database_id),
        )
        return await pipeline.run()


def _print_report(report: PipelineReport) -> None:
    counts = report.extraction_counts
    mode = "[yellow]dry run[/yellow]" if report.dry_run else "[green]live[/green]"
    console.print(Panel(
        f"[bold]Run Complete[/bold] ({mode})\n\n"
        f"Instructions loaded: {report.instructions_loaded}\n"
        f"Clips extracted: {counts.get('extracted', 0)} "
        f"(skipped existing: {counts.get('skipped', 0)}, planned: {counts.get('planned', 0)})\n"
        f"Groups: {report.groups_total}\n"
        f"Artifacts recorded: [green]{len(report.records)}[/green]\n"
        f"Instructions marked processed: {report.instructions_marked}\n"
        f"Failures: [red]{len(report.failures)}[/red]",
        title="Results",
    ))

    if report.records:
        table = Table(title="Artifacts")
        table.add_column("File Name", style="cyan")
        table.add_column("Format")
        table.add_column("Duration", justify="right")
        for record in report.records:
            table.add_row(record.file_name, record.output_format.value, f"{record.duration:g}")
        console.print(table)

    if report.failures:
        table = Table(title="Failures")
        table.add_column("Stage")
        table.add_column("Subject", style="cyan")
        table.add_column("Error", style="red")
        for failure in report.failures:
            table.add_row(failure.stage, failure.subject, format_error_for_display(failure.error))
        console.print(table)


@app.command()
def run(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Log every unit of work"),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Also log ffmpeg command lines"),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Only log errors"),
    ] = False,
    json_logs: Annotated[
        bool,
        typer.Option("--json-logs", help="Emit logs as JSON lines"),
    ] = False,
    log_file: Annotated[
        Optional[Path],
        typer.Option("--log-file", help="Also write a full debug log to this file"),
    ] = None,
    report_path: Annotated[
        Optional[Path],
        typer.Option("--report", "-r", help="Write a JSON run report to this path"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Plan everything but run no ffmpeg and write no records"),
    ] = False,
) -> None:
    """Process every unprocessed instruction in the input database.

    Settings come from the environment (or a .env file): NOTION_SECRET,
    INPUT_DATABASE and OUTPUT_DATABASE are required; USE_FFMPEG=true turns on
    actual processing.
    """
    level = LogLevel.NORMAL
    if quiet:
        level = LogLevel.QUIET
    elif debug:
        level = LogLevel.DEBUG
    elif verbose:
        level = LogLevel.VERBOSE
    configure_logging(LogConfig(level=level, log_file=log_file, json_format=json_logs))

    try:
        settings = load_settings()
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    if dry_run:
        settings = settings.model_copy(update={"use_ffmpeg": False})

    try:
        report = asyncio.run(_run_pipeline(settings))
    except ClipStitchError as e:
        console.print(f"[red]Error:[/red] {format_error_for_display(e)}")
        raise typer.Exit(1)

    _print_report(report)

    if report_path:
        try:
            atomic_write_json(report_path, report.to_dict())
        except StorageError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1)
        console.print(f"Report saved: {report_path}")

    if not report.succeeded:
        raise typer.Exit(1)


@app.command()
def check_deps() -> None:
    """Check that ffmpeg and ffprobe can be found and run."""
    report = get_dependency_report(ffmpeg_config_from_env())

    table = Table(title="Dependencies")
    table.add_column("Dependency", style="cyan")
    table.add_column("Status")
    table.add_column("Version")
    table.add_column("Location")

    for name in ("ffmpeg", "ffprobe"):
        info = report[name]
        status = "[green]available[/green]" if info["available"] else "[red]missing[/red]"
        table.add_row(name, status, str(info["version"]), f"{info['path']} ({info['source']})")

    imageio_info = report["imageio_ffmpeg"]
    table.add_row("imageio-ffmpeg", "[green]installed[/green]", str(imageio_info["version"]), "")
    console.print(table)

    if not (report["ffmpeg"]["available"] and report["ffprobe"]["available"]):
        raise typer.Exit(1)


def entrypoint() -> None:
    """Console script entry point; loads ``.env`` before running the app."""
    load_dotenv()
    app()


if __name__ == "__main__":
    entrypoint()
