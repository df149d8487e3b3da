"""
CLI Interface
=============
Command-line interface for the exam prep toolkit.

Usage:
    python -m examprep parse <markdown_path> [options]
    python -m examprep batch <source_dir> <destination_dir> [options]
    python -m examprep explain <source_dir> [options]
    python -m examprep metadata <markdown_path | ->
    python -m examprep highlight <text>
    python -m examprep validate <json_path>
    python -m examprep serve [options]
"""

from __future__ import annotations

import json
import sys

import click
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from . import __version__
from .engine import ParserConfig, ParserEngine
from .errors import ConfigurationError, ExamPrepError
from .explainer import ExplainerConfig, ExplanationService, OpenAITextGenerator
from .metadata import extract_metadata, highlight_services
from .models import Exam
from .storage import read_json

console = Console()

LOG_LEVELS = click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"])


@click.group()
@click.version_option(version=__version__, prog_name="examprep")
def cli():
    """Exam Prep Toolkit: Markdown exam ingestion and question analysis."""
    load_dotenv()


@cli.command()
@click.argument("markdown_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output", "-o",
    default=None,
    help="Directory to write <exam>.json into (omit to only display)",
)
@click.option("--log-level", default="INFO", type=LOG_LEVELS, help="Logging level")
@click.option("--log-file", default=None, help="Path to log file")
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only the exam JSON to stdout (for programmatic use)",
)
def parse(
    markdown_path: str,
    output: str,
    log_level: str,
    log_file: str,
    json_output: bool,
):
    """Parse a single exam Markdown file."""

    if json_output:
        # Keep stdout clean for JSON consumers
        log_level = "ERROR"

    config = ParserConfig(log_level=log_level, log_file=log_file)

    try:
        engine = ParserEngine(config)
        result = engine.parse_file(markdown_path)
        if output:
            engine.write_exam(result, output)
    except (OSError, UnicodeDecodeError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    if json_output:
        click.echo(json.dumps(
            result.exam.model_dump(mode="json", by_alias=True),
            indent=2,
            ensure_ascii=False,
        ))
        return

    _display_exam(result)
    _display_validation_table(result.validation.model_dump())


@cli.command()
@click.argument("source_dir", type=click.Path(exists=True, file_okay=False))
@click.argument("destination_dir", type=click.Path(file_okay=False))
@click.option("--log-level", default="INFO", type=LOG_LEVELS, help="Logging level")
@click.option("--log-file", default=None, help="Path to log file")
def batch(source_dir: str, destination_dir: str, log_level: str, log_file: str):
    """Parse every exam in a directory and write a manifest."""

    engine = ParserEngine(ParserConfig(log_level=log_level, log_file=log_file))

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Batch Exam Parser[/]\n"
            f"[dim]{source_dir} → {destination_dir}[/]",
            border_style="cyan",
        )
    )
    console.print()

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Parsing exams...", total=None)

            def on_file(name, index, total):
                progress.update(
                    task,
                    description=f"Parsing: {name}",
                    completed=index - 1,
                    total=total,
                )

            result = engine.parse_directory(
                source_dir, destination_dir, progress_callback=on_file
            )
            progress.update(task, completed=len(result.manifest) + len(result.failures))
    except OSError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    _display_batch_summary(result)

    if not result.ok:
        sys.exit(1)


@cli.command()
@click.argument("source_dir", type=click.Path(exists=True, file_okay=False))
@click.option(
    "--output", "-o",
    default="questions.json",
    help="Combined JSON output path",
)
@click.option("--log-level", default="INFO", type=LOG_LEVELS, help="Logging level")
def explain(source_dir: str, output: str, log_level: str):
    """Parse exams and attach an AI-generated explanation to every question."""

    try:
        generator = OpenAITextGenerator(ExplainerConfig.from_env())
    except ConfigurationError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    engine = ParserEngine(ParserConfig(log_level=log_level))
    service = ExplanationService(generator)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeRemainingColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Explaining questions...", total=None)

            def on_question(index, total):
                progress.update(task, completed=index, total=total)

            explained = engine.explain_directory(
                source_dir, output, service, progress_callback=on_question
            )
    except (OSError, UnicodeDecodeError, ExamPrepError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    console.print(
        f"[green]✓[/] Parsed {len(explained)} questions. Saved to {output}"
    )


@cli.command()
@click.argument("markdown", type=click.File("r", encoding="utf-8"))
def metadata(markdown):
    """Show render metadata for one question body (use - for stdin)."""

    result = extract_metadata(markdown.read())

    table = Table(title="Question Metadata", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Code Blocks", str(len(result.code_blocks)))
    table.add_row("Services", ", ".join(result.mentioned_services) or "-")
    table.add_row("Embedded Image", "yes" if result.has_embedded_image else "no")
    table.add_row("Complexity", result.complexity_tier.value)
    console.print(table)


@cli.command()
@click.argument("text")
def highlight(text: str):
    """Wrap recognized service names in highlight tags."""
    click.echo(highlight_services(text))


@cli.command()
@click.argument("json_path", type=click.Path(exists=True, dir_okay=False))
def validate(json_path: str):
    """Validate a previously written exam JSON document."""

    try:
        exam = Exam.model_validate(read_json(json_path))
    except (ValueError, ValidationError) as e:
        console.print(f"[red]Invalid exam document:[/] {e}")
        sys.exit(1)

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]{exam.title or '(untitled)'}[/]\n"
            f"[dim]File: {json_path}[/]",
            border_style="cyan",
        )
    )
    _display_question_table(exam)


@cli.command()
@click.option("--host", default="0.0.0.0", help="Server host")
@click.option("--port", default=5000, type=int, help="Server port")
@click.option("--debug", is_flag=True, default=False, help="Debug mode")
def serve(host: str, port: int, debug: bool):
    """Start the HTTP service."""
    from .server import run_server

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Exam Prep Service[/]\n"
            f"[dim]Starting on {host}:{port}[/]",
            border_style="cyan",
        )
    )
    console.print()

    run_server(host=host, port=port, debug=debug)


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _display_exam(result):
    """Display exam info and its questions."""
    console.print()
    table = Table(title="Exam Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Title", result.exam.title or "(untitled)")
    table.add_row("Source", result.source_file)
    table.add_row("Questions", str(len(result.exam.questions)))
    if result.output_file:
        table.add_row("Output", result.output_file)
    console.print(table)
    console.print()

    _display_question_table(result.exam)


def _display_question_table(exam: Exam):
    table = Table(title="Questions", border_style="blue")
    table.add_column("#", justify="right")
    table.add_column("Question")
    table.add_column("Options", justify="right")
    table.add_column("Correct")
    table.add_column("Type")

    for q in exam.questions:
        text = q.text if len(q.text) <= 60 else q.text[:57] + "..."
        table.add_row(
            str(q.id),
            text,
            str(len(q.options)),
            ", ".join(q.correct_letters),
            q.kind.value,
        )

    console.print(table)
    console.print()


def _display_validation_table(validation: dict):
    """Display validation report as a rich table."""
    table = Table(title="Validation Report", border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_column("Status", justify="center")

    def status_icon(count, threshold=0):
        if count <= threshold:
            return "[green]✓[/]"
        return "[red]✗[/]"

    total = validation.get("total_questions_detected", 0)
    emitted = validation.get("questions_emitted", 0)
    rate = validation.get("success_rate", 0)

    table.add_row(
        "Total Questions Detected",
        str(total),
        "[green]✓[/]" if total > 0 else "[red]✗[/]",
    )
    table.add_row(
        "Questions Emitted",
        f"{emitted} ({rate}%)",
        "[green]✓[/]" if rate >= 90 else "[yellow]⚠[/]",
    )

    dropped = validation.get("dropped_questions", [])
    table.add_row("Dropped Questions", str(len(dropped)), status_icon(len(dropped)))

    missing = validation.get("missing_question_numbers", [])
    table.add_row(
        "Missing Question Numbers", str(len(missing)), status_icon(len(missing))
    )

    dupes = validation.get("duplicate_question_numbers", [])
    table.add_row(
        "Duplicate Question Numbers", str(len(dupes)), status_icon(len(dupes))
    )

    orphans = validation.get("orphan_lines", 0)
    table.add_row("Orphan Lines", str(orphans), status_icon(orphans))

    console.print(table)
    console.print()

    if dropped:
        dropped_table = Table(title="Dropped Questions", border_style="red")
        dropped_table.add_column("#", justify="right")
        dropped_table.add_column("Line", justify="right")
        dropped_table.add_column("Reasons")
        for d in dropped:
            dropped_table.add_row(
                str(d["id"]), str(d["line_number"]), ", ".join(d["reasons"])
            )
        console.print(dropped_table)
        console.print()

    breakdown = validation.get("anomaly_breakdown", {})
    if breakdown:
        anomaly_table = Table(title="Anomaly Breakdown", border_style="yellow")
        anomaly_table.add_column("Type", style="bold")
        anomaly_table.add_column("Count", justify="right")
        for atype, count in sorted(breakdown.items()):
            anomaly_table.add_row(atype, str(count))
        console.print(anomaly_table)
        console.print()


def _display_batch_summary(result):
    """Display batch processing summary."""
    console.print()

    table = Table(title="Batch Processing Summary", border_style="cyan")
    table.add_column("Exam", style="bold")
    table.add_column("Title")
    table.add_column("Questions", justify="right")
    table.add_column("Dropped", justify="right")
    table.add_column("Status", justify="center")

    total_questions = 0
    for exam_result in result.results:
        count = len(exam_result.exam.questions)
        dropped = len(exam_result.validation.dropped_questions)
        total_questions += count
        table.add_row(
            exam_result.output_file,
            exam_result.exam.title,
            str(count),
            str(dropped),
            "[green]✓[/]" if not dropped else "[yellow]⚠[/]",
        )

    for failure in result.failures:
        table.add_row(failure.source_file, "-", "-", "-", "[red]✗ FAILED[/]")

    console.print(table)
    console.print()
    console.print(
        f"[bold]Total:[/] {total_questions} questions from "
        f"{len(result.manifest)} exams, {len(result.failures)} failures"
    )
    console.print(f"[dim]Manifest: {result.manifest_path}[/]")
    console.print()


# ─── Entry point (for python -m examprep.cli) ─────────────────────────────────


if __name__ == "__main__":
    cli()
