"""
Typer CLI for quizdesk.

Commands:
    quizdesk validate DRAFT              - Check a quiz draft file
    quizdesk preview DRAFT --attempt ID  - Show the question order one attempt would get
    quizdesk grade DRAFT ANSWERS         - Grade answers against a draft offline
    quizdesk save DRAFT                  - Validate and store a draft
    quizdesk close QUIZ_ID               - Close a quiz now
    quizdesk reopen QUIZ_ID              - Clear a quiz's end time
    quizdesk delete QUIZ_ID              - Delete a quiz and everything under it
    quizdesk publish QUIZ_ID             - Notify enrolled learners of a new quiz
    quizdesk notify-results QUIZ_ID      - Notify enrolled learners that results are out
    quizdesk move QUIZ_ID POSITION       - Swap a question with its neighbour
    quizdesk stats QUIZ_ID               - Score statistics over finished attempts
    quizdesk export QUIZ_ID              - Write attempts to a CSV file
    quizdesk db init                     - Create database tables

Draft files are JSON: {"quiz": {...}, "questions": [{"type": "mcq_single", ...}]}
Questions and options are ordered by their position in the file.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import pydantic
import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import Settings, get_settings

from ..db import SqlQuizStore, async_session_scope, dispose, init_db
from ..exceptions import QuizdeskError
from ..export import export_filename
from ..grading import AttemptStats, finalize, grade_attempt, status_after_grading
from ..models import Quiz, QuizDraft
from ..notifications import (
    HttpNotificationTransport,
    NotificationTransport,
    NotifyResult,
    StoreNotificationTransport,
)
from ..presentation import derive_seed, present
from ..service import QuizService
from ..validation import validate_draft

T = TypeVar("T")

app = typer.Typer(
    help="quizdesk CLI: author, run and report on quizzes",
    no_args_is_help=True,
)

console = Console()


def configure_logging(settings: Settings) -> None:
    """Reset loguru sinks to the configured level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
) -> None:
    """Quiz authoring, delivery and reporting."""
    settings = get_settings()
    if verbose:
        settings = settings.model_copy(update={"log_level": "DEBUG"})
    configure_logging(settings)


# ========================================
# Helpers
# ========================================


def _load_draft(path: Path) -> QuizDraft:
    try:
        return QuizDraft.model_validate_json(path.read_text(encoding="utf-8"))
    except OSError as exc:
        rprint(f"[red]✗[/red] Cannot read {path}: {exc}")
        raise typer.Exit(code=1)
    except pydantic.ValidationError as exc:
        rprint(f"[red]✗[/red] {path} is not a valid draft file:\n{exc}")
        raise typer.Exit(code=1)


def _load_json(path: Path) -> dict[str, Any]:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        rprint(f"[red]✗[/red] Cannot read {path}: {exc}")
        raise typer.Exit(code=1)


def _build_transport(settings: Settings, store: SqlQuizStore) -> NotificationTransport:
    if settings.notification_api_url:
        return HttpNotificationTransport(
            settings.notification_api_url,
            api_key=settings.notification_api_key,
            timeout_ms=settings.notification_timeout_ms,
        )
    return StoreNotificationTransport(store)


def _run_with_service(action: Callable[[QuizService], Awaitable[T]]) -> T:
    """Run an async service action against the configured database."""

    async def runner() -> T:
        settings = get_settings()
        try:
            async with async_session_scope() as session:
                store = SqlQuizStore(session)
                transport = _build_transport(settings, store)
                try:
                    return await action(QuizService(store, transport, settings))
                finally:
                    if isinstance(transport, HttpNotificationTransport):
                        await transport.close()
        finally:
            await dispose()

    try:
        return asyncio.run(runner())
    except QuizdeskError as exc:
        logger.debug("Command failed: {!r}", exc)
        rprint(f"[red]✗[/red] {exc}")
        raise typer.Exit(code=1)


async def _require_quiz(service: QuizService, quiz_id: str) -> Quiz:
    quiz = await service.store.fetch_quiz(quiz_id)
    if quiz is None:
        rprint(f"[red]✗[/red] Quiz not found: {quiz_id}")
        raise typer.Exit(code=1)
    return quiz


def _print_violations(violations) -> None:
    table = Table(title="Validation Problems", show_header=True)
    table.add_column("Question", style="cyan")
    table.add_column("Rule")
    table.add_column("Message")
    for v in violations:
        where = str(v.question_index + 1) if v.question_index is not None else "quiz"
        table.add_row(where, v.code, v.message)
    console.print(table)


def _print_notify_result(label: str, result: NotifyResult) -> None:
    table = Table(title=label, show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Sent", str(result.success_count))
    table.add_row("Failed", str(result.error_count))
    table.add_row("Batches", str(result.batches))
    console.print(table)
    for failure in result.failures[:5]:
        rprint(f"  [yellow]•[/yellow] {failure}")
    if len(result.failures) > 5:
        rprint(f"  ... and {len(result.failures) - 5} more")


# ========================================
# OFFLINE COMMANDS
# ========================================


@app.command("validate")
def validate_command(
    draft: Path = typer.Argument(..., help="Quiz draft JSON file"),
) -> None:
    """Check a draft against every authoring rule."""
    loaded = _load_draft(draft)
    result = validate_draft(loaded.quiz, loaded.questions)
    if result.ok:
        rprint(f"[green]✓[/green] {draft.name} is valid ({len(loaded.questions)} questions)")
        return
    _print_violations(result.violations)
    raise typer.Exit(code=1)


@app.command("preview")
def preview_command(
    draft: Path = typer.Argument(..., help="Quiz draft JSON file"),
    attempt: str = typer.Option(..., "--attempt", "-a", help="Attempt id used to seed the order"),
) -> None:
    """Show questions and options in the order one attempt would see them."""
    loaded = _load_draft(draft)
    ordered = present(loaded.quiz, loaded.questions, attempt)

    table = Table(title=f"Attempt {attempt} (seed {derive_seed(attempt)})", show_header=True)
    table.add_column("#", justify="right")
    table.add_column("Key", style="cyan")
    table.add_column("Type")
    table.add_column("Question")
    table.add_column("Options")
    for position, question in enumerate(ordered, start=1):
        options = getattr(question, "options", None) or []
        table.add_row(
            str(position),
            question.key,
            question.type,
            question.text,
            " | ".join(o.text for o in options),
        )
    console.print(table)


@app.command("grade")
def grade_command(
    draft: Path = typer.Argument(..., help="Quiz draft JSON file"),
    answers: Path = typer.Argument(..., help="JSON object of answers keyed by question key"),
    manual: Path | None = typer.Option(None, "--manual", "-m", help="JSON object of manual scores"),
    final: bool = typer.Option(False, "--finalize", help="Score answers still awaiting review as 0"),
) -> None:
    """Grade a set of answers against a draft without touching the database."""
    loaded = _load_draft(draft)
    manual_scores = _load_json(manual) if manual else None
    result = grade_attempt(loaded.quiz, loaded.questions, _load_json(answers), manual_scores)
    if final:
        result = finalize(result)

    table = Table(title="Grading Results", show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Points", justify="right")
    table.add_column("Review")
    table.add_column("Feedback")
    for question in loaded.questions:
        item = result.results[question.key]
        table.add_row(
            question.key,
            f"{item.points_awarded:g}/{question.points}",
            "[yellow]pending[/yellow]" if item.needs_manual_review else "",
            item.feedback,
        )
    console.print(table)
    rprint(
        f"\nScore: [bold]{result.score:g}/{result.max_score:g}[/bold] "
        f"({result.percentage:.1f}%), status: {status_after_grading(result).value}"
    )


# ========================================
# QUIZ COMMANDS
# ========================================


@app.command("save")
def save_command(
    draft: Path = typer.Argument(..., help="Quiz draft JSON file"),
) -> None:
    """Validate a draft and store it."""
    loaded = _load_draft(draft)
    checked = validate_draft(loaded.quiz, loaded.questions)
    if not checked.ok:
        _print_violations(checked.violations)
        raise typer.Exit(code=1)

    report = _run_with_service(lambda service: service.save_draft(loaded.quiz, loaded.questions))
    rprint(f"[green]✓[/green] Saved quiz {report.quiz.id}")
    for item in report.failed:
        rprint(f"  [red]✗[/red] Question {item.index + 1} ({item.kind}): {item.error}")
    if not report.ok:
        raise typer.Exit(code=2)


@app.command("close")
def close_command(quiz_id: str = typer.Argument(..., help="Quiz id")) -> None:
    """Close a quiz now. An already closed quiz keeps its end time."""

    async def action(service: QuizService) -> Quiz:
        return await service.close_quiz(await _require_quiz(service, quiz_id))

    quiz = _run_with_service(action)
    rprint(f"[green]✓[/green] Quiz {quiz_id} closed at {quiz.end_at.isoformat()}")


@app.command("reopen")
def reopen_command(quiz_id: str = typer.Argument(..., help="Quiz id")) -> None:
    """Reopen a quiz by clearing its end time."""

    async def action(service: QuizService) -> Quiz:
        return await service.reopen_quiz(await _require_quiz(service, quiz_id))

    _run_with_service(action)
    rprint(f"[green]✓[/green] Quiz {quiz_id} reopened")


@app.command("delete")
def delete_command(
    quiz_id: str = typer.Argument(..., help="Quiz id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a quiz with its questions, options and attempts."""
    if not yes:
        typer.confirm(f"Delete quiz {quiz_id} and all its attempts?", abort=True)
    _run_with_service(lambda service: service.delete_quiz(quiz_id))
    rprint(f"[green]✓[/green] Quiz {quiz_id} deleted")


@app.command("publish")
def publish_command(quiz_id: str = typer.Argument(..., help="Quiz id")) -> None:
    """Notify learners enrolled in the quiz's subject that it is available."""

    async def action(service: QuizService) -> NotifyResult:
        return await service.publish(await _require_quiz(service, quiz_id))

    _print_notify_result("Publish Notifications", _run_with_service(action))


@app.command("notify-results")
def notify_results_command(quiz_id: str = typer.Argument(..., help="Quiz id")) -> None:
    """Notify learners that results are available, if the quiz policy allows it."""

    async def action(service: QuizService) -> NotifyResult:
        return await service.notify_results(await _require_quiz(service, quiz_id))

    _print_notify_result("Results Notifications", _run_with_service(action))


@app.command("move")
def move_command(
    quiz_id: str = typer.Argument(..., help="Quiz id"),
    position: int = typer.Argument(..., help="1-based position of the question to move"),
    up: bool = typer.Option(False, "--up", help="Move toward the start instead of the end"),
) -> None:
    """Swap a question with its neighbour."""

    async def action(service: QuizService) -> list:
        await _require_quiz(service, quiz_id)
        questions = await service.store.fetch_questions(quiz_id)
        return await service.move_question(questions, position - 1, -1 if up else 1)

    ordered = _run_with_service(action)
    for index, question in enumerate(ordered, start=1):
        rprint(f"  {index}. {question.text}")


@app.command("stats")
def stats_command(quiz_id: str = typer.Argument(..., help="Quiz id")) -> None:
    """Show score statistics over finished attempts."""
    stats: AttemptStats = _run_with_service(lambda service: service.attempt_stats(quiz_id))

    table = Table(title=f"Quiz {quiz_id}", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Attempts", str(stats.total))
    table.add_row("Completed", f"{stats.completed} ({stats.completion}%)")
    table.add_row("Average", f"{stats.average:.2f}")
    table.add_row("Median", f"{stats.median:.2f}")
    table.add_row("Std. deviation", f"{stats.stddev:.2f}")
    console.print(table)


@app.command("export")
def export_command(
    quiz_id: str = typer.Argument(..., help="Quiz id"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output file"),
) -> None:
    """Export every attempt of a quiz with learner names and emails."""
    content = _run_with_service(lambda service: service.export_attempts(quiz_id))
    output = output or Path(export_filename(quiz_id))
    output.write_text(content + "\n", encoding="utf-8")
    rprint(f"[green]✓[/green] Exported to {output}")


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Create the quiz tables from the SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    logger.info("Initializing database tables...")
    try:
        init_db()
    except Exception as exc:
        logger.exception("Database initialization failed")
        rprint(f"[red]✗[/red] Database initialization failed: {exc}")
        raise typer.Exit(code=1)
    rprint("[green]✓[/green] Database initialized!")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
