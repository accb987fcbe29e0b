"""
Typer CLI for the quizcraft engine.

Commands:
    quizcraft db init                         - Create database tables
    quizcraft generate CONFIG_ID              - Generate a quiz from a config
    quizcraft grade FILE                      - Grade a JSON submission without storing it
    quizcraft submit CONFIG_ID FILE --user U  - Grade and store a submission
    quizcraft correct RESULT_ID QUESTION_ID SCORE - Correct one attempt's score
    quizcraft coverage CONFIG_ID              - Check candidate supply per part

Usage:
    quizcraft --help
    quizcraft generate 3f1c... --json
    quizcraft submit 3f1c... answers.json --user u-42 --duration 600
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings
from src.core.errors import QuizEngineError
from src.grading.models import AttemptSubmission, GradingReport
from src.quiz.service import QuizService

app = typer.Typer(help="quizcraft: quiz assembly and grading engine")
console = Console()


# ========================================
# Context Builder (Dependency Injection)
# ========================================


class CLIContext:
    """
    Dependency injection container for CLI commands.

    Lazily builds the SQL-backed QuizService.
    """

    def __init__(self):
        self.settings = get_settings()
        self._service: QuizService | None = None

    @property
    def service(self) -> QuizService:
        if self._service is None:
            from src.db.database import get_session_factory
            from src.db.repositories import (
                SqlAuditChannel,
                SqlQuestionRepository,
                SqlQuizConfigStore,
                SqlResultStore,
            )
            from src.quiz.service import build_quiz_service

            factory = get_session_factory()
            self._service = build_quiz_service(
                questions=SqlQuestionRepository(factory),
                configs=SqlQuizConfigStore(factory),
                results=SqlResultStore(factory),
                audit_channel=SqlAuditChannel(factory),
                settings=self.settings,
            )
        return self._service


def _run(coro):
    """Run a coroutine, turning engine errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except QuizEngineError as e:
        logger.error(str(e))
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)


def _load_submissions(path: Path) -> list[AttemptSubmission]:
    """Read a JSON array of {questionId, userAnswer, maxScore} objects."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        rprint(f"[red]✗[/red] Cannot read {path}: {e}")
        raise typer.Exit(code=1)
    if not isinstance(raw, list):
        rprint(f"[red]✗[/red] {path} must contain a JSON array of attempts")
        raise typer.Exit(code=1)
    return [AttemptSubmission.model_validate(item) for item in raw]


def _print_report(report: GradingReport, title: str) -> None:
    table = Table(title=title, show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Question", style="cyan")
    table.add_column("Answer")
    table.add_column("Correct", justify="center")
    table.add_column("Score", justify="right", style="green")

    for index, attempt in enumerate(report.attempts, start=1):
        if attempt.awaiting_manual_score:
            verdict = "[yellow]manual[/yellow]"
        elif attempt.question_unavailable:
            verdict = "[dim]n/a[/dim]"
        else:
            verdict = "[green]✓[/green]" if attempt.is_correct else "[red]✗[/red]"
        table.add_row(
            str(index),
            attempt.question_id,
            attempt.user_answer,
            verdict,
            f"{attempt.score:g}/{attempt.max_score:g}",
        )

    table.add_section()
    table.add_row("", "TOTAL", "", "", f"{report.score:g}/{report.max_score:g}", style="bold")
    console.print(table)


# ========================================
# DB COMMANDS
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Create all tables defined in src/db/models.

    Safe to run multiple times (idempotent).
    """
    from src.db.database import init_db

    logger.info("Initializing database tables...")
    asyncio.run(init_db())
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# QUIZ COMMANDS
# ========================================


@app.command("generate")
def generate(
    config_id: str = typer.Argument(..., help="Quiz config ID"),
    as_json: bool = typer.Option(False, "--json", help="Print the client payload as JSON"),
) -> None:
    """
    Generate a quiz from a stored configuration.

    The output never contains correct answers.
    """
    ctx = CLIContext()
    quiz = _run(ctx.service.generate_quiz(config_id))

    if as_json:
        payload = {
            "configName": quiz.config_name,
            "passingScore": quiz.passing_score,
            "questions": [question.to_wire() for question in quiz.questions],
        }
        typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    table = Table(title=f"{quiz.config_name} (pass at {quiz.passing_score:g})", show_header=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Part", style="cyan")
    table.add_column("Type")
    table.add_column("Question")
    table.add_column("Points", justify="right", style="green")

    for index, question in enumerate(quiz.questions, start=1):
        table.add_row(
            str(index),
            question.quiz_part_name,
            question.type.value,
            question.text[:60],
            f"{question.score:g}",
        )

    console.print(table)
    rprint(f"  Questions: {len(quiz.questions)}/{quiz.requested_total}")
    rprint(f"  Max score: {quiz.max_score:g}")
    if not quiz.complete:
        rprint("[yellow]⚠[/yellow] Quiz is shorter than requested (see logs)")


@app.command("grade")
def grade(
    file: Path = typer.Argument(..., exists=True, readable=True, help="JSON array of attempts"),
) -> None:
    """Grade a submission file without storing anything."""
    ctx = CLIContext()
    report = _run(ctx.service.grade_submission(_load_submissions(file)))
    _print_report(report, "Grading Results")


@app.command("submit")
def submit(
    config_id: str = typer.Argument(..., help="Quiz config ID the quiz was generated from"),
    file: Path = typer.Argument(..., exists=True, readable=True, help="JSON array of attempts"),
    user_id: str = typer.Option(..., "--user", "-u", help="User ID of the quiz taker"),
    username: str = typer.Option("", "--username", help="Display name"),
    duration: int | None = typer.Option(None, "--duration", help="Time taken in seconds"),
) -> None:
    """Grade a submission and store the result."""
    ctx = CLIContext()
    result = _run(
        ctx.service.submit_quiz(
            config_id,
            user_id,
            _load_submissions(file),
            username=username,
            duration=duration,
        )
    )

    _print_report(GradingReport(attempts=result.attempts, score=result.score), "Stored Result")
    rprint(f"  Result ID: {result.id}")
    rprint(f"  Status: {result.status.value}")
    if result.is_passed:
        rprint(f"[bold green]✓ Passed[/bold green] ({result.score:g} ≥ {result.passing_score:g})")
    else:
        rprint(f"[red]✗ Not passed[/red] ({result.score:g} < {result.passing_score:g})")


@app.command("correct")
def correct(
    result_id: str = typer.Argument(..., help="Quiz result ID"),
    question_id: str = typer.Argument(..., help="Question ID of the attempt to rescore"),
    score: float = typer.Argument(..., help="New score, between 0 and the attempt's max score"),
) -> None:
    """Correct the score of one attempt and recompute the result."""
    ctx = CLIContext()
    result = _run(ctx.service.correct_single_score(result_id, question_id, score))
    rprint(f"[green]✓[/green] Result {result.id}: {result.score:g}/{result.max_score:g}")
    rprint(f"  Passed: {result.is_passed}")
    rprint(f"  Status: {result.status.value}")


@app.command("coverage")
def coverage(
    config_id: str = typer.Argument(..., help="Quiz config ID"),
) -> None:
    """Check whether the question bank can fill every part of a config."""
    ctx = CLIContext()
    report = _run(ctx.service.check_coverage(config_id))

    table = Table(title=f"Coverage: {report.config_name}", show_header=True)
    table.add_column("Part", style="cyan")
    table.add_column("Requested", justify="right")
    table.add_column("Available", justify="right")
    table.add_column("Status", justify="center")

    for part in report.parts:
        status = "[green]✓[/green]" if part.sufficient else "[red]✗[/red]"
        table.add_row(part.part_name, str(part.requested), str(part.available), status)

    console.print(table)

    if report.recommendations:
        rprint("\n[bold]Recommendations:[/bold]")
        for line in report.recommendations:
            rprint(f"  • {line}")

    if not report.coverage_met:
        raise typer.Exit(code=2)


def main() -> None:
    """Entry point for the CLI."""
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )
    app()


if __name__ == "__main__":
    main()
