"""
quantdrill: Main CLI for arithmetic practice.

A Rich terminal interface for adaptive, interleaved arithmetic drills.

Commands:
- quantdrill practice   - Start a timed practice session
- quantdrill drill      - Drill your weakest problems
- quantdrill stats      - Show learning statistics
- quantdrill weak       - List the weakest problems
- quantdrill settings   - Show or change practice settings
- quantdrill export     - Write all data to a JSON file
- quantdrill import     - Replace all data from a JSON file
- quantdrill reset      - Clear all progress
"""
from __future__ import annotations

import random
import sys
import time
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from quantdrill.config import get_settings
from quantdrill.core.modes import SESSION_MODES
from quantdrill.core.operations import OPERATIONS, Operation, operator_symbol
from quantdrill.core.rewards import get_level, streak_label, xp_progress

from .clock import SystemClock
from .memory import MemoryModel
from .pool import build_pool
from .records import Problem, ProblemRecord, SessionSummary
from .selector import ProblemSelector
from .session import AnswerFeedback, PracticeSession
from .state_store import InvalidDataError, StateStore
from .stats import focus_recommendation, operation_stats, weakest_problems

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="quantdrill",
    help="quantdrill: adaptive arithmetic practice",
    no_args_is_help=True,
)
console = Console()


# =============================================================================
# Styling
# =============================================================================

STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "info": "bold cyan",
    "warning": "bold yellow",
    "operation": {
        "add": "green",
        "sub": "yellow",
        "mul": "magenta",
        "div": "blue",
    },
}

QUIT_WORDS = {"q", "quit", "exit"}


def style_operation(operation: str) -> str:
    """Get styled operation name."""
    color = STYLES["operation"].get(operation, "white")
    return f"[{color}]{OPERATIONS[Operation(operation)].name}[/{color}]"


# =============================================================================
# Engine wiring
# =============================================================================


def open_store() -> StateStore:
    return StateStore(get_settings().db_path)


def build_selector(store: StateStore) -> ProblemSelector:
    """Wire pool and selector around a store."""
    clock = SystemClock()
    rng = random.Random(get_settings().seed)
    pool = build_pool(store.get_settings(), store.get_all_records(), rng)
    return ProblemSelector(store, pool, clock, rng)


def build_session(
    store: StateStore,
    mode: str = "sprint",
    selector: ProblemSelector | None = None,
    drill_pool: list[ProblemRecord] | None = None,
) -> PracticeSession:
    """Wire pool, selector and memory model around a store."""
    selector = selector or build_selector(store)
    memory = MemoryModel(store, selector.clock)
    return PracticeSession(
        selector, memory, store, mode=mode, drill=drill_pool is not None, drill_pool=drill_pool
    )


# =============================================================================
# Display Helpers
# =============================================================================


def display_problem(problem: Problem, index: int, session: PracticeSession) -> None:
    """Display a problem with session progress."""
    header = (
        f"#{index}  |  {style_operation(problem.operation)}  |  "
        f"{session.phase.value}  |  {session.remaining_seconds:.0f}s left"
    )
    console.print(Panel(
        f"[bold]{problem.a} {operator_symbol(problem.operation)} {problem.b} = ?[/bold]",
        title=header,
        title_align="left",
        border_style="cyan",
        padding=(1, 4),
    ))


def display_feedback(feedback: AnswerFeedback) -> None:
    """Show the result of an answer."""
    if feedback.is_correct:
        flame = streak_label(feedback.streak)
        console.print(
            f"[green]✓ Correct[/green]  +{feedback.xp_earned} XP  "
            f"streak {feedback.streak} {flame}"
        )
        if feedback.personal_best:
            console.print("[bold yellow]New fastest answer![/bold yellow]")
    else:
        console.print(f"[red]✗ {feedback.correct_answer}[/red]")
        if feedback.hint:
            console.print(f"[dim]{feedback.hint}[/dim]")

    if feedback.leveled_up:
        console.print(f"[bold magenta]Level up! You reached level {feedback.new_level}[/bold magenta]")


def display_summary(summary: SessionSummary) -> None:
    """Display end-of-session summary."""
    console.print()
    console.print(Panel(
        f"[bold]Session Complete![/bold]\n\n"
        f"Duration: {summary.duration_seconds / 60:.1f} minutes\n"
        f"Problems: {summary.total_problems}\n"
        f"Accuracy: {summary.accuracy * 100:.1f}%\n"
        f"Avg time: {summary.avg_response_time_ms / 1000:.1f}s\n"
        f"XP earned: {summary.xp_earned}\n"
        f"Best streak: {summary.streak_peak}",
        title="Summary",
        border_style="green",
    ))

    if summary.operation_breakdown:
        table = Table(title="By operation")
        table.add_column("Operation")
        table.add_column("Count", justify="right")
        table.add_column("Accuracy", justify="right")
        table.add_column("Avg time", justify="right")
        for op, entry in summary.operation_breakdown.items():
            table.add_row(
                style_operation(op),
                str(entry.count),
                f"{entry.correct / entry.count * 100:.0f}%",
                f"{entry.avg_time_ms / 1000:.1f}s",
            )
        console.print(table)

    if summary.weakest_problems:
        console.print(f"[dim]Most missed: {', '.join(summary.weakest_problems)}[/dim]")


def run_session(session: PracticeSession) -> SessionSummary:
    """Interactive turn loop shared by practice and drill."""
    timer_limit_ms = session.store.get_settings().timer_limit_ms
    index = 0

    try:
        while not session.is_over:
            problem = session.next_problem()
            if problem is None:
                break

            index += 1
            console.print()
            display_problem(problem, index, session)

            start = time.monotonic()
            raw = Prompt.ask("Answer [dim](q to quit)[/dim]").strip()
            response_ms = int((time.monotonic() - start) * 1000)

            if raw.lower() in QUIT_WORDS:
                break

            try:
                user_answer: int | None = int(raw)
            except ValueError:
                user_answer = None

            timed_out = response_ms > timer_limit_ms
            if timed_out:
                console.print("[yellow]Time's up![/yellow]")

            feedback = session.submit(problem, user_answer, response_ms, timed_out=timed_out)
            display_feedback(feedback)

    except KeyboardInterrupt:
        console.print("\n\n[yellow]Session interrupted.[/yellow]")

    return session.finish()


# =============================================================================
# Commands
# =============================================================================


@app.command()
def practice(
    mode: str = typer.Option(
        "sprint",
        "--mode", "-m",
        help=f"Session mode: {', '.join(SESSION_MODES)}",
    ),
) -> None:
    """
    Start a timed practice session.

    Problems are chosen adaptively from your SM-2 history, interleaved
    across operations and balanced toward an even mix.
    """
    if mode not in SESSION_MODES:
        console.print(f"[red]Unknown mode '{mode}'. Choose from: {', '.join(SESSION_MODES)}[/red]")
        raise typer.Exit(1)

    store = open_store()
    if not store.get_settings().enabled_operations():
        console.print("[red]No operations enabled.[/red] Run 'quantdrill settings --enable mul'.")
        raise typer.Exit(1)

    session_mode = SESSION_MODES[mode]
    console.print(f"\n[bold cyan]quantdrill[/bold cyan] - {session_mode.label}", style="bold")
    console.print(f"[dim]{session_mode.description}[/dim]")

    summary = run_session(build_session(store, mode=mode))
    display_summary(summary)
    store.close()


@app.command()
def drill() -> None:
    """Drill the problems you miss most often."""
    store = open_store()
    selector = build_selector(store)
    drill_pool = selector.get_drill_problems()

    if not drill_pool:
        console.print(Panel(
            "You don't have enough mistake data yet.\n"
            "Keep practicing and problems you get wrong will appear here.",
            title="[bold]No Weak Spots![/bold]",
            border_style="green",
        ))
        store.close()
        raise typer.Exit(0)

    session = build_session(store, selector=selector, drill_pool=drill_pool)
    console.print(f"\n[bold cyan]Mistake Drill[/bold cyan] - {len(session.drill_pool)} problems")
    summary = run_session(session)
    display_summary(summary)
    store.close()


@app.command()
def stats() -> None:
    """Show learning statistics and progress."""
    store = open_store()
    db_stats = store.get_stats()
    total_xp = db_stats["total_xp"]

    console.print("\n[bold cyan]Learning Statistics[/bold cyan]")
    console.print("=" * 40)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Problems tracked", str(db_stats["problems_tracked"]))
    table.add_row("Problems due today", str(db_stats["problems_due"]))
    table.add_row("Total attempts", str(db_stats["total_attempts"]))
    table.add_row("Accuracy", f"{db_stats['accuracy_percent']:.1f}%")
    table.add_row("Sessions completed", str(db_stats["sessions_completed"]))
    table.add_row("Level", f"{get_level(total_xp)} ({xp_progress(total_xp):.0%} to next)")
    table.add_row("Total XP", str(total_xp))

    console.print(table)

    op_table = Table(title="Operations")
    op_table.add_column("Operation")
    op_table.add_column("Attempts", justify="right")
    op_table.add_column("Accuracy", justify="right")
    op_table.add_column("Avg time", justify="right")
    op_table.add_column("Trend")
    for op in Operation:
        op_stats = operation_stats(store, op)
        if op_stats is None:
            continue
        op_table.add_row(
            style_operation(op.value),
            str(op_stats.total_attempts),
            f"{op_stats.accuracy * 100:.0f}%",
            f"{op_stats.avg_time_ms / 1000:.1f}s",
            op_stats.trend,
        )
    if op_table.rows:
        console.print(op_table)

    focus = focus_recommendation(store)
    if focus:
        console.print(
            f"\n[bold]Focus:[/bold] {style_operation(focus.operation)} - {focus.reason}"
        )

    sessions = store.get_session_history(limit=5)
    if sessions:
        session_table = Table(title="Recent Sessions")
        session_table.add_column("Date")
        session_table.add_column("Mode")
        session_table.add_column("Problems", justify="right")
        session_table.add_column("Accuracy", justify="right")
        session_table.add_column("XP", justify="right")
        for s in sessions:
            session_table.add_row(
                s.started_at.strftime("%Y-%m-%d %H:%M"),
                s.mode,
                str(s.total_problems),
                f"{s.accuracy * 100:.0f}%",
                str(s.xp_earned),
            )
        console.print(session_table)

    store.close()


@app.command()
def weak(
    limit: int = typer.Option(5, "--limit", "-l", help="Number of problems to list"),
) -> None:
    """List your weakest problems."""
    store = open_store()
    records = weakest_problems(store, limit=limit)

    if not records:
        console.print("[green]No weak problems yet.[/green]")
        store.close()
        return

    table = Table(title="Weakest Problems")
    table.add_column("Problem")
    table.add_column("Attempts", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Avg time", justify="right")
    table.add_column("Ease", justify="right")
    for r in records:
        table.add_row(
            f"{r.operand_a} {operator_symbol(r.operation)} {r.operand_b}",
            str(r.total_attempts),
            f"{(r.accuracy or 0) * 100:.0f}%",
            f"{(r.avg_response_ms or 0) / 1000:.1f}s",
            f"{r.ease_factor:.2f}",
        )
    console.print(table)
    store.close()


@app.command()
def settings(
    enable: Optional[list[str]] = typer.Option(None, "--enable", "-e", help="Enable an operation"),
    disable: Optional[list[str]] = typer.Option(None, "--disable", "-d", help="Disable an operation"),
    timer: Optional[int] = typer.Option(None, "--timer", "-t", help="Seconds per problem"),
    op_range: Optional[tuple[str, int, int, int, int]] = typer.Option(
        None,
        "--range", "-r",
        help="Operand range: OP MIN_A MAX_A MIN_B MAX_B",
    ),
) -> None:
    """Show or change practice settings."""
    store = open_store()
    practice_settings = store.get_settings()

    try:
        for name in enable or []:
            practice_settings.range_for(name).enabled = True
        for name in disable or []:
            practice_settings.range_for(name).enabled = False
        if op_range:
            name, min_a, max_a, min_b, max_b = op_range
            target = practice_settings.range_for(name)
            target.min_a, target.max_a, target.min_b, target.max_b = min_a, max_a, min_b, max_b
    except ValueError:
        console.print(f"[red]Unknown operation. Choose from: {', '.join(op.value for op in Operation)}[/red]")
        store.close()
        raise typer.Exit(1)

    if timer is not None:
        practice_settings.timer_seconds = timer

    if enable or disable or op_range or timer is not None:
        store.save_settings(practice_settings)
        console.print("[green]Settings saved.[/green]")

    table = Table(title=f"Practice Settings (timer {practice_settings.timer_seconds}s)")
    table.add_column("Operation")
    table.add_column("Enabled")
    table.add_column("A range")
    table.add_column("B range")
    for op, rng in practice_settings.operation_ranges.items():
        table.add_row(
            style_operation(op.value),
            "[green]yes[/green]" if rng.enabled else "[red]no[/red]",
            f"{rng.min_a}-{rng.max_a}",
            f"{rng.min_b}-{rng.max_b}",
        )
    console.print(table)
    store.close()


@app.command("export")
def export_cmd(
    path: Path = typer.Argument(..., help="Destination JSON file"),
) -> None:
    """Export all progress to a JSON file."""
    store = open_store()
    path.write_text(store.export_data(), encoding="utf-8")
    console.print(f"[green]Exported to {path}[/green]")
    store.close()


@app.command("import")
def import_cmd(
    path: Path = typer.Argument(..., help="JSON file produced by 'quantdrill export'"),
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Replace all progress with an exported JSON file."""
    if not path.exists():
        console.print(f"[red]File not found: {path}[/red]")
        raise typer.Exit(1)

    if not confirm and not Confirm.ask("Replace ALL current progress?", default=False):
        raise typer.Exit(0)

    store = open_store()
    try:
        count = store.import_data(path.read_text(encoding="utf-8"))
    except InvalidDataError as e:
        console.print(f"[red]Import failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        store.close()

    console.print(f"[green]Imported {count} problem records[/green]")


@app.command()
def reset(
    confirm: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Skip confirmation",
    ),
) -> None:
    """Clear all progress for a fresh start (a backup is written first)."""
    if not confirm and not Confirm.ask("Reset ALL progress? This cannot be undone!", default=False):
        raise typer.Exit(0)

    store = open_store()
    count = store.reset()
    store.close()
    console.print(f"[green]Reset complete: {count} problem records deleted.[/green]")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    settings = get_settings()

    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{message}</level>",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="1 MB")

    app()


if __name__ == "__main__":
    main()
