"""
Rich-based display formatting for CLI output.

Provides tables for prescriptions, session history, progress, the coach
roster and attendance sheets.
"""

from datetime import date, datetime

from rich.console import Console
from rich.table import Table

from ..core.attendance import attendance_rate
from ..core.models import (
    ActiveAthleteSelection,
    AttendanceSheet,
    ProgressSummary,
    RoleAssignment,
    RosterEntry,
    SetPrescription,
    WorkoutSession,
)
from ..core.planner import format_target

console = Console()


def _fmt_weight(weight: float) -> str:
    """130.0 → '130', 132.5 → '132.5'."""
    return f"{weight:g}"


def format_last_workout(timestamp: float | None, today: date | None = None) -> str:
    """
    Short relative label for a roster's "last workout" column.

    Today / Yesterday / Nd ago within a week, M/D beyond that, '-' if never.
    """
    if timestamp is None:
        return "-"
    day = datetime.fromtimestamp(timestamp).date()
    days = ((today or date.today()) - day).days
    if days <= 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days}d ago"
    return f"{day.month}/{day.day}"


def format_timestamp(timestamp: float | None) -> str:
    if timestamp is None:
        return "-"
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M")


def print_prescription(
    lift: str,
    week: int,
    unit: str,
    training_max: float,
    rows: list[SetPrescription],
    completed: bool = False,
    athlete_name: str | None = None,
) -> None:
    """
    Print the warmup and work sets for one lift and week.

    Args:
        lift: Lift name
        week: Block week (4 = deload)
        unit: lb or kg
        training_max: Training max the weights were computed from
        rows: Rows from build_prescription
        completed: Whether this week's session was already logged today
        athlete_name: Shown in the title when a coach is acting as an athlete
    """
    who = f" for {athlete_name}" if athlete_name else ""
    title = f"{lift.title()} · Week {week}{' (deload)' if week == 4 else ''}{who}"
    table = Table(title=title)
    table.add_column("Set", style="magenta")
    table.add_column("% TM", justify="right")
    table.add_column(f"Weight ({unit})", justify="right", style="bold")
    table.add_column("Reps", justify="right")

    for row in rows:
        table.add_row(
            "Warmup" if row.kind == "warmup" else "Work",
            f"{row.percentage * 100:.0f}%",
            _fmt_weight(row.weight),
            format_target(row),
        )

    console.print(table)
    console.print(f"Training max: {_fmt_weight(training_max)} {unit}")
    if completed:
        console.print("[green]✓ Completed today[/green]")


def format_session_table(sessions: list[WorkoutSession]) -> Table:
    """
    Create a Rich table displaying session history, newest first.

    Args:
        sessions: List of sessions to display

    Returns:
        Rich Table object
    """
    table = Table(title="Session History")

    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Date", style="cyan")
    table.add_column("Lift", style="magenta")
    table.add_column("Wk", justify="right")
    table.add_column("TM", justify="right")
    table.add_column("AMRAP", justify="right")
    table.add_column("Est 1RM", justify="right", style="bold")
    table.add_column("PR", justify="center")
    table.add_column("Note")

    for i, session in enumerate(sessions, 1):
        table.add_row(
            str(i),
            format_timestamp(session.created_at),
            session.lift,
            str(session.week),
            f"{_fmt_weight(session.training_max)} {session.unit}",
            f"{_fmt_weight(session.amrap.weight)}×{session.amrap.reps}",
            f"{session.estimated_one_rep_max:.1f}",
            "[green]★[/green]" if session.pr else "",
            session.note,
        )

    return table


def print_history(sessions: list[WorkoutSession]) -> None:
    if not sessions:
        console.print("[yellow]No sessions recorded yet.[/yellow]")
        return
    console.print(format_session_table(sessions))


def print_progress(summaries: list[ProgressSummary], unit: str) -> None:
    table = Table(title="Progress")
    table.add_column("Lift", style="magenta")
    table.add_column("Sessions", justify="right")
    table.add_column("PRs", justify="right")
    table.add_column(f"Best est 1RM ({unit})", justify="right", style="bold")
    table.add_column("Avg AMRAP reps", justify="right")
    table.add_column("Latest TM", justify="right")

    for s in summaries:
        table.add_row(
            s.lift,
            str(s.session_count),
            str(s.pr_count),
            f"{s.best_estimate:.1f}" if s.session_count else "-",
            f"{s.average_amrap_reps:.1f}" if s.session_count else "-",
            _fmt_weight(s.latest_training_max) if s.latest_training_max else "-",
        )
    console.print(table)


def print_roster(
    entries: list[RosterEntry],
    last_workouts: dict[str, float | None],
    active_id: str | None = None,
) -> None:
    """Print the coach roster with a last-workout column."""
    table = Table(title="Roster")
    table.add_column("", width=1)
    table.add_column("Athlete", style="bold")
    table.add_column("Id", style="dim")
    table.add_column("Team", style="cyan")
    table.add_column("Unit")
    table.add_column("Roles")
    table.add_column("Last workout", justify="right")

    for entry in entries:
        table.add_row(
            "▶" if entry.athlete_id == active_id else "",
            entry.display_name,
            entry.athlete_id,
            entry.team or "-",
            entry.unit,
            ", ".join(sorted(entry.roles)) or "-",
            format_last_workout(last_workouts.get(entry.athlete_id)),
        )
    console.print(table)


def print_selection(selection: ActiveAthleteSelection | None) -> None:
    if selection is None:
        console.print("Not acting as an athlete.")
        return
    team = f" ({selection.team})" if selection.team else ""
    console.print(
        f"Acting as [bold]{selection.display_name}[/bold]{team} "
        f"[dim]{selection.athlete_id}, {selection.unit}[/dim]"
    )


def print_roles(assignment: RoleAssignment) -> None:
    roles = ", ".join(sorted(assignment.roles)) or "(none)"
    teams = ", ".join(assignment.teams) or "all"
    console.print(f"[bold]{assignment.user_id}[/bold]: {roles}  [dim]teams: {teams}[/dim]")


def print_attendance(sheet: AttendanceSheet) -> None:
    """Print the athlete × date grid with per-athlete rates."""
    table = Table(title=f"Attendance · {sheet.team}")
    table.add_column("Athlete", style="bold")
    table.add_column("Id", style="dim")
    for d in sheet.dates:
        table.add_column(d[5:], justify="center")
    table.add_column("Rate", justify="right")

    for athlete in sheet.athletes:
        marks = ["[green]✓[/green]" if sheet.is_present(athlete.id, d) else "·" for d in sheet.dates]
        rate = attendance_rate(sheet, athlete.id)
        table.add_row(
            athlete.display_name or "-",
            athlete.id[:8],
            *marks,
            f"{rate * 100:.0f}%" if sheet.dates else "-",
        )

    console.print(table)
    if not sheet.athletes:
        console.print("[yellow]No athletes on this sheet yet.[/yellow]")
    if sheet.updated_at is not None:
        console.print(f"[dim]Last saved {format_timestamp(sheet.updated_at)}[/dim]")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error: {message}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning: {message}[/yellow]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]{message}[/blue]")


def confirm_action(message: str) -> bool:
    """
    Prompt user for confirmation.

    Args:
        message: Confirmation message

    Returns:
        True if confirmed, False otherwise
    """
    response = console.input(f"{message} [y/N]: ")
    return response.lower() in ("y", "yes")
