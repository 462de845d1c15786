"""Attendance commands: show, add/remove/rename dates, toggle marks, manage athletes, CSV import."""

from pathlib import Path
from typing import Annotated, Callable, Optional

import typer

from ...core.attendance import parse_roster_csv
from ...core.models import AttendanceSheet
from ...io.attendance_store import AttendanceSheetManager
from .. import views
from ..app import CommandContext, StoreOption, UserOption, attendance_app, open_context, run

TeamArgument = Annotated[str, typer.Argument(help="Team, e.g. JH or Varsity")]


def _check_team(ctx: CommandContext, team: str) -> None:
    if team not in ctx.settings.teams:
        views.print_error(f"Unknown team: {team}. Must be one of {', '.join(ctx.settings.teams)}")
        raise typer.Exit(1)


def _edit(
    team: str,
    user: str | None,
    store_path: Path | None,
    edit: Callable[[AttendanceSheetManager], AttendanceSheet],
    message: str,
) -> None:
    """Load a team sheet, apply one edit, save it, and print the result."""

    async def _run() -> None:
        ctx = await open_context(user, store_path)
        _check_team(ctx, team)
        await ctx.attendance.load(team)
        edit(ctx.attendance)
        saved = await ctx.attendance.save(team)
        views.print_success(message)
        views.print_attendance(saved)

    run(_run())


def _resolve_athlete(sheet: AttendanceSheet, key: str) -> str:
    """Accept a full athlete id or a unique id prefix as shown by 'attendance show'."""
    if sheet.find_athlete(key) is not None:
        return key
    matches = [a.id for a in sheet.athletes if a.id.startswith(key)]
    if len(matches) != 1:
        views.print_error(f"No single athlete matches {key!r} on the {sheet.team} sheet")
        raise typer.Exit(1)
    return matches[0]


@attendance_app.command("show")
def attendance_show(
    team: TeamArgument,
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """Print a team's attendance grid."""

    async def _show() -> None:
        ctx = await open_context(user, store_path)
        _check_team(ctx, team)
        sheet = await ctx.attendance.load(team)
        views.print_attendance(sheet)

    run(_show())


@attendance_app.command("add-date")
def attendance_add_date(
    team: TeamArgument,
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """Add the next unused date, starting from today."""
    _edit(team, user, store_path, lambda m: m.add_date(team), "Date added.")


@attendance_app.command("remove-date")
def attendance_remove_date(
    team: TeamArgument,
    day: Annotated[str, typer.Argument(help="Date to remove (YYYY-MM-DD)")],
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """Remove a date column and every mark under it."""
    _edit(team, user, store_path, lambda m: m.remove_date(team, day), f"Removed {day}.")


@attendance_app.command("rename-date")
def attendance_rename_date(
    team: TeamArgument,
    old_date: Annotated[str, typer.Argument(help="Existing date (YYYY-MM-DD)")],
    new_date: Annotated[str, typer.Argument(help="New date (YYYY-MM-DD); empty removes it")],
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """Move a date column, keeping every athlete's mark."""
    _edit(
        team,
        user,
        store_path,
        lambda m: m.rename_date(team, old_date, new_date),
        f"Renamed {old_date} to {new_date}." if new_date.strip() else f"Removed {old_date}.",
    )


@attendance_app.command("toggle")
def attendance_toggle(
    team: TeamArgument,
    athlete: Annotated[str, typer.Argument(help="Athlete id (or its first characters)")],
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """Flip an athlete's present mark for a date."""

    def _toggle(manager: AttendanceSheetManager) -> AttendanceSheet:
        athlete_id = _resolve_athlete(manager.sheet(team), athlete)
        return manager.toggle(team, athlete_id, day)

    _edit(team, user, store_path, _toggle, "Attendance updated.")


@attendance_app.command("add-athlete")
def attendance_add_athlete(
    team: TeamArgument,
    first_name: Annotated[str, typer.Argument(help="First name")],
    last_name: Annotated[str, typer.Argument(help="Last name")] = "",
    level: Annotated[
        Optional[str],
        typer.Option("--level", help="Level shown on the row (default: the team)"),
    ] = None,
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """Add an athlete row to a team sheet."""
    _edit(
        team,
        user,
        store_path,
        lambda m: m.add_athlete(team, first_name, last_name, level),
        f"Added {first_name} {last_name}".strip() + ".",
    )


@attendance_app.command("remove-athlete")
def attendance_remove_athlete(
    team: TeamArgument,
    athlete: Annotated[str, typer.Argument(help="Athlete id (or its first characters)")],
    force: Annotated[bool, typer.Option("--force", "-f", help="Skip confirmation")] = False,
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """Remove an athlete row and all of its marks."""

    def _remove(manager: AttendanceSheetManager) -> AttendanceSheet:
        sheet = manager.sheet(team)
        athlete_id = _resolve_athlete(sheet, athlete)
        row = sheet.find_athlete(athlete_id)
        name = row.display_name if row is not None and row.display_name else athlete_id
        if not force and not views.confirm_action(f"Remove {name} from {team}?"):
            views.print_info("Cancelled.")
            raise typer.Exit(0)
        return manager.remove_athlete(team, athlete_id)

    _edit(team, user, store_path, _remove, "Athlete removed.")


@attendance_app.command("import-csv")
def attendance_import_csv(
    team: TeamArgument,
    csv_path: Annotated[
        Path,
        typer.Argument(help="CSV/TSV with first,last[,level] per line", exists=True, dir_okay=False),
    ],
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """
    Import athletes from a CSV file.

    Rows whose level names another configured team are added to that
    team's sheet; every touched sheet is saved.
    """
    text = csv_path.read_text(encoding="utf-8")

    async def _import() -> None:
        ctx = await open_context(user, store_path)
        _check_team(ctx, team)
        parsed = parse_roster_csv(text, default_level=team, known_levels=ctx.settings.teams)
        for error in parsed.errors:
            views.print_warning(error)
        if not parsed.total:
            views.print_error("No athletes found in the file.")
            raise typer.Exit(1)

        for level, rows in parsed.by_level.items():
            await ctx.attendance.load(level)
            ctx.attendance.import_athletes(level, rows)
            await ctx.attendance.save(level)
            views.print_success(f"Imported {len(rows)} athlete(s) into {level}.")

    run(_import())
