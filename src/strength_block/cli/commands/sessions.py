"""Session commands: log, history, progress."""

import asyncio
from typing import Annotated, Optional

import typer

from ...core.config import DEFAULT_RECENT_LIMIT, LIFTS
from ...io.serializers import ValidationError, validate_lift
from ...io.session_ledger import record_workout
from .. import views
from ..app import StoreOption, UserOption, app, load_target_profile, open_context, run


@app.command()
def log(
    lift: Annotated[str, typer.Argument(help=f"Lift: {', '.join(LIFTS)}")],
    reps: Annotated[
        int,
        typer.Option("--reps", "-r", help="Reps completed on the AMRAP set"),
    ],
    week: Annotated[
        int,
        typer.Option("--week", "-w", help="Block week 1-3"),
    ] = 1,
    note: Annotated[
        str,
        typer.Option("--note", "-n", help="Free-text note"),
    ] = "",
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """
    Record an AMRAP result for the athlete you are acting for.

    The AMRAP weight comes from the week's prescription and the saved
    training max.  Prints the estimated 1RM and whether it is a PR.
    """
    try:
        validate_lift(lift)
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    async def _log() -> None:
        ctx = await open_context(user, store_path)
        profile = await load_target_profile(ctx)
        tm = profile.training_max_for(lift)
        if tm is None:
            views.print_error(
                f"No {lift} training max saved. Run 'strength-block set-tm {lift} <value>'."
            )
            raise typer.Exit(1)

        outcome = await record_workout(
            ctx.ledger,
            ctx.detector,
            profile.athlete_id,
            lift,
            week,
            profile.unit,
            tm,
            reps,
            note=note,
            increment=ctx.settings.increment_for(profile.unit),
        )
        amrap = outcome.session.amrap
        if not outcome.recorded:
            views.print_warning("Store unavailable: workout NOT recorded. Try again.")
            raise typer.Exit(1)

        views.print_success(
            f"Logged {lift} week {week}: {amrap.weight:g} {profile.unit} × {amrap.reps}"
        )
        views.console.print(f"Estimated 1RM: [bold]{outcome.estimate:.1f}[/bold] {profile.unit}")
        if outcome.pr:
            views.console.print("[bold green]★ New PR![/bold green]")

    run(_log())


@app.command()
def history(
    lift: Annotated[
        Optional[str],
        typer.Option("--lift", "-l", help="Only show this lift"),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Number of sessions to show"),
    ] = DEFAULT_RECENT_LIMIT,
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """
    Show recent sessions, newest first.
    """
    if lift is not None:
        try:
            validate_lift(lift)
        except ValidationError as e:
            views.print_error(str(e))
            raise typer.Exit(1)

    async def _history() -> None:
        ctx = await open_context(user, store_path)
        athlete_id = ctx.resolver.target_athlete_id()
        sessions = await ctx.ledger.fetch_recent(athlete_id, lift, limit)
        views.print_history(sessions)

    run(_history())


@app.command()
def progress(
    lift: Annotated[
        Optional[str],
        typer.Argument(help="Lift to summarise (default: all lifts)"),
    ] = None,
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """
    Summarise session counts, PRs and best estimates per lift.
    """
    if lift is not None:
        try:
            validate_lift(lift)
        except ValidationError as e:
            views.print_error(str(e))
            raise typer.Exit(1)

    async def _progress() -> None:
        ctx = await open_context(user, store_path)
        profile = await load_target_profile(ctx)
        lifts = [lift] if lift else list(LIFTS)
        summaries = await asyncio.gather(
            *(ctx.ledger.progress_summary(profile.athlete_id, name) for name in lifts)
        )
        views.print_progress(list(summaries), profile.unit)

    run(_progress())
