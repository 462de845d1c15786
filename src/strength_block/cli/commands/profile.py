"""Profile commands: init, set-tm, and the coach roster."""

import asyncio
from typing import Annotated, Optional

import typer

from ...core.config import LIFTS
from ...core.metrics import training_max_from_one_rep_max, training_max_from_rep_max
from ...io.serializers import ValidationError, validate_lift, validate_unit
from .. import views
from ..app import StoreOption, UserOption, app, load_target_profile, open_context, run


@app.command()
def init(
    first_name: Annotated[
        str,
        typer.Option("--first", "-f", help="First name"),
    ] = "",
    last_name: Annotated[
        str,
        typer.Option("--last", "-l", help="Last name"),
    ] = "",
    unit: Annotated[
        Optional[str],
        typer.Option("--unit", help="Weight unit: lb (default) or kg"),
    ] = None,
    team: Annotated[
        Optional[str],
        typer.Option("--team", "-t", help="Team, e.g. JH or Varsity"),
    ] = None,
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """
    Create or update your own athlete profile.

    Existing training maxes are kept.  Names, team and unit are only
    changed when given.
    """
    if unit is not None:
        try:
            validate_unit(unit)
        except ValidationError as e:
            views.print_error(str(e))
            raise typer.Exit(1)

    async def _init() -> None:
        ctx = await open_context(user, store_path)
        existing = await ctx.profiles.load(ctx.user_id)
        profile = await ctx.profiles.ensure(
            ctx.user_id,
            first_name=first_name,
            last_name=last_name,
            unit=unit or "lb",
            team=team,
        )
        if existing is not None and unit is not None and unit != profile.unit:
            profile.unit = unit  # type: ignore[assignment]
            await ctx.profiles.save(profile)

        verb = "Updated" if existing is not None else "Created"
        views.print_success(f"{verb} profile for {profile.display_name} ({profile.unit})")
        if not profile.training_max:
            views.print_info("Next: set a training max, e.g. 'strength-block set-tm bench 200'")

    run(_init())


@app.command("set-tm")
def set_tm(
    lift: Annotated[str, typer.Argument(help=f"Lift: {', '.join(LIFTS)}")],
    value: Annotated[
        Optional[float],
        typer.Argument(help="Training max to store"),
    ] = None,
    one_rep_max: Annotated[
        Optional[float],
        typer.Option("--one-rm", help="Derive TM as 90% of this one-rep max"),
    ] = None,
    rep_weight: Annotated[
        Optional[float],
        typer.Option("--from-weight", help="Derive TM from a rep-max set: weight"),
    ] = None,
    rep_count: Annotated[
        Optional[int],
        typer.Option("--reps", help="Derive TM from a rep-max set: reps"),
    ] = None,
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """
    Save a training max for the athlete you are acting for.

    Give the TM directly, or derive it with --one-rm, or with
    --from-weight and --reps.
    """
    try:
        validate_lift(lift)
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    sources = sum(x is not None for x in (value, one_rep_max, rep_weight))
    if sources != 1:
        views.print_error("Give exactly one of VALUE, --one-rm, or --from-weight/--reps")
        raise typer.Exit(1)

    if one_rep_max is not None:
        training_max: float = training_max_from_one_rep_max(one_rep_max)
    elif rep_weight is not None:
        if rep_count is None:
            views.print_error("--from-weight needs --reps")
            raise typer.Exit(1)
        training_max = training_max_from_rep_max(rep_weight, rep_count)
    else:
        training_max = value  # type: ignore[assignment]

    async def _set_tm() -> None:
        ctx = await open_context(user, store_path)
        profile = await load_target_profile(ctx)
        updated = await ctx.profiles.save_training_max(profile.athlete_id, lift, training_max)
        ctx.resolver.notify_profile_change()
        views.print_success(
            f"{updated.display_name}: {lift} training max set to {training_max:g} {updated.unit}"
        )

    run(_set_tm())


@app.command()
def roster(
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """
    List every athlete with their team and last workout (coaches only).
    """

    async def _roster() -> None:
        ctx = await open_context(user, store_path)
        if not ctx.resolver.has_coach_access:
            views.print_error("The roster is only available to coaches.")
            raise typer.Exit(1)

        assignment = ctx.resolver.assignment
        role_source = ctx.roles if assignment is not None and assignment.is_admin else None
        entries = await ctx.profiles.list_roster(role_source)
        stamps = await asyncio.gather(
            *(ctx.ledger.last_session_at(e.athlete_id) for e in entries)
        )
        last_workouts = {e.athlete_id: ts for e, ts in zip(entries, stamps)}

        active = ctx.resolver.active_athlete
        views.print_roster(entries, last_workouts, active.athlete_id if active else None)

    run(_roster())
