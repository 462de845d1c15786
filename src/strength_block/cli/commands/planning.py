"""Planning commands: plan."""

from typing import Annotated, Optional

import typer

from ...core.config import LIFTS
from ...core.planner import build_prescription, validate_week
from ...io.serializers import ValidationError, validate_lift, validate_positive
from .. import views
from ..app import StoreOption, UserOption, app, load_target_profile, open_context, run


@app.command()
def plan(
    lift: Annotated[str, typer.Argument(help=f"Lift: {', '.join(LIFTS)}")],
    week: Annotated[
        int,
        typer.Option("--week", "-w", help="Block week 1-4 (4 = deload)"),
    ] = 1,
    training_max: Annotated[
        Optional[float],
        typer.Option("--tm", help="Use this training max instead of the saved one"),
    ] = None,
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """
    Show warmup and work sets for a lift and week.

    Weights are rounded to the nearest plate increment for the athlete's
    unit.  The last work set of weeks 1-3 is an AMRAP set, shown as '5+'.
    """
    try:
        validate_lift(lift)
        validate_week(week)
        if training_max is not None:
            validate_positive(training_max, "training max")
    except (ValidationError, ValueError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    async def _plan() -> None:
        ctx = await open_context(user, store_path)
        profile = await load_target_profile(ctx)
        tm = training_max if training_max is not None else profile.training_max_for(lift)
        if tm is None:
            views.print_error(
                f"No {lift} training max saved. Run 'strength-block set-tm {lift} <value>'."
            )
            raise typer.Exit(1)

        rows = build_prescription(tm, week, profile.unit, ctx.settings.increment_for(profile.unit))
        completed = await ctx.ledger.completed_today(profile.athlete_id, lift, week)
        acting_for = profile.display_name if profile.athlete_id != ctx.user_id else None
        views.print_prescription(lift, week, profile.unit, tm, rows, completed, acting_for)

    run(_plan())
