"""Coach commands (coach use/clear/show) and role administration (roles grant/revoke/show)."""

from typing import Annotated, Optional

import typer

from ...core.config import KNOWN_ROLES
from ...io.role_store import RoleStore
from .. import views
from ..app import StoreOption, UserOption, coach_app, open_context, roles_app, run


@coach_app.command("use")
def coach_use(
    athlete_id: Annotated[str, typer.Argument(help="Athlete id from 'strength-block roster'")],
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """
    Act as an athlete: plan, log, history and set-tm target them until cleared.
    """

    async def _use() -> None:
        ctx = await open_context(user, store_path)
        if not ctx.resolver.has_coach_access:
            views.print_error("Only coaches can act as another athlete.")
            raise typer.Exit(1)
        profile = await ctx.profiles.load(athlete_id)
        if profile is None:
            views.print_error(f"Athlete {athlete_id} has no profile.")
            raise typer.Exit(1)
        ctx.resolver.set_active_athlete(profile)
        views.print_selection(ctx.resolver.active_athlete)

    run(_use())


@coach_app.command("clear")
def coach_clear(
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """Stop acting as an athlete."""

    async def _clear() -> None:
        ctx = await open_context(user, store_path)
        ctx.resolver.clear_active_athlete()
        views.print_success("Cleared active athlete.")

    run(_clear())


@coach_app.command("show")
def coach_show(
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """Show the athlete you are acting as, if any."""

    async def _show() -> None:
        ctx = await open_context(user, store_path)
        views.print_selection(ctx.resolver.active_athlete)

    run(_show())


@roles_app.command("grant")
def roles_grant(
    target: Annotated[str, typer.Argument(help="User id to grant the role to")],
    role: Annotated[str, typer.Argument(help=f"Role: {', '.join(KNOWN_ROLES)}")],
    teams: Annotated[
        Optional[list[str]],
        typer.Option("--team", "-t", help="Restrict coach scope to a team (repeatable)"),
    ] = None,
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """
    Grant a role (admins only).

    On a store with no role documents at all, the first grant is allowed
    for anyone so an initial admin can be created.
    """

    async def _grant() -> None:
        ctx = await open_context(user, store_path)
        existing = await ctx.backend.collection_group("roles")
        if existing:
            store = ctx.roles
        else:
            views.print_info("No roles exist yet; creating the first assignment.")
            store = RoleStore(ctx.backend)
        assignment = await store.grant(target, role, teams or None)
        views.print_success(f"Granted {role.lower()} to {target}")
        views.print_roles(assignment)

    run(_grant())


@roles_app.command("revoke")
def roles_revoke(
    target: Annotated[str, typer.Argument(help="User id to revoke the role from")],
    role: Annotated[str, typer.Argument(help=f"Role: {', '.join(KNOWN_ROLES)}")],
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """Revoke a role (admins only)."""

    async def _revoke() -> None:
        ctx = await open_context(user, store_path)
        assignment = await ctx.roles.revoke(target, role)
        views.print_success(f"Revoked {role.lower()} from {target}")
        views.print_roles(assignment)

    run(_revoke())


@roles_app.command("show")
def roles_show(
    target: Annotated[
        Optional[str],
        typer.Argument(help="User id (default: yourself)"),
    ] = None,
    user: UserOption = None,
    store_path: StoreOption = None,
) -> None:
    """Show a user's roles and team scope."""

    async def _show() -> None:
        ctx = await open_context(user, store_path)
        assignment = await ctx.roles.fetch(target or ctx.user_id)
        views.print_roles(assignment)

    run(_show())
