"""Shared Typer app objects, shared option types, and the per-command context."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, Coroutine, Optional

import typer

from ..core.config_loader import Settings, load_settings
from ..core.errors import AccessDeniedError, StrengthBlockError
from ..core.models import AthleteProfile
from ..core.roles import RoleResolver
from ..io.attendance_store import AttendanceSheetManager
from ..io.document_store import JsonDocumentStore, ScopedDocumentStore
from ..io.local_state import SelectionStore
from ..io.profile_store import ProfileStore
from ..io.role_store import RoleStore
from ..io.session_ledger import PRDetector, SessionLedger
from . import views

# Shared --user option type used across all commands
UserOption = Annotated[
    Optional[str],
    typer.Option("--user", "-u", help="Signed-in user id (default: 'identity' from config)"),
]

# Shared --store option type used across all commands
StoreOption = Annotated[
    Optional[Path],
    typer.Option("--store", help="Path to the JSON document store"),
]

app = typer.Typer(
    name="strength-block",
    help="5/3/1 training block tracker for athletes and coaches.",
    no_args_is_help=True,
)

coach_app = typer.Typer(help="Operate as one of your athletes.", no_args_is_help=True)
attendance_app = typer.Typer(help="Team attendance sheets (coaches).", no_args_is_help=True)
roles_app = typer.Typer(help="Role assignments.", no_args_is_help=True)

app.add_typer(coach_app, name="coach")
app.add_typer(attendance_app, name="attendance")
app.add_typer(roles_app, name="roles")


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log store traffic and recoveries"),
    ] = False,
) -> None:
    """
    Plan 5/3/1 sessions, log AMRAP sets, and manage team attendance.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@dataclass
class CommandContext:
    """Everything a command needs, bound to one signed-in user."""

    user_id: str
    settings: Settings
    backend: JsonDocumentStore
    store: ScopedDocumentStore
    roles: RoleStore
    profiles: ProfileStore
    ledger: SessionLedger
    detector: PRDetector
    attendance: AttendanceSheetManager
    resolver: RoleResolver


def resolve_user(user: str | None, settings: Settings) -> str:
    """Pick the user id from --user or config, exiting if neither is set."""
    user_id = user or settings.identity
    if not user_id:
        views.print_error("No user given. Pass --user or set 'identity' in config.yaml.")
        raise typer.Exit(1)
    return user_id


async def open_context(user: str | None, store_path: Path | None) -> CommandContext:
    """Build the store stack for one user and resolve their roles."""
    settings = load_settings()
    user_id = resolve_user(user, settings)
    backend = JsonDocumentStore(store_path or settings.store_path)
    scoped = ScopedDocumentStore(backend, user_id)
    roles = RoleStore(scoped)
    ledger = SessionLedger(scoped, fetch_cap=settings.recent_fetch_cap)
    resolver = RoleResolver(user_id, roles, SelectionStore(settings.data_dir, user_id))
    await resolver.resolve()
    return CommandContext(
        user_id=user_id,
        settings=settings,
        backend=backend,
        store=scoped,
        roles=roles,
        profiles=ProfileStore(scoped),
        ledger=ledger,
        detector=PRDetector(ledger, lookback=settings.pr_lookback),
        attendance=AttendanceSheetManager(scoped, lookahead_days=settings.lookahead_days),
        resolver=resolver,
    )


def run(coro: Coroutine[Any, Any, Any]) -> Any:
    """
    Run a command coroutine, turning library errors into exit code 1.
    """
    try:
        return asyncio.run(coro)
    except AccessDeniedError as e:
        views.print_error(f"Not allowed: {e}")
        raise typer.Exit(1)
    except (StrengthBlockError, ValueError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)


async def load_target_profile(ctx: CommandContext) -> AthleteProfile:
    """Profile of the athlete the caller is acting for, exiting if there is none."""
    athlete_id = ctx.resolver.target_athlete_id()
    profile = await ctx.profiles.load(athlete_id)
    if profile is None:
        if athlete_id == ctx.user_id:
            views.print_error("No profile found. Run 'strength-block init' first.")
        else:
            views.print_error(f"Athlete {athlete_id} has no profile.")
        raise typer.Exit(1)
    return profile
