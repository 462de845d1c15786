"""
Role resolution and the coach's active-athlete pointer.

RoleResolver is the single authority the front-end asks "who am I acting
as?".  It caches the caller's RoleAssignment, follows role changes, and
owns the versioned ActiveAthleteSelection.  Every mutation of the
selection bumps ``version``; anything that fetched data for the previous
target must re-fetch (see VersionedCache).

The resolver only supplies the intended scope.  Whether the caller may
actually read or write that scope is decided by the document store.
"""

import logging
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, Generic, Protocol, TypeVar

from .errors import AccessDeniedError
from .models import ActiveAthleteSelection, AthleteProfile, RoleAssignment, RosterEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RoleSource(Protocol):
    async def fetch(self, user_id: str) -> RoleAssignment: ...

    def subscribe(self, user_id: str) -> AsyncIterator[RoleAssignment]: ...


class SelectionPersistence(Protocol):
    def load(self) -> ActiveAthleteSelection | None: ...

    def save(self, selection: ActiveAthleteSelection) -> None: ...

    def clear(self) -> None: ...


class ResolverState(Enum):
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"


class RoleResolver:
    """
    Caller roles plus the optional active athlete.

    Args:
        user_id: Signed-in identity
        roles: Source of RoleAssignment values and change streams
        selections: Local persistence for the selection (optional)
    """

    def __init__(
        self,
        user_id: str,
        roles: RoleSource,
        selections: SelectionPersistence | None = None,
    ):
        self.user_id = user_id
        self._roles = roles
        self._selections = selections
        self.state = ResolverState.UNRESOLVED
        self.assignment: RoleAssignment | None = None
        self._selection: ActiveAthleteSelection | None = None
        self.version = 0

    # -- read side ----------------------------------------------------------

    @property
    def roles(self) -> frozenset:
        return self.assignment.roles if self.assignment else frozenset()

    @property
    def has_coach_access(self) -> bool:
        return self.assignment is not None and self.assignment.has_coach_access

    @property
    def active_athlete(self) -> ActiveAthleteSelection | None:
        return self._selection

    def target_athlete_id(self) -> str:
        """Athlete whose data the caller intends to view or edit."""
        if self.has_coach_access and self._selection is not None:
            return self._selection.athlete_id
        return self.user_id

    def _bump(self) -> int:
        self.version += 1
        return self.version

    # -- role state ---------------------------------------------------------

    async def resolve(self) -> RoleAssignment:
        """
        Fetch the caller's roles and move to RESOLVED.

        A persisted selection is restored for coaches and admins and
        deleted for everyone else.
        """
        assignment = await self._roles.fetch(self.user_id)
        self.apply_roles(assignment)

        if self.has_coach_access and self._selection is None and self._selections is not None:
            stored = self._selections.load()
            if stored is not None:
                self._selection = ActiveAthleteSelection(
                    athlete_id=stored.athlete_id,
                    first_name=stored.first_name,
                    last_name=stored.last_name,
                    team=stored.team,
                    unit=stored.unit,
                    version=self._bump(),
                )
                logger.debug("Restored active athlete %s", stored.athlete_id)
        return assignment

    def apply_roles(self, assignment: RoleAssignment) -> None:
        """
        Handle one role notification.

        Without coach or admin, the selection and its persisted copy are
        gone before this returns.
        """
        if assignment.user_id != self.user_id:
            raise ValueError(
                f"Roles for {assignment.user_id} delivered to resolver for {self.user_id}"
            )
        self.assignment = assignment
        self.state = ResolverState.RESOLVED
        if assignment.has_coach_access:
            return

        had_selection = self._selection is not None
        self._selection = None
        if self._selections is not None:
            self._selections.clear()
        if had_selection:
            self._bump()
            logger.info("Cleared active athlete for %s after role change", self.user_id)

    async def watch(self, limit: int | None = None) -> None:
        """
        Follow the caller's role stream, applying each delivery.

        Runs until cancelled, or until ``limit`` deliveries have been applied.
        """
        seen = 0
        async for assignment in self._roles.subscribe(self.user_id):
            self.apply_roles(assignment)
            seen += 1
            if limit is not None and seen >= limit:
                return

    def sign_out(self) -> None:
        """Forget roles and the in-memory selection; the persisted copy stays with the identity."""
        self.state = ResolverState.UNRESOLVED
        self.assignment = None
        if self._selection is not None:
            self._selection = None
            self._bump()

    # -- active athlete -----------------------------------------------------

    def set_active_athlete(self, athlete: RosterEntry | AthleteProfile) -> ActiveAthleteSelection:
        """
        Operate as another athlete.

        Raises:
            AccessDeniedError: If the caller does not currently hold coach or admin
        """
        if not self.has_coach_access:
            raise AccessDeniedError(f"{self.user_id} cannot select an active athlete")

        selection = ActiveAthleteSelection(
            athlete_id=athlete.athlete_id,
            first_name=athlete.first_name,
            last_name=athlete.last_name,
            team=athlete.team,
            unit=athlete.unit,
            version=self._bump(),
        )
        self._selection = selection
        if self._selections is not None:
            self._selections.save(selection)
        logger.info("%s is now acting as %s", self.user_id, athlete.athlete_id)
        return selection

    def clear_active_athlete(self) -> None:
        self._selection = None
        if self._selections is not None:
            self._selections.clear()
        self._bump()

    def notify_profile_change(self) -> None:
        """Signal that the target's profile changed so dependents re-fetch."""
        self._bump()


class VersionedCache(Generic[T]):
    """
    One cached value tied to a resolver's version.

    ``get`` re-runs the fetch whenever the resolver's version differs from
    the version the cached value was fetched under.
    """

    def __init__(self, resolver: RoleResolver):
        self._resolver = resolver
        self._version: int | None = None
        self._value: T | None = None

    async def get(self, fetch: Callable[[], Awaitable[T]]) -> T:
        version = self._resolver.version
        if self._version == version:
            return self._value  # type: ignore[return-value]
        value = await fetch()
        self._value = value
        self._version = version
        return value

    def invalidate(self) -> None:
        self._version = None
        self._value = None
