"""Role documents (``roles/{id}``): fetch, grant/revoke, and change streams."""

import logging
from typing import AsyncIterator

from ..core.config import KNOWN_ROLES
from ..core.models import RoleAssignment
from .document_store import DocumentStore
from .serializers import dict_to_role_assignment, role_assignment_to_dict

logger = logging.getLogger(__name__)


def role_path(user_id: str) -> str:
    return f"roles/{user_id}"


class RoleStore:
    """Reads and writes RoleAssignment documents through a DocumentStore."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def fetch(self, user_id: str) -> RoleAssignment:
        """Current roles for a user; no document means no roles."""
        raw = await self.store.get(role_path(user_id))
        return dict_to_role_assignment(user_id, raw)

    async def subscribe(self, user_id: str) -> AsyncIterator[RoleAssignment]:
        """
        Stream of the user's roles: the current value first, then each change.

        Infinite; each call starts a fresh subscription from current state.
        """
        async for raw in self.store.subscribe(role_path(user_id)):
            yield dict_to_role_assignment(user_id, raw)

    async def save(self, assignment: RoleAssignment) -> None:
        await self.store.set(role_path(assignment.user_id), role_assignment_to_dict(assignment))

    async def grant(
        self,
        user_id: str,
        role: str,
        teams: list[str] | None = None,
    ) -> RoleAssignment:
        """
        Add a role (and optionally replace the team scope) for a user.

        Raises:
            ValueError: If role is not athlete, coach or admin
        """
        role = role.lower()
        if role not in KNOWN_ROLES:
            raise ValueError(f"Unknown role: {role!r}. Must be one of {KNOWN_ROLES}")
        current = await self.fetch(user_id)
        updated = RoleAssignment(
            user_id=user_id,
            roles=current.roles | {role},
            teams=tuple(teams) if teams is not None else current.teams,
        )
        await self.save(updated)
        logger.info("Granted %s to %s", role, user_id)
        return updated

    async def revoke(self, user_id: str, role: str) -> RoleAssignment:
        current = await self.fetch(user_id)
        updated = RoleAssignment(
            user_id=user_id,
            roles=current.roles - {role.lower()},
            teams=current.teams,
        )
        await self.save(updated)
        logger.info("Revoked %s from %s", role, user_id)
        return updated
