"""
Athlete profiles (``athletes/{id}/profile/main``) and the coach roster.
"""

import asyncio
import logging
from dataclasses import replace

from ..core.errors import StrengthBlockError
from ..core.models import AthleteProfile, RosterEntry
from .document_store import SERVER_TIMESTAMP, DocumentStore
from .role_store import RoleStore
from .serializers import dict_to_profile, profile_to_dict, validate_lift, validate_positive

logger = logging.getLogger(__name__)


def profile_path(athlete_id: str) -> str:
    return f"athletes/{athlete_id}/profile/main"


class ProfileStore:
    """Loads and saves AthleteProfile documents."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def load(self, athlete_id: str) -> AthleteProfile | None:
        """
        Load an athlete's profile.

        Returns:
            AthleteProfile, or None if the athlete has never signed in
        """
        raw = await self.store.get(profile_path(athlete_id))
        if raw is None:
            return None
        return dict_to_profile(athlete_id, raw)

    async def save(self, profile: AthleteProfile) -> None:
        data = profile_to_dict(profile)
        data["updated_at"] = SERVER_TIMESTAMP
        await self.store.set(profile_path(profile.athlete_id), data)

    async def ensure(
        self,
        athlete_id: str,
        first_name: str = "",
        last_name: str = "",
        unit: str = "lb",
        team: str | None = None,
    ) -> AthleteProfile:
        """
        Return the profile, creating it on first sign-in.

        Existing training maxes and unit are kept; names and team are
        updated when given.
        """
        existing = await self.load(athlete_id)
        if existing is None:
            profile = AthleteProfile(
                athlete_id=athlete_id,
                first_name=first_name.strip(),
                last_name=last_name.strip(),
                unit=unit,  # type: ignore[arg-type]
                team=team,
            )
            logger.info("Creating profile for %s", athlete_id)
        else:
            profile = AthleteProfile(
                athlete_id=athlete_id,
                first_name=first_name.strip() or existing.first_name,
                last_name=last_name.strip() or existing.last_name,
                unit=existing.unit,
                training_max=dict(existing.training_max),
                team=team or existing.team,
            )
        await self.save(profile)
        return profile

    async def save_training_max(
        self,
        athlete_id: str,
        lift: str,
        training_max: float,
        unit: str | None = None,
    ) -> AthleteProfile:
        """
        Store a new training max for one lift.

        Raises:
            StrengthBlockError: If the athlete has no profile yet
            ValidationError: If lift or training max is invalid
        """
        validate_lift(lift)
        validate_positive(training_max, "training_max")
        profile = await self.load(athlete_id)
        if profile is None:
            raise StrengthBlockError(f"No profile for athlete {athlete_id}. Run 'init' first.")

        profile.training_max[lift] = float(training_max)
        if unit is not None:
            profile = replace(profile, unit=unit)
        await self.save(profile)
        return profile

    async def list_roster(self, roles: RoleStore | None = None) -> list[RosterEntry]:
        """
        Every athlete with a profile, sorted by last then first name.

        Roles are fetched per athlete when a RoleStore is given; an athlete
        whose roles cannot be read is listed without roles.
        """
        docs = await self.store.collection_group("profile")
        profiles = [
            dict_to_profile(path.split("/")[1], raw)
            for path, raw in docs
            if path.startswith("athletes/")
        ]

        async def _roles_for(athlete_id: str) -> frozenset:
            if roles is None:
                return frozenset()
            try:
                return (await roles.fetch(athlete_id)).roles
            except StrengthBlockError as e:
                logger.warning("Failed to load roles for %s: %s", athlete_id, e)
                return frozenset()

        role_sets = await asyncio.gather(*(_roles_for(p.athlete_id) for p in profiles))
        entries = [
            RosterEntry(
                athlete_id=p.athlete_id,
                first_name=p.first_name,
                last_name=p.last_name,
                unit=p.unit,
                team=p.team,
                roles=r,
            )
            for p, r in zip(profiles, role_sets)
        ]
        entries.sort(key=lambda e: (e.last_name.lower(), e.first_name.lower(), e.athlete_id))
        return entries
