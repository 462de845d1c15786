"""
Persistence-backed attendance sheets, one document per team.

AttendanceSheetManager keeps the last confirmed sheet per team plus local
edits.  Local state is replaced only after a save has round-tripped
through the store, so a failed save leaves the edits in place.
"""

import asyncio
import logging
from datetime import date

from ..core import attendance as ops
from ..core.config import ATTENDANCE_LOOKAHEAD_DAYS
from ..core.errors import AccessDeniedError, LoadError, SaveError, StrengthBlockError
from ..core.models import AthleteRow, AttendanceSheet
from .document_store import SERVER_TIMESTAMP, DocumentStore
from .serializers import dict_to_sheet, sheet_to_dict

logger = logging.getLogger(__name__)


def attendance_path(team: str) -> str:
    return f"attendance/{team}"


class AttendanceSheetManager:
    """
    Per-team attendance state.

    Attributes:
        sheets: Current sheet per loaded team (including unsaved edits)
        dirty: Teams with edits not yet saved
        errors: Last load/save failure message per team
    """

    def __init__(self, store: DocumentStore, lookahead_days: int = ATTENDANCE_LOOKAHEAD_DAYS):
        self.store = store
        self.lookahead_days = lookahead_days
        self.sheets: dict[str, AttendanceSheet] = {}
        self.dirty: dict[str, bool] = {}
        self.errors: dict[str, str] = {}

    async def _fetch(self, team: str) -> AttendanceSheet:
        raw = await self.store.get(attendance_path(team))
        if raw is None:
            return ops.empty_sheet(team)
        return ops.normalize_sheet(dict_to_sheet(team, raw))

    async def load(self, team: str) -> AttendanceSheet:
        """
        Load a team's sheet, creating an empty one if none is stored.

        Raises:
            LoadError: If the sheet cannot be read or is malformed
            AccessDeniedError: If the caller has no access to the team
        """
        try:
            sheet = await self._fetch(team)
        except AccessDeniedError as e:
            self.errors[team] = str(e)
            raise
        except StrengthBlockError as e:
            self.errors[team] = str(e)
            logger.warning("Failed to load attendance for %s: %s", team, e)
            raise LoadError(team, str(e)) from e

        self.sheets[team] = sheet
        self.dirty[team] = False
        self.errors.pop(team, None)
        return sheet

    async def load_all(self, teams: list[str]) -> list[str]:
        """
        Load several teams concurrently.

        A failing or forbidden team does not affect the others; its
        message is kept in ``errors``.

        Returns:
            The teams that loaded
        """
        results = await asyncio.gather(
            *(self.load(team) for team in teams), return_exceptions=True
        )
        loaded = []
        for team, result in zip(teams, results):
            if isinstance(result, (LoadError, AccessDeniedError)):
                continue
            if isinstance(result, BaseException):
                raise result
            loaded.append(team)
        return loaded

    def sheet(self, team: str) -> AttendanceSheet:
        """Return the current sheet for a loaded team."""
        if team not in self.sheets:
            raise KeyError(f"Attendance for {team} has not been loaded")
        return self.sheets[team]

    def _apply(self, team: str, sheet: AttendanceSheet) -> AttendanceSheet:
        self.sheets[team] = sheet
        self.dirty[team] = True
        return sheet

    # -- edits --------------------------------------------------------------

    def add_date(self, team: str, today: date | None = None) -> AttendanceSheet:
        return self._apply(team, ops.add_date(self.sheet(team), today, self.lookahead_days))

    def remove_date(self, team: str, day: str) -> AttendanceSheet:
        return self._apply(team, ops.remove_date(self.sheet(team), day))

    def rename_date(self, team: str, old_date: str, new_date: str) -> AttendanceSheet:
        return self._apply(team, ops.rename_date(self.sheet(team), old_date, new_date))

    def toggle(self, team: str, athlete_id: str, day: str) -> AttendanceSheet:
        return self._apply(team, ops.toggle(self.sheet(team), athlete_id, day))

    def add_athlete(
        self,
        team: str,
        first_name: str,
        last_name: str,
        level: str | None = None,
    ) -> AttendanceSheet:
        return self._apply(team, ops.add_athlete(self.sheet(team), first_name, last_name, level))

    def remove_athlete(self, team: str, athlete_id: str) -> AttendanceSheet:
        return self._apply(team, ops.remove_athlete(self.sheet(team), athlete_id))

    def import_athletes(self, team: str, rows: list[AthleteRow]) -> AttendanceSheet:
        return self._apply(team, ops.import_athletes(self.sheet(team), rows))

    # -- persistence --------------------------------------------------------

    async def save(self, team: str) -> AttendanceSheet:
        """
        Write the whole sheet in one merged write, then reload it.

        Raises:
            SaveError: If the write or the reload fails; edits are kept
            AccessDeniedError: If the caller has no access to the team
        """
        sheet = self.sheet(team)
        data = sheet_to_dict(sheet)
        data["updated_at"] = SERVER_TIMESTAMP
        try:
            await self.store.set(attendance_path(team), data, merge=True)
            saved = await self._fetch(team)
        except AccessDeniedError as e:
            self.errors[team] = str(e)
            raise
        except StrengthBlockError as e:
            self.errors[team] = str(e)
            logger.warning("Failed to save attendance for %s: %s", team, e)
            raise SaveError(team, str(e)) from e

        self.sheets[team] = saved
        self.dirty[team] = False
        self.errors.pop(team, None)
        logger.info("Saved attendance for %s (%d dates)", team, len(saved.dates))
        return saved
