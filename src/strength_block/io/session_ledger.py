"""
Append-only workout session ledger and PR detection.

Sessions live under ``athletes/{id}/sessions`` and are ordered by the
store-assigned ``created_at``.  The store offers only one ordered query
with no filter, so lift-filtered reads fetch a fixed-size unfiltered page
and filter in memory; older sessions beyond that page are not visible.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import AsyncIterator

from ..core.config import DEFAULT_RECENT_LIMIT, PR_LOOKBACK, RECENT_FETCH_CAP
from ..core.errors import StoreUnavailableError, ValidationError
from ..core.metrics import estimate_one_rep_max
from ..core.models import AmrapResult, ProgressSummary, WorkoutSession
from ..core.planner import (
    amrap_row,
    build_prescription,
    has_amrap,
    validate_week,
    warmup_rows,
    work_rows,
)
from .document_store import DocumentStore
from .serializers import dict_to_session, session_to_dict, validate_lift, validate_positive

logger = logging.getLogger(__name__)


def sessions_path(athlete_id: str) -> str:
    return f"athletes/{athlete_id}/sessions"


class SessionLedger:
    """Reads and appends WorkoutSession records for athletes."""

    def __init__(self, store: DocumentStore, fetch_cap: int = RECENT_FETCH_CAP):
        self.store = store
        self.fetch_cap = fetch_cap

    async def append(self, athlete_id: str, session: WorkoutSession) -> WorkoutSession | None:
        """
        Persist a session with a server-assigned timestamp.

        Args:
            athlete_id: Athlete whose ledger receives the session
            session: Session built by the caller (created_at is ignored)

        Returns:
            The stored session (with created_at and session_id), or None
            if the store is unavailable and nothing was recorded

        Raises:
            AccessDeniedError: If the caller may not write this athlete's data
        """
        if session.athlete_id != athlete_id:
            raise ValueError(
                f"Session belongs to {session.athlete_id}, not {athlete_id}"
            )
        try:
            doc_id, stored = await self.store.add(
                sessions_path(athlete_id), session_to_dict(session)
            )
        except StoreUnavailableError as e:
            logger.warning("Session for %s not recorded: %s", athlete_id, e)
            return None
        logger.debug("Recorded %s session %s for %s", session.lift, doc_id, athlete_id)
        return dict_to_session(stored, athlete_id=athlete_id, session_id=doc_id)

    async def recent(
        self,
        athlete_id: str,
        lift: str | None = None,
        limit: int = DEFAULT_RECENT_LIMIT,
    ) -> AsyncIterator[WorkoutSession]:
        """
        Yield the athlete's most recent sessions, newest first.

        With a lift filter, one unfiltered page of max(limit, fetch_cap)
        sessions is fetched and filtered here.  Malformed records are
        skipped with a warning.
        """
        if limit <= 0:
            return
        page = limit if lift is None else max(limit, self.fetch_cap)
        rows = await self.store.query(sessions_path(athlete_id), page)

        yielded = 0
        for doc_id, raw in rows:
            if lift is not None and raw.get("lift") != lift:
                continue
            try:
                session = dict_to_session(raw, athlete_id=athlete_id, session_id=doc_id)
            except ValidationError as e:
                logger.warning("Skipping malformed session %s for %s: %s", doc_id, athlete_id, e)
                continue
            yield session
            yielded += 1
            if yielded >= limit:
                return

    async def fetch_recent(
        self,
        athlete_id: str,
        lift: str | None = None,
        limit: int = DEFAULT_RECENT_LIMIT,
    ) -> list[WorkoutSession]:
        return [s async for s in self.recent(athlete_id, lift, limit)]

    async def best_estimate(
        self,
        athlete_id: str,
        lift: str,
        lookback: int = PR_LOOKBACK,
    ) -> float:
        """Highest estimated 1RM among the last ``lookback`` sessions of a lift (0 if none)."""
        best = 0.0
        async for session in self.recent(athlete_id, lift, lookback):
            best = max(best, session.estimated_one_rep_max)
        return best

    async def last_session_at(self, athlete_id: str) -> float | None:
        """Timestamp of the athlete's newest session of any lift."""
        async for session in self.recent(athlete_id, None, 1):
            return session.created_at
        return None

    async def completed_today(
        self,
        athlete_id: str,
        lift: str,
        week: int,
        today: date | None = None,
    ) -> bool:
        """
        True if a session for this lift and week was recorded today.

        Recomputed from the recent page on every call.
        """
        day = today or date.today()
        async for session in self.recent(athlete_id, lift, self.fetch_cap):
            if session.week != week or session.created_at is None:
                continue
            if datetime.fromtimestamp(session.created_at).date() == day:
                return True
        return False

    async def progress_summary(self, athlete_id: str, lift: str) -> ProgressSummary:
        """Counts, PRs and best estimate over the visible page for one lift."""
        sessions = await self.fetch_recent(athlete_id, lift, self.fetch_cap)
        if not sessions:
            return ProgressSummary(
                lift=lift,  # type: ignore[arg-type]
                session_count=0,
                pr_count=0,
                best_estimate=0.0,
                average_amrap_reps=0.0,
                latest_training_max=None,
            )
        return ProgressSummary(
            lift=lift,  # type: ignore[arg-type]
            session_count=len(sessions),
            pr_count=sum(1 for s in sessions if s.pr),
            best_estimate=max(s.estimated_one_rep_max for s in sessions),
            average_amrap_reps=sum(s.amrap.reps for s in sessions) / len(sessions),
            latest_training_max=sessions[0].training_max,
        )


class PRDetector:
    """Decides whether a new estimate beats the athlete's recent best for a lift."""

    def __init__(self, ledger: SessionLedger, lookback: int = PR_LOOKBACK):
        self.ledger = ledger
        self.lookback = lookback

    async def is_personal_record(self, athlete_id: str, lift: str, estimate: float) -> bool:
        """
        Compare against sessions already in the ledger.

        Must be called before the new session is appended.  Ties are not PRs.
        """
        best = await self.ledger.best_estimate(athlete_id, lift, self.lookback)
        return estimate > best


@dataclass(frozen=True)
class RecordOutcome:
    """Result of recording one workout."""

    session: WorkoutSession
    recorded: bool  # False when the store was unavailable; safe to retry

    @property
    def pr(self) -> bool:
        return self.session.pr

    @property
    def estimate(self) -> float:
        return self.session.estimated_one_rep_max


async def record_workout(
    ledger: SessionLedger,
    detector: PRDetector,
    athlete_id: str,
    lift: str,
    week: int,
    unit: str,
    training_max: float,
    amrap_reps: int,
    note: str = "",
    increment: float | None = None,
) -> RecordOutcome:
    """
    Estimate, PR-check and append one AMRAP workout.

    The AMRAP weight is the last work set of the week's prescription.

    Raises:
        ValueError: For week 4 (no AMRAP), an invalid week, or reps < 1
        ValidationError: For an unknown lift or non-positive training max
        AccessDeniedError: If the caller may not write this athlete's data
    """
    validate_week(week)
    if not has_amrap(week):
        raise ValueError("Week 4 is a deload week; there is no AMRAP set to record.")
    validate_lift(lift)
    validate_positive(training_max, "training_max")
    if amrap_reps < 1:
        raise ValueError("Enter the reps completed on the AMRAP set.")

    rows = build_prescription(training_max, week, unit, increment)
    top = amrap_row(rows)
    if top is None:
        raise ValueError(f"Week {week} has no AMRAP set to record.")
    estimate = estimate_one_rep_max(top.weight, amrap_reps)
    pr = await detector.is_personal_record(athlete_id, lift, estimate)

    session = WorkoutSession(
        athlete_id=athlete_id,
        lift=lift,  # type: ignore[arg-type]
        week=week,
        unit=unit,  # type: ignore[arg-type]
        training_max=float(training_max),
        warmups=tuple(warmup_rows(rows)),
        work=tuple(work_rows(rows)),
        amrap=AmrapResult(weight=top.weight, reps=amrap_reps),
        estimated_one_rep_max=estimate,
        pr=pr,
        note=note.strip(),
    )
    stored = await ledger.append(athlete_id, session)
    if stored is None:
        return RecordOutcome(session=session, recorded=False)
    return RecordOutcome(session=stored, recorded=True)
