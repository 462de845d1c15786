"""
Data models for strength-block.

All core dataclasses representing profiles, prescriptions, recorded
sessions, attendance sheets and role state.
"""

from dataclasses import dataclass, field
from typing import Literal

from .config import COACH_ROLES, KNOWN_ROLES, LIFTS, UNITS, WEEKS

Lift = Literal["bench", "squat", "deadlift", "press"]
Unit = Literal["lb", "kg"]
SetKind = Literal["warmup", "work"]


def _check_lift(lift: str) -> None:
    if lift not in LIFTS:
        raise ValueError(f"Invalid lift: {lift!r}. Must be one of {LIFTS}")


def _check_unit(unit: str) -> None:
    if unit not in UNITS:
        raise ValueError(f"Invalid unit: {unit!r}. Must be one of {UNITS}")


@dataclass
class AthleteProfile:
    """
    An athlete's identity, unit preference and per-lift training maxes.

    ``training_max`` maps lift name to a positive number; lifts without a
    saved training max are simply absent.
    """

    athlete_id: str
    first_name: str = ""
    last_name: str = ""
    unit: Unit = "lb"
    training_max: dict = field(default_factory=dict)  # {lift: float}
    team: str | None = None

    def __post_init__(self) -> None:
        """Validate profile data."""
        if not self.athlete_id:
            raise ValueError("athlete_id must be non-empty")
        _check_unit(self.unit)
        for lift, value in self.training_max.items():
            _check_lift(lift)
            if value is not None and value <= 0:
                raise ValueError(f"training_max[{lift!r}] must be positive, got {value}")

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.athlete_id

    def training_max_for(self, lift: str) -> float | None:
        """Return the saved training max for a lift, or None if unset."""
        return self.training_max.get(lift)


@dataclass(frozen=True)
class SetPrescription:
    """One prescribed set: percent of training max, rounded weight, target reps."""

    kind: SetKind
    percentage: float
    weight: float
    target_reps: int
    amrap: bool = False

    def __post_init__(self) -> None:
        if self.kind not in ("warmup", "work"):
            raise ValueError(f"Invalid set kind: {self.kind!r}")
        if self.target_reps < 0:
            raise ValueError("target_reps must be non-negative")


@dataclass(frozen=True)
class AmrapResult:
    """Weight and reps actually completed on the AMRAP set."""

    weight: float
    reps: int

    def __post_init__(self) -> None:
        if self.weight < 0:
            raise ValueError("amrap weight must be non-negative")
        if self.reps < 0:
            raise ValueError("amrap reps must be non-negative")


@dataclass(frozen=True)
class WorkoutSession:
    """
    An immutable recorded workout for one athlete and lift.

    ``created_at`` is assigned by the document store when the session is
    appended; a session built locally and not yet stored has ``None``.
    """

    athlete_id: str
    lift: Lift
    week: int
    unit: Unit
    training_max: float
    warmups: tuple[SetPrescription, ...]
    work: tuple[SetPrescription, ...]
    amrap: AmrapResult
    estimated_one_rep_max: float
    pr: bool = False
    note: str = ""
    created_at: float | None = None
    session_id: str | None = None

    def __post_init__(self) -> None:
        """Validate session data."""
        _check_lift(self.lift)
        _check_unit(self.unit)
        if self.week not in WEEKS:
            raise ValueError(f"Invalid week: {self.week}. Must be one of {WEEKS}")
        if self.training_max <= 0:
            raise ValueError("training_max must be positive")
        if self.estimated_one_rep_max < 0:
            raise ValueError("estimated_one_rep_max must be non-negative")


@dataclass
class AthleteRow:
    """A row of the attendance grid."""

    id: str
    first_name: str = ""
    last_name: str = ""
    level: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class AttendanceSheet:
    """
    Team-scoped athlete × date attendance grid.

    Invariants maintained by core.attendance:
      - every athlete row has a record for every date (default False)
      - dates are unique
    """

    team: str
    dates: list[str] = field(default_factory=list)
    athletes: list[AthleteRow] = field(default_factory=list)
    records: dict = field(default_factory=dict)  # {athlete_id: {date: bool}}
    updated_at: float | None = None

    def athlete_ids(self) -> list[str]:
        return [a.id for a in self.athletes]

    def find_athlete(self, athlete_id: str) -> AthleteRow | None:
        for athlete in self.athletes:
            if athlete.id == athlete_id:
                return athlete
        return None

    def is_present(self, athlete_id: str, date: str) -> bool:
        return bool(self.records.get(athlete_id, {}).get(date, False))


@dataclass(frozen=True)
class RosterEntry:
    """An athlete as listed on a coach's roster."""

    athlete_id: str
    first_name: str = ""
    last_name: str = ""
    unit: Unit = "lb"
    team: str | None = None
    roles: frozenset = frozenset()

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.athlete_id


@dataclass(frozen=True)
class ActiveAthleteSelection:
    """
    The athlete a coach is currently operating as.

    ``version`` is the resolver's counter value when the selection was made.
    """

    athlete_id: str
    first_name: str = ""
    last_name: str = ""
    team: str | None = None
    unit: Unit = "lb"
    version: int = 0

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.athlete_id


@dataclass(frozen=True)
class RoleAssignment:
    """Role tags and optional team scope for one user."""

    user_id: str
    roles: frozenset = frozenset()
    teams: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        unknown = set(self.roles) - set(KNOWN_ROLES)
        if unknown:
            raise ValueError(f"Unknown roles: {sorted(unknown)}")

    @property
    def has_coach_access(self) -> bool:
        """True when the user holds coach or admin."""
        return bool(self.roles & COACH_ROLES)

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles

    def covers_team(self, team: str) -> bool:
        """Return True if the team is within scope (empty scope = all teams)."""
        return self.is_admin or not self.teams or team in self.teams


@dataclass(frozen=True)
class ProgressSummary:
    """Aggregates over one athlete's recent sessions for a lift."""

    lift: Lift
    session_count: int
    pr_count: int
    best_estimate: float
    average_amrap_reps: float
    latest_training_max: float | None
