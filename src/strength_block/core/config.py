"""
Configuration constants for the 5/3/1 block model.

All adjustable parameters are centralized here for easy tuning.
Values that users may override at runtime (increments, lookback windows,
teams) are also exposed through config_loader.load_settings().
"""

from typing import Final

# =============================================================================
# LIFTS AND UNITS
# =============================================================================

LIFTS: Final[tuple[str, ...]] = ("bench", "squat", "deadlift", "press")
UNITS: Final[tuple[str, ...]] = ("lb", "kg")
WEEKS: Final[tuple[int, ...]] = (1, 2, 3, 4)
DELOAD_WEEK: Final[int] = 4

# =============================================================================
# PLATE ROUNDING
# =============================================================================

DEFAULT_INCREMENTS: Final[dict[str, float]] = {
    "lb": 5.0,
    "kg": 2.5,
}

# =============================================================================
# LOAD PRESCRIPTION (percent of training max, target reps)
# =============================================================================

WARMUP_SCHEME: Final[tuple[tuple[float, int], ...]] = (
    (0.40, 5),
    (0.50, 5),
    (0.60, 3),
)

WORK_SCHEMES: Final[dict[int, tuple[tuple[float, int], ...]]] = {
    1: ((0.65, 5), (0.75, 5), (0.85, 5)),
    2: ((0.70, 3), (0.80, 3), (0.90, 3)),
    3: ((0.75, 5), (0.85, 3), (0.95, 1)),
    4: ((0.40, 5), (0.50, 5), (0.60, 5)),  # deload, no AMRAP
}

# =============================================================================
# ONE-REP-MAX ESTIMATION AND TRAINING MAX
# =============================================================================

ONE_REP_MAX_K: Final[float] = 0.0333  # weight × (1 + k × reps)
TM_FACTOR: Final[float] = 0.90  # Training max as fraction of 1RM

# =============================================================================
# SESSION LEDGER
# =============================================================================

PR_LOOKBACK: Final[int] = 20  # Sessions compared against for PR detection
RECENT_FETCH_CAP: Final[int] = 50  # Unfiltered page size when filtering by lift
DEFAULT_RECENT_LIMIT: Final[int] = 10

# =============================================================================
# ATTENDANCE
# =============================================================================

ATTENDANCE_LOOKAHEAD_DAYS: Final[int] = 14
DEFAULT_TEAMS: Final[tuple[str, ...]] = ("JH", "Varsity")

# =============================================================================
# ROLES
# =============================================================================

ROLE_ATHLETE: Final[str] = "athlete"
ROLE_COACH: Final[str] = "coach"
ROLE_ADMIN: Final[str] = "admin"
KNOWN_ROLES: Final[tuple[str, ...]] = (ROLE_ATHLETE, ROLE_COACH, ROLE_ADMIN)
COACH_ROLES: Final[frozenset[str]] = frozenset({ROLE_COACH, ROLE_ADMIN})
