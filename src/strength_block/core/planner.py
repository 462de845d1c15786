"""
Load prescription for a 4-week 5/3/1 block.

Turns a stored training max into the ordered warmup and work sets for a
given week.  Weeks 1–3 end with an AMRAP set; week 4 is a deload with no
AMRAP and never feeds PR detection.
"""

from .config import DELOAD_WEEK, WARMUP_SCHEME, WEEKS, WORK_SCHEMES
from .metrics import round_to_increment
from .models import SetPrescription


def validate_week(week: int) -> int:
    """
    Validate a block week number.

    Args:
        week: Week number to validate

    Returns:
        The week if valid

    Raises:
        ValueError: If week is not 1, 2, 3 or 4
    """
    if week not in WEEKS:
        raise ValueError(f"Invalid week: {week}. Must be one of {WEEKS}")
    return week


def has_amrap(week: int) -> bool:
    """True for weeks whose final work set is taken to failure."""
    return week != DELOAD_WEEK


def build_prescription(
    training_max: float,
    week: int,
    unit: str,
    increment: float | None = None,
) -> list[SetPrescription]:
    """
    Build the ordered prescription for one training day.

    Three warmups (40/50/60% × 5/5/3) followed by the week's three work
    sets.  Every weight is rounded to the unit's plate increment.

    Callers validate ``week`` first (see validate_week); an unknown week
    here is a programming error.

    Args:
        training_max: Positive training max for the lift
        week: Block week, 1–4
        unit: "lb" or "kg"
        increment: Optional explicit rounding increment

    Returns:
        List of 6 SetPrescription rows, warmups first
    """
    rows: list[SetPrescription] = [
        SetPrescription(
            kind="warmup",
            percentage=pct,
            weight=round_to_increment(training_max * pct, unit, increment),
            target_reps=reps,
        )
        for pct, reps in WARMUP_SCHEME
    ]

    work_scheme = WORK_SCHEMES[week]
    last = len(work_scheme) - 1
    for i, (pct, reps) in enumerate(work_scheme):
        rows.append(
            SetPrescription(
                kind="work",
                percentage=pct,
                weight=round_to_increment(training_max * pct, unit, increment),
                target_reps=reps,
                amrap=has_amrap(week) and i == last,
            )
        )
    return rows


def warmup_rows(rows: list[SetPrescription]) -> list[SetPrescription]:
    return [r for r in rows if r.kind == "warmup"]


def work_rows(rows: list[SetPrescription]) -> list[SetPrescription]:
    return [r for r in rows if r.kind == "work"]


def amrap_row(rows: list[SetPrescription]) -> SetPrescription | None:
    """Return the AMRAP row of a prescription, or None for a deload week."""
    for row in reversed(rows):
        if row.amrap:
            return row
    return None


def format_target(row: SetPrescription) -> str:
    """Render a row's rep target, marking AMRAP sets with a trailing '+'."""
    return f"{row.target_reps}+" if row.amrap else str(row.target_reps)
