"""
Pure metric computation functions.

All functions are pure and typed for testability.
"""

import math

from .config import DEFAULT_INCREMENTS, ONE_REP_MAX_K, TM_FACTOR


def default_increment(unit: str) -> float:
    """
    Return the smallest loadable jump for a unit system.

    Args:
        unit: "lb" or "kg"

    Returns:
        5.0 for lb, 2.5 for kg
    """
    try:
        return DEFAULT_INCREMENTS[unit]
    except KeyError:
        raise ValueError(f"Invalid unit: {unit!r}") from None


def round_to_increment(
    weight: float,
    unit: str,
    increment: float | None = None,
) -> float:
    """
    Round a raw computed weight to the nearest loadable increment.

    Ties round half away from zero, so 132.5 lb rounds to 135 lb and
    -132.5 to -135.  Rounding an already rounded value returns it unchanged.

    Args:
        weight: Raw weight (e.g. training max × percentage)
        unit: "lb" or "kg"; selects the default increment
        increment: Explicit increment overriding the unit default

    Returns:
        Weight rounded to a multiple of the increment
    """
    step = increment if increment else default_increment(unit)
    if step <= 0:
        raise ValueError(f"increment must be positive, got {step}")

    steps = math.floor(abs(weight) / step + 0.5)
    rounded = math.copysign(steps * step, weight) if steps else 0.0
    # Strip float noise from increments like 0.1 so the result stays a fixed point.
    return round(rounded, 6)


def estimate_one_rep_max(weight: float, reps: int) -> float:
    """
    Estimate a single-rep maximum from a submaximal set.

    1RM = weight × (1 + k × reps),  k = 0.0333

    At reps = 0 the estimate is the lifted weight itself.

    Args:
        weight: Weight actually lifted (≥ 0)
        reps: Reps actually completed (≥ 0)

    Returns:
        Estimated one-rep max, unrounded
    """
    if weight < 0:
        raise ValueError(f"weight must be non-negative, got {weight}")
    if reps < 0:
        raise ValueError(f"reps must be non-negative, got {reps}")
    return weight * (1 + ONE_REP_MAX_K * reps)


def training_max_from_one_rep_max(one_rep_max: float) -> int:
    """
    Training max as a fixed fraction of a (true or estimated) 1RM.

    TM = round(0.90 × 1RM)
    """
    if one_rep_max <= 0:
        raise ValueError(f"one_rep_max must be positive, got {one_rep_max}")
    return int(math.floor(one_rep_max * TM_FACTOR + 0.5))


def training_max_from_rep_max(weight: float, reps: int) -> int:
    """
    Training max from a rep-max set (e.g. 225 × 5).

    Chains estimate_one_rep_max and training_max_from_one_rep_max.
    """
    return training_max_from_one_rep_max(estimate_one_rep_max(weight, reps))


def one_rep_max_from_training_max(training_max: float) -> int:
    """Invert the training-max factor, used to prefill calculators."""
    return int(math.floor(training_max / TM_FACTOR + 0.5))
