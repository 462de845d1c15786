"""
JSON serialization for strength-block models.

Handles conversion between dataclasses and the JSON-compatible dicts
kept in the document store and the local selection file.
"""

from typing import Any

from ..core.config import KNOWN_ROLES, LIFTS, UNITS
from ..core.errors import ValidationError
from ..core.models import (
    ActiveAthleteSelection,
    AmrapResult,
    AthleteProfile,
    AthleteRow,
    AttendanceSheet,
    RoleAssignment,
    SetPrescription,
    WorkoutSession,
)

__all__ = [
    "ValidationError",
    "validate_lift",
    "validate_unit",
    "validate_positive",
    "validate_non_negative",
    "normalize_roles",
]


def validate_lift(lift: str) -> str:
    """
    Validate lift name.

    Raises:
        ValidationError: If lift is not one of bench, squat, deadlift, press
    """
    if lift not in LIFTS:
        raise ValidationError(f"Invalid lift: {lift}. Must be one of {LIFTS}")
    return lift


def validate_unit(unit: str) -> str:
    """
    Validate unit name.

    Raises:
        ValidationError: If unit is not lb or kg
    """
    if unit not in UNITS:
        raise ValidationError(f"Invalid unit: {unit}. Must be one of {UNITS}")
    return unit


def validate_non_negative(value: int | float, name: str) -> int | float:
    """
    Validate that a value is non-negative.

    Raises:
        ValidationError: If value is negative
    """
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")
    return value


def validate_positive(value: int | float, name: str) -> int | float:
    """
    Validate that a value is positive.

    Raises:
        ValidationError: If value is not positive
    """
    if value <= 0:
        raise ValidationError(f"{name} must be positive, got {value}")
    return value


# ---------------------------------------------------------------------------
# Prescriptions and sessions
# ---------------------------------------------------------------------------


def set_prescription_to_dict(row: SetPrescription) -> dict[str, Any]:
    data: dict[str, Any] = {
        "kind": row.kind,
        "pct": row.percentage,
        "weight": row.weight,
        "reps": row.target_reps,
    }
    if row.amrap:
        data["amrap"] = True
    return data


def dict_to_set_prescription(data: dict[str, Any], kind: str) -> SetPrescription:
    """
    Convert dict to SetPrescription.

    ``kind`` comes from the list the row was stored in (warmups / work)
    when the record predates the explicit "kind" field.
    """
    weight = float(data.get("weight", 0.0))
    reps = int(data.get("reps", 0))
    validate_non_negative(weight, "weight")
    validate_non_negative(reps, "reps")
    return SetPrescription(
        kind=data.get("kind", kind),
        percentage=float(data.get("pct", 0.0)),
        weight=weight,
        target_reps=reps,
        amrap=bool(data.get("amrap", False)),
    )


def session_to_dict(session: WorkoutSession) -> dict[str, Any]:
    """
    Convert WorkoutSession to a store document.

    ``created_at`` and the document id are assigned by the store and are
    not written here.
    """
    data: dict[str, Any] = {
        "athlete_id": session.athlete_id,
        "lift": session.lift,
        "week": session.week,
        "unit": session.unit,
        "tm": session.training_max,
        "warmups": [set_prescription_to_dict(r) for r in session.warmups],
        "work": [set_prescription_to_dict(r) for r in session.work],
        "amrap": {"weight": session.amrap.weight, "reps": session.amrap.reps},
        "est1rm": session.estimated_one_rep_max,
        "pr": session.pr,
    }
    if session.note:
        data["note"] = session.note
    return data


def dict_to_session(
    data: dict[str, Any],
    athlete_id: str | None = None,
    session_id: str | None = None,
) -> WorkoutSession:
    """
    Convert a store document to WorkoutSession.

    Raises:
        ValidationError: If required fields are missing or invalid
    """
    try:
        lift = validate_lift(data["lift"])
        unit = validate_unit(data.get("unit", "lb"))
        amrap_raw = data.get("amrap") or {"weight": 0, "reps": 0}
        amrap = AmrapResult(
            weight=float(amrap_raw.get("weight", 0)),
            reps=int(amrap_raw.get("reps", 0)),
        )
        return WorkoutSession(
            athlete_id=athlete_id or data.get("athlete_id", ""),
            lift=lift,  # type: ignore[arg-type]
            week=int(data["week"]),
            unit=unit,  # type: ignore[arg-type]
            training_max=float(data["tm"]),
            warmups=tuple(dict_to_set_prescription(r, "warmup") for r in data.get("warmups", [])),
            work=tuple(dict_to_set_prescription(r, "work") for r in data.get("work", [])),
            amrap=amrap,
            estimated_one_rep_max=float(data.get("est1rm") or 0.0),
            pr=bool(data.get("pr", False)),
            note=data.get("note") or "",
            created_at=data.get("created_at"),
            session_id=session_id,
        )
    except ValidationError:
        raise
    except KeyError as e:
        raise ValidationError(f"Session record missing field: {e}") from e
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid session record: {e}") from e


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


def profile_to_dict(profile: AthleteProfile) -> dict[str, Any]:
    return {
        "firstName": profile.first_name,
        "lastName": profile.last_name,
        "unit": profile.unit,
        "team": profile.team,
        "tm": {k: v for k, v in profile.training_max.items() if v is not None},
    }


def dict_to_profile(athlete_id: str, data: dict[str, Any]) -> AthleteProfile:
    """
    Convert a profile document to AthleteProfile.

    Unknown lifts and non-positive training maxes are dropped rather than
    rejected so one bad field does not hide the whole profile.
    """
    unit = data.get("unit") or "lb"
    validate_unit(unit)
    training_max: dict[str, float] = {}
    for lift, value in (data.get("tm") or {}).items():
        if lift in LIFTS and isinstance(value, (int, float)) and value > 0:
            training_max[lift] = float(value)
    return AthleteProfile(
        athlete_id=athlete_id,
        first_name=data.get("firstName") or "",
        last_name=data.get("lastName") or "",
        unit=unit,
        training_max=training_max,
        team=data.get("team") or None,
    )


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------


def sheet_to_dict(sheet: AttendanceSheet) -> dict[str, Any]:
    return {
        "team": sheet.team,
        "dates": list(sheet.dates),
        "athletes": [
            {
                "id": a.id,
                "firstName": a.first_name,
                "lastName": a.last_name,
                "level": a.level,
            }
            for a in sheet.athletes
        ],
        "records": {aid: dict(row) for aid, row in sheet.records.items()},
    }


def dict_to_sheet(team: str, data: dict[str, Any]) -> AttendanceSheet:
    """
    Convert an attendance document to AttendanceSheet.

    The result is not normalized; see core.attendance.normalize_sheet.

    Raises:
        ValidationError: If the document is not shaped like a sheet
    """
    try:
        athletes = []
        for raw in data.get("athletes") or []:
            if not isinstance(raw, dict) or not raw.get("id"):
                raise ValidationError(f"Invalid athlete row on {team} sheet: {raw!r}")
            athletes.append(
                AthleteRow(
                    id=str(raw["id"]),
                    first_name=raw.get("firstName") or "",
                    last_name=raw.get("lastName") or "",
                    level=raw.get("level") or team,
                )
            )
        records = {
            str(aid): {str(d): bool(v) for d, v in (row or {}).items()}
            for aid, row in (data.get("records") or {}).items()
        }
        return AttendanceSheet(
            team=data.get("team") or team,
            dates=[str(d) for d in data.get("dates") or []],
            athletes=athletes,
            records=records,
            updated_at=data.get("updated_at"),
        )
    except ValidationError:
        raise
    except (AttributeError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid attendance sheet for {team}: {e}") from e


# ---------------------------------------------------------------------------
# Roles and selection
# ---------------------------------------------------------------------------


def normalize_roles(raw: dict[str, Any] | None) -> frozenset:
    """
    Normalize a raw role document to a set of known role tags.

    Accepts a ``roles`` list or a single legacy ``role`` string; tags are
    lowercased and de-duplicated, unknown tags are ignored.
    """
    if not raw:
        return frozenset()
    if isinstance(raw.get("roles"), list):
        tags = raw["roles"]
    elif raw.get("role"):
        tags = [raw["role"]]
    else:
        tags = []
    return frozenset(
        t.lower() for t in tags if isinstance(t, str) and t.lower() in KNOWN_ROLES
    )


def dict_to_role_assignment(user_id: str, raw: dict[str, Any] | None) -> RoleAssignment:
    teams = (raw or {}).get("teams") or []
    return RoleAssignment(
        user_id=user_id,
        roles=normalize_roles(raw),
        teams=tuple(str(t) for t in teams),
    )


def role_assignment_to_dict(assignment: RoleAssignment) -> dict[str, Any]:
    """Write roles sorted, plus a primary ``role`` for older readers."""
    roles = sorted(assignment.roles)
    if "admin" in assignment.roles:
        primary = "admin"
    elif "coach" in assignment.roles:
        primary = "coach"
    else:
        primary = roles[0] if roles else None

    data: dict[str, Any] = {"roles": roles, "teams": list(assignment.teams)}
    if primary:
        data["role"] = primary
    return data


def selection_to_dict(selection: ActiveAthleteSelection) -> dict[str, Any]:
    return {
        "uid": selection.athlete_id,
        "firstName": selection.first_name,
        "lastName": selection.last_name,
        "team": selection.team,
        "unit": selection.unit,
        "version": selection.version,
    }


def dict_to_selection(data: dict[str, Any]) -> ActiveAthleteSelection:
    """
    Convert a stored selection back to ActiveAthleteSelection.

    Raises:
        ValidationError: If the data is not an object, the uid is missing,
            or a field is invalid
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Stored selection is not an object: {data!r}")
    uid = data.get("uid")
    if not isinstance(uid, str) or not uid:
        raise ValidationError("Stored selection has no athlete uid")
    try:
        return ActiveAthleteSelection(
            athlete_id=uid,
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            team=data.get("team"),
            unit=validate_unit(data.get("unit") or "lb"),  # type: ignore[arg-type]
            version=int(data.get("version", 0)),
        )
    except ValidationError:
        raise
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid stored selection: {e}") from e
