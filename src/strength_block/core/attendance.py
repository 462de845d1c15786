"""
Attendance grid edits.

Every operation takes an AttendanceSheet and returns a new one; the
input is never mutated.  Each result satisfies the grid invariants:

  I1  every athlete row has a record for every date (default False)
  I2  dates are unique

so a caller holding the previous sheet can always fall back to it.
"""

import copy
import csv
import io
import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import date as date_cls
from datetime import datetime, timedelta

from .config import ATTENDANCE_LOOKAHEAD_DAYS
from .errors import DuplicateDateError, ValidationError
from .models import AthleteRow, AttendanceSheet

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_HEADER_RE = re.compile(r"first|last|name|level|team")


def validate_date_key(value: str) -> str:
    """
    Validate an attendance date key (ISO calendar date).

    Raises:
        ValidationError: If the value is not a real YYYY-MM-DD date
    """
    if not _DATE_RE.match(value):
        raise ValidationError(f"Invalid date format: {value}. Expected YYYY-MM-DD")
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value}") from e
    return value


def empty_sheet(team: str) -> AttendanceSheet:
    return AttendanceSheet(team=team)


def _copy(sheet: AttendanceSheet) -> AttendanceSheet:
    return copy.deepcopy(sheet)


def normalize_sheet(sheet: AttendanceSheet) -> AttendanceSheet:
    """
    Restore I1/I2 on a sheet read from storage.

    Drops duplicate dates (first occurrence wins), drops records for
    athletes no longer on the sheet or dates no longer listed, and
    backfills False for every missing athlete × date cell.
    """
    dates: list[str] = []
    for d in sheet.dates:
        if d not in dates:
            dates.append(d)

    athletes: list[AthleteRow] = []
    seen: set[str] = set()
    for athlete in sheet.athletes:
        if athlete.id in seen:
            continue
        seen.add(athlete.id)
        athletes.append(replace(athlete))

    records: dict[str, dict[str, bool]] = {}
    for athlete in athletes:
        row = sheet.records.get(athlete.id, {})
        records[athlete.id] = {d: bool(row.get(d, False)) for d in dates}

    return AttendanceSheet(
        team=sheet.team,
        dates=dates,
        athletes=athletes,
        records=records,
        updated_at=sheet.updated_at,
    )


def next_available_date(
    existing: list[str],
    today: date_cls | None = None,
    lookahead: int = ATTENDANCE_LOOKAHEAD_DAYS,
) -> str:
    """
    First date from today onward that is not already on the sheet.

    Scans ``lookahead`` days forward and falls back to today
    when every probed date is taken.
    """
    start = today or date_cls.today()
    taken = set(existing)
    for offset in range(lookahead):
        candidate = (start + timedelta(days=offset)).isoformat()
        if candidate not in taken:
            return candidate
    return start.isoformat()


def add_date(
    sheet: AttendanceSheet,
    today: date_cls | None = None,
    lookahead: int = ATTENDANCE_LOOKAHEAD_DAYS,
) -> AttendanceSheet:
    """Append the next unused date and backfill False for every athlete."""
    new_date = next_available_date(sheet.dates, today, lookahead)
    if new_date in sheet.dates:
        return _copy(sheet)

    result = _copy(sheet)
    result.dates.append(new_date)
    for athlete in result.athletes:
        result.records.setdefault(athlete.id, {})
        result.records[athlete.id].setdefault(new_date, False)
    return result


def remove_date(sheet: AttendanceSheet, date: str) -> AttendanceSheet:
    """Remove a date column and every athlete's entry for it."""
    result = _copy(sheet)
    if date not in result.dates:
        return result

    result.dates = [d for d in result.dates if d != date]
    for athlete_id in set(result.records) | set(result.athlete_ids()):
        row = result.records.setdefault(athlete_id, {})
        row.pop(date, None)
        for d in result.dates:
            row.setdefault(d, False)
    return result


def rename_date(sheet: AttendanceSheet, old_date: str, new_date: str) -> AttendanceSheet:
    """
    Move a date column to a new date, keeping every athlete's mark.

    An empty ``new_date`` removes the column.

    Raises:
        DuplicateDateError: If new_date is already another column
        ValidationError: If new_date is not an ISO date
        ValueError: If old_date is not on the sheet
    """
    new_date = new_date.strip()
    if not new_date:
        return remove_date(sheet, old_date)
    if old_date not in sheet.dates:
        raise ValueError(f"Date {old_date} is not on the {sheet.team} sheet")
    validate_date_key(new_date)

    index = sheet.dates.index(old_date)
    if any(d == new_date and i != index for i, d in enumerate(sheet.dates)):
        raise DuplicateDateError(new_date)

    result = _copy(sheet)
    result.dates[index] = new_date
    row_ids = set(result.records) | set(result.athlete_ids())
    for athlete_id in row_ids:
        row = result.records.setdefault(athlete_id, {})
        if old_date in row:
            row[new_date] = row.pop(old_date)
        else:
            row.setdefault(new_date, False)
    return result


def toggle(sheet: AttendanceSheet, athlete_id: str, date: str) -> AttendanceSheet:
    """Flip one athlete's present mark for a date."""
    if sheet.find_athlete(athlete_id) is None:
        raise ValueError(f"Athlete {athlete_id} is not on the {sheet.team} sheet")
    if date not in sheet.dates:
        raise ValueError(f"Date {date} is not on the {sheet.team} sheet")

    result = _copy(sheet)
    row = result.records.setdefault(athlete_id, {})
    row[date] = not row.get(date, False)
    return result


def _new_athlete_id() -> str:
    return str(uuid.uuid4())


def add_athlete(
    sheet: AttendanceSheet,
    first_name: str,
    last_name: str,
    level: str | None = None,
) -> AttendanceSheet:
    """Append an athlete row with a fresh id and False for every date."""
    first = first_name.strip()
    last = last_name.strip()
    if not first and not last:
        raise ValueError("Enter at least a first or last name.")

    row = AthleteRow(
        id=_new_athlete_id(),
        first_name=first,
        last_name=last,
        level=level or sheet.team,
    )
    return import_athletes(sheet, [row])


def remove_athlete(sheet: AttendanceSheet, athlete_id: str) -> AttendanceSheet:
    """Remove an athlete row together with its whole record map."""
    result = _copy(sheet)
    result.athletes = [a for a in result.athletes if a.id != athlete_id]
    result.records.pop(athlete_id, None)
    return result


def import_athletes(sheet: AttendanceSheet, rows: list[AthleteRow]) -> AttendanceSheet:
    """Append prepared athlete rows, each with False for every date."""
    result = _copy(sheet)
    for row in rows:
        result.athletes.append(replace(row))
        result.records[row.id] = {d: False for d in result.dates}
    return result


def attendance_rate(sheet: AttendanceSheet, athlete_id: str) -> float:
    """Fraction of listed dates the athlete was marked present (0 if no dates)."""
    if not sheet.dates:
        return 0.0
    present = sum(1 for d in sheet.dates if sheet.is_present(athlete_id, d))
    return present / len(sheet.dates)


# ---------------------------------------------------------------------------
# CSV roster import
# ---------------------------------------------------------------------------


@dataclass
class RosterImport:
    """Result of parsing a roster CSV: rows grouped by level plus line errors."""

    by_level: dict = field(default_factory=dict)  # {level: list[AthleteRow]}
    errors: list = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(len(rows) for rows in self.by_level.values())


def parse_roster_csv(
    text: str,
    default_level: str,
    known_levels: list[str] | None = None,
) -> RosterImport:
    """
    Parse "first,last[,level]" lines (comma or tab separated).

    A first line mentioning first/last/name/level/team is treated as a
    header.  Levels are matched case-insensitively against known_levels;
    unknown or missing levels fall back to default_level.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    result = RosterImport()
    if not lines:
        return result

    start = 1 if _HEADER_RE.search(lines[0].lower()) else 0
    levels = {lvl.lower(): lvl for lvl in (known_levels or [])}

    for line_num in range(start, len(lines)):
        line = lines[line_num].strip()
        delimiter = "\t" if "\t" in line else ","
        parts = next(csv.reader(io.StringIO(line), delimiter=delimiter))
        parts = [p.strip().strip("'\"") for p in parts]

        if len(parts) < 2:
            result.errors.append(f"Line {line_num + 1}: Need at least first and last name")
            continue
        first, last = parts[0], parts[1]
        if not first or not last:
            result.errors.append(f"Line {line_num + 1}: Missing name")
            continue

        level = default_level
        if len(parts) > 2 and parts[2]:
            level = levels.get(parts[2].lower(), default_level)

        result.by_level.setdefault(level, []).append(
            AthleteRow(id=_new_athlete_id(), first_name=first, last_name=last, level=level)
        )
    return result
