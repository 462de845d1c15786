"""
Tests for attendance grid edits, CSV roster import and the
persistence-backed AttendanceSheetManager.
"""

import random
from datetime import date

import pytest

from strength_block.core import attendance as ops
from strength_block.core.errors import (
    AccessDeniedError,
    DuplicateDateError,
    LoadError,
    SaveError,
    StoreUnavailableError,
    ValidationError,
)
from strength_block.core.models import AthleteRow, AttendanceSheet
from strength_block.io.attendance_store import AttendanceSheetManager, attendance_path
from strength_block.io.document_store import JsonDocumentStore, MemoryDocumentStore, ScopedDocumentStore

# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _sheet(dates=("2024-01-01",), names=(("Ana", "Lopez"),)) -> AttendanceSheet:
    athletes = [AthleteRow(id=f"a{i}", first_name=f, last_name=l, level="JH") for i, (f, l) in enumerate(names)]
    return AttendanceSheet(
        team="JH",
        dates=list(dates),
        athletes=athletes,
        records={a.id: {d: False for d in dates} for a in athletes},
    )


def _assert_invariants(sheet: AttendanceSheet) -> None:
    assert len(sheet.dates) == len(set(sheet.dates))
    for athlete in sheet.athletes:
        row = sheet.records[athlete.id]
        for d in sheet.dates:
            assert d in row


class FailingWriteStore(MemoryDocumentStore):
    """Reads succeed; writes fail while ``down`` is set."""

    def __init__(self):
        super().__init__()
        self.down = False

    async def set(self, path, data, merge=False):
        if self.down:
            raise StoreUnavailableError("store offline")
        await super().set(path, data, merge=merge)


class FailingTeamStore(MemoryDocumentStore):
    """Reads of one team's sheet fail."""

    def __init__(self, bad_team: str):
        super().__init__()
        self.bad_team = bad_team

    async def get(self, path):
        if path == attendance_path(self.bad_team):
            raise StoreUnavailableError("timeout")
        return await super().get(path)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


class TestDates:
    def test_add_date_uses_today_when_free(self):
        sheet = ops.add_date(_sheet(dates=()), today=date(2024, 3, 4))
        assert sheet.dates == ["2024-03-04"]
        assert sheet.records["a0"] == {"2024-03-04": False}

    def test_add_date_skips_taken_dates(self):
        sheet = _sheet(dates=("2024-03-04", "2024-03-05"))
        result = ops.add_date(sheet, today=date(2024, 3, 4))
        assert result.dates[-1] == "2024-03-06"

    def test_add_date_falls_back_to_today_without_duplicating(self):
        taken = [f"2024-03-{d:02d}" for d in range(4, 18)]  # 14 days from the 4th
        sheet = _sheet(dates=taken)
        result = ops.add_date(sheet, today=date(2024, 3, 4))
        assert result.dates == taken
        _assert_invariants(result)

    def test_add_date_does_not_mutate_input(self):
        sheet = _sheet(dates=())
        ops.add_date(sheet, today=date(2024, 3, 4))
        assert sheet.dates == []

    def test_remove_date(self):
        sheet = _sheet(dates=("2024-01-01", "2024-01-02"))
        sheet = ops.toggle(sheet, "a0", "2024-01-02")
        result = ops.remove_date(sheet, "2024-01-01")
        assert result.dates == ["2024-01-02"]
        assert result.records["a0"] == {"2024-01-02": True}

    def test_remove_unknown_date_is_noop(self):
        sheet = _sheet()
        assert ops.remove_date(sheet, "2030-01-01") == sheet

    def test_rename_preserves_marks(self):
        sheet = ops.toggle(_sheet(dates=("2024-01-01",)), "a0", "2024-01-01")
        result = ops.rename_date(sheet, "2024-01-01", "2024-01-08")
        assert result.dates == ["2024-01-08"]
        assert result.is_present("a0", "2024-01-08")
        assert "2024-01-01" not in result.records["a0"]

    def test_rename_keeps_column_position(self):
        sheet = _sheet(dates=("2024-01-01", "2024-01-02", "2024-01-03"))
        result = ops.rename_date(sheet, "2024-01-02", "2024-01-10")
        assert result.dates == ["2024-01-01", "2024-01-10", "2024-01-03"]

    def test_rename_to_same_date_is_allowed(self):
        sheet = _sheet()
        assert ops.rename_date(sheet, "2024-01-01", "2024-01-01").dates == ["2024-01-01"]

    def test_rename_onto_existing_date_raises(self):
        sheet = _sheet(dates=("2024-01-01", "2024-01-02"))
        with pytest.raises(DuplicateDateError) as exc_info:
            ops.rename_date(sheet, "2024-01-01", "2024-01-02")
        assert exc_info.value.date == "2024-01-02"

    def test_rename_to_empty_removes_date(self):
        sheet = _sheet(dates=("2024-01-01", "2024-01-02"))
        assert ops.rename_date(sheet, "2024-01-01", "  ").dates == ["2024-01-02"]

    def test_rename_invalid_date_raises(self):
        with pytest.raises(ValidationError):
            ops.rename_date(_sheet(), "2024-01-01", "2024-02-30")
        with pytest.raises(ValidationError):
            ops.rename_date(_sheet(), "2024-01-01", "Jan 8")

    def test_rename_unknown_date_raises(self):
        with pytest.raises(ValueError):
            ops.rename_date(_sheet(), "2023-12-25", "2024-01-08")


# ---------------------------------------------------------------------------
# Athletes and marks
# ---------------------------------------------------------------------------


class TestAthletes:
    def test_add_athlete_backfills_false(self):
        sheet = _sheet(dates=("2024-01-01", "2024-01-02"), names=())
        result = ops.add_athlete(sheet, " Sam ", "Ortiz")
        athlete = result.athletes[0]
        assert athlete.first_name == "Sam"
        assert athlete.level == "JH"
        assert result.records[athlete.id] == {"2024-01-01": False, "2024-01-02": False}

    def test_add_athlete_generates_unique_ids(self):
        sheet = _sheet(names=())
        for _ in range(20):
            sheet = ops.add_athlete(sheet, "Same", "Name")
        assert len(set(sheet.athlete_ids())) == 20

    def test_add_athlete_requires_a_name(self):
        with pytest.raises(ValueError):
            ops.add_athlete(_sheet(), "  ", "")

    def test_remove_athlete_drops_records(self):
        sheet = _sheet(names=(("Ana", "Lopez"), ("Ben", "Cho")))
        result = ops.remove_athlete(sheet, "a0")
        assert result.athlete_ids() == ["a1"]
        assert "a0" not in result.records

    def test_toggle_flips(self):
        sheet = ops.toggle(_sheet(), "a0", "2024-01-01")
        assert sheet.is_present("a0", "2024-01-01")
        sheet = ops.toggle(sheet, "a0", "2024-01-01")
        assert not sheet.is_present("a0", "2024-01-01")

    def test_toggle_unknown_raises(self):
        with pytest.raises(ValueError):
            ops.toggle(_sheet(), "nobody", "2024-01-01")
        with pytest.raises(ValueError):
            ops.toggle(_sheet(), "a0", "2030-01-01")

    def test_attendance_rate(self):
        sheet = _sheet(dates=("2024-01-01", "2024-01-02", "2024-01-03", "2024-01-04"))
        sheet = ops.toggle(sheet, "a0", "2024-01-01")
        sheet = ops.toggle(sheet, "a0", "2024-01-03")
        assert ops.attendance_rate(sheet, "a0") == 0.5
        assert ops.attendance_rate(_sheet(dates=()), "a0") == 0.0


class TestGridInvariants:
    def test_random_edit_sequences_keep_invariants(self):
        rng = random.Random(531)
        for _ in range(25):
            sheet = ops.empty_sheet("JH")
            day = date(2024, 1, 1)
            for _ in range(40):
                action = rng.choice(["add_date", "add_athlete", "remove_date", "remove_athlete", "rename", "toggle"])
                if action == "add_date":
                    sheet = ops.add_date(sheet, today=day)
                elif action == "add_athlete":
                    sheet = ops.add_athlete(sheet, rng.choice(["Ana", "Ben", "Cy"]), "X")
                elif action == "remove_date" and sheet.dates:
                    sheet = ops.remove_date(sheet, rng.choice(sheet.dates))
                elif action == "remove_athlete" and sheet.athletes:
                    sheet = ops.remove_athlete(sheet, rng.choice(sheet.athlete_ids()))
                elif action == "rename" and sheet.dates:
                    old = rng.choice(sheet.dates)
                    new = f"2024-02-{rng.randint(1, 28):02d}"
                    try:
                        sheet = ops.rename_date(sheet, old, new)
                    except DuplicateDateError:
                        pass
                elif action == "toggle" and sheet.dates and sheet.athletes:
                    sheet = ops.toggle(sheet, rng.choice(sheet.athlete_ids()), rng.choice(sheet.dates))
                _assert_invariants(sheet)

    def test_normalize_repairs_stored_data(self):
        raw = AttendanceSheet(
            team="JH",
            dates=["2024-01-01", "2024-01-01", "2024-01-02"],
            athletes=[AthleteRow(id="a0"), AthleteRow(id="a0"), AthleteRow(id="a1")],
            records={"a0": {"2024-01-01": True, "2023-12-01": True}, "ghost": {"2024-01-01": True}},
        )
        sheet = ops.normalize_sheet(raw)
        assert sheet.dates == ["2024-01-01", "2024-01-02"]
        assert sheet.athlete_ids() == ["a0", "a1"]
        assert sheet.records == {
            "a0": {"2024-01-01": True, "2024-01-02": False},
            "a1": {"2024-01-01": False, "2024-01-02": False},
        }


# ---------------------------------------------------------------------------
# CSV import
# ---------------------------------------------------------------------------


class TestRosterCsv:
    def test_header_and_levels(self):
        text = "First,Last,Level\nAna,Lopez,varsity\nBen,Cho\nCy,Diaz,Freshman\n"
        result = ops.parse_roster_csv(text, default_level="JH", known_levels=["JH", "Varsity"])
        assert result.total == 3
        assert [a.first_name for a in result.by_level["Varsity"]] == ["Ana"]
        assert [a.first_name for a in result.by_level["JH"]] == ["Ben", "Cy"]
        assert result.errors == []

    def test_tab_separated_without_header(self):
        result = ops.parse_roster_csv("Ana\tLopez\nBen\tCho\n", default_level="JH")
        assert result.total == 2

    def test_quoted_fields(self):
        result = ops.parse_roster_csv('"Mary Ann","Smith, Jr."\n', default_level="JH")
        athlete = result.by_level["JH"][0]
        assert athlete.first_name == "Mary Ann"
        assert athlete.last_name == "Smith, Jr."

    def test_line_errors_reported(self):
        result = ops.parse_roster_csv("Ana,Lopez\nOnlyone\n,Cho\n", default_level="JH")
        assert result.total == 1
        assert result.errors == [
            "Line 2: Need at least first and last name",
            "Line 3: Missing name",
        ]

    def test_empty_text(self):
        assert ops.parse_roster_csv("", default_level="JH").total == 0

    def test_import_athletes(self):
        parsed = ops.parse_roster_csv("Ana,Lopez\nBen,Cho\n", default_level="JH")
        sheet = ops.import_athletes(_sheet(names=()), parsed.by_level["JH"])
        assert len(sheet.athletes) == 2
        _assert_invariants(sheet)


# ---------------------------------------------------------------------------
# AttendanceSheetManager
# ---------------------------------------------------------------------------


class TestAttendanceSheetManager:
    @pytest.mark.asyncio
    async def test_load_creates_empty_sheet(self):
        manager = AttendanceSheetManager(MemoryDocumentStore())
        sheet = await manager.load("JH")
        assert sheet.team == "JH"
        assert sheet.dates == []
        assert manager.dirty["JH"] is False

    @pytest.mark.asyncio
    async def test_edit_save_reload_round_trip(self):
        store = MemoryDocumentStore()
        manager = AttendanceSheetManager(store)
        await manager.load("JH")
        manager.add_date("JH", today=date(2024, 1, 1))
        sheet = manager.add_athlete("JH", "Ana", "Lopez")
        athlete_id = sheet.athletes[0].id
        manager.toggle("JH", athlete_id, "2024-01-01")
        assert manager.dirty["JH"]

        saved = await manager.save("JH")
        assert not manager.dirty["JH"]
        assert saved.updated_at is not None
        assert saved.is_present(athlete_id, "2024-01-01")

        fresh = AttendanceSheetManager(store)
        reloaded = await fresh.load("JH")
        assert reloaded.is_present(athlete_id, "2024-01-01")

    @pytest.mark.asyncio
    async def test_rename_save_drops_old_date(self):
        store = MemoryDocumentStore()
        manager = AttendanceSheetManager(store)
        await manager.load("JH")
        manager.add_date("JH", today=date(2024, 1, 1))
        athlete_id = manager.add_athlete("JH", "Ana", "Lopez").athletes[0].id
        manager.toggle("JH", athlete_id, "2024-01-01")
        await manager.save("JH")

        manager.rename_date("JH", "2024-01-01", "2024-01-08")
        saved = await manager.save("JH")
        assert saved.dates == ["2024-01-08"]
        assert saved.records[athlete_id] == {"2024-01-08": True}

    @pytest.mark.asyncio
    async def test_removed_athlete_stays_removed_after_save(self):
        manager = AttendanceSheetManager(MemoryDocumentStore())
        await manager.load("JH")
        athlete_id = manager.add_athlete("JH", "Ana", "Lopez").athletes[0].id
        await manager.save("JH")
        manager.remove_athlete("JH", athlete_id)
        saved = await manager.save("JH")
        assert saved.athletes == []
        assert athlete_id not in saved.records

    @pytest.mark.asyncio
    async def test_failed_save_keeps_edits(self):
        store = FailingWriteStore()
        manager = AttendanceSheetManager(store)
        await manager.load("JH")
        manager.add_athlete("JH", "Ana", "Lopez")

        store.down = True
        with pytest.raises(SaveError) as exc_info:
            await manager.save("JH")

        assert exc_info.value.team == "JH"
        assert manager.dirty["JH"]
        assert "store offline" in manager.errors["JH"]
        assert len(manager.sheet("JH").athletes) == 1

        store.down = False
        await manager.save("JH")
        assert not manager.dirty["JH"]
        assert "JH" not in manager.errors

    @pytest.mark.asyncio
    async def test_load_failure_is_per_team(self):
        manager = AttendanceSheetManager(FailingTeamStore("Varsity"))
        loaded = await manager.load_all(["JH", "Varsity"])
        assert loaded == ["JH"]
        assert "timeout" in manager.errors["Varsity"]
        assert "Varsity" not in manager.sheets

        with pytest.raises(LoadError):
            await manager.load("Varsity")

    @pytest.mark.asyncio
    async def test_team_scope_enforced(self):
        backend = MemoryDocumentStore()
        await backend.set("roles/coach1", {"roles": ["coach"], "teams": ["JH"]})
        manager = AttendanceSheetManager(ScopedDocumentStore(backend, "coach1"))

        assert await manager.load_all(["JH", "Varsity"]) == ["JH"]
        assert "may not read" in manager.errors["Varsity"]

    @pytest.mark.asyncio
    async def test_athlete_cannot_load_attendance(self):
        manager = AttendanceSheetManager(ScopedDocumentStore(MemoryDocumentStore(), "ath1"))
        with pytest.raises(AccessDeniedError) as exc_info:
            await manager.load("JH")
        assert isinstance(exc_info.value, PermissionError)
        assert "JH" in manager.errors

    @pytest.mark.asyncio
    async def test_denied_save_is_not_wrapped(self):
        backend = MemoryDocumentStore()
        await backend.set("roles/coach1", {"roles": ["coach"], "teams": ["JH"]})
        manager = AttendanceSheetManager(ScopedDocumentStore(backend, "coach1"))
        await manager.load("JH")
        manager.add_athlete("JH", "Ana", "Lopez")

        await backend.set("roles/coach1", {"roles": ["athlete"]})
        with pytest.raises(AccessDeniedError):
            await manager.save("JH")
        assert manager.dirty["JH"]

    @pytest.mark.asyncio
    async def test_malformed_sheet_does_not_block_other_teams(self):
        store = MemoryDocumentStore()
        await store.set(attendance_path("Varsity"), {"records": {"a": ["x"]}})
        manager = AttendanceSheetManager(store)

        assert await manager.load_all(["JH", "Varsity"]) == ["JH"]
        assert "Varsity" in manager.errors
        with pytest.raises(LoadError):
            await manager.load("Varsity")

    @pytest.mark.asyncio
    async def test_failed_save_is_not_visible_on_reload(self, tmp_path, monkeypatch):
        store = JsonDocumentStore(tmp_path / "store.json")
        manager = AttendanceSheetManager(store)
        await manager.load("JH")
        manager.add_athlete("JH", "Ana", "Lopez")
        await manager.save("JH")

        def disk_full(snapshot):
            raise OSError("No space left on device")

        monkeypatch.setattr(store, "_write_file", disk_full)
        manager.add_athlete("JH", "Ben", "Cho")
        with pytest.raises(SaveError):
            await manager.save("JH")

        reloaded = await AttendanceSheetManager(store).load("JH")
        assert [a.first_name for a in reloaded.athletes] == ["Ana"]
        assert len(manager.sheet("JH").athletes) == 2

    @pytest.mark.asyncio
    async def test_last_save_wins(self):
        store = MemoryDocumentStore()
        first = AttendanceSheetManager(store)
        second = AttendanceSheetManager(store)
        await first.load("JH")
        await second.load("JH")

        first.add_date("JH", today=date(2024, 1, 1))
        second.add_date("JH", today=date(2024, 2, 1))
        await first.save("JH")
        saved = await second.save("JH")

        assert saved.dates == ["2024-02-01"]

    def test_edit_before_load_raises(self):
        manager = AttendanceSheetManager(MemoryDocumentStore())
        with pytest.raises(KeyError):
            manager.add_date("JH")
