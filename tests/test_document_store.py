"""
Tests for the document store backends, scope enforcement, and the
profile and role stores built on them.
"""

import asyncio

import pytest

from strength_block.core.errors import AccessDeniedError, StoreUnavailableError, StrengthBlockError
from strength_block.io.document_store import (
    SERVER_TIMESTAMP,
    JsonDocumentStore,
    MemoryDocumentStore,
    ScopedDocumentStore,
)
from strength_block.io.profile_store import ProfileStore, profile_path
from strength_block.io.role_store import RoleStore


class TestMemoryDocumentStore:
    @pytest.mark.asyncio
    async def test_get_missing(self):
        assert await MemoryDocumentStore().get("athletes/a1/profile/main") is None

    @pytest.mark.asyncio
    async def test_set_replaces_and_merge_merges(self):
        store = MemoryDocumentStore()
        await store.set("attendance/JH", {"dates": ["2024-01-01"], "records": {"a": {"2024-01-01": True}}})
        await store.set(
            "attendance/JH",
            {"dates": ["2024-01-02"], "records": {"a": {"2024-01-02": False}}},
            merge=True,
        )
        doc = await store.get("attendance/JH")
        assert doc["dates"] == ["2024-01-02"]
        assert doc["records"] == {"a": {"2024-01-01": True, "2024-01-02": False}}

        await store.set("attendance/JH", {"dates": []})
        assert await store.get("attendance/JH") == {"dates": []}

    @pytest.mark.asyncio
    async def test_reads_are_copies(self):
        store = MemoryDocumentStore()
        await store.set("roles/u1", {"roles": ["coach"]})
        doc = await store.get("roles/u1")
        doc["roles"].append("admin")
        assert (await store.get("roles/u1"))["roles"] == ["coach"]

    @pytest.mark.asyncio
    async def test_server_timestamp_resolved(self):
        store = MemoryDocumentStore()
        await store.set("attendance/JH", {"updated_at": SERVER_TIMESTAMP})
        assert isinstance((await store.get("attendance/JH"))["updated_at"], float)

    @pytest.mark.asyncio
    async def test_add_assigns_increasing_created_at(self):
        store = MemoryDocumentStore()
        stamps = []
        for i in range(50):
            _, doc = await store.add("athletes/a1/sessions", {"i": i})
            stamps.append(doc["created_at"])
        assert all(b > a for a, b in zip(stamps, stamps[1:]))

    @pytest.mark.asyncio
    async def test_query_newest_first_with_limit(self):
        store = MemoryDocumentStore()
        for i in range(5):
            await store.add("athletes/a1/sessions", {"i": i})
        await store.add("athletes/a2/sessions", {"i": 99})

        rows = await store.query("athletes/a1/sessions", 3)
        assert [doc["i"] for _, doc in rows] == [4, 3, 2]

    @pytest.mark.asyncio
    async def test_collection_group(self):
        store = MemoryDocumentStore()
        await store.set(profile_path("a1"), {"firstName": "Ana"})
        await store.set(profile_path("a2"), {"firstName": "Ben"})
        await store.set("roles/a1", {"roles": ["athlete"]})
        paths = [path for path, _ in await store.collection_group("profile")]
        assert paths == [profile_path("a1"), profile_path("a2")]

    @pytest.mark.asyncio
    async def test_delete(self):
        store = MemoryDocumentStore()
        await store.set("roles/u1", {"roles": ["coach"]})
        await store.delete("roles/u1")
        assert await store.get("roles/u1") is None

    @pytest.mark.asyncio
    async def test_path_shape_checked(self):
        store = MemoryDocumentStore()
        with pytest.raises(ValueError):
            await store.get("athletes/a1/sessions")
        with pytest.raises(ValueError):
            await store.add("athletes/a1", {})

    @pytest.mark.asyncio
    async def test_subscribe_starts_from_current_state(self):
        store = MemoryDocumentStore()
        await store.set("roles/u1", {"roles": ["coach"]})
        stream = store.subscribe("roles/u1")

        assert await stream.__anext__() == {"roles": ["coach"]}
        await store.set("roles/u1", {"roles": []})
        assert await asyncio.wait_for(stream.__anext__(), timeout=1) == {"roles": []}
        await store.delete("roles/u1")
        assert await asyncio.wait_for(stream.__anext__(), timeout=1) is None
        await stream.aclose()


class TestJsonDocumentStore:
    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "store.json"
        first = JsonDocumentStore(path)
        _, doc = await first.add("athletes/a1/sessions", {"lift": "bench"})

        second = JsonDocumentStore(path)
        rows = await second.query("athletes/a1/sessions", 10)
        assert rows[0][1]["created_at"] == doc["created_at"]

        # The clock survives a reload, so new documents sort after old ones
        _, newer = await second.add("athletes/a1/sessions", {"lift": "squat"})
        assert newer["created_at"] > doc["created_at"]

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path):
        store = JsonDocumentStore(tmp_path / "nope" / "store.json")
        assert await store.get("roles/u1") is None

    @pytest.mark.asyncio
    async def test_corrupt_file_is_unavailable(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StoreUnavailableError):
            await JsonDocumentStore(path).get("roles/u1")

    @pytest.mark.asyncio
    async def test_failed_write_changes_nothing(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = JsonDocumentStore(blocker / "store.json")

        with pytest.raises(StoreUnavailableError):
            await store.add("athletes/a1/sessions", {"lift": "bench"})
        with pytest.raises(StoreUnavailableError):
            await store.set("roles/u1", {"roles": ["coach"]})

        assert await store.query("athletes/a1/sessions", 10) == []
        assert await store.get("roles/u1") is None

    @pytest.mark.asyncio
    async def test_failed_merge_keeps_stored_document(self, tmp_path, monkeypatch):
        store = JsonDocumentStore(tmp_path / "store.json")
        await store.set("attendance/JH", {"dates": ["2024-01-01"]})

        def disk_full(snapshot):
            raise OSError("No space left on device")

        monkeypatch.setattr(store, "_write_file", disk_full)
        with pytest.raises(StoreUnavailableError):
            await store.set("attendance/JH", {"dates": ["2024-01-08"]}, merge=True)
        with pytest.raises(StoreUnavailableError):
            await store.delete("attendance/JH")

        assert await store.get("attendance/JH") == {"dates": ["2024-01-01"]}


class TestScopedDocumentStore:
    @pytest.mark.asyncio
    async def test_owner_access(self):
        backend = MemoryDocumentStore()
        store = ScopedDocumentStore(backend, "a1")
        await store.set(profile_path("a1"), {"firstName": "Ana"})
        assert (await store.get(profile_path("a1")))["firstName"] == "Ana"

        with pytest.raises(AccessDeniedError):
            await store.get(profile_path("a2"))
        with pytest.raises(AccessDeniedError):
            await store.collection_group("profile")

    @pytest.mark.asyncio
    async def test_roles_read_own_write_admin(self):
        backend = MemoryDocumentStore()
        await backend.set("roles/a1", {"roles": ["athlete"]})
        store = ScopedDocumentStore(backend, "a1")

        assert await store.get("roles/a1") == {"roles": ["athlete"]}
        with pytest.raises(AccessDeniedError):
            await store.get("roles/a2")
        with pytest.raises(AccessDeniedError):
            await store.set("roles/a1", {"roles": ["admin"]})

    @pytest.mark.asyncio
    async def test_admin_everywhere(self):
        backend = MemoryDocumentStore()
        await backend.set("roles/boss", {"roles": ["admin"], "teams": ["JH"]})
        store = ScopedDocumentStore(backend, "boss")
        await store.set("roles/a1", {"roles": ["coach"]})
        await store.set("attendance/Varsity", {"dates": []})
        await store.get(profile_path("a9"))

    @pytest.mark.asyncio
    async def test_revoked_role_takes_effect_immediately(self):
        backend = MemoryDocumentStore()
        await backend.set("roles/c1", {"roles": ["coach"]})
        store = ScopedDocumentStore(backend, "c1")
        await store.get(profile_path("a1"))

        await backend.set("roles/c1", {"roles": ["athlete"]})
        with pytest.raises(AccessDeniedError):
            await store.get(profile_path("a1"))


class TestProfileStore:
    @pytest.mark.asyncio
    async def test_ensure_creates_then_keeps_training_max(self):
        profiles = ProfileStore(MemoryDocumentStore())
        created = await profiles.ensure("a1", "Ana", "Lopez", unit="kg", team="JH")
        assert created.display_name == "Ana Lopez"

        await profiles.save_training_max("a1", "bench", 100)
        again = await profiles.ensure("a1", team="Varsity")

        assert again.first_name == "Ana"
        assert again.unit == "kg"
        assert again.team == "Varsity"
        assert again.training_max_for("bench") == 100.0

    @pytest.mark.asyncio
    async def test_save_training_max_requires_profile(self):
        profiles = ProfileStore(MemoryDocumentStore())
        with pytest.raises(StrengthBlockError):
            await profiles.save_training_max("ghost", "bench", 100)

    @pytest.mark.asyncio
    async def test_save_training_max_validates(self):
        profiles = ProfileStore(MemoryDocumentStore())
        await profiles.ensure("a1")
        with pytest.raises(ValueError):
            await profiles.save_training_max("a1", "curl", 100)
        with pytest.raises(ValueError):
            await profiles.save_training_max("a1", "bench", 0)

    @pytest.mark.asyncio
    async def test_bad_stored_training_max_dropped(self):
        store = MemoryDocumentStore()
        await store.set(profile_path("a1"), {"unit": "lb", "tm": {"bench": -5, "curl": 50, "squat": 300}})
        profile = await ProfileStore(store).load("a1")
        assert profile.training_max == {"squat": 300.0}

    @pytest.mark.asyncio
    async def test_list_roster_sorted_with_roles(self):
        store = MemoryDocumentStore()
        profiles = ProfileStore(store)
        roles = RoleStore(store)
        await profiles.ensure("z", "Zed", "Adams")
        await profiles.ensure("b", "Bea", "Young")
        await profiles.ensure("a", "Al", "Adams")
        await roles.grant("b", "coach", teams=["JH"])

        roster = await profiles.list_roster(roles)

        assert [e.athlete_id for e in roster] == ["a", "z", "b"]
        assert roster[2].roles == frozenset({"coach"})
        assert roster[0].roles == frozenset()


class TestRoleStore:
    @pytest.mark.asyncio
    async def test_grant_and_revoke(self):
        roles = RoleStore(MemoryDocumentStore())
        await roles.grant("u1", "Coach", teams=["JH"])
        assignment = await roles.grant("u1", "athlete")
        assert assignment.roles == frozenset({"coach", "athlete"})
        assert assignment.teams == ("JH",)

        raw = await roles.store.get("roles/u1")
        assert raw["role"] == "coach"
        assert raw["roles"] == ["athlete", "coach"]

        assignment = await roles.revoke("u1", "coach")
        assert assignment.roles == frozenset({"athlete"})

    @pytest.mark.asyncio
    async def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            await RoleStore(MemoryDocumentStore()).grant("u1", "owner")

    @pytest.mark.asyncio
    async def test_unknown_stored_tags_ignored(self):
        store = MemoryDocumentStore()
        await store.set("roles/u1", {"roles": ["COACH", "coach", "superuser"]})
        assert (await RoleStore(store).fetch("u1")).roles == frozenset({"coach"})
