"""
Async document store used for profiles, sessions, attendance and roles.

Documents are JSON-compatible dicts addressed by slash-separated paths
with an even number of segments (``athletes/{id}/profile/main``).  A
collection is the parent path of its documents (``athletes/{id}/sessions``).

Only the operations the rest of the package relies on are provided:
point reads and writes (optionally merged), append with a server
timestamp, a single "newest first, limited" query on ``created_at``,
collection-group listing, and change subscriptions.

Backends:
  MemoryDocumentStore  - process-local dicts
  JsonDocumentStore    - the same, persisted to one JSON file

ScopedDocumentStore wraps a backend and enforces per-caller access rules.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import time
import uuid
from pathlib import Path
from typing import Any, AsyncIterator, Protocol

from ..core.errors import AccessDeniedError, StoreUnavailableError
from .serializers import dict_to_role_assignment

logger = logging.getLogger(__name__)


class _ServerTimestamp:
    """Sentinel replaced with the store's clock when a document is written."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP: Any = _ServerTimestamp()

Document = dict[str, Any]


class DocumentStore(Protocol):
    """Operations the package needs from a document store."""

    async def get(self, path: str) -> Document | None: ...

    async def set(self, path: str, data: Document, merge: bool = False) -> None: ...

    async def add(self, collection: str, data: Document) -> tuple[str, Document]: ...

    async def query(self, collection: str, limit: int) -> list[tuple[str, Document]]: ...

    async def collection_group(self, name: str) -> list[tuple[str, Document]]: ...

    async def delete(self, path: str) -> None: ...

    def subscribe(self, path: str) -> AsyncIterator[Document | None]: ...


def _split(path: str) -> list[str]:
    parts = [p for p in path.strip("/").split("/") if p]
    if not parts:
        raise ValueError("Empty document path")
    return parts


def _check_document_path(path: str) -> str:
    parts = _split(path)
    if len(parts) % 2:
        raise ValueError(f"Not a document path: {path!r}")
    return "/".join(parts)


def _check_collection_path(path: str) -> str:
    parts = _split(path)
    if not len(parts) % 2:
        raise ValueError(f"Not a collection path: {path!r}")
    return "/".join(parts)


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


class MemoryDocumentStore:
    """
    Process-local document store.

    Every read returns a deep copy, so callers can never mutate stored
    state in place.  Timestamps are strictly increasing per store.
    """

    def __init__(self) -> None:
        self._docs: dict[str, Document] = {}
        self._last_ts = 0.0
        self._subscribers: dict[str, list[asyncio.Queue]] = {}
        self._write_lock = asyncio.Lock()

    # -- hooks for persistent subclasses ------------------------------------

    async def _ensure_loaded(self) -> None:
        return None

    async def _persist(self, docs: dict[str, Document]) -> None:
        return None

    async def _commit(self, docs: dict[str, Document]) -> None:
        # Only a persisted snapshot becomes visible to readers.
        await self._persist(docs)
        self._docs = docs

    # -- clock --------------------------------------------------------------

    def server_timestamp(self) -> float:
        """Return a wall-clock timestamp strictly greater than the last one."""
        now = time.time()
        if now <= self._last_ts:
            now = self._last_ts + 1e-6
        self._last_ts = now
        return now

    def _resolve_sentinels(self, data: Any) -> Any:
        if data is SERVER_TIMESTAMP:
            return self.server_timestamp()
        if isinstance(data, dict):
            return {k: self._resolve_sentinels(v) for k, v in data.items()}
        if isinstance(data, list):
            return [self._resolve_sentinels(v) for v in data]
        return data

    # -- operations ---------------------------------------------------------

    async def get(self, path: str) -> Document | None:
        await self._ensure_loaded()
        doc = self._docs.get(_check_document_path(path))
        return copy.deepcopy(doc) if doc is not None else None

    async def set(self, path: str, data: Document, merge: bool = False) -> None:
        await self._ensure_loaded()
        key = _check_document_path(path)
        async with self._write_lock:
            resolved = self._resolve_sentinels(copy.deepcopy(data))
            docs = dict(self._docs)
            if merge and key in docs:
                docs[key] = _deep_merge(docs[key], resolved)
            else:
                docs[key] = resolved
            logger.debug("set %s (merge=%s)", key, merge)
            await self._commit(docs)
        self._notify(key)

    async def add(self, collection: str, data: Document) -> tuple[str, Document]:
        """Append a document with a generated id and server ``created_at``."""
        await self._ensure_loaded()
        col = _check_collection_path(collection)
        doc_id = uuid.uuid4().hex
        key = f"{col}/{doc_id}"
        async with self._write_lock:
            doc = self._resolve_sentinels(copy.deepcopy(data))
            doc["created_at"] = self.server_timestamp()
            docs = dict(self._docs)
            docs[key] = doc
            logger.debug("add %s", key)
            await self._commit(docs)
        self._notify(key)
        return doc_id, copy.deepcopy(doc)

    async def query(self, collection: str, limit: int) -> list[tuple[str, Document]]:
        """Documents of a collection, newest ``created_at`` first, at most ``limit``."""
        await self._ensure_loaded()
        col = _check_collection_path(collection)
        prefix = col + "/"
        rows = [
            (key[len(prefix):], doc)
            for key, doc in self._docs.items()
            if key.startswith(prefix) and "/" not in key[len(prefix):]
        ]
        rows.sort(key=lambda r: r[1].get("created_at") or 0.0, reverse=True)
        return [(doc_id, copy.deepcopy(doc)) for doc_id, doc in rows[: max(limit, 0)]]

    async def collection_group(self, name: str) -> list[tuple[str, Document]]:
        """Every document whose parent collection is called ``name``."""
        await self._ensure_loaded()
        rows = []
        for key, doc in sorted(self._docs.items()):
            parts = key.split("/")
            if parts[-2] == name:
                rows.append((key, copy.deepcopy(doc)))
        return rows

    async def delete(self, path: str) -> None:
        await self._ensure_loaded()
        key = _check_document_path(path)
        async with self._write_lock:
            if key not in self._docs:
                return
            docs = dict(self._docs)
            del docs[key]
            logger.debug("delete %s", key)
            await self._commit(docs)
        self._notify(key)

    async def subscribe(self, path: str) -> AsyncIterator[Document | None]:
        """
        Yield the document's current value, then every later value.

        The stream never ends on its own; each new subscription starts
        from the current state.
        """
        key = _check_document_path(path)
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(key, []).append(queue)
        try:
            yield await self.get(key)
            while True:
                yield await queue.get()
        finally:
            self._subscribers[key].remove(queue)

    def _notify(self, key: str) -> None:
        doc = self._docs.get(key)
        for queue in self._subscribers.get(key, []):
            queue.put_nowait(copy.deepcopy(doc) if doc is not None else None)


class JsonDocumentStore(MemoryDocumentStore):
    """
    Document store persisted to a single JSON file.

    The file is read on first use and rewritten after every mutation.
    File I/O runs in a worker thread so the event loop stays responsive.
    """

    def __init__(self, path: str | Path):
        super().__init__()
        self.path = Path(path)
        self._loaded = False

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        try:
            data = await asyncio.to_thread(self._read_file)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreUnavailableError(f"Cannot read store {self.path}: {e}") from e
        self._docs = data.get("documents", {})
        self._last_ts = float(data.get("clock", 0.0))
        self._loaded = True

    def _read_file(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    async def _persist(self, docs: dict[str, Document]) -> None:
        snapshot = json.dumps({"clock": self._last_ts, "documents": docs}, indent=2)
        try:
            await asyncio.to_thread(self._write_file, snapshot)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot write store {self.path}: {e}") from e

    def _write_file(self, snapshot: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(snapshot, encoding="utf-8")
        tmp.replace(self.path)


class ScopedDocumentStore:
    """
    A backend seen through one caller's permissions.

    Rules:
      athletes/{id}/...   owner, coach or admin
      attendance/{team}   coach within team scope, or admin
      roles/{id}          read: owner or admin; write: admin
      collection groups   coach or admin

    Roles are re-read on every check, so a revoked role takes effect on
    the next call.
    """

    def __init__(self, backend: DocumentStore, caller_id: str):
        self.backend = backend
        self.caller_id = caller_id

    async def _assignment(self):
        raw = await self.backend.get(f"roles/{self.caller_id}")
        return dict_to_role_assignment(self.caller_id, raw)

    async def _check(self, path: str, write: bool) -> None:
        parts = _split(path)
        assignment = await self._assignment()
        root = parts[0]
        allowed = False
        if root == "athletes" and len(parts) > 1:
            allowed = parts[1] == self.caller_id or assignment.has_coach_access
        elif root == "attendance" and len(parts) > 1:
            allowed = assignment.has_coach_access and assignment.covers_team(parts[1])
        elif root == "roles" and len(parts) > 1:
            if write:
                allowed = assignment.is_admin
            else:
                allowed = parts[1] == self.caller_id or assignment.is_admin

        if not allowed:
            action = "write" if write else "read"
            logger.warning("Denied %s of %s for %s", action, path, self.caller_id)
            raise AccessDeniedError(f"{self.caller_id} may not {action} {path}")

    async def get(self, path: str) -> Document | None:
        await self._check(path, write=False)
        return await self.backend.get(path)

    async def set(self, path: str, data: Document, merge: bool = False) -> None:
        await self._check(path, write=True)
        await self.backend.set(path, data, merge=merge)

    async def add(self, collection: str, data: Document) -> tuple[str, Document]:
        await self._check(collection, write=True)
        return await self.backend.add(collection, data)

    async def query(self, collection: str, limit: int) -> list[tuple[str, Document]]:
        await self._check(collection, write=False)
        return await self.backend.query(collection, limit)

    async def collection_group(self, name: str) -> list[tuple[str, Document]]:
        assignment = await self._assignment()
        if not assignment.has_coach_access:
            logger.warning("Denied %s listing for %s", name, self.caller_id)
            raise AccessDeniedError(f"{self.caller_id} may not list {name}")
        return await self.backend.collection_group(name)

    async def delete(self, path: str) -> None:
        await self._check(path, write=True)
        await self.backend.delete(path)

    async def subscribe(self, path: str) -> AsyncIterator[Document | None]:
        await self._check(path, write=False)
        async for doc in self.backend.subscribe(path):
            yield doc
