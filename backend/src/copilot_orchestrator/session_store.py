"""Session storage: per-session ordered turn logs, serialized per session id."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import SESSIONS_DIR
from .errors import InvalidInput, SessionConcurrencyConflict
from .eviction import EvictionPolicy, NoEviction
from .models import SessionData, Turn, unresolved_call_ids

logger = logging.getLogger(__name__)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionStore(ABC):
    """
    Append-only turn log keyed by session id.

    ``session()`` holds a per-session lock for the whole load -> loop -> append
    sequence: requests for different sessions never wait on each other, two
    requests for the same session run one after the other. Eviction takes the
    same lock, so a session is never deleted under a running turn. Backends
    implement the ``_read``/``_write``/``_delete`` hooks only.
    """

    def __init__(self, eviction: EvictionPolicy | None = None) -> None:
        self._eviction = eviction or NoEviction()
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._last_access: dict[str, float] = {}

    # -- backend hooks -------------------------------------------------------

    @abstractmethod
    async def _read(self, session_id: str) -> SessionData | None:
        ...

    @abstractmethod
    async def _write(self, data: SessionData) -> None:
        ...

    @abstractmethod
    async def _delete(self, session_id: str) -> None:
        ...

    async def close(self) -> None:
        """Release backend resources."""

    # -- public API ----------------------------------------------------------

    async def load(self, session_id: str) -> list[Turn]:
        """Ordered turns of a session; empty if the session is unknown."""
        _require_id(session_id)
        data = await self._read(session_id)
        if data is None:
            return []
        self._last_access[session_id] = time.monotonic()
        return list(data.turns)

    async def append(
        self,
        session_id: str,
        turns: list[Turn],
        *,
        expected_length: int | None = None,
    ) -> None:
        """Append ``turns`` atomically. The batch must not leave a tool call unresolved.

        ``expected_length`` is the history length the caller loaded; a mismatch
        means another writer got in between.
        """
        _require_id(session_id)
        orphans = unresolved_call_ids(turns)
        if orphans:
            raise ValueError(f"Refusing to append unresolved tool calls: {orphans}")
        current = await self._read(session_id)
        existing = list(current.turns) if current else []
        if expected_length is not None and len(existing) != expected_length:
            raise SessionConcurrencyConflict(
                f"Session {session_id} has {len(existing)} turns, expected {expected_length}"
            )
        now = _iso_now()
        metadata: dict[str, Any] = dict(current.metadata) if current else {"created_at": now}
        metadata["updated_at"] = now
        metadata["turn_count"] = len(existing) + len(turns)
        await self._write(SessionData(session_id=session_id, turns=existing + list(turns), metadata=metadata))
        self._last_access[session_id] = time.monotonic()
        await self._evict()

    @asynccontextmanager
    async def session(self, session_id: str) -> AsyncIterator[list[Turn]]:
        """Hold the session's lock and yield its current history."""
        _require_id(session_id)
        async with self._claim(session_id):
            yield await self.load(session_id)

    @asynccontextmanager
    async def _claim(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if self._lock_users[session_id] == 0:
                del self._lock_users[session_id]
                self._locks.pop(session_id, None)

    def is_busy(self, session_id: str) -> bool:
        return session_id in self._lock_users

    async def _evict(self) -> None:
        idle = {sid: t for sid, t in self._last_access.items() if not self.is_busy(sid)}
        for sid in self._eviction.select(idle, time.monotonic()):
            # A request may have claimed the session while an earlier delete ran.
            if self.is_busy(sid):
                continue
            seen = idle[sid]
            async with self._claim(sid):
                if self._last_access.get(sid) != seen:
                    continue
                logger.info("Evicting session %s", sid)
                self._last_access.pop(sid, None)
                await self._delete(sid)


def _require_id(session_id: str) -> None:
    if not isinstance(session_id, str) or not session_id:
        raise InvalidInput("Field 'sessionId' is required and must be a string")


class InMemorySessionStore(SessionStore):
    """Process-lifetime store backed by a dict."""

    def __init__(self, eviction: EvictionPolicy | None = None) -> None:
        super().__init__(eviction)
        self._sessions: dict[str, SessionData] = {}

    async def _read(self, session_id: str) -> SessionData | None:
        data = self._sessions.get(session_id)
        return None if data is None else data.model_copy(deep=True)

    async def _write(self, data: SessionData) -> None:
        self._sessions[data.session_id] = data

    async def _delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)


class JsonFileSessionStore(SessionStore):
    """Durable store: one JSON file per session under ``directory``."""

    def __init__(self, directory: Path | None = None, eviction: EvictionPolicy | None = None) -> None:
        super().__init__(eviction)
        self.directory = Path(directory or SESSIONS_DIR)

    def _session_path(self, session_id: str) -> Path:
        # Session ids are caller-supplied; never use them as file names directly.
        digest = hashlib.sha256(session_id.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.json"

    def _read_sync(self, session_id: str) -> SessionData | None:
        path = self._session_path(session_id)
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        return SessionData.model_validate(raw)

    def _write_sync(self, data: SessionData) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._session_path(data.session_id)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data.model_dump(mode="json"), f, indent=2, default=str)
        os.replace(tmp, path)

    async def _read(self, session_id: str) -> SessionData | None:
        return await asyncio.to_thread(self._read_sync, session_id)

    async def _write(self, data: SessionData) -> None:
        await asyncio.to_thread(self._write_sync, data)

    async def _delete(self, session_id: str) -> None:
        path = self._session_path(session_id)
        await asyncio.to_thread(path.unlink, True)
