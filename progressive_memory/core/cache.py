"""ContextCache: per-session cache of built contexts with single-flight builds."""

from __future__ import annotations

import hashlib
import logging
import threading
from collections import OrderedDict
from typing import Callable

from ..types import FormattedContext, Message

logger = logging.getLogger(__name__)


class _SessionLock:
    """Per-session build lock plus the number of callers holding or awaiting it."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


def fingerprint_messages(messages: list[Message], salt: str = "") -> str:
    """sha256 of roles and contents (plus ``salt``) identifying a message log."""
    h = hashlib.sha256(salt.encode())
    for m in messages:
        h.update(b"\x00")
        h.update(m.role.value.encode())
        h.update(b"\x01")
        h.update(m.content.encode())
    return h.hexdigest()


class ContextCache:
    """Store handle shared by all engine calls of one hosting service.

    Create it once at startup and pass it to every engine that should share
    it. Holds the last built context per session, evicting the least
    recently used session beyond ``max_sessions``. Builds for the same
    session are serialized, so concurrent callers with an unchanged log
    reuse one result instead of summarizing twice.
    """

    def __init__(self, max_sessions: int = 1024) -> None:
        self.max_sessions = max_sessions
        self._entries: OrderedDict[str, tuple[str, FormattedContext]] = OrderedDict()
        self._session_locks: dict[str, _SessionLock] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, session_id: str, fingerprint: str) -> FormattedContext | None:
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None or entry[0] != fingerprint:
                return None
            self._entries.move_to_end(session_id)
            return entry[1]

    def put(self, session_id: str, fingerprint: str, context: FormattedContext) -> None:
        with self._lock:
            self._entries[session_id] = (fingerprint, context)
            self._entries.move_to_end(session_id)
            while len(self._entries) > self.max_sessions:
                self._entries.popitem(last=False)

    def get_or_build(
        self,
        session_id: str,
        fingerprint: str,
        build: Callable[[], FormattedContext],
    ) -> FormattedContext:
        """Return the cached context for this log, building it at most once at a time.

        Results that were cut short or fell back to truncation are returned
        but not cached, so the next call tries the summarizer again.
        """
        session_lock = self._acquire_session_lock(session_id)
        try:
            with session_lock.lock:
                cached = self.get(session_id, fingerprint)
                if cached is not None:
                    logger.debug("Context cache hit for session %s", session_id[:12])
                    return cached

                context = build()
                if context.result.cancelled or context.stats.fallback_count:
                    logger.debug("Not caching degraded context for session %s", session_id[:12])
                else:
                    self.put(session_id, fingerprint, context)
                return context
        finally:
            self._release_session_lock(session_id, session_lock)

    def _acquire_session_lock(self, session_id: str) -> _SessionLock:
        with self._lock:
            session_lock = self._session_locks.get(session_id)
            if session_lock is None:
                session_lock = self._session_locks[session_id] = _SessionLock()
            session_lock.users += 1
            return session_lock

    def _release_session_lock(self, session_id: str, session_lock: _SessionLock) -> None:
        # The last caller out drops the lock so idle sessions hold nothing
        with self._lock:
            session_lock.users -= 1
            if session_lock.users == 0 and self._session_locks.get(session_id) is session_lock:
                del self._session_locks[session_id]

    def clear(self, session_id: str) -> None:
        with self._lock:
            self._entries.pop(session_id, None)

    def clear_all(self) -> None:
        with self._lock:
            self._entries.clear()
