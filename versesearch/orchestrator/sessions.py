"""
Per-session conversation memories with idle expiry.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .memory import ConversationMemory

logger = logging.getLogger(__name__)

SESSION_TIMEOUT_SECONDS = 30 * 60
SWEEP_INTERVAL_SECONDS = 10 * 60


@dataclass
class _Entry:
    memory: ConversationMemory
    last_access: float


class SessionStore:
    """
    Thread-safe map of session id to ConversationMemory.

    get_or_create is single-flight: concurrent callers with the same id
    always receive the same memory object. Sessions idle for longer than
    timeout seconds are evicted by sweep().
    """

    def __init__(
        self,
        max_messages: int = 20,
        timeout: float = SESSION_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_messages = max_messages
        self.timeout = timeout
        self._clock = clock
        self._sessions: Dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

    def get_or_create(self, session_id: str | None) -> ConversationMemory:
        if session_id is None or not session_id.strip():
            logger.warning("Blank session id; using a temporary memory that will not be kept")
            return ConversationMemory(self.max_messages)
        now = self._clock()
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                entry = _Entry(ConversationMemory(self.max_messages), now)
                self._sessions[session_id] = entry
                logger.debug("Created session %s", session_id)
            else:
                entry.last_access = now
            return entry.memory

    def clear(self, session_id: str) -> bool:
        """Drop a session; True when it existed."""
        with self._lock:
            removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.debug("Cleared session %s", session_id)
        return removed

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def sweep(self, now: float | None = None) -> int:
        """Evict sessions idle beyond the timeout; returns how many were removed."""
        now = self._clock() if now is None else now
        with self._lock:
            expired = [sid for sid, e in self._sessions.items() if now - e.last_access > self.timeout]
            for sid in expired:
                del self._sessions[sid]
            remaining = len(self._sessions)
        if expired:
            logger.info("Evicted %d idle sessions (%d active)", len(expired), remaining)
        return len(expired)

    def start_sweeper(self, interval: float = SWEEP_INTERVAL_SECONDS) -> None:
        """Run sweep() every interval seconds on a daemon thread until stop()."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()

        def _run() -> None:
            while not self._stop.wait(interval):
                try:
                    self.sweep()
                except Exception:
                    logger.exception("Session sweep failed")

        self._sweeper = threading.Thread(target=_run, name="session-sweeper", daemon=True)
        self._sweeper.start()

    def stop(self) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1.0)
            self._sweeper = None
