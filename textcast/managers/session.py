"""
Session Tracker - Active playback session and listened-time accumulator.

Idle until a playback session is started for a loaded item; Active while
that item stays loaded. Loading another item replaces the session and
zeroes the accumulator without a final sync.
"""
import time
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class SessionTracker:
    """Tracks session id, total time listened and the last sync time."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self.session_id: Optional[str] = None
        self.total_time_listened = 0.0
        self.last_sync_at = clock()

    @property
    def is_active(self) -> bool:
        return self.session_id is not None

    def start(self, session_id: Optional[str]):
        """Idle -> Active for a newly loaded item."""
        if self.session_id and self.session_id != session_id:
            logger.debug(f'Session {self.session_id} superseded')
        self.session_id = session_id
        self.total_time_listened = 0.0
        self.last_sync_at = self._clock()

    def reset(self):
        """Active -> Idle. The previous session is discarded unsynced."""
        self.session_id = None
        self.total_time_listened = 0.0
        self.last_sync_at = self._clock()

    def resume(self):
        """Restart the elapsed window when playback (re)starts."""
        self.last_sync_at = self._clock()

    def elapsed(self, now: Optional[float] = None) -> float:
        now = self._clock() if now is None else now
        return max(0.0, now - self.last_sync_at)

    def is_due(self, interval: float, now: Optional[float] = None) -> bool:
        return self.is_active and self.elapsed(now) >= interval

    def pending_total(self, now: Optional[float] = None) -> float:
        """Total to report if a sync happened at `now`."""
        return self.total_time_listened + self.elapsed(now)

    def commit(self, total: float, now: float, session_id: Optional[str] = None):
        """Record a successful sync.

        Ignored if the session changed while the sync was in flight.
        """
        if session_id is not None and session_id != self.session_id:
            return
        self.total_time_listened = max(self.total_time_listened, total)
        self.last_sync_at = now
