"""
Log Buffer - In-memory capture of recent log records for the logs view.

Installed as a root logging handler; it only observes.
"""
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import List

from .config import LOG_BUFFER_SIZE


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    level: str
    message: str
    file: str
    function: str
    line: int

    def format(self) -> str:
        return f'[{self.timestamp.isoformat()}] [{self.level}] {self.file}:{self.line} {self.function}\n{self.message}\n'


class LogBuffer(logging.Handler):
    """Keeps the most recent log entries while enabled."""

    def __init__(self, max_entries: int = LOG_BUFFER_SIZE, enabled: bool = True, level=logging.DEBUG):
        super().__init__(level)
        self.enabled = enabled
        self._entries = deque(maxlen=max_entries)
        self._entries_lock = threading.Lock()

    def emit(self, record: logging.LogRecord):
        if not self.enabled:
            return
        try:
            entry = LogEntry(
                timestamp=datetime.fromtimestamp(record.created),
                level=record.levelname,
                message=record.getMessage(),
                file=record.filename,
                function=record.funcName,
                line=record.lineno,
            )
        except Exception:
            self.handleError(record)
            return
        with self._entries_lock:
            self._entries.append(entry)

    @property
    def entries(self) -> List[LogEntry]:
        with self._entries_lock:
            return list(self._entries)

    def clear(self):
        with self._entries_lock:
            self._entries.clear()

    def export(self) -> str:
        """All entries as text, oldest first."""
        return '\n'.join(entry.format() for entry in self.entries)
