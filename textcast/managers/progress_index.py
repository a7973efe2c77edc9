"""
Progress Index - Last known server-side position per item.

Keys are composite identifiers ("libraryItemId/episodeId" for episodes,
"libraryItemId" for books). The index is always replaced wholesale from
the server, never patched entry by entry.
"""
import logging
import threading
from typing import Dict, Iterable, Optional

from ..models import ProgressEntry, QueueItem

logger = logging.getLogger(__name__)


class ProgressIndex:
    """Lookup table from composite id to ProgressEntry."""

    def __init__(self, entries: Iterable[ProgressEntry] = ()):
        self._lock = threading.Lock()
        self._entries: Dict[str, ProgressEntry] = {e.key: e for e in entries}

    def replace(self, entries: Iterable[ProgressEntry]):
        """Swap in a freshly fetched set of entries."""
        fresh = {e.key: e for e in entries}
        with self._lock:
            self._entries = fresh

    def refresh(self, client) -> bool:
        """Fetch current user progress and replace the index.

        Errors are logged; the previous index is kept on failure.
        """
        try:
            entries = client.fetch_current_user_progress()
        except Exception as e:
            logger.error(f'Failed to refresh user progress: {e}')
            return False
        self.replace(entries)
        logger.info(f'Refreshed user progress: {len(self)} items')
        return True

    def get(self, item_id: str) -> Optional[ProgressEntry]:
        with self._lock:
            return self._entries.get(item_id)

    def merge(self, item: QueueItem) -> QueueItem:
        """Return item with the indexed position applied, if any."""
        entry = self.get(item.id)
        if entry is None:
            logger.debug(f'Episode {item.id}: no progress found in index')
            return item
        logger.debug(f'Episode {item.id}: found progress {entry.progress}, currentTime {entry.current_time}')
        return item.with_progress(entry.current_time, entry.progress)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, item_id: str) -> bool:
        with self._lock:
            return item_id in self._entries
