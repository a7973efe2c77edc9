"""
Queue List Controller - Listing and optimistic mutations.

Loads the candidate list (recent podcast episodes merged with the
Progress Index, or items in progress as a fallback) and applies delete /
mark-finished / restart in two phases:

1. Local state changes immediately (the list, and the play queue for deletes)
2. The server mutation runs in the background; failures are logged only.
   The next full load() reconciles any divergence.
"""
import logging
import threading
from typing import Callable, List, Optional

from ..config import LIST_LIMIT
from ..errors import Cancelled, MalformedIdentifier, TextCastError, Unauthorized
from ..models import QueueItem, parse_episode_id
from ..utils import run_async

logger = logging.getLogger(__name__)


class QueueListController:
    """The list of items shown to the user, and mutations on it."""

    def __init__(self, client, playback=None, run: Callable = run_async,
                 limit: int = LIST_LIMIT, on_change: Optional[Callable[[], None]] = None):
        """
        Args:
            client: Remote media client (None until authenticated)
            playback: PlaybackQueueController to keep in step with deletes
            run: Executor for the background server mutations
            limit: Maximum items per listing fetch
            on_change: Called after the list changes
        """
        self.client = client
        self.playback = playback
        self._run = run
        self.limit = limit
        self.on_change = on_change

        self._lock = threading.RLock()
        self.items: List[QueueItem] = []
        self.is_loading = False
        self.error_message: Optional[str] = None
        self.selected_item: Optional[QueueItem] = None

        self._generation = 0
        self._progress_index = None

    # ============================================
    # LOADING
    # ============================================

    def load(self, progress_index=None) -> bool:
        """Fetch the listing and replace the local list.

        A call while another load is in flight is dropped. Returns True
        when the list was replaced. Unauthorized is re-raised after the
        error message is set.
        """
        with self._lock:
            if self.is_loading:
                logger.debug('Already loading, skipping duplicate request')
                return False
            if self.client is None:
                self.error_message = 'Not authenticated'
                return False
            self.is_loading = True
            self.error_message = None
            self._generation += 1
            generation = self._generation
            self._progress_index = progress_index

        try:
            items = self._fetch(progress_index)
            with self._lock:
                if generation != self._generation:
                    raise Cancelled('Listing superseded by a newer request')
                self.items = items
            logger.info(f'Loaded {len(items)} items')
            if items:
                first = items[0]
                logger.info(f'First item ID: {first.id}, title: {first.title}, progress: {first.progress}')
            self._notify()
            return True
        except Cancelled:
            logger.info('Load cancelled (superseded)')
            return False
        except Unauthorized as e:
            self._fail(generation, str(e))
            raise
        except TextCastError as e:
            self._fail(generation, f'Failed to load latest: {e}')
            return False
        finally:
            with self._lock:
                if generation == self._generation:
                    self.is_loading = False

    def refresh(self) -> bool:
        """Reload with the Progress Index used by the last load."""
        return self.load(self._progress_index)

    def cancel(self):
        """Supersede the in-flight load; its result will not be applied."""
        with self._lock:
            if not self.is_loading:
                return
            self._generation += 1
            self.is_loading = False
            logger.debug('In-flight listing cancelled')

    def _fetch(self, progress_index) -> List[QueueItem]:
        libraries = self.client.list_libraries()
        episodic = next((lib for lib in libraries if lib.is_episodic), None)

        if episodic is None:
            logger.info('No podcast library, falling back to items in progress')
            return self.client.list_in_progress(self.limit)

        episodes = self.client.list_episodic_content(episodic.id, self.limit)
        if progress_index is None:
            return episodes
        return [progress_index.merge(episode) for episode in episodes]

    def _fail(self, generation: int, message: str):
        with self._lock:
            if generation != self._generation:
                return
            self.error_message = message
        logger.error(message)
        self._notify()

    # ============================================
    # SELECTION
    # ============================================

    def select(self, item: QueueItem):
        logger.info(f'selectItem called with id: {item.id}, title: {item.title}')
        self.selected_item = item

    def play(self, item: QueueItem):
        """Play item followed by the rest of the list after it."""
        with self._lock:
            index = self._index_of(item.id)
            tail = self.items[index:] if index is not None else [item]
        self.select(item)
        self.playback.play_from(tail, 0)

    def _index_of(self, item_id: str) -> Optional[int]:
        return next((i for i, it in enumerate(self.items) if it.id == item_id), None)

    # ============================================
    # OPTIMISTIC MUTATIONS
    # ============================================

    def delete(self, item: QueueItem):
        """Remove from the list and the play queue, then delete on the server."""
        with self._lock:
            self.items = [it for it in self.items if it.id != item.id]
        if self.playback is not None:
            self.playback.remove(item.id)
        self._notify()
        self._run(self._confirm, item, 'delete')

    def mark_finished(self, item: QueueItem):
        """Remove from the list, then mark finished on the server."""
        with self._lock:
            self.items = [it for it in self.items if it.id != item.id]
        self._notify()
        self._run(self._confirm, item, 'finish')

    def restart(self, item: QueueItem):
        """Show the item at zero progress, then reset it on the server."""
        with self._lock:
            index = self._index_of(item.id)
            if index is None:
                return
            self.items[index] = self.items[index].with_progress(0.0, 0.0)
        self._notify()
        self._run(self._confirm, item, 'restart')

    def _confirm(self, item: QueueItem, action: str):
        """Phase 2: issue the server mutation for an optimistic change."""
        if self.client is None:
            logger.error('API client not available')
            return

        try:
            container_id, child_id = parse_episode_id(item.id)
        except MalformedIdentifier as e:
            logger.error(str(e))
            return

        try:
            if action == 'delete':
                self.client.delete_episode(container_id, child_id)
                logger.info(f"Deleted '{item.title}' from library")
            elif action == 'finish':
                self.client.mark_finished(container_id, child_id, item.total_duration)
                logger.info(f"Marked '{item.title}' as finished")
            elif action == 'restart':
                self.client.reset_progress(container_id, child_id, item.total_duration)
                logger.info(f"Restarted '{item.title}'")
        except TextCastError as e:
            logger.error(f'Failed to {action} item {item.id}: {e}')

    def _notify(self):
        if self.on_change:
            try:
                self.on_change()
            except Exception as e:
                logger.warning(f'on_change listener failed: {e}', exc_info=True)
