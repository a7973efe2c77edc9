"""
Playback Queue Controller - Owns the play queue and drives the transport.

States:
- EMPTY:   nothing loaded (initial, after stop, or queue exhausted by removal)
- LOADING: a stream URL is being resolved / the transport is preparing
- READY:   media loaded, paused or playing
- ENDED:   end-of-media observed at the last queue position

All state changes happen under one lock. Transport callbacks, background
results and user intents (including media keys) go through the same
public methods, so there is a single logical owner of the queue.
"""
import time
import logging
import threading
from typing import Callable, List, Optional, Sequence

from ..config import PROGRESS_SYNC_INTERVAL, SKIP_INTERVAL
from ..models import QueueItem, PlayerState, NowPlaying, split_item_id
from ..managers.session import SessionTracker
from ..utils import run_async

logger = logging.getLogger(__name__)


class PlaybackQueueController:
    """Play queue, cursor, item loading and progress synchronization."""

    def __init__(self, client, transport, tracker: SessionTracker = None,
                 run: Callable = run_async, clock: Callable[[], float] = time.time,
                 sync_interval: float = PROGRESS_SYNC_INTERVAL,
                 on_change: Optional[Callable[[], None]] = None):
        """
        Args:
            client: Remote media client (start_playback_session, sync_progress)
            transport: Transport adapter driving the platform player
            tracker: Session tracker (a fresh one if omitted)
            run: Executor for background work (fire-and-forget)
            clock: Wall clock used for sync intervals
            sync_interval: Seconds between periodic progress syncs
            on_change: Called after every observable state change
        """
        self.client = client
        self.transport = transport
        self.tracker = tracker or SessionTracker(clock=clock)
        self._run = run
        self._clock = clock
        self.sync_interval = sync_interval
        self.on_change = on_change

        self._lock = threading.RLock()
        self.queue: List[QueueItem] = []
        self.cursor: Optional[int] = None
        self.state = PlayerState.EMPTY
        self.current_item: Optional[QueueItem] = None
        self.warning: Optional[str] = None

        # Bumped on every load/stop; background results for older loads are dropped
        self._generation = 0
        # True once the transport holds the media for the current generation
        self._media_current = False
        self._pending_seek: Optional[float] = None
        self._sync_in_flight = False
        # pause() while LOADING: the resolved stream is loaded but not started
        self._start_paused = False

        self.transport.set_listener(
            on_tick=self.on_tick,
            on_ready=self.on_ready,
            on_end=self.on_end,
            on_error=self.on_error,
        )

    # ============================================
    # QUEUE
    # ============================================

    def play_single(self, item: QueueItem):
        """Play one item; the queue becomes just that item."""
        self.play_from([item], 0)

    def play_from(self, items: Sequence[QueueItem], start_index: int = 0):
        """Replace the queue with items and start at start_index."""
        if not items:
            raise ValueError('Cannot play an empty queue')
        if not 0 <= start_index < len(items):
            raise IndexError(f'start_index {start_index} out of range for {len(items)} items')

        with self._lock:
            self.queue = list(items)
            self.cursor = start_index
            logger.info(f'New queue: {len(self.queue)} items, starting at {start_index}')
            self._load_current()

    def advance_next(self) -> bool:
        """Move to the next item. No-op at the end of the queue."""
        with self._lock:
            if self.cursor is None or self.cursor >= len(self.queue) - 1:
                logger.info('End of queue reached')
                return False
            self.cursor += 1
            self._load_current()
            return True

    def advance_previous(self) -> bool:
        """Move to the previous item. No-op at the start of the queue."""
        with self._lock:
            if self.cursor is None or self.cursor <= 0:
                logger.info('At start of queue')
                return False
            self.cursor -= 1
            self._load_current()
            return True

    def remove(self, item_id: str) -> bool:
        """Remove an item from the queue (e.g. deleted from the library).

        Items before the cursor shift it down. Removing the current item
        stops playback and loads its successor at the same cursor, or
        leaves the controller EMPTY when there is none.
        """
        with self._lock:
            if not any(item.id == item_id for item in self.queue):
                return False

            was_current = self.current_item is not None and self.current_item.id == item_id
            removed_before = 0
            if self.cursor is not None:
                removed_before = sum(1 for item in self.queue[:self.cursor] if item.id == item_id)
            self.queue = [item for item in self.queue if item.id != item_id]
            logger.info(f'Removed item {item_id} from play queue')

            if not self.queue:
                self.cursor = None
                if was_current:
                    self._clear_current()
                self._notify()
                return True

            if self.cursor is not None:
                self.cursor -= removed_before
                self.cursor = max(0, self.cursor)

            if was_current:
                self.transport.pause()
                if self.cursor < len(self.queue):
                    self._load_current()
                else:
                    self.cursor = len(self.queue) - 1
                    self._clear_current()
            elif self.cursor is not None and self.cursor >= len(self.queue):
                self.cursor = len(self.queue) - 1

            self._notify()
            return True

    def stop(self):
        """Pause, sync and clear the current item. The queue is kept."""
        self.pause()
        with self._lock:
            self._clear_current()
            logger.info('Playback stopped')
            self._notify()

    # ============================================
    # TRANSPORT CONTROLS
    # ============================================

    def play(self):
        """Resume playback, reloading the cursor item after a stop."""
        with self._lock:
            if self._media_current and self.state == PlayerState.ENDED:
                self._replay_ended()
            elif self._media_current and self.state in (PlayerState.READY, PlayerState.LOADING):
                if not self.transport.is_playing:
                    self.tracker.resume()
                self.transport.play()
                logger.info('Playback started')
                self._notify()
            elif self.state == PlayerState.LOADING:
                self._start_paused = False
            elif self.state == PlayerState.EMPTY and self.cursor is not None and self.queue:
                self._load_current()

    def pause(self):
        """Pause and make one best-effort sync before returning.

        Only a pause that actually stops playback syncs, so time spent
        paused is never reported as listened.
        """
        with self._lock:
            if not self._media_current:
                if self.state == PlayerState.LOADING:
                    self._start_paused = True
                    logger.info('Paused while loading')
                    self._notify()
                return
            was_playing = self.transport.is_playing
            self.transport.pause()
            logger.info('Playback paused')
            snapshot = None
            if was_playing:
                snapshot = self._sync_snapshot(self.transport.current_time, self.transport.duration)
            self._notify()

        if snapshot:
            self._sync(snapshot)

    def toggle(self):
        with self._lock:
            if not self._media_current and self.state == PlayerState.LOADING:
                pausing = not self._start_paused
            else:
                pausing = self.transport.is_playing
        if pausing:
            self.pause()
        else:
            self.play()

    def seek(self, seconds: float):
        with self._lock:
            if self._media_current:
                self.transport.seek(seconds)

    def skip_forward(self, delta: float = SKIP_INTERVAL):
        with self._lock:
            if self._media_current:
                self.transport.skip_forward(delta)

    def skip_backward(self, delta: float = SKIP_INTERVAL):
        with self._lock:
            if self._media_current:
                self.transport.skip_backward(delta)

    # ============================================
    # PRESENTATION
    # ============================================

    @property
    def now_playing(self) -> Optional[NowPlaying]:
        """Title/author and position for now playing surfaces."""
        with self._lock:
            item = self.current_item
            if item is None:
                return None
            if not self._media_current:
                return NowPlaying(title=item.title, author=item.author,
                                  current_time=item.current_time, duration=item.total_duration)
            return NowPlaying(
                title=item.title,
                author=item.author,
                current_time=self.transport.current_time,
                duration=self.transport.duration or item.total_duration,
                playing=self.transport.is_playing,
            )

    def _notify(self):
        if self.on_change:
            try:
                self.on_change()
            except Exception as e:
                logger.warning(f'on_change listener failed: {e}', exc_info=True)

    # ============================================
    # TRANSPORT EVENTS
    # ============================================

    def on_ready(self, duration: float):
        with self._lock:
            if not self._media_current:
                return
            self._mark_ready()

    def on_tick(self, current_time: float, duration: float, is_playing: bool):
        with self._lock:
            if not self._media_current:
                return
            if self.state == PlayerState.LOADING and duration > 0:
                self._mark_ready()

            if (self.state != PlayerState.READY or not is_playing or self._sync_in_flight
                    or not self.tracker.is_due(self.sync_interval, self._clock())):
                return
            snapshot = self._sync_snapshot(current_time, duration)
            if not snapshot:
                return
            self._sync_in_flight = True

        self._run(self._sync_in_background, snapshot)

    def on_end(self):
        with self._lock:
            if not self._media_current or self.state == PlayerState.ENDED:
                return
            self.state = PlayerState.ENDED
            logger.info('Episode finished, playing next in queue')
            snapshot = self._sync_snapshot(self.transport.duration, self.transport.duration)
            if snapshot:
                self._run(self._sync, snapshot)
            if not self.advance_next():
                self._notify()

    def on_error(self, message: str):
        with self._lock:
            if not self._media_current:
                return
            self.warning = message
            title = self.current_item.title if self.current_item else '?'
            logger.warning(f'Transport error for "{title}": {message}')
            self._notify()

    def _mark_ready(self):
        if self.state == PlayerState.LOADING:
            self.state = PlayerState.READY
        if self._pending_seek:
            logger.info(f'Resuming from saved position: {self._pending_seek:.0f}s')
            self.transport.seek(self._pending_seek)
            self._pending_seek = None
        self._notify()

    def _replay_ended(self):
        """User play after the last item ended: restart it in place (lock held)."""
        duration = self.transport.duration
        if duration > 0 and self.transport.current_time >= duration:
            self.transport.seek(0)
        self.transport.rearm_end()
        self.state = PlayerState.READY
        self.tracker.resume()
        self.transport.play()
        logger.info('Replaying last item of the queue')
        self._notify()

    # ============================================
    # ITEM LOADING
    # ============================================

    def _load_current(self):
        """Enter LOADING for the item at the cursor (lock held)."""
        item = self.queue[self.cursor]
        self._generation += 1
        generation = self._generation

        if self._media_current and self.transport.is_playing:
            self.transport.pause()
        self._media_current = False
        self.tracker.reset()

        self.current_item = item
        self.state = PlayerState.LOADING
        self.warning = None
        self._pending_seek = item.current_time if item.current_time > 0 else None
        self._start_paused = False
        logger.info(f'Loading [{self.cursor + 1}/{len(self.queue)}] {item.title}')
        self._notify()

        self._run(self._resolve_and_load, item, generation)

    def _resolve_and_load(self, item: QueueItem, generation: int):
        """Start a server session for item and hand its stream to the transport."""
        container_id, child_id = split_item_id(item.id)
        logger.debug(f'Parsed container={container_id}, child={child_id}')
        try:
            stream = self.client.start_playback_session(container_id, child_id)
        except Exception as e:
            logger.error(f'Error starting playback session: {e}', exc_info=True)
            stream = None

        with self._lock:
            if generation != self._generation:
                logger.debug(f'Discarding superseded load for {item.id}')
                return
            if stream is None:
                logger.error(f'Failed to get stream URL for item: {item.id}')
                self.warning = f'Cannot play "{item.title}"'
                self._notify()
                return

            self.tracker.start(stream.session_id)
            self.transport.load(stream.stream_url)
            self._media_current = True
            if self._start_paused:
                logger.info(f'Loaded "{item.title}" paused')
            else:
                self.transport.play()
            self._notify()

    def _clear_current(self):
        self._generation += 1
        self._media_current = False
        self._pending_seek = None
        self._start_paused = False
        self.tracker.reset()
        self.current_item = None
        self.state = PlayerState.EMPTY

    # ============================================
    # PROGRESS SYNC
    # ============================================

    def _sync_snapshot(self, current_time: float, duration: float) -> Optional[tuple]:
        """Values for one sync, or None when sync must be skipped (lock held)."""
        if not self.tracker.is_active or duration <= 0:
            return None
        now = self._clock()
        return (self.tracker.session_id, current_time, duration, self.tracker.pending_total(now), now)

    def _sync(self, snapshot: tuple) -> bool:
        session_id, current_time, duration, total, now = snapshot
        try:
            self.client.sync_progress(session_id, current_time, duration, total)
        except Exception as e:
            logger.error(f'Failed to sync progress: {e}')
            return False
        with self._lock:
            self.tracker.commit(total, now, session_id)
        return True

    def _sync_in_background(self, snapshot: tuple):
        try:
            self._sync(snapshot)
        finally:
            with self._lock:
                self._sync_in_flight = False
