"""
Transport Player Adapter - Wraps the platform media player.

The adapter owns one underlying player and reports back through four
listener callbacks, all delivered from its polling thread:

    on_tick(current_time, duration, is_playing)   every TICK_INTERVAL
    on_ready(duration)                            once per load
    on_end()                                      once per load
    on_error(message)                             preparation/playback failure

Failures are reported through on_error, never raised to the caller.
"""
import time
import logging
import threading
from typing import Callable, Optional

from ..config import TICK_INTERVAL, SKIP_INTERVAL

logger = logging.getLogger(__name__)


def _noop(*args):
    pass


class Transport:
    """Base adapter: listener wiring, polling thread and skip clamping."""

    def __init__(self, tick_interval: float = TICK_INTERVAL):
        self.tick_interval = tick_interval
        self._lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None
        self._running = False

        self._on_tick: Callable = _noop
        self._on_ready: Callable = _noop
        self._on_end: Callable = _noop
        self._on_error: Callable = _noop

        # Per-load flags, reset by load()
        self._url: Optional[str] = None
        self._ready_sent = False
        self._end_sent = False
        self._error_sent = False

    def set_listener(self, on_tick: Callable = None, on_ready: Callable = None,
                     on_end: Callable = None, on_error: Callable = None):
        self._on_tick = on_tick or _noop
        self._on_ready = on_ready or _noop
        self._on_end = on_end or _noop
        self._on_error = on_error or _noop

    # ============================================
    # LIFECYCLE
    # ============================================

    def start(self):
        """Start the polling thread."""
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        logger.debug(f'{type(self).__name__} polling every {self.tick_interval}s')

    def release(self):
        """Stop polling and free the underlying player."""
        self._running = False

    def _run(self):
        while self._running:
            try:
                self.poll()
            except Exception as e:
                logger.warning(f'Transport poll error: {e}', exc_info=True)
            time.sleep(self.tick_interval)

    # ============================================
    # CONTRACT
    # ============================================

    def load(self, url: str):
        """Replace the current media. Resets time, duration and end flag."""
        with self._lock:
            self._url = url
            self._ready_sent = False
            self._end_sent = False
            self._error_sent = False
        self._load(url)

    def play(self):
        raise NotImplementedError

    def pause(self):
        raise NotImplementedError

    def stop(self):
        raise NotImplementedError

    def seek(self, seconds: float):
        raise NotImplementedError

    @property
    def current_time(self) -> float:
        raise NotImplementedError

    @property
    def duration(self) -> float:
        """Duration in seconds, 0 while unknown."""
        raise NotImplementedError

    @property
    def is_playing(self) -> bool:
        raise NotImplementedError

    @property
    def is_loaded(self) -> bool:
        return self._url is not None

    def rearm_end(self):
        """Allow one more end-of-media event for the loaded media (replay after end)."""
        with self._lock:
            self._end_sent = False
        self._rearm()

    def skip_forward(self, delta: float = SKIP_INTERVAL):
        target = self.current_time + delta
        if self.duration > 0:
            target = min(target, self.duration)
        self.seek(target)

    def skip_backward(self, delta: float = SKIP_INTERVAL):
        self.seek(max(self.current_time - delta, 0))

    # ============================================
    # EVENT DISPATCH
    # ============================================

    def poll(self):
        """Read player state and deliver pending events plus one tick."""
        if not self.is_loaded:
            return

        error = self._take_error()
        if error:
            self._on_error(error)
            return

        duration = self.duration
        with self._lock:
            send_ready = not self._ready_sent and self._media_ready()
            if send_ready:
                self._ready_sent = True
            send_end = not self._end_sent and self._media_ended()
            if send_end:
                self._end_sent = True

        if send_ready:
            logger.info(f'Duration ready: {duration:.0f}s')
            self._on_ready(duration)

        self._on_tick(self.current_time, duration, self.is_playing)

        if send_end:
            logger.info('Episode finished playing')
            self._on_end()

    def _take_error(self) -> Optional[str]:
        with self._lock:
            if self._error_sent:
                return None
            message = self._media_error()
            if message:
                self._error_sent = True
            return message

    # Subclass hooks
    def _load(self, url: str):
        raise NotImplementedError

    def _media_ready(self) -> bool:
        raise NotImplementedError

    def _media_ended(self) -> bool:
        raise NotImplementedError

    def _media_error(self) -> Optional[str]:
        return None

    def _rearm(self):
        pass


class VLCTransport(Transport):
    """libVLC-backed transport (python-vlc).

    VLC invokes event callbacks on its own threads where calling back into
    libVLC can deadlock, so callbacks only set flags and the polling
    thread turns them into listener calls.
    """

    def __init__(self, tick_interval: float = TICK_INTERVAL):
        super().__init__(tick_interval)
        import vlc
        self._vlc = vlc
        self._instance = vlc.Instance('--no-video', '--quiet')
        self._player = self._instance.media_player_new()
        self._ended = False
        self._error: Optional[str] = None

        events = self._player.event_manager()
        events.event_attach(vlc.EventType.MediaPlayerEndReached, self._on_vlc_end)
        events.event_attach(vlc.EventType.MediaPlayerEncounteredError, self._on_vlc_error)

    def _on_vlc_end(self, event):
        self._ended = True

    def _on_vlc_error(self, event):
        self._error = 'Player failed to prepare or play media'

    def _load(self, url: str):
        logger.info('Transport loading stream')
        self._ended = False
        self._error = None
        self._player.stop()
        media = self._instance.media_new(url)
        self._player.set_media(media)

    def play(self):
        if not self.is_loaded:
            return
        if self._player.get_state() == self._vlc.State.Ended:
            # libVLC restarts an ended media only after a stop
            self._player.stop()
        self._player.play()

    def pause(self):
        if self.is_loaded:
            self._player.set_pause(1)

    def stop(self):
        self._player.stop()

    def seek(self, seconds: float):
        if self.is_loaded:
            self._player.set_time(int(max(0, seconds) * 1000))

    @property
    def current_time(self) -> float:
        ms = self._player.get_time()
        return max(0, ms or 0) / 1000.0

    @property
    def duration(self) -> float:
        ms = self._player.get_length()
        return max(0, ms or 0) / 1000.0

    @property
    def is_playing(self) -> bool:
        return bool(self._player.is_playing())

    def _media_ready(self) -> bool:
        state = self._player.get_state()
        return state in (self._vlc.State.Playing, self._vlc.State.Paused) and self.duration > 0

    def _media_ended(self) -> bool:
        return self._ended

    def _media_error(self) -> Optional[str]:
        return self._error

    def _rearm(self):
        self._ended = False

    def release(self):
        super().release()
        self._player.stop()
        self._player.release()
        self._instance.release()


class NullTransport(Transport):
    """Simulated player for mock mode: time advances while 'playing'."""

    def __init__(self, tick_interval: float = TICK_INTERVAL, default_duration: float = 1800.0,
                 clock: Callable[[], float] = time.time):
        super().__init__(tick_interval)
        self.default_duration = default_duration
        self._clock = clock
        self._position = 0.0
        self._duration = 0.0
        self._playing = False
        self._started_at: Optional[float] = None

    def _load(self, url: str):
        logger.info(f'Null transport loading {url}')
        self._position = 0.0
        self._duration = 0.0
        self._playing = False
        self._started_at = None

    def _advance(self):
        if self._playing and self._started_at is not None:
            now = self._clock()
            self._position += now - self._started_at
            self._started_at = now
            if self._duration and self._position >= self._duration:
                self._position = self._duration
                self._playing = False

    def play(self):
        if not self.is_loaded:
            return
        if not self._duration:
            self._duration = self.default_duration
        self._advance()
        self._playing = True
        self._started_at = self._clock()

    def pause(self):
        self._advance()
        self._playing = False

    def stop(self):
        self.pause()
        self._position = 0.0

    def seek(self, seconds: float):
        self._advance()
        self._position = max(0.0, seconds)
        if self._duration:
            self._position = min(self._position, self._duration)

    @property
    def current_time(self) -> float:
        self._advance()
        return self._position

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def is_playing(self) -> bool:
        self._advance()
        return self._playing

    def _media_ready(self) -> bool:
        return self._duration > 0

    def _media_ended(self) -> bool:
        return self._duration > 0 and self.current_time >= self._duration
