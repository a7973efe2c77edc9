"""
Pytest configuration and shared fixtures for TextCast tests.
"""
import threading
import pytest
from pathlib import Path
from tempfile import TemporaryDirectory

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from textcast.errors import ServerError
from textcast.models import QueueItem, Library, StreamSession, make_item_id
from textcast.player.transport import Transport
from textcast.utils import run_inline


class ManualClock:
    """Wall clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeTransport(Transport):
    """Records commands; tests fire ready/tick/end/error by hand."""

    def __init__(self):
        super().__init__(tick_interval=0.01)
        self.calls = []
        self.loaded_urls = []
        self.seeks = []
        self._time = 0.0
        self._duration = 0.0
        self._playing = False

    def _load(self, url):
        self.calls.append('load')
        self.loaded_urls.append(url)
        self._time = 0.0
        self._duration = 0.0
        self._playing = False

    def play(self):
        self.calls.append('play')
        self._playing = True

    def pause(self):
        self.calls.append('pause')
        self._playing = False

    def stop(self):
        self.calls.append('stop')
        self._playing = False

    def seek(self, seconds):
        self.calls.append('seek')
        self.seeks.append(seconds)
        self._time = seconds

    @property
    def current_time(self):
        return self._time

    @property
    def duration(self):
        return self._duration

    @property
    def is_playing(self):
        return self._playing

    def _media_ready(self):
        return self._duration > 0

    def _media_ended(self):
        return False

    # Test helpers
    def fire_ready(self, duration):
        self._duration = duration
        self._on_ready(duration)

    def fire_tick(self, current_time=None, duration=None, playing=None):
        if current_time is not None:
            self._time = current_time
        if duration is not None:
            self._duration = duration
        if playing is not None:
            self._playing = playing
        self._on_tick(self._time, self._duration, self._playing)

    def fire_end(self):
        self._time = self._duration
        self._playing = False
        self._on_end()

    def fire_error(self, message='boom'):
        self._on_error(message)


class FakeClient:
    """In-memory remote media client that records every call."""

    def __init__(self):
        self.calls = []
        self.session_count = 0
        self.fail_sessions = set()  # item ids that cannot be played
        self.sync_error = None
        self.mutation_error = None
        self.libraries = [Library(id='lib-pod', name='Podcasts', media_type='podcast')]
        self.episodes = []
        self.in_progress = []
        self.list_error = None
        # Set to block list_libraries until released (concurrency tests)
        self.fetch_started = threading.Event()
        self.release_fetch = None

    def start_playback_session(self, container_id, child_id=None):
        item_id = make_item_id(container_id, child_id)
        self.calls.append(('start_playback_session', container_id, child_id))
        if item_id in self.fail_sessions:
            return None
        self.session_count += 1
        return StreamSession(stream_url=f'http://media/{item_id}', session_id=f'sess-{self.session_count}')

    def sync_progress(self, session_id, current_time, duration, time_listened):
        self.calls.append(('sync_progress', session_id, current_time, duration, time_listened))
        if self.sync_error:
            raise self.sync_error

    def list_libraries(self):
        self.calls.append(('list_libraries',))
        self.fetch_started.set()
        if self.release_fetch is not None:
            self.release_fetch.wait(5)
        if self.list_error:
            raise self.list_error
        return list(self.libraries)

    def list_episodic_content(self, library_id, limit=25):
        self.calls.append(('list_episodic_content', library_id, limit))
        return list(self.episodes)

    def list_in_progress(self, limit=25):
        self.calls.append(('list_in_progress', limit))
        return list(self.in_progress)

    def delete_episode(self, container_id, child_id):
        self.calls.append(('delete_episode', container_id, child_id))
        if self.mutation_error:
            raise self.mutation_error

    def mark_finished(self, container_id, child_id, duration):
        self.calls.append(('mark_finished', container_id, child_id, duration))
        if self.mutation_error:
            raise self.mutation_error

    def reset_progress(self, container_id, child_id, duration):
        self.calls.append(('reset_progress', container_id, child_id, duration))
        if self.mutation_error:
            raise self.mutation_error

    def calls_named(self, name):
        return [c for c in self.calls if c[0] == name]


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that's cleaned up after each test."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def credentials_path(temp_dir):
    """Provide path for a temporary credentials.json file."""
    return temp_dir / 'credentials.json'


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def inline():
    """Run background work synchronously."""
    return run_inline


@pytest.fixture
def episodes():
    """Two podcast episodes and an audiobook, X/Y/Z style."""
    return [
        QueueItem(id='pod1/ep1', title='Episode X', author='Show', total_duration=3600,
                  current_time=1800, progress=0.5),
        QueueItem(id='pod1/ep2', title='Episode Y', author='Show', total_duration=1800),
        QueueItem(id='pod2/ep9', title='Episode Z', author='Other', total_duration=2400),
    ]


@pytest.fixture
def server_error():
    return ServerError(500, 'Internal error')
