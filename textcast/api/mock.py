"""
Mock API - In-memory stand-in for the media server (UI testing).
"""
import logging
import uuid
from typing import Optional, List

from ..models import QueueItem, ProgressEntry, Library, StreamSession, make_item_id

logger = logging.getLogger(__name__)


class MockAudiobookshelfAPI:
    """Serves a fixed podcast library and records progress in memory."""

    base_url = 'mock://server'

    def __init__(self):
        self.token = 'mock-token'
        self._episodes = [
            ('pod1', 'ep1', 'The Fifth Chapter', 'Hardcore History', 3600),
            ('pod1', 'ep2', 'Blueprint for Armageddon', 'Hardcore History', 5400),
            ('pod2', 'ep1', 'How Radio Works', 'Stuff You Should Know', 2700),
            ('pod3', 'ep7', 'The Long Now', 'Seminars', 4200),
        ]
        self._progress = {
            'pod1/ep2': ProgressEntry('pod1', 'ep2', duration=5400, progress=0.25, current_time=1350),
        }

    def set_token(self, token: str):
        self.token = token

    def clear_token(self):
        self.token = None

    def test_connection(self) -> bool:
        return True

    def fetch_current_user_progress(self) -> List[ProgressEntry]:
        return list(self._progress.values())

    def list_libraries(self) -> List[Library]:
        return [Library(id='lib-podcasts', name='Podcasts', media_type='podcast')]

    def list_episodic_content(self, library_id: str, limit: int = 25) -> List[QueueItem]:
        return [
            QueueItem(id=make_item_id(c, e), title=title, author=author, total_duration=duration)
            for c, e, title, author, duration in self._episodes[:limit]
        ]

    def list_in_progress(self, limit: int = 25) -> List[QueueItem]:
        return []

    def start_playback_session(self, container_id: str, child_id: Optional[str] = None) -> Optional[StreamSession]:
        session_id = uuid.uuid4().hex[:12]
        logger.info(f'Mock playback session {session_id} for {make_item_id(container_id, child_id)}')
        return StreamSession(stream_url=f'{self.base_url}/{container_id}/{child_id or ""}', session_id=session_id)

    def sync_progress(self, session_id: str, current_time: float, duration: float, time_listened: float):
        logger.info(f'Mock sync {session_id}: {current_time:.0f}s / {duration:.0f}s, listened {time_listened:.0f}s')

    def delete_episode(self, container_id: str, child_id: str):
        self._episodes = [e for e in self._episodes if (e[0], e[1]) != (container_id, child_id)]

    def patch_progress(self, container_id: str, child_id: Optional[str], is_finished: bool,
                       current_time: float = 0, duration: Optional[float] = None):
        key = make_item_id(container_id, child_id)
        progress = current_time / duration if duration else 0.0
        self._progress[key] = ProgressEntry(
            container_id, child_id, duration=duration or 0.0,
            progress=progress, current_time=current_time, is_finished=is_finished,
        )

    def mark_finished(self, container_id: str, child_id: Optional[str], duration: float):
        self.patch_progress(container_id, child_id, True, duration, duration)

    def reset_progress(self, container_id: str, child_id: Optional[str], duration: float):
        self.patch_progress(container_id, child_id, False, 0, duration)
