"""
Audiobookshelf API Client - REST client for the media server.
"""
import logging
from typing import Optional, List

import requests

from ..config import REQUEST_TIMEOUT, LIST_LIMIT, CLIENT_NAME, MEDIA_PLAYER_NAME, device_id
from ..errors import Unauthorized, NetworkError, ServerError, InvalidResponse
from ..models import QueueItem, ProgressEntry, Library, StreamSession
from .parsing import (
    parse_library, parse_progress_entry, parse_stream_url, parse_list,
    episode_to_queue_item, library_item_to_queue_item,
)

logger = logging.getLogger(__name__)


class AudiobookshelfAPI:
    """REST client for an Audiobookshelf server.

    Listing and mutation calls raise Unauthorized / ServerError /
    NetworkError. start_playback_session never raises; it returns None
    when the item cannot be played.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = REQUEST_TIMEOUT):
        self.base_url = base_url.strip().strip('/')
        self.timeout = timeout
        self._token = token
        self.session = requests.Session()
        self.session.headers['Content-Type'] = 'application/json'

    # ============================================
    # AUTHENTICATION
    # ============================================

    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: str):
        """Set access token manually (e.g., from storage)."""
        self._token = token

    def clear_token(self):
        """Clear access token (logout)."""
        self._token = None

    def login(self, username: str, password: str) -> dict:
        """POST /login - stores the returned token for later requests."""
        data = self._request(
            'POST', '/login',
            json={'username': username, 'password': password},
            headers={'x-return-tokens': 'true'},
            auth=False,
        )
        user = data.get('user') if isinstance(data, dict) else None
        if not isinstance(user, dict) or not user.get('token'):
            raise InvalidResponse('Login response has no user token')
        self._token = user['token']
        logger.info(f'Logged in as {user.get("username", username)}')
        return user

    def test_connection(self) -> bool:
        """Check if the server is reachable."""
        try:
            resp = self.session.get(self.base_url, timeout=self.timeout)
            return resp.ok
        except requests.RequestException:
            return False

    # ============================================
    # USER
    # ============================================

    def get_current_user(self) -> dict:
        """GET /api/me - user details including media progress."""
        data = self._request('GET', '/api/me')
        if not isinstance(data, dict):
            raise InvalidResponse('Unexpected /api/me response')
        return data

    def fetch_current_user_progress(self) -> List[ProgressEntry]:
        """Media progress entries of the current user."""
        user = self.get_current_user()
        entries = [parse_progress_entry(p) for p in parse_list(user, 'mediaProgress')]
        logger.info(f'Fetched user details: {len(entries)} progress items')
        return entries

    def list_in_progress(self, limit: int = LIST_LIMIT) -> List[QueueItem]:
        """GET /api/me/items-in-progress"""
        data = self._request('GET', '/api/me/items-in-progress', params={'limit': limit})
        return [library_item_to_queue_item(i, self.base_url) for i in parse_list(data, 'libraryItems')]

    # ============================================
    # LIBRARIES
    # ============================================

    def list_libraries(self) -> List[Library]:
        """GET /api/libraries"""
        data = self._request('GET', '/api/libraries')
        return [parse_library(lib) for lib in parse_list(data, 'libraries')]

    def list_episodic_content(self, library_id: str, limit: int = LIST_LIMIT) -> List[QueueItem]:
        """GET /api/libraries/:id/recent-episodes

        Items carry no progress; callers merge the Progress Index.
        """
        data = self._request('GET', f'/api/libraries/{library_id}/recent-episodes', params={'limit': limit})
        episodes = parse_list(data, 'episodes')
        if episodes:
            first = episodes[0]
            logger.debug(f'First episode: id={first.get("id")}, title={first.get("title")}')
        return [episode_to_queue_item(e, self.base_url) for e in episodes]

    # ============================================
    # PLAYBACK
    # ============================================

    def start_playback_session(self, container_id: str, child_id: Optional[str] = None) -> Optional[StreamSession]:
        """Start a playback session and resolve the stream URL.

        POST /api/items/:id/play (audiobooks)
        POST /api/items/:id/play/:episodeId (podcast episodes)
        """
        path = f'/api/items/{container_id}/play'
        if child_id:
            path += f'/{child_id}'
        logger.info(f'Starting playback session: POST {path}')

        body = {
            'deviceInfo': {
                'deviceId': device_id(),
                'clientName': CLIENT_NAME,
            },
            'forceDirectPlay': True,
            'forceTranscode': False,
            'mediaPlayer': MEDIA_PLAYER_NAME,
        }
        try:
            data = self._request('POST', path, json=body)
        except Unauthorized as e:
            logger.error(f'Cannot start playback session: {e}')
            return None
        except (ServerError, NetworkError, InvalidResponse) as e:
            logger.error(f'Playback session failed: {e}')
            return None

        if not isinstance(data, dict):
            logger.error('Playback session response is not an object')
            return None

        session_id = data.get('id')
        if session_id:
            logger.info(f'Playback session ID: {session_id}')

        stream_url = parse_stream_url(data, self.base_url, self._token)
        if not stream_url:
            logger.error('No contentUrl found in playback session response')
            return None

        logger.info(f'Got stream URL from playback session for {container_id}')
        return StreamSession(stream_url=stream_url, session_id=session_id)

    def sync_progress(self, session_id: str, current_time: float, duration: float, time_listened: float):
        """POST /api/session/:id/sync"""
        self._request('POST', f'/api/session/{session_id}/sync', json={
            'currentTime': current_time,
            'duration': duration,
            'timeListened': time_listened,
        })
        logger.info(f'Synced progress: {current_time:.0f}s / {duration:.0f}s')

    # ============================================
    # EPISODE & PROGRESS MUTATIONS
    # ============================================

    def delete_episode(self, container_id: str, child_id: str):
        """DELETE /api/podcasts/:id/episode/:episodeId (permanent)."""
        self._request('DELETE', f'/api/podcasts/{container_id}/episode/{child_id}')
        logger.info(f'Deleted episode {child_id} from library')

    def patch_progress(self, container_id: str, child_id: Optional[str], is_finished: bool,
                       current_time: float = 0, duration: Optional[float] = None):
        """PATCH /api/me/progress/:libraryItemId/:episodeId?"""
        path = f'/api/me/progress/{container_id}'
        if child_id:
            path += f'/{child_id}'

        payload = {'isFinished': is_finished, 'currentTime': current_time}
        if duration is not None:
            payload['duration'] = duration
            payload['progress'] = current_time / duration if duration > 0 else 0

        self._request('PATCH', path, json=payload)
        logger.info(f'Updated progress for {path}: isFinished={is_finished}, currentTime={current_time}')

    def mark_finished(self, container_id: str, child_id: Optional[str], duration: float):
        self.patch_progress(container_id, child_id, is_finished=True, current_time=duration, duration=duration)

    def reset_progress(self, container_id: str, child_id: Optional[str], duration: float):
        self.patch_progress(container_id, child_id, is_finished=False, current_time=0, duration=duration)

    # ============================================
    # TRANSPORT
    # ============================================

    def _request(self, method: str, path: str, auth: bool = True, **kwargs):
        """Send a request and map failures onto the error taxonomy.

        Returns the decoded JSON body, or None for empty bodies.
        """
        headers = kwargs.pop('headers', {})
        if auth:
            if not self._token:
                raise Unauthorized('No access token available')
            headers['Authorization'] = f'Bearer {self._token}'

        try:
            resp = self.session.request(
                method, f'{self.base_url}{path}',
                headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.debug(f'{method} {path} failed: {e}')
            raise NetworkError(str(e)) from e

        if resp.status_code == 401:
            raise Unauthorized()
        if not resp.ok:
            raise ServerError(resp.status_code, resp.text or 'Unknown error')

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise InvalidResponse(f'{method} {path}: {e}') from e
