"""
Server JSON -> model mapping.

Only the fields the client relies on are read; everything else in the
server's payloads is ignored.
"""
import logging
from typing import List, Optional

from ..models import QueueItem, ProgressEntry, Library, make_item_id

logger = logging.getLogger(__name__)


def _number(value, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def cover_url(base_url: str, container_id: Optional[str]) -> Optional[str]:
    """Cover art endpoint: GET /api/items/:id/cover (public)."""
    if not container_id:
        return None
    return f'{base_url}/api/items/{container_id}/cover'


def parse_library(data: dict) -> Library:
    return Library(
        id=data.get('id', ''),
        name=data.get('name', ''),
        media_type=data.get('mediaType', 'book'),
        display_order=data.get('displayOrder'),
        icon=data.get('icon'),
    )


def parse_progress_entry(data: dict) -> ProgressEntry:
    return ProgressEntry(
        container_id=data.get('libraryItemId', ''),
        child_id=data.get('episodeId') or None,
        duration=_number(data.get('duration')),
        progress=_number(data.get('progress')),
        current_time=_number(data.get('currentTime')),
        is_finished=bool(data.get('isFinished', False)),
        last_update=data.get('lastUpdate'),
    )


def episode_to_queue_item(episode: dict, base_url: str) -> QueueItem:
    """Map a recent-episodes entry to a QueueItem.

    The id is "libraryItemId/episodeId" so playback can address the
    episode and progress can be looked up by the same composite id.
    """
    episode_id = episode.get('id', '')
    library_item_id = episode.get('libraryItemId')
    if library_item_id:
        item_id = make_item_id(library_item_id, episode_id)
    else:
        item_id = episode_id
        logger.warning(f'Episode without libraryItemId, using episodeId={episode_id} as id')

    metadata = (episode.get('podcast') or {}).get('metadata') or {}
    author = metadata.get('author') or metadata.get('title') or 'Unknown Podcast'

    return QueueItem(
        id=item_id,
        title=episode.get('title') or 'Unknown Episode',
        author=author,
        cover_url=cover_url(base_url, library_item_id),
        total_duration=_number(episode.get('duration')),
    )


def library_item_to_queue_item(item: dict, base_url: str) -> QueueItem:
    """Map an items-in-progress entry to a QueueItem (no progress merge)."""
    media = item.get('media') or {}
    metadata = media.get('metadata') or {}
    item_id = item.get('id', '')
    return QueueItem(
        id=item_id,
        title=metadata.get('title') or 'Unknown Title',
        author=metadata.get('authorName') or metadata.get('author') or 'Unknown Author',
        cover_url=cover_url(base_url, item_id),
        total_duration=_number(media.get('duration')),
    )


def parse_stream_url(session: dict, base_url: str, token: str) -> Optional[str]:
    """Stream URL from the first audio track of a playback session."""
    tracks = session.get('audioTracks') or []
    if not tracks or not isinstance(tracks[0], dict):
        return None
    content_url = tracks[0].get('contentUrl')
    if not content_url:
        return None
    return f'{base_url}{content_url}?token={token}'


def parse_list(data, key: str) -> List[dict]:
    """Pull a list of dicts out of a wrapper object, ignoring junk entries."""
    if not isinstance(data, dict):
        return []
    values = data.get(key) or []
    return [v for v in values if isinstance(v, dict)]
