"""
TextCast Data Models - Core data structures.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from .config import EPISODIC_MEDIA_TYPE
from .errors import MalformedIdentifier
from .utils import format_duration


# ============================================
# COMPOSITE IDENTIFIERS
# ============================================
#
# Podcast episodes need two-part addressing on the server:
# "libraryItemId/episodeId". Audiobooks use the library item id alone.

ID_SEPARATOR = '/'


def make_item_id(container_id: str, child_id: Optional[str] = None) -> str:
    """Build the composite identifier for a container and optional child."""
    if child_id:
        return f'{container_id}{ID_SEPARATOR}{child_id}'
    return container_id


def split_item_id(item_id: str) -> Tuple[str, Optional[str]]:
    """Split on the first '/' into (container, child). No '/' -> (id, None)."""
    if ID_SEPARATOR in item_id:
        container_id, child_id = item_id.split(ID_SEPARATOR, 1)
        if container_id and child_id:
            return container_id, child_id
    return item_id, None


def parse_episode_id(item_id: str) -> Tuple[str, str]:
    """Strict split for episode mutations; both parts are required."""
    parts = item_id.split(ID_SEPARATOR)
    if len(parts) != 2 or not all(parts):
        raise MalformedIdentifier(item_id)
    return parts[0], parts[1]


# ============================================
# QUEUE ITEMS
# ============================================

@dataclass(frozen=True)
class QueueItem:
    """A playable entry: an audiobook or a single podcast episode."""
    id: str
    title: str
    author: Optional[str] = None
    cover_url: Optional[str] = None
    progress: float = 0.0  # 0.0 to 1.0
    current_time: float = 0.0  # seconds
    total_duration: float = 0.0  # seconds

    @property
    def percent(self) -> int:
        """Progress percentage derived from time, halves rounded up; 0 when duration unknown."""
        if self.total_duration <= 0:
            return 0
        return int(self.current_time * 100 / self.total_duration + 0.5)

    @property
    def progress_text(self) -> str:
        current = format_duration(self.current_time)
        total = format_duration(self.total_duration)
        return f'{current} / {total} ({self.percent}%)'

    def with_progress(self, current_time: float, progress: float) -> 'QueueItem':
        """Replacement copy with new position (items are never mutated)."""
        return replace(self, current_time=current_time, progress=progress)


@dataclass(frozen=True)
class ProgressEntry:
    """Last known server-side playback position for one item."""
    container_id: str
    child_id: Optional[str] = None
    duration: float = 0.0
    progress: float = 0.0
    current_time: float = 0.0
    is_finished: bool = False
    last_update: Optional[int] = None

    @property
    def key(self) -> str:
        return make_item_id(self.container_id, self.child_id)


@dataclass(frozen=True)
class Library:
    """A server library (books or podcasts)."""
    id: str
    name: str
    media_type: str = 'book'
    display_order: Optional[int] = None
    icon: Optional[str] = None

    @property
    def is_episodic(self) -> bool:
        return self.media_type == EPISODIC_MEDIA_TYPE


@dataclass(frozen=True)
class StreamSession:
    """Result of starting a playback session on the server."""
    stream_url: str
    session_id: Optional[str] = None


class PlayerState(Enum):
    """Playback Queue Controller states."""
    EMPTY = 'empty'
    LOADING = 'loading'
    READY = 'ready'
    ENDED = 'ended'


@dataclass(frozen=True)
class NowPlaying:
    """Metadata published to presentation surfaces."""
    title: str
    author: Optional[str] = None
    current_time: float = 0.0
    duration: float = 0.0
    playing: bool = False

    @property
    def progress(self) -> float:
        """Get playback progress as 0.0-1.0."""
        if self.duration <= 0:
            return 0.0
        return min(1.0, self.current_time / self.duration)
