"""
TextCast Controllers - Playback queue and listing state.
"""
from .playback import PlaybackQueueController
from .queue_list import QueueListController

__all__ = ['PlaybackQueueController', 'QueueListController']
