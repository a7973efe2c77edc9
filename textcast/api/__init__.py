"""
TextCast API modules - Media server integration.
"""
from .audiobookshelf import AudiobookshelfAPI
from .mock import MockAudiobookshelfAPI

__all__ = ['AudiobookshelfAPI', 'MockAudiobookshelfAPI']
