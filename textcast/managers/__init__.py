"""
TextCast Managers - Progress and session state.
"""
from .progress_index import ProgressIndex
from .session import SessionTracker

__all__ = ['ProgressIndex', 'SessionTracker']
