"""
TextCast Utilities - Shared helper functions.
"""
import threading
import logging

logger = logging.getLogger(__name__)


def run_async(fn, *args):
    """Fire-and-forget async execution in daemon thread.

    Wraps function to catch and log exceptions.
    """
    def wrapper():
        try:
            fn(*args)
        except Exception as e:
            logger.warning(f'Async task {fn.__name__} failed: {e}', exc_info=True)

    threading.Thread(target=wrapper, daemon=True).start()


def run_inline(fn, *args):
    """Synchronous drop-in for run_async (mock mode and tests)."""
    try:
        fn(*args)
    except Exception as e:
        logger.warning(f'Task {fn.__name__} failed: {e}', exc_info=True)


def format_duration(seconds: float) -> str:
    """Format seconds as '1h 5m' or '42m'."""
    seconds = int(max(0, seconds or 0))
    hours = seconds // 3600
    minutes = seconds // 60 % 60
    if hours > 0:
        return f'{hours}h {minutes}m'
    return f'{minutes}m'


def format_clock(seconds: float) -> str:
    """Format seconds as 'H:MM:SS' or 'M:SS' for the now playing line."""
    seconds = int(max(0, seconds or 0))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f'{hours}:{minutes:02d}:{secs:02d}'
    return f'{minutes}:{secs:02d}'
