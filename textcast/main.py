#!/usr/bin/env python3
"""
TextCast - Console client for an Audiobookshelf server

Usage:
    textcast                # Uses saved credentials or asks to log in
    textcast --mock         # Mock mode (no server, simulated player)
    textcast --debug-logs   # Capture logs in memory for the 'logs' command
"""
import os
import sys
import logging
import platform
from logging.handlers import RotatingFileHandler

from .config import (
    MOCK_MODE, DEBUG_LOGS, SERVER_URL,
    LOG_DIR, LOG_FILE, LOG_MAX_BYTES, LOG_BACKUP_COUNT,
)
from .logs import LogBuffer
from .app import TextCast


def setup_logging(capture: bool = False) -> LogBuffer:
    """Configure logging with console, rotating file and in-memory handlers."""
    # Determine log level from environment or default to INFO
    level_name = os.environ.get('TEXTCAST_LOG_LEVEL', 'WARNING').upper()
    level = getattr(logging, level_name, logging.WARNING)

    console_formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    )
    file_formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Console handler (stderr keeps the command prompt readable)
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(console_formatter)
    console.setLevel(level)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.addHandler(console)

    # In-memory capture for the logs view
    log_buffer = LogBuffer(enabled=capture)
    root.addHandler(log_buffer)

    # File handler with rotation (when LOG_DIR is writable)
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding='utf-8'
        )
        file_handler.setFormatter(file_formatter)
        file_handler.setLevel(logging.DEBUG)  # Always log DEBUG to file
        root.addHandler(file_handler)
        root.info(f'Logging to: {LOG_FILE}')
    except (OSError, PermissionError) as e:
        root.warning(f'Could not create log file: {e}')

    # Quiet down noisy libraries
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('requests').setLevel(logging.WARNING)

    return log_buffer


def main():
    """Entry point for the TextCast console client."""
    log_buffer = setup_logging(capture=DEBUG_LOGS)

    logger = logging.getLogger(__name__)
    logger.info('=' * 50)
    logger.info('TEXTCAST STARTUP')
    logger.info(f'Python: {sys.version.split()[0]}')
    logger.info(f'Platform: {platform.system()} {platform.release()}')
    if MOCK_MODE:
        logger.info('Mode: MOCK (no server)')
    elif SERVER_URL:
        logger.info(f'Server: {SERVER_URL}')
    logger.info('=' * 50)

    app = TextCast(mock_mode=MOCK_MODE, log_buffer=log_buffer)
    app.start()


if __name__ == '__main__':
    main()
