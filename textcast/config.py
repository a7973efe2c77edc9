"""
TextCast Configuration - All constants and settings.
"""
import os
import sys
import uuid
from pathlib import Path

# ============================================
# SERVER
# ============================================

SERVER_URL = os.environ.get('TEXTCAST_SERVER_URL', '')
REQUEST_TIMEOUT = 10  # seconds, per request

CLIENT_NAME = 'TextCast Python'
MEDIA_PLAYER_NAME = 'libVLC'

# ============================================
# PATHS
# ============================================

CONFIG_DIR = Path(os.environ.get('TEXTCAST_CONFIG_DIR', Path.home() / '.config' / 'textcast'))
CREDENTIALS_FILE = CONFIG_DIR / 'credentials.json'
DEVICE_ID_FILE = CONFIG_DIR / 'device_id'

# Logging directory
LOG_DIR = CONFIG_DIR / 'logs'
LOG_FILE = LOG_DIR / 'textcast.log'
LOG_MAX_BYTES = 2 * 1024 * 1024  # 2MB per file
LOG_BACKUP_COUNT = 5
LOG_BUFFER_SIZE = 1000  # In-memory entries kept for the logs view

# ============================================
# COMMAND LINE FLAGS
# ============================================

MOCK_MODE = '--mock' in sys.argv or '-m' in sys.argv
DEBUG_LOGS = '--debug-logs' in sys.argv or os.environ.get('TEXTCAST_DEBUG_LOGS') == '1'

# ============================================
# LISTING
# ============================================

LIST_LIMIT = 25  # Items per listing fetch
EPISODIC_MEDIA_TYPE = 'podcast'

# ============================================
# TIMING
# ============================================

PROGRESS_SYNC_INTERVAL = 30  # Sync listening progress every 30 seconds
SKIP_INTERVAL = 15  # Skip forward/backward step in seconds
TICK_INTERVAL = 0.5  # Position tick resolution of the transport


def device_id() -> str:
    """Stable per-install device identifier sent when starting sessions."""
    try:
        if DEVICE_ID_FILE.exists():
            value = DEVICE_ID_FILE.read_text().strip()
            if value:
                return value
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        value = str(uuid.uuid4())
        DEVICE_ID_FILE.write_text(value)
        return value
    except OSError:
        return 'unknown'

