"""
Authentication State - Credentials lifecycle and user progress.

Saved credentials live in CREDENTIALS_FILE as JSON:
    {"serverURL": ..., "authToken": ..., "username": ...}
"""
import json
import logging
from pathlib import Path
from typing import Optional

from .api import AudiobookshelfAPI
from .config import CREDENTIALS_FILE
from .errors import TextCastError
from .managers.progress_index import ProgressIndex

logger = logging.getLogger(__name__)


def normalize_server_url(url: str) -> str:
    """Add https:// when no scheme was given."""
    trimmed = url.strip()
    if trimmed.lower().startswith(('http://', 'https://')):
        return trimmed
    return f'https://{trimmed}'


class AuthState:
    """Owns the API client, saved credentials and the Progress Index."""

    def __init__(self, credentials_path: Path = CREDENTIALS_FILE, progress_index: ProgressIndex = None,
                 client_factory=AudiobookshelfAPI):
        self.credentials_path = credentials_path
        self.progress_index = progress_index or ProgressIndex()
        self._client_factory = client_factory

        self.client = None
        self.server_url = ''
        self.username: Optional[str] = None
        self.error_message: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.client is not None

    def use_client(self, client, server_url: str = '', username: str = None):
        """Adopt an already configured client (mock mode)."""
        self.client = client
        self.server_url = server_url
        self.username = username

    # ============================================
    # CREDENTIALS
    # ============================================

    def load_credentials(self) -> bool:
        """Restore a saved session. Returns True if credentials were found."""
        try:
            if not self.credentials_path.exists():
                return False
            data = json.loads(self.credentials_path.read_text())
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f'Cannot read saved credentials: {e}')
            return False

        server_url = data.get('serverURL')
        token = data.get('authToken')
        if not server_url or not token:
            return False

        self.server_url = server_url
        self.username = data.get('username')
        self.client = self._client_factory(server_url, token=token)
        logger.info(f'Restored session for {self.username} on {server_url}')
        return True

    def _save_credentials(self):
        try:
            self.credentials_path.parent.mkdir(parents=True, exist_ok=True)
            self.credentials_path.write_text(json.dumps({
                'serverURL': self.server_url,
                'authToken': self.client.token,
                'username': self.username,
            }, indent=2))
        except (IOError, OSError) as e:
            logger.warning(f'Could not save credentials: {e}')

    def login(self, server_url: str, username: str, password: str) -> bool:
        """Log in, falling back from https to http. Persists on success."""
        self.error_message = None
        url = normalize_server_url(server_url)

        try:
            client, final_url = self._login_with_fallback(url, username, password)
        except TextCastError as e:
            self.error_message = str(e)
            logger.error(f'Login failed: {e}')
            return False

        self.client = client
        self.server_url = final_url
        self.username = username
        self._save_credentials()
        self.refresh_user_progress()
        return True

    def _login_with_fallback(self, url: str, username: str, password: str):
        client = self._client_factory(url)
        try:
            client.login(username, password)
            return client, client.base_url
        except TextCastError:
            if not url.lower().startswith('https://'):
                raise
            http_url = 'http://' + url[len('https://'):]
            logger.info(f'HTTPS login failed, retrying with {http_url}')
            client = self._client_factory(http_url)
            client.login(username, password)
            return client, client.base_url

    def logout(self):
        """Forget the client and delete saved credentials."""
        if self.client is not None:
            self.client.clear_token()
        try:
            if self.credentials_path.exists():
                self.credentials_path.unlink()
        except OSError as e:
            logger.warning(f'Could not remove saved credentials: {e}')

        self.client = None
        self.server_url = ''
        self.username = None
        self.error_message = None
        self.progress_index.replace([])
        logger.info('Logged out')

    # ============================================
    # PROGRESS
    # ============================================

    def refresh_user_progress(self) -> bool:
        """Rebuild the Progress Index from /api/me."""
        if self.client is None:
            return False
        return self.progress_index.refresh(self.client)
