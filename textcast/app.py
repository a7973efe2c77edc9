"""
TextCast Application - Wires the client, controllers and transport.

The console front-end is deliberately thin: it reads one command per line
and forwards it to the controllers.
"""
import signal
import getpass
import logging
from typing import Optional

from .config import SERVER_URL
from .api import MockAudiobookshelfAPI
from .auth import AuthState
from .controllers import PlaybackQueueController, QueueListController
from .errors import Unauthorized
from .logs import LogBuffer
from .models import QueueItem
from .player import NullTransport, VLCTransport
from .utils import format_clock

logger = logging.getLogger(__name__)


HELP = """Commands:
   l        List items
   r        Refresh list (and progress)
   p N      Play item N and the items after it
   t        Play/Pause
   n / b    Next / previous in queue
   f / w    Skip forward / back 15s
   s        Stop
   d N      Delete episode N
   x N      Mark item N finished
   z N      Restart item N
   i        Now playing
   logs     Show captured logs
   q        Quit"""


class TextCast:
    """Main TextCast application."""

    def __init__(self, mock_mode: bool = False, log_buffer: Optional[LogBuffer] = None):
        self.mock_mode = mock_mode
        self.log_buffer = log_buffer
        self.running = True

        self.auth = AuthState()
        if mock_mode:
            self.auth.use_client(MockAudiobookshelfAPI(), 'mock://server', 'mock')
            self.transport = NullTransport()
        else:
            self.auth.load_credentials()
            self.transport = VLCTransport()

        self.playback = PlaybackQueueController(self.auth.client, self.transport, on_change=self._on_playback_change)
        self.queue_list = QueueListController(self.auth.client, self.playback)
        self._last_state = None

    def _bind_client(self):
        """Point the controllers at the current API client."""
        self.playback.client = self.auth.client
        self.queue_list.client = self.auth.client

    # ============================================
    # LIFECYCLE
    # ============================================

    def _handle_signal(self, signum, frame):
        """Handle SIGTERM for graceful shutdown."""
        logger.info('Received SIGTERM, shutting down...')
        self.running = False

    def start(self):
        """Start the application."""
        logger.info('Starting TextCast...')
        signal.signal(signal.SIGTERM, self._handle_signal)

        if not self.auth.is_authenticated and not self._prompt_login():
            logger.error('Not authenticated, exiting')
            return
        self._bind_client()

        self.transport.start()
        self.reload()
        print(HELP)

        try:
            while self.running:
                try:
                    line = input('> ').strip()
                except EOFError:
                    break
                if line:
                    self._handle_command(line)
        except KeyboardInterrupt:
            print()

        logger.info('Shutting down...')
        self.playback.pause()
        self.transport.release()
        logger.info('TextCast stopped')

    def _prompt_login(self) -> bool:
        server_url = input(f'Server URL [{SERVER_URL}]: ').strip() or SERVER_URL
        username = input('Username: ').strip()
        password = getpass.getpass('Password: ')
        if self.auth.login(server_url, username, password):
            return True
        print(f'Login failed: {self.auth.error_message}')
        return False

    def reload(self):
        """Refresh user progress, then rebuild the list from the server."""
        self.auth.refresh_user_progress()
        try:
            self.queue_list.load(self.auth.progress_index)
        except Unauthorized:
            print('Session expired, please log in again.')
            self.auth.logout()
            if self._prompt_login():
                self._bind_client()
                self.queue_list.load(self.auth.progress_index)
            return
        self._print_list()

    # ============================================
    # COMMANDS
    # ============================================

    def _handle_command(self, line: str):
        cmd, _, arg = line.partition(' ')
        cmd = cmd.lower()

        if cmd == 'q':
            self.running = False
        elif cmd == 'l':
            self._print_list()
        elif cmd == 'r':
            self.reload()
        elif cmd in ('t', 'space'):
            self.playback.toggle()
        elif cmd == 'n':
            self.playback.advance_next()
        elif cmd == 'b':
            self.playback.advance_previous()
        elif cmd == 'f':
            self.playback.skip_forward()
        elif cmd == 'w':
            self.playback.skip_backward()
        elif cmd == 's':
            self.playback.stop()
        elif cmd == 'i':
            self._print_now_playing()
        elif cmd == 'logs':
            self._print_logs()
        elif cmd in ('p', 'd', 'x', 'z'):
            item = self._item_at(arg)
            if item is None:
                print(f'No item {arg!r}')
                return
            if cmd == 'p':
                self.queue_list.play(item)
            elif cmd == 'd':
                self.queue_list.delete(item)
            elif cmd == 'x':
                self.queue_list.mark_finished(item)
            else:
                self.queue_list.restart(item)
        else:
            print(HELP)

    def _item_at(self, arg: str) -> Optional[QueueItem]:
        try:
            index = int(arg) - 1
        except ValueError:
            return None
        items = self.queue_list.items
        if 0 <= index < len(items):
            return items[index]
        return None

    # ============================================
    # OUTPUT
    # ============================================

    def _on_playback_change(self):
        state = (self.playback.state, self.playback.current_item, self.playback.warning)
        if state == self._last_state:
            return
        self._last_state = state
        if self.playback.warning:
            print(f'\n! {self.playback.warning}')
        elif self.playback.current_item:
            now = self.playback.now_playing
            print(f'\n[{self.playback.state.value}] {now.title} - {now.author or ""}')

    def _print_list(self):
        if self.queue_list.error_message:
            print(self.queue_list.error_message)
            return
        if not self.queue_list.items:
            print('Nothing in progress.')
            return
        for i, item in enumerate(self.queue_list.items, start=1):
            print(f'{i:3d}. {item.title} - {item.author or ""}  {item.progress_text}')

    def _print_now_playing(self):
        now = self.playback.now_playing
        if now is None:
            print('Nothing playing.')
            return
        status = 'playing' if now.playing else 'paused'
        print(f'{now.title} - {now.author or ""}  {format_clock(now.current_time)} / '
              f'{format_clock(now.duration)} ({status})')

    def _print_logs(self):
        if self.log_buffer is None:
            print('Log capture disabled.')
            return
        print(self.log_buffer.export() or 'No logs captured.')
