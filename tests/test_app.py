"""
Tests for the console app in mock mode (command dispatch wiring).
"""
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from textcast.app import TextCast
from textcast.models import PlayerState
from textcast.utils import run_inline


@pytest.fixture
def app():
    textcast = TextCast(mock_mode=True)
    textcast.playback._run = run_inline
    textcast.queue_list._run = run_inline
    textcast.reload()
    return textcast


def test_reload_merges_mock_progress(app, capsys):
    items = app.queue_list.items

    assert len(items) == 4
    assert items[1].current_time == 1350

    app._print_list()
    assert 'Blueprint for Armageddon' in capsys.readouterr().out


def test_play_command_queues_tail(app):
    app._handle_command('p 2')

    assert [item.id for item in app.playback.queue] == ['pod1/ep2', 'pod2/ep1', 'pod3/ep7']
    assert app.playback.current_item.id == 'pod1/ep2'
    assert app.transport.is_playing

    app.transport.poll()
    assert app.playback.state == PlayerState.READY
    assert app.transport.current_time >= 1350


def test_next_and_stop_commands(app):
    app._handle_command('p 1')
    app._handle_command('n')
    assert app.playback.cursor == 1

    app._handle_command('s')
    assert app.playback.state == PlayerState.EMPTY
    assert app.playback.queue


def test_mutation_commands(app):
    app._handle_command('x 4')
    assert len(app.queue_list.items) == 3

    app._handle_command('d 1')
    assert [item.id for item in app.queue_list.items] == ['pod1/ep2', 'pod2/ep1']

    app._handle_command('z 1')
    assert app.queue_list.items[0].current_time == 0


def test_unknown_item(app, capsys):
    app._handle_command('p 99')
    assert "No item '99'" in capsys.readouterr().out


def test_quit(app):
    app._handle_command('q')
    assert app.running is False
