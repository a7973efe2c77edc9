"""
Tests for AudiobookshelfAPI and JSON mapping - requests, error mapping, parsing.
"""
import json
import pytest
import requests
from pathlib import Path
from unittest.mock import MagicMock, patch

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from textcast.api.audiobookshelf import AudiobookshelfAPI
from textcast.api.parsing import (
    episode_to_queue_item, library_item_to_queue_item, parse_progress_entry, parse_stream_url,
)
from textcast.errors import InvalidResponse, NetworkError, ServerError, Unauthorized


BASE = 'http://abs.local:13378'


def make_response(status=200, body=None, text=None):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    if body is not None:
        raw = json.dumps(body)
        resp.content = raw.encode()
        resp.text = raw
        resp.json.return_value = body
    else:
        resp.content = (text or '').encode()
        resp.text = text or ''
        resp.json.side_effect = ValueError('No JSON')
    return resp


@pytest.fixture(autouse=True)
def fixed_device_id(monkeypatch):
    """Keep tests from writing a device id under the real config dir."""
    monkeypatch.setattr('textcast.api.audiobookshelf.device_id', lambda: 'test-device')


@pytest.fixture
def api():
    client = AudiobookshelfAPI(BASE + '/', token='tok123')
    client.session.request = MagicMock()
    return client


def last_call(api):
    args, kwargs = api.session.request.call_args
    return args[0], args[1], kwargs


class TestRequests:
    """Tests for request construction and error mapping."""

    def test_bearer_token_sent(self, api):
        api.session.request.return_value = make_response(body={'libraries': []})
        api.list_libraries()

        method, url, kwargs = last_call(api)
        assert method == 'GET'
        assert url == BASE + '/api/libraries'
        assert kwargs['headers']['Authorization'] == 'Bearer tok123'

    def test_missing_token_is_unauthorized(self):
        api = AudiobookshelfAPI(BASE)
        api.session.request = MagicMock()

        with pytest.raises(Unauthorized):
            api.list_libraries()
        api.session.request.assert_not_called()

    def test_401_is_unauthorized(self, api):
        api.session.request.return_value = make_response(401, text='Unauthorized')
        with pytest.raises(Unauthorized):
            api.list_in_progress()

    def test_non_2xx_is_server_error(self, api):
        api.session.request.return_value = make_response(500, text='Internal error')
        with pytest.raises(ServerError) as exc_info:
            api.delete_episode('pod1', 'ep1')
        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == 'Server error (500): Internal error'

    def test_connection_failure_is_network_error(self, api):
        api.session.request.side_effect = requests.ConnectionError('refused')
        with pytest.raises(NetworkError):
            api.list_libraries()

    def test_bad_json_is_invalid_response(self, api):
        api.session.request.return_value = make_response(200, text='<html>')
        with pytest.raises(InvalidResponse):
            api.list_libraries()

    def test_empty_body_accepted(self, api):
        api.session.request.return_value = make_response(200, text='')
        api.sync_progress('sess-1', 120.0, 3600.0, 30.0)

        method, url, kwargs = last_call(api)
        assert method == 'POST'
        assert url == BASE + '/api/session/sess-1/sync'
        assert kwargs['json'] == {'currentTime': 120.0, 'duration': 3600.0, 'timeListened': 30.0}


class TestAuthentication:
    """Tests for login and token handling."""

    def test_login_stores_token(self):
        api = AudiobookshelfAPI(BASE)
        api.session.request = MagicMock(return_value=make_response(body={
            'user': {'id': 'u1', 'username': 'anna', 'token': 'fresh'},
        }))

        user = api.login('anna', 'secret')

        assert user['username'] == 'anna'
        assert api.token == 'fresh'
        method, url, kwargs = last_call(api)
        assert url == BASE + '/login'
        assert kwargs['headers'] == {'x-return-tokens': 'true'}
        assert kwargs['json'] == {'username': 'anna', 'password': 'secret'}

    def test_login_without_token_rejected(self):
        api = AudiobookshelfAPI(BASE)
        api.session.request = MagicMock(return_value=make_response(body={'user': {'id': 'u1'}}))

        with pytest.raises(InvalidResponse):
            api.login('anna', 'secret')
        assert api.token is None

    def test_clear_token(self, api):
        api.clear_token()
        assert api.token is None

    def test_connection_check(self, api):
        with patch.object(api.session, 'get', side_effect=requests.ConnectionError()):
            assert api.test_connection() is False


class TestPlaybackSession:
    """Tests for stream URL resolution."""

    def test_episode_session(self, api):
        api.session.request.return_value = make_response(body={
            'id': 'play-1',
            'audioTracks': [{'contentUrl': '/s/item/pod1/ep1.mp3'}],
        })

        stream = api.start_playback_session('pod1', 'ep1')

        assert stream.session_id == 'play-1'
        assert stream.stream_url == BASE + '/s/item/pod1/ep1.mp3?token=tok123'
        method, url, kwargs = last_call(api)
        assert method == 'POST'
        assert url == BASE + '/api/items/pod1/play/ep1'
        assert kwargs['json']['forceDirectPlay'] is True
        assert kwargs['json']['deviceInfo']['deviceId'] == 'test-device'

    def test_book_session_path(self, api):
        api.session.request.return_value = make_response(body={
            'id': 'play-2', 'audioTracks': [{'contentUrl': '/s/book.m4b'}],
        })
        api.start_playback_session('book42')

        assert last_call(api)[1] == BASE + '/api/items/book42/play'

    def test_missing_content_url_returns_none(self, api):
        api.session.request.return_value = make_response(body={'id': 'play-3', 'audioTracks': []})
        assert api.start_playback_session('pod1', 'ep1') is None

    @pytest.mark.parametrize('failure', [
        make_response(401, text='nope'),
        make_response(404, text='Not found'),
        make_response(200, text='garbage'),
    ])
    def test_failures_return_none(self, api, failure):
        api.session.request.return_value = failure
        assert api.start_playback_session('pod1', 'ep1') is None

    def test_network_failure_returns_none(self, api):
        api.session.request.side_effect = requests.Timeout()
        assert api.start_playback_session('pod1', 'ep1') is None


class TestMutations:
    """Tests for delete and progress PATCH requests."""

    def test_delete_episode(self, api):
        api.session.request.return_value = make_response(200, text='')
        api.delete_episode('pod1', 'ep1')

        method, url, _ = last_call(api)
        assert method == 'DELETE'
        assert url == BASE + '/api/podcasts/pod1/episode/ep1'

    def test_mark_finished(self, api):
        api.session.request.return_value = make_response(200, text='')
        api.mark_finished('pod1', 'ep1', 1800)

        method, url, kwargs = last_call(api)
        assert method == 'PATCH'
        assert url == BASE + '/api/me/progress/pod1/ep1'
        assert kwargs['json'] == {'isFinished': True, 'currentTime': 1800, 'duration': 1800, 'progress': 1.0}

    def test_reset_progress(self, api):
        api.session.request.return_value = make_response(200, text='')
        api.reset_progress('pod1', 'ep1', 1800)

        kwargs = last_call(api)[2]
        assert kwargs['json'] == {'isFinished': False, 'currentTime': 0, 'duration': 1800, 'progress': 0.0}

    def test_patch_without_duration(self, api):
        api.session.request.return_value = make_response(200, text='')
        api.patch_progress('book42', None, is_finished=True)

        method, url, kwargs = last_call(api)
        assert url == BASE + '/api/me/progress/book42'
        assert kwargs['json'] == {'isFinished': True, 'currentTime': 0}


class TestListing:
    """Tests for listing endpoints and JSON mapping."""

    def test_recent_episodes(self, api):
        api.session.request.return_value = make_response(body={'episodes': [{
            'id': 'ep1', 'libraryItemId': 'pod1', 'title': 'Pilot', 'duration': 1800,
            'podcast': {'metadata': {'title': 'The Show', 'author': 'Host'}},
        }]})

        items = api.list_episodic_content('lib-pod', limit=10)

        assert last_call(api)[2]['params'] == {'limit': 10}
        assert last_call(api)[1] == BASE + '/api/libraries/lib-pod/recent-episodes'
        item = items[0]
        assert item.id == 'pod1/ep1'
        assert item.author == 'Host'
        assert item.total_duration == 1800
        assert item.current_time == 0
        assert item.cover_url == BASE + '/api/items/pod1/cover'

    def test_libraries(self, api):
        api.session.request.return_value = make_response(body={'libraries': [
            {'id': 'l1', 'name': 'Books', 'mediaType': 'book'},
            {'id': 'l2', 'name': 'Podcasts', 'mediaType': 'podcast', 'displayOrder': 2},
        ]})
        libraries = api.list_libraries()

        assert [lib.is_episodic for lib in libraries] == [False, True]
        assert libraries[1].display_order == 2

    def test_user_progress(self, api):
        api.session.request.return_value = make_response(body={'mediaProgress': [
            {'libraryItemId': 'pod1', 'episodeId': 'ep1', 'duration': 3600,
             'progress': 0.5, 'currentTime': 1800, 'isFinished': False, 'lastUpdate': 1700000000000},
            {'libraryItemId': 'book42', 'currentTime': 60},
        ]})
        entries = api.fetch_current_user_progress()

        assert [e.key for e in entries] == ['pod1/ep1', 'book42']
        assert entries[0].current_time == 1800


class TestParsing:
    """Tests for tolerant JSON mapping."""

    def test_episode_falls_back_to_podcast_title(self):
        item = episode_to_queue_item({
            'id': 'ep1', 'libraryItemId': 'pod1',
            'podcast': {'metadata': {'title': 'The Show'}},
        }, BASE)
        assert item.author == 'The Show'
        assert item.title == 'Unknown Episode'

    def test_episode_without_library_item(self):
        item = episode_to_queue_item({'id': 'ep1', 'title': 'Lonely'}, BASE)
        assert item.id == 'ep1'
        assert item.cover_url is None

    def test_library_item(self):
        item = library_item_to_queue_item({
            'id': 'book42',
            'media': {'duration': '600.5', 'metadata': {'title': 'A Book', 'authorName': 'Writer'}},
        }, BASE)
        assert item.title == 'A Book'
        assert item.author == 'Writer'
        assert item.total_duration == 600.5

    def test_bad_numbers_default_to_zero(self):
        entry = parse_progress_entry({'libraryItemId': 'x', 'currentTime': 'soon', 'duration': None})
        assert entry.current_time == 0
        assert entry.duration == 0
        assert entry.child_id is None

    def test_stream_url_needs_track(self):
        assert parse_stream_url({'audioTracks': [{}]}, BASE, 'tok') is None
        assert parse_stream_url({}, BASE, 'tok') is None
