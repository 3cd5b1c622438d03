import json
from urllib.parse import parse_qs

import httpx
import pytest
import structlog

from artist2playlist.config import Settings, get_settings
from artist2playlist.spotify import SpotifyClient
from artist2playlist.spotify.client import API_BASE_URL

CREDENTIAL_ENV_VARS = [
    'SPOTIFY_CLIENT_ID', 'CLIENTID',
    'SPOTIFY_CLIENT_SECRET', 'SECRETID',
    'SPOTIFY_REDIRECT_URI', 'REDIRECTURI',
]


@pytest.fixture(autouse = True)
def isolated_settings(monkeypatch, tmp_path):
    for name in CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(name, raising = False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    structlog.reset_defaults()


@pytest.fixture
def settings():
    return Settings(
        spotify_client_id = 'client-id',
        spotify_client_secret = 'client-secret',
        spotify_redirect_uri = 'http://127.0.0.1:8000/callback',
    )


class ScriptedPrompt:
    def __init__(self, *answers):
        self.answers = list(answers)
        self.questions = []
        self.closed = False

    def ask(self, question):
        self.questions.append(question)
        if not self.answers:
            raise EOFError('no more answers')
        return self.answers.pop(0)

    def close(self):
        self.closed = True


class FakeSpotifyAPI:
    """Routes requests the way the Spotify Web API would answer them."""

    def __init__(self):
        self.requests = []
        self.artists = []
        self.albums = {}
        self.album_tracks = {}
        self.failures = {}

    def add_artist(self, artist_id, name, followers = 0, albums = ()):
        self.artists.append({'id': artist_id, 'name': name, 'followers': {'total': followers}})
        self.albums[artist_id] = [{'id': album_id} for album_id in albums]

    def add_album(self, album_id, track_names):
        self.album_tracks[album_id] = [
            {'name': name, 'uri': f'spotify:track:{album_id}-{i}'}
            for i, name in enumerate(track_names)
        ]

    def fail(self, path, status = 500, text = 'server error'):
        self.failures[path] = (status, text)

    def calls(self, method, prefix):
        return [r for r in self.requests if r.method == method and r.url.path.startswith(prefix)]

    def handler(self, request):
        self.requests.append(request)
        path = request.url.path.removeprefix('/v1')

        if path in self.failures:
            status, text = self.failures[path]
            return httpx.Response(status, text = text)

        if path == '/me':
            return httpx.Response(200, json = {'id': 'user-1'})
        if path == '/search':
            query = parse_qs(request.url.query.decode())
            limit = int(query['limit'][0])
            name = query['q'][0].lower()
            items = [a for a in self.artists if name in a['name'].lower()][:limit]
            return httpx.Response(200, json = {'artists': {'items': items}})
        if path.startswith('/artists/') and path.endswith('/albums'):
            artist_id = path.split('/')[2]
            return httpx.Response(200, json = {'items': self.albums.get(artist_id, [])})
        if path.startswith('/albums/') and path.endswith('/tracks'):
            album_id = path.split('/')[2]
            return httpx.Response(200, json = {'items': self.album_tracks.get(album_id, [])})
        if path.startswith('/users/') and path.endswith('/playlists'):
            return httpx.Response(201, json = {
                'id': 'playlist-1',
                'external_urls': {'spotify': 'https://open.spotify.com/playlist/playlist-1'},
            })
        if path.startswith('/playlists/') and path.endswith('/tracks'):
            return httpx.Response(201, json = {'snapshot_id': f'snap-{len(self.requests)}'})

        return httpx.Response(404, text = 'no such endpoint')


def json_body(request):
    return json.loads(request.content)


@pytest.fixture
def api():
    return FakeSpotifyAPI()


@pytest.fixture
def client(api):
    http = httpx.Client(base_url = API_BASE_URL, transport = httpx.MockTransport(api.handler))
    with SpotifyClient('test-token', http_client = http) as spotify:
        yield spotify


@pytest.fixture
def output():
    lines = []

    def echo(message = '', **kwargs):
        lines.append(message)

    echo.lines = lines
    return echo
