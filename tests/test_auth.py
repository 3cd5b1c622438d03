import socket
import threading
import time
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from spotipy.oauth2 import SpotifyOauthError

from artist2playlist.auth import (
    SCOPE,
    AuthorizationError,
    CallbackListener,
    SpotifyAuthorizer,
    parse_redirect_uri,
)
from artist2playlist.config import Settings


class FakeOAuth:
    def __init__(self, fail = False):
        self.fail = fail
        self.codes = []

    def get_authorize_url(self, state = None):
        return f'https://accounts.spotify.com/authorize?response_type=code&state={state}'

    def get_access_token(self, code = None, as_dict = True, check_cache = True):
        self.codes.append(code)
        if self.fail:
            raise SpotifyOauthError('invalid_grant')
        return f'token-for-{code}'


def _free_port():
    with socket.socket() as sock:
        sock.bind(('127.0.0.1', 0))
        return sock.getsockname()[1]


def _get_in_background(*urls):
    responses = []

    def fetch():
        with httpx.Client(trust_env = False, timeout = 5) as http:
            for url in urls:
                responses.append(http.get(url))

    thread = threading.Thread(target = fetch, daemon = True)
    thread.start()
    return thread, responses


def _settings(port, timeout = 5.0):
    return Settings(
        spotify_client_id = 'client-id',
        spotify_client_secret = 'client-secret',
        spotify_redirect_uri = f'http://127.0.0.1:{port}/callback',
        callback_timeout = timeout,
    )


def _authorizer_answering(settings, oauth, **params):
    """Build an authorizer whose browser hits the callback as soon as the link is shown."""
    fetched = {}

    def out(message):
        url = message.split('-> ')[1]
        state = parse_qs(urlparse(url).query)['state'][0]
        query = {'state': state, **params}
        callback = settings.spotify_redirect_uri + '?' + '&'.join(f'{k}={v}' for k, v in query.items())
        fetched['thread'], fetched['responses'] = _get_in_background(callback)

    return SpotifyAuthorizer(settings, oauth = oauth, out = out), fetched


def test_parse_redirect_uri_defaults_to_port_8000():
    assert parse_redirect_uri('http://127.0.0.1/callback') == ('127.0.0.1', 8000, '/callback')
    assert parse_redirect_uri('http://localhost:8888/cb') == ('localhost', 8888, '/cb')


def test_parse_redirect_uri_rejects_https():
    with pytest.raises(AuthorizationError):
        parse_redirect_uri('https://example.com/callback')


def test_listener_hands_callback_params_to_handler_and_closes():
    with CallbackListener('http://127.0.0.1:0/callback') as listener:
        host, port = listener.address
        thread, responses = _get_in_background(
            f'http://{host}:{port}/favicon.ico',
            f'http://{host}:{port}/callback?code=abc&state=xyz',
        )
        params = listener.wait(lambda p: p, timeout = 5)

    thread.join(5)
    assert params == {'code': 'abc', 'state': 'xyz'}
    assert [r.status_code for r in responses] == [404, 200]
    assert listener.closed


def test_listener_times_out_and_releases_port():
    with pytest.raises(AuthorizationError, match = 'Timed out'):
        with CallbackListener('http://127.0.0.1:0/callback') as listener:
            listener.wait(lambda p: p, timeout = 0.2)

    assert listener.closed


def test_listener_reports_port_in_use():
    with socket.socket() as blocker:
        blocker.bind(('127.0.0.1', 0))
        blocker.listen()
        port = blocker.getsockname()[1]

        with pytest.raises(AuthorizationError, match = 'in use'):
            with CallbackListener(f'http://127.0.0.1:{port}/callback'):
                pass


def test_get_token_exchanges_code():
    oauth = FakeOAuth()
    authorizer, fetched = _authorizer_answering(_settings(_free_port()), oauth, code = 'the-code')

    token = authorizer.get_token()

    fetched['thread'].join(5)
    assert token == 'token-for-the-code'
    assert oauth.codes == ['the-code']
    assert fetched['responses'][0].status_code == 200


def test_get_token_rejects_forged_state():
    oauth = FakeOAuth()
    settings = _settings(_free_port())
    authorizer, fetched = _authorizer_answering(settings, oauth, code = 'the-code')
    original_out = authorizer.out
    authorizer.out = lambda message: original_out(message.replace('state=', 'state=forged'))

    with pytest.raises(AuthorizationError, match = 'State mismatch'):
        authorizer.get_token()

    fetched['thread'].join(5)
    assert oauth.codes == []
    assert fetched['responses'][0].status_code == 400


def test_get_token_reports_denied_access():
    oauth = FakeOAuth()
    authorizer, fetched = _authorizer_answering(_settings(_free_port()), oauth, error = 'access_denied')

    with pytest.raises(AuthorizationError, match = 'denied'):
        authorizer.get_token()

    fetched['thread'].join(5)
    assert oauth.codes == []


def test_failed_exchange_raises_authorization_error(settings):
    authorizer = SpotifyAuthorizer(settings, oauth = FakeOAuth(fail = True))

    with pytest.raises(AuthorizationError, match = 'Token exchange failed'):
        authorizer.exchange_code('bad')


def test_default_oauth_requests_playlist_scope(settings):
    authorizer = SpotifyAuthorizer(settings)

    url = authorizer.authorization_url('nonce')
    query = parse_qs(urlparse(url).query)

    assert query['response_type'] == ['code']
    assert query['client_id'] == ['client-id']
    assert query['scope'] == [SCOPE]
    assert query['redirect_uri'] == ['http://127.0.0.1:8000/callback']
    assert query['state'] == ['nonce']


def test_idle_connection_does_not_outlive_the_timeout():
    with CallbackListener('http://127.0.0.1:0/callback') as listener:
        with socket.create_connection(listener.address):
            started = time.monotonic()
            with pytest.raises(AuthorizationError, match = 'Timed out'):
                listener.wait(lambda p: p, timeout = 1.0)
            elapsed = time.monotonic() - started

    assert elapsed < 3


def test_idle_connection_does_not_block_the_callback():
    with CallbackListener('http://127.0.0.1:0/callback') as listener:
        host, port = listener.address
        with socket.create_connection((host, port)):
            thread, responses = _get_in_background(f'http://{host}:{port}/callback?code=abc&state=xyz')
            params = listener.wait(lambda p: p, timeout = 15)

    thread.join(5)
    assert params == {'code': 'abc', 'state': 'xyz'}
    assert responses[0].status_code == 200
