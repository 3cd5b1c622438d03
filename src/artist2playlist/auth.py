"""OAuth2 authorization-code flow with a local callback listener.

The user opens the printed authorization URL in a browser; Spotify then
redirects to the local listener with a one-time code, which is exchanged
for an access token. Only one callback is accepted per attempt and the
listening socket is released as soon as the attempt ends, whatever the
outcome.
"""

import secrets
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable
from urllib.parse import parse_qs, urlparse

import typer
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from .config import Settings
from .logging import get_logger

logger = get_logger(__name__)

SCOPE = "playlist-modify-public"
DEFAULT_CALLBACK_PORT = 8000

# Seconds a connected client may stay silent before it is dropped
REQUEST_TIMEOUT = 5.0

CallbackHandler = Callable[[dict[str, str]], Any]


class AuthorizationError(Exception):
    """The authorization flow could not produce an access token."""


def parse_redirect_uri(redirect_uri: str) -> tuple[str, int, str]:
    """Split a redirect URI into the (host, port, path) the listener serves."""
    parsed = urlparse(redirect_uri)
    if parsed.scheme != "http" or not parsed.hostname:
        raise AuthorizationError(f"Cannot listen on redirect URI {redirect_uri!r}")
    port = DEFAULT_CALLBACK_PORT if parsed.port is None else parsed.port
    return parsed.hostname, port, parsed.path or "/"


class _CallbackServer(HTTPServer):
    """HTTP server that hands the first callback request to a handler."""

    def __init__(self, address: tuple[str, int], callback_path: str):
        super().__init__(address, _CallbackRequestHandler)
        self.callback_path = callback_path
        self.handler: CallbackHandler | None = None
        self.finished = False
        self.result: Any = None
        self.error: Exception | None = None
        self.request_timeout: float = REQUEST_TIMEOUT

    def dispatch(self, params: dict[str, str]) -> tuple[int, str]:
        if self.finished or self.handler is None:
            return 409, "Authorization already handled."
        self.finished = True
        try:
            self.result = self.handler(params)
        except Exception as e:
            self.error = e
            return 400, f"Authorization failed: {e}"
        return 200, "Authorization complete. You can close this tab."


class _CallbackRequestHandler(BaseHTTPRequestHandler):
    server: _CallbackServer

    def setup(self) -> None:
        # an idle connection is dropped after request_timeout
        self.timeout = self.server.request_timeout
        super().setup()

    def do_GET(self) -> None:  # noqa: N802
        parsed = urlparse(self.path)
        if parsed.path != self.server.callback_path:
            self._reply(404, "Not found.")
            return

        params = {key: values[0] for key, values in parse_qs(parsed.query).items()}
        status, body = self.server.dispatch(params)
        self._reply(status, body)

    def _reply(self, status: int, body: str) -> None:
        payload = f"<html><body><p>{body}</p></body></html>".encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug("callback_request", message=format % args)


class CallbackListener:
    """Short-lived local listener bound to the OAuth redirect URI.
    
    Use as a context manager: the socket is bound on entry and closed on
    exit, including when the wait times out or is interrupted.
    """

    def __init__(self, redirect_uri: str):
        self.host, self.port, self.path = parse_redirect_uri(redirect_uri)
        self._server: _CallbackServer | None = None

    def __enter__(self) -> "CallbackListener":
        try:
            self._server = _CallbackServer((self.host, self.port), self.path)
        except OSError as e:
            raise AuthorizationError(
                f"Could not listen on {self.host}:{self.port} ({e}). Is the port already in use?"
            ) from e
        logger.debug("callback_listener_started", address=self.address, path=self.path)
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def address(self) -> tuple[str, int]:
        """The bound (host, port); differs from the URI when it asked for port 0."""
        if self._server is None:
            return self.host, self.port
        host, port = self._server.server_address[:2]
        return str(host), int(port)

    @property
    def closed(self) -> bool:
        return self._server is None

    def close(self) -> None:
        if self._server is not None:
            self._server.server_close()
            self._server = None
            logger.debug("callback_listener_closed")

    def wait(self, handler: CallbackHandler, timeout: float | None = None) -> Any:
        """Serve requests until one reaches the callback path.
        
        Args:
            handler: Called once with the callback's query parameters; its
                return value is returned, its exception is re-raised
            timeout: Seconds to wait in total, or None/0 to wait forever
            
        Raises:
            AuthorizationError: if no callback arrives before the timeout
        """
        server = self._server
        if server is None:
            raise RuntimeError("listener is not open")

        server.handler = handler
        deadline = time.monotonic() + timeout if timeout else None

        while not server.finished:
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise AuthorizationError(
                        f"Timed out after {timeout:g}s waiting for the authorization callback"
                    )
                server.timeout = remaining
                server.request_timeout = min(REQUEST_TIMEOUT, remaining)
            server.handle_request()

        if server.error is not None:
            raise server.error
        return server.result


class SpotifyAuthorizer:
    """Obtains one access token for the session via the browser."""

    def __init__(
        self,
        settings: Settings,
        oauth: SpotifyOAuth | None = None,
        out: Callable[[str], Any] = typer.echo,
    ):
        """Initialize the authorizer.
        
        Args:
            settings: Loaded credentials and timeouts
            oauth: Optional spotipy OAuth helper (tests pass a fake)
            out: Where the authorization URL is printed
        """
        self.settings = settings
        self.out = out
        self._oauth = oauth or SpotifyOAuth(
            client_id=settings.spotify_client_id,
            client_secret=settings.spotify_client_secret,
            redirect_uri=settings.spotify_redirect_uri,
            scope=SCOPE,
            cache_handler=MemoryCacheHandler(),
            open_browser=False,
        )

    def authorization_url(self, state: str) -> str:
        return self._oauth.get_authorize_url(state=state)

    def exchange_code(self, code: str) -> str:
        """Exchange an authorization code for an access token."""
        try:
            token = self._oauth.get_access_token(code, as_dict=False, check_cache=False)
        except (SpotifyOauthError, OSError) as e:
            raise AuthorizationError(f"Token exchange failed: {e}") from e
        if not token:
            raise AuthorizationError("Token exchange returned no access token")
        return token

    def _handle_callback(self, expected_state: str, params: dict[str, str]) -> str:
        if "error" in params:
            raise AuthorizationError(f"Authorization was denied ({params['error']})")
        received = params.get("state", "").encode("utf-8")
        if not secrets.compare_digest(received, expected_state.encode("utf-8")):
            logger.warning("callback_state_mismatch")
            raise AuthorizationError("State mismatch on authorization callback")
        code = params.get("code")
        if not code:
            raise AuthorizationError("Authorization callback carried no code")
        return self.exchange_code(code)

    def get_token(self) -> str:
        """Run the full authorization flow and return the access token.
        
        Raises:
            AuthorizationError: on denial, forged state, failed exchange,
                or timeout
        """
        state = secrets.token_urlsafe(16)

        with CallbackListener(self.settings.spotify_redirect_uri) as listener:
            url = self.authorization_url(state)
            host, port = listener.address
            logger.info("authorization_url_ready", host=host, port=port)
            self.out(f"Open the following link in your browser:\n-> {url}")

            token = listener.wait(
                lambda params: self._handle_callback(state, params),
                timeout=self.settings.callback_timeout,
            )

        logger.info("token_obtained")
        return token
