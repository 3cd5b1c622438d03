"""Spotify Web API client for playlist creation.

Handles:
- Bearer-authenticated JSON requests with uniform error reporting
- Artist search
- Album and track retrieval
- Playlist creation and track insertion
"""

from typing import Any

import httpx

from ..logging import get_logger
from ..models import Artist, Playlist, Track

logger = get_logger(__name__)

API_BASE_URL = "https://api.spotify.com/v1"

# Spotify rejects more than 100 URIs in a single insertion request
MAX_TRACKS_PER_REQUEST = 100


class SpotifyHTTPError(Exception):
    """A Spotify API call answered with a non-success status."""

    def __init__(self, status_code: int, text: str):
        super().__init__(f"HTTP {status_code}: {text}")
        self.status_code = status_code
        self.text = text


class SpotifyClient:
    """Thin Spotify Web API client bound to one access token.
    
    Wraps an httpx.Client with the bearer header and base URL set, and
    converts API payloads into the models used by the playlist builder.
    """

    def __init__(
        self,
        token: str,
        http_client: httpx.Client | None = None,
        timeout: float = 30.0,
    ):
        """Initialize the Spotify client.
        
        Args:
            token: OAuth access token for the session
            http_client: Optional preconfigured client (used by tests)
            timeout: Request timeout in seconds
        """
        self._client = http_client or httpx.Client(base_url=API_BASE_URL, timeout=timeout)
        self._client.headers["Authorization"] = f"Bearer {token}"
        self._client.headers["Accept"] = "application/json"

    def __enter__(self) -> "SpotifyClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded JSON body.
        
        Raises:
            SpotifyHTTPError: if the response status is not 2xx
        """
        response = self._client.request(method, url, **kwargs)
        if not response.is_success:
            logger.debug(
                "spotify_request_failed",
                method=method,
                url=url,
                status=response.status_code,
            )
            raise SpotifyHTTPError(response.status_code, response.text)
        if not response.content:
            return {}
        return response.json()

    def current_user_id(self) -> str:
        """Get the authenticated user's Spotify ID."""
        user = self.request_json("GET", "/me")
        logger.info("spotify_user_authenticated", user_id=user["id"])
        return user["id"]

    def search_artists(self, name: str, limit: int = 5) -> list[Artist]:
        """Search for artists matching a free-text name."""
        logger.info("searching_artist", artist=name, limit=limit)
        data = self.request_json(
            "GET",
            "/search",
            params={"q": name, "type": "artist", "limit": limit},
        )
        items = (data.get("artists") or {}).get("items") or []
        return [Artist.from_api(item) for item in items]

    def get_artist_album_ids(self, artist_id: str, limit: int = 50) -> list[str]:
        """Get the ids of an artist's albums and singles.
        
        Only the first page is read. Duplicate ids are dropped, keeping the
        order in which the API listed them.
        """
        data = self.request_json(
            "GET",
            f"/artists/{artist_id}/albums",
            params={"include_groups": "album,single", "limit": limit},
        )
        album_ids = list(dict.fromkeys(item["id"] for item in data.get("items", [])))
        logger.debug("albums_fetched", artist_id=artist_id, count=len(album_ids))
        return album_ids

    def get_album_tracks(self, album_id: str) -> list[Track]:
        """Get the tracks listed on one album."""
        data = self.request_json("GET", f"/albums/{album_id}/tracks")
        return [Track.from_api(item) for item in data.get("items", [])]

    def create_playlist(
        self,
        user_id: str,
        name: str,
        public: bool = True,
        description: str | None = None,
    ) -> Playlist:
        """Create a new playlist owned by the given user."""
        logger.info("creating_playlist", name=name, public=public)
        data = self.request_json(
            "POST",
            f"/users/{user_id}/playlists",
            json={"name": name, "public": public, "description": description},
        )
        playlist = Playlist.from_api(data)
        logger.info("playlist_created", name=name, id=playlist.id, url=playlist.external_url)
        return playlist

    def add_tracks(self, playlist_id: str, uris: list[str]) -> None:
        """Append one batch of track URIs to a playlist."""
        if len(uris) > MAX_TRACKS_PER_REQUEST:
            raise ValueError(
                f"at most {MAX_TRACKS_PER_REQUEST} tracks per request, got {len(uris)}"
            )
        self.request_json("POST", f"/playlists/{playlist_id}/tracks", json={"uris": uris})
