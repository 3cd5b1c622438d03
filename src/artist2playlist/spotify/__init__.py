"""Spotify module initialization."""

from .client import MAX_TRACKS_PER_REQUEST, SpotifyClient, SpotifyHTTPError

__all__ = [
    "MAX_TRACKS_PER_REQUEST",
    "SpotifyClient",
    "SpotifyHTTPError",
]
