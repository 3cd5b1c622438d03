"""Pydantic data models for artist2playlist.

Every model here is transient: built from one API response and dropped
once the playlist for the current artist is done.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Artist(BaseModel):
    """An artist returned by the search endpoint."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Spotify artist ID")
    name: str = Field(description="Artist name on Spotify")
    follower_count: int = Field(default=0, ge=0, description="Total followers")

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Artist":
        return cls(
            id=data["id"],
            name=data["name"],
            follower_count=(data.get("followers") or {}).get("total") or 0,
        )


class Track(BaseModel):
    """A track collected from one of the artist's albums."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Track name")
    uri: str = Field(description="Spotify track URI (spotify:track:...)")

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Track":
        return cls(name=data["name"], uri=data["uri"])


class Playlist(BaseModel):
    """A playlist created for the authenticated user."""

    id: str = Field(description="Spotify playlist ID")
    external_url: str = Field(description="Public open.spotify.com URL")

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Playlist":
        return cls(
            id=data["id"],
            external_url=(data.get("external_urls") or {}).get("spotify", ""),
        )


class PlaylistResult(BaseModel):
    """Outcome of one successful playlist build."""

    artist: Artist = Field(description="The artist the user selected")
    playlist: Playlist = Field(description="The playlist that was created")
    tracks: list[Track] = Field(description="Tracks added, in playlist order")
    batches: int = Field(ge=0, description="Number of insertion requests issued")
