"""Playlist builder for one artist.

Coordinates one attempt:
1. Search the artist by name
2. Let the user pick one of the candidates
3. Collect tracks from the artist's albums and singles
4. Deduplicate by name and sort
5. Create the playlist and add the tracks in batches
"""

import locale
import unicodedata
from collections.abc import Iterable, Iterator
from typing import Any, Callable

import typer

from .logging import get_logger
from .models import Artist, PlaylistResult, Track
from .prompt import Prompt
from .spotify import MAX_TRACKS_PER_REQUEST, SpotifyClient

logger = get_logger(__name__)

SEARCH_LIMIT = 5
ALBUM_LIMIT = 50


def dedupe_tracks(tracks: Iterable[Track]) -> list[Track]:
    """Drop tracks whose name was already seen; the first one wins."""
    seen: set[str] = set()
    unique: list[Track] = []
    for track in tracks:
        if track.name not in seen:
            seen.add(track.name)
            unique.append(track)
    return unique


def _uses_plain_collation() -> bool:
    current = locale.setlocale(locale.LC_COLLATE)
    return current.split(".")[0] in ("C", "POSIX")


def _folded(name: str) -> tuple[str, str]:
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(c for c in decomposed if not unicodedata.combining(c))
    return base.casefold(), name


def sort_tracks(tracks: Iterable[Track]) -> list[Track]:
    """Sort tracks by name using the current LC_COLLATE rules.
    
    Under the C/POSIX locale, which only knows code point order, names are
    compared case-insensitively with accents stripped instead.
    """
    if _uses_plain_collation():
        return sorted(tracks, key=lambda t: _folded(t.name))
    return sorted(tracks, key=lambda t: locale.strxfrm(t.name))


def batched(items: list[str], size: int) -> Iterator[list[str]]:
    """Yield consecutive slices of at most size items."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    for start in range(0, len(items), size):
        yield items[start : start + size]


def parse_choice(answer: str, count: int) -> int | None:
    """Turn a 1-based menu answer into an index, or None to cancel."""
    try:
        choice = int(answer.strip())
    except ValueError:
        return None
    if 1 <= choice <= count:
        return choice - 1
    return None


class PlaylistBuilder:
    """Builds a playlist of every track of one artist."""

    def __init__(
        self,
        client: SpotifyClient,
        user_id: str,
        prompt: Prompt,
        out: Callable[[str], Any] = typer.echo,
    ):
        self.client = client
        self.user_id = user_id
        self.prompt = prompt
        self.out = out

    def select_artist(self, artists: list[Artist]) -> Artist | None:
        self.out(f"Found {len(artists)} artists:")
        for i, artist in enumerate(artists, 1):
            self.out(f"{i}. {artist.name} ({artist.follower_count:,} followers)")

        answer = self.prompt.ask(
            f"Choose a number between 1 and {len(artists)} to select the artist (0 to cancel):"
        )
        index = parse_choice(answer, len(artists))
        if index is None:
            logger.info("artist_selection_cancelled", answer=answer)
            return None
        return artists[index]

    def collect_tracks(self, artist: Artist) -> list[Track]:
        """Fetch every track from the artist's albums and singles, in album order."""
        album_ids = self.client.get_artist_album_ids(artist.id, limit=ALBUM_LIMIT)
        tracks: list[Track] = []
        for album_id in album_ids:
            tracks.extend(self.client.get_album_tracks(album_id))

        logger.info(
            "tracks_collected",
            artist=artist.name,
            albums=len(album_ids),
            tracks=len(tracks),
        )
        return tracks

    def add_tracks(self, playlist_id: str, tracks: list[Track]) -> int:
        """Insert tracks in order, one request per batch; returns the batch count."""
        uris = [t.uri for t in tracks]
        batches = 0
        for batch in batched(uris, MAX_TRACKS_PER_REQUEST):
            self.client.add_tracks(playlist_id, batch)
            batches += 1
            logger.debug(
                "tracks_added_batch",
                playlist_id=playlist_id,
                batch_num=batches,
                count=len(batch),
            )
        return batches

    def build(self, artist_name: str) -> PlaylistResult | None:
        """Run one attempt for a free-text artist name.
        
        Returns:
            The result, or None when nothing matched or the user cancelled
        """
        artists = self.client.search_artists(artist_name, limit=SEARCH_LIMIT)
        if not artists:
            logger.info("artist_not_found", artist=artist_name)
            self.out("Artist not found.")
            return None

        artist = self.select_artist(artists)
        if artist is None:
            return None
        self.out(f'You selected "{artist.name}"')

        tracks = sort_tracks(dedupe_tracks(self.collect_tracks(artist)))
        self.out(f"{len(tracks)} tracks found (only tracks from the artist's albums and singles).")

        playlist = self.client.create_playlist(self.user_id, artist.name, public=True)
        batches = self.add_tracks(playlist.id, tracks)

        logger.info(
            "playlist_complete",
            playlist_id=playlist.id,
            tracks_added=len(tracks),
            batches=batches,
        )
        self.out(
            f"Playlist with every {artist.name} track has been created\n"
            f"      - {playlist.external_url}"
        )

        return PlaylistResult(artist=artist, playlist=playlist, tracks=tracks, batches=batches)
