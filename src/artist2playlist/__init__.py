"""artist2playlist - Create Spotify playlists of an artist's whole catalog.

An interactive CLI tool that authorizes against Spotify once, then builds
one public playlist per artist with every track from their albums and
singles, deduplicated and sorted by name.
"""

from .cli import main

__all__ = ["main"]
