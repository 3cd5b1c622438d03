"""Interactive session: one token, one user, many playlists."""

from typing import Any, Callable

import typer

from .logging import get_logger
from .playlist import PlaylistBuilder
from .prompt import Prompt
from .spotify import SpotifyClient

logger = get_logger(__name__)

EXIT_COMMAND = "exit"
SEPARATOR = "\n-----------------------------------\n"


class Session:
    """Prompt for artist names until the user types exit.
    
    A failure while building one artist's playlist is logged and reported,
    then the session asks for the next artist.
    """

    def __init__(
        self,
        client: SpotifyClient,
        prompt: Prompt,
        builder_factory: Callable[..., PlaylistBuilder] = PlaylistBuilder,
        out: Callable[..., Any] = typer.echo,
    ):
        self.client = client
        self.prompt = prompt
        self.builder_factory = builder_factory
        self.out = out

    def run(self) -> int:
        """Run the loop; returns how many playlists were created."""
        user_id = self.client.current_user_id()
        builder = self.builder_factory(self.client, user_id, self.prompt, out=self.out)
        created = 0

        try:
            while True:
                self.out(SEPARATOR)
                try:
                    artist_name = self.prompt.ask(
                        'The artist name you are looking for (type "exit" to quit):'
                    )
                except EOFError:
                    break

                query = artist_name.strip()
                if query.lower() == EXIT_COMMAND:
                    break
                if not query:
                    continue

                try:
                    result = builder.build(query)
                except EOFError:
                    break
                except Exception as e:
                    logger.exception("playlist_attempt_failed", artist=query, error=str(e))
                    self.out(f"Error: {e}", err=True)
                    continue

                if result is not None:
                    created += 1
        finally:
            self.prompt.close()

        logger.info("session_finished", playlists_created=created)
        return created
