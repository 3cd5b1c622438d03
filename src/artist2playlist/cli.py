"""artist2playlist CLI using Typer.

Commands:
- run: Authorize once, then build playlists for artists interactively
- check-config: Validate credentials without touching the network
"""

import locale
from typing import Annotated, Optional

import typer
from pydantic import ValidationError

from .auth import AuthorizationError, SpotifyAuthorizer, parse_redirect_uri
from .config import DASHBOARD_URL, DEFAULT_REDIRECT_URI, Settings, describe_missing, get_settings
from .logging import configure_logging, get_logger
from .prompt import Prompt
from .session import Session
from .spotify import SpotifyClient

app = typer.Typer(
    name="artist2playlist",
    help="Create Spotify playlists holding every track of an artist.",
    add_completion=False,
)


def load_settings() -> Settings:
    """Load credentials, exiting with status 1 when any is missing."""
    try:
        return get_settings()
    except ValidationError as e:
        missing = ", ".join(describe_missing(e))
        typer.echo(f"Error: missing or invalid Spotify settings: {missing}", err=True)
        typer.echo(
            "Set SPOTIFY_CLIENT_ID, SPOTIFY_REDIRECT_URI and SPOTIFY_CLIENT_SECRET "
            "(environment, .env) or clientID, redirectURI and secretID (settings.json).",
            err=True,
        )
        typer.echo(f"You can get them from {DASHBOARD_URL}", err=True)
        typer.echo(f"Make sure to set the redirect URI to {DEFAULT_REDIRECT_URI}", err=True)
        raise typer.Exit(1)


def use_system_collation() -> None:
    """Sort track names the way the user's locale does."""
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        get_logger(__name__).warning("collation_locale_unavailable", error=str(e))


@app.command()
def run(
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")] = None,
    log_format: Annotated[Optional[str], typer.Option("--log-format", help="Log format (console, json)")] = None,
) -> None:
    """Authorize with Spotify and create playlists until you type exit.
    
    Example:
        artist2playlist run --log-level INFO
    """
    settings = load_settings()

    configure_logging(
        level=log_level or settings.log_level,
        format=log_format or settings.log_format,
    )
    logger = get_logger(__name__)
    use_system_collation()

    try:
        token = SpotifyAuthorizer(settings).get_token()
    except AuthorizationError as e:
        logger.error("authorization_failed", error=str(e))
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    with SpotifyClient(token, timeout=settings.http_timeout) as client:
        try:
            created = Session(client, Prompt()).run()
        except Exception as e:
            logger.exception("session_failed", error=str(e))
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)

    typer.echo(f"Done! {created} playlist(s) created.")


@app.command()
def check_config() -> None:
    """Validate the Spotify credentials without any network activity."""
    configure_logging(level="WARNING")

    settings = load_settings()
    try:
        host, port, path = parse_redirect_uri(settings.spotify_redirect_uri)
    except AuthorizationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo("Spotify settings look OK.")
    typer.echo(f"Client ID: {settings.spotify_client_id}")
    typer.echo(f"Redirect URI: {settings.spotify_redirect_uri}")
    typer.echo(f"Callback listener: http://{host}:{port}{path}")


def main() -> None:
    """CLI entry point."""
    app()
