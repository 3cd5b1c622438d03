"""Configuration settings using pydantic-settings for credential loading."""

from functools import lru_cache
from typing import Literal
from urllib.parse import urlparse

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

DASHBOARD_URL = "https://developer.spotify.com/dashboard/applications"
DEFAULT_REDIRECT_URI = "http://127.0.0.1:8000/callback"


class Settings(BaseSettings):
    """Application settings loaded from the environment and local files.
    
    Reads from environment variables, a .env file and a settings.json file
    in the working directory, in that order of precedence. The JSON file
    may use the short keys clientID, redirectURI and secretID.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        json_file="settings.json",
        json_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        str_strip_whitespace=True,
    )

    # Spotify OAuth
    spotify_client_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("spotify_client_id", "clientID"),
    )
    spotify_redirect_uri: str = Field(
        min_length=1,
        validation_alias=AliasChoices("spotify_redirect_uri", "redirectURI"),
    )
    spotify_client_secret: str = Field(
        min_length=1,
        validation_alias=AliasChoices("spotify_client_secret", "secretID"),
    )

    # Timeouts in seconds; a callback_timeout of 0 or None waits forever
    callback_timeout: float | None = 300.0
    http_timeout: float = 30.0

    # Logging
    log_level: str = "WARNING"
    log_format: Literal["console", "json"] = "console"

    @field_validator("spotify_redirect_uri")
    @classmethod
    def _check_redirect_uri(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme != "http" or not parsed.hostname:
            raise ValueError(f"redirect URI must look like {DEFAULT_REDIRECT_URI}")
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls),
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.
    
    Uses lru_cache to ensure credentials are only loaded once.
    """
    return Settings()


def _field_for_alias(key: str) -> str:
    for name, field in Settings.model_fields.items():
        alias = field.validation_alias
        choices = alias.choices if isinstance(alias, AliasChoices) else [alias]
        if key in choices:
            return name
    return key


def describe_missing(error: ValidationError) -> list[str]:
    """Return the names of the settings rejected by validation, in order."""
    names: list[str] = []
    for detail in error.errors():
        name = _field_for_alias(str(detail["loc"][0])) if detail["loc"] else "settings"
        if name not in names:
            names.append(name)
    return names
