"""Application configuration using Pydantic Settings."""

from dataclasses import dataclass
from enum import StrEnum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LookupPolicy(StrEnum):
    """How the lookup engines query providers."""

    FALLBACK = "fallback"
    """Query providers in priority order, stop at the first accepted result."""

    FAN_OUT_ALL = "fan_out_all"
    """Query every enabled provider and merge all accepted results."""


KNOWN_PROVIDERS = ("musicbrainz", "discogs", "lastfm", "itunes", "spotify", "wikipedia")


@dataclass(frozen=True)
class ProviderConfig:
    """Narrow per-provider view of the settings handed to an adapter."""

    name: str
    enabled: bool
    api_key: str | None = None
    api_secret: str | None = None
    timeout: float = 10.0
    read_write_timeout: float = 10.0
    rate_limit: int = 50
    max_concurrent: int = 5
    max_retries: int = 2


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    library_db_path: Path = Field(
        default=Path("library.db"), description="Path to SQLite library database"
    )

    @property
    def resolved_library_db_path(self) -> Path:
        """Get the library database path, handling empty env var case."""
        if not str(self.library_db_path) or str(self.library_db_path) == ".":
            return Path("library.db")
        return self.library_db_path

    # Application Configuration
    host: str = Field(default="0.0.0.0", description="Host to bind the server to")
    port: int = Field(default=8000, description="Port to run the server on")
    log_level: str = Field(default="INFO", description="Logging level")

    # Lookup Engine Configuration
    lookup_policy: LookupPolicy = Field(
        default=LookupPolicy.FALLBACK,
        description="'fallback' stops at the first accepted provider, 'fan_out_all' queries all",
    )
    provider_priority: list[str] = Field(
        default_factory=lambda: list(KNOWN_PROVIDERS),
        description="Provider names in priority order (JSON list)",
    )
    provider_result_count: int = Field(
        default=5, description="Number of hits requested from each provider"
    )
    dont_search_artists: list[str] = Field(
        default_factory=lambda: ["Various Artists", "Sound Tracks"],
        description="Artist names never searched against metadata providers",
    )
    artist_name_replace: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Canonical artist name mapped to the variants that should resolve to it",
    )

    # Shared Provider Configuration
    provider_max_concurrent: int = Field(
        default=5, description="Max concurrent requests per provider"
    )
    provider_max_retries: int = Field(
        default=2, description="Max retry attempts on 429 rate limit errors"
    )
    provider_cache_ttl: int = Field(
        default=3600, description="TTL in seconds for cached provider responses (default: 1 hour)"
    )
    provider_cache_maxsize: int = Field(
        default=1000, description="Maximum entries in the provider response cache"
    )

    # MusicBrainz
    musicbrainz_enabled: bool = Field(default=True, description="Enable MusicBrainz lookups")
    musicbrainz_timeout: float = Field(default=10.0, description="MusicBrainz connect timeout")
    musicbrainz_read_write_timeout: float = Field(
        default=10.0, description="MusicBrainz read/write timeout"
    )
    musicbrainz_rate_limit: int = Field(
        default=50, description="Max MusicBrainz requests per minute (1/sec ToS)"
    )

    # Discogs
    discogs_enabled: bool = Field(default=True, description="Enable Discogs lookups")
    discogs_token: str | None = Field(None, description="Discogs API token")
    discogs_timeout: float = Field(default=10.0, description="Discogs connect timeout")
    discogs_read_write_timeout: float = Field(
        default=10.0, description="Discogs read/write timeout"
    )
    discogs_rate_limit: int = Field(
        default=50, description="Max Discogs API requests per minute (stay under 60/min limit)"
    )

    # Last.fm
    lastfm_enabled: bool = Field(default=True, description="Enable Last.fm lookups")
    lastfm_api_key: str | None = Field(None, description="Last.fm API key")
    lastfm_timeout: float = Field(default=10.0, description="Last.fm connect timeout")
    lastfm_read_write_timeout: float = Field(
        default=10.0, description="Last.fm read/write timeout"
    )
    lastfm_rate_limit: int = Field(default=200, description="Max Last.fm requests per minute")

    # iTunes
    itunes_enabled: bool = Field(default=True, description="Enable iTunes Search lookups")
    itunes_timeout: float = Field(default=10.0, description="iTunes connect timeout")
    itunes_read_write_timeout: float = Field(
        default=10.0, description="iTunes read/write timeout"
    )
    itunes_rate_limit: int = Field(default=20, description="Max iTunes requests per minute")

    # Spotify
    spotify_enabled: bool = Field(default=True, description="Enable Spotify lookups")
    spotify_client_id: str | None = Field(None, description="Spotify client id")
    spotify_client_secret: str | None = Field(None, description="Spotify client secret")
    spotify_timeout: float = Field(default=10.0, description="Spotify connect timeout")
    spotify_read_write_timeout: float = Field(
        default=10.0, description="Spotify read/write timeout"
    )
    spotify_rate_limit: int = Field(default=100, description="Max Spotify requests per minute")

    # Wikipedia
    wikipedia_enabled: bool = Field(default=True, description="Enable Wikipedia lookups")
    wikipedia_timeout: float = Field(default=10.0, description="Wikipedia connect timeout")
    wikipedia_read_write_timeout: float = Field(
        default=10.0, description="Wikipedia read/write timeout"
    )
    wikipedia_rate_limit: int = Field(default=100, description="Max Wikipedia requests per minute")

    # Feature Flags
    enable_telemetry: bool = Field(default=True, description="Enable PostHog telemetry")

    # PostHog Configuration
    posthog_api_key: str | None = Field(None, description="PostHog API key for telemetry")
    posthog_host: str = Field(default="https://us.i.posthog.com", description="PostHog host URL")

    # Sentry Configuration
    sentry_dsn: str | None = Field(None, description="Sentry DSN for error tracking")

    # Application Metadata
    app_name: str = Field(default="Media-Library-Lookup", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("provider_priority")
    @classmethod
    def _validate_priority(cls, value: list[str]) -> list[str]:
        ordered: list[str] = []
        for name in value:
            name = name.strip().lower()
            if name not in KNOWN_PROVIDERS:
                raise ValueError(f"Unknown provider in provider_priority: {name!r}")
            if name not in ordered:
                ordered.append(name)
        return ordered

    def provider_config(self, name: str) -> ProviderConfig:
        """Build the narrow configuration view for one provider.

        Args:
            name: Provider name (one of KNOWN_PROVIDERS)

        Returns:
            ProviderConfig for the provider
        """
        if name not in KNOWN_PROVIDERS:
            raise ValueError(f"Unknown provider: {name!r}")

        api_key: str | None = None
        api_secret: str | None = None
        if name == "discogs":
            api_key = self.discogs_token
        elif name == "lastfm":
            api_key = self.lastfm_api_key
        elif name == "spotify":
            api_key = self.spotify_client_id
            api_secret = self.spotify_client_secret

        return ProviderConfig(
            name=name,
            enabled=getattr(self, f"{name}_enabled"),
            api_key=api_key or None,
            api_secret=api_secret or None,
            timeout=getattr(self, f"{name}_timeout"),
            read_write_timeout=getattr(self, f"{name}_read_write_timeout"),
            rate_limit=getattr(self, f"{name}_rate_limit"),
            max_concurrent=self.provider_max_concurrent,
            max_retries=self.provider_max_retries,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
