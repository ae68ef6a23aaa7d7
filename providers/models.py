"""Pydantic models for the common provider result shape."""

import datetime as dt
from enum import StrEnum

from pydantic import BaseModel, field_validator


class ProviderName(StrEnum):
    """Known external metadata providers."""

    MUSICBRAINZ = "musicbrainz"
    DISCOGS = "discogs"
    LASTFM = "lastfm"
    ITUNES = "itunes"
    SPOTIFY = "spotify"
    WIKIPEDIA = "wikipedia"


def dedupe_names(names: list[str]) -> list[str]:
    """Drop empty and case-insensitively repeated names, keeping first occurrence."""
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        if not name or not name.strip():
            continue
        name = name.strip()
        key = name.casefold()
        if key not in seen:
            seen.add(key)
            result.append(name)
    return result


def dedupe_urls(urls: list[str]) -> list[str]:
    """Drop empty and exactly repeated URLs, keeping first occurrence."""
    return list(dict.fromkeys(u for u in urls if u))


class ProviderResult(BaseModel):
    """One artist or release hit from a provider, mapped to the common shape.

    Everything except the provider is optional; providers return partial records.
    """

    provider: ProviderName
    name: str | None = None
    provider_id: str | None = None
    sort_name: str | None = None
    artist_name: str | None = None
    entity_kind: str | None = None
    profile: str | None = None
    alternate_names: list[str] = []
    image_urls: list[str] = []
    thumbnail_url: str | None = None
    urls: list[str] = []
    tags: list[str] = []
    date: dt.date | None = None

    @field_validator("alternate_names", "tags")
    @classmethod
    def _dedupe_names(cls, value: list[str]) -> list[str]:
        return dedupe_names(value)

    @field_validator("image_urls", "urls")
    @classmethod
    def _dedupe_urls(cls, value: list[str]) -> list[str]:
        return dedupe_urls(value)


class ProviderResponse(BaseModel):
    """Explicit success/failure value returned across the adapter boundary."""

    provider: ProviderName
    is_success: bool
    results: list[ProviderResult] = []
    error: str | None = None

    @classmethod
    def success(cls, provider: ProviderName, results: list[ProviderResult]) -> "ProviderResponse":
        """A response carrying zero or more hits."""
        return cls(provider=provider, is_success=bool(results), results=results)

    @classmethod
    def failure(cls, provider: ProviderName, error: str) -> "ProviderResponse":
        """A response for a provider that could not answer."""
        return cls(provider=provider, is_success=False, error=error)
