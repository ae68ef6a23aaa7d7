"""Canonical artist and release records persisted by the library store."""

import datetime as dt
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field

from core.normalize import normalize_name
from providers.models import ProviderName


class EntityType(StrEnum):
    ARTIST = "artist"
    RELEASE = "release"


class RecordStatus(StrEnum):
    """Lifecycle status, managed by the store."""

    ACTIVE = "active"
    MERGED = "merged"
    DELETED = "deleted"


class ExternalIds(BaseModel):
    """One nullable identifier slot per known provider."""

    musicbrainz: str | None = None
    discogs: str | None = None
    lastfm: str | None = None
    itunes: str | None = None
    spotify: str | None = None
    wikipedia: str | None = None

    def get(self, provider: ProviderName) -> str | None:
        return getattr(self, provider.value)

    def with_id(self, provider: ProviderName, value: str | None) -> "ExternalIds":
        return self.model_copy(update={provider.value: value})


class CanonicalRecord(BaseModel):
    """The merged, persistence-ready representation of an artist or release."""

    id: int | None = None
    entity_type: EntityType
    name: str
    sort_name: str | None = None
    profile: str | None = None
    date: dt.date | None = None
    external_ids: ExternalIds = Field(default_factory=ExternalIds)
    alternate_names: list[str] = []
    image_urls: list[str] = []
    thumbnail_url: str | None = None
    tags: list[str] = []
    urls: list[str] = []
    status: RecordStatus = RecordStatus.ACTIVE
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    @property
    def scope(self) -> str:
        """Uniqueness scope of the record's names within its entity type."""
        return ""


class ArtistRecord(CanonicalRecord):
    entity_type: Literal[EntityType.ARTIST] = EntityType.ARTIST


class ReleaseRecord(CanonicalRecord):
    entity_type: Literal[EntityType.RELEASE] = EntityType.RELEASE
    artist_name: str | None = None
    artist_id: int | None = None

    @property
    def scope(self) -> str:
        """Releases are unique per artist: the normalized artist name."""
        return normalize_name(self.artist_name)


def record_class(entity_type: EntityType) -> type[CanonicalRecord]:
    """Record model for an entity type."""
    return ArtistRecord if entity_type == EntityType.ARTIST else ReleaseRecord
