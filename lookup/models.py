"""Models for lookup queries, results and the lookup API contract."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from core.normalize import normalize_name, parse_exact
from library.models import ArtistRecord, CanonicalRecord, EntityType, ExternalIds, ReleaseRecord
from providers.models import ProviderName


class SearchQuery(BaseModel):
    """One immutable lookup request for an artist or release name."""

    model_config = ConfigDict(frozen=True)

    name: str
    artist_name: str | None = None
    """Associated artist for release searches."""
    external_ids: ExternalIds = Field(default_factory=ExternalIds)
    result_count: int = 5
    exact: bool = False

    @classmethod
    def parse(cls, text: str, **kwargs) -> "SearchQuery":
        """Build a query from raw text, treating a quoted name as an exact-match request."""
        requested_exact = kwargs.pop("exact", False)
        name, exact = parse_exact(text)
        return cls(name=name, exact=exact or requested_exact, **kwargs)

    def key(self, entity_type: EntityType) -> tuple[str, str, str]:
        """Run-context key: entity type, artist scope and normalized name."""
        scope = normalize_name(self.artist_name) if entity_type == EntityType.RELEASE else ""
        return (entity_type.value, scope, normalize_name(self.name))


class LookupStatus(StrEnum):
    FOUND = "found"
    """An existing record, from the store or from earlier in the run."""

    ADDED = "added"
    """A new record built from provider results and inserted."""

    NOT_FOUND = "not_found"


class LookupResult(BaseModel):
    """Outcome of one engine call; negative outcomes are values, not exceptions."""

    status: LookupStatus
    record: CanonicalRecord | None = None
    message: str | None = None
    providers_queried: list[ProviderName] = []

    @property
    def is_success(self) -> bool:
        return self.status != LookupStatus.NOT_FOUND and self.record is not None

    @classmethod
    def found(cls, record: CanonicalRecord, **kwargs) -> "LookupResult":
        return cls(status=LookupStatus.FOUND, record=record, **kwargs)

    @classmethod
    def added(cls, record: CanonicalRecord, **kwargs) -> "LookupResult":
        return cls(status=LookupStatus.ADDED, record=record, **kwargs)

    @classmethod
    def not_found(cls, message: str, **kwargs) -> "LookupResult":
        return cls(status=LookupStatus.NOT_FOUND, message=message, **kwargs)


# =============================================================================
# API contract
# =============================================================================


class ArtistLookupRequest(BaseModel):
    """Request body for POST /lookup/artist."""

    name: str = Field(..., min_length=1, description="Artist name; quote it for an exact match")
    do_find_if_not_in_database: bool = Field(
        default=True, description="Query metadata providers when the artist is not stored"
    )
    result_count: int = Field(default=5, ge=1, le=25)


class ReleaseLookupRequest(BaseModel):
    """Request body for POST /lookup/release."""

    name: str = Field(..., min_length=1, description="Release title; quote it for an exact match")
    artist_name: str | None = Field(None, description="Artist the release belongs to")
    do_find_if_not_in_database: bool = True
    result_count: int = Field(default=5, ge=1, le=25)


class BatchLookupRequest(BaseModel):
    """Request body for POST /lookup/batch; all items share one run context."""

    artists: list[ArtistLookupRequest] = []
    releases: list[ReleaseLookupRequest] = []


class ArtistLookupResponse(BaseModel):
    status: LookupStatus
    record: ArtistRecord | None = None
    message: str | None = None
    providers_queried: list[ProviderName] = []
    cache_stats: dict | None = None


class ReleaseLookupResponse(BaseModel):
    status: LookupStatus
    record: ReleaseRecord | None = None
    message: str | None = None
    providers_queried: list[ProviderName] = []
    cache_stats: dict | None = None


class BatchLookupResponse(BaseModel):
    artists: list[ArtistLookupResponse] = []
    releases: list[ReleaseLookupResponse] = []
    added_ids: list[int] = []
    cache_stats: dict | None = None
