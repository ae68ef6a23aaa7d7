"""iTunes Search API adapter (no credentials; artist and album entities)."""

import logging

from config.settings import ProviderConfig
from core.cache import MetadataCache
from core.normalize import normalize_name
from providers.base import best_hit, parse_date, provider_operation
from providers.http import ProviderHttpClient
from providers.models import ProviderName, ProviderResponse, ProviderResult

logger = logging.getLogger(__name__)

ITUNES_API_BASE = "https://itunes.apple.com"


def large_artwork(url: str | None, size: int = 600) -> str | None:
    """Rewrite an iTunes 100px artwork URL to a larger rendition."""
    if not url:
        return None
    return url.replace("100x100bb", f"{size}x{size}bb")


class ITunesAdapter:
    """Adapter for the public iTunes Search API."""

    name = ProviderName.ITUNES

    def __init__(self, config: ProviderConfig, cache: MetadataCache | None = None):
        self.config = config
        self.cache = cache
        self.http = ProviderHttpClient(config, ITUNES_API_BASE)

    @property
    def is_enabled(self) -> bool:
        return self.config.enabled

    @property
    def timeout(self) -> float:
        return self.config.timeout + self.config.read_write_timeout

    async def close(self) -> None:
        await self.http.close()

    @provider_operation("search_artist")
    async def search_artist(self, query: str, result_count: int = 5) -> ProviderResponse:
        data = await self.http.get_json(
            "/search",
            params={"term": query, "media": "music", "entity": "musicArtist", "limit": result_count},
        )
        hits = [h for h in (data or {}).get("results") or [] if h.get("artistId")]
        hit = best_hit(query, hits, lambda h: h.get("artistName"))
        if hit is None:
            return ProviderResponse.success(self.name, [])

        result = ProviderResult(
            provider=self.name,
            name=hit.get("artistName"),
            provider_id=str(hit["artistId"]),
            entity_kind=hit.get("artistType"),
            urls=[hit["artistLinkUrl"]] if hit.get("artistLinkUrl") else [],
            tags=[hit["primaryGenreName"]] if hit.get("primaryGenreName") else [],
        )
        return ProviderResponse.success(self.name, [result])

    @provider_operation("search_release")
    async def search_release(
        self, artist_name_hint: str | None, query: str, result_count: int = 5
    ) -> ProviderResponse:
        term = f"{artist_name_hint} {query}" if artist_name_hint else query
        data = await self.http.get_json(
            "/search",
            params={"term": term, "media": "music", "entity": "album", "limit": result_count},
        )
        hits = [h for h in (data or {}).get("results") or [] if h.get("collectionId")]
        if artist_name_hint:
            wanted = normalize_name(artist_name_hint)
            hits = [h for h in hits if normalize_name(h.get("artistName")) == wanted] or hits
        hit = best_hit(query, hits, lambda h: h.get("collectionName"))
        if hit is None:
            return ProviderResponse.success(self.name, [])

        artwork = hit.get("artworkUrl100")
        result = ProviderResult(
            provider=self.name,
            name=hit.get("collectionName"),
            provider_id=str(hit["collectionId"]),
            artist_name=hit.get("artistName"),
            entity_kind=hit.get("collectionType"),
            image_urls=[u for u in (large_artwork(artwork), artwork) if u],
            thumbnail_url=large_artwork(artwork),
            urls=[hit["collectionViewUrl"]] if hit.get("collectionViewUrl") else [],
            tags=[hit["primaryGenreName"]] if hit.get("primaryGenreName") else [],
            date=parse_date(hit.get("releaseDate")),
        )
        return ProviderResponse.success(self.name, [result])
