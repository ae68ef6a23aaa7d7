"""Discogs adapter: database search followed by an artist or release detail call."""

import logging
import re

from config.settings import ProviderConfig
from core.cache import MetadataCache
from core.normalize import normalize_name
from providers.base import best_hit, image_urls, parse_date, pick_thumbnail, provider_operation
from providers.http import ProviderHttpClient
from providers.models import ProviderName, ProviderResponse, ProviderResult

logger = logging.getLogger(__name__)

DISCOGS_API_BASE = "https://api.discogs.com"
DISCOGS_SITE = "https://www.discogs.com"

_NUMBERING_RE = re.compile(r"\s*\(\d+\)$")


def strip_numbering(name: str | None) -> str:
    """Remove Discogs disambiguation numbering like "Nirvana (2)"."""
    return _NUMBERING_RE.sub("", name or "").strip()


def parse_title(title: str) -> tuple[str, str]:
    """Parse Discogs title format 'Artist - Album' into components."""
    if " - " in title:
        parts = title.split(" - ", 1)
        return parts[0].strip(), parts[1].strip()
    return "", title


def _is_primary(image: dict) -> bool:
    return image.get("type") == "primary"


class DiscogsAdapter:
    """Adapter for the Discogs database API (token required)."""

    name = ProviderName.DISCOGS

    def __init__(self, config: ProviderConfig, cache: MetadataCache | None = None):
        """Initialize the adapter.

        Args:
            config: Discogs provider configuration; api_key is the user token
            cache: Optional response cache
        """
        self.config = config
        self.cache = cache
        headers = {"Authorization": f"Discogs token={config.api_key}"} if config.api_key else {}
        self.http = ProviderHttpClient(config, DISCOGS_API_BASE, headers=headers)

    @property
    def is_enabled(self) -> bool:
        return self.config.enabled and bool(self.config.api_key)

    @property
    def timeout(self) -> float:
        return self.config.timeout + self.config.read_write_timeout

    async def close(self) -> None:
        await self.http.close()

    @provider_operation("search_artist")
    async def search_artist(self, query: str, result_count: int = 5) -> ProviderResponse:
        """Search artists, then fetch the best hit's artist page."""
        logger.debug(f"Discogs artist search: '{query}'")
        data = await self.http.get_json(
            "/database/search",
            params={"type": "artist", "q": query, "page": 1, "per_page": result_count},
        )
        hits = [h for h in (data or {}).get("results") or [] if h.get("id") is not None]
        hit = best_hit(query, hits, lambda h: strip_numbering(h.get("title")))
        if hit is None:
            return ProviderResponse.success(self.name, [])

        detail = await self.http.get_json(f"/artists/{hit['id']}") or {}
        return ProviderResponse.success(self.name, [self._map_artist(hit, detail)])

    def _map_artist(self, hit: dict, detail: dict) -> ProviderResult:
        artist_id = detail.get("id") or hit["id"]
        images = detail.get("images") or []
        if not images and hit.get("cover_image") and "spacer.gif" not in hit["cover_image"]:
            images = [{"type": "primary", "uri": hit["cover_image"]}]

        alternate_names = [strip_numbering(n) for n in detail.get("namevariations") or []]
        alternate_names += [strip_numbering(a.get("name")) for a in detail.get("aliases") or []]
        if detail.get("realname"):
            alternate_names.append(detail["realname"])

        return ProviderResult(
            provider=self.name,
            name=strip_numbering(detail.get("name") or hit.get("title")),
            provider_id=str(artist_id),
            entity_kind=hit.get("type"),
            profile=detail.get("profile") or None,
            alternate_names=alternate_names,
            image_urls=image_urls(images, "uri"),
            thumbnail_url=pick_thumbnail(images, "uri", _is_primary),
            urls=[f"{DISCOGS_SITE}/artist/{artist_id}", *(detail.get("urls") or [])],
        )

    @provider_operation("search_release")
    async def search_release(
        self, artist_name_hint: str | None, query: str, result_count: int = 5
    ) -> ProviderResponse:
        """Search releases, then fetch the earliest matching release."""
        params: dict = {"type": "release", "release_title": query, "page": 1, "per_page": result_count}
        if artist_name_hint:
            params["artist"] = artist_name_hint

        logger.debug(f"Discogs release search: {params}")
        data = await self.http.get_json("/database/search", params=params)
        hits = [h for h in (data or {}).get("results") or [] if h.get("id") is not None]

        # Strict search returned nothing, try fuzzy query
        if not hits and artist_name_hint:
            fallback_params = {
                "type": "release",
                "q": f"{artist_name_hint} {query}",
                "page": 1,
                "per_page": result_count,
            }
            data = await self.http.get_json("/database/search", params=fallback_params)
            hits = [h for h in (data or {}).get("results") or [] if h.get("id") is not None]

        hit = self._pick_release_hit(query, hits)
        if hit is None:
            return ProviderResponse.success(self.name, [])

        detail = await self.http.get_json(f"/releases/{hit['id']}") or {}
        return ProviderResponse.success(self.name, [self._map_release(hit, detail)])

    def _pick_release_hit(self, query: str, hits: list[dict]) -> dict | None:
        """Earliest release whose title matches the query, else the earliest overall."""
        if not hits:
            return None
        wanted = normalize_name(query)
        matching = [h for h in hits if normalize_name(parse_title(h.get("title", ""))[1]) == wanted]
        candidates = matching or hits

        def year_key(hit: dict) -> int:
            try:
                return int(hit.get("year") or 9999)
            except (TypeError, ValueError):
                return 9999

        return min(candidates, key=year_key)

    def _map_release(self, hit: dict, detail: dict) -> ProviderResult:
        release_id = detail.get("id") or hit["id"]
        hit_artist, hit_title = parse_title(hit.get("title", ""))
        artists = detail.get("artists") or []
        artist_name = strip_numbering(artists[0].get("name")) if artists else strip_numbering(hit_artist)

        images = detail.get("images") or []
        if not images and hit.get("cover_image") and "spacer.gif" not in hit["cover_image"]:
            images = [{"type": "primary", "uri": hit["cover_image"]}]

        tags = list(detail.get("genres") or hit.get("genre") or [])
        tags += detail.get("styles") or hit.get("style") or []
        for identifier in detail.get("identifiers") or []:
            if identifier.get("type") == "Barcode" and identifier.get("value"):
                tags.append(f"barcode:{identifier['value']}")
                break

        return ProviderResult(
            provider=self.name,
            name=detail.get("title") or hit_title,
            provider_id=str(release_id),
            artist_name=artist_name or None,
            entity_kind=hit.get("type"),
            profile=detail.get("notes") or None,
            image_urls=image_urls(images, "uri"),
            thumbnail_url=pick_thumbnail(images, "uri", _is_primary),
            urls=[f"{DISCOGS_SITE}/release/{release_id}"],
            tags=tags,
            date=parse_date(detail.get("released")) or parse_date(detail.get("year") or hit.get("year")),
        )
