"""Last.fm adapter: search methods followed by getInfo for tags and biography."""

import logging
from typing import Any

from config.settings import ProviderConfig
from core.cache import MetadataCache
from core.exceptions import ProviderAuthError, ProviderResponseError
from core.normalize import normalize_name
from providers.base import best_hit, image_urls, pick_thumbnail, provider_operation, strip_html
from providers.http import ProviderHttpClient
from providers.models import ProviderName, ProviderResponse, ProviderResult

logger = logging.getLogger(__name__)

LASTFM_API_BASE = "https://ws.audioscrobbler.com/2.0/"

# Last.fm error codes: 4 auth failed, 10 invalid key, 26 suspended key
AUTH_ERROR_CODES = {4, 10, 26}
NOT_FOUND_ERROR_CODE = 6

# Served for every artist since Last.fm stopped hosting artist photos
PLACEHOLDER_IMAGE_ID = "2a96cbd8b46e442fc41c2b86b821562f"


def _as_list(value: Any) -> list:
    """Last.fm collapses single-element lists into objects."""
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _images(raw: Any) -> list[dict]:
    return [
        img
        for img in _as_list(raw)
        if isinstance(img, dict) and img.get("#text") and PLACEHOLDER_IMAGE_ID not in img["#text"]
    ]


LARGEST_FIRST = ("mega", "extralarge", "large", "medium", "small")


def _largest_first(images: list[dict]) -> list[dict]:
    """Order images by Last.fm size label, largest first; unlabelled ones last."""
    rank = {size: i for i, size in enumerate(LARGEST_FIRST)}
    return sorted(images, key=lambda img: rank.get(img.get("size"), len(rank)))


def _tags(entity: dict) -> list[str]:
    tags = entity.get("tags") or {}
    if not isinstance(tags, dict):
        return []
    return [t["name"] for t in _as_list(tags.get("tag")) if isinstance(t, dict) and t.get("name")]


class LastFmAdapter:
    """Adapter for the Last.fm web service (API key required)."""

    name = ProviderName.LASTFM

    def __init__(self, config: ProviderConfig, cache: MetadataCache | None = None):
        self.config = config
        self.cache = cache
        self.http = ProviderHttpClient(config, LASTFM_API_BASE)

    @property
    def is_enabled(self) -> bool:
        return self.config.enabled and bool(self.config.api_key)

    @property
    def timeout(self) -> float:
        return self.config.timeout + self.config.read_write_timeout

    async def close(self) -> None:
        await self.http.close()

    async def _call(self, method: str, **params: Any) -> dict | None:
        """Call a Last.fm method, translating its in-body error codes.

        Returns:
            Response payload, or None for "not found"
        """
        data = await self.http.get_json(
            "",
            params={"method": method, "api_key": self.config.api_key, "format": "json", **params},
        )
        if data is None or "error" not in data:
            return data

        code = data.get("error")
        message = data.get("message", "unknown error")
        if code == NOT_FOUND_ERROR_CODE:
            return None
        if code in AUTH_ERROR_CODES:
            raise ProviderAuthError(f"lastfm rejected credentials: {message}", {"code": code})
        raise ProviderResponseError(f"lastfm {method} error {code}: {message}", {"code": code})

    @provider_operation("search_artist")
    async def search_artist(self, query: str, result_count: int = 5) -> ProviderResponse:
        """artist.search, then artist.getInfo for the best hit."""
        data = await self._call("artist.search", artist=query, limit=result_count)
        matches = ((data or {}).get("results") or {}).get("artistmatches") or {}
        hits = [h for h in _as_list(matches.get("artist")) if isinstance(h, dict) and h.get("name")]
        hit = best_hit(query, hits, lambda h: h.get("name"))
        if hit is None:
            return ProviderResponse.success(self.name, [])

        info = await self._call("artist.getInfo", artist=hit["name"], autocorrect=1)
        artist = {**hit, **((info or {}).get("artist") or {})}
        images = _images(artist.get("image"))
        bio = artist.get("bio") or {}

        result = ProviderResult(
            provider=self.name,
            name=artist.get("name"),
            provider_id=artist.get("mbid") or artist.get("url"),
            profile=strip_html(bio.get("content") or bio.get("summary")),
            image_urls=image_urls(images, "#text"),
            thumbnail_url=pick_thumbnail(_largest_first(images), "#text"),
            urls=[artist["url"]] if artist.get("url") else [],
            tags=_tags(artist),
        )
        return ProviderResponse.success(self.name, [result])

    @provider_operation("search_release")
    async def search_release(
        self, artist_name_hint: str | None, query: str, result_count: int = 5
    ) -> ProviderResponse:
        """album.search, then album.getInfo for the best hit by the hinted artist."""
        data = await self._call("album.search", album=query, limit=result_count)
        matches = ((data or {}).get("results") or {}).get("albummatches") or {}
        hits = [h for h in _as_list(matches.get("album")) if isinstance(h, dict) and h.get("name")]
        if artist_name_hint:
            wanted = normalize_name(artist_name_hint)
            by_artist = [h for h in hits if normalize_name(h.get("artist")) == wanted]
            hits = by_artist or hits
        hit = best_hit(query, hits, lambda h: h.get("name"))
        if hit is None:
            return ProviderResponse.success(self.name, [])

        info = await self._call(
            "album.getInfo", artist=hit.get("artist") or artist_name_hint or "", album=hit["name"]
        )
        album = {**hit, **((info or {}).get("album") or {})}
        images = _images(album.get("image"))
        wiki = album.get("wiki") or {}

        result = ProviderResult(
            provider=self.name,
            name=album.get("name"),
            provider_id=album.get("mbid") or album.get("url"),
            artist_name=album.get("artist") if isinstance(album.get("artist"), str) else artist_name_hint,
            profile=strip_html(wiki.get("content") or wiki.get("summary")),
            image_urls=image_urls(images, "#text"),
            thumbnail_url=pick_thumbnail(_largest_first(images), "#text"),
            urls=[album["url"]] if album.get("url") else [],
            tags=_tags(album),
        )
        return ProviderResponse.success(self.name, [result])
