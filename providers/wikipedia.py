"""Wikipedia adapter: full-text page search followed by the REST page summary."""

import logging
import re
from urllib.parse import quote

from config.settings import ProviderConfig
from core.cache import MetadataCache
from providers.base import best_hit, provider_operation, strip_html
from providers.http import ProviderHttpClient
from providers.models import ProviderName, ProviderResponse, ProviderResult

logger = logging.getLogger(__name__)

WIKIPEDIA_API_BASE = "https://en.wikipedia.org"

_QUALIFIER_RE = re.compile(r"\s*\([^)]*\)$")


def strip_qualifier(title: str | None) -> str:
    """Remove a trailing disambiguation qualifier: "Low (album)" -> "Low"."""
    return _QUALIFIER_RE.sub("", title or "").strip()


class WikipediaAdapter:
    """Adapter for English Wikipedia (no credentials)."""

    name = ProviderName.WIKIPEDIA

    def __init__(self, config: ProviderConfig, cache: MetadataCache | None = None):
        self.config = config
        self.cache = cache
        self.http = ProviderHttpClient(config, WIKIPEDIA_API_BASE)

    @property
    def is_enabled(self) -> bool:
        return self.config.enabled

    @property
    def timeout(self) -> float:
        return self.config.timeout + self.config.read_write_timeout

    async def close(self) -> None:
        await self.http.close()

    async def _search_titles(self, text: str, result_count: int) -> list[str]:
        data = await self.http.get_json(
            "/w/api.php",
            params={
                "action": "query",
                "list": "search",
                "srsearch": text,
                "srlimit": result_count,
                "format": "json",
            },
        )
        hits = ((data or {}).get("query") or {}).get("search") or []
        return [h["title"] for h in hits if h.get("title")]

    async def _summary(self, title: str, artist_name: str | None = None) -> ProviderResult | None:
        summary = await self.http.get_json(
            f"/api/rest_v1/page/summary/{quote(title.replace(' ', '_'), safe='')}"
        )
        if not summary or summary.get("type") == "disambiguation":
            return None

        thumbnail = (summary.get("thumbnail") or {}).get("source")
        original = (summary.get("originalimage") or {}).get("source")
        page_url = ((summary.get("content_urls") or {}).get("desktop") or {}).get("page")
        page_title = summary.get("title") or title

        return ProviderResult(
            provider=self.name,
            name=strip_qualifier(page_title),
            provider_id=str(summary.get("pageid") or page_title),
            artist_name=artist_name,
            profile=strip_html(summary.get("extract")),
            image_urls=[u for u in (original, thumbnail) if u],
            thumbnail_url=thumbnail or original,
            urls=[page_url] if page_url else [],
        )

    @provider_operation("search_artist")
    async def search_artist(self, query: str, result_count: int = 5) -> ProviderResponse:
        titles = await self._search_titles(query, result_count)
        title = best_hit(query, titles, strip_qualifier)
        if title is None:
            return ProviderResponse.success(self.name, [])
        result = await self._summary(title)
        return ProviderResponse.success(self.name, [result] if result else [])

    @provider_operation("search_release")
    async def search_release(
        self, artist_name_hint: str | None, query: str, result_count: int = 5
    ) -> ProviderResponse:
        text = f"{query} {artist_name_hint} album" if artist_name_hint else f"{query} album"
        titles = await self._search_titles(text, result_count)
        title = best_hit(query, titles, strip_qualifier)
        if title is None:
            return ProviderResponse.success(self.name, [])
        result = await self._summary(title, artist_name=artist_name_hint)
        return ProviderResponse.success(self.name, [result] if result else [])
