"""MusicBrainz adapter: Lucene search plus entity lookup with aliases, tags and URL relations."""

import logging

from config.settings import ProviderConfig
from core.cache import MetadataCache
from providers.base import best_hit, parse_date, provider_operation
from providers.http import ProviderHttpClient
from providers.models import ProviderName, ProviderResponse, ProviderResult

logger = logging.getLogger(__name__)

MUSICBRAINZ_API_BASE = "https://musicbrainz.org/ws/2"
MUSICBRAINZ_SITE = "https://musicbrainz.org"


def lucene_escape(text: str) -> str:
    """Escape a phrase for use inside a quoted Lucene term."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def _names(items: list[dict] | None) -> list[str]:
    return [i["name"] for i in items or [] if i.get("name")]


def _relation_urls(entity: dict) -> list[str]:
    urls = []
    for relation in entity.get("relations") or []:
        resource = (relation.get("url") or {}).get("resource")
        if resource:
            urls.append(resource)
    return urls


def _credited_artist(entity: dict) -> str | None:
    credits = entity.get("artist-credit") or []
    if not credits:
        return None
    return "".join(
        (c.get("name") or (c.get("artist") or {}).get("name") or "") + (c.get("joinphrase") or "")
        for c in credits
    ).strip() or None


class MusicBrainzAdapter:
    """Adapter for the MusicBrainz web service (no credentials, strict rate limit)."""

    name = ProviderName.MUSICBRAINZ

    def __init__(self, config: ProviderConfig, cache: MetadataCache | None = None):
        self.config = config
        self.cache = cache
        self.http = ProviderHttpClient(config, MUSICBRAINZ_API_BASE)

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
        """Search artists by name, then look up the best hit with relations."""
        data = await self.http.get_json(
            "/artist",
            params={
                "query": f'artist:"{lucene_escape(query)}"',
                "limit": result_count,
                "fmt": "json",
            },
        )
        hits = [h for h in (data or {}).get("artists") or [] if h.get("id")]
        hit = best_hit(query, hits, lambda h: h.get("name"))
        if hit is None:
            return ProviderResponse.success(self.name, [])

        detail = (
            await self.http.get_json(
                f"/artist/{hit['id']}",
                params={"inc": "aliases+tags+genres+url-rels", "fmt": "json"},
            )
            or {}
        )
        entity = {**hit, **detail}
        tags = _names(entity.get("genres")) + _names(entity.get("tags"))
        result = ProviderResult(
            provider=self.name,
            name=entity.get("name"),
            provider_id=entity["id"],
            sort_name=entity.get("sort-name"),
            entity_kind=entity.get("type"),
            profile=entity.get("disambiguation") or None,
            alternate_names=_names(entity.get("aliases")),
            urls=[f"{MUSICBRAINZ_SITE}/artist/{entity['id']}", *_relation_urls(entity)],
            tags=tags,
            date=parse_date((entity.get("life-span") or {}).get("begin")),
        )
        return ProviderResponse.success(self.name, [result])

    @provider_operation("search_release")
    async def search_release(
        self, artist_name_hint: str | None, query: str, result_count: int = 5
    ) -> ProviderResponse:
        """Search release groups, then look up the best hit with tags and relations."""
        lucene = f'releasegroup:"{lucene_escape(query)}"'
        if artist_name_hint:
            lucene += f' AND artist:"{lucene_escape(artist_name_hint)}"'

        data = await self.http.get_json(
            "/release-group",
            params={"query": lucene, "limit": result_count, "fmt": "json"},
        )
        hits = [h for h in (data or {}).get("release-groups") or [] if h.get("id")]
        hit = best_hit(query, hits, lambda h: h.get("title"))
        if hit is None:
            return ProviderResponse.success(self.name, [])

        detail = (
            await self.http.get_json(
                f"/release-group/{hit['id']}",
                params={"inc": "artist-credits+tags+genres+url-rels", "fmt": "json"},
            )
            or {}
        )
        entity = {**hit, **detail}
        tags = _names(entity.get("genres")) + _names(entity.get("tags"))
        result = ProviderResult(
            provider=self.name,
            name=entity.get("title"),
            provider_id=entity["id"],
            artist_name=_credited_artist(entity) or artist_name_hint,
            entity_kind=entity.get("primary-type"),
            profile=entity.get("disambiguation") or None,
            urls=[f"{MUSICBRAINZ_SITE}/release-group/{entity['id']}", *_relation_urls(entity)],
            tags=tags,
            date=parse_date(entity.get("first-release-date")),
        )
        return ProviderResponse.success(self.name, [result])
