"""Spotify Web API adapter using the client-credentials flow."""

import asyncio
import logging
import time

from config.settings import ProviderConfig
from core.cache import MetadataCache
from core.exceptions import ProviderAuthError, ProviderResponseError
from core.normalize import normalize_name
from providers.base import best_hit, image_urls, parse_date, pick_thumbnail, provider_operation
from providers.http import ProviderHttpClient
from providers.models import ProviderName, ProviderResponse, ProviderResult

logger = logging.getLogger(__name__)

SPOTIFY_API_BASE = "https://api.spotify.com/v1"
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"

# Refresh the access token this many seconds before Spotify expires it
TOKEN_EXPIRY_MARGIN = 60


class SpotifyAdapter:
    """Adapter for the Spotify Web API (client id and secret required)."""

    name = ProviderName.SPOTIFY

    def __init__(self, config: ProviderConfig, cache: MetadataCache | None = None):
        self.config = config
        self.cache = cache
        self.http = ProviderHttpClient(config, SPOTIFY_API_BASE)
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    @property
    def is_enabled(self) -> bool:
        return self.config.enabled and bool(self.config.api_key and self.config.api_secret)

    @property
    def timeout(self) -> float:
        # Token exchange plus search plus detail
        return 2 * (self.config.timeout + self.config.read_write_timeout)

    async def close(self) -> None:
        await self.http.close()

    async def _access_token(self) -> str:
        """Return a cached access token, requesting a new one when it is near expiry."""
        async with self._token_lock:
            if self._token and time.monotonic() < self._token_expires_at:
                return self._token

            response = await self.http.request(
                "POST",
                SPOTIFY_TOKEN_URL,
                data={"grant_type": "client_credentials"},
                auth=(self.config.api_key or "", self.config.api_secret or ""),
            )
            payload = self.http.parse_json(response, SPOTIFY_TOKEN_URL)
            token = payload.get("access_token")
            if not token:
                raise ProviderResponseError("spotify token response missing access_token")

            expires_in = float(payload.get("expires_in") or 3600)
            self._token = token
            self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
            logger.debug(f"Obtained Spotify access token, expires in {expires_in:.0f}s")
            return token

    async def _get(self, path: str, params: dict | None = None) -> dict | None:
        token = await self._access_token()
        try:
            return await self.http.get_json(
                path, params=params, headers={"Authorization": f"Bearer {token}"}
            )
        except ProviderAuthError:
            # Revoked or expired early; request a fresh token next time
            self._token = None
            raise

    @provider_operation("search_artist")
    async def search_artist(self, query: str, result_count: int = 5) -> ProviderResponse:
        data = await self._get(
            "/search", params={"q": query, "type": "artist", "limit": result_count}
        )
        hits = [h for h in ((data or {}).get("artists") or {}).get("items") or [] if h.get("id")]
        hit = best_hit(query, hits, lambda h: h.get("name"))
        if hit is None:
            return ProviderResponse.success(self.name, [])

        # Spotify lists images largest first
        images = hit.get("images") or []
        result = ProviderResult(
            provider=self.name,
            name=hit.get("name"),
            provider_id=hit["id"],
            entity_kind=hit.get("type"),
            image_urls=image_urls(images, "url"),
            thumbnail_url=pick_thumbnail(images, "url"),
            urls=[u for u in [(hit.get("external_urls") or {}).get("spotify")] if u],
            tags=hit.get("genres") or [],
        )
        return ProviderResponse.success(self.name, [result])

    @provider_operation("search_release")
    async def search_release(
        self, artist_name_hint: str | None, query: str, result_count: int = 5
    ) -> ProviderResponse:
        q = f"album:{query}"
        if artist_name_hint:
            q += f" artist:{artist_name_hint}"
        data = await self._get("/search", params={"q": q, "type": "album", "limit": result_count})
        hits = [h for h in ((data or {}).get("albums") or {}).get("items") or [] if h.get("id")]
        if artist_name_hint:
            wanted = normalize_name(artist_name_hint)
            by_artist = [
                h
                for h in hits
                if any(normalize_name(a.get("name")) == wanted for a in h.get("artists") or [])
            ]
            hits = by_artist or hits
        hit = best_hit(query, hits, lambda h: h.get("name"))
        if hit is None:
            return ProviderResponse.success(self.name, [])

        album = {**hit, **(await self._get(f"/albums/{hit['id']}") or {})}
        artists = album.get("artists") or []
        images = album.get("images") or []
        tags = list(album.get("genres") or [])
        if album.get("label"):
            tags.append(f"label:{album['label']}")

        result = ProviderResult(
            provider=self.name,
            name=album.get("name"),
            provider_id=album["id"],
            artist_name=", ".join(a["name"] for a in artists if a.get("name")) or artist_name_hint,
            entity_kind=album.get("album_type"),
            image_urls=image_urls(images, "url"),
            thumbnail_url=pick_thumbnail(images, "url"),
            urls=[u for u in [(album.get("external_urls") or {}).get("spotify")] if u],
            tags=tags,
            date=parse_date(album.get("release_date")),
        )
        return ProviderResponse.success(self.name, [result])
