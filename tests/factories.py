"""Shared test factories for model construction."""

import asyncio

from config.settings import ProviderConfig
from library.models import ArtistRecord, ReleaseRecord
from providers.models import ProviderName, ProviderResponse, ProviderResult
from providers.registry import ProviderRegistry


def make_provider_result(provider="discogs", name="Radiohead", **kwargs):
    """Build a ProviderResult with sensible defaults."""
    return ProviderResult(provider=ProviderName(provider), name=name, **kwargs)


def hit(provider, name="Radiohead", **kwargs):
    """A successful ProviderResponse carrying one result."""
    return ProviderResponse.success(
        ProviderName(provider), [make_provider_result(provider, name, **kwargs)]
    )


def miss(provider):
    """A successful-but-empty ProviderResponse."""
    return ProviderResponse.success(ProviderName(provider), [])


def make_artist_record(id=1, name="Radiohead", **kwargs):
    """Build an ArtistRecord with sensible defaults."""
    return ArtistRecord(id=id, name=name, **kwargs)


def make_release_record(id=10, name="OK Computer", artist_name="Radiohead", **kwargs):
    """Build a ReleaseRecord with sensible defaults."""
    return ReleaseRecord(id=id, name=name, artist_name=artist_name, **kwargs)


class FakeAdapter:
    """In-process ProviderAdapter returning canned responses and recording calls."""

    def __init__(
        self,
        provider,
        artist_response=None,
        release_response=None,
        enabled=True,
        timeout=5.0,
        error=None,
        delay=0.0,
    ):
        self.name = ProviderName(provider)
        self.artist_response = artist_response or miss(provider)
        self.release_response = release_response or miss(provider)
        self.enabled = enabled
        self._timeout = timeout
        self.error = error
        self.delay = delay
        self.calls = []
        self.closed = False

    @property
    def is_enabled(self):
        return self.enabled

    @property
    def timeout(self):
        return self._timeout

    async def _respond(self, response):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return response

    async def search_artist(self, query, result_count=5):
        self.calls.append(("search_artist", query))
        return await self._respond(self.artist_response)

    async def search_release(self, artist_name_hint, query, result_count=5):
        self.calls.append(("search_release", artist_name_hint, query))
        return await self._respond(self.release_response)

    async def close(self):
        self.closed = True


def make_registry(*adapters):
    """ProviderRegistry over the given adapters, in the given priority order."""
    return ProviderRegistry(list(adapters))


ARTIST_BODY = {"name": "Radiohead"}
RELEASE_BODY = {"name": "OK Computer", "artist_name": "Radiohead"}


def make_provider_config(provider="discogs", enabled=True, api_key=None, api_secret=None, **kwargs):
    """ProviderConfig for constructing a real adapter in tests."""
    return ProviderConfig(
        name=provider, enabled=enabled, api_key=api_key, api_secret=api_secret, **kwargs
    )
