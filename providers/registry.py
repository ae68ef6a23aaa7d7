"""Priority-ordered registry of provider adapters built from settings."""

import logging
from collections.abc import Iterator

from config.settings import Settings
from core.cache import MetadataCache
from providers.base import ProviderAdapter
from providers.discogs import DiscogsAdapter
from providers.itunes import ITunesAdapter
from providers.lastfm import LastFmAdapter
from providers.models import ProviderName
from providers.musicbrainz import MusicBrainzAdapter
from providers.spotify import SpotifyAdapter
from providers.wikipedia import WikipediaAdapter

logger = logging.getLogger(__name__)

ADAPTER_CLASSES: dict[ProviderName, type] = {
    ProviderName.MUSICBRAINZ: MusicBrainzAdapter,
    ProviderName.DISCOGS: DiscogsAdapter,
    ProviderName.LASTFM: LastFmAdapter,
    ProviderName.ITUNES: ITunesAdapter,
    ProviderName.SPOTIFY: SpotifyAdapter,
    ProviderName.WIKIPEDIA: WikipediaAdapter,
}


class ProviderRegistry:
    """Adapters in configured priority order."""

    def __init__(self, adapters: list[ProviderAdapter]):
        self._adapters = list(adapters)

    def __iter__(self) -> Iterator[ProviderAdapter]:
        return iter(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)

    @property
    def priority(self) -> list[ProviderName]:
        """Provider names, highest priority first."""
        return [adapter.name for adapter in self._adapters]

    def get(self, name: ProviderName | str) -> ProviderAdapter | None:
        for adapter in self._adapters:
            if adapter.name == name:
                return adapter
        return None

    def enabled(self) -> list[ProviderAdapter]:
        """Adapters that are configured and not disabled, in priority order."""
        return [adapter for adapter in self._adapters if adapter.is_enabled]

    async def close(self) -> None:
        """Close every adapter's HTTP client."""
        for adapter in self._adapters:
            try:
                await adapter.close()
            except Exception as e:
                logger.warning(f"Failed to close {adapter.name} adapter: {e}")


def build_providers(settings: Settings, cache: MetadataCache | None = None) -> ProviderRegistry:
    """Instantiate the adapters named in settings.provider_priority, in that order.

    Args:
        settings: Application settings
        cache: Shared response cache handed to every adapter

    Returns:
        ProviderRegistry in priority order
    """
    adapters: list[ProviderAdapter] = []
    for name in settings.provider_priority:
        provider = ProviderName(name)
        adapter = ADAPTER_CLASSES[provider](settings.provider_config(name), cache)
        adapters.append(adapter)
        logger.info(
            f"Provider {provider} registered ({'enabled' if adapter.is_enabled else 'disabled'})"
        )
    return ProviderRegistry(adapters)
