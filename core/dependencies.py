"""FastAPI dependency injection providers."""

import logging

from fastapi import Depends
from posthog import Posthog

from config.settings import Settings, get_settings
from core.cache import get_metadata_cache
from core.exceptions import ServiceInitializationError
from library.db import LibraryDB
from lookup.engine import ArtistLookupEngine, ReleaseLookupEngine
from providers.registry import ProviderRegistry, build_providers

logger = logging.getLogger(__name__)

# Module-level instances for lifecycle management
_library_db: LibraryDB | None = None
_provider_registry: ProviderRegistry | None = None
_posthog_client: Posthog | None = None


async def get_library_db(settings: Settings = Depends(get_settings)) -> LibraryDB:
    """Get library database instance.

    Args:
        settings: Application settings

    Returns:
        LibraryDB: Connected library database instance

    Raises:
        ServiceInitializationError: If database initialization fails
    """
    global _library_db

    if _library_db is None:
        db_path = settings.resolved_library_db_path
        db = LibraryDB(db_path=db_path)
        try:
            await db.connect()
        except Exception as e:
            logger.error(f"Failed to initialize library database: {e}")
            raise ServiceInitializationError(f"Database initialization failed: {e}") from e
        _library_db = db
        logger.info(f"Library database connected: {db_path}")

    return _library_db


async def close_library_db() -> None:
    """Close library database connection."""
    global _library_db
    if _library_db:
        await _library_db.close()
        _library_db = None


def get_provider_registry(settings: Settings = Depends(get_settings)) -> ProviderRegistry:
    """Get the priority-ordered provider adapters, sharing one response cache.

    Args:
        settings: Application settings

    Returns:
        ProviderRegistry: Adapters for every provider in settings.provider_priority
    """
    global _provider_registry

    if _provider_registry is None:
        _provider_registry = build_providers(settings, get_metadata_cache())
        enabled = [str(adapter.name) for adapter in _provider_registry.enabled()]
        logger.info(
            f"Provider registry initialized (policy: {settings.lookup_policy}, "
            f"enabled: {', '.join(enabled) or 'none'})"
        )

    return _provider_registry


async def close_provider_registry() -> None:
    """Close every provider adapter's HTTP client."""
    global _provider_registry
    if _provider_registry:
        await _provider_registry.close()
        _provider_registry = None


def get_artist_engine(
    db: LibraryDB = Depends(get_library_db),
    providers: ProviderRegistry = Depends(get_provider_registry),
    settings: Settings = Depends(get_settings),
) -> ArtistLookupEngine:
    """Get an artist lookup engine bound to the shared store and providers."""
    return ArtistLookupEngine(db, providers, settings)


def get_release_engine(
    artist_engine: ArtistLookupEngine = Depends(get_artist_engine),
    settings: Settings = Depends(get_settings),
) -> ReleaseLookupEngine:
    """Get a release lookup engine that also resolves each release's artist."""
    return ReleaseLookupEngine(
        artist_engine.db, artist_engine.providers, settings, artist_engine=artist_engine
    )


def get_posthog_client(settings: Settings = Depends(get_settings)) -> Posthog | None:
    """Get PostHog client instance.

    Args:
        settings: Application settings

    Returns:
        Optional[Posthog]: PostHog client if configured and enabled, None otherwise
    """
    global _posthog_client

    if not settings.enable_telemetry:
        logger.debug("Telemetry disabled")
        return None

    if not settings.posthog_api_key:
        logger.debug("POSTHOG_API_KEY not set - telemetry disabled")
        return None

    if _posthog_client is None:
        _posthog_client = Posthog(
            project_api_key=settings.posthog_api_key,
            host=settings.posthog_host,
        )
        logger.info(f"PostHog client initialized (host: {settings.posthog_host})")

    return _posthog_client


def flush_posthog() -> None:
    """Flush any buffered PostHog events."""
    if _posthog_client:
        _posthog_client.flush()


def shutdown_posthog() -> None:
    """Shutdown PostHog client gracefully."""
    global _posthog_client
    if _posthog_client:
        _posthog_client.shutdown()
        _posthog_client = None
        logger.info("PostHog client shutdown")
