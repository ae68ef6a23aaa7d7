"""In-memory TTL cache for provider responses, built on cachetools."""

import hashlib
import json
import logging
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from typing import Any, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

from core.telemetry import record_memory_cache_hit

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Per-request flag to bypass the provider cache.
_skip_cache_var: ContextVar[bool] = ContextVar("skip_cache", default=False)

_metadata_cache: "MetadataCache | None" = None


def set_skip_cache(skip: bool) -> None:
    """Set the per-request skip_cache flag."""
    _skip_cache_var.set(skip)


def should_skip_cache() -> bool:
    """Check whether caches should be bypassed for the current request."""
    return _skip_cache_var.get()


def make_cache_key(namespace: str, *args, **kwargs) -> str:
    """Generate a deterministic cache key from a namespace and arguments.

    Args:
        namespace: Caller namespace, e.g. "discogs.search_artist"
        *args: Positional arguments
        **kwargs: Keyword arguments

    Returns:
        MD5 hash of the serialized arguments
    """
    key_data = {
        "ns": namespace,
        "args": list(args),
        "kwargs": dict(sorted(kwargs.items())),
    }
    key_string = json.dumps(key_data, sort_keys=True, default=str)
    return hashlib.md5(key_string.encode()).hexdigest()


class MetadataCache:
    """Get-or-compute cache with one TTLCache per distinct TTL."""

    def __init__(self, maxsize: int = 1000, default_ttl: int = 3600):
        self.maxsize = maxsize
        self.default_ttl = default_ttl
        self._caches: dict[int, TTLCache] = {}

    def _cache_for(self, ttl: int) -> TTLCache:
        if ttl not in self._caches:
            self._caches[ttl] = TTLCache(maxsize=self.maxsize, ttl=ttl)
        return self._caches[ttl]

    def get(self, key: str, ttl: int | None = None) -> Any | None:
        """Return a cached value or None."""
        return self._cache_for(ttl or self.default_ttl).get(key)

    async def get_or_compute(
        self,
        key: str,
        ttl: int | None,
        compute: Callable[[], Awaitable[T]],
        should_store: Callable[[T], bool] | None = None,
    ) -> T:
        """Return the cached value for key, computing and storing it on a miss.

        Args:
            key: Cache key (see make_cache_key)
            ttl: Time-to-live in seconds, or None for the default TTL
            compute: Coroutine factory producing the value on a miss
            should_store: Optional predicate; values it rejects are not cached

        Returns:
            The cached or freshly computed value
        """
        if should_skip_cache():
            return await compute()

        cache = self._cache_for(ttl or self.default_ttl)
        if key in cache:
            logger.debug(f"Cache hit for {key}")
            record_memory_cache_hit()
            return cache[key]  # type: ignore[no-any-return]

        value = await compute()
        if value is not None and (should_store is None or should_store(value)):
            cache[key] = value
        return value

    def clear(self) -> None:
        """Drop every cached entry."""
        for cache in self._caches.values():
            cache.clear()

    def __len__(self) -> int:
        return sum(len(cache) for cache in self._caches.values())


def get_metadata_cache() -> MetadataCache:
    """Get or create the shared provider cache using settings."""
    global _metadata_cache
    if _metadata_cache is None:
        from config.settings import get_settings

        settings = get_settings()
        _metadata_cache = MetadataCache(
            maxsize=settings.provider_cache_maxsize,
            default_ttl=settings.provider_cache_ttl,
        )
    return _metadata_cache


def clear_all_caches() -> None:
    """Clear the shared cache and reset it so it gets recreated with fresh settings."""
    global _metadata_cache
    if _metadata_cache is not None:
        _metadata_cache.clear()
    _metadata_cache = None
