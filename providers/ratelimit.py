"""Rate limiting utilities for metadata provider requests.

Each provider gets its own primitives:
- Semaphore for concurrent request limiting
- Token bucket rate limiter for requests per minute
Both are created lazily per event loop.
"""

import asyncio
import logging

from aiolimiter import AsyncLimiter

logger = logging.getLogger(__name__)

_rate_limiters: dict[tuple[asyncio.AbstractEventLoop, str], AsyncLimiter] = {}
_semaphores: dict[tuple[asyncio.AbstractEventLoop, str], asyncio.Semaphore] = {}


def get_rate_limiter(provider: str, requests_per_minute: int) -> AsyncLimiter:
    """Get or create the rate limiter for a provider on the current event loop.

    Args:
        provider: Provider name
        requests_per_minute: Token bucket size per 60 seconds

    Returns:
        AsyncLimiter configured for requests per minute
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return AsyncLimiter(requests_per_minute, 60)

    key = (loop, provider)
    if key not in _rate_limiters:
        _rate_limiters[key] = AsyncLimiter(requests_per_minute, 60)
        logger.debug(f"Created {provider} rate limiter: {requests_per_minute} req/min")
    return _rate_limiters[key]


def get_semaphore(provider: str, max_concurrent: int) -> asyncio.Semaphore:
    """Get or create the concurrency semaphore for a provider on the current event loop.

    Args:
        provider: Provider name
        max_concurrent: Max in-flight requests

    Returns:
        asyncio.Semaphore for limiting concurrent requests
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.Semaphore(max_concurrent)

    key = (loop, provider)
    if key not in _semaphores:
        _semaphores[key] = asyncio.Semaphore(max_concurrent)
        logger.debug(f"Created {provider} semaphore: {max_concurrent} concurrent")
    return _semaphores[key]


def reset_rate_limiting() -> None:
    """Reset rate limiting state for testing."""
    _rate_limiters.clear()
    _semaphores.clear()
    logger.debug("Reset rate limiting state")
