"""The provider adapter capability interface and its shared boundary helpers."""

import datetime as dt
import logging
import re
from collections.abc import Callable, Iterable
from functools import wraps
from typing import Any, Protocol, TypeVar, runtime_checkable

from core.cache import MetadataCache, make_cache_key
from core.exceptions import ProviderError
from core.normalize import normalize_name
from core.sentry import add_provider_breadcrumb, capture_exception
from providers.models import ProviderName, ProviderResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")


@runtime_checkable
class ProviderAdapter(Protocol):
    """One external metadata source.

    Implementations never raise from search_artist/search_release: every
    failure comes back as ProviderResponse.failure(...).
    """

    name: ProviderName

    @property
    def is_enabled(self) -> bool: ...

    @property
    def timeout(self) -> float: ...

    async def search_artist(self, query: str, result_count: int = 5) -> ProviderResponse: ...

    async def search_release(
        self, artist_name_hint: str | None, query: str, result_count: int = 5
    ) -> ProviderResponse: ...

    async def close(self) -> None: ...


def provider_operation(operation: str):
    """Decorate an adapter search method with the adapter boundary.

    The wrapped method may raise; the wrapper
    - short-circuits with a failure when the adapter is disabled,
    - serves successful responses from the adapter's MetadataCache,
    - converts ProviderError, timeouts and unexpected exceptions into
      ProviderResponse.failure, logging each and reporting to Sentry.

    The adapter must expose `name`, `is_enabled` and `cache`.
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(self, *args, **kwargs) -> ProviderResponse:
            if not self.is_enabled:
                return ProviderResponse.failure(self.name, f"{self.name} is not enabled")

            add_provider_breadcrumb(
                self.name, operation, {"args": [str(a) for a in args], **kwargs}
            )
            try:
                cache: MetadataCache | None = self.cache
                if cache is None:
                    return await func(self, *args, **kwargs)  # type: ignore[no-any-return]
                key = make_cache_key(f"{self.name}.{operation}", *args, **kwargs)
                return await cache.get_or_compute(
                    key,
                    None,
                    lambda: func(self, *args, **kwargs),
                    should_store=lambda response: response.is_success,
                )
            except ProviderError as e:
                logger.warning(f"{self.name} {operation} failed: {e.message}")
                add_provider_breadcrumb(
                    self.name,
                    f"{operation}_failed",
                    {"error": e.message, **e.details},
                    level="warning",
                )
                return ProviderResponse.failure(self.name, e.message)
            except TimeoutError:
                logger.warning(f"{self.name} {operation} timed out")
                return ProviderResponse.failure(self.name, f"{self.name} timed out")
            except Exception as e:
                logger.error(f"{self.name} {operation} failed unexpectedly: {type(e).__name__}: {e}")
                capture_exception(e, {"provider": str(self.name), "operation": operation})
                return ProviderResponse.failure(self.name, f"{type(e).__name__}: {e}")

        return wrapper

    return decorator


# =============================================================================
# Response mapping helpers
# =============================================================================


def pick_thumbnail(
    images: Iterable[dict],
    url_key: str,
    is_primary: Callable[[dict], bool] | None = None,
) -> str | None:
    """Pick the provider-flagged primary image, else the first with a URL."""
    images = [img for img in images if isinstance(img, dict)]
    if is_primary is not None:
        for img in images:
            if is_primary(img) and img.get(url_key):
                return str(img[url_key])
    for img in images:
        if img.get(url_key):
            return str(img[url_key])
    return None


def image_urls(images: Iterable[dict], url_key: str) -> list[str]:
    """All non-empty image URLs, in provider order."""
    return [str(img[url_key]) for img in images if isinstance(img, dict) and img.get(url_key)]


_DATE_FORMATS = ("%Y-%m-%d", "%Y-%m", "%Y", "%d %b %Y, %H:%M", "%d %b %Y")


def parse_date(value: Any) -> dt.date | None:
    """Parse the partial and full date strings providers return.

    Partial dates ("1997", "1997-05") resolve to the first day of the period.
    Unparseable or zero dates ("0000-00-00") give None.
    """
    if not value:
        return None
    text = str(value).strip()
    if "T" in text:
        text = text.split("T", 1)[0]
    for fmt in _DATE_FORMATS:
        try:
            return dt.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    # Discogs sometimes zero-fills unknown month/day: "1997-00-00"
    match = re.match(r"^(\d{4})(?:-00)*$", text)
    if match and match.group(1) != "0000":
        return dt.date(int(match.group(1)), 1, 1)
    return None


_TAG_RE = re.compile(r"<[^>]+>")


def strip_html(text: str | None) -> str | None:
    """Remove markup from provider biography text."""
    if not text:
        return None
    cleaned = _TAG_RE.sub("", text)
    cleaned = re.sub(r"\s*Read more on Last\.fm\.?\s*$", "", cleaned).strip()
    return cleaned or None


def best_hit(query: str, hits: list[T], name_of: Callable[[T], str | None]) -> T | None:
    """Choose the search hit to fetch details for.

    Prefers the first hit whose normalized name equals the normalized query,
    falling back to the provider's top hit.
    """
    if not hits:
        return None
    wanted = normalize_name(query)
    for hit in hits:
        if normalize_name(name_of(hit)) == wanted:
            return hit
    return hits[0]
