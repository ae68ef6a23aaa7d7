"""Shared HTTP plumbing for provider adapters: client, rate limiting, retries.

Errors are raised as ProviderError subclasses; the adapter boundary turns
them into failed ProviderResponses.
"""

import asyncio
import logging
import time
from typing import Any

import httpx

from config.settings import ProviderConfig
from core.exceptions import (
    ProviderAuthError,
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from core.telemetry import record_api_time, record_provider_api_call
from providers.ratelimit import get_rate_limiter, get_semaphore

logger = logging.getLogger(__name__)

USER_AGENT = "MediaLibraryLookup/0.1 ( https://github.com/media-library-lookup )"


class ProviderHttpClient:
    """Rate-limited async HTTP client for one provider."""

    def __init__(
        self,
        config: ProviderConfig,
        base_url: str,
        headers: dict[str, str] | None = None,
    ):
        """Initialize the client.

        Args:
            config: Provider configuration (timeouts, rate limit, retries)
            base_url: Base URL for relative request paths
            headers: Extra default headers (e.g. Authorization)
        """
        self.config = config
        self.base_url = base_url
        self.headers = headers or {}
        self._client: httpx.AsyncClient | None = None

    @property
    def provider(self) -> str:
        return self.config.name

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json", **self.headers},
                timeout=httpx.Timeout(
                    self.config.read_write_timeout, connect=self.config.timeout
                ),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _retry_delay(self, response: httpx.Response, attempt: int) -> float:
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                return min(float(retry_after), 30.0)
            except ValueError:
                pass
        # Exponential backoff: 1s, 2s, 4s...
        return float(2**attempt)

    async def request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        data: dict | None = None,
        headers: dict | None = None,
        auth: tuple[str, str] | None = None,
        max_retries: int | None = None,
    ) -> httpx.Response:
        """Make an HTTP request with rate limiting and retry on 429.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: API path relative to base_url, or an absolute URL
            params: Optional query parameters
            data: Optional form body
            headers: Optional per-request headers
            auth: Optional basic auth credentials
            max_retries: Max retry attempts on 429 (defaults to config)

        Returns:
            httpx.Response with a status below 400, or 404

        Raises:
            ProviderTimeoutError: On connect/read timeout
            ProviderAuthError: On 401/403
            ProviderResponseError: On other error statuses or exhausted retries
            ProviderError: On other transport errors
        """
        if max_retries is None:
            max_retries = self.config.max_retries

        client = await self._get_client()
        semaphore = get_semaphore(self.provider, self.config.max_concurrent)
        rate_limiter = get_rate_limiter(self.provider, self.config.rate_limit)

        async with semaphore:
            for attempt in range(max_retries + 1):
                await rate_limiter.acquire()

                start = time.perf_counter()
                try:
                    response = await client.request(
                        method, path, params=params, data=data, headers=headers, auth=auth
                    )
                except httpx.TimeoutException as e:
                    raise ProviderTimeoutError(
                        f"{self.provider} request timed out: {path}", {"path": path}
                    ) from e
                except httpx.RequestError as e:
                    raise ProviderError(
                        f"{self.provider} request failed: {e}", {"path": path}
                    ) from e
                finally:
                    record_api_time((time.perf_counter() - start) * 1000)
                    record_provider_api_call()

                if response.status_code == 429:
                    if attempt < max_retries:
                        delay = self._retry_delay(response, attempt)
                        logger.warning(
                            f"{self.provider} rate limit hit, retrying in {delay}s "
                            f"(attempt {attempt + 1}/{max_retries + 1})"
                        )
                        await asyncio.sleep(delay)
                        continue
                    raise ProviderResponseError(
                        f"{self.provider} rate limit hit, max retries exhausted",
                        {"path": path, "status": 429},
                    )

                if response.status_code in (401, 403):
                    raise ProviderAuthError(
                        f"{self.provider} rejected credentials ({response.status_code})",
                        {"path": path, "status": response.status_code},
                    )

                if response.status_code >= 400 and response.status_code != 404:
                    raise ProviderResponseError(
                        f"{self.provider} returned HTTP {response.status_code}",
                        {"path": path, "status": response.status_code},
                    )

                return response

        raise ProviderResponseError(f"{self.provider} request not attempted", {"path": path})

    async def get_json(self, path: str, params: dict | None = None, **kwargs: Any) -> dict | None:
        """GET a JSON object.

        Returns:
            Parsed JSON object, or None when the provider answers 404

        Raises:
            ProviderResponseError: If the body is not a JSON object
        """
        response = await self.request("GET", path, params=params, **kwargs)
        if response.status_code == 404:
            return None
        return self.parse_json(response, path)

    def parse_json(self, response: httpx.Response, path: str) -> dict:
        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderResponseError(
                f"{self.provider} returned malformed JSON", {"path": path}
            ) from e
        if not isinstance(payload, dict):
            raise ProviderResponseError(
                f"{self.provider} returned unexpected payload type {type(payload).__name__}",
                {"path": path},
            )
        return payload
