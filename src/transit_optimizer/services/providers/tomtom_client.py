"""HTTP client for interacting with TomTom services."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from ...config import settings
from ..optimizer.errors import ProviderNotConfiguredError, ProviderUnavailableError

logger = logging.getLogger(__name__)


class TomTomClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.tomtom_api_key
        if not self.api_key:
            raise ProviderNotConfiguredError("tomtom", "API key is not configured (TRANSIT_TOMTOM_API_KEY).")
        self.base_url = (base_url or settings.tomtom_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.provider_max_retries
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.provider_backoff_seconds
        )
        self.transport = transport

    def _get_client(self, timeout: float | None = None) -> httpx.Client:
        """Get a per-call HTTP client; calls are issued from worker threads."""
        return httpx.Client(
            timeout=httpx.Timeout(timeout or self.timeout, connect=5.0),
            transport=self.transport,
        )

    def get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        provider: str = "tomtom",
        timeout: float | None = None,
    ) -> dict:
        """GET ``path`` with the API key attached, retrying transient failures."""
        url = f"{self.base_url}{path}"
        query = {"key": self.api_key, **(params or {})}

        client = self._get_client(timeout)
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=query)
                    response.raise_for_status()
                    data = response.json()
                    if not isinstance(data, dict):
                        raise ValueError(f"expected a JSON object from {path}")
                    return data
                except httpx.HTTPStatusError as e:
                    status_code = e.response.status_code
                    # client errors other than rate limiting will not improve on retry
                    if 400 <= status_code < 500 and status_code != 429:
                        raise ProviderUnavailableError(
                            provider, f"HTTP {status_code} from {path}"
                        ) from e
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ProviderUnavailableError(
                            provider, f"HTTP {status_code} from {path} after {attempt} attempts"
                        ) from e
                    time.sleep(self.backoff_seconds * attempt)
                except httpx.TimeoutException as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"{provider} request timed out after {self.max_retries} retries: {e}")
                        raise ProviderUnavailableError(provider, f"timeout on {path}") from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"{provider} timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
                except (httpx.NetworkError, OSError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ProviderUnavailableError(
                            provider, f"failed to connect to {self.base_url}: {e}"
                        ) from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"{provider} network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                    time.sleep(wait_time)
                except ValueError as e:
                    raise ProviderUnavailableError(provider, f"invalid JSON from {path}: {e}") from e
                except httpx.HTTPError as e:
                    # protocol, proxy, decoding and redirect errors
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ProviderUnavailableError(
                            provider, f"{type(e).__name__} on {path}: {e}"
                        ) from e
                    time.sleep(self.backoff_seconds * attempt)
        finally:
            client.close()


def check_health(client: TomTomClient | None = None) -> bool:
    """Check TomTom reachability with a minimal geocode request."""
    try:
        tomtom = client or TomTomClient(max_retries=0, timeout=5.0)
        data = tomtom.get_json("/search/2/geocode/Rabat.json", {"limit": 1}, provider="health")
        return isinstance(data.get("results"), list)
    except (ValueError, ProviderUnavailableError):
        return False
