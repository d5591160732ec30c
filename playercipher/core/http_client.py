"""
Transport for watch pages and player scripts.

``HTTPClient.fetch`` is the only capability the resolver sees: body bytes
in, or ``TransportFailure`` out. Transient problems are retried here so the
resolver itself never retries:
- network errors (timeouts, refused or dropped connections);
- HTTP 429 and 5xx gateway errors, with Retry-After honoured on 429.

Waits grow exponentially with jitter and never exceed ``_MAX_BACKOFF``.
"""

import asyncio
import logging
import random

import httpx

from ..config import get_settings
from .errors import TransportFailure

logger = logging.getLogger(__name__)

_MAX_BACKOFF = 30.0

_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

_NETWORK_ERRORS = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.ReadError,
    httpx.WriteError,
    httpx.RemoteProtocolError,
    httpx.CloseError,
)


class HTTPClient:
    """Downloads player assets over a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        timeout: int | None = None,
        max_retries: int | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self._timeout = timeout or settings.request_timeout
        self._max_retries = settings.max_retries if max_retries is None else max_retries
        self._transport = transport

        # Player scripts are served per browser; a desktop UA gets the desktop player.
        self._default_headers = {
            "User-Agent": settings.user_agent,
            "Accept": "text/html,application/javascript,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            **(headers or {}),
        }
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=10.0),
                follow_redirects=True,
                headers=self._default_headers,
                # h2 needs a real socket transport
                http2=self._transport is None,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    @staticmethod
    def _backoff(attempt: int, response: httpx.Response | None = None) -> float:
        """Seconds to wait before retry ``attempt + 1``."""
        wait = min(2**attempt + random.uniform(0, 1), _MAX_BACKOFF)
        if response is not None and response.status_code == 429:
            try:
                wait = max(wait, min(float(response.headers.get("Retry-After", 0)), _MAX_BACKOFF))
            except ValueError:
                logger.debug("Ignoring malformed Retry-After %r", response.headers["Retry-After"])
        return wait

    async def fetch(self, url: str) -> bytes:
        """GET ``url`` and return its body."""
        client = await self._get_client()
        attempts = self._max_retries + 1

        for attempt in range(attempts):
            last = attempt == attempts - 1
            try:
                response = await client.get(url)
            except _NETWORK_ERRORS as exc:
                if last:
                    logger.error("%s fetching %s after %d attempts", type(exc).__name__, url, attempts)
                    raise TransportFailure(f"Failed to fetch {url}: {exc}", url=url) from exc
                wait = self._backoff(attempt)
                logger.warning(
                    "%s fetching %s (attempt %d/%d), retrying in %.1fs",
                    type(exc).__name__, url, attempt + 1, attempts, wait,
                )
                await asyncio.sleep(wait)
                continue
            except httpx.HTTPError as exc:
                raise TransportFailure(f"Failed to fetch {url}: {exc}", url=url) from exc

            if response.status_code in _RETRYABLE_STATUS_CODES and not last:
                wait = self._backoff(attempt, response)
                logger.warning(
                    "HTTP %d fetching %s (attempt %d/%d), retrying in %.1fs",
                    response.status_code, url, attempt + 1, attempts, wait,
                )
                await asyncio.sleep(wait)
                continue

            if not response.is_success:
                if response.status_code in _RETRYABLE_STATUS_CODES:
                    logger.error("HTTP %d fetching %s after %d attempts", response.status_code, url, attempts)
                raise TransportFailure(f"HTTP {response.status_code} fetching {url}", url=url)

            logger.debug("Fetched %d bytes from %s", len(response.content), url)
            return response.content

        raise TransportFailure(f"Failed to fetch {url}", url=url)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()
