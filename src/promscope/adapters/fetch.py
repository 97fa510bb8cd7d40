"""HTTP fetch controller with retry, backoff and failure classification.

Each polling cycle makes up to ``max_attempts`` requests, each bounded by
the poll interval, sleeping ``backoff_base * 2 ** (attempt - 1)`` between
attempts. Errors are classified so callers can tell a timeout from a
blocked request or a bad status code.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx

from promscope.core.config import DEFAULT_CONFIG, ExplorerConfig
from promscope.core.exceptions import FetchFailure

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def classify_fetch_error(exc: BaseException) -> tuple[str, str]:
    """Map an exception raised while fetching to ``(kind, message)``.

    Timeouts map to ``timeout``, low-level transport failures to ``cors``
    (a blocked cross-origin request looks the same as a refused
    connection at this level), non-2xx responses to ``http`` and anything
    else to ``network``.
    """
    if isinstance(exc, httpx.TimeoutException | TimeoutError):
        return "timeout", "Request timed out"
    if isinstance(exc, httpx.HTTPStatusError):
        return "http", f"HTTP error! status: {exc.response.status_code}"
    if isinstance(exc, httpx.TransportError):
        return "cors", "Network request failed (likely CORS or connection issue)"
    return "network", str(exc) or "Unknown error"


def backoff_delay(attempt: int, base: float) -> float:
    """Delay after failed ``attempt`` (1-based): base, 2*base, 4*base, ..."""
    return base * 2 ** (attempt - 1)


async def fetch_exposition(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: dict[str, str] | None = None,
    max_attempts: int = DEFAULT_CONFIG.max_attempts,
    timeout: float = DEFAULT_CONFIG.poll_interval_seconds,
    backoff_base: float = DEFAULT_CONFIG.backoff_base_seconds,
    sleep: Sleep = asyncio.sleep,
) -> str:
    """Fetch exposition text, retrying with exponential backoff.

    Args:
        client: HTTP client to issue requests with.
        url: URL to GET.
        params: Optional query parameters.
        max_attempts: Attempts before giving up.
        timeout: Per-attempt timeout in seconds.
        backoff_base: Delay after the first failed attempt.
        sleep: Awaitable sleep, injectable for tests.

    Returns:
        The response body text.

    Raises:
        FetchFailure: Every attempt failed; carries the last error.
    """
    kind, message = "network", "Unknown error"
    for attempt in range(1, max_attempts + 1):
        try:
            async with asyncio.timeout(timeout):
                response = await client.get(url, params=params, timeout=timeout)
                response.raise_for_status()
                return response.text
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            kind, message = classify_fetch_error(exc)
            logger.warning(
                "Fetch error (attempt %d/%d) from %s: %s",
                attempt,
                max_attempts,
                url,
                message,
            )
        if attempt < max_attempts:
            await sleep(backoff_delay(attempt, backoff_base))

    logger.error("Giving up on %s after %d attempts: %s", url, max_attempts, message)
    raise FetchFailure(kind, message, attempts=max_attempts)


class HttpExpositionSource:
    """ExpositionSourcePort implementation backed by httpx.

    When ``proxy_base`` is given and the config enables the proxy, the
    target is requested through the CORS relay as
    ``<proxy_base><proxy_path>?url=<target>``.

    Args:
        url: Metrics endpoint to scrape.
        client: Shared client; one is created (and owned) when omitted.
        config: Retry, timeout and proxy settings.
        proxy_base: Base URL of the relay, e.g. ``http://localhost:3001``.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient | None = None,
        config: ExplorerConfig = DEFAULT_CONFIG,
        proxy_base: str | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.url = url
        self.config = config
        self.proxy_base = proxy_base
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep

    def request_target(self) -> tuple[str, dict[str, str] | None]:
        """Return the URL and query params the next request will use."""
        if self.config.use_proxy and self.proxy_base:
            proxy = f"{self.proxy_base.rstrip('/')}{self.config.proxy_path}"
            return proxy, {"url": self.url}
        return self.url, None

    async def fetch(self) -> str:
        """Fetch one scrape, raising FetchFailure when retries run out."""
        if self._client is None:
            self._client = httpx.AsyncClient()
        url, params = self.request_target()
        return await fetch_exposition(
            self._client,
            url,
            params=params,
            max_attempts=self.config.max_attempts,
            timeout=self.config.poll_interval_seconds,
            backoff_base=self.config.backoff_base_seconds,
            sleep=self._sleep,
        )

    async def aclose(self) -> None:
        """Close the client if this source created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
