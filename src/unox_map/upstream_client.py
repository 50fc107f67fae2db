"""HTTP client for the station-list and Nominatim upstreams."""

import asyncio
import logging
import time

import httpx

from . import config
from .models import ProxyResponse

logger = logging.getLogger(__name__)


class RateLimiter:
    """Simple rate limiter to respect Nominatim's usage policy."""

    def __init__(self, requests_per_second: float):
        self.delay = 1.0 / requests_per_second if requests_per_second > 0 else 0.0
        self.last_request = 0.0
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        """Wait if necessary to respect rate limit."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self.last_request
            if elapsed < self.delay:
                await asyncio.sleep(self.delay - elapsed)
            self.last_request = time.monotonic()


class UpstreamClient:
    """Client relaying requests to the station list and geocoding services.

    Upstream HTTP errors are not raised: status and body are returned as a
    ProxyResponse so the proxy endpoints can pass them through. Transport
    failures propagate as ``httpx.HTTPError``.
    """

    def __init__(
        self,
        stations_url: str = config.STATIONS_UPSTREAM_URL,
        geocode_url: str = config.GEOCODE_UPSTREAM_URL,
        transport: httpx.AsyncBaseTransport | None = None,
        geocode_rate_limit: float = config.GEOCODE_RATE_LIMIT,
    ):
        self.stations_url = stations_url
        self.geocode_url = geocode_url
        self.transport = transport
        self.client: httpx.AsyncClient | None = None
        self.rate_limiter = RateLimiter(geocode_rate_limit)

    async def __aenter__(self):
        """Async context manager entry."""
        self.client = httpx.AsyncClient(
            timeout=config.HTTP_TIMEOUT,
            follow_redirects=True,
            headers={"accept": "application/json"},
            transport=self.transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        if self.client:
            await self.client.aclose()
            self.client = None

    async def _get(self, url: str, **kwargs) -> ProxyResponse:
        if not self.client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        try:
            response = await self.client.get(url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Upstream request to %s failed: %s", url, e)
            raise

        if response.is_error:
            logger.error(
                "Upstream %s answered %s %s",
                url,
                response.status_code,
                response.reason_phrase,
            )
        return ProxyResponse(
            status_code=response.status_code,
            reason_phrase=response.reason_phrase,
            body=response.content,
            content_type=response.headers.get("content-type"),
        )

    async def fetch_stations(self) -> ProxyResponse:
        """Fetch the raw station list.

        Returns:
            The upstream response, either ``[...]`` or ``{"items": [...]}``
            when successful.
        """
        return await self._get(self.stations_url)

    async def geocode(self, query: str, limit: str = config.DEFAULT_GEOCODE_LIMIT) -> ProxyResponse:
        """Search Nominatim for a free-text location.

        Args:
            query: Free-text search term, forwarded unchanged.
            limit: Maximum number of results, forwarded as given.

        Returns:
            The upstream response, a JSON array of places when successful.
        """
        params = {
            "format": "jsonv2",
            "addressdetails": "1",
            "limit": limit,
            "q": query,
        }
        if config.GEOCODE_COUNTRY_CODES:
            params["countrycodes"] = config.GEOCODE_COUNTRY_CODES

        await self.rate_limiter.wait()
        return await self._get(
            self.geocode_url,
            params=params,
            headers={"user-agent": config.USER_AGENT},
        )
