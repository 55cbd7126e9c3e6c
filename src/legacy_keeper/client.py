"""Shared async HTTP client for Atlassian services with rate limiting and retry."""

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from legacy_keeper.exceptions import NetworkError, RateLimitError, error_from_status

logger = logging.getLogger(__name__)


class AtlassianClient(ABC):
    """Basic-auth JSON client used by the Jira, Bitbucket and Confluence adapters.

    Non-2xx responses are mapped onto the error taxonomy. Rate limiting and
    network failures are retried with exponential backoff; every other error
    propagates immediately.
    """

    service = "atlassian"

    def __init__(
        self,
        base_url: str,
        username: str,
        secret: str,
        requests_per_second: float = 5.0,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.requests_per_second = requests_per_second
        self.timeout = timeout
        self._transport = transport
        self._last_request_time: float = 0.0

        credentials = f"{username}:{secret}"
        encoded = base64.b64encode(credentials.encode()).decode()
        self._auth_header = f"Basic {encoded}"

    async def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        if self.requests_per_second <= 0:
            return
        min_interval = 1.0 / self.requests_per_second
        loop = asyncio.get_running_loop()
        elapsed = loop.time() - self._last_request_time
        if elapsed < min_interval:
            await asyncio.sleep(min_interval - elapsed)
        self._last_request_time = loop.time()

    @retry(
        retry=retry_if_exception_type((RateLimitError, NetworkError)),
        wait=wait_exponential(multiplier=1, min=2, max=60),
        stop=stop_after_attempt(5),
        reraise=True,
    )
    async def _request(
        self,
        method: str,
        url: str,
        params: dict | list | None = None,
        json: dict | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated request.

        ``url`` may be absolute (pagination links) or relative to ``base_url``.
        """
        await self._rate_limit()

        if not url.startswith("http"):
            url = f"{self.base_url}{url}"
        headers = {
            "Authorization": self._auth_header,
            "Accept": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, headers=headers, params=params, json=json)
        except httpx.TimeoutException as e:
            logger.warning(f"{self.service} request timed out: {method} {url}")
            raise NetworkError(f"{self.service} request timed out") from e
        except httpx.TransportError as e:
            logger.warning(f"{self.service} unreachable: {type(e).__name__}")
            raise NetworkError(f"{self.service} is unreachable") from e

        if response.status_code >= 400:
            retry_header = response.headers.get("Retry-After", "")
            retry_after = int(retry_header) if retry_header.isdigit() else 60
            if response.status_code == 429:
                logger.warning(f"{self.service} rate limited. Waiting {retry_after}s...")
            else:
                logger.error(f"{self.service} returned HTTP {response.status_code} for {method} {url}")
            raise error_from_status(response.status_code, self.service, retry_after)

        if not response.content:
            return {}
        return response.json()

    @abstractmethod
    async def check_connection(self) -> bool:
        """Return True if the service accepts the configured credentials."""
        pass
