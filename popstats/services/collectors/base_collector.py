"""
POPSTATS - Base Collector Framework

Abstract base class for collectors that poll remote HTTP endpoints.
Each request is a single GET bounded by a per-call timeout; failures are
raised as FetchError and never retried.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from popstats.core.errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 2.0  # seconds


class BaseCollector(ABC):
    """
    Abstract base class for data collectors.

    Provides:
    - Shared HTTP client with connection pooling
    - Single-attempt GET with a hard per-request timeout
    """

    def __init__(
        self,
        name: str,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.name = name
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BaseCollector":
        await self.get_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _get_headers(self) -> Dict[str, str]:
        """Get request headers. Override in subclasses for auth."""
        headers = {"Accept": "application/json"}
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        return headers

    async def fetch_text(self, url: str) -> str:
        """
        Issue one GET request and return the complete body as text.

        The whole exchange (connect, response and body) must finish within
        ``self.timeout`` seconds.

        Raises:
            FetchError: On network error, non-2xx status or timeout.
        """
        client = await self.get_client()
        logger.debug(f"[{self.name}] GET {url}")

        try:
            response = await asyncio.wait_for(
                client.get(url, headers=self._get_headers()),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except asyncio.TimeoutError as e:
            raise FetchError(url, f"timed out after {self.timeout:.1f}s") from e
        except httpx.HTTPStatusError as e:
            raise FetchError(url, f"HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise FetchError(url, f"timed out after {self.timeout:.1f}s") from e
        except httpx.HTTPError as e:
            raise FetchError(url, f"{type(e).__name__}: {e}") from e

        logger.debug(f"[{self.name}] {url} -> HTTP {response.status_code}, {len(response.content)} bytes")
        return response.text

    @abstractmethod
    async def collect(self, **kwargs) -> Any:
        """
        Collect data from source.

        Must be implemented by subclasses.
        """
        pass
