"""
POPSTATS - Master Server Collector

Polls every configured TES3MP master server concurrently and sums the
reported server and player counts.

The master servers are redundant mirrors of each other's listings, each
covering the servers registered with it. A mirror that is down, slow or
returns garbage contributes nothing to the cycle; it never aborts it.

Expected body of ``/api/servers/info``::

    {"servers": 42, "players": 117, ...}
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

import httpx

from popstats.core.config import Settings, get_settings
from popstats.core.errors import FetchError, ParseError
from popstats.services.collectors.base_collector import BaseCollector

logger = logging.getLogger(__name__)


@dataclass
class SourceResult:
    """Outcome of polling one master server."""

    url: str
    success: bool
    servers: int = 0
    players: int = 0
    error: Optional[str] = None


@dataclass
class MergeResult:
    """Totals of one merge cycle plus the per-source outcomes."""

    servers: int = 0
    players: int = 0
    sources: List[SourceResult] = field(default_factory=list)

    @property
    def failed_sources(self) -> List[SourceResult]:
        return [s for s in self.sources if not s.success]

    @property
    def succeeded(self) -> int:
        return sum(1 for s in self.sources if s.success)


def _read_count(doc: dict, key: str, url: str) -> int:
    if key not in doc:
        raise ParseError(f"missing '{key}' field", source=url)
    value = doc[key]
    # bool is an int subclass
    if isinstance(value, bool):
        raise ParseError(f"'{key}' is not a number: {value!r}", source=url)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise ParseError(f"'{key}' is not an integer: {value!r}", source=url)
    if value < 0:
        raise ParseError(f"'{key}' is negative: {value}", source=url)
    return value


def parse_stats(body: str, url: str = "") -> Tuple[int, int]:
    """
    Parse a master server stats document.

    Returns:
        ``(servers, players)``

    Raises:
        ParseError: If the body is not a JSON object with non-negative
            integer ``servers`` and ``players`` fields.
    """
    try:
        doc = json.loads(body)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f"invalid JSON: {e}", source=url) from e

    if not isinstance(doc, dict):
        raise ParseError(f"expected a JSON object, got {type(doc).__name__}", source=url)

    return _read_count(doc, "servers", url), _read_count(doc, "players", url)


class MasterServerCollector(BaseCollector):
    """Fan-out/fan-in collector over the redundant master servers."""

    def __init__(
        self,
        urls: Optional[Sequence[str]] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = settings or get_settings()
        super().__init__(
            name="master-servers",
            timeout=settings.FETCH_TIMEOUT_SECONDS,
            user_agent=settings.USER_AGENT,
            transport=transport,
        )
        self.urls: List[str] = list(urls if urls is not None else settings.MASTER_SERVER_URLS)

    async def fetch_source(self, url: str) -> SourceResult:
        """Fetch and parse one master server; failures become a zero result."""
        logger.info(f"Fetching {url}...")
        try:
            body = await self.fetch_text(url)
            servers, players = parse_stats(body, url)
        except FetchError as e:
            logger.error(f"Failed to fetch {url}: {e.message}")
            return SourceResult(url=url, success=False, error=str(e))
        except ParseError as e:
            logger.error(f"Failed to parse response from {url}: {e.message}")
            return SourceResult(url=url, success=False, error=str(e))

        logger.info(f"Successfully fetched {url}: {servers} servers, {players} players")
        return SourceResult(url=url, success=True, servers=servers, players=players)

    async def collect(self, **kwargs: Any) -> MergeResult:
        """
        Poll every master server concurrently and sum the counts.

        Completes once every source has answered or failed; each source is
        bounded by its own timeout.
        """
        outcomes = await asyncio.gather(
            *(self.fetch_source(url) for url in self.urls),
            return_exceptions=True,
        )

        result = MergeResult()
        for url, outcome in zip(self.urls, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error(f"Unexpected error polling {url}: {outcome!r}")
                outcome = SourceResult(url=url, success=False, error=repr(outcome))
            result.sources.append(outcome)
            if outcome.success:
                result.servers += outcome.servers
                result.players += outcome.players

        logger.info(
            f"{result.servers} servers and {result.players} players "
            f"({result.succeeded}/{len(self.urls)} master servers answered)"
        )
        return result
