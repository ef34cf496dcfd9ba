# Ariwa - Top.gg REST Client
"""
Cached REST wrapper for a subset of the Top.gg bot-listing API.

Adds a rate-limit lockout on top of the shared caching behaviour: after a 429
response every call fails fast until the cooldown window has passed.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

import structlog

from .api_base import CachedAPIClient
from .result import Err, Ok, Result

logger = structlog.get_logger(__name__)

TOPGG_BASE_URL = "https://top.gg/api"

# Top.gg does not document when a 429 lockout lifts; calibrate against the
# service's rate-limit headers if they become available.
DEFAULT_RATE_LIMIT_COOLDOWN = 60.0  # seconds


class TopGGAPI(CachedAPIClient):
    """
    Async client for the Top.gg API.

    Provides methods for:
    - Bot search and lookup
    - Recent voters and vote checks
    - Reading and posting server/shard statistics

    Attributes:
        rate_limit_cooldown: Seconds to lock out all calls after a 429
        rate_limit_reset: Wall-clock time (epoch seconds) the lockout ends, if any
    """

    SERVICE_NAME = "Top.gg"

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = TOPGG_BASE_URL,
        rate_limit_cooldown: float = DEFAULT_RATE_LIMIT_COOLDOWN,
        wall_clock: Callable[[], float] = time.time,
        **kwargs: Any,
    ):
        super().__init__(base_url, token=token, **kwargs)
        self.rate_limit_cooldown = rate_limit_cooldown
        self.rate_limit_reset: Optional[float] = None
        self._wall_clock = wall_clock

    def is_rate_limited(self) -> bool:
        return self.rate_limit_reset is not None and self._wall_clock() < self.rate_limit_reset

    async def _fetch(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Result[Any]:
        if not self._token:
            return Err(self.missing_token_message)
        if self.is_rate_limited():
            until = datetime.fromtimestamp(self.rate_limit_reset, tz=timezone.utc)
            return Err(f"Rate limited until {until.isoformat(timespec='milliseconds')}")

        result = await self._request(method, path, params=params, body=body)
        if result.is_err() and result.status == 429:
            self.rate_limit_reset = self._wall_clock() + self.rate_limit_cooldown
            logger.warning(
                "topgg_rate_limited",
                path=path,
                cooldown_seconds=self.rate_limit_cooldown,
            )
            return Err("Rate limit exceeded, retry later", status=429)
        return result

    # -------------------------------------------------------------------------
    # Bots
    # -------------------------------------------------------------------------

    async def get_bots(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        sort: Optional[str] = None,
        fields: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Result[dict]:
        """
        Search bots via GET /bots.

        Args:
            limit: Maximum number of bots to return
            offset: Number of bots to skip
            sort: Field to sort by
            fields: Comma separated list of fields to include
            search: Search query

        Returns:
            Page with ``results``, ``limit``, ``offset``, ``count`` and ``total``
        """
        params = {"limit": limit, "offset": offset, "sort": sort, "fields": fields, "search": search}
        return await self._get("/bots", params={k: v for k, v in params.items() if v is not None})

    async def get_bot(self, bot_id: str) -> Result[dict]:
        """Fetch a single bot from GET /bots/{bot_id}."""
        return await self._get(f"/bots/{bot_id}")

    async def get_votes(self, bot_id: str) -> Result[List[dict]]:
        """Fetch the last 1000 voters from GET /bots/{bot_id}/votes."""
        return await self._get(f"/bots/{bot_id}/votes")

    async def has_voted(self, bot_id: str, user_id: str) -> Result[bool]:
        """
        Check whether a user voted for a bot in the last 12 hours.

        Errors from the underlying check call are returned unchanged.
        """
        result = await self._get(f"/bots/{bot_id}/check", params={"userId": user_id})
        if result.is_err():
            return result
        body = result.unwrap()
        return Ok(isinstance(body, dict) and body.get("voted") == 1)

    # -------------------------------------------------------------------------
    # Stats
    # -------------------------------------------------------------------------

    async def get_stats(self, bot_id: str) -> Result[dict]:
        """Fetch server/shard statistics from GET /bots/{bot_id}/stats."""
        return await self._get(f"/bots/{bot_id}/stats")

    async def post_stats(
        self,
        bot_id: str,
        server_count: int,
        shard_count: Optional[int] = None,
        shards: Optional[List[int]] = None,
    ) -> Result[Any]:
        """
        Post server/shard statistics via POST /bots/{bot_id}/stats.

        On success both the cached stats and the cached bot detail are dropped,
        since the bot detail embeds the server count.

        Args:
            bot_id: Bot snowflake
            server_count: Number of servers the bot is in
            shard_count: Number of shards
            shards: Server count per shard

        Returns:
            Decoded response body
        """
        body: Dict[str, Any] = {"server_count": server_count}
        if shard_count is not None:
            body["shard_count"] = shard_count
        if shards is not None:
            body["shards"] = shards

        result = await self._fetch("POST", f"/bots/{bot_id}/stats", body=body)
        if result.is_ok():
            self.invalidate_cache(f"/bots/{bot_id}/stats")
            self.invalidate_cache(f"/bots/{bot_id}")
        return result
