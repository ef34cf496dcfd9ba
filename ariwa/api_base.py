# Ariwa - Cached API Client Base
"""
Shared request, auth and read-through caching logic for the REST wrappers.

Each wrapper instance owns its own cache; nothing is shared between instances.
"""

import time
from typing import Any, Callable, Dict, Mapping, Optional

import httpx
import structlog

from .cache import MISSING, TTLCache, cache_key
from .http import fetch_json
from .result import Err, Ok, Result

logger = structlog.get_logger(__name__)

DEFAULT_CACHE_TTL = 5 * 60.0  # seconds
DEFAULT_TIMEOUT = 30.0


class CachedAPIClient:
    """Base class for the token-authenticated, cached REST wrappers.

    Subclasses set ``SERVICE_NAME`` (used in the missing-token message) and
    build their public methods on ``_get`` and ``_fetch``.

    Attributes:
        base_url: API base URL, paths are appended to it
        cache_ttl: Lifetime of cached GET responses in seconds
        timeout: Request timeout in seconds
    """

    SERVICE_NAME = "API"

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        cache_ttl: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            base_url: API base URL
            token: API token sent as the Authorization header
            cache_ttl: Cache lifetime in seconds (default 5 minutes)
            client: Optional shared httpx client, owned and closed by the
                caller; without one a session client is opened by
                ``async with`` or a short-lived client is used per request
            timeout: Request timeout in seconds for clients created here
            clock: Monotonic clock used by the cache
        """
        self.base_url = base_url.rstrip("/")
        self._token = token
        self.cache_ttl = DEFAULT_CACHE_TTL if cache_ttl is None else cache_ttl
        self.timeout = timeout
        self._client = client
        self._owns_client = False
        self._cache = TTLCache(clock=clock)

    async def __aenter__(self) -> "CachedAPIClient":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
            logger.debug("http_client_created", base_url=self.base_url)
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the session client opened by ``async with``.

        An injected client is left open for its owner to close.
        """
        if self._owns_client and self._client is not None:
            if not self._client.is_closed:
                await self._client.aclose()
            self._client = None
            self._owns_client = False

    @property
    def token(self) -> Optional[str]:
        return self._token

    @token.setter
    def token(self, value: Optional[str]) -> None:
        self._token = value

    @property
    def missing_token_message(self) -> str:
        return f"{self.SERVICE_NAME} token not provided"

    def _get_auth_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "Authorization": self._token or ""}

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Result[Any]:
        url = f"{self.base_url}{path}"
        headers = self._get_auth_headers()
        if self._client is not None:
            return await fetch_json(self._client, method, url, headers=headers, params=params, body=body)

        # httpx.AsyncClient is bound to the loop it was created in, so a fresh
        # client per request keeps the wrapper usable from any event loop.
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await fetch_json(client, method, url, headers=headers, params=params, body=body)

    async def _fetch(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Result[Any]:
        """Send an authenticated request without touching the cache."""
        if not self._token:
            return Err(self.missing_token_message)
        return await self._request(method, path, params=params, body=body)

    async def _get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Result[Any]:
        """Read-through GET: serve a live cache entry or fetch and populate."""
        if not self._token:
            return Err(self.missing_token_message)

        key = cache_key(path, params)
        cached = self._cache.get(key, MISSING)
        if cached is not MISSING:
            logger.debug("api_cache_hit", key=key)
            return Ok(cached)

        result = await self._fetch("GET", path, params=params)
        if result.is_ok():
            self._cache.set(key, result.unwrap(), self.cache_ttl)
        return result

    def invalidate_cache(self, path: str, query: Optional[Mapping[str, Any]] = None) -> None:
        """Drop the cache entry derived from ``path`` and ``query``."""
        self._cache.invalidate(cache_key(path, query))

    def clear_cache(self) -> None:
        self._cache.clear()
