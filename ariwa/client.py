# Ariwa - Unified Client
"""
Facade combining the vote stream and both REST wrappers.

    client = AriwaClient(ws_token="...", name="my-bot", topgg_token="...")
    client.on("vote", lambda payload: print(payload["user"]["id"]))
    client.connect()

    result = asyncio.run(client.topgg.get_bot("1234"))
    if result.is_ok():
        print(result.unwrap()["username"])
"""

from pathlib import Path
from typing import Any, Optional, Union

import httpx

from .backoff import DEFAULT_INITIAL_DELAY, DEFAULT_MAX_DELAY
from .config import Settings, get_settings
from .events import EventEmitter, Listener
from .models import VALID_EVENTS
from .stream_client import DISCONNECT_TIMEOUT, WS_URL, VoteStreamClient
from .topgg_api import DEFAULT_RATE_LIMIT_COOLDOWN, TOPGG_BASE_URL, TopGGAPI
from .vote_api import VOTE_API_BASE_URL, VoteServiceAPI


class AriwaClient:
    """Vote stream plus cached REST access for websockets-topgg and Top.gg.

    Attributes:
        ws_api: websockets-topgg REST wrapper
        topgg: Top.gg REST wrapper
        stream: Underlying stream state machine
        events: Event registry shared with the stream
    """

    def __init__(
        self,
        ws_token: str,
        name: str,
        topgg_token: Optional[str] = None,
        cache_ttl: Optional[float] = None,
        auto_reconnect: bool = True,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        max_attempts: Optional[int] = None,
        persist_path: Optional[Union[str, Path]] = None,
        ws_url: str = WS_URL,
        disconnect_timeout: float = DISCONNECT_TIMEOUT,
        rate_limit_cooldown: float = DEFAULT_RATE_LIMIT_COOLDOWN,
        api_url: Optional[str] = None,
        topgg_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            ws_token: websockets-topgg token (stream and REST)
            name: Client display name sent in the stream handshake
            topgg_token: Top.gg API token; Top.gg calls fail without it
            cache_ttl: REST cache lifetime in seconds (default 5 minutes)
            auto_reconnect: Reconnect after abnormal closes
            initial_delay: Base reconnect delay in seconds
            max_delay: Ceiling for the exponential part of the delay
            max_attempts: Reconnect attempts before giving up
            persist_path: File to persist the resumption marker in
            ws_url: Stream endpoint
            disconnect_timeout: Seconds ``disconnect`` waits for the close
            rate_limit_cooldown: Top.gg lockout after a 429, in seconds
            api_url: websockets-topgg REST base URL override
            topgg_url: Top.gg REST base URL override
            http_client: Shared httpx client for both wrappers
        """
        self.events = EventEmitter(VALID_EVENTS)
        self.stream = VoteStreamClient(
            token=ws_token,
            name=name,
            events=self.events,
            url=ws_url,
            auto_reconnect=auto_reconnect,
            initial_delay=initial_delay,
            max_delay=max_delay,
            max_attempts=max_attempts,
            persist_path=persist_path,
            disconnect_timeout=disconnect_timeout,
        )

        # Each wrapper gets its own cache
        self.ws_api = VoteServiceAPI(
            token=ws_token,
            base_url=api_url or VOTE_API_BASE_URL,
            cache_ttl=cache_ttl,
            client=http_client,
        )
        self.topgg = TopGGAPI(
            token=topgg_token,
            base_url=topgg_url or TOPGG_BASE_URL,
            rate_limit_cooldown=rate_limit_cooldown,
            cache_ttl=cache_ttl,
            client=http_client,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides: Any) -> "AriwaClient":
        """Build a client from ``ARIWA_*`` settings."""
        settings = settings or get_settings()
        options = {
            "ws_token": settings.ws_token,
            "name": settings.client_name,
            "topgg_token": settings.topgg_token,
            "cache_ttl": settings.cache_ttl,
            "auto_reconnect": settings.auto_reconnect,
            "initial_delay": settings.reconnect_initial_delay,
            "max_delay": settings.reconnect_max_delay,
            "max_attempts": settings.reconnect_max_attempts,
            "persist_path": settings.persist_path,
            "ws_url": settings.ws_url,
            "disconnect_timeout": settings.disconnect_timeout,
            "rate_limit_cooldown": settings.rate_limit_cooldown,
            "api_url": settings.api_url,
            "topgg_url": settings.topgg_url,
        }
        options.update(overrides)
        return cls(**options)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def on(self, event: str, listener: Listener) -> Listener:
        """Subscribe to ready, vote, test, reminder, disconnected, error,
        unknownOp or open."""
        return self.events.on(event, listener)

    def once(self, event: str, listener: Listener) -> Listener:
        return self.events.once(event, listener)

    def off(self, event: str, listener: Listener) -> None:
        self.events.off(event, listener)

    # -------------------------------------------------------------------------
    # Stream
    # -------------------------------------------------------------------------

    def connect(self, last_message_timestamp: Optional[int] = None) -> None:
        """Open the vote stream, resuming from the given or persisted marker."""
        self.stream.connect(last_message_timestamp)

    def disconnect(self, timeout: Optional[float] = None) -> None:
        """Close the vote stream; raises DisconnectTimeoutError on timeout."""
        self.stream.disconnect(timeout)

    @property
    def last_message_timestamp(self) -> Optional[int]:
        return self.stream.last_message_timestamp

    def is_connected(self) -> bool:
        return self.stream.is_connected()
