# Ariwa - Configuration Module
"""
Configuration management using Pydantic Settings.

Loads client configuration from ``ARIWA_``-prefixed environment variables or a
``.env`` file, and offers an opt-in structlog setup for host applications. The
library itself never configures logging; the host decides verbosity.
"""

import logging
from functools import lru_cache
from typing import Optional

import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict

from .api_base import DEFAULT_CACHE_TTL
from .backoff import DEFAULT_INITIAL_DELAY, DEFAULT_MAX_DELAY
from .stream_client import DISCONNECT_TIMEOUT, WS_URL
from .topgg_api import DEFAULT_RATE_LIMIT_COOLDOWN, TOPGG_BASE_URL
from .vote_api import VOTE_API_BASE_URL


def configure_logging(debug: bool = False, log_format: str = "console") -> None:
    """Configure stdlib logging and structlog.

    Args:
        debug: Enable debug level logging
        log_format: "console" for human-readable output, "json" for JSON lines
    """
    log_level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[logging.StreamHandler()],
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class Settings(BaseSettings):
    """Client configuration loaded from the environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ARIWA_",
        case_sensitive=False,
        extra="ignore",
    )

    # Tokens
    ws_token: str = ""
    topgg_token: Optional[str] = None

    # Stream
    client_name: str = "ariwa"
    ws_url: str = WS_URL
    auto_reconnect: bool = True
    reconnect_initial_delay: float = DEFAULT_INITIAL_DELAY  # seconds
    reconnect_max_delay: float = DEFAULT_MAX_DELAY  # seconds
    reconnect_max_attempts: Optional[int] = None  # None = unbounded
    disconnect_timeout: float = DISCONNECT_TIMEOUT
    persist_path: Optional[str] = None

    # REST APIs
    api_url: str = VOTE_API_BASE_URL
    topgg_url: str = TOPGG_BASE_URL
    cache_ttl: float = DEFAULT_CACHE_TTL  # seconds
    rate_limit_cooldown: float = DEFAULT_RATE_LIMIT_COOLDOWN  # seconds

    # Logging
    debug: bool = False
    log_format: str = "console"  # "console" or "json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def init_logging() -> None:
    """Configure logging from settings.

    Call this early in application startup to ensure all logs are captured.
    """
    settings = get_settings()
    configure_logging(debug=settings.debug, log_format=settings.log_format)
