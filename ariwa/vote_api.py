# Ariwa - websockets-topgg REST Client
"""
Cached REST wrapper for the websockets-topgg API.

Covers the entity bound to the token, per-user vote data, and the per-user
reminder toggle.
"""

from typing import Any, Optional

import structlog

from .api_base import CachedAPIClient
from .result import Err, Result

logger = structlog.get_logger(__name__)

VOTE_API_BASE_URL = "https://api.websockets-topgg.com/v0/api"


class VoteServiceAPI(CachedAPIClient):
    """
    Async client for the websockets-topgg REST API.

    Provides methods for:
    - The entity (bot or server) owning the token
    - User vote statistics
    - Enabling or disabling vote reminders for a user
    """

    SERVICE_NAME = "websockets-topgg"

    def __init__(self, token: Optional[str] = None, base_url: str = VOTE_API_BASE_URL, **kwargs: Any):
        super().__init__(base_url, token=token, **kwargs)

    async def get_entity(self) -> Result[dict]:
        """Fetch the entity associated with the token from GET /entity."""
        return await self._get("/entity")

    async def get_user(self, user_id: str) -> Result[dict]:
        """Fetch vote data for a user from GET /user/{user_id}."""
        return await self._get(f"/user/{user_id}")

    async def set_user_reminders(self, user_id: str, enabled: Optional[bool]) -> Result[dict]:
        """
        Enable or disable vote reminders for a user.

        Sends PATCH /user/{user_id}/reminders. On success the cached user
        entry is dropped so the next ``get_user`` sees the new setting.

        Args:
            user_id: User snowflake
            enabled: True to enable reminders, False to disable

        Returns:
            Updated user on success
        """
        if not isinstance(enabled, bool):
            return Err("remindersEnabled must be true or false")

        result = await self._fetch("PATCH", f"/user/{user_id}/reminders", body={"enable": enabled})
        if result.is_ok():
            self.invalidate_cache(f"/user/{user_id}")
            logger.debug("user_reminders_updated", user_id=user_id, enabled=enabled)
        return result
