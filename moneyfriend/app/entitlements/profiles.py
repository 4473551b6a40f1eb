"""Profile sources feeding the subscription session cache."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Protocol

import asyncpg

from .models import UserSubscriptionProfile
from .resolver import coerce_profile

logger = logging.getLogger(__name__)

PROFILE_SQL = """
    SELECT subscription_type, trial_start, trial_end, is_admin
    FROM profiles
    WHERE id = $1
"""


class ProfileFetcher(Protocol):
    """External collaborator returning the signed-in user's profile."""

    async def fetch_current_user_profile(self) -> Optional[UserSubscriptionProfile]:
        ...


async def create_profile_pool(db_config: Dict[str, Any], *, timeout: float = 10.0) -> asyncpg.Pool:
    return await asyncpg.create_pool(
        min_size=1,
        max_size=5,
        command_timeout=10,
        timeout=timeout,
        **db_config,
    )


class PostgresProfileFetcher:
    """Reads subscription columns from ``profiles`` through an asyncpg pool.

    Any failure (no signed-in user, connection error, malformed row) yields
    ``None`` so callers see "profile unavailable" instead of an exception.
    """

    def __init__(self, pool: asyncpg.Pool, current_user_id: Callable[[], Optional[str]]) -> None:
        self._pool = pool
        self._current_user_id = current_user_id

    async def fetch_current_user_profile(self) -> Optional[UserSubscriptionProfile]:
        user_id = self._current_user_id()
        if not user_id:
            return None
        try:
            async with self._pool.acquire() as connection:
                row = await connection.fetchrow(PROFILE_SQL, user_id)
        except Exception:
            logger.exception("Failed to load subscription profile", extra={"user_id": user_id})
            return None
        if row is None:
            logger.info("No profile row for user %s", user_id)
            return None
        return coerce_profile(dict(row))
