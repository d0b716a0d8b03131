"""
Cache Utilities for Billing

Provides cache key management and invalidation functions for billing data.
Uses Redis for caching the balance snapshot served by the balance endpoint.
Cache failures never fail the calling operation.
"""

import json
import logging
from typing import Optional

from imagegen.core.conf import settings

logger = logging.getLogger(__name__)


def balance_cache_key(user_id: str) -> str:
    """Redis key for a user's balance snapshot."""
    return f"{settings.BILLING_BALANCE_REDIS_PREFIX}:{user_id}"


async def get_cached_balance(user_id: str) -> Optional[dict]:
    """
    Read a cached balance snapshot.

    Args:
        user_id: Owner of the balance

    Returns:
        The cached snapshot, or None on miss or error
    """
    try:
        from imagegen.database.redis import redis_client

        cached = await redis_client.get(balance_cache_key(user_id))
        if cached:
            return json.loads(cached)
        return None

    except Exception as e:
        logger.warning(f"[CACHE] Failed to read balance cache for {user_id}: {e}")
        return None


async def set_cached_balance(user_id: str, snapshot: dict) -> bool:
    """Store a balance snapshot with the configured TTL."""
    try:
        from imagegen.database.redis import redis_client

        await redis_client.setex(
            balance_cache_key(user_id),
            settings.BILLING_BALANCE_CACHE_SECONDS,
            json.dumps(snapshot, default=str),
        )
        return True

    except Exception as e:
        logger.warning(f"[CACHE] Failed to write balance cache for {user_id}: {e}")
        return False


async def invalidate_balance_cache(user_id: str) -> bool:
    """
    Invalidate the cached balance for a user.

    Should be called whenever credits are granted or a plan is activated.

    Args:
        user_id: The user whose cache should be invalidated

    Returns:
        True if cache was invalidated, False on error
    """
    try:
        from imagegen.database.redis import redis_client

        await redis_client.delete(balance_cache_key(user_id))

        logger.debug(f"[CACHE] Invalidated balance cache for {user_id}")
        return True

    except Exception as e:
        logger.warning(f"[CACHE] Failed to invalidate balance cache for {user_id}: {e}")
        return False
