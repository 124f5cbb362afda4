"""Redis client for idempotency keys.

Usage:
    from exchange_marketplace.infrastructure.redis_client import get_redis, close_redis

    redis = get_redis()
    await redis.set("key", "value", ex=3600)
"""

from __future__ import annotations

import redis.asyncio as aioredis

from exchange_marketplace.config import get_settings
from exchange_marketplace.logging_config import get_logger

logger = get_logger(__name__)

_redis_client: aioredis.Redis | None = None


async def init_redis() -> aioredis.Redis:
    """Initialize and return the Redis client. Called during app startup."""
    global _redis_client
    settings = get_settings()
    _redis_client = aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
    )
    # Verify connectivity
    await _redis_client.ping()
    logger.info("redis.connected", url=settings.redis_url)
    return _redis_client


def get_redis() -> aioredis.Redis:
    """Return the Redis client singleton. Must call init_redis() first."""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


async def close_redis() -> None:
    """Close the Redis connection. Called during app shutdown."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        logger.info("redis.disconnected")
        _redis_client = None


# --- Idempotency Helpers ---


async def claim_idempotency(key: str, value: str = "1") -> bool:
    """Atomically claim an idempotency key for the configured TTL.

    Returns True if the key was free (first use), False if it was already taken.
    Without a Redis connection the check is skipped.
    """
    if _redis_client is None:
        logger.warning("idempotency.unchecked", key=key, reason="redis not initialized")
        return True
    settings = get_settings()
    claimed = await _redis_client.set(
        f"idempotency:{key}",
        value,
        ex=settings.redis_idempotency_ttl_seconds,
        nx=True,
    )
    if not claimed:
        logger.warning("idempotency.duplicate", key=key)
    return bool(claimed)
