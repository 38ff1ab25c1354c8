"""Redis connection shared by the chat hub and the rate limiter.

Learn: Redis pub/sub is fire-and-forget. If no one is listening, the message
is lost. That's fine for chat fan-out: messages are persisted first and
clients reload history via room_history / GET /chat/messages.

Channel naming: peerconnect:group:{group_id} and peerconnect:user:{user_id}
"""

from typing import Optional

import redis.asyncio as aioredis

from peerconnect.config import settings

CHANNEL_PREFIX = "peerconnect"

# Global Redis connection pool (initialized in lifespan)
_redis: Optional[aioredis.Redis] = None


async def init_redis() -> aioredis.Redis:
    """Initialize the Redis connection pool."""
    global _redis
    client = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Verify connection before publishing it
    await client.ping()
    _redis = client
    return _redis


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> aioredis.Redis:
    """Get the Redis connection (must be initialized first)."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


def group_channel(group_id) -> str:
    return f"{CHANNEL_PREFIX}:group:{group_id}"


def user_channel(user_id) -> str:
    return f"{CHANNEL_PREFIX}:user:{user_id}"
