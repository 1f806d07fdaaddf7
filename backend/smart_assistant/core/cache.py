"""
Redis connection management.

Redis backs the shared rate-limit buckets and daily usage counters when
REDIS_URL is set. Connection problems never stop the service: callers get
None and fall back to process-local stores.
"""
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from smart_assistant.core.logging import get_logger

logger = get_logger(__name__)


async def create_redis_client(redis_url: Optional[str]) -> Optional[Redis]:
    """
    Connect to Redis and verify the connection with PING.

    Args:
        redis_url: redis:// URL, or None to disable Redis

    Returns:
        Connected client, or None when disabled or unreachable
    """
    if not redis_url:
        logger.info("redis_disabled", reason="REDIS_URL not set")
        return None

    client: Optional[Redis] = None
    try:
        logger.info("redis_initializing")
        client = Redis.from_url(
            redis_url,
            max_connections=20,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            decode_responses=True,
        )
        await client.ping()
        logger.info("redis_initialized")
        return client
    except (RedisError, OSError) as e:
        logger.error(
            "redis_initialization_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        if client is not None:
            await close_redis(client)
        return None


async def close_redis(client: Optional[Redis]) -> None:
    """Close a Redis client and its connection pool."""
    if client is None:
        return
    try:
        await client.aclose()
        logger.info("redis_closed")
    except Exception as e:
        logger.error(
            "redis_close_failed",
            error=str(e),
            error_type=type(e).__name__,
        )


async def ping_redis(client: Optional[Redis]) -> bool:
    """Health probe. False when Redis is disabled or not answering."""
    if client is None:
        return False
    try:
        return bool(await client.ping())
    except (RedisError, OSError):
        return False
