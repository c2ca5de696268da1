"""
Redis connection helpers
Shared by the rate limiter counters and the explanation cache
"""
import logging

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from practice_api.core.config import Settings

logger = logging.getLogger(__name__)


async def connect_to_redis(settings: Settings) -> aioredis.Redis:
    """Create an async Redis client and test the connection"""
    client = aioredis.Redis.from_url(settings.redis_url, decode_responses=True)
    try:
        await client.ping()
        logger.info(f"✓ Connected to Redis at {settings.redis_url}")
    except RedisError as e:
        logger.error(f"✗ Failed to connect to Redis: {e}")
        await client.aclose()
        raise
    return client


async def close_redis_connection(client: aioredis.Redis) -> None:
    if client is not None:
        await client.aclose()
        logger.info("✓ Closed Redis connection")


async def ping_redis(client: aioredis.Redis) -> bool:
    try:
        return bool(await client.ping())
    except RedisError as e:
        logger.error(f"❌ Redis ping failed: {e}")
        return False
