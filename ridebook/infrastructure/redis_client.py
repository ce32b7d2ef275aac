"""Redis async connection pool backing the persisted client state."""

from typing import Optional

import redis.asyncio as aioredis

from ridebook.config import settings

_pool: Optional[aioredis.ConnectionPool] = None


async def get_redis(url: str = settings.redis_url) -> aioredis.Redis:
    """Return a Redis client backed by the shared connection pool."""
    global _pool
    if _pool is None:
        _pool = aioredis.ConnectionPool.from_url(url, decode_responses=True)
    return aioredis.Redis(connection_pool=_pool)
