"""ARQ (Async Redis Queue) configuration utilities.

Parses the Redis connection settings from the application config into
ARQ-compatible RedisSettings and hands out a shared enqueue pool.
"""

from typing import Optional
from urllib.parse import urlparse

from arq import ArqRedis, create_pool
from arq.connections import RedisSettings
from libs.common.config import get_settings

_pool: Optional[ArqRedis] = None


def get_redis_settings() -> RedisSettings:
    """Parse REDIS_URL from application settings into ARQ RedisSettings."""
    settings = get_settings()
    parsed = urlparse(settings.REDIS_URL)

    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        database=int(parsed.path.lstrip("/") or "0"),
        password=parsed.password,
        conn_timeout=2,
        conn_retries=1,
    )


async def get_task_pool() -> ArqRedis:
    """Return the process-wide ARQ pool, creating it on first use."""
    global _pool
    if _pool is None:
        _pool = await create_pool(get_redis_settings())
    return _pool


async def close_task_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.aclose()
        _pool = None
