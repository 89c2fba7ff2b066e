from __future__ import annotations

from redis import Redis
from redis.connection import ConnectionPool
from redis.exceptions import RedisError

from uaetrail.core.config import settings

_pool: ConnectionPool | None = None

# Rate limiting fails open; a slow Redis must not stall every request
_SOCKET_TIMEOUT_SECONDS = 0.5


def get_redis() -> Redis:
    global _pool
    if _pool is None:
        _pool = ConnectionPool.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=_SOCKET_TIMEOUT_SECONDS,
            socket_timeout=_SOCKET_TIMEOUT_SECONDS,
        )
    return Redis(connection_pool=_pool)


def redis_available() -> bool:
    try:
        return bool(get_redis().ping())
    except RedisError:
        return False
