from __future__ import annotations

import redis

from pursuit.config import get_settings


def create_redis(url: str | None = None) -> redis.Redis:
    """Client for the game store.

    Game documents are JSON text, so responses are decoded to str. Socket
    timeouts keep a wedged server from holding a request (and the game lock)
    forever; the store surfaces them as PersistenceError.
    """

    settings = get_settings()
    return redis.Redis.from_url(
        url or settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.redis_timeout_seconds,
        socket_connect_timeout=settings.redis_timeout_seconds,
    )
