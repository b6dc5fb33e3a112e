from __future__ import annotations

from collections.abc import Generator

import redis

from pursuit.infra.redis_client import create_redis


def get_redis() -> Generator[redis.Redis, None, None]:
    """One client per request; routes receive it via `Depends(get_redis)`."""

    client = create_redis()
    try:
        yield client
    finally:
        client.close()
