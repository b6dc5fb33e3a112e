from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import uuid4

import redis

from pursuit.errors import GameBusyError, PersistenceError

logger = logging.getLogger(__name__)


def _lock_key(game_id: str) -> str:
    return f"pursuit:lock:game:{game_id}"


def _release(*, r: redis.Redis, key: str, token: str) -> None:
    # Compare-and-delete: never drop a lease that expired and was re-acquired by someone else.
    with r.pipeline() as pipe:
        try:
            pipe.watch(key)
            if pipe.get(key) == token:
                pipe.multi()
                pipe.delete(key)
                pipe.execute()
            else:
                pipe.unwatch()
                logger.warning("Lock %s expired before release", key)
        except redis.WatchError:
            logger.warning("Lock %s changed hands during release", key)


@contextmanager
def game_lock(*, r: redis.Redis, game_id: str, ttl_ms: int = 5_000, wait_ms: int = 2_000) -> Iterator[str]:
    """Per-game mutual exclusion around one engine operation.

    Every mutating action holds this lock for its whole read-validate-write
    cycle, so concurrent callers are serialized and the second one sees the
    first one's result. Waiters poll until `wait_ms` is spent.
    """

    key = _lock_key(game_id)
    token = uuid4().hex
    deadline = time.monotonic() + wait_ms / 1000
    delay = 0.005

    while True:
        try:
            acquired = r.set(key, token, nx=True, px=ttl_ms)
        except redis.RedisError as e:
            raise PersistenceError(f"Failed to acquire game lock: {e}") from e
        if acquired:
            break
        if time.monotonic() >= deadline:
            raise GameBusyError("Game is busy, try again")
        time.sleep(delay)
        delay = min(delay * 2, 0.1)

    try:
        yield token
    finally:
        try:
            _release(r=r, key=key, token=token)
        except redis.RedisError:
            logger.warning("Failed to release lock %s; it will expire after %sms", key, ttl_ms, exc_info=True)
