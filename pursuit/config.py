"""Runtime settings.

Everything is read from the environment once per call to `get_settings()`;
tests override values with `monkeypatch.setenv` and a fresh call.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta


def _int_env(name: str, default: int | None) -> int | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    return int(raw)


DEFAULT_REDIS_URL = "redis://localhost:6379/0"


@dataclass(frozen=True, slots=True)
class Settings:
    # Minimum time between start_positioning and start_run.
    positioning_duration: timedelta = timedelta(minutes=20)
    # How long a battle card's "Runner location revealed" effect stays fresh.
    reveal_window: timedelta = timedelta(minutes=1)
    # Optional lifetime for newly placed roadblocks (None = until cleared).
    roadblock_ttl: timedelta | None = None
    lock_ttl_ms: int = 5_000
    lock_wait_ms: int = 2_000
    starting_hand_size: int = 2
    redis_url: str = DEFAULT_REDIS_URL
    redis_timeout_seconds: float = 5.0


def get_settings() -> Settings:
    positioning = _int_env("PURSUIT_POSITIONING_SECONDS", 1200)
    reveal = _int_env("PURSUIT_REVEAL_SECONDS", 60)
    roadblock_ttl = _int_env("PURSUIT_ROADBLOCK_TTL_SECONDS", None)
    return Settings(
        positioning_duration=timedelta(seconds=positioning or 0),
        reveal_window=timedelta(seconds=reveal or 0),
        roadblock_ttl=timedelta(seconds=roadblock_ttl) if roadblock_ttl else None,
        lock_ttl_ms=_int_env("PURSUIT_LOCK_TTL_MS", 5_000) or 5_000,
        lock_wait_ms=_int_env("PURSUIT_LOCK_WAIT_MS", 2_000) or 0,
        redis_url=os.environ.get("REDIS_URL", "").strip() or DEFAULT_REDIS_URL,
    )
