from __future__ import annotations

import time
from contextlib import contextmanager

import redis


class SessionBusyError(ValueError):
    """Another request is mutating the same session."""


@contextmanager
def session_lock(*, r: redis.Redis, session_id: str, ttl_ms: int = 5_000):
    """Best-effort per-session lock.

    Serialises flips and guesses of one coin session so a guess is counted exactly once.
    """

    key = f"lock:coin:{session_id}"
    acquired = r.set(key, "1", nx=True, px=ttl_ms)
    if not acquired:
        raise SessionBusyError("Session is busy")
    try:
        yield
    finally:
        r.delete(key)
        # small yield to avoid tight contention in tests
        time.sleep(0)
