from __future__ import annotations

import time
from contextlib import contextmanager

import redis


class GameBusyError(RuntimeError):
    pass


@contextmanager
def game_lock(*, r: redis.Redis, game_id: str, ttl_ms: int = 5_000):
    """Per-game lock serializing event delivery to one instance.

    Best effort: a holder that outlives `ttl_ms` loses the lock silently.
    """

    key = f"lock:game:{game_id}"
    acquired = r.set(key, "1", nx=True, px=ttl_ms)
    if not acquired:
        raise GameBusyError(f"Game {game_id} is busy")
    try:
        yield
    finally:
        r.delete(key)
        # small yield to avoid tight contention in tests
        time.sleep(0)
