from __future__ import annotations

from collections.abc import Generator
from functools import lru_cache

import redis

from murder.config import Settings, load_settings
from murder.infra.redis_client import create_redis


def get_redis() -> Generator[redis.Redis, None, None]:
    client = create_redis()
    try:
        yield client
    finally:
        client.close()


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return load_settings()


def get_settings() -> Settings:
    return _cached_settings()
