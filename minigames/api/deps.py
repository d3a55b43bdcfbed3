from __future__ import annotations

from collections.abc import Generator

import redis

from minigames.infra.redis_client import create_redis
from minigames.settings import Settings, get_settings


def get_redis() -> Generator[redis.Redis, None, None]:
    client = create_redis()
    try:
        yield client
    finally:
        try:
            client.close()
        except redis.RedisError:
            # Closing a connection that never opened can fail; nothing to release then.
            pass


def get_app_settings() -> Settings:
    return get_settings()
