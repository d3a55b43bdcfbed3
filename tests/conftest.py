from __future__ import annotations

import os
from collections.abc import Generator

import fakeredis
import pytest
from fastapi.testclient import TestClient

# Set before anything caches settings, so a developer .env cannot point tests at a real Redis.
os.environ["MINIGAMES_APP_ID"] = "test-app"
os.environ.setdefault("MINIGAMES_LOG_LEVEL", "DEBUG")


@pytest.fixture(scope="session", autouse=True)
def _hermetic_settings() -> None:
    """Drop any settings cached before the test environment was in place."""

    from minigames.settings import get_settings

    get_settings.cache_clear()


@pytest.fixture()
def redis_client() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def client_and_redis(redis_client: fakeredis.FakeRedis) -> Generator[tuple[TestClient, fakeredis.FakeRedis], None, None]:
    """FastAPI TestClient whose Redis dependency is a fakeredis instance."""

    from minigames.api.deps import get_redis
    from minigames.main import app

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield redis_client

    app.dependency_overrides[get_redis] = _override
    with TestClient(app) as c:
        yield c, redis_client
    app.dependency_overrides.clear()


@pytest.fixture()
def client(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> TestClient:
    return client_and_redis[0]
