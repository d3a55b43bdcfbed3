from __future__ import annotations

from pathlib import Path

import pytest

from minigames.settings import load_env_file, settings_from_env


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("REDIS_URL", "MINIGAMES_APP_ID", "MINIGAMES_LOG_LEVEL", "MINIGAMES_SESSION_TTL_S", "MINIGAMES_TICK_MS"):
        monkeypatch.delenv(name, raising=False)

    s = settings_from_env()
    assert s.redis_url == "redis://localhost:6379/0"
    assert s.app_id == "default-app-id"
    assert s.log_level == "INFO"
    assert s.session_ttl_s == 86_400
    assert abs(s.tick_ms - 1000 / 60) < 1e-9


def test_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REDIS_URL", "redis://store:6380/2")
    monkeypatch.setenv("MINIGAMES_LOG_LEVEL", "debug")
    monkeypatch.setenv("MINIGAMES_SESSION_TTL_S", "60")

    s = settings_from_env()
    assert s.redis_url == "redis://store:6380/2"
    assert s.log_level == "DEBUG"
    assert s.session_ttl_s == 60


def test_env_file_never_overrides_real_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("MINIGAMES_APP_ID=from-file\nMINIGAMES_TICK_MS=20\n", encoding="utf-8")
    monkeypatch.setenv("MINIGAMES_APP_ID", "from-env")
    monkeypatch.delenv("MINIGAMES_TICK_MS", raising=False)

    load_env_file(env_file)
    s = settings_from_env()
    assert s.app_id == "from-env"
    assert s.tick_ms == 20
