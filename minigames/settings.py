from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True, slots=True)
class Settings:
    redis_url: str
    # Namespace for every key written to the store.
    app_id: str
    log_level: str
    session_ttl_s: int
    # Fixed step of the Prime Drop play loop.
    tick_ms: float


def load_env_file(path: Path | None = None) -> None:
    """Load a repo `.env` if present. Real environment variables always win."""

    env_path = path or Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)


def settings_from_env() -> Settings:
    return Settings(
        redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
        app_id=os.environ.get("MINIGAMES_APP_ID", "default-app-id"),
        log_level=os.environ.get("MINIGAMES_LOG_LEVEL", "INFO").upper(),
        session_ttl_s=int(os.environ.get("MINIGAMES_SESSION_TTL_S", "86400")),
        tick_ms=float(os.environ.get("MINIGAMES_TICK_MS", str(1000 / 60))),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_env_file()
    return settings_from_env()
