from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, cast

import redis


@dataclass(frozen=True, slots=True)
class ActivityLog:
    """Append-only log of what happened on one coin game (joins, solved/exhausted rounds)."""

    app_id: str
    code: str

    @property
    def key(self) -> str:
        return f"coin:{self.app_id}:activity:{self.code}"


def publish_activity(*, r: redis.Redis, log: ActivityLog, fields: Mapping[str, str], maxlen: int = 1_000) -> str:
    """Append an entry to a game's activity stream."""

    # redis-py stubs expect field/value unions; in our app we only use string fields/values.
    stream_id = r.xadd(log.key, {str(k): str(v) for k, v in fields.items()}, maxlen=maxlen, approximate=True)
    return cast(str, stream_id)


def read_activity(*, r: redis.Redis, log: ActivityLog, count: int = 50) -> list[tuple[str, dict[str, str]]]:
    """Newest-first entries of a game's activity stream."""

    return cast(list[tuple[str, dict[str, str]]], r.xrevrange(log.key, count=count))
