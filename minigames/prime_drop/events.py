from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal

EventType = Literal[
    "RUN_STARTED",
    "PRIME_SPAWNED",
    "PRIME_CAUGHT",
    "PRIME_MISSED",
    "RUN_CLEARED",
]


@dataclass(frozen=True, slots=True)
class DropEvent:
    type: EventType
    # Run time (ms) at which the event happened.
    elapsed_ms: float
    payload: dict[str, Any]
    ts: datetime

    @staticmethod
    def now(*, type: EventType, elapsed_ms: float, payload: dict[str, Any]) -> "DropEvent":
        return DropEvent(type=type, elapsed_ms=elapsed_ms, payload=payload, ts=datetime.now(timezone.utc))
