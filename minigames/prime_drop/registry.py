from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from minigames.prime_drop.session import PrimeDropSession
from minigames.prime_drop.world import PrimeDropConfig

logger = logging.getLogger(__name__)

DEFAULT_IDLE_TTL_S = 15 * 60


class SessionRegistry:
    """In-process Prime Drop runs keyed by session id.

    Runs hold a live physics space, so they stay in the process that created them. A run
    with a socket attached is never evicted. Detached runs expire after `idle_ttl_s` without
    a lookup, and when the registry is full the least recently used detached run makes room.
    """

    def __init__(
        self,
        *,
        max_sessions: int = 256,
        idle_ttl_s: float = DEFAULT_IDLE_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: dict[str, PrimeDropSession] = {}
        self._touched: dict[str, float] = {}
        self._attached: set[str] = set()
        self._lock = asyncio.Lock()
        self._clock = clock
        self.max_sessions = max_sessions
        self.idle_ttl_s = idle_ttl_s

    def _touch(self, session_id: str) -> None:
        self._touched.pop(session_id, None)
        self._touched[session_id] = self._clock()

    def _drop(self, session_id: str, reason: str) -> None:
        self._sessions.pop(session_id, None)
        self._touched.pop(session_id, None)
        logger.info("prime drop session released session=%s reason=%s", session_id, reason)

    def _make_room(self) -> None:
        now = self._clock()
        # _touched is kept in least-recently-used order.
        detached = [(t, sid) for sid, t in self._touched.items() if sid not in self._attached]
        for touched, sid in detached:
            if now - touched > self.idle_ttl_s:
                self._drop(sid, "idle")
        for _, sid in detached:
            if len(self._sessions) < self.max_sessions:
                return
            if sid in self._sessions:
                self._drop(sid, "evicted")

    async def create(self, *, seed: int | None = None, config: PrimeDropConfig | None = None) -> PrimeDropSession:
        session = PrimeDropSession(seed=seed, config=config)
        async with self._lock:
            self._make_room()
            if len(self._sessions) >= self.max_sessions:
                raise ValueError("Too many active Prime Drop sessions")
            self._sessions[session.session_id] = session
            self._touch(session.session_id)
        logger.info("prime drop session created session=%s seed=%d", session.session_id, session.seed)
        return session

    def get(self, session_id: str) -> PrimeDropSession | None:
        session = self._sessions.get(session_id)
        if session is not None:
            self._touch(session_id)
        return session

    async def attach(self, session_id: str) -> PrimeDropSession | None:
        """Claim the run for one socket. None when the run is unknown or already has a socket."""

        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session_id in self._attached:
                return None
            self._attached.add(session_id)
            self._touch(session_id)
            return session

    async def detach(self, session_id: str) -> None:
        async with self._lock:
            self._attached.discard(session_id)
            if session_id in self._sessions:
                self._touch(session_id)

    def is_attached(self, session_id: str) -> bool:
        return session_id in self._attached

    async def discard(self, session_id: str) -> bool:
        async with self._lock:
            self._touched.pop(session_id, None)
            return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)


registry = SessionRegistry()
