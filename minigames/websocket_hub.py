from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from uuid import UUID

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def coin_channel(session_id: UUID | str) -> str:
    return f"coin:{session_id}"


class WebSocketHub:
    """In-process fan-out of JSON notifications to the sockets watching a channel.

    A coin session's channel is `coin_channel(session_id)`; every successful mutation of the
    session is pushed there as a `session_updated` message. Sockets that fail a send are dropped.
    """

    def __init__(self) -> None:
        self._watchers: dict[str, set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, channel: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._watchers[channel].add(websocket)

    async def disconnect(self, channel: str, websocket: WebSocket) -> None:
        async with self._lock:
            watchers = self._watchers.get(channel)
            if watchers is None:
                return
            watchers.discard(websocket)
            if not watchers:
                del self._watchers[channel]

    def watcher_count(self, channel: str) -> int:
        return len(self._watchers.get(channel, ()))

    async def broadcast(self, channel: str, payload: dict[str, object]) -> int:
        """Send `payload` to every watcher of `channel`. Returns how many sends succeeded."""

        async with self._lock:
            watchers = list(self._watchers.get(channel, ()))

        delivered = 0
        for ws in watchers:
            try:
                await ws.send_json(payload)
            except Exception:
                logger.debug("dropping dead websocket on %s", channel)
                await self.disconnect(channel, ws)
            else:
                delivered += 1
        return delivered


hub = WebSocketHub()
