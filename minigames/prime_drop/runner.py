from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pydantic import ValidationError

from minigames.api.models import PrimeDropCommand, RunPhase
from minigames.prime_drop.session import PrimeDropSession

logger = logging.getLogger(__name__)

SendJson = Callable[[dict[str, object]], Awaitable[None]]


def snapshot_message(session: PrimeDropSession) -> dict[str, object]:
    snap = session.snapshot(events=session.drain_events())
    return {"type": "snapshot", "snapshot": snap.model_dump(mode="json")}


async def apply_message(session: PrimeDropSession, message: dict[str, object], send: SendJson) -> None:
    """Apply one client message; bad or disallowed commands are answered with an `error` message."""

    try:
        session.apply(PrimeDropCommand.model_validate(message))
    except (ValidationError, ValueError) as e:
        await send({"type": "error", "detail": str(e)})
        return
    await send(snapshot_message(session))


async def run_loop(session: PrimeDropSession, send: SendJson, *, tick_ms: float) -> None:
    """Fixed-step play loop. Only a playing run is ticked and pushed; commands push their own snapshot."""

    loop = asyncio.get_running_loop()
    next_at = loop.time()
    while True:
        if session.phase == RunPhase.playing:
            session.tick(tick_ms)
            await send(snapshot_message(session))
        next_at += tick_ms / 1000
        await asyncio.sleep(max(0.0, next_at - loop.time()))


async def play(session: PrimeDropSession, *, receive: Callable[[], Awaitable[dict[str, object]]], send: SendJson, tick_ms: float) -> None:
    """Drive `session` until `receive` raises (the socket closed). The loop task never outlives the socket."""

    await send(snapshot_message(session))
    task = asyncio.create_task(run_loop(session, send, tick_ms=tick_ms))
    try:
        while True:
            try:
                message = await receive()
            except ValueError as e:
                # Frame was not JSON; the socket itself is still usable.
                await send({"type": "error", "detail": f"Invalid message: {e}"})
                continue
            await apply_message(session, message, send)
    finally:
        task.cancel()
        (outcome,) = await asyncio.gather(task, return_exceptions=True)
        if isinstance(outcome, Exception):
            logger.warning("prime drop loop failed session=%s: %r", session.session_id, outcome)
        logger.debug("prime drop loop stopped session=%s", session.session_id)
