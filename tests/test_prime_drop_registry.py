from __future__ import annotations

import asyncio

import pytest

from minigames.prime_drop.registry import SessionRegistry


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_full_registry_evicts_least_recently_used_run() -> None:
    clock = _Clock()
    reg = SessionRegistry(max_sessions=2, idle_ttl_s=60, clock=clock)

    async def scenario() -> None:
        first = await reg.create(seed=1)
        clock.now = 1
        second = await reg.create(seed=2)
        clock.now = 2
        # A lookup counts as use.
        assert reg.get(first.session_id) is first

        clock.now = 3
        third = await reg.create(seed=3)
        assert len(reg) == 2
        assert reg.get(second.session_id) is None
        assert reg.get(first.session_id) is first
        assert reg.get(third.session_id) is third

    asyncio.run(scenario())


def test_idle_runs_expire_on_create() -> None:
    clock = _Clock()
    reg = SessionRegistry(max_sessions=10, idle_ttl_s=60, clock=clock)

    async def scenario() -> None:
        old = await reg.create(seed=1)
        clock.now = 61
        fresh = await reg.create(seed=2)
        assert reg.get(old.session_id) is None
        assert reg.get(fresh.session_id) is fresh
        assert len(reg) == 1

    asyncio.run(scenario())


def test_attached_runs_are_kept() -> None:
    clock = _Clock()
    reg = SessionRegistry(max_sessions=1, idle_ttl_s=60, clock=clock)

    async def scenario() -> None:
        live = await reg.create(seed=1)
        assert await reg.attach(live.session_id) is live
        clock.now = 1_000

        with pytest.raises(ValueError, match="Too many"):
            await reg.create(seed=2)
        assert reg.get(live.session_id) is live

        await reg.detach(live.session_id)
        assert not reg.is_attached(live.session_id)
        await reg.create(seed=3)
        assert reg.get(live.session_id) is None

    asyncio.run(scenario())


def test_run_takes_one_socket_at_a_time() -> None:
    reg = SessionRegistry()

    async def scenario() -> None:
        session = await reg.create(seed=1)
        assert await reg.attach(session.session_id) is session
        assert await reg.attach(session.session_id) is None
        await reg.detach(session.session_id)
        assert await reg.attach(session.session_id) is session
        assert await reg.attach("nope") is None

    asyncio.run(scenario())
