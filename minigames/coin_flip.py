from __future__ import annotations

import random
from dataclasses import dataclass

from minigames.api.models import CoinFace

# Auto-flipping pauses once when the total lands on one of these.
MILESTONES: tuple[int, ...] = (100, 1_000, 10_000)


@dataclass(frozen=True, slots=True)
class FlipBatch:
    count: int
    heads: int
    last_result: CoinFace

    @property
    def tails(self) -> int:
        return self.count - self.heads


def batch_size_for(total: int) -> int:
    """Auto-flip batch size grows by 10x at every milestone."""

    if total >= 10_000:
        return 1_000
    if total >= 1_000:
        return 100
    if total >= 100:
        return 10
    return 1


def flip_batch(*, probability: int, count: int, rng: random.Random) -> FlipBatch:
    if count < 1:
        raise ValueError("count must be at least 1")

    heads = 0
    last = CoinFace.heads
    for _ in range(count):
        is_heads = rng.random() * 100 < probability
        if is_heads:
            heads += 1
        last = CoinFace.heads if is_heads else CoinFace.tails
    return FlipBatch(count=count, heads=heads, last_result=last)


def is_milestone(total: int) -> bool:
    return total in MILESTONES


def next_milestone(total: int) -> int | None:
    return next((m for m in MILESTONES if m > total), None)


def auto_batch_for(total: int) -> int:
    """Batch size for one auto-flip step, cut short so the run lands on the next milestone."""

    size = batch_size_for(total)
    upcoming = next_milestone(total)
    if upcoming is None:
        return size
    return min(size, upcoming - total)
