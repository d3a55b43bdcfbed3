from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Literal

BASE_PRIMES: tuple[int, ...] = (2, 3, 5, 7)

PrimeSource = Literal["base", "factor", "random"]


@dataclass(frozen=True, slots=True)
class PrimeDraw:
    value: int
    source: PrimeSource


@dataclass(frozen=True, slots=True)
class Transform:
    before: int
    prime: int
    after: int
    divided: bool

    @property
    def label(self) -> str:
        return f"÷{self.prime}" if self.divided else f"+{self.prime}"


def is_prime(n: int) -> bool:
    if n < 2:
        return False
    if n == 2:
        return True
    if n % 2 == 0:
        return False
    for i in range(3, math.isqrt(n) + 1, 2):
        if n % i == 0:
            return False
    return True


def prime_factors(n: int) -> list[int]:
    """Distinct prime factors of `n`, ascending."""

    factors: list[int] = []
    if n < 2:
        return factors
    if n % 2 == 0:
        factors.append(2)
        while n % 2 == 0:
            n //= 2
    i = 3
    while i * i <= n:
        if n % i == 0:
            factors.append(i)
            while n % i == 0:
                n //= i
        i += 2
    if n > 1:
        factors.append(n)
    return factors


def random_prime_below(limit: int, rng: random.Random) -> int | None:
    primes = [n for n in range(2, limit) if is_prime(n)]
    if not primes:
        return None
    return rng.choice(primes)


def pick_prime_for_drop(value: int, rng: random.Random) -> PrimeDraw:
    """Mostly small base primes, sometimes a factor of `value`, otherwise any prime near it."""

    roll = rng.random()
    if roll < 0.8:
        return PrimeDraw(value=rng.choice(BASE_PRIMES), source="base")
    if roll < 0.9:
        factors = prime_factors(value)
        if factors:
            return PrimeDraw(value=rng.choice(factors), source="factor")
    p = random_prime_below(value + 2, rng)
    if p is not None:
        return PrimeDraw(value=p, source="random")
    return PrimeDraw(value=rng.choice(BASE_PRIMES), source="base")


def apply_prime(value: int, prime: int) -> Transform:
    if prime < 2:
        raise ValueError("prime must be at least 2")
    if value % prime == 0:
        return Transform(before=value, prime=prime, after=value // prime, divided=True)
    return Transform(before=value, prime=prime, after=value + prime, divided=False)
