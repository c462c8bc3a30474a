"""Scenario generators."""

from __future__ import annotations

import random
from typing import Iterable, Sequence

from ..core.types import Outcome, PoolState, TradeSide

# (user_id, side, outcome, size): size is currency for BUY and the fraction of
# the current holding for SELL
Intent = tuple[str, TradeSide, Outcome, float]


def random_trades(
    steps: int,
    users: Sequence[str] = ("alice", "bob", "carol"),
    mean_bet: float = 20.0,
    sell_ratio: float = 0.3,
    seed: int | None = None,
) -> Iterable[Intent]:
    rng = random.Random(seed)
    for _ in range(steps):
        user = rng.choice(list(users))
        outcome = Outcome.YES if rng.random() < 0.5 else Outcome.NO
        if rng.random() < sell_ratio:
            yield user, TradeSide.SELL, outcome, rng.uniform(0.1, 1.0)
        else:
            yield user, TradeSide.BUY, outcome, max(1.0, rng.expovariate(1.0 / mean_bet))


def skew_sweep(
    ratios: Sequence[float] = (1.0, 10.0, 100.0, 1000.0),
    weights: Sequence[float] = (0.1, 0.5, 0.9),
    base: float = 100.0,
) -> Iterable[tuple[PoolState, float]]:
    """Pool states skewed both ways across a range of weights."""
    for p in weights:
        for r in ratios:
            yield PoolState(base * r, base), p
            if r != 1.0:
                yield PoolState(base, base * r), p
