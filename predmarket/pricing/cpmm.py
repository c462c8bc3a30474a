"""Weighted constant-product market maker (CPMM) for binary pools.

Invariant: k = y^p * n^(1-p)
  y = YES reserve, n = NO reserve, p = weight in (0, 1), fixed per market.
Probability of YES: p*n / ((1-p)*y + p*n)

Buying an outcome with amount A adds A to the opposite reserve and solves the
bought reserve back onto k; the buyer receives the minted A plus whatever was
pulled out of the bought reserve. Selling is priced through the equivalent
opposite-side buy (see solver.py).

All functions are pure: reserves in, numbers out.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Tuple, Union

from ..core.config import EngineConfig
from ..core.errors import InvalidPoolStateError, InvalidTradeError, NegativePayoutError
from ..core.types import (
    BuyRequest,
    Outcome,
    PoolState,
    SellRequest,
    TradeRequest,
    TradeResult,
)
from ..io import metrics
from .solver import SellSolution, bisect_cost, report, sell_bracket

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = EngineConfig()

OutcomeLike = Union[Outcome, str]


def validate_pool(pool_yes: float, pool_no: float, p: float) -> None:
    if not (math.isfinite(pool_yes) and pool_yes > 0):
        raise InvalidPoolStateError(f"YES reserve must be positive and finite, got {pool_yes}")
    if not (math.isfinite(pool_no) and pool_no > 0):
        raise InvalidPoolStateError(f"NO reserve must be positive and finite, got {pool_no}")
    if not (math.isfinite(p) and 0 < p < 1):
        raise InvalidPoolStateError(f"weight must lie in (0, 1), got {p}")


def _check_quantity(name: str, value: float) -> None:
    if not math.isfinite(value):
        raise InvalidTradeError(f"{name} must be finite, got {value}")


def _buy(
    pool_yes: float, pool_no: float, p: float, amount: float, outcome: Outcome
) -> Tuple[float, float, float]:
    """Return (shares, new_yes, new_no) without validation.

    The bought reserve is rescaled by the ratio of the opposite reserve; this
    equals solving k directly without ever forming k.
    """
    if outcome is Outcome.YES:
        new_no = pool_no + amount
        new_yes = pool_yes * (pool_no / new_no) ** ((1 - p) / p)
        return pool_yes + amount - new_yes, new_yes, new_no
    new_yes = pool_yes + amount
    new_no = pool_no * (pool_yes / new_yes) ** (p / (1 - p))
    return pool_no + amount - new_no, new_yes, new_no


def _checked_pool(new_yes: float, new_no: float) -> Tuple[float, float]:
    if not (math.isfinite(new_yes) and new_yes > 0 and math.isfinite(new_no) and new_no > 0):
        raise InvalidPoolStateError(
            f"trade would leave reserves at ({new_yes}, {new_no})"
        )
    return new_yes, new_no


def probability(pool_yes: float, pool_no: float, p: float) -> float:
    validate_pool(pool_yes, pool_no, p)
    return (p * pool_no) / ((1 - p) * pool_yes + p * pool_no)


def buy_shares(
    pool_yes: float, pool_no: float, p: float, amount: float, outcome: OutcomeLike
) -> float:
    """Shares received for spending ``amount`` on ``outcome``; 0 if amount <= 0."""
    validate_pool(pool_yes, pool_no, p)
    _check_quantity("amount", amount)
    if amount <= 0:
        return 0.0
    shares, new_yes, new_no = _buy(pool_yes, pool_no, p, amount, Outcome(outcome))
    _checked_pool(new_yes, new_no)
    return shares


def pool_after_buy(
    pool_yes: float, pool_no: float, p: float, amount: float, outcome: OutcomeLike
) -> Tuple[float, float]:
    validate_pool(pool_yes, pool_no, p)
    _check_quantity("amount", amount)
    if amount <= 0:
        return pool_yes, pool_no
    _, new_yes, new_no = _buy(pool_yes, pool_no, p, amount, Outcome(outcome))
    return _checked_pool(new_yes, new_no)


def probability_after_buy(
    pool_yes: float, pool_no: float, p: float, amount: float, outcome: OutcomeLike
) -> float:
    """Price shown for the market once this buy is applied."""
    new_yes, new_no = pool_after_buy(pool_yes, pool_no, p, amount, outcome)
    return probability(new_yes, new_no, p)


def solve_sell(
    pool_yes: float,
    pool_no: float,
    p: float,
    shares: float,
    outcome: OutcomeLike,
    config: Optional[EngineConfig] = None,
) -> SellSolution:
    """Find the cost M of buying ``shares`` of the outcome opposite to ``outcome``."""
    config = config or DEFAULT_CONFIG
    validate_pool(pool_yes, pool_no, p)
    _check_quantity("shares", shares)
    opposite = Outcome(outcome).opposite
    reserve = pool_yes if opposite is Outcome.YES else pool_no
    lo, hi = sell_bracket(shares, reserve)

    def fill(cost: float) -> float:
        if cost <= 0:
            return 0.0
        return _buy(pool_yes, pool_no, p, cost, opposite)[0]

    return report(bisect_cost(fill, shares, lo, hi, config), shares, config)


def sell_payout(
    pool_yes: float,
    pool_no: float,
    p: float,
    shares: float,
    outcome: OutcomeLike,
    config: Optional[EngineConfig] = None,
) -> float:
    """Currency received for selling ``shares`` of ``outcome``; 0 if shares <= 0."""
    validate_pool(pool_yes, pool_no, p)
    _check_quantity("shares", shares)
    if shares <= 0:
        return 0.0
    solution = solve_sell(pool_yes, pool_no, p, shares, outcome, config)
    return _payout(shares, solution)


def _payout(shares: float, solution: SellSolution) -> float:
    payout = shares - solution.cost
    if payout < 0:
        metrics.inc_negative_payout()
        logger.error(
            "negative sell payout: shares=%r cost=%r residual=%.3e",
            shares,
            solution.cost,
            solution.residual,
        )
        raise NegativePayoutError(shares, payout)
    return payout


def pool_after_sell(
    pool_yes: float,
    pool_no: float,
    p: float,
    shares: float,
    outcome: OutcomeLike,
    config: Optional[EngineConfig] = None,
) -> Tuple[float, float]:
    """Reserves after a sell: the same move as the equivalent opposite buy."""
    validate_pool(pool_yes, pool_no, p)
    _check_quantity("shares", shares)
    if shares <= 0:
        return pool_yes, pool_no
    solution = solve_sell(pool_yes, pool_no, p, shares, outcome, config)
    return pool_after_buy(pool_yes, pool_no, p, solution.cost, Outcome(outcome).opposite)


def probability_after_sell(
    pool_yes: float,
    pool_no: float,
    p: float,
    shares: float,
    outcome: OutcomeLike,
    config: Optional[EngineConfig] = None,
) -> float:
    new_yes, new_no = pool_after_sell(pool_yes, pool_no, p, shares, outcome, config)
    return probability(new_yes, new_no, p)


def trade_result(
    pool: PoolState,
    p: float,
    request: TradeRequest,
    config: Optional[EngineConfig] = None,
) -> TradeResult:
    """Fill and resulting market state for a buy or sell.

    Sells run the cost search once and reuse it for both payout and reserves.
    """
    y, n = pool.pool_yes, pool.pool_no
    validate_pool(y, n, p)
    if isinstance(request, BuyRequest):
        _check_quantity("amount", request.amount)
        if request.amount <= 0:
            return TradeResult(0.0, y, n, probability(y, n, p))
        shares, new_yes, new_no = _buy(y, n, p, request.amount, Outcome(request.outcome))
        new_yes, new_no = _checked_pool(new_yes, new_no)
        return TradeResult(shares, new_yes, new_no, probability(new_yes, new_no, p))
    if isinstance(request, SellRequest):
        _check_quantity("shares", request.shares)
        if request.shares <= 0:
            return TradeResult(0.0, y, n, probability(y, n, p))
        solution = solve_sell(y, n, p, request.shares, request.outcome, config)
        payout = _payout(request.shares, solution)
        new_yes, new_no = pool_after_buy(y, n, p, solution.cost, Outcome(request.outcome).opposite)
        return TradeResult(payout, new_yes, new_no, probability(new_yes, new_no, p))
    raise TypeError(f"unsupported trade request: {request!r}")
