"""Bisection search for the cost of a sell.

Selling S shares of an outcome is priced as buying S shares of the opposite
outcome for some cost M and redeeming the S complementary pairs for S. There
is no closed form for M under a general weight, so M is found by bisection on
the buy function, which is strictly increasing in the amount spent.

Bracket: spending M on an outcome mints M shares and also pulls shares out of
that outcome's reserve, so the fill lies in [M, M + reserve). The root
therefore lies in [max(0, S - reserve), S], which also bounds the payout
S - M to [0, min(S, reserve)].
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from ..core.config import EngineConfig
from ..core.errors import ConvergenceError
from ..io import metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SellSolution:
    cost: float  # M
    filled: float  # shares that M actually buys
    residual: float  # |filled - target|
    iterations: int
    converged: bool


def sell_bracket(shares: float, opposite_reserve: float) -> tuple[float, float]:
    return max(0.0, shares - opposite_reserve), shares


def bisect_cost(
    fill: Callable[[float], float],
    target: float,
    lo: float,
    hi: float,
    config: EngineConfig,
) -> SellSolution:
    """Find a cost whose fill is within tolerance of target.

    Exits early once the residual is below ``config.tolerance`` or the
    interval can no longer be split in floating point; otherwise runs
    ``config.max_iterations`` steps and takes the midpoint.
    """
    iterations = 0
    for iterations in range(1, config.max_iterations + 1):
        mid = (lo + hi) / 2
        got = fill(mid)
        if abs(got - target) < config.tolerance:
            return SellSolution(mid, got, abs(got - target), iterations, True)
        if got < target:
            lo = mid
        else:
            hi = mid
        if not lo < (lo + hi) / 2 < hi:
            break
    cost = (lo + hi) / 2
    got = fill(cost)
    residual = abs(got - target)
    return SellSolution(cost, got, residual, iterations, residual < config.tolerance)


def report(solution: SellSolution, target: float, config: EngineConfig) -> SellSolution:
    """Record diagnostics for a finished search; raise in strict mode."""
    metrics.observe_solver_iterations(solution.iterations)
    if solution.converged:
        return solution
    metrics.inc_nonconvergence()
    logger.warning(
        "sell cost search did not converge: shares=%r cost=%r residual=%.3e iterations=%d",
        target,
        solution.cost,
        solution.residual,
        solution.iterations,
    )
    if config.strict_convergence:
        raise ConvergenceError(target, solution.residual, solution.iterations)
    return solution
