"""Metrics instrumentation."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

trades_total = Counter(
    "pm_trades_total", "Trades executed against a pool", ["side", "outcome"]
)
rollbacks_total = Counter("pm_rollbacks_total", "Trades rolled back")
solver_nonconvergence_total = Counter(
    "pm_solver_nonconvergence_total",
    "Sell cost searches that ended outside tolerance",
)
negative_payout_total = Counter(
    "pm_negative_payout_total", "Sell payouts computed below zero"
)
solver_iterations = Histogram(
    "pm_solver_iterations",
    "Bisection iterations per sell cost search",
    buckets=(1, 5, 10, 20, 40, 60, 80, 100, 200),
)


def inc_trades(side: str, outcome: str, n: int = 1) -> None:
    trades_total.labels(side=side, outcome=outcome).inc(n)


def inc_rollbacks(n: int = 1) -> None:
    rollbacks_total.inc(n)


def inc_nonconvergence() -> None:
    solver_nonconvergence_total.inc()


def inc_negative_payout() -> None:
    negative_payout_total.inc()


def observe_solver_iterations(n: int) -> None:
    solver_iterations.observe(n)
