"""Backtesting engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from ..core.errors import MarketError
from ..core.types import BuyRequest, SellRequest, TradeSide
from ..exec.executor import Exchange
from ..exec.router import route
from .scenarios import Intent

logger = logging.getLogger(__name__)


@dataclass
class BacktestReport:
    market_id: str
    executed: int = 0
    rejected: int = 0
    max_k_drift: float = 0.0  # max relative change of k over a single trade
    min_probability: float = 1.0
    max_probability: float = 0.0
    final_probability: float = 0.0


def run_scenario(exchange: Exchange, market_id: str, scenario: Iterable[Intent]) -> BacktestReport:
    report = BacktestReport(market_id=market_id)
    for user_id, side, outcome, size in scenario:
        try:
            if side is TradeSide.BUY:
                request = BuyRequest(outcome, size)
            else:
                held = exchange.store.position(user_id, market_id).shares(outcome)
                request = SellRequest(outcome, held * size)
            trade = route(exchange, user_id, market_id, request)
        except MarketError as exc:
            report.rejected += 1
            logger.debug("rejected %s %s for %s: %s", side.value, outcome.value, user_id, exc.message)
            continue
        report.executed += 1
        p = exchange.store.get_market(market_id).weight
        k_before = trade.pool_before.invariant(p)
        k_after = trade.pool_after.invariant(p)
        report.max_k_drift = max(report.max_k_drift, abs(k_after - k_before) / k_before)
        report.min_probability = min(report.min_probability, trade.prob_after)
        report.max_probability = max(report.max_probability, trade.prob_after)
    report.final_probability = exchange.probability(market_id)
    return report
