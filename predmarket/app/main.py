"""App bootstrap for simulations."""

from __future__ import annotations

from typing import Optional, Sequence

from ..core.config import EngineConfig, ExchangeConfig
from ..core.types import Market
from ..exec.executor import Exchange

DEFAULT_TRADERS = ("alice", "bob", "carol")


def build_environment(
    traders: Sequence[str] = DEFAULT_TRADERS,
    initial_probability: float = 0.5,
    ante: float = 100.0,
    engine_config: Optional[EngineConfig] = None,
    config: Optional[ExchangeConfig] = None,
) -> tuple[Exchange, Market]:
    exchange = Exchange(engine_config=engine_config, config=config)
    exchange.open_account("house", balance=ante)
    m = exchange.create_market(
        "Will the event happen?",
        initial_probability=initial_probability,
        ante=ante,
        creator_id="house",
        market_id="EVT_2025",
    )
    for user in traders:
        exchange.open_account(user)
    return exchange, m
