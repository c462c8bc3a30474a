"""Entry point for backtests."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from .main import build_environment
from ..backtest.engine import run_scenario
from ..backtest.scenarios import random_trades
from ..core.config import EngineConfig, ExchangeConfig
from ..io.persistence import trades_to_records, write_json

logger = logging.getLogger(__name__)


def main():  # pragma: no cover - manual run
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("PM_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    exchange, market = build_environment(
        initial_probability=float(os.getenv("PM_INITIAL_PROBABILITY", "0.5")),
        ante=float(os.getenv("PM_ANTE", "100")),
        engine_config=EngineConfig.from_env(),
        config=ExchangeConfig.from_env(),
    )
    scenario = random_trades(
        steps=int(os.getenv("PM_BACKTEST_STEPS", "200")),
        seed=int(os.getenv("PM_BACKTEST_SEED", "42")),
    )
    report = run_scenario(exchange, market.id, scenario)
    logger.info(
        "backtest done: executed=%d rejected=%d max_k_drift=%.3e prob range [%.4f, %.4f] final=%.4f",
        report.executed,
        report.rejected,
        report.max_k_drift,
        report.min_probability,
        report.max_probability,
        report.final_probability,
    )
    export = os.getenv("PM_EXPORT_PATH")
    if export:
        write_json(export, trades_to_records(exchange.store.trades_for_market(market.id)))
        logger.info("trade history written to %s", export)


if __name__ == "__main__":  # pragma: no cover
    main()
