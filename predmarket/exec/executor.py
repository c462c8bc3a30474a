"""Trade-execution boundary.

Validates business rules, reads reserves under the market lock, asks the
pricing engine for the fill, and applies the new reserves, the balance change,
the position change and the trade record as one step.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union

from ..core.config import EngineConfig, ExchangeConfig
from ..core.errors import (
    InsufficientBalanceError,
    InsufficientSharesError,
    InvalidMarketParametersError,
    InvalidTradeError,
    MarketError,
    MarketNotOpenError,
    RollbackOrderError,
)
from ..core.types import (
    Account,
    BuyRequest,
    Market,
    MarketStatus,
    Outcome,
    PoolState,
    Resolution,
    ResolutionKind,
    SellRequest,
    Trade,
    TradeResult,
    TradeSide,
)
from ..io import metrics
from ..pricing import cpmm
from ..state.store import Store

logger = logging.getLogger(__name__)


@dataclass
class RollbackResult:
    trade_id: str
    success: bool
    error: Optional[str] = None


class Exchange:
    def __init__(
        self,
        store: Optional[Store] = None,
        engine_config: Optional[EngineConfig] = None,
        config: Optional[ExchangeConfig] = None,
    ):
        self.store = store or Store()
        self.engine_config = engine_config or EngineConfig()
        self.config = config or ExchangeConfig()

    # --- accounts ---

    def open_account(self, user_id: str, balance: Optional[float] = None) -> Account:
        start = self.config.starting_balance if balance is None else balance
        if start < 0:
            raise InvalidTradeError("starting balance cannot be negative")
        return self.store.add_account(Account(user_id=user_id, balance=start))

    def balance(self, user_id: str) -> float:
        return self.store.get_account(user_id).balance

    # --- markets ---

    def create_market(
        self,
        question: str,
        initial_probability: float,
        ante: float,
        creator_id: Optional[str] = None,
        market_id: Optional[str] = None,
    ) -> Market:
        """Open a market whose opening price equals ``initial_probability``.

        The weight is set to the initial probability and both reserves to the
        ante; with equal reserves the price formula reduces to the weight.
        """
        if not question or not question.strip():
            raise InvalidMarketParametersError("question is required")
        if not (math.isfinite(initial_probability) and 0 < initial_probability < 1):
            raise InvalidMarketParametersError("probability must be between 0 and 1")
        if not (math.isfinite(ante) and ante >= self.config.min_ante):
            raise InvalidMarketParametersError(f"ante must be at least {self.config.min_ante}")

        market = Market(
            id=market_id or str(uuid.uuid4()),
            question=question.strip(),
            weight=initial_probability,
            pool=PoolState(ante, ante),
            creator_id=creator_id,
        )
        if market.id in self.store.markets:
            raise InvalidMarketParametersError(f"market id already in use: {market.id}")
        if creator_id is not None:
            with self.store.accounts_lock:
                account = self.store.get_account(creator_id)
                if account.balance < ante:
                    raise InsufficientBalanceError(ante, account.balance)
                account.balance -= ante
        self.store.upsert_market(market)
        logger.info(
            "market created id=%s prob=%.4f ante=%s creator=%s",
            market.id,
            initial_probability,
            ante,
            creator_id,
        )
        return market

    def probability(self, market_id: str) -> float:
        return self.store.get_market(market_id).probability

    # --- quotes ---

    def quote_buy(self, market_id: str, outcome: Union[Outcome, str], amount: float) -> TradeResult:
        market = self.store.get_market(market_id)
        return cpmm.trade_result(
            market.pool, market.weight, BuyRequest(Outcome(outcome), amount), self.engine_config
        )

    def quote_sell(self, market_id: str, outcome: Union[Outcome, str], shares: float) -> TradeResult:
        market = self.store.get_market(market_id)
        return cpmm.trade_result(
            market.pool, market.weight, SellRequest(Outcome(outcome), shares), self.engine_config
        )

    # --- trades ---

    def buy(
        self, user_id: str, market_id: str, outcome: Union[Outcome, str], amount: float
    ) -> Trade:
        outcome = Outcome(outcome)
        if not (math.isfinite(amount) and amount > 0):
            raise InvalidTradeError("invalid bet amount")
        if amount < self.config.min_bet:
            raise InvalidTradeError(f"minimum bet is {self.config.min_bet}")

        with self.store.market_lock(market_id):
            market = self._open_market(market_id)
            with self.store.accounts_lock:
                account = self.store.get_account(user_id)
                if account.balance < amount:
                    raise InsufficientBalanceError(amount, account.balance)
                result = cpmm.trade_result(
                    market.pool, market.weight, BuyRequest(outcome, amount), self.engine_config
                )
                account.balance -= amount
                pos = self.store.position(user_id, market_id)
                pos.add_shares(outcome, result.shares_or_payout)
                pos.invested += amount
                trade = self._record(
                    user_id, market, TradeSide.BUY, outcome, amount, result.shares_or_payout, result
                )
        return trade

    def sell(
        self, user_id: str, market_id: str, outcome: Union[Outcome, str], shares: float
    ) -> Trade:
        outcome = Outcome(outcome)
        if not (math.isfinite(shares) and shares > 0):
            raise InvalidTradeError("invalid share amount")

        with self.store.market_lock(market_id):
            market = self._open_market(market_id)
            with self.store.accounts_lock:
                account = self.store.get_account(user_id)
                pos = self.store.position(user_id, market_id)
                available = pos.shares(outcome)
                # absorb float dust left by earlier fills
                if shares >= available or abs(shares - available) < self.config.share_snap_epsilon:
                    if shares - available > self.config.share_snap_epsilon or available <= 0:
                        raise InsufficientSharesError(shares, available)
                    shares = available
                result = cpmm.trade_result(
                    market.pool, market.weight, SellRequest(outcome, shares), self.engine_config
                )
                payout = result.shares_or_payout
                account.balance += payout
                pos.add_shares(outcome, -shares)
                pos.invested -= payout
                trade = self._record(user_id, market, TradeSide.SELL, outcome, payout, shares, result)
        return trade

    def _open_market(self, market_id: str) -> Market:
        market = self.store.get_market(market_id)
        if market.status is not MarketStatus.OPEN:
            raise MarketNotOpenError(market_id)
        return market

    def _record(
        self,
        user_id: str,
        market: Market,
        side: TradeSide,
        outcome: Outcome,
        amount: float,
        shares: float,
        result: TradeResult,
    ) -> Trade:
        prob_before = market.probability
        trade = Trade(
            id=str(uuid.uuid4()),
            seq=self.store.next_seq(),
            user_id=user_id,
            market_id=market.id,
            side=side,
            outcome=outcome,
            amount=amount,
            shares=shares,
            pool_before=market.pool,
            pool_after=result.pool,
            prob_before=prob_before,
            prob_after=result.new_probability,
        )
        market.pool = result.pool
        self.store.add_trade(trade)
        metrics.inc_trades(side.value, outcome.value)
        logger.info(
            "%s %s user=%s market=%s amount=%.6f shares=%.6f prob %.4f -> %.4f",
            side.value,
            outcome.value,
            user_id,
            market.id,
            amount,
            shares,
            prob_before,
            result.new_probability,
        )
        return trade

    # --- admin ---

    def rollback(self, trade_ids: Iterable[str]) -> List[RollbackResult]:
        """Undo trades newest first; each must be its market's latest live trade."""
        results: List[RollbackResult] = []
        known: List[Trade] = []
        for trade_id in dict.fromkeys(trade_ids):
            trade = self.store.trades.get(trade_id)
            if trade is None:
                results.append(RollbackResult(trade_id, False, f"Trade not found: {trade_id}"))
            else:
                known.append(trade)
        for trade in sorted(known, key=lambda t: t.seq, reverse=True):
            try:
                self._rollback_one(trade)
            except MarketError as exc:
                logger.warning("rollback failed trade=%s: %s", trade.id, exc.message)
                results.append(RollbackResult(trade.id, False, exc.message))
            else:
                results.append(RollbackResult(trade.id, True))
        return results

    def _rollback_one(self, trade: Trade):
        with self.store.market_lock(trade.market_id):
            market = self.store.get_market(trade.market_id)
            if trade.rolled_back:
                raise RollbackOrderError(trade.id, "already rolled back")
            if market.status is not MarketStatus.OPEN:
                raise RollbackOrderError(trade.id, "market is resolved")
            latest = self.store.last_trade(trade.market_id)
            if latest is None or latest.id != trade.id:
                raise RollbackOrderError(trade.id, "a later trade in this market is still live")
            with self.store.accounts_lock:
                account = self.store.get_account(trade.user_id)
                pos = self.store.position(trade.user_id, trade.market_id)
                if trade.side is TradeSide.BUY:
                    account.balance += trade.amount
                    pos.add_shares(trade.outcome, -trade.shares)
                    pos.invested -= trade.amount
                else:
                    if account.balance < trade.amount:
                        raise InsufficientBalanceError(trade.amount, account.balance)
                    account.balance -= trade.amount
                    pos.add_shares(trade.outcome, trade.shares)
                    pos.invested += trade.amount
                market.pool = trade.pool_before
                trade.rolled_back = True
        metrics.inc_rollbacks()
        logger.info("rolled back trade=%s market=%s", trade.id, trade.market_id)

    def resolve(self, market_id: str, resolution: Union[Resolution, str, float]) -> Dict[str, float]:
        """Settle every position in the market and close it; returns payouts by user."""
        if not isinstance(resolution, Resolution):
            resolution = Resolution.parse(resolution)
        payouts: Dict[str, float] = {}
        with self.store.market_lock(market_id):
            market = self._open_market(market_id)
            with self.store.accounts_lock:
                for pos in self.store.positions_in(market_id):
                    if resolution.kind is ResolutionKind.NA:
                        payout = max(0.0, pos.invested)
                    else:
                        payout = pos.yes_shares * resolution.payout_per_share(
                            Outcome.YES
                        ) + pos.no_shares * resolution.payout_per_share(Outcome.NO)
                    self.store.get_account(pos.user_id).balance += payout
                    payouts[pos.user_id] = payout
                    pos.yes_shares = 0.0
                    pos.no_shares = 0.0
                    pos.invested = 0.0
            market.status = MarketStatus.RESOLVED
            market.resolution = resolution
        logger.info(
            "market resolved id=%s resolution=%s value=%s payouts=%.6f",
            market_id,
            resolution.kind.value,
            resolution.value,
            sum(payouts.values()),
        )
        return payouts

    # --- valuation ---

    def position_value(self, user_id: str, market_id: str) -> float:
        market = self.store.get_market(market_id)
        pos = self.store.get_account(user_id).positions.get(market_id)
        if pos is None or market.status is not MarketStatus.OPEN:
            return 0.0
        return pos.value(market.probability)

    def net_worth(self, user_id: str) -> float:
        """Balance plus mark-to-market value of open positions."""
        account = self.store.get_account(user_id)
        return account.balance + sum(
            self.position_value(user_id, market_id) for market_id in account.positions
        )
