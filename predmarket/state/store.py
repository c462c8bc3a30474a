"""In-memory store acting as the transaction authority.

Every read-modify-write of a market's reserves must run while holding that
market's lock, so at most one reserve mutation per market is in flight. Lock
order is market lock first, then the accounts lock.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from ..core.errors import (
    AccountExistsError,
    AccountNotFoundError,
    MarketNotFoundError,
    TradeNotFoundError,
)
from ..core.types import Account, Market, Position, Trade


@dataclass
class Store:
    markets: Dict[str, Market] = field(default_factory=dict)
    accounts: Dict[str, Account] = field(default_factory=dict)
    trades: Dict[str, Trade] = field(default_factory=dict)
    accounts_lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _market_locks: Dict[str, threading.Lock] = field(default_factory=dict, repr=False)
    _registry_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _seq: Iterator[int] = field(default_factory=lambda: itertools.count(1), repr=False)

    def upsert_market(self, m: Market):
        with self._registry_lock:
            self.markets[m.id] = m
            self._market_locks.setdefault(m.id, threading.Lock())

    def get_market(self, market_id: str) -> Market:
        market = self.markets.get(market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        return market

    def market_lock(self, market_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._market_locks.get(market_id)
        if lock is None:
            raise MarketNotFoundError(market_id)
        return lock

    def add_account(self, account: Account) -> Account:
        with self.accounts_lock:
            if account.user_id in self.accounts:
                raise AccountExistsError(account.user_id)
            self.accounts[account.user_id] = account
        return account

    def get_account(self, user_id: str) -> Account:
        account = self.accounts.get(user_id)
        if account is None:
            raise AccountNotFoundError(user_id)
        return account

    def position(self, user_id: str, market_id: str) -> Position:
        account = self.get_account(user_id)
        pos = account.positions.get(market_id)
        if pos is None:
            pos = Position(user_id=user_id, market_id=market_id)
            account.positions[market_id] = pos
        return pos

    def positions_in(self, market_id: str) -> List[Position]:
        with self.accounts_lock:
            return [
                a.positions[market_id]
                for a in self.accounts.values()
                if market_id in a.positions
            ]

    def next_seq(self) -> int:
        with self._registry_lock:
            return next(self._seq)

    def add_trade(self, trade: Trade):
        self.trades[trade.id] = trade

    def get_trade(self, trade_id: str) -> Trade:
        trade = self.trades.get(trade_id)
        if trade is None:
            raise TradeNotFoundError(trade_id)
        return trade

    def trades_for_market(self, market_id: str, include_rolled_back: bool = False) -> List[Trade]:
        out = [
            t
            for t in list(self.trades.values())
            if t.market_id == market_id and (include_rolled_back or not t.rolled_back)
        ]
        return sorted(out, key=lambda t: t.seq)

    def last_trade(self, market_id: str) -> Optional[Trade]:
        live = self.trades_for_market(market_id)
        return live[-1] if live else None
