"""Core type definitions for the prediction market.

Markets are binary (YES/NO) and priced by a weighted constant-product pool.
Pool-level values are immutable; accounts and positions are mutated only by
the store under its locks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Union


class Outcome(str, Enum):
    YES = "YES"
    NO = "NO"

    @property
    def opposite(self) -> "Outcome":
        return Outcome.NO if self is Outcome.YES else Outcome.YES


class TradeSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class MarketStatus(str, Enum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"


class ResolutionKind(str, Enum):
    YES = "YES"
    NO = "NO"
    NA = "N/A"
    PROB = "PROB"


@dataclass(frozen=True)
class PoolState:
    pool_yes: float
    pool_no: float

    def invariant(self, p: float) -> float:
        """k = y^p * n^(1-p)."""
        return self.pool_yes**p * self.pool_no ** (1 - p)

    def probability(self, p: float) -> float:
        return (p * self.pool_no) / ((1 - p) * self.pool_yes + p * self.pool_no)


@dataclass(frozen=True)
class BuyRequest:
    outcome: Outcome
    amount: float  # currency spent


@dataclass(frozen=True)
class SellRequest:
    outcome: Outcome
    shares: float  # shares to liquidate


TradeRequest = Union[BuyRequest, SellRequest]


@dataclass(frozen=True)
class TradeResult:
    shares_or_payout: float
    new_pool_yes: float
    new_pool_no: float
    new_probability: float

    @property
    def pool(self) -> PoolState:
        return PoolState(self.new_pool_yes, self.new_pool_no)


@dataclass(frozen=True)
class Resolution:
    kind: ResolutionKind
    value: Optional[float] = None  # only for PROB

    @classmethod
    def parse(cls, raw: Union[str, float]) -> "Resolution":
        """Accept YES, NO, N/A or a probability in [0, 1]."""
        if isinstance(raw, str):
            key = raw.strip().upper()
            if key == "YES":
                return cls(ResolutionKind.YES)
            if key == "NO":
                return cls(ResolutionKind.NO)
            if key == "N/A":
                return cls(ResolutionKind.NA)
        try:
            value = float(raw)
        except (TypeError, ValueError):
            raise ValueError(
                f"resolution must be YES, NO, N/A or a number in [0, 1], got {raw!r}"
            ) from None
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"resolution probability out of range: {value}")
        return cls(ResolutionKind.PROB, value)

    def payout_per_share(self, outcome: Outcome) -> float:
        if self.kind is ResolutionKind.YES:
            return 1.0 if outcome is Outcome.YES else 0.0
        if self.kind is ResolutionKind.NO:
            return 1.0 if outcome is Outcome.NO else 0.0
        if self.kind is ResolutionKind.PROB:
            assert self.value is not None
            return self.value if outcome is Outcome.YES else 1.0 - self.value
        return 0.0


@dataclass
class Market:
    id: str
    question: str
    weight: float  # p, fixed at creation
    pool: PoolState
    creator_id: Optional[str] = None
    status: MarketStatus = MarketStatus.OPEN
    resolution: Optional[Resolution] = None

    @property
    def probability(self) -> float:
        return self.pool.probability(self.weight)


@dataclass
class Position:
    user_id: str
    market_id: str
    yes_shares: float = 0.0
    no_shares: float = 0.0
    invested: float = 0.0  # net currency put in: buys minus sell payouts

    def shares(self, outcome: Outcome) -> float:
        return self.yes_shares if outcome is Outcome.YES else self.no_shares

    def add_shares(self, outcome: Outcome, qty: float):
        if outcome is Outcome.YES:
            self.yes_shares += qty
        else:
            self.no_shares += qty

    def value(self, probability: float) -> float:
        """Mark-to-market value at the given YES probability."""
        return self.yes_shares * probability + self.no_shares * (1 - probability)


@dataclass
class Trade:
    id: str
    seq: int
    user_id: str
    market_id: str
    side: TradeSide
    outcome: Outcome
    amount: float  # currency paid (BUY) or received (SELL)
    shares: float
    pool_before: PoolState
    pool_after: PoolState
    prob_before: float
    prob_after: float
    rolled_back: bool = False


@dataclass
class Account:
    user_id: str
    balance: float = 0.0
    positions: Dict[str, Position] = field(default_factory=dict)
