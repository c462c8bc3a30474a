"""Simple trade router."""

from __future__ import annotations

from ..core.types import BuyRequest, SellRequest, Trade, TradeRequest
from .executor import Exchange


def route(exchange: Exchange, user_id: str, market_id: str, request: TradeRequest) -> Trade:
    if isinstance(request, BuyRequest):
        return exchange.buy(user_id, market_id, request.outcome, request.amount)
    if isinstance(request, SellRequest):
        return exchange.sell(user_id, market_id, request.outcome, request.shares)
    raise TypeError(f"unsupported trade request: {request!r}")
