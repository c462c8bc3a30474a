"""Error codes and exceptions.

Code ranges:
  1xxx: Pricing engine
  2xxx: Account
  3xxx: Market
  4xxx: Trade
"""

from __future__ import annotations


class MarketError(Exception):
    """Base error for the market and its pricing engine."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


# --- 1xxx: Pricing engine ---

class InvalidPoolStateError(MarketError):
    def __init__(self, detail: str) -> None:
        super().__init__(1001, f"Invalid pool state: {detail}")


class ConvergenceError(MarketError):
    def __init__(self, target: float, residual: float, iterations: int) -> None:
        self.target = target
        self.residual = residual
        self.iterations = iterations
        super().__init__(
            1002,
            f"Sell cost search did not converge for {target} shares: "
            f"residual {residual:.3e} after {iterations} iterations",
        )


class NegativePayoutError(MarketError):
    def __init__(self, shares: float, payout: float) -> None:
        self.shares = shares
        self.payout = payout
        super().__init__(1003, f"Negative payout {payout} computed for {shares} shares")


# --- 2xxx: Account ---

class InsufficientBalanceError(MarketError):
    def __init__(self, required: float, available: float) -> None:
        super().__init__(
            2001, f"Insufficient balance: required {required}, available {available}"
        )


class AccountNotFoundError(MarketError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"Account not found for user {user_id}")


class AccountExistsError(MarketError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2003, f"Account already exists for user {user_id}")


# --- 3xxx: Market ---

class MarketNotFoundError(MarketError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3001, f"Market not found: {market_id}")


class MarketNotOpenError(MarketError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3002, f"Market is not open: {market_id}")


class InvalidMarketParametersError(MarketError):
    def __init__(self, detail: str) -> None:
        super().__init__(3003, f"Invalid market parameters: {detail}")


# --- 4xxx: Trade ---

class InvalidTradeError(MarketError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, f"Invalid trade: {detail}")


class InsufficientSharesError(MarketError):
    def __init__(self, requested: float, available: float) -> None:
        super().__init__(
            4002, f"Insufficient shares: requested {requested}, available {available}"
        )


class TradeNotFoundError(MarketError):
    def __init__(self, trade_id: str) -> None:
        super().__init__(4003, f"Trade not found: {trade_id}")


class RollbackOrderError(MarketError):
    def __init__(self, trade_id: str, detail: str) -> None:
        super().__init__(4004, f"Cannot roll back trade {trade_id}: {detail}")
