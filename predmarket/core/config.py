"""Runtime configuration.

Values come from the environment (optionally a local .env file). The pricing
engine never reads these itself; callers pass an EngineConfig explicitly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


def _env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class EngineConfig:
    max_iterations: int = 100
    tolerance: float = 1e-8  # on share count, not on cost
    strict_convergence: bool = False  # raise instead of returning the midpoint

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if not self.tolerance > 0:
            raise ValueError("tolerance must be positive")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "EngineConfig":
        load_dotenv(env_file)
        return cls(
            max_iterations=_env_int("PM_SOLVER_MAX_ITERATIONS", 100),
            tolerance=_env_float("PM_SOLVER_TOLERANCE", 1e-8),
            strict_convergence=_env_bool("PM_SOLVER_STRICT", False),
        )


@dataclass(frozen=True)
class ExchangeConfig:
    min_ante: float = 10.0
    min_bet: float = 1.0
    # sell requests this close to the holding are snapped to the exact holding
    share_snap_epsilon: float = 0.01
    starting_balance: float = 1000.0

    def __post_init__(self):
        if self.min_ante <= 0:
            raise ValueError("min_ante must be positive")
        if self.min_bet <= 0:
            raise ValueError("min_bet must be positive")
        if self.share_snap_epsilon < 0:
            raise ValueError("share_snap_epsilon must be non-negative")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ExchangeConfig":
        load_dotenv(env_file)
        return cls(
            min_ante=_env_float("PM_MIN_ANTE", 10.0),
            min_bet=_env_float("PM_MIN_BET", 1.0),
            share_snap_epsilon=_env_float("PM_SHARE_SNAP_EPSILON", 0.01),
            starting_balance=_env_float("PM_STARTING_BALANCE", 1000.0),
        )
