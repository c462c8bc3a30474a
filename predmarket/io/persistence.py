"""Persistence helpers for exporting trade history."""

from __future__ import annotations

from pathlib import Path
import json
from typing import Any, Dict, Iterable, List

from ..core.types import Trade


def write_json(path: str | Path, obj: Any):
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w") as f:
        json.dump(obj, f, indent=2)


def trades_to_records(trades: Iterable[Trade]) -> List[Dict[str, Any]]:
    """Flatten trades into JSON-ready rows, oldest first."""
    return [
        {
            "id": t.id,
            "seq": t.seq,
            "user_id": t.user_id,
            "market_id": t.market_id,
            "side": t.side.value,
            "outcome": t.outcome.value,
            "amount": t.amount,
            "shares": t.shares,
            "pool_yes_after": t.pool_after.pool_yes,
            "pool_no_after": t.pool_after.pool_no,
            "prob_before": t.prob_before,
            "prob_after": t.prob_after,
            "rolled_back": t.rolled_back,
        }
        for t in sorted(trades, key=lambda t: t.seq)
    ]


def probability_series(trades: Iterable[Trade]) -> List[float]:
    """Probability after each live trade, for charting."""
    return [r["prob_after"] for r in trades_to_records(trades) if not r["rolled_back"]]
