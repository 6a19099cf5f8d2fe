"""
Engine Layer: trim arithmetic and risk figures.
"""
from .trim import (
    TrimOutcome,
    HistoryRecompute,
    r_multiple,
    remaining_of,
    shares_for_percent,
    resolve_shares,
    compute_trim,
    recompute_history,
)
from .risk import gross_risk, net_risk, open_risk, r_multiple_for, default_target, price_for_r, reward_to_risk

__all__ = [
    "TrimOutcome",
    "HistoryRecompute",
    "r_multiple",
    "remaining_of",
    "shares_for_percent",
    "resolve_shares",
    "compute_trim",
    "recompute_history",
    "gross_risk",
    "net_risk",
    "open_risk",
    "r_multiple_for",
    "default_target",
    "price_for_r",
    "reward_to_risk",
]
