"""
Risk figures for reporting. Derived on demand, never persisted.
"""
from typing import Iterable, Optional

from ..config import DEFAULT_TARGET_R
from ..domain.trade import Trade, TradeStatus
from .trim import r_multiple, remaining_of


def _stop_of(trade: Trade) -> float:
    return trade.current_stop if trade.current_stop is not None else trade.original_stop


def gross_risk(trade: Trade) -> float:
    """remaining * (entry - current stop) * multiplier. Negative when the stop is above entry."""
    return remaining_of(trade) * (trade.entry - _stop_of(trade)) * trade.multiplier


def net_risk(trade: Trade) -> float:
    """
    Dollar exposure if the position hit its current stop now.

    For trimmed trades, profit already banked through trims offsets the
    remaining exposure. Never negative; zero for closed trades.
    """
    if trade.status == TradeStatus.CLOSED:
        return 0.0
    risk = gross_risk(trade)
    if trade.status == TradeStatus.TRIMMED:
        risk -= trade.total_realized_pnl or 0.0
    return max(0.0, risk)


def open_risk(trades: Iterable[Trade]) -> float:
    """Total net risk across open and trimmed positions."""
    return sum(
        net_risk(t) for t in trades
        if t.status in (TradeStatus.OPEN, TradeStatus.TRIMMED)
    )


def r_multiple_for(trade: Trade, price: float) -> float:
    """R-multiple a hypothetical exit at ``price`` would book, against the original stop."""
    return r_multiple(price, trade.entry, trade.original_stop)


def default_target(trade: Trade, r: float = DEFAULT_TARGET_R) -> float:
    """Trade target if set, otherwise entry + r * risk per share."""
    if trade.target is not None:
        return trade.target
    return trade.entry + trade.risk_per_share * r


def price_for_r(trade: Trade, r: float) -> float:
    """Exit price that would book exactly ``r`` R."""
    return trade.entry + trade.risk_per_share * r


def reward_to_risk(trade: Trade) -> Optional[float]:
    """Target distance over original risk; None when either is undefined."""
    if trade.target is None or trade.risk_per_share == 0:
        return None
    return (trade.target - trade.entry) / trade.risk_per_share
