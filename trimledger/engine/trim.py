"""
Trim arithmetic - partial/full exits and retroactive history recompute.

Pure functions over a Trade snapshot; nothing here mutates its inputs.
"""
import math
from dataclasses import replace
from datetime import date
from typing import List, NamedTuple, Optional

from ..domain.trade import Trade, TradeStatus, TrimEvent
from ..errors import InvalidInput, InvalidState


class TrimOutcome(NamedTuple):
    event: TrimEvent
    shares_after_trim: int
    new_status: TradeStatus

    @property
    def is_full_close(self) -> bool:
        return self.new_status == TradeStatus.CLOSED


class HistoryRecompute(NamedTuple):
    history: List[TrimEvent]
    total_realized_pnl: float
    terminal_pnl: Optional[float]  # Set only when the trade is closed


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _is_positive(value) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def r_multiple(exit_price: float, entry: float, stop: float) -> float:
    """
    (exit - entry) / (entry - stop).
    Returns 0 when the risk per share is zero instead of dividing by it.
    """
    risk_per_share = entry - stop
    if risk_per_share == 0:
        return 0.0
    return (exit_price - entry) / risk_per_share


def remaining_of(trade: Trade) -> int:
    """Remaining shares, treating a never-trimmed legacy trade as fully open."""
    if trade.remaining_shares is not None:
        return trade.remaining_shares
    return trade.shares


def shares_for_percent(remaining_shares: int, percent: float) -> int:
    """
    Shares closed by a percentage preset: ceil(remaining * percent / 100).

    Ceiling so that 100% always closes the position and a small
    percentage of a non-empty position never comes out as zero.
    """
    if not _is_positive(percent) or percent > 100:
        raise InvalidInput(f"Trim percent must be in (0, 100], got {percent}")
    if remaining_shares <= 0:
        return 0
    # Round away float noise (e.g. 7.000000000000001) before taking the ceiling
    return math.ceil(round(remaining_shares * percent / 100, 9))


def resolve_shares(trade: Trade, shares: Optional[int] = None, percent: Optional[float] = None) -> int:
    """An explicit share count wins; otherwise derive it from the percentage preset."""
    if shares is not None:
        return shares
    if percent is None:
        raise InvalidInput("Either shares or percent is required")
    return shares_for_percent(remaining_of(trade), percent)


def compute_trim(
    trade: Trade,
    exit_price: float,
    shares_to_close: int,
    trim_date: date,
    event_id: Optional[int] = None,
) -> TrimOutcome:
    """
    Compute the outcome of closing ``shares_to_close`` at ``exit_price``.

    Args:
        trade: Trade snapshot (not modified)
        exit_price: Fill price of the exit, > 0
        shares_to_close: 0 < shares_to_close <= remaining shares
        trim_date: Date of the exit
        event_id: Identity for the new TrimEvent; the ledger assigns one if None

    Returns: TrimOutcome(event, shares_after_trim, new_status)

    Raises:
        InvalidState: the trade is already closed
        InvalidInput: non-positive price/shares, shares exceeding remaining,
            missing original stop
    """
    if trade.is_closed:
        raise InvalidState(f"Trade {trade.id} is closed; no further trims accepted")
    if not _is_positive(exit_price):
        raise InvalidInput(f"Exit price must be greater than 0, got {exit_price}")
    if trade.original_stop is None:
        raise InvalidInput(f"Trade {trade.id} has no original stop")

    remaining = remaining_of(trade)
    if shares_to_close is None or shares_to_close <= 0:
        raise InvalidInput(f"Shares to close must be greater than 0, got {shares_to_close}")
    if shares_to_close > remaining:
        raise InvalidInput(f"Cannot close {shares_to_close} shares, only {remaining} remaining")
    if trim_date is None:
        raise InvalidInput("Trim date is required")

    pnl = (exit_price - trade.entry) * shares_to_close * trade.multiplier
    event = TrimEvent(
        date=trim_date,
        shares=shares_to_close,
        exit_price=exit_price,
        r_multiple=r_multiple(exit_price, trade.entry, trade.original_stop),
        pnl=pnl,
        percent_trimmed=_round_half_up(shares_to_close / remaining * 100),
        id=event_id,
    )

    shares_after_trim = remaining - shares_to_close
    new_status = TradeStatus.CLOSED if shares_after_trim == 0 else TradeStatus.TRIMMED
    return TrimOutcome(event, shares_after_trim, new_status)


def recompute_history(trade: Trade, new_entry: float, new_original_stop: float) -> HistoryRecompute:
    """
    Re-derive every trim's pnl and R-multiple against a corrected entry/stop.

    Shares, exit price, date and identity of each event are kept; exit
    price and date of a closed trade describe the final trim and are not
    a function of entry, so they are not part of the result.
    """
    if not _is_positive(new_entry):
        raise InvalidInput(f"Entry price must be greater than 0, got {new_entry}")
    if not _is_positive(new_original_stop):
        raise InvalidInput(f"Original stop must be greater than 0, got {new_original_stop}")

    history = [
        replace(
            event,
            pnl=(event.exit_price - new_entry) * event.shares * trade.multiplier,
            r_multiple=r_multiple(event.exit_price, new_entry, new_original_stop),
        )
        for event in trade.trim_history
    ]
    total = sum(event.pnl for event in history)
    terminal_pnl = total if trade.is_closed else None
    return HistoryRecompute(history, total, terminal_pnl)
