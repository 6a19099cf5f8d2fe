"""
TradeLedger - the authoritative trade collection.

Single writer for every Trade and TrimEvent. Each committed mutation bumps
``version`` and synchronously notifies subscribers (the valuation cache)
before control returns to the caller.
"""
import time
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

import pandas as pd
from loguru import logger

from ..domain.trade import Trade, TradeStatus, TrimEvent
from ..engine.trim import recompute_history, remaining_of
from ..errors import ErrorKind, TradeError


@dataclass(frozen=True)
class CommitResult:
    """Outcome of a ledger write. On refusal ``trade`` is the untouched prior state (or None)."""
    ok: bool
    trade: Optional[Trade] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, trade: Optional[Trade]) -> "CommitResult":
        return cls(ok=True, trade=trade)

    @classmethod
    def failure(cls, error: ErrorKind, message: str, trade: Optional[Trade] = None) -> "CommitResult":
        return cls(ok=False, trade=trade, error=error, message=message)


class IdSource:
    """Millisecond-clock ids, bumped when two are requested within the same millisecond."""

    def __init__(self):
        self._last = 0

    def __call__(self) -> int:
        candidate = time.time_ns() // 1_000_000
        self._last = max(candidate, self._last + 1)
        return self._last

    def observe(self, used_id: int) -> None:
        """Make sure future ids never collide with one loaded from storage."""
        self._last = max(self._last, used_id)


class TradeLedger:
    """
    Owns all trades and guarantees their structural invariants on every write.

    Reads hand out copies; the only way to change a trade is through the
    commit operations below.
    """

    def __init__(self, trades: Optional[Iterable[Trade]] = None, id_source: Optional[IdSource] = None):
        self._trades: Dict[int, Trade] = {}
        self._version = 0
        self._listeners: List[Callable[[], None]] = []
        self._next_id = id_source or IdSource()

        if trades:
            self.load(trades)

    def __repr__(self) -> str:
        return f"TradeLedger(trades={len(self._trades)}, open={len(self.open_trades())}, version={self._version})"

    def __len__(self) -> int:
        return len(self._trades)

    def __contains__(self, trade_id: int) -> bool:
        return trade_id in self._trades

    def __iter__(self) -> Iterator[Trade]:
        for trade in self._trades.values():
            yield trade.copy()

    @property
    def version(self) -> int:
        """Monotonic mutation counter."""
        return self._version

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a hook called synchronously after every commit.
        Returns: Function that removes the hook
        """
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    def _committed(self) -> None:
        self._version += 1
        for callback in list(self._listeners):
            callback()

    def _refuse(self, error: ErrorKind, message: str, trade: Optional[Trade] = None) -> CommitResult:
        logger.warning(f"Ledger refused mutation ({error.value}): {message}")
        return CommitResult.failure(error, message, trade.copy() if trade else None)

    def _not_found(self, trade_id: int) -> CommitResult:
        return self._refuse(ErrorKind.NOT_FOUND, f"Trade not found: {trade_id}")

    def _store(self, trade: Trade) -> CommitResult:
        """Check invariants of the candidate state, then swap it in."""
        problems = trade.invariant_violations()
        if problems:
            return self._refuse(ErrorKind.INVALID_INPUT, "; ".join(problems), self._trades.get(trade.id))

        self._trades[trade.id] = trade
        self._committed()
        return CommitResult.success(trade.copy())

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, trade_id: int) -> Optional[Trade]:
        """Get a copy of a trade, or None if the id is unknown."""
        trade = self._trades.get(trade_id)
        return trade.copy() if trade else None

    def realized_contributions(self) -> Iterator[Tuple[int, TradeStatus, float]]:
        """(id, status, realized pnl) per trade, read in place without copying."""
        for trade in self._trades.values():
            yield trade.id, trade.status, trade.realized_pnl

    def open_trades(self) -> List[Trade]:
        """Trades still carrying shares (open or trimmed)."""
        return [
            t.copy() for t in self._trades.values()
            if t.status in (TradeStatus.OPEN, TradeStatus.TRIMMED)
        ]

    def filtered(self, status: Optional[TradeStatus] = None) -> List[Trade]:
        if status is None:
            return list(self)
        return [t.copy() for t in self._trades.values() if t.status == status]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def load(self, trades: Iterable[Trade]) -> int:
        """
        Replace the whole collection (used when restoring from storage).
        Trades that have never been materialized get their sizing snapshot.

        Returns: Number of trades loaded
        """
        loaded: Dict[int, Trade] = {}
        for trade in trades:
            trade = self._materialize(trade.copy())
            for problem in trade.invariant_violations():
                logger.warning(f"Loaded trade {trade.id} ({trade.ticker}) is inconsistent: {problem}")
            loaded[trade.id] = trade

        self._trades = loaded
        self._committed()
        logger.info(f"Loaded {len(loaded)} trades")
        return len(loaded)

    def _materialize(self, trade: Trade) -> Trade:
        if trade.id is None:
            trade.id = self._next_id()
        else:
            self._next_id.observe(trade.id)

        if trade.original_stop is None:
            trade.original_stop = trade.current_stop
        if trade.current_stop is None:
            trade.current_stop = trade.original_stop

        if not trade.is_materialized:
            trade.original_shares = trade.shares
            trade.trim_history = []
            if trade.is_closed:
                # Closed before trims were tracked: realized P&L lives in the terminal pnl
                trade.remaining_shares = 0
                trade.total_realized_pnl = None
            else:
                trade.remaining_shares = trade.shares
                trade.total_realized_pnl = 0.0
        for i, event in enumerate(trade.trim_history):
            if event.id is None:
                trade.trim_history[i] = replace(event, id=self._next_id())
        return trade

    def insert(self, trade: Trade) -> CommitResult:
        """
        Add a new trade, assigning an id if it has none and snapshotting
        original/remaining shares on first materialization.
        """
        if trade.id is not None and trade.id in self._trades:
            return self._refuse(ErrorKind.INVALID_INPUT, f"Duplicate trade id: {trade.id}")
        if not trade.ticker:
            return self._refuse(ErrorKind.INVALID_INPUT, "Ticker is required")
        if trade.entry is None or trade.entry <= 0:
            return self._refuse(ErrorKind.INVALID_INPUT, f"Entry price must be greater than 0, got {trade.entry}")
        if trade.shares is None or trade.shares <= 0:
            return self._refuse(ErrorKind.INVALID_INPUT, f"Shares must be greater than 0, got {trade.shares}")
        stop = trade.original_stop if trade.original_stop is not None else trade.current_stop
        if stop is None or stop <= 0:
            return self._refuse(ErrorKind.INVALID_INPUT, f"Stop must be greater than 0, got {stop}")
        if trade.target is not None and trade.target <= trade.entry:
            return self._refuse(ErrorKind.INVALID_INPUT, "Target price must be greater than entry price")

        candidate = self._materialize(trade.copy())
        if candidate.timestamp is None:
            candidate.timestamp = datetime.now()

        result = self._store(candidate)
        if result:
            logger.debug(f"Inserted {candidate}")
        return result

    def apply_trim(
        self,
        trade_id: int,
        trim_event: TrimEvent,
        new_remaining_shares: int,
        new_status: TradeStatus,
        new_stop: Optional[float] = None,
    ) -> CommitResult:
        """
        Atomically commit a computed trim: append the event, set remaining
        shares and status, recompute totalRealizedPnL, and on a full close
        set exit price/date and terminal pnl. Nothing changes on refusal.

        Args:
            new_stop: Optional trailing stop to move in the same commit
        """
        current = self._trades.get(trade_id)
        if current is None:
            return self._not_found(trade_id)
        if current.is_closed:
            return self._refuse(ErrorKind.INVALID_STATE, f"Trade {trade_id} is closed", current)
        if trim_event.shares is None or trim_event.shares <= 0:
            return self._refuse(ErrorKind.INVALID_INPUT, f"Trim shares must be greater than 0, got {trim_event.shares}", current)
        if trim_event.exit_price is None or trim_event.exit_price <= 0:
            return self._refuse(ErrorKind.INVALID_INPUT, f"Exit price must be greater than 0, got {trim_event.exit_price}", current)
        if new_remaining_shares < 0:
            return self._refuse(ErrorKind.INVALID_INPUT, f"Cannot close {trim_event.shares} shares, only {remaining_of(current)} remaining", current)
        if new_remaining_shares != remaining_of(current) - trim_event.shares:
            return self._refuse(
                ErrorKind.INVALID_INPUT,
                f"Remaining shares {new_remaining_shares} inconsistent with trim of {trim_event.shares}",
                current,
            )
        if new_stop is not None and new_stop <= 0:
            return self._refuse(ErrorKind.INVALID_INPUT, f"New stop must be greater than 0, got {new_stop}", current)

        candidate = self._materialize(current.copy())
        if trim_event.id is None:
            trim_event = replace(trim_event, id=self._next_id())
        candidate.trim_history.append(trim_event)
        candidate.remaining_shares = new_remaining_shares
        candidate.total_realized_pnl = sum(e.pnl for e in candidate.trim_history)
        candidate.status = new_status
        if new_stop is not None:
            candidate.current_stop = new_stop

        if new_status == TradeStatus.CLOSED:
            candidate.exit_price = trim_event.exit_price
            candidate.exit_date = trim_event.date
            candidate.pnl = candidate.total_realized_pnl

        result = self._store(candidate)
        if result:
            logger.debug(
                f"Trim {trade_id}: {trim_event.shares} @ {trim_event.exit_price} "
                f"pnl={trim_event.pnl:.2f} -> {new_status.value}, {new_remaining_shares} left"
            )
        return result

    def apply_position_edit(
        self,
        trade_id: int,
        entry: Optional[float] = None,
        original_stop: Optional[float] = None,
        target: Optional[float] = None,
        timestamp: Optional[datetime] = None,
        strike: Optional[float] = None,
        expiration_date: Optional[date] = None,
    ) -> CommitResult:
        """
        Correct a position's entry terms after the fact.

        When trims exist, every historical event's pnl and R-multiple is
        recomputed against the new entry/original stop so the trade keeps
        reconciling with its own history.
        """
        current = self._trades.get(trade_id)
        if current is None:
            return self._not_found(trade_id)

        new_entry = current.entry if entry is None else entry
        new_stop = current.original_stop if original_stop is None else original_stop
        if new_entry <= 0:
            return self._refuse(ErrorKind.INVALID_INPUT, "Entry price must be greater than 0", current)
        if new_stop is None or new_stop <= 0:
            return self._refuse(ErrorKind.INVALID_INPUT, "Original stop must be greater than 0", current)
        effective_target = current.target if target is None else target
        if effective_target is not None and effective_target <= new_entry:
            return self._refuse(ErrorKind.INVALID_INPUT, "Target price must be greater than entry price", current)

        candidate = current.copy()
        if candidate.trim_history:
            try:
                recomputed = recompute_history(candidate, new_entry, new_stop)
            except TradeError as e:
                return self._refuse(e.kind, str(e), current)
            candidate.trim_history = recomputed.history
            candidate.total_realized_pnl = recomputed.total_realized_pnl
            if recomputed.terminal_pnl is not None:
                candidate.pnl = recomputed.terminal_pnl

        candidate.entry = new_entry
        candidate.original_stop = new_stop
        if target is not None:
            candidate.target = target
        if timestamp is not None:
            candidate.timestamp = timestamp
        if strike is not None:
            candidate.strike = strike
        if expiration_date is not None:
            candidate.expiration_date = expiration_date

        result = self._store(candidate)
        if result:
            logger.debug(f"Edited {trade_id}: entry={new_entry}, original_stop={new_stop}, {len(candidate.trim_history)} trims recomputed")
        return result

    def update_stop(self, trade_id: int, new_stop: float) -> CommitResult:
        """Move the trailing stop without closing shares."""
        current = self._trades.get(trade_id)
        if current is None:
            return self._not_found(trade_id)
        if new_stop is None or new_stop <= 0:
            return self._refuse(ErrorKind.INVALID_INPUT, "Enter a new stop greater than 0", current)
        if current.is_closed:
            return self._refuse(ErrorKind.INVALID_STATE, f"Trade {trade_id} is closed", current)

        candidate = current.copy()
        candidate.current_stop = new_stop
        return self._store(candidate)

    def update_target(self, trade_id: int, new_target: float) -> CommitResult:
        """Change the target without closing shares."""
        current = self._trades.get(trade_id)
        if current is None:
            return self._not_found(trade_id)
        if new_target is None or new_target <= 0:
            return self._refuse(ErrorKind.INVALID_INPUT, "Target price must be greater than 0", current)
        if new_target <= current.entry:
            return self._refuse(ErrorKind.INVALID_INPUT, "Target price must be greater than entry price", current)

        candidate = current.copy()
        candidate.target = new_target
        return self._store(candidate)

    def delete(self, trade_id: int) -> CommitResult:
        """Remove a trade. The result carries the deleted trade."""
        trade = self._trades.pop(trade_id, None)
        if trade is None:
            return self._not_found(trade_id)
        self._committed()
        logger.debug(f"Deleted {trade}")
        return CommitResult.success(trade)

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def to_frame(self) -> pd.DataFrame:
        """Get trades as DataFrame, one row per trade."""
        if not self._trades:
            return pd.DataFrame()

        records = [
            {
                "id": t.id,
                "ticker": t.ticker,
                "asset_type": t.asset_type.value,
                "status": t.status.value,
                "entry": t.entry,
                "original_stop": t.original_stop,
                "current_stop": t.current_stop,
                "target": t.target,
                "original_shares": t.original_shares,
                "remaining_shares": t.remaining_shares,
                "trims": len(t.trim_history),
                "realized_pnl": t.realized_pnl,
                "exit_price": t.exit_price,
                "exit_date": t.exit_date,
            }
            for t in self._trades.values()
        ]
        return pd.DataFrame(records).set_index("id")

    def trim_frame(self) -> pd.DataFrame:
        """Get every trim event as DataFrame, in trade then event order."""
        records = [
            {
                "trade_id": t.id,
                "ticker": t.ticker,
                "trim_id": e.id,
                "date": e.date,
                "shares": e.shares,
                "exit_price": e.exit_price,
                "r_multiple": e.r_multiple,
                "pnl": e.pnl,
                "percent_trimmed": e.percent_trimmed,
            }
            for t in self._trades.values()
            for e in t.trim_history
        ]
        if not records:
            return pd.DataFrame()
        return pd.DataFrame(records)
