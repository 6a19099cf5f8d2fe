"""
Trade and TrimEvent - the entity model for a position's exit lifecycle.
"""
import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from ..config import OPTION_MULTIPLIER, STOCK_MULTIPLIER, PNL_REL_TOL


class AssetType(str, Enum):
    STOCK = "stock"
    OPTION = "option"


class OptionType(str, Enum):
    CALL = "call"
    PUT = "put"


class TradeStatus(str, Enum):
    OPEN = "open"
    TRIMMED = "trimmed"
    CLOSED = "closed"


@dataclass(frozen=True)
class TrimEvent:
    """One exit event. Replaced (never edited) when a position edit recomputes it."""
    date: date
    shares: int
    exit_price: float
    r_multiple: float
    pnl: float
    percent_trimmed: int
    id: Optional[int] = None

    def __repr__(self) -> str:
        return f"TrimEvent({self.date}, {self.shares} @ {self.exit_price:.2f}, pnl={self.pnl:.2f}, {self.r_multiple:.1f}R)"


@dataclass
class Trade:
    """
    One position, stock or option.

    ``original_stop`` is the fixed risk baseline for R-multiple math;
    ``current_stop`` may trail. Sizing and aggregate fields
    (``original_shares``, ``remaining_shares``, ``total_realized_pnl``)
    are written by the TradeLedger only.
    """
    ticker: str
    entry: float
    shares: int
    original_stop: Optional[float] = None
    current_stop: Optional[float] = None
    target: Optional[float] = None
    id: Optional[int] = None

    asset_type: AssetType = AssetType.STOCK
    strike: Optional[float] = None
    expiration_date: Optional[date] = None
    option_type: Optional[OptionType] = None
    premium: Optional[float] = None

    status: TradeStatus = TradeStatus.OPEN
    original_shares: Optional[int] = None
    remaining_shares: Optional[int] = None
    trim_history: List[TrimEvent] = field(default_factory=list)
    total_realized_pnl: Optional[float] = None

    # Terminal fields, only meaningful once closed
    exit_price: Optional[float] = None
    exit_date: Optional[date] = None
    pnl: Optional[float] = None

    timestamp: Optional[datetime] = None
    notes: str = ""

    def __repr__(self) -> str:
        return (
            f"Trade({self.id}, {self.ticker}, {self.status.value}, "
            f"{self.remaining_shares}/{self.original_shares} @ {self.entry:.2f})"
        )

    @property
    def is_option(self) -> bool:
        return self.asset_type == AssetType.OPTION

    @property
    def multiplier(self) -> int:
        """100 for options (one contract = 100 shares), 1 for stock."""
        return OPTION_MULTIPLIER if self.is_option else STOCK_MULTIPLIER

    @property
    def is_materialized(self) -> bool:
        return self.original_shares is not None

    @property
    def is_closed(self) -> bool:
        return self.status == TradeStatus.CLOSED

    @property
    def risk_per_share(self) -> float:
        """entry - original_stop. May be <= 0 for inverted or edited positions."""
        return self.entry - self.original_stop

    @property
    def realized_pnl(self) -> float:
        """totalRealizedPnL, else terminal pnl, else 0."""
        if self.total_realized_pnl is not None:
            return self.total_realized_pnl
        if self.pnl is not None:
            return self.pnl
        return 0.0

    @property
    def trimmed_shares(self) -> int:
        return sum(t.shares for t in self.trim_history)

    def copy(self) -> "Trade":
        """Detached copy; TrimEvents are immutable so the list is shallow-copied."""
        return replace(self, trim_history=list(self.trim_history))

    @property
    def is_untracked_close(self) -> bool:
        """Closed before trims were recorded: no history, realized P&L only in ``pnl``."""
        return self.is_closed and not self.trim_history and self.total_realized_pnl is None

    def invariant_violations(self) -> List[str]:
        """
        Check the structural invariants of a materialized trade.

        Returns: List of human-readable violations (empty when consistent)
        """
        if not self.is_materialized:
            return []

        problems = []
        if not 0 <= self.remaining_shares <= self.original_shares:
            problems.append(
                f"remaining shares {self.remaining_shares} outside [0, {self.original_shares}]"
            )

        if self.is_untracked_close:
            if self.remaining_shares != 0:
                problems.append(f"closed with {self.remaining_shares} shares remaining")
            return problems

        if self.remaining_shares + self.trimmed_shares != self.original_shares:
            problems.append(
                f"shares not conserved: {self.remaining_shares} remaining + "
                f"{self.trimmed_shares} trimmed != {self.original_shares}"
            )

        history_pnl = sum(t.pnl for t in self.trim_history)
        if not math.isclose(self.total_realized_pnl or 0.0, history_pnl, rel_tol=PNL_REL_TOL, abs_tol=1e-9):
            problems.append(
                f"totalRealizedPnL {self.total_realized_pnl} != sum of trims {history_pnl}"
            )

        if not self.trim_history:
            if self.status != TradeStatus.OPEN:
                problems.append(f"status {self.status.value} without any trim")
        elif self.remaining_shares == 0:
            if self.status != TradeStatus.CLOSED:
                problems.append(f"no shares remaining but status is {self.status.value}")
            elif self.pnl is None or not math.isclose(self.pnl, history_pnl, rel_tol=PNL_REL_TOL, abs_tol=1e-9):
                problems.append(f"terminal pnl {self.pnl} != totalRealizedPnL {history_pnl}")
        elif self.status != TradeStatus.TRIMMED:
            problems.append(f"shares remaining after trims but status is {self.status.value}")

        return problems
