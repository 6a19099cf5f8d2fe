"""
ValuationCache - memoized realized P&L and current account size.

Holds no authoritative data: everything here can be thrown away and
rebuilt from the trade ledger, the cash-flow ledger and the settings.
"""
from dataclasses import dataclass
from typing import Callable, List, NamedTuple, Optional

from loguru import logger

from ..domain.settings import AccountSettings
from ..domain.trade import TradeStatus
from .cashflow import CashFlowLedger
from .ledger import TradeLedger


class Fingerprint(NamedTuple):
    """
    Dependency fingerprint for the cached values.

    The version counters rule out false cache hits; the additive sums are
    the cheap content check (count + sum(id + realized pnl)) and also catch
    a dependency swapped out underneath the cache.
    """
    trades_version: int
    cash_flow_version: int
    trades_hash: float
    cash_flow_hash: Optional[float]
    starting_balance: float


@dataclass(frozen=True)
class AccountSnapshot:
    starting_balance: float
    realized_pnl: float
    net_cash_flow: float
    current_size: float


class ValuationCache:
    """
    Lazily computes realized P&L and current account size, recomputing only
    when the dependency fingerprint changes.
    """

    def __init__(
        self,
        trades: TradeLedger,
        cash_flows: CashFlowLedger,
        settings: AccountSettings,
    ):
        self.trades = trades
        self.cash_flows = cash_flows
        self.settings = settings

        self._realized_pnl: Optional[float] = None
        self._current_size: Optional[float] = None
        self._fingerprint: Optional[Fingerprint] = None
        self.recomputations = 0

        self._unsubscribe: List[Callable[[], None]] = [
            trades.subscribe(self.invalidate),
            cash_flows.subscribe(self.invalidate),
        ]

    def __repr__(self) -> str:
        state = "cached" if self._current_size is not None else "stale"
        return f"ValuationCache({state}, recomputations={self.recomputations})"

    def close(self) -> None:
        """Detach from the ledgers."""
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    def invalidate(self) -> None:
        """Drop cached values. Called synchronously by every ledger mutation."""
        self._realized_pnl = None
        self._current_size = None

    def _trades_hash(self) -> float:
        count, total = 0, 0.0
        for trade_id, _, realized in self.trades.realized_contributions():
            count += 1
            total += trade_id + realized
        return count + total

    def _cash_flow_hash(self) -> Optional[float]:
        try:
            return (
                len(self.cash_flows)
                + self.cash_flows.total_deposits
                + self.cash_flows.total_withdrawals
            )
        except (TypeError, ValueError, AttributeError):
            return None

    def fingerprint(self) -> Fingerprint:
        return Fingerprint(
            trades_version=self.trades.version,
            cash_flow_version=self.cash_flows.version,
            trades_hash=self._trades_hash(),
            cash_flow_hash=self._cash_flow_hash(),
            starting_balance=self.settings.starting_account_size,
        )

    def _is_fresh(self) -> bool:
        cached = self._fingerprint
        if self._current_size is None or cached is None:
            return False
        # Version counters first; the sums only run when nothing has moved
        if (
            cached.trades_version != self.trades.version
            or cached.cash_flow_version != self.cash_flows.version
            or cached.starting_balance != self.settings.starting_account_size
        ):
            return False
        return (
            cached.trades_hash == self._trades_hash()
            and cached.cash_flow_hash == self._cash_flow_hash()
        )

    def compute_realized_pnl(self) -> float:
        """From-scratch realized P&L over closed and trimmed trades."""
        return sum(
            realized for _, status, realized in self.trades.realized_contributions()
            if status in (TradeStatus.CLOSED, TradeStatus.TRIMMED)
        )

    def _recompute(self) -> None:
        fingerprint = self.fingerprint()
        realized = self.compute_realized_pnl()
        self._realized_pnl = realized
        self._fingerprint = fingerprint
        try:
            self._current_size = (
                self.settings.starting_account_size
                + realized
                + (self.cash_flows.total_deposits - self.cash_flows.total_withdrawals)
            )
        except (TypeError, ValueError, AttributeError):
            logger.exception("Error calculating current account size, ignoring cash flow")
            self._current_size = None
            self._fingerprint = None
            return
        self.recomputations += 1
        logger.debug(f"Recomputed account: realized={realized:.2f}, size={self._current_size:.2f}")

    def realized_pnl(self) -> float:
        if self._realized_pnl is None or not self._is_fresh():
            self._recompute()
        return self._realized_pnl

    def current_size(self) -> float:
        """
        starting balance + realized P&L + (deposits - withdrawals).

        Falls back to starting balance + realized P&L when the cash-flow term
        cannot be computed; the fallback is not cached.
        """
        if not self._is_fresh():
            self._recompute()
        if self._current_size is None:
            return self.settings.starting_account_size + self._realized_pnl
        return self._current_size

    def snapshot(self) -> AccountSnapshot:
        size = self.current_size()
        realized = self.realized_pnl()
        return AccountSnapshot(
            starting_balance=self.settings.starting_account_size,
            realized_pnl=realized,
            net_cash_flow=size - self.settings.starting_account_size - realized,
            current_size=size,
        )
