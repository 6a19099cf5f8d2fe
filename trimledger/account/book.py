"""
AccountBook - the trading account: trades, cash flow and derived balance.

Wires the ledgers, the trim engine, the valuation cache, event
notifications and debounced persistence together. Every collaborator is
passed in or built here; there is no module-level instance.
"""
from datetime import date, datetime
from typing import Optional

from loguru import logger

from ..config import CASH_FLOW_KEY, JOURNAL_KEY, SAVE_DELAY_SECONDS, SETTINGS_KEY
from ..data.records import (
    cash_flows_from_document,
    cash_flows_to_document,
    settings_from_record,
    settings_to_record,
    trade_to_record,
    trades_from_records,
)
from ..data.store import Store
from ..data.writer import DebouncedWriter
from ..domain.cashflow import CashFlowType
from ..domain.settings import AccountSettings
from ..domain.trade import Trade
from ..engine.risk import open_risk
from ..engine.trim import compute_trim, resolve_shares
from ..errors import ErrorKind, TradeError
from . import events
from .cashflow import CashFlowLedger, CashFlowResult
from .events import EventBus
from .ledger import CommitResult, IdSource, TradeLedger
from .valuation import AccountSnapshot, ValuationCache


class AccountBook:
    """
    Trading account built from trade history plus external cash movements.
    All mutations are synchronous; persistence trails behind them.
    """

    def __init__(
        self,
        settings: Optional[AccountSettings] = None,
        store: Optional[Store] = None,
        save_delay: float = SAVE_DELAY_SECONDS,
    ):
        ids = IdSource()
        self.settings = settings or AccountSettings()
        self.trades = TradeLedger(id_source=ids)
        self.cash_flows = CashFlowLedger(id_source=ids)
        self.valuation = ValuationCache(self.trades, self.cash_flows, self.settings)
        self.events = EventBus()
        self.store = store
        self.writer = DebouncedWriter(store, delay=save_delay) if store is not None else None

    def __repr__(self) -> str:
        return f"AccountBook(start={self.settings.starting_account_size:.0f}, size={self.current_size:.2f}, trades={len(self.trades)})"

    @property
    def current_size(self) -> float:
        """Realized account balance (no unrealized P&L)."""
        return self.valuation.current_size()

    @property
    def realized_pnl(self) -> float:
        return self.valuation.realized_pnl()

    def snapshot(self) -> AccountSnapshot:
        return self.valuation.snapshot()

    def open_risk(self) -> float:
        """Total net risk across open and trimmed positions."""
        return open_risk(self.trades.open_trades())

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Restore settings, trades and cash flow from the store."""
        if self.store is None:
            return

        stored = settings_from_record(self.store.load(SETTINGS_KEY))
        for name, value in vars(stored).items():
            setattr(self.settings, name, value)

        self.trades.load(trades_from_records(self.store.load(JOURNAL_KEY) or []))
        self.cash_flows.load(cash_flows_from_document(self.store.load(CASH_FLOW_KEY)))
        self.valuation.invalidate()
        logger.info(f"Account loaded: {len(self.trades)} trades, size={self.current_size:.2f}")

    def _save_journal(self) -> None:
        if self.writer is not None:
            self.writer.schedule(JOURNAL_KEY, [trade_to_record(t) for t in self.trades])

    def _save_cash_flow(self) -> None:
        if self.writer is not None:
            self.writer.schedule(CASH_FLOW_KEY, cash_flows_to_document(list(self.cash_flows)))

    def _save_settings(self) -> None:
        if self.writer is not None:
            self.writer.schedule(SETTINGS_KEY, settings_to_record(self.settings))

    def save_all(self) -> None:
        """Write everything immediately, bypassing the debounce."""
        if self.writer is None:
            return
        self._save_settings()
        self._save_journal()
        self._save_cash_flow()
        self.writer.flush()

    def close(self) -> None:
        """Flush pending writes and detach the cache."""
        if self.writer is not None:
            self.writer.flush()
        self.valuation.close()

    # ------------------------------------------------------------------
    # Trades
    # ------------------------------------------------------------------

    def _trade_committed(self, event: str, result: CommitResult) -> CommitResult:
        if result:
            self._save_journal()
            self.events.emit(event, result.trade)
            self.events.emit(events.ACCOUNT_SIZE_CHANGED, self.current_size)
        return result

    def add_trade(self, trade: Trade) -> CommitResult:
        return self._trade_committed(events.TRADE_ADDED, self.trades.insert(trade))

    def trim(
        self,
        trade_id: int,
        exit_price: float,
        shares: Optional[int] = None,
        percent: Optional[float] = None,
        trim_date: Optional[date] = None,
        new_stop: Optional[float] = None,
    ) -> CommitResult:
        """
        Close part or all of a position.

        Args:
            trade_id: Trade to trim
            exit_price: Fill price, > 0
            shares: Explicit number of shares/contracts to close
            percent: Percentage preset used when ``shares`` is None
                (ceil(remaining * percent / 100))
            trim_date: Exit date, defaults to today
            new_stop: Optional new trailing stop for what remains

        Returns: CommitResult; on refusal the trade is unchanged
        """
        trade = self.trades.get(trade_id)
        if trade is None:
            logger.warning(f"Trim refused: trade not found: {trade_id}")
            return CommitResult.failure(ErrorKind.NOT_FOUND, f"Trade not found: {trade_id}")

        try:
            shares_to_close = resolve_shares(trade, shares=shares, percent=percent)
            outcome = compute_trim(trade, exit_price, shares_to_close, trim_date or date.today())
        except TradeError as e:
            logger.warning(f"Trim refused for {trade.ticker} ({e.kind.value}): {e}")
            return CommitResult.failure(e.kind, str(e), trade)

        result = self.trades.apply_trim(
            trade_id,
            outcome.event,
            outcome.shares_after_trim,
            outcome.new_status,
            new_stop=new_stop,
        )
        if result:
            action = "closed" if outcome.is_full_close else f"trimmed {outcome.event.percent_trimmed}%"
            logger.info(f"{trade.ticker} {action}: {outcome.event.pnl:+.2f}")
        return self._trade_committed(events.TRADE_UPDATED, result)

    def close_position(self, trade_id: int, exit_price: float, trim_date: Optional[date] = None) -> CommitResult:
        """Close everything that remains."""
        return self.trim(trade_id, exit_price, percent=100, trim_date=trim_date)

    def edit_position(
        self,
        trade_id: int,
        entry: Optional[float] = None,
        original_stop: Optional[float] = None,
        target: Optional[float] = None,
        timestamp: Optional[datetime] = None,
        strike: Optional[float] = None,
        expiration_date: Optional[date] = None,
    ) -> CommitResult:
        """Correct entry terms; trim history is recomputed against them."""
        result = self.trades.apply_position_edit(
            trade_id,
            entry=entry,
            original_stop=original_stop,
            target=target,
            timestamp=timestamp,
            strike=strike,
            expiration_date=expiration_date,
        )
        return self._trade_committed(events.TRADE_UPDATED, result)

    def move_stop(self, trade_id: int, new_stop: float) -> CommitResult:
        return self._trade_committed(events.TRADE_UPDATED, self.trades.update_stop(trade_id, new_stop))

    def change_target(self, trade_id: int, new_target: float) -> CommitResult:
        return self._trade_committed(events.TRADE_UPDATED, self.trades.update_target(trade_id, new_target))

    def delete_trade(self, trade_id: int) -> CommitResult:
        return self._trade_committed(events.TRADE_DELETED, self.trades.delete(trade_id))

    # ------------------------------------------------------------------
    # Cash flow and settings
    # ------------------------------------------------------------------

    def _cash_flow_committed(self, result: CashFlowResult) -> CashFlowResult:
        if result:
            self._save_cash_flow()
            self.events.emit(events.CASH_FLOW_CHANGED, result.transaction)
            self.events.emit(events.ACCOUNT_SIZE_CHANGED, self.current_size)
        return result

    def deposit(self, amount: float, timestamp: Optional[datetime] = None) -> CashFlowResult:
        return self._cash_flow_committed(self.cash_flows.add(CashFlowType.DEPOSIT, amount, timestamp))

    def withdraw(self, amount: float, timestamp: Optional[datetime] = None) -> CashFlowResult:
        return self._cash_flow_committed(self.cash_flows.add(CashFlowType.WITHDRAWAL, amount, timestamp))

    def delete_cash_flow(self, tx_id: int) -> CashFlowResult:
        return self._cash_flow_committed(self.cash_flows.delete(tx_id))

    def update_settings(self, **updates) -> bool:
        """
        Update account settings. Unknown names and a non-positive starting
        balance are refused without changing anything.
        """
        unknown = [name for name in updates if not hasattr(self.settings, name)]
        if unknown:
            logger.warning(f"Unknown settings: {unknown}")
            return False
        size = updates.get("starting_account_size", self.settings.starting_account_size)
        if size is None or size <= 0:
            logger.warning(f"Starting account size must be greater than 0, got {size}")
            return False

        for name, value in updates.items():
            setattr(self.settings, name, value)
        self.valuation.invalidate()
        self._save_settings()
        self.events.emit(events.SETTINGS_CHANGED, self.settings)
        self.events.emit(events.ACCOUNT_SIZE_CHANGED, self.current_size)
        return True
