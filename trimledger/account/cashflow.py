"""
CashFlowLedger - deposits and withdrawals.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Iterator, List, Optional

from loguru import logger

from ..domain.cashflow import CashFlowTransaction, CashFlowType
from ..errors import ErrorKind
from .ledger import IdSource


@dataclass(frozen=True)
class CashFlowResult:
    ok: bool
    transaction: Optional[CashFlowTransaction] = None
    error: Optional[ErrorKind] = None
    message: str = ""

    def __bool__(self) -> bool:
        return self.ok


class CashFlowLedger:
    """
    Owns the cash-flow transactions and their running totals.
    Newest transactions come first.
    """

    def __init__(self, transactions: Optional[Iterable[CashFlowTransaction]] = None, id_source: Optional[IdSource] = None):
        self._transactions: List[CashFlowTransaction] = []
        self._total_deposits = 0.0
        self._total_withdrawals = 0.0
        self._version = 0
        self._listeners: List[Callable[[], None]] = []
        self._next_id = id_source or IdSource()

        if transactions:
            self.load(transactions)

    def __repr__(self) -> str:
        return f"CashFlowLedger(transactions={len(self)}, net={self.net:.2f})"

    def __len__(self) -> int:
        return len(self._transactions)

    def __iter__(self) -> Iterator[CashFlowTransaction]:
        return iter(list(self._transactions))

    @property
    def version(self) -> int:
        return self._version

    @property
    def total_deposits(self) -> float:
        return self._total_deposits

    @property
    def total_withdrawals(self) -> float:
        return self._total_withdrawals

    @property
    def net(self) -> float:
        """Deposits minus withdrawals."""
        return self._total_deposits - self._total_withdrawals

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    def _committed(self) -> None:
        self._version += 1
        for callback in list(self._listeners):
            callback()

    def _retotal(self) -> None:
        self._total_deposits = sum(t.amount for t in self._transactions if t.type == CashFlowType.DEPOSIT)
        self._total_withdrawals = sum(t.amount for t in self._transactions if t.type == CashFlowType.WITHDRAWAL)

    def load(self, transactions: Iterable[CashFlowTransaction]) -> int:
        """Replace all transactions; totals are always re-derived, never trusted from storage."""
        self._transactions = list(transactions)
        for tx in self._transactions:
            if tx.id is not None:
                self._next_id.observe(tx.id)
        self._retotal()
        self._committed()
        logger.info(f"Loaded {len(self._transactions)} cash flow transactions")
        return len(self._transactions)

    def add(self, flow_type: CashFlowType, amount: float, timestamp: Optional[datetime] = None) -> CashFlowResult:
        """Record a deposit or withdrawal."""
        try:
            flow_type = CashFlowType(flow_type)
        except ValueError:
            return self._refuse(f"Unknown cash flow type: {flow_type}")
        if amount is None or amount <= 0:
            return self._refuse(f"Amount must be greater than 0, got {amount}")

        tx = CashFlowTransaction(
            type=flow_type,
            amount=amount,
            timestamp=timestamp or datetime.now(),
            id=self._next_id(),
        )
        self._transactions.insert(0, tx)
        self._retotal()
        self._committed()
        logger.debug(f"Cash flow {flow_type.value} {amount:.2f}, net now {self.net:.2f}")
        return CashFlowResult(ok=True, transaction=tx)

    def deposit(self, amount: float, timestamp: Optional[datetime] = None) -> CashFlowResult:
        return self.add(CashFlowType.DEPOSIT, amount, timestamp)

    def withdraw(self, amount: float, timestamp: Optional[datetime] = None) -> CashFlowResult:
        return self.add(CashFlowType.WITHDRAWAL, amount, timestamp)

    def delete(self, tx_id: int) -> CashFlowResult:
        for i, tx in enumerate(self._transactions):
            if tx.id == tx_id:
                del self._transactions[i]
                self._retotal()
                self._committed()
                return CashFlowResult(ok=True, transaction=tx)
        logger.warning(f"Cash flow transaction not found: {tx_id}")
        return CashFlowResult(ok=False, error=ErrorKind.NOT_FOUND, message=f"Transaction not found: {tx_id}")

    def _refuse(self, message: str) -> CashFlowResult:
        logger.warning(f"Cash flow refused: {message}")
        return CashFlowResult(ok=False, error=ErrorKind.INVALID_INPUT, message=message)
