"""
Account Layer: trade ledger, cash flow, valuation and the account book.
"""
from .ledger import TradeLedger, CommitResult, IdSource
from .cashflow import CashFlowLedger, CashFlowResult
from .valuation import ValuationCache, Fingerprint, AccountSnapshot
from .events import EventBus
from .book import AccountBook

__all__ = [
    "TradeLedger",
    "CommitResult",
    "IdSource",
    "CashFlowLedger",
    "CashFlowResult",
    "ValuationCache",
    "Fingerprint",
    "AccountSnapshot",
    "EventBus",
    "AccountBook",
]
