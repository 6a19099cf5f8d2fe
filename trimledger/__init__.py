"""
trimledger: position accounting through partial exits, and a running
account balance derived from trade history plus cash flow.
"""
from .domain import AssetType, OptionType, TradeStatus, TrimEvent, Trade, CashFlowType, CashFlowTransaction, AccountSettings
from .account import AccountBook, TradeLedger, CashFlowLedger, ValuationCache, CommitResult
from .errors import ErrorKind, TradeError, InvalidInput, InvalidState, NotFound

__version__ = "0.1.0"

__all__ = [
    "AssetType",
    "OptionType",
    "TradeStatus",
    "TrimEvent",
    "Trade",
    "CashFlowType",
    "CashFlowTransaction",
    "AccountSettings",
    "AccountBook",
    "TradeLedger",
    "CashFlowLedger",
    "ValuationCache",
    "CommitResult",
    "ErrorKind",
    "TradeError",
    "InvalidInput",
    "InvalidState",
    "NotFound",
]
