"""
Domain Layer: trades, trim events, cash flows and settings.
"""
from .trade import AssetType, OptionType, TradeStatus, TrimEvent, Trade
from .cashflow import CashFlowType, CashFlowTransaction
from .settings import AccountSettings

__all__ = [
    "AssetType",
    "OptionType",
    "TradeStatus",
    "TrimEvent",
    "Trade",
    "CashFlowType",
    "CashFlowTransaction",
    "AccountSettings",
]
