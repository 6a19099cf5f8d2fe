"""
Data Layer: persistence store, records and debounced write-back.
"""
from .store import Store, MemoryStore, JsonFileStore
from .writer import DebouncedWriter
from .records import (
    trade_to_record,
    trade_from_record,
    trades_from_records,
    migrate_trade_records,
    cash_flows_to_document,
    cash_flows_from_document,
    settings_to_record,
    settings_from_record,
)

__all__ = [
    "Store",
    "MemoryStore",
    "JsonFileStore",
    "DebouncedWriter",
    "trade_to_record",
    "trade_from_record",
    "trades_from_records",
    "migrate_trade_records",
    "cash_flows_to_document",
    "cash_flows_from_document",
    "settings_to_record",
    "settings_from_record",
]
