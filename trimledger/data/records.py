"""
Plain-record (de)serialization for trades, cash flows and settings.

Records keep the journal's camelCase field names so existing stored
journals load unchanged. Older records are migrated on the way in.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import pandas as pd
from loguru import logger

from ..domain.cashflow import CashFlowTransaction, CashFlowType
from ..domain.settings import AccountSettings
from ..domain.trade import AssetType, OptionType, Trade, TradeStatus, TrimEvent

Record = Dict[str, Any]


def _iso(value: Optional[Any]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value in (None, ""):
        return None
    return pd.Timestamp(value).to_pydatetime()


def _parse_date(value: Optional[str]) -> Optional[date]:
    if value in (None, ""):
        return None
    return pd.Timestamp(value).date()


def trim_to_record(event: TrimEvent) -> Record:
    return {
        "id": event.id,
        "date": _iso(event.date),
        "shares": event.shares,
        "exitPrice": event.exit_price,
        "rMultiple": event.r_multiple,
        "pnl": event.pnl,
        "percentTrimmed": event.percent_trimmed,
    }


def trim_from_record(record: Record) -> TrimEvent:
    return TrimEvent(
        id=record.get("id"),
        date=_parse_date(record["date"]),
        shares=int(record["shares"]),
        exit_price=float(record["exitPrice"]),
        r_multiple=float(record.get("rMultiple") or 0.0),
        pnl=float(record["pnl"]),
        percent_trimmed=int(record.get("percentTrimmed") or 0),
    )


def trade_to_record(trade: Trade) -> Record:
    return {
        "id": trade.id,
        "ticker": trade.ticker,
        "entry": trade.entry,
        "shares": trade.shares,
        "stop": trade.current_stop,
        "originalStop": trade.original_stop,
        "currentStop": trade.current_stop,
        "target": trade.target,
        "assetType": trade.asset_type.value,
        "strike": trade.strike,
        "expirationDate": _iso(trade.expiration_date),
        "optionType": trade.option_type.value if trade.option_type else None,
        "premium": trade.premium,
        "status": trade.status.value,
        "originalShares": trade.original_shares,
        "remainingShares": trade.remaining_shares,
        "trimHistory": [trim_to_record(e) for e in trade.trim_history],
        "totalRealizedPnL": trade.total_realized_pnl,
        "exitPrice": trade.exit_price,
        "exitDate": _iso(trade.exit_date),
        "pnl": trade.pnl,
        "timestamp": _iso(trade.timestamp),
        "notes": trade.notes or "",
    }


def trade_from_record(record: Record) -> Trade:
    """
    Build a Trade from a stored record.

    Legacy records carry a single ``stop`` and no ``assetType``; the stop
    seeds both original and current stop and the trade is taken as stock.
    """
    stop = record.get("stop")
    option_type = record.get("optionType")
    return Trade(
        id=record.get("id"),
        ticker=record.get("ticker", ""),
        entry=float(record["entry"]),
        shares=int(record.get("shares") or record.get("originalShares") or 0),
        original_stop=record.get("originalStop", stop),
        current_stop=record.get("currentStop", stop),
        target=record.get("target"),
        asset_type=AssetType(record.get("assetType") or AssetType.STOCK.value),
        strike=record.get("strike"),
        expiration_date=_parse_date(record.get("expirationDate")),
        option_type=OptionType(option_type) if option_type else None,
        premium=record.get("premium"),
        status=TradeStatus(record.get("status") or TradeStatus.OPEN.value),
        original_shares=record.get("originalShares"),
        remaining_shares=record.get("remainingShares"),
        trim_history=[trim_from_record(r) for r in record.get("trimHistory") or []],
        total_realized_pnl=record.get("totalRealizedPnL"),
        exit_price=record.get("exitPrice"),
        exit_date=_parse_date(record.get("exitDate")),
        pnl=record.get("pnl"),
        timestamp=_parse_datetime(record.get("timestamp")),
        notes=record.get("notes") or "",
    )


def migrate_trade_records(records: List[Record]) -> List[Record]:
    """Fill in option fields for records written before options were supported."""
    migrated = 0
    out = []
    for record in records:
        if not record.get("assetType"):
            record = {
                **record,
                "assetType": AssetType.STOCK.value,
                "strike": None,
                "expirationDate": None,
                "optionType": None,
                "premium": None,
            }
            migrated += 1
        out.append(record)
    if migrated:
        logger.info(f"Migrated {migrated} trades to include options fields")
    return out


def trades_from_records(records: List[Record]) -> List[Trade]:
    return [trade_from_record(r) for r in migrate_trade_records(records)]


def cash_flow_to_record(tx: CashFlowTransaction) -> Record:
    return {
        "id": tx.id,
        "type": tx.type.value,
        "amount": tx.amount,
        "timestamp": _iso(tx.timestamp),
    }


def cash_flow_from_record(record: Record) -> CashFlowTransaction:
    return CashFlowTransaction(
        id=record.get("id"),
        type=CashFlowType(record["type"]),
        amount=float(record["amount"]),
        timestamp=_parse_datetime(record.get("timestamp")),
    )


def cash_flows_to_document(transactions: List[CashFlowTransaction]) -> Record:
    """Stored shape: transactions plus cached totals (totals are re-derived on load)."""
    return {
        "transactions": [cash_flow_to_record(t) for t in transactions],
        "totalDeposits": sum(t.amount for t in transactions if t.type == CashFlowType.DEPOSIT),
        "totalWithdrawals": sum(t.amount for t in transactions if t.type == CashFlowType.WITHDRAWAL),
    }


def cash_flows_from_document(document: Optional[Record]) -> List[CashFlowTransaction]:
    if not document:
        return []
    return [cash_flow_from_record(r) for r in document.get("transactions") or []]


def settings_to_record(settings: AccountSettings) -> Record:
    return {
        "startingAccountSize": settings.starting_account_size,
        "defaultRiskPercent": settings.default_risk_percent,
        "defaultMaxPositionPercent": settings.default_max_position_percent,
        "dynamicAccountEnabled": settings.dynamic_account_enabled,
    }


def settings_from_record(record: Optional[Record]) -> AccountSettings:
    """Missing keys fall back to the defaults."""
    defaults = AccountSettings()
    if not record:
        return defaults
    return AccountSettings(
        starting_account_size=record.get("startingAccountSize", defaults.starting_account_size),
        default_risk_percent=record.get("defaultRiskPercent", defaults.default_risk_percent),
        default_max_position_percent=record.get("defaultMaxPositionPercent", defaults.default_max_position_percent),
        dynamic_account_enabled=record.get("dynamicAccountEnabled", defaults.dynamic_account_enabled),
    )
