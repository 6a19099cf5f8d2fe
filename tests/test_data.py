"""
Tests for the data layer: records, stores and debounced write-back.
"""
import threading
import pytest
from datetime import date, datetime

from trimledger.account.ledger import TradeLedger
from trimledger.data.records import (
    cash_flows_from_document,
    cash_flows_to_document,
    settings_from_record,
    trade_from_record,
    trade_to_record,
    trades_from_records,
)
from trimledger.data.store import JsonFileStore, MemoryStore, Store
from trimledger.data.writer import DebouncedWriter
from trimledger.domain.cashflow import CashFlowTransaction, CashFlowType
from trimledger.domain.trade import AssetType, Trade, TradeStatus, TrimEvent


class _RecordingStore(Store):
    def __init__(self):
        self.writes = []
        self.written = threading.Event()

    def load(self, key):
        return None

    def save(self, key, value):
        self.writes.append((key, value))
        self.written.set()


class _FlakyStore(_RecordingStore):
    """Refuses to save the keys in ``failing`` until they are cleared."""

    def __init__(self, failing):
        super().__init__()
        self.failing = set(failing)

    def save(self, key, value):
        if key in self.failing:
            raise OSError(f"disk full while saving {key}")
        super().save(key, value)


class TestRecords:
    """Tests for trade/cash-flow records."""

    @pytest.fixture
    def legacy_record(self):
        return {
            "id": 1700000000000,
            "ticker": "MSFT",
            "entry": 400.0,
            "stop": 390.0,
            "shares": 10,
            "status": "open",
            "timestamp": "2024-01-02T12:00:00.000Z",
            "notes": "breakout",
        }

    def test_legacy_record_is_migrated(self, legacy_record):
        trade = trades_from_records([legacy_record])[0]
        assert trade.asset_type == AssetType.STOCK
        assert trade.option_type is None
        assert trade.original_stop == 390.0
        assert trade.current_stop == 390.0
        assert trade.timestamp.year == 2024
        assert not trade.is_materialized

        ledger = TradeLedger([trade])
        loaded = ledger.get(1700000000000)
        assert loaded.original_shares == 10
        assert loaded.remaining_shares == 10
        assert loaded.total_realized_pnl == 0.0

    def test_trade_record_round_trip(self):
        trade = Trade(
            id=3,
            ticker="SPY",
            entry=5.0,
            shares=10,
            original_stop=4.0,
            current_stop=4.5,
            asset_type=AssetType.OPTION,
            strike=480.0,
            expiration_date=date(2024, 2, 16),
            status=TradeStatus.TRIMMED,
            original_shares=10,
            remaining_shares=6,
            trim_history=[TrimEvent(date=date(2024, 1, 5), shares=4, exit_price=6.0, r_multiple=1.0, pnl=400.0, percent_trimmed=40, id=9)],
            total_realized_pnl=400.0,
            timestamp=datetime(2024, 1, 2, 12, 0),
        )
        record = trade_to_record(trade)
        assert record["originalStop"] == 4.0
        assert record["stop"] == 4.5
        assert record["trimHistory"][0]["exitPrice"] == 6.0
        assert record["totalRealizedPnL"] == 400.0

        assert trade_from_record(record) == trade

    def test_cash_flow_totals_are_rederived(self):
        txs = [
            CashFlowTransaction(type=CashFlowType.DEPOSIT, amount=1000.0, timestamp=datetime(2024, 1, 1), id=1),
            CashFlowTransaction(type=CashFlowType.WITHDRAWAL, amount=200.0, timestamp=datetime(2024, 1, 2), id=2),
        ]
        document = cash_flows_to_document(txs)
        assert document["totalDeposits"] == 1000.0
        assert document["totalWithdrawals"] == 200.0

        document["totalDeposits"] = 999999.0
        assert cash_flows_from_document(document) == txs
        assert cash_flows_from_document(None) == []

    def test_settings_defaults(self):
        assert settings_from_record(None).starting_account_size == 10000.0
        settings = settings_from_record({"startingAccountSize": 25000})
        assert settings.starting_account_size == 25000
        assert settings.default_risk_percent == 1.0


class TestStores:
    """Tests for store implementations."""

    def test_memory_store_copies(self):
        store = MemoryStore()
        value = {"a": [1, 2]}
        store.save("k", value)
        value["a"].append(3)
        assert store.load("k") == {"a": [1, 2]}
        assert store.load("missing") is None

    def test_json_file_store(self, tmp_path):
        store = JsonFileStore(tmp_path / "data")
        assert store.load("journal") is None
        store.save("journal", [{"id": 1, "ticker": "AAPL"}])
        assert store.load("journal") == [{"id": 1, "ticker": "AAPL"}]
        assert (tmp_path / "data" / "journal.json").exists()
        assert not (tmp_path / "data" / "journal.json.tmp").exists()


class TestDebouncedWriter:
    """Tests for DebouncedWriter."""

    def test_last_payload_wins(self):
        store = _RecordingStore()
        writer = DebouncedWriter(store, delay=60)
        writer.schedule("journal", [1])
        writer.schedule("journal", [1, 2])
        writer.schedule("cash_flow", {"transactions": []})

        assert store.writes == []
        assert writer.flush() == 2
        assert ("journal", [1, 2]) in store.writes
        assert len(store.writes) == 2
        assert writer.flush() == 0

    def test_timer_fires(self):
        store = _RecordingStore()
        writer = DebouncedWriter(store, delay=0.01)
        writer.schedule("journal", [1])
        assert store.written.wait(timeout=5)
        assert store.writes == [("journal", [1])]
        # flush waits for the timer's write to finish
        assert writer.flush() == 0
        assert writer.pending == {}

    def test_failed_save_stays_pending(self):
        store = _FlakyStore({"journal"})
        writer = DebouncedWriter(store, delay=60)
        writer.schedule("journal", [1, 2])
        writer.schedule("cash_flow", {"transactions": []})

        with pytest.raises(OSError):
            writer.flush()
        assert store.writes == [("cash_flow", {"transactions": []})]
        assert writer.pending == {"journal": [1, 2]}

        store.failing.clear()
        assert writer.flush() == 1
        assert ("journal", [1, 2]) in store.writes
        assert writer.pending == {}

    def test_newer_payload_survives_concurrent_flush(self):
        writer = None

        class _SlowStore(_RecordingStore):
            def save(self, key, value):
                if value == [1]:
                    # A commit lands while the older payload is being written
                    writer.schedule(key, [1, 2])
                super().save(key, value)

        store = _SlowStore()
        writer = DebouncedWriter(store, delay=60)
        writer.schedule("journal", [1])

        assert writer.flush() == 1
        assert writer.pending == {"journal": [1, 2]}
        assert writer.flush() == 1
        assert store.writes == [("journal", [1]), ("journal", [1, 2])]
        writer.cancel()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
