"""
Tests for the trim engine and risk figures.
"""
import pytest
from datetime import date

from trimledger.domain.trade import AssetType, Trade, TradeStatus, TrimEvent
from trimledger.engine.trim import (
    compute_trim,
    recompute_history,
    resolve_shares,
    shares_for_percent,
)
from trimledger.engine.risk import (
    default_target,
    gross_risk,
    net_risk,
    open_risk,
    price_for_r,
    r_multiple_for,
    reward_to_risk,
)
from trimledger.errors import ErrorKind, InvalidInput, InvalidState


def _stock(**overrides) -> Trade:
    fields = dict(
        id=1,
        ticker="AAPL",
        entry=10.0,
        shares=100,
        original_stop=9.0,
        current_stop=9.0,
        original_shares=100,
        remaining_shares=100,
        total_realized_pnl=0.0,
    )
    fields.update(overrides)
    return Trade(**fields)


class TestComputeTrim:
    """Tests for compute_trim."""

    def test_half_trim_books_two_r(self):
        trade = _stock()
        shares = shares_for_percent(trade.remaining_shares, 50)
        outcome = compute_trim(trade, 12.0, shares, date(2024, 1, 5))

        assert shares == 50
        assert outcome.event.pnl == 100.0
        assert outcome.event.r_multiple == 2.0
        assert outcome.event.percent_trimmed == 50
        assert outcome.shares_after_trim == 50
        assert outcome.new_status == TradeStatus.TRIMMED
        assert not outcome.is_full_close

    def test_full_close_of_remaining(self):
        trade = _stock(remaining_shares=50)
        outcome = compute_trim(trade, 8.0, 50, date(2024, 1, 8))

        assert outcome.event.pnl == -100.0
        assert outcome.event.r_multiple == -2.0
        assert outcome.event.percent_trimmed == 100
        assert outcome.shares_after_trim == 0
        assert outcome.new_status == TradeStatus.CLOSED

    def test_option_multiplier(self):
        trade = _stock(
            ticker="SPY",
            entry=5.0,
            original_stop=4.0,
            shares=10,
            original_shares=10,
            remaining_shares=10,
            asset_type=AssetType.OPTION,
        )
        outcome = compute_trim(trade, 6.0, 10, date(2024, 1, 5))

        assert trade.multiplier == 100
        assert outcome.event.pnl == (6 - 5) * 10 * 100  # 1000
        assert outcome.new_status == TradeStatus.CLOSED

    def test_zero_risk_gives_zero_r(self):
        trade = _stock(original_stop=10.0)
        outcome = compute_trim(trade, 12.0, 10, date(2024, 1, 5))
        assert outcome.event.r_multiple == 0.0
        assert outcome.event.pnl == 20.0

    def test_inverted_risk_is_not_guarded(self):
        trade = _stock(original_stop=11.0)
        outcome = compute_trim(trade, 12.0, 10, date(2024, 1, 5))
        assert outcome.event.r_multiple == -2.0

    def test_percent_trimmed_rounds_half_up(self):
        trade = _stock(remaining_shares=8, original_shares=8, shares=8)
        outcome = compute_trim(trade, 11.0, 1, date(2024, 1, 5))
        assert outcome.event.percent_trimmed == 13  # 12.5

    def test_input_is_not_mutated(self):
        trade = _stock()
        compute_trim(trade, 12.0, 50, date(2024, 1, 5))
        assert trade.remaining_shares == 100
        assert trade.trim_history == []
        assert trade.status == TradeStatus.OPEN

    @pytest.mark.parametrize("exit_price", [0.0, -1.0, float("nan"), None])
    def test_rejects_non_positive_price(self, exit_price):
        with pytest.raises(InvalidInput):
            compute_trim(_stock(), exit_price, 10, date(2024, 1, 5))

    @pytest.mark.parametrize("shares", [0, -5, 101])
    def test_rejects_bad_share_count(self, shares):
        with pytest.raises(InvalidInput) as excinfo:
            compute_trim(_stock(), 12.0, shares, date(2024, 1, 5))
        assert excinfo.value.kind == ErrorKind.INVALID_INPUT

    def test_closed_trade_is_terminal(self):
        trade = _stock(remaining_shares=0, status=TradeStatus.CLOSED)
        with pytest.raises(InvalidState) as excinfo:
            compute_trim(trade, 12.0, 1, date(2024, 1, 5))
        assert excinfo.value.kind == ErrorKind.INVALID_STATE


class TestSharesForPercent:
    """Percentage presets use the ceiling."""

    @pytest.mark.parametrize("remaining,percent,expected", [
        (100, 50, 50),
        (100, 100, 100),
        (7, 50, 4),
        (3, 25, 1),
        (1, 10, 1),
        (100, 7, 7),
        (33, 100, 33),
    ])
    def test_ceiling(self, remaining, percent, expected):
        assert shares_for_percent(remaining, percent) == expected

    def test_no_shares_left(self):
        assert shares_for_percent(0, 50) == 0

    @pytest.mark.parametrize("percent", [0, -10, 150])
    def test_rejects_out_of_range(self, percent):
        with pytest.raises(InvalidInput):
            shares_for_percent(100, percent)

    def test_explicit_shares_win_over_percent(self):
        assert resolve_shares(_stock(), shares=30, percent=50) == 30
        assert resolve_shares(_stock(), percent=25) == 25

    def test_needs_shares_or_percent(self):
        with pytest.raises(InvalidInput):
            resolve_shares(_stock())


class TestRecomputeHistory:
    """Retroactive recompute after a position edit."""

    @pytest.fixture
    def trimmed(self):
        event = TrimEvent(
            id=7,
            date=date(2024, 1, 5),
            shares=50,
            exit_price=12.0,
            r_multiple=2.0,
            pnl=100.0,
            percent_trimmed=50,
        )
        return _stock(
            remaining_shares=50,
            status=TradeStatus.TRIMMED,
            trim_history=[event],
            total_realized_pnl=100.0,
        )

    def test_new_entry_and_stop(self, trimmed):
        result = recompute_history(trimmed, 9.0, 8.0)

        event = result.history[0]
        assert event.pnl == 150.0
        assert event.r_multiple == 3.0
        assert result.total_realized_pnl == 150.0
        assert result.terminal_pnl is None

    def test_identity_and_fills_preserved(self, trimmed):
        event = recompute_history(trimmed, 9.0, 8.0).history[0]
        before = trimmed.trim_history[0]
        assert (event.id, event.date, event.shares, event.exit_price) == (
            before.id, before.date, before.shares, before.exit_price,
        )

    def test_returns_new_history(self, trimmed):
        recompute_history(trimmed, 9.0, 8.0)
        assert trimmed.trim_history[0].pnl == 100.0
        assert trimmed.total_realized_pnl == 100.0

    def test_closed_trade_gets_terminal_pnl(self, trimmed):
        closed = trimmed.copy()
        closed.status = TradeStatus.CLOSED
        closed.remaining_shares = 0
        result = recompute_history(closed, 11.0, 10.0)
        assert result.terminal_pnl == result.total_realized_pnl == 50.0

    def test_zero_denominator(self, trimmed):
        event = recompute_history(trimmed, 9.0, 9.0).history[0]
        assert event.r_multiple == 0.0

    def test_rejects_non_positive_values(self, trimmed):
        with pytest.raises(InvalidInput):
            recompute_history(trimmed, 0.0, 8.0)
        with pytest.raises(InvalidInput):
            recompute_history(trimmed, 9.0, -1.0)


class TestRisk:
    """Tests for gross/net risk."""

    def test_open_trade(self):
        trade = _stock()
        assert gross_risk(trade) == 100.0
        assert net_risk(trade) == 100.0

    def test_trimmed_trade_offsets_realized_profit(self):
        trade = _stock(remaining_shares=50, status=TradeStatus.TRIMMED, total_realized_pnl=30.0)
        assert gross_risk(trade) == 50.0
        assert net_risk(trade) == 20.0

    def test_net_risk_floored_at_zero(self):
        trade = _stock(remaining_shares=50, status=TradeStatus.TRIMMED, total_realized_pnl=100.0)
        assert net_risk(trade) == 0.0

    def test_stop_above_entry(self):
        trade = _stock(current_stop=11.0)
        assert gross_risk(trade) == -100.0
        assert net_risk(trade) == 0.0

    def test_closed_trade_has_no_risk(self):
        trade = _stock(remaining_shares=0, status=TradeStatus.CLOSED)
        assert net_risk(trade) == 0.0

    def test_uses_current_stop_and_multiplier(self):
        trade = _stock(
            asset_type=AssetType.OPTION,
            entry=5.0,
            original_stop=4.0,
            current_stop=4.5,
            remaining_shares=10,
        )
        assert gross_risk(trade) == 10 * 0.5 * 100

    def test_open_risk_sums_open_positions(self):
        trades = [
            _stock(),
            _stock(id=2, remaining_shares=50, status=TradeStatus.TRIMMED, total_realized_pnl=30.0),
            _stock(id=3, remaining_shares=0, status=TradeStatus.CLOSED),
        ]
        assert open_risk(trades) == 120.0

    def test_targets(self):
        trade = _stock()
        assert default_target(trade) == 15.0
        assert price_for_r(trade, 2) == 12.0
        assert reward_to_risk(trade) is None

        trade.target = 13.0
        assert default_target(trade) == 13.0
        assert reward_to_risk(trade) == 3.0

    def test_r_multiple_for_hypothetical_exit(self):
        trade = _stock(current_stop=9.5)
        assert r_multiple_for(trade, 12.0) == 2.0
        assert r_multiple_for(trade, 9.0) == -1.0
        # Measured against the original stop, not the moved one
        assert r_multiple_for(trade, 11.0) == 1.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
