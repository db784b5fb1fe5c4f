from datetime import date
from decimal import Decimal

import pytest

from portfolio_ledger_engine.valuation import snapshots_from_transactions, value_at, value_history


@pytest.fixture
def funded_transactions(make_tx):
    """Deposit 10000, buy 10 AAPL at 100 with a 5 fee, deposit 1000 more on 2024-01-04."""
    return [
        make_tx("d1", "deposit", "2024-01-01", asset_id="CASH", price="10000", sequence=0),
        make_tx("b1", "buy", "2024-01-02", quantity="10", price="100", fees="5", sequence=1),
        make_tx("d2", "deposit", "2024-01-04", asset_id="CASH", price="1000", sequence=2),
    ]


def test_value_is_cash_plus_priced_positions(funded_transactions, price_provider):
    valuation = value_at(funded_transactions, "2024-01-05", provider=price_provider)

    assert valuation.cash_balance == Decimal("9995")
    assert valuation.positions == {"AAPL": Decimal("1050")}
    assert valuation.total_value == Decimal("11045")
    assert valuation.has_interpolated_prices is False


def test_value_before_any_buy_is_cash_only(funded_transactions, price_provider):
    valuation = value_at(funded_transactions, "2024-01-01", provider=price_provider)

    assert valuation.positions == {}
    assert valuation.total_value == Decimal("10000")


def test_stale_price_flags_the_valuation(funded_transactions, price_provider):
    valuation = value_at(funded_transactions, "2024-01-15", provider=price_provider)

    assert valuation.positions["AAPL"] == Decimal("1100")
    assert valuation.interpolated_assets == ["AAPL"]
    assert valuation.to_api_response()["has_interpolated_prices"] is True


def test_unpriced_position_is_carried_at_cost(make_tx, price_provider):
    txs = [
        make_tx("d1", "deposit", "2024-01-01", asset_id="CASH", price="1000", sequence=0),
        make_tx("b1", "buy", "2024-01-02", asset_id="MSFT", quantity="2", price="250", sequence=1),
    ]
    valuation = value_at(txs, "2024-01-05", provider=price_provider)

    assert valuation.positions == {"MSFT": Decimal("500")}
    assert valuation.total_value == Decimal("1000")
    assert valuation.interpolated_assets == ["MSFT"]


def test_sold_out_position_is_dropped(make_tx, price_provider):
    txs = [
        make_tx("b1", "buy", "2024-01-02", quantity="10", price="100", sequence=0),
        make_tx("s1", "sell", "2024-01-05", quantity="10", price="105", sequence=1),
    ]
    valuation = value_at(txs, "2024-01-10", provider=price_provider)

    assert valuation.positions == {}
    assert valuation.cash_balance == Decimal("50")


def test_history_shares_one_price_pass(funded_transactions, price_provider):
    history = value_history(funded_transactions, ["2023-12-31", "2024-01-05", "2024-01-02"], provider=price_provider)

    assert [v.date for v in history] == [date(2024, 1, 2), date(2024, 1, 5)]
    assert [v.total_value for v in history] == [Decimal("9995"), Decimal("11045")]


def test_snapshots_net_out_deposits(funded_transactions, price_provider):
    snaps = snapshots_from_transactions(funded_transactions, end_date="2024-01-05", provider=price_provider)

    assert [s.total_value for s in snaps] == [
        Decimal("10000"),
        Decimal("9995"),
        Decimal("9995"),
        Decimal("11045"),
        Decimal("11045"),
    ]
    assert snaps[1].day_change == Decimal("-5")
    assert snaps[3].day_change == Decimal("50")
    assert float(snaps[-1].twr_return) == pytest.approx(0.0045)
    assert not any(s.has_interpolated_prices for s in snaps)


def test_snapshots_flag_interpolated_days(funded_transactions, price_provider):
    snaps = snapshots_from_transactions(
        funded_transactions, start_date="2024-01-10", end_date="2024-01-15", provider=price_provider
    )

    flagged = [s.date for s in snaps if s.has_interpolated_prices]
    assert flagged == [date(2024, 1, 14), date(2024, 1, 15)]


def test_no_transactions_gives_no_snapshots(price_provider):
    assert snapshots_from_transactions([], provider=price_provider) == []
    assert value_history([], ["2024-01-01"], provider=price_provider) == []
