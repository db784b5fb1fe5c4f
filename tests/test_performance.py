import math
from datetime import date
from decimal import Decimal

import pytest

from portfolio_ledger_engine.constants import CURRENT_YEAR_LABEL
from portfolio_ledger_engine.data_objects import PerformanceSnapshot, PricePoint, TaxLot
from portfolio_ledger_engine.performance_analysis import get_holding_performance, get_summary, get_yoy_metrics
from portfolio_ledger_engine.performance_metrics_engine import (
    CashFlowEvent,
    annualize_return,
    build_snapshots,
    calculate_max_drawdown,
    calculate_period_return,
    calculate_sharpe_ratio,
    calculate_twr_from_daily_values,
    calculate_volatility,
    compound_returns,
    create_sub_periods,
)
from portfolio_ledger_engine.providers import InMemoryPriceProvider
from portfolio_ledger_engine.tax_lots import holding_from_lots


def _snapshots(points):
    return [PerformanceSnapshot(date=day, total_value=Decimal(value)) for day, value in points]


# Metrics engine

def test_period_return_without_flows():
    assert calculate_period_return(Decimal("100"), Decimal("110"), [], "2024-01-01", "2024-12-31") == Decimal("0.1")


def test_modified_dietz_weights_flow_by_time_remaining():
    flows = [CashFlowEvent(date(2024, 1, 16), Decimal("500"))]
    result = calculate_period_return(Decimal("1000"), Decimal("1600"), flows, "2024-01-01", "2024-01-31")
    assert result == Decimal("0.08")


def test_period_return_from_zero_start_uses_inflows():
    flows = [CashFlowEvent(date(2024, 1, 1), Decimal("1000"))]
    assert calculate_period_return(Decimal("0"), Decimal("1100"), flows, "2024-01-01", "2024-01-31") == Decimal("0.1")
    assert calculate_period_return(Decimal("0"), Decimal("0"), [], "2024-01-01", "2024-01-31") == Decimal("0")


def test_compound_returns():
    assert compound_returns([Decimal("0.1"), Decimal("0.1")]) == Decimal("0.21")
    assert compound_returns([]) == Decimal("0")


def test_annualize_return():
    assert annualize_return(Decimal("0.21"), 730) == pytest.approx(10.0)
    assert annualize_return(Decimal("0.05"), 10) == pytest.approx(5.0)
    assert annualize_return(Decimal("0.05"), 0) == 0.0
    assert annualize_return(Decimal("-1"), 400) == -100.0


def test_sub_periods_split_at_flow_dates():
    flows = [
        CashFlowEvent(date(2024, 1, 20), Decimal("-100")),
        CashFlowEvent(date(2024, 1, 10), Decimal("500")),
    ]
    periods = create_sub_periods("2024-01-01", "2024-01-31", flows)

    assert [(p.start_date.day, p.end_date.day) for p in periods] == [(1, 10), (10, 20), (20, 31)]
    assert [len(p.cash_flows) for p in periods] == [0, 1, 1]
    assert periods[1].cash_flows[0].amount == Decimal("500")


def test_twr_without_flows_is_simple_return():
    result = calculate_twr_from_daily_values([(date(2024, 1, 1), "1000"), (date(2024, 1, 11), "1100")])
    assert result.total_return == Decimal("0.1")
    assert len(result.sub_periods) == 1


def test_twr_chains_sub_periods():
    values = [(date(2024, 1, 1), Decimal("1000")), (date(2024, 1, 31), Decimal("1600"))]
    flows = [CashFlowEvent(date(2024, 1, 16), Decimal("500"))]
    result = calculate_twr_from_daily_values(values, flows)

    assert len(result.sub_periods) == 2
    assert result.sub_periods[0].period_return == Decimal("0")
    assert float(result.total_return) == pytest.approx(100 / 1500)


def test_twr_single_value():
    result = calculate_twr_from_daily_values([(date(2024, 1, 1), Decimal("1000"))])
    assert result.total_return == Decimal("0")
    assert result.start_date == result.end_date == date(2024, 1, 1)


def test_volatility_sharpe_and_drawdown():
    assert calculate_volatility([0.01, -0.01]) == pytest.approx(math.sqrt(504))
    assert calculate_volatility([0.01]) == 0.0
    assert calculate_sharpe_ratio(12.0, 20.0, "0.04") == pytest.approx(0.4)
    assert calculate_sharpe_ratio(12.0, 0.0, "0.04") == 0.0
    assert calculate_max_drawdown([Decimal("100"), Decimal("120"), Decimal("90"), Decimal("130")]) == pytest.approx(-25.0)
    assert calculate_max_drawdown([Decimal("100"), Decimal("110")]) == 0.0
    assert calculate_max_drawdown([]) == 0.0


def test_build_snapshots_nets_out_external_flows():
    values = [
        (date(2024, 1, 1), Decimal("1000")),
        (date(2024, 1, 2), Decimal("1100")),
        (date(2024, 1, 3), Decimal("1650")),
    ]
    snaps = build_snapshots(values, [CashFlowEvent(date(2024, 1, 3), Decimal("500"))], [date(2024, 1, 2)])

    assert snaps[0].day_change == Decimal("0")
    assert snaps[1].day_change == Decimal("100")
    assert snaps[1].day_change_percent == pytest.approx(10.0)
    assert snaps[1].has_interpolated_prices is True
    assert snaps[2].day_change == Decimal("50")
    assert float(snaps[2].twr_return) == pytest.approx(0.15)


# Summary

@pytest.fixture
def four_days():
    return build_snapshots(
        [
            (date(2024, 1, 1), Decimal("1000")),
            (date(2024, 1, 2), Decimal("1100")),
            (date(2024, 1, 3), Decimal("990")),
            (date(2024, 1, 4), Decimal("1089")),
        ]
    )


def test_summary_statistics(four_days):
    summary = get_summary(four_days, risk_free_rate="0.04")

    assert summary.total_return == Decimal("89")
    assert summary.total_return_percent == pytest.approx(8.9)
    assert summary.twr_return == pytest.approx(8.9)
    assert summary.annualized_return == pytest.approx(8.9)
    assert (summary.period_high, summary.period_high_date) == (Decimal("1100"), date(2024, 1, 2))
    assert (summary.period_low, summary.period_low_date) == (Decimal("990"), date(2024, 1, 3))
    assert summary.best_day.date == date(2024, 1, 2)
    assert summary.worst_day.date == date(2024, 1, 3)
    assert summary.max_drawdown == pytest.approx(-10.0)
    assert summary.volatility > 0
    assert summary.sharpe_ratio == pytest.approx((8.9 - 4.0) / summary.volatility)
    assert summary.has_interpolated_prices is False


def test_summary_window_chain_links_twr(four_days):
    summary = get_summary(four_days, start_date="2024-01-02")

    assert summary.start_value == Decimal("1100")
    assert summary.total_return == Decimal("-11")
    assert summary.twr_return == pytest.approx(-1.0)


def test_summary_of_empty_window_is_none(four_days):
    assert get_summary(four_days, start_date="2025-01-01") is None


def test_summary_api_response(four_days):
    payload = get_summary(four_days).to_api_response()
    assert payload["start_value"] == "1000"
    assert payload["best_day"]["date"] == "2024-01-02"


# Year over year

def test_three_year_history_has_one_row_per_year_and_partial_ytd():
    snaps = _snapshots(
        [
            (date(2023, 1, 1), "10000"),
            (date(2023, 12, 31), "11000"),
            (date(2024, 1, 1), "11000"),
            (date(2024, 12, 31), "12100"),
            (date(2025, 1, 15), "12342"),
        ]
    )
    rows = get_yoy_metrics(snaps)

    assert [row.label for row in rows] == ["2023", "2024", CURRENT_YEAR_LABEL]
    assert [row.is_partial_year for row in rows] == [False, False, True]
    assert rows[0].cagr == pytest.approx(10.0)
    assert rows[1].simple_return == pytest.approx(10.0)
    assert rows[2].start_value == Decimal("12100")
    assert rows[2].simple_return == pytest.approx(2.0)
    assert rows[2].days == 14


def test_mid_year_inception_is_partial_and_annualized():
    snaps = _snapshots(
        [
            (date(2023, 7, 1), "10000"),
            (date(2023, 12, 31), "10500"),
            (date(2024, 12, 31), "11550"),
        ]
    )
    rows = get_yoy_metrics(snaps)

    assert rows[0].year == 2023
    assert rows[0].is_partial_year is True
    assert rows[0].simple_return == pytest.approx(5.0)
    assert rows[0].cagr > rows[0].simple_return
    assert rows[1].label == CURRENT_YEAR_LABEL
    assert rows[1].cagr == pytest.approx(10.0)


def test_zero_value_year_is_skipped():
    snaps = _snapshots(
        [
            (date(2023, 1, 1), "0"),
            (date(2023, 12, 31), "0"),
            (date(2024, 1, 2), "10000"),
            (date(2024, 12, 31), "11000"),
        ]
    )
    rows = get_yoy_metrics(snaps)

    assert [row.year for row in rows] == [2024]
    assert rows[0].start_value == Decimal("10000")
    assert rows[0].start_date == date(2024, 1, 2)


def test_short_history_has_no_yoy_rows():
    snaps = _snapshots([(date(2024, 1, 1), "100"), (date(2024, 6, 1), "110")])
    assert get_yoy_metrics(snaps) == []
    assert get_yoy_metrics([]) == []


# Holding performance

def test_holding_performance_falls_back_to_cost_basis(price_provider):
    aapl = holding_from_lots(
        "AAPL",
        [TaxLot(id="a", asset_id="AAPL", quantity="10", purchase_price="80", purchase_date="2023-01-01")],
        Decimal("150"),
    )
    msft = holding_from_lots(
        "MSFT",
        [TaxLot(id="m", asset_id="MSFT", quantity="2", purchase_price="250", purchase_date="2023-01-01")],
        Decimal("250"),
    )
    rows = get_holding_performance([aapl, msft], "2024-01-10", provider=price_provider)

    assert rows[0].period_start_value == Decimal("1100")
    assert rows[0].absolute_gain == Decimal("400")
    assert rows[0].is_interpolated is False
    assert rows[1].period_start_value == Decimal("500")
    assert rows[1].is_interpolated is True
    assert rows[0].weight == pytest.approx(75.0)
