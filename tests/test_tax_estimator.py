from datetime import date
from decimal import Decimal

import pytest

from portfolio_ledger_engine.constants import HoldingPeriod, LotType
from portfolio_ledger_engine.data_objects import TaxLot, TaxSettings
from portfolio_ledger_engine.tax_estimator import (
    calculate_lot_analysis,
    calculate_tax_exposure,
    estimate_for_holding,
    estimate_tax_liability,
)
from portfolio_ledger_engine.tax_lots import holding_from_lots


def _portfolio():
    aapl = holding_from_lots(
        "AAPL",
        [
            TaxLot(id="a-long", asset_id="AAPL", quantity="10", purchase_price="100", purchase_date="2022-01-01"),
            TaxLot(id="a-short", asset_id="AAPL", quantity="10", purchase_price="150", purchase_date="2024-01-01"),
        ],
        Decimal("200"),
    )
    msft = holding_from_lots(
        "MSFT",
        [TaxLot(id="m-short", asset_id="MSFT", quantity="10", purchase_price="300", purchase_date="2024-03-01")],
        Decimal("250"),
    )
    tsla = holding_from_lots(
        "TSLA",
        [TaxLot(id="t1", asset_id="TSLA", quantity="3", purchase_price="200", purchase_date="2023-01-01")],
    )
    prices = {"AAPL": Decimal("200"), "MSFT": Decimal("250")}
    return [aapl, msft, tsla], prices


def test_gains_and_losses_are_bucketed_by_holding_period(tax_settings):
    holdings, prices = _portfolio()
    analysis = estimate_tax_liability(holdings, prices, tax_settings, as_of="2024-06-01")

    assert analysis.long_term_gains == Decimal("1000")
    assert analysis.short_term_gains == Decimal("500")
    assert analysis.short_term_losses == Decimal("500")
    assert analysis.long_term_losses == Decimal("0")
    assert analysis.total_unrealized_gain == Decimal("1500")
    assert analysis.total_unrealized_loss == Decimal("500")
    assert analysis.net_unrealized_gain == Decimal("1000")


def test_only_gains_are_taxed(tax_settings):
    holdings, prices = _portfolio()
    analysis = estimate_tax_liability(holdings, prices, tax_settings, as_of="2024-06-01")

    assert analysis.estimated_st_tax == Decimal("120.00")
    assert analysis.estimated_lt_tax == Decimal("150.00")
    assert analysis.total_estimated_tax == Decimal("270.00")


def test_unpriced_holding_is_skipped_with_warning(tax_settings):
    holdings, prices = _portfolio()
    analysis = estimate_tax_liability(holdings, prices, tax_settings, as_of="2024-06-01")

    assert analysis.skipped_assets == ["TSLA"]
    assert [w.code for w in analysis.warnings] == ["missing_price"]
    assert {lot.asset_id for lot in analysis.lots} == {"AAPL", "MSFT"}


def test_zero_price_counts_as_missing(tax_settings):
    holdings, prices = _portfolio()
    prices["MSFT"] = Decimal("0")
    analysis = estimate_tax_liability(holdings, prices, tax_settings, as_of="2024-06-01")
    assert analysis.skipped_assets == ["MSFT", "TSLA"]


def test_taxes_round_half_up_to_cents():
    lot = TaxLot(id="l1", asset_id="X", quantity="1", purchase_price="100", purchase_date="2024-01-01")
    holding = holding_from_lots("X", [lot])
    settings = TaxSettings(short_term_rate="0.333", long_term_rate="0.15")

    analysis = estimate_for_holding(holding, "200.01", settings, as_of="2024-02-01")

    assert analysis.short_term_gains == Decimal("100.01")
    assert analysis.estimated_st_tax == Decimal("33.30")
    assert analysis.to_api_response()["estimated_st_tax"] == "33.30"


def test_as_of_is_required(tax_settings):
    holdings, prices = _portfolio()
    with pytest.raises(ValueError, match="as_of"):
        estimate_tax_liability(holdings, prices, tax_settings)


def test_espp_lot_analysis_reports_adjusted_basis():
    lot = TaxLot(
        id="e1",
        asset_id="ACME",
        quantity="100",
        purchase_price="85",
        purchase_date="2023-06-30",
        lot_type=LotType.ESPP,
        grant_date="2023-01-01",
        bargain_element="15",
    )
    analysis = calculate_lot_analysis(lot, "120", "2024-08-01")

    assert analysis.cost_basis == Decimal("8500")
    assert analysis.adjusted_cost_basis == Decimal("10000")
    assert analysis.bargain_element == Decimal("15")
    assert analysis.grant_date == date(2023, 1, 1)
    assert analysis.holding_period is HoldingPeriod.LONG
    assert analysis.unrealized_gain == Decimal("3500")


def test_tax_exposure_effective_rate_and_aging(tax_settings):
    holdings, prices = _portfolio()
    exposure = calculate_tax_exposure(holdings, prices, tax_settings, as_of="2024-12-20", lookback_days=30)

    assert exposure.total_estimated_tax == Decimal("270.00")
    assert exposure.effective_rate == pytest.approx(0.18)
    assert exposure.aging_lot_count == 1
    assert exposure.aging_lots[0].lot_id == "a-short"


def test_rate_validation():
    with pytest.raises(ValueError):
        TaxSettings(short_term_rate="1.5", long_term_rate="0.15")
