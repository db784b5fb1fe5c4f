from datetime import date
from decimal import Decimal

from core.data_quality_flags import generate_data_quality_flags
from core.performance_flags import generate_performance_flags
from core.tax_flags import generate_tax_flags
from portfolio_ledger_engine.data_objects import TaxLot, TaxSettings
from portfolio_ledger_engine.holding_period import detect_aging_lots
from portfolio_ledger_engine.performance_analysis import get_summary
from portfolio_ledger_engine.performance_metrics_engine import build_snapshots
from portfolio_ledger_engine.tax_estimator import estimate_tax_liability
from portfolio_ledger_engine.tax_lots import build_lots, holding_from_lots


def _flag_names(flags, key="flag"):
    return [flag[key] for flag in flags]


# Tax flags

def test_tax_flags_without_analysis_is_error():
    flags = generate_tax_flags({"error": "boom"})
    assert flags == [{"flag": "tax_error", "severity": "error", "message": "boom"}]


def test_tax_flags_from_real_analysis():
    lots = [
        TaxLot(id="short", asset_id="AAPL", quantity="10", purchase_price="100", purchase_date="2024-05-20"),
        TaxLot(id="loss", asset_id="AAPL", quantity="100", purchase_price="300", purchase_date="2023-01-01"),
    ]
    holding = holding_from_lots("AAPL", lots, Decimal("250"))
    other = holding_from_lots(
        "TSLA", [TaxLot(id="t", asset_id="TSLA", quantity="1", purchase_price="10", purchase_date="2023-01-01")]
    )
    prices = {"AAPL": Decimal("250")}
    settings = TaxSettings(short_term_rate="0.24", long_term_rate="0.15")
    analysis = estimate_tax_liability([holding, other], prices, settings, as_of="2025-05-01")
    aging = detect_aging_lots([holding], prices, "2025-05-01")

    flags = generate_tax_flags(
        {"analysis": analysis.to_api_response(), "aging_lots": [a.to_api_response() for a in aging], "realized": []}
    )
    names = _flag_names(flags)

    assert names[0] == "missing_prices"
    assert "mostly_short_term_gains" in names
    assert "lots_turning_long_term" in names
    assert "harvest_opportunity" in names
    assert "no_tax_liability" not in names


def test_tax_flags_disqualifying_espp_sale(make_tx):
    txs = [
        make_tx("e1", "espp_purchase", "2024-01-31", quantity="10", price="85", grant_date="2023-08-01", sequence=0),
        make_tx("s1", "sell", "2024-06-01", quantity="10", price="100", sequence=1),
    ]
    build = build_lots(txs)
    analysis = {
        "total_estimated_tax": "0.00",
        "short_term_gains": "0",
        "long_term_gains": "0",
        "total_unrealized_loss": "0",
        "skipped_assets": [],
    }
    flags = generate_tax_flags({"analysis": analysis, "realized": [r.to_api_response() for r in build.realized]})

    assert _flag_names(flags) == ["disqualifying_espp_disposition"]
    assert flags[0]["severity"] == "warning"


def test_tax_flags_clean_portfolio():
    analysis = {"total_estimated_tax": "0.00", "short_term_gains": "0", "long_term_gains": "0", "skipped_assets": []}
    assert _flag_names(generate_tax_flags({"analysis": analysis})) == ["no_tax_liability"]


# Performance flags

def test_performance_flags_empty_snapshot():
    assert _flag_names(generate_performance_flags({}), "type") == ["no_performance_data"]


def test_performance_flags_from_summary():
    snaps = build_snapshots(
        [
            (date(2024, 1, 1), Decimal("1000")),
            (date(2024, 1, 2), Decimal("700")),
            (date(2024, 1, 3), Decimal("750")),
        ],
        interpolated_dates=[date(2024, 1, 3)],
    )
    flags = generate_performance_flags(get_summary(snaps).to_api_response())
    types = _flag_names(flags, "type")

    assert "negative_total_return" in types
    assert "deep_drawdown" in types
    assert "high_volatility" in types
    assert "interpolated_prices" in types
    assert "low_sharpe" not in types
    assert flags[0]["severity"] == "warning"


def test_performance_flags_low_sharpe_needs_a_year():
    snapshot = {
        "start_date": "2023-01-01",
        "end_date": "2024-06-01",
        "total_return_percent": 2.0,
        "annualized_return": 1.4,
        "sharpe_ratio": -0.2,
        "max_drawdown": -5.0,
        "volatility": 10.0,
    }
    flags = generate_performance_flags(snapshot)
    assert _flag_names(flags, "type") == ["low_sharpe"]
    assert flags[0]["severity"] == "warning"


def test_performance_flags_strong_result():
    snapshot = {
        "start_date": "2023-01-01",
        "end_date": "2024-01-01",
        "total_return_percent": 18.0,
        "annualized_return": 18.0,
        "sharpe_ratio": 1.4,
        "max_drawdown": -4.0,
        "volatility": 10.0,
    }
    assert _flag_names(generate_performance_flags(snapshot), "type") == ["strong_risk_adjusted_return"]


# Data-quality flags

def test_data_quality_flags_group_warning_codes():
    warnings = [
        {"code": "unknown_transaction_kind", "message": "x"},
        {"code": "unknown_transaction_kind", "message": "y"},
        {"code": "oversold_lots", "message": "z"},
    ]
    flags = generate_data_quality_flags(
        {
            "warnings": warnings,
            "price_lookups": {"AAPL": {"is_interpolated": True}, "MSFT": {"is_interpolated": False}},
            "liabilities": [{"liability_id": "mortgage", "is_estimate": True}],
        }
    )
    by_name = {flag["flag"]: flag for flag in flags}

    assert by_name["unknown_transaction_kind"]["count"] == 2
    assert by_name["unknown_transaction_kind"]["message"].startswith("2 transactions")
    assert by_name["oversold_lots"]["count"] == 1
    assert by_name["interpolated_prices"]["assets"] == ["AAPL"]
    assert by_name["liability_pre_history"]["liability_ids"] == ["mortgage"]
    assert flags[-1]["severity"] == "info"


def test_data_quality_flags_clean():
    assert _flag_names(generate_data_quality_flags({})) == ["data_clean"]
