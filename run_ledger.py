#!/usr/bin/env python3
# coding: utf-8

# File: run_ledger.py

import argparse
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv

load_dotenv()

from core.data_quality_flags import generate_data_quality_flags
from core.performance_flags import generate_performance_flags
from core.tax_flags import generate_tax_flags
from portfolio_ledger_engine._vendor import make_json_safe
from portfolio_ledger_engine.cash_ledger import balance_at, cash_flows
from portfolio_ledger_engine.data_objects import InputValidationError
from portfolio_ledger_engine.date_utils import to_date
from portfolio_ledger_engine.liability import liability_balance_at, total_liabilities_at
from portfolio_ledger_engine.performance_analysis import get_summary, get_yoy_metrics
from portfolio_ledger_engine.performance_metrics_engine import CashFlowEvent, build_snapshots
from portfolio_ledger_engine.portfolio_config import PortfolioConfig, load_portfolio_config
from portfolio_ledger_engine.price_lookup import PriceCache, prices_at
from portfolio_ledger_engine.results import CashBalanceResult, PerformanceSummary, PortfolioValuation, TaxAnalysis
from portfolio_ledger_engine.tax_estimator import estimate_tax_liability
from portfolio_ledger_engine.holding_period import detect_aging_lots
from portfolio_ledger_engine.tax_lots import build_lots, holding_from_lots
from portfolio_ledger_engine.valuation import snapshots_from_transactions, value_at


def _print_flags(flags: List[Dict[str, Any]]) -> None:
    icons = {"error": "❌", "warning": "⚠️", "info": "ℹ️", "success": "✅"}
    for flag in flags:
        print(f"{icons.get(flag.get('severity'), '-')} {flag.get('message')}")


def _report_date(config: PortfolioConfig, as_of: Optional[str]) -> date:
    if as_of:
        return to_date(as_of, field="--date")
    if config.as_of:
        return config.as_of
    return date.today()


def run_cash_balance(filepath: str, as_of: Optional[str] = None, *, return_data: bool = False) -> Union[None, CashBalanceResult]:
    """
    Replay the portfolio's transactions to a cash balance.

    Contract:
    - Returns ``CashBalanceResult`` in data mode.
    - Prints the balance and any replay warnings in CLI mode.
    """
    config = load_portfolio_config(filepath)
    result = balance_at(config.transactions, _report_date(config, as_of))
    if return_data:
        return result
    print(result.to_cli_report())
    _print_flags(generate_data_quality_flags({"warnings": make_json_safe(result.warnings)}))


def run_tax_analysis(filepath: str, as_of: Optional[str] = None, *, return_data: bool = False) -> Union[None, TaxAnalysis]:
    """
    Estimate tax on unrealized gains, valuing each holding at the report date.

    Calls into:
    - ``tax_lots.build_lots`` for open lots.
    - ``price_lookup.prices_at`` for one batched price per asset.
    - ``tax_estimator.estimate_tax_liability``.
    """
    config = load_portfolio_config(filepath)
    report_date = _report_date(config, as_of)
    build = build_lots([tx for tx in config.transactions if tx.date <= report_date])

    cache = PriceCache()
    lookups = prices_at(build.lots.keys(), report_date, provider=config.price_provider, cache=cache)
    prices = {asset_id: lookup.price for asset_id, lookup in lookups.items() if lookup.price != 0}
    holdings = [
        holding_from_lots(asset_id, lots, prices.get(asset_id), config.portfolio_id)
        for asset_id, lots in build.lots.items()
        if any(lot.is_open for lot in lots)
    ]

    analysis = estimate_tax_liability(holdings, prices, config.tax_settings, report_date)
    analysis.warnings = build.warnings + analysis.warnings
    if return_data:
        return analysis

    print(analysis.to_cli_report())
    print()
    _print_flags(
        generate_tax_flags(
            {
                "analysis": analysis.to_api_response(),
                "aging_lots": make_json_safe(detect_aging_lots(holdings, prices, report_date)),
                "realized": make_json_safe(build.realized),
            }
        )
    )
    _print_flags(
        generate_data_quality_flags(
            {
                "warnings": make_json_safe(analysis.warnings),
                "price_lookups": {asset_id: lookup.to_dict() for asset_id, lookup in lookups.items()},
            }
        )
    )


def _snapshots(config: PortfolioConfig):
    if not config.daily_values:
        return snapshots_from_transactions(config.transactions, end_date=config.as_of, provider=config.price_provider)
    flows = [CashFlowEvent(day, amount) for day, amount in cash_flows(config.transactions)]
    return build_snapshots(config.daily_values, flows, config.interpolated_dates)


def run_performance(
    filepath: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
    *,
    return_data: bool = False,
) -> Union[None, PerformanceSummary, Dict[str, Any]]:
    """
    Summary statistics over the portfolio's ``daily_values``, or over values
    rebuilt from transactions and prices when the file has none.

    Contract:
    - Returns ``PerformanceSummary`` in data mode, or an error dict when the
      window holds no values.
    """
    config = load_portfolio_config(filepath)
    summary = get_summary(_snapshots(config), start, end)
    if summary is None:
        error = {"error": "No daily values in the requested period"}
        if return_data:
            return error
        print(f"❌ Performance calculation failed: {error['error']}")
        return None
    if return_data:
        return summary
    print(summary.to_cli_report())
    print()
    _print_flags(generate_performance_flags(summary.to_api_response()))


def run_yoy(filepath: str, as_of: Optional[str] = None, *, return_data: bool = False):
    """Year-over-year CAGR table; empty under one year of history."""
    config = load_portfolio_config(filepath)
    now = to_date(as_of, field="--date") if as_of else config.as_of
    rows = get_yoy_metrics(_snapshots(config), now)
    if return_data:
        return rows
    if not rows:
        print("Less than one year of history; no year-over-year table")
        return None
    print(f"{'Year':<20} {'Start':>14} {'End':>14} {'Return':>9} {'CAGR':>9}")
    for row in rows:
        marker = " *" if row.is_partial_year else ""
        print(
            f"{row.label:<20} {row.start_value:>14,.2f} {row.end_value:>14,.2f} "
            f"{row.simple_return:>8.2f}% {row.cagr:>8.2f}%{marker}"
        )
    print("* partial year; CAGR annualized for comparison")


def run_liabilities(filepath: str, as_of: Optional[str] = None, *, return_data: bool = False):
    """Every open liability's balance at the report date, with pre-history estimates flagged.

    Liabilities that start after the report date are left out.
    """
    config = load_portfolio_config(filepath)
    report_date = _report_date(config, as_of)
    balances_as_of = config.as_of or date.today()
    results = [
        liability_balance_at(liability, config.liability_provider.get_payments(liability.id), report_date, balances_as_of)
        for liability in config.liabilities
        if liability.start_date <= report_date
    ]
    total = total_liabilities_at(config.portfolio_id, report_date, config.liability_provider, balances_as_of)
    if return_data:
        return {"liabilities": results, "total": total}

    for result in results:
        marker = " (estimate)" if result.is_estimate else ""
        print(f"{result.liability_id:<20} {result.balance:>14,.2f}{marker}")
    print(f"{'Total':<20} {total.balance:>14,.2f}")
    print()
    _print_flags(generate_data_quality_flags({"liabilities": [r.to_api_response() for r in results]}))


def run_valuation(filepath: str, as_of: Optional[str] = None, *, return_data: bool = False) -> Union[None, PortfolioValuation]:
    """
    Value the portfolio at the report date from its transactions and prices.

    Contract:
    - Returns ``PortfolioValuation`` in data mode.
    - Prints cash, each open position and interpolation flags in CLI mode.
    """
    config = load_portfolio_config(filepath)
    valuation = value_at(config.transactions, _report_date(config, as_of), provider=config.price_provider)
    if return_data:
        return valuation
    print(valuation.to_cli_report())
    print()
    _print_flags(
        generate_data_quality_flags(
            {
                "warnings": make_json_safe(valuation.warnings),
                "price_lookups": {
                    asset_id: {"is_interpolated": asset_id in valuation.interpolated_assets}
                    for asset_id in valuation.positions
                },
            }
        )
    )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Ledger, tax-lot and valuation reports for a portfolio YAML file")
    parser.add_argument("--portfolio", type=str, help="Path to YAML portfolio file")
    parser.add_argument("--date", type=str, help="Report date (YYYY-MM-DD); defaults to the file's as_of or today")
    parser.add_argument("--start", type=str, help="Performance window start (YYYY-MM-DD)")
    parser.add_argument("--end", type=str, help="Performance window end (YYYY-MM-DD)")
    parser.add_argument("--cash", action="store_true", help="Reconstruct the cash balance at --date")
    parser.add_argument("--tax", action="store_true", help="Estimate tax on unrealized gains at --date")
    parser.add_argument("--performance", action="store_true", help="Performance summary over daily values")
    parser.add_argument("--yoy", action="store_true", help="Year-over-year CAGR table")
    parser.add_argument("--liabilities", action="store_true", help="Liability balances at --date")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    try:
        if args.portfolio and args.cash:
            run_cash_balance(args.portfolio, args.date)
        elif args.portfolio and args.tax:
            run_tax_analysis(args.portfolio, args.date)
        elif args.portfolio and args.performance:
            run_performance(args.portfolio, args.start, args.end)
        elif args.portfolio and args.yoy:
            run_yoy(args.portfolio, args.date)
        elif args.portfolio and args.liabilities:
            run_liabilities(args.portfolio, args.date)
        elif args.portfolio:
            run_valuation(args.portfolio, args.date)
        else:
            parser.print_help()
    except InputValidationError as exc:
        print(f"❌ Invalid input: {exc}")
        raise SystemExit(2)
