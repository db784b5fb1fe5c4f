"""Portfolio value rebuilt from the transaction log and price history.

Called by:
- ``run_ledger`` (default report, and ``--performance``/``--yoy`` when the
  portfolio file carries no ``daily_values``).

Contract notes:
- Value on a date = replayed cash balance + each open position's remaining
  quantity times its looked-up price.
- A position with no price in the lookup window is carried at its remaining
  cost basis and listed in ``interpolated_assets``.
- One ``PriceCache`` serves a whole pass; snapshot days with any interpolated
  price are flagged on the resulting ``PerformanceSnapshot``.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Union

from portfolio_ledger_engine._logging import log_operation, log_timing, portfolio_logger
from portfolio_ledger_engine.cash_ledger import balance_at, cash_flows
from portfolio_ledger_engine.constants import WARNING_UNKNOWN_TRANSACTION_KIND, LotStrategy
from portfolio_ledger_engine.data_objects import PerformanceSnapshot, Transaction
from portfolio_ledger_engine.date_utils import date_range, to_date
from portfolio_ledger_engine.decimal_utils import decimal_sum
from portfolio_ledger_engine.performance_metrics_engine import CashFlowEvent, build_snapshots
from portfolio_ledger_engine.price_lookup import PriceCache, prices_at
from portfolio_ledger_engine.providers import PriceHistoryProvider
from portfolio_ledger_engine.results import PortfolioValuation
from portfolio_ledger_engine.tax_lots import build_lots, holding_from_lots


@log_operation("portfolio_value_at")
def value_at(
    transactions: Iterable[Transaction],
    target_date,
    provider: Optional[PriceHistoryProvider] = None,
    cache: Optional[PriceCache] = None,
    strategy: Union[LotStrategy, str, None] = None,
) -> PortfolioValuation:
    """Cash plus open positions on ``target_date``."""
    target = to_date(target_date, field="target_date")
    transactions = list(transactions)
    cache = cache if cache is not None else PriceCache()

    cash = balance_at(transactions, target)
    build = build_lots([tx for tx in transactions if tx.date <= target], strategy)
    holdings = {
        asset_id: holding_from_lots(asset_id, lots)
        for asset_id, lots in build.lots.items()
        if any(lot.is_open for lot in lots)
    }
    lookups = prices_at(holdings.keys(), target, provider=provider, cache=cache)

    positions = {}
    interpolated: List[str] = []
    for asset_id, holding in holdings.items():
        lookup = lookups[asset_id]
        if lookup.price == 0:
            positions[asset_id] = holding.cost_basis
        else:
            positions[asset_id] = holding.quantity * lookup.price
        if lookup.is_interpolated:
            interpolated.append(asset_id)

    # Unknown kinds are already reported by the cash replay.
    lot_warnings = [w for w in build.warnings if w.code != WARNING_UNKNOWN_TRANSACTION_KIND]
    return PortfolioValuation(
        date=target,
        cash_balance=cash.balance,
        holdings_value=decimal_sum(positions.values()),
        positions=positions,
        interpolated_assets=interpolated,
        warnings=cash.warnings + lot_warnings,
    )


@log_timing(2.0)
def value_history(
    transactions: Iterable[Transaction],
    dates: Sequence,
    provider: Optional[PriceHistoryProvider] = None,
    strategy: Union[LotStrategy, str, None] = None,
) -> List[PortfolioValuation]:
    """Valuations at each of ``dates``, skipping days before the first transaction."""
    transactions = list(transactions)
    if not transactions:
        return []
    earliest = min(tx.date for tx in transactions)
    cache = PriceCache()

    history: List[PortfolioValuation] = []
    for day in sorted({to_date(d, field="history date") for d in dates}):
        if day < earliest:
            continue
        history.append(value_at(transactions, day, provider=provider, cache=cache, strategy=strategy))
    portfolio_logger.debug("value_history: %d points, %d cached prices", len(history), len(cache))
    return history


def snapshots_from_transactions(
    transactions: Iterable[Transaction],
    start_date=None,
    end_date=None,
    provider: Optional[PriceHistoryProvider] = None,
    strategy: Union[LotStrategy, str, None] = None,
) -> List[PerformanceSnapshot]:
    """Daily ``PerformanceSnapshot`` rows valued from transactions.

    The range defaults to the first through the last transaction date.
    Deposits and withdrawals are passed as external flows so they do not
    count as gains.
    """
    transactions = list(transactions)
    if not transactions:
        return []
    start = to_date(start_date, field="start_date") if start_date is not None else min(tx.date for tx in transactions)
    end = to_date(end_date, field="end_date") if end_date is not None else max(tx.date for tx in transactions)

    valuations = value_history(transactions, date_range(start, end), provider=provider, strategy=strategy)
    flows = [CashFlowEvent(day, amount) for day, amount in cash_flows(transactions)]
    return build_snapshots(
        [(v.date, v.total_value) for v in valuations],
        flows,
        [v.date for v in valuations if v.has_interpolated_prices],
    )

