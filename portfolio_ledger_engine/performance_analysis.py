"""
Portfolio performance analysis over daily snapshots.

Called by:
    - ``run_ledger --performance`` / ``--yoy``
    - ``core.performance_flags`` (consumes ``PerformanceSummary``)

Primary flow:
    1) Window the snapshot series.
    2) Derive high/low, best/worst day and daily returns.
    3) Run the metrics engine (TWR, volatility, Sharpe, drawdown).
    4) Return result objects; money stays ``Decimal``, percentages are floats.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional, Sequence

from portfolio_ledger_engine import config
from portfolio_ledger_engine._logging import log_errors, log_operation, log_timing, portfolio_logger
from portfolio_ledger_engine.constants import CURRENT_YEAR_LABEL
from portfolio_ledger_engine.data_objects import Holding, PerformanceSnapshot
from portfolio_ledger_engine.date_utils import days_between, end_of_year, start_of_year, to_date
from portfolio_ledger_engine.decimal_utils import ONE, decimal_sum, safe_divide, to_percent
from portfolio_ledger_engine.performance_metrics_engine import (
    annualize_return,
    calculate_max_drawdown,
    calculate_sharpe_ratio,
    calculate_simple_return,
    calculate_volatility,
)
from portfolio_ledger_engine.price_lookup import PriceCache, prices_at
from portfolio_ledger_engine.providers import PriceHistoryProvider
from portfolio_ledger_engine.results import (
    DayPerformance,
    HoldingPerformance,
    PerformanceSummary,
    YearOverYearMetric,
)


def _window(snapshots: Iterable[PerformanceSnapshot], start: Optional[date], end: Optional[date]) -> List[PerformanceSnapshot]:
    ordered = sorted(snapshots, key=lambda snap: snap.date)
    return [
        snap
        for snap in ordered
        if (start is None or snap.date >= start) and (end is None or snap.date <= end)
    ]


@log_errors("high")
@log_operation("performance_summary")
@log_timing(2.0)
def get_summary(
    snapshots: Iterable[PerformanceSnapshot],
    start_date=None,
    end_date=None,
    risk_free_rate=None,
) -> Optional[PerformanceSummary]:
    """
    Summary statistics for the snapshots inside ``[start_date, end_date]``.

    Contract notes:
    - Returns ``None`` when the window holds no snapshots.
    - The TWR is chain-linked from the snapshots' cumulative ``twr_return``,
      so a window that starts mid-series measures only its own span.
    - Volatility uses non-zero daily changes only.
    """
    start = to_date(start_date, field="start_date") if start_date is not None else None
    end = to_date(end_date, field="end_date") if end_date is not None else None
    window = _window(snapshots, start, end)
    if not window:
        return None

    first, last = window[0], window[-1]
    high = low = best = worst = first
    daily_returns: List[float] = []
    for snap in window:
        if snap.total_value > high.total_value:
            high = snap
        if snap.total_value < low.total_value:
            low = snap
        if snap.day_change_percent > best.day_change_percent:
            best = snap
        if snap.day_change_percent < worst.day_change_percent:
            worst = snap
        if snap.day_change_percent != 0:
            daily_returns.append(snap.day_change_percent / 100)

    total_return = last.total_value - first.total_value
    twr = safe_divide(ONE + last.twr_return, ONE + first.twr_return, default=ONE) - ONE
    days = days_between(first.date, last.date)
    annualized = annualize_return(twr, days)
    volatility = calculate_volatility(daily_returns)

    return PerformanceSummary(
        start_date=first.date,
        end_date=last.date,
        start_value=first.total_value,
        end_value=last.total_value,
        total_return=total_return,
        total_return_percent=to_percent(total_return, first.total_value),
        twr_return=float(twr) * 100,
        annualized_return=annualized,
        period_high=high.total_value,
        period_high_date=high.date,
        period_low=low.total_value,
        period_low_date=low.date,
        best_day=DayPerformance(best.date, best.day_change, best.day_change_percent),
        worst_day=DayPerformance(worst.date, worst.day_change, worst.day_change_percent),
        volatility=volatility,
        sharpe_ratio=calculate_sharpe_ratio(annualized, volatility, risk_free_rate),
        max_drawdown=calculate_max_drawdown([snap.total_value for snap in window]),
        has_interpolated_prices=any(snap.has_interpolated_prices for snap in window),
    )


def _nearest(snapshots: Sequence[PerformanceSnapshot], target: date) -> PerformanceSnapshot:
    best = snapshots[0]
    best_distance = abs(days_between(best.date, target))
    for snap in snapshots[1:]:
        distance = abs(days_between(snap.date, target))
        if distance < best_distance:
            best, best_distance = snap, distance
    return best


@log_operation("yoy_metrics")
def get_yoy_metrics(snapshots: Iterable[PerformanceSnapshot], now=None) -> List[YearOverYearMetric]:
    """
    One row per calendar year from inception through ``now``.

    Each window is clamped to inception and ``now``; its boundary values come
    from the snapshot nearest each boundary. The current year is labelled
    ``Current Year (YTD)`` and always marked partial. Full years report their
    simple return as CAGR; partial windows are annualized by days held.

    ``now`` defaults to the latest snapshot date. Histories shorter than
    ``min_history_days_for_yoy`` return an empty list.
    """
    ordered = sorted(snapshots, key=lambda snap: snap.date)
    if not ordered:
        return []

    inception = ordered[0].date
    today = to_date(now, field="now") if now is not None else ordered[-1].date
    if days_between(inception, today) < int(config.PERFORMANCE_DEFAULTS["min_history_days_for_yoy"]):
        return []

    rows: List[YearOverYearMetric] = []
    for year in range(inception.year, today.year + 1):
        window_start = max(start_of_year(year), inception)
        window_end = min(end_of_year(year), today)
        if window_end < window_start:
            continue

        start_snap = _nearest(ordered, window_start)
        end_snap = _nearest(ordered, window_end)
        if start_snap.total_value == 0:
            non_zero = [s for s in ordered if window_start <= s.date <= window_end and s.total_value != 0]
            if not non_zero:
                portfolio_logger.debug("yoy_metrics: no non-zero value in %s, row skipped", year)
                continue
            start_snap = non_zero[0]
            window_start = start_snap.date

        is_current = year == today.year
        is_partial = is_current or window_start > start_of_year(year) or window_end < end_of_year(year)
        simple = calculate_simple_return(start_snap.total_value, end_snap.total_value)
        days = days_between(window_start, window_end)

        rows.append(
            YearOverYearMetric(
                year=year,
                label=CURRENT_YEAR_LABEL if is_current else str(year),
                start_date=window_start,
                end_date=window_end,
                start_value=start_snap.total_value,
                end_value=end_snap.total_value,
                simple_return=float(simple) * 100,
                cagr=annualize_return(simple, days) if is_partial else float(simple) * 100,
                days=days,
                is_partial_year=is_partial,
            )
        )
    return rows


def get_holding_performance(
    holdings: Sequence[Holding],
    period_start,
    provider: Optional[PriceHistoryProvider] = None,
    cache: Optional[PriceCache] = None,
) -> List[HoldingPerformance]:
    """Per-holding change from ``period_start`` to the holding's current value.

    Holdings with no price near ``period_start`` are measured from cost basis
    and flagged ``is_interpolated``.
    """
    start = to_date(period_start, field="period_start")
    cache = cache if cache is not None else PriceCache()
    lookups = prices_at([h.asset_id for h in holdings], start, provider=provider, cache=cache)
    total_value = decimal_sum(h.current_value for h in holdings)

    rows: List[HoldingPerformance] = []
    for holding in holdings:
        lookup = lookups[holding.asset_id]
        if lookup.price == 0:
            start_value, interpolated = holding.cost_basis, True
        else:
            start_value, interpolated = holding.quantity * lookup.price, lookup.is_interpolated
        gain = holding.current_value - start_value
        rows.append(
            HoldingPerformance(
                asset_id=holding.asset_id,
                quantity=holding.quantity,
                cost_basis=holding.cost_basis,
                current_value=holding.current_value,
                period_start_value=start_value,
                absolute_gain=gain,
                percent_gain=to_percent(gain, start_value),
                weight=to_percent(holding.current_value, total_value) if total_value else 0.0,
                is_interpolated=interpolated,
            )
        )
    return rows
