"""Time-weighted return and risk metric computations.

Called by:
- ``performance_analysis.get_summary`` / ``get_yoy_metrics``.
- ``build_snapshots`` callers that turn daily values into snapshot rows.

Contract notes:
- Returns between values are exact ``Decimal`` fractions (0.1 == 10%).
- ``annualize_return``, volatility, drawdown and Sharpe outputs are float
  percentages (10.0 == 10%).
- Sub-period returns use Modified Dietz weighting of external cash flows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from portfolio_ledger_engine import config
from portfolio_ledger_engine.data_objects import PerformanceSnapshot
from portfolio_ledger_engine.date_utils import days_between, to_date
from portfolio_ledger_engine.decimal_utils import ONE, ZERO, decimal_sum, safe_divide, to_decimal, to_percent


@dataclass(frozen=True)
class CashFlowEvent:
    """External flow into (+) or out of (-) the portfolio."""

    date: date
    amount: Decimal


@dataclass
class TWRSubPeriod:
    start_date: date
    end_date: date
    start_value: Decimal = ZERO
    end_value: Decimal = ZERO
    cash_flows: List[CashFlowEvent] = field(default_factory=list)
    period_return: Decimal = ZERO


@dataclass
class TWRResult:
    total_return: Decimal
    annualized_return: float
    start_date: Optional[date]
    end_date: Optional[date]
    sub_periods: List[TWRSubPeriod] = field(default_factory=list)


def _perf(key: str):
    return config.PERFORMANCE_DEFAULTS[key]


def calculate_period_return(
    start_value: Decimal,
    end_value: Decimal,
    cash_flows: Sequence[CashFlowEvent],
    start_date,
    end_date,
) -> Decimal:
    """Modified Dietz return for one period.

    Each flow is weighted by the fraction of the period remaining after it.
    A zero starting value measures the end value against total inflows.
    """
    start = to_date(start_date, field="start_date")
    end = to_date(end_date, field="end_date")
    total_flow = decimal_sum(cf.amount for cf in cash_flows)

    if start_value == 0:
        if total_flow == 0:
            return ZERO
        return safe_divide(end_value - total_flow, total_flow)

    total_days = days_between(start, end)
    if total_days == 0:
        return safe_divide(end_value - start_value, start_value)

    weighted_flow = decimal_sum(
        cf.amount * safe_divide(Decimal(days_between(cf.date, end)), Decimal(total_days)) for cf in cash_flows
    )
    denominator = start_value + weighted_flow
    if denominator == 0:
        return ZERO
    return safe_divide(end_value - start_value - total_flow, denominator)


def compound_returns(sub_period_returns: Iterable[Decimal]) -> Decimal:
    """Chain-link sub-period returns: prod(1 + r) - 1."""
    growth = ONE
    seen = False
    for value in sub_period_returns:
        growth *= ONE + value
        seen = True
    return growth - ONE if seen else ZERO


def annualize_return(total_return: Decimal, days: int) -> float:
    """Annualized percentage; windows shorter than the minimum are not annualized."""
    if days <= 0:
        return 0.0
    if days < int(_perf("min_days_to_annualize")):
        return float(total_return) * 100
    years = days / int(_perf("calendar_days_per_year"))
    base = 1 + float(total_return)
    if base <= 0:
        return -100.0
    return (float(np.power(base, 1 / years)) - 1) * 100


def create_sub_periods(
    start_date,
    end_date,
    cash_flows: Sequence[CashFlowEvent],
) -> List[TWRSubPeriod]:
    """Split ``[start, end]`` at each distinct interior cash-flow date.

    Flows on a break date belong to the sub-period that starts there.
    """
    start = to_date(start_date, field="start_date")
    end = to_date(end_date, field="end_date")
    flows = sorted(cash_flows, key=lambda cf: cf.date)
    if not flows:
        return [TWRSubPeriod(start_date=start, end_date=end)]

    breaks = sorted({cf.date for cf in flows if start < cf.date < end})
    periods: List[TWRSubPeriod] = []
    period_start = start
    for break_date in breaks:
        periods.append(
            TWRSubPeriod(
                start_date=period_start,
                end_date=break_date,
                cash_flows=[cf for cf in flows if period_start <= cf.date < break_date],
            )
        )
        period_start = break_date
    periods.append(
        TWRSubPeriod(
            start_date=period_start,
            end_date=end,
            cash_flows=[cf for cf in flows if period_start <= cf.date <= end],
        )
    )
    return periods


def _value_on_or_before(values: Sequence[Tuple[date, Decimal]], target: date) -> Decimal:
    candidate = values[0][1]
    for day, value in values:
        if day > target:
            break
        candidate = value
    return candidate


def calculate_twr_from_daily_values(
    daily_values: Iterable[Tuple[date, Decimal]],
    cash_flows: Sequence[CashFlowEvent] = (),
) -> TWRResult:
    """Time-weighted return over ``(date, value)`` points with external flows."""
    values = sorted(((to_date(d), to_decimal(v)) for d, v in daily_values), key=lambda item: item[0])
    if len(values) < 2:
        only = values[0][0] if values else None
        return TWRResult(total_return=ZERO, annualized_return=0.0, start_date=only, end_date=only)

    start, start_value = values[0]
    end, end_value = values[-1]
    relevant = [cf for cf in cash_flows if start <= cf.date <= end]
    days = days_between(start, end)

    if not relevant:
        period_return = calculate_period_return(start_value, end_value, [], start, end)
        return TWRResult(
            total_return=period_return,
            annualized_return=annualize_return(period_return, days),
            start_date=start,
            end_date=end,
            sub_periods=[TWRSubPeriod(start, end, start_value, end_value, [], period_return)],
        )

    periods = create_sub_periods(start, end, relevant)
    for index, period in enumerate(periods):
        period.start_value = start_value if index == 0 else _value_on_or_before(values, period.start_date)
        period.end_value = end_value if index == len(periods) - 1 else _value_on_or_before(values, period.end_date)
        period.period_return = calculate_period_return(
            period.start_value, period.end_value, period.cash_flows, period.start_date, period.end_date
        )

    total = compound_returns(p.period_return for p in periods)
    return TWRResult(
        total_return=total,
        annualized_return=annualize_return(total, days),
        start_date=start,
        end_date=end,
        sub_periods=periods,
    )


def calculate_simple_return(start_value: Decimal, end_value: Decimal) -> Decimal:
    if start_value == 0:
        return ZERO
    return safe_divide(end_value - start_value, start_value)


def calculate_day_change(previous_value: Decimal, current_value: Decimal) -> Tuple[Decimal, float]:
    """``(change, change_percent)`` between consecutive values."""
    change = current_value - previous_value
    return change, to_percent(change, previous_value)


def calculate_volatility(daily_returns: Sequence[float]) -> float:
    """Annualized volatility (%) from daily returns as fractions; sample std, ddof=1."""
    series = pd.Series(list(daily_returns), dtype=float)
    if len(series) < 2:
        return 0.0
    return float(series.std(ddof=1) * np.sqrt(int(_perf("trading_days_per_year"))) * 100)


def calculate_sharpe_ratio(annual_return_pct: float, volatility_pct: float, risk_free_rate=None) -> float:
    """``(annual return - risk free) / volatility`` on percentage inputs; 0 without volatility."""
    if risk_free_rate is None:
        risk_free_rate = _perf("risk_free_rate")
    if not volatility_pct:
        return 0.0
    rf_pct = float(to_decimal(risk_free_rate, field="risk_free_rate")) * 100
    return (annual_return_pct - rf_pct) / volatility_pct


def calculate_max_drawdown(values: Sequence[Decimal]) -> float:
    """Largest peak-to-trough decline as a negative percentage (0.0 when none)."""
    series = pd.Series([float(v) for v in values], dtype=float)
    if series.empty:
        return 0.0
    running_peak = series.cummax()
    drawdowns = (series - running_peak) / running_peak.replace(0, np.nan)
    worst = drawdowns.min()
    return 0.0 if pd.isna(worst) else float(worst * 100)


def build_snapshots(
    daily_values: Iterable[Tuple[date, Decimal]],
    cash_flows: Sequence[CashFlowEvent] = (),
    interpolated_dates: Iterable[date] = (),
) -> List[PerformanceSnapshot]:
    """Daily snapshots with day change and cumulative TWR since the first value.

    Day-over-day changes net out any external flow on that day, so deposits
    and withdrawals do not register as gains or losses.
    """
    values = sorted(((to_date(d), to_decimal(v)) for d, v in daily_values), key=lambda item: item[0])
    flagged = {to_date(d) for d in interpolated_dates}
    flows_by_day = {}
    for cf in cash_flows:
        flows_by_day[cf.date] = flows_by_day.get(cf.date, ZERO) + cf.amount

    snapshots: List[PerformanceSnapshot] = []
    growth = ONE
    previous: Optional[Decimal] = None
    for day, value in values:
        if previous is None:
            change, change_pct = ZERO, 0.0
        else:
            change, change_pct = calculate_day_change(previous, value - flows_by_day.get(day, ZERO))
            growth *= ONE + calculate_simple_return(previous, value - flows_by_day.get(day, ZERO))
        snapshots.append(
            PerformanceSnapshot(
                date=day,
                total_value=value,
                day_change=change,
                day_change_percent=change_pct,
                twr_return=growth - ONE,
                has_interpolated_prices=day in flagged,
            )
        )
        previous = value
    return snapshots
