"""Result objects returned by the ledger, tax, liability and performance entrypoints.

Every result exposes ``to_api_response()`` (JSON-safe dict; Decimal fields are
exact strings) and ``to_cli_report()`` (human-readable text for ``run_ledger``).
Money is ``Decimal``; percentages are plain floats.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pandas as pd

from portfolio_ledger_engine._vendor import make_json_safe
from portfolio_ledger_engine.constants import DispositionReason, HoldingPeriod, LotType
from portfolio_ledger_engine.data_objects import LedgerWarning, TaxLot
from portfolio_ledger_engine.decimal_utils import ZERO, quantize_money


def _money(value: Optional[Decimal]) -> str:
    if value is None:
        return "n/a"
    return f"${quantize_money(value):,}"


def _pct(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    return f"{value:.2f}%"


@dataclass
class _BaseResult:
    def to_api_response(self) -> Dict[str, Any]:
        return make_json_safe(self)

    def to_cli_report(self) -> str:
        return str(self.to_api_response())


# Cash ledger
# ===========

@dataclass
class CashBalanceResult(_BaseResult):
    balance: Decimal
    as_of: date
    transaction_count: int = 0
    warnings: List[LedgerWarning] = field(default_factory=list)

    def to_cli_report(self) -> str:
        lines = [f"Cash balance as of {self.as_of.isoformat()}: {_money(self.balance)}"]
        lines.append(f"  transactions replayed: {self.transaction_count}")
        for warning in self.warnings:
            lines.append(f"  ! {warning.message}")
        return "\n".join(lines)


@dataclass(frozen=True)
class CashBalancePoint:
    date: date
    balance: Decimal


@dataclass
class CashBalanceHistory(_BaseResult):
    points: List[CashBalancePoint] = field(default_factory=list)
    warnings: List[LedgerWarning] = field(default_factory=list)

    def to_series(self) -> pd.Series:
        """Balances indexed by date; values stay ``Decimal`` (object dtype)."""
        return pd.Series(
            [point.balance for point in self.points],
            index=pd.DatetimeIndex([pd.Timestamp(point.date) for point in self.points], name="date"),
            dtype=object,
            name="cash_balance",
        )


# Tax lots / ESPP
# ===============

@dataclass(frozen=True)
class DisqualifyingDispositionCheck:
    grant_date: date
    purchase_date: date
    sell_date: date
    two_years_from_grant: date
    one_year_from_purchase: date
    meets_grant_requirement: bool
    meets_purchase_requirement: bool
    is_qualifying: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "grant_date": self.grant_date.isoformat(),
            "purchase_date": self.purchase_date.isoformat(),
            "sell_date": self.sell_date.isoformat(),
            "two_years_from_grant": self.two_years_from_grant.isoformat(),
            "one_year_from_purchase": self.one_year_from_purchase.isoformat(),
            "meets_grant_requirement": self.meets_grant_requirement,
            "meets_purchase_requirement": self.meets_purchase_requirement,
            "is_qualifying": self.is_qualifying,
        }


@dataclass
class SaleAllocation(_BaseResult):
    """Portion of one sale matched against one lot."""

    lot_id: str
    asset_id: str
    quantity: Decimal
    purchase_date: date
    sale_date: date
    cost_basis: Decimal
    proceeds: Decimal
    realized_gain: Decimal
    holding_period: HoldingPeriod
    lot_type: LotType = LotType.STANDARD
    disposition: Optional[DisqualifyingDispositionCheck] = None
    disposition_reason: Optional[DispositionReason] = None


@dataclass
class LotBuildResult(_BaseResult):
    """Replayed lot state per asset, realized sale allocations and replay warnings."""

    lots: Dict[str, List[TaxLot]] = field(default_factory=dict)
    realized: List[SaleAllocation] = field(default_factory=list)
    warnings: List[LedgerWarning] = field(default_factory=list)

    def lots_for(self, asset_id: str) -> List[TaxLot]:
        return self.lots.get(asset_id, [])

    @property
    def realized_gain(self) -> Decimal:
        total = ZERO
        for allocation in self.realized:
            total += allocation.realized_gain
        return total


@dataclass
class LotAnalysis(_BaseResult):
    lot_id: str
    asset_id: str
    quantity: Decimal
    purchase_price: Decimal
    purchase_date: date
    current_price: Decimal
    cost_basis: Decimal
    current_value: Decimal
    unrealized_gain: Decimal
    holding_period: HoldingPeriod
    days_held: int
    lot_type: LotType = LotType.STANDARD
    bargain_element: Optional[Decimal] = None
    adjusted_cost_basis: Optional[Decimal] = None
    grant_date: Optional[date] = None


@dataclass
class TaxAnalysis(_BaseResult):
    """Aggregate unrealized-gain tax estimate with the per-lot breakdown."""

    as_of: date
    total_unrealized_gain: Decimal
    total_unrealized_loss: Decimal
    net_unrealized_gain: Decimal
    short_term_gains: Decimal
    short_term_losses: Decimal
    long_term_gains: Decimal
    long_term_losses: Decimal
    estimated_st_tax: Decimal
    estimated_lt_tax: Decimal
    total_estimated_tax: Decimal
    lots: List[LotAnalysis] = field(default_factory=list)
    skipped_assets: List[str] = field(default_factory=list)
    warnings: List[LedgerWarning] = field(default_factory=list)

    def to_cli_report(self) -> str:
        lines = [
            f"Tax analysis as of {self.as_of.isoformat()}",
            "=" * 50,
            f"Unrealized gain/loss:   {_money(self.total_unrealized_gain)} / {_money(self.total_unrealized_loss)}",
            f"Net unrealized gain:    {_money(self.net_unrealized_gain)}",
            f"Short-term gains/losses: {_money(self.short_term_gains)} / {_money(self.short_term_losses)}",
            f"Long-term gains/losses:  {_money(self.long_term_gains)} / {_money(self.long_term_losses)}",
            f"Estimated ST tax:       {_money(self.estimated_st_tax)}",
            f"Estimated LT tax:       {_money(self.estimated_lt_tax)}",
            f"Total estimated tax:    {_money(self.total_estimated_tax)}",
            "",
        ]
        for lot in self.lots:
            lines.append(
                f"  {lot.asset_id:<8} {lot.lot_id:<14} {lot.quantity:>10} @ {_money(lot.purchase_price):>12}"
                f"  {lot.holding_period.value:<5} {lot.days_held:>5}d  gain {_money(lot.unrealized_gain)}"
            )
        if self.skipped_assets:
            lines.append("")
            lines.append(f"Skipped (no current price): {', '.join(self.skipped_assets)}")
        return "\n".join(lines)


@dataclass
class AgingLot(_BaseResult):
    """Short-term lot that turns long-term within the lookback window."""

    lot_id: str
    asset_id: str
    purchase_date: date
    long_term_date: date
    days_until_long_term: int
    remaining_quantity: Decimal
    unrealized_gain: Decimal


@dataclass
class TaxExposure(_BaseResult):
    total_estimated_tax: Decimal
    total_unrealized_gain: Decimal
    effective_rate: float
    short_term_tax: Decimal
    long_term_tax: Decimal
    aging_lot_count: int
    aging_lots: List[AgingLot] = field(default_factory=list)


# Liabilities
# ===========

@dataclass
class LiabilityBalanceResult(_BaseResult):
    liability_id: str
    date: date
    balance: Decimal
    is_estimate: bool = False
    warning: Optional[str] = None


@dataclass(frozen=True)
class LiabilityBalancePoint:
    date: date
    balance: Decimal
    is_estimate: bool = False


@dataclass
class LiabilityPaymentRecord(_BaseResult):
    """Outcome of recording a payment: the new payment plus the updated liability."""

    payment: Any
    liability: Any


# Valuation
# =========

@dataclass
class PortfolioValuation(_BaseResult):
    """Cash plus priced open positions on one date."""

    date: date
    cash_balance: Decimal
    holdings_value: Decimal
    positions: Dict[str, Decimal] = field(default_factory=dict)
    interpolated_assets: List[str] = field(default_factory=list)
    warnings: List[LedgerWarning] = field(default_factory=list)

    @property
    def total_value(self) -> Decimal:
        return self.cash_balance + self.holdings_value

    @property
    def has_interpolated_prices(self) -> bool:
        return bool(self.interpolated_assets)

    def to_api_response(self) -> Dict[str, Any]:
        payload = make_json_safe(self)
        payload["total_value"] = make_json_safe(self.total_value)
        payload["has_interpolated_prices"] = self.has_interpolated_prices
        return payload

    def to_cli_report(self) -> str:
        lines = [f"Portfolio value as of {self.date.isoformat()}: {_money(self.total_value)}"]
        lines.append(f"  cash: {_money(self.cash_balance)}")
        for asset_id, value in self.positions.items():
            marker = " (interpolated)" if asset_id in self.interpolated_assets else ""
            lines.append(f"  {asset_id:<10} {_money(value)}{marker}")
        return "\n".join(lines)


# Performance
# ===========

@dataclass(frozen=True)
class DayPerformance:
    date: date
    change: Decimal
    change_percent: float


@dataclass
class PerformanceSummary(_BaseResult):
    start_date: date
    end_date: date
    start_value: Decimal
    end_value: Decimal
    total_return: Decimal
    total_return_percent: float
    twr_return: float
    annualized_return: float
    period_high: Decimal
    period_high_date: date
    period_low: Decimal
    period_low_date: date
    best_day: DayPerformance
    worst_day: DayPerformance
    volatility: float
    sharpe_ratio: float
    max_drawdown: float
    has_interpolated_prices: bool = False

    def to_cli_report(self) -> str:
        lines = [
            f"Performance {self.start_date.isoformat()} -> {self.end_date.isoformat()}",
            "=" * 50,
            f"Start / end value:  {_money(self.start_value)} / {_money(self.end_value)}",
            f"Total return:       {_money(self.total_return)} ({_pct(self.total_return_percent)})",
            f"TWR return:         {_pct(self.twr_return)}",
            f"Annualized return:  {_pct(self.annualized_return)}",
            f"Period high:        {_money(self.period_high)} on {self.period_high_date.isoformat()}",
            f"Period low:         {_money(self.period_low)} on {self.period_low_date.isoformat()}",
            f"Best day:           {_pct(self.best_day.change_percent)} on {self.best_day.date.isoformat()}",
            f"Worst day:          {_pct(self.worst_day.change_percent)} on {self.worst_day.date.isoformat()}",
            f"Volatility:         {_pct(self.volatility)}",
            f"Sharpe ratio:       {self.sharpe_ratio:.2f}",
            f"Max drawdown:       {_pct(self.max_drawdown)}",
        ]
        if self.has_interpolated_prices:
            lines.append("  ! some values use interpolated prices")
        return "\n".join(lines)


@dataclass
class YearOverYearMetric(_BaseResult):
    year: int
    label: str
    start_date: date
    end_date: date
    start_value: Decimal
    end_value: Decimal
    simple_return: float
    cagr: float
    days: int
    is_partial_year: bool


@dataclass
class HoldingPerformance(_BaseResult):
    asset_id: str
    quantity: Decimal
    cost_basis: Decimal
    current_value: Decimal
    period_start_value: Decimal
    absolute_gain: Decimal
    percent_gain: float
    weight: float
    is_interpolated: bool = False
