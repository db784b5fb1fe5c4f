"""Unrealized capital-gains tax estimation over open lots.

Called by:
- ``run_ledger --tax`` and ``core.tax_flags``.

Contract notes:
- Only gains are taxed; losses are bucketed but produce no liability.
- Taxes are rounded half-up to cents; buckets stay exact.
- A holding with no current price is excluded and reported in
  ``skipped_assets`` plus a ``missing_price`` warning.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from portfolio_ledger_engine._logging import log_operation, log_timing, portfolio_logger
from portfolio_ledger_engine.constants import WARNING_MISSING_PRICE, HoldingPeriod, LotType
from portfolio_ledger_engine.data_objects import Holding, LedgerWarning, TaxLot, TaxSettings
from portfolio_ledger_engine.date_utils import days_between, to_date
from portfolio_ledger_engine.decimal_utils import ZERO, quantize_money, safe_divide, to_decimal
from portfolio_ledger_engine.holding_period import classify, detect_aging_lots
from portfolio_ledger_engine.results import LotAnalysis, TaxAnalysis, TaxExposure


def calculate_lot_analysis(lot: TaxLot, current_price, reference_date) -> LotAnalysis:
    """Cost, value and holding period of one lot's remaining shares."""
    reference = to_date(reference_date, field="reference_date")
    price = to_decimal(current_price, field="current_price")
    quantity = lot.remaining_quantity
    cost_basis = lot.purchase_price * quantity
    current_value = price * quantity

    analysis = LotAnalysis(
        lot_id=lot.id,
        asset_id=lot.asset_id,
        quantity=quantity,
        purchase_price=lot.purchase_price,
        purchase_date=lot.purchase_date,
        current_price=price,
        cost_basis=cost_basis,
        current_value=current_value,
        unrealized_gain=current_value - cost_basis,
        holding_period=classify(lot.purchase_date, reference),
        days_held=days_between(lot.purchase_date, reference),
        lot_type=lot.lot_type,
    )

    if lot.lot_type is LotType.ESPP:
        analysis.grant_date = lot.grant_date
        if lot.bargain_element:
            analysis.bargain_element = lot.bargain_element
            analysis.adjusted_cost_basis = cost_basis + lot.bargain_element * quantity

    return analysis


@log_operation("estimate_tax_liability")
@log_timing(1.0)
def estimate_tax_liability(
    holdings: Iterable[Holding],
    prices: Mapping[str, Decimal],
    settings: Optional[TaxSettings] = None,
    as_of=None,
) -> TaxAnalysis:
    """Bucket every open lot by holding period and gain sign, then apply the rates.

    ``as_of`` is required for a deterministic result; it is the reference
    date for holding periods.
    """
    if as_of is None:
        raise ValueError("estimate_tax_liability requires an as_of date")
    reference = to_date(as_of, field="as_of")
    settings = settings or TaxSettings.defaults()

    gains = {HoldingPeriod.SHORT: ZERO, HoldingPeriod.LONG: ZERO}
    losses = {HoldingPeriod.SHORT: ZERO, HoldingPeriod.LONG: ZERO}
    lots: List[LotAnalysis] = []
    skipped: List[str] = []
    warnings: List[LedgerWarning] = []

    for holding in holdings:
        price = prices.get(holding.asset_id)
        if price is None or to_decimal(price, field="current_price") == 0:
            message = f"Tax estimator: Skipping {holding.asset_id} - no price available"
            portfolio_logger.warning(message)
            skipped.append(holding.asset_id)
            warnings.append(LedgerWarning(code=WARNING_MISSING_PRICE, message=message, context={"asset_id": holding.asset_id}))
            continue

        for lot in holding.open_lots:
            analysis = calculate_lot_analysis(lot, price, reference)
            lots.append(analysis)
            if analysis.unrealized_gain > 0:
                gains[analysis.holding_period] += analysis.unrealized_gain
            elif analysis.unrealized_gain < 0:
                losses[analysis.holding_period] += -analysis.unrealized_gain

    st_tax = quantize_money(gains[HoldingPeriod.SHORT] * settings.short_term_rate)
    lt_tax = quantize_money(gains[HoldingPeriod.LONG] * settings.long_term_rate)
    total_gain = gains[HoldingPeriod.SHORT] + gains[HoldingPeriod.LONG]
    total_loss = losses[HoldingPeriod.SHORT] + losses[HoldingPeriod.LONG]

    return TaxAnalysis(
        as_of=reference,
        total_unrealized_gain=total_gain,
        total_unrealized_loss=total_loss,
        net_unrealized_gain=total_gain - total_loss,
        short_term_gains=gains[HoldingPeriod.SHORT],
        short_term_losses=losses[HoldingPeriod.SHORT],
        long_term_gains=gains[HoldingPeriod.LONG],
        long_term_losses=losses[HoldingPeriod.LONG],
        estimated_st_tax=st_tax,
        estimated_lt_tax=lt_tax,
        total_estimated_tax=st_tax + lt_tax,
        lots=lots,
        skipped_assets=skipped,
        warnings=warnings,
    )


def estimate_for_holding(holding: Holding, current_price, settings: Optional[TaxSettings] = None, as_of=None) -> TaxAnalysis:
    return estimate_tax_liability([holding], {holding.asset_id: to_decimal(current_price)}, settings, as_of)


def calculate_tax_exposure(
    holdings: Iterable[Holding],
    prices: Mapping[str, Decimal],
    settings: Optional[TaxSettings] = None,
    as_of=None,
    lookback_days: Optional[int] = None,
) -> TaxExposure:
    """Estimated tax, effective rate on gains, and lots about to turn long-term."""
    holdings = list(holdings)
    analysis = estimate_tax_liability(holdings, prices, settings, as_of)
    aging = detect_aging_lots(holdings, prices, analysis.as_of, lookback_days)

    effective_rate = float(safe_divide(analysis.total_estimated_tax, analysis.total_unrealized_gain))
    return TaxExposure(
        total_estimated_tax=analysis.total_estimated_tax,
        total_unrealized_gain=analysis.total_unrealized_gain,
        effective_rate=effective_rate,
        short_term_tax=analysis.estimated_st_tax,
        long_term_tax=analysis.estimated_lt_tax,
        aging_lot_count=len(aging),
        aging_lots=aging,
    )
