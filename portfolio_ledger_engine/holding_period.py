"""Short/long holding-period classification for general tax lots.

A lot is long-term once it has been held ``long_term_threshold_days`` (365)
calendar days or more. This rule is independent of the ESPP anniversary rule
in ``espp.py``, where the anniversary date itself is insufficient.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, List, Mapping, Optional

from portfolio_ledger_engine import config
from portfolio_ledger_engine.constants import HoldingPeriod
from portfolio_ledger_engine.data_objects import Holding, InputValidationError
from portfolio_ledger_engine.date_utils import add_days, days_between, to_date
from portfolio_ledger_engine.results import AgingLot


def _threshold_days() -> int:
    return int(config.TAX_DEFAULTS["long_term_threshold_days"])


def holding_days(purchase_date, reference_date) -> int:
    """Whole calendar days held (0 on the purchase date)."""
    return days_between(to_date(purchase_date, field="purchase_date"), to_date(reference_date, field="reference_date"))


def classify(purchase_date, reference_date) -> HoldingPeriod:
    """``LONG`` if held at least the threshold (365 days), else ``SHORT``.

    Raises ``InputValidationError`` when ``reference_date`` precedes ``purchase_date``.
    """
    days = holding_days(purchase_date, reference_date)
    if days < 0:
        raise InputValidationError("Reference date cannot be before purchase date")
    return HoldingPeriod.LONG if days >= _threshold_days() else HoldingPeriod.SHORT


def long_term_threshold_date(purchase_date) -> date:
    """First date on which a lot bought on ``purchase_date`` is long-term."""
    return add_days(to_date(purchase_date, field="purchase_date"), _threshold_days())


def detect_aging_lots(
    holdings: Iterable[Holding],
    prices: Mapping[str, Decimal],
    as_of,
    lookback_days: Optional[int] = None,
) -> List[AgingLot]:
    """Open short-term lots that turn long-term within ``lookback_days``, soonest first.

    Holdings without a price in ``prices`` are skipped.
    """
    as_of_date = to_date(as_of, field="as_of")
    if lookback_days is None:
        lookback_days = int(config.TAX_DEFAULTS["aging_lookback_days"])
    threshold = _threshold_days()

    aging: List[AgingLot] = []
    for holding in holdings:
        price = prices.get(holding.asset_id)
        if price is None or price == 0:
            continue
        for lot in holding.open_lots:
            days_held = days_between(lot.purchase_date, as_of_date)
            days_until = threshold - days_held
            if days_held < threshold and days_until <= lookback_days:
                aging.append(
                    AgingLot(
                        lot_id=lot.id,
                        asset_id=lot.asset_id,
                        purchase_date=lot.purchase_date,
                        long_term_date=long_term_threshold_date(lot.purchase_date),
                        days_until_long_term=days_until,
                        remaining_quantity=lot.remaining_quantity,
                        unrealized_gain=lot.remaining_quantity * price - lot.remaining_cost_basis,
                    )
                )

    aging.sort(key=lambda item: item.days_until_long_term)
    return aging
