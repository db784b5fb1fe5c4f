"""ESPP qualifying/disqualifying disposition rules (IRS Section 423).

A disposition is qualifying only when the sale is strictly after both the
2-year grant anniversary and the 1-year purchase anniversary. A sale on the
anniversary date itself does not meet that requirement.

Called by:
- ``tax_lots.allocate_sale`` for ESPP lots.
- ``core.tax_flags`` when flagging disqualifying sales.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from portfolio_ledger_engine import config
from portfolio_ledger_engine.constants import DispositionReason
from portfolio_ledger_engine.data_objects import InputValidationError
from portfolio_ledger_engine.date_utils import add_years, is_strictly_after, to_date
from portfolio_ledger_engine.decimal_utils import ZERO, quantize_money, to_decimal
from portfolio_ledger_engine.results import DisqualifyingDispositionCheck


def _validate(grant: date, purchase: date, sell: date) -> None:
    if grant >= purchase:
        raise InputValidationError("Grant date must be before purchase date")
    if sell < purchase:
        raise InputValidationError("Sell date cannot be before purchase date")


def check_disposition_status(grant_date, purchase_date, sell_date) -> DisqualifyingDispositionCheck:
    """Evaluate both holding requirements for one ESPP sale."""
    grant = to_date(grant_date, field="grant_date")
    purchase = to_date(purchase_date, field="purchase_date")
    sell = to_date(sell_date, field="sell_date")
    _validate(grant, purchase, sell)

    two_years_from_grant = add_years(grant, int(config.ESPP_RULES["years_from_grant"]))
    one_year_from_purchase = add_years(purchase, int(config.ESPP_RULES["years_from_purchase"]))

    meets_grant = is_strictly_after(sell, two_years_from_grant)
    meets_purchase = is_strictly_after(sell, one_year_from_purchase)

    return DisqualifyingDispositionCheck(
        grant_date=grant,
        purchase_date=purchase,
        sell_date=sell,
        two_years_from_grant=two_years_from_grant,
        one_year_from_purchase=one_year_from_purchase,
        meets_grant_requirement=meets_grant,
        meets_purchase_requirement=meets_purchase,
        is_qualifying=meets_grant and meets_purchase,
    )


def get_disposition_reason(check: DisqualifyingDispositionCheck) -> DispositionReason:
    if check.is_qualifying:
        return DispositionReason.QUALIFYING
    if not check.meets_grant_requirement and not check.meets_purchase_requirement:
        return DispositionReason.BOTH_REQUIREMENTS_NOT_MET
    if not check.meets_grant_requirement:
        return DispositionReason.SOLD_BEFORE_2YR_FROM_GRANT
    return DispositionReason.SOLD_BEFORE_1YR_FROM_PURCHASE


def is_disqualifying_disposition(grant_date, purchase_date, sell_date) -> bool:
    return not check_disposition_status(grant_date, purchase_date, sell_date).is_qualifying


def get_tax_implication_message(check: DisqualifyingDispositionCheck, bargain_element: Optional[Decimal] = None) -> str:
    """User-facing explanation of how the bargain element will be taxed."""
    reason = get_disposition_reason(check)
    if reason is DispositionReason.QUALIFYING:
        return (
            "Qualifying Disposition: Favorable tax treatment applies. "
            "The bargain element is taxed as long-term capital gains, not ordinary income."
        )

    amount = quantize_money(to_decimal(bargain_element, field="bargain_element") if bargain_element is not None else ZERO)
    sell = check.sell_date.isoformat()
    grant_threshold = check.two_years_from_grant.isoformat()
    purchase_threshold = check.one_year_from_purchase.isoformat()

    if reason is DispositionReason.BOTH_REQUIREMENTS_NOT_MET:
        specific = (
            f"This sale occurred on {sell}, which is on or before both the 2-year grant requirement "
            f"({grant_threshold}) and the 1-year purchase requirement ({purchase_threshold})."
        )
    elif reason is DispositionReason.SOLD_BEFORE_2YR_FROM_GRANT:
        specific = f"This sale occurred on {sell}, which is on or before the 2-year grant requirement ({grant_threshold})."
    else:
        specific = (
            f"This sale occurred on {sell}, which is on or before the 1-year purchase requirement ({purchase_threshold})."
        )

    return (
        f"Disqualifying Disposition: The ${amount} bargain element will be taxed as ordinary income. "
        f"You must hold shares for more than 2 years from grant date ({check.grant_date.isoformat()}) "
        f"and more than 1 year from purchase date ({check.purchase_date.isoformat()}). {specific}"
    )
