"""Historical liability balances reconstructed from the payment log.

Starting from the *current* balance, every principal payment dated after the
target is added back. Before the first recorded payment the reconstruction
is only a partial correction (it adds back every known payment) and is
inaccurate when the payment history is incomplete; such results carry
``is_estimate=True`` and a warning instead of being reported as exact.

Called by:
- ``run_ledger --liabilities`` and net-worth style aggregations via
  ``total_liabilities_at``.
- ``core.data_quality_flags`` for the pre-history flag.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Sequence

from portfolio_ledger_engine import config
from portfolio_ledger_engine._logging import log_errors, portfolio_logger
from portfolio_ledger_engine.data_objects import (
    InputValidationError,
    Liability,
    LiabilityPayment,
    PortfolioId,
)
from portfolio_ledger_engine.date_utils import to_date
from portfolio_ledger_engine.decimal_utils import ZERO, decimal_sum, to_decimal
from portfolio_ledger_engine.providers import LiabilityProvider, get_liability_provider
from portfolio_ledger_engine.results import (
    LiabilityBalancePoint,
    LiabilityBalanceResult,
    LiabilityPaymentRecord,
)


def _warn(message: str) -> None:
    if config.LIABILITY_DEFAULTS.get("warn_on_pre_history", True):
        portfolio_logger.warning(message)


@log_errors("medium")
def liability_balance_at(
    liability: Liability,
    payments: Sequence[LiabilityPayment],
    target_date,
    as_of=None,
) -> LiabilityBalanceResult:
    """Balance of ``liability`` on ``target_date``.

    ``as_of`` is the date the stored balance is current for and is required,
    so the result depends only on the inputs. Raises ``InputValidationError``
    when the target or any payment precedes the liability start.
    """
    if as_of is None:
        raise InputValidationError("liability_balance_at requires an as_of date")
    target = to_date(target_date, field="target_date")
    if target < liability.start_date:
        raise InputValidationError(
            "Cannot calculate liability balance before start date. "
            f"Target: {target.isoformat()}, Start: {liability.start_date.isoformat()}"
        )
    current_as_of = to_date(as_of, field="as_of")

    if not payments:
        warning = None
        is_estimate = target < current_as_of
        if is_estimate:
            warning = (
                f"No payment history available for liability {liability.id}. "
                f"Historical balance calculation may be inaccurate. Returning current balance: {liability.balance}"
            )
            _warn(warning)
        return LiabilityBalanceResult(
            liability_id=liability.id,
            date=target,
            balance=liability.balance,
            is_estimate=is_estimate,
            warning=warning,
        )

    ordered = sorted(payments, key=lambda p: p.date)
    first_payment = ordered[0].date
    if first_payment < liability.start_date:
        raise InputValidationError(
            f"Payment date ({first_payment.isoformat()}) cannot be before liability start date "
            f"({liability.start_date.isoformat()}) for liability {liability.id}"
        )
    if target < first_payment:
        warning = (
            f"Target date {target.isoformat()} is before first recorded payment {first_payment.isoformat()} "
            f"for liability {liability.id}. Historical balance will be inaccurate. Consider recording payment "
            "history from the liability start date."
        )
        _warn(warning)
        return LiabilityBalanceResult(
            liability_id=liability.id,
            date=target,
            balance=liability.balance + decimal_sum(p.principal_paid for p in ordered),
            is_estimate=True,
            warning=warning,
        )

    added_back = decimal_sum(p.principal_paid for p in ordered if p.date > target)
    return LiabilityBalanceResult(liability_id=liability.id, date=target, balance=liability.balance + added_back)


def liability_balance_history(
    liability: Liability,
    payments: Sequence[LiabilityPayment],
    start_date,
    end_date,
    as_of=None,
) -> List[LiabilityBalancePoint]:
    """Points at ``start_date``, each payment inside the range, and ``end_date``."""
    start = to_date(start_date, field="start_date")
    end = to_date(end_date, field="end_date")

    if not payments:
        return [
            LiabilityBalancePoint(date=start, balance=liability.balance, is_estimate=True),
            LiabilityBalancePoint(date=end, balance=liability.balance, is_estimate=True),
        ]

    opening = liability_balance_at(liability, payments, start, as_of)
    history = [LiabilityBalancePoint(date=start, balance=opening.balance, is_estimate=opening.is_estimate)]

    for payment in sorted(payments, key=lambda p: p.date):
        if not (start <= payment.date <= end):
            continue
        if payment.remaining_balance is not None:
            balance = payment.remaining_balance
        else:
            balance = liability_balance_at(liability, payments, payment.date, as_of).balance
        history.append(LiabilityBalancePoint(date=payment.date, balance=balance))

    if history[-1].date < end:
        closing = liability_balance_at(liability, payments, end, as_of)
        history.append(LiabilityBalancePoint(date=end, balance=closing.balance, is_estimate=closing.is_estimate))
    return history


def total_liabilities_at(
    portfolio_id: PortfolioId,
    target_date,
    provider: Optional[LiabilityProvider] = None,
    as_of=None,
) -> LiabilityBalanceResult:
    """Sum of every portfolio liability on ``target_date``; an estimate if any part is.

    Liabilities that start after ``target_date`` did not exist yet and add 0.
    """
    provider = provider or get_liability_provider()
    target = to_date(target_date, field="target_date")

    total = ZERO
    is_estimate = False
    warnings: List[str] = []
    for liability in provider.get_liabilities(portfolio_id):
        if liability.start_date > target:
            portfolio_logger.debug(
                "total_liabilities_at: %s starts %s, after %s; counted as 0",
                liability.id, liability.start_date, target,
            )
            continue
        result = liability_balance_at(liability, provider.get_payments(liability.id), target, as_of)
        total += result.balance
        is_estimate = is_estimate or result.is_estimate
        if result.warning:
            warnings.append(result.warning)

    return LiabilityBalanceResult(
        liability_id=f"portfolio:{portfolio_id}",
        date=target,
        balance=total,
        is_estimate=is_estimate,
        warning=" ".join(warnings) or None,
    )


def record_liability_payment(
    liability: Liability,
    payment_date,
    principal_paid,
    interest_paid=ZERO,
    payment_id: Optional[str] = None,
) -> LiabilityPaymentRecord:
    """Validate a new payment and return it with the updated liability.

    Inputs are never mutated; the caller persists both returned objects.
    """
    principal = to_decimal(principal_paid, field="principal_paid")
    interest = to_decimal(interest_paid, field="interest_paid")
    day = to_date(payment_date, field="payment_date")

    if principal < 0:
        raise InputValidationError("Principal paid cannot be negative")
    if interest < 0:
        raise InputValidationError("Interest paid cannot be negative")
    if principal == 0 and interest == 0:
        raise InputValidationError("Payment must include principal or interest amount")
    if principal > liability.balance:
        raise InputValidationError(
            f"Principal paid (${principal}) exceeds current balance (${liability.balance})"
        )
    if day < liability.start_date:
        raise InputValidationError(
            f"Payment date ({day.isoformat()}) cannot be before liability start date "
            f"({liability.start_date.isoformat()})"
        )

    new_balance: Decimal = liability.balance - principal
    payment = LiabilityPayment(
        id=payment_id or f"{liability.id}-{day.isoformat()}",
        liability_id=liability.id,
        date=day,
        principal_paid=principal,
        interest_paid=interest,
        remaining_balance=new_balance,
    )
    return LiabilityPaymentRecord(payment=payment, liability=liability.with_balance(new_balance))
