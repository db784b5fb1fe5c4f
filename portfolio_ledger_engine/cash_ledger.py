"""Cash impact classifier and chronological ledger replay.

Called by:
- ``run_ledger --cash`` and service wrappers that need a historical cash balance.
- ``performance_analysis`` callers that build daily portfolio values.

Contract notes:
- ``cash_impact`` is total over ``TransactionKind``: the rule table is checked
  at import so a new kind without a rule fails loudly.
- Unknown kind strings contribute 0 and are reported as ``LedgerWarning``.
- Replay order is ``(date, sequence)``; balances may go negative.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from portfolio_ledger_engine._logging import log_operation, portfolio_logger
from portfolio_ledger_engine.constants import WARNING_UNKNOWN_TRANSACTION_KIND, TransactionKind
from portfolio_ledger_engine.data_objects import LedgerWarning, PortfolioId, Transaction
from portfolio_ledger_engine.date_utils import date_range, to_date
from portfolio_ledger_engine.decimal_utils import ZERO, to_decimal
from portfolio_ledger_engine.providers import TransactionProvider, get_transaction_provider
from portfolio_ledger_engine.results import CashBalanceHistory, CashBalancePoint, CashBalanceResult


def _outflow_with_fees(tx: Transaction) -> Decimal:
    return -(tx.quantity * tx.price + tx.fees)


def _proceeds_less_fees(tx: Transaction) -> Decimal:
    return tx.quantity * tx.price - tx.fees


def _cash_in(tx: Transaction) -> Decimal:
    return tx.price


def _cash_out(tx: Transaction) -> Decimal:
    return -tx.price


def _no_cash(tx: Transaction) -> Decimal:
    return ZERO


# rsu_vest is non-cash compensation; reinvestment nets dividend-in against buy-out.
CASH_IMPACT_RULES: Dict[TransactionKind, Callable[[Transaction], Decimal]] = {
    TransactionKind.BUY: _outflow_with_fees,
    TransactionKind.ESPP_PURCHASE: _outflow_with_fees,
    TransactionKind.SELL: _proceeds_less_fees,
    TransactionKind.DIVIDEND: _cash_in,
    TransactionKind.INTEREST: _cash_in,
    TransactionKind.DEPOSIT: _cash_in,
    TransactionKind.FEE: _cash_out,
    TransactionKind.TAX: _cash_out,
    TransactionKind.WITHDRAWAL: _cash_out,
    TransactionKind.LIABILITY_PAYMENT: _cash_out,
    TransactionKind.RSU_VEST: _no_cash,
    TransactionKind.REINVESTMENT: _no_cash,
    TransactionKind.TRANSFER_IN: _no_cash,
    TransactionKind.TRANSFER_OUT: _no_cash,
    TransactionKind.SPLIT: _no_cash,
    TransactionKind.SPINOFF: _no_cash,
    TransactionKind.MERGER: _no_cash,
}

_missing_rules = set(TransactionKind) - set(CASH_IMPACT_RULES)
if _missing_rules:
    raise RuntimeError(
        f"cash_ledger: no cash impact rule for {sorted(kind.value for kind in _missing_rules)}"
    )

CASH_AFFECTING_KINDS = frozenset(kind for kind, rule in CASH_IMPACT_RULES.items() if rule is not _no_cash)


def affects_cash(kind) -> bool:
    """True if transactions of ``kind`` move the cash balance."""
    return TransactionKind.coerce(kind) in CASH_AFFECTING_KINDS


def _unknown_kind_warning(tx: Transaction) -> LedgerWarning:
    return LedgerWarning(
        code=WARNING_UNKNOWN_TRANSACTION_KIND,
        message=f"Unknown transaction type: {tx.kind}, assuming no cash impact",
        context={"transaction_id": tx.id, "kind": str(tx.kind), "date": tx.date.isoformat()},
    )


def classify_cash_impact(tx: Transaction) -> Tuple[Decimal, Optional[LedgerWarning]]:
    """Return the signed impact and, for an unrecognized kind, the warning to surface."""
    if not isinstance(tx.kind, TransactionKind):
        warning = _unknown_kind_warning(tx)
        portfolio_logger.warning(warning.message)
        return ZERO, warning
    return CASH_IMPACT_RULES[tx.kind](tx), None


def cash_impact(tx: Transaction) -> Decimal:
    """Signed cash effect of one transaction (positive = cash in)."""
    impact, _ = classify_cash_impact(tx)
    return impact


def sort_transactions(transactions: Iterable[Transaction]) -> List[Transaction]:
    return sorted(transactions, key=lambda tx: tx.sort_key)


@log_operation("cash_balance_at")
def balance_at(
    transactions: Iterable[Transaction],
    target_date,
    initial_balance=ZERO,
) -> CashBalanceResult:
    """Replay every transaction on or before ``target_date`` onto ``initial_balance``."""
    target = to_date(target_date, field="target_date")
    balance = to_decimal(initial_balance, field="initial_balance")
    warnings: List[LedgerWarning] = []
    replayed = 0

    for tx in sort_transactions(tx for tx in transactions if tx.date <= target):
        impact, warning = classify_cash_impact(tx)
        if warning is not None:
            warnings.append(warning)
        balance += impact
        replayed += 1

    return CashBalanceResult(balance=balance, as_of=target, transaction_count=replayed, warnings=warnings)


@log_operation("cash_balance_history")
def balance_history(
    transactions: Iterable[Transaction],
    dates: Sequence,
    initial_balance=ZERO,
) -> CashBalanceHistory:
    """Balances at each of ``dates`` from a single pass over the sorted transactions."""
    targets = sorted({to_date(d, field="history date") for d in dates})
    ordered = sort_transactions(transactions)
    balance = to_decimal(initial_balance, field="initial_balance")
    warnings: List[LedgerWarning] = []
    points: List[CashBalancePoint] = []

    cursor = 0
    for target in targets:
        while cursor < len(ordered) and ordered[cursor].date <= target:
            impact, warning = classify_cash_impact(ordered[cursor])
            if warning is not None:
                warnings.append(warning)
            balance += impact
            cursor += 1
        points.append(CashBalancePoint(date=target, balance=balance))

    return CashBalanceHistory(points=points, warnings=warnings)


def daily_balance_history(
    transactions: Iterable[Transaction],
    start_date,
    end_date,
    initial_balance=ZERO,
) -> CashBalanceHistory:
    """One point per calendar day in ``[start_date, end_date]``; see ``CashBalanceHistory.to_series``."""
    start = to_date(start_date, field="start_date")
    end = to_date(end_date, field="end_date")
    return balance_history(transactions, date_range(start, end), initial_balance=initial_balance)


def portfolio_balance_at(
    portfolio_id: PortfolioId,
    target_date,
    provider: Optional[TransactionProvider] = None,
    initial_balance=ZERO,
) -> CashBalanceResult:
    """Fetch the portfolio's transactions from the provider and replay them."""
    provider = provider or get_transaction_provider()
    return balance_at(provider.get_transactions(portfolio_id), target_date, initial_balance=initial_balance)


def cash_flows(transactions: Iterable[Transaction]) -> List[Tuple[date, Decimal]]:
    """External flows (deposits/withdrawals) as ``(date, signed amount)`` for TWR sub-periods."""
    flows: List[Tuple[date, Decimal]] = []
    for tx in sort_transactions(transactions):
        if tx.kind in (TransactionKind.DEPOSIT, TransactionKind.WITHDRAWAL):
            flows.append((tx.date, cash_impact(tx)))
    return flows
