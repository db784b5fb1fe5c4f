"""Tax lot replay and sale allocation.

Called by:
- ``tax_estimator`` (open lots per holding) and ``run_ledger --tax``.
- ``core.tax_flags`` for realized ESPP dispositions.

Contract notes:
- Replay is per asset in ``(date, sequence)`` order.
- Lots are drained, never deleted; ``remaining_quantity`` never goes negative.
  Selling more than is held allocates what exists and reports the excess as
  an ``oversold_lots`` warning.
- Lot ids derive from the opening transaction id, so replaying the same
  feed twice yields identical lots.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from portfolio_ledger_engine import config
from portfolio_ledger_engine._logging import log_critical_alert, log_operation
from portfolio_ledger_engine.constants import (
    LOT_CLOSING_KINDS,
    LOT_OPENING_KINDS,
    WARNING_OVERSOLD_LOTS,
    WARNING_SPLIT_WITHOUT_RATIO,
    WARNING_UNKNOWN_TRANSACTION_KIND,
    LotStrategy,
    LotType,
    TransactionKind,
)
from portfolio_ledger_engine.data_objects import (
    AssetId,
    Holding,
    InputValidationError,
    LedgerWarning,
    LotId,
    TaxLot,
    Transaction,
)
from portfolio_ledger_engine.date_utils import to_date
from portfolio_ledger_engine.decimal_utils import ONE, ZERO, decimal_sum, safe_divide, to_decimal
from portfolio_ledger_engine.espp import check_disposition_status, get_disposition_reason
from portfolio_ledger_engine.holding_period import classify
from portfolio_ledger_engine.results import LotBuildResult, SaleAllocation


def _strategy(strategy: Union[LotStrategy, str, None]) -> LotStrategy:
    if strategy is None:
        strategy = config.TAX_DEFAULTS.get("lot_strategy", "fifo")
    try:
        return LotStrategy(str(getattr(strategy, "value", strategy)).lower())
    except ValueError as exc:
        raise InputValidationError(f"Unknown lot strategy: {strategy}") from exc


def sort_lots_for_strategy(lots: Iterable[TaxLot], strategy: Union[LotStrategy, str, None] = None) -> List[TaxLot]:
    """Open lots in the order a sale consumes them.

    ``lots`` is in creation order; same-day lots are consumed oldest-created
    first under FIFO and newest-created first under LIFO.
    """
    open_lots = [lot for lot in lots if lot.is_open]
    chosen = _strategy(strategy)
    if chosen is LotStrategy.LIFO:
        created = list(enumerate(open_lots))
        created.sort(key=lambda item: (item[1].purchase_date, item[0]), reverse=True)
        return [lot for _, lot in created]
    if chosen is LotStrategy.HIFO:
        return sorted(open_lots, key=lambda lot: (-lot.purchase_price, lot.purchase_date))
    return sorted(open_lots, key=lambda lot: lot.purchase_date)


def _allocation_for(lot: TaxLot, quantity: Decimal, price: Decimal, sale_date: date) -> SaleAllocation:
    cost_basis = quantity * lot.purchase_price
    proceeds = quantity * price
    disposition = None
    reason = None
    if lot.lot_type is LotType.ESPP and lot.grant_date is not None:
        disposition = check_disposition_status(lot.grant_date, lot.purchase_date, sale_date)
        reason = get_disposition_reason(disposition)

    return SaleAllocation(
        lot_id=lot.id,
        asset_id=lot.asset_id,
        quantity=quantity,
        purchase_date=lot.purchase_date,
        sale_date=sale_date,
        cost_basis=cost_basis,
        proceeds=proceeds,
        realized_gain=proceeds - cost_basis,
        holding_period=classify(lot.purchase_date, sale_date),
        lot_type=lot.lot_type,
        disposition=disposition,
        disposition_reason=reason,
    )


def allocate_sale(
    lots: Iterable[TaxLot],
    quantity,
    price,
    sale_date,
    strategy: Union[LotStrategy, str, None] = None,
) -> List[SaleAllocation]:
    """Match a sale against open lots without mutating them.

    Allocations cover at most the open quantity; callers compare the summed
    allocation quantity with ``quantity`` to detect an oversell.
    """
    remaining = to_decimal(quantity, field="sale quantity")
    if remaining < 0:
        raise InputValidationError("Sale quantity cannot be negative")
    sale_price = to_decimal(price, field="sale price")
    day = to_date(sale_date, field="sale_date")

    allocations: List[SaleAllocation] = []
    for lot in sort_lots_for_strategy(lots, strategy):
        if remaining <= 0:
            break
        take = min(remaining, lot.remaining_quantity)
        allocations.append(_allocation_for(lot, take, sale_price, day))
        remaining -= take
    return allocations


def _open_lot(tx: Transaction) -> TaxLot:
    lot_id = LotId(f"{tx.id}-lot")
    if tx.kind is TransactionKind.ESPP_PURCHASE:
        if tx.grant_date is not None and tx.grant_date >= tx.date:
            raise InputValidationError(f"Transaction {tx.id}: Grant date must be before purchase date")
        bargain = None
        if tx.discount_percent is not None:
            bargain = safe_divide(tx.price, ONE - tx.discount_percent) - tx.price
        return TaxLot(
            id=lot_id,
            asset_id=tx.asset_id,
            quantity=tx.quantity,
            purchase_price=tx.price,
            purchase_date=tx.date,
            lot_type=LotType.ESPP,
            grant_date=tx.grant_date,
            bargain_element=bargain,
            source_transaction_id=tx.id,
        )

    if tx.kind is TransactionKind.RSU_VEST:
        withheld = tx.shares_withheld or ZERO
        if withheld > tx.quantity:
            raise InputValidationError(
                f"Transaction {tx.id}: shares_withheld {withheld} exceeds vested quantity {tx.quantity}"
            )
        return TaxLot(
            id=lot_id,
            asset_id=tx.asset_id,
            quantity=tx.quantity - withheld,
            purchase_price=tx.price,
            purchase_date=tx.date,
            lot_type=LotType.RSU,
            vesting_date=tx.vesting_date or tx.date,
            source_transaction_id=tx.id,
        )

    return TaxLot(
        id=lot_id,
        asset_id=tx.asset_id,
        quantity=tx.quantity,
        purchase_price=tx.price,
        purchase_date=tx.date,
        source_transaction_id=tx.id,
    )


def _apply_split(lots: List[TaxLot], tx: Transaction, warnings: List[LedgerWarning]) -> None:
    ratio = tx.quantity
    if ratio <= 0:
        warnings.append(
            LedgerWarning(
                code=WARNING_SPLIT_WITHOUT_RATIO,
                message=f"Split {tx.id} for {tx.asset_id} has no ratio; lots left unchanged",
                context={"transaction_id": tx.id, "asset_id": tx.asset_id},
            )
        )
        return
    for lot in lots:
        lot.quantity = lot.quantity * ratio
        lot.sold_quantity = lot.sold_quantity * ratio
        lot.purchase_price = safe_divide(lot.purchase_price, ratio)
        if lot.bargain_element is not None:
            lot.bargain_element = safe_divide(lot.bargain_element, ratio)


def _consume(lots: List[TaxLot], tx: Transaction, strategy: LotStrategy, warnings: List[LedgerWarning]) -> List[SaleAllocation]:
    allocations = allocate_sale(lots, tx.quantity, tx.price, tx.date, strategy)
    by_id = {lot.id: lot for lot in lots}
    for allocation in allocations:
        by_id[allocation.lot_id].sold_quantity += allocation.quantity

    excess = tx.quantity - decimal_sum(a.quantity for a in allocations)
    if excess > 0:
        message = f"Sale quantity exceeds available quantity by {excess} ({tx.asset_id}, transaction {tx.id})"
        log_critical_alert("oversold_lots", "medium", message, "Check for a missing buy or transfer_in")
        warnings.append(
            LedgerWarning(
                code=WARNING_OVERSOLD_LOTS,
                message=message,
                context={"transaction_id": tx.id, "asset_id": tx.asset_id, "excess": str(excess)},
            )
        )
    return allocations


@log_operation("build_lots")
def build_lots(
    transactions: Iterable[Transaction],
    strategy: Union[LotStrategy, str, None] = None,
) -> LotBuildResult:
    """Replay the feed into per-asset lots, realized allocations and warnings."""
    chosen = _strategy(strategy)
    by_asset: Dict[str, List[TaxLot]] = OrderedDict()
    realized: List[SaleAllocation] = []
    warnings: List[LedgerWarning] = []

    for tx in sorted(transactions, key=lambda t: t.sort_key):
        if not tx.is_known_kind:
            warnings.append(
                LedgerWarning(
                    code=WARNING_UNKNOWN_TRANSACTION_KIND,
                    message=f"Unknown transaction type: {tx.kind}, ignored for lot tracking",
                    context={"transaction_id": tx.id, "kind": str(tx.kind)},
                )
            )
            continue

        if tx.kind in LOT_OPENING_KINDS:
            lot = _open_lot(tx)
            by_asset.setdefault(tx.asset_id, []).append(lot)
        elif tx.kind in LOT_CLOSING_KINDS:
            realized.extend(_consume(by_asset.setdefault(tx.asset_id, []), tx, chosen, warnings))
        elif tx.kind is TransactionKind.SPLIT:
            _apply_split(by_asset.get(tx.asset_id, []), tx, warnings)

    return LotBuildResult(lots=dict(by_asset), realized=realized, warnings=warnings)


def holding_from_lots(
    asset_id: str,
    lots: List[TaxLot],
    current_price: Optional[Decimal] = None,
    portfolio_id: Optional[str] = None,
) -> Holding:
    """Aggregate lots into a holding; without a price the holding is valued at cost."""
    quantity = decimal_sum(lot.remaining_quantity for lot in lots)
    cost_basis = decimal_sum(lot.remaining_cost_basis for lot in lots)
    average_cost = safe_divide(cost_basis, quantity)

    price = to_decimal(current_price, field="current_price") if current_price is not None else None
    current_value = quantity * price if price is not None else cost_basis

    return Holding(
        asset_id=AssetId(asset_id),
        quantity=quantity,
        cost_basis=cost_basis,
        average_cost=average_cost,
        current_value=current_value,
        unrealized_gain=current_value - cost_basis,
        lots=list(lots),
        current_price=price,
        portfolio_id=portfolio_id,
    )


def holdings_from_transactions(
    transactions: Iterable[Transaction],
    prices: Optional[Mapping[str, Decimal]] = None,
    strategy: Union[LotStrategy, str, None] = None,
) -> Tuple[List[Holding], List[LedgerWarning]]:
    """Holdings with an open position, in first-seen asset order, plus replay warnings."""
    transactions = list(transactions)
    portfolio_ids = {tx.asset_id: tx.portfolio_id for tx in transactions}
    build = build_lots(transactions, strategy)
    prices = prices or {}

    holdings: List[Holding] = []
    for asset_id, lots in build.lots.items():
        holding = holding_from_lots(asset_id, lots, prices.get(asset_id), portfolio_ids.get(asset_id))
        if holding.quantity > 0:
            holdings.append(holding)
    return holdings, build.warnings
