"""
Core Data Objects Module

Immutable ledger inputs and derived lot/holding containers.

These objects validate and normalize their inputs on construction so the
replay, lot and analytics modules can assume exact ``Decimal`` amounts and
calendar ``date`` values.

Classes:
- Transaction: one append-only ledger event (never mutated; edits are delete+recreate)
- TaxLot: one acquisition tracked for cost basis and holding period
- Holding: aggregate of one asset's lots valued at a current price
- Liability / LiabilityPayment: debt balance plus append-only payment records
- PricePoint: one historical price observation
- PerformanceSnapshot: one day of portfolio value used by analytics
- TaxSettings: user-configured short/long-term rates

Usage: Inputs to ``cash_ledger``, ``tax_lots``, ``liability`` and
``performance_analysis``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, NewType, Optional, Tuple, Union

from portfolio_ledger_engine.constants import PURE_CASH_KINDS, LotType, TransactionKind
from portfolio_ledger_engine.date_utils import to_date
from portfolio_ledger_engine.decimal_utils import (
    ZERO,
    decimal_to_str,
    optional_decimal,
    to_decimal,
)


PortfolioId = NewType("PortfolioId", str)
AssetId = NewType("AssetId", str)
LotId = NewType("LotId", str)
TransactionId = NewType("TransactionId", str)
LiabilityId = NewType("LiabilityId", str)


class InputValidationError(ValueError):
    """Fatal input error: the computation that received it is rejected."""


@dataclass(frozen=True)
class LedgerWarning:
    """Non-fatal condition reported alongside a best-effort result."""

    code: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "context": dict(self.context)}


def _optional_date(value: Any, field_name: str) -> Optional[date]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return to_date(value, field=field_name)


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _dec(value: Optional[Decimal]) -> Optional[str]:
    return decimal_to_str(value) if value is not None else None


@dataclass(frozen=True)
class Transaction:
    """
    One ledger event.

    Pure cash events (dividend, interest, fee, tax, deposit, withdrawal,
    liability_payment) carry their amount in ``price``. For ``split`` the
    ``quantity`` field holds the split ratio (2 for a 2-for-1 split).

    ``sequence`` is the insertion order and breaks same-day ties, so replay
    order is always ``(date, sequence)``.

    ``kind`` is coerced to ``TransactionKind``; an unrecognized string is
    kept verbatim so classifiers can report it instead of dropping it.
    """

    id: TransactionId
    portfolio_id: PortfolioId
    asset_id: AssetId
    kind: Union[TransactionKind, str]
    date: date
    quantity: Decimal = ZERO
    price: Decimal = ZERO
    total_amount: Optional[Decimal] = None
    fees: Decimal = ZERO
    currency: str = "USD"
    grant_date: Optional[date] = None
    vesting_date: Optional[date] = None
    discount_percent: Optional[Decimal] = None
    shares_withheld: Optional[Decimal] = None
    sequence: int = 0

    def __post_init__(self) -> None:
        kind = TransactionKind.coerce(self.kind)
        object.__setattr__(self, "kind", kind if kind is not None else str(self.kind))
        object.__setattr__(self, "date", to_date(self.date, field="transaction date"))

        try:
            quantity = to_decimal(self.quantity, field="quantity")
            price = to_decimal(self.price, field="price")
            fees = to_decimal(self.fees, field="fees")
            total = optional_decimal(self.total_amount, field="total_amount")
            discount = optional_decimal(self.discount_percent, field="discount_percent")
            withheld = optional_decimal(self.shares_withheld, field="shares_withheld")
        except ValueError as exc:
            raise InputValidationError(f"Transaction {self.id}: {exc}") from exc

        if quantity < 0:
            raise InputValidationError(f"Transaction {self.id}: quantity cannot be negative ({quantity})")
        if fees < 0:
            raise InputValidationError(f"Transaction {self.id}: fees cannot be negative ({fees})")
        if discount is not None and not (ZERO <= discount < 1):
            raise InputValidationError(
                f"Transaction {self.id}: discount_percent must be a fraction in [0, 1) ({discount})"
            )
        if withheld is not None and withheld < 0:
            raise InputValidationError(f"Transaction {self.id}: shares_withheld cannot be negative ({withheld})")

        if total is None:
            total = price if kind is not None and self.is_pure_cash else quantity * price

        object.__setattr__(self, "quantity", quantity)
        object.__setattr__(self, "price", price)
        object.__setattr__(self, "fees", fees)
        object.__setattr__(self, "total_amount", total)
        object.__setattr__(self, "discount_percent", discount)
        object.__setattr__(self, "shares_withheld", withheld)
        object.__setattr__(self, "grant_date", _optional_date(self.grant_date, "grant_date"))
        object.__setattr__(self, "vesting_date", _optional_date(self.vesting_date, "vesting_date"))

    @property
    def is_known_kind(self) -> bool:
        return isinstance(self.kind, TransactionKind)

    @property
    def is_pure_cash(self) -> bool:
        return self.kind in PURE_CASH_KINDS

    @property
    def sort_key(self) -> Tuple[date, int]:
        return (self.date, self.sequence)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], sequence: Optional[int] = None) -> "Transaction":
        """Build from a camelCase or snake_case mapping (YAML/JSON feeds)."""

        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in data and data[key] is not None:
                    return data[key]
            return default

        return cls(
            id=TransactionId(str(pick("id", default=""))),
            portfolio_id=PortfolioId(str(pick("portfolio_id", "portfolioId", default=""))),
            asset_id=AssetId(str(pick("asset_id", "assetId", default=""))),
            kind=pick("kind", "type"),
            date=pick("date"),
            quantity=pick("quantity", default="0"),
            price=pick("price", default="0"),
            total_amount=pick("total_amount", "totalAmount"),
            fees=pick("fees", default="0"),
            currency=str(pick("currency", default="USD")),
            grant_date=pick("grant_date", "grantDate"),
            vesting_date=pick("vesting_date", "vestingDate"),
            discount_percent=pick("discount_percent", "discountPercent"),
            shares_withheld=pick("shares_withheld", "sharesWithheld"),
            sequence=int(pick("sequence", default=sequence if sequence is not None else 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "portfolio_id": self.portfolio_id,
            "asset_id": self.asset_id,
            "kind": self.kind.value if isinstance(self.kind, TransactionKind) else self.kind,
            "date": self.date.isoformat(),
            "quantity": decimal_to_str(self.quantity),
            "price": decimal_to_str(self.price),
            "total_amount": _dec(self.total_amount),
            "fees": decimal_to_str(self.fees),
            "currency": self.currency,
            "grant_date": _iso(self.grant_date),
            "vesting_date": _iso(self.vesting_date),
            "discount_percent": _dec(self.discount_percent),
            "shares_withheld": _dec(self.shares_withheld),
            "sequence": self.sequence,
        }


@dataclass
class TaxLot:
    """
    One acquisition tracked separately for cost basis and holding period.

    ``remaining_quantity`` is always ``quantity - sold_quantity`` and never
    negative. Exhausted lots are kept for audit, never deleted.
    """

    id: LotId
    asset_id: AssetId
    quantity: Decimal
    purchase_price: Decimal
    purchase_date: date
    sold_quantity: Decimal = ZERO
    lot_type: LotType = LotType.STANDARD
    grant_date: Optional[date] = None
    bargain_element: Optional[Decimal] = None
    vesting_date: Optional[date] = None
    source_transaction_id: Optional[TransactionId] = None

    def __post_init__(self) -> None:
        self.quantity = to_decimal(self.quantity, field="lot quantity")
        self.purchase_price = to_decimal(self.purchase_price, field="purchase_price")
        self.sold_quantity = to_decimal(self.sold_quantity, field="sold_quantity")
        self.purchase_date = to_date(self.purchase_date, field="purchase_date")
        self.lot_type = LotType(self.lot_type)
        self.grant_date = _optional_date(self.grant_date, "grant_date")
        self.vesting_date = _optional_date(self.vesting_date, "vesting_date")
        self.bargain_element = optional_decimal(self.bargain_element, field="bargain_element")
        if self.quantity < 0:
            raise InputValidationError(f"Lot {self.id}: quantity cannot be negative")
        if self.sold_quantity < 0 or self.sold_quantity > self.quantity:
            raise InputValidationError(
                f"Lot {self.id}: sold_quantity {self.sold_quantity} outside [0, {self.quantity}]"
            )

    @property
    def remaining_quantity(self) -> Decimal:
        return self.quantity - self.sold_quantity

    @property
    def is_open(self) -> bool:
        return self.remaining_quantity > 0

    @property
    def remaining_cost_basis(self) -> Decimal:
        return self.remaining_quantity * self.purchase_price

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "asset_id": self.asset_id,
            "quantity": decimal_to_str(self.quantity),
            "purchase_price": decimal_to_str(self.purchase_price),
            "purchase_date": self.purchase_date.isoformat(),
            "sold_quantity": decimal_to_str(self.sold_quantity),
            "remaining_quantity": decimal_to_str(self.remaining_quantity),
            "lot_type": self.lot_type.value,
            "grant_date": _iso(self.grant_date),
            "bargain_element": _dec(self.bargain_element),
            "vesting_date": _iso(self.vesting_date),
        }


@dataclass
class Holding:
    """Aggregate of one asset's lots; derived, recomputed from lots + current price."""

    asset_id: AssetId
    quantity: Decimal
    cost_basis: Decimal
    average_cost: Decimal
    current_value: Decimal
    unrealized_gain: Decimal
    lots: List[TaxLot] = field(default_factory=list)
    current_price: Optional[Decimal] = None
    portfolio_id: Optional[PortfolioId] = None

    @property
    def open_lots(self) -> List[TaxLot]:
        return [lot for lot in self.lots if lot.is_open]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "portfolio_id": self.portfolio_id,
            "quantity": decimal_to_str(self.quantity),
            "cost_basis": decimal_to_str(self.cost_basis),
            "average_cost": decimal_to_str(self.average_cost),
            "current_value": decimal_to_str(self.current_value),
            "unrealized_gain": decimal_to_str(self.unrealized_gain),
            "current_price": _dec(self.current_price),
            "lots": [lot.to_dict() for lot in self.lots],
        }


@dataclass(frozen=True)
class Liability:
    """A debt whose ``balance`` is the current balance; history is derived by replay."""

    id: LiabilityId
    balance: Decimal
    start_date: date
    name: str = ""

    def __post_init__(self) -> None:
        try:
            balance = to_decimal(self.balance, field="liability balance")
        except ValueError as exc:
            raise InputValidationError(f"Liability {self.id}: {exc}") from exc
        if balance < 0:
            raise InputValidationError(f"Liability {self.id}: balance cannot be negative")
        object.__setattr__(self, "balance", balance)
        object.__setattr__(self, "start_date", to_date(self.start_date, field="liability start_date"))

    def with_balance(self, balance: Decimal) -> "Liability":
        return replace(self, balance=balance)


@dataclass(frozen=True)
class LiabilityPayment:
    """Append-only payment record; principal and interest are never negative."""

    id: str
    liability_id: LiabilityId
    date: date
    principal_paid: Decimal
    interest_paid: Decimal = ZERO
    remaining_balance: Optional[Decimal] = None

    def __post_init__(self) -> None:
        try:
            principal = to_decimal(self.principal_paid, field="principal_paid")
            interest = to_decimal(self.interest_paid, field="interest_paid")
            remaining = optional_decimal(self.remaining_balance, field="remaining_balance")
        except ValueError as exc:
            raise InputValidationError(f"Payment {self.id}: {exc}") from exc
        if principal < 0:
            raise InputValidationError("Principal paid cannot be negative")
        if interest < 0:
            raise InputValidationError("Interest paid cannot be negative")
        object.__setattr__(self, "principal_paid", principal)
        object.__setattr__(self, "interest_paid", interest)
        object.__setattr__(self, "remaining_balance", remaining)
        object.__setattr__(self, "date", to_date(self.date, field="payment date"))


@dataclass(frozen=True)
class PricePoint:
    asset_id: AssetId
    date: date
    price: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", to_date(self.date, field="price date"))
        object.__setattr__(self, "price", to_decimal(self.price, field="price"))


@dataclass(frozen=True)
class PerformanceSnapshot:
    """One day of portfolio value. Money is Decimal; percentages are floats."""

    date: date
    total_value: Decimal
    day_change: Decimal = ZERO
    day_change_percent: float = 0.0
    twr_return: Decimal = ZERO
    has_interpolated_prices: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "date", to_date(self.date, field="snapshot date"))
        object.__setattr__(self, "total_value", to_decimal(self.total_value, field="total_value"))
        object.__setattr__(self, "day_change", to_decimal(self.day_change, field="day_change"))
        object.__setattr__(self, "twr_return", to_decimal(self.twr_return, field="twr_return"))


@dataclass(frozen=True)
class TaxSettings:
    """Short/long-term rates as decimal fractions in [0, 1]."""

    short_term_rate: Decimal
    long_term_rate: Decimal

    def __post_init__(self) -> None:
        for name in ("short_term_rate", "long_term_rate"):
            try:
                rate = to_decimal(getattr(self, name), field=name)
            except ValueError as exc:
                raise InputValidationError(str(exc)) from exc
            if rate < 0 or rate > 1:
                raise InputValidationError(f"{name} must be between 0 and 1 (got {rate})")
            object.__setattr__(self, name, rate)

    @classmethod
    def defaults(cls) -> "TaxSettings":
        from portfolio_ledger_engine import config

        return cls(
            short_term_rate=config.TAX_DEFAULTS["short_term_rate"],
            long_term_rate=config.TAX_DEFAULTS["long_term_rate"],
        )
