"""
Core Constants Module

Centralized definitions for transaction kinds, lot types, holding periods and
disposition reason codes. Every consumer dispatches on these enums, so a new
member has to be handled explicitly wherever it is classified.
"""

from enum import Enum


# Transaction Kinds
# =================
# Closed set of ledger events. Pure cash events (dividend, interest, fee, tax,
# deposit, withdrawal, liability_payment) store their amount in ``price``.

class TransactionKind(str, Enum):
    BUY = "buy"
    SELL = "sell"
    DIVIDEND = "dividend"
    INTEREST = "interest"
    FEE = "fee"
    TAX = "tax"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    SPLIT = "split"
    SPINOFF = "spinoff"
    MERGER = "merger"
    REINVESTMENT = "reinvestment"
    ESPP_PURCHASE = "espp_purchase"
    RSU_VEST = "rsu_vest"
    LIABILITY_PAYMENT = "liability_payment"

    @classmethod
    def coerce(cls, value):
        """Return the enum member for ``value`` or ``None`` if it is not a known kind."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


# Kinds whose amount lives in the price field
PURE_CASH_KINDS = frozenset({
    TransactionKind.DIVIDEND,
    TransactionKind.INTEREST,
    TransactionKind.FEE,
    TransactionKind.TAX,
    TransactionKind.DEPOSIT,
    TransactionKind.WITHDRAWAL,
    TransactionKind.LIABILITY_PAYMENT,
})

# Kinds that open a tax lot
LOT_OPENING_KINDS = frozenset({
    TransactionKind.BUY,
    TransactionKind.TRANSFER_IN,
    TransactionKind.REINVESTMENT,
    TransactionKind.ESPP_PURCHASE,
    TransactionKind.RSU_VEST,
})

# Kinds that consume open lots
LOT_CLOSING_KINDS = frozenset({
    TransactionKind.SELL,
    TransactionKind.TRANSFER_OUT,
})


# Lot Types
# =========

class LotType(str, Enum):
    STANDARD = "standard"
    ESPP = "espp"
    RSU = "rsu"


# Holding Periods
# ===============

class HoldingPeriod(str, Enum):
    SHORT = "short"
    LONG = "long"


# Lot selection strategies for sales

class LotStrategy(str, Enum):
    FIFO = "fifo"
    LIFO = "lifo"
    HIFO = "hifo"


# ESPP Disposition Reasons
# ========================
# Exhaustive outcomes of the qualifying-disposition test.

class DispositionReason(str, Enum):
    BOTH_REQUIREMENTS_NOT_MET = "both_requirements_not_met"
    SOLD_BEFORE_2YR_FROM_GRANT = "sold_before_2yr_from_grant"
    SOLD_BEFORE_1YR_FROM_PURCHASE = "sold_before_1yr_from_purchase"
    QUALIFYING = "qualifying"


# Warning codes attached to best-effort results

WARNING_UNKNOWN_TRANSACTION_KIND = "unknown_transaction_kind"
WARNING_MISSING_PRICE = "missing_price"
WARNING_OVERSOLD_LOTS = "oversold_lots"
WARNING_LIABILITY_PRE_HISTORY = "liability_pre_history"
WARNING_LIABILITY_NO_PAYMENTS = "liability_no_payments"
WARNING_SPLIT_WITHOUT_RATIO = "split_without_ratio"

CURRENT_YEAR_LABEL = "Current Year (YTD)"
