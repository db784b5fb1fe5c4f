"""Portfolio ledger engine: cash replay, tax lots, tax estimation, liabilities and performance.

Public entrypoints are re-exported here; callers register data providers
once (``set_transaction_provider`` etc.) or pass them explicitly.
"""

from portfolio_ledger_engine.cash_ledger import (
    affects_cash,
    balance_at,
    balance_history,
    cash_flows,
    cash_impact,
    classify_cash_impact,
    daily_balance_history,
    portfolio_balance_at,
)
from portfolio_ledger_engine.constants import (
    DispositionReason,
    HoldingPeriod,
    LotStrategy,
    LotType,
    TransactionKind,
)
from portfolio_ledger_engine.data_objects import (
    Holding,
    InputValidationError,
    LedgerWarning,
    Liability,
    LiabilityPayment,
    PerformanceSnapshot,
    PricePoint,
    TaxLot,
    TaxSettings,
    Transaction,
)
from portfolio_ledger_engine.espp import (
    check_disposition_status,
    get_disposition_reason,
    get_tax_implication_message,
    is_disqualifying_disposition,
)
from portfolio_ledger_engine.holding_period import classify, detect_aging_lots, long_term_threshold_date
from portfolio_ledger_engine.liability import (
    liability_balance_at,
    liability_balance_history,
    record_liability_payment,
    total_liabilities_at,
)
from portfolio_ledger_engine.performance_analysis import get_holding_performance, get_summary, get_yoy_metrics
from portfolio_ledger_engine.performance_metrics_engine import (
    CashFlowEvent,
    annualize_return,
    build_snapshots,
    calculate_twr_from_daily_values,
)
from portfolio_ledger_engine.portfolio_config import PortfolioConfig, load_portfolio_config
from portfolio_ledger_engine.price_lookup import PriceCache, PriceLookupResult, holding_value_at, price_at, prices_at
from portfolio_ledger_engine.providers import (
    InMemoryLiabilityProvider,
    InMemoryPriceProvider,
    InMemoryTransactionProvider,
    get_liability_provider,
    get_price_provider,
    get_transaction_provider,
    set_liability_provider,
    set_price_provider,
    set_transaction_provider,
)
from portfolio_ledger_engine.results import PortfolioValuation
from portfolio_ledger_engine.tax_estimator import (
    calculate_lot_analysis,
    calculate_tax_exposure,
    estimate_tax_liability,
)
from portfolio_ledger_engine.tax_lots import allocate_sale, build_lots, holding_from_lots, holdings_from_transactions
from portfolio_ledger_engine.valuation import snapshots_from_transactions, value_at, value_history

__all__ = [
    # Cash ledger
    "affects_cash",
    "balance_at",
    "balance_history",
    "cash_flows",
    "cash_impact",
    "classify_cash_impact",
    "daily_balance_history",
    "portfolio_balance_at",
    # Enums
    "DispositionReason",
    "HoldingPeriod",
    "LotStrategy",
    "LotType",
    "TransactionKind",
    # Data objects
    "Holding",
    "InputValidationError",
    "LedgerWarning",
    "Liability",
    "LiabilityPayment",
    "PerformanceSnapshot",
    "PricePoint",
    "TaxLot",
    "TaxSettings",
    "Transaction",
    # ESPP / holding period
    "check_disposition_status",
    "get_disposition_reason",
    "get_tax_implication_message",
    "is_disqualifying_disposition",
    "classify",
    "detect_aging_lots",
    "long_term_threshold_date",
    # Liabilities
    "liability_balance_at",
    "liability_balance_history",
    "record_liability_payment",
    "total_liabilities_at",
    # Performance
    "get_holding_performance",
    "get_summary",
    "get_yoy_metrics",
    "CashFlowEvent",
    "annualize_return",
    "build_snapshots",
    "calculate_twr_from_daily_values",
    # Config / prices / providers
    "PortfolioConfig",
    "load_portfolio_config",
    "PriceCache",
    "PriceLookupResult",
    "holding_value_at",
    "price_at",
    "prices_at",
    "InMemoryLiabilityProvider",
    "InMemoryPriceProvider",
    "InMemoryTransactionProvider",
    "get_liability_provider",
    "get_price_provider",
    "get_transaction_provider",
    "set_liability_provider",
    "set_price_provider",
    "set_transaction_provider",
    # Tax
    "calculate_lot_analysis",
    "calculate_tax_exposure",
    "estimate_tax_liability",
    "allocate_sale",
    "build_lots",
    "holding_from_lots",
    "holdings_from_transactions",
    # Valuation
    "PortfolioValuation",
    "snapshots_from_transactions",
    "value_at",
    "value_history",
]
