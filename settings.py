#Ledger/tax/performance defaults for portfolio_ledger_engine live in settings.py
import os
from pathlib import Path

# Ensure local ".env" is loaded even for direct Python invocations
# (e.g., scripts/tools that bypass run_ledger.py bootstrapping).
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent / ".env", override=False)


# Tax estimation defaults (typical US marginal / long-term capital gains rates).
# Rates are decimal fractions in [0, 1] and are parsed as strings so they reach
# the engine without passing through binary floating point.
TAX_DEFAULTS = {
    "short_term_rate": os.getenv("LEDGER_SHORT_TERM_RATE", "0.24"),
    "long_term_rate": os.getenv("LEDGER_LONG_TERM_RATE", "0.15"),
    "long_term_threshold_days": 365,  # held >= 365 days is long-term for general lots
    "aging_lookback_days": int(os.getenv("LEDGER_AGING_LOOKBACK_DAYS", "30")),  # flag lots this close to long-term
    "lot_strategy": os.getenv("LEDGER_LOT_STRATEGY", "fifo"),  # fifo | lifo | hifo
}

# ESPP qualifying-disposition thresholds (IRS Section 423)
ESPP_RULES = {
    "years_from_grant": 2,
    "years_from_purchase": 1,
}

# Historical price lookup
PRICE_LOOKUP_DEFAULTS = {
    "staleness_threshold_days": int(os.getenv("LEDGER_PRICE_STALENESS_DAYS", "3")),  # older points are flagged interpolated
    "lookback_margin_days": int(os.getenv("LEDGER_PRICE_LOOKBACK_MARGIN_DAYS", "30")),  # extra history fetched around target
    "max_workers": int(os.getenv("LEDGER_PRICE_MAX_WORKERS", "4")),  # per-asset batch lookups
}

# Performance analytics
PERFORMANCE_DEFAULTS = {
    "trading_days_per_year": 252,
    "calendar_days_per_year": 365,
    "min_days_to_annualize": 30,  # shorter windows report the raw period return
    "risk_free_rate": os.getenv("LEDGER_RISK_FREE_RATE", "0.04"),  # annual, decimal fraction
    "min_history_days_for_yoy": 365,
}

# Liability reconstruction
LIABILITY_DEFAULTS = {
    "warn_on_pre_history": os.getenv("LEDGER_WARN_ON_LIABILITY_PRE_HISTORY", "true").lower() == "true",
}

# Money rounding
MONEY_DECIMAL_PLACES = 2
