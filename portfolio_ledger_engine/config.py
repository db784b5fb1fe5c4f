"""Standalone-safe configuration surface for portfolio_ledger_engine."""

from __future__ import annotations

import os
from typing import Any


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


_DEFAULTS: dict[str, Any] = {
    "TAX_DEFAULTS": {
        "short_term_rate": os.getenv("LEDGER_SHORT_TERM_RATE", "0.24"),
        "long_term_rate": os.getenv("LEDGER_LONG_TERM_RATE", "0.15"),
        "long_term_threshold_days": 365,
        "aging_lookback_days": _env_int("LEDGER_AGING_LOOKBACK_DAYS", 30),
        "lot_strategy": os.getenv("LEDGER_LOT_STRATEGY", "fifo"),
    },
    "ESPP_RULES": {
        "years_from_grant": 2,
        "years_from_purchase": 1,
    },
    "PRICE_LOOKUP_DEFAULTS": {
        "staleness_threshold_days": _env_int("LEDGER_PRICE_STALENESS_DAYS", 3),
        "lookback_margin_days": _env_int("LEDGER_PRICE_LOOKBACK_MARGIN_DAYS", 30),
        "max_workers": _env_int("LEDGER_PRICE_MAX_WORKERS", 4),
    },
    "PERFORMANCE_DEFAULTS": {
        "trading_days_per_year": 252,
        "calendar_days_per_year": 365,
        "min_days_to_annualize": 30,
        "risk_free_rate": os.getenv("LEDGER_RISK_FREE_RATE", "0.04"),
        "min_history_days_for_yoy": 365,
    },
    "LIABILITY_DEFAULTS": {
        "warn_on_pre_history": os.getenv("LEDGER_WARN_ON_LIABILITY_PRE_HISTORY", "true").lower() == "true",
    },
    "MONEY_DECIMAL_PLACES": 2,
}


try:  # pragma: no cover - project-level settings override package defaults
    import settings as _settings  # type: ignore

    for key in list(_DEFAULTS.keys()):
        if hasattr(_settings, key):
            _DEFAULTS[key] = getattr(_settings, key)
except ImportError:
    pass


TAX_DEFAULTS = _DEFAULTS["TAX_DEFAULTS"]
ESPP_RULES = _DEFAULTS["ESPP_RULES"]
PRICE_LOOKUP_DEFAULTS = _DEFAULTS["PRICE_LOOKUP_DEFAULTS"]
PERFORMANCE_DEFAULTS = _DEFAULTS["PERFORMANCE_DEFAULTS"]
LIABILITY_DEFAULTS = _DEFAULTS["LIABILITY_DEFAULTS"]
MONEY_DECIMAL_PLACES = int(_DEFAULTS["MONEY_DECIMAL_PLACES"])


def configure(**overrides: Any) -> None:
    """Programmatically override package configuration values."""
    globals_dict = globals()
    for key, value in overrides.items():
        if key not in globals_dict or key.startswith("_"):
            raise KeyError(f"Unknown config key: {key}")
        globals_dict[key] = value
