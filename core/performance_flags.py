"""Performance-level interpretive flags for agent-oriented responses."""

from __future__ import annotations

import math
from datetime import date
from typing import Any


def _to_float(value: Any) -> float | None:
    """Convert to finite float; return None for missing/invalid values."""
    if value is None:
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(numeric):
        return None
    return numeric


def _period_years(snapshot: dict) -> float:
    try:
        start = date.fromisoformat(str(snapshot.get("start_date")))
        end = date.fromisoformat(str(snapshot.get("end_date")))
    except ValueError:
        return 0.0
    return (end - start).days / 365


def generate_performance_flags(snapshot: dict) -> list[dict]:
    """Generate actionable flags from a ``PerformanceSummary.to_api_response()`` payload."""
    flags: list[dict] = []
    if not isinstance(snapshot, dict) or not snapshot:
        return [{
            "type": "no_performance_data",
            "severity": "warning",
            "message": "No snapshots in the requested period",
        }]

    total_return = _to_float(snapshot.get("total_return_percent"))
    annualized = _to_float(snapshot.get("annualized_return"))
    sharpe_ratio = _to_float(snapshot.get("sharpe_ratio"))
    max_drawdown = _to_float(snapshot.get("max_drawdown"))
    volatility = _to_float(snapshot.get("volatility"))
    period_years = _period_years(snapshot)

    if total_return is not None and total_return < 0:
        flags.append(
            {
                "type": "negative_total_return",
                "severity": "warning",
                "message": f"Portfolio is down {abs(total_return):.1f}% total",
                "total_return_pct": round(total_return, 2),
            }
        )

    if sharpe_ratio is not None and period_years >= 1 and sharpe_ratio < 0.3:
        flags.append(
            {
                "type": "low_sharpe",
                "severity": "warning" if sharpe_ratio < 0 else "info",
                "message": f"Sharpe ratio is {sharpe_ratio:.2f} (poor risk-adjusted returns)",
                "sharpe_ratio": round(sharpe_ratio, 3),
            }
        )

    if max_drawdown is not None and max_drawdown < -20:
        flags.append(
            {
                "type": "deep_drawdown",
                "severity": "warning",
                "message": f"Max drawdown of {abs(max_drawdown):.1f}% experienced",
                "max_drawdown_pct": round(max_drawdown, 2),
            }
        )

    if volatility is not None and volatility > 25:
        flags.append(
            {
                "type": "high_volatility",
                "severity": "info",
                "message": f"Portfolio volatility is {volatility:.1f}% (above average)",
                "volatility_pct": round(volatility, 2),
            }
        )

    if snapshot.get("has_interpolated_prices"):
        flags.append(
            {
                "type": "interpolated_prices",
                "severity": "info",
                "message": "Some daily values use stale or missing prices; returns are approximate",
            }
        )

    if annualized is not None and annualized > 0 and sharpe_ratio is not None and sharpe_ratio >= 1:
        flags.append(
            {
                "type": "strong_risk_adjusted_return",
                "severity": "success",
                "message": f"{annualized:.1f}% annualized with a Sharpe ratio of {sharpe_ratio:.2f}",
                "annualized_return_pct": round(annualized, 2),
            }
        )

    severity_order = {"error": 0, "warning": 1, "info": 2, "success": 3}
    flags.sort(key=lambda flag: severity_order.get(flag.get("severity"), 9))
    return flags
