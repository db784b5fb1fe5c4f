"""Tax interpretive flags for agent-oriented responses."""

from __future__ import annotations

import math
from typing import Any


def _to_float(value: Any) -> float:
    """Decimal strings from ``to_api_response`` payloads as floats; 0.0 when missing."""
    if value is None:
        return 0.0
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0.0
    return numeric if math.isfinite(numeric) else 0.0


def generate_tax_flags(snapshot: dict) -> list[dict]:
    """Generate severity-tagged flags from a tax snapshot.

    ``snapshot`` holds ``analysis`` (``TaxAnalysis.to_api_response()``) and
    optionally ``aging_lots`` and ``realized`` (sale allocation payloads).
    """
    flags = []
    analysis = snapshot.get("analysis") or {}
    if not analysis:
        flags.append({
            "flag": "tax_error",
            "severity": "error",
            "message": snapshot.get("error", "Tax analysis unavailable"),
        })
        return _sort_flags(flags)

    skipped = analysis.get("skipped_assets") or []
    if skipped:
        shown = ", ".join(skipped[:3])
        suffix = f" + {len(skipped) - 3} more" if len(skipped) > 3 else ""
        flags.append({
            "flag": "missing_prices",
            "severity": "warning",
            "message": f"No current price for {len(skipped)} holding{'s' if len(skipped) != 1 else ''}: {shown}{suffix} (excluded from estimate)",
        })

    st_gains = _to_float(analysis.get("short_term_gains"))
    lt_gains = _to_float(analysis.get("long_term_gains"))
    total_gains = st_gains + lt_gains
    if total_gains > 0 and st_gains / total_gains * 100 >= 50:
        flags.append({
            "flag": "mostly_short_term_gains",
            "severity": "info",
            "message": f"{st_gains / total_gains * 100:.0f}% of unrealized gains are short-term (taxed at the higher rate)",
        })

    aging = snapshot.get("aging_lots") or []
    if aging:
        soonest = min(int(lot.get("days_until_long_term", 0)) for lot in aging)
        flags.append({
            "flag": "lots_turning_long_term",
            "severity": "info",
            "message": f"{len(aging)} lot{'s' if len(aging) != 1 else ''} turn long-term soon (first in {soonest} days)",
        })

    disqualifying = [
        alloc for alloc in snapshot.get("realized") or []
        if alloc.get("disposition") and not alloc["disposition"].get("is_qualifying", True)
    ]
    if disqualifying:
        flags.append({
            "flag": "disqualifying_espp_disposition",
            "severity": "warning",
            "message": f"{len(disqualifying)} ESPP sale{'s' if len(disqualifying) != 1 else ''} were disqualifying dispositions (bargain element taxed as ordinary income)",
        })

    losses = _to_float(analysis.get("total_unrealized_loss"))
    if losses >= 3000:
        flags.append({
            "flag": "harvest_opportunity",
            "severity": "info",
            "message": f"${losses:,.0f} unrealized losses exceed the $3,000 annual deduction limit",
        })

    if not flags:
        total_tax = _to_float(analysis.get("total_estimated_tax"))
        if total_tax == 0:
            flags.append({
                "flag": "no_tax_liability",
                "severity": "success",
                "message": "No estimated tax on unrealized gains",
            })
        else:
            flags.append({
                "flag": "tax_estimated",
                "severity": "info",
                "message": f"${total_tax:,.2f} estimated tax on unrealized gains",
            })

    return _sort_flags(flags)


def _sort_flags(flags):
    order = {"error": 0, "warning": 1, "info": 2, "success": 3}
    return sorted(flags, key=lambda f: order.get(f.get("severity", "info"), 2))
