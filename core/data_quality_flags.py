"""Data-quality flags for ledger replay, price lookup and liability results."""

from __future__ import annotations


_WARNING_FLAGS = {
    "unknown_transaction_kind": ("unknown_transaction_kind", "warning", "transaction{s} with an unrecognized kind contributed nothing"),
    "oversold_lots": ("oversold_lots", "warning", "sale{s} exceeded the shares held"),
    "split_without_ratio": ("split_without_ratio", "warning", "split{s} had no ratio and were ignored"),
    "missing_price": ("missing_price", "warning", "holding{s} had no price and were skipped"),
}


def generate_data_quality_flags(snapshot: dict) -> list[dict]:
    """Flags from ``warnings`` (LedgerWarning payloads), ``price_lookups`` and ``liabilities``.

    ``price_lookups`` maps asset id to a ``PriceLookupResult.to_dict()`` payload;
    ``liabilities`` is a list of ``LiabilityBalanceResult.to_api_response()`` payloads.
    """
    flags = []

    counts: dict[str, int] = {}
    for warning in snapshot.get("warnings") or []:
        code = warning.get("code", "")
        counts[code] = counts.get(code, 0) + 1
    for code, count in counts.items():
        if code not in _WARNING_FLAGS:
            continue
        flag, severity, text = _WARNING_FLAGS[code]
        flags.append({
            "flag": flag,
            "severity": severity,
            "message": f"{count} {text.format(s='s' if count != 1 else '')}",
            "count": count,
        })

    stale = sorted(
        asset_id for asset_id, lookup in (snapshot.get("price_lookups") or {}).items()
        if lookup.get("is_interpolated")
    )
    if stale:
        flags.append({
            "flag": "interpolated_prices",
            "severity": "info",
            "message": f"Stale or missing prices for {', '.join(stale[:3])}{' + more' if len(stale) > 3 else ''}",
            "assets": stale,
        })

    estimated = [item for item in snapshot.get("liabilities") or [] if item.get("is_estimate")]
    if estimated:
        flags.append({
            "flag": "liability_pre_history",
            "severity": "warning",
            "message": f"{len(estimated)} liability balance{'s' if len(estimated) != 1 else ''} predate recorded payments and are estimates",
            "liability_ids": [item.get("liability_id") for item in estimated],
        })

    if not flags:
        flags.append({
            "flag": "data_clean",
            "severity": "success",
            "message": "No data-quality issues detected",
        })

    return _sort_flags(flags)


def _sort_flags(flags):
    order = {"error": 0, "warning": 1, "info": 2, "success": 3}
    return sorted(flags, key=lambda f: order.get(f.get("severity", "info"), 2))
