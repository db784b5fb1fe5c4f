"""Historical price lookup with staleness flagging.

Called by:
- ``performance_analysis.get_holding_performance`` for period-start values.
- ``run_ledger`` when valuing holdings at a report date.

Contract notes:
- Lookups resolve to the nearest observation by absolute day distance inside
  a bounded window around the target date; ties resolve to the earlier point.
- A missing history yields price 0 with ``is_interpolated=True``.
- A point farther than the staleness threshold is returned but flagged.
- ``PriceCache`` is scoped to one calculation pass; create a fresh one per pass.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from portfolio_ledger_engine import config
from portfolio_ledger_engine._logging import log_operation, portfolio_logger
from portfolio_ledger_engine.data_objects import AssetId, Holding, PricePoint
from portfolio_ledger_engine.date_utils import add_days, days_between, to_date
from portfolio_ledger_engine.decimal_utils import ZERO
from portfolio_ledger_engine.providers import PriceHistoryProvider, get_price_provider


@dataclass(frozen=True)
class PriceLookupResult:
    price: Decimal
    is_interpolated: bool
    source_date: Optional[date] = None
    distance_days: Optional[int] = None

    def to_dict(self) -> dict:
        from portfolio_ledger_engine._vendor import make_json_safe

        return {
            "price": make_json_safe(self.price),
            "is_interpolated": self.is_interpolated,
            "source_date": self.source_date.isoformat() if self.source_date else None,
            "distance_days": self.distance_days,
        }


class PriceCache:
    """Per-pass memo of lookups keyed by ``(asset_id, day)``."""

    def __init__(self) -> None:
        self._entries: Dict[Tuple[str, date], PriceLookupResult] = {}

    def get(self, asset_id: str, day: date) -> Optional[PriceLookupResult]:
        return self._entries.get((asset_id, day))

    def put(self, asset_id: str, day: date, result: PriceLookupResult) -> None:
        self._entries[(asset_id, day)] = result

    def __contains__(self, key: Tuple[str, date]) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def find_closest_price(history: Sequence[PricePoint], target: date) -> Optional[Tuple[PricePoint, int]]:
    """Return ``(point, distance_days)`` for the point nearest ``target``, or ``None``."""
    if not history:
        return None
    best: Optional[PricePoint] = None
    best_distance = 0
    for point in sorted(history, key=lambda p: p.date):
        distance = abs(days_between(point.date, target))
        if best is None or distance < best_distance:
            best = point
            best_distance = distance
    return best, best_distance


def _lookup(asset_id: str, target: date, provider: PriceHistoryProvider) -> PriceLookupResult:
    margin = int(config.PRICE_LOOKUP_DEFAULTS["lookback_margin_days"])
    threshold = int(config.PRICE_LOOKUP_DEFAULTS["staleness_threshold_days"])

    history = provider.get_price_history(AssetId(asset_id), add_days(target, -margin), add_days(target, margin))
    closest = find_closest_price(history, target)
    if closest is None:
        portfolio_logger.debug("price_lookup: no history for %s around %s", asset_id, target)
        return PriceLookupResult(price=ZERO, is_interpolated=True)

    point, distance = closest
    return PriceLookupResult(
        price=point.price,
        is_interpolated=distance > threshold,
        source_date=point.date,
        distance_days=distance,
    )


def price_at(
    asset_id: str,
    target_date,
    provider: Optional[PriceHistoryProvider] = None,
    cache: Optional[PriceCache] = None,
) -> PriceLookupResult:
    """Resolve the price of ``asset_id`` on ``target_date``."""
    day = to_date(target_date)
    if cache is not None:
        cached = cache.get(asset_id, day)
        if cached is not None:
            return cached

    result = _lookup(asset_id, day, provider or get_price_provider())
    if cache is not None:
        cache.put(asset_id, day, result)
    return result


@log_operation("batch_price_lookup")
def prices_at(
    asset_ids: Iterable[str],
    target_date,
    provider: Optional[PriceHistoryProvider] = None,
    cache: Optional[PriceCache] = None,
    max_workers: Optional[int] = None,
) -> Dict[str, PriceLookupResult]:
    """Resolve many assets on one date; independent assets are looked up in parallel.

    Workers only read from the provider; cache writes happen on the calling thread.
    """
    day = to_date(target_date)
    provider = provider or get_price_provider()
    results: Dict[str, PriceLookupResult] = {}
    pending: List[str] = []
    for asset_id in dict.fromkeys(asset_ids):
        cached = cache.get(asset_id, day) if cache is not None else None
        if cached is not None:
            results[asset_id] = cached
        else:
            pending.append(asset_id)

    if pending:
        workers = max_workers or int(config.PRICE_LOOKUP_DEFAULTS["max_workers"])
        with ThreadPoolExecutor(max_workers=max(1, min(workers, len(pending)))) as pool:
            looked_up = list(pool.map(lambda a: _lookup(a, day, provider), pending))
        for asset_id, result in zip(pending, looked_up):
            results[asset_id] = result
            if cache is not None:
                cache.put(asset_id, day, result)

    return results


def holding_value_at(
    holding: Holding,
    target_date,
    provider: Optional[PriceHistoryProvider] = None,
    cache: Optional[PriceCache] = None,
) -> Tuple[Decimal, bool]:
    """Value a holding on ``target_date``; falls back to its current value when no price exists."""
    lookup = price_at(holding.asset_id, target_date, provider=provider, cache=cache)
    if lookup.price == 0:
        return holding.current_value, True
    return holding.quantity * lookup.price, lookup.is_interpolated
