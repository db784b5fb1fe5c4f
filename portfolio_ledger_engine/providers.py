"""Provider protocols and registry for the external transaction/price/liability feeds.

The engine never fetches data itself: by the time an algorithm runs, the
provider has already returned an immutable snapshot of its inputs.
"""

from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, runtime_checkable

from portfolio_ledger_engine.data_objects import (
    AssetId,
    Liability,
    LiabilityId,
    LiabilityPayment,
    PortfolioId,
    PricePoint,
    Transaction,
)


@runtime_checkable
class TransactionProvider(Protocol):
    def get_transactions(self, portfolio_id: PortfolioId, asset_id: Optional[AssetId] = None) -> List[Transaction]: ...


@runtime_checkable
class PriceHistoryProvider(Protocol):
    def get_price_history(self, asset_id: AssetId, start: date, end: date) -> List[PricePoint]: ...


@runtime_checkable
class LiabilityProvider(Protocol):
    def get_liability(self, liability_id: LiabilityId) -> Optional[Liability]: ...
    def get_liabilities(self, portfolio_id: PortfolioId) -> List[Liability]: ...
    def get_payments(self, liability_id: LiabilityId) -> List[LiabilityPayment]: ...


class InMemoryTransactionProvider:
    """Transaction feed over a fixed list; insertion order is preserved as ``sequence``."""

    def __init__(self, transactions: Iterable[Transaction]):
        self._transactions: List[Transaction] = list(transactions)

    def get_transactions(self, portfolio_id: PortfolioId, asset_id: Optional[AssetId] = None) -> List[Transaction]:
        return [
            tx
            for tx in self._transactions
            if (not portfolio_id or tx.portfolio_id == portfolio_id)
            and (asset_id is None or tx.asset_id == asset_id)
        ]


class InMemoryPriceProvider:
    """Price history keyed by asset; returns points inside ``[start, end]`` sorted by date."""

    def __init__(self, points: Iterable[PricePoint]):
        self._by_asset: Dict[str, List[PricePoint]] = {}
        for point in points:
            self._by_asset.setdefault(point.asset_id, []).append(point)
        for series in self._by_asset.values():
            series.sort(key=lambda p: p.date)

    def get_price_history(self, asset_id: AssetId, start: date, end: date) -> List[PricePoint]:
        return [p for p in self._by_asset.get(asset_id, []) if start <= p.date <= end]


class InMemoryLiabilityProvider:
    def __init__(
        self,
        liabilities: Sequence[Liability],
        payments: Sequence[LiabilityPayment] = (),
        portfolio_map: Optional[Dict[str, str]] = None,
    ):
        self._liabilities = {liability.id: liability for liability in liabilities}
        self._payments: Dict[str, List[LiabilityPayment]] = {}
        for payment in payments:
            self._payments.setdefault(payment.liability_id, []).append(payment)
        self._portfolio_map = dict(portfolio_map or {})

    def get_liability(self, liability_id: LiabilityId) -> Optional[Liability]:
        return self._liabilities.get(liability_id)

    def get_liabilities(self, portfolio_id: PortfolioId) -> List[Liability]:
        return [
            liability
            for liability_id, liability in self._liabilities.items()
            if not self._portfolio_map or self._portfolio_map.get(liability_id) == portfolio_id
        ]

    def get_payments(self, liability_id: LiabilityId) -> List[LiabilityPayment]:
        return list(self._payments.get(liability_id, []))


_transaction_provider: Optional[TransactionProvider] = None
_price_provider: Optional[PriceHistoryProvider] = None
_liability_provider: Optional[LiabilityProvider] = None


def set_transaction_provider(provider: TransactionProvider) -> None:
    global _transaction_provider
    _transaction_provider = provider


def get_transaction_provider() -> TransactionProvider:
    if _transaction_provider is None:
        raise RuntimeError("No transaction provider configured; call set_transaction_provider() first")
    return _transaction_provider


def set_price_provider(provider: PriceHistoryProvider) -> None:
    global _price_provider
    _price_provider = provider


def get_price_provider() -> PriceHistoryProvider:
    if _price_provider is None:
        raise RuntimeError("No price provider configured; call set_price_provider() first")
    return _price_provider


def set_liability_provider(provider: LiabilityProvider) -> None:
    global _liability_provider
    _liability_provider = provider


def get_liability_provider() -> LiabilityProvider:
    if _liability_provider is None:
        raise RuntimeError("No liability provider configured; call set_liability_provider() first")
    return _liability_provider
