"""
Pytest configuration and shared fixtures for ledger engine tests.

Usage:
    @pytest.fixture functions are automatically available to all tests.
"""
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest


def pytest_configure():
    """
    Ensure the repo root is on sys.path so ``portfolio_ledger_engine``,
    ``core`` and ``settings`` import without an editable install.
    """
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))


# =============================================================================
# Transaction Builders
# =============================================================================

@pytest.fixture
def make_tx():
    """
    Factory for ``Transaction`` objects with portfolio ``p1`` defaults.

    Usage:
        buy = make_tx("t1", "buy", "2024-01-15", quantity="10", price="100", fees="5")
    """
    from portfolio_ledger_engine.data_objects import Transaction

    def _make(tx_id, kind, day, asset_id="AAPL", sequence=0, **fields):
        return Transaction(
            id=tx_id,
            portfolio_id="p1",
            asset_id=asset_id,
            kind=kind,
            date=day,
            sequence=sequence,
            **fields,
        )

    return _make


@pytest.fixture
def scenario_a_transactions(make_tx):
    """Deposit, buy with fee, sell with fee: cash ends at 10190 on 2024-03-01."""
    return [
        make_tx("t1", "deposit", "2024-01-01", asset_id="CASH", price="10000", sequence=0),
        make_tx("t2", "buy", "2024-01-15", quantity="10", price="100", fees="5", sequence=1),
        make_tx("t3", "sell", "2024-02-15", quantity="10", price="120", fees="5", sequence=2),
    ]


@pytest.fixture
def two_lot_transactions(make_tx):
    """Two AAPL buys at different prices followed by a partial sale of 15 shares."""
    return [
        make_tx("b1", "buy", "2023-01-01", quantity="10", price="100", sequence=0),
        make_tx("b2", "buy", "2023-06-01", quantity="10", price="150", sequence=1),
        make_tx("s1", "sell", "2024-03-01", quantity="15", price="200", sequence=2),
    ]


@pytest.fixture
def tax_settings():
    from portfolio_ledger_engine.data_objects import TaxSettings

    return TaxSettings(short_term_rate=Decimal("0.24"), long_term_rate=Decimal("0.15"))


@pytest.fixture
def price_provider():
    from portfolio_ledger_engine.data_objects import PricePoint
    from portfolio_ledger_engine.providers import InMemoryPriceProvider

    return InMemoryPriceProvider(
        [
            PricePoint(asset_id="AAPL", date=date(2024, 1, 2), price=Decimal("100")),
            PricePoint(asset_id="AAPL", date=date(2024, 1, 5), price=Decimal("105")),
            PricePoint(asset_id="AAPL", date=date(2024, 1, 10), price=Decimal("110")),
        ]
    )
