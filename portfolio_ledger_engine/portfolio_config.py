#!/usr/bin/env python3
# coding: utf-8

"""Portfolio file loading for the CLI and service wrappers.

Called by:
- ``run_ledger`` for every report mode.
- Tests that exercise the engine end to end from a YAML fixture.

Contract notes:
- ``load_portfolio_config`` parses one YAML file into immutable engine
  inputs and in-memory providers; with ``register=True`` the providers are
  installed in the ``providers`` registry.
- Transactions get ``sequence`` from their position in the file, so same-day
  ties replay in file order.
- Amounts may be YAML numbers or strings; strings are preferred because they
  reach ``Decimal`` without a float round trip.

Expected layout::

    portfolio_id: demo
    as_of: 2024-12-31
    tax_settings: {short_term_rate: "0.24", long_term_rate: "0.15"}
    transactions:
      - {id: t1, asset_id: CASH, kind: deposit, date: 2024-01-01, price: "10000"}
    prices:
      AAPL:
        - {date: 2024-01-02, price: "185.64"}
    liabilities:
      - id: mortgage
        balance: "250000"
        start_date: 2020-01-01
        payments:
          - {date: 2024-01-01, principal_paid: "1000", interest_paid: "800"}
    daily_values:
      - {date: 2024-01-01, value: "10000"}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from portfolio_ledger_engine._logging import log_errors, log_operation, log_portfolio_operation
from portfolio_ledger_engine.data_objects import (
    AssetId,
    InputValidationError,
    Liability,
    LiabilityId,
    LiabilityPayment,
    PortfolioId,
    PricePoint,
    TaxSettings,
    Transaction,
)
from portfolio_ledger_engine.date_utils import to_date
from portfolio_ledger_engine.decimal_utils import to_decimal
from portfolio_ledger_engine.providers import (
    InMemoryLiabilityProvider,
    InMemoryPriceProvider,
    InMemoryTransactionProvider,
    set_liability_provider,
    set_price_provider,
    set_transaction_provider,
)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


@dataclass
class PortfolioConfig:
    portfolio_id: PortfolioId
    transactions: List[Transaction]
    prices: List[PricePoint]
    liabilities: List[Liability]
    payments: List[LiabilityPayment]
    tax_settings: TaxSettings
    transaction_provider: InMemoryTransactionProvider
    price_provider: InMemoryPriceProvider
    liability_provider: InMemoryLiabilityProvider
    daily_values: List[Tuple[date, Decimal]] = field(default_factory=list)
    interpolated_dates: List[date] = field(default_factory=list)
    as_of: Optional[date] = None
    source_path: Optional[str] = None


def _resolve(filepath: str) -> Path:
    resolved = Path(filepath)
    if not resolved.is_absolute() and not resolved.exists():
        candidate = _PROJECT_ROOT / resolved
        if candidate.exists():
            resolved = candidate
    return resolved


def _parse_transactions(raw: List[Dict[str, Any]], portfolio_id: str) -> List[Transaction]:
    transactions = []
    for index, entry in enumerate(raw or []):
        if not isinstance(entry, dict):
            raise InputValidationError(f"transactions[{index}] must be a mapping")
        data = dict(entry)
        data.setdefault("portfolio_id", portfolio_id)
        data.setdefault("id", f"tx-{index + 1}")
        try:
            transactions.append(Transaction.from_dict(data, sequence=index))
        except ValueError as exc:
            raise InputValidationError(f"transactions[{index}]: {exc}") from exc
    return transactions


def _parse_prices(raw: Dict[str, List[Dict[str, Any]]]) -> List[PricePoint]:
    points = []
    for asset_id, series in (raw or {}).items():
        for entry in series or []:
            points.append(PricePoint(asset_id=AssetId(str(asset_id)), date=entry["date"], price=entry["price"]))
    return points


def _parse_liabilities(raw: List[Dict[str, Any]]) -> Tuple[List[Liability], List[LiabilityPayment]]:
    liabilities: List[Liability] = []
    payments: List[LiabilityPayment] = []
    for entry in raw or []:
        liability_id = LiabilityId(str(entry["id"]))
        liabilities.append(
            Liability(
                id=liability_id,
                balance=entry["balance"],
                start_date=entry["start_date"],
                name=str(entry.get("name", liability_id)),
            )
        )
        for index, pay in enumerate(entry.get("payments") or []):
            payments.append(
                LiabilityPayment(
                    id=str(pay.get("id", f"{liability_id}-{index + 1}")),
                    liability_id=liability_id,
                    date=pay["date"],
                    principal_paid=pay["principal_paid"],
                    interest_paid=pay.get("interest_paid", "0"),
                    remaining_balance=pay.get("remaining_balance"),
                )
            )
    return liabilities, payments


def _parse_tax_settings(raw: Optional[Dict[str, Any]]) -> TaxSettings:
    if not raw:
        return TaxSettings.defaults()
    defaults = TaxSettings.defaults()
    return TaxSettings(
        short_term_rate=raw.get("short_term_rate", defaults.short_term_rate),
        long_term_rate=raw.get("long_term_rate", defaults.long_term_rate),
    )


@log_errors("high")
@log_operation("load_portfolio_config")
def load_portfolio_config(filepath: str = "portfolio.yaml", register: bool = True) -> PortfolioConfig:
    """
    Load a portfolio YAML file into engine inputs.

    Raises ``FileNotFoundError`` for a missing file and ``InputValidationError``
    for malformed content. A missing key raises ``InputValidationError`` naming it.
    """
    resolved = _resolve(filepath)
    with open(resolved, "r") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise InputValidationError(f"{resolved}: top level must be a mapping")

    try:
        portfolio_id = PortfolioId(str(raw.get("portfolio_id", resolved.stem)))
        transactions = _parse_transactions(raw.get("transactions", []), portfolio_id)
        prices = _parse_prices(raw.get("prices", {}))
        liabilities, payments = _parse_liabilities(raw.get("liabilities", []))
        tax_settings = _parse_tax_settings(raw.get("tax_settings"))
        daily_values = [
            (to_date(entry["date"]), to_decimal(entry["value"], field="daily value"))
            for entry in raw.get("daily_values") or []
        ]
        interpolated_dates = [
            to_date(entry["date"]) for entry in raw.get("daily_values") or [] if entry.get("interpolated")
        ]
        as_of = to_date(raw["as_of"], field="as_of") if raw.get("as_of") else None
    except KeyError as exc:
        raise InputValidationError(f"{resolved}: missing required key {exc}") from exc
    except ValueError as exc:
        if isinstance(exc, InputValidationError):
            raise
        raise InputValidationError(f"{resolved}: {exc}") from exc

    transaction_provider = InMemoryTransactionProvider(transactions)
    price_provider = InMemoryPriceProvider(prices)
    liability_provider = InMemoryLiabilityProvider(
        liabilities,
        payments,
        portfolio_map={liability.id: portfolio_id for liability in liabilities},
    )
    if register:
        set_transaction_provider(transaction_provider)
        set_price_provider(price_provider)
        set_liability_provider(liability_provider)

    log_portfolio_operation(
        "portfolio_loaded",
        {
            "portfolio_id": portfolio_id,
            "transactions": len(transactions),
            "price_points": len(prices),
            "liabilities": len(liabilities),
        },
    )
    return PortfolioConfig(
        portfolio_id=portfolio_id,
        transactions=transactions,
        prices=prices,
        liabilities=liabilities,
        payments=payments,
        tax_settings=tax_settings,
        transaction_provider=transaction_provider,
        price_provider=price_provider,
        liability_provider=liability_provider,
        daily_values=daily_values,
        interpolated_dates=interpolated_dates,
        as_of=as_of,
        source_path=str(resolved),
    )
