from datetime import date
from decimal import Decimal

import pytest

from portfolio_ledger_engine.constants import TransactionKind
from portfolio_ledger_engine.data_objects import InputValidationError
from portfolio_ledger_engine.portfolio_config import load_portfolio_config
from portfolio_ledger_engine.providers import get_price_provider


PORTFOLIO_YAML = """
portfolio_id: demo
as_of: 2024-03-01
tax_settings:
  short_term_rate: "0.30"
  long_term_rate: "0.15"
transactions:
  - {id: t1, asset_id: CASH, kind: deposit, date: 2024-01-01, price: "10000"}
  - {id: t2, asset_id: AAPL, kind: buy, date: 2024-01-15, quantity: "10", price: "100", fees: "5"}
  - {id: t3, asset_id: AAPL, kind: sell, date: 2024-02-15, quantity: "4", price: "120", fees: "5"}
  - {asset_id: CASH, kind: gift, date: 2024-02-20, price: "1"}
prices:
  AAPL:
    - {date: 2024-02-28, price: "130"}
    - {date: 2024-01-15, price: "100"}
liabilities:
  - id: mortgage
    balance: "290000"
    start_date: 2020-01-01
    payments:
      - {date: 2024-01-01, principal_paid: "5000", interest_paid: "1250"}
daily_values:
  - {date: 2024-01-01, value: "10000"}
  - {date: 2024-01-02, value: "10100", interpolated: true}
"""


@pytest.fixture
def portfolio_file(tmp_path):
    path = tmp_path / "portfolio.yaml"
    path.write_text(PORTFOLIO_YAML)
    return path


def test_load_portfolio_config(portfolio_file):
    config = load_portfolio_config(str(portfolio_file), register=False)

    assert config.portfolio_id == "demo"
    assert config.as_of == date(2024, 3, 1)
    assert config.tax_settings.short_term_rate == Decimal("0.30")
    assert [tx.sequence for tx in config.transactions] == [0, 1, 2, 3]
    assert config.transactions[1].kind is TransactionKind.BUY
    assert config.transactions[3].id == "tx-4"
    assert config.transactions[3].kind == "gift"
    assert len(config.prices) == 2
    assert config.liabilities[0].balance == Decimal("290000")
    assert config.payments[0].principal_paid == Decimal("5000")
    assert config.daily_values == [(date(2024, 1, 1), Decimal("10000")), (date(2024, 1, 2), Decimal("10100"))]
    assert config.interpolated_dates == [date(2024, 1, 2)]


def test_register_installs_providers(portfolio_file):
    config = load_portfolio_config(str(portfolio_file))
    assert get_price_provider() is config.price_provider


def test_missing_key_is_an_input_error(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("liabilities:\n  - id: loan\n    start_date: 2020-01-01\n")
    with pytest.raises(InputValidationError, match="missing required key"):
        load_portfolio_config(str(path), register=False)


def test_bad_amount_is_an_input_error(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("transactions:\n  - {id: t1, asset_id: X, kind: buy, date: 2024-01-01, quantity: abc}\n")
    with pytest.raises(InputValidationError, match="transactions\\[0\\]"):
        load_portfolio_config(str(path), register=False)


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_portfolio_config(str(tmp_path / "nope.yaml"), register=False)


def test_run_ledger_data_mode(portfolio_file):
    import run_ledger

    cash = run_ledger.run_cash_balance(str(portfolio_file), return_data=True)
    assert cash.balance == Decimal("9470")
    assert [w.code for w in cash.warnings] == ["unknown_transaction_kind"]

    analysis = run_ledger.run_tax_analysis(str(portfolio_file), return_data=True)
    assert analysis.short_term_gains == Decimal("180")
    assert analysis.estimated_st_tax == Decimal("54.00")

    liabilities = run_ledger.run_liabilities(str(portfolio_file), return_data=True)
    assert liabilities["total"].balance == Decimal("290000")
    assert liabilities["liabilities"][0].is_estimate is False


def test_run_ledger_cli_mode_prints_report(portfolio_file, capsys):
    import run_ledger

    run_ledger.run_cash_balance(str(portfolio_file), "2024-01-20")
    out = capsys.readouterr().out
    assert "Cash balance as of 2024-01-20: $8,995.00" in out


def test_run_ledger_valuation_from_transactions(portfolio_file):
    import run_ledger

    valuation = run_ledger.run_valuation(str(portfolio_file), return_data=True)
    assert valuation.date == date(2024, 3, 1)
    assert valuation.cash_balance == Decimal("9470")
    assert valuation.positions == {"AAPL": Decimal("780")}
    assert valuation.total_value == Decimal("10250")
    assert valuation.has_interpolated_prices is False


def test_run_ledger_liabilities_skip_unopened_loans(tmp_path):
    import run_ledger

    path = tmp_path / "loans.yaml"
    path.write_text(
        "portfolio_id: demo\n"
        "as_of: 2024-12-31\n"
        "liabilities:\n"
        "  - {id: mortgage, balance: '290000', start_date: 2020-01-01}\n"
        "  - {id: heloc, balance: '40000', start_date: 2024-06-01}\n"
    )
    result = run_ledger.run_liabilities(str(path), "2023-01-01", return_data=True)

    assert [r.liability_id for r in result["liabilities"]] == ["mortgage"]
    assert result["total"].balance == Decimal("290000")
    assert result["total"].is_estimate is True
