from datetime import date

import pytest

from portfolio_ledger_engine import config
from portfolio_ledger_engine.data_objects import PricePoint
from portfolio_ledger_engine.price_lookup import price_at
from portfolio_ledger_engine.providers import InMemoryPriceProvider


def test_settings_values_are_loaded():
    assert config.ESPP_RULES == {"years_from_grant": 2, "years_from_purchase": 1}
    assert config.TAX_DEFAULTS["long_term_threshold_days"] == 365
    assert config.MONEY_DECIMAL_PLACES == 2


def test_configure_overrides_staleness_threshold():
    provider = InMemoryPriceProvider([PricePoint(asset_id="X", date=date(2024, 1, 1), price="10")])
    original = config.PRICE_LOOKUP_DEFAULTS
    try:
        config.configure(PRICE_LOOKUP_DEFAULTS={**original, "staleness_threshold_days": 10})
        assert price_at("X", "2024-01-06", provider=provider).is_interpolated is False
    finally:
        config.configure(PRICE_LOOKUP_DEFAULTS=original)
    assert price_at("X", "2024-01-06", provider=provider).is_interpolated is True


def test_configure_rejects_unknown_keys():
    with pytest.raises(KeyError, match="Unknown config key"):
        config.configure(NOT_A_SETTING=1)
