"""Unit tests for the currency normalizer and its rate cache."""
from decimal import Decimal

import pytest

from app.core.exceptions import CurrencyConversionError
from app.services.fx import CachedRateNormalizer


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_same_currency_is_identity():
    assert CachedRateNormalizer().convert(Decimal("12.345"), "usd", "USD") == Decimal("12.35")


def test_converts_from_usd():
    assert CachedRateNormalizer().convert(Decimal("100"), "USD", "EUR") == Decimal("85.00")


def test_cross_rate_goes_through_usd():
    # 85 EUR -> 100 USD -> 73 GBP
    assert CachedRateNormalizer().convert(Decimal("85"), "EUR", "GBP") == Decimal("73.00")


def test_unknown_currency_raises():
    with pytest.raises(CurrencyConversionError, match="XYZ"):
        CachedRateNormalizer().convert(Decimal("10"), "XYZ", "USD")


def test_source_failure_raises_conversion_error():
    def broken():
        raise ConnectionError("rates service down")

    with pytest.raises(CurrencyConversionError, match="unavailable"):
        CachedRateNormalizer(rate_source=broken).convert(Decimal("10"), "EUR", "USD")


def test_rates_are_cached_until_ttl_expires():
    calls = []
    clock = _Clock()

    def source():
        calls.append(clock.now)
        return {"USD": 1, "EUR": Decimal("0.5")}

    normalizer = CachedRateNormalizer(rate_source=source, ttl_seconds=60, clock=clock)
    normalizer.convert(Decimal("1"), "USD", "EUR")
    clock.now = 59
    normalizer.convert(Decimal("1"), "USD", "EUR")
    assert len(calls) == 1

    clock.now = 60
    normalizer.convert(Decimal("1"), "USD", "EUR")
    assert len(calls) == 2
