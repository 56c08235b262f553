"""
Tests for ISO 4217 currency validation.

Profiles are rejected at construction when their currency is unknown;
snapshots always carry a normalized upper-case code.
"""

import pytest

from tax_kernel.domain.currency import CurrencyInfo, CurrencyRegistry


class TestCurrencyRegistry:
    def test_valid_codes_accepted(self):
        for code in ["USD", "EUR", "GTQ", "MXN", "JPY", "KWD"]:
            assert CurrencyRegistry.is_valid(code)

    def test_lowercase_and_whitespace_normalized(self):
        assert CurrencyRegistry.normalize("gtq") == "GTQ"
        assert CurrencyRegistry.normalize(" usd ") == "USD"

    def test_invalid_codes_rejected(self):
        for code in ["XXY", "ABC", "123", "US", "USDD", "", None]:
            assert not CurrencyRegistry.is_valid(code)

    def test_normalize_raises_on_invalid_code(self):
        with pytest.raises(ValueError, match="Invalid ISO 4217 currency code"):
            CurrencyRegistry.normalize("XXY")

    def test_get_info(self):
        info = CurrencyRegistry.get_info("gtq")
        assert info == CurrencyInfo(code="GTQ", minor_units=2, name="Guatemalan Quetzal")
        assert info.minor_per_major == 100

    def test_zero_and_three_decimal_currencies(self):
        assert CurrencyRegistry.get_info("JPY").minor_per_major == 1
        assert CurrencyRegistry.get_info("KWD").minor_per_major == 1000

    def test_unknown_info_is_none(self):
        assert CurrencyRegistry.get_info("XXY") is None

    def test_all_codes_contains_profile_currencies(self):
        codes = CurrencyRegistry.all_codes()
        assert {"USD", "GTQ", "EUR"} <= codes
