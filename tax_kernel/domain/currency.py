"""Currency -- ISO 4217 registry of minor units for tax profiles."""

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """One ISO 4217 currency and the size of its minor unit."""

    code: str
    minor_units: int
    name: str

    @property
    def minor_per_major(self) -> int:
        """How many minor units make one major unit (100 for USD, 1 for JPY)."""
        return 10 ** self.minor_units


def _c(code: str, minor_units: int, name: str) -> tuple[str, CurrencyInfo]:
    return code, CurrencyInfo(code, minor_units, name)


class CurrencyRegistry:
    """Registry of the ISO 4217 currencies a tenant profile may declare."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = dict(
        [
            # Americas
            _c("USD", 2, "US Dollar"),
            _c("CAD", 2, "Canadian Dollar"),
            _c("MXN", 2, "Mexican Peso"),
            _c("GTQ", 2, "Guatemalan Quetzal"),
            _c("HNL", 2, "Honduran Lempira"),
            _c("NIO", 2, "Nicaraguan Cordoba"),
            _c("CRC", 2, "Costa Rican Colon"),
            _c("PAB", 2, "Panamanian Balboa"),
            _c("DOP", 2, "Dominican Peso"),
            _c("COP", 2, "Colombian Peso"),
            _c("PEN", 2, "Peruvian Sol"),
            _c("BOB", 2, "Bolivian Boliviano"),
            _c("ARS", 2, "Argentine Peso"),
            _c("BRL", 2, "Brazilian Real"),
            _c("UYU", 2, "Uruguayan Peso"),
            _c("CLP", 0, "Chilean Peso"),
            _c("PYG", 0, "Paraguayan Guarani"),
            # Europe
            _c("EUR", 2, "Euro"),
            _c("GBP", 2, "Pound Sterling"),
            _c("CHF", 2, "Swiss Franc"),
            _c("SEK", 2, "Swedish Krona"),
            _c("NOK", 2, "Norwegian Krone"),
            _c("DKK", 2, "Danish Krone"),
            _c("PLN", 2, "Polish Zloty"),
            _c("CZK", 2, "Czech Koruna"),
            _c("HUF", 2, "Hungarian Forint"),
            _c("ISK", 0, "Icelandic Krona"),
            # Asia-Pacific
            _c("JPY", 0, "Japanese Yen"),
            _c("KRW", 0, "South Korean Won"),
            _c("VND", 0, "Vietnamese Dong"),
            _c("CNY", 2, "Chinese Yuan"),
            _c("INR", 2, "Indian Rupee"),
            _c("SGD", 2, "Singapore Dollar"),
            _c("AUD", 2, "Australian Dollar"),
            _c("NZD", 2, "New Zealand Dollar"),
            _c("PHP", 2, "Philippine Peso"),
            _c("THB", 2, "Thai Baht"),
            # Middle East / Africa
            _c("AED", 2, "UAE Dirham"),
            _c("SAR", 2, "Saudi Riyal"),
            _c("BHD", 3, "Bahraini Dinar"),
            _c("KWD", 3, "Kuwaiti Dinar"),
            _c("OMR", 3, "Omani Rial"),
            _c("JOD", 3, "Jordanian Dinar"),
            _c("ZAR", 2, "South African Rand"),
            _c("NGN", 2, "Nigerian Naira"),
            _c("KES", 2, "Kenyan Shilling"),
            _c("XOF", 0, "West African CFA Franc"),
            _c("XAF", 0, "Central African CFA Franc"),
        ]
    )

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a currency code is a known ISO 4217 code."""
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        """Get currency information by code."""
        if not code or not isinstance(code, str):
            return None
        return cls._CURRENCIES.get(code.upper().strip())

    @classmethod
    def normalize(cls, code: str) -> str:
        """
        Validate and normalize a currency code.

        Raises:
            ValueError: If the code is not a known ISO 4217 code.
        """
        if not cls.is_valid(code):
            raise ValueError(f"Invalid ISO 4217 currency code: {code!r}")
        return code.upper().strip()

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        """Get all valid currency codes."""
        return frozenset(cls._CURRENCIES)
