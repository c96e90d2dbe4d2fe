"""Currency -- ISO 4217 registry and minor-unit precision."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount, e.g. 0.01 for USD, 1 for JPY."""
        return Decimal(1).scaleb(-self.decimal_places)

    @property
    def rounding_tolerance(self) -> Decimal:
        """Tolerance for balance checks, one minor unit."""
        return self.minor_unit


# (code, minor unit digits, name)
_ISO_4217: tuple[tuple[str, int, str], ...] = (
    ("USD", 2, "US Dollar"),
    ("EUR", 2, "Euro"),
    ("GBP", 2, "Pound Sterling"),
    ("CHF", 2, "Swiss Franc"),
    ("CAD", 2, "Canadian Dollar"),
    ("AUD", 2, "Australian Dollar"),
    ("NZD", 2, "New Zealand Dollar"),
    ("SEK", 2, "Swedish Krona"),
    ("NOK", 2, "Norwegian Krone"),
    ("DKK", 2, "Danish Krone"),
    ("PLN", 2, "Polish Zloty"),
    ("CZK", 2, "Czech Koruna"),
    ("HUF", 2, "Hungarian Forint"),
    ("RON", 2, "Romanian Leu"),
    ("TRY", 2, "Turkish Lira"),
    ("ILS", 2, "Israeli New Shekel"),
    ("AED", 2, "UAE Dirham"),
    ("SAR", 2, "Saudi Riyal"),
    ("QAR", 2, "Qatari Riyal"),
    ("ZAR", 2, "South African Rand"),
    ("EGP", 2, "Egyptian Pound"),
    ("NGN", 2, "Nigerian Naira"),
    ("KES", 2, "Kenyan Shilling"),
    ("INR", 2, "Indian Rupee"),
    ("PKR", 2, "Pakistani Rupee"),
    ("CNY", 2, "Chinese Yuan"),
    ("HKD", 2, "Hong Kong Dollar"),
    ("SGD", 2, "Singapore Dollar"),
    ("TWD", 2, "New Taiwan Dollar"),
    ("THB", 2, "Thai Baht"),
    ("MYR", 2, "Malaysian Ringgit"),
    ("IDR", 2, "Indonesian Rupiah"),
    ("PHP", 2, "Philippine Peso"),
    ("MXN", 2, "Mexican Peso"),
    ("BRL", 2, "Brazilian Real"),
    ("ARS", 2, "Argentine Peso"),
    ("COP", 2, "Colombian Peso"),
    ("PEN", 2, "Peruvian Sol"),
    ("JPY", 0, "Japanese Yen"),
    ("KRW", 0, "South Korean Won"),
    ("VND", 0, "Vietnamese Dong"),
    ("CLP", 0, "Chilean Peso"),
    ("ISK", 0, "Icelandic Krona"),
    ("XAF", 0, "Central African CFA Franc"),
    ("XOF", 0, "West African CFA Franc"),
    ("BHD", 3, "Bahraini Dinar"),
    ("JOD", 3, "Jordanian Dinar"),
    ("KWD", 3, "Kuwaiti Dinar"),
    ("OMR", 3, "Omani Rial"),
    ("TND", 3, "Tunisian Dinar"),
    ("CLF", 4, "Chilean Unidad de Fomento"),
)


class CurrencyRegistry:
    """Registry of supported ISO 4217 currencies and their minor units."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        code: CurrencyInfo(code, places, name) for code, places, name in _ISO_4217
    }

    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check whether code is a registered currency."""
        return isinstance(code, str) and code.upper() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        return cls._CURRENCIES.get(code.upper())

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        """Minor-unit digits for code; falls back to 2 for unknown codes."""
        info = cls.get_info(code)
        return info.decimal_places if info else cls.DEFAULT_DECIMAL_PLACES

    @classmethod
    def get_rounding_tolerance(cls, code: str) -> Decimal:
        return Decimal(1).scaleb(-cls.get_decimal_places(code))

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)

    @classmethod
    def register(cls, code: str, decimal_places: int, name: str) -> CurrencyInfo:
        """
        Register an additional currency.

        Extension point for currencies whose minor unit differs from the
        default; the registry is process-wide.

        Raises:
            ValueError: If the code is malformed or decimal_places is negative.
        """
        normalized = code.upper().strip()
        if len(normalized) != 3 or not normalized.isalpha():
            raise ValueError(f"Currency code must be three letters: {code!r}")
        if decimal_places < 0:
            raise ValueError(f"decimal_places must be >= 0, got {decimal_places}")
        info = CurrencyInfo(normalized, decimal_places, name)
        cls._CURRENCIES[normalized] = info
        return info
