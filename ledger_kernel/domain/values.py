"""
Values -- Immutable, self-validating monetary value objects.

Responsibility:
    Provides Currency, Money and ExchangeRate, the value types every balance,
    journal line and report amount is expressed in.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module.  Depends only on
    ledger_kernel.domain.currency.

Invariants enforced:
    - Amounts are Decimal, never float; non-finite values are rejected.
    - Currency codes are registered ISO 4217 codes.
    - Rounding is half-to-even at the currency's minor unit.
    - Arithmetic never silently mixes currencies.

Failure modes:
    - TypeError when constructed from float/bool or mixed with foreign types.
    - ValueError on unknown currency, non-finite amount, or currency mismatch.
    - ValueError from round() when the amount is too large to quantize.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation

from ledger_kernel.domain.currency import CurrencyRegistry

# Largest minor-unit count an amount or balance may carry (signed 64-bit).
MAX_MINOR_UNITS = 2**63 - 1


def parse_decimal(value: object, what: str) -> Decimal:
    """Coerce int/str/Decimal to a finite Decimal, refusing floats."""
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"{what} must be Decimal, int or str, never {type(value).__name__}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"Invalid {what}: {value!r}") from e
    else:
        raise TypeError(f"{what} must be Decimal, int or str, got {type(value).__name__}")
    if not result.is_finite():
        raise ValueError(f"{what} must be finite, got {value!r}")
    return result


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code value object.

    Guarantees:
        - code is uppercase, stripped and registered in CurrencyRegistry.
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if isinstance(self.code, str) else ""
        if not CurrencyRegistry.is_valid(normalized):
            raise ValueError(f"Invalid ISO 4217 currency code: {self.code!r}")
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount in this currency."""
        return Decimal(1).scaleb(-self.decimal_places)

    @property
    def rounding_tolerance(self) -> Decimal:
        return CurrencyRegistry.get_rounding_tolerance(self.code)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Pairs a Decimal amount with its Currency; they are never separated.
        Arithmetic is exact.  Rounding happens only through ``round()``,
        half-to-even at the currency's minor unit.

    Guarantees:
        - Immutable and hashable.
        - amount is a finite Decimal; floats are refused at construction.
        - Addition, subtraction and comparison require the same currency.

    Non-goals:
        - Does NOT convert currencies (use ExchangeRate.convert).
        - Does NOT auto-round.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", parse_decimal(self.amount, "amount"))
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """Factory method for creating Money."""
        return cls(amount=amount, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        """Create a zero amount in the given currency."""
        return cls(amount=Decimal("0"), currency=currency)

    @classmethod
    def from_minor_units(cls, units: int, currency: str | Currency) -> Money:
        """
        Build Money from an integer count of minor units.

        Example:
            Money.from_minor_units(1050, "USD") -> Money(10.50, USD)
        """
        if isinstance(units, bool) or not isinstance(units, int):
            raise TypeError(f"units must be int, got {type(units).__name__}")
        cur = currency if isinstance(currency, Currency) else Currency(currency)
        return cls(amount=Decimal(units).scaleb(-cur.decimal_places), currency=cur)

    @property
    def minor_units(self) -> int:
        """Integer count of minor units (amount rounded half-to-even first)."""
        rounded = self.round().amount
        return int(rounded.scaleb(self.currency.decimal_places))

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    @property
    def in_range(self) -> bool:
        """True if the minor-unit count fits in MAX_MINOR_UNITS."""
        if self.amount.is_zero():
            return True
        if self.amount.adjusted() > 18:
            return False
        return abs(self.amount).scaleb(self.currency.decimal_places) <= MAX_MINOR_UNITS

    @property
    def is_rounded(self) -> bool:
        """True if the amount carries no digits below the minor unit."""
        return self.amount == self.round().amount

    def round(self, rounding: str = ROUND_HALF_EVEN) -> Money:
        """Return a new Money rounded to the currency's minor unit."""
        try:
            rounded = self.amount.quantize(self.currency.minor_unit, rounding=rounding)
        except InvalidOperation as e:
            raise ValueError(f"{self} is too large to round to {self.currency.minor_unit}") from e
        return Money(amount=rounded, currency=self.currency)

    def _check_same_currency(self, other: Money, op: str) -> None:
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot {op} Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_same_currency(other, "add")
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_same_currency(other, "subtract")
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def __abs__(self) -> Money:
        return Money(amount=abs(self.amount), currency=self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        """Multiply by a scalar rate."""
        if isinstance(factor, float) or not isinstance(factor, (Decimal, int, str)):
            return NotImplemented
        return Money(amount=self.amount * parse_decimal(factor, "factor"), currency=self.currency)

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_same_currency(other, "compare")
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_same_currency(other, "compare")
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_same_currency(other, "compare")
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_same_currency(other, "compare")
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"


@dataclass(frozen=True, slots=True)
class ExchangeRate:
    """
    Exchange rate between two currencies: 1 from_currency = rate to_currency.

    Rates are resolved by the caller; the kernel only applies them.
    """

    from_currency: Currency
    to_currency: Currency
    rate: Decimal

    def __post_init__(self) -> None:
        if isinstance(self.from_currency, str):
            object.__setattr__(self, "from_currency", Currency(self.from_currency))
        if isinstance(self.to_currency, str):
            object.__setattr__(self, "to_currency", Currency(self.to_currency))
        rate = parse_decimal(self.rate, "exchange rate")
        if rate <= 0:
            raise ValueError(f"Exchange rate must be positive: {rate}")
        object.__setattr__(self, "rate", rate)

    @classmethod
    def of(
        cls,
        from_currency: str | Currency,
        to_currency: str | Currency,
        rate: Decimal | str | int,
    ) -> ExchangeRate:
        return cls(from_currency=from_currency, to_currency=to_currency, rate=rate)

    def convert(self, money: Money) -> Money:
        """
        Convert money into to_currency, unrounded.

        Raises:
            ValueError: If money is not in from_currency.
        """
        if money.currency != self.from_currency:
            raise ValueError(
                f"Money currency {money.currency} doesn't match "
                f"rate from_currency {self.from_currency}"
            )
        return Money(amount=money.amount * self.rate, currency=self.to_currency)

    def inverse(self) -> ExchangeRate:
        return ExchangeRate(
            from_currency=self.to_currency,
            to_currency=self.from_currency,
            rate=Decimal(1) / self.rate,
        )
