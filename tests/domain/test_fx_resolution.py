"""
Turning LineSpecs into base-currency journal lines.

Verifies:
- Base-currency lines pass through unchanged and refuse a non-unit rate
- Foreign lines need a rate and round half-to-even to the base minor unit
- Small FX rounding residue lands on the largest converted line
- Larger differences are left for the balance check
"""

from decimal import Decimal

import pytest

from ledger_kernel.domain.commands import LineSpec
from ledger_kernel.domain.fx import allocate_rounding_residue, resolve_line, resolve_lines
from ledger_kernel.domain.journal import LineSide
from ledger_kernel.domain.values import Currency, Money
from ledger_kernel.exceptions import ValidationError

USD = Currency("USD")


def total(lines, side):
    return sum((l.base_amount.amount for l in lines if l.side == side), Decimal("0"))


class TestResolveLine:
    def test_base_line(self):
        line = resolve_line(LineSpec("1000", debit=Decimal("12.50")), 1, USD)
        assert line.side == LineSide.DEBIT
        assert line.amount == line.base_amount == Money.of("12.50", "USD")
        assert line.exchange_rate is None

    def test_base_line_with_unit_rate(self):
        line = resolve_line(LineSpec("1000", credit=Decimal("5"), exchange_rate=Decimal("1")), 1, USD)
        assert line.base_amount == Money.of("5", "USD")

    def test_base_line_with_other_rate(self):
        with pytest.raises(ValidationError) as exc:
            resolve_line(LineSpec("1000", debit=Decimal("5"), exchange_rate=Decimal("2")), 1, USD)
        assert exc.value.rule == "base_rate"

    def test_foreign_line_converts_and_rounds(self):
        spec = LineSpec("1000", debit=Decimal("100.00"), currency="EUR", exchange_rate=Decimal("1.08335"))
        line = resolve_line(spec, 1, USD)
        assert line.amount == Money.of("100.00", "EUR")
        assert line.base_amount == Money.of("108.34", "USD")
        assert line.exchange_rate == Decimal("1.08335")

    def test_foreign_line_needs_rate(self):
        with pytest.raises(ValidationError) as exc:
            resolve_line(LineSpec("1000", debit=Decimal("1"), currency="EUR"), 1, USD)
        assert exc.value.rule == "missing_rate"

    def test_unknown_currency(self):
        with pytest.raises(ValidationError) as exc:
            resolve_line(LineSpec("1000", debit=Decimal("1"), currency="ZZZ"), 1, USD)
        assert exc.value.rule == "currency"

    def test_precision_of_line_currency(self):
        with pytest.raises(ValidationError) as exc:
            resolve_line(LineSpec("1000", debit=Decimal("1.001")), 1, USD)
        assert exc.value.rule == "precision"
        with pytest.raises(ValidationError):
            resolve_line(
                LineSpec("1000", debit=Decimal("1.5"), currency="JPY", exchange_rate=Decimal("0.0067")),
                1,
                USD,
            )

    def test_converts_to_zero(self):
        spec = LineSpec("1000", debit=Decimal("1"), currency="JPY", exchange_rate=Decimal("0.001"))
        with pytest.raises(ValidationError) as exc:
            resolve_line(spec, 1, USD)
        assert exc.value.rule == "zero_amount"


class TestRoundingResidue:
    def test_residue_grows_short_side(self):
        # 1.00 EUR at 1.005 rounds to 1.00 USD twice; the debit is 2.01
        lines = resolve_lines(
            [
                LineSpec("1000", debit=Decimal("2.01")),
                LineSpec("4000", credit=Decimal("1.00"), currency="EUR", exchange_rate=Decimal("1.005")),
                LineSpec("4100", credit=Decimal("1.00"), currency="EUR", exchange_rate=Decimal("1.005")),
            ],
            USD,
        )
        assert total(lines, LineSide.DEBIT) == total(lines, LineSide.CREDIT) == Decimal("2.01")
        assert lines[1].base_amount == Money.of("1.01", "USD")
        assert lines[2].base_amount == Money.of("1.00", "USD")
        # the transaction-currency amount never changes
        assert lines[1].amount == Money.of("1.00", "EUR")

    def test_residue_shrinks_long_side(self):
        lines = resolve_lines(
            [
                LineSpec("5000", debit=Decimal("1.00"), currency="EUR", exchange_rate=Decimal("1.005")),
                LineSpec("5100", debit=Decimal("1.00"), currency="EUR", exchange_rate=Decimal("1.005")),
                LineSpec("1000", credit=Decimal("1.99")),
            ],
            USD,
        )
        assert total(lines, LineSide.DEBIT) == Decimal("1.99")
        assert lines[0].base_amount == Money.of("0.99", "USD")

    def test_large_difference_left_alone(self):
        lines = resolve_lines(
            [
                LineSpec("1000", debit=Decimal("2.05")),
                LineSpec("4000", credit=Decimal("1.00"), currency="EUR", exchange_rate=Decimal("1.005")),
                LineSpec("4100", credit=Decimal("1.00"), currency="EUR", exchange_rate=Decimal("1.005")),
            ],
            USD,
        )
        assert total(lines, LineSide.DEBIT) - total(lines, LineSide.CREDIT) == Decimal("0.05")

    def test_base_only_entries_untouched(self):
        lines = [
            resolve_line(LineSpec("1000", debit=Decimal("3")), 1, USD),
            resolve_line(LineSpec("4000", credit=Decimal("2")), 2, USD),
        ]
        assert allocate_rounding_residue(lines, USD) == tuple(lines)
