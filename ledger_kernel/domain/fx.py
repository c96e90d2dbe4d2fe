"""
FX line resolution -- turn requested lines into base-currency journal lines.

Rates arrive already resolved on each LineSpec.  A converted line is rounded
half-to-even to the base currency's minor unit.  Rounding can leave the entry
short by a few minor units; a residue of at most one minor unit per converted
line is absorbed by the largest converted line (grown on the short side, or
shrunk on the long side).  Any larger difference is left for the balance
check to reject.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace
from decimal import Decimal

from ledger_kernel.domain.commands import LineSpec
from ledger_kernel.domain.journal import JournalLine, LineSide
from ledger_kernel.domain.values import Currency, ExchangeRate, Money
from ledger_kernel.exceptions import ValidationError


def _line_currency(spec: LineSpec, base_currency: Currency, line_number: int) -> Currency:
    if spec.currency is None:
        return base_currency
    try:
        return Currency(spec.currency)
    except ValueError as e:
        raise ValidationError(
            f"Line {line_number}: {e}", field="currency", rule="currency"
        ) from e


def _check_range(amount: Money, line_number: int) -> None:
    if not amount.in_range:
        raise ValidationError(
            f"Line {line_number}: {amount} is outside the supported amount range",
            field="amount",
            rule="amount_range",
        )


def resolve_line(spec: LineSpec, line_number: int, base_currency: Currency) -> JournalLine:
    """
    Convert one LineSpec into a JournalLine.

    Raises:
        ValidationError: On unknown currency, an amount out of range or too
            precise, a missing exchange rate, or an amount that converts to zero.
    """
    currency = _line_currency(spec, base_currency, line_number)
    amount = Money(spec.amount, currency)
    _check_range(amount, line_number)
    if not amount.is_rounded:
        raise ValidationError(
            f"Line {line_number}: {amount} has more than {currency.decimal_places} decimal places",
            field="amount",
            rule="precision",
        )
    side = LineSide.DEBIT if spec.is_debit else LineSide.CREDIT

    if currency == base_currency:
        if spec.exchange_rate is not None and spec.exchange_rate != 1:
            raise ValidationError(
                f"Line {line_number}: base-currency line cannot carry exchange rate {spec.exchange_rate}",
                field="exchange_rate",
                rule="base_rate",
            )
        return JournalLine(
            line_number=line_number,
            account_code=spec.account_code,
            side=side,
            amount=amount,
            base_amount=amount,
            memo=spec.memo,
        )

    if spec.exchange_rate is None:
        raise ValidationError(
            f"Line {line_number}: {currency} line needs an exchange rate to {base_currency}",
            field="exchange_rate",
            rule="missing_rate",
        )
    rate = ExchangeRate(currency, base_currency, spec.exchange_rate)
    base_amount = rate.convert(amount)
    _check_range(base_amount, line_number)
    base_amount = base_amount.round()
    if base_amount.is_zero:
        raise ValidationError(
            f"Line {line_number}: {amount} converts to zero {base_currency}",
            field="amount",
            rule="zero_amount",
        )
    return JournalLine(
        line_number=line_number,
        account_code=spec.account_code,
        side=side,
        amount=amount,
        base_amount=base_amount,
        exchange_rate=rate.rate,
        memo=spec.memo,
    )


def allocate_rounding_residue(
    lines: Sequence[JournalLine], base_currency: Currency
) -> tuple[JournalLine, ...]:
    """Absorb FX rounding residue into the largest converted line, if small enough."""
    lines = tuple(lines)
    converted = [line for line in lines if line.exchange_rate is not None]
    if not converted:
        return lines

    diff = Decimal(0)
    for line in lines:
        diff += line.signed_base_amount.amount
    if diff == 0 or abs(diff) > len(converted) * base_currency.minor_unit:
        return lines

    # diff > 0: debits exceed credits; grow a credit line or shrink a debit line
    residue = Money(abs(diff), base_currency)
    short_side = LineSide.CREDIT if diff > 0 else LineSide.DEBIT
    candidates = [
        line for line in converted
        if line.side == short_side or line.base_amount > residue
    ]
    if not candidates:
        return lines
    target = max(candidates, key=lambda line: (line.base_amount.amount, -line.line_number))
    if target.side == short_side:
        adjusted = replace(target, base_amount=target.base_amount + residue)
    else:
        adjusted = replace(target, base_amount=target.base_amount - residue)
    return tuple(adjusted if line is target else line for line in lines)


def resolve_lines(specs: Sequence[LineSpec], base_currency: Currency) -> tuple[JournalLine, ...]:
    """Resolve every line and absorb FX rounding residue."""
    lines = [resolve_line(spec, number, base_currency) for number, spec in enumerate(specs, start=1)]
    return allocate_rounding_residue(lines, base_currency)
