"""
Journal entries -- immutable records of posted transactions.

Responsibility:
    Defines JournalLine and JournalEntry, the entry status lifecycle and the
    mirror construction used for reversals.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Every line is strictly one-sided with a positive amount.
    - An entry has at least one debit and one credit line.
    - Base-currency debits equal base-currency credits.
    - ``reversed_by`` is set at most once.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from ledger_kernel.domain.period import EntryKind
from ledger_kernel.domain.values import Currency, Money
from ledger_kernel.exceptions import EntryAlreadyReversedError, ValidationError


class LineSide(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"

    def opposite(self) -> LineSide:
        return LineSide.CREDIT if self == LineSide.DEBIT else LineSide.DEBIT


class JournalEntryStatus(str, Enum):
    PENDING = "pending"
    POSTED = "posted"
    REVERSED = "reversed"


@dataclass(frozen=True, slots=True)
class JournalLine:
    """
    One side of a journal entry.

    ``amount`` is in the transaction currency and kept for audit;
    ``base_amount`` is what balances and account deltas use.
    """

    line_number: int
    account_code: str
    side: LineSide
    amount: Money
    base_amount: Money
    exchange_rate: Decimal | None = None
    memo: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "side", LineSide(self.side))
        if not self.amount.is_positive or not self.base_amount.is_positive:
            raise ValidationError(
                f"Line {self.line_number}: amounts must be positive",
                field="amount",
                rule="positive_amount",
            )

    @property
    def is_debit(self) -> bool:
        return self.side == LineSide.DEBIT

    @property
    def signed_base_amount(self) -> Money:
        """Debit-positive base amount."""
        return self.base_amount if self.is_debit else -self.base_amount

    def mirrored(self) -> JournalLine:
        return replace(self, side=self.side.opposite())


@dataclass(frozen=True, slots=True)
class JournalEntry:
    """
    Posted (or pending) journal entry.

    Contract:
        Identity is ``(tenant_id, entry_id)``.  Once POSTED the only change
        ever made is the one-time REVERSED marking with ``reversed_by``.
    """

    tenant_id: str
    entry_id: str
    lines: tuple[JournalLine, ...]
    reference: str
    description: str
    posting_date: date
    accounting_period: str
    posted_by: str
    base_currency: Currency
    kind: EntryKind = EntryKind.STANDARD
    status: JournalEntryStatus = JournalEntryStatus.PENDING
    posted_at: datetime | None = None
    reversal_of: str | None = None
    reversed_by: str | None = None
    reversal_reason: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines))
        object.__setattr__(self, "kind", EntryKind(self.kind))
        object.__setattr__(self, "status", JournalEntryStatus(self.status))
        if len(self.lines) < 2:
            raise ValidationError(
                "A journal entry needs at least two lines",
                field="lines",
                rule="min_lines",
            )
        if not any(line.is_debit for line in self.lines) or all(line.is_debit for line in self.lines):
            raise ValidationError(
                "A journal entry needs at least one debit and one credit line",
                field="lines",
                rule="both_sides",
            )
        for line in self.lines:
            if line.base_amount.currency != self.base_currency:
                raise ValidationError(
                    f"Line {line.line_number} base amount is not in {self.base_currency}",
                    field="lines",
                    rule="base_currency",
                )

    @property
    def total_debits(self) -> Money:
        total = Money.zero(self.base_currency)
        for line in self.lines:
            if line.is_debit:
                total = total + line.base_amount
        return total

    @property
    def total_credits(self) -> Money:
        total = Money.zero(self.base_currency)
        for line in self.lines:
            if not line.is_debit:
                total = total + line.base_amount
        return total

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    @property
    def is_reversed(self) -> bool:
        return self.reversed_by is not None

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of is not None

    def account_codes(self) -> list[str]:
        """Distinct account codes, sorted (the lock / apply order)."""
        return sorted({line.account_code for line in self.lines})

    def signed_deltas(self) -> dict[str, Money]:
        """Net debit-positive base delta per account code."""
        deltas: dict[str, Money] = defaultdict(lambda: Money.zero(self.base_currency))
        for line in self.lines:
            deltas[line.account_code] = deltas[line.account_code] + line.signed_base_amount
        return dict(deltas)

    def mark_posted(self, at: datetime) -> JournalEntry:
        return replace(self, status=JournalEntryStatus.POSTED, posted_at=at)

    def mark_reversed(self, reversal_entry_id: str) -> JournalEntry:
        """
        Record the one-time forward link to the reversing entry.

        Raises:
            EntryAlreadyReversedError: If already reversed.
        """
        if self.reversed_by is not None:
            raise EntryAlreadyReversedError(self.entry_id, self.reversed_by)
        return replace(self, status=JournalEntryStatus.REVERSED, reversed_by=reversal_entry_id)

    def build_reversal(
        self,
        *,
        reversal_entry_id: str,
        reason: str,
        reversed_by: str,
        posting_date: date,
        accounting_period: str,
    ) -> JournalEntry:
        """Mirror entry: every line's side swapped, amounts identical."""
        return JournalEntry(
            tenant_id=self.tenant_id,
            entry_id=reversal_entry_id,
            lines=tuple(line.mirrored() for line in self.lines),
            reference=f"REV-{self.reference}",
            description=f"Reversal: {self.description} - {reason}",
            posting_date=posting_date,
            accounting_period=accounting_period,
            posted_by=reversed_by,
            base_currency=self.base_currency,
            kind=EntryKind.REVERSING,
            reversal_of=self.entry_id,
            reversal_reason=reason,
        )
