"""
Commands -- strongly typed, self-validating inputs to the kernel.

Every command is a frozen dataclass that validates its own shape in
``__post_init__``; a command object that exists is well-formed.  Checks that
need ledger state (accounts, periods, history) happen in the services.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ledger_kernel.domain.account import (
    AccountType,
    CompanionLinks,
    SpecialAccountType,
    validate_account_code,
)
from ledger_kernel.domain.period import EntryKind
from ledger_kernel.domain.values import parse_decimal
from ledger_kernel.exceptions import ValidationError

MAX_TEXT_LENGTH = 500
MAX_ID_LENGTH = 64


def _required_text(value: object, field_name: str, max_length: int = MAX_TEXT_LENGTH) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required", field=field_name, rule="required")
    text = value.strip()
    if len(text) > max_length:
        raise ValidationError(
            f"{field_name} exceeds {max_length} characters",
            field=field_name,
            rule="max_length",
        )
    return text


def _amount(value: object, field_name: str) -> Decimal | None:
    if value is None:
        return None
    try:
        amount = parse_decimal(value, field_name)
    except (TypeError, ValueError) as e:
        raise ValidationError(str(e), field=field_name, rule="amount") from e
    if amount < 0:
        raise ValidationError(f"{field_name} cannot be negative", field=field_name, rule="non_negative")
    return amount


@dataclass(frozen=True)
class CreateAccountCommand:
    tenant_id: str
    account_code: str
    account_name: str
    account_type: AccountType
    created_by: str
    special_account_type: SpecialAccountType | None = None
    parent_account_code: str | None = None
    posting_allowed: bool = True
    is_active: bool = True
    companion_links: CompanionLinks | None = None
    currency: str | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "tenant_id", _required_text(self.tenant_id, "tenant_id", MAX_ID_LENGTH))
        object.__setattr__(self, "account_code", validate_account_code(self.account_code))
        object.__setattr__(self, "account_name", _required_text(self.account_name, "account_name"))
        object.__setattr__(self, "created_by", _required_text(self.created_by, "created_by", MAX_ID_LENGTH))
        try:
            object.__setattr__(self, "account_type", AccountType(self.account_type))
            if self.special_account_type is not None:
                object.__setattr__(
                    self, "special_account_type", SpecialAccountType(self.special_account_type)
                )
        except ValueError as e:
            raise ValidationError(str(e), field="account_type", rule="enum") from e


@dataclass(frozen=True)
class LineSpec:
    """
    Requested journal line: exactly one of ``debit`` / ``credit``.

    ``currency`` defaults to the tenant base currency.  A foreign-currency
    line must carry ``exchange_rate`` (1 unit of ``currency`` in base).
    """

    account_code: str
    debit: Decimal | None = None
    credit: Decimal | None = None
    currency: str | None = None
    exchange_rate: Decimal | None = None
    memo: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "account_code", validate_account_code(self.account_code))
        debit = _amount(self.debit, "debit")
        credit = _amount(self.credit, "credit")
        if debit is not None and debit == 0:
            debit = None
        if credit is not None and credit == 0:
            credit = None
        if debit is None and credit is None:
            raise ValidationError(
                f"Line for {self.account_code} has no amount; omit zero lines",
                field="amount",
                rule="zero_amount",
            )
        if debit is not None and credit is not None:
            raise ValidationError(
                f"Line for {self.account_code} has both a debit and a credit",
                field="amount",
                rule="one_sided",
            )
        object.__setattr__(self, "debit", debit)
        object.__setattr__(self, "credit", credit)
        if self.exchange_rate is not None:
            rate = _amount(self.exchange_rate, "exchange_rate")
            if not rate:
                raise ValidationError("exchange_rate must be positive", field="exchange_rate", rule="positive")
            object.__setattr__(self, "exchange_rate", rate)
        if self.currency is not None:
            object.__setattr__(self, "currency", _required_text(self.currency, "currency", 3).upper())

    @property
    def is_debit(self) -> bool:
        return self.debit is not None

    @property
    def amount(self) -> Decimal:
        return self.debit if self.debit is not None else self.credit


@dataclass(frozen=True)
class PostJournalEntryCommand:
    tenant_id: str
    entry_id: str
    lines: tuple[LineSpec, ...]
    reference: str
    description: str
    posting_date: date
    accounting_period: str
    posted_by: str
    kind: EntryKind = EntryKind.STANDARD

    def __post_init__(self) -> None:
        object.__setattr__(self, "tenant_id", _required_text(self.tenant_id, "tenant_id", MAX_ID_LENGTH))
        object.__setattr__(self, "entry_id", _required_text(self.entry_id, "entry_id", MAX_ID_LENGTH))
        object.__setattr__(self, "reference", _required_text(self.reference, "reference", MAX_ID_LENGTH))
        object.__setattr__(self, "description", _required_text(self.description, "description"))
        object.__setattr__(
            self, "accounting_period", _required_text(self.accounting_period, "accounting_period", MAX_ID_LENGTH)
        )
        object.__setattr__(self, "posted_by", _required_text(self.posted_by, "posted_by", MAX_ID_LENGTH))
        if not isinstance(self.posting_date, date):
            raise ValidationError("posting_date must be a date", field="posting_date", rule="type")
        try:
            object.__setattr__(self, "kind", EntryKind(self.kind))
        except ValueError as e:
            raise ValidationError(str(e), field="kind", rule="enum") from e
        if self.kind == EntryKind.REVERSING:
            raise ValidationError(
                "Reversing entries are created through reversal, not posted directly",
                field="kind",
                rule="reversing_kind",
            )

        lines = tuple(self.lines)
        if len(lines) < 2:
            raise ValidationError(
                "A journal entry needs at least two lines",
                field="lines",
                rule="min_lines",
            )
        if not any(line.is_debit for line in lines) or all(line.is_debit for line in lines):
            raise ValidationError(
                "A journal entry needs at least one debit and one credit line",
                field="lines",
                rule="both_sides",
            )
        object.__setattr__(self, "lines", lines)


@dataclass(frozen=True)
class ReverseJournalEntryCommand:
    """
    Request to reverse a posted entry.

    ``reversal_date`` / ``accounting_period`` default to the original's;
    ``reversal_entry_id`` defaults to ``REV-{entry_id}``.
    """

    tenant_id: str
    entry_id: str
    reason: str
    reversed_by: str
    reversal_date: date | None = None
    accounting_period: str | None = None
    reversal_entry_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "tenant_id", _required_text(self.tenant_id, "tenant_id", MAX_ID_LENGTH))
        object.__setattr__(self, "entry_id", _required_text(self.entry_id, "entry_id", MAX_ID_LENGTH))
        object.__setattr__(self, "reason", _required_text(self.reason, "reason"))
        object.__setattr__(self, "reversed_by", _required_text(self.reversed_by, "reversed_by", MAX_ID_LENGTH))
        if self.reversal_date is not None and not isinstance(self.reversal_date, date):
            raise ValidationError("reversal_date must be a date", field="reversal_date", rule="type")
        if self.reversal_entry_id is not None:
            object.__setattr__(
                self,
                "reversal_entry_id",
                _required_text(self.reversal_entry_id, "reversal_entry_id", MAX_ID_LENGTH + 4),
            )
