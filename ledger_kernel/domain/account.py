"""
Account -- chart-of-accounts node with polarity and special-type semantics.

Responsibility:
    Defines the immutable Account value and every rule a single account must
    satisfy on its own: code format, naming, dates, balance precision,
    polarity and special-account constraints.  Rules that need the rest of
    the chart (parents, companion targets) live in ledger_kernel.domain.chart.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Construct-validate-replace: an Account is frozen and every change goes
      through ``dataclasses.replace`` so ``__post_init__`` re-runs all checks.
    - Balances are signed debit-positive.  Debit-normal accounts never hold a
      negative balance, credit-normal accounts never a positive one.
    - Contra accounts (accumulated depreciation, allowance for doubtful
      accounts, unrealized profit in inventory) are asset-typed but
      credit-balanced.
    - ``apply_delta`` is the single choke point for balance changes.

Failure modes:
    - ValidationError naming the violated rule (``field``/``rule`` set).
    - PolarityViolationError when a balance would carry the wrong sign.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from ledger_kernel.domain.values import Currency, Money
from ledger_kernel.exceptions import PolarityViolationError, ValidationError

ACCOUNT_CODE_PATTERN = re.compile(r"^[A-Z0-9]{3,20}$")
MAX_ACCOUNT_NAME_LENGTH = 255


class AccountType(str, Enum):
    """Top-level account classification."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def is_debit_normal(self) -> bool:
        return self in (AccountType.ASSET, AccountType.EXPENSE)

    @property
    def is_balance_sheet(self) -> bool:
        return self in (AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY)


class Polarity(str, Enum):
    """Expected sign of an account balance."""

    DEBIT = "debit"
    CREDIT = "credit"
    EITHER = "either"


class SpecialAccountType(str, Enum):
    """Refinement of AccountType carrying extra semantics."""

    ACCUMULATED_DEPRECIATION = "accumulated_depreciation"
    ALLOWANCE_FOR_DOUBTFUL_ACCOUNTS = "allowance_for_doubtful_accounts"
    PROVISION = "provision"
    CONTROL_RETAINED_EARNINGS = "control_retained_earnings"
    CONTROL_AR = "control_ar"
    CONTROL_AP = "control_ap"
    CLEARING = "clearing"
    SUSPENSE = "suspense"
    ROUNDING = "rounding"
    TAX_PAYABLE = "tax_payable"
    TAX_RECEIVABLE = "tax_receivable"
    FX_GAIN = "fx_gain"
    FX_LOSS = "fx_loss"
    INTERCOMPANY_RECEIVABLE = "intercompany_receivable"
    INTERCOMPANY_PAYABLE = "intercompany_payable"
    DEPRECIATION_EXPENSE = "depreciation_expense"
    ELIMINATION_RESERVE = "elimination_reserve"
    CTA_EQUITY = "cta_equity"
    NCI_EQUITY = "nci_equity"
    GOODWILL = "goodwill"
    UNREALIZED_PROFIT_INVENTORY = "unrealized_profit_inventory"


# Base type each special type must sit on; None means any type.
_REQUIRED_BASE_TYPE: dict[SpecialAccountType, AccountType | None] = {
    SpecialAccountType.ACCUMULATED_DEPRECIATION: AccountType.ASSET,
    SpecialAccountType.ALLOWANCE_FOR_DOUBTFUL_ACCOUNTS: AccountType.ASSET,
    SpecialAccountType.UNREALIZED_PROFIT_INVENTORY: AccountType.ASSET,
    SpecialAccountType.GOODWILL: AccountType.ASSET,
    SpecialAccountType.CONTROL_AR: AccountType.ASSET,
    SpecialAccountType.TAX_RECEIVABLE: AccountType.ASSET,
    SpecialAccountType.INTERCOMPANY_RECEIVABLE: AccountType.ASSET,
    SpecialAccountType.PROVISION: AccountType.LIABILITY,
    SpecialAccountType.CONTROL_AP: AccountType.LIABILITY,
    SpecialAccountType.TAX_PAYABLE: AccountType.LIABILITY,
    SpecialAccountType.INTERCOMPANY_PAYABLE: AccountType.LIABILITY,
    SpecialAccountType.CONTROL_RETAINED_EARNINGS: AccountType.EQUITY,
    SpecialAccountType.ELIMINATION_RESERVE: AccountType.EQUITY,
    SpecialAccountType.CTA_EQUITY: AccountType.EQUITY,
    SpecialAccountType.NCI_EQUITY: AccountType.EQUITY,
    SpecialAccountType.FX_GAIN: AccountType.REVENUE,
    SpecialAccountType.FX_LOSS: AccountType.EXPENSE,
    SpecialAccountType.DEPRECIATION_EXPENSE: AccountType.EXPENSE,
    SpecialAccountType.CLEARING: None,
    SpecialAccountType.SUSPENSE: None,
    SpecialAccountType.ROUNDING: None,
}

CONTRA_SPECIAL_TYPES: frozenset[SpecialAccountType] = frozenset({
    SpecialAccountType.ACCUMULATED_DEPRECIATION,
    SpecialAccountType.ALLOWANCE_FOR_DOUBTFUL_ACCOUNTS,
    SpecialAccountType.UNREALIZED_PROFIT_INVENTORY,
})

UNSIGNED_SPECIAL_TYPES: frozenset[SpecialAccountType] = frozenset({
    SpecialAccountType.CLEARING,
    SpecialAccountType.SUSPENSE,
    SpecialAccountType.ROUNDING,
    SpecialAccountType.CTA_EQUITY,
    SpecialAccountType.ELIMINATION_RESERVE,
})


def validate_account_code(code: object, field_name: str = "account_code") -> str:
    """Strip and check an account code against ACCOUNT_CODE_PATTERN."""
    if not isinstance(code, str) or not code.strip():
        raise ValidationError(f"{field_name} is required", field=field_name, rule="required")
    normalized = code.strip()
    if not ACCOUNT_CODE_PATTERN.match(normalized):
        raise ValidationError(
            f"{field_name} {normalized!r} must be 3-20 uppercase letters or digits",
            field=field_name,
            rule="code_format",
        )
    return normalized


def _optional_code(code: str | None, field_name: str) -> str | None:
    if code is None or (isinstance(code, str) and not code.strip()):
        return None
    return validate_account_code(code, field_name)


@dataclass(frozen=True, slots=True)
class CompanionLinks:
    """
    Declared relationships to companion accounts.

    The two depreciation links travel together: an asset that depreciates
    names both its accumulated-depreciation and its expense account.
    """

    accumulated_depreciation_code: str | None = None
    depreciation_expense_code: str | None = None
    allowance_account_code: str | None = None

    def __post_init__(self) -> None:
        for name in (
            "accumulated_depreciation_code",
            "depreciation_expense_code",
            "allowance_account_code",
        ):
            object.__setattr__(self, name, _optional_code(getattr(self, name), name))
        if (self.accumulated_depreciation_code is None) != (self.depreciation_expense_code is None):
            raise ValidationError(
                "accumulated_depreciation_code and depreciation_expense_code "
                "must be declared together",
                field="companion_links",
                rule="depreciation_pair",
            )

    @property
    def is_empty(self) -> bool:
        return not self.references()

    def references(self) -> tuple[tuple[str, str, SpecialAccountType], ...]:
        """(link name, target code, required target special type) for each set link."""
        refs = []
        if self.accumulated_depreciation_code:
            refs.append((
                "accumulated_depreciation_code",
                self.accumulated_depreciation_code,
                SpecialAccountType.ACCUMULATED_DEPRECIATION,
            ))
        if self.depreciation_expense_code:
            refs.append((
                "depreciation_expense_code",
                self.depreciation_expense_code,
                SpecialAccountType.DEPRECIATION_EXPENSE,
            ))
        if self.allowance_account_code:
            refs.append((
                "allowance_account_code",
                self.allowance_account_code,
                SpecialAccountType.ALLOWANCE_FOR_DOUBTFUL_ACCOUNTS,
            ))
        return tuple(refs)


@dataclass(frozen=True, slots=True)
class Account:
    """
    Chart-of-accounts node.

    Contract:
        Identity is ``(tenant_id, account_code)``.  Construction validates
        every single-account rule; any failure raises before an instance
        exists.  All "mutators" return new instances.

    Guarantees:
        - balance is Money rounded to its currency's minor unit.
        - balance polarity matches ``polarity`` after every change.
        - updated_at >= created_at.

    Non-goals:
        - Does NOT know its parent or companion accounts (see chart.py).
    """

    tenant_id: str
    account_code: str
    account_name: str
    account_type: AccountType
    balance: Money
    created_at: datetime
    updated_at: datetime
    special_account_type: SpecialAccountType | None = None
    parent_account_code: str | None = None
    is_active: bool = True
    posting_allowed: bool = True
    companion_links: CompanionLinks = field(default_factory=CompanionLinks)
    status_changed_at: datetime | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.tenant_id, str) or not self.tenant_id.strip():
            raise ValidationError("tenant_id is required", field="tenant_id", rule="required")
        object.__setattr__(self, "tenant_id", self.tenant_id.strip())

        code = validate_account_code(self.account_code)
        object.__setattr__(self, "account_code", code)

        name = self.account_name.strip() if isinstance(self.account_name, str) else ""
        if not name:
            raise ValidationError("account_name is required", field="account_name", rule="required")
        if len(name) > MAX_ACCOUNT_NAME_LENGTH:
            raise ValidationError(
                f"account_name exceeds {MAX_ACCOUNT_NAME_LENGTH} characters",
                field="account_name",
                rule="max_length",
            )
        object.__setattr__(self, "account_name", name)

        try:
            object.__setattr__(self, "account_type", AccountType(self.account_type))
            if self.special_account_type is not None:
                object.__setattr__(
                    self, "special_account_type", SpecialAccountType(self.special_account_type)
                )
        except ValueError as e:
            raise ValidationError(str(e), field="account_type", rule="enum") from e

        parent = _optional_code(self.parent_account_code, "parent_account_code")
        if parent == code:
            raise ValidationError(
                f"Account {code} cannot be its own parent",
                field="parent_account_code",
                rule="parent_self",
            )
        object.__setattr__(self, "parent_account_code", parent)

        if self.companion_links is None:
            object.__setattr__(self, "companion_links", CompanionLinks())
        for link_name, target, _ in self.companion_links.references():
            if target == code:
                raise ValidationError(
                    f"Account {code} cannot link to itself via {link_name}",
                    field="companion_links",
                    rule="link_self",
                )

        if self.updated_at < self.created_at:
            raise ValidationError(
                "updated_at must not precede created_at",
                field="updated_at",
                rule="date_order",
            )

        if not isinstance(self.balance, Money):
            raise ValidationError("balance must be Money", field="balance", rule="type")
        if not self.balance.is_rounded:
            raise ValidationError(
                f"balance {self.balance} exceeds {self.balance.currency.decimal_places} decimal places",
                field="balance",
                rule="precision",
            )

        self._check_special_type()
        self._check_polarity(self.balance)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        tenant_id: str,
        account_code: str,
        account_name: str,
        account_type: AccountType | str,
        *,
        currency: Currency | str,
        at: datetime,
        special_account_type: SpecialAccountType | str | None = None,
        parent_account_code: str | None = None,
        is_active: bool = True,
        posting_allowed: bool = True,
        companion_links: CompanionLinks | None = None,
        description: str | None = None,
    ) -> Account:
        """Create a new zero-balance account, validated."""
        try:
            balance = Money.zero(currency)
        except ValueError as e:
            raise ValidationError(str(e), field="currency", rule="currency") from e
        return cls(
            tenant_id=tenant_id,
            account_code=account_code,
            account_name=account_name,
            account_type=account_type,
            balance=balance,
            created_at=at,
            updated_at=at,
            special_account_type=special_account_type,
            parent_account_code=parent_account_code,
            is_active=is_active,
            posting_allowed=posting_allowed,
            companion_links=companion_links or CompanionLinks(),
            status_changed_at=at,
            description=description,
        )

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _check_special_type(self) -> None:
        special = self.special_account_type
        if special is None:
            return
        required = _REQUIRED_BASE_TYPE[special]
        if required is not None and self.account_type != required:
            raise ValidationError(
                f"{special.value} accounts must be {required.value}, "
                f"not {self.account_type.value}",
                field="special_account_type",
                rule="special_base_type",
            )
        if special == SpecialAccountType.CLEARING and not self.posting_allowed:
            raise ValidationError(
                "clearing accounts must allow posting",
                field="posting_allowed",
                rule="clearing_posting",
            )

    def _check_polarity(self, balance: Money) -> None:
        polarity = self.polarity
        if polarity == Polarity.DEBIT and balance.is_negative:
            raise PolarityViolationError(
                self.account_code, self.account_type.value, balance.amount, polarity.value
            )
        if polarity == Polarity.CREDIT and balance.is_positive:
            raise PolarityViolationError(
                self.account_code, self.account_type.value, balance.amount, polarity.value
            )

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    @property
    def is_contra(self) -> bool:
        return self.special_account_type in CONTRA_SPECIAL_TYPES

    @property
    def polarity(self) -> Polarity:
        """Sign the balance must carry, special types included."""
        if self.special_account_type in UNSIGNED_SPECIAL_TYPES:
            return Polarity.EITHER
        debit = self.account_type.is_debit_normal
        if self.is_contra:
            debit = not debit
        return Polarity.DEBIT if debit else Polarity.CREDIT

    def is_debit_normal(self) -> bool:
        return self.account_type.is_debit_normal

    def is_credit_normal(self) -> bool:
        return not self.account_type.is_debit_normal

    @property
    def natural_balance(self) -> Money:
        """Balance in the account type's normal presentation (credit types flipped)."""
        return self.balance if self.is_debit_normal() else -self.balance

    # ------------------------------------------------------------------
    # Whole-object replacement
    # ------------------------------------------------------------------

    def apply_delta(self, amount: Money, at: datetime) -> Account:
        """
        Return a copy with ``balance + amount``; the receiver is untouched.

        Raises:
            ValidationError: If amount is in another currency or too precise,
                or the new balance is out of range.
            PolarityViolationError: If the new balance has the wrong sign.
        """
        if amount.currency != self.balance.currency:
            raise ValidationError(
                f"Delta currency {amount.currency} does not match account currency "
                f"{self.balance.currency}",
                field="amount",
                rule="currency",
            )
        if not amount.in_range:
            raise ValidationError(
                f"Delta {amount} is outside the supported range",
                field="amount",
                rule="amount_range",
            )
        if not amount.is_rounded:
            raise ValidationError(
                f"Delta {amount} exceeds the currency's minor unit",
                field="amount",
                rule="precision",
            )
        new_balance = self.balance + amount
        if not new_balance.in_range:
            raise ValidationError(
                f"Balance of {self.account_code} would reach {new_balance}, outside the supported range",
                field="balance",
                rule="amount_range",
            )
        self._check_polarity(new_balance)
        return replace(self, balance=new_balance, updated_at=at)

    def deactivate(self, at: datetime) -> Account:
        if not self.is_active:
            return replace(self, updated_at=at)
        return replace(self, is_active=False, updated_at=at, status_changed_at=at)

    def activate(self, at: datetime) -> Account:
        if self.is_active:
            return replace(self, updated_at=at)
        return replace(self, is_active=True, updated_at=at, status_changed_at=at)

    def with_posting_policy(self, posting_allowed: bool, at: datetime) -> Account:
        if posting_allowed == self.posting_allowed:
            return replace(self, updated_at=at)
        return replace(self, posting_allowed=posting_allowed, updated_at=at, status_changed_at=at)

    def with_companion_links(self, links: CompanionLinks, at: datetime) -> Account:
        return replace(self, companion_links=links, updated_at=at)

    def with_parent(self, parent_account_code: str | None, at: datetime) -> Account:
        return replace(self, parent_account_code=parent_account_code, updated_at=at)
