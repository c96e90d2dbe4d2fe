"""
Report DTOs -- derived read models, never stored.

Trial balance, integrity, reconciliation, exception and financial-statement
results.  All amounts are base-currency Decimals rounded to the currency's
minor unit; the ``currency`` field names it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from ledger_kernel.domain.account import AccountType
from ledger_kernel.exceptions import IntegrityError

# =============================================================================
# Trial balance
# =============================================================================


class BalanceSource(str, Enum):
    STORED = "stored"
    REPLAY = "replay"


@dataclass(frozen=True)
class TrialBalanceRow:
    """A single row in a trial balance report."""

    account_code: str
    account_name: str
    account_type: AccountType
    balance: Decimal

    @property
    def debit_balance(self) -> Decimal:
        return self.balance if self.balance > 0 else Decimal("0")

    @property
    def credit_balance(self) -> Decimal:
        return -self.balance if self.balance < 0 else Decimal("0")


@dataclass(frozen=True)
class TrialBalance:
    """
    Point-in-time balance per account.

    ``out_of_balance`` is the signed sum of all rows; the accounting identity
    requires it to be zero.  A non-zero value is a finding, never corrected.
    """

    tenant_id: str
    currency: str
    source: BalanceSource
    rows: tuple[TrialBalanceRow, ...]
    tolerance: Decimal
    as_of_date: date | None = None
    period_code: str | None = None
    unknown_account_codes: tuple[str, ...] = ()

    @property
    def total_debits(self) -> Decimal:
        return sum((r.debit_balance for r in self.rows), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((r.credit_balance for r in self.rows), Decimal("0"))

    @property
    def out_of_balance(self) -> Decimal:
        return sum((r.balance for r in self.rows), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return abs(self.out_of_balance) < self.tolerance

    @property
    def balances(self) -> dict[str, Decimal]:
        return {r.account_code: r.balance for r in self.rows}

    def row_for(self, account_code: str) -> TrialBalanceRow | None:
        for row in self.rows:
            if row.account_code == account_code:
                return row
        return None

    def balance_of(self, account_code: str) -> Decimal:
        row = self.row_for(account_code)
        return row.balance if row else Decimal("0")


# =============================================================================
# Integrity
# =============================================================================


class IntegrityIssueKind(str, Enum):
    BALANCE_DRIFT = "balance_drift"
    UNBALANCED_ENTRY = "unbalanced_entry"
    UNKNOWN_ACCOUNT = "unknown_account"
    BROKEN_REVERSAL_LINK = "broken_reversal_link"
    TRIAL_BALANCE_DRIFT = "trial_balance_drift"


@dataclass(frozen=True)
class IntegrityIssue:
    kind: IntegrityIssueKind
    message: str
    account_code: str | None = None
    entry_id: str | None = None
    expected: Decimal | None = None
    actual: Decimal | None = None
    first_offending_entry_id: str | None = None

    @property
    def difference(self) -> Decimal | None:
        if self.expected is None or self.actual is None:
            return None
        return self.actual - self.expected


@dataclass(frozen=True)
class IntegrityReport:
    """Result of recomputing the ledger from its history."""

    tenant_id: str
    checked_at: datetime
    total_accounts: int
    entries_checked: int
    issues: tuple[IntegrityIssue, ...] = ()

    @property
    def issues_found(self) -> int:
        return len(self.issues)

    @property
    def is_healthy(self) -> bool:
        return not self.issues

    def issues_of(self, kind: IntegrityIssueKind) -> list[IntegrityIssue]:
        return [i for i in self.issues if i.kind == kind]

    def raise_for_issues(self) -> None:
        """Raise IntegrityError if anything was found."""
        if self.issues:
            raise IntegrityError(
                self.tenant_id,
                len(self.issues),
                "; ".join(i.message for i in self.issues[:3]),
            )


# =============================================================================
# Reconciliation
# =============================================================================


class VarianceSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class BalanceVariance:
    account_code: str
    expected: Decimal
    actual: Decimal
    severity: VarianceSeverity
    account_name: str | None = None

    @property
    def variance(self) -> Decimal:
        return self.actual - self.expected

    @property
    def variance_percentage(self) -> Decimal | None:
        """|variance| / |expected| * 100, None when nothing was expected."""
        if self.expected == 0:
            return None
        return (abs(self.variance) / abs(self.expected) * 100).quantize(Decimal("0.01"))


@dataclass(frozen=True)
class ReconciliationReport:
    tenant_id: str
    currency: str
    generated_at: datetime
    variances: tuple[BalanceVariance, ...]
    recommendations: tuple[str, ...]
    accounts_compared: int
    period_code: str | None = None

    @property
    def is_reconciled(self) -> bool:
        return not self.variances

    @property
    def total_variance(self) -> Decimal:
        return sum((abs(v.variance) for v in self.variances), Decimal("0"))

    def by_severity(self, severity: VarianceSeverity) -> list[BalanceVariance]:
        return [v for v in self.variances if v.severity == severity]


# =============================================================================
# Exception report
# =============================================================================


class ExceptionCategory(str, Enum):
    UNBALANCED_ENTRY = "unbalanced_entry"
    ORPHANED_COMPANION_LINK = "orphaned_companion_link"
    POSTING_TO_INACTIVE_ACCOUNT = "posting_to_inactive_account"
    POSTING_NOT_ALLOWED = "posting_not_allowed"
    UNKNOWN_ACCOUNT = "unknown_account"
    BALANCE_DRIFT = "balance_drift"
    LARGE_BALANCE = "large_balance"


class ExceptionSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class ExceptionItem:
    category: ExceptionCategory
    severity: ExceptionSeverity
    message: str
    recommendation: str
    account_code: str | None = None
    entry_id: str | None = None


@dataclass(frozen=True)
class ExceptionReport:
    tenant_id: str
    generated_at: datetime
    items: tuple[ExceptionItem, ...] = ()
    period_code: str | None = None

    @property
    def requires_attention(self) -> bool:
        return any(i.severity == ExceptionSeverity.ERROR for i in self.items)

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.items if i.severity == ExceptionSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for i in self.items if i.severity == ExceptionSeverity.WARNING)

    def items_of(self, category: ExceptionCategory) -> list[ExceptionItem]:
        return [i for i in self.items if i.category == category]


# =============================================================================
# Financial statements
# =============================================================================


@dataclass(frozen=True)
class StatementLine:
    """Account amount in its natural presentation sign."""

    account_code: str
    account_name: str
    amount: Decimal


@dataclass(frozen=True)
class ProfitAndLoss:
    tenant_id: str
    currency: str
    period_code: str
    start_date: date
    end_date: date
    revenue: tuple[StatementLine, ...]
    expenses: tuple[StatementLine, ...]

    @property
    def total_revenue(self) -> Decimal:
        return sum((line.amount for line in self.revenue), Decimal("0"))

    @property
    def total_expenses(self) -> Decimal:
        return sum((line.amount for line in self.expenses), Decimal("0"))

    @property
    def net_income(self) -> Decimal:
        return self.total_revenue - self.total_expenses


@dataclass(frozen=True)
class BalanceSheet:
    """
    Assets = liabilities + equity + current earnings.

    ``current_earnings`` is revenue minus expenses not yet closed to equity.
    """

    tenant_id: str
    currency: str
    as_of_date: date
    assets: tuple[StatementLine, ...]
    liabilities: tuple[StatementLine, ...]
    equity: tuple[StatementLine, ...]
    current_earnings: Decimal
    tolerance: Decimal

    @property
    def total_assets(self) -> Decimal:
        return sum((line.amount for line in self.assets), Decimal("0"))

    @property
    def total_liabilities(self) -> Decimal:
        return sum((line.amount for line in self.liabilities), Decimal("0"))

    @property
    def total_equity(self) -> Decimal:
        return sum((line.amount for line in self.equity), Decimal("0")) + self.current_earnings

    @property
    def is_balanced(self) -> bool:
        return abs(self.total_assets - self.total_liabilities - self.total_equity) < self.tolerance


class CashFlowCategory(str, Enum):
    OPERATING = "operating"
    INVESTING = "investing"
    FINANCING = "financing"


@dataclass(frozen=True)
class CashFlowSection:
    category: CashFlowCategory
    lines: tuple[StatementLine, ...] = field(default_factory=tuple)

    @property
    def total(self) -> Decimal:
        return sum((line.amount for line in self.lines), Decimal("0"))


@dataclass(frozen=True)
class CashFlowStatement:
    tenant_id: str
    currency: str
    period_code: str
    start_date: date
    end_date: date
    cash_account_codes: tuple[str, ...]
    beginning_cash: Decimal
    ending_cash: Decimal
    operating: CashFlowSection
    investing: CashFlowSection
    financing: CashFlowSection

    @property
    def net_change(self) -> Decimal:
        return self.ending_cash - self.beginning_cash

    @property
    def total_classified(self) -> Decimal:
        return self.operating.total + self.investing.total + self.financing.total

    @property
    def is_reconciled(self) -> bool:
        return self.total_classified == self.net_change
