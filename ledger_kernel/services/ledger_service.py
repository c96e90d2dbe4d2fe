"""
LedgerService -- the caller-facing entry point of the ledger kernel.

Responsibility:
    Wires the account service, period gate, journal engine, trial balance
    selector, integrity checker and financial reporting over one store and
    exposes the operations callers use.  Posting and reversal outcomes are
    returned as typed ``PostingResult`` values; every other operation
    raises its typed LedgerError.

Architecture position:
    Kernel > Services -- outermost shell.  Transport layers (HTTP, queues,
    CLIs) call this class and never reach past it.

Invariants enforced:
    - All services share one TenantLockRegistry, so account changes, period
      transitions and postings of a tenant are serialized together.
    - Expected rejections of post/reverse never escape as exceptions; the
      error object is kept on the result for callers that want it.

Failure modes:
    - PostingResult with a non-success status for rejected post/reverse.
    - Typed LedgerError for every other operation.

Audit relevance:
    Every rejected post/reverse logs ``posting_rejected`` with status, error
    code and the flattened error attributes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from ledger_kernel.domain.account import Account, CompanionLinks
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.commands import (
    CreateAccountCommand,
    PostJournalEntryCommand,
    ReverseJournalEntryCommand,
)
from ledger_kernel.domain.depreciation import DepreciableAssetBundle
from ledger_kernel.domain.journal import JournalEntry
from ledger_kernel.domain.period import AccountingPeriod, PeriodStatus
from ledger_kernel.domain.reports import (
    BalanceSheet,
    CashFlowStatement,
    ExceptionReport,
    IntegrityReport,
    ProfitAndLoss,
    ReconciliationReport,
    TrialBalance,
)
from ledger_kernel.exceptions import (
    AccountError,
    ConcurrencyError,
    DuplicateEntryError,
    EntryAlreadyReversedError,
    ImbalanceError,
    JournalEntryNotFoundError,
    LedgerError,
    PeriodClosedError,
    PeriodError,
    ReversalError,
    ReversalPeriodClosedError,
    StoreError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.selectors.trial_balance import TrialBalanceSelector
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.integrity_service import IntegrityService
from ledger_kernel.services.journal_engine import JournalEngine
from ledger_kernel.services.locking import TenantLockRegistry
from ledger_kernel.services.period_service import PeriodGate
from ledger_kernel.services.reporting_service import FinancialReportingService
from ledger_kernel.settings import LedgerSettings
from ledger_kernel.store.base import LedgerStore

logger = get_logger("services.ledger")


class PostingStatus(str, Enum):
    """Outcome of a post or reverse request."""

    POSTED = "posted"
    REVERSED = "reversed"
    VALIDATION_FAILED = "validation_failed"
    PERIOD_CLOSED = "period_closed"
    PERIOD_REJECTED = "period_rejected"
    ACCOUNT_REJECTED = "account_rejected"
    UNBALANCED = "unbalanced"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    ALREADY_REVERSED = "already_reversed"
    REVERSAL_REJECTED = "reversal_rejected"
    LOCK_TIMEOUT = "lock_timeout"
    STORE_FAILURE = "store_failure"
    REJECTED = "rejected"


# Most specific first; the first isinstance match wins.
_STATUS_BY_ERROR: tuple[tuple[type[LedgerError], PostingStatus], ...] = (
    (JournalEntryNotFoundError, PostingStatus.NOT_FOUND),
    (EntryAlreadyReversedError, PostingStatus.ALREADY_REVERSED),
    (ReversalPeriodClosedError, PostingStatus.PERIOD_CLOSED),
    (ReversalError, PostingStatus.REVERSAL_REJECTED),
    (PeriodClosedError, PostingStatus.PERIOD_CLOSED),
    (PeriodError, PostingStatus.PERIOD_REJECTED),
    (ImbalanceError, PostingStatus.UNBALANCED),
    (DuplicateEntryError, PostingStatus.DUPLICATE),
    (AccountError, PostingStatus.ACCOUNT_REJECTED),
    (ValidationError, PostingStatus.VALIDATION_FAILED),
    (ConcurrencyError, PostingStatus.LOCK_TIMEOUT),
    (StoreError, PostingStatus.STORE_FAILURE),
)


def status_for_error(error: LedgerError) -> PostingStatus:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return PostingStatus.REJECTED


@dataclass(frozen=True)
class PostingResult:
    """Result of a post or reverse request."""

    status: PostingStatus
    entry: JournalEntry | None = None
    error_code: str | None = None
    message: str | None = None
    error: LedgerError | None = None

    @property
    def is_success(self) -> bool:
        return self.status in (PostingStatus.POSTED, PostingStatus.REVERSED)

    @property
    def entry_id(self) -> str | None:
        return self.entry.entry_id if self.entry is not None else None

    @classmethod
    def rejected(cls, error: LedgerError) -> PostingResult:
        return cls(
            status=status_for_error(error),
            error_code=error.code,
            message=str(error),
            error=error,
        )


class LedgerService:
    """
    Facade over the ledger kernel for one store.

    Contract:
        One instance per store; safe to share across threads.  Settings
        default to ``LedgerSettings()`` (USD base, 5 s lock timeout).

    Non-goals:
        - Does NOT authenticate callers; actor ids are recorded as given.
        - Does NOT fetch exchange rates.
    """

    def __init__(
        self,
        store: LedgerStore,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
        locks: TenantLockRegistry | None = None,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._settings = settings or LedgerSettings()
        self._locks = locks or TenantLockRegistry(self._settings.posting.lock_timeout_seconds)

        base_currency_for = self._settings.base_currency_for
        self.accounts = AccountService(
            store,
            clock=self._clock,
            locks=self._locks,
            base_currency_for=base_currency_for,
            max_depth=self._settings.max_hierarchy_depth,
        )
        self.periods = PeriodGate(
            store,
            clock=self._clock,
            locks=self._locks,
            closed_period_bypass=self._settings.posting.closed_period_bypass,
        )
        self.engine = JournalEngine(
            store,
            self.periods,
            clock=self._clock,
            locks=self._locks,
            settings=self._settings.posting,
            base_currency_for=base_currency_for,
        )
        self.trial_balances = TrialBalanceSelector(store, base_currency_for)
        self.integrity = IntegrityService(
            store,
            self.trial_balances,
            clock=self._clock,
            reconciliation=self._settings.reconciliation,
            reporting=self._settings.reporting,
            base_currency_for=base_currency_for,
        )
        self.reporting = FinancialReportingService(
            store, self._settings.reporting, base_currency_for
        )

    @property
    def settings(self) -> LedgerSettings:
        return self._settings

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_account(self, command: CreateAccountCommand) -> Account:
        return self.accounts.create_account(command)

    def create_accounts(self, commands: list[CreateAccountCommand]) -> tuple[Account, ...]:
        return self.accounts.create_accounts(commands)

    def get_account(self, tenant_id: str, account_code: str) -> Account:
        return self.accounts.get_account(tenant_id, account_code)

    def list_accounts(self, tenant_id: str) -> list[Account]:
        return self.accounts.list_accounts(tenant_id)

    def deactivate_account(self, tenant_id: str, account_code: str, actor_id: str) -> Account:
        return self.accounts.deactivate_account(tenant_id, account_code, actor_id)

    def activate_account(self, tenant_id: str, account_code: str, actor_id: str) -> Account:
        return self.accounts.activate_account(tenant_id, account_code, actor_id)

    def set_posting_policy(
        self, tenant_id: str, account_code: str, posting_allowed: bool, actor_id: str
    ) -> Account:
        return self.accounts.set_posting_policy(tenant_id, account_code, posting_allowed, actor_id)

    def set_companion_links(
        self, tenant_id: str, account_code: str, links: CompanionLinks, actor_id: str
    ) -> Account:
        return self.accounts.set_companion_links(tenant_id, account_code, links, actor_id)

    def change_account_parent(
        self, tenant_id: str, account_code: str, parent_account_code: str | None, actor_id: str
    ) -> Account:
        return self.accounts.change_account_parent(
            tenant_id, account_code, parent_account_code, actor_id
        )

    def create_depreciable_asset(self, bundle: DepreciableAssetBundle) -> tuple[Account, ...]:
        return self.accounts.create_depreciable_asset(bundle)

    # ------------------------------------------------------------------
    # Periods
    # ------------------------------------------------------------------

    def create_period(self, tenant_id: str, period_code: str, **kwargs: Any) -> AccountingPeriod:
        """See ``PeriodGate.create_period`` for the keyword arguments."""
        return self.periods.create_period(tenant_id, period_code, **kwargs)

    def transition_period(
        self,
        tenant_id: str,
        period_code: str,
        new_status: PeriodStatus | str,
        actor_id: str | None = None,
    ) -> AccountingPeriod:
        return self.periods.transition(tenant_id, period_code, new_status, actor_id)

    def get_period(self, tenant_id: str, period_code: str) -> AccountingPeriod:
        return self.periods.get_period(tenant_id, period_code)

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def post_journal_entry(self, command: PostJournalEntryCommand) -> PostingResult:
        """Post an entry; rejections come back as a non-success result."""
        try:
            entry = self.engine.post(command)
        except LedgerError as e:
            return self._rejected("post", command.tenant_id, command.entry_id, e)
        return PostingResult(status=PostingStatus.POSTED, entry=entry)

    def reverse_journal_entry(self, command: ReverseJournalEntryCommand) -> PostingResult:
        """Reverse an entry; ``entry`` on success is the new reversal entry."""
        try:
            entry = self.engine.reverse(command)
        except LedgerError as e:
            return self._rejected("reverse", command.tenant_id, command.entry_id, e)
        return PostingResult(status=PostingStatus.REVERSED, entry=entry)

    def post_depreciation(
        self,
        bundle: DepreciableAssetBundle,
        *,
        entry_id: str,
        amount: Decimal,
        posting_date: date,
        accounting_period: str,
        posted_by: str,
        reference: str | None = None,
    ) -> PostingResult:
        """Debit depreciation expense and credit accumulated depreciation."""
        try:
            command = bundle.depreciation_command(
                entry_id=entry_id,
                amount=amount,
                posting_date=posting_date,
                accounting_period=accounting_period,
                posted_by=posted_by,
                reference=reference,
            )
        except LedgerError as e:
            return self._rejected("post", bundle.tenant_id, entry_id, e)
        return self.post_journal_entry(command)

    def get_journal_entry(self, tenant_id: str, entry_id: str) -> JournalEntry:
        entry = self._store.load_journal_entry(tenant_id, entry_id)
        if entry is None:
            raise JournalEntryNotFoundError(entry_id)
        return entry

    def _rejected(
        self, operation: str, tenant_id: str, entry_id: str, error: LedgerError
    ) -> PostingResult:
        result = PostingResult.rejected(error)
        logger.warning(
            "posting_rejected",
            extra={
                "operation": operation,
                "tenant_id": tenant_id,
                "entry_id": entry_id,
                "status": result.status.value,
                "error_code": error.code,
                "error_message": str(error),
            },
        )
        return result

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_trial_balance(
        self,
        tenant_id: str,
        period: AccountingPeriod | str | None = None,
        as_of_date: date | None = None,
        replay: bool | None = None,
    ) -> TrialBalance:
        return self.trial_balances.compute_trial_balance(
            tenant_id, period=period, as_of_date=as_of_date, replay=replay
        )

    def get_ledger_hash(self, tenant_id: str, as_of_date: date | None = None) -> str:
        return self.trial_balances.canonical_hash(tenant_id, as_of_date)

    def get_profit_and_loss(self, tenant_id: str, period_code: str) -> ProfitAndLoss:
        return self.reporting.profit_and_loss(tenant_id, period_code)

    def get_balance_sheet(self, tenant_id: str, as_of_date: date) -> BalanceSheet:
        return self.reporting.balance_sheet(tenant_id, as_of_date)

    def get_cash_flow_statement(
        self,
        tenant_id: str,
        period_code: str,
        cash_account_codes: list[str] | tuple[str, ...] | None = None,
    ) -> CashFlowStatement:
        return self.reporting.cash_flow_statement(tenant_id, period_code, cash_account_codes)

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    def validate_gl_integrity(self, tenant_id: str) -> IntegrityReport:
        return self.integrity.validate_gl_integrity(tenant_id)

    def reconcile_trial_balance(
        self,
        tenant_id: str,
        period: str | None = None,
        expected_balances: dict[str, Decimal] | None = None,
    ) -> ReconciliationReport:
        return self.integrity.reconcile_trial_balance(tenant_id, period, expected_balances)

    def generate_exception_report(self, tenant_id: str, period: str | None = None) -> ExceptionReport:
        return self.integrity.generate_exception_report(tenant_id, period)
