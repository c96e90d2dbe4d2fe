"""
IntegrityService -- recompute the ledger from history and report disagreement.

Responsibility:
    Compares the two sources of truth (stored account balances and journal
    history) and inspects history for entries the posting path should never
    have let through.  Produces three reports: GL integrity, trial balance
    reconciliation and exceptions.

Architecture position:
    Kernel > Services -- read-only shell over LedgerStore snapshots and the
    pure replay functions.

Invariants enforced:
    - Findings are reported, never repaired.  This service never writes.
    - Every report is computed from one snapshot, so it never mixes state
      from before and after a concurrent posting.

Failure modes:
    - IntegrityReport.raise_for_issues() raises IntegrityError for callers
      that prefer an exception.

Audit relevance:
    ``integrity_check_completed`` (INFO) or ``integrity_issues_found``
    (WARNING) is logged with issue counts for every run.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from decimal import Decimal

from ledger_kernel.domain.account import Account
from ledger_kernel.domain.chart import ChartOfAccounts
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.replay import first_offending_entry, replay_balances
from ledger_kernel.domain.reports import (
    BalanceVariance,
    ExceptionCategory,
    ExceptionItem,
    ExceptionReport,
    ExceptionSeverity,
    IntegrityIssue,
    IntegrityIssueKind,
    IntegrityReport,
    ReconciliationReport,
    VarianceSeverity,
)
from ledger_kernel.domain.values import Currency, Money, parse_decimal
from ledger_kernel.exceptions import ValidationError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.selectors.trial_balance import TrialBalanceSelector
from ledger_kernel.settings import ReconciliationSettings, ReportingSettings
from ledger_kernel.store.base import LedgerSnapshot, LedgerStore

logger = get_logger("services.integrity")

_RECOMMENDATIONS: dict[VarianceSeverity, str] = {
    VarianceSeverity.CRITICAL: "Freeze postings to {code} and investigate immediately",
    VarianceSeverity.HIGH: "Review recent entries posted to {code} before the next close",
    VarianceSeverity.MEDIUM: "Schedule a review of {code}",
    VarianceSeverity.LOW: "Monitor {code}; variance is minor",
}


class IntegrityService:
    """
    Integrity checker and reconciler.

    Contract:
        Each public method takes one snapshot of the tenant and returns an
        immutable report.
    """

    def __init__(
        self,
        store: LedgerStore,
        selector: TrialBalanceSelector,
        clock: Clock | None = None,
        reconciliation: ReconciliationSettings | None = None,
        reporting: ReportingSettings | None = None,
        base_currency_for: Callable[[str], str] | None = None,
    ):
        self._store = store
        self._selector = selector
        self._clock = clock or SystemClock()
        self._reconciliation = reconciliation or ReconciliationSettings()
        self._reporting = reporting or ReportingSettings()
        self._base_currency_for = base_currency_for or (lambda tenant_id: "USD")

    def _base(self, tenant_id: str) -> Currency:
        return Currency(self._base_currency_for(tenant_id))

    # ------------------------------------------------------------------
    # GL integrity
    # ------------------------------------------------------------------

    def validate_gl_integrity(self, tenant_id: str) -> IntegrityReport:
        """
        Replay history and compare it with every stored balance.

        Also flags unbalanced history entries, lines to unknown accounts,
        broken reversal links and a stored trial balance that does not sum
        to zero.
        """
        with LogContext.bind(tenant_id=tenant_id):
            snap = self._store.snapshot(tenant_id)
            base = self._base(tenant_id)
            issues: list[IntegrityIssue] = []

            issues.extend(self._balance_drift(snap, base))
            issues.extend(self._history_issues(snap))

            stored_tb = self._selector.compute_trial_balance(tenant_id, snapshot=snap)
            if not stored_tb.is_balanced:
                issues.append(IntegrityIssue(
                    kind=IntegrityIssueKind.TRIAL_BALANCE_DRIFT,
                    message=f"Stored balances sum to {stored_tb.out_of_balance}, not zero",
                    expected=Decimal("0"),
                    actual=stored_tb.out_of_balance,
                ))

            report = IntegrityReport(
                tenant_id=tenant_id,
                checked_at=self._clock.now(),
                total_accounts=len(snap.accounts),
                entries_checked=len(snap.entries),
                issues=tuple(issues),
            )
            self._log_result("integrity", report.issues_found, {
                "total_accounts": report.total_accounts,
                "entries_checked": report.entries_checked,
            })
            return report

    def _balance_drift(self, snap: LedgerSnapshot, base: Currency) -> list[IntegrityIssue]:
        replayed = replay_balances(snap.entries, base)
        issues = []
        for code in sorted(snap.accounts):
            actual = snap.accounts[code].balance
            expected = replayed.get(code, Money.zero(base))
            if actual == expected:
                continue
            issues.append(IntegrityIssue(
                kind=IntegrityIssueKind.BALANCE_DRIFT,
                message=f"Account {code} stored balance {actual.amount} != replayed {expected.amount}",
                account_code=code,
                expected=expected.amount,
                actual=actual.amount,
                first_offending_entry_id=first_offending_entry(snap.entries, code, actual),
            ))
        return issues

    def _history_issues(self, snap: LedgerSnapshot) -> list[IntegrityIssue]:
        issues = []
        index = {e.entry_id: e for e in snap.entries}
        for entry in snap.entries:
            if not entry.is_balanced:
                issues.append(IntegrityIssue(
                    kind=IntegrityIssueKind.UNBALANCED_ENTRY,
                    message=(
                        f"Entry {entry.entry_id} debits {entry.total_debits.amount} "
                        f"!= credits {entry.total_credits.amount}"
                    ),
                    entry_id=entry.entry_id,
                    expected=entry.total_debits.amount,
                    actual=entry.total_credits.amount,
                ))
            for code in entry.account_codes():
                if code not in snap.accounts:
                    issues.append(IntegrityIssue(
                        kind=IntegrityIssueKind.UNKNOWN_ACCOUNT,
                        message=f"Entry {entry.entry_id} posts to unknown account {code}",
                        account_code=code,
                        entry_id=entry.entry_id,
                    ))
            if entry.reversed_by is not None:
                mirror = index.get(entry.reversed_by)
                if mirror is None or mirror.reversal_of != entry.entry_id:
                    issues.append(IntegrityIssue(
                        kind=IntegrityIssueKind.BROKEN_REVERSAL_LINK,
                        message=(
                            f"Entry {entry.entry_id} claims reversal {entry.reversed_by}, "
                            "which does not point back"
                        ),
                        entry_id=entry.entry_id,
                    ))
            if entry.reversal_of is not None:
                original = index.get(entry.reversal_of)
                if original is None or original.reversed_by != entry.entry_id:
                    issues.append(IntegrityIssue(
                        kind=IntegrityIssueKind.BROKEN_REVERSAL_LINK,
                        message=(
                            f"Reversal {entry.entry_id} points at {entry.reversal_of}, "
                            "which is not marked reversed by it"
                        ),
                        entry_id=entry.entry_id,
                    ))
        return issues

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile_trial_balance(
        self,
        tenant_id: str,
        period: str | None = None,
        expected_balances: Mapping[str, Decimal | int | str] | None = None,
    ) -> ReconciliationReport:
        """
        Per-account variance between expected and actual balances.

        With ``expected_balances`` (signed, debit-positive), they are compared
        with the trial balance (replayed to the period end when ``period`` is
        given, stored balances otherwise).  Without them, stored balances are
        compared with a full replay of history and ``period`` only labels
        the report.
        """
        with LogContext.bind(tenant_id=tenant_id, period_code=period):
            snap = self._store.snapshot(tenant_id)
            base = self._base(tenant_id)

            if expected_balances is None:
                replayed = replay_balances(snap.entries, base)
                expected = {code: m.amount for code, m in replayed.items()}
                actual = {code: a.balance.amount for code, a in snap.accounts.items()}
            else:
                expected = {}
                for code, value in expected_balances.items():
                    try:
                        expected[code] = parse_decimal(value, f"expected balance of {code}")
                    except (TypeError, ValueError) as e:
                        raise ValidationError(str(e), field="expected_balances", rule="amount") from e
                tb = self._selector.compute_trial_balance(tenant_id, period=period, snapshot=snap)
                actual = tb.balances

            variances = []
            for code in sorted(set(expected) | set(actual)):
                exp = expected.get(code, Decimal("0"))
                act = actual.get(code, Decimal("0"))
                if abs(act - exp) < self._reconciliation.tolerance:
                    continue
                account = snap.accounts.get(code)
                variances.append(BalanceVariance(
                    account_code=code,
                    expected=exp,
                    actual=act,
                    severity=self._reconciliation.classify(act - exp, exp),
                    account_name=account.account_name if account else None,
                ))

            report = ReconciliationReport(
                tenant_id=tenant_id,
                currency=base.code,
                generated_at=self._clock.now(),
                variances=tuple(variances),
                recommendations=tuple(
                    _RECOMMENDATIONS[v.severity].format(code=v.account_code) for v in variances
                ),
                accounts_compared=len(set(expected) | set(actual)),
                period_code=period,
            )
            self._log_result("reconciliation", len(variances), {
                "accounts_compared": report.accounts_compared,
                "total_variance": report.total_variance,
            })
            return report

    # ------------------------------------------------------------------
    # Exception report
    # ------------------------------------------------------------------

    def generate_exception_report(self, tenant_id: str, period: str | None = None) -> ExceptionReport:
        """
        Everything that needs a human: broken invariants (ERROR) and
        unusual but legal states (WARNING).

        ``period`` restricts the history-based checks to entries assigned to
        that period; chart and balance checks always cover the whole tenant.
        """
        with LogContext.bind(tenant_id=tenant_id, period_code=period):
            snap = self._store.snapshot(tenant_id)
            base = self._base(tenant_id)
            entries = [e for e in snap.entries if period is None or e.accounting_period == period]
            items: list[ExceptionItem] = []

            for entry in entries:
                if not entry.is_balanced:
                    items.append(ExceptionItem(
                        category=ExceptionCategory.UNBALANCED_ENTRY,
                        severity=ExceptionSeverity.ERROR,
                        message=(
                            f"Entry {entry.entry_id} is unbalanced: debits "
                            f"{entry.total_debits.amount}, credits {entry.total_credits.amount}"
                        ),
                        recommendation="Reverse the entry and repost it balanced",
                        entry_id=entry.entry_id,
                    ))
                for code in entry.account_codes():
                    items.extend(self._line_exceptions(entry, snap.accounts.get(code), code))

            chart = ChartOfAccounts(snap.accounts)
            for orphan in chart.orphaned_companion_links():
                unlinked = orphan.account_code == orphan.target_code
                items.append(ExceptionItem(
                    category=ExceptionCategory.ORPHANED_COMPANION_LINK,
                    severity=ExceptionSeverity.WARNING if unlinked else ExceptionSeverity.ERROR,
                    message=f"{orphan.account_code}.{orphan.link_name} -> {orphan.target_code}: {orphan.problem}",
                    recommendation=(
                        "Link an asset to this account or deactivate it"
                        if unlinked else "Repoint the companion link to a valid account"
                    ),
                    account_code=orphan.account_code,
                ))

            replayed = replay_balances(snap.entries, base)
            threshold = self._reporting.large_balance_threshold
            for code in sorted(snap.accounts):
                account = snap.accounts[code]
                expected = replayed.get(code, Money.zero(base))
                if account.balance != expected:
                    items.append(ExceptionItem(
                        category=ExceptionCategory.BALANCE_DRIFT,
                        severity=ExceptionSeverity.ERROR,
                        message=(
                            f"Account {code} stored balance {account.balance.amount} "
                            f"differs from history {expected.amount}"
                        ),
                        recommendation="Run validate_gl_integrity and trace the first offending entry",
                        account_code=code,
                    ))
                if abs(account.balance.amount) > threshold:
                    items.append(ExceptionItem(
                        category=ExceptionCategory.LARGE_BALANCE,
                        severity=ExceptionSeverity.WARNING,
                        message=f"Account {code} balance {account.balance.amount} exceeds {threshold}",
                        recommendation="Confirm the balance is expected",
                        account_code=code,
                    ))

            report = ExceptionReport(
                tenant_id=tenant_id,
                generated_at=self._clock.now(),
                items=tuple(items),
                period_code=period,
            )
            self._log_result("exception_report", len(items), {
                "error_count": report.error_count,
                "warning_count": report.warning_count,
            })
            return report

    def _line_exceptions(self, entry, account: Account | None, code: str) -> list[ExceptionItem]:
        if account is None:
            return [ExceptionItem(
                category=ExceptionCategory.UNKNOWN_ACCOUNT,
                severity=ExceptionSeverity.ERROR,
                message=f"Entry {entry.entry_id} posts to unknown account {code}",
                recommendation="Create the account or reverse the entry",
                account_code=code,
                entry_id=entry.entry_id,
            )]
        # a posting after the account's last status change saw the current status
        after_change = (
            entry.posted_at is not None
            and account.status_changed_at is not None
            and entry.posted_at > account.status_changed_at
        )
        if not after_change:
            return []
        if not account.is_active:
            return [ExceptionItem(
                category=ExceptionCategory.POSTING_TO_INACTIVE_ACCOUNT,
                severity=ExceptionSeverity.ERROR,
                message=f"Entry {entry.entry_id} posted to {code} after it was deactivated",
                recommendation="Reverse the entry and repost to an active account",
                account_code=code,
                entry_id=entry.entry_id,
            )]
        if not account.posting_allowed:
            return [ExceptionItem(
                category=ExceptionCategory.POSTING_NOT_ALLOWED,
                severity=ExceptionSeverity.ERROR,
                message=f"Entry {entry.entry_id} posted to {code} after posting was disabled",
                recommendation="Reverse the entry and repost to a postable account",
                account_code=code,
                entry_id=entry.entry_id,
            )]
        return []

    def _log_result(self, check: str, found: int, extra: dict) -> None:
        if found:
            logger.warning(f"{check}_issues_found", extra={"issues_found": found, **extra})
        else:
            logger.info(f"{check}_check_completed", extra={"issues_found": 0, **extra})
