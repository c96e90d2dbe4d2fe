"""
JournalEngine -- validated, atomic posting and reversal of journal entries.

Responsibility:
    Turns a PostJournalEntryCommand or ReverseJournalEntryCommand into a
    posted JournalEntry whose effects are applied to account balances in
    the same atomic store commit.

Architecture position:
    Kernel > Services -- imperative shell.
    Uses PeriodGate for admission, ChartOfAccounts for account eligibility,
    domain.fx for line resolution and the LedgerStore for the commit.

Invariants enforced (validation order, all before any mutation):
    0. Command shape, engine limits and FX resolution -> ValidationError.
    1. Period admits the entry kind on its date -> PeriodClosedError.
    2. Every account exists, is active, allows posting and is not a header
       -> AccountNotFoundError / AccountInactiveError / PostingNotAllowedError.
    3. Base-currency debits equal credits -> ImbalanceError.
    4. Entry id unused for the tenant -> DuplicateEntryError.
    5. Each account's net delta passes apply_delta (polarity), then accounts
       and entry are committed together.
    Steps 1-5 run under the tenant lock.

Failure modes:
    - Every failure is a typed LedgerError; nothing is stored on failure.
    - PostingLockTimeoutError when the tenant lock is not acquired in time.

Audit relevance:
    ``journal_entry_posted`` / ``journal_entry_reversed`` are logged with
    entry id, period, totals and duration; the entry itself records who
    posted it, when, and for reversals the reason and both links.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from ledger_kernel.domain.chart import ChartOfAccounts
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.commands import PostJournalEntryCommand, ReverseJournalEntryCommand
from ledger_kernel.domain.fx import resolve_lines
from ledger_kernel.domain.journal import JournalEntry
from ledger_kernel.domain.period import EntryKind
from ledger_kernel.domain.values import Currency
from ledger_kernel.exceptions import (
    DuplicateEntryError,
    EntryAlreadyReversedError,
    ImbalanceError,
    JournalEntryNotFoundError,
    PeriodNotFoundError,
    ReversalError,
    ReversalPeriodClosedError,
    ValidationError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.locking import TenantLockRegistry
from ledger_kernel.services.period_service import PeriodGate
from ledger_kernel.settings import PostingSettings
from ledger_kernel.store.base import LedgerStore

logger = get_logger("services.journal")


class JournalEngine:
    """
    Posts and reverses journal entries.

    Contract:
        ``post`` and ``reverse`` either return the stored, POSTED entry or
        raise a typed LedgerError having changed nothing.

    Guarantees:
        - Entries of one tenant are committed one at a time (tenant lock).
        - Account deltas are computed and applied in account-code order.
        - A reversal runs the full posting validation path for its mirror.

    Non-goals:
        - Does NOT look up exchange rates; they arrive on each line.
        - Does NOT translate errors into result objects (LedgerService does).
    """

    def __init__(
        self,
        store: LedgerStore,
        period_gate: PeriodGate,
        clock: Clock | None = None,
        locks: TenantLockRegistry | None = None,
        settings: PostingSettings | None = None,
        base_currency_for: Callable[[str], str] | None = None,
    ):
        self._store = store
        self._gate = period_gate
        self._clock = clock or SystemClock()
        self._settings = settings or PostingSettings()
        self._locks = locks or TenantLockRegistry(self._settings.lock_timeout_seconds)
        self._base_currency_for = base_currency_for or (lambda tenant_id: "USD")

    def _base_currency(self, tenant_id: str) -> Currency:
        return Currency(self._base_currency_for(tenant_id))

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def _check_limits(self, command: PostJournalEntryCommand) -> None:
        limit = self._settings.max_lines_per_entry
        if len(command.lines) > limit:
            raise ValidationError(
                f"Entry has {len(command.lines)} lines, maximum is {limit}",
                field="lines",
                rule="max_lines",
            )
        ceiling = self._settings.max_line_amount
        if ceiling is not None:
            for number, line in enumerate(command.lines, start=1):
                if line.amount > ceiling:
                    raise ValidationError(
                        f"Line {number} amount {line.amount} exceeds the maximum of {ceiling}",
                        field="amount",
                        rule="max_line_amount",
                    )

    def post(self, command: PostJournalEntryCommand) -> JournalEntry:
        """
        Validate and post a new entry.

        Raises:
            ValidationError, PeriodError, AccountError, ImbalanceError,
            DuplicateEntryError, PolarityViolationError,
            PostingLockTimeoutError, StoreError.
        """
        with LogContext.bind(
            tenant_id=command.tenant_id,
            entry_id=command.entry_id,
            actor_id=command.posted_by,
            period_code=command.accounting_period,
        ):
            t0 = time.monotonic()
            base = self._base_currency(command.tenant_id)
            self._check_limits(command)
            lines = resolve_lines(command.lines, base)
            entry = JournalEntry(
                tenant_id=command.tenant_id,
                entry_id=command.entry_id,
                lines=lines,
                reference=command.reference,
                description=command.description,
                posting_date=command.posting_date,
                accounting_period=command.accounting_period,
                posted_by=command.posted_by,
                base_currency=base,
                kind=command.kind,
            )

            with self._locks.hold(command.tenant_id, self._settings.lock_timeout_seconds):
                posted = self._commit(entry)

            logger.info(
                "journal_entry_posted",
                extra={
                    "entry_kind": posted.kind.value,
                    "line_count": len(posted.lines),
                    "total_debits": posted.total_debits.amount,
                    "currency": base.code,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return posted

    def _commit(
        self, entry: JournalEntry, reversed_original: JournalEntry | None = None
    ) -> JournalEntry:
        """Steps 1-5.  Caller holds the tenant lock."""
        tenant_id = entry.tenant_id

        # 1. period
        self._gate.validate_posting(tenant_id, entry.accounting_period, entry.posting_date, entry.kind)

        # 2. accounts
        chart = ChartOfAccounts(self._store.load_accounts(tenant_id))
        for code in entry.account_codes():
            chart.assert_postable(code)

        # 3. balance
        if not entry.is_balanced:
            raise ImbalanceError(
                entry.total_debits.amount, entry.total_credits.amount, entry.base_currency.code
            )

        # 4. duplicate
        if self._store.load_journal_entry(tenant_id, entry.entry_id) is not None:
            raise DuplicateEntryError(entry.entry_id, tenant_id)

        # 5. apply, then commit atomically
        now = self._clock.now()
        deltas = entry.signed_deltas()
        updated = [chart.require(code).apply_delta(deltas[code], now) for code in sorted(deltas)]
        posted = entry.mark_posted(now)
        self._store.commit_posting(tenant_id, updated, posted, reversed_original)
        return posted

    # ------------------------------------------------------------------
    # Reversal
    # ------------------------------------------------------------------

    def reverse(self, command: ReverseJournalEntryCommand) -> JournalEntry:
        """
        Post the mirror of an existing entry and link the two.

        Raises:
            JournalEntryNotFoundError: Unknown original.
            EntryAlreadyReversedError: Original already reversed.
            ReversalError: Original is itself a reversal.
            ValidationError: Reversal dated before the original.
            ReversalPeriodClosedError: Target period refuses reversing entries.
            plus every error ``post`` can raise for the mirror entry.
        """
        with LogContext.bind(
            tenant_id=command.tenant_id,
            entry_id=command.entry_id,
            actor_id=command.reversed_by,
        ):
            t0 = time.monotonic()
            with self._locks.hold(command.tenant_id, self._settings.lock_timeout_seconds):
                original = self._store.load_journal_entry(command.tenant_id, command.entry_id)
                if original is None:
                    raise JournalEntryNotFoundError(command.entry_id)
                if original.is_reversal:
                    raise ReversalError(command.entry_id, "a reversal entry cannot itself be reversed")
                if original.is_reversed:
                    raise EntryAlreadyReversedError(command.entry_id, original.reversed_by)

                reversal_date = command.reversal_date or original.posting_date
                if reversal_date < original.posting_date:
                    raise ValidationError(
                        f"Reversal date {reversal_date} precedes original posting date "
                        f"{original.posting_date}",
                        field="reversal_date",
                        rule="reversal_date_order",
                    )

                period = self._target_period(command, original, reversal_date)
                if not self._gate.can_post(period, EntryKind.REVERSING):
                    logger.warning(
                        "reversal_period_refused",
                        extra={"period_code": period.period_code, "status": period.status.value},
                    )
                    raise ReversalPeriodClosedError(
                        command.entry_id, period.period_code, period.status.value
                    )

                reversal_id = command.reversal_entry_id or f"REV-{original.entry_id}"
                mirror = original.build_reversal(
                    reversal_entry_id=reversal_id,
                    reason=command.reason,
                    reversed_by=command.reversed_by,
                    posting_date=reversal_date,
                    accounting_period=period.period_code,
                )
                posted = self._commit(mirror, reversed_original=original.mark_reversed(reversal_id))

            logger.info(
                "journal_entry_reversed",
                extra={
                    "reversal_entry_id": posted.entry_id,
                    "reversal_period": posted.accounting_period,
                    "reason": command.reason,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return posted

    def _target_period(self, command: ReverseJournalEntryCommand, original: JournalEntry, reversal_date):
        if command.accounting_period is not None:
            return self._gate.get_period(command.tenant_id, command.accounting_period)
        if command.reversal_date is None:
            return self._gate.get_period(command.tenant_id, original.accounting_period)
        period = self._gate.period_for_date(command.tenant_id, reversal_date)
        if period is None:
            raise PeriodNotFoundError(str(reversal_date))
        return period
