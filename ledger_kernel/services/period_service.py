"""
PeriodGate -- accounting period lifecycle and posting admission.

Responsibility:
    Manages the period lifecycle (OPEN -> CLOSED -> LOCKED -> FINALIZED) and
    decides whether an entry of a given kind may post into a period before
    the journal engine touches any account.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by JournalEngine at the start of every posting and reversal,
    and by LedgerService for period administration.

Invariants enforced:
    - Status never regresses; illegal steps raise PeriodTransitionError.
    - OPEN accepts every entry kind; CLOSED only the configured bypass kinds
      the period itself permits; LOCKED and FINALIZED nothing.
    - Periods of one tenant never overlap and period codes are unique.
    - A posting date must fall inside the period it is assigned to.

Failure modes:
    - PeriodNotFoundError: unknown period code.
    - PeriodClosedError: the period refuses the entry kind.
    - PeriodTransitionError: illegal status step.
    - PeriodOverlapError: duplicate code or overlapping date range.
    - PostingDateOutsidePeriodError: posting date outside the period.

Audit relevance:
    Creation and every transition are logged with period_code, from/to
    status and actor.  Refusals are logged at WARNING level.
"""

from __future__ import annotations

from datetime import date

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.period import (
    DEFAULT_CLOSED_PERIOD_BYPASS,
    AccountingPeriod,
    EntryKind,
    PeriodStatus,
    parse_period_status,
    period_bounds,
    posting_decision,
)
from ledger_kernel.exceptions import (
    PeriodClosedError,
    PeriodNotFoundError,
    PeriodOverlapError,
    PostingDateOutsidePeriodError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.locking import TenantLockRegistry
from ledger_kernel.store.base import LedgerStore

logger = get_logger("services.period")


class PeriodGate:
    """
    Period lifecycle service and posting gate.

    Contract:
        Returns immutable AccountingPeriod values.  Validation methods raise
        typed exceptions; lifecycle methods persist through the store.

    Guarantees:
        - Lifecycle changes run under the tenant lock, so a period cannot
          close between a posting's gate check and its commit.

    Non-goals:
        - Does NOT run closing procedures (closing entries are ordinary
          postings of kind CLOSING).
    """

    def __init__(
        self,
        store: LedgerStore,
        clock: Clock | None = None,
        locks: TenantLockRegistry | None = None,
        closed_period_bypass: frozenset[EntryKind] = DEFAULT_CLOSED_PERIOD_BYPASS,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._locks = locks or TenantLockRegistry()
        self._bypass = frozenset(EntryKind(k) for k in closed_period_bypass)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_period(self, tenant_id: str, period_code: str) -> AccountingPeriod:
        period = self._store.load_period(tenant_id, period_code)
        if period is None:
            raise PeriodNotFoundError(period_code)
        return period

    def list_periods(self, tenant_id: str) -> list[AccountingPeriod]:
        return self._store.load_periods(tenant_id)

    def period_for_date(self, tenant_id: str, day: date) -> AccountingPeriod | None:
        for period in self._store.load_periods(tenant_id):
            if period.contains(day):
                return period
        return None

    # ------------------------------------------------------------------
    # Gate
    # ------------------------------------------------------------------

    def can_post(self, period: AccountingPeriod, kind: EntryKind = EntryKind.STANDARD) -> bool:
        allowed, _ = posting_decision(period, EntryKind(kind), self._bypass)
        return allowed

    def validate_posting(
        self,
        tenant_id: str,
        period_code: str,
        posting_date: date,
        kind: EntryKind = EntryKind.STANDARD,
    ) -> AccountingPeriod:
        """
        Return the period if an entry of ``kind`` dated ``posting_date`` may post.

        Raises:
            PeriodNotFoundError: Unknown period.
            PostingDateOutsidePeriodError: posting_date outside the period.
            PeriodClosedError: The period refuses the entry kind.
        """
        period = self.get_period(tenant_id, period_code)
        if not period.contains(posting_date):
            raise PostingDateOutsidePeriodError(
                period_code, posting_date, period.start_date, period.end_date
            )
        allowed, reason = posting_decision(period, EntryKind(kind), self._bypass)
        if not allowed:
            logger.warning(
                "period_posting_refused",
                extra={
                    "period_code": period_code,
                    "status": period.status.value,
                    "entry_kind": EntryKind(kind).value,
                    "reason": reason,
                },
            )
            raise PeriodClosedError(period_code, period.status.value, EntryKind(kind).value)
        return period

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_period(
        self,
        tenant_id: str,
        period_code: str,
        start_date: date | None = None,
        end_date: date | None = None,
        allows_adjustments: bool = False,
        allows_closing_entries: bool = True,
        actor_id: str | None = None,
    ) -> AccountingPeriod:
        """
        Create a new OPEN period.

        Dates default to those implied by a ``YYYY-MM`` / ``YYYY-Qn`` /
        ``YYYY`` code.

        Raises:
            ValidationError: Bad code or date range.
            PeriodOverlapError: Code taken or dates overlap another period.
        """
        if start_date is None or end_date is None:
            derived_start, derived_end = period_bounds(period_code)
            start_date = start_date or derived_start
            end_date = end_date or derived_end

        period = AccountingPeriod(
            tenant_id=tenant_id,
            period_code=period_code,
            start_date=start_date,
            end_date=end_date,
            allows_adjustments=allows_adjustments,
            allows_closing_entries=allows_closing_entries,
        )

        with self._locks.hold(tenant_id):
            for existing in self._store.load_periods(tenant_id):
                if existing.period_code == period_code or existing.overlaps(period):
                    raise PeriodOverlapError(period_code, existing.period_code)
            self._store.save_period(period)

        logger.info(
            "period_created",
            extra={
                "period_code": period_code,
                "start_date": str(start_date),
                "end_date": str(end_date),
                "actor_id": actor_id,
            },
        )
        return period

    def transition(
        self,
        tenant_id: str,
        period_code: str,
        new_status: PeriodStatus | str,
        actor_id: str | None = None,
    ) -> AccountingPeriod:
        """
        Move a period forward in its lifecycle.

        Raises:
            PeriodNotFoundError: Unknown period.
            PeriodTransitionError: Illegal step (including any regression).
            ValidationError: new_status is not a period status.
        """
        target = parse_period_status(new_status, "new_status")
        with self._locks.hold(tenant_id):
            period = self.get_period(tenant_id, period_code)
            updated = period.transition_to(target, self._clock.now())
            self._store.save_period(updated)

        logger.info(
            "period_transitioned",
            extra={
                "period_code": period_code,
                "from_status": period.status.value,
                "to_status": target.value,
                "actor_id": actor_id,
            },
        )
        return updated

    def close_period(self, tenant_id: str, period_code: str, actor_id: str | None = None) -> AccountingPeriod:
        return self.transition(tenant_id, period_code, PeriodStatus.CLOSED, actor_id)

    def lock_period(self, tenant_id: str, period_code: str, actor_id: str | None = None) -> AccountingPeriod:
        return self.transition(tenant_id, period_code, PeriodStatus.LOCKED, actor_id)

    def finalize_period(self, tenant_id: str, period_code: str, actor_id: str | None = None) -> AccountingPeriod:
        return self.transition(tenant_id, period_code, PeriodStatus.FINALIZED, actor_id)
