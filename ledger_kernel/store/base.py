"""
Ledger store -- the persistence boundary of the ledger kernel.

Responsibility:
    Defines the abstract ``LedgerStore`` every backend implements and the
    ``LedgerSnapshot`` read model handed to reports.  Services depend on this
    interface only; they never see sessions, rows or dictionaries.

Architecture position:
    Kernel > Store.  May import from domain/ and exceptions.  Concrete
    backends live beside it (memory.py, sql.py).

Invariants enforced:
    - ``commit_posting`` is atomic: updated accounts, the new entry and the
      optional reversal link on the original are stored together or not at
      all.
    - Journal history is append-only and returned in append order.
    - ``(tenant_id, entry_id)`` is unique; a second append raises
      DuplicateEntryError.
    - ``snapshot`` is a consistent point-in-time copy of one tenant.

Failure modes:
    - DuplicateEntryError on a reused entry id.
    - StoreError on backend failures or unknown accounts in a commit.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

from ledger_kernel.domain.account import Account
from ledger_kernel.domain.journal import JournalEntry
from ledger_kernel.domain.period import AccountingPeriod
from ledger_kernel.domain.replay import entries_up_to


@dataclass(frozen=True)
class LedgerSnapshot:
    """
    One tenant's accounts, history and periods as of a single instant.

    ``entries`` are in append order.
    """

    tenant_id: str
    accounts: Mapping[str, Account]
    entries: tuple[JournalEntry, ...]
    periods: tuple[AccountingPeriod, ...] = ()
    taken_at: datetime | None = field(default=None, compare=False)

    def entry(self, entry_id: str) -> JournalEntry | None:
        for entry in self.entries:
            if entry.entry_id == entry_id:
                return entry
        return None

    def period(self, period_code: str) -> AccountingPeriod | None:
        for period in self.periods:
            if period.period_code == period_code:
                return period
        return None

    def entries_up_to(self, up_to_date: date | None) -> list[JournalEntry]:
        return entries_up_to(self.entries, up_to_date)


class LedgerStore(ABC):
    """
    Abstract ledger persistence.

    Contract:
        All objects crossing this boundary are immutable domain values.
        Implementations must be safe to call from multiple threads.

    Non-goals:
        - Does NOT validate accounting rules; the journal engine does that
          before calling ``commit_posting``.
        - Does NOT serialize writers of one tenant; the tenant lock does.
    """

    # -- accounts ----------------------------------------------------------

    @abstractmethod
    def load_account(self, tenant_id: str, account_code: str) -> Account | None:
        ...

    @abstractmethod
    def load_accounts(self, tenant_id: str) -> list[Account]:
        """All accounts of the tenant, sorted by code."""

    @abstractmethod
    def save_accounts(self, accounts: Sequence[Account], actor: str = "system") -> None:
        """Insert or replace a batch of accounts atomically."""

    # -- journal -----------------------------------------------------------

    @abstractmethod
    def append_journal_entry(self, entry: JournalEntry) -> None:
        """
        Append a posted entry without touching balances.

        Used for history import.  Normal posting goes through commit_posting.

        Raises:
            DuplicateEntryError: If the entry id is taken.
            StoreError: If the entry has not been posted.
        """

    @abstractmethod
    def load_journal_entry(self, tenant_id: str, entry_id: str) -> JournalEntry | None:
        ...

    @abstractmethod
    def load_journal_history(
        self, tenant_id: str, up_to_date: date | None = None
    ) -> list[JournalEntry]:
        """Entries in append order, optionally only those dated on or before up_to_date."""

    @abstractmethod
    def commit_posting(
        self,
        tenant_id: str,
        accounts: Sequence[Account],
        entry: JournalEntry,
        reversed_original: JournalEntry | None = None,
    ) -> None:
        """
        Atomically store updated accounts, append ``entry`` and, for a
        reversal, replace the original with its REVERSED version.

        Raises:
            DuplicateEntryError: If entry.entry_id is taken.
            StoreError: If an account does not exist or the backend fails.
        """

    # -- periods -----------------------------------------------------------

    @abstractmethod
    def load_period(self, tenant_id: str, period_code: str) -> AccountingPeriod | None:
        ...

    @abstractmethod
    def load_periods(self, tenant_id: str) -> list[AccountingPeriod]:
        """All periods of the tenant, ordered by start date."""

    @abstractmethod
    def save_period(self, period: AccountingPeriod) -> None:
        """Insert or replace one period."""

    # -- reads -------------------------------------------------------------

    @abstractmethod
    def snapshot(self, tenant_id: str) -> LedgerSnapshot:
        ...
