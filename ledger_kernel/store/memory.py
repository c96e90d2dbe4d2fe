"""
In-memory ledger store.

Keeps every tenant's immutable domain objects in dictionaries behind one
re-entrant lock.  Because stored values are frozen, a snapshot is a shallow
copy taken under the lock.  Used by tests and embedded callers; the SQL
store is the durable counterpart.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date

from ledger_kernel.domain.account import Account
from ledger_kernel.domain.journal import JournalEntry, JournalEntryStatus
from ledger_kernel.domain.period import AccountingPeriod
from ledger_kernel.domain.replay import entries_up_to
from ledger_kernel.exceptions import DuplicateEntryError, StoreError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.store.base import LedgerSnapshot, LedgerStore

logger = get_logger("store.memory")


@dataclass
class _TenantLedger:
    accounts: dict[str, Account] = field(default_factory=dict)
    entries: list[str] = field(default_factory=list)
    entry_index: dict[str, JournalEntry] = field(default_factory=dict)
    periods: dict[str, AccountingPeriod] = field(default_factory=dict)


class InMemoryLedgerStore(LedgerStore):
    """Thread-safe dictionary-backed LedgerStore."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tenants: dict[str, _TenantLedger] = {}

    def _tenant(self, tenant_id: str) -> _TenantLedger:
        ledger = self._tenants.get(tenant_id)
        if ledger is None:
            ledger = self._tenants[tenant_id] = _TenantLedger()
        return ledger

    # -- accounts ----------------------------------------------------------

    def load_account(self, tenant_id: str, account_code: str) -> Account | None:
        with self._lock:
            return self._tenant(tenant_id).accounts.get(account_code)

    def load_accounts(self, tenant_id: str) -> list[Account]:
        with self._lock:
            accounts = self._tenant(tenant_id).accounts
            return [accounts[code] for code in sorted(accounts)]

    def save_accounts(self, accounts: Sequence[Account], actor: str = "system") -> None:
        with self._lock:
            for account in accounts:
                self._tenant(account.tenant_id).accounts[account.account_code] = account

    # -- journal -----------------------------------------------------------

    def _check_appendable(self, ledger: _TenantLedger, entry: JournalEntry) -> None:
        if entry.entry_id in ledger.entry_index:
            raise DuplicateEntryError(entry.entry_id, entry.tenant_id)
        if entry.status == JournalEntryStatus.PENDING or entry.posted_at is None:
            raise StoreError(f"Entry {entry.entry_id} has not been posted")

    def append_journal_entry(self, entry: JournalEntry) -> None:
        with self._lock:
            ledger = self._tenant(entry.tenant_id)
            self._check_appendable(ledger, entry)
            ledger.entries.append(entry.entry_id)
            ledger.entry_index[entry.entry_id] = entry

    def load_journal_entry(self, tenant_id: str, entry_id: str) -> JournalEntry | None:
        with self._lock:
            return self._tenant(tenant_id).entry_index.get(entry_id)

    def load_journal_history(
        self, tenant_id: str, up_to_date: date | None = None
    ) -> list[JournalEntry]:
        with self._lock:
            ledger = self._tenant(tenant_id)
            history = [ledger.entry_index[entry_id] for entry_id in ledger.entries]
        return entries_up_to(history, up_to_date)

    def commit_posting(
        self,
        tenant_id: str,
        accounts: Sequence[Account],
        entry: JournalEntry,
        reversed_original: JournalEntry | None = None,
    ) -> None:
        with self._lock:
            ledger = self._tenant(tenant_id)
            # every check runs before the first write
            self._check_appendable(ledger, entry)
            for account in accounts:
                if account.account_code not in ledger.accounts:
                    raise StoreError(f"Account {account.account_code} does not exist")
            if reversed_original is not None and reversed_original.entry_id not in ledger.entry_index:
                raise StoreError(f"Entry {reversed_original.entry_id} does not exist")

            for account in accounts:
                ledger.accounts[account.account_code] = account
            ledger.entries.append(entry.entry_id)
            ledger.entry_index[entry.entry_id] = entry
            if reversed_original is not None:
                ledger.entry_index[reversed_original.entry_id] = reversed_original

        logger.debug(
            "posting_committed",
            extra={"entry_id": entry.entry_id, "account_count": len(accounts)},
        )

    # -- periods -----------------------------------------------------------

    def load_period(self, tenant_id: str, period_code: str) -> AccountingPeriod | None:
        with self._lock:
            return self._tenant(tenant_id).periods.get(period_code)

    def load_periods(self, tenant_id: str) -> list[AccountingPeriod]:
        with self._lock:
            periods = list(self._tenant(tenant_id).periods.values())
        return sorted(periods, key=lambda p: (p.start_date, p.period_code))

    def save_period(self, period: AccountingPeriod) -> None:
        with self._lock:
            self._tenant(period.tenant_id).periods[period.period_code] = period

    # -- reads -------------------------------------------------------------

    def snapshot(self, tenant_id: str) -> LedgerSnapshot:
        with self._lock:
            ledger = self._tenant(tenant_id)
            return LedgerSnapshot(
                tenant_id=tenant_id,
                accounts=dict(ledger.accounts),
                entries=tuple(ledger.entry_index[e] for e in ledger.entries),
                periods=tuple(sorted(ledger.periods.values(), key=lambda p: (p.start_date, p.period_code))),
            )
