"""
SQLAlchemy ledger store.

Responsibility:
    Durable LedgerStore over the ORM models in ledger_kernel.models.  Maps
    rows to immutable domain values and back; every public method runs in
    its own ``session_scope`` transaction.

Invariants enforced:
    - commit_posting locks the touched account rows in account-code order
      (``SELECT ... ORDER BY account_code FOR UPDATE``) so concurrent
      writers on a shared database acquire row locks in the same order.
    - The unique constraint on (tenant_id, entry_id) backs the duplicate
      check; a violation surfaces as DuplicateEntryError.
    - Amounts round-trip exactly through integer minor units.

Failure modes:
    - DuplicateEntryError on a reused entry id.
    - StoreError wrapping any other SQLAlchemy failure.  Domain errors raised
      while mapping rows (a corrupted row failing validation) propagate as-is.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError as SAIntegrityError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.db.engine import session_scope
from ledger_kernel.domain.account import Account, CompanionLinks
from ledger_kernel.domain.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.domain.period import AccountingPeriod
from ledger_kernel.domain.values import Currency, Money
from ledger_kernel.exceptions import DuplicateEntryError, StoreError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models import (
    AccountingPeriodModel,
    AccountModel,
    JournalEntryModel,
    JournalLineModel,
)
from ledger_kernel.store.base import LedgerSnapshot, LedgerStore

logger = get_logger("store.sql")


# =============================================================================
# Row <-> domain mapping
# =============================================================================


def _account_from_row(row: AccountModel) -> Account:
    return Account(
        tenant_id=row.tenant_id,
        account_code=row.account_code,
        account_name=row.account_name,
        account_type=row.account_type,
        balance=Money.from_minor_units(row.balance_minor, row.currency),
        created_at=row.created_at,
        updated_at=row.updated_at,
        special_account_type=row.special_account_type,
        parent_account_code=row.parent_account_code,
        is_active=row.is_active,
        posting_allowed=row.posting_allowed,
        companion_links=CompanionLinks(
            accumulated_depreciation_code=row.accumulated_depreciation_code,
            depreciation_expense_code=row.depreciation_expense_code,
            allowance_account_code=row.allowance_account_code,
        ),
        status_changed_at=row.status_changed_at,
        description=row.description,
    )


def _copy_account_to_row(account: Account, row: AccountModel) -> None:
    row.tenant_id = account.tenant_id
    row.account_code = account.account_code
    row.account_name = account.account_name
    row.account_type = account.account_type.value
    row.special_account_type = (
        account.special_account_type.value if account.special_account_type else None
    )
    row.parent_account_code = account.parent_account_code
    row.is_active = account.is_active
    row.posting_allowed = account.posting_allowed
    row.currency = account.balance.currency.code
    row.balance_minor = account.balance.minor_units
    row.accumulated_depreciation_code = account.companion_links.accumulated_depreciation_code
    row.depreciation_expense_code = account.companion_links.depreciation_expense_code
    row.allowance_account_code = account.companion_links.allowance_account_code
    row.status_changed_at = account.status_changed_at
    row.description = account.description
    row.created_at = account.created_at
    row.updated_at = account.updated_at


def _entry_from_row(row: JournalEntryModel) -> JournalEntry:
    base = Currency(row.base_currency)
    lines = tuple(
        JournalLine(
            line_number=line.line_number,
            account_code=line.account_code,
            side=line.side,
            amount=Money.from_minor_units(line.amount_minor, line.currency),
            base_amount=Money.from_minor_units(line.base_amount_minor, base),
            exchange_rate=line.exchange_rate,
            memo=line.memo,
        )
        for line in row.lines
    )
    return JournalEntry(
        tenant_id=row.tenant_id,
        entry_id=row.entry_id,
        lines=lines,
        reference=row.reference,
        description=row.description,
        posting_date=row.posting_date,
        accounting_period=row.accounting_period,
        posted_by=row.posted_by,
        base_currency=base,
        kind=row.kind,
        status=row.status,
        posted_at=row.posted_at,
        reversal_of=row.reversal_of,
        reversed_by=row.reversed_by,
        reversal_reason=row.reversal_reason,
    )


def _entry_to_row(entry: JournalEntry, sequence: int) -> JournalEntryModel:
    row = JournalEntryModel(
        tenant_id=entry.tenant_id,
        entry_id=entry.entry_id,
        sequence=sequence,
        reference=entry.reference,
        description=entry.description,
        posting_date=entry.posting_date,
        accounting_period=entry.accounting_period,
        posted_by=entry.posted_by,
        base_currency=entry.base_currency.code,
        kind=entry.kind.value,
        status=entry.status.value,
        posted_at=entry.posted_at,
        reversal_of=entry.reversal_of,
        reversed_by=entry.reversed_by,
        reversal_reason=entry.reversal_reason,
    )
    row.lines = [
        JournalLineModel(
            line_number=line.line_number,
            account_code=line.account_code,
            side=line.side.value,
            currency=line.amount.currency.code,
            amount_minor=line.amount.minor_units,
            base_amount_minor=line.base_amount.minor_units,
            exchange_rate=line.exchange_rate,
            memo=line.memo,
        )
        for line in entry.lines
    ]
    return row


def _period_from_row(row: AccountingPeriodModel) -> AccountingPeriod:
    return AccountingPeriod(
        tenant_id=row.tenant_id,
        period_code=row.period_code,
        start_date=row.start_date,
        end_date=row.end_date,
        status=row.status,
        allows_adjustments=row.allows_adjustments,
        allows_closing_entries=row.allows_closing_entries,
        closed_at=row.closed_at,
    )


# =============================================================================
# Store
# =============================================================================


class SqlAlchemyLedgerStore(LedgerStore):
    """
    LedgerStore backed by a relational database through SQLAlchemy.

    Contract:
        Takes a session factory, never a session: each call opens, commits
        and closes its own transaction, so the store is safe to share
        across threads.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def _scope(self):
        return session_scope(self._session_factory)

    # -- accounts ----------------------------------------------------------

    def load_account(self, tenant_id: str, account_code: str) -> Account | None:
        with self._scope() as session:
            row = session.execute(
                select(AccountModel).where(
                    AccountModel.tenant_id == tenant_id,
                    AccountModel.account_code == account_code,
                )
            ).scalar_one_or_none()
            return _account_from_row(row) if row is not None else None

    def load_accounts(self, tenant_id: str) -> list[Account]:
        with self._scope() as session:
            return self._accounts(session, tenant_id)

    def _accounts(self, session: Session, tenant_id: str) -> list[Account]:
        rows = session.execute(
            select(AccountModel)
            .where(AccountModel.tenant_id == tenant_id)
            .order_by(AccountModel.account_code)
        ).scalars()
        return [_account_from_row(row) for row in rows]

    def save_accounts(self, accounts: Sequence[Account], actor: str = "system") -> None:
        try:
            with self._scope() as session:
                for account in accounts:
                    row = session.execute(
                        select(AccountModel).where(
                            AccountModel.tenant_id == account.tenant_id,
                            AccountModel.account_code == account.account_code,
                        )
                    ).scalar_one_or_none()
                    if row is None:
                        row = AccountModel(created_by=actor)
                        session.add(row)
                    _copy_account_to_row(account, row)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to save accounts: {e}") from e

    # -- journal -----------------------------------------------------------

    def _next_sequence(self, session: Session, tenant_id: str) -> int:
        current = session.execute(
            select(func.coalesce(func.max(JournalEntryModel.sequence), 0)).where(
                JournalEntryModel.tenant_id == tenant_id
            )
        ).scalar_one()
        return int(current) + 1

    def _entry_exists(self, session: Session, tenant_id: str, entry_id: str) -> bool:
        return session.execute(
            select(JournalEntryModel.id).where(
                JournalEntryModel.tenant_id == tenant_id,
                JournalEntryModel.entry_id == entry_id,
            )
        ).first() is not None

    def _append(self, session: Session, entry: JournalEntry) -> None:
        if entry.status == JournalEntryStatus.PENDING or entry.posted_at is None:
            raise StoreError(f"Entry {entry.entry_id} has not been posted")
        if self._entry_exists(session, entry.tenant_id, entry.entry_id):
            raise DuplicateEntryError(entry.entry_id, entry.tenant_id)
        session.add(_entry_to_row(entry, self._next_sequence(session, entry.tenant_id)))
        session.flush()

    def append_journal_entry(self, entry: JournalEntry) -> None:
        try:
            with self._scope() as session:
                self._append(session, entry)
        except SAIntegrityError as e:
            raise DuplicateEntryError(entry.entry_id, entry.tenant_id) from e
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to append entry {entry.entry_id}: {e}") from e

    def load_journal_entry(self, tenant_id: str, entry_id: str) -> JournalEntry | None:
        with self._scope() as session:
            row = session.execute(
                select(JournalEntryModel).where(
                    JournalEntryModel.tenant_id == tenant_id,
                    JournalEntryModel.entry_id == entry_id,
                )
            ).scalar_one_or_none()
            return _entry_from_row(row) if row is not None else None

    def load_journal_history(
        self, tenant_id: str, up_to_date: date | None = None
    ) -> list[JournalEntry]:
        with self._scope() as session:
            return self._history(session, tenant_id, up_to_date)

    def _history(
        self, session: Session, tenant_id: str, up_to_date: date | None = None
    ) -> list[JournalEntry]:
        query = select(JournalEntryModel).where(JournalEntryModel.tenant_id == tenant_id)
        if up_to_date is not None:
            query = query.where(JournalEntryModel.posting_date <= up_to_date)
        rows = session.execute(query.order_by(JournalEntryModel.sequence)).scalars()
        return [_entry_from_row(row) for row in rows]

    def commit_posting(
        self,
        tenant_id: str,
        accounts: Sequence[Account],
        entry: JournalEntry,
        reversed_original: JournalEntry | None = None,
    ) -> None:
        codes = sorted(a.account_code for a in accounts)
        try:
            with self._scope() as session:
                rows = session.execute(
                    select(AccountModel)
                    .where(
                        AccountModel.tenant_id == tenant_id,
                        AccountModel.account_code.in_(codes),
                    )
                    .order_by(AccountModel.account_code)
                    .with_for_update()
                ).scalars().all()
                by_code = {row.account_code: row for row in rows}
                for account in accounts:
                    row = by_code.get(account.account_code)
                    if row is None:
                        raise StoreError(f"Account {account.account_code} does not exist")
                    _copy_account_to_row(account, row)

                if reversed_original is not None:
                    original = session.execute(
                        select(JournalEntryModel)
                        .where(
                            JournalEntryModel.tenant_id == tenant_id,
                            JournalEntryModel.entry_id == reversed_original.entry_id,
                        )
                        .with_for_update()
                    ).scalar_one_or_none()
                    if original is None:
                        raise StoreError(f"Entry {reversed_original.entry_id} does not exist")
                    original.status = reversed_original.status.value
                    original.reversed_by = reversed_original.reversed_by

                self._append(session, entry)
        except SAIntegrityError as e:
            raise DuplicateEntryError(entry.entry_id, tenant_id) from e
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to commit entry {entry.entry_id}: {e}") from e

        logger.debug(
            "posting_committed",
            extra={"entry_id": entry.entry_id, "account_count": len(accounts)},
        )

    # -- periods -----------------------------------------------------------

    def load_period(self, tenant_id: str, period_code: str) -> AccountingPeriod | None:
        with self._scope() as session:
            row = session.execute(
                select(AccountingPeriodModel).where(
                    AccountingPeriodModel.tenant_id == tenant_id,
                    AccountingPeriodModel.period_code == period_code,
                )
            ).scalar_one_or_none()
            return _period_from_row(row) if row is not None else None

    def load_periods(self, tenant_id: str) -> list[AccountingPeriod]:
        with self._scope() as session:
            return self._periods(session, tenant_id)

    def _periods(self, session: Session, tenant_id: str) -> list[AccountingPeriod]:
        rows = session.execute(
            select(AccountingPeriodModel)
            .where(AccountingPeriodModel.tenant_id == tenant_id)
            .order_by(AccountingPeriodModel.start_date, AccountingPeriodModel.period_code)
        ).scalars()
        return [_period_from_row(row) for row in rows]

    def save_period(self, period: AccountingPeriod) -> None:
        try:
            with self._scope() as session:
                row = session.execute(
                    select(AccountingPeriodModel).where(
                        AccountingPeriodModel.tenant_id == period.tenant_id,
                        AccountingPeriodModel.period_code == period.period_code,
                    )
                ).scalar_one_or_none()
                if row is None:
                    row = AccountingPeriodModel(
                        tenant_id=period.tenant_id, period_code=period.period_code
                    )
                    session.add(row)
                row.start_date = period.start_date
                row.end_date = period.end_date
                row.status = period.status.value
                row.allows_adjustments = period.allows_adjustments
                row.allows_closing_entries = period.allows_closing_entries
                row.closed_at = period.closed_at
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to save period {period.period_code}: {e}") from e

    # -- reads -------------------------------------------------------------

    def snapshot(self, tenant_id: str) -> LedgerSnapshot:
        with self._scope() as session:
            if session.get_bind().dialect.name == "postgresql":
                session.connection(execution_options={"isolation_level": "REPEATABLE READ"})
            accounts = self._accounts(session, tenant_id)
            return LedgerSnapshot(
                tenant_id=tenant_id,
                accounts={a.account_code: a for a in accounts},
                entries=tuple(self._history(session, tenant_id)),
                periods=tuple(self._periods(session, tenant_id)),
            )
