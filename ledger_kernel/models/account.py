"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts, one row per
    (tenant, account code), including the materialized running balance.
Architecture position: Kernel > Models.  May import from db/base.py only.
    Mapping to and from the domain Account lives in store/sql.py.
Invariants enforced:
    - (tenant_id, account_code) is unique.
    - balance_minor is an integer count of the currency's minor units;
      there is no float column anywhere in the ledger schema.
Audit relevance:
    status_changed_at records the last activation or posting-policy change
    so the exception report can spot postings that slipped past it.
"""

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class AccountModel(TrackedBase):
    """
    Chart-of-accounts row.

    Contract:
        balance_minor only changes together with the journal entry that
        explains it, inside one transaction.
    """

    __tablename__ = "ledger_accounts"
    __table_args__ = (
        UniqueConstraint("tenant_id", "account_code", name="uq_ledger_account_code"),
        Index("idx_ledger_account_tenant", "tenant_id"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    account_code: Mapped[str] = mapped_column(String(20), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_type: Mapped[str] = mapped_column(String(20), nullable=False)
    special_account_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    parent_account_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    posting_allowed: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    balance_minor: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    accumulated_depreciation_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    depreciation_expense_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    allowance_account_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    status_changed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<AccountModel {self.tenant_id}/{self.account_code}: {self.balance_minor}>"
