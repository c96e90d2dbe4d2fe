"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for posted journal entries and their lines.
Architecture position: Kernel > Models.  May import from db/base.py only.
Invariants enforced:
    - (tenant_id, entry_id) is unique: the duplicate-entry guarantee holds
      at the database level even if the service check is bypassed.
    - (tenant_id, sequence) is unique: sequence is the per-tenant append
      order that replay folds over.
    - Line amounts are integer minor units; exchange rates are exact text.
Audit relevance:
    Rows are append-only.  The single permitted update is the one-time
    reversed_by / status change on the original of a reversal.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, DecimalText, UUIDString


class JournalEntryModel(Base):
    """Posted journal entry header."""

    __tablename__ = "ledger_journal_entries"
    __table_args__ = (
        UniqueConstraint("tenant_id", "entry_id", name="uq_ledger_entry_id"),
        UniqueConstraint("tenant_id", "sequence", name="uq_ledger_entry_sequence"),
        Index("idx_ledger_entry_date", "tenant_id", "posting_date"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    entry_id: Mapped[str] = mapped_column(String(68), nullable=False)
    sequence: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reference: Mapped[str] = mapped_column(String(68), nullable=False)
    description: Mapped[str] = mapped_column(String(1100), nullable=False)
    posting_date: Mapped[date] = mapped_column(Date, nullable=False)
    accounting_period: Mapped[str] = mapped_column(String(64), nullable=False)
    posted_by: Mapped[str] = mapped_column(String(64), nullable=False)
    base_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    posted_at: Mapped[datetime] = mapped_column(nullable=False)
    reversal_of: Mapped[str | None] = mapped_column(String(68), nullable=True)
    reversed_by: Mapped[str | None] = mapped_column(String(68), nullable=True)
    reversal_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    lines: Mapped[list["JournalLineModel"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalLineModel.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<JournalEntryModel {self.tenant_id}/{self.entry_id} #{self.sequence}>"


class JournalLineModel(Base):
    """One debit or credit line of a posted entry."""

    __tablename__ = "ledger_journal_lines"
    __table_args__ = (
        UniqueConstraint("journal_entry_id", "line_number", name="uq_ledger_line_number"),
        Index("idx_ledger_line_account", "account_code"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_journal_entries.id"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    account_code: Mapped[str] = mapped_column(String(20), nullable=False)
    side: Mapped[str] = mapped_column(String(10), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    base_amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    exchange_rate: Mapped[Decimal | None] = mapped_column(DecimalText(), nullable=True)
    memo: Mapped[str | None] = mapped_column(String(500), nullable=True)

    entry: Mapped[JournalEntryModel] = relationship(back_populates="lines")
