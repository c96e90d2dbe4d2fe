"""
Module: ledger_kernel.models.period
Responsibility: ORM persistence for accounting periods and their status.
Architecture position: Kernel > Models.  May import from db/base.py only.
Invariants enforced:
    - (tenant_id, period_code) is unique.
    - status only moves forward; the period gate is the only writer.
"""

from datetime import date, datetime

from sqlalchemy import Boolean, Date, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class AccountingPeriodModel(Base):
    __tablename__ = "ledger_periods"
    __table_args__ = (
        UniqueConstraint("tenant_id", "period_code", name="uq_ledger_period_code"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    period_code: Mapped[str] = mapped_column(String(32), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    allows_adjustments: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    allows_closing_entries: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<AccountingPeriodModel {self.tenant_id}/{self.period_code}: {self.status}>"
