"""SQLAlchemy ORM models.  Importing this package registers every ledger table."""

from ledger_kernel.models.account import AccountModel
from ledger_kernel.models.journal import JournalEntryModel, JournalLineModel
from ledger_kernel.models.period import AccountingPeriodModel

__all__ = [
    "AccountModel",
    "AccountingPeriodModel",
    "JournalEntryModel",
    "JournalLineModel",
]
