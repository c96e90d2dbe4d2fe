"""Services for the ledger kernel (imperative shell)."""

from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.integrity_service import IntegrityService
from ledger_kernel.services.journal_engine import JournalEngine
from ledger_kernel.services.ledger_service import (
    LedgerService,
    PostingResult,
    PostingStatus,
)
from ledger_kernel.services.locking import TenantLockRegistry
from ledger_kernel.services.period_service import PeriodGate
from ledger_kernel.services.reporting_service import FinancialReportingService

__all__ = [
    "AccountService",
    "FinancialReportingService",
    "IntegrityService",
    "JournalEngine",
    "LedgerService",
    "PeriodGate",
    "PostingResult",
    "PostingStatus",
    "TenantLockRegistry",
]
