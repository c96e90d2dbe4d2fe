"""
Pure domain layer.

Value objects, accounts, journal entries, periods, commands and report
DTOs with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from ledger_kernel.domain.account import (
    Account,
    AccountType,
    CompanionLinks,
    Polarity,
    SpecialAccountType,
)
from ledger_kernel.domain.chart import ChartOfAccounts, OrphanedLink
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.commands import (
    CreateAccountCommand,
    LineSpec,
    PostJournalEntryCommand,
    ReverseJournalEntryCommand,
)
from ledger_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from ledger_kernel.domain.depreciation import DepreciableAssetBundle
from ledger_kernel.domain.journal import JournalEntry, JournalEntryStatus, JournalLine, LineSide
from ledger_kernel.domain.period import AccountingPeriod, EntryKind, PeriodStatus
from ledger_kernel.domain.values import Currency, ExchangeRate, Money

__all__ = [
    "Account",
    "AccountType",
    "AccountingPeriod",
    "ChartOfAccounts",
    "Clock",
    "CompanionLinks",
    "CreateAccountCommand",
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DepreciableAssetBundle",
    "DeterministicClock",
    "EntryKind",
    "ExchangeRate",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "LineSide",
    "LineSpec",
    "Money",
    "OrphanedLink",
    "PeriodStatus",
    "Polarity",
    "PostJournalEntryCommand",
    "ReverseJournalEntryCommand",
    "SpecialAccountType",
    "SystemClock",
]
