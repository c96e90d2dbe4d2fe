"""Ledger store interface and its in-memory and SQLAlchemy implementations."""

from ledger_kernel.store.base import LedgerSnapshot, LedgerStore
from ledger_kernel.store.memory import InMemoryLedgerStore
from ledger_kernel.store.sql import SqlAlchemyLedgerStore

__all__ = [
    "InMemoryLedgerStore",
    "LedgerSnapshot",
    "LedgerStore",
    "SqlAlchemyLedgerStore",
]
