"""
Pytest fixtures for the ledger kernel test suite.

Provides:
- Structured logging for the session, plus a ``captured_logs`` capture
- A DeterministicClock
- In-memory and SQLite-backed (SQLAlchemy) ledger stores
- A ready LedgerService with a standard chart and open periods
- Command builders for journal entries and reversals

SQLite runs in memory through StaticPool, so no database server is needed.
"""

import json
import logging
from datetime import UTC, date, datetime
from decimal import Decimal
from io import StringIO

import pytest

from ledger_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.domain.account import AccountType, SpecialAccountType
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.commands import (
    CreateAccountCommand,
    LineSpec,
    PostJournalEntryCommand,
    ReverseJournalEntryCommand,
)
from ledger_kernel.domain.fx import resolve_lines
from ledger_kernel.domain.journal import JournalEntry
from ledger_kernel.domain.period import EntryKind
from ledger_kernel.domain.values import Currency
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.services.ledger_service import LedgerService
from ledger_kernel.settings import LedgerSettings
from ledger_kernel.store.memory import InMemoryLedgerStore
from ledger_kernel.store.sql import SqlAlchemyLedgerStore

TENANT = "acme"
ACTOR = "alice"

# (code, name, type, special type)
STANDARD_CHART = (
    ("1000", "Cash", AccountType.ASSET, None),
    ("1100", "Accounts Receivable", AccountType.ASSET, SpecialAccountType.CONTROL_AR),
    ("1500", "Equipment", AccountType.ASSET, None),
    ("2000", "Accounts Payable", AccountType.LIABILITY, SpecialAccountType.CONTROL_AP),
    ("2500", "Bank Loan", AccountType.LIABILITY, None),
    ("3000", "Owner Capital", AccountType.EQUITY, None),
    ("4000", "Sales Revenue", AccountType.REVENUE, None),
    ("5000", "Operating Expenses", AccountType.EXPENSE, None),
)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "sqlite: test runs against the SQLAlchemy store")
    config.addinivalue_line("markers", "slow: threaded or property-based test")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.post_journal_entry(...)
            assert any(r["message"] == "journal_entry_posted" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock and stores
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 1, 15, 9, 0, 0, tzinfo=UTC))


@pytest.fixture
def memory_store():
    return InMemoryLedgerStore()


@pytest.fixture
def sqlite_store():
    """SqlAlchemyLedgerStore over a fresh in-memory SQLite database."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield SqlAlchemyLedgerStore(get_session_factory())
    reset_engine()


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request):
    """Each store implementation in turn."""
    if request.param == "sqlite":
        return request.getfixturevalue("sqlite_store")
    return request.getfixturevalue("memory_store")


# =============================================================================
# Ledger
# =============================================================================


def _account_commands(tenant_id: str) -> list[CreateAccountCommand]:
    return [
        CreateAccountCommand(
            tenant_id=tenant_id,
            account_code=code,
            account_name=name,
            account_type=account_type,
            special_account_type=special,
            created_by=ACTOR,
        )
        for code, name, account_type, special in STANDARD_CHART
    ]


@pytest.fixture
def ledger_factory(memory_store, clock):
    """
    Build a LedgerService with the standard chart and periods 2024-01 and
    2024-02 (both OPEN) for ``tenant_id``.
    """

    def _build(store=None, settings: LedgerSettings | None = None, tenant_id: str = TENANT):
        service = LedgerService(store or memory_store, clock=clock, settings=settings)
        service.create_accounts(_account_commands(tenant_id))
        service.create_period(tenant_id, "2024-01", allows_adjustments=True)
        service.create_period(tenant_id, "2024-02")
        return service

    return _build


@pytest.fixture
def ledger(ledger_factory):
    return ledger_factory()


@pytest.fixture
def sql_ledger(ledger_factory, sqlite_store):
    return ledger_factory(store=sqlite_store)


@pytest.fixture
def make_entry():
    """
    Build a PostJournalEntryCommand.

    ``debits`` / ``credits`` map account codes to amounts; ``lines`` takes
    explicit LineSpecs instead (FX, memos).
    """

    def _make(
        entry_id: str,
        debits: dict | None = None,
        credits: dict | None = None,
        *,
        lines: tuple[LineSpec, ...] | None = None,
        tenant_id: str = TENANT,
        posting_date: date = date(2024, 1, 15),
        period: str = "2024-01",
        kind: EntryKind = EntryKind.STANDARD,
        description: str = "Test entry",
        reference: str | None = None,
    ) -> PostJournalEntryCommand:
        if lines is None:
            lines = tuple(
                [LineSpec(code, debit=Decimal(str(amount))) for code, amount in (debits or {}).items()]
                + [LineSpec(code, credit=Decimal(str(amount))) for code, amount in (credits or {}).items()]
            )
        return PostJournalEntryCommand(
            tenant_id=tenant_id,
            entry_id=entry_id,
            lines=lines,
            reference=reference or f"REF-{entry_id}",
            description=description,
            posting_date=posting_date,
            accounting_period=period,
            posted_by=ACTOR,
            kind=kind,
        )

    return _make


@pytest.fixture
def make_reversal():
    def _make(entry_id: str, reason: str = "Entered in error", *, tenant_id: str = TENANT, **kwargs):
        return ReverseJournalEntryCommand(
            tenant_id=tenant_id,
            entry_id=entry_id,
            reason=reason,
            reversed_by=ACTOR,
            **kwargs,
        )

    return _make


@pytest.fixture
def balance_of():
    """Stored balance of one account as a Decimal."""

    def _balance(service: LedgerService, code: str, tenant_id: str = TENANT) -> Decimal:
        return service.get_account(tenant_id, code).balance.amount

    return _balance


def build_posted_entry(
    entry_id: str,
    lines: list[LineSpec],
    posted_at: datetime,
    *,
    tenant_id: str = TENANT,
    period: str = "2024-01",
    posting_date: date = date(2024, 1, 15),
    **kwargs,
) -> JournalEntry:
    """A POSTED JournalEntry built without the engine, for tampering with stores directly."""
    return JournalEntry(
        tenant_id=tenant_id,
        entry_id=entry_id,
        lines=resolve_lines(lines, Currency("USD")),
        reference=f"REF-{entry_id}",
        description="Injected entry",
        posting_date=posting_date,
        accounting_period=period,
        posted_by=ACTOR,
        base_currency=Currency("USD"),
        **kwargs,
    ).mark_posted(posted_at)
