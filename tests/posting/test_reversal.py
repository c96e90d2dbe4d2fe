"""
Reversal of posted journal entries.

Verifies:
- Reversal posts the mirror entry and restores every balance
- The original is linked to its reversal exactly once
- Reversal of a reversal, of an unknown entry, or twice is refused
- Target period resolution and the closed-period refusal
- A failed reversal changes nothing, including the original's link
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.journal import JournalEntryStatus, LineSide
from ledger_kernel.domain.period import EntryKind
from ledger_kernel.exceptions import EntryAlreadyReversedError, ReversalError
from ledger_kernel.services.ledger_service import PostingStatus

from conftest import TENANT


@pytest.fixture
def posted(ledger, make_entry):
    """A cash sale JE-1 of 1000.00 in 2024-01."""
    result = ledger.post_journal_entry(make_entry("JE-1", {"1000": "1000.00"}, {"4000": "1000.00"}))
    assert result.is_success
    return ledger


class TestReverse:
    def test_restores_balances(self, posted, make_reversal, balance_of):
        result = posted.reverse_journal_entry(make_reversal("JE-1"))

        assert result.status == PostingStatus.REVERSED
        assert balance_of(posted, "1000") == Decimal("0")
        assert balance_of(posted, "4000") == Decimal("0")
        assert posted.get_trial_balance(TENANT).is_balanced

    def test_mirror_entry(self, posted, make_reversal):
        reversal = posted.reverse_journal_entry(make_reversal("JE-1", "Customer cancelled")).entry
        assert reversal.entry_id == "REV-JE-1"
        assert reversal.kind == EntryKind.REVERSING
        assert reversal.reversal_of == "JE-1"
        assert reversal.reversal_reason == "Customer cancelled"
        assert reversal.posting_date == date(2024, 1, 15)
        assert reversal.accounting_period == "2024-01"
        assert [(l.account_code, l.side) for l in reversal.lines] == [
            ("1000", LineSide.CREDIT),
            ("4000", LineSide.DEBIT),
        ]

    def test_original_linked(self, posted, make_reversal):
        posted.reverse_journal_entry(make_reversal("JE-1"))
        original = posted.get_journal_entry(TENANT, "JE-1")
        assert original.reversed_by == "REV-JE-1"
        assert original.status == JournalEntryStatus.REVERSED
        # lines of the original are never rewritten
        assert original.lines[0].side == LineSide.DEBIT

    def test_custom_reversal_id(self, posted, make_reversal):
        result = posted.reverse_journal_entry(make_reversal("JE-1", reversal_entry_id="JE-1-R"))
        assert result.entry_id == "JE-1-R"
        assert posted.get_journal_entry(TENANT, "JE-1").reversed_by == "JE-1-R"

    def test_logs_reversal(self, posted, make_reversal, captured_logs):
        posted.reverse_journal_entry(make_reversal("JE-1"))
        records = [r for r in captured_logs() if r["message"] == "journal_entry_reversed"]
        assert records[0]["reversal_entry_id"] == "REV-JE-1"
        assert records[0]["entry_id"] == "JE-1"


class TestRefusals:
    def test_double_reversal(self, posted, make_reversal, balance_of):
        assert posted.reverse_journal_entry(make_reversal("JE-1")).is_success
        result = posted.reverse_journal_entry(make_reversal("JE-1", reversal_entry_id="REV-2"))
        assert result.status == PostingStatus.ALREADY_REVERSED
        assert isinstance(result.error, ReversalError)
        assert isinstance(result.error, EntryAlreadyReversedError)
        assert balance_of(posted, "1000") == Decimal("0")

    def test_reversing_a_reversal(self, posted, make_reversal):
        posted.reverse_journal_entry(make_reversal("JE-1"))
        result = posted.reverse_journal_entry(make_reversal("REV-JE-1"))
        assert result.status == PostingStatus.REVERSAL_REJECTED

    def test_unknown_entry(self, ledger, make_reversal):
        result = ledger.reverse_journal_entry(make_reversal("NOPE"))
        assert result.status == PostingStatus.NOT_FOUND
        assert result.error_code == "ENTRY_NOT_FOUND"

    def test_date_before_original(self, posted, make_reversal):
        result = posted.reverse_journal_entry(make_reversal("JE-1", reversal_date=date(2024, 1, 10)))
        assert result.status == PostingStatus.VALIDATION_FAILED
        assert result.error.rule == "reversal_date_order"

    def test_reversal_id_taken(self, posted, make_reversal, make_entry, balance_of):
        posted.post_journal_entry(make_entry("REV-JE-1", {"1000": 5}, {"4000": 5}))
        result = posted.reverse_journal_entry(make_reversal("JE-1"))
        assert result.status == PostingStatus.DUPLICATE
        assert posted.get_journal_entry(TENANT, "JE-1").reversed_by is None
        assert balance_of(posted, "1000") == Decimal("1005.00")

    def test_polarity_failure_leaves_original_unlinked(self, ledger, make_entry, make_reversal):
        ledger.post_journal_entry(make_entry("JE-1", {"1000": 100}, {"3000": 100}))
        ledger.post_journal_entry(make_entry("JE-2", {"5000": 100}, {"1000": 100}))
        result = ledger.reverse_journal_entry(make_reversal("JE-1"))
        assert result.status == PostingStatus.VALIDATION_FAILED
        assert ledger.get_journal_entry(TENANT, "JE-1").reversed_by is None


class TestReversalPeriods:
    def test_closed_original_period(self, posted, make_reversal, balance_of):
        posted.transition_period(TENANT, "2024-01", "closed")
        result = posted.reverse_journal_entry(make_reversal("JE-1"))
        assert result.status == PostingStatus.PERIOD_CLOSED
        assert result.error_code == "REVERSAL_PERIOD_CLOSED"
        assert balance_of(posted, "1000") == Decimal("1000.00")

    def test_reverse_into_next_period_by_date(self, posted, make_reversal):
        posted.transition_period(TENANT, "2024-01", "closed")
        result = posted.reverse_journal_entry(make_reversal("JE-1", reversal_date=date(2024, 2, 1)))
        assert result.is_success
        assert result.entry.accounting_period == "2024-02"
        assert result.entry.posting_date == date(2024, 2, 1)

    def test_explicit_period(self, posted, make_reversal):
        result = posted.reverse_journal_entry(
            make_reversal("JE-1", reversal_date=date(2024, 2, 5), accounting_period="2024-02")
        )
        assert result.entry.accounting_period == "2024-02"

    def test_explicit_period_must_contain_date(self, posted, make_reversal):
        result = posted.reverse_journal_entry(make_reversal("JE-1", accounting_period="2024-02"))
        assert result.status == PostingStatus.PERIOD_REJECTED
        assert posted.get_journal_entry(TENANT, "JE-1").reversed_by is None
        assert result.error.rule == "posting_date_in_period"

    def test_no_period_for_date(self, posted, make_reversal):
        result = posted.reverse_journal_entry(make_reversal("JE-1", reversal_date=date(2024, 6, 1)))
        assert result.status == PostingStatus.PERIOD_REJECTED
