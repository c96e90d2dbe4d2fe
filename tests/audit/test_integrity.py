"""
GL integrity validation: history replay against stored balances.

Drift and damaged history are injected straight into the store, the way a
faulty migration or an out-of-band write would.

Verifies:
- A ledger built only through posting is always healthy
- Balance drift is reported with the first entry the stored balance lacks
- Unbalanced history, unknown accounts and broken reversal links are found
- raise_for_issues escalates to IntegrityError
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from ledger_kernel.domain.commands import LineSpec
from ledger_kernel.domain.reports import IntegrityIssueKind
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import IntegrityError

from conftest import TENANT, build_posted_entry


@pytest.fixture
def trading(ledger, make_entry):
    ledger.post_journal_entry(make_entry("JE-1", {"1000": "1000.00"}, {"4000": "1000.00"}))
    ledger.post_journal_entry(make_entry("JE-2", {"1000": "200.00"}, {"4000": "200.00"}))
    return ledger


def set_stored_balance(store, code, amount):
    account = store.load_account(TENANT, code)
    store.save_accounts([replace(account, balance=Money.of(amount, "USD"))])


class TestHealthyLedger:
    def test_clean(self, trading, make_reversal):
        trading.reverse_journal_entry(make_reversal("JE-2"))
        report = trading.validate_gl_integrity(TENANT)
        assert report.is_healthy
        assert report.issues_found == 0
        assert report.entries_checked == 3
        assert report.total_accounts == 8
        report.raise_for_issues()

    def test_logged(self, trading, captured_logs):
        trading.validate_gl_integrity(TENANT)
        record = next(r for r in captured_logs() if r["message"] == "integrity_check_completed")
        assert record["entries_checked"] == 2


class TestDamage:
    def test_balance_drift(self, trading, memory_store):
        set_stored_balance(memory_store, "1000", "1000.00")

        report = trading.validate_gl_integrity(TENANT)
        drift = report.issues_of(IntegrityIssueKind.BALANCE_DRIFT)
        assert len(drift) == 1
        assert drift[0].account_code == "1000"
        assert drift[0].expected == Decimal("1200.00")
        assert drift[0].actual == Decimal("1000.00")
        assert drift[0].difference == Decimal("-200.00")
        assert drift[0].first_offending_entry_id == "JE-2"
        # the stored trial balance no longer sums to zero either
        assert report.issues_of(IntegrityIssueKind.TRIAL_BALANCE_DRIFT)

    def test_drift_with_no_matching_prefix(self, trading, memory_store):
        set_stored_balance(memory_store, "1000", "777.00")
        drift = trading.validate_gl_integrity(TENANT).issues_of(IntegrityIssueKind.BALANCE_DRIFT)
        assert drift[0].first_offending_entry_id is None

    def test_unbalanced_history(self, trading, memory_store, clock):
        entry = build_posted_entry(
            "BAD-1",
            [LineSpec("1000", debit=Decimal("50")), LineSpec("4000", credit=Decimal("40"))],
            clock.now(),
        )
        memory_store.append_journal_entry(entry)
        report = trading.validate_gl_integrity(TENANT)
        unbalanced = report.issues_of(IntegrityIssueKind.UNBALANCED_ENTRY)
        assert [i.entry_id for i in unbalanced] == ["BAD-1"]

    def test_unknown_account(self, trading, memory_store, clock):
        entry = build_posted_entry(
            "BAD-2",
            [LineSpec("9999", debit=Decimal("5")), LineSpec("4000", credit=Decimal("5"))],
            clock.now(),
        )
        memory_store.append_journal_entry(entry)
        unknown = trading.validate_gl_integrity(TENANT).issues_of(IntegrityIssueKind.UNKNOWN_ACCOUNT)
        assert [(i.entry_id, i.account_code) for i in unknown] == [("BAD-2", "9999")]

    def test_broken_reversal_link(self, trading, memory_store, clock):
        entry = build_posted_entry(
            "REV-X",
            [LineSpec("4000", debit=Decimal("200.00")), LineSpec("1000", credit=Decimal("200.00"))],
            clock.now(),
            reversal_of="JE-2",
        )
        memory_store.append_journal_entry(entry)
        broken = trading.validate_gl_integrity(TENANT).issues_of(IntegrityIssueKind.BROKEN_REVERSAL_LINK)
        assert [i.entry_id for i in broken] == ["REV-X"]

    def test_raise_for_issues(self, trading, memory_store, captured_logs):
        set_stored_balance(memory_store, "4000", "-1000.00")
        report = trading.validate_gl_integrity(TENANT)
        with pytest.raises(IntegrityError) as exc:
            report.raise_for_issues()
        assert exc.value.tenant_id == TENANT
        assert exc.value.issue_count == report.issues_found
        assert any(r["message"] == "integrity_issues_found" for r in captured_logs())
