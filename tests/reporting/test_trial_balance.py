"""
Trial balance and canonical ledger hash.

Verifies:
- Stored and replayed trial balances agree and sum to zero
- Replay honours the period end or an explicit as-of date
- Tenants never see each other's balances
- The canonical hash is deterministic and moves with history
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.reports import BalanceSource
from ledger_kernel.exceptions import PeriodNotFoundError, ValidationError

from conftest import TENANT


@pytest.fixture
def trading(ledger, make_entry):
    ledger.post_journal_entry(make_entry("JE-1", {"1000": "5000.00"}, {"3000": "5000.00"}))
    ledger.post_journal_entry(make_entry("JE-2", {"5000": "250.00"}, {"1000": "250.00"}))
    ledger.post_journal_entry(
        make_entry(
            "JE-3", {"1100": "900.00"}, {"4000": "900.00"},
            period="2024-02", posting_date=date(2024, 2, 5),
        )
    )
    return ledger


class TestTrialBalance:
    def test_stored_balances(self, trading):
        tb = trading.get_trial_balance(TENANT)
        assert tb.source == BalanceSource.STORED
        assert tb.balance_of("1000") == Decimal("4750.00")
        assert tb.balance_of("4000") == Decimal("-900.00")
        assert tb.total_debits == tb.total_credits == Decimal("5900.00")
        assert tb.out_of_balance == 0
        assert tb.is_balanced

    def test_rows_cover_whole_chart(self, trading):
        tb = trading.get_trial_balance(TENANT)
        assert [r.account_code for r in tb.rows] == sorted(r.account_code for r in tb.rows)
        assert len(tb.rows) == 8
        assert tb.row_for("2500").balance == 0

    def test_debit_and_credit_columns(self, trading):
        tb = trading.get_trial_balance(TENANT)
        assert tb.row_for("1000").debit_balance == Decimal("4750.00")
        assert tb.row_for("3000").credit_balance == Decimal("5000.00")
        assert tb.row_for("3000").debit_balance == 0

    def test_replay_matches_stored(self, trading):
        stored = trading.get_trial_balance(TENANT)
        replayed = trading.get_trial_balance(TENANT, replay=True)
        assert replayed.source == BalanceSource.REPLAY
        assert replayed.balances == stored.balances

    def test_period_end_cutoff(self, trading):
        tb = trading.get_trial_balance(TENANT, period="2024-01")
        assert tb.source == BalanceSource.REPLAY
        assert tb.as_of_date == date(2024, 1, 31)
        assert tb.period_code == "2024-01"
        assert tb.balance_of("1100") == 0
        assert tb.is_balanced

    def test_as_of_date_wins(self, trading):
        tb = trading.get_trial_balance(TENANT, period="2024-02", as_of_date=date(2024, 1, 14))
        assert all(r.balance == 0 for r in tb.rows)

    def test_stored_cannot_be_dated(self, trading):
        with pytest.raises(ValidationError) as exc:
            trading.get_trial_balance(TENANT, period="2024-01", replay=False)
        assert exc.value.rule == "stored_as_of"

    def test_unknown_period(self, trading):
        with pytest.raises(PeriodNotFoundError):
            trading.get_trial_balance(TENANT, period="1999-01")

    def test_logged(self, trading, captured_logs):
        trading.get_trial_balance(TENANT)
        record = next(r for r in captured_logs() if r["message"] == "trial_balance_computed")
        assert record["source"] == "stored"
        assert record["total_debits"] == "5900.00"


class TestTenantIsolation:
    def test_other_tenant_sees_nothing(self, ledger_factory, make_entry):
        acme = ledger_factory()
        globex = ledger_factory(tenant_id="globex")
        acme.post_journal_entry(make_entry("JE-1", {"1000": 100}, {"4000": 100}))

        assert all(r.balance == 0 for r in globex.get_trial_balance("globex").rows)
        assert acme.get_trial_balance(TENANT).balance_of("1000") == Decimal("100")

    def test_same_entry_id_in_two_tenants(self, ledger_factory, make_entry):
        service = ledger_factory()
        ledger_factory(tenant_id="globex")
        assert service.post_journal_entry(make_entry("JE-1", {"1000": 1}, {"4000": 1})).is_success
        result = service.post_journal_entry(
            make_entry("JE-1", {"1000": 1}, {"4000": 1}, tenant_id="globex")
        )
        assert result.is_success


class TestLedgerHash:
    def test_deterministic(self, trading):
        assert trading.get_ledger_hash(TENANT) == trading.get_ledger_hash(TENANT)
        assert len(trading.get_ledger_hash(TENANT)) == 64

    def test_changes_with_history(self, trading, make_entry):
        before = trading.get_ledger_hash(TENANT)
        trading.post_journal_entry(make_entry("JE-4", {"1000": 1}, {"4000": 1}))
        assert trading.get_ledger_hash(TENANT) != before

    def test_as_of_date(self, trading):
        january = trading.get_ledger_hash(TENANT, date(2024, 1, 31))
        assert january != trading.get_ledger_hash(TENANT)
        assert trading.trial_balances.verify_canonical_hash(TENANT, january, date(2024, 1, 31))

    def test_empty_history(self, ledger):
        # sha256 of nothing
        assert ledger.get_ledger_hash(TENANT) == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_same_history_same_hash(self, ledger_factory, make_entry):
        acme = ledger_factory()
        globex = ledger_factory(tenant_id="globex")
        for tenant, service in (("acme", acme), ("globex", globex)):
            service.post_journal_entry(make_entry("JE-1", {"1000": 10}, {"4000": 10}, tenant_id=tenant))
        assert acme.get_ledger_hash("acme") == globex.get_ledger_hash("globex")
