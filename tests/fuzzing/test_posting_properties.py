"""
Property-based posting tests.

Verifies, for arbitrary sequences of balanced entries:
- The stored trial balance always nets to zero
- Replaying history reproduces every stored balance exactly
- Reversing everything returns every account to zero
- Spending from cash never drives it below zero, whatever the order
- An amount of any magnitude gets a typed result, never an escaped error
"""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from ledger_kernel.domain.commands import LineSpec
from ledger_kernel.domain.values import Money
from ledger_kernel.services.ledger_service import PostingStatus
from ledger_kernel.store.memory import InMemoryLedgerStore

from conftest import TENANT

pytestmark = pytest.mark.slow

# Debit-normal accounts only ever debited, credit-normal only credited:
# no sequence of such entries can break polarity.
DEBIT_CODES = ("1000", "1500", "5000")
CREDIT_CODES = ("2500", "3000", "4000")

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("100000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

# No upper bound: reaches past both the 64-bit minor-unit range and the
# default decimal precision.
unbounded_amounts = st.decimals(
    min_value=Decimal("0.01"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

FUZZ_SETTINGS = settings(
    max_examples=50,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)


@composite
def balanced_lines(draw):
    """One or more debits against one or more credits of the same total."""
    debits = draw(st.lists(st.tuples(st.sampled_from(DEBIT_CODES), amounts), min_size=1, max_size=4))
    total = sum(amount for _, amount in debits)
    credit_codes = draw(st.lists(st.sampled_from(CREDIT_CODES), min_size=1, max_size=3))
    # all but the last credit take a cent each; the last takes the rest
    split = [Decimal("0.01")] * (len(credit_codes) - 1)
    if total - sum(split) <= 0:
        credit_codes, split = credit_codes[:1], []
    credits = [*split, total - sum(split)]
    return tuple(
        [LineSpec(code, debit=amount) for code, amount in debits]
        + [LineSpec(code, credit=amount) for code, amount in zip(credit_codes, credits)]
    )


def post_all(service, make_entry, entries):
    for number, lines in enumerate(entries, start=1):
        result = service.post_journal_entry(make_entry(f"JE-{number}", lines=lines))
        assert result.status == PostingStatus.POSTED, result.message


class TestBalancedHistories:
    @FUZZ_SETTINGS
    @given(entries=st.lists(balanced_lines(), min_size=1, max_size=15))
    def test_trial_balance_nets_to_zero(self, ledger_factory, make_entry, entries):
        service = ledger_factory(store=InMemoryLedgerStore())
        post_all(service, make_entry, entries)

        tb = service.get_trial_balance(TENANT)
        assert tb.is_balanced
        # debit-normal accounts are never credited, so their balances sum to every debit posted
        assert tb.total_debits == sum(
            line.debit for lines in entries for line in lines if line.debit is not None
        )

    @FUZZ_SETTINGS
    @given(entries=st.lists(balanced_lines(), min_size=1, max_size=15))
    def test_replay_matches_stored(self, ledger_factory, make_entry, entries):
        service = ledger_factory(store=InMemoryLedgerStore())
        post_all(service, make_entry, entries)

        stored = service.get_trial_balance(TENANT)
        replayed = service.get_trial_balance(TENANT, replay=True)
        assert replayed.balances == stored.balances
        assert service.validate_gl_integrity(TENANT).is_healthy

    @FUZZ_SETTINGS
    @given(entries=st.lists(balanced_lines(), min_size=1, max_size=10))
    def test_reversing_everything_restores_zero(self, ledger_factory, make_entry, make_reversal, entries):
        service = ledger_factory(store=InMemoryLedgerStore())
        post_all(service, make_entry, entries)
        for number in range(len(entries), 0, -1):
            assert service.reverse_journal_entry(make_reversal(f"JE-{number}")).is_success

        tb = service.get_trial_balance(TENANT)
        assert all(row.balance == 0 for row in tb.rows)
        assert service.validate_gl_integrity(TENANT).entries_checked == 2 * len(entries)


class TestPolarityUnderRandomSpending:
    @FUZZ_SETTINGS
    @given(
        funding=amounts,
        spends=st.lists(amounts, min_size=1, max_size=12),
    )
    def test_cash_never_negative(self, ledger_factory, make_entry, balance_of, funding, spends):
        service = ledger_factory(store=InMemoryLedgerStore())
        service.post_journal_entry(make_entry("FUND", {"1000": funding}, {"3000": funding}))

        expected_cash = funding
        for number, spend in enumerate(spends, start=1):
            result = service.post_journal_entry(
                make_entry(f"SPEND-{number}", {"5000": spend}, {"1000": spend}, posting_date=date(2024, 1, 20))
            )
            if spend <= expected_cash:
                assert result.status == PostingStatus.POSTED
                expected_cash -= spend
            else:
                assert result.status == PostingStatus.VALIDATION_FAILED
                assert result.error_code == "POLARITY_VIOLATION"

        assert balance_of(service, "1000") == expected_cash
        assert expected_cash >= 0


class TestAmountMagnitude:
    @FUZZ_SETTINGS
    @given(amount=unbounded_amounts)
    def test_any_magnitude_gets_a_typed_result(self, ledger_factory, make_entry, balance_of, amount):
        service = ledger_factory(store=InMemoryLedgerStore())
        result = service.post_journal_entry(make_entry("JE-1", {"1000": amount}, {"4000": amount}))

        if Money(amount, "USD").in_range:
            assert result.status == PostingStatus.POSTED
            assert balance_of(service, "1000") == amount
        else:
            assert result.status == PostingStatus.VALIDATION_FAILED
            assert result.error.rule == "amount_range"
            assert balance_of(service, "1000") == 0
