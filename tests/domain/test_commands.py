"""
Self-validating commands, journal entry shape and depreciation bundles.

Verifies:
- LineSpec requires exactly one positive side and refuses floats
- PostJournalEntryCommand line-count, both-sides and kind rules
- JournalEntry reversal mirroring and one-time reversal marking
- DepreciableAssetBundle account and entry commands
"""

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from ledger_kernel.domain.account import AccountType, SpecialAccountType
from ledger_kernel.domain.commands import (
    CreateAccountCommand,
    LineSpec,
    PostJournalEntryCommand,
    ReverseJournalEntryCommand,
)
from ledger_kernel.domain.depreciation import DepreciableAssetBundle
from ledger_kernel.domain.fx import resolve_lines
from ledger_kernel.domain.journal import JournalEntry, JournalEntryStatus, LineSide
from ledger_kernel.domain.period import EntryKind
from ledger_kernel.domain.values import Currency
from ledger_kernel.exceptions import EntryAlreadyReversedError, ValidationError


def entry_command(lines, **overrides) -> PostJournalEntryCommand:
    fields = dict(
        tenant_id="acme",
        entry_id="JE-1",
        lines=lines,
        reference="INV-1",
        description="Sale",
        posting_date=date(2024, 1, 15),
        accounting_period="2024-01",
        posted_by="alice",
    )
    fields.update(overrides)
    return PostJournalEntryCommand(**fields)


SALE = (LineSpec("1000", debit=Decimal("100")), LineSpec("4000", credit=Decimal("100")))


class TestLineSpec:
    def test_zero_line_rejected(self):
        with pytest.raises(ValidationError) as exc:
            LineSpec("1000", debit=Decimal("0"))
        assert exc.value.rule == "zero_amount"

    def test_zero_on_one_side_is_ignored(self):
        spec = LineSpec("1000", debit=Decimal("0"), credit=Decimal("5"))
        assert spec.debit is None
        assert not spec.is_debit
        assert spec.amount == Decimal("5")

    def test_both_sides_rejected(self):
        with pytest.raises(ValidationError) as exc:
            LineSpec("1000", debit=Decimal("1"), credit=Decimal("1"))
        assert exc.value.rule == "one_sided"

    def test_negative_rejected(self):
        with pytest.raises(ValidationError) as exc:
            LineSpec("1000", debit=Decimal("-1"))
        assert exc.value.rule == "non_negative"

    def test_float_rejected(self):
        with pytest.raises(ValidationError) as exc:
            LineSpec("1000", debit=1.5)
        assert exc.value.rule == "amount"

    def test_string_amount_accepted(self):
        assert LineSpec("1000", credit="12.34").credit == Decimal("12.34")

    def test_zero_rate_rejected(self):
        with pytest.raises(ValidationError) as exc:
            LineSpec("1000", debit=Decimal("1"), currency="EUR", exchange_rate=Decimal("0"))
        assert exc.value.rule == "positive"

    def test_currency_uppercased(self):
        assert LineSpec("1000", debit=Decimal("1"), currency="eur").currency == "EUR"


class TestPostJournalEntryCommand:
    def test_valid(self):
        command = entry_command(list(SALE))
        assert command.lines == SALE
        assert command.kind == EntryKind.STANDARD

    def test_needs_two_lines(self):
        with pytest.raises(ValidationError) as exc:
            entry_command((SALE[0],))
        assert exc.value.rule == "min_lines"

    def test_needs_both_sides(self):
        with pytest.raises(ValidationError) as exc:
            entry_command((SALE[0], LineSpec("5000", debit=Decimal("1"))))
        assert exc.value.rule == "both_sides"

    def test_reversing_kind_refused(self):
        with pytest.raises(ValidationError) as exc:
            entry_command(SALE, kind=EntryKind.REVERSING)
        assert exc.value.rule == "reversing_kind"

    @pytest.mark.parametrize("field", ["entry_id", "reference", "description", "posted_by"])
    def test_required_text(self, field):
        with pytest.raises(ValidationError) as exc:
            entry_command(SALE, **{field: "  "})
        assert exc.value.field == field

    def test_posting_date_type(self):
        with pytest.raises(ValidationError) as exc:
            entry_command(SALE, posting_date="2024-01-15")
        assert exc.value.rule == "type"


class TestCreateAccountCommand:
    def test_enums_coerced(self):
        command = CreateAccountCommand(
            tenant_id="acme",
            account_code="1510",
            account_name="Accumulated Depreciation",
            account_type="asset",
            special_account_type="accumulated_depreciation",
            created_by="alice",
        )
        assert command.account_type == AccountType.ASSET
        assert command.special_account_type == SpecialAccountType.ACCUMULATED_DEPRECIATION

    def test_actor_required(self):
        with pytest.raises(ValidationError):
            CreateAccountCommand("acme", "1000", "Cash", AccountType.ASSET, created_by="")


class TestReverseCommand:
    def test_reason_required(self):
        with pytest.raises(ValidationError) as exc:
            ReverseJournalEntryCommand("acme", "JE-1", reason=" ", reversed_by="alice")
        assert exc.value.field == "reason"


class TestJournalEntry:
    @pytest.fixture
    def entry(self):
        return JournalEntry(
            tenant_id="acme",
            entry_id="JE-1",
            lines=resolve_lines(SALE, Currency("USD")),
            reference="INV-1",
            description="Sale",
            posting_date=date(2024, 1, 15),
            accounting_period="2024-01",
            posted_by="alice",
            base_currency=Currency("USD"),
        ).mark_posted(datetime(2024, 1, 15, tzinfo=UTC))

    def test_totals_and_deltas(self, entry):
        assert entry.is_balanced
        assert entry.status == JournalEntryStatus.POSTED
        deltas = entry.signed_deltas()
        assert deltas["1000"].amount == Decimal("100")
        assert deltas["4000"].amount == Decimal("-100")

    def test_build_reversal_mirrors_lines(self, entry):
        reversal = entry.build_reversal(
            reversal_entry_id="REV-JE-1",
            reason="Duplicate",
            reversed_by="bob",
            posting_date=date(2024, 1, 20),
            accounting_period="2024-01",
        )
        assert reversal.kind == EntryKind.REVERSING
        assert reversal.reversal_of == "JE-1"
        assert [line.side for line in reversal.lines] == [LineSide.CREDIT, LineSide.DEBIT]
        assert [line.base_amount for line in reversal.lines] == [line.base_amount for line in entry.lines]
        assert reversal.reference == "REV-INV-1"

    def test_mark_reversed_once(self, entry):
        reversed_entry = entry.mark_reversed("REV-JE-1")
        assert reversed_entry.status == JournalEntryStatus.REVERSED
        assert reversed_entry.is_reversed
        with pytest.raises(EntryAlreadyReversedError):
            reversed_entry.mark_reversed("REV-JE-1-B")


class TestDepreciableAssetBundle:
    @pytest.fixture
    def bundle(self):
        return DepreciableAssetBundle(
            tenant_id="acme",
            asset_code="1600",
            asset_name="Delivery Van",
            accumulated_depreciation_code="1610",
            depreciation_expense_code="6100",
            created_by="alice",
        )

    def test_codes_must_differ(self):
        with pytest.raises(ValidationError) as exc:
            DepreciableAssetBundle("acme", "1600", "Van", "1600", "6100", "alice")
        assert exc.value.rule == "bundle_codes"

    def test_companions_created_before_asset(self, bundle):
        commands = bundle.create_commands()
        assert [c.account_code for c in commands] == ["1610", "6100", "1600"]
        assert commands[0].special_account_type == SpecialAccountType.ACCUMULATED_DEPRECIATION
        assert commands[1].account_type == AccountType.EXPENSE
        assert commands[2].companion_links.accumulated_depreciation_code == "1610"

    def test_depreciation_command(self, bundle):
        command = bundle.depreciation_command(
            entry_id="DEP-1",
            amount=Decimal("250.00"),
            posting_date=date(2024, 1, 31),
            accounting_period="2024-01",
            posted_by="alice",
        )
        assert command.lines[0].account_code == "6100" and command.lines[0].is_debit
        assert command.lines[1].account_code == "1610" and not command.lines[1].is_debit
        assert command.reference == "DEP-1600"

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_depreciation_amount_positive(self, bundle, amount):
        with pytest.raises(ValidationError) as exc:
            bundle.depreciation_command(
                entry_id="DEP-1",
                amount=amount,
                posting_date=date(2024, 1, 31),
                accounting_period="2024-01",
                posted_by="alice",
            )
        assert exc.value.rule == "positive_amount"
