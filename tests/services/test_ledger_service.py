"""
LedgerService facade: account administration and result mapping.

Verifies:
- Each rejection maps to one PostingStatus and keeps its error object
- Account changes are validated against the whole chart through the service
- Depreciable asset bundles are created atomically and depreciate correctly
- Account currency follows the tenant base currency
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.account import AccountType, CompanionLinks
from ledger_kernel.domain.commands import CreateAccountCommand
from ledger_kernel.domain.depreciation import DepreciableAssetBundle
from ledger_kernel.domain.journal import JournalEntryStatus
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    DuplicateAccountError,
    DuplicateEntryError,
    EntryAlreadyReversedError,
    ImbalanceError,
    JournalEntryNotFoundError,
    LedgerError,
    PeriodClosedError,
    PeriodNotFoundError,
    PolarityViolationError,
    PostingLockTimeoutError,
    ReversalError,
    ReversalPeriodClosedError,
    StoreError,
    ValidationError,
)
from ledger_kernel.services.ledger_service import PostingResult, PostingStatus, status_for_error
from ledger_kernel.settings import LedgerSettings

from conftest import ACTOR, TENANT


def command(code, account_type=AccountType.ASSET, tenant_id=TENANT, **kwargs):
    return CreateAccountCommand(
        tenant_id=tenant_id,
        account_code=code,
        account_name=f"Account {code}",
        account_type=account_type,
        created_by=ACTOR,
        **kwargs,
    )


VAN = DepreciableAssetBundle(
    tenant_id=TENANT,
    asset_code="1600",
    asset_name="Delivery Van",
    accumulated_depreciation_code="1610",
    depreciation_expense_code="6100",
    created_by=ACTOR,
)


class TestStatusMapping:
    @pytest.mark.parametrize(
        "error, status",
        [
            (JournalEntryNotFoundError("JE-1"), PostingStatus.NOT_FOUND),
            (EntryAlreadyReversedError("JE-1", "JE-2"), PostingStatus.ALREADY_REVERSED),
            (ReversalPeriodClosedError("JE-1", "2024-01", "closed"), PostingStatus.PERIOD_CLOSED),
            (ReversalError("JE-1", "is itself a reversal"), PostingStatus.REVERSAL_REJECTED),
            (PeriodClosedError("2024-01", "locked", "standard"), PostingStatus.PERIOD_CLOSED),
            (PeriodNotFoundError("2030-01"), PostingStatus.PERIOD_REJECTED),
            (ImbalanceError(Decimal("1"), Decimal("2"), "USD"), PostingStatus.UNBALANCED),
            (DuplicateEntryError("JE-1", TENANT), PostingStatus.DUPLICATE),
            (AccountInactiveError("1000"), PostingStatus.ACCOUNT_REJECTED),
            (PolarityViolationError("1000", "asset", Decimal("-1"), "debit"), PostingStatus.VALIDATION_FAILED),
            (ValidationError("bad"), PostingStatus.VALIDATION_FAILED),
            (PostingLockTimeoutError(TENANT, 5.0), PostingStatus.LOCK_TIMEOUT),
            (StoreError("disk full"), PostingStatus.STORE_FAILURE),
            (LedgerError("unclassified"), PostingStatus.REJECTED),
        ],
    )
    def test_status_for_error(self, error, status):
        assert status_for_error(error) == status

    def test_rejected_result_keeps_error(self):
        error = DuplicateEntryError("JE-1", TENANT)
        result = PostingResult.rejected(error)
        assert not result.is_success
        assert result.error is error
        assert result.error_code == "DUPLICATE_ENTRY"
        assert result.entry_id is None
        assert "JE-1" in result.message


class TestAccountAdministration:
    def test_duplicate_code(self, ledger):
        with pytest.raises(DuplicateAccountError):
            ledger.create_account(command("1000"))

    def test_child_account(self, ledger, captured_logs):
        child = ledger.create_account(command("1010", parent_account_code="1000"))
        assert child.parent_account_code == "1000"
        record = next(r for r in captured_logs() if r["message"] == "account_created")
        assert record["account_code"] == "1010"
        assert record["tenant_id"] == TENANT

    def test_parent_type_enforced(self, ledger):
        with pytest.raises(ValidationError) as exc:
            ledger.create_account(command("4010", AccountType.REVENUE, parent_account_code="1000"))
        assert exc.value.rule == "parent_type"

    def test_batch_is_atomic(self, ledger):
        with pytest.raises(DuplicateAccountError):
            ledger.create_accounts([command("1020"), command("1000")])
        with pytest.raises(AccountNotFoundError):
            ledger.get_account(TENANT, "1020")

    def test_batch_may_reference_earlier_commands(self, ledger):
        created = ledger.create_accounts([command("1700"), command("1710", parent_account_code="1700")])
        assert [a.account_code for a in created] == ["1700", "1710"]

    def test_batch_single_tenant(self, ledger):
        with pytest.raises(ValidationError) as exc:
            ledger.create_accounts([command("1700"), command("1700", tenant_id="globex")])
        assert exc.value.rule == "single_tenant"

    def test_deactivate_blocked_by_active_child(self, ledger):
        ledger.create_account(command("1010", parent_account_code="1000"))
        with pytest.raises(ValidationError) as exc:
            ledger.deactivate_account(TENANT, "1000", ACTOR)
        assert exc.value.rule == "has_children"

        ledger.deactivate_account(TENANT, "1010", ACTOR)
        assert not ledger.deactivate_account(TENANT, "1000", ACTOR).is_active

    def test_reactivate(self, ledger):
        ledger.deactivate_account(TENANT, "5000", ACTOR)
        assert ledger.activate_account(TENANT, "5000", ACTOR).is_active

    def test_change_unknown_account(self, ledger):
        with pytest.raises(AccountNotFoundError):
            ledger.deactivate_account(TENANT, "9999", ACTOR)

    def test_change_parent(self, ledger):
        ledger.create_account(command("1010"))
        moved = ledger.change_account_parent(TENANT, "1010", "1000", ACTOR)
        assert moved.parent_account_code == "1000"

    def test_change_parent_cycle(self, ledger):
        ledger.create_account(command("1010", parent_account_code="1000"))
        with pytest.raises(ValidationError) as exc:
            ledger.change_account_parent(TENANT, "1000", "1010", ACTOR)
        assert exc.value.rule == "cycle"

    def test_change_keeps_balance(self, ledger, make_entry, balance_of):
        ledger.post_journal_entry(make_entry("JE-1", {"1000": 75}, {"4000": 75}))
        ledger.set_posting_policy(TENANT, "1000", False, ACTOR)
        assert balance_of(ledger, "1000") == Decimal("75")

    def test_list_accounts_sorted(self, ledger):
        assert [a.account_code for a in ledger.list_accounts(TENANT)] == [
            "1000", "1100", "1500", "2000", "2500", "3000", "4000", "5000",
        ]


class TestAccountCurrency:
    def test_follows_tenant_base(self, ledger_factory):
        settings = LedgerSettings(tenant_currencies={"globex": "EUR"})
        service = ledger_factory(settings=settings, tenant_id="globex")
        assert service.get_account("globex", "1000").balance.currency.code == "EUR"

    def test_other_currency_refused(self, ledger):
        with pytest.raises(ValidationError) as exc:
            ledger.create_account(command("1050", currency="GBP"))
        assert exc.value.rule == "account_currency"

    def test_matching_currency_accepted(self, ledger):
        assert ledger.create_account(command("1050", currency="usd")).balance.currency.code == "USD"


class TestDepreciableAssets:
    def test_bundle_created_and_linked(self, ledger):
        accumulated, expense, asset = ledger.create_depreciable_asset(VAN)
        assert accumulated.is_contra
        assert expense.account_type == AccountType.EXPENSE
        assert asset.companion_links.accumulated_depreciation_code == "1610"
        assert asset.companion_links.depreciation_expense_code == "6100"

    def test_bundle_is_atomic(self, ledger):
        ledger.create_account(command("6100", AccountType.EXPENSE))
        with pytest.raises(DuplicateAccountError):
            ledger.create_depreciable_asset(VAN)
        with pytest.raises(AccountNotFoundError):
            ledger.get_account(TENANT, "1610")

    def test_post_depreciation(self, ledger, balance_of):
        ledger.create_depreciable_asset(VAN)
        result = ledger.post_depreciation(
            VAN,
            entry_id="DEP-1",
            amount=Decimal("250.00"),
            posting_date=date(2024, 1, 31),
            accounting_period="2024-01",
            posted_by=ACTOR,
        )
        assert result.status == PostingStatus.POSTED
        assert result.entry.reference == "DEP-1600"
        assert balance_of(ledger, "6100") == Decimal("250.00")
        assert balance_of(ledger, "1610") == Decimal("-250.00")

    @pytest.mark.parametrize("amount, rule", [("0", "positive_amount"), (1.5, "amount")])
    def test_bad_depreciation_amount(self, ledger, amount, rule):
        ledger.create_depreciable_asset(VAN)
        result = ledger.post_depreciation(
            VAN,
            entry_id="DEP-1",
            amount=amount,
            posting_date=date(2024, 1, 31),
            accounting_period="2024-01",
            posted_by=ACTOR,
        )
        assert result.status == PostingStatus.VALIDATION_FAILED
        assert result.error.rule == rule

    def test_relink_another_asset(self, ledger):
        ledger.create_depreciable_asset(VAN)
        ledger.create_account(command("1650"))
        links = CompanionLinks(accumulated_depreciation_code="1610", depreciation_expense_code="6100")
        relinked = ledger.set_companion_links(TENANT, "1650", links, ACTOR)
        assert relinked.companion_links == links

    def test_link_to_wrong_type(self, ledger):
        links = CompanionLinks(accumulated_depreciation_code="1500", depreciation_expense_code="5000")
        with pytest.raises(ValidationError) as exc:
            ledger.set_companion_links(TENANT, "1000", links, ACTOR)
        assert exc.value.rule == "link_type"


class TestJournalQueries:
    def test_get_journal_entry(self, ledger, make_entry, make_reversal):
        ledger.post_journal_entry(make_entry("JE-1", {"1000": 10}, {"4000": 10}))
        ledger.reverse_journal_entry(make_reversal("JE-1"))
        original = ledger.get_journal_entry(TENANT, "JE-1")
        assert original.status == JournalEntryStatus.REVERSED

    def test_unknown_entry(self, ledger):
        with pytest.raises(JournalEntryNotFoundError):
            ledger.get_journal_entry(TENANT, "nope")
