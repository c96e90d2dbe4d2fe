"""
Depreciable asset bundles.

A depreciable fixed asset needs three linked accounts: the asset itself, its
accumulated-depreciation contra account and a depreciation expense account.
This module builds the commands that create them consistently and the
periodic depreciation entry that moves value between the two companions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ledger_kernel.domain.account import AccountType, CompanionLinks, SpecialAccountType
from ledger_kernel.domain.commands import CreateAccountCommand, LineSpec, PostJournalEntryCommand
from ledger_kernel.domain.values import parse_decimal
from ledger_kernel.exceptions import ValidationError


@dataclass(frozen=True)
class DepreciableAssetBundle:
    """
    Codes and names of an asset and its two companion accounts.

    Creation order matters: companions first, then the asset that links them.
    """

    tenant_id: str
    asset_code: str
    asset_name: str
    accumulated_depreciation_code: str
    depreciation_expense_code: str
    created_by: str
    parent_asset_code: str | None = None
    parent_expense_code: str | None = None

    def __post_init__(self) -> None:
        codes = {self.asset_code, self.accumulated_depreciation_code, self.depreciation_expense_code}
        if len(codes) != 3:
            raise ValidationError(
                "Asset, accumulated depreciation and expense codes must differ",
                field="companion_links",
                rule="bundle_codes",
            )

    @property
    def companion_links(self) -> CompanionLinks:
        return CompanionLinks(
            accumulated_depreciation_code=self.accumulated_depreciation_code,
            depreciation_expense_code=self.depreciation_expense_code,
        )

    def create_commands(self) -> tuple[CreateAccountCommand, ...]:
        """Accumulated depreciation, expense, then the linked asset."""
        return (
            CreateAccountCommand(
                tenant_id=self.tenant_id,
                account_code=self.accumulated_depreciation_code,
                account_name=f"Accumulated Depreciation - {self.asset_name}",
                account_type=AccountType.ASSET,
                special_account_type=SpecialAccountType.ACCUMULATED_DEPRECIATION,
                parent_account_code=self.parent_asset_code,
                created_by=self.created_by,
            ),
            CreateAccountCommand(
                tenant_id=self.tenant_id,
                account_code=self.depreciation_expense_code,
                account_name=f"Depreciation Expense - {self.asset_name}",
                account_type=AccountType.EXPENSE,
                special_account_type=SpecialAccountType.DEPRECIATION_EXPENSE,
                parent_account_code=self.parent_expense_code,
                created_by=self.created_by,
            ),
            CreateAccountCommand(
                tenant_id=self.tenant_id,
                account_code=self.asset_code,
                account_name=self.asset_name,
                account_type=AccountType.ASSET,
                parent_account_code=self.parent_asset_code,
                companion_links=self.companion_links,
                created_by=self.created_by,
            ),
        )

    def depreciation_command(
        self,
        *,
        entry_id: str,
        amount: Decimal,
        posting_date: date,
        accounting_period: str,
        posted_by: str,
        reference: str | None = None,
    ) -> PostJournalEntryCommand:
        """
        Debit depreciation expense, credit accumulated depreciation.

        Raises:
            ValidationError: If amount is not positive.
        """
        try:
            value = parse_decimal(amount, "amount")
        except (TypeError, ValueError) as e:
            raise ValidationError(str(e), field="amount", rule="amount") from e
        if value <= 0:
            raise ValidationError(
                "Depreciation amount must be positive", field="amount", rule="positive_amount"
            )
        return PostJournalEntryCommand(
            tenant_id=self.tenant_id,
            entry_id=entry_id,
            lines=(
                LineSpec(self.depreciation_expense_code, debit=value),
                LineSpec(self.accumulated_depreciation_code, credit=value),
            ),
            reference=reference or f"DEP-{self.asset_code}",
            description=f"Depreciation - {self.asset_name}",
            posting_date=posting_date,
            accounting_period=accounting_period,
            posted_by=posted_by,
        )
