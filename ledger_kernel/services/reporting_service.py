"""
FinancialReportingService -- profit and loss, balance sheet and cash flow.

Responsibility:
    Derives the three primary statements from the same journal history the
    trial balance replays, classified by account type.

Architecture position:
    Kernel > Services -- read-only shell over LedgerStore snapshots.

Invariants enforced:
    - Statements never read stored balances; they replay posted history, so
      a statement for a past date or period is reproducible.
    - Amounts are shown in natural sign: revenue, liabilities and equity
      positive when credit-balanced; contra assets reduce total assets.
    - The balance sheet balances whenever history balances, because
      unclosed revenue and expense appear as current earnings.
    - Cash flow sections sum to the net change of the cash accounts.

Failure modes:
    - PeriodNotFoundError for unknown periods.
    - ValidationError when no cash accounts are configured or given.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from datetime import date, timedelta
from decimal import Decimal

from ledger_kernel.domain.account import Account, AccountType, SpecialAccountType
from ledger_kernel.domain.journal import JournalEntry
from ledger_kernel.domain.replay import replay_balances
from ledger_kernel.domain.reports import (
    BalanceSheet,
    CashFlowCategory,
    CashFlowSection,
    CashFlowStatement,
    ProfitAndLoss,
    StatementLine,
)
from ledger_kernel.domain.values import Currency, Money
from ledger_kernel.exceptions import PeriodNotFoundError, ValidationError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.settings import ReportingSettings
from ledger_kernel.store.base import LedgerSnapshot, LedgerStore

logger = get_logger("services.reporting")

# Balance-sheet counterparts that move with day-to-day trading.
_OPERATING_SPECIAL_TYPES = frozenset({
    SpecialAccountType.CONTROL_AR,
    SpecialAccountType.CONTROL_AP,
    SpecialAccountType.TAX_PAYABLE,
    SpecialAccountType.TAX_RECEIVABLE,
    SpecialAccountType.PROVISION,
    SpecialAccountType.ALLOWANCE_FOR_DOUBTFUL_ACCOUNTS,
    SpecialAccountType.INTERCOMPANY_RECEIVABLE,
    SpecialAccountType.INTERCOMPANY_PAYABLE,
    SpecialAccountType.CLEARING,
    SpecialAccountType.SUSPENSE,
    SpecialAccountType.ROUNDING,
})


def classify_cash_counterpart(account: Account | None) -> CashFlowCategory:
    """Cash flow section for a movement against ``account``."""
    if account is None:
        return CashFlowCategory.OPERATING
    if account.special_account_type in _OPERATING_SPECIAL_TYPES:
        return CashFlowCategory.OPERATING
    if account.account_type in (AccountType.REVENUE, AccountType.EXPENSE):
        return CashFlowCategory.OPERATING
    if account.account_type == AccountType.ASSET:
        return CashFlowCategory.INVESTING
    return CashFlowCategory.FINANCING


class FinancialReportingService:
    """Statements for one store."""

    def __init__(
        self,
        store: LedgerStore,
        settings: ReportingSettings | None = None,
        base_currency_for: Callable[[str], str] | None = None,
    ):
        self._store = store
        self._settings = settings or ReportingSettings()
        self._base_currency_for = base_currency_for or (lambda tenant_id: "USD")

    def _base(self, tenant_id: str) -> Currency:
        return Currency(self._base_currency_for(tenant_id))

    def _period(self, snap: LedgerSnapshot, period_code: str):
        period = snap.period(period_code)
        if period is None:
            raise PeriodNotFoundError(period_code)
        return period

    @staticmethod
    def _lines(
        accounts: Iterable[Account], balances: dict[str, Money], credit_positive: bool
    ) -> tuple[StatementLine, ...]:
        lines = []
        for account in sorted(accounts, key=lambda a: a.account_code):
            balance = balances.get(account.account_code)
            if balance is None or balance.is_zero:
                continue
            amount = -balance.amount if credit_positive else balance.amount
            lines.append(StatementLine(account.account_code, account.account_name, amount))
        return tuple(lines)

    @staticmethod
    def _of_type(snap: LedgerSnapshot, account_type: AccountType) -> list[Account]:
        return [a for a in snap.accounts.values() if a.account_type == account_type]

    # ------------------------------------------------------------------
    # Profit and loss
    # ------------------------------------------------------------------

    def profit_and_loss(self, tenant_id: str, period_code: str) -> ProfitAndLoss:
        """Revenue and expense activity of the entries assigned to the period."""
        with LogContext.bind(tenant_id=tenant_id, period_code=period_code):
            snap = self._store.snapshot(tenant_id)
            base = self._base(tenant_id)
            period = self._period(snap, period_code)
            activity = replay_balances(
                (e for e in snap.entries if e.accounting_period == period_code), base
            )
            statement = ProfitAndLoss(
                tenant_id=tenant_id,
                currency=base.code,
                period_code=period_code,
                start_date=period.start_date,
                end_date=period.end_date,
                revenue=self._lines(self._of_type(snap, AccountType.REVENUE), activity, True),
                expenses=self._lines(self._of_type(snap, AccountType.EXPENSE), activity, False),
            )
            logger.info(
                "profit_and_loss_generated",
                extra={"net_income": statement.net_income, "currency": base.code},
            )
            return statement

    # ------------------------------------------------------------------
    # Balance sheet
    # ------------------------------------------------------------------

    def balance_sheet(self, tenant_id: str, as_of_date: date) -> BalanceSheet:
        """Position at the end of ``as_of_date``."""
        with LogContext.bind(tenant_id=tenant_id):
            snap = self._store.snapshot(tenant_id)
            base = self._base(tenant_id)
            balances = replay_balances(snap.entries, base, as_of_date)

            earnings = Decimal("0")
            for account in snap.accounts.values():
                if not account.account_type.is_balance_sheet:
                    earnings -= balances.get(account.account_code, Money.zero(base)).amount

            statement = BalanceSheet(
                tenant_id=tenant_id,
                currency=base.code,
                as_of_date=as_of_date,
                assets=self._lines(self._of_type(snap, AccountType.ASSET), balances, False),
                liabilities=self._lines(self._of_type(snap, AccountType.LIABILITY), balances, True),
                equity=self._lines(self._of_type(snap, AccountType.EQUITY), balances, True),
                current_earnings=earnings,
                tolerance=base.minor_unit,
            )
            if statement.is_balanced:
                logger.info("balance_sheet_generated", extra={"as_of_date": as_of_date})
            else:
                logger.warning(
                    "balance_sheet_out_of_balance",
                    extra={
                        "as_of_date": as_of_date,
                        "total_assets": statement.total_assets,
                        "total_liabilities": statement.total_liabilities,
                        "total_equity": statement.total_equity,
                    },
                )
            return statement

    # ------------------------------------------------------------------
    # Cash flow
    # ------------------------------------------------------------------

    def cash_flow_statement(
        self,
        tenant_id: str,
        period_code: str,
        cash_account_codes: Sequence[str] | None = None,
    ) -> CashFlowStatement:
        """
        Direct-method cash flow for the period's date range.

        Each entry touching cash is split by its non-cash lines; a line's
        opposite signed amount is the cash it explains, filed under the
        section of its account.
        """
        with LogContext.bind(tenant_id=tenant_id, period_code=period_code):
            cash_codes = tuple(cash_account_codes or self._settings.cash_account_codes)
            if not cash_codes:
                raise ValidationError(
                    "No cash accounts given or configured",
                    field="cash_account_codes",
                    rule="cash_accounts",
                )
            snap = self._store.snapshot(tenant_id)
            base = self._base(tenant_id)
            period = self._period(snap, period_code)
            cash = set(cash_codes)

            def cash_at(cutoff: date) -> Decimal:
                balances = replay_balances(snap.entries, base, cutoff)
                return sum((balances[c].amount for c in cash if c in balances), Decimal("0"))

            beginning = cash_at(period.start_date - timedelta(days=1))
            ending = cash_at(period.end_date)

            flows: dict[CashFlowCategory, dict[str, Decimal]] = {
                category: defaultdict(Decimal) for category in CashFlowCategory
            }
            for entry in snap.entries:
                if period.contains(entry.posting_date):
                    self._classify_entry(entry, cash, snap, flows)

            def section(category: CashFlowCategory) -> CashFlowSection:
                lines = []
                for code in sorted(flows[category]):
                    amount = flows[category][code]
                    if amount == 0:
                        continue
                    account = snap.accounts.get(code)
                    lines.append(StatementLine(code, account.account_name if account else code, amount))
                return CashFlowSection(category, tuple(lines))

            statement = CashFlowStatement(
                tenant_id=tenant_id,
                currency=base.code,
                period_code=period_code,
                start_date=period.start_date,
                end_date=period.end_date,
                cash_account_codes=tuple(sorted(cash)),
                beginning_cash=beginning,
                ending_cash=ending,
                operating=section(CashFlowCategory.OPERATING),
                investing=section(CashFlowCategory.INVESTING),
                financing=section(CashFlowCategory.FINANCING),
            )
            log = logger.info if statement.is_reconciled else logger.warning
            log(
                "cash_flow_statement_generated",
                extra={
                    "net_change": statement.net_change,
                    "total_classified": statement.total_classified,
                    "is_reconciled": statement.is_reconciled,
                },
            )
            return statement

    @staticmethod
    def _classify_entry(
        entry: JournalEntry,
        cash: set[str],
        snap: LedgerSnapshot,
        flows: dict[CashFlowCategory, dict[str, Decimal]],
    ) -> None:
        if not any(line.account_code in cash for line in entry.lines):
            return
        for line in entry.lines:
            if line.account_code in cash:
                continue
            category = classify_cash_counterpart(snap.accounts.get(line.account_code))
            flows[category][line.account_code] -= line.signed_base_amount.amount
