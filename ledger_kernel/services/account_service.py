"""
AccountService -- chart of accounts maintenance.

Responsibility:
    Creates accounts and applies every non-posting change to them
    (activation, posting policy, companion links, re-parenting).  Each
    change is validated against the whole chart before it is stored.

Architecture position:
    Kernel > Services -- imperative shell over domain.account and
    domain.chart.

Invariants enforced:
    - Account codes are unique per tenant.
    - Hierarchy: parent exists, is active, has the same type, no cycles,
      depth within the configured maximum.
    - Companion links point at existing accounts of the right special type.
    - An account with active children cannot be deactivated.
    - Balances are never changed here; only the journal engine does that.
    - Every change runs under the tenant lock so it cannot overwrite a
      balance a concurrent posting is committing.

Failure modes:
    - ValidationError, DuplicateAccountError, AccountNotFoundError.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from ledger_kernel.domain.account import Account, CompanionLinks
from ledger_kernel.domain.chart import DEFAULT_MAX_DEPTH, ChartOfAccounts
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.commands import CreateAccountCommand
from ledger_kernel.domain.depreciation import DepreciableAssetBundle
from ledger_kernel.domain.values import Currency
from ledger_kernel.exceptions import AccountNotFoundError, ValidationError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.locking import TenantLockRegistry
from ledger_kernel.store.base import LedgerStore

logger = get_logger("services.account")


class AccountService:
    """Chart-of-accounts maintenance for any number of tenants."""

    def __init__(
        self,
        store: LedgerStore,
        clock: Clock | None = None,
        locks: TenantLockRegistry | None = None,
        base_currency_for: Callable[[str], str] | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._locks = locks or TenantLockRegistry()
        self._base_currency_for = base_currency_for or (lambda tenant_id: "USD")
        self._max_depth = max_depth

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def chart_of_accounts(self, tenant_id: str) -> ChartOfAccounts:
        return ChartOfAccounts(self._store.load_accounts(tenant_id), self._max_depth)

    def get_account(self, tenant_id: str, account_code: str) -> Account:
        account = self._store.load_account(tenant_id, account_code)
        if account is None:
            raise AccountNotFoundError(account_code, tenant_id)
        return account

    def list_accounts(self, tenant_id: str) -> list[Account]:
        return self._store.load_accounts(tenant_id)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _build(self, command: CreateAccountCommand) -> Account:
        base = Currency(self._base_currency_for(command.tenant_id))
        if command.currency is not None and command.currency.upper() != base.code:
            raise ValidationError(
                f"Account currency {command.currency} differs from tenant base currency {base}",
                field="currency",
                rule="account_currency",
            )
        return Account.create(
            command.tenant_id,
            command.account_code,
            command.account_name,
            command.account_type,
            currency=base,
            at=self._clock.now(),
            special_account_type=command.special_account_type,
            parent_account_code=command.parent_account_code,
            is_active=command.is_active,
            posting_allowed=command.posting_allowed,
            companion_links=command.companion_links,
            description=command.description,
        )

    def create_account(self, command: CreateAccountCommand) -> Account:
        """
        Create one zero-balance account.

        Raises:
            ValidationError: On any single-account or chart rule.
            DuplicateAccountError: If the code is taken.
        """
        with LogContext.bind(tenant_id=command.tenant_id, actor_id=command.created_by):
            with self._locks.hold(command.tenant_id):
                chart = self.chart_of_accounts(command.tenant_id)
                account = self._build(command)
                chart.validate_new_account(account)
                self._store.save_accounts([account], actor=command.created_by)

            logger.info(
                "account_created",
                extra={
                    "account_code": account.account_code,
                    "account_type": account.account_type.value,
                    "special_account_type": (
                        account.special_account_type.value if account.special_account_type else None
                    ),
                    "parent_account_code": account.parent_account_code,
                },
            )
            return account

    def create_accounts(self, commands: Iterable[CreateAccountCommand]) -> tuple[Account, ...]:
        """
        Create several accounts of one tenant atomically, in order.

        Later commands may reference accounts created by earlier ones.
        """
        commands = tuple(commands)
        if not commands:
            return ()
        tenant_ids = {c.tenant_id for c in commands}
        if len(tenant_ids) != 1:
            raise ValidationError("A batch must target a single tenant", field="tenant_id", rule="single_tenant")
        tenant_id = commands[0].tenant_id

        with self._locks.hold(tenant_id):
            existing = self._store.load_accounts(tenant_id)
            created: list[Account] = []
            for command in commands:
                chart = ChartOfAccounts(existing + created, self._max_depth)
                account = self._build(command)
                chart.validate_new_account(account)
                created.append(account)
            self._store.save_accounts(created, actor=commands[0].created_by)

        logger.info(
            "accounts_created",
            extra={"tenant_id": tenant_id, "account_codes": [a.account_code for a in created]},
        )
        return tuple(created)

    def create_depreciable_asset(self, bundle: DepreciableAssetBundle) -> tuple[Account, ...]:
        """Accumulated depreciation, expense and the linked asset, all or nothing."""
        return self.create_accounts(bundle.create_commands())

    # ------------------------------------------------------------------
    # Changes
    # ------------------------------------------------------------------

    def _change(self, tenant_id: str, account_code: str, actor_id: str, event: str, change) -> Account:
        with LogContext.bind(tenant_id=tenant_id, actor_id=actor_id):
            with self._locks.hold(tenant_id):
                chart = self.chart_of_accounts(tenant_id)
                account = chart.require(account_code)
                updated = change(chart, account, self._clock.now())
                self._store.save_accounts([updated], actor=actor_id)
            logger.info(event, extra={"account_code": account_code})
            return updated

    def deactivate_account(self, tenant_id: str, account_code: str, actor_id: str) -> Account:
        """
        Raises:
            ValidationError: If the account has active children.
        """
        def change(chart: ChartOfAccounts, account: Account, now) -> Account:
            chart.validate_deactivation(account_code)
            return account.deactivate(now)

        return self._change(tenant_id, account_code, actor_id, "account_deactivated", change)

    def activate_account(self, tenant_id: str, account_code: str, actor_id: str) -> Account:
        return self._change(
            tenant_id, account_code, actor_id, "account_activated",
            lambda chart, account, now: account.activate(now),
        )

    def set_posting_policy(
        self, tenant_id: str, account_code: str, posting_allowed: bool, actor_id: str
    ) -> Account:
        return self._change(
            tenant_id, account_code, actor_id, "account_posting_policy_changed",
            lambda chart, account, now: account.with_posting_policy(posting_allowed, now),
        )

    def set_companion_links(
        self, tenant_id: str, account_code: str, links: CompanionLinks, actor_id: str
    ) -> Account:
        def change(chart: ChartOfAccounts, account: Account, now) -> Account:
            updated = account.with_companion_links(links, now)
            chart.validate_companion_links(updated)
            return updated

        return self._change(tenant_id, account_code, actor_id, "account_companion_links_changed", change)

    def change_account_parent(
        self, tenant_id: str, account_code: str, parent_account_code: str | None, actor_id: str
    ) -> Account:
        def change(chart: ChartOfAccounts, account: Account, now) -> Account:
            chart.validate_parent_change(account_code, parent_account_code)
            return account.with_parent(parent_account_code, now)

        return self._change(tenant_id, account_code, actor_id, "account_parent_changed", change)
