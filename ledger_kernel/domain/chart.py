"""
ChartOfAccounts -- cross-account rules over one tenant's accounts.

Responsibility:
    Validates the relationships between accounts: uniqueness, hierarchy
    (parent existence, type agreement, depth, cycles), companion-link targets
    and posting eligibility.  Single-account rules live in account.py.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Built by services from
    a store snapshot; never persisted itself.

Failure modes:
    - DuplicateAccountError, AccountNotFoundError, AccountInactiveError,
      PostingNotAllowedError, ValidationError (hierarchy / companion rules).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from ledger_kernel.domain.account import Account, SpecialAccountType
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    DuplicateAccountError,
    PostingNotAllowedError,
    ValidationError,
)

DEFAULT_MAX_DEPTH = 5


@dataclass(frozen=True)
class OrphanedLink:
    """A companion link whose target is missing or of the wrong kind."""

    account_code: str
    link_name: str
    target_code: str
    problem: str


class ChartOfAccounts:
    """
    Read-only view of a tenant's accounts with hierarchy helpers.

    Contract:
        Constructed from the accounts of exactly one tenant.  Validation
        methods raise typed errors; query methods never raise for unknown
        codes unless documented.
    """

    def __init__(self, accounts: Iterable[Account] | Mapping[str, Account], max_depth: int = DEFAULT_MAX_DEPTH):
        if isinstance(accounts, Mapping):
            accounts = accounts.values()
        self._accounts: dict[str, Account] = {a.account_code: a for a in accounts}
        self._max_depth = max_depth
        self._children: dict[str, list[str]] = {}
        for account in self._accounts.values():
            if account.parent_account_code:
                self._children.setdefault(account.parent_account_code, []).append(account.account_code)

    def __contains__(self, code: str) -> bool:
        return code in self._accounts

    def __len__(self) -> int:
        return len(self._accounts)

    def get(self, code: str) -> Account | None:
        return self._accounts.get(code)

    def require(self, code: str) -> Account:
        account = self._accounts.get(code)
        if account is None:
            raise AccountNotFoundError(code)
        return account

    def accounts(self) -> list[Account]:
        """All accounts sorted by code."""
        return [self._accounts[c] for c in sorted(self._accounts)]

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def children_of(self, code: str) -> list[str]:
        return sorted(self._children.get(code, ()))

    def has_children(self, code: str) -> bool:
        return bool(self._children.get(code))

    def ancestors(self, code: str) -> list[str]:
        """Parent chain from nearest to root; stops on a cycle."""
        chain: list[str] = []
        seen = {code}
        current = self._accounts.get(code)
        while current is not None and current.parent_account_code:
            parent = current.parent_account_code
            if parent in seen:
                break
            chain.append(parent)
            seen.add(parent)
            current = self._accounts.get(parent)
        return chain

    def depth(self, code: str) -> int:
        """Root accounts have depth 1."""
        return len(self.ancestors(code)) + 1

    def _subtree_height(self, code: str) -> int:
        children = self._children.get(code, ())
        if not children:
            return 1
        return 1 + max(self._subtree_height(c) for c in children)

    def _check_parent(self, account: Account, parent_code: str) -> None:
        parent = self._accounts.get(parent_code)
        if parent is None:
            raise ValidationError(
                f"Parent account {parent_code} does not exist",
                field="parent_account_code",
                rule="parent_exists",
            )
        if not parent.is_active:
            raise ValidationError(
                f"Parent account {parent_code} is inactive",
                field="parent_account_code",
                rule="parent_active",
            )
        if parent.account_type != account.account_type:
            raise ValidationError(
                f"Parent account {parent_code} is {parent.account_type.value}, "
                f"child is {account.account_type.value}",
                field="parent_account_code",
                rule="parent_type",
            )
        depth = self.depth(parent_code) + self._subtree_height(account.account_code)
        if depth > self._max_depth:
            raise ValidationError(
                f"Account hierarchy would reach depth {depth}, maximum is {self._max_depth}",
                field="parent_account_code",
                rule="max_depth",
            )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_new_account(self, account: Account) -> None:
        """
        Check a not-yet-stored account against the chart.

        Raises:
            DuplicateAccountError: If the code is taken.
            ValidationError: On hierarchy or companion-link violations.
        """
        if account.account_code in self._accounts:
            raise DuplicateAccountError(account.account_code, account.tenant_id)
        if account.parent_account_code:
            self._check_parent(account, account.parent_account_code)
        self.validate_companion_links(account)

    def validate_companion_links(self, account: Account) -> None:
        for link_name, target_code, required_type in account.companion_links.references():
            target = self._accounts.get(target_code)
            if target is None:
                raise ValidationError(
                    f"{link_name} references unknown account {target_code}",
                    field="companion_links",
                    rule="link_exists",
                )
            if target.special_account_type != required_type:
                raise ValidationError(
                    f"{link_name} must reference a {required_type.value} account, "
                    f"{target_code} is not",
                    field="companion_links",
                    rule="link_type",
                )

    def validate_parent_change(self, code: str, new_parent_code: str | None) -> None:
        """
        Check a re-parenting request.

        Raises:
            AccountNotFoundError: If code is unknown.
            ValidationError: On self-parenting, cycles, type mismatch or depth.
        """
        account = self.require(code)
        if new_parent_code is None:
            return
        if new_parent_code == code:
            raise ValidationError(
                f"Account {code} cannot be its own parent",
                field="parent_account_code",
                rule="parent_self",
            )
        if new_parent_code in self._descendants(code):
            raise ValidationError(
                f"Moving {code} under {new_parent_code} would create a cycle",
                field="parent_account_code",
                rule="cycle",
            )
        self._check_parent(account, new_parent_code)

    def _descendants(self, code: str) -> set[str]:
        found: set[str] = set()
        stack = list(self._children.get(code, ()))
        while stack:
            child = stack.pop()
            if child not in found:
                found.add(child)
                stack.extend(self._children.get(child, ()))
        return found

    def validate_deactivation(self, code: str) -> None:
        self.require(code)
        active_children = [c for c in self.children_of(code) if self._accounts[c].is_active]
        if active_children:
            raise ValidationError(
                f"Account {code} has active child accounts: {', '.join(active_children)}",
                field="is_active",
                rule="has_children",
            )

    def assert_postable(self, code: str) -> Account:
        """
        Return the account if it may receive a journal line.

        Raises:
            AccountNotFoundError, AccountInactiveError, PostingNotAllowedError
        """
        account = self._accounts.get(code)
        if account is None:
            raise AccountNotFoundError(code)
        if not account.is_active:
            raise AccountInactiveError(code)
        if not account.posting_allowed:
            raise PostingNotAllowedError(code, "posting disabled")
        if self.has_children(code):
            raise PostingNotAllowedError(code, "header account")
        return account

    # ------------------------------------------------------------------
    # Consistency scan
    # ------------------------------------------------------------------

    def orphaned_companion_links(self) -> list[OrphanedLink]:
        """Links pointing at missing, inactive or wrongly typed accounts."""
        orphans: list[OrphanedLink] = []
        for account in self.accounts():
            for link_name, target_code, required_type in account.companion_links.references():
                target = self._accounts.get(target_code)
                if target is None:
                    problem = "target account does not exist"
                elif target.special_account_type != required_type:
                    problem = f"target is not a {required_type.value} account"
                elif not target.is_active and account.is_active:
                    problem = "target account is inactive"
                else:
                    continue
                orphans.append(OrphanedLink(account.account_code, link_name, target_code, problem))
            if account.special_account_type == SpecialAccountType.ACCUMULATED_DEPRECIATION:
                if not self._is_linked_from(account.account_code, "accumulated_depreciation_code"):
                    orphans.append(OrphanedLink(
                        account.account_code,
                        "accumulated_depreciation_code",
                        account.account_code,
                        "no asset account links to this accumulated depreciation account",
                    ))
        return orphans

    def _is_linked_from(self, target_code: str, link_name: str) -> bool:
        return any(
            getattr(a.companion_links, link_name) == target_code for a in self._accounts.values()
        )
