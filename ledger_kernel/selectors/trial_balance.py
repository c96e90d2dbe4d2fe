"""
Module: ledger_kernel.selectors.trial_balance
Responsibility: Read-only trial balance computation, from stored account
    balances or by replaying journal history, plus the canonical ledger hash.
Architecture position: Kernel > Selectors.  Reads through LedgerStore
    snapshots only; never writes.

Invariants enforced:
    - The sum of all signed balances (``out_of_balance``) must be zero.  A
      non-zero value is reported and logged, never corrected.
    - Replay uses only posted history, in append order, with
      ``posting_date <= as_of_date``.
    - canonical_hash() is deterministic: the same posted history always
      produces the same digest.

Failure modes:
    - PeriodNotFoundError for an unknown period.
    - ValidationError when stored balances are requested as of a date.

Audit relevance:
    The trial balance is the first check an auditor runs; the canonical
    hash lets a stored digest prove later that history was not altered.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable
from datetime import date

from ledger_kernel.domain.journal import JournalEntry
from ledger_kernel.domain.period import AccountingPeriod
from ledger_kernel.domain.replay import replay_balances
from ledger_kernel.domain.reports import BalanceSource, TrialBalance, TrialBalanceRow
from ledger_kernel.domain.values import Currency, Money
from ledger_kernel.exceptions import PeriodNotFoundError, ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.store.base import LedgerSnapshot, LedgerStore

logger = get_logger("selectors.trial_balance")


class TrialBalanceSelector:
    """
    Trial balance queries over one store.

    Contract:
        With neither period nor date, stored balances are listed (unless
        ``replay=True``).  With a period, history is replayed up to the
        period's end date; with a date, up to that date.
    """

    def __init__(self, store: LedgerStore, base_currency_for: Callable[[str], str] | None = None):
        self._store = store
        self._base_currency_for = base_currency_for or (lambda tenant_id: "USD")

    def base_currency(self, tenant_id: str) -> Currency:
        return Currency(self._base_currency_for(tenant_id))

    def compute_trial_balance(
        self,
        tenant_id: str,
        period: AccountingPeriod | str | None = None,
        as_of_date: date | None = None,
        replay: bool | None = None,
        snapshot: LedgerSnapshot | None = None,
    ) -> TrialBalance:
        """
        Compute a trial balance.

        Args:
            tenant_id: Tenant to report on.
            period: Period (or its code) whose end date bounds the replay.
            as_of_date: Explicit replay cut-off; wins over the period end.
            replay: Force replay (True) or stored balances (False).
            snapshot: Reuse an existing snapshot instead of taking a new one.
        """
        snap = snapshot or self._store.snapshot(tenant_id)
        base = self.base_currency(tenant_id)

        period_obj = self._resolve_period(snap, period)
        cutoff = as_of_date or (period_obj.end_date if period_obj else None)
        if replay is False and cutoff is not None:
            raise ValidationError(
                "Stored balances are current only; use replay for a period or date",
                field="replay",
                rule="stored_as_of",
            )
        use_replay = replay if replay is not None else cutoff is not None

        if use_replay:
            balances = replay_balances(snap.entries, base, cutoff)
            source = BalanceSource.REPLAY
        else:
            balances = {code: a.balance for code, a in snap.accounts.items()}
            source = BalanceSource.STORED

        rows = []
        for code in sorted(snap.accounts):
            account = snap.accounts[code]
            balance = balances.get(code, Money.zero(base))
            rows.append(TrialBalanceRow(
                account_code=code,
                account_name=account.account_name,
                account_type=account.account_type,
                balance=balance.amount,
            ))
        unknown = tuple(sorted(code for code in balances if code not in snap.accounts))

        trial_balance = TrialBalance(
            tenant_id=tenant_id,
            currency=base.code,
            source=source,
            rows=tuple(rows),
            tolerance=base.minor_unit,
            as_of_date=cutoff,
            period_code=period_obj.period_code if period_obj else None,
            unknown_account_codes=unknown,
        )

        log_extra = {
            "tenant_id": tenant_id,
            "source": source.value,
            "as_of_date": cutoff,
            "account_count": len(rows),
            "total_debits": trial_balance.total_debits,
            "total_credits": trial_balance.total_credits,
        }
        if trial_balance.is_balanced and not unknown:
            logger.info("trial_balance_computed", extra=log_extra)
        else:
            logger.warning(
                "trial_balance_out_of_balance",
                extra={
                    **log_extra,
                    "out_of_balance": trial_balance.out_of_balance,
                    "unknown_account_codes": list(unknown),
                },
            )
        return trial_balance

    def _resolve_period(
        self, snap: LedgerSnapshot, period: AccountingPeriod | str | None
    ) -> AccountingPeriod | None:
        if period is None or isinstance(period, AccountingPeriod):
            return period
        found = snap.period(period)
        if found is None:
            raise PeriodNotFoundError(period)
        return found

    # =========================================================================
    # Canonical ledger hash
    # =========================================================================

    def canonical_hash(self, tenant_id: str, as_of_date: date | None = None) -> str:
        """
        SHA-256 digest over all posted lines in canonical order.

        Lines are ordered by (account_code, entry sequence, line number), so
        the digest does not depend on storage order.  A reversal changes the
        hash (the mirror lines are new history); a replay of the same
        history does not.
        """
        entries = self._store.load_journal_history(tenant_id, as_of_date)
        return self._compute_hash(self._canonical_lines(entries))

    def verify_canonical_hash(
        self, tenant_id: str, expected_hash: str, as_of_date: date | None = None
    ) -> bool:
        return self.canonical_hash(tenant_id, as_of_date) == expected_hash

    def _canonical_lines(self, entries: list[JournalEntry]) -> list[dict]:
        lines = []
        for sequence, entry in enumerate(entries, start=1):
            for line in entry.lines:
                lines.append({
                    "account_code": line.account_code,
                    "entry_id": entry.entry_id,
                    "entry_seq": sequence,
                    "line_seq": line.line_number,
                    "side": line.side.value,
                    "amount": str(line.amount.amount),
                    "currency": line.amount.currency.code,
                    "base_amount": str(line.base_amount.amount),
                    "posting_date": entry.posting_date.isoformat(),
                })
        lines.sort(key=lambda x: (x["account_code"], x["entry_seq"], x["line_seq"]))
        return lines

    def _compute_hash(self, canonical_lines: list[dict]) -> str:
        hasher = hashlib.sha256()
        for line in canonical_lines:
            hasher.update(json.dumps(line, sort_keys=True, separators=(",", ":")).encode("utf-8"))
            hasher.update(b"\n")
        return hasher.hexdigest()
