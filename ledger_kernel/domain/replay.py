"""
Replay -- derive balances strictly from posted journal history.

The journal history is the second source of truth next to the stored
account balances.  Everything here is a pure fold over entries in append
order; nothing reads account state.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date

from ledger_kernel.domain.journal import JournalEntry
from ledger_kernel.domain.values import Currency, Money


def entries_up_to(entries: Iterable[JournalEntry], up_to_date: date | None) -> list[JournalEntry]:
    if up_to_date is None:
        return list(entries)
    return [e for e in entries if e.posting_date <= up_to_date]


def replay_balances(
    entries: Iterable[JournalEntry],
    base_currency: Currency,
    up_to_date: date | None = None,
) -> dict[str, Money]:
    """Signed debit-positive balance per account code touched by history."""
    balances: dict[str, Money] = {}
    for entry in entries_up_to(entries, up_to_date):
        for line in entry.lines:
            current = balances.get(line.account_code, Money.zero(base_currency))
            balances[line.account_code] = current + line.signed_base_amount
    return balances


def running_balances(
    entries: Sequence[JournalEntry], account_code: str, base_currency: Currency
) -> list[tuple[str | None, Money]]:
    """
    Balance of one account after each entry touching it.

    The first element is ``(None, zero)``: the balance before any posting.
    """
    history: list[tuple[str | None, Money]] = [(None, Money.zero(base_currency))]
    balance = Money.zero(base_currency)
    for entry in entries:
        delta = entry.signed_deltas().get(account_code)
        if delta is None:
            continue
        balance = balance + delta
        history.append((entry.entry_id, balance))
    return history


def first_offending_entry(
    entries: Sequence[JournalEntry],
    account_code: str,
    stored_balance: Money,
) -> str | None:
    """
    Best guess at the first entry whose effect the stored balance lacks.

    If the stored balance equals the running balance at some earlier point of
    history, the entry right after the latest such point is the first one not
    reflected.  Returns None when no prefix matches.
    """
    history = running_balances(entries, account_code, stored_balance.currency)
    for index in range(len(history) - 2, -1, -1):
        if history[index][1] == stored_balance:
            return history[index + 1][0]
    return None
