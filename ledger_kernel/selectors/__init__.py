"""Read-only query layer."""

from ledger_kernel.selectors.trial_balance import TrialBalanceSelector

__all__ = ["TrialBalanceSelector"]
