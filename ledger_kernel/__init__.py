"""
Ledger Kernel - multi-tenant double-entry bookkeeping core.

- Chart of accounts with polarity, hierarchy and companion-link rules
- Validated, atomic posting and reversal of journal entries
- Period control with an explicit closed-period policy
- Trial balance, profit and loss, balance sheet and cash flow
- Integrity checks, reconciliation and exception reports
"""

__version__ = "0.1.0"
