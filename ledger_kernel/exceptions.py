"""
Typed exception hierarchy for the ledger kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers must be able to react to a rejected posting without parsing message
text.  Every error therefore has:
  1. a TYPED exception class (catch by type, not by message),
  2. a ``code`` class attribute (machine-readable, transport-safe),
  3. structured attributes carrying the data that caused the failure.

Example:
    try:
        engine.post(command)
    except PeriodClosedError as e:
        respond(code=e.code, period=e.period_code, status=e.status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (base)
    |
    +-- ValidationError
    |   +-- PolarityViolationError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |   +-- AccountInactiveError
    |   +-- PostingNotAllowedError
    |   +-- DuplicateAccountError
    |
    +-- PostingError
    |   +-- ImbalanceError
    |   +-- DuplicateEntryError
    |
    +-- PeriodError
    |   +-- PeriodClosedError
    |   +-- PeriodNotFoundError
    |   +-- PostingDateOutsidePeriodError
    |   +-- PeriodTransitionError
    |   +-- PeriodOverlapError
    |
    +-- ReversalError
    |   +-- JournalEntryNotFoundError
    |   +-- EntryAlreadyReversedError
    |   +-- ReversalPeriodClosedError
    |
    +-- ConcurrencyError
    |   +-- PostingLockTimeoutError
    |
    +-- IntegrityError
    |
    +-- StoreError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                       | When Raised
-------------|----------------------------|------------------------------------
Validation   | VALIDATION_ERROR           | Malformed input, before side effects
             | POLARITY_VIOLATION         | Balance of the wrong sign
-------------|----------------------------|------------------------------------
Account      | ACCOUNT_NOT_FOUND          | Unknown (tenant, account code)
             | ACCOUNT_INACTIVE           | Posting to a deactivated account
             | POSTING_NOT_ALLOWED        | Header or posting-disabled account
             | DUPLICATE_ACCOUNT          | Account code already exists
-------------|----------------------------|------------------------------------
Posting      | UNBALANCED_ENTRY           | Debits != credits in base currency
             | DUPLICATE_ENTRY            | Entry id already used by the tenant
-------------|----------------------------|------------------------------------
Period       | CLOSED_PERIOD              | Period does not accept the entry
             | PERIOD_NOT_FOUND           | Unknown period code
             | DATE_OUTSIDE_PERIOD        | Posting date not in the period
             | INVALID_PERIOD_TRANSITION  | Backward or illegal state change
             | PERIOD_OVERLAP             | Date ranges overlap
-------------|----------------------------|------------------------------------
Reversal     | REVERSAL_ERROR             | Generic reversal rejection
             | ENTRY_NOT_FOUND            | Original entry does not exist
             | ENTRY_ALREADY_REVERSED     | Second reversal attempt
             | REVERSAL_PERIOD_CLOSED     | Target period refuses reversals
-------------|----------------------------|------------------------------------
Concurrency  | POSTING_LOCK_TIMEOUT       | Tenant posting section not acquired
-------------|----------------------------|------------------------------------
Integrity    | INTEGRITY_DRIFT            | Stored state disagrees with history
Store        | STORE_ERROR                | Persistence layer failure
"""

from datetime import date
from decimal import Decimal


class LedgerError(Exception):
    """Base exception for all ledger kernel errors."""

    code: str = "LEDGER_ERROR"


# =============================================================================
# Validation
# =============================================================================


class ValidationError(LedgerError):
    """Malformed input rejected before any side effect."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, rule: str | None = None):
        self.field = field
        self.rule = rule
        super().__init__(message)


class PolarityViolationError(ValidationError):
    """An account balance would carry the wrong sign for its type."""

    code: str = "POLARITY_VIOLATION"

    def __init__(
        self,
        account_code: str,
        account_type: str,
        balance: Decimal,
        expected_polarity: str,
    ):
        self.account_code = account_code
        self.account_type = account_type
        self.balance = balance
        self.expected_polarity = expected_polarity
        super().__init__(
            f"Account {account_code} ({account_type}) must be {expected_polarity}-balanced, "
            f"balance would be {balance}",
            field="balance",
            rule="polarity",
        )


# =============================================================================
# Account
# =============================================================================


class AccountError(LedgerError):
    """Base for account-related errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Account code does not exist for the tenant."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_code: str, tenant_id: str | None = None):
        self.account_code = account_code
        self.tenant_id = tenant_id
        super().__init__(f"Account not found: {account_code}")


class AccountInactiveError(AccountError):
    """Account exists but is deactivated."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account {account_code} is inactive")


class PostingNotAllowedError(AccountError):
    """Account refuses direct postings (header or posting disabled)."""

    code: str = "POSTING_NOT_ALLOWED"

    def __init__(self, account_code: str, reason: str):
        self.account_code = account_code
        self.reason = reason
        super().__init__(f"Posting not allowed to account {account_code}: {reason}")


class DuplicateAccountError(AccountError):
    """Account code already exists for the tenant."""

    code: str = "DUPLICATE_ACCOUNT"

    def __init__(self, account_code: str, tenant_id: str):
        self.account_code = account_code
        self.tenant_id = tenant_id
        super().__init__(f"Account {account_code} already exists for tenant {tenant_id}")


# =============================================================================
# Posting
# =============================================================================


class PostingError(LedgerError):
    """Base for journal posting errors."""

    code: str = "POSTING_ERROR"


class ImbalanceError(PostingError):
    """Debits and credits do not balance."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: Decimal, credits: Decimal, currency: str):
        self.debits = debits
        self.credits = credits
        self.currency = currency
        super().__init__(
            f"Entry is unbalanced in {currency}: debits={debits}, credits={credits}"
        )


class DuplicateEntryError(PostingError):
    """Journal entry id already used for the tenant."""

    code: str = "DUPLICATE_ENTRY"

    def __init__(self, entry_id: str, tenant_id: str):
        self.entry_id = entry_id
        self.tenant_id = tenant_id
        super().__init__(f"Journal entry {entry_id} already exists for tenant {tenant_id}")


# =============================================================================
# Period
# =============================================================================


class PeriodError(LedgerError):
    """Base for accounting period errors."""

    code: str = "PERIOD_ERROR"


class PeriodClosedError(PeriodError):
    """Period does not accept entries of the requested kind."""

    code: str = "CLOSED_PERIOD"

    def __init__(self, period_code: str, status: str, entry_kind: str):
        self.period_code = period_code
        self.status = status
        self.entry_kind = entry_kind
        super().__init__(
            f"Period {period_code} is {status} and does not accept {entry_kind} entries"
        )


class PeriodNotFoundError(PeriodError):
    """Period code does not exist for the tenant."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_code: str):
        self.period_code = period_code
        super().__init__(f"Accounting period not found: {period_code}")


class PostingDateOutsidePeriodError(PeriodError):
    """Posting date falls outside the accounting period it names."""

    code: str = "DATE_OUTSIDE_PERIOD"
    field: str = "posting_date"
    rule: str = "posting_date_in_period"

    def __init__(self, period_code: str, posting_date: date, start_date: date, end_date: date):
        self.period_code = period_code
        self.posting_date = posting_date
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"Posting date {posting_date} is outside period {period_code} "
            f"({start_date} to {end_date})"
        )


class PeriodTransitionError(PeriodError):
    """Requested period state change is not a legal forward step."""

    code: str = "INVALID_PERIOD_TRANSITION"

    def __init__(self, period_code: str, from_status: str, to_status: str):
        self.period_code = period_code
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Period {period_code} cannot move from {from_status} to {to_status}"
        )


class PeriodOverlapError(PeriodError):
    """New period duplicates or overlaps an existing one."""

    code: str = "PERIOD_OVERLAP"

    def __init__(self, new_period_code: str, existing_period_code: str):
        self.new_period_code = new_period_code
        self.existing_period_code = existing_period_code
        super().__init__(
            f"Period {new_period_code} overlaps existing period {existing_period_code}"
        )


# =============================================================================
# Reversal
# =============================================================================


class ReversalError(LedgerError):
    """Journal entry cannot be reversed."""

    code: str = "REVERSAL_ERROR"

    def __init__(self, entry_id: str, reason: str):
        self.entry_id = entry_id
        self.reason = reason
        super().__init__(f"Cannot reverse entry {entry_id}: {reason}")


class JournalEntryNotFoundError(ReversalError):
    """Entry to reverse does not exist."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        super().__init__(entry_id, "entry does not exist")


class EntryAlreadyReversedError(ReversalError):
    """Entry has already been reversed."""

    code: str = "ENTRY_ALREADY_REVERSED"

    def __init__(self, entry_id: str, reversed_by: str):
        self.reversed_by = reversed_by
        super().__init__(entry_id, f"already reversed by {reversed_by}")


class ReversalPeriodClosedError(ReversalError):
    """Target period no longer accepts reversals."""

    code: str = "REVERSAL_PERIOD_CLOSED"

    def __init__(self, entry_id: str, period_code: str, status: str):
        self.period_code = period_code
        self.status = status
        super().__init__(
            entry_id, f"period {period_code} is {status} and does not accept reversals"
        )


# =============================================================================
# Concurrency
# =============================================================================


class ConcurrencyError(LedgerError):
    """Base for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class PostingLockTimeoutError(ConcurrencyError):
    """Tenant posting section could not be acquired within the timeout."""

    code: str = "POSTING_LOCK_TIMEOUT"

    def __init__(self, tenant_id: str, timeout_seconds: float):
        self.tenant_id = tenant_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timed out after {timeout_seconds}s waiting for posting lock of tenant {tenant_id}"
        )


# =============================================================================
# Integrity / Store
# =============================================================================


class IntegrityError(LedgerError):
    """Stored ledger state disagrees with the journal history."""

    code: str = "INTEGRITY_DRIFT"

    def __init__(self, tenant_id: str, issue_count: int, summary: str = ""):
        self.tenant_id = tenant_id
        self.issue_count = issue_count
        message = f"Ledger integrity check failed for tenant {tenant_id}: {issue_count} issue(s)"
        if summary:
            message = f"{message}; {summary}"
        super().__init__(message)


class StoreError(LedgerError):
    """Ledger store failed to persist or load state."""

    code: str = "STORE_ERROR"
