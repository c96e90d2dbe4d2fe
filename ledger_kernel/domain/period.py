"""
Accounting periods -- lifecycle state machine and posting policy.

Responsibility:
    Defines AccountingPeriod, its monotonic status machine
    (OPEN -> CLOSED -> LOCKED -> FINALIZED), period-code date derivation and
    the pure ``posting_decision`` used by the period gate.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Status never regresses.  Legal steps: OPEN->CLOSED, OPEN->LOCKED,
      CLOSED->LOCKED, LOCKED->FINALIZED.
    - OPEN accepts every entry kind.  CLOSED accepts only the kinds allowed
      to bypass a soft close, and only when the period's own flag permits
      it.  LOCKED and FINALIZED accept nothing.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum

from ledger_kernel.exceptions import PeriodTransitionError, ValidationError


class PeriodStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    LOCKED = "locked"
    FINALIZED = "finalized"


def parse_period_status(value: object, field_name: str = "status") -> PeriodStatus:
    try:
        return PeriodStatus(value)
    except ValueError as e:
        raise ValidationError(str(e), field=field_name, rule="enum") from e


class EntryKind(str, Enum):
    """Posting flag consulted by the period gate."""

    STANDARD = "standard"
    ADJUSTING = "adjusting"
    CLOSING = "closing"
    REVERSING = "reversing"


_TRANSITIONS: dict[PeriodStatus, frozenset[PeriodStatus]] = {
    PeriodStatus.OPEN: frozenset({PeriodStatus.CLOSED, PeriodStatus.LOCKED}),
    PeriodStatus.CLOSED: frozenset({PeriodStatus.LOCKED}),
    PeriodStatus.LOCKED: frozenset({PeriodStatus.FINALIZED}),
    PeriodStatus.FINALIZED: frozenset(),
}

DEFAULT_CLOSED_PERIOD_BYPASS: frozenset[EntryKind] = frozenset({
    EntryKind.ADJUSTING,
    EntryKind.CLOSING,
})

_MONTH_CODE = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")
_QUARTER_CODE = re.compile(r"^(\d{4})-Q([1-4])$")
_YEAR_CODE = re.compile(r"^(\d{4})$")
PERIOD_CODE_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,31}$")


def period_bounds(period_code: str) -> tuple[date, date]:
    """
    Derive (start, end) from a conventional period code.

    Supports ``YYYY-MM`` (monthly), ``YYYY-Qn`` (quarterly) and ``YYYY``
    (annual).

    Raises:
        ValidationError: If the code does not follow one of these forms.
    """
    if m := _MONTH_CODE.match(period_code):
        year, month = int(m.group(1)), int(m.group(2))
        return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])
    if m := _QUARTER_CODE.match(period_code):
        year, quarter = int(m.group(1)), int(m.group(2))
        first = 3 * (quarter - 1) + 1
        last = first + 2
        return date(year, first, 1), date(year, last, calendar.monthrange(year, last)[1])
    if m := _YEAR_CODE.match(period_code):
        year = int(m.group(1))
        return date(year, 1, 1), date(year, 12, 31)
    raise ValidationError(
        f"Cannot derive dates from period code {period_code!r}; "
        "use YYYY-MM, YYYY-Qn or YYYY, or give explicit dates",
        field="period_code",
        rule="period_code_format",
    )


@dataclass(frozen=True, slots=True)
class AccountingPeriod:
    """
    One accounting period of one tenant.

    Guarantees:
        - start_date <= end_date.
        - status only moves forward through ``transition_to``.
    """

    tenant_id: str
    period_code: str
    start_date: date
    end_date: date
    status: PeriodStatus = PeriodStatus.OPEN
    allows_adjustments: bool = False
    allows_closing_entries: bool = True
    closed_at: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.tenant_id, str) or not self.tenant_id.strip():
            raise ValidationError("tenant_id is required", field="tenant_id", rule="required")
        if not isinstance(self.period_code, str) or not PERIOD_CODE_PATTERN.match(self.period_code):
            raise ValidationError(
                f"Invalid period code {self.period_code!r}",
                field="period_code",
                rule="period_code_format",
            )
        if self.start_date > self.end_date:
            raise ValidationError(
                f"start_date ({self.start_date}) cannot be after end_date ({self.end_date})",
                field="start_date",
                rule="date_order",
            )
        object.__setattr__(self, "status", parse_period_status(self.status))

    @classmethod
    def from_code(cls, tenant_id: str, period_code: str, **kwargs) -> AccountingPeriod:
        start, end = period_bounds(period_code)
        return cls(tenant_id=tenant_id, period_code=period_code, start_date=start, end_date=end, **kwargs)

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def overlaps(self, other: AccountingPeriod) -> bool:
        return self.start_date <= other.end_date and other.start_date <= self.end_date

    def can_transition_to(self, new_status: PeriodStatus) -> bool:
        return parse_period_status(new_status, "new_status") in _TRANSITIONS[self.status]

    def transition_to(self, new_status: PeriodStatus | str, at: datetime) -> AccountingPeriod:
        """
        Return the period in ``new_status``.

        Raises:
            PeriodTransitionError: If the step is not a legal forward move.
            ValidationError: If new_status is not a period status.
        """
        target = parse_period_status(new_status, "new_status")
        if not self.can_transition_to(target):
            raise PeriodTransitionError(self.period_code, self.status.value, target.value)
        closed_at = self.closed_at
        if self.status == PeriodStatus.OPEN:
            closed_at = at
        return replace(self, status=target, closed_at=closed_at)


def posting_decision(
    period: AccountingPeriod,
    kind: EntryKind,
    closed_period_bypass: frozenset[EntryKind] = DEFAULT_CLOSED_PERIOD_BYPASS,
) -> tuple[bool, str]:
    """
    Decide whether ``period`` accepts an entry of ``kind``.

    Returns:
        (allowed, reason) -- reason explains a refusal, empty when allowed.
    """
    if period.status == PeriodStatus.OPEN:
        return True, ""
    if period.status in (PeriodStatus.LOCKED, PeriodStatus.FINALIZED):
        return False, f"period is {period.status.value}"
    # CLOSED
    if kind not in closed_period_bypass:
        return False, f"{kind.value} entries cannot post to a closed period"
    if kind == EntryKind.ADJUSTING and not period.allows_adjustments:
        return False, "period does not allow adjusting entries"
    if kind == EntryKind.CLOSING and not period.allows_closing_entries:
        return False, "period does not allow closing entries"
    return True, ""
