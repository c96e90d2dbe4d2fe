"""
Kernel settings -- the policy knobs services read at runtime.

The kernel never reads files or environment variables.  ``ledger_config``
parses YAML into these frozen dataclasses and hands them in; every field has
a default so the kernel also runs unconfigured (tests, embedding).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType

from ledger_kernel.domain.period import DEFAULT_CLOSED_PERIOD_BYPASS, EntryKind
from ledger_kernel.domain.reports import VarianceSeverity


@dataclass(frozen=True)
class PostingSettings:
    max_lines_per_entry: int = 100
    max_line_amount: Decimal | None = None
    lock_timeout_seconds: float = 5.0
    closed_period_bypass: frozenset[EntryKind] = DEFAULT_CLOSED_PERIOD_BYPASS

    def __post_init__(self) -> None:
        if self.max_lines_per_entry < 2:
            raise ValueError("max_lines_per_entry must be at least 2")
        if self.lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be positive")
        object.__setattr__(
            self, "closed_period_bypass", frozenset(EntryKind(k) for k in self.closed_period_bypass)
        )


@dataclass(frozen=True)
class SeverityThreshold:
    """A variance is at least ``severity`` if above either limit."""

    severity: VarianceSeverity
    percentage: Decimal
    absolute: Decimal


DEFAULT_SEVERITY_THRESHOLDS: tuple[SeverityThreshold, ...] = (
    SeverityThreshold(VarianceSeverity.CRITICAL, Decimal("50"), Decimal("100000")),
    SeverityThreshold(VarianceSeverity.HIGH, Decimal("25"), Decimal("10000")),
    SeverityThreshold(VarianceSeverity.MEDIUM, Decimal("10"), Decimal("1000")),
)


@dataclass(frozen=True)
class ReconciliationSettings:
    tolerance: Decimal = Decimal("0.01")
    thresholds: tuple[SeverityThreshold, ...] = DEFAULT_SEVERITY_THRESHOLDS

    def classify(self, variance: Decimal, expected: Decimal) -> VarianceSeverity:
        """Highest severity whose percentage or absolute limit is exceeded."""
        magnitude = abs(variance)
        percentage = None if expected == 0 else magnitude / abs(expected) * 100
        for threshold in self.thresholds:
            if magnitude > threshold.absolute:
                return threshold.severity
            # nothing expected: any variance is a full miss
            if percentage is None or percentage > threshold.percentage:
                return threshold.severity
        return VarianceSeverity.LOW


@dataclass(frozen=True)
class ReportingSettings:
    cash_account_codes: tuple[str, ...] = ()
    large_balance_threshold: Decimal = Decimal("1000000")


@dataclass(frozen=True)
class LedgerSettings:
    base_currency: str = "USD"
    tenant_currencies: Mapping[str, str] = field(default_factory=dict, hash=False)
    max_hierarchy_depth: int = 5
    posting: PostingSettings = field(default_factory=PostingSettings)
    reconciliation: ReconciliationSettings = field(default_factory=ReconciliationSettings)
    reporting: ReportingSettings = field(default_factory=ReportingSettings)

    def __post_init__(self) -> None:
        # read-only copy; services keep the settings they were wired with
        object.__setattr__(self, "tenant_currencies", MappingProxyType(dict(self.tenant_currencies)))

    def base_currency_for(self, tenant_id: str) -> str:
        return self.tenant_currencies.get(tenant_id, self.base_currency)
