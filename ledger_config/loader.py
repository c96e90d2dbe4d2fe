"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML policy file and parses it into the kernel's frozen
``LedgerSettings`` dataclasses.  Runtime callers use
``ledger_config.get_active_config()``; this module is the parsing layer
underneath it.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; unknown severities or entry kinds are rejected, not ignored.
* Monetary and percentage values are parsed as ``Decimal`` from their
  string form, never through float.
* ``compute_checksum`` is deterministic for identical content.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_kernel.domain.period import EntryKind
from ledger_kernel.domain.reports import VarianceSeverity
from ledger_kernel.domain.values import Currency
from ledger_kernel.settings import (
    DEFAULT_SEVERITY_THRESHOLDS,
    LedgerSettings,
    PostingSettings,
    ReconciliationSettings,
    ReportingSettings,
    SeverityThreshold,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def parse_decimal(value: Any, name: str) -> Decimal:
    """Parse a YAML scalar into Decimal, refusing floats."""
    if isinstance(value, float):
        raise ValueError(f"{name} must be quoted or an integer, got float {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{name}: cannot parse {value!r} as a decimal") from e
    if not result.is_finite():
        raise ValueError(f"{name} must be finite, got {value!r}")
    return result


def parse_currency(value: Any, name: str) -> str:
    try:
        return Currency(str(value)).code
    except ValueError as e:
        raise ValueError(f"{name}: {e}") from e


def parse_posting(data: dict[str, Any]) -> PostingSettings:
    max_amount = data.get("max_line_amount")
    return PostingSettings(
        max_lines_per_entry=int(data.get("max_lines_per_entry", 100)),
        max_line_amount=(
            parse_decimal(max_amount, "posting.max_line_amount") if max_amount is not None else None
        ),
        lock_timeout_seconds=float(parse_decimal(data.get("lock_timeout_seconds", 5), "posting.lock_timeout_seconds")),
        closed_period_bypass=frozenset(
            EntryKind(kind) for kind in data.get("closed_period_bypass", ("adjusting", "closing"))
        ),
    )


def parse_reconciliation(data: dict[str, Any]) -> ReconciliationSettings:
    raw_thresholds = data.get("thresholds")
    if raw_thresholds is None:
        thresholds = DEFAULT_SEVERITY_THRESHOLDS
    else:
        thresholds = tuple(
            SeverityThreshold(
                severity=VarianceSeverity(t["severity"]),
                percentage=parse_decimal(t["percentage"], "reconciliation.thresholds.percentage"),
                absolute=parse_decimal(t["absolute"], "reconciliation.thresholds.absolute"),
            )
            for t in raw_thresholds
        )
    order = [VarianceSeverity.CRITICAL, VarianceSeverity.HIGH, VarianceSeverity.MEDIUM, VarianceSeverity.LOW]
    thresholds = tuple(sorted(thresholds, key=lambda t: order.index(t.severity)))
    return ReconciliationSettings(
        tolerance=parse_decimal(data.get("tolerance", "0.01"), "reconciliation.tolerance"),
        thresholds=thresholds,
    )


def parse_reporting(data: dict[str, Any]) -> ReportingSettings:
    return ReportingSettings(
        cash_account_codes=tuple(str(c) for c in data.get("cash_account_codes", ())),
        large_balance_threshold=parse_decimal(
            data.get("large_balance_threshold", "1000000"), "reporting.large_balance_threshold"
        ),
    )


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """
    Build LedgerSettings from a parsed YAML mapping.

    Missing sections fall back to the kernel defaults.
    """
    tenant_currencies = {
        str(tenant): parse_currency(code, f"tenant_currencies.{tenant}")
        for tenant, code in (data.get("tenant_currencies") or {}).items()
    }
    chart = data.get("chart") or {}
    return LedgerSettings(
        base_currency=parse_currency(data.get("base_currency", "USD"), "base_currency"),
        tenant_currencies=tenant_currencies,
        max_hierarchy_depth=int(chart.get("max_hierarchy_depth", 5)),
        posting=parse_posting(data.get("posting") or {}),
        reconciliation=parse_reconciliation(data.get("reconciliation") or {}),
        reporting=parse_reporting(data.get("reporting") or {}),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
