"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a ``LedgerConfiguration`` whose
    ``settings`` are the kernel's own frozen ``LedgerSettings``.

Architecture position:
    Configuration -- sits above ``ledger_kernel``.  The kernel MUST NEVER
    import from ``ledger_config``; this package translates YAML into
    kernel-owned dataclasses.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Deterministic checksum: the same YAML content always produces the
      same checksum.

Failure modes:
    - ``FileNotFoundError`` -- configuration file missing.
    - ``ValueError`` -- structural or value validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``LEDGER_CONFIG_TRACE`` log entry with the config_id, version and
    checksum, tying postings to the policy that governed them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from ledger_config.loader import compute_checksum, load_yaml_file, parse_settings
from ledger_kernel.settings import LedgerSettings

_logger = logging.getLogger("ledger_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


@dataclass(frozen=True)
class LedgerConfiguration:
    """Parsed configuration plus the identity needed to audit it."""

    config_id: str
    version: int
    checksum: str
    settings: LedgerSettings
    source: Path


def get_active_config(config_path: Path | str | None = None) -> LedgerConfiguration:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a YAML configuration file.
            Defaults to ledger_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the content fails validation.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    data = load_yaml_file(path)

    settings = parse_settings(data)
    config = LedgerConfiguration(
        config_id=str(data.get("config_id", path.stem)),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        settings=settings,
        source=path,
    )

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "base_currency": settings.base_currency,
            "tenant_currency_count": len(settings.tenant_currencies),
        },
    )
    return config


__all__ = ["LedgerConfiguration", "get_active_config"]
