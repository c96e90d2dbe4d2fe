"""
Structured JSON logging for the ledger kernel.

Every record is one JSON object per line: ``ts``, ``level``, ``logger`` and
``message``, then the bound ledger context (tenant, actor, entry, period,
correlation id), then the record's ``extra`` fields.  A record logged with
``exc_info`` also carries the exception's type, message, ``code`` and every
public attribute as ``exc_<name>``, so a rejected posting can be searched by
period code or entry id without parsing message text.

Services log snake_case event names (``journal_entry_posted``,
``posting_rejected``) and never format values into the message.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

LOGGER_NAMESPACE = "ledger_kernel"

_EMPTY: Mapping[str, str] = MappingProxyType({})


class LogContext:
    """
    Ledger fields attached to every record logged in the current context.

    Backed by one ContextVar holding a read-only mapping, so threads and
    asyncio tasks each see their own fields.
    """

    FIELDS = ("correlation_id", "tenant_id", "actor_id", "entry_id", "period_code")

    _fields: ContextVar[Mapping[str, str]] = ContextVar("ledger_log_context", default=_EMPTY)

    @classmethod
    def _merged(cls, fields: dict[str, str | None]) -> Mapping[str, str]:
        unknown = sorted(set(fields) - set(cls.FIELDS))
        if unknown:
            raise TypeError(f"Unknown log context field(s): {unknown}")
        merged = dict(cls._fields.get())
        merged.update((name, value) for name, value in fields.items() if value is not None)
        return MappingProxyType(merged)

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Add fields to the current context; None values are skipped."""
        cls._fields.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        current = cls._fields.get()
        return {name: current[name] for name in cls.FIELDS if name in current}

    @classmethod
    def clear(cls) -> None:
        cls._fields.set(_EMPTY)

    @classmethod
    def bind(cls, **fields: str | None):
        """
        Context manager scoping fields to a block.

        Field names are checked here, not on entry, so a typo fails at the
        call site.  The previous context is restored on exit, error or not.
        """
        return cls._scoped(cls._merged(fields))

    @classmethod
    @contextmanager
    def _scoped(cls, fields: Mapping[str, str]) -> Iterator[type["LogContext"]]:
        token = cls._fields.set(fields)
        try:
            yield cls
        finally:
            cls._fields.reset(token)


# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    # Decimal, UUID and anything else: exact text
    return str(value)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = self._header(record)
        payload.update(LogContext.get_all())
        payload.update(self._extra_fields(record, payload))
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default)

    @staticmethod
    def _header(record: logging.LogRecord) -> dict[str, Any]:
        return {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

    @staticmethod
    def _extra_fields(record: logging.LogRecord, taken: Mapping[str, Any]) -> dict[str, Any]:
        return {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in taken
        }

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # LedgerError subclasses keep their structured data as attributes
        for name, value in vars(exc).items():
            if not name.startswith("_") and name != "code":
                fields[f"exc_{name}"] = value
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``ledger_kernel`` namespace."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_configure_lock = threading.Lock()
_handler_installed: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install one JSON handler on the ``ledger_kernel`` logger.

    Idempotent: later calls are ignored until ``reset_logging()``.  Records
    do not propagate to the root logger.
    """
    global _handler_installed
    with _configure_lock:
        if _handler_installed is not None:
            return
        _handler_installed = handler or logging.StreamHandler(stream or sys.stderr)
        _handler_installed.setFormatter(StructuredFormatter())

        kernel_logger = logging.getLogger(LOGGER_NAMESPACE)
        kernel_logger.setLevel(level)
        kernel_logger.propagate = False
        kernel_logger.addHandler(_handler_installed)


def reset_logging() -> None:
    """Remove the installed handler.  Tests only."""
    global _handler_installed
    with _configure_lock:
        _handler_installed = None
        kernel_logger = logging.getLogger(LOGGER_NAMESPACE)
        kernel_logger.handlers.clear()
        kernel_logger.setLevel(logging.WARNING)
