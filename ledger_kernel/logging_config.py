"""
Structured logging for the ledger (``ledger_kernel.logging_config``).

Every ledger logger lives under the ``ledger_kernel`` namespace and writes
one JSON object per line::

    {"ts": "...", "level": "INFO", "logger": "ledger_kernel.services.journal",
     "message": "journal_entry_posted", "tenant_id": "acme", "seq": 12}

The message is a snake_case event name; the variable parts travel in
``extra``.  Money and quantities are written as strings so a log store
never sees a rounded float.

Operation scope (tenant, actor, entry, item, correlation id) is bound with
``LogContext.bind`` and stamped on every record emitted inside the block.

A ledger error attached with ``exc_info`` is written as an ``error`` object
carrying its code and structured fields.  These are expected rejections,
so only unexpected exceptions also get a ``traceback``.
"""

__all__ = [
    "LOG_LEVEL_ENV",
    "SCOPE_FIELDS",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import os
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Iterator, Mapping
from uuid import UUID

from ledger_kernel.exceptions import ConfigurationError, LedgerKernelError

LOGGER_NAMESPACE = "ledger_kernel"
LOG_LEVEL_ENV = "LEDGER_LOG_LEVEL"

SCOPE_FIELDS = ("tenant_id", "actor_id", "correlation_id", "entry_id", "item_id")

_EMPTY_SCOPE: Mapping[str, str] = MappingProxyType({})
_scope: ContextVar[Mapping[str, str]] = ContextVar("ledger_log_scope", default=_EMPTY_SCOPE)


def _with_fields(fields: Mapping[str, Any]) -> Mapping[str, str]:
    unknown = sorted(set(fields) - set(SCOPE_FIELDS))
    if unknown:
        raise KeyError(f"Unknown log context field(s): {', '.join(unknown)}")
    merged = dict(_scope.get())
    merged.update((name, str(value)) for name, value in fields.items() if value is not None)
    return MappingProxyType(merged)


class LogContext:
    """Scope fields stamped on every ledger record in the current context."""

    @staticmethod
    def set(**fields: Any) -> None:
        """Add fields to the current scope.  None leaves a field as it was."""
        _scope.set(_with_fields(fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_scope.get())

    @staticmethod
    def clear() -> None:
        _scope.set(_EMPTY_SCOPE)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Add fields for the duration of the block, then restore the outer scope."""
        token = _scope.set(_with_fields(fields))
        try:
            yield
        finally:
            _scope.reset(token)


# Attributes every LogRecord has; anything else on a record came from ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    # Decimal, UUID and anything else without a JSON form
    return str(value)


def _error_fields(exc: BaseException) -> dict[str, Any]:
    error: dict[str, Any] = {"type": type(exc).__name__, "message": str(exc)}
    if isinstance(exc, LedgerKernelError):
        error["code"] = exc.code
        error.update((k, v) for k, v in vars(exc).items() if not k.startswith("_"))
    return error


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_scope.get())
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in payload:
                payload[key] = value

        exc = record.exc_info[1] if record.exc_info else None
        if exc is not None:
            payload["error"] = _error_fields(exc)
            if not isinstance(exc, LedgerKernelError):
                payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_jsonable)


def get_logger(name: str) -> logging.Logger:
    """Logger for a ledger component, e.g. ``get_logger("services.journal")``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, logging.INFO)
    if isinstance(level, int):
        return level
    resolved = logging.getLevelNamesMapping().get(level.strip().upper())
    if resolved is None:
        raise ConfigurationError(LOG_LEVEL_ENV, f"unknown log level '{level}'")
    return resolved


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str | None = None,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Send ledger records to ``handler`` (default: a stream handler on stderr).

    ``level`` may be a number or a name; when omitted it is read from
    ``LEDGER_LOG_LEVEL``, else INFO.  Only the first call takes effect until
    ``reset_logging``.  Records do not propagate to the root logger.
    """
    global _configured
    resolved = _resolve_level(level)
    with _lock:
        if _configured:
            return
        _configured = True

    ledger_logger = logging.getLogger(LOGGER_NAMESPACE)
    ledger_logger.setLevel(resolved)
    ledger_logger.propagate = False

    target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    ledger_logger.addHandler(target)


def reset_logging() -> None:
    """Drop ledger handlers and allow configure_logging again (tests)."""
    global _configured
    with _lock:
        _configured = False
    ledger_logger = logging.getLogger(LOGGER_NAMESPACE)
    ledger_logger.handlers.clear()
    ledger_logger.setLevel(logging.WARNING)
