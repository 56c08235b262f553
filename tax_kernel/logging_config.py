"""
Structured JSON logging for the tax engine.

Every record is one JSON object per line:

    {"ts": "...", "level": "INFO", "logger": "tax_kernel.services.invoice_sequencer",
     "message": "invoice_number_issued", "tenant_id": "t-1", "order_id": "o-9",
     "series": "A", "sequence_value": 42, ...}

Messages are event names; the data travels in ``extra``.  The tenant and
order an invoice is being issued for are bound once with
``LogContext.bind`` and stamped on every record emitted inside the block.
A ``TaxEngineError`` attached with ``exc_info`` contributes its ``code``
and constructor fields as ``error_code`` / ``error_details``.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, Iterator

from tax_kernel.exceptions import TaxEngineError

__all__ = [
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

_LOGGER_PREFIX = "tax_kernel"


class LogContext:
    """Tenant/order fields shared by every record in the current context."""

    FIELDS = ("tenant_id", "order_id")

    _fields: ContextVar[dict[str, str]] = ContextVar("tax_log_context", default={})

    @classmethod
    def current(cls) -> dict[str, str]:
        return dict(cls._fields.get())

    @classmethod
    @contextmanager
    def bind(cls, **fields: str | None) -> Iterator[None]:
        """
        Add fields for the duration of the block; ``None`` values are skipped.

        Raises:
            TypeError: for a field outside ``FIELDS``.
        """
        unknown = set(fields) - set(cls.FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        merged = cls.current()
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        token = cls._fields.set(merged)
        try:
            yield
        finally:
            cls._fields.reset(token)

    @classmethod
    def clear(cls) -> None:
        cls._fields.set({})


_RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.current(),
        }
        payload.update(
            (k, v) for k, v in vars(record).items() if k not in _RESERVED and k not in payload
        )

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["error_type"] = type(exc).__name__
            payload["error_message"] = str(exc)
            if isinstance(exc, TaxEngineError):
                payload["error_code"] = exc.code
                payload["error_details"] = exc.details()
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``tax_kernel`` namespace, e.g. ``get_logger("engines.snapshot")``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the ``tax_kernel`` logger. Later calls are no-ops."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(handler)


def reset_logging() -> None:
    """Undo ``configure_logging``. Tests and the CLI test harness only."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
