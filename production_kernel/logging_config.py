"""
Structured JSON logging for the production kernel.

Every record is one JSON object per line:

    {"ts": ..., "level": "INFO", "logger": "production_kernel.services.order",
     "message": "order_transitioned", "operation": "transition",
     "actor_id": "ana", "order_id": "P1001", "correlation_id": ..., ...}

Request-scoped fields (which operation, for which actor and order) come
from LogContext, bound once per operation by the orchestrator.  Event
fields come from ``extra=``.  Kernel exceptions logged with ``exc_info``
contribute their code, HTTP status, retry flag and structured attributes.
"""

__all__ = [
    "CONTEXT_FIELDS",
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
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

# Fields LogContext accepts, in output order
CONTEXT_FIELDS: tuple[str, ...] = ("correlation_id", "operation", "actor_id", "order_id")

_EMPTY: Mapping[str, str] = MappingProxyType({})

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------


class LogContext:
    """
    Request-scoped log fields, held in one context variable.

    The value is an immutable mapping, so threads and tasks each see their
    own copy and ``bind`` can restore the outer mapping exactly.
    """

    _fields: ContextVar[Mapping[str, str]] = ContextVar("floor_log_context", default=_EMPTY)

    @staticmethod
    def _merge(current: Mapping[str, str], updates: dict[str, str | None]) -> Mapping[str, str]:
        unknown = set(updates) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context field(s): {', '.join(sorted(unknown))}")
        merged = dict(current)
        merged.update({k: v for k, v in updates.items() if v is not None})
        return MappingProxyType(merged)

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set context fields. None values leave the field unchanged."""
        cls._fields.set(cls._merge(cls._fields.get(), fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        current = cls._fields.get()
        return {name: current[name] for name in CONTEXT_FIELDS if name in current}

    @classmethod
    def clear(cls) -> None:
        cls._fields.set(_EMPTY)

    @classmethod
    def bind(cls, **fields: str | None) -> "_BoundContext":
        """Context manager: add fields on entry, restore the outer context on exit."""
        return _BoundContext(cls._merge(cls._fields.get(), fields))


class _BoundContext:

    def __init__(self, fields: Mapping[str, str]):
        self._fields = fields
        self._token = None

    def __enter__(self) -> type[LogContext]:
        self._token = LogContext._fields.set(self._fields)
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        LogContext._fields.reset(self._token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_RESERVED: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}

# Exception attributes already reported under their own keys
_EXC_META = frozenset({"args", "code", "http_status", "retryable"})


def _to_json(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
        fields["exc_http_status"] = getattr(exc, "http_status", None)
        fields["exc_retryable"] = getattr(exc, "retryable", None)
        for key, value in vars(exc).items():
            if not key.startswith("_") and key not in _EXC_META:
                fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: base keys, context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Logger factory and initialization
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "production_kernel"

_configured = False
_installed: logging.Handler | None = None
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger under the production_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Install one JSON handler on the production_kernel logger (first call wins)."""
    global _configured, _installed
    with _lock:
        if _configured:
            return
        _configured = True

        root_logger = logging.getLogger(_LOGGER_PREFIX)
        root_logger.setLevel(level)
        root_logger.propagate = False

        _installed = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        _installed.setFormatter(StructuredFormatter())
        root_logger.addHandler(_installed)


def reset_logging() -> None:
    """Remove the handler configure_logging() installed. FOR TESTING ONLY."""
    global _configured, _installed
    with _lock:
        root_logger = logging.getLogger(_LOGGER_PREFIX)
        if _installed is not None:
            root_logger.removeHandler(_installed)
        _installed = None
        _configured = False
        root_logger.setLevel(logging.WARNING)
