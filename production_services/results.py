"""
production_services.results -- the value every orchestrator call returns.

Failures cross the service boundary as data, never as exceptions: an
``OperationResult`` is either ``ok`` with ``data`` or carries an
``ErrorPayload`` built from the typed kernel exception.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from production_kernel.exceptions import ProductionKernelError

T = TypeVar("T")

# Exception attributes that are class-level metadata, not details
_META_ATTRS = frozenset({"code", "http_status", "retryable", "args"})


@dataclass(frozen=True)
class ErrorPayload:
    """Machine-readable description of a failed operation."""

    kind: str
    code: str
    message: str
    http_status: int
    retryable: bool
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: Exception) -> ErrorPayload:
        """
        Translate a kernel error, or a ValueError from input validation.

        Raises:
            TypeError: For any other exception type.  Those are bugs and
                must propagate.
        """
        if isinstance(exc, ProductionKernelError):
            details = {
                key: value
                for key, value in vars(exc).items()
                if not key.startswith("_") and key not in _META_ATTRS
            }
            return cls(
                kind=type(exc).__name__,
                code=exc.code,
                message=str(exc),
                http_status=exc.http_status,
                retryable=exc.retryable,
                details=details,
            )
        if isinstance(exc, ValueError):
            return cls(
                kind="ValidationError",
                code="INVALID_INPUT",
                message=str(exc),
                http_status=400,
                retryable=False,
            )
        raise TypeError(f"Cannot translate {type(exc).__name__} into an ErrorPayload")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    ok: bool
    data: T | None = None
    error: ErrorPayload | None = None

    @classmethod
    def success(cls, data: T | None = None) -> OperationResult[T]:
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: ErrorPayload) -> OperationResult[T]:
        return cls(ok=False, error=error)

    @property
    def code(self) -> str | None:
        """Error code of a failed result, None on success."""
        return self.error.code if self.error is not None else None
