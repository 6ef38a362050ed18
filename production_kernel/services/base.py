"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  All concrete services inherit
    from BaseService, receiving a SQLAlchemy ``Session`` that they use
    via ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or rollback themselves.  The caller (session_scope(),
    FloorOrchestrator, or a test harness) owns commit/rollback, which is what
    keeps a status or stock write in the same transaction as its audit row.

Failure modes:
    - StaleOrderStateError / StaleStockError from flush() when a
      version-checked UPDATE matches no row.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from production_kernel.db.base import Base
from production_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
        - ``clock`` is the only source of timestamps.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source; defaults to SystemClock.
        """
        self.session = session
        self.clock = clock or SystemClock()

    def _flush_versioned(self, stale_error: Exception) -> None:
        """Flush, reporting a failed version check as ``stale_error``."""
        try:
            self.session.flush()
        except StaleDataError as exc:
            raise stale_error from exc
