"""
HistoryService -- append-only writer for the order audit trail.

Responsibility:
    Inserts StatusChangeRecord and ConsumptionEvent rows, each stamped with
    the next value of the global audit sequence.  These are the only two
    write operations the audit trail has; there is no update or delete.

Architecture position:
    Kernel > Services.  Kernel-internal: called only by OrderService (status
    changes, including creation) and ConsumptionService (consumption).
    Reads live in selectors/history_selector.py.

Invariants enforced:
    - Append-only: rows are flushed once and protected afterwards by the
      db.immutability listeners.
    - Atomic audit: the append is flushed in the caller's transaction, so it
      commits or rolls back together with the write it describes.

Failure modes:
    - ValueError on a non-positive consumption quantity.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from production_kernel.domain.clock import Clock
from production_kernel.domain.values import OrderStatus
from production_kernel.logging_config import get_logger
from production_kernel.models.consumption import ConsumptionEvent
from production_kernel.models.status_change import StatusChangeRecord
from production_kernel.services.base import BaseService
from production_kernel.services.sequence_service import SequenceService

logger = get_logger("services.history")


def default_transition_note(
    previous_status: OrderStatus | None,
    new_status: OrderStatus,
) -> str:
    """Note recorded when the caller gives none, e.g. "Changed from queued to in_progress"."""
    if previous_status is None:
        return f"Created as {OrderStatus(new_status).value}"
    return (
        f"Changed from {OrderStatus(previous_status).value} "
        f"to {OrderStatus(new_status).value}"
    )


class HistoryService(BaseService[StatusChangeRecord]):
    """
    Writer for status change records and consumption events.

    Guarantees:
        - Every appended row carries a seq strictly greater than every row
          committed before it.
        - Never commits.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session, clock)
        self._sequences = sequence_service or SequenceService(session)

    def _next_seq(self) -> int:
        return self._sequences.next_value(SequenceService.AUDIT_EVENT)

    def append_status_change(
        self,
        order_id: str,
        previous_status: OrderStatus | None,
        new_status: OrderStatus,
        actor_id: str,
        occurred_at: datetime | None = None,
        notes: str | None = None,
    ) -> StatusChangeRecord:
        """
        Record that ``order_id`` moved from ``previous_status`` to
        ``new_status``.  ``previous_status`` is None only for creation.
        """
        record = StatusChangeRecord(
            seq=self._next_seq(),
            order_id=order_id,
            previous_status=(
                OrderStatus(previous_status).value
                if previous_status is not None
                else None
            ),
            new_status=OrderStatus(new_status).value,
            actor_id=actor_id,
            occurred_at=occurred_at or self.clock.now_utc(),
            notes=notes if notes is not None else default_transition_note(
                previous_status, new_status
            ),
        )
        self.session.add(record)
        self.session.flush()

        logger.info(
            "status_change_recorded",
            extra={
                "seq": record.seq,
                "order_id": order_id,
                "previous_status": record.previous_status,
                "new_status": record.new_status,
                "actor_id": actor_id,
            },
        )
        return record

    def append_consumption(
        self,
        order_id: str,
        supply_id: UUID,
        quantity: Decimal,
        actor_id: str,
        occurred_at: datetime | None = None,
        notes: str | None = None,
    ) -> ConsumptionEvent:
        """Record that ``quantity`` of ``supply_id`` was drawn for ``order_id``."""
        if quantity <= 0:
            raise ValueError(f"Consumption quantity must be positive, got {quantity}")

        event = ConsumptionEvent(
            seq=self._next_seq(),
            order_id=order_id,
            supply_id=supply_id,
            quantity=quantity,
            actor_id=actor_id,
            occurred_at=occurred_at or self.clock.now_utc(),
            notes=notes,
        )
        self.session.add(event)
        self.session.flush()

        logger.debug(
            "consumption_event_recorded",
            extra={
                "seq": event.seq,
                "order_id": order_id,
                "supply_id": str(supply_id),
                "quantity": str(quantity),
                "actor_id": actor_id,
            },
        )
        return event
