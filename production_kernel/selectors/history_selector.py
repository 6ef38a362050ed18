"""
Module: production_kernel.selectors.history_selector
Responsibility: Read side of the audit trail.  Returns status changes and
    consumption events, separately or merged, newest first by the global
    audit sequence, and replays an order's status records to prove they form
    a legal path.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Ordering: seq is allocated from one locked counter for both record
      kinds, so "newest first" is seq descending even when timestamps tie.
    - Replay: an order's status records, oldest first, must walk
      None -> queued -> in_progress -> finished without skips or reversals
      and end at the order's current status.

Failure modes:
    - OrderNotFoundError from the per-order reads on an unknown id.
    - AuditPathBrokenError from replay_status() on an illegal path.
    - ValueError on a non-positive limit or an unknown kind.
"""

from sqlalchemy import select

from production_kernel.domain.dtos import ConsumptionInfo, HistoryRecord, StatusChangeInfo
from production_kernel.domain.transitions import is_legal
from production_kernel.domain.values import HistoryKind, OrderStatus
from production_kernel.exceptions import AuditPathBrokenError, OrderNotFoundError
from production_kernel.models.consumption import ConsumptionEvent
from production_kernel.models.order import Order
from production_kernel.models.status_change import StatusChangeRecord
from production_kernel.models.supply import SupplyItem
from production_kernel.selectors.base import BaseSelector

DEFAULT_HISTORY_LIMIT = 100


class HistorySelector(BaseSelector[StatusChangeRecord]):
    """Selector for the merged audit trail."""

    def _require_order(self, order_id: str) -> Order:
        order = self.session.execute(
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def _status_changes(
        self,
        order_id: str | None = None,
        order_id_contains: str | None = None,
        actor_id: str | None = None,
        status_contains: str | None = None,
        limit: int | None = None,
        newest_first: bool = True,
    ) -> list[StatusChangeInfo]:
        stmt = select(StatusChangeRecord)
        if order_id is not None:
            stmt = stmt.where(StatusChangeRecord.order_id == order_id)
        if order_id_contains:
            stmt = stmt.where(StatusChangeRecord.order_id.icontains(order_id_contains, autoescape=True))
        if actor_id is not None:
            stmt = stmt.where(StatusChangeRecord.actor_id == actor_id)
        if status_contains:
            stmt = stmt.where(StatusChangeRecord.new_status.icontains(status_contains, autoescape=True))
        order_col = StatusChangeRecord.seq.desc() if newest_first else StatusChangeRecord.seq
        stmt = stmt.order_by(order_col)
        if limit is not None:
            stmt = stmt.limit(limit)
        return [StatusChangeInfo.from_model(r) for r in self.session.execute(stmt).scalars()]

    def _consumptions(
        self,
        order_id: str | None = None,
        order_id_contains: str | None = None,
        actor_id: str | None = None,
        limit: int | None = None,
    ) -> list[ConsumptionInfo]:
        stmt = select(ConsumptionEvent, SupplyItem).join(
            SupplyItem, SupplyItem.id == ConsumptionEvent.supply_id
        )
        if order_id is not None:
            stmt = stmt.where(ConsumptionEvent.order_id == order_id)
        if order_id_contains:
            stmt = stmt.where(ConsumptionEvent.order_id.icontains(order_id_contains, autoescape=True))
        if actor_id is not None:
            stmt = stmt.where(ConsumptionEvent.actor_id == actor_id)
        stmt = stmt.order_by(ConsumptionEvent.seq.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return [
            ConsumptionInfo.from_model(event, supply)
            for event, supply in self.session.execute(stmt).all()
        ]

    def get_status_history(self, order_id: str) -> list[StatusChangeInfo]:
        """Status changes of one order, newest first."""
        self._require_order(order_id)
        return self._status_changes(order_id=order_id)

    def get_consumption_history(self, order_id: str) -> list[ConsumptionInfo]:
        """Consumption events of one order, newest first."""
        self._require_order(order_id)
        return self._consumptions(order_id=order_id)

    def get_history_for_order(self, order_id: str) -> list[HistoryRecord]:
        """Both record kinds for one order, merged newest first."""
        self._require_order(order_id)
        records = [
            HistoryRecord.from_status_change(s)
            for s in self._status_changes(order_id=order_id)
        ]
        records.extend(
            HistoryRecord.from_consumption(c)
            for c in self._consumptions(order_id=order_id)
        )
        records.sort(key=lambda r: r.seq, reverse=True)
        return records

    def get_all_history(
        self,
        order_id: str | None = None,
        actor_id: str | None = None,
        status: str | None = None,
        kind: HistoryKind | str | None = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[HistoryRecord]:
        """
        The whole audit trail, newest first, at most ``limit`` records.

        Args:
            order_id: Case-insensitive substring of the order id.
            actor_id: Exact actor id.
            status: Case-insensitive substring of the new status.  Only
                status changes carry a status, so this drops consumption
                records.
            kind: Restrict to one record kind.
            limit: Maximum records returned.
        """
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        kind = HistoryKind(kind) if kind is not None else None

        records: list[HistoryRecord] = []
        if kind in (None, HistoryKind.STATUS_CHANGE):
            records.extend(
                HistoryRecord.from_status_change(s)
                for s in self._status_changes(
                    order_id_contains=order_id,
                    actor_id=actor_id,
                    status_contains=status,
                    limit=limit,
                )
            )
        if kind in (None, HistoryKind.CONSUMPTION) and not status:
            records.extend(
                HistoryRecord.from_consumption(c)
                for c in self._consumptions(
                    order_id_contains=order_id,
                    actor_id=actor_id,
                    limit=limit,
                )
            )
        records.sort(key=lambda r: r.seq, reverse=True)
        return records[:limit]

    def replay_status(self, order_id: str) -> OrderStatus:
        """
        Replay the order's status records oldest first.

        Returns:
            The status the replay ends in, which equals the order's status.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
            AuditPathBrokenError: On the first illegal step, or if the
                replay does not end at the order's current status.
        """
        order = self._require_order(order_id)
        reached: OrderStatus | None = None
        for step in self._status_changes(order_id=order_id, newest_first=False):
            if step.previous_status != reached or not is_legal(
                step.previous_status, step.new_status
            ):
                raise AuditPathBrokenError(
                    order_id=order_id,
                    previous_status=(
                        step.previous_status.value if step.previous_status else None
                    ),
                    new_status=step.new_status.value,
                )
            reached = step.new_status

        current = OrderStatus(order.status)
        if reached != current:
            raise AuditPathBrokenError(
                order_id=order_id,
                previous_status=reached.value if reached else None,
                new_status=current.value,
            )
        return current
