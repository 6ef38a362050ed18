"""
ConsumptionService -- the atomic consumption transaction.

Responsibility:
    Draws a set of (supply, quantity) amounts from stock for one in-progress
    order: validates every item, checks availability for all of them, then
    decrements stock and appends one ConsumptionEvent per item.  This is the
    only code path that writes SupplyItem.stock.

Architecture position:
    Kernel > Services.  Uses HistoryService for the audit append.

Invariants enforced:
    - Stock non-negative: every item is checked before any write, and the
      table check constraint rejects anything that slips past.
    - All or nothing: no stock is written until every item has passed, and
      everything is flushed in the caller's transaction, so a failure at
      any step leaves no partial decrement behind.
    - Serialized check-then-decrement: supply rows are locked with
      ``SELECT ... FOR UPDATE`` in ascending id order (no lock-order
      deadlocks between overlapping requests), the order row is
      share-locked so its status cannot change mid-transaction, and each
      stock UPDATE is version-checked.
    - Conservation: initial_stock - sum(events) == stock for every supply
      (verify_conservation()).

Failure modes (checked in this order):
    - InvalidConsumptionQuantityError: negative or non-numeric quantity.
    - OrderNotFoundError: unknown order id.
    - InvalidOrderStateError: order is not in_progress.
    - EmptyConsumptionSetError: no positive quantity in the request.
    - SupplyNotFoundError: a referenced supply doesn't exist.
    - InsufficientStockError: a request exceeds available stock.
    - StaleStockError: a version check failed at flush.

Audit relevance:
    Each drawn amount produces a ConsumptionEvent with actor, timestamp and
    quantity, from which any supply's stock can be recomputed.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from production_kernel.domain.quantities import to_quantity
from production_kernel.domain.clock import Clock
from production_kernel.domain.dtos import (
    ConsumedItem,
    ConsumptionLine,
    ConsumptionReceipt,
    SupplyInfo,
)
from production_kernel.domain.values import OrderStatus
from production_kernel.exceptions import (
    EmptyConsumptionSetError,
    InsufficientStockError,
    InvalidOrderStateError,
    OrderNotFoundError,
    StaleStockError,
    StockConservationError,
    SupplyNotFoundError,
)
from production_kernel.logging_config import get_logger
from production_kernel.models.consumption import ConsumptionEvent
from production_kernel.models.order import Order
from production_kernel.models.supply import SupplyItem
from production_kernel.services.base import BaseService
from production_kernel.services.history_service import HistoryService

logger = get_logger("services.consumption")


def merge_lines(lines: Iterable[ConsumptionLine]) -> dict[UUID, Decimal]:
    """
    Sum quantities per supply, dropping zero totals.

    Keys come back in ascending string order, which is the lock order.
    """
    totals: dict[UUID, Decimal] = {}
    for line in lines:
        totals[line.supply_id] = totals.get(line.supply_id, Decimal("0")) + line.quantity
    return {
        supply_id: totals[supply_id]
        for supply_id in sorted(totals, key=str)
        if totals[supply_id] > 0
    }


class ConsumptionService(BaseService[SupplyItem]):
    """Writer for supply stock."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        history_service: HistoryService | None = None,
    ):
        super().__init__(session, clock)
        self._history = history_service or HistoryService(session, self.clock)

    def _get_order_shared(self, order_id: str) -> Order:
        order = self.session.execute(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update(read=True)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def _lock_supplies(self, supply_ids: list[UUID]) -> dict[UUID, SupplyItem]:
        rows = self.session.execute(
            select(SupplyItem)
            .where(SupplyItem.id.in_(supply_ids))
            .order_by(SupplyItem.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        return {supply.id: supply for supply in rows}

    def consume(
        self,
        order_id: str,
        actor_id: str,
        items: Iterable[ConsumptionLine | Mapping[str, Any]],
        notes: str | None = None,
    ) -> ConsumptionReceipt:
        """
        Draw ``items`` from stock for ``order_id``.

        Items may be ConsumptionLine instances or mappings with
        ``supply_id`` and ``quantity``.  Zero quantities are skipped;
        repeated supply ids are summed.

        Postconditions:
            - On success: each touched supply's stock fell by exactly its
              requested total and one ConsumptionEvent per supply was
              appended.
            - On any failure: nothing was written.
        """
        lines = [ConsumptionLine.parse(raw) for raw in items]

        order = self._get_order_shared(order_id)
        if order.status != OrderStatus.IN_PROGRESS:
            raise InvalidOrderStateError(
                order_id=order_id,
                current_status=OrderStatus(order.status).value,
                required_status=OrderStatus.IN_PROGRESS.value,
            )

        totals = merge_lines(lines)
        if not totals:
            raise EmptyConsumptionSetError(order_id)

        supply_ids = list(totals)
        supplies = self._lock_supplies(supply_ids)
        for supply_id in supply_ids:
            if supply_id not in supplies:
                raise SupplyNotFoundError(str(supply_id))

        for supply_id in supply_ids:
            supply = supplies[supply_id]
            requested = totals[supply_id]
            if supply.stock < requested:
                logger.warning(
                    "insufficient_stock",
                    extra={
                        "order_id": order_id,
                        "supply_id": str(supply_id),
                        "supply_name": supply.name,
                        "available": str(supply.stock),
                        "requested": str(requested),
                    },
                )
                raise InsufficientStockError(
                    supply_id=str(supply_id),
                    supply_name=supply.name,
                    available=supply.stock,
                    requested=requested,
                )

        now = self.clock.now_utc()
        consumed: list[ConsumedItem] = []
        for supply_id in supply_ids:
            supply = supplies[supply_id]
            requested = totals[supply_id]
            supply.stock = to_quantity(supply.stock - requested)
            supply.updated_at = now
            supply.updated_by_id = actor_id
            self._flush_versioned(StaleStockError(str(supply_id)))

            event = self._history.append_consumption(
                order_id=order_id,
                supply_id=supply_id,
                quantity=requested,
                actor_id=actor_id,
                occurred_at=now,
                notes=notes,
            )
            consumed.append(
                ConsumedItem(
                    supply_id=supply_id,
                    supply_name=supply.name,
                    unit=supply.unit,
                    quantity=requested,
                    remaining_stock=supply.stock,
                    event_seq=event.seq,
                )
            )

        logger.info(
            "consumption_recorded",
            extra={
                "order_id": order_id,
                "actor_id": actor_id,
                "items": len(consumed),
                "supply_ids": [str(s) for s in supply_ids],
            },
        )
        return ConsumptionReceipt(
            order_id=order_id,
            actor_id=actor_id,
            occurred_at=now,
            items=tuple(consumed),
        )

    def total_consumed(self, supply_id: UUID, order_id: str | None = None) -> Decimal:
        """Sum of consumption events for a supply, optionally for one order."""
        stmt = select(func.coalesce(func.sum(ConsumptionEvent.quantity), 0)).where(
            ConsumptionEvent.supply_id == supply_id
        )
        if order_id is not None:
            stmt = stmt.where(ConsumptionEvent.order_id == order_id)
        return to_quantity(self.session.execute(stmt).scalar_one() or 0)

    def verify_conservation(self, supply_id: UUID) -> SupplyInfo:
        """
        Check initial_stock - sum(consumption events) == stock.

        Raises:
            SupplyNotFoundError: If the supply doesn't exist.
            StockConservationError: If the identity does not hold.
        """
        supply = self.session.execute(
            select(SupplyItem)
            .where(SupplyItem.id == supply_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if supply is None:
            raise SupplyNotFoundError(str(supply_id))

        consumed = self.total_consumed(supply_id)
        if to_quantity(supply.initial_stock - consumed) != to_quantity(supply.stock):
            logger.error(
                "stock_conservation_broken",
                extra={
                    "supply_id": str(supply_id),
                    "initial_stock": str(supply.initial_stock),
                    "consumed": str(consumed),
                    "stock": str(supply.stock),
                },
            )
            raise StockConservationError(
                supply_id=str(supply_id),
                initial_stock=supply.initial_stock,
                consumed=consumed,
                stock=supply.stock,
            )
        return SupplyInfo.from_model(supply)
