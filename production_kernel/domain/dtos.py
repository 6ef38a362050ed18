"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that services and selectors
    return to their callers: orders, supplies, requirement sheets,
    consumption receipts, history records and KPI snapshots.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies and database access.  from_model() class
    methods exist as boundary converters but are only invoked from the
    service and selector layers (never from domain logic).

Invariants enforced:
    - Callers never receive a live ORM entity, so nothing outside the
      kernel can write Order.status or SupplyItem.stock by attribute
      assignment.
    - All quantities are Decimal; all timestamps are aware UTC.

Failure modes:
    - InvalidConsumptionQuantityError from ConsumptionLine.parse() on a
      negative, non-numeric or non-finite quantity.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from production_kernel.domain.quantities import as_utc, to_quantity
from production_kernel.domain.values import HistoryKind, OrderPriority, OrderStatus
from production_kernel.exceptions import InvalidConsumptionQuantityError

if TYPE_CHECKING:
    from production_kernel.models.consumption import ConsumptionEvent
    from production_kernel.models.order import Order
    from production_kernel.models.status_change import StatusChangeRecord
    from production_kernel.models.supply import SupplyItem


@dataclass(frozen=True)
class OrderInfo:
    """Read-only view of an order with its product and client names."""

    id: str
    product_id: UUID
    product_name: str
    category: str
    client_id: UUID
    client_name: str
    quantity: int
    status: OrderStatus
    priority: OrderPriority
    notes: str | None
    total_price: Decimal
    estimated_delivery: date
    created_at: datetime
    updated_at: datetime
    created_by_id: str
    updated_by_id: str | None
    version: int

    @classmethod
    def from_model(cls, model: Order) -> OrderInfo:
        return cls(
            id=model.id,
            product_id=model.product_id,
            product_name=model.product.name,
            category=model.product.category,
            client_id=model.client_id,
            client_name=model.client.name,
            quantity=model.quantity,
            status=OrderStatus(model.status),
            priority=OrderPriority(model.priority),
            notes=model.notes,
            total_price=model.total_price,
            estimated_delivery=model.estimated_delivery,
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
            created_by_id=model.created_by_id,
            updated_by_id=model.updated_by_id,
            version=model.version,
        )


@dataclass(frozen=True)
class SupplyInfo:
    id: UUID
    name: str
    unit: str
    stock: Decimal
    initial_stock: Decimal
    min_stock: Decimal

    @property
    def is_low(self) -> bool:
        return self.stock <= self.min_stock

    @classmethod
    def from_model(cls, model: SupplyItem) -> SupplyInfo:
        return cls(
            id=model.id,
            name=model.name,
            unit=model.unit,
            stock=model.stock,
            initial_stock=model.initial_stock,
            min_stock=model.min_stock,
        )


@dataclass(frozen=True)
class RequirementLine:
    """
    One material needed by an order, merged with live stock.

    ``total_consumed`` is what this order has drawn of the supply so far.
    ``used`` is the not-yet-committed amount for the caller's session and is
    always zero when produced by the resolver.
    """

    supply_id: UUID
    name: str
    unit: str
    required: Decimal
    available: Decimal
    total_consumed: Decimal
    min_stock: Decimal
    used: Decimal = Decimal("0")

    @property
    def remaining(self) -> Decimal:
        """Required amount not yet consumed (never negative)."""
        return max(self.required - self.total_consumed, Decimal("0"))


@dataclass(frozen=True)
class RequirementSheet:
    order_id: str
    lines: tuple[RequirementLine, ...]
    # True when this call created the requirement rows
    generated: bool = False

    def line_for(self, supply_id: UUID) -> RequirementLine | None:
        for line in self.lines:
            if line.supply_id == supply_id:
                return line
        return None


@dataclass(frozen=True)
class ConsumptionLine:
    """A request to draw ``quantity`` of one supply."""

    supply_id: UUID
    quantity: Decimal

    @classmethod
    def parse(cls, raw: ConsumptionLine | Mapping[str, Any]) -> ConsumptionLine:
        """
        Validate one caller-supplied item.

        Accepts a ConsumptionLine or a mapping with ``supply_id`` and
        ``quantity`` keys.  Zero is a valid quantity (the item is skipped
        later); negative, non-numeric and over-precise quantities are
        rejected.

        Raises:
            InvalidConsumptionQuantityError: On a malformed item.
        """
        if isinstance(raw, ConsumptionLine):
            supply_ref, quantity_ref = raw.supply_id, raw.quantity
        elif isinstance(raw, Mapping):
            supply_ref = raw.get("supply_id")
            quantity_ref = raw.get("quantity")
        else:
            raise InvalidConsumptionQuantityError(supply_id="?", quantity=raw)

        try:
            supply_id = supply_ref if isinstance(supply_ref, UUID) else UUID(str(supply_ref))
        except ValueError:
            raise InvalidConsumptionQuantityError(
                supply_id=str(supply_ref), quantity=quantity_ref
            ) from None

        try:
            quantity = to_quantity(quantity_ref, exact=True)
        except ValueError:
            raise InvalidConsumptionQuantityError(
                supply_id=str(supply_id), quantity=quantity_ref
            ) from None
        if quantity < 0:
            raise InvalidConsumptionQuantityError(
                supply_id=str(supply_id), quantity=quantity_ref
            )
        return cls(supply_id=supply_id, quantity=quantity)


@dataclass(frozen=True)
class ConsumedItem:
    supply_id: UUID
    supply_name: str
    unit: str
    quantity: Decimal
    remaining_stock: Decimal
    event_seq: int


@dataclass(frozen=True)
class ConsumptionReceipt:
    """Result of one committed consumption transaction."""

    order_id: str
    actor_id: str
    occurred_at: datetime
    items: tuple[ConsumedItem, ...]

    @property
    def total_items(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class StatusChangeInfo:
    seq: int
    order_id: str
    previous_status: OrderStatus | None
    new_status: OrderStatus
    actor_id: str
    occurred_at: datetime
    notes: str | None

    @classmethod
    def from_model(cls, model: StatusChangeRecord) -> StatusChangeInfo:
        return cls(
            seq=model.seq,
            order_id=model.order_id,
            previous_status=(
                OrderStatus(model.previous_status)
                if model.previous_status is not None
                else None
            ),
            new_status=OrderStatus(model.new_status),
            actor_id=model.actor_id,
            occurred_at=as_utc(model.occurred_at),
            notes=model.notes,
        )


@dataclass(frozen=True)
class ConsumptionInfo:
    seq: int
    order_id: str
    supply_id: UUID
    supply_name: str
    unit: str
    quantity: Decimal
    actor_id: str
    occurred_at: datetime
    notes: str | None

    @classmethod
    def from_model(cls, model: ConsumptionEvent, supply: SupplyItem) -> ConsumptionInfo:
        return cls(
            seq=model.seq,
            order_id=model.order_id,
            supply_id=model.supply_id,
            supply_name=supply.name,
            unit=supply.unit,
            quantity=model.quantity,
            actor_id=model.actor_id,
            occurred_at=as_utc(model.occurred_at),
            notes=model.notes,
        )


@dataclass(frozen=True)
class HistoryRecord:
    """
    One entry of the merged audit trail.

    Status-change fields are None on consumption records and vice versa.
    """

    kind: HistoryKind
    seq: int
    order_id: str
    actor_id: str
    occurred_at: datetime
    notes: str | None = None
    previous_status: OrderStatus | None = None
    new_status: OrderStatus | None = None
    supply_id: UUID | None = None
    supply_name: str | None = None
    quantity: Decimal | None = None

    @classmethod
    def from_status_change(cls, info: StatusChangeInfo) -> HistoryRecord:
        return cls(
            kind=HistoryKind.STATUS_CHANGE,
            seq=info.seq,
            order_id=info.order_id,
            actor_id=info.actor_id,
            occurred_at=info.occurred_at,
            notes=info.notes,
            previous_status=info.previous_status,
            new_status=info.new_status,
        )

    @classmethod
    def from_consumption(cls, info: ConsumptionInfo) -> HistoryRecord:
        return cls(
            kind=HistoryKind.CONSUMPTION,
            seq=info.seq,
            order_id=info.order_id,
            actor_id=info.actor_id,
            occurred_at=info.occurred_at,
            notes=info.notes,
            supply_id=info.supply_id,
            supply_name=info.supply_name,
            quantity=info.quantity,
        )


@dataclass(frozen=True)
class KPISnapshot:
    """Dashboard counts read from one consistent snapshot."""

    queued: int
    in_progress_units: int
    finished_today: int
    low_stock: int
    in_progress_orders: int
    computed_at: datetime
    timezone: str
