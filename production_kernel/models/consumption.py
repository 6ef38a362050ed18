"""
Module: production_kernel.models.consumption
Responsibility: Append-only record of material drawn from stock for an order.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - quantity > 0 (ck_consumption_quantity_positive).
    - seq is unique and globally ordered with status change records; both
      draw from the "audit_event" counter.
    - Rows are never updated or deleted (db.immutability).

Audit relevance:
    Summing events per supply reconstructs how far stock has fallen from
    initial_stock (ConsumptionService.verify_conservation).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from production_kernel.db.base import Base, UUIDString


class ConsumptionEvent(Base):
    """One draw of one supply for one order, by one actor."""

    __tablename__ = "consumption_events"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_consumption_quantity_positive"),
        Index("idx_consumption_order", "order_id"),
        Index("idx_consumption_supply", "supply_id"),
        Index("idx_consumption_actor", "actor_id"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    order_id: Mapped[str] = mapped_column(
        String(16),
        ForeignKey("orders.id"),
        nullable=False,
    )

    supply_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("supply_items.id"),
        nullable=False,
    )

    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)

    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    def __repr__(self) -> str:
        return f"<ConsumptionEvent #{self.seq} {self.order_id}: {self.quantity}>"
