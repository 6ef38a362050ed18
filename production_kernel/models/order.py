"""
Module: production_kernel.models.order
Responsibility: ORM persistence for manufacturing orders and their position
    in the queued -> in_progress -> finished pipeline.
Architecture position: Kernel > Models.  May import from db/ and domain/values only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Status only advances queued -> in_progress -> finished (enforced by
      OrderService.transition; this model stores the result).
    - quantity > 0 (ck_order_quantity_positive).
    - version is bumped on every UPDATE and checked in the WHERE clause, so
      two writers that read the same state cannot both win.
    - Orders are never deleted (db.immutability).

Failure modes:
    - StaleDataError from the ORM when the version check fails; the engine
      scope reports it as StaleOrderStateError.
    - IntegrityError on duplicate id or a non-positive quantity.

Audit relevance:
    Every status value an order has ever held is recorded as a
    StatusChangeRecord in the same transaction that wrote it.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from production_kernel.db.base import TrackedBase, UUIDString
from production_kernel.domain.values import OrderPriority, OrderStatus


class Order(TrackedBase):
    """
    A request to manufacture ``quantity`` units of one product for one client.

    Guarantees:
        - id is a human-facing string such as "P1001", allocated from the
          order_number counter row (never MAX(id)+1).
        - updated_at moves on every status change; "finished today" is read
          from it.
    """

    __tablename__ = "orders"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_quantity_positive"),
        Index("idx_order_status", "status"),
        Index("idx_order_status_updated", "status", "updated_at"),
    )

    id: Mapped[str] = mapped_column(String(16), primary_key=True)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    client_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("clients.id"),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        String(20),
        default=OrderStatus.QUEUED,
        nullable=False,
    )

    priority: Mapped[OrderPriority] = mapped_column(
        String(10),
        default=OrderPriority.MEDIUM,
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    total_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    estimated_delivery: Mapped[date] = mapped_column(Date, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    product = relationship("Product", lazy="select")
    client = relationship("Client", lazy="select")

    def __repr__(self) -> str:
        return f"<Order {self.id}: {OrderStatus(self.status).value}>"

    @property
    def is_terminal(self) -> bool:
        return self.status == OrderStatus.FINISHED
