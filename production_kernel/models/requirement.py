"""
Module: production_kernel.models.requirement
Responsibility: ORM persistence for the material requirements of an order,
    generated once from the product's recipe.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One row per (order_id, supply_id) (uq_requirement_order_supply).
    - Rows are immutable after generation (db.immutability).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from production_kernel.db.base import TrackedBase, UUIDString


class OrderRequirement(TrackedBase):
    __tablename__ = "order_requirements"

    __table_args__ = (
        UniqueConstraint("order_id", "supply_id", name="uq_requirement_order_supply"),
        Index("idx_requirement_order", "order_id"),
    )

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

    required_quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)

    def __repr__(self) -> str:
        return f"<OrderRequirement {self.order_id}/{self.supply_id}: {self.required_quantity}>"
