"""
Module: production_kernel.models.supply
Responsibility: ORM persistence for supply inventory (leather, soles,
    laces, ...), the materials consumed by production orders.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - stock >= 0 (ck_supply_stock_non_negative), the last line of defense
      behind ConsumptionService's pre-check.
    - (name, unit) is unique (uq_supply_name_unit).
    - initial_stock records the provisioned level; the only writer of
      stock afterwards is ConsumptionService, so
      initial_stock - sum(consumption events) == stock.
    - version is checked on every UPDATE (optimistic concurrency).

Failure modes:
    - IntegrityError when a write would drive stock negative.
    - StaleDataError on a lost version race (reported as StaleStockError).
"""

from decimal import Decimal

from sqlalchemy import CheckConstraint, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from production_kernel.db.base import TrackedBase


class SupplyItem(TrackedBase):
    """
    A stocked material with a reorder threshold.

    Guarantees:
        - stock and min_stock are Decimal quantities in ``unit``.
        - is_low is True when stock <= min_stock.
    """

    __tablename__ = "supply_items"

    __table_args__ = (
        UniqueConstraint("name", "unit", name="uq_supply_name_unit"),
        CheckConstraint("stock >= 0", name="ck_supply_stock_non_negative"),
        CheckConstraint("min_stock >= 0", name="ck_supply_min_stock_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Unit of measure label, e.g. "m²" or "unidades"
    unit: Mapped[str] = mapped_column(String(30), nullable=False)

    stock: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)

    initial_stock: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)

    min_stock: Mapped[Decimal] = mapped_column(
        Numeric(18, 4),
        nullable=False,
        default=Decimal("0"),
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<SupplyItem {self.name}: {self.stock} {self.unit}>"

    @property
    def is_low(self) -> bool:
        return self.stock <= self.min_stock
