"""
Module: production_kernel.models.catalog
Responsibility: ORM persistence for the products that can be ordered and the
    clients that order them.  Both are provisioned on first reference by
    OrderService.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Product.name and Client.name are unique (uq_product_name,
      uq_client_name), so concurrent first references converge on one row.

Failure modes:
    - IntegrityError on a duplicate name; the provisioning services absorb it
      in a savepoint and re-read.
"""

from decimal import Decimal

from sqlalchemy import Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from production_kernel.db.base import TrackedBase


class Product(TrackedBase):
    """
    A shoe model.

    ``category`` is derived once from the name by the configured keyword
    rules (zapato, botin, sandalia, ...) and selects the recipe additions
    used by the requirement resolver.
    """

    __tablename__ = "products"

    __table_args__ = (UniqueConstraint("name", name="uq_product_name"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    category: Mapped[str] = mapped_column(String(50), nullable=False)

    base_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    def __repr__(self) -> str:
        return f"<Product {self.name} ({self.category})>"


class Client(TrackedBase):
    __tablename__ = "clients"

    __table_args__ = (UniqueConstraint("name", name="uq_client_name"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    email: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Client {self.name}>"
