"""
RequirementService -- materializes and projects an order's material needs.

Responsibility:
    On first call for an order, derives the requirement list from the
    product's recipe (domain.recipes), provisions any missing supplies
    through SupplyService.get_or_create_supply_item(), and inserts one
    OrderRequirement per supply.  Every call returns the requirement sheet:
    the stored requirements merged with live stock and what the order has
    consumed so far.

Architecture position:
    Kernel > Services.  Calls SupplyService for provisioning.

Invariants enforced:
    - Idempotency: rows are generated at most once per order.  The order
      row is locked (``SELECT ... FOR UPDATE``) before the existence
      re-check, inserts go through savepoints, and
      uq_requirement_order_supply rejects any duplicate that slips past.
    - Requirements are never rewritten once generated.

Failure modes:
    - OrderNotFoundError on an unknown order id.
"""

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from production_kernel.domain.quantities import to_quantity
from production_kernel.domain.clock import Clock
from production_kernel.domain.dtos import RequirementLine, RequirementSheet
from production_kernel.domain.recipes import derive_requirements
from production_kernel.domain.settings import FloorSettings
from production_kernel.exceptions import OrderNotFoundError
from production_kernel.logging_config import get_logger
from production_kernel.models.catalog import Product
from production_kernel.models.consumption import ConsumptionEvent
from production_kernel.models.order import Order
from production_kernel.models.requirement import OrderRequirement
from production_kernel.models.supply import SupplyItem
from production_kernel.services.base import BaseService
from production_kernel.services.supply_service import SYSTEM_ACTOR_ID, SupplyService

logger = get_logger("services.requirement")


class RequirementService(BaseService[OrderRequirement]):
    """Resolver for order requirements."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: FloorSettings | None = None,
        supply_service: SupplyService | None = None,
    ):
        super().__init__(session, clock)
        self.settings = settings or FloorSettings()
        self._supplies = supply_service or SupplyService(
            session, self.clock, self.settings
        )

    def _has_requirements(self, order_id: str) -> bool:
        return self.session.execute(
            select(OrderRequirement.id)
            .where(OrderRequirement.order_id == order_id)
            .limit(1)
        ).first() is not None

    def _generate(self, order_id: str, actor_id: str) -> int:
        """Insert requirement rows; returns how many this call created."""
        row = self.session.execute(
            select(Order.quantity, Product.category, Product.name)
            .join(Product, Product.id == Order.product_id)
            .where(Order.id == order_id)
            .with_for_update(of=Order)
        ).first()
        if row is None:
            raise OrderNotFoundError(order_id)
        quantity, category, product_name = row

        # Re-check under the lock: a concurrent resolver may have finished.
        if self._has_requirements(order_id):
            return 0

        derived = derive_requirements(self.settings.recipes, category, quantity)
        now = self.clock.now_utc()
        created = 0
        for requirement in derived:
            supply, _ = self._supplies.get_or_create_supply_item(
                requirement.line.supply_name,
                requirement.line.unit,
                starting_stock=requirement.line.starting_stock,
                min_stock=requirement.line.min_stock,
            )
            savepoint = self.session.begin_nested()
            try:
                self.session.add(
                    OrderRequirement(
                        order_id=order_id,
                        supply_id=supply.id,
                        required_quantity=to_quantity(requirement.required),
                        created_at=now,
                        updated_at=now,
                        created_by_id=actor_id,
                    )
                )
                self.session.flush()
                savepoint.commit()
                created += 1
            except IntegrityError:
                savepoint.rollback()
                logger.debug(
                    "requirement_already_present",
                    extra={"order_id": order_id, "supply_id": str(supply.id)},
                )

        logger.info(
            "requirements_generated",
            extra={
                "order_id": order_id,
                "product": product_name,
                "category": category,
                "quantity": quantity,
                "lines": created,
            },
        )
        return created

    def _sheet(self, order_id: str, generated: bool) -> RequirementSheet:
        consumed = (
            select(func.coalesce(func.sum(ConsumptionEvent.quantity), 0))
            .where(
                ConsumptionEvent.order_id == OrderRequirement.order_id,
                ConsumptionEvent.supply_id == OrderRequirement.supply_id,
            )
            .correlate(OrderRequirement)
            .scalar_subquery()
        )
        rows = self.session.execute(
            select(OrderRequirement, SupplyItem, consumed)
            .join(SupplyItem, SupplyItem.id == OrderRequirement.supply_id)
            .where(OrderRequirement.order_id == order_id)
            .order_by(SupplyItem.name, SupplyItem.unit)
            .execution_options(populate_existing=True)
        ).all()

        lines = tuple(
            RequirementLine(
                supply_id=supply.id,
                name=supply.name,
                unit=supply.unit,
                required=requirement.required_quantity,
                available=supply.stock,
                total_consumed=to_quantity(total or 0),
                min_stock=supply.min_stock,
                used=Decimal("0"),
            )
            for requirement, supply, total in rows
        )
        return RequirementSheet(order_id=order_id, lines=lines, generated=generated)

    def resolve_requirements(
        self,
        order_id: str,
        actor_id: str = SYSTEM_ACTOR_ID,
    ) -> RequirementSheet:
        """
        Return the requirement sheet for ``order_id``, generating it first
        if the order has none.

        Postconditions:
            - The order has exactly one requirement row per recipe supply.
            - Lines are ordered by supply name; ``used`` is zero.
            - A second call returns the same rows and writes nothing.

        Raises:
            OrderNotFoundError: If the order doesn't exist.
        """
        generated = False
        if not self._has_requirements(order_id):
            generated = self._generate(order_id, actor_id) > 0
        return self._sheet(order_id, generated)
