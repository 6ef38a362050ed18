"""
SupplyService -- provisioning and reads for supply inventory.

Responsibility:
    Owns the explicit auto-provisioning policy for supplies: referencing an
    unknown (name, unit) creates it with documented defaults through
    get_or_create_supply(), and nowhere else.  Also exposes the read side
    (get, list, low stock) as DTOs.

Architecture position:
    Kernel > Services.  Called by RequirementService (provisioning from
    recipes) and by the orchestrator for supply reads.

Invariants enforced:
    - Stock non-negative: starting stock and thresholds are validated before
      insert; the table check constraint backs this up.
    - Single stock writer: this service creates supplies but never changes
      stock afterwards.  ConsumptionService is the only code that does.
    - initial_stock == stock at creation, which anchors the conservation
      check.

Failure modes:
    - SupplyNotFoundError from get_supply() on an unknown id.
    - ValueError on a negative starting stock or min stock, or an empty
      name or unit.
    - IntegrityError from register_supply() on a duplicate (name, unit).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from production_kernel.domain.quantities import to_quantity
from production_kernel.domain.clock import Clock
from production_kernel.domain.dtos import SupplyInfo
from production_kernel.domain.settings import FloorSettings
from production_kernel.exceptions import SupplyNotFoundError
from production_kernel.logging_config import get_logger
from production_kernel.models.supply import SupplyItem
from production_kernel.services.base import BaseService

logger = get_logger("services.supply")

# Actor recorded on supplies created implicitly by the requirement resolver
SYSTEM_ACTOR_ID = "system"


class SupplyService(BaseService[SupplyItem]):
    """
    Service for provisioning supply items.

    All public methods return SupplyInfo DTOs, not ORM SupplyItem entities.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: FloorSettings | None = None,
    ):
        super().__init__(session, clock)
        self.settings = settings or FloorSettings()

    def _find(self, name: str, unit: str) -> SupplyItem | None:
        return self.session.execute(
            select(SupplyItem).where(SupplyItem.name == name, SupplyItem.unit == unit)
        ).scalar_one_or_none()

    def _get(self, supply_id: UUID) -> SupplyItem:
        supply = self.session.get(SupplyItem, supply_id)
        if supply is None:
            raise SupplyNotFoundError(str(supply_id))
        return supply

    def _new_supply(
        self,
        name: str,
        unit: str,
        starting_stock: Decimal,
        min_stock: Decimal,
        actor_id: str,
    ) -> SupplyItem:
        name = name.strip()
        unit = unit.strip()
        if not name:
            raise ValueError("Supply name must not be empty")
        if not unit:
            raise ValueError("Supply unit must not be empty")
        starting_stock = to_quantity(starting_stock)
        min_stock = to_quantity(min_stock)
        if starting_stock < 0:
            raise ValueError(f"Starting stock must be >= 0, got {starting_stock}")
        if min_stock < 0:
            raise ValueError(f"Min stock must be >= 0, got {min_stock}")

        now = self.clock.now_utc()
        return SupplyItem(
            name=name,
            unit=unit,
            stock=starting_stock,
            initial_stock=starting_stock,
            min_stock=min_stock,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )

    def get_or_create_supply_item(
        self,
        name: str,
        unit: str,
        starting_stock: Decimal | None = None,
        min_stock: Decimal | None = None,
        actor_id: str = SYSTEM_ACTOR_ID,
    ) -> tuple[SupplyItem, bool]:
        """
        ORM-level provisioning used inside the kernel.

        Returns the supply and whether this call created it.  A concurrent
        creator that wins the unique (name, unit) race is absorbed in a
        savepoint and its row is returned instead.
        """
        existing = self._find(name.strip(), unit.strip())
        if existing is not None:
            return existing, False

        supply = self._new_supply(
            name,
            unit,
            starting_stock if starting_stock is not None
            else self.settings.default_starting_stock,
            min_stock if min_stock is not None else self.settings.default_min_stock,
            actor_id,
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(supply)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "supply_create_race_retry",
                extra={"supply_name": name, "unit": unit},
            )
            existing = self._find(name.strip(), unit.strip())
            if existing is None:
                raise
            return existing, False

        logger.info(
            "supply_provisioned",
            extra={
                "supply_id": str(supply.id),
                "supply_name": supply.name,
                "unit": supply.unit,
                "starting_stock": str(supply.stock),
            },
        )
        return supply, True

    def get_or_create_supply(
        self,
        name: str,
        unit: str,
        starting_stock: Decimal | None = None,
        min_stock: Decimal | None = None,
        actor_id: str = SYSTEM_ACTOR_ID,
    ) -> SupplyInfo:
        """
        Look up a supply by (name, unit), creating it if absent.

        Defaults for a new supply come from FloorSettings
        (default_starting_stock, default_min_stock) unless given.
        An existing supply is returned unchanged; the defaults are ignored.
        """
        supply, _ = self.get_or_create_supply_item(
            name, unit, starting_stock, min_stock, actor_id
        )
        return SupplyInfo.from_model(supply)

    def register_supply(
        self,
        name: str,
        unit: str,
        starting_stock: Decimal,
        actor_id: str,
        min_stock: Decimal | None = None,
    ) -> SupplyInfo:
        """
        Create a new supply explicitly.

        Raises:
            IntegrityError: If (name, unit) already exists.
            ValueError: On invalid input.
        """
        supply = self._new_supply(
            name,
            unit,
            starting_stock,
            min_stock if min_stock is not None else self.settings.default_min_stock,
            actor_id,
        )
        self.session.add(supply)
        self.session.flush()
        logger.info(
            "supply_registered",
            extra={
                "supply_id": str(supply.id),
                "supply_name": supply.name,
                "unit": supply.unit,
                "starting_stock": str(supply.stock),
                "actor_id": actor_id,
            },
        )
        return SupplyInfo.from_model(supply)

    def get_supply(self, supply_id: UUID) -> SupplyInfo:
        """
        Raises:
            SupplyNotFoundError: If the supply doesn't exist.
        """
        return SupplyInfo.from_model(self._get(supply_id))

    def find_supply(self, name: str, unit: str) -> SupplyInfo | None:
        supply = self._find(name, unit)
        return SupplyInfo.from_model(supply) if supply else None

    def list_supplies(self) -> list[SupplyInfo]:
        """All supplies ordered by name, then unit."""
        rows = self.session.execute(
            select(SupplyItem).order_by(SupplyItem.name, SupplyItem.unit)
        ).scalars().all()
        return [SupplyInfo.from_model(s) for s in rows]

    def low_stock_supplies(self) -> list[SupplyInfo]:
        """Supplies at or below their minimum threshold."""
        rows = self.session.execute(
            select(SupplyItem)
            .where(SupplyItem.stock <= SupplyItem.min_stock)
            .order_by(SupplyItem.name, SupplyItem.unit)
        ).scalars().all()
        return [SupplyInfo.from_model(s) for s in rows]
