"""
OrderService -- order creation and the order state machine.

Responsibility:
    The single entry point that writes Order rows.  create_order() allocates
    the next order id, provisions product and client on first reference and
    records the creation in the audit trail.  transition() moves an order
    one legal step along queued -> in_progress -> finished.

Architecture position:
    Kernel > Services -- imperative shell around domain.transitions.

Invariants enforced:
    - Status monotonicity: every move is validated against the pure graph
      in domain.transitions before anything is written.
    - Serialized transitions: the order row is read with
      ``SELECT ... FOR UPDATE`` and the UPDATE is version-checked, so of two
      concurrent movers exactly one wins; the other re-reads the new status
      and gets InvalidTransitionError, or gets StaleOrderStateError.
    - Atomic audit: the status write and its StatusChangeRecord are flushed
      in the caller's transaction.
    - Order ids come from the locked "order_number" counter, never from
      MAX(id)+1.

Failure modes:
    - ValueError: unknown status string, non-positive quantity, empty
      product or client name (rejected before touching the store).
    - OrderNotFoundError: unknown order id.
    - InvalidTransitionError: illegal edge, including no-ops and anything
      out of finished.
    - StaleOrderStateError: the version check failed at flush.

Audit relevance:
    Every status an order enters, including queued at creation, produces one
    StatusChangeRecord carrying the actor and the clock timestamp.
"""

from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from production_kernel.domain.clock import Clock, resolve_timezone
from production_kernel.domain.dtos import OrderInfo
from production_kernel.domain.settings import FloorSettings
from production_kernel.domain.transitions import INITIAL_STATUS, validate_transition
from production_kernel.domain.values import OrderPriority, OrderStatus, parse_priority, parse_status
from production_kernel.exceptions import (
    InvalidTransitionError,
    OrderNotFoundError,
    StaleOrderStateError,
)
from production_kernel.logging_config import get_logger
from production_kernel.models.catalog import Client, Product
from production_kernel.models.order import Order
from production_kernel.services.base import BaseService
from production_kernel.services.history_service import HistoryService
from production_kernel.services.sequence_service import SequenceService

logger = get_logger("services.order")


def placeholder_email(client_name: str) -> str:
    """``"Ana María"`` -> ``"anamaría@email.com"``."""
    return "".join(client_name.lower().split()) + "@email.com"


class OrderService(BaseService[Order]):
    """
    Service for creating orders and moving them through the pipeline.

    All public methods return OrderInfo DTOs, not ORM Order entities.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: FloorSettings | None = None,
        history_service: HistoryService | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session, clock)
        self.settings = settings or FloorSettings()
        self._sequences = sequence_service or SequenceService(session)
        self._history = history_service or HistoryService(
            session, self.clock, self._sequences
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_order_for_update(self, order_id: str) -> Order:
        """Lock and fresh-read the order row, raising if not found."""
        order = self.session.execute(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def _find_by_name(self, model: type, name: str):
        return self.session.execute(
            select(model).where(model.name == name)
        ).scalar_one_or_none()

    def _get_or_create_named(self, model: type, name: str, **fields):
        """Fetch ``model`` by unique name or insert it inside a savepoint."""
        existing = self._find_by_name(model, name)
        if existing is not None:
            return existing

        instance = model(name=name, **fields)
        savepoint = self.session.begin_nested()
        try:
            self.session.add(instance)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            existing = self._find_by_name(model, name)
            if existing is None:
                raise
            return existing

        logger.info(
            "catalog_entry_provisioned",
            extra={"entity": model.__name__, "entry_name": name, "id": str(instance.id)},
        )
        return instance

    def get_or_create_product(self, name: str, actor_id: str) -> Product:
        """Product by name; a new one gets its category from the name."""
        now = self.clock.now_utc()
        return self._get_or_create_named(
            Product,
            name,
            category=self.settings.recipes.categorize(name),
            base_price=self.settings.default_unit_price,
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )

    def get_or_create_client(self, name: str, actor_id: str) -> Client:
        now = self.clock.now_utc()
        return self._get_or_create_named(
            Client,
            name,
            email=placeholder_email(name),
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_order(
        self,
        product_name: str,
        quantity: int,
        client_name: str,
        actor_id: str,
        priority: OrderPriority | str | None = None,
        notes: str | None = None,
    ) -> OrderInfo:
        """
        Create an order in the queued state.

        Preconditions:
            - quantity is a positive int; product and client names are
              non-blank.
        Postconditions:
            - One Order row (status queued, version 1) and one
              StatusChangeRecord (None -> queued) are flushed.
            - Product and client exist.

        Raises:
            ValueError: On invalid input.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValueError(f"Order quantity must be a positive integer, got {quantity!r}")
        product_name = (product_name or "").strip()
        client_name = (client_name or "").strip()
        if not product_name:
            raise ValueError("Product name must not be empty")
        if not client_name:
            raise ValueError("Client name must not be empty")
        resolved_priority = parse_priority(priority or self.settings.default_priority)

        number = self._sequences.next_value(
            SequenceService.ORDER_NUMBER,
            floor=self.settings.order_number_floor,
        )
        order_id = f"{self.settings.order_id_prefix}{number}"

        client = self.get_or_create_client(client_name, actor_id)
        product = self.get_or_create_product(product_name, actor_id)

        now = self.clock.now_utc()
        local_today = now.astimezone(resolve_timezone(self.settings.timezone)).date()

        order = Order(
            id=order_id,
            product=product,
            client=client,
            quantity=quantity,
            status=INITIAL_STATUS.value,
            priority=resolved_priority.value,
            notes=notes,
            total_price=Decimal(product.base_price) * quantity,
            estimated_delivery=local_today + timedelta(days=self.settings.lead_days),
            created_at=now,
            updated_at=now,
            created_by_id=actor_id,
        )
        self.session.add(order)
        self.session.flush()

        self._history.append_status_change(
            order_id=order_id,
            previous_status=None,
            new_status=INITIAL_STATUS,
            actor_id=actor_id,
            occurred_at=now,
            notes=self.settings.creation_note,
        )

        logger.info(
            "order_created",
            extra={
                "order_id": order_id,
                "product": product.name,
                "category": product.category,
                "client": client.name,
                "quantity": quantity,
                "priority": resolved_priority.value,
                "actor_id": actor_id,
            },
        )
        return OrderInfo.from_model(order)

    def transition(
        self,
        order_id: str,
        requested_status: OrderStatus | str,
        actor_id: str,
        notes: str | None = None,
    ) -> OrderInfo:
        """
        Move an order to ``requested_status``.

        Preconditions:
            - requested_status is an OrderStatus value.
        Postconditions:
            - On success: status, updated_at and updated_by_id are written,
              version is bumped and one StatusChangeRecord is appended.
            - On failure: nothing is written.

        Raises:
            ValueError: Unknown status string.
            OrderNotFoundError: Unknown order id.
            InvalidTransitionError: Illegal edge for the current status.
            StaleOrderStateError: Lost a version race.
        """
        requested = parse_status(requested_status)
        order = self._get_order_for_update(order_id)
        current = OrderStatus(order.status)

        try:
            validate_transition(order_id, current, requested)
        except InvalidTransitionError as exc:
            logger.warning(
                "invalid_transition",
                extra={
                    "order_id": order_id,
                    "current_status": exc.current_status,
                    "requested_status": exc.requested_status,
                    "allowed": list(exc.allowed),
                    "actor_id": actor_id,
                },
            )
            raise

        now = self.clock.now_utc()
        order.status = requested.value
        order.updated_at = now
        order.updated_by_id = actor_id
        self._flush_versioned(StaleOrderStateError(order_id))

        self._history.append_status_change(
            order_id=order_id,
            previous_status=current,
            new_status=requested,
            actor_id=actor_id,
            occurred_at=now,
            notes=notes,
        )

        logger.info(
            "order_transitioned",
            extra={
                "order_id": order_id,
                "from_status": current.value,
                "to_status": requested.value,
                "actor_id": actor_id,
                "version": order.version,
            },
        )
        return OrderInfo.from_model(order)
