"""
production_services.floor_orchestrator -- the caller-facing entry point.

Responsibility:
    Runs every shop-floor operation as one unit: check the actor's
    permission, open one transaction (``session_scope()``), wire the kernel
    services for that session, run the operation, and translate the outcome
    into an ``OperationResult``.  Also owns consumption staging, the
    uncommitted per-supply amounts an operator enters before saving.

Architecture position:
    Services -- stateful orchestration over the kernel.

    Dependency direction (enforced by tests/architecture/test_kernel_boundary.py):
        production_services/ -> production_kernel/  (allowed)
        production_services/ -> production_config/   (allowed)
        production_kernel/   -> production_services/ (FORBIDDEN)

Invariants enforced:
    - One transaction per operation: a failure anywhere rolls back
      everything the operation wrote.
    - Permission before work: a denied actor never opens a transaction.
    - An order with staged consumption cannot be finished.
    - Kernel and validation errors come back as ErrorPayload; anything
      else is a bug and propagates.

Audit relevance:
    Every operation runs under ``LogContext.bind`` with the actor, the
    order (when there is one) and a fresh correlation id, so every log
    line the kernel emits for it carries them.

Usage:
    orchestrator = build_floor_orchestrator()
    actor = orchestrator.actor_for_role("ana", "operator")
    result = orchestrator.transition(actor, "P1001", "in_progress")
    if not result.ok:
        show(result.error.message)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from datetime import tzinfo
from decimal import Decimal
from pathlib import Path
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from production_kernel.db.engine import session_scope
from production_kernel.domain.clock import Clock, SystemClock
from production_kernel.domain.dtos import (
    ConsumptionInfo,
    ConsumptionLine,
    ConsumptionReceipt,
    HistoryRecord,
    KPISnapshot,
    OrderInfo,
    RequirementSheet,
    StatusChangeInfo,
    SupplyInfo,
)
from production_kernel.domain.settings import FloorSettings
from production_kernel.domain.values import HistoryKind, OrderPriority, OrderStatus, parse_status
from production_kernel.exceptions import InvalidOrderStateError, ProductionKernelError
from production_kernel.logging_config import LogContext, get_logger
from production_kernel.selectors.history_selector import DEFAULT_HISTORY_LIMIT, HistorySelector
from production_kernel.selectors.kpi_selector import KPISelector
from production_kernel.selectors.order_selector import OrderSelector
from production_kernel.services.consumption_service import ConsumptionService
from production_kernel.services.history_service import HistoryService
from production_kernel.services.order_service import OrderService
from production_kernel.services.requirement_service import RequirementService
from production_kernel.services.sequence_service import SequenceService
from production_kernel.services.supply_service import SupplyService
from production_services.actor import Actor, Permission
from production_services.results import ErrorPayload, OperationResult
from production_services.staging import ConsumptionStaging

logger = get_logger("services.floor")

T = TypeVar("T")


class FloorServices:
    """Kernel services for one session, each created exactly once.

    Non-goals:
        - Does NOT manage transaction boundaries.
    """

    def __init__(self, session: Session, settings: FloorSettings, clock: Clock) -> None:
        self.session = session

        # Order matters: later services share the earlier instances.
        self.sequences = SequenceService(session)
        self.history = HistoryService(session, clock, self.sequences)
        self.supplies = SupplyService(session, clock, settings)
        self.orders = OrderService(session, clock, settings, self.history, self.sequences)
        self.requirements = RequirementService(session, clock, settings, self.supplies)
        self.consumption = ConsumptionService(session, clock, self.history)

        self.order_selector = OrderSelector(session)
        self.history_selector = HistorySelector(session)
        self.kpis = KPISelector(session, clock, settings.timezone)


class FloorOrchestrator:
    """Permission-checked, transactional operations for the shop floor.

    Contract:
        Every public operation takes the calling Actor first and returns an
        OperationResult.  It never raises for kernel or validation errors.

    Guarantees:
        - All services in one operation share one Session and one Clock.
        - Staged consumption is shared across operations of this instance.
    """

    def __init__(
        self,
        settings: FloorSettings | None = None,
        clock: Clock | None = None,
        session_factory: sessionmaker[Session] | None = None,
        staging: ConsumptionStaging | None = None,
        role_permissions: Mapping[str, frozenset[str]] | None = None,
    ) -> None:
        self.settings = settings or FloorSettings()
        self.clock = clock or SystemClock()
        self._session_factory = session_factory
        self.staging = staging or ConsumptionStaging()
        self.role_permissions = dict(role_permissions or {})

    def actor_for_role(self, actor_id: str, role: str) -> Actor:
        """Build an Actor from a configured role; ValueError if unknown."""
        return Actor.for_role(actor_id, role, self.role_permissions)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        actor: Actor,
        permission: str,
        work: Callable[[FloorServices], T],
        order_id: str | None = None,
    ) -> OperationResult[T]:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            operation=operation,
            actor_id=actor.actor_id,
            order_id=order_id,
        ):
            try:
                actor.require(permission)
                with session_scope(self._session_factory) as session:
                    data = work(FloorServices(session, self.settings, self.clock))
            except (ProductionKernelError, ValueError) as exc:
                error = ErrorPayload.from_exception(exc)
                logger.info(
                    "operation_failed",
                    extra={
                        "error_code": error.code,
                        "error_kind": error.kind,
                        "retryable": error.retryable,
                    },
                )
                return OperationResult.failure(error)

            logger.debug("operation_succeeded")
            return OperationResult.success(data)

    def _with_staged(self, sheet: RequirementSheet) -> RequirementSheet:
        staged = self.staging.get(sheet.order_id)
        if not staged:
            return sheet
        return replace(
            sheet,
            lines=tuple(
                replace(line, used=staged.get(line.supply_id, Decimal("0")))
                for line in sheet.lines
            ),
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def create_order(
        self,
        actor: Actor,
        product_name: str,
        quantity: int,
        client_name: str,
        priority: OrderPriority | str | None = None,
        notes: str | None = None,
    ) -> OperationResult[OrderInfo]:
        return self._run(
            "create_order",
            actor,
            Permission.ORDERS_CREATE,
            lambda s: s.orders.create_order(
                product_name=product_name,
                quantity=quantity,
                client_name=client_name,
                actor_id=actor.actor_id,
                priority=priority,
                notes=notes,
            ),
        )

    def get_order(self, actor: Actor, order_id: str) -> OperationResult[OrderInfo]:
        return self._run(
            "get_order",
            actor,
            Permission.ORDERS_READ,
            lambda s: s.order_selector.get_order(order_id),
            order_id=order_id,
        )

    def list_orders(
        self,
        actor: Actor,
        status: OrderStatus | str | None = None,
        limit: int | None = None,
    ) -> OperationResult[list[OrderInfo]]:
        return self._run(
            "list_orders",
            actor,
            Permission.ORDERS_READ,
            lambda s: s.order_selector.list_orders(status=status, limit=limit),
        )

    def transition(
        self,
        actor: Actor,
        order_id: str,
        requested_status: OrderStatus | str,
        notes: str | None = None,
    ) -> OperationResult[OrderInfo]:
        """
        Move an order one step.

        Finishing closes the order's staging first, which fails with
        PendingConsumptionError while amounts are staged.  The order is
        reopened only if the finish does not commit.
        """
        closed: list[str] = []

        def work(s: FloorServices) -> OrderInfo:
            requested = parse_status(requested_status)
            if requested == OrderStatus.FINISHED:
                self.staging.close(order_id)
                closed.append(order_id)
            return s.orders.transition(order_id, requested, actor.actor_id, notes=notes)

        result: OperationResult[OrderInfo] | None = None
        try:
            result = self._run(
                "transition", actor, Permission.ORDERS_UPDATE_STATUS, work, order_id=order_id
            )
        finally:
            if closed and (result is None or not result.ok):
                self.staging.reopen(order_id)
        return result

    # ------------------------------------------------------------------
    # Requirements and consumption
    # ------------------------------------------------------------------

    def resolve_requirements(
        self, actor: Actor, order_id: str
    ) -> OperationResult[RequirementSheet]:
        """The requirement sheet, with staged amounts filled in as ``used``."""
        return self._run(
            "resolve_requirements",
            actor,
            Permission.ORDERS_READ,
            lambda s: self._with_staged(
                s.requirements.resolve_requirements(order_id, actor.actor_id)
            ),
            order_id=order_id,
        )

    def consume(
        self,
        actor: Actor,
        order_id: str,
        items: Iterable[ConsumptionLine | Mapping[str, Any]],
        notes: str | None = None,
    ) -> OperationResult[ConsumptionReceipt]:
        items = list(items)
        return self._run(
            "consume",
            actor,
            Permission.SUPPLIES_CONSUME,
            lambda s: s.consumption.consume(order_id, actor.actor_id, items, notes=notes),
            order_id=order_id,
        )

    def stage_consumption(
        self,
        actor: Actor,
        order_id: str,
        supply_id: UUID | str,
        quantity: object,
    ) -> OperationResult[dict[UUID, Decimal]]:
        """Set the uncommitted amount of one supply for an in-progress order."""

        def work(s: FloorServices) -> dict[UUID, Decimal]:
            order = s.order_selector.get_order(order_id)
            if order.status != OrderStatus.IN_PROGRESS:
                raise InvalidOrderStateError(
                    order_id=order_id,
                    current_status=order.status.value,
                    required_status=OrderStatus.IN_PROGRESS.value,
                )
            return self.staging.stage(order_id, supply_id, quantity)

        return self._run(
            "stage_consumption", actor, Permission.SUPPLIES_CONSUME, work, order_id=order_id
        )

    def staged_consumption(
        self, actor: Actor, order_id: str
    ) -> OperationResult[dict[UUID, Decimal]]:
        return self._run(
            "staged_consumption",
            actor,
            Permission.SUPPLIES_READ,
            lambda s: self.staging.get(order_id),
            order_id=order_id,
        )

    def commit_staged(
        self,
        actor: Actor,
        order_id: str,
        notes: str | None = None,
    ) -> OperationResult[ConsumptionReceipt]:
        """
        Consume everything staged for the order in one atomic transaction.

        On success the committed amounts are cleared; on failure they stay
        staged so the operator can correct them.
        """
        staged = self.staging.get(order_id)
        lines = [ConsumptionLine(supply_id=k, quantity=v) for k, v in staged.items()]
        result = self._run(
            "commit_staged",
            actor,
            Permission.SUPPLIES_CONSUME,
            lambda s: s.consumption.consume(order_id, actor.actor_id, lines, notes=notes),
            order_id=order_id,
        )
        if result.ok:
            self.staging.clear(order_id, committed=staged)
        return result

    def discard_staged(self, actor: Actor, order_id: str) -> OperationResult[None]:
        def work(s: FloorServices) -> None:
            self.staging.clear(order_id)

        return self._run(
            "discard_staged", actor, Permission.SUPPLIES_CONSUME, work, order_id=order_id
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def get_status_history(
        self, actor: Actor, order_id: str
    ) -> OperationResult[list[StatusChangeInfo]]:
        return self._run(
            "get_status_history",
            actor,
            Permission.HISTORY_READ,
            lambda s: s.history_selector.get_status_history(order_id),
            order_id=order_id,
        )

    def get_consumption_history(
        self, actor: Actor, order_id: str
    ) -> OperationResult[list[ConsumptionInfo]]:
        return self._run(
            "get_consumption_history",
            actor,
            Permission.HISTORY_READ,
            lambda s: s.history_selector.get_consumption_history(order_id),
            order_id=order_id,
        )

    def get_history_for_order(
        self, actor: Actor, order_id: str
    ) -> OperationResult[list[HistoryRecord]]:
        return self._run(
            "get_history_for_order",
            actor,
            Permission.HISTORY_READ,
            lambda s: s.history_selector.get_history_for_order(order_id),
            order_id=order_id,
        )

    def get_all_history(
        self,
        actor: Actor,
        order_id: str | None = None,
        actor_id: str | None = None,
        status: str | None = None,
        kind: HistoryKind | str | None = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> OperationResult[list[HistoryRecord]]:
        return self._run(
            "get_all_history",
            actor,
            Permission.HISTORY_READ,
            lambda s: s.history_selector.get_all_history(
                order_id=order_id,
                actor_id=actor_id,
                status=status,
                kind=kind,
                limit=limit,
            ),
        )

    def replay_status(self, actor: Actor, order_id: str) -> OperationResult[OrderStatus]:
        return self._run(
            "replay_status",
            actor,
            Permission.HISTORY_READ,
            lambda s: s.history_selector.replay_status(order_id),
            order_id=order_id,
        )

    # ------------------------------------------------------------------
    # Dashboard and supplies
    # ------------------------------------------------------------------

    def compute_kpis(
        self, actor: Actor, tz: str | tzinfo | None = None
    ) -> OperationResult[KPISnapshot]:
        return self._run(
            "compute_kpis",
            actor,
            Permission.DASHBOARD_READ,
            lambda s: s.kpis.compute_kpis(tz),
        )

    def get_supply(self, actor: Actor, supply_id: UUID) -> OperationResult[SupplyInfo]:
        return self._run(
            "get_supply",
            actor,
            Permission.SUPPLIES_READ,
            lambda s: s.supplies.get_supply(supply_id),
        )

    def list_supplies(self, actor: Actor) -> OperationResult[list[SupplyInfo]]:
        return self._run(
            "list_supplies",
            actor,
            Permission.SUPPLIES_READ,
            lambda s: s.supplies.list_supplies(),
        )

    def low_stock_supplies(self, actor: Actor) -> OperationResult[list[SupplyInfo]]:
        return self._run(
            "low_stock_supplies",
            actor,
            Permission.SUPPLIES_READ,
            lambda s: s.supplies.low_stock_supplies(),
        )

    def verify_conservation(self, actor: Actor, supply_id: UUID) -> OperationResult[SupplyInfo]:
        return self._run(
            "verify_conservation",
            actor,
            Permission.HISTORY_READ,
            lambda s: s.consumption.verify_conservation(supply_id),
        )


def build_floor_orchestrator(
    config_path: Path | str | None = None,
    clock: Clock | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> FloorOrchestrator:
    """Build a FloorOrchestrator from config (single entrypoint for production).

    The engine must already be initialized (``init_engine_from_url``) unless
    an explicit ``session_factory`` is given.
    """
    from production_config import get_active_config
    from production_config.bridges import build_floor_settings, build_role_permissions

    config = get_active_config(config_path)
    return FloorOrchestrator(
        settings=build_floor_settings(config),
        clock=clock or SystemClock(),
        session_factory=session_factory,
        role_permissions=build_role_permissions(config),
    )
