"""
Caller-facing operations through FloorOrchestrator.

Every call runs in its own committed transaction, so these tests never
touch the shared ``session`` fixture.
"""

import threading
from decimal import Decimal
from uuid import uuid4

import pytest

from production_kernel.domain.values import OrderStatus
from production_kernel.exceptions import (
    InsufficientStockError,
    InvalidOrderStateError,
    OrderNotFoundError,
    PendingConsumptionError,
)
from production_services.actor import Actor, Permission
from production_services.results import ErrorPayload, OperationResult
from production_services.staging import ConsumptionStaging


@pytest.fixture
def in_progress(orchestrator, admin_actor):
    """Factory: an order moved to in_progress, with its requirement sheet."""

    def _make(product_name="Zapato X", quantity=50):
        order = orchestrator.create_order(admin_actor, product_name, quantity, "Cliente Uno").data
        orchestrator.transition(admin_actor, order.id, "in_progress")
        sheet = orchestrator.resolve_requirements(admin_actor, order.id).data
        return order, sheet

    return _make


def _line(sheet, name):
    return next(line for line in sheet.lines if line.name == name)


class TestResults:

    def test_payload_from_kernel_error(self):
        payload = ErrorPayload.from_exception(OrderNotFoundError("P9999"))

        assert payload.kind == "OrderNotFoundError"
        assert payload.code == "ORDER_NOT_FOUND"
        assert payload.http_status == 404
        assert payload.retryable is False
        assert payload.details == {"order_id": "P9999"}

    def test_payload_details_carry_amounts(self):
        payload = ErrorPayload.from_exception(
            InsufficientStockError("s-1", "Cuero Base", Decimal("50"), Decimal("60"))
        )

        assert payload.details["available"] == Decimal("50")
        assert payload.details["requested"] == Decimal("60")

    def test_payload_from_value_error(self):
        payload = ErrorPayload.from_exception(ValueError("bad"))

        assert payload.code == "INVALID_INPUT"
        assert payload.http_status == 400

    def test_other_exceptions_are_not_translated(self):
        with pytest.raises(TypeError):
            ErrorPayload.from_exception(RuntimeError("bug"))

    def test_result_code(self):
        assert OperationResult.success(1).code is None
        failure = OperationResult.failure(ErrorPayload.from_exception(ValueError("x")))
        assert failure.code == "INVALID_INPUT"


class TestPermissions:

    def test_denied_actor_gets_403(self, orchestrator):
        reader = Actor.with_permissions("viewer", {Permission.ORDERS_READ})

        result = orchestrator.create_order(reader, "Zapato X", 10, "Cliente")

        assert not result.ok
        assert result.code == "PERMISSION_DENIED"
        assert result.error.http_status == 403
        assert result.error.details == {
            "actor_id": "viewer",
            "permission": Permission.ORDERS_CREATE,
        }

    def test_denied_actor_writes_nothing(self, orchestrator, admin_actor):
        reader = Actor.with_permissions("viewer", {Permission.ORDERS_READ})
        orchestrator.create_order(reader, "Zapato X", 10, "Cliente")

        assert orchestrator.list_orders(admin_actor).data == []

    def test_operator_role_from_config(self, orchestrator, admin_actor, in_progress):
        order, sheet = in_progress()
        operator = orchestrator.actor_for_role("ana", "operator")

        assert operator.role == "operator"
        assert orchestrator.create_order(operator, "Zapato X", 1, "C").code == "PERMISSION_DENIED"

        cuero = _line(sheet, "Cuero Base")
        result = orchestrator.consume(
            operator, order.id, [{"supply_id": cuero.supply_id, "quantity": 1}]
        )
        assert result.ok
        assert result.data.actor_id == "ana"

    def test_supervisor_cannot_consume(self, orchestrator, in_progress):
        order, sheet = in_progress()
        supervisor = orchestrator.actor_for_role("sam", "supervisor")

        result = orchestrator.consume(
            supervisor, order.id, [{"supply_id": sheet.lines[0].supply_id, "quantity": 1}]
        )

        assert result.code == "PERMISSION_DENIED"

    def test_unknown_role_rejected(self, orchestrator):
        with pytest.raises(ValueError):
            orchestrator.actor_for_role("ana", "owner")

    def test_empty_actor_id_rejected(self):
        with pytest.raises(ValueError):
            Actor.with_permissions("", {Permission.ORDERS_READ})


class TestOperations:

    def test_order_lifecycle(self, orchestrator, admin_actor):
        created = orchestrator.create_order(admin_actor, "Botin Y", 5, "Cliente Dos")
        assert created.ok
        order_id = created.data.id

        assert orchestrator.transition(admin_actor, order_id, "in_progress").ok
        finished = orchestrator.transition(admin_actor, order_id, "finished")

        assert finished.ok
        assert finished.data.status == OrderStatus.FINISHED
        assert orchestrator.replay_status(admin_actor, order_id).data == OrderStatus.FINISHED

    def test_illegal_transition_is_a_failure(self, orchestrator, admin_actor):
        order = orchestrator.create_order(admin_actor, "Zapato X", 5, "C").data

        result = orchestrator.transition(admin_actor, order.id, "finished")

        assert result.code == "INVALID_TRANSITION"
        assert result.error.http_status == 400
        assert orchestrator.get_order(admin_actor, order.id).data.status == OrderStatus.QUEUED

    def test_unknown_status_is_invalid_input(self, orchestrator, admin_actor):
        order = orchestrator.create_order(admin_actor, "Zapato X", 5, "C").data

        result = orchestrator.transition(admin_actor, order.id, "shipped")

        assert result.code == "INVALID_INPUT"

    def test_bad_quantity_is_invalid_input(self, orchestrator, admin_actor):
        result = orchestrator.create_order(admin_actor, "Zapato X", 0, "C")

        assert not result.ok
        assert result.code == "INVALID_INPUT"

    def test_unknown_order_is_404(self, orchestrator, admin_actor):
        result = orchestrator.get_order(admin_actor, "P9999")

        assert result.code == "ORDER_NOT_FOUND"
        assert result.error.http_status == 404

    def test_failed_consumption_rolls_back(self, orchestrator, admin_actor, in_progress):
        order, sheet = in_progress()
        cuero = _line(sheet, "Cuero Base")
        cordones = _line(sheet, "Cordones")

        result = orchestrator.consume(
            admin_actor,
            order.id,
            [
                {"supply_id": cordones.supply_id, "quantity": 5},
                {"supply_id": cuero.supply_id, "quantity": 1000000},
            ],
        )

        assert result.code == "INSUFFICIENT_STOCK"
        assert orchestrator.get_supply(admin_actor, cordones.supply_id).data.stock == Decimal("400")
        assert orchestrator.get_consumption_history(admin_actor, order.id).data == []

    def test_kpis(self, orchestrator, admin_actor, in_progress):
        in_progress(quantity=50)
        orchestrator.create_order(admin_actor, "Zapato X", 3, "C")

        kpis = orchestrator.compute_kpis(admin_actor).data

        assert kpis.queued == 1
        assert kpis.in_progress_units == 50
        assert kpis.in_progress_orders == 1

    def test_conservation_after_consumption(self, orchestrator, admin_actor, in_progress):
        order, sheet = in_progress()
        cuero = _line(sheet, "Cuero Base")
        orchestrator.consume(admin_actor, order.id, [{"supply_id": cuero.supply_id, "quantity": 4}])

        info = orchestrator.verify_conservation(admin_actor, cuero.supply_id).data

        assert info.stock == Decimal("46")
        assert info.initial_stock == Decimal("50")

    def test_history_filters(self, orchestrator, admin_actor, in_progress):
        order, sheet = in_progress()
        orchestrator.consume(
            admin_actor, order.id, [{"supply_id": sheet.lines[0].supply_id, "quantity": 1}]
        )

        everything = orchestrator.get_all_history(admin_actor).data
        consumption_only = orchestrator.get_all_history(admin_actor, kind="consumption").data

        assert len(everything) == 3
        assert len(consumption_only) == 1
        assert everything[0].seq > everything[-1].seq


class TestStaging:

    def test_staged_amount_shows_as_used(self, orchestrator, admin_actor, in_progress):
        order, sheet = in_progress()
        cuero = _line(sheet, "Cuero Base")

        staged = orchestrator.stage_consumption(admin_actor, order.id, cuero.supply_id, "2.5")
        assert staged.data == {cuero.supply_id: Decimal("2.5000")}

        refreshed = orchestrator.resolve_requirements(admin_actor, order.id).data
        assert _line(refreshed, "Cuero Base").used == Decimal("2.5000")
        assert _line(refreshed, "Cordones").used == Decimal("0")
        # Staging never touches stock
        assert _line(refreshed, "Cuero Base").available == Decimal("50")

    def test_finish_blocked_while_staged(self, orchestrator, admin_actor, in_progress):
        order, sheet = in_progress()
        cuero = _line(sheet, "Cuero Base")
        orchestrator.stage_consumption(admin_actor, order.id, cuero.supply_id, 3)

        result = orchestrator.transition(admin_actor, order.id, "finished")

        assert result.code == "PENDING_CONSUMPTION"
        assert result.error.details["pending"] == {str(cuero.supply_id): Decimal("3.0000")}
        assert orchestrator.get_order(admin_actor, order.id).data.status == OrderStatus.IN_PROGRESS

    def test_commit_consumes_and_clears(self, orchestrator, admin_actor, in_progress):
        order, sheet = in_progress()
        cuero = _line(sheet, "Cuero Base")
        cordones = _line(sheet, "Cordones")
        orchestrator.stage_consumption(admin_actor, order.id, cuero.supply_id, 4)
        orchestrator.stage_consumption(admin_actor, order.id, cordones.supply_id, 100)

        receipt = orchestrator.commit_staged(admin_actor, order.id)

        assert receipt.ok
        assert len(receipt.data.items) == 2
        assert orchestrator.staged_consumption(admin_actor, order.id).data == {}
        assert orchestrator.transition(admin_actor, order.id, "finished").ok

    def test_failed_commit_keeps_staged(self, orchestrator, admin_actor, in_progress):
        order, sheet = in_progress()
        cuero = _line(sheet, "Cuero Base")
        orchestrator.stage_consumption(admin_actor, order.id, cuero.supply_id, 60)

        result = orchestrator.commit_staged(admin_actor, order.id)

        assert result.code == "INSUFFICIENT_STOCK"
        assert orchestrator.staged_consumption(admin_actor, order.id).data == {
            cuero.supply_id: Decimal("60.0000")
        }

    def test_commit_with_nothing_staged(self, orchestrator, admin_actor, in_progress):
        order, _ = in_progress()

        assert orchestrator.commit_staged(admin_actor, order.id).code == "EMPTY_CONSUMPTION_SET"

    def test_discard(self, orchestrator, admin_actor, in_progress):
        order, sheet = in_progress()
        orchestrator.stage_consumption(admin_actor, order.id, sheet.lines[0].supply_id, 1)

        assert orchestrator.discard_staged(admin_actor, order.id).ok
        assert orchestrator.staged_consumption(admin_actor, order.id).data == {}
        assert orchestrator.transition(admin_actor, order.id, "finished").ok

    def test_staging_zero_removes_entry(self, orchestrator, admin_actor, in_progress):
        order, sheet = in_progress()
        supply_id = sheet.lines[0].supply_id
        orchestrator.stage_consumption(admin_actor, order.id, supply_id, 1)

        result = orchestrator.stage_consumption(admin_actor, order.id, supply_id, 0)

        assert result.data == {}

    def test_staging_negative_rejected(self, orchestrator, admin_actor, in_progress):
        order, sheet = in_progress()

        result = orchestrator.stage_consumption(admin_actor, order.id, sheet.lines[0].supply_id, -1)

        assert result.code == "INVALID_CONSUMPTION_QUANTITY"

    def test_staging_for_unknown_order(self, orchestrator, admin_actor):
        result = orchestrator.stage_consumption(admin_actor, "P9999", uuid4(), 1)


    def test_staging_after_finish_rejected(self, orchestrator, admin_actor, in_progress):
        order, sheet = in_progress()
        assert orchestrator.transition(admin_actor, order.id, "finished").ok

        result = orchestrator.stage_consumption(admin_actor, order.id, sheet.lines[0].supply_id, 1)

        assert result.code == "INVALID_ORDER_STATE"
        assert orchestrator.staged_consumption(admin_actor, order.id).data == {}
        assert orchestrator.staging.is_closed(order.id)

    def test_staging_on_queued_order_rejected(self, orchestrator, admin_actor):
        order = orchestrator.create_order(admin_actor, "Zapato X", 5, "Cliente Uno").data

        result = orchestrator.stage_consumption(admin_actor, order.id, uuid4(), 1)

        assert result.code == "INVALID_ORDER_STATE"
        assert result.error.details["current_status"] == "queued"

    def test_failed_finish_reopens_staging(self, orchestrator, admin_actor):
        order = orchestrator.create_order(admin_actor, "Zapato X", 5, "Cliente Uno").data

        result = orchestrator.transition(admin_actor, order.id, "finished")

        assert not result.ok
        assert not orchestrator.staging.is_closed(order.id)


class TestConsumptionStaging:

    def test_closed_order_refuses_amounts(self):
        staging = ConsumptionStaging()
        staging.close("P1001")

        with pytest.raises(InvalidOrderStateError):
            staging.stage("P1001", uuid4(), 1)
        assert staging.get("P1001") == {}

    def test_close_with_pending_amounts_fails_and_stays_open(self):
        staging = ConsumptionStaging()
        supply_id = uuid4()
        staging.stage("P1001", supply_id, "2.5")

        with pytest.raises(PendingConsumptionError) as exc_info:
            staging.close("P1001")

        assert exc_info.value.pending == {str(supply_id): Decimal("2.5000")}
        assert not staging.is_closed("P1001")
        assert staging.stage("P1001", supply_id, 3) == {supply_id: Decimal("3.0000")}

    def test_reopen_accepts_amounts_again(self):
        staging = ConsumptionStaging()
        supply_id = uuid4()
        staging.close("P1001")
        staging.reopen("P1001")

        assert staging.stage("P1001", supply_id, 1) == {supply_id: Decimal("1.0000")}

    def test_close_races_with_stage(self):
        """Either the amount lands before close (which then fails) or stage is refused."""
        staging = ConsumptionStaging()
        supply_id = uuid4()
        barrier = threading.Barrier(2)
        outcomes: dict[str, str] = {}

        def stage():
            barrier.wait()
            try:
                staging.stage("P1001", supply_id, 1)
                outcomes["stage"] = "ok"
            except InvalidOrderStateError:
                outcomes["stage"] = "refused"

        def close():
            barrier.wait()
            try:
                staging.close("P1001")
                outcomes["close"] = "ok"
            except PendingConsumptionError:
                outcomes["close"] = "pending"

        threads = [threading.Thread(target=stage), threading.Thread(target=close)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes in ({"stage": "ok", "close": "pending"}, {"stage": "refused", "close": "ok"})
        if outcomes["close"] == "ok":
            assert staging.get("P1001") == {}
        assert result.code == "ORDER_NOT_FOUND"


class TestLogContext:

    def test_failure_log_carries_actor_and_order(self, orchestrator, admin_actor, captured_logs):
        orchestrator.get_order(admin_actor, "P9999")

        failures = [r for r in captured_logs() if r["message"] == "operation_failed"]
        assert len(failures) == 1
        record = failures[0]
        assert record["operation"] == "get_order"
        assert record["error_code"] == "ORDER_NOT_FOUND"
        assert record["actor_id"] == admin_actor.actor_id
        assert record["order_id"] == "P9999"
        assert "correlation_id" in record

    def test_kernel_logs_inherit_context(self, orchestrator, admin_actor, captured_logs):
        created = orchestrator.create_order(admin_actor, "Zapato X", 1, "C").data
        orchestrator.transition(admin_actor, created.id, "in_progress")

        transitioned = [r for r in captured_logs() if r["message"] == "order_transitioned"]
        assert transitioned
        assert transitioned[0]["order_id"] == created.id
        assert transitioned[0]["actor_id"] == admin_actor.actor_id
        assert "correlation_id" in transitioned[0]
