"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The shop floor trusts its audit trail: who moved an order, when, and how much
material went into it.  A status record or consumption event that can be
edited after the fact is no longer evidence of anything.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our invariants:

    session.flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

If a check fails, we raise ImmutabilityViolationError and the transaction
is aborted. The database is never modified.

Stock has a single application-owned write path (ConsumptionService), so no
database triggers are installed; raw SQL against these tables is outside the
kernel's contract.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable          | Why
--------------------|-------------------------|-------------------------------------
StatusChangeRecord  | ALWAYS (from creation)  | Status audit trail is append-only
ConsumptionEvent    | ALWAYS (from creation)  | Stock conservation is replayed from it
OrderRequirement    | ALWAYS (from creation)  | Generated once per (order, supply)
Order               | Never deleted           | History references it forever

===============================================================================
USAGE
===============================================================================

Called automatically during application startup:

    from production_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY - never in production):

    from production_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from sqlalchemy import event

from production_kernel.exceptions import ImmutabilityViolationError
from production_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_status_change_immutability(mapper, connection, target):
    """Prevent any updates to StatusChangeRecord rows."""
    from production_kernel.models.status_change import StatusChangeRecord

    if not isinstance(target, StatusChangeRecord):
        return

    _block(
        "StatusChangeRecord",
        target,
        "UPDATE",
        "Status change records are immutable and cannot be modified",
    )


def _check_status_change_delete(mapper, connection, target):
    """Prevent deletion of StatusChangeRecord rows."""
    from production_kernel.models.status_change import StatusChangeRecord

    if not isinstance(target, StatusChangeRecord):
        return

    _block(
        "StatusChangeRecord",
        target,
        "DELETE",
        "Status change records cannot be deleted",
    )


def _check_consumption_event_immutability(mapper, connection, target):
    """Prevent any updates to ConsumptionEvent rows."""
    from production_kernel.models.consumption import ConsumptionEvent

    if not isinstance(target, ConsumptionEvent):
        return

    _block(
        "ConsumptionEvent",
        target,
        "UPDATE",
        "Consumption events are immutable and cannot be modified",
    )


def _check_consumption_event_delete(mapper, connection, target):
    """Prevent deletion of ConsumptionEvent rows."""
    from production_kernel.models.consumption import ConsumptionEvent

    if not isinstance(target, ConsumptionEvent):
        return

    _block(
        "ConsumptionEvent",
        target,
        "DELETE",
        "Consumption events cannot be deleted",
    )


def _check_requirement_immutability(mapper, connection, target):
    from production_kernel.models.requirement import OrderRequirement

    if not isinstance(target, OrderRequirement):
        return

    _block(
        "OrderRequirement",
        target,
        "UPDATE",
        "Order requirements are fixed once generated",
    )


def _check_requirement_delete(mapper, connection, target):
    from production_kernel.models.requirement import OrderRequirement

    if not isinstance(target, OrderRequirement):
        return

    _block(
        "OrderRequirement",
        target,
        "DELETE",
        "Order requirements cannot be deleted",
    )


def _check_order_delete(mapper, connection, target):
    from production_kernel.models.order import Order

    if not isinstance(target, Order):
        return

    _block("Order", target, "DELETE", "Orders are never deleted")


def _listener_table():
    from production_kernel.models.consumption import ConsumptionEvent
    from production_kernel.models.order import Order
    from production_kernel.models.requirement import OrderRequirement
    from production_kernel.models.status_change import StatusChangeRecord

    return (
        (StatusChangeRecord, "before_update", _check_status_change_immutability),
        (StatusChangeRecord, "before_delete", _check_status_change_delete),
        (ConsumptionEvent, "before_update", _check_consumption_event_immutability),
        (ConsumptionEvent, "before_delete", _check_consumption_event_delete),
        (OrderRequirement, "before_update", _check_requirement_immutability),
        (OrderRequirement, "before_delete", _check_requirement_delete),
        (Order, "before_delete", _check_order_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call this after all models are imported but before any database
    operations begin.  Registering twice is a no-op.
    """
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listener_table():
        _safe_remove_listener(target, event_name, listener_fn)
