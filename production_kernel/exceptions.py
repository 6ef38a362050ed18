"""
Typed Exception Hierarchy for the Production Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The request layer that sits in front of the kernel has to tell a missing
order apart from an illegal status change, and an illegal status change apart
from a store outage. Matching on message text is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Every exception has an HTTP_STATUS equivalent and a RETRYABLE flag
  4. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        consumption_service.consume(order_id, actor_id, lines)
    except InsufficientStockError as e:
        show_row(e.supply_name, available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ProductionKernelError (base)
    |
    +-- NotFoundError
    |   +-- OrderNotFoundError
    |   +-- SupplyNotFoundError
    |
    +-- OrderStateError
    |   +-- InvalidTransitionError
    |   +-- InvalidOrderStateError
    |   +-- PendingConsumptionError
    |
    +-- ConsumptionError
    |   +-- InsufficientStockError
    |   +-- EmptyConsumptionSetError
    |   +-- InvalidConsumptionQuantityError
    |
    +-- ConcurrencyError
    |   +-- StaleOrderStateError
    |   +-- StaleStockError
    |
    +-- StoreError
    |   +-- StoreUnavailableError
    |
    +-- AuditError
    |   +-- AuditPathBrokenError
    |   +-- StockConservationError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- AuthorizationError
        +-- PermissionDeniedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                         | HTTP | When Raised
----------------|------------------------------|------|--------------------------------
Not found       | ORDER_NOT_FOUND              | 404  | Order id doesn't exist
                | SUPPLY_NOT_FOUND             | 404  | Supply id doesn't exist
----------------|------------------------------|------|--------------------------------
Order state     | INVALID_TRANSITION           | 400  | Illegal state-machine edge
                | INVALID_ORDER_STATE          | 400  | Consumption on non in-progress order
                | PENDING_CONSUMPTION          | 400  | Finish while consumption is staged
----------------|------------------------------|------|--------------------------------
Consumption     | INSUFFICIENT_STOCK           | 400  | Request exceeds available stock
                | EMPTY_CONSUMPTION_SET        | 400  | All quantities zero / absent
                | INVALID_CONSUMPTION_QUANTITY | 400  | Negative or non-numeric quantity
----------------|------------------------------|------|--------------------------------
Concurrency     | STALE_ORDER_STATE            | 409  | Order changed under us
                | STALE_STOCK                  | 409  | Supply changed under us
----------------|------------------------------|------|--------------------------------
Store           | STORE_UNAVAILABLE            | 503  | Timeout / lock wait / I/O failure
----------------|------------------------------|------|--------------------------------
Audit           | AUDIT_PATH_BROKEN            | 500  | Status history replays illegally
                | STOCK_CONSERVATION_BROKEN    | 500  | initial - consumed != stock
----------------|------------------------------|------|--------------------------------
Immutability    | IMMUTABILITY_VIOLATION       | 500  | UPDATE/DELETE of an audit row
----------------|------------------------------|------|--------------------------------
Authorization   | PERMISSION_DENIED            | 403  | Actor lacks the permission

===============================================================================
HANDLING PATTERNS
===============================================================================

1. InvalidTransitionError: re-fetch the order; the cached status was stale.
   ``e.allowed`` lists the legal next statuses for the *current* status.

2. StoreError / ConcurrencyError: the operation was atomic and nothing was
   applied.  Retrying the whole operation is safe.

3. EmptyConsumptionSetError: not worth escalating; acknowledge as a no-op.
"""

from decimal import Decimal


class ProductionKernelError(Exception):
    """
    Base exception for all production kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PRODUCTION_KERNEL_ERROR"
    http_status: int = 500
    retryable: bool = False


# Not-found exceptions


class NotFoundError(ProductionKernelError):
    """Base exception for references to rows that do not exist."""

    code: str = "NOT_FOUND"
    http_status: int = 404


class OrderNotFoundError(NotFoundError):
    """Order with given id was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class SupplyNotFoundError(NotFoundError):
    """Supply item with given id was not found."""

    code: str = "SUPPLY_NOT_FOUND"

    def __init__(self, supply_id: str):
        self.supply_id = supply_id
        super().__init__(f"Supply not found: {supply_id}")


# Order state exceptions


class OrderStateError(ProductionKernelError):
    """Base exception for order lifecycle errors."""

    code: str = "ORDER_STATE_ERROR"
    http_status: int = 400


class InvalidTransitionError(OrderStateError):
    """
    Requested status is not a legal successor of the current status.

    ``allowed`` carries the legal successors of ``current_status`` so the
    caller can present the real options after re-fetching.
    """

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        order_id: str,
        current_status: str,
        requested_status: str,
        allowed: tuple[str, ...] = (),
    ):
        self.order_id = order_id
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed = allowed
        options = ", ".join(allowed) if allowed else "none (terminal)"
        super().__init__(
            f"Invalid transition for order {order_id}: "
            f"{current_status} -> {requested_status} (allowed: {options})"
        )


class InvalidOrderStateError(OrderStateError):
    """Operation requires the order to be in a specific status."""

    code: str = "INVALID_ORDER_STATE"

    def __init__(self, order_id: str, current_status: str, required_status: str):
        self.order_id = order_id
        self.current_status = current_status
        self.required_status = required_status
        super().__init__(
            f"Order {order_id} is {current_status}; "
            f"operation requires {required_status}"
        )


class PendingConsumptionError(OrderStateError):
    """Order cannot be finished while consumption amounts are staged."""

    code: str = "PENDING_CONSUMPTION"

    def __init__(self, order_id: str, pending: dict[str, Decimal]):
        self.order_id = order_id
        self.pending = pending
        super().__init__(
            f"Order {order_id} has {len(pending)} staged consumption "
            "amount(s) that must be saved or discarded first"
        )


# Consumption exceptions


class ConsumptionError(ProductionKernelError):
    """Base exception for consumption transaction errors."""

    code: str = "CONSUMPTION_ERROR"
    http_status: int = 400


class InsufficientStockError(ConsumptionError):
    """Requested quantity exceeds the supply's available stock."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        supply_id: str,
        supply_name: str,
        available: Decimal,
        requested: Decimal,
    ):
        self.supply_id = supply_id
        self.supply_name = supply_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {supply_name}: "
            f"available={available}, requested={requested}"
        )


class EmptyConsumptionSetError(ConsumptionError):
    """Every submitted quantity was zero or absent; nothing to record."""

    code: str = "EMPTY_CONSUMPTION_SET"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"No positive consumption quantities for order {order_id}")


class InvalidConsumptionQuantityError(ConsumptionError):
    """A consumption line carries a negative or non-numeric quantity."""

    code: str = "INVALID_CONSUMPTION_QUANTITY"

    def __init__(self, supply_id: str, quantity: object):
        self.supply_id = supply_id
        self.quantity = quantity
        super().__init__(
            f"Invalid consumption quantity for supply {supply_id}: {quantity!r}"
        )


# Concurrency exceptions


class ConcurrencyError(ProductionKernelError):
    """Base exception for lost races detected at write time."""

    code: str = "CONCURRENCY_ERROR"
    http_status: int = 409
    retryable: bool = True


class StaleOrderStateError(ConcurrencyError):
    """Order row changed between read and version-checked write."""

    code: str = "STALE_ORDER_STATE"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(
            f"Order {order_id} was modified by another transaction"
        )


class StaleStockError(ConcurrencyError):
    """Supply row changed between read and version-checked write."""

    code: str = "STALE_STOCK"

    def __init__(self, supply_id: str):
        self.supply_id = supply_id
        super().__init__(
            f"Supply {supply_id} was modified by another transaction"
        )


# Store exceptions


class StoreError(ProductionKernelError):
    """Base exception for store access failures."""

    code: str = "STORE_ERROR"
    http_status: int = 503
    retryable: bool = True


class StoreUnavailableError(StoreError):
    """The store timed out or failed; the operation was not applied."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Store unavailable: {reason}")


# Audit exceptions


class AuditError(ProductionKernelError):
    """Base exception for audit trail verification failures."""

    code: str = "AUDIT_ERROR"


class AuditPathBrokenError(AuditError):
    """Replaying an order's status records does not follow the legal graph."""

    code: str = "AUDIT_PATH_BROKEN"

    def __init__(self, order_id: str, previous_status: str | None, new_status: str):
        self.order_id = order_id
        self.previous_status = previous_status
        self.new_status = new_status
        super().__init__(
            f"Status history of order {order_id} contains illegal step "
            f"{previous_status} -> {new_status}"
        )


class StockConservationError(AuditError):
    """initial_stock - sum(consumption) does not equal current stock."""

    code: str = "STOCK_CONSERVATION_BROKEN"

    def __init__(
        self,
        supply_id: str,
        initial_stock: Decimal,
        consumed: Decimal,
        stock: Decimal,
    ):
        self.supply_id = supply_id
        self.initial_stock = initial_stock
        self.consumed = consumed
        self.stock = stock
        super().__init__(
            f"Stock conservation broken for supply {supply_id}: "
            f"initial={initial_stock}, consumed={consumed}, stock={stock}"
        )


# Immutability exceptions


class ImmutabilityError(ProductionKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an append-only record.

    StatusChangeRecord and ConsumptionEvent rows are immutable from creation.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Authorization exceptions


class AuthorizationError(ProductionKernelError):
    """Base exception for permission failures."""

    code: str = "AUTHORIZATION_ERROR"
    http_status: int = 403


class PermissionDeniedError(AuthorizationError):
    """Actor lacks the permission the operation requires."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, actor_id: str, permission: str):
        self.actor_id = actor_id
        self.permission = permission
        super().__init__(f"Actor {actor_id} lacks permission {permission}")
