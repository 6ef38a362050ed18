"""
Transitions -- the order state machine as a pure graph.

Responsibility:
    Declares the legal status edges and validates requested moves.  Holds
    no state and performs no I/O; OrderService applies the result.

Architecture position:
    Kernel > Domain -- pure functional core.

Invariants enforced:
    Status monotonicity: queued -> in_progress -> finished.  No skips, no
    reversals, no self-loops; finished is terminal.

Failure modes:
    - InvalidTransitionError from validate_transition() for every edge not
      in LEGAL_TRANSITIONS, carrying the legal successors of the current
      status so the caller can present the real options.
"""

from collections.abc import Iterable
from types import MappingProxyType

from production_kernel.domain.values import OrderStatus
from production_kernel.exceptions import InvalidTransitionError

LEGAL_TRANSITIONS = MappingProxyType({
    OrderStatus.QUEUED: (OrderStatus.IN_PROGRESS,),
    OrderStatus.IN_PROGRESS: (OrderStatus.FINISHED,),
    OrderStatus.FINISHED: (),
})

# The only status an order may be created in.
INITIAL_STATUS = OrderStatus.QUEUED


def legal_successors(status: OrderStatus) -> tuple[OrderStatus, ...]:
    """Statuses reachable from ``status`` in one step."""
    return LEGAL_TRANSITIONS[OrderStatus(status)]


def is_legal(current: OrderStatus | None, requested: OrderStatus) -> bool:
    """True if ``current -> requested`` is an edge (None is creation)."""
    if current is None:
        return OrderStatus(requested) == INITIAL_STATUS
    return OrderStatus(requested) in legal_successors(current)


def validate_transition(
    order_id: str,
    current: OrderStatus,
    requested: OrderStatus,
) -> None:
    """
    Check that ``requested`` is a legal successor of ``current``.

    Raises:
        InvalidTransitionError: If the edge is not legal.  ``allowed``
            lists the legal successors of ``current``.
    """
    current = OrderStatus(current)
    requested = OrderStatus(requested)
    allowed = legal_successors(current)
    if requested not in allowed:
        raise InvalidTransitionError(
            order_id=order_id,
            current_status=current.value,
            requested_status=requested.value,
            allowed=tuple(s.value for s in allowed),
        )


def is_legal_path(steps: Iterable[tuple[OrderStatus | None, OrderStatus]]) -> bool:
    """
    True if ``steps`` (oldest first) replay as a legal walk from creation.

    Each step is a (previous, new) pair.  The first step must be the
    creation step (None -> queued) and each step's previous status must be
    the prior step's new status.
    """
    expected_previous: OrderStatus | None = None
    first = True
    for previous, new in steps:
        previous = OrderStatus(previous) if previous is not None else None
        if first:
            if previous is not None:
                return False
            first = False
        elif previous is None or previous != expected_previous:
            return False
        if not is_legal(previous, new):
            return False
        expected_previous = OrderStatus(new)
    return True
