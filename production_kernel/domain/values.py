"""
Values -- enumerations shared by the pure domain and the ORM models.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Models import these enums so that
    the domain never has to import an ORM class.
"""

from enum import Enum


class OrderStatus(str, Enum):
    """Position of an order in the production pipeline.

    Contract: queued -> in_progress -> finished.  finished is terminal.
    """

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


class OrderPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class HistoryKind(str, Enum):
    """Kind of audit record returned by the history selector."""

    STATUS_CHANGE = "status_change"
    CONSUMPTION = "consumption"


def parse_status(value: "OrderStatus | str") -> OrderStatus:
    """Coerce a caller-supplied status.

    Raises:
        ValueError: If ``value`` is not one of the OrderStatus values.
    """
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in OrderStatus)
        raise ValueError(f"Unknown order status {value!r}; expected one of: {valid}") from None


def parse_priority(value: "OrderPriority | str") -> OrderPriority:
    if isinstance(value, OrderPriority):
        return value
    try:
        return OrderPriority(value)
    except ValueError:
        valid = ", ".join(p.value for p in OrderPriority)
        raise ValueError(f"Unknown priority {value!r}; expected one of: {valid}") from None
