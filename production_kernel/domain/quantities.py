"""
Quantities -- coercion of caller-supplied amounts and timestamps.

Responsibility:
    Centralizes quantity precision and timezone normalization so that every
    service, selector and DTO uses identical definitions.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - No floats for stock or quantities.  Every quantity entering the kernel
      passes through to_quantity(); columns are Numeric(18, 4).
    - All timestamps are UTC.  Backends that drop tzinfo on read (SQLite)
      are normalized back to aware UTC by as_utc().

Failure modes:
    - ValueError on a value that is not a finite decimal number.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

QUANTITY_DECIMAL_PLACES = 4
DEFAULT_ROUNDING = ROUND_HALF_UP

_QUANTUM = Decimal(1).scaleb(-QUANTITY_DECIMAL_PLACES)


def to_quantity(value: object, exact: bool = False) -> Decimal:
    """
    Coerce a caller-supplied value into a Decimal quantity.

    Strings and ints are converted exactly; floats are converted through
    ``str()`` so that ``0.1`` becomes ``Decimal("0.1")`` rather than its
    binary expansion.  The result is rounded to QUANTITY_DECIMAL_PLACES,
    unless ``exact`` is set, in which case a value that would change under
    rounding is rejected instead.

    Raises:
        ValueError: If the value is not a finite number (bool, None,
            "abc", NaN, Infinity), or with ``exact`` if it carries more
            than QUANTITY_DECIMAL_PLACES significant decimal places.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a quantity: {value!r}")
    try:
        if isinstance(value, float):
            result = Decimal(str(value))
        else:
            result = Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a quantity: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a quantity: {value!r}")
    quantized = result.quantize(_QUANTUM, rounding=DEFAULT_ROUNDING)
    if exact and quantized != result:
        raise ValueError(
            f"Quantity {value!r} has more than {QUANTITY_DECIMAL_PLACES} decimal places"
        )
    return quantized


def as_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` as an aware UTC datetime (naive values are UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
