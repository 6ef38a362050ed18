"""
production_services.staging -- consumption amounts entered but not committed.

An operator fills in per-supply amounts for an order before committing
them in one atomic consumption.  Until then the amounts live here, in
process memory, and never touch stock.  While an order has anything
staged it cannot be finished, and once an order is being finished it
accepts no new amounts.
"""

from __future__ import annotations

import threading
from decimal import Decimal
from uuid import UUID

from production_kernel.domain.dtos import ConsumptionLine
from production_kernel.domain.values import OrderStatus
from production_kernel.exceptions import InvalidOrderStateError, PendingConsumptionError


def _details(amounts: dict[UUID, Decimal]) -> dict[str, Decimal]:
    return {str(k): v for k, v in sorted(amounts.items(), key=lambda kv: str(kv[0]))}


class ConsumptionStaging:
    """Thread-safe map of order id -> {supply id: staged quantity}.

    Orders passed to ``close()`` are refused by ``stage()`` until
    ``reopen()``; the check and the close happen under one lock, so no
    amount can slip in between a finish's pending check and its commit.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._staged: dict[str, dict[UUID, Decimal]] = {}
        self._closed: set[str] = set()

    def stage(self, order_id: str, supply_id: UUID | str, quantity: object) -> dict[UUID, Decimal]:
        """
        Set the staged amount for one supply; zero removes it.

        Raises:
            InvalidConsumptionQuantityError: Negative, non-numeric or over-precise quantity,
                or a malformed supply id.
            InvalidOrderStateError: The order is finished or being finished.
        """
        line = ConsumptionLine.parse({"supply_id": supply_id, "quantity": quantity})
        with self._lock:
            if order_id in self._closed:
                raise InvalidOrderStateError(
                    order_id=order_id,
                    current_status=OrderStatus.FINISHED.value,
                    required_status=OrderStatus.IN_PROGRESS.value,
                )
            amounts = self._staged.setdefault(order_id, {})
            if line.quantity > 0:
                amounts[line.supply_id] = line.quantity
            else:
                amounts.pop(line.supply_id, None)
            if not amounts:
                del self._staged[order_id]
            return dict(amounts)

    def get(self, order_id: str) -> dict[UUID, Decimal]:
        with self._lock:
            return dict(self._staged.get(order_id, {}))

    def close(self, order_id: str) -> None:
        """
        Stop accepting amounts for an order about to be finished.

        Raises:
            PendingConsumptionError: If anything is still staged; the order
                stays open.
        """
        with self._lock:
            amounts = self._staged.get(order_id)
            if amounts:
                raise PendingConsumptionError(order_id, _details(amounts))
            self._closed.add(order_id)

    def reopen(self, order_id: str) -> None:
        """Undo close() after a finish that did not commit."""
        with self._lock:
            self._closed.discard(order_id)

    def is_closed(self, order_id: str) -> bool:
        with self._lock:
            return order_id in self._closed

    def clear(self, order_id: str, committed: dict[UUID, Decimal] | None = None) -> None:
        """
        Drop staged amounts for an order.

        With ``committed``, only entries still equal to what was committed
        are dropped, so amounts re-staged during the commit survive.
        """
        with self._lock:
            if committed is None:
                self._staged.pop(order_id, None)
                return
            amounts = self._staged.get(order_id)
            if amounts is None:
                return
            for supply_id, quantity in committed.items():
                if amounts.get(supply_id) == quantity:
                    del amounts[supply_id]
            if not amounts:
                del self._staged[order_id]
