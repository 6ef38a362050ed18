"""
Module: production_kernel.selectors.order_selector
Responsibility: Read-only queries over orders, returned as OrderInfo DTOs
    with product and client names resolved.
Architecture position: Kernel > Selectors.

Failure modes:
    - OrderNotFoundError from get_order() on an unknown id.
    - ValueError from list_orders() on an unknown status string.
"""

from sqlalchemy import select
from sqlalchemy.orm import joinedload

from production_kernel.domain.dtos import OrderInfo
from production_kernel.domain.values import OrderStatus, parse_status
from production_kernel.exceptions import OrderNotFoundError
from production_kernel.models.order import Order
from production_kernel.selectors.base import BaseSelector


class OrderSelector(BaseSelector[Order]):
    """Selector for orders."""

    def _base_query(self):
        return select(Order).options(
            joinedload(Order.product),
            joinedload(Order.client),
        )

    def get_order(self, order_id: str) -> OrderInfo:
        """
        Raises:
            OrderNotFoundError: If the order doesn't exist.
        """
        order = self.session.execute(
            self._base_query()
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_id)
        return OrderInfo.from_model(order)

    def list_orders(
        self,
        status: OrderStatus | str | None = None,
        limit: int | None = None,
    ) -> list[OrderInfo]:
        """Orders newest first, optionally restricted to one status."""
        stmt = self._base_query().order_by(Order.created_at.desc(), Order.id.desc())
        if status is not None:
            stmt = stmt.where(Order.status == parse_status(status).value)
        if limit is not None:
            stmt = stmt.limit(limit)
        orders = self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalars().all()
        return [OrderInfo.from_model(o) for o in orders]
