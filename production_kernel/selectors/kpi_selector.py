"""
Module: production_kernel.selectors.kpi_selector
Responsibility: Dashboard counts derived from current order and supply state.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Single snapshot: all values are scalar subqueries of ONE SELECT, so
      they are read from one statement snapshot and never mix states from
      before and after a concurrent commit.
    - "Finished today" uses explicit timezone semantics: the calendar day
      of the given (or configured) timezone, converted to UTC bounds and
      compared against Order.updated_at.

Failure modes:
    - ValueError on an unknown timezone name.
"""

from datetime import tzinfo

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from production_kernel.domain.clock import Clock, SystemClock, local_day_bounds, resolve_timezone
from production_kernel.domain.dtos import KPISnapshot
from production_kernel.domain.values import OrderStatus
from production_kernel.logging_config import get_logger
from production_kernel.models.order import Order
from production_kernel.models.supply import SupplyItem
from production_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.kpi")


class KPISelector(BaseSelector[Order]):
    """
    Selector for dashboard KPIs.

    Guarantees:
        - queued: count of queued orders.
        - in_progress_units: sum of quantity over in_progress orders.
        - finished_today: finished orders whose updated_at falls in today.
        - low_stock: supplies with stock <= min_stock.
        - in_progress_orders: count of in_progress orders.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        default_timezone: str = "UTC",
    ):
        super().__init__(session)
        self.clock = clock or SystemClock()
        self.default_timezone = default_timezone

    def compute_kpis(self, tz: str | tzinfo | None = None) -> KPISnapshot:
        """
        Args:
            tz: Timezone whose calendar day counts as "today".  A name
                ("UTC", "America/Bogota") or a tzinfo; defaults to the
                selector's configured timezone.
        """
        if tz is None:
            tz = self.default_timezone
        zone = resolve_timezone(tz) if isinstance(tz, str) else tz
        tz_name = tz if isinstance(tz, str) else str(tz)

        now = self.clock.now_utc()
        day_start, day_end = local_day_bounds(now, zone)

        queued = (
            select(func.count())
            .select_from(Order)
            .where(Order.status == OrderStatus.QUEUED.value)
            .scalar_subquery()
        )
        in_progress_units = (
            select(func.coalesce(func.sum(Order.quantity), 0))
            .where(Order.status == OrderStatus.IN_PROGRESS.value)
            .scalar_subquery()
        )
        in_progress_orders = (
            select(func.count())
            .select_from(Order)
            .where(Order.status == OrderStatus.IN_PROGRESS.value)
            .scalar_subquery()
        )
        finished_today = (
            select(func.count())
            .select_from(Order)
            .where(
                Order.status == OrderStatus.FINISHED.value,
                Order.updated_at >= day_start,
                Order.updated_at < day_end,
            )
            .scalar_subquery()
        )
        low_stock = (
            select(func.count())
            .select_from(SupplyItem)
            .where(SupplyItem.stock <= SupplyItem.min_stock)
            .scalar_subquery()
        )

        row = self.session.execute(
            select(
                queued.label("queued"),
                in_progress_units.label("in_progress_units"),
                finished_today.label("finished_today"),
                low_stock.label("low_stock"),
                in_progress_orders.label("in_progress_orders"),
            )
        ).one()

        snapshot = KPISnapshot(
            queued=int(row.queued),
            in_progress_units=int(row.in_progress_units or 0),
            finished_today=int(row.finished_today),
            low_stock=int(row.low_stock),
            in_progress_orders=int(row.in_progress_orders),
            computed_at=now,
            timezone=tz_name,
        )
        logger.debug(
            "kpis_computed",
            extra={
                "queued": snapshot.queued,
                "in_progress_units": snapshot.in_progress_units,
                "finished_today": snapshot.finished_today,
                "low_stock": snapshot.low_stock,
                "timezone": tz_name,
            },
        )
        return snapshot
