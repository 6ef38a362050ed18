"""Selectors for the production kernel (read side)."""

from production_kernel.selectors.history_selector import DEFAULT_HISTORY_LIMIT, HistorySelector
from production_kernel.selectors.kpi_selector import KPISelector
from production_kernel.selectors.order_selector import OrderSelector

__all__ = [
    "DEFAULT_HISTORY_LIMIT",
    "HistorySelector",
    "KPISelector",
    "OrderSelector",
]
