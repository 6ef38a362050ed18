"""Domain models for the production kernel."""

from production_kernel.models.catalog import Client, Product
from production_kernel.models.consumption import ConsumptionEvent
from production_kernel.models.order import Order, OrderPriority, OrderStatus
from production_kernel.models.requirement import OrderRequirement
from production_kernel.models.sequence import SequenceCounter
from production_kernel.models.status_change import StatusChangeRecord
from production_kernel.models.supply import SupplyItem

__all__ = [
    "Order",
    "OrderStatus",
    "OrderPriority",
    "Product",
    "Client",
    "SupplyItem",
    "OrderRequirement",
    "ConsumptionEvent",
    "StatusChangeRecord",
    "SequenceCounter",
    "import_all_models",
]


def import_all_models() -> tuple[type, ...]:
    """Return every mapped class; importing this package registers them all."""
    return (
        Order,
        Product,
        Client,
        SupplyItem,
        OrderRequirement,
        ConsumptionEvent,
        StatusChangeRecord,
        SequenceCounter,
    )
