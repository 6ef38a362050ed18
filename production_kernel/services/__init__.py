"""Services for the production kernel (write side)."""

from production_kernel.services.consumption_service import ConsumptionService, merge_lines
from production_kernel.services.history_service import HistoryService, default_transition_note
from production_kernel.services.order_service import OrderService, placeholder_email
from production_kernel.services.requirement_service import RequirementService
from production_kernel.services.sequence_service import SequenceService
from production_kernel.services.supply_service import SYSTEM_ACTOR_ID, SupplyService

__all__ = [
    "ConsumptionService",
    "HistoryService",
    "OrderService",
    "RequirementService",
    "SequenceService",
    "SupplyService",
    "SYSTEM_ACTOR_ID",
    "default_transition_note",
    "merge_lines",
    "placeholder_email",
]
