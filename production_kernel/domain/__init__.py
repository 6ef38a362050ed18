"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy sessions or mapped classes)
- Database
- Time (except through an injected Clock)
- Configuration files

All domain objects are immutable and deterministic.
"""

from production_kernel.domain.clock import (
    Clock,
    DeterministicClock,
    SystemClock,
    local_day_bounds,
    resolve_timezone,
)
from production_kernel.domain.dtos import (
    ConsumedItem,
    ConsumptionInfo,
    ConsumptionLine,
    ConsumptionReceipt,
    HistoryRecord,
    KPISnapshot,
    OrderInfo,
    RequirementLine,
    RequirementSheet,
    StatusChangeInfo,
    SupplyInfo,
)
from production_kernel.domain.quantities import as_utc, to_quantity
from production_kernel.domain.recipes import (
    CategoryRule,
    DerivedRequirement,
    RecipeBook,
    RecipeLine,
    categorize_product,
    derive_requirements,
    normalize_text,
)
from production_kernel.domain.settings import FloorSettings, default_recipe_book
from production_kernel.domain.transitions import (
    LEGAL_TRANSITIONS,
    is_legal_path,
    legal_successors,
    validate_transition,
)
from production_kernel.domain.values import (
    HistoryKind,
    OrderPriority,
    OrderStatus,
    parse_priority,
    parse_status,
)

__all__ = [
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "resolve_timezone",
    "local_day_bounds",
    # Values
    "OrderStatus",
    "OrderPriority",
    "HistoryKind",
    "parse_status",
    "parse_priority",
    # Transitions
    "LEGAL_TRANSITIONS",
    "legal_successors",
    "validate_transition",
    "is_legal_path",
    # Recipes
    "RecipeLine",
    "RecipeBook",
    "CategoryRule",
    "DerivedRequirement",
    "categorize_product",
    "derive_requirements",
    "normalize_text",
    "FloorSettings",
    "default_recipe_book",
    # Quantities
    "to_quantity",
    "as_utc",
    # DTOs
    "OrderInfo",
    "SupplyInfo",
    "RequirementLine",
    "RequirementSheet",
    "ConsumptionLine",
    "ConsumedItem",
    "ConsumptionReceipt",
    "StatusChangeInfo",
    "ConsumptionInfo",
    "HistoryRecord",
    "KPISnapshot",
]
