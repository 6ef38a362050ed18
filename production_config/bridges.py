"""
Config → Kernel Bridges.

Functions that convert a ShopFloorConfig into kernel-compatible inputs.
These live in production_config (the producer) because the kernel must
NEVER import production_config.

Usage:
    from production_config.bridges import build_floor_settings

    config = get_active_config()
    settings = build_floor_settings(config)
"""

from __future__ import annotations

from types import MappingProxyType

from production_config.schema import RecipeLineDef, ShopFloorConfig
from production_kernel.domain.recipes import CategoryRule, RecipeBook, RecipeLine
from production_kernel.domain.settings import FloorSettings
from production_kernel.domain.values import parse_priority


def _recipe_line(line: RecipeLineDef) -> RecipeLine:
    return RecipeLine(
        supply_name=line.supply,
        unit=line.unit,
        per_unit=line.per_unit,
        starting_stock=line.starting_stock,
        min_stock=line.min_stock,
    )


def build_recipe_book(config: ShopFloorConfig) -> RecipeBook:
    """Build the kernel RecipeBook from the config's recipe sections."""
    return RecipeBook(
        base=tuple(_recipe_line(line) for line in config.base_recipe),
        additions=MappingProxyType({
            category: tuple(_recipe_line(line) for line in lines)
            for category, lines in config.category_recipes.items()
        }),
        category_rules=tuple(
            CategoryRule(rule.category, rule.keywords)
            for rule in config.category_rules
        ),
        default_category=config.default_category,
    )


def build_floor_settings(config: ShopFloorConfig) -> FloorSettings:
    """Build FloorSettings for the kernel services."""
    return FloorSettings(
        order_id_prefix=config.orders.id_prefix,
        order_number_floor=config.orders.number_floor,
        default_priority=parse_priority(config.orders.default_priority),
        lead_days=config.orders.lead_days,
        default_unit_price=config.orders.default_unit_price,
        timezone=config.timezone,
        default_starting_stock=config.inventory.default_starting_stock,
        default_min_stock=config.inventory.default_min_stock,
        creation_note=config.orders.creation_note,
        recipes=build_recipe_book(config),
    )


def build_role_permissions(config: ShopFloorConfig) -> dict[str, frozenset[str]]:
    """Role name -> permission set, for building actors from a role."""
    return dict(config.roles)
