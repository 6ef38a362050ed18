"""
Configuration Schema (``production_config.schema``).

Responsibility
--------------
Frozen dataclasses describing one shop-floor configuration set: order
numbering and defaults, inventory defaults, product category rules,
recipes, and role permission sets.

Architecture position
---------------------
**Config layer** -- pure data definitions.  No I/O, no kernel imports.
``production_config.loader`` produces these; ``production_config.bridges``
translates them into kernel inputs.

Invariants enforced
-------------------
* All dataclasses are ``frozen=True``.
* Quantities and prices are ``Decimal``, never float.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class OrderDefaults:
    id_prefix: str = "P"
    number_floor: int = 1000
    default_priority: str = "medium"
    lead_days: int = 14
    default_unit_price: Decimal = Decimal("100000")
    creation_note: str = "Order created"


@dataclass(frozen=True)
class InventoryDefaults:
    default_starting_stock: Decimal = Decimal("0")
    default_min_stock: Decimal = Decimal("0")


@dataclass(frozen=True)
class CategoryRuleDef:
    category: str
    keywords: tuple[str, ...]


@dataclass(frozen=True)
class RecipeLineDef:
    """One supply per unit of product, with its provisioning defaults."""

    supply: str
    unit: str
    per_unit: Decimal
    starting_stock: Decimal
    min_stock: Decimal = Decimal("0")


@dataclass(frozen=True)
class ShopFloorConfig:
    """
    A complete, validated configuration set.

    ``checksum`` is the SHA-256 of the canonical JSON of the source YAML;
    identical files always produce identical checksums.
    """

    config_id: str
    version: int
    timezone: str
    orders: OrderDefaults
    inventory: InventoryDefaults
    default_category: str
    category_rules: tuple[CategoryRuleDef, ...]
    base_recipe: tuple[RecipeLineDef, ...]
    category_recipes: dict[str, tuple[RecipeLineDef, ...]] = field(default_factory=dict)
    roles: dict[str, frozenset[str]] = field(default_factory=dict)
    checksum: str = ""

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(rule.category for rule in self.category_rules)
