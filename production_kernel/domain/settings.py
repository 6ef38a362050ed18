"""
Settings -- kernel-side view of the shop-floor configuration.

The kernel never imports production_config.  Callers build FloorSettings
(usually via production_config.bridges.build_floor_settings) and hand it to
the services that need it.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from production_kernel.domain.recipes import CategoryRule, RecipeBook, RecipeLine
from production_kernel.domain.values import OrderPriority

_BASE_RECIPE = (
    RecipeLine("Cuero Base", "m²", Decimal("0.08"), Decimal("50")),
    RecipeLine("Plantilla Estándar", "u", Decimal("1"), Decimal("300")),
    RecipeLine("Suela Básica", "u", Decimal("1"), Decimal("200")),
)

_ADDITIONS = {
    "zapato": (RecipeLine("Cordones", "u", Decimal("2"), Decimal("400")),),
    "botin": (RecipeLine("Forro Interno", "u", Decimal("1"), Decimal("150")),),
    "sandalia": (RecipeLine("Correa Ajustable", "u", Decimal("2"), Decimal("200")),),
}

_CATEGORY_RULES = (
    CategoryRule("zapato", ("zapato",)),
    CategoryRule("botin", ("botin",)),
    CategoryRule("sandalia", ("sandalia",)),
    CategoryRule("deportivo", ("deportivo", "zapatilla")),
    CategoryRule("formal", ("formal",)),
)


def default_recipe_book() -> RecipeBook:
    """The built-in recipe book, identical to the shipped default.yaml."""
    return RecipeBook(
        base=_BASE_RECIPE,
        additions=dict(_ADDITIONS),
        category_rules=_CATEGORY_RULES,
        default_category="generico",
    )


@dataclass(frozen=True)
class FloorSettings:
    """
    Everything the kernel services need to know about the shop floor.

    Guarantees:
        - order_number_floor is the high-water mark below which no order id
          is ever issued (first order is prefix + floor + 1).
    """

    order_id_prefix: str = "P"
    order_number_floor: int = 1000
    default_priority: OrderPriority = OrderPriority.MEDIUM
    lead_days: int = 14
    default_unit_price: Decimal = Decimal("100000")
    timezone: str = "UTC"
    default_starting_stock: Decimal = Decimal("0")
    default_min_stock: Decimal = Decimal("0")
    creation_note: str = "Order created"
    recipes: RecipeBook = field(default_factory=default_recipe_book)
