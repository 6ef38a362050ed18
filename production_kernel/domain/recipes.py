"""
Recipes -- pure derivation of material requirements from an order.

Responsibility:
    Classifies a product name into a category and expands a recipe book
    (base lines plus per-category additions) into scaled requirements for
    a given order quantity.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The recipe book is
    built from configuration by production_config.bridges and passed in;
    this module never reads configuration itself.

Invariants enforced:
    - Requirement idempotency starts here: derive_requirements() yields at
      most one line per (supply name, unit), summing duplicates, so the
      unique (order, supply) row constraint can never be tripped by the
      recipe itself.
    - Keyword matching ignores case and accents ("Botín" matches "botin").

Failure modes:
    - ValueError on a non-positive order quantity or a negative per-unit
      amount in a recipe line.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType


def normalize_text(value: str) -> str:
    """Case-fold and strip combining accents, e.g. "Botín" -> "botin"."""
    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


@dataclass(frozen=True)
class RecipeLine:
    """One material in a recipe, per unit of product."""

    supply_name: str
    unit: str
    per_unit: Decimal
    # Stock a supply is provisioned with when the first order references it
    starting_stock: Decimal
    min_stock: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if self.per_unit < 0:
            raise ValueError(
                f"Recipe line {self.supply_name!r} has negative per-unit amount"
            )
        if self.starting_stock < 0:
            raise ValueError(
                f"Recipe line {self.supply_name!r} has negative starting stock"
            )

    @property
    def key(self) -> tuple[str, str]:
        return (self.supply_name, self.unit)


@dataclass(frozen=True)
class CategoryRule:
    """Products whose name contains any keyword belong to ``category``."""

    category: str
    keywords: tuple[str, ...]

    def matches(self, product_name: str) -> bool:
        normalized = normalize_text(product_name)
        return any(normalize_text(k) in normalized for k in self.keywords)


@dataclass(frozen=True)
class RecipeBook:
    """
    Base recipe shared by every product plus additions per category.

    Rules are checked in order; the first match wins.
    """

    base: tuple[RecipeLine, ...]
    additions: Mapping[str, tuple[RecipeLine, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    category_rules: tuple[CategoryRule, ...] = ()
    default_category: str = "generico"

    def categorize(self, product_name: str) -> str:
        return categorize_product(
            product_name, self.category_rules, self.default_category
        )

    def lines_for(self, category: str) -> tuple[RecipeLine, ...]:
        return self.base + tuple(self.additions.get(category, ()))

    def all_lines(self) -> tuple[RecipeLine, ...]:
        lines = list(self.base)
        for extra in self.additions.values():
            lines.extend(extra)
        return tuple(lines)


@dataclass(frozen=True)
class DerivedRequirement:
    line: RecipeLine
    required: Decimal


def categorize_product(
    product_name: str,
    rules: tuple[CategoryRule, ...],
    default_category: str,
) -> str:
    """Return the category of the first rule whose keywords match."""
    for rule in rules:
        if rule.matches(product_name):
            return rule.category
    return default_category


def derive_requirements(
    book: RecipeBook,
    category: str,
    quantity: int,
) -> tuple[DerivedRequirement, ...]:
    """
    Scale the recipe for ``category`` by ``quantity``.

    Lines that share a (supply name, unit) are merged by summing their
    per-unit amounts; the first occurrence supplies the provisioning
    defaults.  Output order follows first appearance in the recipe.

    Raises:
        ValueError: If ``quantity`` is not a positive integer.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValueError(f"Order quantity must be a positive integer, got {quantity!r}")

    merged: dict[tuple[str, str], tuple[RecipeLine, Decimal]] = {}
    for line in book.lines_for(category):
        if line.key in merged:
            first, per_unit = merged[line.key]
            merged[line.key] = (first, per_unit + line.per_unit)
        else:
            merged[line.key] = (line, line.per_unit)

    return tuple(
        DerivedRequirement(line=first, required=per_unit * quantity)
        for first, per_unit in merged.values()
    )
