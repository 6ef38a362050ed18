"""
Configuration Loader (``production_config.loader``).

Responsibility
--------------
Loads a shop-floor YAML file and parses it into the typed
``production_config.schema`` dataclasses.  Runtime callers go through
``production_config.get_active_config()`` instead of calling this directly.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on the kernel
or on the service layer.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required fields never fall back to silent defaults.
* Quantities are parsed into ``Decimal`` from their string form, never
  through float.
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Bad numbers, negative stock, unknown priority  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from production_config.schema import (
    CategoryRuleDef,
    InventoryDefaults,
    OrderDefaults,
    RecipeLineDef,
    ShopFloorConfig,
)

_PRIORITIES = ("low", "medium", "high")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_decimal(value: Any, field_name: str) -> Decimal:
    """
    Parse a non-negative decimal from YAML.

    Floats go through ``str`` so ``0.08`` stays ``Decimal("0.08")``.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name}: expected a number, got {value!r}")
    try:
        parsed = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name}: expected a number, got {value!r}") from exc
    if not parsed.is_finite() or parsed < 0:
        raise ValueError(f"{field_name}: must be a finite non-negative number, got {value!r}")
    return parsed


def parse_orders(data: dict[str, Any]) -> OrderDefaults:
    """Parse the ``orders`` section; every key is optional."""
    defaults = OrderDefaults()
    priority = str(data.get("default_priority", defaults.default_priority)).lower()
    if priority not in _PRIORITIES:
        raise ValueError(
            f"orders.default_priority: {priority!r} is not one of {', '.join(_PRIORITIES)}"
        )
    number_floor = int(data.get("number_floor", defaults.number_floor))
    if number_floor < 0:
        raise ValueError("orders.number_floor must not be negative")
    lead_days = int(data.get("lead_days", defaults.lead_days))
    if lead_days < 0:
        raise ValueError("orders.lead_days must not be negative")
    prefix = str(data.get("id_prefix", defaults.id_prefix))
    if not prefix:
        raise ValueError("orders.id_prefix must not be empty")

    return OrderDefaults(
        id_prefix=prefix,
        number_floor=number_floor,
        default_priority=priority,
        lead_days=lead_days,
        default_unit_price=parse_decimal(
            data.get("default_unit_price", defaults.default_unit_price),
            "orders.default_unit_price",
        ),
        creation_note=str(data.get("creation_note", defaults.creation_note)),
    )


def parse_inventory(data: dict[str, Any]) -> InventoryDefaults:
    defaults = InventoryDefaults()
    return InventoryDefaults(
        default_starting_stock=parse_decimal(
            data.get("default_starting_stock", defaults.default_starting_stock),
            "inventory.default_starting_stock",
        ),
        default_min_stock=parse_decimal(
            data.get("default_min_stock", defaults.default_min_stock),
            "inventory.default_min_stock",
        ),
    )


def parse_category_rule(data: dict[str, Any]) -> CategoryRuleDef:
    keywords = data["keywords"]
    if isinstance(keywords, str):
        keywords = [keywords]
    if not keywords:
        raise ValueError(f"Category {data['category']!r} has no keywords")
    return CategoryRuleDef(
        category=str(data["category"]),
        keywords=tuple(str(k) for k in keywords),
    )


def parse_recipe_line(data: dict[str, Any]) -> RecipeLineDef:
    """
    Parse one recipe line.

    Raises:
        KeyError: if ``supply``, ``unit`` or ``per_unit`` is missing.
        ValueError: if an amount is not a non-negative number.
    """
    name = str(data["supply"]).strip()
    unit = str(data["unit"]).strip()
    if not name or not unit:
        raise ValueError(f"Recipe line needs a supply name and unit, got {data!r}")
    return RecipeLineDef(
        supply=name,
        unit=unit,
        per_unit=parse_decimal(data["per_unit"], f"recipes.{name}.per_unit"),
        starting_stock=parse_decimal(
            data.get("starting_stock", 0), f"recipes.{name}.starting_stock"
        ),
        min_stock=parse_decimal(data.get("min_stock", 0), f"recipes.{name}.min_stock"),
    )


def parse_roles(data: dict[str, Any]) -> dict[str, frozenset[str]]:
    roles: dict[str, frozenset[str]] = {}
    for role, permissions in data.items():
        roles[str(role)] = frozenset(str(p) for p in (permissions or ()))
    return roles


def parse_config(data: dict[str, Any]) -> ShopFloorConfig:
    """
    Parse a whole configuration document.

    Raises:
        KeyError: if ``config_id`` or ``recipes.base`` is missing.
        ValueError: on any invalid value.
    """
    products = data.get("products") or {}
    recipes = data["recipes"]
    by_category = recipes.get("by_category") or {}

    return ShopFloorConfig(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        timezone=str(data.get("timezone", "UTC")),
        orders=parse_orders(data.get("orders") or {}),
        inventory=parse_inventory(data.get("inventory") or {}),
        default_category=str(products.get("default_category", "generico")),
        category_rules=tuple(
            parse_category_rule(r) for r in products.get("category_rules") or ()
        ),
        base_recipe=tuple(parse_recipe_line(line) for line in recipes["base"]),
        category_recipes={
            str(category): tuple(parse_recipe_line(line) for line in lines or ())
            for category, lines in by_category.items()
        },
        roles=parse_roles(data.get("roles") or {}),
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> ShopFloorConfig:
    """Load and parse one configuration file."""
    return parse_config(load_yaml_file(path))
