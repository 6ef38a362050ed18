"""
production_config -- single public entrypoint for shop-floor configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``ShopFloorConfig``.  YAML
    loading is internal tooling and never exposed to callers.

Architecture position:
    Configuration.  This package sits above ``production_kernel`` and
    below ``production_services``.  The kernel MUST NEVER import from
    ``production_config``; bridges in this package translate the config
    into kernel inputs.

Invariants enforced:
    - Single entrypoint: all runtime config flows through
      ``get_active_config()``.
    - Validation: the timezone must resolve and every category with
      recipe additions must be reachable from a category rule or be the
      default category.
    - Deterministic: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` / ``KeyError`` -- schema or structural validation
      failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``SHOP_FLOOR_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying every order and consumption back to the configuration
    that governed it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from production_config.loader import load_config_file
from production_config.schema import ShopFloorConfig
from production_kernel.domain.clock import resolve_timezone

__all__ = ["ShopFloorConfig", "get_active_config", "validate_config"]

_logger = logging.getLogger("production_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

# Overrides the default file when set
CONFIG_PATH_ENV = "SHOP_FLOOR_CONFIG"


def validate_config(config: ShopFloorConfig) -> list[str]:
    """Return a list of problems; empty when the config is usable."""
    errors: list[str] = []
    try:
        resolve_timezone(config.timezone)
    except ValueError as exc:
        errors.append(str(exc))

    if not config.base_recipe:
        errors.append("recipes.base must list at least one supply")

    reachable = set(config.categories) | {config.default_category}
    for category in config.category_recipes:
        if category not in reachable:
            errors.append(
                f"recipes.by_category.{category} is not produced by any category rule"
            )

    seen: set[str] = set()
    for rule in config.category_rules:
        if rule.category in seen:
            errors.append(f"Duplicate category rule {rule.category!r}")
        seen.add(rule.category)
    return errors


def get_active_config(config_path: Path | str | None = None) -> ShopFloorConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to the YAML file.  Defaults to
            ``$SHOP_FLOOR_CONFIG`` and then to production_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If configuration validation fails.
    """
    path = Path(config_path or os.environ.get(CONFIG_PATH_ENV) or _DEFAULT_CONFIG_PATH)
    config = load_config_file(path)

    errors = validate_config(config)
    if errors:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    _logger.info(
        "SHOP_FLOOR_CONFIG_TRACE",
        extra={
            "trace_type": "SHOP_FLOOR_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "timezone": config.timezone,
            "category_count": len(config.category_rules),
            "role_count": len(config.roles),
        },
    )
    return config
