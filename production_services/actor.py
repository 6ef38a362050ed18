"""
production_services.actor -- who is calling, and what they may do.

The kernel stays actor-agnostic: it records an ``actor_id`` string on
every write and never checks permissions.  The orchestrator checks an
Actor's permission set before opening a transaction.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from production_kernel.exceptions import PermissionDeniedError


class Permission:
    """Permission names, matching the ``roles`` section of the config."""

    ORDERS_READ = "orders.read"
    ORDERS_CREATE = "orders.create"
    ORDERS_UPDATE_STATUS = "orders.update_status"
    SUPPLIES_READ = "supplies.read"
    SUPPLIES_CONSUME = "supplies.consume"
    HISTORY_READ = "history.read"
    DASHBOARD_READ = "dashboard.read"


ALL_PERMISSIONS: frozenset[str] = frozenset({
    Permission.ORDERS_READ,
    Permission.ORDERS_CREATE,
    Permission.ORDERS_UPDATE_STATUS,
    Permission.SUPPLIES_READ,
    Permission.SUPPLIES_CONSUME,
    Permission.HISTORY_READ,
    Permission.DASHBOARD_READ,
})


@dataclass(frozen=True)
class Actor:
    """An authenticated caller and its granted permissions."""

    actor_id: str
    permissions: frozenset[str] = frozenset()
    role: str | None = None

    def __post_init__(self) -> None:
        if not self.actor_id or not self.actor_id.strip():
            raise ValueError("actor_id must not be empty")

    @classmethod
    def with_permissions(cls, actor_id: str, permissions: Iterable[str]) -> Actor:
        return cls(actor_id=actor_id, permissions=frozenset(permissions))

    @classmethod
    def for_role(
        cls,
        actor_id: str,
        role: str,
        role_permissions: Mapping[str, frozenset[str]],
    ) -> Actor:
        """
        Build an actor from a configured role.

        Raises:
            ValueError: If ``role`` is not configured.
        """
        if role not in role_permissions:
            raise ValueError(
                f"Unknown role {role!r}; configured roles: {', '.join(sorted(role_permissions))}"
            )
        return cls(actor_id=actor_id, permissions=frozenset(role_permissions[role]), role=role)

    def has(self, permission: str) -> bool:
        return permission in self.permissions

    def require(self, permission: str) -> None:
        """Raise PermissionDeniedError unless the actor holds ``permission``."""
        if permission not in self.permissions:
            raise PermissionDeniedError(actor_id=self.actor_id, permission=permission)
