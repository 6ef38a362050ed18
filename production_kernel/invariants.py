"""
Kernel Invariants Contract.

These invariants are structural law. No configuration file, recipe or
caller may override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across OrderService, ConsumptionService,
RequirementService, the immutability listeners and table constraints.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    STATUS_MONOTONICITY = "status_monotonicity"
    """Orders move queued -> in_progress -> finished and never back.
    Enforced by OrderService.transition via domain.transitions."""

    STOCK_NON_NEGATIVE = "stock_non_negative"
    """Supply stock never drops below zero. Enforced by ConsumptionService
    before the write and by the ck_supply_stock_non_negative constraint."""

    STOCK_CONSERVATION = "stock_conservation"
    """initial_stock - sum(consumption events) == stock for every supply.
    Consumption is the only writer of stock."""

    REQUIREMENT_IDEMPOTENCY = "requirement_idempotency"
    """One requirement row per (order, supply), generated once. Enforced by
    RequirementService and uq_requirement_order_supply."""

    AUDIT_APPEND_ONLY = "audit_append_only"
    """Status change records and consumption events are never updated or
    deleted. Enforced by db.immutability listeners."""

    ATOMIC_AUDIT = "atomic_audit"
    """Every status or stock write shares its transaction with the matching
    audit row. Enforced by services flushing inside the caller's scope."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "production_services",
    "production_config",
)
