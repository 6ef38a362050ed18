"""
production_services -- Package init and public API.

Responsibility:
    The caller-facing layer over the production kernel: actors and
    permissions, per-operation transactions, consumption staging, and the
    translation of kernel errors into OperationResult values.

Architecture position:
    Services -- stateful orchestration over the kernel.

    Dependency direction (enforced by tests/architecture/test_kernel_boundary.py):
        production_services/ -> production_kernel/  (allowed)
        production_kernel/   -> production_services/ (FORBIDDEN)
"""

from production_services.actor import ALL_PERMISSIONS, Actor, Permission
from production_services.floor_orchestrator import (
    FloorOrchestrator,
    FloorServices,
    build_floor_orchestrator,
)
from production_services.results import ErrorPayload, OperationResult
from production_services.staging import ConsumptionStaging

__all__ = [
    "ALL_PERMISSIONS",
    "Actor",
    "ConsumptionStaging",
    "ErrorPayload",
    "FloorOrchestrator",
    "FloorServices",
    "OperationResult",
    "Permission",
    "build_floor_orchestrator",
]
