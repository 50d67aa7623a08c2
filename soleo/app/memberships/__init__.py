"""Membership plans and the per-user entitlement state machine."""
from .catalog import DEFAULT_ROUTINE_NAME, PlanCatalog, RoutineDirectory
from .models import (
    AssignmentResult,
    Entitlement,
    EntitlementStatus,
    HistoryEntry,
    HistoryItem,
    HistoryStatus,
    MembershipHistory,
    MembershipPlan,
    PlanDraft,
    PlanStatus,
)
from .repository import (
    EntitlementRepository,
    PlanRepository,
    PostgresEntitlementRepository,
    PostgresPlanRepository,
)
from .service import EntitlementService, compute_status

__all__ = [
    "AssignmentResult",
    "DEFAULT_ROUTINE_NAME",
    "Entitlement",
    "EntitlementRepository",
    "EntitlementService",
    "EntitlementStatus",
    "HistoryEntry",
    "HistoryItem",
    "HistoryStatus",
    "MembershipHistory",
    "MembershipPlan",
    "PlanCatalog",
    "PlanDraft",
    "PlanRepository",
    "PlanStatus",
    "PostgresEntitlementRepository",
    "PostgresPlanRepository",
    "RoutineDirectory",
    "compute_status",
]
