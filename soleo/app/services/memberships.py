"""Application wiring for the membership services."""
from __future__ import annotations

from functools import lru_cache

from ..memberships import (
    EntitlementService,
    PlanCatalog,
    PostgresEntitlementRepository,
    PostgresPlanRepository,
)
from ..training import PostgresTrainingRepository


@lru_cache(maxsize=1)
def get_entitlement_service() -> EntitlementService:
    return EntitlementService(
        plan_repository=PostgresPlanRepository(),
        entitlement_repository=PostgresEntitlementRepository(),
    )


@lru_cache(maxsize=1)
def get_plan_catalog() -> PlanCatalog:
    return PlanCatalog(repository=PostgresPlanRepository(), routines=PostgresTrainingRepository())


__all__ = ["get_entitlement_service", "get_plan_catalog"]
