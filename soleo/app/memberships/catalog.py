"""Admin-managed catalog of membership plans."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from ..errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from .models import MembershipPlan, PlanDraft
from .repository import PlanRepository

logger = logging.getLogger(__name__)

DEFAULT_ROUTINE_NAME = "bulking"


class RoutineDirectory(Protocol):
    """Lookup of routines a plan can reference."""

    def routine_exists(self, routine_id: int) -> bool:
        ...

    def find_routine_id(self, name: str) -> Optional[int]:
        ...


@dataclass
class PlanCatalog:
    repository: PlanRepository
    routines: RoutineDirectory

    def list_plans(self) -> List[MembershipPlan]:
        return list(self.repository.list_plans())

    def get_plan(self, plan_id: int) -> MembershipPlan:
        plan = self.repository.get_plan(plan_id)
        if plan is None:
            raise NotFoundError("Membership not found", detail={"membershipId": plan_id})
        return plan

    def _resolve_routine(self, routine_id: Optional[int]) -> int:
        if routine_id is None:
            default_id = self.routines.find_routine_id(DEFAULT_ROUTINE_NAME)
            if default_id is None:
                raise ValidationError("routineId is required: no default routine is available")
            return default_id
        if not self.routines.routine_exists(routine_id):
            raise ValidationError("Routine not found", detail={"routineId": routine_id})
        return routine_id

    def create_plan(self, draft: PlanDraft) -> Tuple[MembershipPlan, bool]:
        """Create a plan; returns ``(plan, created)``.

        Submitting a draft identical to an existing plan returns that plan
        with ``created=False`` instead of failing.
        """

        existing = self.repository.get_plan_by_name(draft.name)
        if existing is not None:
            if draft.matches(existing):
                return existing, False
            raise ConflictError("A membership with this name already exists", detail={"name": draft.name})

        routine_id = self._resolve_routine(draft.routine_id)
        plan = self.repository.create_plan(draft.model_copy(update={"routine_id": routine_id}))
        logger.info("Membership plan created", extra={"plan_id": plan.id, "plan_name": plan.name})
        return plan, True

    def update_plan(self, plan_id: int, changes: Mapping[str, Any]) -> MembershipPlan:
        current = self.get_plan(plan_id)
        updates: Dict[str, Any] = {key: value for key, value in changes.items() if value is not None}

        if "routine_id" in updates:
            updates["routine_id"] = self._resolve_routine(updates["routine_id"])

        new_name = updates.get("name")
        if new_name is not None and new_name.strip().lower() != current.name.lower():
            clash = self.repository.get_plan_by_name(new_name.strip())
            if clash is not None and clash.id != plan_id:
                raise ConflictError("A membership with this name already exists", detail={"name": new_name})
            updates["name"] = new_name.strip()

        updated = self.repository.update_plan(plan_id, updates)
        if updated is None:
            raise NotFoundError("Membership not found", detail={"membershipId": plan_id})
        logger.info("Membership plan updated", extra={"plan_id": plan_id, "fields": sorted(updates)})
        return updated

    def delete_plan(self, plan_id: int) -> bool:
        """Delete a plan; returns ``False`` when it was already gone."""

        plan = self.repository.get_plan(plan_id)
        if plan is None:
            return False
        holders = self.repository.count_current_holders(plan_id)
        if holders > 0:
            raise InvalidStateError(
                "Cannot delete a membership that users currently hold",
                detail={"membershipId": plan_id, "holders": holders},
            )
        deleted = self.repository.delete_plan(plan_id)
        logger.info("Membership plan deleted", extra={"plan_id": plan_id})
        return deleted


__all__ = ["DEFAULT_ROUTINE_NAME", "PlanCatalog", "RoutineDirectory"]
