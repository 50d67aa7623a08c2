from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

import pytest

from soleo.app.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from soleo.app.memberships import MembershipPlan, PlanCatalog, PlanDraft


class FakePlanRepository:
    def __init__(self) -> None:
        self.plans: Dict[int, MembershipPlan] = {}
        self.holders: Dict[int, int] = {}
        self._next_id = 1

    def get_plan(self, plan_id: int) -> Optional[MembershipPlan]:
        return self.plans.get(plan_id)

    def list_plans(self) -> List[MembershipPlan]:
        return sorted(self.plans.values(), key=lambda plan: plan.price)

    def get_plan_by_name(self, name: str) -> Optional[MembershipPlan]:
        for plan in self.plans.values():
            if plan.name.lower() == name.strip().lower():
                return plan
        return None

    def create_plan(self, draft: PlanDraft) -> MembershipPlan:
        plan = MembershipPlan(id=self._next_id, **draft.model_dump())
        self.plans[plan.id] = plan
        self._next_id += 1
        return plan

    def update_plan(self, plan_id: int, changes: Mapping[str, Any]) -> Optional[MembershipPlan]:
        plan = self.plans.get(plan_id)
        if plan is None:
            return None
        updated = plan.model_copy(update=dict(changes))
        self.plans[plan_id] = updated
        return updated

    def delete_plan(self, plan_id: int) -> bool:
        return self.plans.pop(plan_id, None) is not None

    def count_current_holders(self, plan_id: int) -> int:
        return self.holders.get(plan_id, 0)


class FakeRoutines:
    def __init__(self, routines: Mapping[str, int]) -> None:
        self.routines = dict(routines)

    def routine_exists(self, routine_id: int) -> bool:
        return routine_id in self.routines.values()

    def find_routine_id(self, name: str) -> Optional[int]:
        return self.routines.get(name)


@pytest.fixture
def repository() -> FakePlanRepository:
    return FakePlanRepository()


@pytest.fixture
def catalog(repository) -> PlanCatalog:
    return PlanCatalog(repository=repository, routines=FakeRoutines({"bulking": 7, "cardio": 8}))


def _draft(**overrides: Any) -> PlanDraft:
    values: Dict[str, Any] = {"name": "BRONCE", "price": 299, "durationDays": 30}
    values.update(overrides)
    return PlanDraft(**values)


def test_create_plan_defaults_to_bulking_routine(catalog):
    plan, created = catalog.create_plan(_draft())

    assert created is True
    assert plan.routine_id == 7


def test_create_plan_without_any_routine_is_rejected(repository):
    catalog = PlanCatalog(repository=repository, routines=FakeRoutines({}))

    with pytest.raises(ValidationError):
        catalog.create_plan(_draft())


def test_create_plan_with_unknown_routine_is_rejected(catalog):
    with pytest.raises(ValidationError):
        catalog.create_plan(_draft(routineId=99))


def test_identical_create_returns_existing_plan(catalog):
    first, _ = catalog.create_plan(_draft())
    again, created = catalog.create_plan(_draft(name="  BRONCE "))

    assert created is False
    assert again.id == first.id


def test_conflicting_create_is_rejected(catalog):
    catalog.create_plan(_draft())

    with pytest.raises(ConflictError):
        catalog.create_plan(_draft(price=349))


def test_update_plan_ignores_missing_fields_and_checks_name(catalog):
    bronce, _ = catalog.create_plan(_draft())
    catalog.create_plan(_draft(name="ORO", price=799))

    updated = catalog.update_plan(bronce.id, {"price": 319, "description": None})
    assert updated.price == 319
    assert updated.name == "BRONCE"

    with pytest.raises(ConflictError):
        catalog.update_plan(bronce.id, {"name": "oro"})
    with pytest.raises(NotFoundError):
        catalog.update_plan(404, {"price": 1})


def test_delete_plan_is_idempotent_and_protects_holders(catalog, repository):
    plan, _ = catalog.create_plan(_draft())
    repository.holders[plan.id] = 2

    with pytest.raises(InvalidStateError):
        catalog.delete_plan(plan.id)

    repository.holders[plan.id] = 0
    assert catalog.delete_plan(plan.id) is True
    assert catalog.delete_plan(plan.id) is False


def test_draft_rejects_blank_name():
    with pytest.raises(ValueError):
        _draft(name="   ")
