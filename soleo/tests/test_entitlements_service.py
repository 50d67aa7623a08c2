from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

import pytest

from soleo.app.errors import ConfigurationError, InvalidStateError, NotFoundError
from soleo.app.memberships import (
    Entitlement,
    EntitlementService,
    HistoryEntry,
    HistoryStatus,
    MembershipHistory,
    MembershipPlan,
    PlanStatus,
    compute_status,
)

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakePlanRepository:
    def __init__(self, plans: Iterable[MembershipPlan] = ()) -> None:
        self.plans: Dict[int, MembershipPlan] = {plan.id: plan for plan in plans}

    def get_plan(self, plan_id: int) -> Optional[MembershipPlan]:
        return self.plans.get(plan_id)

    def get_plans(self, plan_ids: Iterable[int]) -> Dict[int, MembershipPlan]:
        return {plan_id: self.plans[plan_id] for plan_id in plan_ids if plan_id in self.plans}

    def find_trial_plan(self) -> Optional[MembershipPlan]:
        for plan in self.plans.values():
            if plan.is_trial and plan.is_active:
                return plan
        return None


class FakeEntitlementRepository:
    def __init__(self) -> None:
        self.records: Dict[int, Entitlement] = {}
        self.saved: List[Tuple[Entitlement, Optional[HistoryEntry]]] = []

    def add_user(self, user_id: int, role: str = "CLIENT") -> None:
        self.records[user_id] = Entitlement(user_id=user_id, role=role)

    def get_entitlement(self, user_id: int) -> Optional[Entitlement]:
        return self.records.get(user_id)

    def save_assignment(self, entitlement: Entitlement, archived: Optional[HistoryEntry]) -> None:
        self.records[entitlement.user_id] = entitlement
        self.saved.append((entitlement, archived))


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


SEMILLA = MembershipPlan(id=1, name="SEMILLA", price=0, duration_days=365, is_trial=True, is_default=True)
BRONCE = MembershipPlan(id=2, name="BRONCE", price=299, duration_days=30)
ORO = MembershipPlan(id=3, name="ORO", price=799, duration_days=90)
RETIRED = MembershipPlan(id=4, name="RETIRADO", price=99, duration_days=30, status=PlanStatus.INACTIVE)


@pytest.fixture
def clock() -> Clock:
    return Clock(NOW)


@pytest.fixture
def entitlements() -> FakeEntitlementRepository:
    repo = FakeEntitlementRepository()
    repo.add_user(10)
    repo.add_user(99, role="ADMIN")
    return repo


@pytest.fixture
def plans() -> FakePlanRepository:
    return FakePlanRepository([SEMILLA, BRONCE, ORO, RETIRED])


@pytest.fixture
def service(plans, entitlements, clock) -> EntitlementService:
    return EntitlementService(plan_repository=plans, entitlement_repository=entitlements, clock=clock)


def test_assign_default_grants_trial_plan_for_its_duration(service, entitlements):
    result = service.assign_default(10)

    assert result.new_plan == SEMILLA
    assert result.was_replaced is False
    assert result.archived_entry is None
    record = entitlements.records[10]
    assert record.plan_id == SEMILLA.id
    assert record.assigned_at == NOW
    assert record.expires_at == NOW + timedelta(days=365)
    assert len(record.history) == 0


def test_assign_archives_previous_plan_as_expired(service, entitlements, clock):
    service.assign_default(10)
    clock.advance(days=10)

    result = service.assign(10, BRONCE.id)

    assert result.was_replaced is True
    assert result.previous_plan_id == SEMILLA.id
    assert result.previous_plan == SEMILLA
    assert result.expires_at == clock.now + timedelta(days=30)

    record = entitlements.records[10]
    assert record.plan_id == BRONCE.id
    assert len(record.history) == 1
    archived = record.history[0]
    assert archived.plan_id == SEMILLA.id
    assert archived.assigned_at == NOW
    assert archived.expired_at == clock.now
    assert archived.status is HistoryStatus.EXPIRED
    assert archived.was_trial is True


def test_reassigning_same_plan_restarts_window_and_archives(service, entitlements, clock):
    service.assign(10, BRONCE.id)
    clock.advance(days=20)

    result = service.assign(10, BRONCE.id)

    assert result.was_replaced is True
    assert result.expires_at == clock.now + timedelta(days=30)
    history = entitlements.records[10].history
    assert [entry.plan_id for entry in history] == [BRONCE.id]
    assert history[0].was_trial is False


def test_history_only_grows_across_assignments(service, entitlements, clock):
    service.assign_default(10)
    for plan in (BRONCE, ORO, BRONCE):
        clock.advance(days=1)
        service.assign(10, plan.id)

    history = entitlements.records[10].history
    assert [entry.plan_id for entry in history] == [SEMILLA.id, BRONCE.id, ORO.id]
    assert all(entry.expired_at is not None for entry in history)


def test_assign_default_without_trial_plan_is_configuration_error(entitlements, clock):
    service = EntitlementService(
        plan_repository=FakePlanRepository([BRONCE]),
        entitlement_repository=entitlements,
        clock=clock,
    )

    with pytest.raises(ConfigurationError):
        service.assign_default(10)
    assert entitlements.saved == []


def test_assign_rejects_unknown_user_and_plan(service):
    with pytest.raises(NotFoundError):
        service.assign(404, BRONCE.id)
    with pytest.raises(NotFoundError):
        service.assign(10, 404)


def test_assign_rejects_inactive_plan(service, entitlements):
    with pytest.raises(InvalidStateError):
        service.assign(10, RETIRED.id)
    assert entitlements.records[10].plan_id is None


def test_admin_cannot_hold_membership(service, entitlements):
    with pytest.raises(InvalidStateError):
        service.assign(99, BRONCE.id)
    with pytest.raises(InvalidStateError):
        service.get_current(99)
    assert entitlements.records[99].plan_id is None


def test_get_current_reports_days_remaining(service, clock):
    service.assign(10, BRONCE.id)
    clock.advance(days=10, hours=1)

    status = service.get_current(10)

    assert status.plan == BRONCE
    assert status.is_active is True
    assert status.is_expired is False
    assert status.days_remaining == 20


def test_get_current_after_expiry(service, clock):
    service.assign(10, BRONCE.id)
    clock.advance(days=30)

    status = service.get_current(10)

    assert status.plan == BRONCE
    assert status.is_active is False
    assert status.is_expired is True
    assert status.days_remaining == 0
    assert service.has_active_membership(10) is False


def test_get_current_when_never_assigned(service):
    status = service.get_current(10)

    assert status.plan is None
    assert status.is_active is False
    assert status.is_expired is False
    assert status.days_remaining == 0


def test_get_history_resolves_plans(service, plans, clock):
    service.assign_default(10)
    clock.advance(days=1)
    service.assign(10, BRONCE.id)
    clock.advance(days=1)
    service.assign(10, ORO.id)
    del plans.plans[BRONCE.id]

    items = service.get_history(10)

    assert [item.entry.plan_id for item in items] == [SEMILLA.id, BRONCE.id]
    assert items[0].plan == SEMILLA
    assert items[1].plan is None


def test_compute_status_rounds_partial_days_up():
    status = compute_status(
        BRONCE,
        assigned_at=NOW,
        expires_at=NOW + timedelta(hours=5),
        now=NOW,
    )
    assert status.days_remaining == 1


def test_membership_history_append_returns_new_log():
    entry = HistoryEntry(plan_id=1, assigned_at=NOW, expired_at=NOW + timedelta(days=1))
    original = MembershipHistory()

    extended = original.append(entry)

    assert len(original) == 0
    assert list(extended) == [entry]
    assert extended[-1] == entry


def test_membership_history_round_trips_documents():
    naive = datetime(2024, 1, 1, 8, 30)
    documents = [
        {"planId": 2, "assignedAt": naive.isoformat(), "expiredAt": None, "status": "EXPIRED", "wasTrial": False}
    ]

    history = MembershipHistory.from_documents(documents)

    assert history[0].assigned_at.tzinfo is not None
    assert history[0].to_document()["planId"] == 2
    assert MembershipHistory.from_documents(None) == MembershipHistory()


def test_saved_entitlement_is_a_new_object(service, entitlements):
    before = entitlements.records[10]
    service.assign(10, BRONCE.id)
    after = entitlements.records[10]

    assert before.plan_id is None
    assert after is not before
    assert replace(after, plan_id=None).history == after.history


def test_expiry_without_current_plan_is_not_active(service, entitlements):
    entitlements.records[10] = Entitlement(user_id=10, role="CLIENT", expires_at=NOW + timedelta(days=3))

    assert service.has_active_membership(10) is False
    assert service.has_active_membership(12345) is False
