from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import psycopg2.errors
import pytest

from soleo.app.errors import InvalidStateError
from soleo.app.memberships import (
    Entitlement,
    HistoryEntry,
    MembershipHistory,
    PostgresEntitlementRepository,
    PostgresPlanRepository,
)

NOW = datetime(2024, 9, 1, 8, 0, tzinfo=timezone.utc)


class FakeCursor:
    def __init__(
        self,
        rows: Optional[List[Dict[str, Any]]] = None,
        rowcount: int = 1,
        error: Optional[Exception] = None,
    ) -> None:
        self.rows = list(rows or [])
        self.rowcount = rowcount
        self.executed: List[tuple] = []
        self.error = error
        self.closed = False

    def execute(self, sql: str, params=None) -> None:
        self.executed.append((" ".join(sql.split()), params))
        if self.error is not None:
            raise self.error

    def fetchone(self):
        return self.rows[0] if self.rows else None

    def fetchall(self):
        return list(self.rows)

    def close(self) -> None:
        self.closed = True


class FakeConnection:
    def __init__(self, cursor: FakeCursor) -> None:
        self._cursor = cursor

    def cursor(self, cursor_factory=None) -> FakeCursor:
        return self._cursor


def test_save_assignment_appends_history_in_single_update():
    cursor = FakeCursor()
    repo = PostgresEntitlementRepository(conn=FakeConnection(cursor))
    archived = HistoryEntry(plan_id=1, assigned_at=NOW - timedelta(days=3), expired_at=NOW, was_trial=True)
    entitlement = Entitlement(
        user_id=10,
        role="CLIENT",
        plan_id=2,
        assigned_at=NOW,
        expires_at=NOW + timedelta(days=30),
        history=MembershipHistory([archived]),
    )

    repo.save_assignment(entitlement, archived)

    assert len(cursor.executed) == 1
    sql, params = cursor.executed[0]
    assert sql.startswith("UPDATE users SET current_membership_id")
    assert "membership_history = COALESCE(membership_history, '[]'::jsonb) ||" in sql
    assert params["plan_id"] == 2
    assert params["user_id"] == 10
    assert params["appended"].adapted == [archived.to_document()]
    assert cursor.closed is True


def test_save_assignment_without_previous_plan_appends_nothing():
    cursor = FakeCursor()
    repo = PostgresEntitlementRepository(conn=FakeConnection(cursor))

    repo.save_assignment(Entitlement(user_id=10, role="CLIENT", plan_id=1, assigned_at=NOW, expires_at=NOW), None)

    assert cursor.executed[0][1]["appended"].adapted == []


def test_save_assignment_for_missing_user_fails():
    repo = PostgresEntitlementRepository(conn=FakeConnection(FakeCursor(rowcount=0)))

    with pytest.raises(LookupError):
        repo.save_assignment(Entitlement(user_id=10, role="CLIENT", plan_id=1, assigned_at=NOW, expires_at=NOW), None)


def test_get_entitlement_maps_history_documents():
    row = {
        "id": 10,
        "role": "CLIENT",
        "current_membership_id": 2,
        "membership_assigned_at": NOW,
        "membership_expires_at": NOW + timedelta(days=30),
        "membership_history": [
            {"planId": 1, "assignedAt": "2024-08-01T08:00:00+00:00", "expiredAt": "2024-09-01T08:00:00+00:00",
             "status": "EXPIRED", "wasTrial": True}
        ],
    }
    repo = PostgresEntitlementRepository(conn=FakeConnection(FakeCursor([row])))

    entitlement = repo.get_entitlement(10)

    assert entitlement.plan_id == 2
    assert len(entitlement.history) == 1
    assert entitlement.history[0].was_trial is True
    assert entitlement.history[0].expired_at == NOW


def test_find_trial_plan_prefers_active_default():
    row = {
        "id": 1,
        "name": "SEMILLA",
        "description": None,
        "price": Decimal("0.00"),
        "duration_days": 365,
        "is_trial": True,
        "is_default": True,
        "status": "ACTIVE",
        "routine_id": 3,
    }
    cursor = FakeCursor([row])
    repo = PostgresPlanRepository(conn=FakeConnection(cursor))

    plan = repo.find_trial_plan()

    assert plan.name == "SEMILLA"
    assert plan.price == 0.0
    sql, params = cursor.executed[0]
    assert "WHERE is_trial = TRUE AND status = %s" in sql
    assert "ORDER BY is_default DESC" in sql
    assert params == ("ACTIVE",)


def test_get_plans_skips_query_for_empty_ids():
    cursor = FakeCursor()
    repo = PostgresPlanRepository(conn=FakeConnection(cursor))

    assert repo.get_plans([]) == {}
    assert cursor.executed == []


def test_delete_plan_still_held_is_invalid_state():
    cursor = FakeCursor(error=psycopg2.errors.ForeignKeyViolation())
    repo = PostgresPlanRepository(conn=FakeConnection(cursor))

    with pytest.raises(InvalidStateError) as excinfo:
        repo.delete_plan(4)

    assert excinfo.value.detail == {"membershipId": 4}
    assert cursor.executed[0][0] == "DELETE FROM membership_plans WHERE id = %s"
    assert cursor.closed is True
