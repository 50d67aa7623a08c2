"""Persistence layer for membership plans and user entitlements."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

import psycopg2
import psycopg2.errors
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...db import managed_connection
from ..errors import ConflictError, InvalidStateError
from .models import (
    Entitlement,
    HistoryEntry,
    MembershipHistory,
    MembershipPlan,
    PlanDraft,
    PlanStatus,
)


class PlanRepository(Protocol):
    """Data access for the plan catalog."""

    def get_plan(self, plan_id: int) -> Optional[MembershipPlan]:
        ...

    def get_plans(self, plan_ids: Iterable[int]) -> Dict[int, MembershipPlan]:
        ...

    def list_plans(self) -> Sequence[MembershipPlan]:
        ...

    def find_trial_plan(self) -> Optional[MembershipPlan]:
        ...

    def get_plan_by_name(self, name: str) -> Optional[MembershipPlan]:
        ...

    def create_plan(self, draft: PlanDraft) -> MembershipPlan:
        ...

    def update_plan(self, plan_id: int, changes: Mapping[str, Any]) -> Optional[MembershipPlan]:
        ...

    def delete_plan(self, plan_id: int) -> bool:
        ...

    def count_current_holders(self, plan_id: int) -> int:
        ...


class EntitlementRepository(Protocol):
    """Reads and writes the entitlement columns embedded in user rows."""

    def get_entitlement(self, user_id: int) -> Optional[Entitlement]:
        ...

    def save_assignment(self, entitlement: Entitlement, archived: Optional[HistoryEntry]) -> None:
        """Persist the new current plan and append ``archived`` in one write."""


_PLAN_COLUMNS = {
    "name": "name",
    "description": "description",
    "price": "price",
    "duration_days": "duration_days",
    "is_trial": "is_trial",
    "is_default": "is_default",
    "status": "status",
    "routine_id": "routine_id",
}


def _row_to_plan(row: Mapping[str, Any]) -> MembershipPlan:
    return MembershipPlan(
        id=int(row["id"]),
        name=row["name"],
        description=row.get("description"),
        price=float(row["price"]),
        duration_days=int(row["duration_days"]),
        is_trial=bool(row.get("is_trial")),
        is_default=bool(row.get("is_default")),
        status=PlanStatus(row["status"]),
        routine_id=row.get("routine_id"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def _row_to_entitlement(row: Mapping[str, Any]) -> Entitlement:
    return Entitlement(
        user_id=int(row["id"]),
        role=row["role"],
        plan_id=row.get("current_membership_id"),
        assigned_at=row.get("membership_assigned_at"),
        expires_at=row.get("membership_expires_at"),
        history=MembershipHistory.from_documents(row.get("membership_history")),
    )


class _PostgresRepository:
    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterable[PgCursor]:
        with managed_connection(self._conn) as (connection, managed):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
            finally:
                cursor.close()


class PostgresPlanRepository(_PostgresRepository):
    """Concrete plan catalog persisted in ``membership_plans``."""

    def get_plan(self, plan_id: int) -> Optional[MembershipPlan]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM membership_plans WHERE id = %s", (plan_id,))
            row = cursor.fetchone()
            return _row_to_plan(row) if row else None

    def get_plans(self, plan_ids: Iterable[int]) -> Dict[int, MembershipPlan]:
        ids = sorted({int(plan_id) for plan_id in plan_ids})
        if not ids:
            return {}
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM membership_plans WHERE id = ANY(%s)", (ids,))
            rows = cursor.fetchall() or []
        return {int(row["id"]): _row_to_plan(row) for row in rows}

    def list_plans(self) -> List[MembershipPlan]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM membership_plans ORDER BY price ASC, id ASC")
            rows = cursor.fetchall() or []
        return [_row_to_plan(row) for row in rows]

    def find_trial_plan(self) -> Optional[MembershipPlan]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM membership_plans
                WHERE is_trial = TRUE AND status = %s
                ORDER BY is_default DESC, id ASC
                LIMIT 1
                """,
                (PlanStatus.ACTIVE.value,),
            )
            row = cursor.fetchone()
            return _row_to_plan(row) if row else None

    def get_plan_by_name(self, name: str) -> Optional[MembershipPlan]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM membership_plans WHERE LOWER(name) = LOWER(%s) LIMIT 1",
                (name,),
            )
            row = cursor.fetchone()
            return _row_to_plan(row) if row else None

    def create_plan(self, draft: PlanDraft) -> MembershipPlan:
        with self._cursor() as cursor:
            try:
                cursor.execute(
                    """
                    INSERT INTO membership_plans (
                        name, description, price, duration_days,
                        is_trial, is_default, status, routine_id
                    )
                    VALUES (%(name)s, %(description)s, %(price)s, %(duration_days)s,
                            %(is_trial)s, %(is_default)s, %(status)s, %(routine_id)s)
                    RETURNING *
                    """,
                    {
                        "name": draft.name,
                        "description": draft.description,
                        "price": draft.price,
                        "duration_days": draft.duration_days,
                        "is_trial": draft.is_trial,
                        "is_default": draft.is_default,
                        "status": draft.status.value,
                        "routine_id": draft.routine_id,
                    },
                )
            except psycopg2.errors.UniqueViolation as exc:
                raise ConflictError("A membership with this name already exists") from exc
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist membership plan")
            return _row_to_plan(row)

    def update_plan(self, plan_id: int, changes: Mapping[str, Any]) -> Optional[MembershipPlan]:
        assignments: List[str] = []
        params: Dict[str, Any] = {"plan_id": plan_id}
        for key, value in changes.items():
            column = _PLAN_COLUMNS.get(key)
            if column is None:
                continue
            assignments.append(f"{column} = %({key})s")
            params[key] = value.value if isinstance(value, PlanStatus) else value
        if not assignments:
            return self.get_plan(plan_id)

        with self._cursor() as cursor:
            try:
                cursor.execute(
                    f"""
                    UPDATE membership_plans
                    SET {", ".join(assignments)}, updated_at = NOW()
                    WHERE id = %(plan_id)s
                    RETURNING *
                    """,
                    params,
                )
            except psycopg2.errors.UniqueViolation as exc:
                raise ConflictError("A membership with this name already exists") from exc
            row = cursor.fetchone()
            return _row_to_plan(row) if row else None

    def delete_plan(self, plan_id: int) -> bool:
        with self._cursor() as cursor:
            try:
                cursor.execute("DELETE FROM membership_plans WHERE id = %s", (plan_id,))
            except psycopg2.errors.ForeignKeyViolation as exc:
                raise InvalidStateError(
                    "Cannot delete a membership that users currently hold",
                    detail={"membershipId": plan_id},
                ) from exc
            return cursor.rowcount > 0

    def count_current_holders(self, plan_id: int) -> int:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT COUNT(*) AS holders FROM users WHERE current_membership_id = %s",
                (plan_id,),
            )
            row = cursor.fetchone()
            return int(row["holders"]) if row else 0


class PostgresEntitlementRepository(_PostgresRepository):
    """Entitlement columns on ``users``; history is a JSONB array."""

    def get_entitlement(self, user_id: int) -> Optional[Entitlement]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT id, role, current_membership_id, membership_assigned_at,
                       membership_expires_at, membership_history
                FROM users
                WHERE id = %s
                """,
                (user_id,),
            )
            row = cursor.fetchone()
            return _row_to_entitlement(row) if row else None

    def save_assignment(self, entitlement: Entitlement, archived: Optional[HistoryEntry]) -> None:
        appended = [archived.to_document()] if archived is not None else []
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE users
                SET current_membership_id = %(plan_id)s,
                    membership_assigned_at = %(assigned_at)s,
                    membership_expires_at = %(expires_at)s,
                    membership_history = COALESCE(membership_history, '[]'::jsonb) || %(appended)s::jsonb,
                    updated_at = NOW()
                WHERE id = %(user_id)s
                """,
                {
                    "plan_id": entitlement.plan_id,
                    "assigned_at": entitlement.assigned_at,
                    "expires_at": entitlement.expires_at,
                    "appended": psycopg2.extras.Json(appended),
                    "user_id": entitlement.user_id,
                },
            )
            if cursor.rowcount == 0:
                raise LookupError(f"User {entitlement.user_id} disappeared during assignment")


__all__ = [
    "EntitlementRepository",
    "PlanRepository",
    "PostgresEntitlementRepository",
    "PostgresPlanRepository",
]
