"""Persistence layer for user accounts."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

import psycopg2
import psycopg2.errors
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...db import managed_connection
from ..errors import ConflictError
from ..permissions import Role
from .models import UserRecord, UserStatus

_USER_COLUMNS = """
    id, name, email, role, status, weight, exercise_time, profile_photo,
    fcm_tokens, current_membership_id, membership_assigned_at,
    membership_expires_at, created_at
"""

_PROFILE_COLUMNS = {
    "name": "name",
    "email": "email",
    "weight": "weight",
    "exercise_time": "exercise_time",
    "profile_photo": "profile_photo",
}


class UserRepository(Protocol):
    def get_user(self, user_id: int) -> Optional[UserRecord]:
        ...

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        ...

    def get_credentials(self, email: str) -> Optional[Tuple[UserRecord, str]]:
        ...

    def get_password_hash(self, user_id: int) -> Optional[str]:
        ...

    def create_user(self, *, name: str, email: str, password_hash: str, role: Role) -> UserRecord:
        ...

    def update_profile(self, user_id: int, changes: Mapping[str, Any]) -> Optional[UserRecord]:
        ...

    def set_password_hash(self, user_id: int, password_hash: str) -> None:
        ...

    def add_fcm_token(self, user_id: int, token: str) -> Optional[UserRecord]:
        ...

    def list_users(self, *, role: Optional[Role] = None) -> Sequence[UserRecord]:
        ...

    def set_status(self, user_id: int, status: UserStatus) -> Optional[UserRecord]:
        ...

    def delete_user(self, user_id: int) -> bool:
        ...

    def list_expiring_memberships(self, *, now: datetime, until: datetime) -> Sequence[UserRecord]:
        ...

    def list_reminder_candidates(self) -> Sequence[UserRecord]:
        ...


def _row_to_user(row: Mapping[str, Any]) -> UserRecord:
    weight = row.get("weight")
    return UserRecord(
        id=int(row["id"]),
        name=row["name"],
        email=row["email"],
        role=Role(row["role"]),
        status=UserStatus(row["status"]),
        weight=float(weight) if weight is not None else None,
        exercise_time=row.get("exercise_time"),
        profile_photo=row.get("profile_photo"),
        fcm_tokens=list(row.get("fcm_tokens") or []),
        current_membership_id=row.get("current_membership_id"),
        membership_assigned_at=row.get("membership_assigned_at"),
        membership_expires_at=row.get("membership_expires_at"),
        created_at=row.get("created_at"),
    )


class PostgresUserRepository:
    """Concrete repository persisting users in PostgreSQL."""

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

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        with self._cursor() as cursor:
            cursor.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
            row = cursor.fetchone()
            return _row_to_user(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE LOWER(email) = LOWER(%s)",
                (email.strip(),),
            )
            row = cursor.fetchone()
            return _row_to_user(row) if row else None

    def get_credentials(self, email: str) -> Optional[Tuple[UserRecord, str]]:
        with self._cursor() as cursor:
            cursor.execute(
                f"SELECT {_USER_COLUMNS}, password_hash FROM users WHERE LOWER(email) = LOWER(%s)",
                (email.strip(),),
            )
            row = cursor.fetchone()
            if not row:
                return None
            return _row_to_user(row), row["password_hash"]

    def get_password_hash(self, user_id: int) -> Optional[str]:
        with self._cursor() as cursor:
            cursor.execute("SELECT password_hash FROM users WHERE id = %s", (user_id,))
            row = cursor.fetchone()
            return row["password_hash"] if row else None

    def create_user(self, *, name: str, email: str, password_hash: str, role: Role) -> UserRecord:
        with self._cursor() as cursor:
            try:
                cursor.execute(
                    f"""
                    INSERT INTO users (name, email, password_hash, role)
                    VALUES (%s, %s, %s, %s)
                    RETURNING {_USER_COLUMNS}
                    """,
                    (name, email.strip().lower(), password_hash, role.value),
                )
            except psycopg2.errors.UniqueViolation as exc:
                raise ConflictError("Email already registered") from exc
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist user")
            return _row_to_user(row)

    def update_profile(self, user_id: int, changes: Mapping[str, Any]) -> Optional[UserRecord]:
        assignments: List[str] = []
        params: Dict[str, Any] = {"user_id": user_id}
        for key, value in changes.items():
            column = _PROFILE_COLUMNS.get(key)
            if column is None:
                continue
            assignments.append(f"{column} = %({key})s")
            params[key] = value.strip().lower() if key == "email" else value
        if not assignments:
            return self.get_user(user_id)

        with self._cursor() as cursor:
            try:
                cursor.execute(
                    f"""
                    UPDATE users
                    SET {", ".join(assignments)}, updated_at = NOW()
                    WHERE id = %(user_id)s
                    RETURNING {_USER_COLUMNS}
                    """,
                    params,
                )
            except psycopg2.errors.UniqueViolation as exc:
                raise ConflictError("Email already registered") from exc
            row = cursor.fetchone()
            return _row_to_user(row) if row else None

    def set_password_hash(self, user_id: int, password_hash: str) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                "UPDATE users SET password_hash = %s, updated_at = NOW() WHERE id = %s",
                (password_hash, user_id),
            )

    def add_fcm_token(self, user_id: int, token: str) -> Optional[UserRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                UPDATE users
                SET fcm_tokens = CASE
                        WHEN %(token)s = ANY(fcm_tokens) THEN fcm_tokens
                        ELSE array_append(fcm_tokens, %(token)s)
                    END,
                    updated_at = NOW()
                WHERE id = %(user_id)s
                RETURNING {_USER_COLUMNS}
                """,
                {"token": token, "user_id": user_id},
            )
            row = cursor.fetchone()
            return _row_to_user(row) if row else None

    def list_users(self, *, role: Optional[Role] = None) -> List[UserRecord]:
        with self._cursor() as cursor:
            if role is None:
                cursor.execute(f"SELECT {_USER_COLUMNS} FROM users ORDER BY created_at DESC")
            else:
                cursor.execute(
                    f"SELECT {_USER_COLUMNS} FROM users WHERE role = %s ORDER BY created_at DESC",
                    (role.value,),
                )
            rows = cursor.fetchall() or []
        return [_row_to_user(row) for row in rows]

    def set_status(self, user_id: int, status: UserStatus) -> Optional[UserRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                UPDATE users
                SET status = %s, updated_at = NOW()
                WHERE id = %s
                RETURNING {_USER_COLUMNS}
                """,
                (status.value, user_id),
            )
            row = cursor.fetchone()
            return _row_to_user(row) if row else None

    def delete_user(self, user_id: int) -> bool:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM users WHERE id = %s", (user_id,))
            return cursor.rowcount > 0

    def list_expiring_memberships(self, *, now: datetime, until: datetime) -> List[UserRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_USER_COLUMNS}
                FROM users
                WHERE status = %s
                  AND membership_expires_at IS NOT NULL
                  AND membership_expires_at > %s
                  AND membership_expires_at <= %s
                  AND cardinality(fcm_tokens) > 0
                ORDER BY membership_expires_at ASC
                """,
                (UserStatus.ACTIVE.value, now, until),
            )
            rows = cursor.fetchall() or []
        return [_row_to_user(row) for row in rows]

    def list_reminder_candidates(self) -> List[UserRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                SELECT {_USER_COLUMNS}
                FROM users
                WHERE role = %s
                  AND status = %s
                  AND exercise_time IS NOT NULL
                  AND cardinality(fcm_tokens) > 0
                """,
                (Role.CLIENT.value, UserStatus.ACTIVE.value),
            )
            rows = cursor.fetchall() or []
        return [_row_to_user(row) for row in rows]


__all__ = ["PostgresUserRepository", "UserRepository"]
