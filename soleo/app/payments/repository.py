"""Persistence layer for checkout payments."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Sequence

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...db import managed_connection
from .models import Payment, PaymentStats, PaymentStatus, PlanRevenue

_PAYMENT_SELECT = """
    SELECT p.*, m.name AS membership_name, u.name AS user_name, u.email AS user_email
    FROM payments AS p
    LEFT JOIN membership_plans AS m ON m.id = p.membership_id
    LEFT JOIN users AS u ON u.id = p.user_id
"""


class PaymentRepository(Protocol):
    def create_payment(self, *, user_id: int, membership_id: int, amount: float, currency: str) -> Payment:
        ...

    def get_payment(self, payment_id: int) -> Optional[Payment]:
        ...

    def get_by_order(self, order_id: str, *, user_id: Optional[int] = None) -> Optional[Payment]:
        ...

    def attach_order(self, payment_id: int, order_id: str) -> Payment:
        ...

    def record_capture(self, payment_id: int, capture_id: str) -> Payment:
        ...

    def set_status(self, payment_id: int, status: PaymentStatus) -> Payment:
        ...

    def complete_payment(
        self,
        payment_id: int,
        *,
        capture_id: str,
        expiration_date: datetime,
        replaced_previous_membership: bool,
        previous_membership_id: Optional[int],
        previous_membership_expired_at: Optional[datetime],
    ) -> Payment:
        ...

    def find_active_completed(self, user_id: int, membership_id: int, now: datetime) -> Optional[Payment]:
        ...

    def list_payments(self, *, user_id: Optional[int], limit: int, offset: int) -> Sequence[Payment]:
        ...

    def count_payments(self, *, user_id: Optional[int]) -> int:
        ...

    def stats(self) -> PaymentStats:
        ...


def _row_to_payment(row: Mapping[str, Any]) -> Payment:
    previous = row.get("previous_membership_id")
    membership_id = row.get("membership_id")
    return Payment(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        membership_id=int(membership_id) if membership_id is not None else None,
        amount=float(row["amount"]),
        currency=row.get("currency") or "MXN",
        status=PaymentStatus(row["status"]),
        order_id=row.get("order_id"),
        capture_id=row.get("capture_id"),
        purchase_date=row.get("purchase_date"),
        expiration_date=row.get("expiration_date"),
        replaced_previous_membership=bool(row.get("replaced_previous_membership")),
        previous_membership_id=int(previous) if previous is not None else None,
        previous_membership_expired_at=row.get("previous_membership_expired_at"),
        membership_name=row.get("membership_name"),
        user_name=row.get("user_name"),
        user_email=row.get("user_email"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


class PostgresPaymentRepository:
    """Concrete payment ledger persisted in ``payments``."""

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

    def _fetch(self, cursor: PgCursor, payment_id: int) -> Payment:
        cursor.execute(_PAYMENT_SELECT + "WHERE p.id = %s", (payment_id,))
        row = cursor.fetchone()
        if not row:
            raise LookupError(f"Payment {payment_id} not found")
        return _row_to_payment(row)

    def create_payment(self, *, user_id: int, membership_id: int, amount: float, currency: str) -> Payment:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO payments (user_id, membership_id, amount, currency, status, purchase_date)
                VALUES (%s, %s, %s, %s, %s, NOW())
                RETURNING id
                """,
                (user_id, membership_id, amount, currency, PaymentStatus.PENDING.value),
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist payment")
            return self._fetch(cursor, int(row["id"]))

    def get_payment(self, payment_id: int) -> Optional[Payment]:
        with self._cursor() as cursor:
            cursor.execute(_PAYMENT_SELECT + "WHERE p.id = %s", (payment_id,))
            row = cursor.fetchone()
            return _row_to_payment(row) if row else None

    def get_by_order(self, order_id: str, *, user_id: Optional[int] = None) -> Optional[Payment]:
        query = _PAYMENT_SELECT + "WHERE p.order_id = %s"
        params: List[Any] = [order_id]
        if user_id is not None:
            query += " AND p.user_id = %s"
            params.append(user_id)
        with self._cursor() as cursor:
            cursor.execute(query, params)
            row = cursor.fetchone()
            return _row_to_payment(row) if row else None

    def attach_order(self, payment_id: int, order_id: str) -> Payment:
        with self._cursor() as cursor:
            cursor.execute(
                "UPDATE payments SET order_id = %s, updated_at = NOW() WHERE id = %s",
                (order_id, payment_id),
            )
            return self._fetch(cursor, payment_id)

    def record_capture(self, payment_id: int, capture_id: str) -> Payment:
        with self._cursor() as cursor:
            cursor.execute(
                "UPDATE payments SET capture_id = %s, updated_at = NOW() WHERE id = %s",
                (capture_id, payment_id),
            )
            return self._fetch(cursor, payment_id)

    def set_status(self, payment_id: int, status: PaymentStatus) -> Payment:
        with self._cursor() as cursor:
            cursor.execute(
                "UPDATE payments SET status = %s, updated_at = NOW() WHERE id = %s",
                (status.value, payment_id),
            )
            return self._fetch(cursor, payment_id)

    def complete_payment(
        self,
        payment_id: int,
        *,
        capture_id: str,
        expiration_date: datetime,
        replaced_previous_membership: bool,
        previous_membership_id: Optional[int],
        previous_membership_expired_at: Optional[datetime],
    ) -> Payment:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE payments
                SET status = %(status)s,
                    capture_id = %(capture_id)s,
                    expiration_date = %(expiration_date)s,
                    replaced_previous_membership = %(replaced)s,
                    previous_membership_id = %(previous_id)s,
                    previous_membership_expired_at = %(previous_expired_at)s,
                    updated_at = NOW()
                WHERE id = %(payment_id)s
                """,
                {
                    "status": PaymentStatus.COMPLETED.value,
                    "capture_id": capture_id,
                    "expiration_date": expiration_date,
                    "replaced": replaced_previous_membership,
                    "previous_id": previous_membership_id,
                    "previous_expired_at": previous_membership_expired_at,
                    "payment_id": payment_id,
                },
            )
            return self._fetch(cursor, payment_id)

    def find_active_completed(self, user_id: int, membership_id: int, now: datetime) -> Optional[Payment]:
        with self._cursor() as cursor:
            cursor.execute(
                _PAYMENT_SELECT
                + """
                WHERE p.user_id = %s AND p.membership_id = %s
                  AND p.status = %s AND p.expiration_date > %s
                ORDER BY p.expiration_date DESC
                LIMIT 1
                """,
                (user_id, membership_id, PaymentStatus.COMPLETED.value, now),
            )
            row = cursor.fetchone()
            return _row_to_payment(row) if row else None

    def list_payments(self, *, user_id: Optional[int], limit: int, offset: int) -> List[Payment]:
        query = _PAYMENT_SELECT
        params: List[Any] = []
        if user_id is not None:
            query += "WHERE p.user_id = %s "
            params.append(user_id)
        query += "ORDER BY p.created_at DESC, p.id DESC LIMIT %s OFFSET %s"
        params.extend([limit, offset])
        with self._cursor() as cursor:
            cursor.execute(query, params)
            rows = cursor.fetchall() or []
        return [_row_to_payment(row) for row in rows]

    def count_payments(self, *, user_id: Optional[int]) -> int:
        with self._cursor() as cursor:
            if user_id is None:
                cursor.execute("SELECT COUNT(*) AS total FROM payments")
            else:
                cursor.execute("SELECT COUNT(*) AS total FROM payments WHERE user_id = %s", (user_id,))
            return int(cursor.fetchone()["total"])

    def stats(self) -> PaymentStats:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT
                    COUNT(*) AS total_payments,
                    COUNT(*) FILTER (WHERE status = %(completed)s) AS completed_payments,
                    COUNT(*) FILTER (WHERE status = %(pending)s) AS pending_payments,
                    COALESCE(SUM(amount) FILTER (WHERE status = %(completed)s), 0) AS total_revenue
                FROM payments
                """,
                {"completed": PaymentStatus.COMPLETED.value, "pending": PaymentStatus.PENDING.value},
            )
            totals = cursor.fetchone() or {}
            cursor.execute(
                """
                SELECT p.membership_id, m.name AS membership_name,
                       COUNT(*) AS count, COALESCE(SUM(p.amount), 0) AS revenue
                FROM payments AS p
                JOIN membership_plans AS m ON m.id = p.membership_id
                WHERE p.status = %s
                GROUP BY p.membership_id, m.name
                ORDER BY revenue DESC
                """,
                (PaymentStatus.COMPLETED.value,),
            )
            rows = cursor.fetchall() or []
        return PaymentStats(
            total_payments=int(totals.get("total_payments") or 0),
            completed_payments=int(totals.get("completed_payments") or 0),
            pending_payments=int(totals.get("pending_payments") or 0),
            total_revenue=float(totals.get("total_revenue") or 0),
            payments_by_membership=[
                PlanRevenue(
                    membership_id=int(row["membership_id"]),
                    membership_name=row.get("membership_name"),
                    count=int(row["count"]),
                    revenue=float(row["revenue"]),
                )
                for row in rows
            ],
        )


__all__ = ["PaymentRepository", "PostgresPaymentRepository"]
