"""Persistence layer for workout logs and per-user counters."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...db import managed_connection
from .models import MuscleGroupStat, ProgressTotals, StreakState, WorkoutAggregate, WorkoutLog

_WORKOUT_SELECT = """
    SELECT w.*, r.name AS routine_name, mg.name AS muscle_group_name
    FROM workouts AS w
    LEFT JOIN routines AS r ON r.id = w.routine_id
    LEFT JOIN muscle_groups AS mg ON mg.id = w.muscle_group_id
"""


class WorkoutRepository(Protocol):
    def get_in_progress(self, user_id: int) -> Optional[WorkoutLog]:
        ...

    def create_workout(self, *, user_id: int, routine_id: int, muscle_group_id: int, start_time: datetime) -> WorkoutLog:
        ...

    def get_workout(self, user_id: int, workout_id: int) -> Optional[WorkoutLog]:
        ...

    def save_exercises(
        self,
        workout_id: int,
        *,
        exercises_completed: Sequence[int],
        exercise_times: Mapping[str, int],
        total_exercise_time: int,
    ) -> WorkoutLog:
        ...

    def finish_workout(self, workout_id: int, *, end_time: datetime, duration: int, streak: int) -> WorkoutLog:
        ...

    def delete_workout(self, user_id: int, workout_id: int) -> bool:
        ...

    def list_workouts(self, user_id: int, *, limit: int, offset: int) -> Sequence[WorkoutLog]:
        ...

    def count_workouts(self, user_id: int) -> int:
        ...

    def list_started_between(self, user_id: int, *, start: datetime, end: datetime) -> Sequence[WorkoutLog]:
        ...

    def count_finished_since(self, user_id: int, since: datetime) -> int:
        ...

    def count_started_since(self, user_id: int, since: datetime) -> int:
        ...

    def get_streak(self, user_id: int) -> StreakState:
        ...

    def save_streak(self, user_id: int, state: StreakState) -> None:
        ...

    def get_progress(self, user_id: int) -> ProgressTotals:
        ...

    def save_progress(self, user_id: int, totals: ProgressTotals) -> None:
        ...

    def aggregate(self, user_id: int) -> WorkoutAggregate:
        ...

    def muscle_group_stats(self, user_id: int, *, limit: int) -> Sequence[MuscleGroupStat]:
        ...


def _row_to_workout(row: Mapping[str, Any]) -> WorkoutLog:
    return WorkoutLog(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        routine_id=int(row["routine_id"]),
        muscle_group_id=int(row["muscle_group_id"]),
        routine_name=row.get("routine_name"),
        muscle_group_name=row.get("muscle_group_name"),
        start_time=row["start_time"],
        end_time=row.get("end_time"),
        duration=int(row.get("duration") or 0),
        total_exercise_time=int(row.get("total_exercise_time") or 0),
        exercises_completed=[int(value) for value in row.get("exercises_completed") or []],
        exercise_times={str(key): int(value) for key, value in (row.get("exercise_times") or {}).items()},
        streak=int(row.get("streak") or 0),
        notes=row.get("notes"),
        created_at=row.get("created_at"),
    )


class PostgresWorkoutRepository:
    """Concrete repository persisting workouts in PostgreSQL."""

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

    def _fetch(self, cursor: PgCursor, workout_id: int) -> WorkoutLog:
        cursor.execute(_WORKOUT_SELECT + "WHERE w.id = %s", (workout_id,))
        row = cursor.fetchone()
        if not row:
            raise LookupError(f"Workout {workout_id} not found")
        return _row_to_workout(row)

    def get_in_progress(self, user_id: int) -> Optional[WorkoutLog]:
        with self._cursor() as cursor:
            cursor.execute(
                _WORKOUT_SELECT + "WHERE w.user_id = %s AND w.end_time IS NULL ORDER BY w.start_time DESC LIMIT 1",
                (user_id,),
            )
            row = cursor.fetchone()
            return _row_to_workout(row) if row else None

    def create_workout(self, *, user_id: int, routine_id: int, muscle_group_id: int, start_time: datetime) -> WorkoutLog:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO workouts (user_id, routine_id, muscle_group_id, start_time)
                VALUES (%s, %s, %s, %s)
                RETURNING id
                """,
                (user_id, routine_id, muscle_group_id, start_time),
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist workout")
            return self._fetch(cursor, int(row["id"]))

    def get_workout(self, user_id: int, workout_id: int) -> Optional[WorkoutLog]:
        with self._cursor() as cursor:
            cursor.execute(_WORKOUT_SELECT + "WHERE w.id = %s AND w.user_id = %s", (workout_id, user_id))
            row = cursor.fetchone()
            return _row_to_workout(row) if row else None

    def save_exercises(
        self,
        workout_id: int,
        *,
        exercises_completed: Sequence[int],
        exercise_times: Mapping[str, int],
        total_exercise_time: int,
    ) -> WorkoutLog:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE workouts
                SET exercises_completed = %s,
                    exercise_times = %s,
                    total_exercise_time = %s,
                    updated_at = NOW()
                WHERE id = %s
                """,
                (
                    list(exercises_completed),
                    psycopg2.extras.Json(dict(exercise_times)),
                    total_exercise_time,
                    workout_id,
                ),
            )
            return self._fetch(cursor, workout_id)

    def finish_workout(self, workout_id: int, *, end_time: datetime, duration: int, streak: int) -> WorkoutLog:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE workouts
                SET end_time = %s, duration = %s, streak = %s, updated_at = NOW()
                WHERE id = %s
                """,
                (end_time, duration, streak, workout_id),
            )
            return self._fetch(cursor, workout_id)

    def delete_workout(self, user_id: int, workout_id: int) -> bool:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM workouts WHERE id = %s AND user_id = %s", (workout_id, user_id))
            return cursor.rowcount > 0

    def list_workouts(self, user_id: int, *, limit: int, offset: int) -> List[WorkoutLog]:
        with self._cursor() as cursor:
            cursor.execute(
                _WORKOUT_SELECT + "WHERE w.user_id = %s ORDER BY w.start_time DESC LIMIT %s OFFSET %s",
                (user_id, limit, offset),
            )
            rows = cursor.fetchall() or []
        return [_row_to_workout(row) for row in rows]

    def count_workouts(self, user_id: int) -> int:
        with self._cursor() as cursor:
            cursor.execute("SELECT COUNT(*) AS total FROM workouts WHERE user_id = %s", (user_id,))
            return int(cursor.fetchone()["total"])

    def list_started_between(self, user_id: int, *, start: datetime, end: datetime) -> List[WorkoutLog]:
        with self._cursor() as cursor:
            cursor.execute(
                _WORKOUT_SELECT
                + "WHERE w.user_id = %s AND w.start_time >= %s AND w.start_time < %s ORDER BY w.start_time DESC",
                (user_id, start, end),
            )
            rows = cursor.fetchall() or []
        return [_row_to_workout(row) for row in rows]

    def count_finished_since(self, user_id: int, since: datetime) -> int:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT COUNT(*) AS total
                FROM workouts
                WHERE user_id = %s AND start_time >= %s AND end_time IS NOT NULL
                """,
                (user_id, since),
            )
            return int(cursor.fetchone()["total"])

    def count_started_since(self, user_id: int, since: datetime) -> int:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT COUNT(*) AS total FROM workouts WHERE user_id = %s AND start_time >= %s",
                (user_id, since),
            )
            return int(cursor.fetchone()["total"])

    def get_streak(self, user_id: int) -> StreakState:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT current_streak, longest_streak, last_workout_date FROM users WHERE id = %s",
                (user_id,),
            )
            row = cursor.fetchone()
        if not row:
            return StreakState()
        return StreakState(
            current=int(row.get("current_streak") or 0),
            longest=int(row.get("longest_streak") or 0),
            last_workout_date=row.get("last_workout_date"),
        )

    def save_streak(self, user_id: int, state: StreakState) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE users
                SET current_streak = %s, longest_streak = %s, last_workout_date = %s, updated_at = NOW()
                WHERE id = %s
                """,
                (state.current, state.longest, state.last_workout_date, user_id),
            )

    def get_progress(self, user_id: int) -> ProgressTotals:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT total_workouts, total_duration, total_exercise_time,
                       workouts_this_week, workouts_this_month
                FROM users
                WHERE id = %s
                """,
                (user_id,),
            )
            row = cursor.fetchone()
        if not row:
            return ProgressTotals()
        return ProgressTotals(**{key: int(value or 0) for key, value in row.items()})

    def save_progress(self, user_id: int, totals: ProgressTotals) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE users
                SET total_workouts = %(total_workouts)s,
                    total_duration = %(total_duration)s,
                    total_exercise_time = %(total_exercise_time)s,
                    workouts_this_week = %(workouts_this_week)s,
                    workouts_this_month = %(workouts_this_month)s,
                    updated_at = NOW()
                WHERE id = %(user_id)s
                """,
                {**totals.model_dump(), "user_id": user_id},
            )

    def aggregate(self, user_id: int) -> WorkoutAggregate:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT
                    COUNT(*) AS total_workouts,
                    COUNT(*) FILTER (WHERE end_time IS NOT NULL) AS completed_workouts,
                    COALESCE(SUM(duration), 0) AS total_duration,
                    COALESCE(SUM(total_exercise_time), 0) AS total_exercise_time,
                    COALESCE(AVG(duration), 0) AS avg_duration,
                    MAX(start_time) AS last_workout
                FROM workouts
                WHERE user_id = %s
                """,
                (user_id,),
            )
            row = cursor.fetchone() or {}
        return WorkoutAggregate(
            total_workouts=int(row.get("total_workouts") or 0),
            completed_workouts=int(row.get("completed_workouts") or 0),
            total_duration=int(row.get("total_duration") or 0),
            total_exercise_time=int(row.get("total_exercise_time") or 0),
            avg_duration=round(float(row.get("avg_duration") or 0), 2),
            last_workout=row.get("last_workout"),
        )

    def muscle_group_stats(self, user_id: int, *, limit: int) -> List[MuscleGroupStat]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT
                    w.muscle_group_id,
                    mg.name AS muscle_group_name,
                    COUNT(*) AS count,
                    COALESCE(SUM(w.duration), 0) AS total_time,
                    COALESCE(AVG(w.duration), 0) AS avg_time
                FROM workouts AS w
                LEFT JOIN muscle_groups AS mg ON mg.id = w.muscle_group_id
                WHERE w.user_id = %s
                GROUP BY w.muscle_group_id, mg.name
                ORDER BY count DESC
                LIMIT %s
                """,
                (user_id, limit),
            )
            rows = cursor.fetchall() or []
        return [
            MuscleGroupStat(
                muscle_group_id=int(row["muscle_group_id"]),
                muscle_group_name=row.get("muscle_group_name"),
                count=int(row["count"]),
                total_time=int(row["total_time"]),
                avg_time=round(float(row["avg_time"]), 2),
            )
            for row in rows
        ]


__all__ = ["PostgresWorkoutRepository", "WorkoutRepository"]
