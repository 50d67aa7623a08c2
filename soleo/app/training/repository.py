"""Persistence layer for muscle groups, exercises and routines."""
from __future__ import annotations

from collections import OrderedDict
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

import psycopg2
import psycopg2.errors
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...db import managed_connection
from ..errors import ConflictError
from .models import (
    Exercise,
    ExerciseDraft,
    MuscleGroup,
    MuscleGroupDraft,
    Routine,
    RoutineGroup,
    RoutineStatus,
    RoutineSummary,
)

_EXERCISE_COLUMNS = {
    "name": "name",
    "description": "description",
    "series": "series",
    "repetitions": "repetitions",
    "video_url": "video_url",
    "image_url": "image_url",
    "muscle_group_id": "muscle_group_id",
}

_EXERCISE_SELECT = """
    SELECT e.*, mg.name AS muscle_group_name
    FROM exercises AS e
    JOIN muscle_groups AS mg ON mg.id = e.muscle_group_id
"""


class TrainingRepository(Protocol):
    def list_muscle_groups(self) -> Sequence[MuscleGroup]:
        ...

    def get_muscle_group(self, muscle_group_id: int) -> Optional[MuscleGroup]:
        ...

    def get_muscle_group_by_name(self, name: str) -> Optional[MuscleGroup]:
        ...

    def create_muscle_group(self, draft: MuscleGroupDraft) -> MuscleGroup:
        ...

    def update_muscle_group(self, muscle_group_id: int, draft: MuscleGroupDraft) -> Optional[MuscleGroup]:
        ...

    def delete_muscle_group(self, muscle_group_id: int) -> bool:
        ...

    def list_exercises(self, *, muscle_group_id: Optional[int] = None, limit: Optional[int] = None) -> Sequence[Exercise]:
        ...

    def get_exercise(self, exercise_id: int) -> Optional[Exercise]:
        ...

    def create_exercise(self, draft: ExerciseDraft) -> Exercise:
        ...

    def update_exercise(self, exercise_id: int, changes: Mapping[str, Any]) -> Optional[Exercise]:
        ...

    def delete_exercise(self, exercise_id: int) -> bool:
        ...

    def list_routines(self) -> Sequence[RoutineSummary]:
        ...

    def get_routine(self, routine_id: int) -> Optional[Routine]:
        ...

    def get_routine_by_name(self, name: str) -> Optional[Routine]:
        ...

    def create_routine(self, name: str) -> Routine:
        ...

    def routine_exists(self, routine_id: int) -> bool:
        ...

    def find_routine_id(self, name: str) -> Optional[int]:
        ...

    def set_routine_status(self, routine_id: int, status: RoutineStatus) -> bool:
        ...

    def append_routine_groups(self, routine_id: int, groups: Sequence[Tuple[int, Sequence[int]]]) -> None:
        ...

    def remove_routine_group(self, routine_id: int, muscle_group_id: int) -> bool:
        ...


def _row_to_muscle_group(row: Mapping[str, Any]) -> MuscleGroup:
    return MuscleGroup(
        id=int(row["id"]),
        name=row["name"],
        description=row.get("description"),
        created_at=row.get("created_at"),
    )


def _row_to_exercise(row: Mapping[str, Any]) -> Exercise:
    return Exercise(
        id=int(row["id"]),
        name=row["name"],
        description=row["description"],
        series=int(row["series"]),
        repetitions=int(row["repetitions"]),
        video_url=row.get("video_url"),
        image_url=row.get("image_url"),
        muscle_group_id=int(row["muscle_group_id"]),
        muscle_group_name=row.get("muscle_group_name"),
        created_at=row.get("created_at"),
    )


def _row_to_routine_summary(row: Mapping[str, Any]) -> RoutineSummary:
    return RoutineSummary(
        id=int(row["id"]),
        name=row["name"],
        status=RoutineStatus(row["status"]),
        created_at=row.get("created_at"),
    )


class PostgresTrainingRepository:
    """Concrete repository for the training catalog."""

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

    # Muscle groups

    def list_muscle_groups(self) -> List[MuscleGroup]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM muscle_groups ORDER BY name ASC")
            rows = cursor.fetchall() or []
        return [_row_to_muscle_group(row) for row in rows]

    def get_muscle_group(self, muscle_group_id: int) -> Optional[MuscleGroup]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM muscle_groups WHERE id = %s", (muscle_group_id,))
            row = cursor.fetchone()
            return _row_to_muscle_group(row) if row else None

    def get_muscle_group_by_name(self, name: str) -> Optional[MuscleGroup]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM muscle_groups WHERE LOWER(name) = LOWER(%s) LIMIT 1",
                (name.strip(),),
            )
            row = cursor.fetchone()
            return _row_to_muscle_group(row) if row else None

    def create_muscle_group(self, draft: MuscleGroupDraft) -> MuscleGroup:
        with self._cursor() as cursor:
            try:
                cursor.execute(
                    """
                    INSERT INTO muscle_groups (name, description)
                    VALUES (%s, %s)
                    RETURNING *
                    """,
                    (draft.name, draft.description),
                )
            except psycopg2.errors.UniqueViolation as exc:
                raise ConflictError("A muscle group with this name already exists") from exc
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist muscle group")
            return _row_to_muscle_group(row)

    def update_muscle_group(self, muscle_group_id: int, draft: MuscleGroupDraft) -> Optional[MuscleGroup]:
        with self._cursor() as cursor:
            try:
                cursor.execute(
                    """
                    UPDATE muscle_groups
                    SET name = %s, description = %s
                    WHERE id = %s
                    RETURNING *
                    """,
                    (draft.name, draft.description, muscle_group_id),
                )
            except psycopg2.errors.UniqueViolation as exc:
                raise ConflictError("A muscle group with this name already exists") from exc
            row = cursor.fetchone()
            return _row_to_muscle_group(row) if row else None

    def delete_muscle_group(self, muscle_group_id: int) -> bool:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM muscle_groups WHERE id = %s", (muscle_group_id,))
            return cursor.rowcount > 0

    # Exercises

    def list_exercises(self, *, muscle_group_id: Optional[int] = None, limit: Optional[int] = None) -> List[Exercise]:
        clauses: List[str] = []
        params: List[Any] = []
        if muscle_group_id is not None:
            clauses.append("WHERE e.muscle_group_id = %s")
            params.append(muscle_group_id)
        clauses.append("ORDER BY e.id ASC")
        if limit is not None:
            clauses.append("LIMIT %s")
            params.append(limit)
        with self._cursor() as cursor:
            cursor.execute(_EXERCISE_SELECT + " ".join(clauses), tuple(params))
            rows = cursor.fetchall() or []
        return [_row_to_exercise(row) for row in rows]

    def get_exercise(self, exercise_id: int) -> Optional[Exercise]:
        with self._cursor() as cursor:
            cursor.execute(_EXERCISE_SELECT + "WHERE e.id = %s", (exercise_id,))
            row = cursor.fetchone()
            return _row_to_exercise(row) if row else None

    def create_exercise(self, draft: ExerciseDraft) -> Exercise:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO exercises (
                    name, description, series, repetitions,
                    video_url, image_url, muscle_group_id
                )
                VALUES (%(name)s, %(description)s, %(series)s, %(repetitions)s,
                        %(video_url)s, %(image_url)s, %(muscle_group_id)s)
                RETURNING id
                """,
                draft.model_dump(),
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist exercise")
            cursor.execute(_EXERCISE_SELECT + "WHERE e.id = %s", (row["id"],))
            return _row_to_exercise(cursor.fetchone())

    def update_exercise(self, exercise_id: int, changes: Mapping[str, Any]) -> Optional[Exercise]:
        assignments: List[str] = []
        params: Dict[str, Any] = {"exercise_id": exercise_id}
        for key, value in changes.items():
            column = _EXERCISE_COLUMNS.get(key)
            if column is None:
                continue
            assignments.append(f"{column} = %({key})s")
            params[key] = value
        if not assignments:
            return self.get_exercise(exercise_id)

        with self._cursor() as cursor:
            cursor.execute(
                f"""
                UPDATE exercises
                SET {", ".join(assignments)}, updated_at = NOW()
                WHERE id = %(exercise_id)s
                RETURNING id
                """,
                params,
            )
            row = cursor.fetchone()
            if not row:
                return None
            cursor.execute(_EXERCISE_SELECT + "WHERE e.id = %s", (exercise_id,))
            return _row_to_exercise(cursor.fetchone())

    def delete_exercise(self, exercise_id: int) -> bool:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM exercises WHERE id = %s", (exercise_id,))
            return cursor.rowcount > 0

    # Routines

    def list_routines(self) -> List[RoutineSummary]:
        with self._cursor() as cursor:
            cursor.execute("SELECT id, name, status, created_at FROM routines ORDER BY name ASC")
            rows = cursor.fetchall() or []
        return [_row_to_routine_summary(row) for row in rows]

    def _load_routine(self, cursor: PgCursor, row: Mapping[str, Any]) -> Routine:
        cursor.execute(
            """
            SELECT
                rmg.id AS slot_id,
                mg.id AS mg_id,
                mg.name AS mg_name,
                mg.description AS mg_description,
                mg.created_at AS mg_created_at,
                e.id AS exercise_id
            FROM routine_muscle_groups AS rmg
            JOIN muscle_groups AS mg ON mg.id = rmg.muscle_group_id
            LEFT JOIN routine_exercises AS re ON re.slot_id = rmg.id
            LEFT JOIN exercises AS e ON e.id = re.exercise_id
            WHERE rmg.routine_id = %s
            ORDER BY rmg.position ASC, re.position ASC
            """,
            (row["id"],),
        )
        slot_rows = cursor.fetchall() or []

        exercise_ids = [slot["exercise_id"] for slot in slot_rows if slot.get("exercise_id") is not None]
        exercises: Dict[int, Exercise] = {}
        if exercise_ids:
            cursor.execute(_EXERCISE_SELECT + "WHERE e.id = ANY(%s)", (exercise_ids,))
            exercises = {int(ex["id"]): _row_to_exercise(ex) for ex in cursor.fetchall() or []}

        slots: "OrderedDict[int, Tuple[MuscleGroup, List[Exercise]]]" = OrderedDict()
        for slot in slot_rows:
            slot_id = int(slot["slot_id"])
            if slot_id not in slots:
                group = MuscleGroup(
                    id=int(slot["mg_id"]),
                    name=slot["mg_name"],
                    description=slot.get("mg_description"),
                    created_at=slot.get("mg_created_at"),
                )
                slots[slot_id] = (group, [])
            exercise_id = slot.get("exercise_id")
            if exercise_id is not None and int(exercise_id) in exercises:
                slots[slot_id][1].append(exercises[int(exercise_id)])

        return Routine(
            id=int(row["id"]),
            name=row["name"],
            status=RoutineStatus(row["status"]),
            muscle_groups=[RoutineGroup(muscle_group=group, exercises=items) for group, items in slots.values()],
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def get_routine(self, routine_id: int) -> Optional[Routine]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM routines WHERE id = %s", (routine_id,))
            row = cursor.fetchone()
            return self._load_routine(cursor, row) if row else None

    def get_routine_by_name(self, name: str) -> Optional[Routine]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM routines WHERE LOWER(name) = LOWER(%s) LIMIT 1", (name,))
            row = cursor.fetchone()
            return self._load_routine(cursor, row) if row else None

    def create_routine(self, name: str) -> Routine:
        with self._cursor() as cursor:
            try:
                cursor.execute(
                    "INSERT INTO routines (name) VALUES (%s) RETURNING *",
                    (name.strip(),),
                )
            except psycopg2.errors.UniqueViolation as exc:
                raise ConflictError("A routine with this name already exists", detail={"name": name}) from exc
            return self._load_routine(cursor, cursor.fetchone())

    def routine_exists(self, routine_id: int) -> bool:
        with self._cursor() as cursor:
            cursor.execute("SELECT 1 FROM routines WHERE id = %s", (routine_id,))
            return cursor.fetchone() is not None

    def find_routine_id(self, name: str) -> Optional[int]:
        with self._cursor() as cursor:
            cursor.execute("SELECT id FROM routines WHERE LOWER(name) = LOWER(%s) LIMIT 1", (name,))
            row = cursor.fetchone()
            return int(row["id"]) if row else None

    def set_routine_status(self, routine_id: int, status: RoutineStatus) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                "UPDATE routines SET status = %s, updated_at = NOW() WHERE id = %s",
                (status.value, routine_id),
            )
            return cursor.rowcount > 0

    def append_routine_groups(self, routine_id: int, groups: Sequence[Tuple[int, Sequence[int]]]) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT COALESCE(MAX(position), -1) AS last_position FROM routine_muscle_groups WHERE routine_id = %s",
                (routine_id,),
            )
            position = int(cursor.fetchone()["last_position"])
            for muscle_group_id, exercise_ids in groups:
                position += 1
                cursor.execute(
                    """
                    INSERT INTO routine_muscle_groups (routine_id, muscle_group_id, position)
                    VALUES (%s, %s, %s)
                    RETURNING id
                    """,
                    (routine_id, muscle_group_id, position),
                )
                slot_id = cursor.fetchone()["id"]
                if exercise_ids:
                    psycopg2.extras.execute_values(
                        cursor,
                        "INSERT INTO routine_exercises (slot_id, exercise_id, position) VALUES %s",
                        [(slot_id, exercise_id, index) for index, exercise_id in enumerate(exercise_ids)],
                    )
            cursor.execute("UPDATE routines SET updated_at = NOW() WHERE id = %s", (routine_id,))

    def remove_routine_group(self, routine_id: int, muscle_group_id: int) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                "DELETE FROM routine_muscle_groups WHERE routine_id = %s AND muscle_group_id = %s",
                (routine_id, muscle_group_id),
            )
            removed = cursor.rowcount > 0
            if removed:
                cursor.execute("UPDATE routines SET updated_at = NOW() WHERE id = %s", (routine_id,))
            return removed


__all__ = ["PostgresTrainingRepository", "TrainingRepository"]
