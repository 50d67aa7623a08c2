"""Business rules for the exercise catalog and routines."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from ..errors import ConflictError, NotFoundError, ValidationError
from .models import (
    Exercise,
    ExerciseDraft,
    MuscleGroup,
    MuscleGroupDraft,
    Routine,
    RoutineStatus,
    RoutineSummary,
)
from .repository import TrainingRepository

logger = logging.getLogger(__name__)

BULKING_ROUTINE_NAME = "bulking"
EXERCISES_PER_GROUP = 3


@dataclass
class TrainingCatalog:
    repository: TrainingRepository

    # Muscle groups

    def list_muscle_groups(self) -> List[MuscleGroup]:
        return list(self.repository.list_muscle_groups())

    def get_muscle_group(self, muscle_group_id: int) -> MuscleGroup:
        group = self.repository.get_muscle_group(muscle_group_id)
        if group is None:
            raise NotFoundError("Muscle group not found", detail={"muscleGroupId": muscle_group_id})
        return group

    def create_muscle_group(self, draft: MuscleGroupDraft) -> MuscleGroup:
        if self.repository.get_muscle_group_by_name(draft.name) is not None:
            raise ConflictError("A muscle group with this name already exists", detail={"name": draft.name})
        group = self.repository.create_muscle_group(draft)
        logger.info("Muscle group created", extra={"muscle_group_id": group.id})
        return group

    def update_muscle_group(self, muscle_group_id: int, draft: MuscleGroupDraft) -> MuscleGroup:
        self.get_muscle_group(muscle_group_id)
        clash = self.repository.get_muscle_group_by_name(draft.name)
        if clash is not None and clash.id != muscle_group_id:
            raise ConflictError("A muscle group with this name already exists", detail={"name": draft.name})
        updated = self.repository.update_muscle_group(muscle_group_id, draft)
        if updated is None:
            raise NotFoundError("Muscle group not found", detail={"muscleGroupId": muscle_group_id})
        return updated

    def delete_muscle_group(self, muscle_group_id: int) -> bool:
        deleted = self.repository.delete_muscle_group(muscle_group_id)
        if deleted:
            logger.info("Muscle group deleted", extra={"muscle_group_id": muscle_group_id})
        return deleted

    # Exercises

    def list_exercises(self) -> List[Exercise]:
        return list(self.repository.list_exercises())

    def list_exercises_for_group(self, muscle_group_id: int) -> List[Exercise]:
        self.get_muscle_group(muscle_group_id)
        return list(self.repository.list_exercises(muscle_group_id=muscle_group_id))

    def get_exercise(self, exercise_id: int) -> Exercise:
        exercise = self.repository.get_exercise(exercise_id)
        if exercise is None:
            raise NotFoundError("Exercise not found", detail={"exerciseId": exercise_id})
        return exercise

    def _require_group_for_exercise(self, muscle_group_id: int) -> None:
        if self.repository.get_muscle_group(muscle_group_id) is None:
            raise ValidationError("Muscle group not found", detail={"muscleGroupId": muscle_group_id})

    def create_exercise(self, draft: ExerciseDraft) -> Exercise:
        self._require_group_for_exercise(draft.muscle_group_id)
        exercise = self.repository.create_exercise(draft)
        logger.info("Exercise created", extra={"exercise_id": exercise.id})
        return exercise

    def update_exercise(self, exercise_id: int, changes: Mapping[str, Any]) -> Exercise:
        self.get_exercise(exercise_id)
        updates: Dict[str, Any] = {key: value for key, value in changes.items() if value is not None}
        if "muscle_group_id" in updates:
            self._require_group_for_exercise(updates["muscle_group_id"])
        updated = self.repository.update_exercise(exercise_id, updates)
        if updated is None:
            raise NotFoundError("Exercise not found", detail={"exerciseId": exercise_id})
        return updated

    def delete_exercise(self, exercise_id: int) -> bool:
        return self.repository.delete_exercise(exercise_id)

    # Routines

    def list_routines(self) -> List[RoutineSummary]:
        return list(self.repository.list_routines())

    def get_routine(self, routine_id: int) -> Routine:
        routine = self.repository.get_routine(routine_id)
        if routine is None:
            raise NotFoundError("Routine not found", detail={"routineId": routine_id})
        return routine

    def get_bulking_routine(self) -> Routine:
        routine = self.repository.get_routine_by_name(BULKING_ROUTINE_NAME)
        if routine is None:
            raise NotFoundError("Bulking routine not found")
        return routine

    def set_routine_status(self, routine_id: int, status: RoutineStatus) -> Routine:
        if not self.repository.set_routine_status(routine_id, status):
            raise NotFoundError("Routine not found", detail={"routineId": routine_id})
        logger.info("Routine status changed", extra={"routine_id": routine_id, "status": status.value})
        return self.get_routine(routine_id)

    def add_muscle_groups(self, routine_id: int, muscle_group_ids: Sequence[int]) -> Routine:
        """Append muscle groups to a routine, each seeded with its first exercises."""

        self.get_routine(routine_id)
        if not muscle_group_ids:
            raise ValidationError("muscleGroups must contain at least one entry")

        groups: List[Tuple[int, List[int]]] = []
        for muscle_group_id in muscle_group_ids:
            self._require_group_for_exercise(muscle_group_id)
            exercises = self.repository.list_exercises(
                muscle_group_id=muscle_group_id,
                limit=EXERCISES_PER_GROUP,
            )
            groups.append((muscle_group_id, [exercise.id for exercise in exercises]))

        self.repository.append_routine_groups(routine_id, groups)
        logger.info(
            "Muscle groups added to routine",
            extra={"routine_id": routine_id, "muscle_group_ids": list(muscle_group_ids)},
        )
        return self.get_routine(routine_id)

    def remove_muscle_group(self, routine_id: int, muscle_group_id: int) -> Routine:
        """Remove a muscle group; removing one that is absent is a no-op."""

        routine = self.get_routine(routine_id)
        if not routine.has_muscle_group(muscle_group_id):
            return routine
        self.repository.remove_routine_group(routine_id, muscle_group_id)
        return self.get_routine(routine_id)


__all__ = ["BULKING_ROUTINE_NAME", "EXERCISES_PER_GROUP", "TrainingCatalog"]
