"""Exercise catalog and workout routines."""
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
from .repository import PostgresTrainingRepository, TrainingRepository
from .service import BULKING_ROUTINE_NAME, EXERCISES_PER_GROUP, TrainingCatalog

__all__ = [
    "BULKING_ROUTINE_NAME",
    "EXERCISES_PER_GROUP",
    "Exercise",
    "ExerciseDraft",
    "MuscleGroup",
    "MuscleGroupDraft",
    "PostgresTrainingRepository",
    "Routine",
    "RoutineGroup",
    "RoutineStatus",
    "RoutineSummary",
    "TrainingCatalog",
    "TrainingRepository",
]
