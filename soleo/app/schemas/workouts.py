"""API schemas for workout endpoints."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..workouts import FinishOutcome, ProgressTotals, WorkoutLog, WorkoutPage
from .common import PageInfo


class StartWorkoutRequest(BaseModel):
    routine_id: int = Field(alias="routineId")
    muscle_group_id: int = Field(alias="muscleGroupId")

    model_config = ConfigDict(populate_by_name=True)


class StartBulkingRequest(BaseModel):
    muscle_group_id: int = Field(alias="muscleGroupId")

    model_config = ConfigDict(populate_by_name=True)


class ExerciseProgressRequest(BaseModel):
    exercise_id: int = Field(alias="exerciseId")
    completed: Optional[bool] = None
    time: Optional[int] = Field(default=None, ge=0)

    model_config = ConfigDict(populate_by_name=True)


class CurrentWorkoutOut(BaseModel):
    exists: bool
    workout: Optional[WorkoutLog] = None

    model_config = ConfigDict(populate_by_name=True)


class FinishWorkoutOut(BaseModel):
    workout: WorkoutLog
    streak: int
    progress: ProgressTotals
    completed_exercises: int = Field(alias="completedExercises")
    total_exercises: int = Field(alias="totalExercises")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_outcome(cls, outcome: FinishOutcome) -> "FinishWorkoutOut":
        return cls(
            workout=outcome.workout,
            streak=outcome.streak,
            progress=outcome.progress,
            completed_exercises=outcome.completed_exercises,
            total_exercises=outcome.total_exercises,
        )


class WorkoutHistoryOut(BaseModel):
    workouts: List[WorkoutLog]
    pagination: PageInfo

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_page(cls, page: WorkoutPage) -> "WorkoutHistoryOut":
        return cls(
            workouts=page.items,
            pagination=PageInfo(
                total=page.total,
                current_page=page.page,
                total_pages=page.total_pages,
                limit=page.limit,
            ),
        )


__all__ = [
    "CurrentWorkoutOut",
    "ExerciseProgressRequest",
    "FinishWorkoutOut",
    "StartBulkingRequest",
    "StartWorkoutRequest",
    "WorkoutHistoryOut",
]
