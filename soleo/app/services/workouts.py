"""Application wiring for workout tracking."""
from __future__ import annotations

from functools import lru_cache

from ..training import PostgresTrainingRepository
from ..workouts import PostgresWorkoutRepository, WorkoutService


@lru_cache(maxsize=1)
def get_workout_service() -> WorkoutService:
    return WorkoutService(workouts=PostgresWorkoutRepository(), training=PostgresTrainingRepository())


__all__ = ["get_workout_service"]
