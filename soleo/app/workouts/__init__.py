"""Workout sessions, streaks and progress statistics."""
from .models import (
    FinishOutcome,
    MuscleGroupStat,
    ProgressTotals,
    StreakState,
    TodayProgress,
    WorkoutAggregate,
    WorkoutLog,
    WorkoutPage,
    WorkoutStatistics,
)
from .repository import PostgresWorkoutRepository, WorkoutRepository
from .service import WorkoutService
from .streaks import MIN_EXERCISES_FOR_STREAK, advance_streak, consistency_label, frequency_label

__all__ = [
    "FinishOutcome",
    "MIN_EXERCISES_FOR_STREAK",
    "MuscleGroupStat",
    "PostgresWorkoutRepository",
    "ProgressTotals",
    "StreakState",
    "TodayProgress",
    "WorkoutAggregate",
    "WorkoutLog",
    "WorkoutPage",
    "WorkoutRepository",
    "WorkoutService",
    "WorkoutStatistics",
    "advance_streak",
    "consistency_label",
    "frequency_label",
]
