"""Domain models for workout logs, streaks and progress counters."""
from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class WorkoutLog(BaseModel):
    id: int
    user_id: int = Field(alias="userId")
    routine_id: int = Field(alias="routineId")
    muscle_group_id: int = Field(alias="muscleGroupId")
    routine_name: Optional[str] = Field(alias="routineName", default=None)
    muscle_group_name: Optional[str] = Field(alias="muscleGroupName", default=None)
    start_time: datetime = Field(alias="startTime")
    end_time: Optional[datetime] = Field(alias="endTime", default=None)
    duration: int = 0
    total_exercise_time: int = Field(alias="totalExerciseTime", default=0)
    exercises_completed: List[int] = Field(alias="exercisesCompleted", default_factory=list)
    exercise_times: Dict[str, int] = Field(alias="exerciseTimes", default_factory=dict)
    streak: int = 0
    notes: Optional[str] = None
    created_at: Optional[datetime] = Field(alias="createdAt", default=None)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def in_progress(self) -> bool:
        return self.end_time is None


class StreakState(BaseModel):
    current: int = 0
    longest: int = 0
    last_workout_date: Optional[date] = Field(alias="lastWorkoutDate", default=None)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ProgressTotals(BaseModel):
    total_workouts: int = Field(alias="totalWorkouts", default=0)
    total_duration: int = Field(alias="totalDuration", default=0)
    total_exercise_time: int = Field(alias="totalExerciseTime", default=0)
    workouts_this_week: int = Field(alias="workoutsThisWeek", default=0)
    workouts_this_month: int = Field(alias="workoutsThisMonth", default=0)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class FinishOutcome(BaseModel):
    workout: WorkoutLog
    streak: int
    progress: ProgressTotals
    completed_exercises: int = Field(alias="completedExercises")
    total_exercises: int = Field(alias="totalExercises")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class WorkoutPage(BaseModel):
    items: List[WorkoutLog]
    total: int
    page: int
    limit: int

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit


class TodayProgress(BaseModel):
    workouts_count: int = Field(alias="workoutsCount")
    total_duration: int = Field(alias="totalDuration")
    total_exercises: int = Field(alias="totalExercises")
    workouts: List[WorkoutLog]
    progress: ProgressTotals
    current_streak: int = Field(alias="currentStreak")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class MuscleGroupStat(BaseModel):
    muscle_group_id: int = Field(alias="muscleGroupId")
    muscle_group_name: Optional[str] = Field(alias="muscleGroupName", default=None)
    count: int
    total_time: int = Field(alias="totalTime")
    avg_time: float = Field(alias="avgTime")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class WorkoutAggregate(BaseModel):
    total_workouts: int = Field(alias="totalWorkouts", default=0)
    completed_workouts: int = Field(alias="completedWorkouts", default=0)
    total_duration: int = Field(alias="totalDuration", default=0)
    total_exercise_time: int = Field(alias="totalExerciseTime", default=0)
    avg_duration: float = Field(alias="avgDuration", default=0.0)
    last_workout: Optional[datetime] = Field(alias="lastWorkout", default=None)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class WorkoutStatistics(BaseModel):
    streak: StreakState
    progress: ProgressTotals
    workouts: WorkoutAggregate
    muscle_groups: List[MuscleGroupStat] = Field(alias="muscleGroups", default_factory=list)
    last_seven_days: int = Field(alias="lastSevenDays", default=0)
    consistency: str
    frequency: str

    model_config = ConfigDict(populate_by_name=True, frozen=True)


__all__ = [
    "FinishOutcome",
    "MuscleGroupStat",
    "ProgressTotals",
    "StreakState",
    "TodayProgress",
    "WorkoutAggregate",
    "WorkoutLog",
    "WorkoutPage",
    "WorkoutStatistics",
]
