"""Workout session lifecycle, streak bookkeeping and statistics."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from ..errors import InvalidStateError, NotFoundError, ValidationError
from ..training.repository import TrainingRepository
from ..training.service import BULKING_ROUTINE_NAME
from .models import (
    FinishOutcome,
    ProgressTotals,
    TodayProgress,
    WorkoutLog,
    WorkoutPage,
    WorkoutStatistics,
)
from .repository import WorkoutRepository
from .streaks import (
    advance_streak,
    consistency_label,
    frequency_label,
    start_of_day,
    start_of_month,
    start_of_week,
)

logger = logging.getLogger(__name__)

MUSCLE_GROUP_STATS_LIMIT = 6
MAX_PAGE_SIZE = 100


class WorkoutService:
    def __init__(
        self,
        *,
        workouts: WorkoutRepository,
        training: TrainingRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._workouts = workouts
        self._training = training
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _now(self) -> datetime:
        current = self._clock()
        return current if current.tzinfo else current.replace(tzinfo=timezone.utc)

    def _require_workout(self, user_id: int, workout_id: int) -> WorkoutLog:
        workout = self._workouts.get_workout(user_id, workout_id)
        if workout is None:
            raise NotFoundError("Workout not found", detail={"workoutId": workout_id})
        return workout

    def start(self, user_id: int, *, routine_id: int, muscle_group_id: int) -> WorkoutLog:
        current = self._workouts.get_in_progress(user_id)
        if current is not None:
            raise InvalidStateError(
                "You already have a workout in progress",
                detail={"currentWorkoutId": current.id},
            )

        routine = self._training.get_routine(routine_id)
        if routine is None:
            raise NotFoundError("Routine not found", detail={"routineId": routine_id})
        if self._training.get_muscle_group(muscle_group_id) is None:
            raise NotFoundError("Muscle group not found", detail={"muscleGroupId": muscle_group_id})

        workout = self._workouts.create_workout(
            user_id=user_id,
            routine_id=routine_id,
            muscle_group_id=muscle_group_id,
            start_time=self._now(),
        )
        logger.info(
            "Workout started",
            extra={"user_id": user_id, "workout_id": workout.id, "routine_id": routine_id},
        )
        return workout

    def start_bulking(self, user_id: int, *, muscle_group_id: int) -> WorkoutLog:
        routine = self._training.get_routine_by_name(BULKING_ROUTINE_NAME)
        if routine is None:
            raise NotFoundError("Bulking routine not found")
        return self.start(user_id, routine_id=routine.id, muscle_group_id=muscle_group_id)

    def get(self, user_id: int, workout_id: int) -> WorkoutLog:
        return self._require_workout(user_id, workout_id)

    def current(self, user_id: int) -> Optional[WorkoutLog]:
        return self._workouts.get_in_progress(user_id)

    def today(self, user_id: int) -> List[WorkoutLog]:
        day_start = start_of_day(self._now())
        return list(
            self._workouts.list_started_between(
                user_id,
                start=day_start,
                end=day_start + timedelta(days=1),
            )
        )

    def update_exercise(
        self,
        user_id: int,
        workout_id: int,
        exercise_id: int,
        *,
        completed: Optional[bool] = None,
        seconds: Optional[int] = None,
    ) -> WorkoutLog:
        """Mark an exercise done or undone; ``completed=None`` toggles it."""

        workout = self._require_workout(user_id, workout_id)
        if not workout.in_progress:
            raise InvalidStateError("Workout already finished", detail={"workoutId": workout_id})
        if seconds is not None and seconds < 0:
            raise ValidationError("Exercise time must be zero or positive", detail={"time": seconds})

        done = list(workout.exercises_completed)
        already = exercise_id in done
        target = (not already) if completed is None else completed
        if target and not already:
            done.append(exercise_id)
        elif not target and already:
            done.remove(exercise_id)

        times: Dict[str, int] = dict(workout.exercise_times)
        if seconds is not None:
            times[str(exercise_id)] = seconds

        return self._workouts.save_exercises(
            workout_id,
            exercises_completed=done,
            exercise_times=times,
            total_exercise_time=sum(times.values()),
        )

    def finish_current(self, user_id: int) -> FinishOutcome:
        current = self._workouts.get_in_progress(user_id)
        if current is None:
            raise InvalidStateError("No workout in progress")
        return self._finish(user_id, current)

    def finish(self, user_id: int, workout_id: int) -> FinishOutcome:
        workout = self._require_workout(user_id, workout_id)
        if not workout.in_progress:
            raise InvalidStateError("Workout already finished", detail={"workoutId": workout_id})
        return self._finish(user_id, workout)

    def _finish(self, user_id: int, workout: WorkoutLog) -> FinishOutcome:
        now = self._now()
        duration = int(round((now - workout.start_time).total_seconds() / 60))

        routine = self._training.get_routine(workout.routine_id)
        total_exercises = routine.exercise_count if routine is not None else 0
        completed = len(workout.exercises_completed)

        streak = advance_streak(
            self._workouts.get_streak(user_id),
            completed_exercises=completed,
            today=now.date(),
        )
        self._workouts.save_streak(user_id, streak)

        finished = self._workouts.finish_workout(
            workout.id,
            end_time=now,
            duration=duration,
            streak=streak.current,
        )

        previous = self._workouts.get_progress(user_id)
        progress = ProgressTotals(
            total_workouts=previous.total_workouts + 1,
            total_duration=previous.total_duration + duration,
            total_exercise_time=previous.total_exercise_time + finished.total_exercise_time,
            workouts_this_week=self._workouts.count_finished_since(user_id, start_of_week(now)),
            workouts_this_month=self._workouts.count_finished_since(user_id, start_of_month(now)),
        )
        self._workouts.save_progress(user_id, progress)

        logger.info(
            "Workout finished",
            extra={
                "user_id": user_id,
                "workout_id": workout.id,
                "duration": duration,
                "completed_exercises": completed,
                "streak": streak.current,
            },
        )
        return FinishOutcome(
            workout=finished,
            streak=streak.current,
            progress=progress,
            completed_exercises=completed,
            total_exercises=total_exercises,
        )

    def delete(self, user_id: int, workout_id: int) -> None:
        workout = self._require_workout(user_id, workout_id)
        self._workouts.delete_workout(user_id, workout_id)

        if workout.in_progress:
            return
        now = self._now()
        previous = self._workouts.get_progress(user_id)
        progress = ProgressTotals(
            total_workouts=max(0, previous.total_workouts - 1),
            total_duration=max(0, previous.total_duration - workout.duration),
            total_exercise_time=max(0, previous.total_exercise_time - workout.total_exercise_time),
            workouts_this_week=self._workouts.count_finished_since(user_id, start_of_week(now)),
            workouts_this_month=self._workouts.count_finished_since(user_id, start_of_month(now)),
        )
        self._workouts.save_progress(user_id, progress)
        logger.info("Workout deleted", extra={"user_id": user_id, "workout_id": workout_id})

    def history(self, user_id: int, *, page: int = 1, limit: int = 10) -> WorkoutPage:
        page = max(1, page)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        items = self._workouts.list_workouts(user_id, limit=limit, offset=(page - 1) * limit)
        return WorkoutPage(
            items=list(items),
            total=self._workouts.count_workouts(user_id),
            page=page,
            limit=limit,
        )

    def today_progress(self, user_id: int) -> TodayProgress:
        workouts = self.today(user_id)
        return TodayProgress(
            workouts_count=len(workouts),
            total_duration=sum(workout.duration for workout in workouts),
            total_exercises=sum(len(workout.exercises_completed) for workout in workouts),
            workouts=workouts,
            progress=self._workouts.get_progress(user_id),
            current_streak=self._workouts.get_streak(user_id).current,
        )

    def statistics(self, user_id: int) -> WorkoutStatistics:
        now = self._now()
        streak = self._workouts.get_streak(user_id)
        progress = self._workouts.get_progress(user_id)
        return WorkoutStatistics(
            streak=streak,
            progress=progress,
            workouts=self._workouts.aggregate(user_id),
            muscle_groups=list(
                self._workouts.muscle_group_stats(user_id, limit=MUSCLE_GROUP_STATS_LIMIT)
            ),
            last_seven_days=self._workouts.count_started_since(user_id, now - timedelta(days=7)),
            consistency=consistency_label(streak.current),
            frequency=frequency_label(progress.workouts_this_week),
        )


__all__ = ["MUSCLE_GROUP_STATS_LIMIT", "WorkoutService"]
