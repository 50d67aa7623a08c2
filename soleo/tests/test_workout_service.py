from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Mapping, Optional, Sequence

import pytest

from soleo.app.errors import InvalidStateError, NotFoundError, ValidationError
from soleo.app.training.models import Exercise, MuscleGroup, Routine, RoutineGroup
from soleo.app.workouts import (
    MuscleGroupStat,
    ProgressTotals,
    StreakState,
    WorkoutAggregate,
    WorkoutLog,
    WorkoutService,
)

START = datetime(2024, 5, 15, 7, 0, tzinfo=timezone.utc)


class FakeWorkoutRepository:
    def __init__(self) -> None:
        self.workouts: Dict[int, WorkoutLog] = {}
        self.streaks: Dict[int, StreakState] = {}
        self.progress: Dict[int, ProgressTotals] = {}
        self._next_id = 1

    def _mine(self, user_id: int) -> List[WorkoutLog]:
        return [workout for workout in self.workouts.values() if workout.user_id == user_id]

    def get_in_progress(self, user_id: int) -> Optional[WorkoutLog]:
        for workout in self._mine(user_id):
            if workout.in_progress:
                return workout
        return None

    def create_workout(self, *, user_id, routine_id, muscle_group_id, start_time) -> WorkoutLog:
        workout = WorkoutLog(
            id=self._next_id,
            user_id=user_id,
            routine_id=routine_id,
            muscle_group_id=muscle_group_id,
            start_time=start_time,
        )
        self.workouts[workout.id] = workout
        self._next_id += 1
        return workout

    def get_workout(self, user_id: int, workout_id: int) -> Optional[WorkoutLog]:
        workout = self.workouts.get(workout_id)
        return workout if workout is not None and workout.user_id == user_id else None

    def save_exercises(self, workout_id, *, exercises_completed, exercise_times, total_exercise_time) -> WorkoutLog:
        updated = self.workouts[workout_id].model_copy(
            update={
                "exercises_completed": list(exercises_completed),
                "exercise_times": dict(exercise_times),
                "total_exercise_time": total_exercise_time,
            }
        )
        self.workouts[workout_id] = updated
        return updated

    def finish_workout(self, workout_id, *, end_time, duration, streak) -> WorkoutLog:
        updated = self.workouts[workout_id].model_copy(
            update={"end_time": end_time, "duration": duration, "streak": streak}
        )
        self.workouts[workout_id] = updated
        return updated

    def delete_workout(self, user_id: int, workout_id: int) -> bool:
        return self.workouts.pop(workout_id, None) is not None

    def list_workouts(self, user_id: int, *, limit: int, offset: int) -> List[WorkoutLog]:
        ordered = sorted(self._mine(user_id), key=lambda workout: workout.start_time, reverse=True)
        return ordered[offset : offset + limit]

    def count_workouts(self, user_id: int) -> int:
        return len(self._mine(user_id))

    def list_started_between(self, user_id, *, start, end) -> List[WorkoutLog]:
        return [w for w in self._mine(user_id) if start <= w.start_time < end]

    def count_finished_since(self, user_id: int, since: datetime) -> int:
        return sum(1 for w in self._mine(user_id) if w.end_time is not None and w.start_time >= since)

    def count_started_since(self, user_id: int, since: datetime) -> int:
        return sum(1 for w in self._mine(user_id) if w.start_time >= since)

    def get_streak(self, user_id: int) -> StreakState:
        return self.streaks.get(user_id, StreakState())

    def save_streak(self, user_id: int, state: StreakState) -> None:
        self.streaks[user_id] = state

    def get_progress(self, user_id: int) -> ProgressTotals:
        return self.progress.get(user_id, ProgressTotals())

    def save_progress(self, user_id: int, totals: ProgressTotals) -> None:
        self.progress[user_id] = totals

    def aggregate(self, user_id: int) -> WorkoutAggregate:
        mine = self._mine(user_id)
        return WorkoutAggregate(
            total_workouts=len(mine),
            completed_workouts=sum(1 for w in mine if w.end_time is not None),
        )

    def muscle_group_stats(self, user_id: int, *, limit: int) -> Sequence[MuscleGroupStat]:
        return []


def _exercise(exercise_id: int, group: MuscleGroup) -> Exercise:
    return Exercise(
        id=exercise_id,
        name=f"Ejercicio {exercise_id}",
        description="desc",
        series=3,
        repetitions=12,
        muscle_group_id=group.id,
    )


class FakeTraining:
    def __init__(self) -> None:
        self.chest = MuscleGroup(id=5, name="Pecho")
        self.routine = Routine(
            id=1,
            name="bulking",
            muscle_groups=[
                RoutineGroup(muscle_group=self.chest, exercises=[_exercise(i, self.chest) for i in (11, 12, 13, 14)])
            ],
        )

    def get_routine(self, routine_id: int) -> Optional[Routine]:
        return self.routine if routine_id == self.routine.id else None

    def get_routine_by_name(self, name: str) -> Optional[Routine]:
        return self.routine if name == self.routine.name else None

    def get_muscle_group(self, muscle_group_id: int) -> Optional[MuscleGroup]:
        return self.chest if muscle_group_id == self.chest.id else None


class Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock(START)


@pytest.fixture
def repository() -> FakeWorkoutRepository:
    return FakeWorkoutRepository()


@pytest.fixture
def service(repository, clock) -> WorkoutService:
    return WorkoutService(workouts=repository, training=FakeTraining(), clock=clock)


def _complete(service: WorkoutService, workout_id: int, exercise_ids: Sequence[int]) -> None:
    for exercise_id in exercise_ids:
        service.update_exercise(1, workout_id, exercise_id, completed=True, seconds=60)


def test_only_one_workout_in_progress(service):
    first = service.start(1, routine_id=1, muscle_group_id=5)

    with pytest.raises(InvalidStateError) as excinfo:
        service.start(1, routine_id=1, muscle_group_id=5)

    assert excinfo.value.payload["currentWorkoutId"] == first.id


def test_start_requires_known_routine_and_group(service):
    with pytest.raises(NotFoundError):
        service.start(1, routine_id=404, muscle_group_id=5)
    with pytest.raises(NotFoundError):
        service.start(1, routine_id=1, muscle_group_id=404)


def test_start_bulking_uses_named_routine(service):
    workout = service.start_bulking(1, muscle_group_id=5)

    assert workout.routine_id == 1


def test_update_exercise_toggles_and_tracks_time(service):
    workout = service.start(1, routine_id=1, muscle_group_id=5)

    toggled = service.update_exercise(1, workout.id, 11)
    assert toggled.exercises_completed == [11]

    timed = service.update_exercise(1, workout.id, 12, completed=True, seconds=90)
    assert timed.exercises_completed == [11, 12]
    assert timed.total_exercise_time == 90

    untoggled = service.update_exercise(1, workout.id, 11)
    assert untoggled.exercises_completed == [12]

    with pytest.raises(ValidationError):
        service.update_exercise(1, workout.id, 12, seconds=-1)


def test_finish_updates_streak_and_progress(service, repository, clock):
    workout = service.start(1, routine_id=1, muscle_group_id=5)
    _complete(service, workout.id, [11, 12, 13])
    clock.now = START + timedelta(minutes=42, seconds=40)

    outcome = service.finish_current(1)

    assert outcome.workout.duration == 43
    assert outcome.streak == 1
    assert outcome.completed_exercises == 3
    assert outcome.total_exercises == 4
    assert outcome.progress.total_workouts == 1
    assert outcome.progress.total_duration == 43
    assert outcome.progress.total_exercise_time == 180
    assert outcome.progress.workouts_this_week == 1
    assert repository.streaks[1].last_workout_date == START.date()

    with pytest.raises(InvalidStateError):
        service.finish(1, workout.id)
    with pytest.raises(InvalidStateError):
        service.finish_current(1)
    with pytest.raises(InvalidStateError):
        service.update_exercise(1, workout.id, 14)


def test_short_workout_does_not_advance_streak(service):
    workout = service.start(1, routine_id=1, muscle_group_id=5)
    _complete(service, workout.id, [11])

    outcome = service.finish(1, workout.id)

    assert outcome.streak == 0
    assert outcome.progress.total_workouts == 1


def test_delete_finished_workout_rolls_back_totals(service, repository, clock):
    workout = service.start(1, routine_id=1, muscle_group_id=5)
    _complete(service, workout.id, [11, 12, 13])
    clock.now = START + timedelta(minutes=30)
    service.finish_current(1)

    service.delete(1, workout.id)

    progress = repository.progress[1]
    assert progress.total_workouts == 0
    assert progress.total_duration == 0
    assert progress.total_exercise_time == 0
    assert progress.workouts_this_week == 0
    with pytest.raises(NotFoundError):
        service.get(1, workout.id)


def test_delete_in_progress_workout_leaves_totals(service, repository):
    workout = service.start(1, routine_id=1, muscle_group_id=5)

    service.delete(1, workout.id)

    assert 1 not in repository.progress
    assert service.current(1) is None


def test_workouts_are_scoped_to_owner(service):
    workout = service.start(1, routine_id=1, muscle_group_id=5)

    with pytest.raises(NotFoundError):
        service.get(2, workout.id)


def test_history_pages_newest_first(service, clock):
    for offset in range(3):
        clock.now = START + timedelta(hours=offset)
        workout = service.start(1, routine_id=1, muscle_group_id=5)
        service.finish(1, workout.id)

    page = service.history(1, page=1, limit=2)

    assert page.total == 3
    assert page.total_pages == 2
    assert [workout.start_time for workout in page.items] == [
        START + timedelta(hours=2),
        START + timedelta(hours=1),
    ]
    assert service.history(1, page=0, limit=1000).limit == 100


def test_today_progress_and_statistics(service, clock):
    workout = service.start(1, routine_id=1, muscle_group_id=5)
    _complete(service, workout.id, [11, 12, 13])
    clock.now = START + timedelta(minutes=20)
    service.finish_current(1)

    today = service.today_progress(1)
    assert today.workouts_count == 1
    assert today.total_duration == 20
    assert today.total_exercises == 3
    assert today.current_streak == 1

    stats = service.statistics(1)
    assert stats.last_seven_days == 1
    assert stats.consistency == "REGULAR"
    assert stats.frequency == "BAJA"
    assert stats.workouts.completed_workouts == 1
