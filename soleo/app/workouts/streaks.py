"""Pure streak and calendar rules for workout tracking."""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from .models import StreakState

MIN_EXERCISES_FOR_STREAK = 3


def advance_streak(state: StreakState, *, completed_exercises: int, today: date) -> StreakState:
    """Return the streak after a workout finished on ``today``.

    A day counts once; fewer than three completed exercises never count.
    """

    if state.last_workout_date == today:
        return state
    if completed_exercises < MIN_EXERCISES_FOR_STREAK:
        return state

    if state.last_workout_date is None:
        current = 1
    elif state.last_workout_date == today - timedelta(days=1):
        current = state.current + 1
    elif state.last_workout_date < today:
        current = 1
    else:
        # clock moved backwards relative to the stored date
        current = state.current

    return StreakState(
        current=current,
        longest=max(state.longest, current),
        last_workout_date=today,
    )


def consistency_label(current_streak: int) -> str:
    if current_streak > 7:
        return "EXCELENTE"
    if current_streak > 3:
        return "BUENA"
    if current_streak > 0:
        return "REGULAR"
    return "INICIA_TU_STREAK"


def frequency_label(workouts_this_week: int) -> str:
    if workouts_this_week > 3:
        return "ALTA"
    if workouts_this_week > 1:
        return "MEDIA"
    return "BAJA"


def start_of_day(moment: datetime) -> datetime:
    tz = moment.tzinfo or timezone.utc
    return datetime.combine(moment.date(), time.min, tzinfo=tz)


def start_of_week(moment: datetime) -> datetime:
    """Weeks start on Sunday."""

    day_start = start_of_day(moment)
    return day_start - timedelta(days=(day_start.weekday() + 1) % 7)


def start_of_month(moment: datetime) -> datetime:
    return start_of_day(moment).replace(day=1)


__all__ = [
    "MIN_EXERCISES_FOR_STREAK",
    "advance_streak",
    "consistency_label",
    "frequency_label",
    "start_of_day",
    "start_of_month",
    "start_of_week",
]
