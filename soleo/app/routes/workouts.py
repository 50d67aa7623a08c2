"""API routes for workout sessions, progress and statistics."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, status

from ... import app_context
from ..permissions import Action, require_capability
from ..schemas.common import ApiResponse, MessageResponse
from ..schemas.workouts import (
    CurrentWorkoutOut,
    ExerciseProgressRequest,
    FinishWorkoutOut,
    StartBulkingRequest,
    StartWorkoutRequest,
    WorkoutHistoryOut,
)
from ..services.workouts import get_workout_service
from ..workouts import TodayProgress, WorkoutLog, WorkoutStatistics


def _get_current_user(authorization: Optional[str] = Header(None)):
    user = app_context.get_current_user(authorization=authorization)
    require_capability(user, Action.TRACK_WORKOUTS)
    return user


router = APIRouter(prefix="/api/workouts", tags=["workouts"])


@router.get("/current", response_model=ApiResponse[CurrentWorkoutOut])
def get_current_workout(*, current_user=Depends(_get_current_user)) -> ApiResponse[CurrentWorkoutOut]:
    workout = get_workout_service().current(current_user.id)
    return ApiResponse(data=CurrentWorkoutOut(exists=workout is not None, workout=workout))


@router.patch("/current/finish", response_model=ApiResponse[FinishWorkoutOut])
def finish_current_workout(*, current_user=Depends(_get_current_user)) -> ApiResponse[FinishWorkoutOut]:
    outcome = get_workout_service().finish_current(current_user.id)
    return ApiResponse(message="Workout finished", data=FinishWorkoutOut.from_outcome(outcome))


@router.get("/today/workout", response_model=ApiResponse[List[WorkoutLog]])
def get_today_workouts(*, current_user=Depends(_get_current_user)) -> ApiResponse[List[WorkoutLog]]:
    return ApiResponse(data=get_workout_service().today(current_user.id))


@router.get("/today-progress", response_model=ApiResponse[TodayProgress])
def get_today_progress(*, current_user=Depends(_get_current_user)) -> ApiResponse[TodayProgress]:
    return ApiResponse(data=get_workout_service().today_progress(current_user.id))


@router.get("/history", response_model=ApiResponse[WorkoutHistoryOut])
def get_workout_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[WorkoutHistoryOut]:
    history = get_workout_service().history(current_user.id, page=page, limit=limit)
    return ApiResponse(data=WorkoutHistoryOut.from_page(history))


@router.get("/statistics", response_model=ApiResponse[WorkoutStatistics])
def get_workout_statistics(*, current_user=Depends(_get_current_user)) -> ApiResponse[WorkoutStatistics]:
    return ApiResponse(data=get_workout_service().statistics(current_user.id))


@router.post("/start-bulking", response_model=ApiResponse[WorkoutLog], status_code=status.HTTP_201_CREATED)
def start_bulking_workout(
    payload: StartBulkingRequest,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[WorkoutLog]:
    workout = get_workout_service().start_bulking(current_user.id, muscle_group_id=payload.muscle_group_id)
    return ApiResponse(message="Workout started", data=workout)


@router.post("", response_model=ApiResponse[WorkoutLog], status_code=status.HTTP_201_CREATED)
def start_workout(
    payload: StartWorkoutRequest,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[WorkoutLog]:
    workout = get_workout_service().start(
        current_user.id,
        routine_id=payload.routine_id,
        muscle_group_id=payload.muscle_group_id,
    )
    return ApiResponse(message="Workout started", data=workout)


@router.get("/{workout_id}", response_model=ApiResponse[WorkoutLog])
def get_workout(workout_id: int, *, current_user=Depends(_get_current_user)) -> ApiResponse[WorkoutLog]:
    return ApiResponse(data=get_workout_service().get(current_user.id, workout_id))


@router.delete("/{workout_id}", response_model=MessageResponse)
def delete_workout(workout_id: int, *, current_user=Depends(_get_current_user)) -> MessageResponse:
    get_workout_service().delete(current_user.id, workout_id)
    return MessageResponse(message="Workout deleted")


@router.patch("/{workout_id}/finish", response_model=ApiResponse[FinishWorkoutOut])
def finish_workout(workout_id: int, *, current_user=Depends(_get_current_user)) -> ApiResponse[FinishWorkoutOut]:
    outcome = get_workout_service().finish(current_user.id, workout_id)
    return ApiResponse(message="Workout finished", data=FinishWorkoutOut.from_outcome(outcome))


@router.patch("/{workout_id}/exercises", response_model=ApiResponse[WorkoutLog])
def update_workout_exercise(
    workout_id: int,
    payload: ExerciseProgressRequest,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[WorkoutLog]:
    workout = get_workout_service().update_exercise(
        current_user.id,
        workout_id,
        payload.exercise_id,
        completed=payload.completed,
        seconds=payload.time,
    )
    return ApiResponse(message="Workout updated", data=workout)


__all__ = ["router"]
