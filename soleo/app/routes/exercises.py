"""API routes for exercises."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, status

from ... import app_context
from ..permissions import Action, require_capability
from ..schemas.common import ApiResponse, MessageResponse
from ..schemas.training import ExerciseUpdateRequest
from ..services.training import get_training_catalog
from ..training import Exercise, ExerciseDraft


def _get_current_user(authorization: Optional[str] = Header(None)):
    return app_context.get_current_user(authorization=authorization)


router = APIRouter(prefix="/api/exercises", tags=["training"])


@router.get("", response_model=ApiResponse[List[Exercise]])
def list_exercises(*, current_user=Depends(_get_current_user)) -> ApiResponse[List[Exercise]]:
    return ApiResponse(data=get_training_catalog().list_exercises())


@router.get("/muscle-group/{muscle_group_id}", response_model=ApiResponse[List[Exercise]])
def list_exercises_by_muscle_group(
    muscle_group_id: int,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[List[Exercise]]:
    return ApiResponse(data=get_training_catalog().list_exercises_for_group(muscle_group_id))


@router.get("/{exercise_id}", response_model=ApiResponse[Exercise])
def get_exercise(exercise_id: int, *, current_user=Depends(_get_current_user)) -> ApiResponse[Exercise]:
    return ApiResponse(data=get_training_catalog().get_exercise(exercise_id))


@router.post("", response_model=ApiResponse[Exercise], status_code=status.HTTP_201_CREATED)
def create_exercise(
    payload: ExerciseDraft,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[Exercise]:
    require_capability(current_user, Action.MANAGE_CATALOG)
    exercise = get_training_catalog().create_exercise(payload)
    return ApiResponse(message="Exercise created", data=exercise)


@router.put("/{exercise_id}", response_model=ApiResponse[Exercise])
def update_exercise(
    exercise_id: int,
    payload: ExerciseUpdateRequest,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[Exercise]:
    require_capability(current_user, Action.MANAGE_CATALOG)
    exercise = get_training_catalog().update_exercise(exercise_id, payload.changes())
    return ApiResponse(message="Exercise updated", data=exercise)


@router.delete("/{exercise_id}", response_model=MessageResponse)
def delete_exercise(exercise_id: int, *, current_user=Depends(_get_current_user)) -> MessageResponse:
    require_capability(current_user, Action.MANAGE_CATALOG)
    deleted = get_training_catalog().delete_exercise(exercise_id)
    return MessageResponse(message="Exercise deleted" if deleted else "Exercise already deleted")


__all__ = ["router"]
