"""API routes for muscle groups."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, status

from ... import app_context
from ..permissions import Action, require_capability
from ..schemas.common import ApiResponse, MessageResponse
from ..services.training import get_training_catalog
from ..training import Exercise, MuscleGroup, MuscleGroupDraft


def _get_current_user(authorization: Optional[str] = Header(None)):
    return app_context.get_current_user(authorization=authorization)


router = APIRouter(prefix="/api/muscle-groups", tags=["training"])


@router.get("", response_model=ApiResponse[List[MuscleGroup]])
def list_muscle_groups(*, current_user=Depends(_get_current_user)) -> ApiResponse[List[MuscleGroup]]:
    return ApiResponse(data=get_training_catalog().list_muscle_groups())


@router.get("/{muscle_group_id}", response_model=ApiResponse[MuscleGroup])
def get_muscle_group(muscle_group_id: int, *, current_user=Depends(_get_current_user)) -> ApiResponse[MuscleGroup]:
    return ApiResponse(data=get_training_catalog().get_muscle_group(muscle_group_id))


@router.get("/{muscle_group_id}/exercises", response_model=ApiResponse[List[Exercise]])
def list_group_exercises(
    muscle_group_id: int,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[List[Exercise]]:
    return ApiResponse(data=get_training_catalog().list_exercises_for_group(muscle_group_id))


@router.post("", response_model=ApiResponse[MuscleGroup], status_code=status.HTTP_201_CREATED)
def create_muscle_group(
    payload: MuscleGroupDraft,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[MuscleGroup]:
    require_capability(current_user, Action.MANAGE_CATALOG)
    group = get_training_catalog().create_muscle_group(payload)
    return ApiResponse(message="Muscle group created", data=group)


@router.put("/{muscle_group_id}", response_model=ApiResponse[MuscleGroup])
def update_muscle_group(
    muscle_group_id: int,
    payload: MuscleGroupDraft,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[MuscleGroup]:
    require_capability(current_user, Action.MANAGE_CATALOG)
    group = get_training_catalog().update_muscle_group(muscle_group_id, payload)
    return ApiResponse(message="Muscle group updated", data=group)


@router.delete("/{muscle_group_id}", response_model=MessageResponse)
def delete_muscle_group(muscle_group_id: int, *, current_user=Depends(_get_current_user)) -> MessageResponse:
    require_capability(current_user, Action.MANAGE_CATALOG)
    deleted = get_training_catalog().delete_muscle_group(muscle_group_id)
    return MessageResponse(message="Muscle group deleted" if deleted else "Muscle group already deleted")


__all__ = ["router"]
