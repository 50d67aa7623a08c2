"""API routes for workout routines."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Header

from ... import app_context
from ..permissions import Action, require_capability
from ..schemas.common import ApiResponse
from ..schemas.training import AddMuscleGroupsRequest, RoutineStatusRequest
from ..services.training import get_training_catalog
from ..training import Routine, RoutineSummary


def _get_current_user(authorization: Optional[str] = Header(None)):
    return app_context.get_current_user(authorization=authorization)


router = APIRouter(prefix="/api/routines", tags=["training"])


@router.get("", response_model=ApiResponse[List[RoutineSummary]])
def list_routines(*, current_user=Depends(_get_current_user)) -> ApiResponse[List[RoutineSummary]]:
    return ApiResponse(data=get_training_catalog().list_routines())


@router.get("/bulking", response_model=ApiResponse[Routine])
def get_bulking_routine(*, current_user=Depends(_get_current_user)) -> ApiResponse[Routine]:
    return ApiResponse(data=get_training_catalog().get_bulking_routine())


@router.get("/{routine_id}", response_model=ApiResponse[Routine])
def get_routine(routine_id: int, *, current_user=Depends(_get_current_user)) -> ApiResponse[Routine]:
    return ApiResponse(data=get_training_catalog().get_routine(routine_id))


@router.put("/{routine_id}/status", response_model=ApiResponse[Routine])
def update_routine_status(
    routine_id: int,
    payload: RoutineStatusRequest,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[Routine]:
    require_capability(current_user, Action.MANAGE_CATALOG)
    routine = get_training_catalog().set_routine_status(routine_id, payload.status)
    return ApiResponse(message="Routine status updated", data=routine)


@router.post("/{routine_id}/muscle-groups", response_model=ApiResponse[Routine])
def add_muscle_groups(
    routine_id: int,
    payload: AddMuscleGroupsRequest,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[Routine]:
    require_capability(current_user, Action.MANAGE_CATALOG)
    routine = get_training_catalog().add_muscle_groups(routine_id, payload.muscle_groups)
    return ApiResponse(message="Muscle groups added", data=routine)


@router.delete("/{routine_id}/muscle-groups/{muscle_group_id}", response_model=ApiResponse[Routine])
def remove_muscle_group(
    routine_id: int,
    muscle_group_id: int,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[Routine]:
    require_capability(current_user, Action.MANAGE_CATALOG)
    routine = get_training_catalog().remove_muscle_group(routine_id, muscle_group_id)
    return ApiResponse(message="Muscle group removed", data=routine)


__all__ = ["router"]
