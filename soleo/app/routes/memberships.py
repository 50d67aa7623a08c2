"""API routes for membership plans and client entitlements."""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Response, status

from ... import app_context
from ..errors import NotFoundError
from ..memberships import MembershipPlan, PlanDraft
from ..permissions import Action, require_capability
from ..schemas.common import ApiResponse
from ..schemas.memberships import (
    AssignMembershipRequest,
    AssignmentOut,
    CurrentMembership,
    HistoryItemOut,
    MembershipStatusSummary,
    PlanUpdateRequest,
    PlanWithRoutine,
)
from ..services.memberships import get_entitlement_service, get_plan_catalog
from ..services.training import get_training_catalog


def _get_current_user(authorization: Optional[str] = Header(None)):
    return app_context.get_current_user(authorization=authorization)


router = APIRouter(prefix="/api/memberships", tags=["memberships"])


# Client-scoped routes are declared first so "/my/..." never reaches "/{membership_id}".


@router.get("/my/current", response_model=ApiResponse[CurrentMembership])
def get_my_current_membership(*, current_user=Depends(_get_current_user)) -> ApiResponse[CurrentMembership]:
    require_capability(current_user, Action.VIEW_OWN_MEMBERSHIP)
    try:
        current = get_entitlement_service().get_current(current_user.id)
    except NotFoundError as exc:
        raise exc.with_status(status.HTTP_400_BAD_REQUEST) from exc
    return ApiResponse(data=CurrentMembership.from_status(current))


@router.get("/my/history", response_model=ApiResponse[List[HistoryItemOut]])
def get_my_membership_history(*, current_user=Depends(_get_current_user)) -> ApiResponse[List[HistoryItemOut]]:
    require_capability(current_user, Action.VIEW_OWN_MEMBERSHIP)
    try:
        history = get_entitlement_service().get_history(current_user.id)
    except NotFoundError as exc:
        raise exc.with_status(status.HTTP_400_BAD_REQUEST) from exc
    return ApiResponse(data=[HistoryItemOut.from_item(item) for item in history])


@router.get("/my/status", response_model=ApiResponse[MembershipStatusSummary])
def get_my_membership_status(*, current_user=Depends(_get_current_user)) -> ApiResponse[MembershipStatusSummary]:
    require_capability(current_user, Action.VIEW_OWN_MEMBERSHIP)
    service = get_entitlement_service()
    try:
        current = service.get_current(current_user.id)
    except NotFoundError as exc:
        raise exc.with_status(status.HTTP_400_BAD_REQUEST) from exc
    return ApiResponse(
        data=MembershipStatusSummary(
            has_active_membership=current.is_active,
            current_membership=CurrentMembership.from_status(current),
        )
    )


@router.post("/assign-to-client", response_model=ApiResponse[AssignmentOut])
def assign_membership_to_client(
    payload: AssignMembershipRequest,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[AssignmentOut]:
    require_capability(current_user, Action.ASSIGN_MEMBERSHIP)
    try:
        result = get_entitlement_service().assign(payload.user_id, payload.membership_id)
    except NotFoundError as exc:
        raise exc.with_status(status.HTTP_400_BAD_REQUEST) from exc
    message = (
        "Membership assigned and previous membership replaced"
        if result.was_replaced
        else "Membership assigned"
    )
    return ApiResponse(message=message, data=AssignmentOut.from_result(result))


@router.get("/client-history/{user_id}", response_model=ApiResponse[List[HistoryItemOut]])
def get_client_membership_history(
    user_id: int,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[List[HistoryItemOut]]:
    require_capability(current_user, Action.VIEW_CLIENT_HISTORY)
    try:
        history = get_entitlement_service().get_history(user_id)
    except NotFoundError as exc:
        raise exc.with_status(status.HTTP_400_BAD_REQUEST) from exc
    return ApiResponse(data=[HistoryItemOut.from_item(item) for item in history])


@router.get("", response_model=ApiResponse[List[MembershipPlan]])
def list_memberships() -> ApiResponse[List[MembershipPlan]]:
    return ApiResponse(data=get_plan_catalog().list_plans())


@router.get("/{membership_id}", response_model=ApiResponse[MembershipPlan])
def get_membership(membership_id: int) -> ApiResponse[MembershipPlan]:
    return ApiResponse(data=get_plan_catalog().get_plan(membership_id))


@router.get("/{membership_id}/full-routine", response_model=ApiResponse[PlanWithRoutine])
def get_membership_with_routine(membership_id: int) -> ApiResponse[PlanWithRoutine]:
    plan = get_plan_catalog().get_plan(membership_id)
    routine = None
    if plan.routine_id is not None:
        try:
            routine = get_training_catalog().get_routine(plan.routine_id)
        except NotFoundError:
            routine = None
    return ApiResponse(data=PlanWithRoutine(membership=plan, routine=routine))


@router.post("", response_model=ApiResponse[MembershipPlan], status_code=status.HTTP_201_CREATED)
def create_membership(
    payload: PlanDraft,
    response: Response,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[MembershipPlan]:
    require_capability(current_user, Action.MANAGE_PLANS)
    plan, created = get_plan_catalog().create_plan(payload)
    if not created:
        response.status_code = status.HTTP_200_OK
        return ApiResponse(message="Membership already exists", data=plan)
    return ApiResponse(message="Membership created", data=plan)


@router.put("/{membership_id}", response_model=ApiResponse[MembershipPlan])
def update_membership(
    membership_id: int,
    payload: PlanUpdateRequest,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[MembershipPlan]:
    require_capability(current_user, Action.MANAGE_PLANS)
    plan = get_plan_catalog().update_plan(membership_id, payload.model_dump(exclude_none=True))
    return ApiResponse(message="Membership updated", data=plan)


@router.delete("/{membership_id}", response_model=ApiResponse[dict])
def delete_membership(
    membership_id: int,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[dict]:
    require_capability(current_user, Action.MANAGE_PLANS)
    deleted = get_plan_catalog().delete_plan(membership_id)
    message = "Membership deleted" if deleted else "Membership already deleted"
    return ApiResponse(message=message, data={})


__all__ = ["router"]
