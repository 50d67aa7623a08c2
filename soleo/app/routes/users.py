"""API routes for user profiles and admin user management."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends, Header

from ... import app_context
from ..memberships import compute_status
from ..permissions import Action, Role, require_capability
from ..schemas.common import ApiResponse, MessageResponse
from ..schemas.memberships import CurrentMembership
from ..schemas.users import FcmTokenRequest, StatusUpdateRequest, UserOut
from ..services.accounts import get_account_service
from ..services.memberships import get_plan_catalog
from ..users import ProfileUpdate, UserRecord


def _get_current_user(authorization: Optional[str] = Header(None)):
    return app_context.get_current_user(authorization=authorization)


router = APIRouter(prefix="/api/users", tags=["users"])


def _plan_names(users: Iterable[UserRecord]) -> Dict[int, str]:
    plan_ids = {user.current_membership_id for user in users if user.current_membership_id is not None}
    if not plan_ids:
        return {}
    plans = get_plan_catalog().repository.get_plans(plan_ids)
    return {plan_id: plan.name for plan_id, plan in plans.items()}


def serialize_users(users: List[UserRecord]) -> List[UserOut]:
    names = _plan_names(users)
    return [
        UserOut.from_user(user, membership_name=names.get(user.current_membership_id))
        for user in users
    ]


def serialize_user(user: UserRecord) -> UserOut:
    return serialize_users([user])[0]


@router.get("/me", response_model=ApiResponse[UserOut])
def get_me(*, current_user=Depends(_get_current_user)) -> ApiResponse[UserOut]:
    user = get_account_service().get_user(current_user.id)
    return ApiResponse(data=serialize_user(user))


@router.get("/profile", response_model=ApiResponse[UserOut])
def get_profile(*, current_user=Depends(_get_current_user)) -> ApiResponse[UserOut]:
    user = get_account_service().get_user(current_user.id)
    return ApiResponse(data=serialize_user(user))


@router.put("/profile", response_model=ApiResponse[UserOut])
def update_profile(
    payload: ProfileUpdate,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[UserOut]:
    user = get_account_service().update_profile(current_user.id, payload)
    return ApiResponse(message="Profile updated", data=serialize_user(user))


@router.delete("/profile", response_model=MessageResponse)
def delete_own_account(*, current_user=Depends(_get_current_user)) -> MessageResponse:
    get_account_service().delete_account(current_user.id)
    return MessageResponse(message="Account deleted")


@router.post("/fcm-token", response_model=MessageResponse)
def save_fcm_token(
    payload: FcmTokenRequest,
    *,
    current_user=Depends(_get_current_user),
) -> MessageResponse:
    get_account_service().add_fcm_token(current_user.id, payload.fcm_token)
    return MessageResponse(message="Push token saved")


@router.get("/membership", response_model=ApiResponse[CurrentMembership])
def get_user_membership(*, current_user=Depends(_get_current_user)) -> ApiResponse[CurrentMembership]:
    user = get_account_service().get_user(current_user.id)
    plan = None
    if user.current_membership_id is not None:
        plan = get_plan_catalog().repository.get_plan(user.current_membership_id)
    current = compute_status(
        plan,
        assigned_at=user.membership_assigned_at,
        expires_at=user.membership_expires_at,
        now=datetime.now(timezone.utc),
    )
    return ApiResponse(data=CurrentMembership.from_status(current))


@router.get("/clients", response_model=ApiResponse[List[UserOut]])
def list_clients(*, current_user=Depends(_get_current_user)) -> ApiResponse[List[UserOut]]:
    require_capability(current_user, Action.MANAGE_USERS)
    clients = get_account_service().list_users(role=Role.CLIENT)
    return ApiResponse(data=serialize_users(clients))


@router.get("", response_model=ApiResponse[List[UserOut]])
def list_users(*, current_user=Depends(_get_current_user)) -> ApiResponse[List[UserOut]]:
    require_capability(current_user, Action.MANAGE_USERS)
    users = get_account_service().list_users()
    return ApiResponse(data=serialize_users(users))


@router.put("/{user_id}/status", response_model=ApiResponse[UserOut])
def update_user_status(
    user_id: int,
    payload: StatusUpdateRequest,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[UserOut]:
    require_capability(current_user, Action.MANAGE_USERS)
    user = get_account_service().set_status(user_id, payload.status)
    return ApiResponse(message="User status updated", data=serialize_user(user))


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    *,
    current_user=Depends(_get_current_user),
) -> MessageResponse:
    require_capability(current_user, Action.MANAGE_USERS)
    get_account_service().delete_user(actor_id=current_user.id, user_id=user_id)
    return MessageResponse(message="User deleted")


__all__ = ["router", "serialize_user", "serialize_users"]
