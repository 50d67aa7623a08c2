"""API schemas for authentication and user endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..permissions import Role
from ..users import UserRecord, UserStatus


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("name must not be empty")
        return stripped


class AdminRegisterRequest(RegisterRequest):
    role: Role = Role.CLIENT


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=72)

    model_config = ConfigDict(populate_by_name=True)


class UserOut(BaseModel):
    id: int
    name: str
    email: str
    role: Role
    status: UserStatus
    weight: Optional[float] = None
    exercise_time: Optional[str] = Field(alias="exerciseTime", default=None)
    profile_photo: Optional[str] = Field(alias="profilePhoto", default=None)
    current_membership_id: Optional[int] = Field(alias="currentMembershipId", default=None)
    membership_name: Optional[str] = Field(alias="membershipName", default=None)
    membership_assigned_at: Optional[datetime] = Field(alias="membershipAssignedAt", default=None)
    membership_expires_at: Optional[datetime] = Field(alias="membershipExpiresAt", default=None)
    created_at: Optional[datetime] = Field(alias="createdAt", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_user(cls, user: UserRecord, *, membership_name: Optional[str] = None) -> "UserOut":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            status=user.status,
            weight=user.weight,
            exercise_time=user.exercise_time,
            profile_photo=user.profile_photo,
            current_membership_id=user.current_membership_id,
            membership_name=membership_name,
            membership_assigned_at=user.membership_assigned_at,
            membership_expires_at=user.membership_expires_at,
            created_at=user.created_at,
        )


class AuthOut(BaseModel):
    token: str
    role: Role
    user: UserOut

    model_config = ConfigDict(populate_by_name=True)


class StatusUpdateRequest(BaseModel):
    status: UserStatus

    model_config = ConfigDict(populate_by_name=True)


class FcmTokenRequest(BaseModel):
    fcm_token: str = Field(alias="fcmToken", min_length=1, max_length=4096)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("fcm_token")
    @classmethod
    def _strip_token(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("fcmToken must not be empty")
        return stripped


__all__ = [
    "AdminRegisterRequest",
    "AuthOut",
    "FcmTokenRequest",
    "LoginRequest",
    "RegisterRequest",
    "StatusUpdateRequest",
    "UserOut",
]
