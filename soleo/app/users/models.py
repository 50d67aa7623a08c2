"""Domain models for user accounts."""
from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..permissions import Role

_EXERCISE_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


def validate_exercise_time(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    if not stripped:
        return None
    if not _EXERCISE_TIME_RE.match(stripped):
        raise ValueError("exerciseTime must use the HH:MM 24-hour format")
    return stripped


class UserRecord(BaseModel):
    id: int
    name: str
    email: str
    role: Role = Role.CLIENT
    status: UserStatus = UserStatus.ACTIVE
    weight: Optional[float] = None
    exercise_time: Optional[str] = Field(alias="exerciseTime", default=None)
    profile_photo: Optional[str] = Field(alias="profilePhoto", default=None)
    fcm_tokens: List[str] = Field(alias="fcmTokens", default_factory=list)
    current_membership_id: Optional[int] = Field(alias="currentMembershipId", default=None)
    membership_assigned_at: Optional[datetime] = Field(alias="membershipAssignedAt", default=None)
    membership_expires_at: Optional[datetime] = Field(alias="membershipExpiresAt", default=None)
    created_at: Optional[datetime] = Field(alias="createdAt", default=None)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    email: Optional[EmailStr] = None
    weight: Optional[float] = Field(default=None, gt=0, le=500)
    exercise_time: Optional[str] = Field(alias="exerciseTime", default=None)
    password: Optional[str] = Field(default=None, min_length=6, max_length=72)
    current_password: Optional[str] = Field(alias="currentPassword", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("exercise_time")
    @classmethod
    def _check_exercise_time(cls, value: Optional[str]) -> Optional[str]:
        return validate_exercise_time(value)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if value is not None else None


__all__ = ["ProfileUpdate", "UserRecord", "UserStatus", "validate_exercise_time"]
