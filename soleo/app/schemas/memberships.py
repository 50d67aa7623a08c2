"""API schemas for membership endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..memberships import (
    AssignmentResult,
    EntitlementStatus,
    HistoryItem,
    HistoryStatus,
    MembershipPlan,
    PlanDraft,
    PlanStatus,
)
from ..training import Routine


class PlanUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    duration_days: Optional[int] = Field(alias="durationDays", default=None, ge=1)
    is_trial: Optional[bool] = Field(alias="isTrial", default=None)
    is_default: Optional[bool] = Field(alias="isDefault", default=None)
    status: Optional[PlanStatus] = None
    routine_id: Optional[int] = Field(alias="routineId", default=None)

    model_config = ConfigDict(populate_by_name=True)


class PlanWithRoutine(BaseModel):
    membership: MembershipPlan
    routine: Optional[Routine] = None

    model_config = ConfigDict(populate_by_name=True)


class CurrentMembership(BaseModel):
    membership: Optional[MembershipPlan] = None
    assigned_at: Optional[datetime] = Field(alias="assignedAt", default=None)
    expires_at: Optional[datetime] = Field(alias="expiresAt", default=None)
    is_active: bool = Field(alias="isActive", default=False)
    days_remaining: int = Field(alias="daysRemaining", default=0)
    is_expired: bool = Field(alias="isExpired", default=False)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_status(cls, status: EntitlementStatus) -> "CurrentMembership":
        return cls(
            membership=status.plan,
            assigned_at=status.assigned_at,
            expires_at=status.expires_at,
            is_active=status.is_active,
            days_remaining=status.days_remaining,
            is_expired=status.is_expired,
        )


class MembershipStatusSummary(BaseModel):
    has_active_membership: bool = Field(alias="hasActiveMembership")
    current_membership: CurrentMembership = Field(alias="currentMembership")

    model_config = ConfigDict(populate_by_name=True)


class HistoryItemOut(BaseModel):
    membership_id: Optional[int] = Field(alias="membershipId", default=None)
    membership: Optional[MembershipPlan] = None
    assigned_at: datetime = Field(alias="assignedAt")
    expired_at: Optional[datetime] = Field(alias="expiredAt", default=None)
    status: HistoryStatus
    was_trial: bool = Field(alias="wasTrial")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_item(cls, item: HistoryItem) -> "HistoryItemOut":
        return cls(
            membership_id=item.entry.plan_id,
            membership=item.plan,
            assigned_at=item.entry.assigned_at,
            expired_at=item.entry.expired_at,
            status=item.entry.status,
            was_trial=item.entry.was_trial,
        )


class AssignMembershipRequest(BaseModel):
    user_id: int = Field(alias="userId")
    membership_id: int = Field(alias="membershipId")

    model_config = ConfigDict(populate_by_name=True)


class AssignmentOut(BaseModel):
    user_id: int = Field(alias="userId")
    new_membership: MembershipPlan = Field(alias="newMembership")
    previous_membership_id: Optional[int] = Field(alias="previousMembership", default=None)
    was_replaced: bool = Field(alias="wasReplaced")
    assigned_at: datetime = Field(alias="assignedAt")
    expiration_date: datetime = Field(alias="expirationDate")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(cls, result: AssignmentResult) -> "AssignmentOut":
        return cls(
            user_id=result.user_id,
            new_membership=result.new_plan,
            previous_membership_id=result.previous_plan_id,
            was_replaced=result.was_replaced,
            assigned_at=result.assigned_at,
            expiration_date=result.expires_at,
        )


__all__ = [
    "AssignMembershipRequest",
    "AssignmentOut",
    "CurrentMembership",
    "HistoryItemOut",
    "MembershipStatusSummary",
    "PlanDraft",
    "PlanUpdateRequest",
    "PlanWithRoutine",
]
