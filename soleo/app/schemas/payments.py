"""API schemas for payment endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

from ..payments import CaptureOutcome, Payment, PaymentPage
from .common import PageInfo


class CreatePaymentRequest(BaseModel):
    membership_id: int = Field(alias="membershipId")

    model_config = ConfigDict(populate_by_name=True)


class OrderRequest(BaseModel):
    order_id: str = Field(alias="orderId", min_length=1, max_length=64)

    model_config = ConfigDict(populate_by_name=True)


class MembershipInfo(BaseModel):
    new_membership_id: int = Field(alias="newMembershipId")
    new_membership: str = Field(alias="newMembership")
    expiration_date: datetime = Field(alias="expirationDate")
    previous_membership_replaced: bool = Field(alias="previousMembershipReplaced")

    model_config = ConfigDict(populate_by_name=True)


class CaptureOut(BaseModel):
    payment: Payment
    capture_data: Dict[str, Any] = Field(alias="captureData", default_factory=dict)
    membership_info: MembershipInfo = Field(alias="membershipInfo")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_outcome(cls, outcome: CaptureOutcome) -> "CaptureOut":
        capture_data = dict(outcome.capture.raw) or {
            "id": outcome.capture.capture_id,
            "orderId": outcome.capture.order_id,
            "status": outcome.capture.status,
        }
        return cls(
            payment=outcome.payment,
            capture_data=capture_data,
            membership_info=MembershipInfo(
                new_membership_id=outcome.new_plan_id,
                new_membership=outcome.new_plan_name,
                expiration_date=outcome.expires_at,
                previous_membership_replaced=outcome.was_replaced,
            ),
        )


class PaymentListOut(BaseModel):
    payments: List[Payment]
    pagination: PageInfo

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_page(cls, page: PaymentPage) -> "PaymentListOut":
        return cls(
            payments=page.items,
            pagination=PageInfo(
                total=page.total,
                current_page=page.page,
                total_pages=page.total_pages,
                limit=page.limit,
            ),
        )


__all__ = ["CaptureOut", "CreatePaymentRequest", "MembershipInfo", "OrderRequest", "PaymentListOut"]
