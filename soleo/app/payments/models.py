"""Domain models for membership purchases."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentStatus(str, Enum):
    """Lifecycle status of a checkout payment."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


class Payment(BaseModel):
    id: int
    user_id: int = Field(alias="userId")
    membership_id: Optional[int] = Field(alias="membershipId", default=None)
    amount: float
    currency: str = "MXN"
    status: PaymentStatus = PaymentStatus.PENDING
    order_id: Optional[str] = Field(alias="orderId", default=None)
    capture_id: Optional[str] = Field(alias="captureId", default=None)
    purchase_date: Optional[datetime] = Field(alias="purchaseDate", default=None)
    expiration_date: Optional[datetime] = Field(alias="expirationDate", default=None)
    replaced_previous_membership: bool = Field(alias="replacedPreviousMembership", default=False)
    previous_membership_id: Optional[int] = Field(alias="previousMembershipId", default=None)
    previous_membership_expired_at: Optional[datetime] = Field(
        alias="previousMembershipExpiredAt", default=None
    )
    membership_name: Optional[str] = Field(alias="membershipName", default=None)
    user_name: Optional[str] = Field(alias="userName", default=None)
    user_email: Optional[str] = Field(alias="userEmail", default=None)
    created_at: Optional[datetime] = Field(alias="createdAt", default=None)
    updated_at: Optional[datetime] = Field(alias="updatedAt", default=None)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class GatewayOrder(BaseModel):
    """Order created at the payment gateway awaiting buyer approval."""

    order_id: str = Field(alias="orderId")
    approval_url: str = Field(alias="approvalUrl")
    status: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class GatewayCapture(BaseModel):
    order_id: str = Field(alias="orderId")
    capture_id: str = Field(alias="captureId")
    status: Optional[str] = None
    raw: dict = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class CheckoutSession(BaseModel):
    payment_id: int = Field(alias="paymentId")
    order_id: str = Field(alias="orderId")
    approval_url: str = Field(alias="approvalUrl")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class CaptureOutcome(BaseModel):
    payment: Payment
    capture: GatewayCapture
    new_plan_id: int = Field(alias="newMembershipId")
    new_plan_name: str = Field(alias="newMembershipName")
    expires_at: datetime = Field(alias="expirationDate")
    was_replaced: bool = Field(alias="previousMembershipReplaced")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class PaymentPage(BaseModel):
    items: List[Payment]
    total: int
    page: int
    limit: int

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit


class PlanRevenue(BaseModel):
    membership_id: int = Field(alias="membershipId")
    membership_name: Optional[str] = Field(alias="membershipName", default=None)
    count: int
    revenue: float

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class PaymentStats(BaseModel):
    total_payments: int = Field(alias="totalPayments")
    completed_payments: int = Field(alias="completedPayments")
    pending_payments: int = Field(alias="pendingPayments")
    total_revenue: float = Field(alias="totalRevenue")
    payments_by_membership: List[PlanRevenue] = Field(alias="paymentsByMembership", default_factory=list)

    model_config = ConfigDict(populate_by_name=True, frozen=True)


__all__ = [
    "CaptureOutcome",
    "CheckoutSession",
    "GatewayCapture",
    "GatewayOrder",
    "Payment",
    "PaymentPage",
    "PaymentStats",
    "PaymentStatus",
    "PlanRevenue",
]
