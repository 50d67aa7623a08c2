"""API routes for membership checkout and payment reporting."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query

from ... import app_context
from ..payments import CheckoutSession, PaymentStats
from ..permissions import Action, require_capability
from ..schemas.common import ApiResponse, MessageResponse
from ..schemas.payments import CaptureOut, CreatePaymentRequest, OrderRequest, PaymentListOut
from ..services.accounts import get_account_service
from ..services.notifications import PAYMENT_COMPLETED_TITLE, notify_user, payment_completed_body
from ..services.payments import get_payment_service


def _get_current_user(authorization: Optional[str] = Header(None)):
    return app_context.get_current_user(authorization=authorization)


router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/create", response_model=ApiResponse[CheckoutSession])
def create_payment(
    payload: CreatePaymentRequest,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[CheckoutSession]:
    require_capability(current_user, Action.PURCHASE_MEMBERSHIP)
    session = get_payment_service().create_checkout(current_user.id, payload.membership_id)
    return ApiResponse(message="Payment created", data=session)


@router.post("/capture", response_model=ApiResponse[CaptureOut])
def capture_payment(
    payload: OrderRequest,
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[CaptureOut]:
    require_capability(current_user, Action.PURCHASE_MEMBERSHIP)
    outcome = get_payment_service().capture(payload.order_id, user_id=current_user.id)

    buyer = get_account_service().get_user(outcome.payment.user_id)
    notify_user(buyer, PAYMENT_COMPLETED_TITLE, payment_completed_body(outcome.new_plan_name, outcome.was_replaced))

    message = (
        "Payment completed. Your new membership is active and replaced the previous one."
        if outcome.was_replaced
        else "Payment completed. Your membership is active."
    )
    return ApiResponse(message=message, data=CaptureOut.from_outcome(outcome))


@router.post("/cancel", response_model=MessageResponse)
def cancel_payment(
    payload: OrderRequest,
    *,
    current_user=Depends(_get_current_user),
) -> MessageResponse:
    get_payment_service().cancel(current_user.id, payload.order_id)
    return MessageResponse(message="Payment cancelled")


@router.get("/my-payments", response_model=ApiResponse[PaymentListOut])
def get_my_payments(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[PaymentListOut]:
    payments = get_payment_service().my_payments(current_user.id, page=page, limit=limit)
    return ApiResponse(data=PaymentListOut.from_page(payments))


@router.get("/history", response_model=ApiResponse[PaymentListOut])
def get_payment_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: Optional[int] = Query(None, alias="userId"),
    *,
    current_user=Depends(_get_current_user),
) -> ApiResponse[PaymentListOut]:
    require_capability(current_user, Action.VIEW_PAYMENT_HISTORY)
    payments = get_payment_service().history(user_id=user_id, page=page, limit=limit)
    return ApiResponse(data=PaymentListOut.from_page(payments))


@router.get("/stats", response_model=ApiResponse[PaymentStats])
def get_payment_stats(*, current_user=Depends(_get_current_user)) -> ApiResponse[PaymentStats]:
    require_capability(current_user, Action.VIEW_PAYMENT_STATS)
    return ApiResponse(data=get_payment_service().stats())


__all__ = ["router"]
