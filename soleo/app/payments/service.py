"""Checkout flow coordinating the gateway, the payment ledger and entitlements."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from ..errors import InvalidStateError, NotFoundError, UpstreamError
from ..memberships.repository import PlanRepository
from ..memberships.service import EntitlementService
from .gateway import PaymentGateway
from .models import CaptureOutcome, CheckoutSession, Payment, PaymentPage, PaymentStats, PaymentStatus
from .repository import PaymentRepository

logger = logging.getLogger("payments")

MAX_PAGE_SIZE = 100


class PaymentService:
    def __init__(
        self,
        *,
        payments: PaymentRepository,
        plans: PlanRepository,
        entitlements: EntitlementService,
        gateway: PaymentGateway,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._payments = payments
        self._plans = plans
        self._entitlements = entitlements
        self._gateway = gateway
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _now(self) -> datetime:
        current = self._clock()
        return current if current.tzinfo else current.replace(tzinfo=timezone.utc)

    def create_checkout(self, user_id: int, membership_id: int) -> CheckoutSession:
        plan = self._plans.get_plan(membership_id)
        if plan is None:
            raise NotFoundError("Membership not found", detail={"membershipId": membership_id})
        if not plan.is_active:
            raise InvalidStateError("Membership is not active", detail={"membershipId": membership_id})
        if self._payments.find_active_completed(user_id, membership_id, self._now()) is not None:
            raise InvalidStateError(
                "You already have this membership active",
                detail={"membershipId": membership_id},
            )

        payment = self._payments.create_payment(
            user_id=user_id,
            membership_id=membership_id,
            amount=plan.price,
            currency=self._gateway.config.currency,
        )
        try:
            order = self._gateway.create_order(amount=plan.price, reference=str(payment.id))
        except UpstreamError:
            self._payments.set_status(payment.id, PaymentStatus.FAILED)
            raise
        self._payments.attach_order(payment.id, order.order_id)

        logger.info(
            "Checkout created",
            extra={
                "user_id": user_id,
                "payment_id": payment.id,
                "order_id": order.order_id,
                "membership_id": membership_id,
                **self._gateway.describe(),
            },
        )
        return CheckoutSession(payment_id=payment.id, order_id=order.order_id, approval_url=order.approval_url)

    def capture(self, order_id: str, *, user_id: Optional[int] = None) -> CaptureOutcome:
        """Capture an approved order and grant the purchased plan.

        When ``user_id`` is given only that buyer's orders are visible.
        """

        payment = self._payments.get_by_order(order_id, user_id=user_id)
        if payment is None:
            raise NotFoundError("Payment not found", detail={"orderId": order_id})
        if payment.status is not PaymentStatus.PENDING:
            raise InvalidStateError(
                "Only pending payments can be captured",
                detail={"orderId": order_id, "status": payment.status.value},
            )
        if payment.membership_id is None:
            raise InvalidStateError("Purchased membership no longer exists", detail={"orderId": order_id})

        try:
            capture = self._gateway.capture_order(order_id)
        except UpstreamError:
            self._payments.set_status(payment.id, PaymentStatus.FAILED)
            raise

        # Keep the capture id even if the assignment below fails.
        self._payments.record_capture(payment.id, capture.capture_id)
        result = self._entitlements.assign(payment.user_id, payment.membership_id)
        completed = self._payments.complete_payment(
            payment.id,
            capture_id=capture.capture_id,
            expiration_date=result.expires_at,
            replaced_previous_membership=result.was_replaced,
            previous_membership_id=result.previous_plan_id,
            previous_membership_expired_at=result.assigned_at if result.was_replaced else None,
        )

        logger.info(
            "Payment captured",
            extra={
                "user_id": payment.user_id,
                "payment_id": payment.id,
                "order_id": order_id,
                "capture_id": capture.capture_id,
                "membership_id": payment.membership_id,
                "was_replaced": result.was_replaced,
            },
        )
        return CaptureOutcome(
            payment=completed,
            capture=capture,
            new_plan_id=result.new_plan.id,
            new_plan_name=result.new_plan.name,
            expires_at=result.expires_at,
            was_replaced=result.was_replaced,
        )

    def cancel(self, user_id: int, order_id: str) -> Payment:
        payment = self._payments.get_by_order(order_id, user_id=user_id)
        if payment is None:
            raise NotFoundError("Payment not found", detail={"orderId": order_id})
        if payment.status is not PaymentStatus.PENDING:
            raise InvalidStateError(
                "Only pending payments can be cancelled",
                detail={"orderId": order_id, "status": payment.status.value},
            )
        cancelled = self._payments.set_status(payment.id, PaymentStatus.CANCELLED)
        logger.info("Payment cancelled", extra={"user_id": user_id, "payment_id": payment.id})
        return cancelled

    def _page(self, *, user_id: Optional[int], page: int, limit: int) -> PaymentPage:
        page = max(1, page)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        items = self._payments.list_payments(user_id=user_id, limit=limit, offset=(page - 1) * limit)
        return PaymentPage(
            items=list(items),
            total=self._payments.count_payments(user_id=user_id),
            page=page,
            limit=limit,
        )

    def my_payments(self, user_id: int, *, page: int = 1, limit: int = 10) -> PaymentPage:
        return self._page(user_id=user_id, page=page, limit=limit)

    def history(self, *, user_id: Optional[int] = None, page: int = 1, limit: int = 10) -> PaymentPage:
        return self._page(user_id=user_id, page=page, limit=limit)

    def stats(self) -> PaymentStats:
        return self._payments.stats()


__all__ = ["PaymentService"]
