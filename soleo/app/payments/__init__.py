"""Membership purchases through an external checkout gateway."""
from .gateway import PayPalGateway, PaymentGateway, SandboxGateway, create_payment_gateway
from .models import (
    CaptureOutcome,
    CheckoutSession,
    GatewayCapture,
    GatewayOrder,
    Payment,
    PaymentPage,
    PaymentStats,
    PaymentStatus,
    PlanRevenue,
)
from .repository import PaymentRepository, PostgresPaymentRepository
from .service import PaymentService

__all__ = [
    "CaptureOutcome",
    "CheckoutSession",
    "GatewayCapture",
    "GatewayOrder",
    "PayPalGateway",
    "Payment",
    "PaymentGateway",
    "PaymentPage",
    "PaymentRepository",
    "PaymentService",
    "PaymentStats",
    "PaymentStatus",
    "PlanRevenue",
    "PostgresPaymentRepository",
    "SandboxGateway",
    "create_payment_gateway",
]
