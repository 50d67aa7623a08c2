"""Application wiring for the checkout flow."""
from __future__ import annotations

import logging
from functools import lru_cache

from ...config import get_settings
from ..memberships import PostgresPlanRepository
from ..payments import PaymentGateway, PaymentService, PostgresPaymentRepository, create_payment_gateway
from .memberships import get_entitlement_service

logger = logging.getLogger("payments")


@lru_cache(maxsize=1)
def get_payment_gateway() -> PaymentGateway:
    gateway = create_payment_gateway(get_settings().payments)
    logger.info("Payment gateway configured", extra=gateway.describe())
    return gateway


@lru_cache(maxsize=1)
def get_payment_service() -> PaymentService:
    return PaymentService(
        payments=PostgresPaymentRepository(),
        plans=PostgresPlanRepository(),
        entitlements=get_entitlement_service(),
        gateway=get_payment_gateway(),
    )


__all__ = ["get_payment_gateway", "get_payment_service"]
