"""Checkout gateway implementations used by the payment service."""
from __future__ import annotations

import base64
import http.client
import json
import logging
from typing import Any, Dict, Mapping, Optional
from urllib import error as urllib_error
from urllib import parse as urllib_parse
from urllib import request as urllib_request
from uuid import uuid4

from ...config import PaymentConfig
from ..errors import ConfigurationError, UpstreamError
from .models import GatewayCapture, GatewayOrder

logger = logging.getLogger(__name__)

ORDER_DESCRIPTION = "Membresía SÓLEO"


class PaymentGateway:
    """Base gateway for creating and capturing checkout orders."""

    name = "base"

    def __init__(self, config: PaymentConfig) -> None:
        self.config = config

    def create_order(self, *, amount: float, reference: str) -> GatewayOrder:
        raise NotImplementedError

    def capture_order(self, order_id: str) -> GatewayCapture:
        raise NotImplementedError

    def describe(self) -> Dict[str, str]:
        return {"payment_gateway": self.name, "payment_currency": self.config.currency}


class SandboxGateway(PaymentGateway):
    """Local gateway that approves every order without network access."""

    name = "sandbox"

    def create_order(self, *, amount: float, reference: str) -> GatewayOrder:
        order_id = f"SANDBOX-{uuid4().hex[:17].upper()}"
        logger.info(
            "Sandbox order created",
            extra={"order_id": order_id, "payment_reference": reference, "amount": amount},
        )
        query = urllib_parse.urlencode({"token": order_id})
        return GatewayOrder(
            order_id=order_id,
            approval_url=f"{self.config.return_url}?{query}",
            status="CREATED",
        )

    def capture_order(self, order_id: str) -> GatewayCapture:
        capture_id = f"CAPTURE-{uuid4().hex[:17].upper()}"
        logger.info("Sandbox order captured", extra={"order_id": order_id, "capture_id": capture_id})
        return GatewayCapture(order_id=order_id, capture_id=capture_id, status="COMPLETED")


class PayPalGateway(PaymentGateway):
    """PayPal orders v2 integration over plain HTTP."""

    name = "paypal"

    def _credentials(self) -> str:
        if not self.config.client_id or not self.config.client_secret:
            raise ConfigurationError("PayPal credentials are not configured")
        raw = f"{self.config.client_id}:{self.config.client_secret}".encode("utf-8")
        return base64.b64encode(raw).decode("ascii")

    def _send(
        self,
        path: str,
        *,
        data: bytes,
        headers: Mapping[str, str],
        failure_message: str,
    ) -> Dict[str, Any]:
        url = f"{self.config.api_base_url.rstrip('/')}{path}"
        req = urllib_request.Request(url, data=data, headers=dict(headers), method="POST")
        try:
            with urllib_request.urlopen(req, timeout=self.config.timeout_seconds) as response:
                body = response.read()
            return json.loads(body.decode("utf-8") or "{}")
        except urllib_error.HTTPError as exc:
            reason = _error_reason(exc)
            logger.warning(
                failure_message,
                extra={"gateway_path": path, "gateway_status": exc.code, "error": reason},
            )
            raise UpstreamError(f"{failure_message}: {reason}") from exc
        except (OSError, http.client.HTTPException, json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning(failure_message, extra={"gateway_path": path, "error": str(exc)})
            raise UpstreamError(f"{failure_message}: {exc}") from exc

    def _access_token(self) -> str:
        payload = self._send(
            "/v1/oauth2/token",
            data=urllib_parse.urlencode({"grant_type": "client_credentials"}).encode("utf-8"),
            headers={
                "Authorization": f"Basic {self._credentials()}",
                "Content-Type": "application/x-www-form-urlencoded",
            },
            failure_message="Could not authenticate with PayPal",
        )
        token = payload.get("access_token")
        if not token:
            raise UpstreamError("Could not authenticate with PayPal: missing access token")
        return str(token)

    def create_order(self, *, amount: float, reference: str) -> GatewayOrder:
        order = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "amount": {"currency_code": self.config.currency, "value": f"{amount:.2f}"},
                    "custom_id": reference,
                    "description": ORDER_DESCRIPTION,
                }
            ],
            "application_context": {
                "brand_name": self.config.brand_name,
                "landing_page": "LOGIN",
                "user_action": "PAY_NOW",
                "return_url": self.config.return_url,
                "cancel_url": self.config.cancel_url,
            },
        }
        payload = self._send(
            "/v2/checkout/orders",
            data=json.dumps(order).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self._access_token()}",
                "Content-Type": "application/json",
                "Prefer": "return=representation",
            },
            failure_message="PayPal order creation failed",
        )
        order_id = payload.get("id")
        approval_url = _find_link(payload, "approve")
        if not order_id or not approval_url:
            raise UpstreamError("PayPal did not return an approval link")
        logger.info("PayPal order created", extra={"order_id": order_id, "payment_reference": reference})
        return GatewayOrder(order_id=str(order_id), approval_url=approval_url, status=payload.get("status"))

    def capture_order(self, order_id: str) -> GatewayCapture:
        payload = self._send(
            f"/v2/checkout/orders/{urllib_parse.quote(order_id, safe='')}/capture",
            data=b"{}",
            headers={
                "Authorization": f"Bearer {self._access_token()}",
                "Content-Type": "application/json",
            },
            failure_message="PayPal capture failed",
        )
        capture_id = _first_capture_id(payload) or str(payload.get("id") or order_id)
        logger.info("PayPal order captured", extra={"order_id": order_id, "capture_id": capture_id})
        return GatewayCapture(
            order_id=order_id,
            capture_id=capture_id,
            status=payload.get("status"),
            raw=payload,
        )


def _error_reason(exc: urllib_error.HTTPError) -> str:
    try:
        body = json.loads(exc.read().decode("utf-8") or "{}")
    except (json.JSONDecodeError, UnicodeDecodeError, OSError):
        return str(exc.reason)
    return str(body.get("message") or body.get("error_description") or exc.reason)


def _find_link(payload: Mapping[str, Any], rel: str) -> Optional[str]:
    for link in payload.get("links") or []:
        if link.get("rel") == rel and link.get("href"):
            return str(link["href"])
    return None


def _first_capture_id(payload: Mapping[str, Any]) -> Optional[str]:
    for unit in payload.get("purchase_units") or []:
        captures = (unit.get("payments") or {}).get("captures") or []
        if captures and captures[0].get("id"):
            return str(captures[0]["id"])
    return None


def create_payment_gateway(config: PaymentConfig) -> PaymentGateway:
    provider = (config.provider_name or "sandbox").strip().lower()
    if provider == "paypal":
        return PayPalGateway(config)
    return SandboxGateway(config)


__all__ = [
    "PayPalGateway",
    "PaymentGateway",
    "SandboxGateway",
    "create_payment_gateway",
]
