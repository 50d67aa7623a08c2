"""Push notification provider implementations used by the application."""
from __future__ import annotations

import http.client
import json
import logging
from typing import Dict, Mapping, Optional, Sequence
from urllib import request as urllib_request

from ..config import PushConfig

logger = logging.getLogger(__name__)


class PushDeliveryError(RuntimeError):
    """Raised when a provider could not hand a message to its backend."""


class PushProvider:
    """Base provider for outbound push delivery."""

    name = "base"

    def send(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Optional[Mapping[str, str]] = None,
    ) -> int:
        """Deliver one message to every device token, returning the accepted count."""

        raise NotImplementedError

    def describe(self) -> Dict[str, str]:
        return {"push_provider": self.name}


class DevPushProvider(PushProvider):
    """Development provider that logs messages instead of sending them."""

    name = "dev"

    def send(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Optional[Mapping[str, str]] = None,
    ) -> int:  # pragma: no cover - trivial logging
        logger.info(
            "Dev push dispatch",
            extra={"push_title": title, "push_body": body, "push_token_count": len(tokens)},
        )
        return len(tokens)


class FCMPushProvider(PushProvider):
    """Firebase Cloud Messaging over its HTTP endpoint."""

    name = "fcm"
    batch_size = 500

    def __init__(self, *, endpoint: str, server_key: str, timeout_seconds: float) -> None:
        self.endpoint = endpoint
        self.server_key = server_key
        self.timeout_seconds = timeout_seconds

    def _post(self, payload: Mapping[str, object]) -> Dict[str, object]:
        req = urllib_request.Request(
            self.endpoint,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "Authorization": f"key={self.server_key}",
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as response:
                raw = response.read()
            return json.loads(raw.decode("utf-8") or "{}")
        except (OSError, http.client.HTTPException, json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise PushDeliveryError(str(exc)) from exc

    def send(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Optional[Mapping[str, str]] = None,
    ) -> int:
        unique = list(dict.fromkeys(token for token in tokens if token))
        accepted = 0
        for start in range(0, len(unique), self.batch_size):
            batch = unique[start:start + self.batch_size]
            result = self._post(
                {
                    "registration_ids": batch,
                    "notification": {"title": title, "body": body},
                    "data": dict(data or {}),
                }
            )
            accepted += int(result.get("success") or 0)
        return accepted


def create_push_provider(config: PushConfig) -> PushProvider:
    provider = (config.provider_name or "dev").strip().lower()
    if provider == "fcm" and config.fcm_server_key:
        return FCMPushProvider(
            endpoint=config.fcm_endpoint,
            server_key=config.fcm_server_key,
            timeout_seconds=config.timeout_seconds,
        )
    if provider == "fcm":
        logger.warning("FCM selected without a server key; falling back to dev push provider")
    return DevPushProvider()


__all__ = [
    "DevPushProvider",
    "FCMPushProvider",
    "PushDeliveryError",
    "PushProvider",
    "create_push_provider",
]
