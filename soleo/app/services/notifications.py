"""Fire-and-forget push notifications for members."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Mapping, Optional, Sequence

from ...config import get_settings
from ...push import PushDeliveryError, PushProvider, create_push_provider
from ..users import UserRecord

logger = logging.getLogger("notifications")

EXPIRY_ALERT_TITLE = "⚠️ Tu membresía está por expirar"
WORKOUT_REMINDER_TITLE = "🏋️ ¡Hora de entrenar!"
PAYMENT_COMPLETED_TITLE = "✅ Pago completado"


@lru_cache(maxsize=1)
def get_push_provider() -> PushProvider:
    provider = create_push_provider(get_settings().push)
    logger.info("Push provider configured", extra=provider.describe())
    return provider


def expiry_alert_body(name: str, plan_name: Optional[str], days_left: int) -> str:
    plan = plan_name or "Semilla"
    when = "hoy" if days_left <= 1 else f"en {days_left} días"
    return f'{name}, tu plan "{plan}" expira {when}. ¡Renuévala para seguir avanzando!'


def workout_reminder_body(name: str) -> str:
    return f"¡{name}, es tu momento! No rompas tu racha de hoy."


def payment_completed_body(plan_name: str, was_replaced: bool) -> str:
    if was_replaced:
        return f"Tu nueva membresía {plan_name} ha sido activada y reemplazó la anterior."
    return f"Tu membresía {plan_name} ha sido activada."


def notify_tokens(
    tokens: Sequence[str],
    title: str,
    body: str,
    *,
    data: Optional[Mapping[str, str]] = None,
    provider: Optional[PushProvider] = None,
) -> int:
    """Send a push message; delivery failures are logged and reported as zero."""

    if not tokens:
        return 0
    provider = provider or get_push_provider()
    try:
        return provider.send(tokens, title, body, data)
    except PushDeliveryError as exc:
        logger.warning(
            "Push delivery failed",
            extra={"push_title": title, "push_token_count": len(tokens), "error": str(exc)},
        )
        return 0
    except Exception:
        logger.exception(
            "Unexpected push delivery failure",
            extra={"push_title": title, "push_token_count": len(tokens)},
        )
        return 0


def notify_user(
    user: UserRecord,
    title: str,
    body: str,
    *,
    data: Optional[Mapping[str, str]] = None,
    provider: Optional[PushProvider] = None,
) -> int:
    sent = notify_tokens(user.fcm_tokens, title, body, data=data, provider=provider)
    logger.debug("Push notification dispatched", extra={"user_id": user.id, "push_sent": sent})
    return sent


__all__ = [
    "EXPIRY_ALERT_TITLE",
    "PAYMENT_COMPLETED_TITLE",
    "WORKOUT_REMINDER_TITLE",
    "expiry_alert_body",
    "get_push_provider",
    "notify_tokens",
    "notify_user",
    "payment_completed_body",
    "workout_reminder_body",
]
