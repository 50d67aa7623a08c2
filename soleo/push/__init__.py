"""Push notification delivery."""

from .providers import (
    DevPushProvider,
    FCMPushProvider,
    PushDeliveryError,
    PushProvider,
    create_push_provider,
)

__all__ = [
    "DevPushProvider",
    "FCMPushProvider",
    "PushDeliveryError",
    "PushProvider",
    "create_push_provider",
]
