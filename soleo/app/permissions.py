"""Role based capability policy.

Every handler that needs a role decision asks :func:`is_allowed` (or
:func:`require_capability`, which raises) instead of comparing role strings.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Union

from .errors import ForbiddenError


class Role(str, Enum):
    CLIENT = "CLIENT"
    ADMIN = "ADMIN"


class Action(str, Enum):
    """Capabilities checked by route handlers and services."""

    HOLD_MEMBERSHIP = "membership.hold"
    VIEW_OWN_MEMBERSHIP = "membership.view_own"
    PURCHASE_MEMBERSHIP = "membership.purchase"
    ASSIGN_MEMBERSHIP = "membership.assign"
    VIEW_CLIENT_HISTORY = "membership.view_client_history"
    MANAGE_PLANS = "plans.manage"
    MANAGE_CATALOG = "catalog.manage"
    TRACK_WORKOUTS = "workouts.track"
    MANAGE_USERS = "users.manage"
    REGISTER_USERS = "users.register"
    VIEW_PAYMENT_HISTORY = "payments.view_all"
    VIEW_PAYMENT_STATS = "payments.stats"


_CLIENT_ACTIONS: FrozenSet[Action] = frozenset(
    {
        Action.HOLD_MEMBERSHIP,
        Action.VIEW_OWN_MEMBERSHIP,
        Action.PURCHASE_MEMBERSHIP,
        Action.TRACK_WORKOUTS,
    }
)

_ADMIN_ACTIONS: FrozenSet[Action] = frozenset(
    {
        Action.VIEW_OWN_MEMBERSHIP,
        Action.ASSIGN_MEMBERSHIP,
        Action.VIEW_CLIENT_HISTORY,
        Action.MANAGE_PLANS,
        Action.MANAGE_CATALOG,
        Action.TRACK_WORKOUTS,
        Action.MANAGE_USERS,
        Action.REGISTER_USERS,
        Action.VIEW_PAYMENT_HISTORY,
        Action.VIEW_PAYMENT_STATS,
    }
)

# Administrative accounts never hold a plan themselves.
_POLICY: Dict[Role, FrozenSet[Action]] = {
    Role.CLIENT: _CLIENT_ACTIONS,
    Role.ADMIN: _ADMIN_ACTIONS,
}


def coerce_role(value: Union[Role, str, None]) -> Optional[Role]:
    if isinstance(value, Role):
        return value
    if not value:
        return None
    try:
        return Role(str(value).strip().upper())
    except ValueError:
        return None


def is_allowed(role: Union[Role, str, None], action: Action) -> bool:
    resolved = coerce_role(role)
    if resolved is None:
        return False
    return action in _POLICY.get(resolved, frozenset())


def require_capability(user: Any, action: Action) -> None:
    """Raise :class:`ForbiddenError` unless ``user`` may perform ``action``."""

    role = getattr(user, "role", None)
    if not is_allowed(role, action):
        raise ForbiddenError(
            "You do not have permission to perform this action",
            detail={"action": action.value},
        )


__all__ = ["Action", "Role", "coerce_role", "is_allowed", "require_capability"]
