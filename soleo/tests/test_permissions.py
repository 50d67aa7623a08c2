from types import SimpleNamespace

import pytest

from soleo.app.errors import ForbiddenError
from soleo.app.permissions import Action, Role, coerce_role, is_allowed, require_capability


@pytest.mark.parametrize(
    "action",
    [Action.HOLD_MEMBERSHIP, Action.PURCHASE_MEMBERSHIP, Action.TRACK_WORKOUTS],
)
def test_clients_hold_and_buy_memberships(action):
    assert is_allowed(Role.CLIENT, action)


@pytest.mark.parametrize(
    "action",
    [Action.ASSIGN_MEMBERSHIP, Action.MANAGE_PLANS, Action.VIEW_PAYMENT_STATS, Action.REGISTER_USERS],
)
def test_clients_cannot_administer(action):
    assert not is_allowed(Role.CLIENT, action)
    assert is_allowed(Role.ADMIN, action)


def test_admins_never_hold_or_purchase():
    assert not is_allowed(Role.ADMIN, Action.HOLD_MEMBERSHIP)
    assert not is_allowed(Role.ADMIN, Action.PURCHASE_MEMBERSHIP)


def test_role_strings_are_normalised():
    assert coerce_role(" admin ") is Role.ADMIN
    assert coerce_role("coach") is None
    assert coerce_role(None) is None
    assert not is_allowed("coach", Action.TRACK_WORKOUTS)


def test_require_capability_raises_forbidden():
    client = SimpleNamespace(id=1, role=Role.CLIENT)

    with pytest.raises(ForbiddenError) as excinfo:
        require_capability(client, Action.MANAGE_CATALOG)

    assert excinfo.value.status_code == 403
    assert excinfo.value.payload["action"] == Action.MANAGE_CATALOG.value
    require_capability(client, Action.TRACK_WORKOUTS)
