from datetime import timedelta

import pytest

import soleo.main as soleo_main
from soleo.app.errors import ForbiddenError, UnauthorizedError
from soleo.app.permissions import Role
from soleo.app.users import UserRecord, UserStatus


def _user(**overrides) -> UserRecord:
    values = {"id": 123, "name": "Ana", "email": "ana@example.com", "role": Role.CLIENT}
    values.update(overrides)
    return UserRecord(**values)


def test_get_current_user_invalid_token_is_unauthorized():
    with pytest.raises(UnauthorizedError):
        soleo_main.get_current_user("Bearer not-a-valid-token")


def test_get_current_user_expired_token_is_unauthorized(monkeypatch):
    expired_token = soleo_main.create_access_token(
        subject="42", role="CLIENT", expires_delta=timedelta(minutes=-5)
    )

    def _unexpected_get_user_by_id(_uid: int):
        raise AssertionError("get_user_by_id should not be called for expired tokens")

    monkeypatch.setattr(soleo_main, "get_user_by_id", _unexpected_get_user_by_id)

    with pytest.raises(UnauthorizedError):
        soleo_main.get_current_user(f"Bearer {expired_token}")


def test_get_current_user_valid_token_returns_user(monkeypatch):
    user = _user()
    monkeypatch.setattr(soleo_main, "get_user_by_id", lambda uid: user if uid == 123 else None)

    token = soleo_main.create_access_token(subject=str(user.id), role=user.role.value)

    assert soleo_main.get_current_user(f"Bearer {token}") is user
    assert soleo_main.get_current_user(f"bearer   {token}") is user


def test_get_current_user_requires_bearer_scheme():
    token = soleo_main.create_access_token(subject="123", role="CLIENT")

    with pytest.raises(UnauthorizedError):
        soleo_main.get_current_user(None)
    with pytest.raises(UnauthorizedError):
        soleo_main.get_current_user(f"Token {token}")


def test_get_current_user_unknown_subject(monkeypatch):
    monkeypatch.setattr(soleo_main, "get_user_by_id", lambda uid: None)
    token = soleo_main.create_access_token(subject="999", role="CLIENT")

    with pytest.raises(UnauthorizedError):
        soleo_main.get_current_user(f"Bearer {token}")


def test_get_current_user_rejects_inactive_accounts(monkeypatch):
    user = _user(status=UserStatus.SUSPENDED)
    monkeypatch.setattr(soleo_main, "get_user_by_id", lambda uid: user)
    token = soleo_main.create_access_token(subject=str(user.id), role=user.role.value)

    with pytest.raises(ForbiddenError):
        soleo_main.get_current_user(f"Bearer {token}")


def test_access_token_carries_role_claim():
    token = soleo_main.create_access_token(subject="7", role="ADMIN")
    payload = soleo_main.jwt.decode(
        token,
        soleo_main.settings.auth.jwt_secret_key,
        algorithms=[soleo_main.settings.auth.jwt_algorithm],
    )

    assert payload["sub"] == "7"
    assert payload["role"] == "ADMIN"
