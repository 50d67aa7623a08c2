from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

import pytest

from soleo.app.errors import (
    ConfigurationError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from soleo.app.memberships import MembershipPlan
from soleo.app.permissions import Role
from soleo.app.users import AccountService, ProfileUpdate, UserRecord, UserStatus


class PlainHasher:
    @staticmethod
    def hash(password: str) -> str:
        return f"hashed:{password}"

    @staticmethod
    def verify(password: str, password_hash: str) -> bool:
        return password_hash == f"hashed:{password}"


class FakeUserRepository:
    def __init__(self) -> None:
        self.users: Dict[int, UserRecord] = {}
        self.hashes: Dict[int, str] = {}
        self._next_id = 1

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        return self.users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.email == email:
                return user
        return None

    def get_credentials(self, email: str) -> Optional[Tuple[UserRecord, str]]:
        user = self.get_user_by_email(email)
        if user is None:
            return None
        return user, self.hashes[user.id]

    def get_password_hash(self, user_id: int) -> Optional[str]:
        return self.hashes.get(user_id)

    def create_user(self, *, name: str, email: str, password_hash: str, role: Role) -> UserRecord:
        user = UserRecord(id=self._next_id, name=name, email=email, role=role)
        self.users[user.id] = user
        self.hashes[user.id] = password_hash
        self._next_id += 1
        return user

    def update_profile(self, user_id: int, changes: Mapping[str, Any]) -> Optional[UserRecord]:
        user = self.users.get(user_id)
        if user is None:
            return None
        self.users[user_id] = user.model_copy(update=dict(changes))
        return self.users[user_id]

    def set_password_hash(self, user_id: int, password_hash: str) -> None:
        self.hashes[user_id] = password_hash

    def add_fcm_token(self, user_id: int, token: str) -> Optional[UserRecord]:
        user = self.users.get(user_id)
        if user is None:
            return None
        tokens = list(user.fcm_tokens)
        if token not in tokens:
            tokens.append(token)
        self.users[user_id] = user.model_copy(update={"fcm_tokens": tokens})
        return self.users[user_id]

    def list_users(self, *, role: Optional[Role] = None) -> List[UserRecord]:
        return [user for user in self.users.values() if role is None or user.role is role]

    def set_status(self, user_id: int, status: UserStatus) -> Optional[UserRecord]:
        return self.update_profile(user_id, {"status": status})

    def delete_user(self, user_id: int) -> bool:
        return self.users.pop(user_id, None) is not None


class StubEntitlements:
    def __init__(self, users: FakeUserRepository, trial: Optional[MembershipPlan]) -> None:
        self._users = users
        self.trial = trial
        self.assigned: List[int] = []

    def find_trial_plan(self) -> Optional[MembershipPlan]:
        return self.trial

    def assign_default(self, user_id: int) -> None:
        self.assigned.append(user_id)
        self._users.update_profile(user_id, {"current_membership_id": self.trial.id})


TRIAL = MembershipPlan(id=1, name="SEMILLA", price=0, duration_days=365, is_trial=True)


@pytest.fixture
def users() -> FakeUserRepository:
    return FakeUserRepository()


@pytest.fixture
def service(users) -> AccountService:
    return AccountService(users=users, entitlements=StubEntitlements(users, TRIAL), hasher=PlainHasher())


def test_register_assigns_trial_membership(service):
    user = service.register(name=" Ana ", email="Ana@Example.com", password="secret1")

    assert user.name == "Ana"
    assert user.email == "ana@example.com"
    assert user.role is Role.CLIENT
    assert user.current_membership_id == TRIAL.id
    assert service.entitlements.assigned == [user.id]


def test_register_without_trial_plan_writes_nothing(users):
    service = AccountService(users=users, entitlements=StubEntitlements(users, None), hasher=PlainHasher())

    with pytest.raises(ConfigurationError):
        service.register(name="Ana", email="ana@example.com", password="secret1")
    assert users.users == {}


def test_register_rejects_duplicate_email(service):
    service.register(name="Ana", email="ana@example.com", password="secret1")

    with pytest.raises(ConflictError):
        service.register(name="Otra", email="ANA@example.com", password="secret2")


def test_register_user_by_admin_skips_membership(service):
    admin = service.register_user(name="Root", email="root@example.com", password="secret1", role=Role.ADMIN)

    assert admin.role is Role.ADMIN
    assert admin.current_membership_id is None
    assert service.entitlements.assigned == []


def test_authenticate_checks_password_and_status(service, users):
    user = service.register(name="Ana", email="ana@example.com", password="secret1")

    assert service.authenticate(email=" ANA@example.com", password="secret1").id == user.id
    with pytest.raises(UnauthorizedError):
        service.authenticate(email="ana@example.com", password="wrong")
    with pytest.raises(UnauthorizedError):
        service.authenticate(email="nobody@example.com", password="secret1")

    users.set_status(user.id, UserStatus.SUSPENDED)
    with pytest.raises(ForbiddenError):
        service.authenticate(email="ana@example.com", password="secret1")


def test_update_profile_changes_password_with_current_password(service, users):
    user = service.register(name="Ana", email="ana@example.com", password="secret1")

    with pytest.raises(ValidationError):
        service.update_profile(user.id, ProfileUpdate(password="newpass1"))
    with pytest.raises(UnauthorizedError):
        service.update_profile(user.id, ProfileUpdate(password="newpass1", currentPassword="nope"))

    updated = service.update_profile(
        user.id,
        ProfileUpdate(password="newpass1", currentPassword="secret1", exerciseTime="07:30", weight=70.5),
    )

    assert users.hashes[user.id] == "hashed:newpass1"
    assert updated.exercise_time == "07:30"
    assert updated.weight == 70.5


def test_update_profile_rejects_taken_email(service):
    service.register(name="Ana", email="ana@example.com", password="secret1")
    bea = service.register(name="Bea", email="bea@example.com", password="secret1")

    with pytest.raises(ConflictError):
        service.update_profile(bea.id, ProfileUpdate(email="ana@example.com"))


def test_profile_update_validates_exercise_time():
    with pytest.raises(ValueError):
        ProfileUpdate(exerciseTime="25:00")
    assert ProfileUpdate(exerciseTime=" ").exercise_time is None


def test_add_fcm_token_deduplicates(service):
    user = service.register(name="Ana", email="ana@example.com", password="secret1")

    service.add_fcm_token(user.id, " token-1 ")
    updated = service.add_fcm_token(user.id, "token-1")

    assert updated.fcm_tokens == ["token-1"]
    with pytest.raises(ValidationError):
        service.add_fcm_token(user.id, "  ")


def test_admin_cannot_delete_self(service):
    admin = service.register_user(name="Root", email="root@example.com", password="secret1", role=Role.ADMIN)
    client = service.register(name="Ana", email="ana@example.com", password="secret1")

    with pytest.raises(InvalidStateError):
        service.delete_user(actor_id=admin.id, user_id=admin.id)

    service.delete_user(actor_id=admin.id, user_id=client.id)
    with pytest.raises(NotFoundError):
        service.get_user(client.id)
