"""Account lifecycle: registration, login and profile management."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from passlib.hash import bcrypt

from ..errors import (
    ApiError,
    ConfigurationError,
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from ..memberships import EntitlementService
from ..permissions import Role
from .models import ProfileUpdate, UserRecord, UserStatus
from .repository import UserRepository

logger = logging.getLogger("accounts")


@dataclass
class AccountService:
    users: UserRepository
    entitlements: EntitlementService
    hasher: Any = field(default=bcrypt)

    def register(self, *, name: str, email: str, password: str) -> UserRecord:
        """Create a client account holding the trial membership.

        The trial plan must exist before anything is written; a missing plan
        is a deployment problem and leaves no half-created user behind.
        """

        if self.entitlements.find_trial_plan() is None:
            logger.error("Registration refused: no active trial membership is configured")
            raise ConfigurationError("No active trial membership is configured")

        user = self._create(name=name, email=email, password=password, role=Role.CLIENT)
        try:
            self.entitlements.assign_default(user.id)
        except ApiError:
            logger.exception("Trial membership assignment failed", extra={"user_id": user.id})
        else:
            refreshed = self.users.get_user(user.id)
            if refreshed is not None:
                user = refreshed
        logger.info("User registered", extra={"user_id": user.id})
        return user

    def register_user(self, *, name: str, email: str, password: str, role: Role) -> UserRecord:
        """Admin provisioning path; no plan is assigned."""

        user = self._create(name=name, email=email, password=password, role=role)
        logger.info("User provisioned", extra={"user_id": user.id, "role": role.value})
        return user

    def _create(self, *, name: str, email: str, password: str, role: Role) -> UserRecord:
        normalized_email = email.strip().lower()
        if not name.strip():
            raise ValidationError("name is required")
        if self.users.get_user_by_email(normalized_email) is not None:
            raise ConflictError("Email already registered", detail={"email": normalized_email})
        return self.users.create_user(
            name=name.strip(),
            email=normalized_email,
            password_hash=self.hasher.hash(password),
            role=role,
        )

    def authenticate(self, *, email: str, password: str) -> UserRecord:
        credentials = self.users.get_credentials(email.strip().lower())
        if credentials is None:
            raise UnauthorizedError("Invalid credentials")
        user, password_hash = credentials
        if not password_hash or not self.hasher.verify(password, password_hash):
            raise UnauthorizedError("Invalid credentials")
        if not user.is_active:
            raise ForbiddenError("Account is not active", detail={"status": user.status.value})
        return user

    def get_user(self, user_id: int) -> UserRecord:
        user = self.users.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found", detail={"userId": user_id})
        return user

    def update_profile(self, user_id: int, update: ProfileUpdate) -> UserRecord:
        current = self.get_user(user_id)
        changes: Dict[str, Any] = update.model_dump(
            exclude_none=True,
            exclude={"password", "current_password"},
        )

        new_email = changes.get("email")
        if new_email is not None:
            new_email = str(new_email).strip().lower()
            changes["email"] = new_email
            if new_email != current.email.lower():
                clash = self.users.get_user_by_email(new_email)
                if clash is not None and clash.id != user_id:
                    raise ConflictError("Email already registered", detail={"email": new_email})

        if update.password is not None:
            if not update.current_password:
                raise ValidationError("currentPassword is required to change the password")
            stored = self.users.get_password_hash(user_id)
            if not stored or not self.hasher.verify(update.current_password, stored):
                raise UnauthorizedError("Current password is incorrect")
            self.users.set_password_hash(user_id, self.hasher.hash(update.password))
            logger.info("Password changed", extra={"user_id": user_id})

        updated = self.users.update_profile(user_id, changes) if changes else current
        if updated is None:
            raise NotFoundError("User not found", detail={"userId": user_id})
        return updated

    def add_fcm_token(self, user_id: int, token: str) -> UserRecord:
        cleaned = token.strip()
        if not cleaned:
            raise ValidationError("token is required")
        updated = self.users.add_fcm_token(user_id, cleaned)
        if updated is None:
            raise NotFoundError("User not found", detail={"userId": user_id})
        return updated

    def list_users(self, *, role: Optional[Role] = None) -> List[UserRecord]:
        return list(self.users.list_users(role=role))

    def set_status(self, user_id: int, status: UserStatus) -> UserRecord:
        updated = self.users.set_status(user_id, status)
        if updated is None:
            raise NotFoundError("User not found", detail={"userId": user_id})
        logger.info("User status changed", extra={"user_id": user_id, "status": status.value})
        return updated

    def delete_account(self, user_id: int) -> None:
        if not self.users.delete_user(user_id):
            raise NotFoundError("User not found", detail={"userId": user_id})
        logger.info("Account deleted by owner", extra={"user_id": user_id})

    def delete_user(self, *, actor_id: int, user_id: int) -> None:
        if actor_id == user_id:
            raise InvalidStateError("Administrators cannot delete their own account here")
        if not self.users.delete_user(user_id):
            raise NotFoundError("User not found", detail={"userId": user_id})
        logger.info("User deleted", extra={"user_id": user_id, "actor_id": actor_id})


__all__ = ["AccountService"]
