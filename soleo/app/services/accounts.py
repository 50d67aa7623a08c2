"""Application wiring for the account service."""
from __future__ import annotations

from functools import lru_cache

from ..users import AccountService, PostgresUserRepository
from .memberships import get_entitlement_service


@lru_cache(maxsize=1)
def get_user_repository() -> PostgresUserRepository:
    return PostgresUserRepository()


@lru_cache(maxsize=1)
def get_account_service() -> AccountService:
    return AccountService(users=get_user_repository(), entitlements=get_entitlement_service())


__all__ = ["get_account_service", "get_user_repository"]
