"""Shared application context for reusable dependencies."""
from __future__ import annotations

from typing import Any, Callable, Optional

_database: Optional[Any] = None
_get_current_user: Optional[Callable[..., Any]] = None


def configure(
    *,
    database: Any,
    get_current_user: Callable[..., Any],
) -> None:
    """Register application-wide dependencies required by modular routers."""

    global _database
    global _get_current_user

    _database = database
    _get_current_user = get_current_user


def reset() -> None:
    global _database
    global _get_current_user

    _database = None
    _get_current_user = None


def _require(value: Optional[Any], name: str) -> Any:
    if value is None:
        raise RuntimeError(f"Application context has not been configured yet: {name}")
    return value


def get_database() -> Any:
    return _require(_database, "database")


def is_configured() -> bool:
    return _database is not None


def get_current_user(*args: Any, **kwargs: Any) -> Any:
    dependency = _require(_get_current_user, "get_current_user")
    return dependency(*args, **kwargs)
