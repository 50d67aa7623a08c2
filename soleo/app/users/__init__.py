"""User accounts and profiles."""
from .models import ProfileUpdate, UserRecord, UserStatus, validate_exercise_time
from .repository import PostgresUserRepository, UserRepository
from .service import AccountService

__all__ = [
    "AccountService",
    "PostgresUserRepository",
    "ProfileUpdate",
    "UserRecord",
    "UserRepository",
    "UserStatus",
    "validate_exercise_time",
]
