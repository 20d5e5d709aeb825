"""Models package - SQLAlchemy ORM models."""
from .enums import NormalizedRole, UserStatus
from .user import User

__all__ = [
    "NormalizedRole",
    "User",
    "UserStatus",
]
