"""Repositories package - Data access layer."""
from .user_repository import IdentityStore, NewUser, UserRepository

__all__ = [
    "IdentityStore",
    "NewUser",
    "UserRepository",
]
