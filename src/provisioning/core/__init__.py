"""Core package - Configuration, exceptions, roles, and security helpers."""
from .config import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
