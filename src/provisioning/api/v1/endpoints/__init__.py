"""API v1 endpoints package."""

from . import health, users

__all__ = [
	"health",
	"users",
]
