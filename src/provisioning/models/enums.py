"""Shared Enums for the application.

Defines enum types used across models and schemas.
"""
from enum import Enum


class NormalizedRole(str, Enum):
    """Canonical role derived from free-text role input.

    Attributes:
        ADMINISTRATOR: Back-office staff; has no role-specific profile
        CLINICIAN: Doctor; provisioned in the doctors service
        NURSE: Nurse; provisioned in the nurses service
        PATIENT: Patient; provisioned in the patients service (default)
    """
    ADMINISTRATOR = "ADMINISTRATOR"
    CLINICIAN = "CLINICIAN"
    NURSE = "NURSE"
    PATIENT = "PATIENT"

    @classmethod
    def default(cls) -> "NormalizedRole":
        """Return the role assigned when nothing else matches."""
        return cls.PATIENT

    @property
    def has_profile(self) -> bool:
        """Whether accounts with this role get a role-specific profile."""
        return self is not NormalizedRole.ADMINISTRATOR


class UserStatus(str, Enum):
    """Lifecycle status of an identity record."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    PENDING = "PENDING"

    @classmethod
    def default(cls) -> "UserStatus":
        """Return the status for new bulk-provisioned users."""
        return cls.PENDING

    @classmethod
    def parse(cls, value: str | None) -> "UserStatus":
        """Map free-text status to a member, falling back to the default."""
        if not value:
            return cls.default()
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.default()
