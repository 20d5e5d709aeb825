"""User Repository - Data access layer for identity records."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import UserAlreadyExistsError, UserNotFoundError, ValidationError
from ..core.roles import normalize_role
from ..models.enums import NormalizedRole, UserStatus
from ..models.user import User

log = structlog.get_logger(__name__)

_UPDATABLE_FIELDS = frozenset({
    "fullname",
    "role",
    "status",
    "credential_digest",
    "department_id",
    "specialization_id",
    "license_number",
    "phone",
    "date_of_birth",
})


def normalize_email(email: str) -> str:
    """Identity key form of an email address."""
    return email.strip().lower()


@dataclass(frozen=True)
class NewUser:
    """Fields required to create an identity record."""

    email: str
    fullname: str
    role: NormalizedRole
    credential_digest: str
    status: UserStatus = UserStatus.PENDING
    department_id: str | None = None
    specialization_id: str | None = None
    license_number: str | None = None
    phone: str | None = None
    date_of_birth: date | None = None


class IdentityStore(Protocol):
    """Operations the provisioning saga needs from the identity store."""

    async def exists(self, email: str) -> bool: ...

    async def create(self, fields: NewUser) -> User: ...

    async def update(self, user_id: int, **fields: Any) -> User: ...

    async def delete(self, user_id: int) -> bool: ...


class UserRepository:
    """SQLAlchemy-backed identity store. Every write commits immediately."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize with database session."""
        self.session = session

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    async def get_by_id(self, user_id: int) -> User | None:
        """Get user by ID."""
        query = select(User).where(User.id == user_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        """Get user by email address (case and whitespace insensitive)."""
        query = select(User).where(User.email == normalize_email(email))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def exists(self, email: str) -> bool:
        """Check whether an identity record already uses ``email``."""
        query = select(func.count(User.id)).where(User.email == normalize_email(email))
        result = await self.session.execute(query)
        return result.scalar_one() > 0

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        role: str | list[str] | None = None,
        status: str | None = None,
    ) -> Sequence[User]:
        """Get all users with optional filtering."""
        query = self._filtered(select(User), role=role, status=status)
        query = query.offset(skip).limit(limit).order_by(User.id)
        result = await self.session.execute(query)
        return result.scalars().all()

    async def count_all(
        self,
        role: str | list[str] | None = None,
        status: str | None = None,
    ) -> int:
        """Count total users matching the same filters as get_all."""
        query = self._filtered(select(func.count(User.id)), role=role, status=status)
        result = await self.session.execute(query)
        return result.scalar_one()

    # =========================================================================
    # CREATE OPERATIONS
    # =========================================================================

    async def create(self, fields: NewUser) -> User:
        """Create and commit a new identity record.

        Raises:
            ValidationError: email or fullname missing/malformed.
            UserAlreadyExistsError: the email is already registered.
        """
        email = normalize_email(fields.email or "")
        fullname = (fields.fullname or "").strip()
        self._validate_required(email, fullname)

        if await self.exists(email):
            raise UserAlreadyExistsError(email)

        user = User(
            email=email,
            fullname=fullname,
            role=fields.role.value,
            status=fields.status.value,
            credential_digest=fields.credential_digest,
            department_id=fields.department_id,
            specialization_id=fields.specialization_id,
            license_number=fields.license_number,
            phone=fields.phone,
            date_of_birth=fields.date_of_birth,
        )

        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError as exc:
            # Lost a race with another writer on the unique email index.
            await self.session.rollback()
            raise UserAlreadyExistsError(email) from exc
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        await self.session.refresh(user)

        log.info("user_created", user_id=user.id, role=user.role)
        return user

    # =========================================================================
    # UPDATE OPERATIONS
    # =========================================================================

    async def update(self, user_id: int, **fields: Any) -> User:
        """Apply a partial update in one commit.

        Enum values are stored by value. Unknown field names are rejected.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                message=f"Cannot update field(s): {', '.join(sorted(unknown))}",
            )

        user = await self.get_by_id(user_id)
        if not user:
            raise UserNotFoundError(user_id=user_id)

        for name, value in fields.items():
            if isinstance(value, (NormalizedRole, UserStatus)):
                value = value.value
            setattr(user, name, value)

        await self.session.commit()
        await self.session.refresh(user)

        log.info("user_updated", user_id=user_id, fields=sorted(fields))
        return user

    # =========================================================================
    # DELETE OPERATIONS
    # =========================================================================

    async def delete(self, user_id: int) -> bool:
        """Hard delete a user. Returns False when no such user exists."""
        user = await self.get_by_id(user_id)
        if not user:
            return False

        try:
            await self.session.delete(user)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            log.error("user_delete_failed", user_id=user_id)
            raise

        log.info("user_deleted", user_id=user_id)
        return True

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _validate_required(email: str, fullname: str) -> None:
        errors: list[dict[str, Any]] = []
        if not email:
            errors.append({"field": "email", "message": "Email is required"})
        elif "@" not in email:
            errors.append({"field": "email", "message": f"'{email}' is not a valid email"})
        if not fullname:
            errors.append({"field": "fullname", "message": "Full name is required"})
        if errors:
            raise ValidationError(message="Invalid identity fields", errors=errors)

    @staticmethod
    def _filtered(query: Any, *, role: str | list[str] | None, status: str | None) -> Any:
        if role:
            roles = role if isinstance(role, list) else [role]
            query = query.where(User.role.in_({_role_filter(r) for r in roles}))
        if status:
            query = query.where(User.status == status.strip().upper())
        return query


def _role_filter(value: str) -> str:
    """Canonical role for a filter value; accepts role names and free-text labels."""
    text = value.strip().upper()
    if text in NormalizedRole.__members__:
        return text
    return normalize_role(value).value
