"""
User Model.

SQLAlchemy 2.0 ORM model for the local identity record.

Design:
    - Email is the identity key: unique, stored trimmed and lower-cased
    - Department / specialization are opaque references owned by remote
      services, so they are plain nullable columns (no foreign keys)
    - Role-specific data (patient, doctor, nurse profiles) lives in the
      remote profile services, not here
"""
from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Date,
    DateTime,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..db.session import Base
from .enums import NormalizedRole, UserStatus


class User(Base):
    """
    Identity record for a provisioned account.

    Attributes:
        id: Primary key, referenced by the auth and profile services
        email: Unique login identifier
        fullname: Display name
        role: Normalized role (ADMINISTRATOR, CLINICIAN, NURSE, PATIENT)
        status: ACTIVE, INACTIVE or PENDING
        credential_digest: bcrypt digest of the initial secret
        department_id: Optional reference into the departments service
        specialization_id: Optional reference into the specializations service
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        comment="Login email, trimmed and lower-cased",
    )
    fullname: Mapped[str] = mapped_column(String(200), nullable=False)

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=NormalizedRole.PATIENT.value,
        index=True,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserStatus.PENDING.value,
        index=True,
    )
    credential_digest: Mapped[str] = mapped_column(String(255), nullable=False)

    # Remote references
    department_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    specialization_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    license_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_users_role_status", "role", "status"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}', status='{self.status}')>"
