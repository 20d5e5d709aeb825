"""
User Schemas.

Pydantic models for reading identity records.
"""
from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class UserResponse(BaseModel):
    """Schema for identity record responses (never exposes the digest)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    fullname: str
    role: str
    status: str
    department_id: str | None = None
    specialization_id: str | None = None
    license_number: str | None = None
    phone: str | None = None
    date_of_birth: date | None = None
    created_at: datetime
    updated_at: datetime | None = None


class UserListResponse(BaseModel):
    """Schema for paginated user list responses."""

    success: bool = True
    users: list[UserResponse]
    total: int = Field(description="Total users matching the filters")
    skip: int
    limit: int
