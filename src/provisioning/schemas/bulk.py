"""
Bulk Provisioning Schemas.

``BulkUserRow`` is one decoded input record; the response models describe
the batch summary returned to the caller.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d")


# =============================================================================
# INPUT ROW
# =============================================================================

class BulkUserRow(BaseModel):
    """One person record from a bulk file.

    All fields are raw optional strings. Blank cells are treated as absent.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    email: str | None = None
    fullname: str | None = Field(
        default=None,
        validation_alias=AliasChoices("fullname", "full_name", "name"),
    )
    role: str | None = None
    password: str | None = Field(
        default=None,
        validation_alias=AliasChoices("password", "current_password", "temp_password"),
    )
    department: str | None = None
    specialization: str | None = None
    license_number: str | None = None
    phone: str | None = None
    date_of_birth: str | None = None
    shift: str | None = None
    gender: str | None = None
    address: str | None = None
    document_number: str | None = Field(
        default=None,
        validation_alias=AliasChoices("document_number", "identification"),
    )
    status: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Collapse empty cells to None and coerce numbers to text."""
        if v is None:
            return None
        if isinstance(v, (int, float)):
            v = str(v)
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def normalized_email(self) -> str | None:
        """Email as stored in the identity record."""
        return self.email.strip().lower() if self.email else None

    @property
    def birth_date(self) -> date | None:
        """Parsed date of birth, or None when absent or unparseable."""
        if not self.date_of_birth:
            return None
        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(self.date_of_birth, fmt).date()
            except ValueError:
                continue
        return None

    def age(self, today: date | None = None) -> int | None:
        """Age in whole years on ``today``."""
        born = self.birth_date
        if born is None:
            return None
        today = today or date.today()
        years = today.year - born.year - ((today.month, today.day) < (born.month, born.day))
        return max(years, 0)


class BulkProvisionRequest(BaseModel):
    """JSON body for provisioning a batch without a file upload."""

    rows: list[BulkUserRow] = Field(default_factory=list)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class BatchErrorResponse(BaseModel):
    """One entry of the batch error list."""

    model_config = ConfigDict(from_attributes=True)

    email: str | None
    stage: str
    message: str


class BulkProvisionResponse(BaseModel):
    """Summary of a bulk provisioning run."""

    model_config = ConfigDict(from_attributes=True)

    message: str = "Bulk provisioning completed"
    total: int
    users: int
    auth: int
    patients: int
    doctors: int
    nurses: int
    duplicates: int
    invalid: int
    orphaned: int
    errors: list[BatchErrorResponse]
