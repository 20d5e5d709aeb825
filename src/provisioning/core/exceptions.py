"""
Custom Exception Classes.

Provides a hierarchy of domain-specific exceptions that are automatically
converted to appropriate HTTP responses by the global exception handler.
"""

from typing import Any


class AppException(Exception):
    """
    Base exception for all application-specific errors.

    All custom exceptions should inherit from this class.
    The global exception handler converts these to HTTP responses.
    """

    def __init__(
        self,
        message: str,
        error_code: str = "APP_ERROR",
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            }
        }

# ============================================
# 4xx Client Errors
# ============================================

class BadRequestError(AppException):
    """Invalid request data or parameters (400)."""

    def __init__(
        self,
        message: str = "Invalid request",
        error_code: str = "BAD_REQUEST",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=400,
            details=details,
        )

class NotFoundError(AppException):
    """Resource not found (404)."""

    def __init__(
        self,
        message: str = "Resource not found",
        error_code: str = "NOT_FOUND",
        resource_type: str | None = None,
        resource_id: str | int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=404,
            details=details,
        )

class ConflictError(AppException):
    """Resource conflict, e.g., duplicate entry (409)."""

    def __init__(
        self,
        message: str = "Resource conflict",
        error_code: str = "CONFLICT",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=409,
            details=details,
        )

class PayloadTooLargeError(AppException):
    """Uploaded payload exceeds the configured limits (413)."""

    def __init__(
        self,
        message: str = "Payload too large",
        error_code: str = "PAYLOAD_TOO_LARGE",
        limit: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if limit is not None:
            details["limit"] = limit
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=413,
            details=details,
        )

class ValidationError(AppException):
    """Data validation failed (422)."""

    def __init__(
        self,
        message: str = "Validation failed",
        error_code: str = "VALIDATION_ERROR",
        errors: list[dict[str, Any]] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if errors:
            details["validation_errors"] = errors
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=422,
            details=details,
        )

# ============================================
# 5xx Server Errors
# ============================================

class ExternalServiceError(AppException):
    """External service call failed (502)."""

    def __init__(
        self,
        service_name: str,
        message: str | None = None,
        error_code: str = "EXTERNAL_SERVICE_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        details["service"] = service_name
        super().__init__(
            message=message or f"External service '{service_name}' is unavailable or returned an error",
            error_code=error_code,
            status_code=502,
            details=details,
        )

# ============================================
# Domain-Specific Exceptions
# ============================================

class UserNotFoundError(NotFoundError):
    """Identity record not found."""

    def __init__(
        self,
        user_id: int | None = None,
        email: str | None = None,
        message: str | None = None,
    ) -> None:
        identifier = user_id or email
        super().__init__(
            message=message or f"User not found: {identifier}",
            error_code="USER_NOT_FOUND",
            resource_type="user",
            resource_id=identifier,
        )

class UserAlreadyExistsError(ConflictError):
    """Identity record with the same email already exists."""

    def __init__(self, email: str) -> None:
        super().__init__(
            message=f"User with email '{email}' already exists",
            error_code="USER_ALREADY_EXISTS",
            details={"email": email},
        )

class DependencyResolutionError(ExternalServiceError):
    """Department or specialization find-or-create failed."""

    def __init__(
        self,
        resource_type: str,
        name: str,
        reason: str | None = None,
    ) -> None:
        details: dict[str, Any] = {"resource_type": resource_type, "name": name}
        if reason:
            details["reason"] = reason
        super().__init__(
            service_name=f"{resource_type}s",
            message=f"Could not resolve {resource_type} '{name}'" + (f": {reason}" if reason else ""),
            error_code="DEPENDENCY_RESOLUTION_ERROR",
            details=details,
        )

class CredentialProvisionError(ExternalServiceError):
    """Authentication service rejected or could not be reached."""

    def __init__(
        self,
        email: str,
        reason: str | None = None,
        http_status_code: int | None = None,
    ) -> None:
        details: dict[str, Any] = {"email": email}
        if http_status_code is not None:
            details["http_status_code"] = http_status_code
        super().__init__(
            service_name="auth",
            message=f"Credential provisioning failed for '{email}'" + (f": {reason}" if reason else ""),
            error_code="CREDENTIAL_PROVISION_ERROR",
            details=details,
        )

class ProfileProvisionError(ExternalServiceError):
    """Role-specific profile service rejected or could not be reached."""

    def __init__(
        self,
        role: str,
        user_id: int,
        reason: str | None = None,
        http_status_code: int | None = None,
    ) -> None:
        details: dict[str, Any] = {"role": role, "user_id": user_id}
        if http_status_code is not None:
            details["http_status_code"] = http_status_code
        super().__init__(
            service_name=f"{role.lower()}-profiles",
            message=f"Profile provisioning failed for user {user_id}" + (f": {reason}" if reason else ""),
            error_code="PROFILE_PROVISION_ERROR",
            details=details,
        )

class CsvFormatError(BadRequestError):
    """Uploaded bulk file could not be decoded into rows."""

    def __init__(
        self,
        message: str,
        filename: str | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if filename:
            details["filename"] = filename
        super().__init__(
            message=message,
            error_code="CSV_FORMAT_ERROR",
            details=details,
        )
