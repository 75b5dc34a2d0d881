"""
Custom exception classes for the application.

Row-level problems in a bulk update are reported as ImportRowError values,
not raised. These exceptions cover request-level failures and the
application-side rejections that a row loop converts into row errors.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "TITLE_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# TITLE ERRORS
# ===================

class TitleNotFoundError(NotFoundError):
    """Title not found for the current tenant."""

    def __init__(self, title_id: str):
        super().__init__(
            resource="Title",
            identifier=title_id,
            code="TITLE_NOT_FOUND"
        )


class TitleCreateValidationError(ValidationError):
    """Row data cannot be turned into a new title."""

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        super().__init__(
            code="TITLE_CREATE_INVALID",
            message=message,
            details={"errors": errors or []}
        )


# ===================
# BULK UPDATE ERRORS
# ===================

class InvalidUpdateFieldError(ValidationError):
    """Field key is not in the updatable field table."""

    def __init__(self, field_key: str, valid: list[str]):
        super().__init__(
            code="INVALID_UPDATE_FIELD",
            message=f"Field cannot be updated in bulk: {field_key}",
            details={"provided": field_key, "valid": valid}
        )


class BulkUpdateTooLargeError(AppError):
    """Too many rows in one bulk request (413)."""

    def __init__(self, row_count: int, max_rows: int):
        super().__init__(
            code="BULK_UPDATE_TOO_LARGE",
            message=f"Bulk request has {row_count} rows, maximum is {max_rows}",
            status_code=413,
            details={"row_count": row_count, "max_rows": max_rows}
        )


class MissingTenantError(AppError):
    """Request is not scoped to a tenant (400)."""

    def __init__(self):
        super().__init__(
            code="TENANT_REQUIRED",
            message="X-Tenant-ID header is required",
            status_code=400
        )


# ===================
# CSV PARSER ERRORS
# ===================

class CsvParseError(ValidationError):
    """CSV file could not be read."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="CSV_PARSE_ERROR",
            message=message,
            details=details
        )
