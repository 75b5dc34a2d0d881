"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    DatabaseError,

    # Titles
    TitleNotFoundError,
    TitleCreateValidationError,

    # Bulk update
    InvalidUpdateFieldError,
    BulkUpdateTooLargeError,
    MissingTenantError,

    # CSV parser
    CsvParseError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "DatabaseError",

    # Titles
    "TitleNotFoundError",
    "TitleCreateValidationError",

    # Bulk update
    "InvalidUpdateFieldError",
    "BulkUpdateTooLargeError",
    "MissingTenantError",

    # CSV parser
    "CsvParseError",
]
