"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.csv_import import (
    ImportableTitleField,
    ImportMode,
    ImportStatus,
    ImportRowError,
    ColumnMapping,
)
from models.title import (
    PublicationStatus,
    TitleSnapshot,
    TitleRowData,
    ValidatedTitleRow,
    TitleCreate,
    TitleCsvStats,
    TitleCsvValidationResult,
)
from models.bulk_update import (
    FieldChange,
    TitleDiff,
    TitleMatch,
    MatchResult,
    BulkDiffSummary,
    MatchRequest,
    MatchResponse,
    BulkUpdateRequest,
    BulkUpdateResult,
)

__all__ = [
    # Base
    "BaseSchema",

    # CSV import
    "ImportableTitleField",
    "ImportMode",
    "ImportStatus",
    "ImportRowError",
    "ColumnMapping",

    # Title
    "PublicationStatus",
    "TitleSnapshot",
    "TitleRowData",
    "ValidatedTitleRow",
    "TitleCreate",
    "TitleCsvStats",
    "TitleCsvValidationResult",

    # Bulk update
    "FieldChange",
    "TitleDiff",
    "TitleMatch",
    "MatchResult",
    "BulkDiffSummary",
    "MatchRequest",
    "MatchResponse",
    "BulkUpdateRequest",
    "BulkUpdateResult",
]
