"""
CSV import tracking schemas.

Shared by the row validator, the matcher and the bulk updater.
"""

from pydantic import Field
from typing import Optional
from enum import Enum

from models.base import BaseSchema


class ImportableTitleField(str, Enum):
    """Fields a CSV column can be mapped to."""
    TITLE = "title"
    SUBTITLE = "subtitle"
    AUTHOR_NAME = "author_name"
    ISBN = "isbn"
    GENRE = "genre"
    PUBLICATION_DATE = "publication_date"
    PUBLICATION_STATUS = "publication_status"
    WORD_COUNT = "word_count"
    ASIN = "asin"
    BISAC_CODE = "bisac_code"
    BISAC_CODES = "bisac_codes"


class ImportMode(str, Enum):
    """What a CSV import does to the catalog."""
    CREATE = "create"
    UPDATE = "update"
    UPSERT = "upsert"


class ImportStatus(str, Enum):
    """Terminal status of a tracking record."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class ImportRowError(BaseSchema):
    """
    Error attached to one CSV row.

    Row 0 is used for errors that belong to the whole request.
    """

    row: int = Field(..., ge=0, description="Row number (1-indexed, matches Excel)")
    field: str = Field("", description="Field or step that failed")
    value: str = Field("", description="Original value that failed")
    message: str = Field(..., description="Human-readable error message")


class ColumnMapping(BaseSchema):
    """A single CSV column → title field mapping."""

    csv_column_index: int = Field(..., ge=0, description="0-indexed CSV column")
    csv_column_header: str = Field("", description="CSV header text")
    target_field: Optional[ImportableTitleField] = Field(None, description="None if unmapped")
    sample_values: list[str] = Field(default_factory=list)
