"""
Title schemas for CSV rows, catalog snapshots and title creation.
"""

from pydantic import ConfigDict, Field, field_serializer
from typing import Any, Optional
from enum import Enum

from models.base import BaseSchema
from models.csv_import import ColumnMapping, ImportRowError


class PublicationStatus(str, Enum):
    """Title publication lifecycle."""
    DRAFT = "draft"
    PENDING = "pending"
    PUBLISHED = "published"
    OUT_OF_PRINT = "out_of_print"


class TitleSnapshot(BaseSchema):
    """
    Persisted title fields relevant to CSV updates.

    Loaded per tenant by the matcher and echoed back to the client for
    the preview screen.
    """

    id: str = Field(..., description="Title UUID")
    title: str = Field(..., description="Title of the work")
    subtitle: Optional[str] = None
    isbn: Optional[str] = Field(None, description="ISBN as stored (may contain hyphens)")
    genre: Optional[str] = None
    publication_date: Optional[str] = Field(None, description="YYYY-MM-DD")
    publication_status: Optional[str] = None
    word_count: Optional[int] = None
    asin: Optional[str] = None
    bisac_code: Optional[str] = None
    bisac_codes: Optional[list[str]] = None


class TitleRowData(BaseSchema):
    """
    Validated values from one CSV row.

    A field counts as present only when it was explicitly set
    (model_fields_set). Unset fields mean "not in the CSV, do not touch".
    """

    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True,
        use_enum_values=True
    )

    title: Optional[str] = None
    subtitle: Optional[str] = None
    contact_id: Optional[str] = Field(None, description="Resolved from author_name")
    isbn: Optional[str] = None
    genre: Optional[str] = None
    publication_date: Optional[str] = None
    publication_status: Optional[PublicationStatus] = None
    word_count: Optional[int] = None
    asin: Optional[str] = None
    bisac_code: Optional[str] = None
    bisac_codes: Optional[list[str]] = None

    def is_present(self, field_name: str) -> bool:
        """True if the CSV supplied this field."""
        return field_name in self.model_fields_set


class ValidatedTitleRow(BaseSchema):
    """One CSV row after validation."""

    row: int = Field(..., ge=0, description="Row number from CSV (1-indexed)")
    data: TitleRowData = Field(default_factory=TitleRowData)
    author_name: Optional[str] = None
    valid: bool = True
    errors: list[ImportRowError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @field_serializer("data")
    def serialize_present_fields(self, data: TitleRowData) -> dict[str, Any]:
        """Emit only present fields so absence survives a JSON round trip."""
        return data.model_dump(mode="json", exclude_unset=True)


class TitleCreate(BaseSchema):
    """
    Create a new title from an unmatched CSV row (upsert mode).

    Required: title
    """

    title: str = Field(..., min_length=1, max_length=500)
    subtitle: Optional[str] = Field(None, max_length=500)
    contact_id: Optional[str] = None
    isbn: Optional[str] = None
    genre: Optional[str] = Field(None, max_length=100)
    publication_date: Optional[str] = None
    publication_status: PublicationStatus = PublicationStatus.DRAFT
    word_count: Optional[int] = Field(None, gt=0)
    asin: Optional[str] = None
    bisac_code: Optional[str] = None
    bisac_codes: Optional[list[str]] = None


class TitleCsvStats(BaseSchema):
    """Counts shown on the validation step."""

    with_author: int = 0
    with_isbn: int = 0
    with_asin: int = 0
    with_bisac: int = 0
    duplicate_isbns: list[str] = Field(default_factory=list)
    duplicate_asins: list[str] = Field(default_factory=list)


class TitleCsvValidationResult(BaseSchema):
    """Result of validating every row of an uploaded CSV."""

    all_valid: bool
    total_rows: int
    valid_count: int
    invalid_count: int
    rows: list[ValidatedTitleRow] = Field(default_factory=list)
    errors: list[ImportRowError] = Field(default_factory=list)
    column_mappings: list[ColumnMapping] = Field(default_factory=list)
    stats: TitleCsvStats = Field(default_factory=TitleCsvStats)
