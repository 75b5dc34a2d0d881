"""
Bulk update schemas: diffs, ISBN matches and update results.

Flow:
    ValidatedTitleRow[] → MatchResult (preview) → BulkUpdateRequest → BulkUpdateResult
"""

from pydantic import ConfigDict, Field, ValidationInfo, field_validator
from typing import Optional, Union

from models.base import BaseSchema
from models.csv_import import ColumnMapping, ImportRowError, ImportableTitleField
from models.title import TitleSnapshot, ValidatedTitleRow


FieldValue = Optional[Union[int, float, str]]


class FieldChange(BaseSchema):
    """One field's transition from catalog value to CSV value."""

    # Values are reported exactly as stored / as given
    model_config = ConfigDict(from_attributes=True, validate_assignment=True)

    field: str = Field(..., description="Display label")
    field_key: ImportableTitleField = Field(..., description="Title column")
    old_value: FieldValue = Field(None, description="Current value in database")
    new_value: FieldValue = Field(None, description="New value from CSV")


class TitleDiff(BaseSchema):
    """Field-level diff restricted to fields present in the CSV row."""

    changed_fields: list[FieldChange] = Field(default_factory=list)
    unchanged_fields: list[str] = Field(default_factory=list)
    total_fields: int = 0


class TitleMatch(BaseSchema):
    """
    A CSV row paired with the catalog title sharing its ISBN.

    has_changes is derived from the diff. selected defaults to has_changes
    and can never be true for a match without changes.
    """

    isbn: str = Field(..., description="ISBN from CSV (original format)")
    title_id: str
    existing_title: TitleSnapshot
    csv_row: ValidatedTitleRow
    diff: TitleDiff
    has_changes: bool = Field(default=False, validate_default=True)
    row_number: int
    selected: Optional[bool] = Field(default=None, validate_default=True)

    @field_validator("has_changes")
    @classmethod
    def derive_has_changes(cls, v: bool, info: ValidationInfo) -> bool:
        diff = info.data.get("diff")
        if diff is None:
            return v
        return len(diff.changed_fields) > 0

    @field_validator("selected")
    @classmethod
    def selected_requires_changes(cls, v: Optional[bool], info: ValidationInfo) -> bool:
        has_changes = info.data.get("has_changes", False)
        if v is None:
            return has_changes
        return v and has_changes


class MatchResult(BaseSchema):
    """Outcome of matching a batch of CSV rows by ISBN."""

    matched: list[TitleMatch] = Field(default_factory=list)
    unmatched: list[str] = Field(default_factory=list, description="ISBNs not in catalog")
    no_isbn: list[int] = Field(default_factory=list, description="Row numbers without ISBN")
    errors: list[ImportRowError] = Field(default_factory=list)


class BulkDiffSummary(BaseSchema):
    """Aggregate numbers for the preview header."""

    total_matched: int = 0
    with_changes: int = 0
    without_changes: int = 0
    total_fields_changed: int = 0
    field_change_counts: dict[str, int] = Field(default_factory=dict)


# ===================
# REQUESTS / RESPONSES
# ===================

class MatchRequest(BaseSchema):
    """Rows to match against the tenant's catalog."""

    rows: list[ValidatedTitleRow]


class MatchResponse(BaseSchema):
    """Match result plus preview summary."""

    result: MatchResult
    summary: BulkDiffSummary


class BulkUpdateRequest(BaseSchema):
    """User-confirmed bulk update."""

    filename: str = Field("upload.csv", max_length=255)
    column_mappings: list[ColumnMapping] = Field(default_factory=list)
    updates: list[TitleMatch] = Field(default_factory=list)
    create_unmatched: bool = Field(False, description="Upsert mode")
    unmatched_rows: list[ValidatedTitleRow] = Field(default_factory=list)
    user_id: Optional[str] = None


class BulkUpdateResult(BaseSchema):
    """Outcome of applying a bulk update."""

    success: bool
    updated_count: int = 0
    created_count: int = 0
    skipped_count: int = 0
    errors: list[ImportRowError] = Field(default_factory=list)
    import_id: str = Field("", description="Tracking record ID")
    updated_title_ids: list[str] = Field(default_factory=list)
    created_title_ids: list[str] = Field(default_factory=list)

    @classmethod
    def failed(cls, message: str) -> "BulkUpdateResult":
        """Single synthetic row-0 error for an operation-level failure."""
        return cls(
            success=False,
            errors=[ImportRowError(row=0, field="", value="", message=message)]
        )
