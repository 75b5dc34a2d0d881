"""
Bulk update service: applies user-selected CSV changes to the catalog.

Everything runs in one Postgres transaction:
    1. provisional csv_imports tracking record
    2. selective update of each selected match (changed fields only)
    3. optional creation of titles for unmatched rows (upsert mode)
    4. tracking record finalized with counts and field-level audit payload

Rows are best-effort inside the batch: an application-side rejection of
one row (unknown field, vanished title, invalid create data) is recorded
as a row error and the batch continues. A store error aborts the
transaction, and the whole batch is reported as failed.
"""

from dataclasses import dataclass, field
from typing import Any, Optional
import structlog
from pydantic import ValidationError as PydanticValidationError

from config import transaction
from models.bulk_update import (
    BulkUpdateRequest,
    BulkUpdateResult,
    FieldChange,
    TitleMatch,
)
from models.csv_import import ImportMode, ImportRowError, ImportStatus
from models.title import TitleCreate, ValidatedTitleRow
from repositories import CsvImportRepository, TitleRepository
from services.csv_import_service import get_csv_import_service
from services.isbn_matcher_service import DIFF_FIELD_MAPPINGS, get_selected_updates
from exceptions import (
    AppError,
    InvalidUpdateFieldError,
    TitleCreateValidationError,
    TitleNotFoundError,
)

logger = structlog.get_logger(__name__)

# field_key → mapping; the only columns a bulk update may write
UPDATABLE_FIELDS = {m.field_key.value: m for m in DIFF_FIELD_MAPPINGS}


def build_update_fields(changes: list[FieldChange]) -> list[tuple[str, Any]]:
    """
    Resolve field changes to (column, value) pairs.

    Array fields travel as comma-joined display strings and are split
    back into lists here.

    Raises:
        InvalidUpdateFieldError: If a change targets a non-updatable field
    """
    fields: list[tuple[str, Any]] = []

    for change in changes:
        key = change.field_key.value
        mapping = UPDATABLE_FIELDS.get(key)
        if mapping is None:
            raise InvalidUpdateFieldError(key, sorted(UPDATABLE_FIELDS))

        value = change.new_value
        if mapping.is_array:
            value = [v.strip() for v in str(value).split(",") if v.strip()] if value else None

        fields.append((mapping.db_field, value))

    return fields


def build_title_create(row: ValidatedTitleRow) -> TitleCreate:
    """
    Turn an unmatched CSV row into a title to create.

    Empty values fall back to column defaults (status "draft").

    Raises:
        TitleCreateValidationError: If the row is invalid or has no title
    """
    if not row.valid:
        raise TitleCreateValidationError(
            "Row failed validation",
            errors=[e.model_dump() for e in row.errors]
        )

    values = {
        k: v for k, v in row.data.model_dump().items()
        if v is not None and v != "" and v != []
    }
    try:
        return TitleCreate(**values)
    except PydanticValidationError as e:
        raise TitleCreateValidationError(
            "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ),
            errors=[
                {"field": str(err["loc"][0]) if err["loc"] else "", "message": err["msg"]}
                for err in e.errors()
            ],
        )


def determine_import_mode(request: BulkUpdateRequest) -> ImportMode:
    """Upsert when creating unmatched rows, otherwise update."""
    if request.create_unmatched:
        return ImportMode.UPSERT
    return ImportMode.UPDATE


@dataclass
class _BatchOutcome:
    """Accumulates per-row results inside the transaction."""
    errors: list[ImportRowError] = field(default_factory=list)
    updated_title_ids: list[str] = field(default_factory=list)
    created_title_ids: list[str] = field(default_factory=list)
    update_details: list[dict] = field(default_factory=list)

    def audit_payload(self) -> Optional[dict]:
        if not self.update_details:
            return None
        return {
            "updates": self.update_details,
            "total_fields_changed": sum(len(u["changes"]) for u in self.update_details),
        }


class BulkUpdateService:
    """
    Applies a confirmed bulk update.

    Never raises: every path ends in a BulkUpdateResult.
    """

    def __init__(self):
        self.tracking = get_csv_import_service()

    def apply_bulk_update(
        self,
        tenant_id: str,
        request: BulkUpdateRequest
    ) -> BulkUpdateResult:
        """
        Apply selected matches and, in upsert mode, create unmatched rows.

        Args:
            tenant_id: Tenant that owns every touched title
            request: Matches with user selection, plus upsert options

        Returns:
            BulkUpdateResult with counts, row errors and tracking ID
        """
        selected = get_selected_updates(request.updates)
        skipped_count = len(request.updates) - len(selected)

        logger.info(
            "bulk_update_started",
            tenant_id=tenant_id,
            filename=request.filename,
            selected=len(selected),
            skipped=skipped_count,
            create_unmatched=request.create_unmatched,
            unmatched_rows=len(request.unmatched_rows)
        )

        if not selected and not request.create_unmatched:
            logger.info("bulk_update_nothing_selected", tenant_id=tenant_id)
            return BulkUpdateResult(success=True, skipped_count=len(request.updates))

        import_mode = determine_import_mode(request)
        total_rows = len(request.updates) + len(request.unmatched_rows)
        outcome = _BatchOutcome()

        try:
            with transaction() as conn:
                import_id = CsvImportRepository.create(
                    conn,
                    tenant_id=tenant_id,
                    filename=request.filename,
                    import_mode=import_mode,
                    total_rows=total_rows,
                    column_mappings=request.column_mappings,
                    imported_by=request.user_id,
                )

                for match in selected:
                    self._apply_match(conn, tenant_id, match, outcome)

                if request.create_unmatched:
                    for row in request.unmatched_rows:
                        self._create_title(conn, tenant_id, row, outcome)

                CsvImportRepository.finalize(
                    conn,
                    import_id=import_id,
                    status=ImportStatus.PARTIAL if outcome.errors else ImportStatus.SUCCESS,
                    updated_count=len(outcome.updated_title_ids),
                    created_count=len(outcome.created_title_ids),
                    skipped_count=skipped_count,
                    error_count=len(outcome.errors),
                    updated_title_ids=outcome.updated_title_ids,
                    created_title_ids=outcome.created_title_ids,
                    update_details=outcome.audit_payload(),
                )

        except Exception as e:
            message = str(e) or "Bulk update failed"
            logger.error(
                "bulk_update_failed",
                tenant_id=tenant_id,
                filename=request.filename,
                error=message,
                error_type=type(e).__name__
            )
            self.tracking.record_failed_import(
                tenant_id=tenant_id,
                filename=request.filename,
                total_rows=len(request.updates),
                error_message=message,
                column_mappings=request.column_mappings,
                import_mode=import_mode,
                imported_by=request.user_id,
            )
            return BulkUpdateResult.failed(message)

        result = BulkUpdateResult(
            success=not outcome.errors,
            updated_count=len(outcome.updated_title_ids),
            created_count=len(outcome.created_title_ids),
            skipped_count=skipped_count,
            errors=outcome.errors,
            import_id=import_id,
            updated_title_ids=outcome.updated_title_ids,
            created_title_ids=outcome.created_title_ids,
        )

        logger.info(
            "bulk_update_complete",
            tenant_id=tenant_id,
            import_id=import_id,
            updated=result.updated_count,
            created=result.created_count,
            skipped=result.skipped_count,
            errors=len(result.errors)
        )

        return result

    # ===================
    # ROW OPERATIONS
    # ===================

    def _apply_match(
        self,
        conn,
        tenant_id: str,
        match: TitleMatch,
        outcome: _BatchOutcome
    ) -> None:
        """Write the changed fields of one match; row errors are recorded."""
        try:
            fields = build_update_fields(match.diff.changed_fields)
            if not TitleRepository.update_fields(conn, tenant_id, match.title_id, fields):
                raise TitleNotFoundError(match.title_id)
        except AppError as e:
            logger.warning(
                "bulk_update_row_failed",
                row=match.row_number,
                isbn=match.isbn,
                error=e.message
            )
            outcome.errors.append(ImportRowError(
                row=match.row_number,
                field="update",
                value=match.isbn,
                message=e.message or f"Failed to update {match.isbn}",
            ))
            return

        outcome.updated_title_ids.append(match.title_id)
        outcome.update_details.append({
            "title_id": match.title_id,
            "isbn": match.isbn,
            "changes": [c.model_dump(mode="json") for c in match.diff.changed_fields],
        })

    def _create_title(
        self,
        conn,
        tenant_id: str,
        row: ValidatedTitleRow,
        outcome: _BatchOutcome
    ) -> None:
        """Create a title from one unmatched row; row errors are recorded."""
        try:
            title_id = TitleRepository.insert(conn, tenant_id, build_title_create(row))
        except AppError as e:
            logger.warning(
                "bulk_create_row_failed",
                row=row.row,
                isbn=row.data.isbn,
                error=e.message
            )
            outcome.errors.append(ImportRowError(
                row=row.row,
                field="create",
                value=row.data.isbn or "",
                message=e.message or f"Failed to create title for {row.data.isbn}",
            ))
            return

        outcome.created_title_ids.append(title_id)


# Singleton instance for convenience
_bulk_update_service: Optional[BulkUpdateService] = None


def get_bulk_update_service() -> BulkUpdateService:
    """Get or create BulkUpdateService instance."""
    global _bulk_update_service
    if _bulk_update_service is None:
        _bulk_update_service = BulkUpdateService()
    return _bulk_update_service
