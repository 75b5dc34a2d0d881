"""
Title bulk update API routes.

Three-step flow driven by the client:
    POST /validate  CSV upload → validated rows + column mappings
    POST /match     validated rows → ISBN matches with field diffs
    POST /apply     user-selected matches → BulkUpdateResult

All catalog operations are scoped to the X-Tenant-ID header.
"""

from fastapi import APIRouter, File, Header, Query, UploadFile
from fastapi.responses import JSONResponse
from typing import Optional
import structlog

from config import settings
from models.bulk_update import (
    BulkUpdateRequest,
    BulkUpdateResult,
    MatchRequest,
    MatchResponse,
)
from models.title import TitleCsvValidationResult
from parsers.title_csv_parser import parse_title_csv
from services.bulk_update_service import get_bulk_update_service
from services.csv_import_service import get_csv_import_service
from services.isbn_matcher_service import (
    compute_bulk_diff_summary,
    get_isbn_matcher_service,
)
from exceptions import AppError, BulkUpdateTooLargeError, MissingTenantError

logger = structlog.get_logger(__name__)

router = APIRouter()


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


def require_tenant(tenant_id: Optional[str]) -> str:
    if not tenant_id or not tenant_id.strip():
        raise MissingTenantError()
    return tenant_id.strip()


def check_row_limit(row_count: int) -> None:
    if row_count > settings.bulk_update_max_rows:
        raise BulkUpdateTooLargeError(row_count, settings.bulk_update_max_rows)


# ===================
# ROUTES
# ===================

@router.post("/validate", response_model=TitleCsvValidationResult)
async def validate_csv(
    file: UploadFile = File(..., description="Title CSV (comma or tab delimited)"),
    require_title: bool = Query(False, description="Treat a missing title as an error")
):
    """
    Validate an uploaded CSV.

    Columns are auto-mapped from their headers. Blank cells are treated
    as absent, so they never clear catalog values.
    """
    try:
        content = await file.read()
        result = parse_title_csv(content, require_title=require_title)
        check_row_limit(result.total_rows)

        logger.info(
            "bulk_update_csv_validated",
            filename=file.filename,
            total_rows=result.total_rows,
            invalid=result.invalid_count
        )

        return result

    except Exception as e:
        return handle_error(e)


@router.post("/match", response_model=MatchResponse)
async def match_titles(
    request: MatchRequest,
    x_tenant_id: Optional[str] = Header(None, description="Tenant ID")
):
    """
    Match validated rows to catalog titles by ISBN.

    Returns matches with field-level diffs, unmatched ISBNs, row numbers
    without an ISBN, and a summary for the preview screen.
    """
    try:
        tenant_id = require_tenant(x_tenant_id)
        check_row_limit(len(request.rows))

        service = get_isbn_matcher_service()
        result = service.match_titles_by_isbn(tenant_id, request.rows)

        return MatchResponse(
            result=result,
            summary=compute_bulk_diff_summary(result.matched)
        )

    except Exception as e:
        return handle_error(e)


@router.post("/apply", response_model=BulkUpdateResult)
async def apply_bulk_update(
    request: BulkUpdateRequest,
    x_tenant_id: Optional[str] = Header(None, description="Tenant ID")
):
    """
    Apply the selected changes, and create unmatched titles in upsert mode.

    Row-level problems come back in the result's errors; a failed batch
    returns success=false with a single row-0 error.
    """
    try:
        tenant_id = require_tenant(x_tenant_id)
        check_row_limit(len(request.updates) + len(request.unmatched_rows))

        service = get_bulk_update_service()
        return service.apply_bulk_update(tenant_id, request)

    except Exception as e:
        return handle_error(e)


@router.get("/history")
async def list_import_history(
    limit: int = Query(20, ge=1, le=100, description="Max records"),
    x_tenant_id: Optional[str] = Header(None, description="Tenant ID")
):
    """Recent import tracking records for the tenant, newest first."""
    try:
        tenant_id = require_tenant(x_tenant_id)

        service = get_csv_import_service()
        return service.get_recent(tenant_id, limit=limit)

    except Exception as e:
        return handle_error(e)
