"""
Tracks CSV imports outside of any transaction.

Provisional and finalized tracking records are written inside the bulk
update transaction (see repositories.csv_import_repository). This service
covers what must survive a rolled-back transaction, and the history view.
"""
import structlog
from typing import Optional

from config import get_supabase_client
from models.csv_import import ColumnMapping, ImportMode, ImportStatus
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)


class CsvImportService:
    def __init__(self):
        self.db = get_supabase_client()
        self.table = "csv_imports"

    def get_recent(self, tenant_id: str, limit: int = 20) -> list[dict]:
        """Most recent imports for a tenant, newest first."""
        try:
            result = (
                self.db.table(self.table)
                .select(
                    "id, filename, import_type, import_mode, total_rows, "
                    "imported_count, updated_count, skipped_count, error_count, "
                    "status, error_message, created_at, completed_at"
                )
                .eq("tenant_id", tenant_id)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
            return result.data
        except Exception as e:
            logger.error("get_recent_imports_failed", tenant_id=tenant_id, error=str(e))
            raise DatabaseError("select", str(e))

    def record_failed_import(
        self,
        tenant_id: str,
        filename: str,
        total_rows: int,
        error_message: str,
        column_mappings: Optional[list[ColumnMapping]] = None,
        import_mode: Optional[ImportMode] = None,
        imported_by: Optional[str] = None,
    ) -> None:
        """Record a failed import for later diagnosis. Never raises."""
        truncated_msg = error_message[:2000] if error_message else "Unknown error"
        try:
            self.db.table(self.table).insert({
                "tenant_id": tenant_id,
                "filename": filename or "unknown",
                "import_type": "titles",
                "import_mode": import_mode.value if import_mode else None,
                "total_rows": total_rows,
                "imported_count": 0,
                "error_count": 1,
                "status": ImportStatus.FAILED.value,
                "error_message": truncated_msg,
                "imported_by": imported_by,
                "column_mappings": [m.model_dump(mode="json") for m in column_mappings or []],
            }).execute()
            logger.info(
                "failed_import_recorded",
                tenant_id=tenant_id,
                filename=filename,
                error=truncated_msg[:200],
            )
        except Exception as log_err:
            # Never let failure logging break the error response
            logger.warning(
                "failed_to_record_import_error",
                tenant_id=tenant_id,
                log_error=str(log_err),
            )


_service: Optional[CsvImportService] = None


def get_csv_import_service() -> CsvImportService:
    global _service
    if _service is None:
        _service = CsvImportService()
    return _service
