"""CSV import repository - tracking records for bulk catalog imports."""

from typing import Any, Optional

import structlog
from psycopg import Connection
from psycopg.types.json import Jsonb

from models.csv_import import ColumnMapping, ImportMode, ImportStatus

logger = structlog.get_logger(__name__)


class CsvImportRepository:
    """Repository for csv_imports rows written inside a transaction."""

    @staticmethod
    def create(
        conn: Connection,
        tenant_id: str,
        filename: str,
        import_mode: ImportMode,
        total_rows: int,
        column_mappings: list[ColumnMapping],
        imported_by: Optional[str] = None,
    ) -> str:
        """
        Create a provisional tracking record.

        Status starts as "success" and is settled by finalize().

        Returns:
            The new import ID
        """
        result = conn.execute(
            """
            INSERT INTO csv_imports (
                tenant_id, filename, import_type, import_mode, total_rows,
                imported_count, skipped_count, error_count, status,
                imported_by, column_mappings
            )
            VALUES (%s, %s, 'titles', %s, %s, 0, 0, 0, %s, %s, %s)
            RETURNING id
            """,
            (
                tenant_id,
                filename,
                import_mode.value,
                total_rows,
                ImportStatus.SUCCESS.value,
                imported_by,
                Jsonb([m.model_dump(mode="json") for m in column_mappings]),
            ),
        )
        import_id = str(result.fetchone()["id"])

        logger.debug("csv_import_created", import_id=import_id, mode=import_mode.value)

        return import_id

    @staticmethod
    def finalize(
        conn: Connection,
        import_id: str,
        status: ImportStatus,
        updated_count: int,
        created_count: int,
        skipped_count: int,
        error_count: int,
        updated_title_ids: list[str],
        created_title_ids: list[str],
        update_details: Optional[dict[str, Any]],
    ) -> None:
        """Record outcome counts, the field-level audit payload and status."""
        conn.execute(
            """
            UPDATE csv_imports
            SET imported_count = %s,
                updated_count = %s,
                skipped_count = %s,
                error_count = %s,
                created_title_ids = %s,
                updated_title_ids = %s,
                update_details = %s,
                status = %s,
                completed_at = NOW(),
                result_details = %s
            WHERE id = %s
            """,
            (
                updated_count,
                updated_count,
                skipped_count,
                error_count,
                created_title_ids or None,
                updated_title_ids or None,
                Jsonb(update_details) if update_details else None,
                status.value,
                Jsonb({
                    "imported": created_count,
                    "updated": updated_count,
                    "skipped": skipped_count,
                    "errors": error_count,
                    "conflicts": 0,
                }),
                import_id,
            ),
        )

        logger.debug("csv_import_finalized", import_id=import_id, status=status.value)
