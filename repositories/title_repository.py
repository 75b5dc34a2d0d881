"""Title repository - tenant-scoped title writes."""

from typing import Any

import structlog
from psycopg import Connection, sql

from models.title import TitleCreate

logger = structlog.get_logger(__name__)


class TitleRepository:
    """Repository for title writes inside a transaction."""

    @staticmethod
    def update_fields(
        conn: Connection,
        tenant_id: str,
        title_id: str,
        fields: list[tuple[str, Any]],
    ) -> bool:
        """
        Update only the given columns of one title and touch updated_at.

        Column names must come from the fixed updatable-field table;
        they are quoted as identifiers, never interpolated.

        Returns:
            True if a title with this id exists for the tenant
        """
        assignments = [
            sql.SQL("{} = %s").format(sql.Identifier(column))
            for column, _ in fields
        ]
        assignments.append(sql.SQL("updated_at = NOW()"))

        query = sql.SQL(
            "UPDATE titles SET {} WHERE id = %s AND tenant_id = %s RETURNING id"
        ).format(sql.SQL(", ").join(assignments))

        params = [value for _, value in fields] + [title_id, tenant_id]
        result = conn.execute(query, params)
        updated = result.fetchone() is not None

        logger.debug(
            "title_fields_updated" if updated else "title_update_missed",
            title_id=title_id,
            columns=[column for column, _ in fields],
        )

        return updated

    @staticmethod
    def insert(conn: Connection, tenant_id: str, data: TitleCreate) -> str:
        """
        Create a title for a tenant.

        Returns:
            The new title ID
        """
        result = conn.execute(
            """
            INSERT INTO titles (
                tenant_id, title, subtitle, contact_id, isbn, genre,
                publication_date, publication_status, word_count, asin,
                bisac_code, bisac_codes, created_at, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW(), NOW())
            RETURNING id
            """,
            (
                tenant_id,
                data.title,
                data.subtitle,
                data.contact_id,
                data.isbn,
                data.genre,
                data.publication_date,
                data.publication_status.value,
                data.word_count,
                data.asin,
                data.bisac_code,
                data.bisac_codes,
            ),
        )
        title_id = str(result.fetchone()["id"])

        logger.debug("title_inserted", title_id=title_id, isbn=data.isbn)

        return title_id
