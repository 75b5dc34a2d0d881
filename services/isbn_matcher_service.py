"""
ISBN matcher for bulk updates.

Matches validated CSV rows to the tenant's existing titles by normalized
ISBN and computes a field-level diff for each match, so the user can
preview and pick which changes to apply.
"""

from dataclasses import dataclass
from typing import Any, Optional
import structlog

from config import get_supabase_client
from models.bulk_update import (
    BulkDiffSummary,
    FieldChange,
    MatchResult,
    TitleDiff,
    TitleMatch,
)
from models.csv_import import ImportRowError, ImportableTitleField
from models.title import TitleSnapshot, ValidatedTitleRow
from exceptions import DatabaseError
from utils.isbn_utils import normalize_isbn

logger = structlog.get_logger(__name__)


# ===================
# DIFF COMPUTATION
# ===================

@dataclass(frozen=True)
class DiffFieldMapping:
    """Maps a CSV field to its title column and display label."""
    csv_field: str
    db_field: str
    field_key: ImportableTitleField
    label: str
    is_array: bool = False


DIFF_FIELD_MAPPINGS: tuple[DiffFieldMapping, ...] = (
    DiffFieldMapping("title", "title", ImportableTitleField.TITLE, "Title"),
    DiffFieldMapping("subtitle", "subtitle", ImportableTitleField.SUBTITLE, "Subtitle"),
    DiffFieldMapping("genre", "genre", ImportableTitleField.GENRE, "Genre"),
    DiffFieldMapping(
        "publication_date", "publication_date",
        ImportableTitleField.PUBLICATION_DATE, "Publication Date"
    ),
    DiffFieldMapping(
        "publication_status", "publication_status",
        ImportableTitleField.PUBLICATION_STATUS, "Status"
    ),
    DiffFieldMapping("word_count", "word_count", ImportableTitleField.WORD_COUNT, "Word Count"),
    DiffFieldMapping("asin", "asin", ImportableTitleField.ASIN, "ASIN"),
    DiffFieldMapping("bisac_code", "bisac_code", ImportableTitleField.BISAC_CODE, "BISAC Code"),
    DiffFieldMapping(
        "bisac_codes", "bisac_codes",
        ImportableTitleField.BISAC_CODES, "Secondary BISAC", is_array=True
    ),
)

# Columns loaded per title for diffing
SNAPSHOT_COLUMNS = (
    "id, title, subtitle, isbn, genre, publication_date, publication_status, "
    "word_count, asin, bisac_code, bisac_codes"
)

CATALOG_PAGE_SIZE = 1000


def normalize_value(value: Any, is_array: bool = False) -> str:
    """
    Normalize a value for comparison.

    None and empty string compare equal. Arrays compare as a sorted,
    comma-joined string so reordering alone is not a change.
    """
    if value is None:
        return ""
    if is_array and isinstance(value, (list, tuple)):
        return ",".join(sorted(str(v) for v in value))
    return str(value).strip()


def _display_value(value: Any, is_array: bool) -> Optional[Any]:
    """Value as reported in a FieldChange (arrays joined for display)."""
    if is_array:
        if not value:
            return None
        if isinstance(value, (list, tuple)):
            return ",".join(str(v) for v in value)
        return str(value)
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return value


def compute_title_diff(
    existing_title: TitleSnapshot,
    csv_row: ValidatedTitleRow
) -> TitleDiff:
    """
    Compute diff between an existing title and a CSV row.

    Only fields present in the CSV row are compared. A field the row
    does not carry is neither changed nor unchanged.

    Args:
        existing_title: Current title data from database
        csv_row: Validated CSV row

    Returns:
        TitleDiff with changed and unchanged fields
    """
    changed_fields: list[FieldChange] = []
    unchanged_fields: list[str] = []

    for mapping in DIFF_FIELD_MAPPINGS:
        if not csv_row.data.is_present(mapping.csv_field):
            continue

        new_value = getattr(csv_row.data, mapping.csv_field)
        old_value = getattr(existing_title, mapping.db_field, None)

        if normalize_value(old_value, mapping.is_array) != normalize_value(new_value, mapping.is_array):
            changed_fields.append(FieldChange(
                field=mapping.label,
                field_key=mapping.field_key,
                old_value=_display_value(old_value, mapping.is_array),
                new_value=_display_value(new_value, mapping.is_array),
            ))
        else:
            unchanged_fields.append(mapping.label)

    return TitleDiff(
        changed_fields=changed_fields,
        unchanged_fields=unchanged_fields,
        total_fields=len(changed_fields) + len(unchanged_fields),
    )


def compute_bulk_diff_summary(matches: list[TitleMatch]) -> BulkDiffSummary:
    """Summarize how many matches change and which fields change most."""
    summary = BulkDiffSummary(total_matched=len(matches))
    field_change_counts: dict[str, int] = {}

    for match in matches:
        if not match.has_changes:
            summary.without_changes += 1
            continue

        summary.with_changes += 1
        summary.total_fields_changed += len(match.diff.changed_fields)
        for change in match.diff.changed_fields:
            field_change_counts[change.field] = field_change_counts.get(change.field, 0) + 1

    summary.field_change_counts = field_change_counts
    return summary


def get_selected_updates(matches: list[TitleMatch]) -> list[TitleMatch]:
    """Only matches with changes that the user kept selected."""
    return [m for m in matches if m.has_changes and m.selected]


def has_title_field_change(diff: TitleDiff) -> bool:
    """Whether the title itself is being renamed."""
    return any(c.field_key == ImportableTitleField.TITLE for c in diff.changed_fields)


# ===================
# ISBN MATCHING
# ===================

class IsbnMatcherService:
    """
    Resolves CSV rows against one tenant's catalog.

    The ISBN lookup is rebuilt on every call from a full tenant scan.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "titles"

    def get_catalog(self, tenant_id: str) -> list[TitleSnapshot]:
        """
        Load every title for a tenant.

        Pages through PostgREST's row cap.

        Raises:
            DatabaseError: If the select fails
        """
        logger.debug("loading_catalog", tenant_id=tenant_id)

        try:
            titles: list[TitleSnapshot] = []
            offset = 0
            while True:
                result = (
                    self.db.table(self.table)
                    .select(SNAPSHOT_COLUMNS)
                    .eq("tenant_id", tenant_id)
                    .order("id")
                    .range(offset, offset + CATALOG_PAGE_SIZE - 1)
                    .execute()
                )
                titles.extend(TitleSnapshot(**row) for row in result.data)
                if len(result.data) < CATALOG_PAGE_SIZE:
                    break
                offset += CATALOG_PAGE_SIZE

            logger.info("catalog_loaded", tenant_id=tenant_id, count=len(titles))
            return titles

        except Exception as e:
            logger.error(
                "load_catalog_failed",
                tenant_id=tenant_id,
                error=str(e)
            )
            raise DatabaseError("select", str(e))

    def match_titles_by_isbn(
        self,
        tenant_id: str,
        rows: list[ValidatedTitleRow]
    ) -> MatchResult:
        """
        Match CSV rows to existing titles by ISBN.

        Every row ends up in exactly one of matched, unmatched or no_isbn.
        Not-found ISBNs are a result, never an exception.

        Args:
            tenant_id: Tenant whose catalog is searched
            rows: Validated CSV rows

        Returns:
            MatchResult with matched, unmatched, no_isbn and errors
        """
        result = MatchResult()

        rows_with_isbn: list[tuple[ValidatedTitleRow, str]] = []
        for row in rows:
            if not row.data.isbn:
                result.no_isbn.append(row.row)
                continue
            rows_with_isbn.append((row, normalize_isbn(row.data.isbn)))

        if not rows_with_isbn:
            logger.info("isbn_match_skipped", reason="no_isbns", rows=len(rows))
            return result

        title_map, duplicates = self._build_isbn_map(self.get_catalog(tenant_id))

        for row, normalized in rows_with_isbn:
            existing = title_map.get(normalized)
            if existing is None:
                result.unmatched.append(row.data.isbn)
                continue

            if normalized in duplicates:
                result.errors.append(ImportRowError(
                    row=row.row,
                    field="isbn",
                    value=row.data.isbn,
                    message=(
                        f"ISBN {row.data.isbn} matches more than one title; "
                        f"matched to title {existing.id}"
                    ),
                ))

            diff = compute_title_diff(existing, row)
            result.matched.append(TitleMatch(
                isbn=row.data.isbn,
                title_id=existing.id,
                existing_title=existing,
                csv_row=row,
                diff=diff,
                row_number=row.row,
            ))

        logger.info(
            "isbn_match_complete",
            tenant_id=tenant_id,
            matched=len(result.matched),
            unmatched=len(result.unmatched),
            no_isbn=len(result.no_isbn),
            with_changes=sum(1 for m in result.matched if m.has_changes)
        )

        return result

    @staticmethod
    def _build_isbn_map(
        titles: list[TitleSnapshot]
    ) -> tuple[dict[str, TitleSnapshot], set[str]]:
        """Normalized ISBN → title. Later titles win a collision."""
        title_map: dict[str, TitleSnapshot] = {}
        duplicates: set[str] = set()

        for title in titles:
            if not title.isbn:
                continue
            key = normalize_isbn(title.isbn)
            previous = title_map.get(key)
            if previous is not None:
                duplicates.add(key)
                logger.warning(
                    "duplicate_isbn_in_catalog",
                    isbn=key,
                    kept_title_id=title.id,
                    dropped_title_id=previous.id
                )
            title_map[key] = title

        return title_map, duplicates


# Singleton instance for convenience
_isbn_matcher_service: Optional[IsbnMatcherService] = None


def get_isbn_matcher_service() -> IsbnMatcherService:
    """Get or create IsbnMatcherService instance."""
    global _isbn_matcher_service
    if _isbn_matcher_service is None:
        _isbn_matcher_service = IsbnMatcherService()
    return _isbn_matcher_service
