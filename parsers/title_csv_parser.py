"""
CSV parser and row validator for title imports and bulk updates.

Reads an uploaded CSV, maps columns to title fields and validates each
row into a ValidatedTitleRow.

Blank cells are treated as absent, so a bulk update never clears a
catalog value just because a cell was left empty.
"""

from datetime import date
from io import StringIO
from typing import Any, Callable, Optional
import re
import structlog

import pandas as pd

from models.csv_import import ColumnMapping, ImportRowError, ImportableTitleField
from models.title import (
    PublicationStatus,
    TitleCsvStats,
    TitleCsvValidationResult,
    TitleRowData,
    ValidatedTitleRow,
)
from exceptions import CsvParseError
from utils.isbn_utils import normalize_isbn, validate_isbn13

logger = structlog.get_logger(__name__)


MAX_SECONDARY_BISAC_CODES = 2
SAMPLE_VALUE_COUNT = 5

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_ASIN_PATTERN = re.compile(r"^[A-Z0-9]{10}$")
_BISAC_PATTERN = re.compile(r"^[A-Z]{3}\d{6}$")

# Common header variations that auto-map to fields
HEADER_AUTO_MAP: dict[str, ImportableTitleField] = {
    # Title
    "title": ImportableTitleField.TITLE,
    "book title": ImportableTitleField.TITLE,
    "work title": ImportableTitleField.TITLE,
    "name": ImportableTitleField.TITLE,
    # Subtitle
    "subtitle": ImportableTitleField.SUBTITLE,
    "sub title": ImportableTitleField.SUBTITLE,
    "sub-title": ImportableTitleField.SUBTITLE,
    # Author
    "author": ImportableTitleField.AUTHOR_NAME,
    "author name": ImportableTitleField.AUTHOR_NAME,
    "author_name": ImportableTitleField.AUTHOR_NAME,
    "writer": ImportableTitleField.AUTHOR_NAME,
    # ISBN
    "isbn": ImportableTitleField.ISBN,
    "isbn-13": ImportableTitleField.ISBN,
    "isbn13": ImportableTitleField.ISBN,
    "isbn 13": ImportableTitleField.ISBN,
    # Genre
    "genre": ImportableTitleField.GENRE,
    "category": ImportableTitleField.GENRE,
    "subject": ImportableTitleField.GENRE,
    # Publication date
    "publication date": ImportableTitleField.PUBLICATION_DATE,
    "publication_date": ImportableTitleField.PUBLICATION_DATE,
    "pub date": ImportableTitleField.PUBLICATION_DATE,
    "pubdate": ImportableTitleField.PUBLICATION_DATE,
    "publish date": ImportableTitleField.PUBLICATION_DATE,
    "published": ImportableTitleField.PUBLICATION_DATE,
    # Status
    "status": ImportableTitleField.PUBLICATION_STATUS,
    "publication status": ImportableTitleField.PUBLICATION_STATUS,
    "publication_status": ImportableTitleField.PUBLICATION_STATUS,
    "pub status": ImportableTitleField.PUBLICATION_STATUS,
    # Word count
    "word count": ImportableTitleField.WORD_COUNT,
    "word_count": ImportableTitleField.WORD_COUNT,
    "wordcount": ImportableTitleField.WORD_COUNT,
    "words": ImportableTitleField.WORD_COUNT,
    # ASIN
    "asin": ImportableTitleField.ASIN,
    "amazon asin": ImportableTitleField.ASIN,
    # BISAC
    "bisac": ImportableTitleField.BISAC_CODE,
    "bisac code": ImportableTitleField.BISAC_CODE,
    "bisac_code": ImportableTitleField.BISAC_CODE,
    "primary bisac": ImportableTitleField.BISAC_CODE,
    "bisac codes": ImportableTitleField.BISAC_CODES,
    "bisac_codes": ImportableTitleField.BISAC_CODES,
    "secondary bisac": ImportableTitleField.BISAC_CODES,
    "additional bisac": ImportableTitleField.BISAC_CODES,
}


# ===================
# FILE READING
# ===================

def read_csv_rows(content: bytes) -> tuple[list[str], list[list[str]]]:
    """
    Read CSV bytes into headers and string rows.

    Comma or tab delimited, detected from the header line. Every cell
    comes back as a string; missing cells are "".

    Raises:
        CsvParseError: If the file cannot be decoded or parsed
    """
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise CsvParseError(
            message="CSV file must be UTF-8 encoded",
            details={"original_error": str(e)}
        )

    lines = text.splitlines()
    header_line = lines[0] if lines else ""
    delimiter = "\t" if header_line.count("\t") > header_line.count(",") else ","

    try:
        df = pd.read_csv(
            StringIO(text),
            sep=delimiter,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            index_col=False,
        )
        # Short rows come back as NaN even with keep_default_na off
        df = df.fillna("")
    except pd.errors.EmptyDataError:
        raise CsvParseError(message="CSV file is empty")
    except Exception as e:
        logger.error("csv_read_failed", error=str(e))
        raise CsvParseError(
            message="Failed to read CSV file",
            details={"original_error": str(e)}
        )

    headers = [str(c).strip() for c in df.columns]
    rows = [
        [str(cell) for cell in record]
        for record in df.itertuples(index=False, name=None)
        if any(str(cell).strip() for cell in record)
    ]

    logger.info(
        "csv_read",
        delimiter="tab" if delimiter == "\t" else "comma",
        columns=len(headers),
        rows=len(rows)
    )

    return headers, rows


def auto_map_columns(headers: list[str], rows: list[list[str]]) -> list[ColumnMapping]:
    """Map headers to title fields by known header variants."""
    mappings = []
    for index, header in enumerate(headers):
        samples = [
            row[index].strip()
            for row in rows[:SAMPLE_VALUE_COUNT]
            if index < len(row) and row[index].strip()
        ]
        mappings.append(ColumnMapping(
            csv_column_index=index,
            csv_column_header=header,
            target_field=HEADER_AUTO_MAP.get(header.lower().strip()),
            sample_values=samples,
        ))
    return mappings


# ===================
# FIELD VALIDATION
# ===================

def _max_length(limit: int, label: str) -> Callable[[str], str]:
    def check(value: str) -> str:
        if len(value) > limit:
            raise ValueError(f"{label} too long (max {limit} characters)")
        return value
    return check


def _isbn(value: str) -> str:
    if not validate_isbn13(value):
        raise ValueError("Invalid ISBN-13 format or checksum")
    return value


def _publication_date(value: str) -> str:
    if not _DATE_PATTERN.match(value):
        raise ValueError("Date must be in YYYY-MM-DD format")
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValueError("Date must be in YYYY-MM-DD format")
    return value


def _publication_status(value: str) -> str:
    status = value.lower()
    valid = [s.value for s in PublicationStatus]
    if status not in valid:
        raise ValueError(f"Invalid status. Must be: {', '.join(valid)}")
    return status


def _word_count(value: str) -> int:
    try:
        count = int(value)
    except ValueError:
        raise ValueError("Word count must be a positive number")
    if count <= 0:
        raise ValueError("Word count must be a positive number")
    return count


def _asin(value: str) -> str:
    asin = value.upper()
    if not _ASIN_PATTERN.match(asin):
        raise ValueError("ASIN must be 10 alphanumeric characters")
    return asin


def _bisac_code(value: str) -> str:
    code = value.upper()
    if not _BISAC_PATTERN.match(code):
        raise ValueError(
            "BISAC code must be 3 uppercase letters followed by 6 digits (e.g., FIC000000)"
        )
    return code


def _bisac_codes(value: str) -> Optional[list[str]]:
    codes = [c.strip().upper() for c in re.split(r"[,;]", value) if c.strip()]
    if not codes:
        return None
    if not all(_BISAC_PATTERN.match(c) for c in codes):
        raise ValueError(
            "Invalid BISAC code format. Each must be 3 uppercase letters followed by 6 digits"
        )
    if len(codes) > MAX_SECONDARY_BISAC_CODES:
        raise ValueError(
            f"Maximum {MAX_SECONDARY_BISAC_CODES} secondary BISAC codes allowed"
        )
    return codes


FIELD_VALIDATORS: dict[ImportableTitleField, Callable[[str], Any]] = {
    ImportableTitleField.TITLE: _max_length(500, "Title"),
    ImportableTitleField.SUBTITLE: _max_length(500, "Subtitle"),
    ImportableTitleField.ISBN: _isbn,
    ImportableTitleField.GENRE: _max_length(100, "Genre"),
    ImportableTitleField.PUBLICATION_DATE: _publication_date,
    ImportableTitleField.PUBLICATION_STATUS: _publication_status,
    ImportableTitleField.WORD_COUNT: _word_count,
    ImportableTitleField.ASIN: _asin,
    ImportableTitleField.BISAC_CODE: _bisac_code,
    ImportableTitleField.BISAC_CODES: _bisac_codes,
}


def _get_row_value(
    row: list[str],
    mappings: list[ColumnMapping],
    target: ImportableTitleField
) -> Optional[str]:
    """Trimmed cell for a field, or None if unmapped or blank."""
    for mapping in mappings:
        if mapping.target_field == target:
            if mapping.csv_column_index >= len(row):
                return None
            value = row[mapping.csv_column_index].strip()
            return value or None
    return None


def validate_csv_row(
    row: list[str],
    row_number: int,
    mappings: list[ColumnMapping],
    require_title: bool = False
) -> ValidatedTitleRow:
    """
    Validate one CSV row.

    Args:
        row: Cell values
        row_number: 1-indexed row number for error messages
        mappings: Column → field mappings
        require_title: Whether a missing title is an error (create imports)

    Returns:
        ValidatedTitleRow; only non-blank, valid cells are set on data
    """
    errors: list[ImportRowError] = []
    values: dict[str, Any] = {}

    for target, validator in FIELD_VALIDATORS.items():
        raw = _get_row_value(row, mappings, target)
        if raw is None:
            continue
        try:
            value = validator(raw)
        except ValueError as e:
            errors.append(ImportRowError(
                row=row_number,
                field=target.value,
                value=raw,
                message=str(e),
            ))
            continue
        if value is not None:
            values[target.value] = value

    if require_title and "title" not in values and not any(e.field == "title" for e in errors):
        errors.append(ImportRowError(
            row=row_number,
            field="title",
            value="",
            message="Title is required",
        ))

    return ValidatedTitleRow(
        row=row_number,
        data=TitleRowData(**values),
        author_name=_get_row_value(row, mappings, ImportableTitleField.AUTHOR_NAME),
        valid=not errors,
        errors=errors,
    )


# ===================
# WHOLE FILE
# ===================

def _flag_duplicates(
    rows: list[ValidatedTitleRow],
    field_name: str,
    key: Callable[[str], str],
    label: str
) -> list[str]:
    """Invalidate rows sharing a value for field_name; returns the duplicated values."""
    counts: dict[str, int] = {}
    for row in rows:
        value = getattr(row.data, field_name)
        if value:
            counts[key(value)] = counts.get(key(value), 0) + 1

    duplicated = {k for k, n in counts.items() if n > 1}
    reported: list[str] = []
    for row in rows:
        value = getattr(row.data, field_name)
        if not value or key(value) not in duplicated:
            continue
        if value not in reported:
            reported.append(value)
        row.errors.append(ImportRowError(
            row=row.row,
            field=field_name,
            value=value,
            message=f"Duplicate {label} in import file: {value}",
        ))
        row.valid = False

    return reported


def validate_csv_data(
    headers: list[str],
    rows: list[list[str]],
    mappings: list[ColumnMapping],
    require_title: bool = False
) -> TitleCsvValidationResult:
    """
    Validate every row and flag in-file duplicate ISBNs and ASINs.

    Row numbers are 1-indexed for display.
    """
    if require_title and not any(m.target_field == ImportableTitleField.TITLE for m in mappings):
        return TitleCsvValidationResult(
            all_valid=False,
            total_rows=len(rows),
            valid_count=0,
            invalid_count=len(rows),
            errors=[ImportRowError(
                row=0,
                field="title",
                value="",
                message="Title column must be mapped - it is a required field",
            )],
            column_mappings=mappings,
        )

    validated = [
        validate_csv_row(row, index + 1, mappings, require_title=require_title)
        for index, row in enumerate(rows)
    ]

    duplicate_isbns = _flag_duplicates(validated, "isbn", normalize_isbn, "ISBN")
    duplicate_asins = _flag_duplicates(validated, "asin", lambda v: v, "ASIN")

    all_errors = [e for row in validated for e in row.errors]
    valid_count = sum(1 for row in validated if row.valid)

    result = TitleCsvValidationResult(
        all_valid=not all_errors,
        total_rows=len(rows),
        valid_count=valid_count,
        invalid_count=len(rows) - valid_count,
        rows=validated,
        errors=all_errors,
        column_mappings=mappings,
        stats=TitleCsvStats(
            with_author=sum(1 for r in validated if r.author_name),
            with_isbn=sum(1 for r in validated if r.data.isbn),
            with_asin=sum(1 for r in validated if r.data.asin),
            with_bisac=sum(1 for r in validated if r.data.bisac_code),
            duplicate_isbns=duplicate_isbns,
            duplicate_asins=duplicate_asins,
        ),
    )

    logger.info(
        "csv_validated",
        total_rows=result.total_rows,
        valid=result.valid_count,
        invalid=result.invalid_count,
        duplicate_isbns=len(duplicate_isbns)
    )

    return result


def parse_title_csv(
    content: bytes,
    mappings: Optional[list[ColumnMapping]] = None,
    require_title: bool = False
) -> TitleCsvValidationResult:
    """
    Read, map and validate an uploaded title CSV.

    Args:
        content: Raw file bytes
        mappings: Explicit column mappings; auto-mapped from headers if None
        require_title: True for create imports, False for bulk updates

    Raises:
        CsvParseError: If the file cannot be read
    """
    headers, rows = read_csv_rows(content)
    if mappings is None:
        mappings = auto_map_columns(headers, rows)
    return validate_csv_data(headers, rows, mappings, require_title=require_title)
