"""
Business logic services.

Each service handles one domain area.
"""

from services.isbn_matcher_service import (
    IsbnMatcherService,
    get_isbn_matcher_service,
    compute_title_diff,
    compute_bulk_diff_summary,
    get_selected_updates,
    has_title_field_change,
)
from services.bulk_update_service import BulkUpdateService, get_bulk_update_service
from services.csv_import_service import CsvImportService, get_csv_import_service

__all__ = [
    "IsbnMatcherService",
    "get_isbn_matcher_service",
    "compute_title_diff",
    "compute_bulk_diff_summary",
    "get_selected_updates",
    "has_title_field_change",
    "BulkUpdateService",
    "get_bulk_update_service",
    "CsvImportService",
    "get_csv_import_service",
]
