"""
Repositories for statements that must run inside a caller's transaction.

Every method takes the open psycopg connection; none of them commits.
"""

from repositories.title_repository import TitleRepository
from repositories.csv_import_repository import CsvImportRepository

__all__ = [
    "TitleRepository",
    "CsvImportRepository",
]
