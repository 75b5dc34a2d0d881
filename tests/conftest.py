"""
Shared test fixtures.

Two fakes stand in for the database:
    - MockSupabaseClient: chainable PostgREST query builder (reads, inserts)
    - FakeCatalogStore: in-memory titles/csv_imports with transaction rollback
"""

import os
import sys
from pathlib import Path

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are loaded at import time
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import copy
import pytest
from contextlib import contextmanager
from unittest.mock import MagicMock, patch
from typing import Any, Generator, Optional
from uuid import uuid4

import psycopg


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, table: "MockSupabaseTable"):
        self._table = table
        self._filters: list[tuple[str, Any]] = []
        self._range: Optional[tuple[int, int]] = None
        self._limit: Optional[int] = None
        self._inserted: Optional[list] = None

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        # Simulate insert - add id
        rows = [data] if isinstance(data, dict) else data
        inserted = []
        for item in rows:
            row = {**item}
            row.setdefault("id", str(uuid4()))
            inserted.append(row)
        self._inserted = inserted
        return self

    def eq(self, column, value):
        self._filters.append((column, value))
        return self

    def order(self, column, **kwargs):
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._table.error is not None:
            raise self._table.error

        if self._inserted is not None:
            self._table.rows.extend(self._inserted)
            self._table.inserted.extend(self._inserted)
            return MockSupabaseResponse(data=self._inserted)

        data = [
            row for row in self._table.rows
            if all(row.get(column) == value for column, value in self._filters)
        ]
        count = len(data)
        if self._range is not None:
            start, end = self._range
            data = data[start:end + 1]
        if self._limit is not None:
            data = data[:self._limit]
        return MockSupabaseResponse(data=data, count=count)


class MockSupabaseTable:
    """Mock Supabase table backed by a list of rows."""

    def __init__(self):
        self.rows: list[dict] = []
        self.inserted: list[dict] = []
        self.error: Optional[Exception] = None
        self.queries = 0

    def select(self, *args, **kwargs):
        self.queries += 1
        return MockSupabaseQuery(self).select(*args, **kwargs)

    def insert(self, data):
        self.queries += 1
        return MockSupabaseQuery(self).insert(data)


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables: dict[str, MockSupabaseTable] = {}

    def set_table_data(self, table_name: str, data: list):
        """Configure rows for a table."""
        self.table(table_name).rows = list(data)

    def set_table_error(self, table_name: str, error: Exception):
        """Make every query on a table raise."""
        self.table(table_name).error = error

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        if name not in self._tables:
            self._tables[name] = MockSupabaseTable()
        return self._tables[name]


# ===================
# FAKE TRANSACTIONAL STORE
# ===================

class FakeCatalogStore:
    """
    In-memory titles and csv_imports with repository-shaped methods.

    transaction() snapshots both tables and restores them if the block
    raises, like a rolled-back Postgres transaction.
    """

    def __init__(self):
        self.titles: dict[str, dict] = {}
        self.imports: dict[str, dict] = {}
        self.fail_on_update: Optional[str] = None
        self.transactions = 0

    def add_title(self, tenant_id: str, **fields) -> dict:
        title = {"tenant_id": tenant_id, **fields}
        title.setdefault("id", str(uuid4()))
        self.titles[title["id"]] = title
        return title

    @contextmanager
    def transaction(self):
        self.transactions += 1
        snapshot = copy.deepcopy((self.titles, self.imports))
        try:
            yield self
        except Exception:
            self.titles, self.imports = snapshot
            raise

    # TitleRepository

    def update_fields(self, conn, tenant_id: str, title_id: str, fields: list) -> bool:
        if title_id == self.fail_on_update:
            raise psycopg.OperationalError("server closed the connection unexpectedly")
        title = self.titles.get(title_id)
        if title is None or title["tenant_id"] != tenant_id:
            return False
        for column, value in fields:
            title[column] = value
        title["updated_at"] = "now"
        return True

    def insert(self, conn, tenant_id: str, data) -> str:
        title = self.add_title(tenant_id, **data.model_dump(mode="json"))
        return title["id"]

    # CsvImportRepository

    def create(self, conn, tenant_id: str, filename: str, import_mode, total_rows: int,
               column_mappings: list, imported_by: Optional[str] = None) -> str:
        import_id = str(uuid4())
        self.imports[import_id] = {
            "id": import_id,
            "tenant_id": tenant_id,
            "filename": filename,
            "import_mode": import_mode.value,
            "total_rows": total_rows,
            "status": "success",
            "imported_by": imported_by,
        }
        return import_id

    def finalize(self, conn, import_id: str, status, **counts) -> None:
        record = self.imports[import_id]
        record.update(counts)
        record["status"] = status.value
        record["completed_at"] = "now"


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("titles", [
                {"id": "1", "tenant_id": "t1", "title": "...", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the Supabase client with the mock.

    Services created inside the test get the mock from get_supabase_client().
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.isbn_matcher_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.csv_import_service.get_supabase_client", return_value=mock_supabase):
                yield mock_supabase


@pytest.fixture
def fake_store() -> Generator:
    """
    Patch the bulk updater's transaction and repositories with FakeCatalogStore.
    """
    store = FakeCatalogStore()
    with patch("services.bulk_update_service.transaction", store.transaction):
        with patch("services.bulk_update_service.TitleRepository", store):
            with patch("services.bulk_update_service.CsvImportRepository", store):
                yield store


@pytest.fixture
def mock_tracking() -> MagicMock:
    """Stand-in for CsvImportService used by the bulk updater."""
    return MagicMock()


@pytest.fixture
def tenant_id() -> str:
    return "tenant-a"
