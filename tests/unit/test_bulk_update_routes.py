"""
Route tests for the title bulk update API.

Services are mocked; these tests cover request handling, tenant scoping
and error responses.
"""

import pytest
from unittest.mock import MagicMock, patch
from fastapi.testclient import TestClient

from main import app
from models.bulk_update import BulkUpdateResult, MatchResult
from exceptions import DatabaseError
from tests.factories import MatchFactory, RowFactory, TitleFactory

BASE = "/api/titles/bulk-update"
TENANT = {"X-Tenant-ID": "tenant-a"}


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def matcher():
    service = MagicMock()
    service.match_titles_by_isbn.return_value = MatchResult(unmatched=["9780306406157"])
    with patch("routes.bulk_update.get_isbn_matcher_service", return_value=service):
        yield service


@pytest.fixture
def updater():
    service = MagicMock()
    service.apply_bulk_update.return_value = BulkUpdateResult(success=True, updated_count=1)
    with patch("routes.bulk_update.get_bulk_update_service", return_value=service):
        yield service


# ===================
# VALIDATE
# ===================

class TestValidateRoute:
    """Tests for POST /validate."""

    def test_upload_validated(self, client):
        # Arrange
        files = {"file": ("titles.csv", b"ISBN,Genre\n9780306406157,Horror\n", "text/csv")}

        # Act
        response = client.post(f"{BASE}/validate", files=files)

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert body["total_rows"] == 1
        assert body["all_valid"] is True
        assert body["rows"][0]["data"] == {"isbn": "9780306406157", "genre": "Horror"}
        assert [m["target_field"] for m in body["column_mappings"]] == ["isbn", "genre"]

    def test_empty_file_rejected(self, client):
        files = {"file": ("titles.csv", b"", "text/csv")}

        response = client.post(f"{BASE}/validate", files=files)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "CSV_PARSE_ERROR"


# ===================
# MATCH
# ===================

class TestMatchRoute:
    """Tests for POST /match."""

    def test_match_uses_tenant_header(self, client, matcher):
        # Arrange
        payload = {"rows": [{"row": 1, "data": {"isbn": "9780306406157"}}]}

        # Act
        response = client.post(f"{BASE}/match", json=payload, headers=TENANT)

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert body["result"]["unmatched"] == ["9780306406157"]
        assert body["summary"]["total_matched"] == 0
        tenant_id, rows = matcher.match_titles_by_isbn.call_args[0]
        assert tenant_id == "tenant-a"
        assert rows[0].data.model_fields_set == {"isbn"}

    def test_missing_tenant(self, client, matcher):
        response = client.post(f"{BASE}/match", json={"rows": []})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "TENANT_REQUIRED"
        matcher.match_titles_by_isbn.assert_not_called()

    def test_too_many_rows(self, client, matcher):
        # Arrange
        payload = {"rows": [{"row": i, "data": {}} for i in range(1, 4)]}

        # Act
        with patch("routes.bulk_update.settings", MagicMock(bulk_update_max_rows=2)):
            response = client.post(f"{BASE}/match", json=payload, headers=TENANT)

        # Assert
        assert response.status_code == 413
        assert response.json()["error"]["code"] == "BULK_UPDATE_TOO_LARGE"

    def test_store_failure(self, client, matcher):
        matcher.match_titles_by_isbn.side_effect = DatabaseError("select", "timeout")

        response = client.post(f"{BASE}/match", json={"rows": []}, headers=TENANT)

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "DATABASE_ERROR"


# ===================
# APPLY
# ===================

class TestApplyRoute:
    """Tests for POST /apply."""

    def test_apply(self, client, updater):
        # Arrange
        payload = {"filename": "titles.csv", "updates": [], "create_unmatched": False}

        # Act
        response = client.post(f"{BASE}/apply", json=payload, headers=TENANT)

        # Assert
        assert response.status_code == 200
        assert response.json()["updated_count"] == 1
        tenant_id, request = updater.apply_bulk_update.call_args[0]
        assert tenant_id == "tenant-a"
        assert request.filename == "titles.csv"

    def test_match_response_round_trips_into_apply(self, client, matcher, updater):
        """Absent row fields stay absent from /match through /apply."""
        # Arrange
        existing = TitleFactory.snapshot(isbn="9780306406157", genre="Fantasy", word_count=90000)
        row = RowFactory.create(row=2, isbn="9780306406157", genre="Horror")
        matcher.match_titles_by_isbn.return_value = MatchResult(
            matched=[MatchFactory.create(existing, row)]
        )
        match_body = client.post(
            f"{BASE}/match", json={"rows": [row.model_dump(mode="json")]}, headers=TENANT
        ).json()

        # Act
        response = client.post(
            f"{BASE}/apply",
            json={"filename": "titles.csv", "updates": match_body["result"]["matched"]},
            headers=TENANT,
        )

        # Assert
        assert response.status_code == 200
        assert match_body["result"]["matched"][0]["csv_row"]["data"] == {
            "isbn": "9780306406157", "genre": "Horror"
        }
        _, request = updater.apply_bulk_update.call_args[0]
        update = request.updates[0]
        assert update.csv_row.data.model_fields_set == {"isbn", "genre"}
        assert update.has_changes is True
        assert update.selected is True
        assert [c.field_key.value for c in update.diff.changed_fields] == ["genre"]

    def test_missing_tenant(self, client, updater):
        response = client.post(f"{BASE}/apply", json={}, headers={"X-Tenant-ID": "  "})

        assert response.status_code == 400
        updater.apply_bulk_update.assert_not_called()


# ===================
# HISTORY
# ===================

class TestHistoryRoute:
    """Tests for GET /history."""

    def test_history(self, client):
        # Arrange
        service = MagicMock()
        service.get_recent.return_value = [{"id": "imp-1", "status": "success"}]

        # Act
        with patch("routes.bulk_update.get_csv_import_service", return_value=service):
            response = client.get(f"{BASE}/history?limit=5", headers=TENANT)

        # Assert
        assert response.status_code == 200
        assert response.json() == [{"id": "imp-1", "status": "success"}]
        service.get_recent.assert_called_once_with("tenant-a", limit=5)


class TestHealth:
    """Tests for GET /health."""

    def test_degraded_when_database_down(self, client):
        with patch("main.check_connection", return_value={"status": "unhealthy", "error": "x"}):
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
