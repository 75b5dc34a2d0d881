"""
Unit tests for field-level title diffs and diff helpers.
"""

import pytest

from models.csv_import import ImportableTitleField
from services.isbn_matcher_service import (
    DIFF_FIELD_MAPPINGS,
    compute_bulk_diff_summary,
    compute_title_diff,
    get_selected_updates,
    has_title_field_change,
    normalize_value,
)
from tests.factories import MatchFactory, RowFactory, TitleFactory


# ===================
# VALUE NORMALIZATION
# ===================

class TestNormalizeValue:
    """Tests for comparison normalization."""

    def test_none_and_empty_equal(self):
        assert normalize_value(None) == normalize_value("")

    def test_numbers_compare_as_strings(self):
        assert normalize_value(85000) == normalize_value("85000")

    def test_arrays_sorted(self):
        assert normalize_value(["B", "A"], is_array=True) == normalize_value(["A", "B"], is_array=True)


# ===================
# DIFF TESTS
# ===================

class TestComputeTitleDiff:
    """Tests for compute_title_diff."""

    def test_only_present_fields_compared(self):
        """Fields the row does not carry are in neither list."""
        # Arrange
        existing = TitleFactory.snapshot(isbn="9780306406157", genre="Fantasy", word_count=90000)
        row = RowFactory.create(isbn="9780306406157", genre="Sci-Fi")

        # Act
        diff = compute_title_diff(existing, row)

        # Assert
        assert [c.field_key for c in diff.changed_fields] == [ImportableTitleField.GENRE]
        assert diff.unchanged_fields == []
        assert diff.total_fields == 1

    def test_counts_match_present_fields(self):
        """changed + unchanged equals the number of diffable fields present."""
        # Arrange
        existing = TitleFactory.snapshot(
            title="Dune", isbn="9780306406157", genre="Sci-Fi", word_count=188000
        )
        row = RowFactory.create(
            isbn="9780306406157", title="Dune", genre="Science Fiction", word_count=188000
        )

        # Act
        diff = compute_title_diff(existing, row)

        # Assert
        assert len(diff.changed_fields) == 1
        assert set(diff.unchanged_fields) == {"Title", "Word Count"}
        assert diff.total_fields == 3

    def test_change_reports_old_and_new(self):
        # Arrange
        existing = TitleFactory.snapshot(genre="Fantasy")
        row = RowFactory.create(genre="Horror")

        # Act
        change = compute_title_diff(existing, row).changed_fields[0]

        # Assert
        assert change.field == "Genre"
        assert change.old_value == "Fantasy"
        assert change.new_value == "Horror"

    def test_array_order_insensitive(self):
        """Reordered secondary BISAC codes are not a change."""
        # Arrange
        existing = TitleFactory.snapshot(bisac_codes=["FIC009000", "FIC002000"])
        row = RowFactory.create(bisac_codes=["FIC002000", "FIC009000"])

        # Act
        diff = compute_title_diff(existing, row)

        # Assert
        assert diff.changed_fields == []
        assert diff.unchanged_fields == ["Secondary BISAC"]

    def test_array_change_joined_for_display(self):
        # Arrange
        existing = TitleFactory.snapshot(bisac_codes=None)
        row = RowFactory.create(bisac_codes=["FIC002000", "FIC009000"])

        # Act
        change = compute_title_diff(existing, row).changed_fields[0]

        # Assert
        assert change.old_value is None
        assert change.new_value == "FIC002000,FIC009000"

    def test_empty_string_equals_null(self):
        """Incoming "" against stored null is no change."""
        # Arrange
        existing = TitleFactory.snapshot(subtitle=None)
        row = RowFactory.create(subtitle="")

        # Act
        diff = compute_title_diff(existing, row)

        # Assert
        assert diff.changed_fields == []
        assert diff.unchanged_fields == ["Subtitle"]

    def test_isbn_is_not_diffed(self):
        """ISBN is the match key, never a change."""
        existing = TitleFactory.snapshot(isbn="978-0-306-40615-7")
        row = RowFactory.create(isbn="9780306406157")

        diff = compute_title_diff(existing, row)

        assert diff.total_fields == 0

    def test_every_mapping_reachable(self):
        """Each diffable field reports under its own label."""
        # Arrange
        existing = TitleFactory.snapshot()
        row = RowFactory.create(
            title="New", subtitle="Sub", genre="Mystery", publication_date="2024-05-01",
            publication_status="published", word_count=1000, asin="B000000001",
            bisac_code="FIC022000", bisac_codes=["FIC031000"],
        )

        # Act
        diff = compute_title_diff(existing, row)

        # Assert
        assert {c.field for c in diff.changed_fields} == {m.label for m in DIFF_FIELD_MAPPINGS}


# ===================
# HELPER TESTS
# ===================

class TestDiffHelpers:
    """Tests for summary and selection helpers."""

    def _matches(self):
        existing = TitleFactory.snapshot(isbn="9780306406157", genre="Fantasy", title="Old")
        changed = MatchFactory.create(
            existing, RowFactory.create(row=1, isbn="9780306406157", genre="Horror", title="New")
        )
        unchanged = MatchFactory.create(
            existing, RowFactory.create(row=2, isbn="9780306406157", genre="Fantasy")
        )
        deselected = MatchFactory.create(
            existing, RowFactory.create(row=3, isbn="9780306406157", genre="Horror"), selected=False
        )
        return changed, unchanged, deselected

    def test_selection_defaults_to_has_changes(self):
        changed, unchanged, deselected = self._matches()

        assert changed.has_changes and changed.selected
        assert not unchanged.has_changes and unchanged.selected is False
        assert deselected.has_changes and deselected.selected is False

    def test_selected_cannot_be_true_without_changes(self):
        """Explicit selection of a no-change match is forced off."""
        # Arrange
        existing = TitleFactory.snapshot(isbn="9780306406157", genre="Fantasy")
        row = RowFactory.create(isbn="9780306406157", genre="Fantasy")

        # Act
        match = MatchFactory.create(existing, row, selected=True)

        # Assert
        assert match.has_changes is False
        assert match.selected is False

    def test_selecting_no_change_match_after_construction(self):
        """Assigning selected=True to a no-change match is forced off."""
        existing = TitleFactory.snapshot(isbn="9780306406157", genre="Fantasy")
        match = MatchFactory.create(existing, RowFactory.create(isbn="9780306406157", genre="Fantasy"))

        match.selected = True

        assert match.selected is False

    def test_get_selected_updates(self):
        changed, unchanged, deselected = self._matches()

        assert get_selected_updates([changed, unchanged, deselected]) == [changed]

    def test_bulk_diff_summary(self):
        # Arrange
        changed, unchanged, deselected = self._matches()

        # Act
        summary = compute_bulk_diff_summary([changed, unchanged, deselected])

        # Assert
        assert summary.total_matched == 3
        assert summary.with_changes == 2
        assert summary.without_changes == 1
        assert summary.total_fields_changed == 3
        assert summary.field_change_counts == {"Genre": 2, "Title": 1}

    @pytest.mark.parametrize("row_fields,expected", [
        ({"title": "New"}, True),
        ({"genre": "Horror"}, False),
    ])
    def test_has_title_field_change(self, row_fields, expected):
        existing = TitleFactory.snapshot(title="Old", genre="Fantasy")

        diff = compute_title_diff(existing, RowFactory.create(**row_fields))

        assert has_title_field_change(diff) is expected
