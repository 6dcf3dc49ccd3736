"""
Tests for the validators module.
"""

import pytest
from photobook.validators import BookValidator
from photobook.models import SpreadRecord, ValidationResult


class TestTotalPages:
    """Tests for page count validation."""

    def test_valid_page_count(self):
        result = BookValidator.validate_total_pages(30)
        assert result.is_valid
        assert not result.has_issues()

    def test_odd_page_count(self):
        result = BookValidator.validate_total_pages(31)
        assert not result.is_valid
        assert "even" in result.errors[0]

    def test_too_many_pages(self):
        result = BookValidator.validate_total_pages(72)
        assert not result.is_valid
        assert "35 spreads" in result.errors[0]


class TestReorderValidation:
    """Tests for reorder request validation."""

    @pytest.mark.parametrize("from_index,to_index", [(0, 5), (1, 5), (5, 1), (5, 0), (-1, 4)])
    def test_protected_spreads_rejected(self, from_index, to_index):
        """Test that the cover and first content spread can never move."""
        result = BookValidator.validate_reorder(from_index, to_index, 14)
        assert not result.is_valid

    def test_valid_reorder(self):
        result = BookValidator.validate_reorder(3, 10, 14)
        assert result.is_valid

    def test_target_past_end(self):
        result = BookValidator.validate_reorder(3, 15, 14)
        assert not result.is_valid
        assert "does not exist" in result.errors[0]

    def test_same_source_and_target(self):
        result = BookValidator.validate_reorder(4, 4, 14)
        assert not result.is_valid


class TestTextColorValidation:
    """Tests for text colour validation."""

    def test_swatch_is_valid(self):
        result = BookValidator.validate_text_color('#ff0000')
        assert result.is_valid
        assert not result.has_issues()

    def test_custom_hex_is_a_warning(self):
        result = BookValidator.validate_text_color('#123abc')
        assert result.is_valid
        assert "swatches" in result.warnings[0]

    @pytest.mark.parametrize("color", ["red", "#12345", "#zzzzzz", "not-a-colour", ""])
    def test_invalid_colours(self, color):
        result = BookValidator.validate_text_color(color)
        assert not result.is_valid
        assert "hex color" in result.errors[0]


class TestRecordValidation:
    """Tests for stored record validation."""

    def test_valid_record(self):
        record = SpreadRecord(2, (2, 3), 0, [
            {'type': 'image', '_id': 'a'},
            {'type': 'text', '_id': 'b'},
        ])
        assert BookValidator.validate_record(record).is_valid

    def test_page_marker_rejected(self):
        """Test that layout markers leaking into a record are rejected."""
        record = SpreadRecord(2, (2, 3), 0, [{'type': 'rect', '_id': 'p', 'pageMarker': True}])
        result = BookValidator.validate_record(record)
        assert not result.is_valid
        assert "page marker" in result.errors[0]

    def test_unknown_type_rejected(self):
        record = SpreadRecord(2, (2, 3), 0, [{'type': 'circle', '_id': 'c'}])
        assert not BookValidator.validate_record(record).is_valid

    def test_missing_id_rejected(self):
        record = SpreadRecord(2, (2, 3), 0, [{'type': 'text'}])
        assert not BookValidator.validate_record(record).is_valid

    def test_duplicate_id_is_warning(self):
        record = SpreadRecord(2, (2, 3), 0, [
            {'type': 'text', '_id': 'a'},
            {'type': 'text', '_id': 'a'},
        ])
        result = BookValidator.validate_record(record)
        assert result.is_valid
        assert len(result.warnings) == 1


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_initial_state(self):
        result = ValidationResult(is_valid=True)
        assert result.is_valid
        assert len(result.errors) == 0
        assert len(result.warnings) == 0

    def test_add_error_marks_invalid(self):
        result = ValidationResult(is_valid=True)
        result.add_error("Test error")
        assert not result.is_valid
        assert "Test error" in result.errors

    def test_add_warning_keeps_valid(self):
        result = ValidationResult(is_valid=True)
        result.add_warning("Test warning")
        assert result.is_valid
        assert result.has_issues()

    def test_get_summary(self):
        result = ValidationResult(is_valid=True)
        assert "passed" in result.get_summary().lower()

        result.add_error("Error 1")
        result.add_warning("Warning 1")
        summary = result.get_summary()
        assert "1 error" in summary
        assert "1 warning" in summary
