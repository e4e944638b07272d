"""Unit tests for common geometry and recognition types."""

import pytest
from pydantic import ValidationError

from indodoc.common.errors import DocumentNotFoundError
from indodoc.common.types import BBox, RecognitionResult, Rectangle, RelativeBox

from fakes import make_line


class TestRelativeBox:
    """Test relative box validation."""

    def test_valid_box(self):
        """Test a box with positive area is accepted."""
        box = RelativeBox(x0=0.1, y0=0.2, x1=0.3, y1=0.4)

        assert box.x1 == 0.3

    def test_inverted_box_rejected(self):
        """Test x0 >= x1 is rejected."""
        with pytest.raises(ValidationError):
            RelativeBox(x0=0.5, y0=0.0, x1=0.5, y1=1.0)

    def test_out_of_range_rejected(self):
        """Test coordinates outside [0, 1] are rejected."""
        with pytest.raises(ValidationError):
            RelativeBox(x0=0.0, y0=0.0, x1=1.2, y1=1.0)

    def test_is_left_half(self):
        """Test left-half detection uses the right edge."""
        assert RelativeBox(x0=0.0, y0=0.0, x1=0.5, y1=1.0).is_left_half
        assert not RelativeBox(x0=0.4, y0=0.0, x1=0.6, y1=1.0).is_left_half


class TestRectangle:
    """Test absolute rectangles."""

    def test_zero_width_rejected(self):
        """Test a rectangle must have positive size."""
        with pytest.raises(ValidationError):
            Rectangle(left=0, top=0, width=0, height=10)

    def test_from_corners(self):
        """Test construction from two corners."""
        rect = Rectangle.from_corners(10, 20, 50, 80)

        assert (rect.left, rect.top, rect.width, rect.height) == (10, 20, 40, 60)
        assert rect.right == 50
        assert rect.bottom == 80

    def test_to_int_tuple_keeps_minimum_size(self):
        """Test rounding never yields an empty rectangle."""
        rect = Rectangle(left=1.4, top=2.6, width=0.3, height=0.2)

        assert rect.to_int_tuple() == (1, 3, 1, 1)


class TestBBox:
    """Test engine bounding boxes."""

    def test_offset(self):
        """Test translation."""
        assert BBox(0, 0, 10, 5).offset(3, 4) == BBox(3, 4, 13, 9)

    def test_union(self):
        """Test the union encloses every box."""
        assert BBox.union([BBox(0, 5, 10, 10), BBox(5, 0, 20, 8)]) == BBox(0, 0, 20, 10)


class TestRecognitionResult:
    """Test the recognition result accessors."""

    def test_empty_result(self):
        """Test an empty result has no first or last line."""
        result = RecognitionResult()

        assert result.first_line is None
        assert result.last_line is None
        assert result.text == ""

    def test_first_and_last_line(self):
        """Test line accessors and joined text."""
        result = RecognitionResult(lines=(make_line("A B"), make_line("C")))

        assert result.first_line.text == "A B"
        assert result.last_line.text == "C"
        assert result.text == "A B\nC"


class TestDocumentNotFoundError:
    """Test the locator failure error."""

    def test_str_includes_code_and_stage(self):
        """Test the message carries the code and the failed stage."""
        error = DocumentNotFoundError("No title", code="LOC-E001", stage="RAW")

        assert str(error) == "[LOC-E001] No title (stage=RAW)"
        assert error.code == "LOC-E001"

    def test_str_without_stage(self):
        """Test the stage is optional."""
        assert str(DocumentNotFoundError("No title")) == "[LOC-E000] No title"
