"""Unit tests for the Tesseract engine wrapper."""

from unittest.mock import patch

import numpy as np
import pytesseract
import pytest

from indodoc.common.errors import EngineUnavailableError
from indodoc.common.types import BBox, Rectangle
from indodoc.ocr.config_loader import VariantConfig
from indodoc.ocr.engine_tesseract import (
    TesseractEngine,
    build_tesseract_config,
    parse_image_data,
    parse_symbols,
)


def _image_data():
    """image_to_data output with a page row, two words on one line and one on the next."""
    return {
        "level": [1, 5, 5, 5],
        "block_num": [0, 1, 1, 1],
        "par_num": [0, 1, 1, 1],
        "line_num": [0, 1, 1, 2],
        "text": ["", "PROVINSI", "JAWA", "3171"],
        "conf": [-1, 90, 70, 60],
        "left": [0, 10, 120, 10],
        "top": [0, 5, 6, 40],
        "width": [300, 100, 50, 80],
        "height": [100, 20, 20, 18],
    }


@pytest.fixture
def engine():
    """Provide a TesseractEngine with the version probe patched."""
    with patch("indodoc.ocr.engine_tesseract.pytesseract.get_tesseract_version", return_value="5.3.0"):
        yield TesseractEngine(VariantConfig(char_blacklist=",."))


class TestBuildConfig:
    """Test Tesseract command-line construction."""

    def test_number_variant(self):
        """Test the whitelist and dictionary switches."""
        config = build_tesseract_config(VariantConfig(char_whitelist="0123456789"))

        assert config.startswith("--psm 6")
        assert "-c load_system_dawg=0" in config
        assert "-c load_number_dawg=0" in config
        assert "tessedit_char_whitelist=0123456789" in config

    def test_dictionaries_kept(self):
        """Test dictionaries stay on when not disabled."""
        config = build_tesseract_config(VariantConfig(disable_dictionaries=False, psm=7))

        assert config == "--psm 7"

    def test_fast_models(self):
        """Test the fast tessdata directory is passed through."""
        config = build_tesseract_config(VariantConfig(fast=True, fast_tessdata_dir="/opt/tessdata_fast"))

        assert "--tessdata-dir /opt/tessdata_fast" in config


class TestInitialization:
    """Test engine initialization."""

    def test_missing_binary(self):
        """Test a missing tesseract binary raises EngineUnavailableError."""
        with patch(
            "indodoc.ocr.engine_tesseract.pytesseract.get_tesseract_version",
            side_effect=pytesseract.TesseractNotFoundError(),
        ):
            with pytest.raises(EngineUnavailableError, match="Tesseract not available"):
                TesseractEngine(VariantConfig())


class TestParseImageData:
    """Test grouping of word rows into lines."""

    def test_lines_grouped(self):
        """Test words are grouped by block, paragraph and line."""
        result = parse_image_data(_image_data())

        assert [line.text for line in result.lines] == ["PROVINSI JAWA", "3171"]
        assert result.lines[0].confidence == pytest.approx(80.0)
        assert result.lines[0].bbox == BBox(10, 5, 170, 26)

    def test_offset_applied(self):
        """Test boxes are shifted into full-image coordinates."""
        result = parse_image_data(_image_data(), dx=100, dy=50)

        assert result.lines[1].words[0].bbox == BBox(110, 90, 190, 108)

    def test_structural_rows_skipped(self):
        """Test an empty page yields no lines."""
        data = {key: values[:1] for key, values in _image_data().items()}

        assert parse_image_data(data).lines == ()

    def test_symbols_attached(self):
        """Test character boxes are attached to the word containing them."""
        boxes = {"char": ["3", "1"], "left": [12, 30], "bottom": [52, 52], "right": [20, 38], "top": [68, 68]}
        symbols = parse_symbols(boxes, image_height=100)

        assert symbols[0].bbox == BBox(12, 32, 20, 48)

        result = parse_image_data(_image_data(), symbols=symbols)
        assert len(result.lines[1].words[0].symbols) == 2
        assert result.lines[0].words[0].symbols == ()


class TestRecognize:
    """Test recognition through pytesseract."""

    def test_recognize_region(self, engine):
        """Test the region is cropped and boxes are offset back."""
        image = np.full((200, 400, 4), 255, dtype=np.uint8)
        with patch("indodoc.ocr.engine_tesseract.pytesseract.image_to_data", return_value=_image_data()) as mock_data:
            result = engine.recognize(image, Rectangle(left=20, top=30, width=300, height=100))

        rgb = mock_data.call_args[0][0]
        assert rgb.shape == (100, 300, 3)
        assert mock_data.call_args.kwargs["lang"] == "ind"
        assert result.lines[0].bbox == BBox(30, 35, 190, 56)

    def test_empty_view(self, engine):
        """Test a rectangle outside the image yields an empty result."""
        image = np.full((20, 20, 4), 255, dtype=np.uint8)
        with patch("indodoc.ocr.engine_tesseract.pytesseract.image_to_data") as mock_data:
            result = engine.recognize(image, Rectangle(left=50, top=50, width=5, height=5))

        assert result.lines == ()
        mock_data.assert_not_called()

    def test_tesseract_error_propagates(self, engine):
        """Test engine failures are not swallowed."""
        image = np.full((20, 20, 4), 255, dtype=np.uint8)
        with patch(
            "indodoc.ocr.engine_tesseract.pytesseract.image_to_data",
            side_effect=pytesseract.TesseractError(1, "failed"),
        ):
            with pytest.raises(pytesseract.TesseractError):
                engine.recognize(image)
