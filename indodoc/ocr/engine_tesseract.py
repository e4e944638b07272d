"""Tesseract OCR engine wrapper for identity document fields.

This module provides a high-level interface to Tesseract OCR returning the
structured line/word/symbol result the locators and field extractors consume.

Example:
    >>> from indodoc.ocr.config_loader import VariantConfig
    >>> engine = TesseractEngine(VariantConfig(char_whitelist="0123456789"))
    >>> result = engine.recognize(image, rectangle)
    >>> print(result.first_line.text, result.first_line.confidence)
    '3171234567890123' 87.5
"""

import logging
import shlex
from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

import numpy as np
import pytesseract

from indodoc.common.errors import EngineUnavailableError
from indodoc.common.types import (
    BBox,
    RecognitionLine,
    RecognitionResult,
    RecognitionSymbol,
    RecognitionWord,
    Rectangle,
)

from .config_loader import VariantConfig
from .types import crop_to_rectangle, to_rgb

logger = logging.getLogger(__name__)

DICTIONARY_PARAMS = ("load_system_dawg", "load_freq_dawg", "load_number_dawg")


def build_tesseract_config(config: VariantConfig) -> str:
    """Build the Tesseract command-line configuration for a variant.

    Args:
        config: Variant configuration.

    Returns:
        Config string passed to pytesseract (split with shlex on its side).

    Example:
        >>> build_tesseract_config(VariantConfig(char_whitelist="0123456789"))
        '--psm 6 -c load_system_dawg=0 -c load_freq_dawg=0 -c load_number_dawg=0 -c tessedit_char_whitelist=0123456789'
    """
    parts = [f"--psm {config.psm}"]
    if config.fast and config.fast_tessdata_dir:
        parts.append(f"--tessdata-dir {shlex.quote(config.fast_tessdata_dir)}")
    if config.disable_dictionaries:
        parts.extend(f"-c {param}=0" for param in DICTIONARY_PARAMS)
    if config.char_whitelist:
        parts.append("-c " + shlex.quote(f"tessedit_char_whitelist={config.char_whitelist}"))
    if config.char_blacklist:
        parts.append("-c " + shlex.quote(f"tessedit_char_blacklist={config.char_blacklist}"))
    return " ".join(parts)


class TesseractEngine:
    """Wrapper for one Tesseract configuration.

    pytesseract runs a fresh ``tesseract`` process per call, so an instance
    holds no native state; it only carries the variant's configuration.

    Args:
        config: Variant configuration.

    Raises:
        EngineUnavailableError: If the tesseract binary cannot be found.
    """

    def __init__(self, config: VariantConfig):
        self.config = config
        self.tesseract_config = build_tesseract_config(config)

        # Verify Tesseract is available
        try:
            version = pytesseract.get_tesseract_version()
            logger.info(f"Tesseract engine initialized: version {version}, lang={config.lang}")
        except Exception as e:
            logger.error(f"Tesseract not found or not properly configured: {e}")
            raise EngineUnavailableError(
                "Tesseract not available. Please install Tesseract OCR with the "
                "Indonesian language data.\n"
                "Linux: sudo apt-get install tesseract-ocr tesseract-ocr-ind\n"
                "MacOS: brew install tesseract tesseract-lang"
            ) from e

    def recognize(
        self, image: np.ndarray, rectangle: Optional[Rectangle] = None
    ) -> RecognitionResult:
        """Recognize text lines in an image region.

        Args:
            image: RGBA, RGB or gray image as numpy array.
            rectangle: Optional region to restrict recognition to.

        Returns:
            RecognitionResult with boxes in full-image coordinates. A region
            without text yields an empty result.
        """
        view, (dx, dy) = crop_to_rectangle(image, rectangle)
        if view.size == 0:
            logger.warning(f"Empty recognition view for rectangle {rectangle}")
            return RecognitionResult()

        rgb = to_rgb(view)
        try:
            data = pytesseract.image_to_data(
                rgb,
                lang=self.config.lang,
                config=self.tesseract_config,
                output_type=pytesseract.Output.DICT,
            )
            boxes = (
                pytesseract.image_to_boxes(
                    rgb,
                    lang=self.config.lang,
                    config=self.tesseract_config,
                    output_type=pytesseract.Output.DICT,
                )
                if self.config.include_symbols
                else None
            )
        except pytesseract.TesseractError as e:
            logger.error(f"Tesseract recognition failed: {e}")
            raise

        symbols = parse_symbols(boxes, rgb.shape[0], dx, dy) if boxes else []
        result = parse_image_data(data, dx, dy, symbols)
        logger.debug(f"Tesseract found {len(result.lines)} lines: {[line.text for line in result.lines]}")
        return result

    def close(self) -> None:
        pass


def parse_symbols(
    boxes: Dict[str, List], image_height: int, dx: int = 0, dy: int = 0
) -> List[RecognitionSymbol]:
    """Convert ``image_to_boxes`` output to symbols in top-left-origin coordinates.

    Tesseract reports character boxes with the origin at the bottom-left.
    """
    symbols = []
    for i, char in enumerate(boxes.get("char", [])):
        left, bottom, right, top = (
            int(boxes["left"][i]),
            int(boxes["bottom"][i]),
            int(boxes["right"][i]),
            int(boxes["top"][i]),
        )
        bbox = BBox(left, image_height - top, right, image_height - bottom).offset(dx, dy)
        symbols.append(RecognitionSymbol(text=char, bbox=bbox))
    return symbols


def parse_image_data(
    data: Dict[str, List],
    dx: int = 0,
    dy: int = 0,
    symbols: Optional[List[RecognitionSymbol]] = None,
) -> RecognitionResult:
    """Group ``image_to_data`` word rows into lines.

    Rows are grouped by (block, paragraph, line) in the order Tesseract reports
    them. Rows with empty text or a negative confidence are structural and
    skipped. Line confidence is the mean of its word confidences.

    Args:
        data: Output of ``pytesseract.image_to_data`` with ``Output.DICT``.
        dx: X offset added to every box.
        dy: Y offset added to every box.
        symbols: Optional character boxes to attach to the words containing them.

    Returns:
        RecognitionResult in reading order.
    """
    grouped: "OrderedDict[Tuple[int, int, int], List[RecognitionWord]]" = OrderedDict()

    for i in range(len(data.get("text", []))):
        text = str(data["text"][i]).strip()
        conf = float(data["conf"][i])
        if not text or conf < 0:
            continue

        left, top = int(data["left"][i]), int(data["top"][i])
        bbox = BBox(left, top, left + int(data["width"][i]), top + int(data["height"][i])).offset(dx, dy)
        word_symbols: Tuple[RecognitionSymbol, ...] = ()
        if symbols:
            word_symbols = tuple(
                s
                for s in symbols
                if bbox.contains_point((s.bbox.x0 + s.bbox.x1) / 2, (s.bbox.y0 + s.bbox.y1) / 2)
            )

        key = (int(data["block_num"][i]), int(data["par_num"][i]), int(data["line_num"][i]))
        grouped.setdefault(key, []).append(
            RecognitionWord(text=text, confidence=conf, bbox=bbox, symbols=word_symbols)
        )

    lines = []
    for words in grouped.values():
        lines.append(
            RecognitionLine(
                text=" ".join(w.text for w in words),
                confidence=float(np.mean([w.confidence for w in words])),
                bbox=BBox.union([w.bbox for w in words]),
                words=tuple(words),
            )
        )
    return RecognitionResult(lines=tuple(lines))
