"""RapidOCR engine wrapper for identity document fields.

This module provides an alternative recognition backend built on RapidOCR
(PaddleOCR ONNX models). It handles:

- Lazy engine initialization with the variant's parameters
- Conversion of RapidOCR line detections into the structured line/word result
- Character whitelist/blacklist applied as a post-filter (RapidOCR has no
  recognizer-side character restriction)

RapidOCR only reports line boxes, so word boxes are apportioned along the line
box by character count.

Example:
    >>> engine = RapidOCREngine(VariantConfig(engine="rapidocr"))
    >>> result = engine.recognize(image)
    >>> print(result.text)
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from indodoc.common.errors import EngineUnavailableError
from indodoc.common.types import BBox, RecognitionLine, RecognitionResult, RecognitionWord, Rectangle

from .config_loader import VariantConfig
from .types import crop_to_rectangle, to_rgb

logger = logging.getLogger(__name__)


class RapidOCREngine:
    """Wrapper for one RapidOCR instance.

    Args:
        config: Variant configuration.

    Attributes:
        config: Variant configuration instance.
        engine: RapidOCR engine instance (lazy-loaded).
    """

    def __init__(self, config: VariantConfig):
        self.config = config
        self._engine: Optional[object] = None  # Lazy-loaded

        logger.info(
            f"RapidOCREngine initialized with config: "
            f"use_gpu={config.use_gpu}, text_score={config.text_score}"
        )

    @property
    def engine(self):
        """Lazy-load RapidOCR engine on first access.

        Returns:
            RapidOCR engine instance.

        Raises:
            EngineUnavailableError: If rapidocr_onnxruntime is missing or fails to start.
        """
        if self._engine is None:
            try:
                from rapidocr_onnxruntime import RapidOCR

                self._engine = RapidOCR(
                    use_angle_cls=False,
                    use_gpu=self.config.use_gpu,
                    text_score=self.config.text_score,
                    use_space_char=True,  # Preserve spaces between words
                )
                logger.info(f"RapidOCR engine loaded: text_score={self.config.text_score}")

            except ImportError as e:
                logger.error(
                    "Failed to import rapidocr_onnxruntime. "
                    "Install with: pip install rapidocr-onnxruntime"
                )
                raise EngineUnavailableError(
                    "rapidocr-onnxruntime not installed. Run: pip install rapidocr-onnxruntime"
                ) from e

            except Exception as e:
                logger.error(f"Failed to initialize RapidOCR engine: {e}")
                raise EngineUnavailableError(f"RapidOCR initialization failed: {e}") from e

        return self._engine

    def recognize(
        self, image: np.ndarray, rectangle: Optional[Rectangle] = None
    ) -> RecognitionResult:
        """Recognize text lines in an image region.

        Args:
            image: RGBA, RGB or gray image as numpy array.
            rectangle: Optional region to restrict recognition to.

        Returns:
            RecognitionResult with boxes in full-image coordinates, lines
            ordered top to bottom.
        """
        view, (dx, dy) = crop_to_rectangle(image, rectangle)
        if view.size == 0:
            logger.warning(f"Empty recognition view for rectangle {rectangle}")
            return RecognitionResult()

        # RapidOCR API returns (results_list, timing_info); results_list is
        # None when nothing is detected
        detections, _ = self.engine(to_rgb(view))
        if not detections:
            logger.debug("RapidOCR returned no text detections")
            return RecognitionResult()

        lines = []
        for points, text, score in detections:
            line = self._build_line(points, str(text), float(score) * 100.0, dx, dy)
            if line is not None:
                lines.append(line)

        lines.sort(key=lambda line: (line.bbox.y0, line.bbox.x0))
        return RecognitionResult(lines=tuple(lines))

    def filter_characters(self, text: str) -> str:
        """Apply the variant's whitelist/blacklist to recognized text. Spaces are kept."""
        whitelist = self.config.char_whitelist
        blacklist = self.config.char_blacklist or ""
        return "".join(
            c
            for c in text
            if c == " " or ((whitelist is None or c in whitelist) and c not in blacklist)
        )

    def _build_line(
        self, points: Sequence[Sequence[float]], text: str, confidence: float, dx: int, dy: int
    ) -> Optional[RecognitionLine]:
        text = " ".join(self.filter_characters(text).split())
        if not text:
            return None

        pts = np.array(points, dtype=np.float64)
        bbox = BBox(
            int(pts[:, 0].min()), int(pts[:, 1].min()), int(pts[:, 0].max()), int(pts[:, 1].max())
        ).offset(dx, dy)
        words = apportion_words(text, bbox, confidence)
        return RecognitionLine(text=text, confidence=confidence, bbox=bbox, words=tuple(words))

    def close(self) -> None:
        self._engine = None


def apportion_words(text: str, bbox: BBox, confidence: float) -> List[RecognitionWord]:
    """Split a line into words, giving each a slice of the line box proportional to its length.

    Args:
        text: Whitespace-normalized line text.
        bbox: Line bounding box.
        confidence: Line confidence, inherited by every word.

    Returns:
        Words left to right.
    """
    if not text:
        return []
    char_width = bbox.width / len(text)
    words = []
    offset = 0
    for token in text.split(" "):
        x0 = bbox.x0 + int(round(offset * char_width))
        x1 = bbox.x0 + int(round((offset + len(token)) * char_width))
        words.append(
            RecognitionWord(text=token, confidence=confidence, bbox=BBox(x0, bbox.y0, max(x1, x0 + 1), bbox.y1))
        )
        offset += len(token) + 1
    return words
