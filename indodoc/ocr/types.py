"""Type definitions for the recognition layer.

This module defines the engine interface shared by the Tesseract and RapidOCR
wrappers, and the helper that restricts a recognition job to a sub-rectangle.
"""

from typing import Optional, Protocol, Tuple

import cv2
import numpy as np

from indodoc.common.types import RecognitionResult, Rectangle


class RecognitionEngine(Protocol):
    """A single engine instance. Instances are not shared between threads."""

    def recognize(
        self, image: np.ndarray, rectangle: Optional[Rectangle] = None
    ) -> RecognitionResult:
        """Recognize text, optionally restricted to ``rectangle``.

        Bounding boxes in the result are in full-image coordinates.
        """
        ...

    def close(self) -> None:
        ...


def crop_to_rectangle(
    image: np.ndarray, rectangle: Optional[Rectangle]
) -> Tuple[np.ndarray, Tuple[int, int]]:
    """Cut the recognition view out of ``image``.

    The rectangle is clipped to the image bounds. The returned view is a
    numpy slice (no pixel copy), together with the (dx, dy) offset that maps
    view coordinates back to full-image coordinates.

    Args:
        image: (H, W) or (H, W, C) array.
        rectangle: Region to keep, or None for the whole image.

    Returns:
        Tuple (view, (dx, dy)). The view may be empty when the rectangle lies
        entirely outside the image.
    """
    if rectangle is None:
        return image, (0, 0)

    height, width = image.shape[:2]
    left, top, w, h = rectangle.to_int_tuple()
    x0 = min(max(left, 0), width)
    y0 = min(max(top, 0), height)
    x1 = min(max(left + w, 0), width)
    y1 = min(max(top + h, 0), height)
    return image[y0:y1, x0:x1], (x0, y0)


def to_rgb(image: np.ndarray) -> np.ndarray:
    """Convert an RGBA or gray view to a contiguous RGB array for the engines."""
    if image.ndim == 2:
        return np.ascontiguousarray(cv2.cvtColor(image, cv2.COLOR_GRAY2RGB))
    if image.shape[2] == 4:
        return np.ascontiguousarray(cv2.cvtColor(image, cv2.COLOR_RGBA2RGB))
    return np.ascontiguousarray(image)
