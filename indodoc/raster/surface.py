"""Mutable raster surface used by the locators and field extractors.

The surface owns an ``(H, W, 4)`` RGBA uint8 array. Geometric operations
(crop, rotate, rescale) replace the array and therefore the dimensions; the
invariant ``pixels.size == width * height * 4`` holds after every call.

Example:
    >>> surface = RasterSurface.blank(800, 600)
    >>> surface.crop(Rectangle(left=100, top=50, width=400, height=300))
    >>> surface.width, surface.height
    (400, 300)
"""

import logging
import math
from pathlib import Path
from typing import Iterable, List, Optional, Union

import cv2
import numpy as np

from indodoc.common.types import Pivot, Rectangle, RelativeBox

from .loader import FileSource, load_raster

logger = logging.getLogger(__name__)

WHITE = (255, 255, 255, 255)
MARK_COLOR = (0, 128, 0, 255)


class RasterSurface:
    """Addressable 2-D RGBA pixel buffer.

    Args:
        pixels: Optional initial ``(H, W, 4)`` uint8 array. The surface takes
            ownership of the array without copying it.

    Attributes:
        pixels: Current pixel array.
    """

    def __init__(self, pixels: Optional[np.ndarray] = None):
        self._pixels = np.zeros((0, 0, 4), dtype=np.uint8)
        if pixels is not None:
            self.pixels = pixels

    @classmethod
    def blank(cls, width: int, height: int) -> "RasterSurface":
        """Create an opaque white surface."""
        return cls(np.full((height, width, 4), 255, dtype=np.uint8))

    @property
    def pixels(self) -> np.ndarray:
        return self._pixels

    @pixels.setter
    def pixels(self, value: np.ndarray) -> None:
        if value.ndim != 3 or value.shape[2] != 4:
            raise ValueError(f"Expected (H, W, 4) RGBA array, got shape {value.shape}")
        if value.dtype != np.uint8:
            value = value.astype(np.uint8)
        self._pixels = value

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    @property
    def is_empty(self) -> bool:
        return self._pixels.size == 0

    def mount_file(self, source: FileSource) -> "RasterSurface":
        """Load an image file or page 1 of a PDF into the surface.

        Raises:
            RasterLoadError: If the file cannot be decoded.
        """
        self.pixels = load_raster(source)
        return self

    def copy(self) -> "RasterSurface":
        """Independent copy of the surface (backup before destructive crops)."""
        return RasterSurface(self._pixels.copy())

    def snapshot(self) -> np.ndarray:
        """Copy of the current pixel array."""
        return self._pixels.copy()

    def crop(self, rect: Rectangle, angle: float = 0.0) -> "RasterSurface":
        """Rotate the content about the rectangle's top-left by ``-angle`` and cut it out.

        The output pixel ``(u, v)`` is sampled from the source point
        ``(left, top) + R(angle) @ (u, v)``, so text sloping at ``angle`` inside
        the rectangle comes out horizontal. Areas outside the source are white.

        Args:
            rect: Region to keep, in current pixel coordinates.
            angle: Rotation of the content in radians.
        """
        left, top = rect.left, rect.top
        _, _, width, height = rect.to_int_tuple()
        c, s = math.cos(angle), math.sin(angle)
        # Maps destination coordinates to source coordinates
        matrix = np.array([[c, -s, left], [s, c, top]], dtype=np.float64)
        self._pixels = cv2.warpAffine(
            self._pixels,
            matrix,
            (width, height),
            flags=cv2.INTER_LINEAR | cv2.WARP_INVERSE_MAP,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=WHITE,
        )
        logger.debug(
            f"Cropped to {width}x{height} at ({left:.1f}, {top:.1f}), "
            f"angle={math.degrees(angle):.2f}deg"
        )
        return self

    def rotate(self, pivot: Pivot) -> "RasterSurface":
        """Rotate the whole surface about the pivot by ``-pivot.angle`` without resizing."""
        matrix = cv2.getRotationMatrix2D((pivot.x, pivot.y), math.degrees(pivot.angle), 1.0)
        self._pixels = cv2.warpAffine(
            self._pixels,
            matrix,
            (self.width, self.height),
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=WHITE,
        )
        return self

    def to_width(self, target_width: int, downscale_allowed: bool = True) -> "RasterSurface":
        """Uniformly rescale so the width equals ``target_width``.

        Args:
            target_width: Desired width in pixels.
            downscale_allowed: When False, surfaces already wider than the
                target are left untouched.
        """
        if self.is_empty or self.width == target_width:
            return self
        if self.width > target_width and not downscale_allowed:
            return self

        scale = target_width / self.width
        target_height = max(1, int(round(self.height * scale)))
        interpolation = cv2.INTER_AREA if scale < 1 else cv2.INTER_CUBIC
        self._pixels = cv2.resize(
            self._pixels, (target_width, target_height), interpolation=interpolation
        )
        return self

    def mark_boxes(self, rects: Iterable[Rectangle]) -> "RasterSurface":
        """Draw a green outline around every rectangle (debug overlay)."""
        pixels = np.ascontiguousarray(self._pixels)
        for rect in rects:
            x, y, w, h = rect.to_int_tuple()
            cv2.rectangle(pixels, (x, y), (x + w - 1, y + h - 1), MARK_COLOR, 1)
        self._pixels = pixels
        return self

    def rect_from_relative(self, box: RelativeBox) -> Rectangle:
        """Project a relative box onto the current surface dimensions."""
        return Rectangle(
            left=box.x0 * self.width,
            top=box.y0 * self.height,
            width=(box.x1 - box.x0) * self.width,
            height=(box.y1 - box.y0) * self.height,
        )

    def distribute_overlapping_cells(self, side: int) -> List[Rectangle]:
        """Split the surface into ``side * side`` overlapping sections.

        The surface is divided into a ``(side + 1)`` grid of cells; every
        section covers 2x2 adjacent cells, so a word straddling a cell border
        is fully inside at least one section. Sections are ordered row-major.
        """
        offset = 1 / (side + 1)
        rects = []
        for i in range(side * side):
            row, col = divmod(i, side)
            x0 = col * offset
            y0 = row * offset
            box = RelativeBox(x0=x0, y0=y0, x1=min(1.0, x0 + 2 * offset), y1=min(1.0, y0 + 2 * offset))
            rects.append(self.rect_from_relative(box))
        return rects

    def to_png_bytes(self) -> bytes:
        """Encode the current content as PNG."""
        ok, encoded = cv2.imencode(".png", cv2.cvtColor(self._pixels, cv2.COLOR_RGBA2BGRA))
        if not ok:
            raise RuntimeError("PNG encoding failed")
        return encoded.tobytes()

    def save(self, path: Union[str, Path]) -> Path:
        """Write the current content as a PNG file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.to_png_bytes())
        return path

    def __repr__(self) -> str:
        return f"RasterSurface({self.width}x{self.height})"
