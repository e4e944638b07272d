"""
Common type definitions for the Indonesian identity document OCR pipeline.

This module provides the geometry and recognition-result types shared by the
raster surface, the recognition facade, the locators and the field extractors.

Geometry types (pydantic, validated):
- RelativeBox: fractions of the canonical document view (registry boxes)
- Rectangle: absolute pixel rectangle on the current surface
- Pivot: rotation pivot with an angle in radians

Recognition types (dataclasses, engine-owned and read-only):
- BBox, RecognitionSymbol, RecognitionWord, RecognitionLine, RecognitionResult
- TargetReadResult: corrected text plus the confidence it was read with

LocatorState (Enum) tracks the locator state machine.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

import numpy as np
from pydantic import BaseModel, Field, field_validator, model_validator


class RelativeBox(BaseModel):
    """
    Rectangle relative to the canonical document view.

    Attributes:
        x0: Left edge as a fraction of the view width.
        y0: Top edge as a fraction of the view height.
        x1: Right edge as a fraction of the view width.
        y1: Bottom edge as a fraction of the view height.

    Example:
        >>> box = RelativeBox(x0=0.0, y0=0.06, x1=0.23, y1=0.2)
        >>> box.is_left_half
        True
    """

    x0: float = Field(..., ge=0.0, le=1.0)
    y0: float = Field(..., ge=0.0, le=1.0)
    x1: float = Field(..., ge=0.0, le=1.0)
    y1: float = Field(..., ge=0.0, le=1.0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _validate_order(self) -> "RelativeBox":
        """
        Validate that the box has a positive area.

        Raises:
            ValueError: If x0 >= x1 or y0 >= y1.
        """
        if self.x0 >= self.x1:
            raise ValueError(f"Invalid box: x0 ({self.x0}) must be < x1 ({self.x1})")
        if self.y0 >= self.y1:
            raise ValueError(f"Invalid box: y0 ({self.y0}) must be < y1 ({self.y1})")
        return self

    @property
    def is_left_half(self) -> bool:
        """Whether the box lies entirely in the left half of the view."""
        return self.x1 <= 0.5


class Rectangle(BaseModel):
    """
    Absolute rectangle in pixel units on the current raster surface.

    Coordinates are floats because they are usually derived from relative
    boxes or anchor measurements; callers round when they slice pixels.

    Attributes:
        left: X-coordinate of the left edge.
        top: Y-coordinate of the top edge.
        width: Rectangle width (> 0).
        height: Rectangle height (> 0).
    """

    left: float
    top: float
    width: float = Field(..., gt=0.0)
    height: float = Field(..., gt=0.0)

    model_config = {"frozen": True}

    @field_validator("left", "top", "width", "height", mode="before")
    @classmethod
    def _convert_to_float(cls, v: Union[int, float, np.number]) -> float:
        """Accept numpy scalars as plain floats."""
        if isinstance(v, (int, float, np.number)):
            return float(v)
        raise ValueError(f"Coordinate must be numeric, got {type(v)}")

    @classmethod
    def from_corners(cls, x0: float, y0: float, x1: float, y1: float) -> "Rectangle":
        """Create a rectangle from its top-left and bottom-right corners."""
        return cls(left=x0, top=y0, width=x1 - x0, height=y1 - y0)

    @property
    def right(self) -> float:
        """X-coordinate of the right edge."""
        return self.left + self.width

    @property
    def bottom(self) -> float:
        """Y-coordinate of the bottom edge."""
        return self.top + self.height

    def to_int_tuple(self) -> Tuple[int, int, int, int]:
        """
        Round to integer pixel units.

        Returns:
            Tuple (left, top, width, height) with width and height at least 1.
        """
        return (
            int(round(self.left)),
            int(round(self.top)),
            max(1, int(round(self.width))),
            max(1, int(round(self.height))),
        )


class Pivot(BaseModel):
    """
    Rotation pivot.

    Attributes:
        x: Pivot X-coordinate.
        y: Pivot Y-coordinate.
        angle: Rotation of the document content in radians. Rotating the
            surface about the pivot by ``-angle`` makes the content upright.
    """

    x: float
    y: float
    angle: float = 0.0

    model_config = {"frozen": True}


@dataclass(frozen=True)
class BBox:
    """Absolute bounding box reported by the OCR engine (x0, y0, x1, y1)."""

    x0: int
    y0: int
    x1: int
    y1: int

    @property
    def width(self) -> int:
        return self.x1 - self.x0

    @property
    def height(self) -> int:
        return self.y1 - self.y0

    def offset(self, dx: int, dy: int) -> "BBox":
        """Translate the box by (dx, dy)."""
        return BBox(self.x0 + dx, self.y0 + dy, self.x1 + dx, self.y1 + dy)

    def contains_point(self, x: float, y: float) -> bool:
        return self.x0 <= x <= self.x1 and self.y0 <= y <= self.y1

    @classmethod
    def union(cls, boxes: List["BBox"]) -> "BBox":
        """Smallest box enclosing every box in ``boxes``."""
        return cls(
            min(b.x0 for b in boxes),
            min(b.y0 for b in boxes),
            max(b.x1 for b in boxes),
            max(b.y1 for b in boxes),
        )


@dataclass(frozen=True)
class RecognitionSymbol:
    """A single recognized character."""

    text: str
    bbox: BBox


@dataclass(frozen=True)
class RecognitionWord:
    """
    A recognized word.

    Attributes:
        text: Word text.
        confidence: Engine confidence in [0, 100].
        bbox: Word bounding box in full-image coordinates.
        symbols: Per-character boxes (empty unless the variant requests them).
    """

    text: str
    confidence: float
    bbox: BBox
    symbols: Tuple[RecognitionSymbol, ...] = ()


@dataclass(frozen=True)
class RecognitionLine:
    """
    A recognized text line.

    Attributes:
        text: Line text (words joined by single spaces).
        confidence: Engine confidence in [0, 100].
        bbox: Line bounding box in full-image coordinates.
        words: Words of the line, left to right.
    """

    text: str
    confidence: float
    bbox: BBox
    words: Tuple[RecognitionWord, ...] = ()


@dataclass(frozen=True)
class RecognitionResult:
    """Structured result of one recognition job."""

    lines: Tuple[RecognitionLine, ...] = ()

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines)

    @property
    def first_line(self) -> Optional[RecognitionLine]:
        return self.lines[0] if self.lines else None

    @property
    def last_line(self) -> Optional[RecognitionLine]:
        return self.lines[-1] if self.lines else None


@dataclass
class TargetReadResult:
    """
    Corrected value of a field read together with its confidence.

    Attributes:
        text: Corrected, canonical value.
        confidence: Confidence of the read it came from, in [0, 100].
    """

    text: str
    confidence: float


class LocatorState(Enum):
    """Progress of a document locator towards the canonical view."""

    RAW = "raw"
    TOP_ANCHOR_FOUND = "top_anchor_found"
    CROPPED_TO_TOP = "cropped_to_top"
    BOTTOM_ANCHOR_FOUND = "bottom_anchor_found"
    CANONICAL_VIEW = "canonical_view"
