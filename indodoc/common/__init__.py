"""
Common types and errors shared across all modules.

This module provides the geometry and recognition-result types used by the
raster surface, the recognition facade, the locators and the field extractors.
"""

from indodoc.common.errors import (
    DocumentNotFoundError,
    DocumentOCRError,
    EngineUnavailableError,
    RasterLoadError,
    SchedulerTerminatedError,
)
from indodoc.common.types import (
    BBox,
    LocatorState,
    Pivot,
    RecognitionLine,
    RecognitionResult,
    RecognitionSymbol,
    RecognitionWord,
    Rectangle,
    RelativeBox,
    TargetReadResult,
)

__all__ = [
    "BBox",
    "LocatorState",
    "Pivot",
    "RecognitionLine",
    "RecognitionResult",
    "RecognitionSymbol",
    "RecognitionWord",
    "Rectangle",
    "RelativeBox",
    "TargetReadResult",
    "DocumentOCRError",
    "DocumentNotFoundError",
    "EngineUnavailableError",
    "RasterLoadError",
    "SchedulerTerminatedError",
]
