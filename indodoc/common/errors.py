"""
Exception hierarchy for the document OCR pipeline.

Only conditions that abort a run are exceptions. A region the engine returns no
lines for, or a value a corrector rejects, is a soft failure: the field's value
becomes ``None`` and the run continues.
"""

from typing import Optional


class DocumentOCRError(Exception):
    """Base class for every error raised by the pipeline."""


class RasterLoadError(DocumentOCRError):
    """The input file could not be decoded into a raster surface."""


class EngineUnavailableError(DocumentOCRError, RuntimeError):
    """The OCR engine binary or backend could not be initialised."""


class SchedulerTerminatedError(DocumentOCRError, RuntimeError):
    """A recognition pool was used after ``terminate()``."""


class DocumentNotFoundError(DocumentOCRError):
    """
    A locator stage could not find its anchor.

    This is fatal for the current input. Retrying the same image yields the
    same failure, so the caller has to resubmit a better photo.

    Attributes:
        code: Error code (e.g., "LOC-E001")
        stage: Locator state in which the search failed (e.g., "RAW")
        message: Human-readable explanation
    """

    def __init__(self, message: str, code: str = "LOC-E000", stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.code}] {self.message} (stage={self.stage})"
        return f"[{self.code}] {self.message}"
