"""Shared orchestration for the document pipelines.

``DocumentOCR`` owns the raster surface, the recognition schedulers, the
preprocessing worker and the field history. Document-specific subclasses
implement ``_run``: locate the canonical view, read every field and assemble
the payload.

Lifecycle:
    mount_file -> run -> (confirm) update_history -> ... -> terminate

Example:
    >>> with PassportOCR() as ocr:
    ...     ocr.mount_file("passport.jpg")
    ...     payload = ocr.run()
    ...     ocr.update_history(confirmed_payload)
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import Future
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Union

import numpy as np

from indodoc.common.types import RecognitionLine, RecognitionResult, TargetReadResult
from indodoc.preprocess.worker import Filter, PreprocessWorker
from indodoc.raster.loader import FileSource
from indodoc.raster.surface import RasterSurface

from .config_loader import Config, VariantConfig, get_default_config
from .corrector import correct_by_history, trim_whitespace
from .scheduler import SchedulerMultiplexor
from .targets import CorrectionKind, FieldTarget, TargetRegistry

logger = logging.getLogger(__name__)

Payload = Dict[str, Optional[str]]
HistoryMap = Dict[str, List[str]]
DebugCallback = Callable[[str, np.ndarray], None]


class DebugImageWriter:
    """Debug callback writing every image to a directory as numbered PNG files.

    Args:
        directory: Output directory (created on first write).
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.counter = 0

    def __call__(self, label: str, pixels: np.ndarray) -> None:
        self.counter += 1
        path = RasterSurface(pixels).save(self.directory / f"{self.counter:03d}_{label}.png")
        logger.debug(f"Wrote debug image {path}")


def prefer_alternate(
    primary: Optional[TargetReadResult], alternate: Optional[TargetReadResult]
) -> Optional[TargetReadResult]:
    """Pick between a primary and an alternate read of the same field.

    A missing read loses automatically. Otherwise the alternate wins only on a
    strictly higher confidence; ties keep the primary.
    """
    if alternate is None:
        return primary
    if primary is None or alternate.confidence > primary.confidence:
        return alternate
    return primary


class DocumentOCR(ABC):
    """Base class of the document pipelines.

    Args:
        variants: Recognition variant configurations keyed by name.
        config: Full configuration (default: bundled config.yaml).
        history: Field history. The mapping is used in place, so a caller that
            keeps a reference sees every update.
        multiplexor: Scheduler multiplexor to use instead of creating one from
            ``variants`` (tests inject fakes here).
        debug_callback: Called with a label and an RGBA snapshot after every
            major raster mutation.

    Attributes:
        targets: Field registry of the document type.
        surface: Raster surface worked on by the current run.
        history: Field history.
    """

    targets: TargetRegistry

    def __init__(
        self,
        variants: Mapping[str, VariantConfig],
        config: Optional[Config] = None,
        history: Optional[HistoryMap] = None,
        multiplexor: Optional[SchedulerMultiplexor] = None,
        debug_callback: Optional[DebugCallback] = None,
    ):
        self.config = config or get_default_config()
        self.history: HistoryMap = history if history is not None else {}
        self.history_limit = self.config.history.limit
        self.multiplexor = multiplexor or SchedulerMultiplexor(variants)
        self.preprocessor = PreprocessWorker(self.config.preprocessing.workers)
        self.surface = RasterSurface()
        self._source: Optional[np.ndarray] = None

        debug = self.config.debug
        if debug_callback is None and debug.enabled and debug.debug_dir:
            debug_callback = DebugImageWriter(debug.debug_dir)
        self.debug_callback = debug_callback

    def mount_file(self, source: FileSource) -> None:
        """Load an image or page 1 of a PDF. Must be called before ``run``.

        Raises:
            RasterLoadError: If the file cannot be decoded.
        """
        surface = RasterSurface().mount_file(source)
        self.mount_pixels(surface.pixels)

    def mount_pixels(self, pixels: np.ndarray) -> None:
        """Mount an already decoded ``(H, W, 4)`` RGBA array."""
        self._source = RasterSurface(pixels).pixels
        self.surface = RasterSurface(self._source.copy())
        self.debug_image("mounted")

    @property
    def is_mounted(self) -> bool:
        return self._source is not None

    def run(self) -> Payload:
        """Extract every field from the mounted document.

        Each run starts from the mounted source, so ``run`` can be repeated
        without mounting again.

        Returns:
            Mapping of payload key to corrected value or None.

        Raises:
            RuntimeError: If no file has been mounted.
            DocumentNotFoundError: If the document cannot be located.
        """
        if self._source is None:
            raise RuntimeError("mount_file() must be called before run()")
        self.surface = RasterSurface(self._source.copy())
        payload = self._run()
        found = sum(1 for value in payload.values() if value is not None)
        logger.info(f"{type(self).__name__} extracted {found}/{len(payload)} fields")
        return payload

    @abstractmethod
    def _run(self) -> Payload:
        ...

    def terminate(self) -> None:
        """Release every recognition worker. Call once when the session ends."""
        self.multiplexor.terminate()
        self.preprocessor.shutdown()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.terminate()

    def process_line(
        self, target: FieldTarget, line: Union[RecognitionLine, str, None]
    ) -> Optional[str]:
        """Correct the raw text of a field according to its correction kind.

        Args:
            target: Field the text belongs to.
            line: Recognized line or raw text.

        Returns:
            Corrected value, or None when the text is missing or rejected.
        """
        if line is None:
            return None
        text = line if isinstance(line, str) else line.text
        text = text.strip()
        history = self.history.get(target.key)

        kind = target.correction.kind
        if kind is CorrectionKind.CUSTOM:
            value = target.correction.corrector(text, history)
        elif kind is CorrectionKind.HISTORY_ONLY:
            value = correct_by_history(text, history)
        else:
            value = trim_whitespace(text) or None

        if value is None and text:
            logger.debug(f"Corrector rejected {target.name}: '{text}'")
        return value

    def read_line(
        self, target: FieldTarget, future: "Future[RecognitionResult]", last: bool = False
    ) -> Optional[TargetReadResult]:
        """Wait for a recognition job and correct its first (or last) line."""
        result = future.result()
        line = result.last_line if last else result.first_line
        if line is None:
            logger.warning(f"No text recognized for {target.name}")
            return None
        value = self.process_line(target, line)
        if value is None:
            return None
        return TargetReadResult(text=value, confidence=line.confidence)

    def update_history(self, payload: Mapping[str, Optional[str]]) -> HistoryMap:
        """Record human-confirmed values in the field history.

        For every field with history, a non-empty value is appended unless the
        exact string is already present; the oldest entry is evicted once the
        history exceeds its limit.

        Args:
            payload: Confirmed payload (keys as returned by ``run``).

        Returns:
            The updated history mapping.
        """
        for key in self.targets.history_keys:
            value = payload.get(key)
            if not value:
                continue
            entries = self.history.setdefault(key, [])
            if value in entries:
                continue
            entries.append(value)
            while len(entries) > self.history_limit:
                entries.pop(0)
        return self.history

    def preprocess(self, surface: RasterSurface, fn: Filter) -> RasterSurface:
        """Run a filter over the surface on the preprocessing worker."""
        surface.pixels = self.preprocessor.apply(fn, surface.pixels)
        return surface

    def debug_image(self, label: str, surface: Optional[RasterSurface] = None) -> None:
        if self.debug_callback is None:
            return
        surface = surface or self.surface
        if surface.is_empty:
            return
        self.debug_callback(label, surface.snapshot())
