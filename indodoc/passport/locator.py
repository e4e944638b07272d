"""Passport locator: finds the data page and cuts out its canonical view.

State machine (``LocatorState``):

1. RAW -> TOP_ANCHOR_FOUND: emphasize the blue-green title print, then scan
   overlapping sections of the photo for "REPUBLIK INDONESIA" on one line.
   The first section that finds it short-circuits the search; the angle
   between the two title words gives the page rotation. When the title is
   obscured, a lone "PASPOR" is accepted with zero rotation.
2. TOP_ANCHOR_FOUND -> CROPPED_TO_TOP: cut a generous square below the title,
   sized from the title width, de-rotated.
3. CROPPED_TO_TOP -> BOTTOM_ANCHOR_FOUND: binarize and read the right half.
   The last line with more than ``bottom_digit_threshold`` digits is the
   machine-readable zone; the lines above it give the right and bottom edges.
4. BOTTOM_ANCHOR_FOUND -> CANONICAL_VIEW: crop to those edges.

The returned ``PassportGeometry`` keeps both anchors and the pre-crop backup so
the passport number can later be re-read from the machine-readable zone.
"""

import logging
import math
import statistics
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Optional, Sequence

import Levenshtein

from indodoc.common.errors import DocumentNotFoundError
from indodoc.common.types import (
    LocatorState,
    Pivot,
    RecognitionLine,
    RecognitionWord,
    Rectangle,
    RelativeBox,
)
from indodoc.ocr.config_loader import PassportConfig
from indodoc.ocr.corrector import count_digits
from indodoc.ocr.task_pool import TaskPool, TaskResult
from indodoc.preprocess.filters import emphasize_blue_green, prepare_passport
from indodoc.raster.surface import RasterSurface

if TYPE_CHECKING:
    from indodoc.ocr.base import DocumentOCR

logger = logging.getLogger(__name__)

TITLE_WORDS = ("republik", "indonesia")
FALLBACK_WORD = "paspor"

RIGHT_HALF = RelativeBox(x0=0.5, y0=0.0, x1=1.0, y1=1.0)

# Lines kept above the machine-readable zone
RELEVANT_LINE_SPAN = 7
RIGHT_EDGE_SAMPLES = 3


@dataclass(frozen=True)
class TitleMatch:
    """Anchor words found in one section."""

    republik: Optional[RecognitionWord] = None
    indonesia: Optional[RecognitionWord] = None
    paspor: Optional[RecognitionWord] = None


@dataclass(frozen=True)
class TopAnchor:
    """Predicted view rectangle derived from the title.

    Attributes:
        x: Left edge of the view (full-image coordinates).
        y: Top edge of the view.
        width: Predicted view width.
        height: Predicted view height.
        word_width: Measured anchor width the prediction is scaled from.
        angle: Page rotation in radians.
    """

    x: float
    y: float
    width: float
    height: float
    word_width: float
    angle: float

    @property
    def rect(self) -> Rectangle:
        return Rectangle(left=self.x, top=self.y, width=self.width, height=self.height)


@dataclass(frozen=True)
class BottomAnchor:
    """Right and bottom edges of the view, plus the machine-readable line.

    All values are in the coordinates of the surface cropped to the top anchor.
    """

    x: float
    y: float
    end_y0: float
    end_y1: float


@dataclass(frozen=True)
class PassportGeometry:
    """Everything later stages need from the locator.

    Attributes:
        top: Top anchor.
        bottom: Bottom anchor.
        backup: Full surface before the top crop (not preprocessed).
    """

    top: TopAnchor
    bottom: BottomAnchor
    backup: RasterSurface

    def passport_number_region(self) -> Optional[Rectangle]:
        """Region left of the view at the machine-readable line, on the de-rotated backup.

        Returns:
            The region, or None when the view starts at the left image edge.
        """
        end_height = self.bottom.end_y1 - self.bottom.end_y0
        x0 = max(0.0, self.top.x - self.top.word_width * 0.9)
        x1 = self.top.x
        y0 = self.top.y + self.bottom.end_y0 - end_height * 0.5
        y1 = self.top.y + self.bottom.end_y1 + end_height * 0.5
        if x1 - x0 < 1 or y1 - y0 < 1:
            return None
        return Rectangle.from_corners(x0, y0, x1, y1)

    def passport_number_pivot(self) -> Pivot:
        """Pivot that de-rotates the backup around the view's top-left corner."""
        return Pivot(x=self.top.x, y=self.top.y, angle=self.top.angle)


def find_words_in_line(line: RecognitionLine, words: Sequence[str]) -> Dict[str, RecognitionWord]:
    """Find words of a line that are close to the wanted words.

    A line word matches a wanted word when their case-insensitive edit
    distance is below half the wanted word's length. Each wanted word takes
    the first line word matching it.

    Args:
        line: Recognized line.
        words: Wanted words (lowercase).

    Returns:
        Mapping of wanted word to the matching line word.
    """
    found: Dict[str, RecognitionWord] = {}
    for word in line.words:
        text = word.text.lower()
        for wanted in words:
            if wanted not in found and Levenshtein.distance(text, wanted) < len(wanted) // 2:
                found[wanted] = word
        if len(found) == len(words):
            break
    return found


def top_anchor_from_title(republik: RecognitionWord, indonesia: RecognitionWord) -> TopAnchor:
    """Predict the view from "REPUBLIK INDONESIA".

    The title words are co-linear on an upright page, so the vertical offset
    between them over their horizontal span gives the rotation.
    """
    width = indonesia.bbox.x1 - republik.bbox.x0
    republik_width = republik.bbox.x1 - republik.bbox.x0
    dy = ((indonesia.bbox.y0 - republik.bbox.y0) + (indonesia.bbox.y1 - republik.bbox.y1)) / 2
    angle = math.atan2(dy, width)
    return TopAnchor(
        x=republik.bbox.x0 - republik_width * 0.1,
        # y1 can reach into the English subtitle, so measure from y0
        y=republik.bbox.y0 + republik_width * 0.3,
        width=width * 2.2,
        height=width * 2.2,
        word_width=width,
        angle=angle,
    )


def top_anchor_from_paspor(paspor: RecognitionWord) -> TopAnchor:
    """Predict the view from "PASPOR" alone. Rotation is unknown and taken as zero."""
    width = paspor.bbox.x1 - paspor.bbox.x0
    height = paspor.bbox.y1 - paspor.bbox.y0
    return TopAnchor(
        x=paspor.bbox.x1 + width * 0.75,
        y=paspor.bbox.y1 - height * 0.5,
        width=width * 6,
        height=width * 6,
        word_width=width * 3,
        angle=0.0,
    )


def find_bottom_anchor(lines: Sequence[RecognitionLine], digit_threshold: int) -> BottomAnchor:
    """Locate the bottom of the view from the lines of the right half.

    The machine-readable zone is the last line with more than
    ``digit_threshold`` digits. The registration number can pass the
    threshold too, which is why the last match is kept rather than the first.
    The right edge is the median right edge of the last three lines above it.

    Raises:
        DocumentNotFoundError: LOC-E002 when no line qualifies, LOC-E003 when
            nothing is printed above the qualifying line.
    """
    end = -1
    for i, line in enumerate(lines):
        if count_digits(line.text) > digit_threshold:
            end = i
    if end == -1:
        raise DocumentNotFoundError(
            "Cannot find the bottom-right end of the passport",
            code="LOC-E002",
            stage=LocatorState.CROPPED_TO_TOP.name,
        )

    relevant = list(lines[max(end - RELEVANT_LINE_SPAN, 0) : max(end - 1, 0)])
    if not relevant:
        raise DocumentNotFoundError(
            "No field lines above the machine-readable zone",
            code="LOC-E003",
            stage=LocatorState.CROPPED_TO_TOP.name,
        )
    right_edges = sorted(line.bbox.x1 for line in relevant[-RIGHT_EDGE_SAMPLES:])
    end_line = lines[end]
    return BottomAnchor(
        x=float(statistics.median(right_edges)),
        y=float(relevant[-1].bbox.y1),
        end_y0=float(end_line.bbox.y0),
        end_y1=float(end_line.bbox.y1),
    )


class PassportLocator:
    """Turns a raw passport photo into the canonical view.

    Args:
        pipeline: Owning pipeline (schedulers, preprocessing worker, debug output).
        config: Passport configuration.

    Attributes:
        state: Current locator state.
    """

    def __init__(self, pipeline: "DocumentOCR", config: PassportConfig):
        self.pipeline = pipeline
        self.config = config
        self.state = LocatorState.RAW

    def _transition(self, state: LocatorState) -> None:
        logger.info(f"Passport locator: {self.state.name} -> {state.name}")
        self.state = state

    def locate(self, surface: RasterSurface) -> PassportGeometry:
        """Crop ``surface`` in place to the canonical view.

        Raises:
            DocumentNotFoundError: If an anchor cannot be found.
        """
        self.state = LocatorState.RAW
        top = self.locate_top(surface)
        self._transition(LocatorState.TOP_ANCHOR_FOUND)

        backup = surface.copy()
        surface.crop(top.rect, top.angle)
        self._transition(LocatorState.CROPPED_TO_TOP)
        self.pipeline.debug_image("passport_cropped_top", surface)

        bottom = self.locate_bottom(surface)
        self._transition(LocatorState.BOTTOM_ANCHOR_FOUND)

        if bottom.x < 1 or bottom.y < 1:
            raise DocumentNotFoundError(
                "Bottom anchor lies outside the view", code="LOC-E004", stage=self.state.name
            )
        surface.crop(Rectangle(left=0, top=0, width=bottom.x, height=bottom.y))
        self._transition(LocatorState.CANONICAL_VIEW)
        self.pipeline.debug_image("passport_canonical_view", surface)

        return PassportGeometry(top=top, bottom=bottom, backup=backup)

    def locate_top(self, surface: RasterSurface) -> TopAnchor:
        """Search the title in overlapping sections of an emphasized copy of ``surface``.

        Raises:
            DocumentNotFoundError: If neither the title nor "PASPOR" is found.
        """
        work = self.pipeline.preprocess(surface.copy(), emphasize_blue_green)
        self.pipeline.debug_image("passport_emphasized", work)

        sections = work.distribute_overlapping_cells(self.config.section_grid_side)
        self.pipeline.debug_image("passport_sections", work.copy().mark_boxes(sections))

        scheduler = self.pipeline.multiplexor.get_scheduler("default")
        image = work.pixels

        def search_section(i: int) -> TaskResult[TitleMatch]:
            result = scheduler.add_job(image, sections[i]).result()
            paspor = None
            for line in result.lines:
                found = find_words_in_line(line, TITLE_WORDS + (FALLBACK_WORD,))
                if all(word in found for word in TITLE_WORDS):
                    return TaskResult.short_circuit(
                        TitleMatch(found["republik"], found["indonesia"], paspor)
                    )
                if paspor is None and FALLBACK_WORD in found:
                    paspor = found[FALLBACK_WORD]
            if paspor is not None:
                return TaskResult.complete(TitleMatch(paspor=paspor))
            return TaskResult.ignore()

        match = TaskPool(search_section, count=len(sections), limit=scheduler.num_workers).latest()
        if match is None:
            raise DocumentNotFoundError(
                "Cannot find the top-left end of the passport", code="LOC-E001", stage=self.state.name
            )

        if match.republik is not None and match.indonesia is not None:
            anchor = top_anchor_from_title(match.republik, match.indonesia)
            logger.debug(f"Title found: angle={math.degrees(anchor.angle):.2f}deg")
        else:
            anchor = top_anchor_from_paspor(match.paspor)
            logger.debug("Title obscured, using PASPOR with zero rotation")
        return anchor

    def locate_bottom(self, surface: RasterSurface) -> BottomAnchor:
        """Binarize ``surface`` in place and find the machine-readable zone.

        Raises:
            DocumentNotFoundError: If the machine-readable zone is not found.
        """
        self.pipeline.preprocess(surface, prepare_passport)
        self.pipeline.debug_image("passport_binarized", surface)

        scheduler = self.pipeline.multiplexor.get_scheduler("default")
        result = scheduler.add_job(surface.pixels, surface.rect_from_relative(RIGHT_HALF)).result()

        anchor = find_bottom_anchor(result.lines, self.config.bottom_digit_threshold)
        logger.debug(f"Bottom anchor: {anchor}")
        return anchor
