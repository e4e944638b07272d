"""KTP locator: finds the card header and cuts out the field rows.

The card photo is binarized once and read in full. The header line carrying
"PROVINSI" anchors the view: the field rows start below it, offset and sized
by multiples of the word's width. The same pass also looks for a digit-dense
line, which is the NIK in most photos. The bottom of the view is the last line
of the lower band.
"""

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence, Tuple

import Levenshtein

from indodoc.common.errors import DocumentNotFoundError
from indodoc.common.types import LocatorState, RecognitionLine, RecognitionWord, Rectangle, RelativeBox
from indodoc.ocr.config_loader import KTPConfig
from indodoc.ocr.corrector import count_digits
from indodoc.preprocess.filters import prepare_ktp
from indodoc.raster.surface import RasterSurface

if TYPE_CHECKING:
    from indodoc.ocr.base import DocumentOCR

logger = logging.getLogger(__name__)

ANCHOR_WORD = "PROVINSI"
BOTTOM_BAND = RelativeBox(x0=0.0, y0=0.7, x1=1.0, y1=1.0)


@dataclass(frozen=True)
class HeaderMatch:
    """Result of the line search over the full card.

    Attributes:
        word: The "PROVINSI" word.
        next_word: Word right after it on the same line, if any.
        province_line: Line carrying the anchor.
        region_line: Line right below it (regency or city).
        nik_line: First digit-dense line, if any.
    """

    word: RecognitionWord
    next_word: Optional[RecognitionWord]
    province_line: RecognitionLine
    region_line: Optional[RecognitionLine]
    nik_line: Optional[RecognitionLine] = None


@dataclass(frozen=True)
class KTPGeometry:
    """Everything later stages need from the locator.

    Attributes:
        rect: Field rows rectangle on the full card.
        angle: Card rotation in radians.
        word_width: Width of the anchor word.
        word_height: Height of the anchor word.
        backup: Preprocessed full card before the crop.
        province_line: Line carrying the anchor.
        region_line: Regency or city line below it.
        nik_candidate: Digit-dense line found during the search.
    """

    rect: Rectangle
    angle: float
    word_width: float
    word_height: float
    backup: RasterSurface
    province_line: Optional[RecognitionLine] = None
    region_line: Optional[RecognitionLine] = None
    nik_candidate: Optional[RecognitionLine] = None

    def nik_region(self) -> Rectangle:
        """Band right above the field rows, where the NIK is printed."""
        return Rectangle(
            left=self.rect.left - self.word_width * 0.4,
            top=self.rect.top - self.word_height * 2,
            width=self.rect.width,
            height=self.word_height * 2,
        )


def find_header(
    lines: Sequence[RecognitionLine], max_distance: int, line_budget: int, nik_min_digits: int
) -> Optional[HeaderMatch]:
    """Scan at most ``line_budget`` lines for the anchor word and a NIK line.

    The scan stops once both are found.

    Returns:
        The match, or None when no word is within ``max_distance`` edits of
        "PROVINSI".
    """
    anchor: Optional[Tuple[int, RecognitionWord, Optional[RecognitionWord]]] = None
    nik_line: Optional[RecognitionLine] = None
    for i, line in enumerate(lines[:line_budget]):
        if anchor is None:
            for j, word in enumerate(line.words):
                if Levenshtein.distance(word.text.strip().upper(), ANCHOR_WORD) <= max_distance:
                    next_word = line.words[j + 1] if j + 1 < len(line.words) else None
                    anchor = (i, word, next_word)
                    break
        if nik_line is None and count_digits(line.text) >= nik_min_digits:
            nik_line = line
        if anchor is not None and nik_line is not None:
            break

    if anchor is None:
        return None
    index, word, next_word = anchor
    return HeaderMatch(
        word=word,
        next_word=next_word,
        province_line=lines[index],
        region_line=lines[index + 1] if index + 1 < len(lines) else None,
        nik_line=nik_line,
    )


def header_angle(word: RecognitionWord, next_word: Optional[RecognitionWord]) -> float:
    if next_word is None:
        return 0.0
    dy = ((next_word.bbox.y0 - word.bbox.y0) + (next_word.bbox.y1 - word.bbox.y1)) / 2
    return math.atan2(dy, next_word.bbox.x1 - word.bbox.x0)


class KTPLocator:
    """Turns a raw KTP photo into the canonical view.

    Args:
        pipeline: Owning pipeline.
        config: KTP configuration.
    """

    def __init__(self, pipeline: "DocumentOCR", config: KTPConfig):
        self.pipeline = pipeline
        self.config = config
        self.state = LocatorState.RAW

    def _transition(self, state: LocatorState) -> None:
        logger.info(f"KTP locator: {self.state.name} -> {state.name}")
        self.state = state

    def locate(self, surface: RasterSurface) -> KTPGeometry:
        """Binarize ``surface`` and crop it in place to the field rows.

        Raises:
            DocumentNotFoundError: If the header or the last row is not found.
        """
        self.state = LocatorState.RAW
        self.pipeline.preprocess(surface, prepare_ktp)
        self.pipeline.debug_image("ktp_binarized", surface)
        backup = surface.copy()

        header = self.locate_header(surface)
        self._transition(LocatorState.TOP_ANCHOR_FOUND)

        word = header.word
        word_width = word.bbox.x1 - word.bbox.x0
        rect = Rectangle(
            left=word.bbox.x0 - word_width * 0.3,
            top=word.bbox.y1 + word_width * 0.55,
            width=word_width * 2.5,
            height=word_width * 2.7,
        )
        angle = header_angle(word, header.next_word)
        logger.debug(f"KTP view {rect} at {math.degrees(angle):.2f}deg")
        surface.crop(rect, angle)
        self._transition(LocatorState.CROPPED_TO_TOP)
        self.pipeline.debug_image("ktp_cropped_top", surface)

        bottom = self.locate_bottom(surface)
        self._transition(LocatorState.BOTTOM_ANCHOR_FOUND)
        surface.crop(Rectangle(left=0, top=0, width=surface.width, height=bottom))
        self._transition(LocatorState.CANONICAL_VIEW)
        self.pipeline.debug_image("ktp_canonical_view", surface)

        return KTPGeometry(
            rect=rect,
            angle=angle,
            word_width=word_width,
            word_height=word.bbox.y1 - word.bbox.y0,
            backup=backup,
            province_line=header.province_line,
            region_line=header.region_line,
            nik_candidate=header.nik_line,
        )

    def locate_header(self, surface: RasterSurface) -> HeaderMatch:
        scheduler = self.pipeline.multiplexor.get_scheduler("default")
        result = scheduler.add_job(surface.pixels).result()
        header = find_header(
            result.lines,
            self.config.province_max_distance,
            self.config.line_budget,
            self.config.nik_min_digits,
        )
        if header is None:
            raise DocumentNotFoundError(
                "Cannot find the top-left end of the KTP", code="LOC-E101", stage=self.state.name
            )
        if header.nik_line is None:
            logger.debug("No NIK candidate among the header lines")
        return header

    def locate_bottom(self, surface: RasterSurface) -> float:
        """Bottom edge of the last line in the lower band of the view."""
        scheduler = self.pipeline.multiplexor.get_scheduler("default")
        result = scheduler.add_job(surface.pixels, surface.rect_from_relative(BOTTOM_BAND)).result()
        last = result.last_line
        if last is None or last.bbox.y1 < 1:
            raise DocumentNotFoundError(
                "Cannot find the bottom end of the KTP", code="LOC-E102", stage=self.state.name
            )
        return float(last.bbox.y1)
