"""Indonesian passport pipeline.

Reads every geometric field of the canonical view in parallel, then improves
the noisiest fields with alternate reads:

- dates are also read as separate day, month and year pieces
- the passport number is also read from the machine-readable zone, left of
  the view on the de-rotated backup
- sex is read at both of its possible positions
"""

import logging
from concurrent.futures import Future
from typing import Dict, List, Mapping, Optional, Sequence

from indodoc.common.types import RecognitionResult, Rectangle, TargetReadResult
from indodoc.ocr.base import DebugCallback, DocumentOCR, HistoryMap, Payload, prefer_alternate
from indodoc.ocr.config_loader import Config, get_default_config
from indodoc.ocr.scheduler import SchedulerMultiplexor
from indodoc.ocr.targets import FieldTarget
from indodoc.preprocess.filters import prepare_passport

from .locator import PassportGeometry, PassportLocator
from .targets import build_passport_targets

logger = logging.getLogger(__name__)

# Day/month/year widths as fractions of the date box. Left-column dates are
# left aligned, right-column dates are right aligned.
LEFT_DATE_SPLITS = (0.23, 0.32, 0.45)
RIGHT_DATE_SPLITS = (0.4, 0.3, 0.3)


def split_date_rect(rect: Rectangle, left_half: bool) -> List[Rectangle]:
    """Split a date region into day, month and year regions."""
    splits = LEFT_DATE_SPLITS if left_half else RIGHT_DATE_SPLITS
    rects = []
    x = rect.left
    for fraction in splits:
        width = rect.width * fraction
        rects.append(Rectangle(left=x, top=rect.top, width=width, height=rect.height))
        x += width
    return rects


class PassportOCR(DocumentOCR):
    """Passport field extraction.

    Args:
        config: Full configuration (default: bundled config.yaml).
        history: Field history, used in place.
        multiplexor: Scheduler multiplexor override.
        debug_callback: Debug image callback.

    Example:
        >>> with PassportOCR() as ocr:
        ...     ocr.mount_file("passport.jpg")
        ...     payload = ocr.run()
        >>> payload["date_of_birth"]
        '17 AUG 1985'
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        history: Optional[HistoryMap] = None,
        multiplexor: Optional[SchedulerMultiplexor] = None,
        debug_callback: Optional[DebugCallback] = None,
    ):
        config = config or get_default_config()
        self.passport_config = config.passport
        self.targets = build_passport_targets(config.correction)
        super().__init__(
            config.passport.variants,
            config=config,
            history=history,
            multiplexor=multiplexor,
            debug_callback=debug_callback,
        )
        self.locator = PassportLocator(self, self.passport_config)

    def _run(self) -> Payload:
        self.surface.to_width(self.passport_config.recommended_full_width)
        self.debug_image("passport_full")
        geometry = self.locator.locate(self.surface)
        return self.extract_fields(geometry)

    def extract_fields(self, geometry: PassportGeometry) -> Payload:
        """Read every field from the canonical view held by ``self.surface``.

        Args:
            geometry: Locator output, used for the passport number alternate.

        Returns:
            Payload keyed by field key; the duplicate sex candidate is merged.
        """
        surface = self.surface
        surface.to_width(self.passport_config.recommended_view_width)
        image = surface.pixels
        default = self.multiplexor.get_scheduler("default")
        number = self.multiplexor.get_scheduler("number")

        # Dispatch everything up front, then collect
        primary: Dict[str, "Future[RecognitionResult]"] = {}
        date_parts: Dict[str, List["Future[RecognitionResult]"]] = {}
        regions: List[Rectangle] = []
        for target in self.targets.geometric:
            rect = surface.rect_from_relative(target.bbox)
            primary[target.name] = default.add_job(image, rect)
            regions.append(rect)
            if target.is_date:
                day, month, year = split_date_rect(rect, target.bbox.is_left_half)
                date_parts[target.name] = [
                    number.add_job(image, day),
                    default.add_job(image, month),
                    number.add_job(image, year),
                ]
                regions.extend((day, month, year))
        passport_number_job = self._submit_passport_number(geometry)

        reads: Dict[str, Optional[TargetReadResult]] = {}
        for name, future in primary.items():
            reads[name] = self.read_line(self.targets[name], future)

        for name, parts in date_parts.items():
            reads[name] = prefer_alternate(reads[name], self.read_date_parts(self.targets[name], parts))

        if passport_number_job is not None:
            alternate = self.read_line(self.targets["passport_number"], passport_number_job, last=True)
            reads["passport_number"] = prefer_alternate(reads["passport_number"], alternate)

        self.reconcile_duplicates(reads)
        self._mark_regions(regions)
        return self.assemble_payload(reads)

    def _submit_passport_number(self, geometry: PassportGeometry) -> "Optional[Future[RecognitionResult]]":
        """Cut the machine-readable passport number from the backup and submit it."""
        region = geometry.passport_number_region()
        if region is None:
            logger.debug("No room left of the view for the passport number alternate")
            return None
        strip = geometry.backup.copy()
        strip.rotate(geometry.passport_number_pivot())
        strip.crop(region)
        strip.to_width(self.passport_config.recommended_passport_number_width)
        self.preprocess(strip, prepare_passport)
        self.debug_image("passport_number_strip", strip)
        return self.multiplexor.get_scheduler("default").add_job(strip.pixels)

    def read_date_parts(
        self,
        target: FieldTarget,
        parts: Sequence["Future[RecognitionResult]"],
    ) -> Optional[TargetReadResult]:
        """Join the day, month and year reads and correct them as one date.

        Returns:
            The date with the mean confidence of its three pieces, or None when
            a piece is empty or the joined text is rejected.
        """
        texts = []
        confidences = []
        for future in parts:
            line = future.result().first_line
            if line is None:
                logger.debug(f"Empty date piece for {target.name}")
                return None
            texts.append(line.text.strip())
            confidences.append(line.confidence)

        value = self.process_line(target, " ".join(texts))
        if value is None:
            return None
        return TargetReadResult(text=value, confidence=sum(confidences) / len(confidences))

    def reconcile_duplicates(self, reads: Dict[str, Optional[TargetReadResult]]) -> None:
        """Merge duplicate candidates into their field, in place.

        The candidate with the strictly higher confidence replaces the primary
        read; the duplicate entry is removed either way.
        """
        for target in self.targets.values():
            if not target.is_duplicate or target.name not in reads:
                continue
            candidate = reads.pop(target.name)
            reads[target.key] = prefer_alternate(reads.get(target.key), candidate)

    def _mark_regions(self, regions: Sequence[Rectangle]) -> None:
        """Outline every field region and date piece that was dispatched."""
        if self.debug_callback is None:
            return
        self.debug_image("passport_fields", self.surface.copy().mark_boxes(regions))

    def assemble_payload(self, reads: Mapping[str, Optional[TargetReadResult]]) -> Payload:
        payload: Payload = {}
        for key in self.targets.payload_keys:
            read = reads.get(key)
            payload[key] = read.text if read is not None else None
        return payload
