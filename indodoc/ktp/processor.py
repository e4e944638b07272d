"""Indonesian identity card (KTP) pipeline."""

import logging
from concurrent.futures import Future
from typing import Dict, Optional, Sequence

from indodoc.common.types import RecognitionLine, RecognitionResult, Rectangle, TargetReadResult
from indodoc.ocr.base import DebugCallback, DocumentOCR, HistoryMap, Payload, prefer_alternate
from indodoc.ocr.config_loader import Config, get_default_config
from indodoc.ocr.scheduler import SchedulerMultiplexor
from indodoc.ocr.targets import FieldTarget

from .locator import KTPGeometry, KTPLocator
from .targets import build_ktp_targets

logger = logging.getLogger(__name__)

PLACE_DATE_LINE = 1


class KTPOCR(DocumentOCR):
    """KTP field extraction.

    Args:
        config: Full configuration (default: bundled config.yaml).
        history: Field history, used in place.
        multiplexor: Scheduler multiplexor override.
        debug_callback: Debug image callback.

    Example:
        >>> with KTPOCR() as ocr:
        ...     ocr.mount_file("ktp.jpg")
        ...     payload = ocr.run()
        >>> payload["nik"]
        '3171015708850001'
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        history: Optional[HistoryMap] = None,
        multiplexor: Optional[SchedulerMultiplexor] = None,
        debug_callback: Optional[DebugCallback] = None,
    ):
        config = config or get_default_config()
        self.ktp_config = config.ktp
        self.targets = build_ktp_targets(config.correction)
        super().__init__(
            config.ktp.variants,
            config=config,
            history=history,
            multiplexor=multiplexor,
            debug_callback=debug_callback,
        )
        self.locator = KTPLocator(self, self.ktp_config)

    def _run(self) -> Payload:
        self.surface.to_width(self.ktp_config.recommended_full_width)
        self.debug_image("ktp_full")
        geometry = self.locator.locate(self.surface)
        return self.extract_fields(geometry)

    def extract_fields(self, geometry: KTPGeometry) -> Payload:
        """Read every field from the canonical view held by ``self.surface``.

        One full read of the view provides the positional rows. The blood type
        box and the NIK band are read alongside it.

        Args:
            geometry: Locator output.

        Returns:
            Payload keyed by field key.
        """
        surface = self.surface
        surface.to_width(self.ktp_config.recommended_view_width)
        default = self.multiplexor.get_scheduler("default")

        blood_target = self.targets["blood_type"]
        blood_rect = surface.rect_from_relative(blood_target.bbox)
        full_job = default.add_job(surface.pixels)
        blood_job = default.add_job(surface.pixels, blood_rect)
        nik_job = self._submit_nik(geometry)

        reads: Dict[str, Optional[TargetReadResult]] = {}
        reads["nik"] = prefer_alternate(
            self._read_candidate(self.targets["nik"], geometry.nik_candidate),
            self.read_line(self.targets["nik"], nik_job),
        )
        reads.update(self.read_header(geometry))
        reads["blood_type"] = self.read_line(blood_target, blood_job)

        lines = full_job.result().lines
        logger.debug(f"KTP rows: {[line.text for line in lines]}")
        reads.update(self.read_place_and_date(lines))
        for index, target in self.targets.by_index.items():
            line = lines[index] if index < len(lines) else None
            reads[target.key] = self._read_candidate(target, line)

        if self.debug_callback is not None:
            rows = [
                Rectangle.from_corners(line.bbox.x0, line.bbox.y0, line.bbox.x1, line.bbox.y1)
                for line in lines
                if line.bbox.width > 0 and line.bbox.height > 0
            ]
            self.debug_image("ktp_fields", surface.copy().mark_boxes([blood_rect, *rows]))

        return {
            key: (reads[key].text if reads.get(key) is not None else None)
            for key in self.targets.payload_keys
        }

    def _submit_nik(self, geometry: KTPGeometry) -> "Future[RecognitionResult]":
        """Cut the NIK band from the backup and submit it to the digits-only pool."""
        band = geometry.backup.copy()
        band.crop(geometry.nik_region(), geometry.angle)
        self.debug_image("ktp_nik_band", band)
        return self.multiplexor.get_scheduler("number").add_job(band.pixels)

    def _read_candidate(self, target: FieldTarget, line: Optional[RecognitionLine]) -> Optional[TargetReadResult]:
        if line is None:
            return None
        value = self.process_line(target, line)
        if value is None:
            return None
        return TargetReadResult(text=value, confidence=line.confidence)

    def read_header(self, geometry: KTPGeometry) -> Dict[str, Optional[TargetReadResult]]:
        """Province from the anchor line; regency or city from the line below it."""
        region = geometry.region_line
        return {
            "province": self._read_candidate(self.targets["province"], geometry.province_line),
            "regency": self._read_candidate(self.targets["regency"], region),
            "city": self._read_candidate(self.targets["city"], region),
        }

    def read_place_and_date(self, lines: Sequence[RecognitionLine]) -> Dict[str, Optional[TargetReadResult]]:
        """Split row 1 ("JAKARTA, 17-08-1985") into place and date of birth.

        The last token is the date; everything before it is the place.
        """
        reads: Dict[str, Optional[TargetReadResult]] = {"place_of_birth": None, "date_of_birth": None}
        if len(lines) <= PLACE_DATE_LINE:
            return reads
        line = lines[PLACE_DATE_LINE]
        tokens = line.text.split()
        if not tokens:
            return reads
        date = tokens.pop()
        for key, text in (("place_of_birth", " ".join(tokens)), ("date_of_birth", date)):
            value = self.process_line(self.targets[key], text) if text else None
            if value is not None:
                reads[key] = TargetReadResult(text=value, confidence=line.confidence)
        return reads
