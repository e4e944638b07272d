"""Indonesian identity card (KTP) extraction."""

from .locator import KTPGeometry, KTPLocator
from .processor import KTPOCR
from .targets import KTP_TARGETS, build_ktp_targets

__all__ = ["KTPGeometry", "KTPLocator", "KTPOCR", "KTP_TARGETS", "build_ktp_targets"]
