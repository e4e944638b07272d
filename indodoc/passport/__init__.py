"""Indonesian passport data page extraction."""

from .locator import BottomAnchor, PassportGeometry, PassportLocator, TopAnchor
from .processor import PassportOCR
from .targets import PASSPORT_TARGETS, build_passport_targets

__all__ = [
    "BottomAnchor",
    "PassportGeometry",
    "PassportLocator",
    "PassportOCR",
    "PASSPORT_TARGETS",
    "TopAnchor",
    "build_passport_targets",
]
