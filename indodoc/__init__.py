"""OCR field extraction for Indonesian passports and identity cards (KTP).

Example:
    >>> from indodoc import PassportOCR
    >>> with PassportOCR() as ocr:
    ...     ocr.mount_file("passport.jpg")
    ...     payload = ocr.run()
"""

from indodoc.ktp import KTPOCR
from indodoc.passport import PassportOCR

__version__ = "0.1.0"

__all__ = ["KTPOCR", "PassportOCR", "__version__"]
