"""Decoding of input files into RGBA pixel buffers.

Two decode paths are supported:

- Raster images (JPEG, PNG, WebP, ...): decoded with Pillow, EXIF orientation
  applied so phone photos come out upright.
- PDF documents: page 1 is rasterized with pypdfium2 at its natural size
  (72 DPI, one pixel per PDF point).

Every path returns an ``(H, W, 4)`` uint8 array, the layout the raster surface
stores internally.
"""

import io
import logging
from pathlib import Path
from typing import Union

import numpy as np
import pypdfium2 as pdfium
from PIL import Image, ImageOps, UnidentifiedImageError

from indodoc.common.errors import RasterLoadError

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"

FileSource = Union[str, Path, bytes]


def _read_bytes(source: FileSource) -> bytes:
    if isinstance(source, bytes):
        return source
    path = Path(source)
    if not path.exists():
        raise RasterLoadError(f"Input file not found: {path}")
    return path.read_bytes()


def is_pdf(source: FileSource, data: bytes) -> bool:
    """Decide the decode path from the file suffix or the PDF header."""
    if not isinstance(source, bytes) and Path(source).suffix.lower() == ".pdf":
        return True
    return data[:4] == PDF_MAGIC


def decode_image(data: bytes) -> np.ndarray:
    """Decode a raster image into an RGBA array.

    Raises:
        RasterLoadError: If Pillow cannot identify or decode the data.
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image = ImageOps.exif_transpose(image)
            rgba = image.convert("RGBA")
            return np.array(rgba, dtype=np.uint8)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise RasterLoadError(f"Failed to decode image: {e}") from e


def render_pdf_first_page(data: bytes, scale: float = 1.0) -> np.ndarray:
    """Rasterize page 1 of a PDF document into an RGBA array.

    Args:
        data: Raw PDF bytes.
        scale: Render scale; 1.0 keeps the page's natural point size.

    Raises:
        RasterLoadError: If the document is malformed or has no pages.
    """
    try:
        doc = pdfium.PdfDocument(data)
    except pdfium.PdfiumError as e:
        raise RasterLoadError(f"Failed to open PDF: {e}") from e

    try:
        if len(doc) == 0:
            raise RasterLoadError("PDF has no pages")
        page = doc[0]
        try:
            bitmap = page.render(scale=scale)
            image = bitmap.to_pil()
        finally:
            page.close()
        return np.array(image.convert("RGBA"), dtype=np.uint8)
    finally:
        doc.close()


def load_raster(source: FileSource) -> np.ndarray:
    """Load a file into an ``(H, W, 4)`` RGBA array.

    Args:
        source: Path to the input file, or its raw bytes.

    Returns:
        RGBA pixel array sized to the source's natural pixel dimensions.

    Raises:
        RasterLoadError: If the file is missing or cannot be decoded.

    Example:
        >>> pixels = load_raster("passport.jpg")
        >>> pixels.shape[2]
        4
    """
    data = _read_bytes(source)
    if not data:
        raise RasterLoadError("Input file is empty")

    if is_pdf(source, data):
        pixels = render_pdf_first_page(data)
        kind = "pdf"
    else:
        pixels = decode_image(data)
        kind = "image"

    logger.info(f"Loaded {kind} raster {pixels.shape[1]}x{pixels.shape[0]}")
    return pixels
