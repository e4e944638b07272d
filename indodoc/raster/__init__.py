"""Raster surface and input decoding."""

from .loader import load_raster
from .surface import RasterSurface

__all__ = ["RasterSurface", "load_raster"]
