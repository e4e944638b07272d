"""Image preprocessing filters and their off-thread worker."""

from .filters import (
    binarize,
    emphasize_blue_green,
    grayscale_saturation_bias,
    prepare_ktp,
    prepare_passport,
)
from .worker import PreprocessWorker

__all__ = [
    "PreprocessWorker",
    "binarize",
    "emphasize_blue_green",
    "grayscale_saturation_bias",
    "prepare_ktp",
    "prepare_passport",
]
