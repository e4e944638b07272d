"""Pixel filters that prepare document photos for recognition.

Every filter takes an ``(H, W, 4)`` RGBA uint8 array, writes the result into
the RGB channels of that same array and returns it. Alpha is left untouched.
Intermediate float planes are allocated per call; the caller's buffer is never
replaced by a second full-size RGBA buffer.

Filters:
- grayscale_saturation_bias: dark desaturated ink stays dark, coloured
  background patterns and stamps go light
- binarize: adaptive two-threshold clip around the global mean luminance
- emphasize_blue_green: blue-green printed labels become black, everything
  else white (used to find the passport title on the raw photo)
"""

from typing import Tuple

import numpy as np

# Rec. 709 luma coefficients
LUMA_COEFFICIENTS = (0.2126, 0.7152, 0.0722)

PASSPORT_SATURATION_BIAS: Tuple[float, float, float] = (0.7, 0.7, 0.7)
KTP_SATURATION_BIAS: Tuple[float, float, float] = (0.7, 0.9, 0.9)


def _check_rgba(data: np.ndarray) -> None:
    if data.ndim != 3 or data.shape[2] != 4 or data.dtype != np.uint8:
        raise ValueError(f"Expected (H, W, 4) uint8 RGBA array, got {data.shape} {data.dtype}")


def _normalized_channels(data: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    rgb = data[..., :3].astype(np.float32) / 255.0
    return rgb[..., 0], rgb[..., 1], rgb[..., 2]


def luminance(data: np.ndarray) -> np.ndarray:
    """Per-pixel luminance on 0-255, clipped."""
    r, g, b = (data[..., i].astype(np.float32) for i in range(3))
    kr, kg, kb = LUMA_COEFFICIENTS
    return np.clip(r * kr + g * kg + b * kb, 0, 255)


def grayscale_saturation_bias(
    data: np.ndarray,
    bias: Tuple[float, float, float] = PASSPORT_SATURATION_BIAS,
) -> np.ndarray:
    """Convert to gray, pushing saturated pixels towards white.

    For normalized channels R, G, B the output value is
    ``(R+G+B)/3 + R*(|R-G|+|R-B|)*kr + G*(|R-G|+|G-B|)*kg + B*(|R-B|+|G-B|)*kb``
    scaled to 0-255 and clipped. Desaturated pixels have small channel
    differences, so only their brightness remains.

    Args:
        data: RGBA array, modified in place.
        bias: Saturation weights (kr, kg, kb) per channel.

    Returns:
        The same array.
    """
    _check_rgba(data)
    r, g, b = _normalized_channels(data)
    diff_rg = np.abs(r - g)
    diff_rb = np.abs(r - b)
    diff_gb = np.abs(g - b)
    kr, kg, kb = bias

    saturation = r * (diff_rg + diff_rb) * kr + g * (diff_rg + diff_gb) * kg + b * (diff_rb + diff_gb) * kb
    brightness = (r + g + b) / 3.0
    gray = np.clip((brightness + saturation) * 255.0, 0, 255).astype(np.uint8)

    data[..., 0] = gray
    data[..., 1] = gray
    data[..., 2] = gray
    return data


def binarize(data: np.ndarray, upper_k: float = 0.5, lower_k: float = 1.5) -> np.ndarray:
    """Clip channels to white above ``mean - upper_k*std`` and black below ``mean - lower_k*std``.

    Values between the two thresholds are left untouched. Mean and standard
    deviation (sample, N-1) are taken over the luminance of the whole image.

    Args:
        data: RGBA array, modified in place.
        upper_k: Deviation multiplier of the white threshold.
        lower_k: Deviation multiplier of the black threshold. Must be larger
            than ``upper_k``.

    Returns:
        The same array.
    """
    _check_rgba(data)
    if lower_k <= upper_k:
        raise ValueError(f"lower_k ({lower_k}) must be greater than upper_k ({upper_k})")

    luma = luminance(data)
    mean = float(luma.mean())
    std = float(luma.std(ddof=1)) if luma.size > 1 else 0.0
    upper = mean - std * upper_k
    lower = mean - std * lower_k

    rgb = data[..., :3]
    rgb[rgb > upper] = 255
    rgb[rgb < lower] = 0
    return data


def emphasize_blue_green(data: np.ndarray, sigma: float = 3.0, brightness_bias: float = 0.1) -> np.ndarray:
    """Turn blue-green pixels black and everything else white.

    The per-pixel signal is ``max(G - R, B - R, 0)`` on normalized channels.
    A pixel is kept (black) when its signal minus ``brightness_bias`` times its
    brightness exceeds ``mean + sigma * std`` of the signal.

    Args:
        data: RGBA array, modified in place.
        sigma: Deviation multiplier of the threshold.
        brightness_bias: Penalty for bright pixels; darker print is preferred.

    Returns:
        The same array.
    """
    _check_rgba(data)
    r, g, b = _normalized_channels(data)
    signal = np.maximum(np.maximum(g - r, b - r), 0.0)
    mean = float(signal.mean())
    std = float(signal.std(ddof=1)) if signal.size > 1 else 0.0
    threshold = mean + std * sigma

    brightness = (r + g + b) / 3.0
    mask = (signal - brightness * brightness_bias) > threshold
    value = np.where(mask, 0, 255).astype(np.uint8)

    data[..., 0] = value
    data[..., 1] = value
    data[..., 2] = value
    return data


def prepare_passport(data: np.ndarray) -> np.ndarray:
    """Grayscale with passport saturation weights, then binarize."""
    return binarize(grayscale_saturation_bias(data, PASSPORT_SATURATION_BIAS))


def prepare_ktp(data: np.ndarray) -> np.ndarray:
    """Grayscale with ID-card saturation weights, then binarize."""
    return binarize(grayscale_saturation_bias(data, KTP_SATURATION_BIAS))
