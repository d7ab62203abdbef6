#!/usr/bin/env python3
"""Color-space conversion and color distance metrics."""

from __future__ import annotations

import math

import numpy as np
import numpy.typing as npt

from .models import HSL, RGB

# Euclidean distance between black and white
MAX_RGB_DISTANCE = math.sqrt(3 * 255 * 255)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity."""
    return math.floor(value + 0.5)


def clamp_channel(value: float) -> int:
    """Round and clamp a value into the 0-255 channel range."""
    return max(0, min(255, round_half_up(value)))


def rgb_from_array(values: npt.ArrayLike) -> RGB:
    """Build an RGB from three numeric values, rounding and clamping each."""
    r, g, b = (clamp_channel(float(v)) for v in np.asarray(values).reshape(-1)[:3])
    return RGB(r=r, g=g, b=b)


def rgb_to_hsl(r: int, g: int, b: int) -> HSL:
    """Convert RGB to HSL.

    Args:
        r: Red channel (0-255).
        g: Green channel (0-255).
        b: Blue channel (0-255).

    Returns:
        Hue in degrees [0, 360), saturation and lightness as percentages.
    """
    rf, gf, bf = r / 255, g / 255, b / 255
    high = max(rf, gf, bf)
    low = min(rf, gf, bf)
    h = 0.0
    s = 0.0
    lightness = (high + low) / 2

    if high != low:
        d = high - low
        s = d / (2 - high - low) if lightness > 0.5 else d / (high + low)
        if high == rf:
            h = ((gf - bf) / d + (6 if gf < bf else 0)) / 6
        elif high == gf:
            h = ((bf - rf) / d + 2) / 6
        else:
            h = ((rf - gf) / d + 4) / 6

    return HSL(
        h=round_half_up(h * 360) % 360,
        s=round_half_up(s * 100),
        l=round_half_up(lightness * 100),
    )


def color_distance(c1: RGB, c2: RGB) -> float:
    """Euclidean distance in RGB space (0 to ~441.67)."""
    dr = c1.r - c2.r
    dg = c1.g - c2.g
    db = c1.b - c2.b
    return math.sqrt(dr * dr + dg * dg + db * db)


def perceptual_color_distance(c1: RGB, c2: RGB) -> float:
    """Red-mean weighted Euclidean distance.

    Green differences weigh 4, red and blue between 2 and 3 depending on
    the mean red level of the two colors.
    """
    r_mean = (c1.r + c2.r) / 2
    dr = c1.r - c2.r
    dg = c1.g - c2.g
    db = c1.b - c2.b

    r_weight = 2 + r_mean / 256
    g_weight = 4
    b_weight = 2 + (255 - r_mean) / 256

    return math.sqrt(r_weight * dr * dr + g_weight * dg * dg + b_weight * db * db)


def normalize_brightness(color: RGB, target_lightness: float = 50) -> RGB:
    """Rescale a color so its HSL lightness moves toward a target.

    Args:
        color: Color to adjust.
        target_lightness: Desired lightness in percent.

    Returns:
        Color with every channel multiplied by target/current lightness,
        clamped to 0-255.
    """
    hsl = rgb_to_hsl(color.r, color.g, color.b)
    factor = target_lightness / max(hsl.l, 1)
    return RGB(
        r=clamp_channel(color.r * factor),
        g=clamp_channel(color.g * factor),
        b=clamp_channel(color.b * factor),
    )


def quantize_levels(buckets: int) -> int:
    """Levels per channel for a histogram bucket budget (ceil of cube root)."""
    levels = round(buckets ** (1 / 3))
    # Correct float error around exact cubes
    if levels**3 < buckets:
        levels += 1
    return max(1, levels)


def quantize_keys(rgb: npt.NDArray[np.integer], levels: int) -> npt.NDArray[np.int64]:
    """Map (N, 3) colors onto flat indices of a uniform levels^3 grid."""
    step = 256 / levels
    q = np.floor(rgb.astype(np.float64) / step).astype(np.int64)
    return (q[:, 0] * levels + q[:, 1]) * levels + q[:, 2]


def distances_to(pixels: npt.NDArray[np.floating], color: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """Euclidean RGB distance of each (N, 3) pixel to one color."""
    diff = pixels.astype(np.float64) - np.asarray(color, dtype=np.float64)
    return np.sqrt(np.einsum("ij,ij->i", diff, diff))
