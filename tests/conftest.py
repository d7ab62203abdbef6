"""Shared fixtures and synthetic image builders."""

import numpy as np
import pytest

from lostfound import FingerprintOptions, VisualFingerprint, fingerprint_from_pixels

ORANGE = (255, 165, 0)
GRAY = (128, 128, 128)
RED = (255, 0, 0)
BLUE = (0, 0, 255)


def solid(width: int, height: int, color: tuple[int, int, int], alpha: int = 255) -> np.ndarray:
    """Create a solid RGBA image."""
    img = np.empty((height, width, 4), dtype=np.uint8)
    img[:, :, :3] = color
    img[:, :, 3] = alpha
    return img


def frame_with_patch(
    size: int = 100,
    background: tuple[int, int, int] = GRAY,
    color: tuple[int, int, int] = ORANGE,
    x: int = 24,
    y: int = 24,
    patch: int = 24,
) -> np.ndarray:
    """Create a square frame with one colored patch."""
    img = solid(size, size, background)
    img[y:y + patch, x:x + patch, :3] = color
    return img


@pytest.fixture
def orange_fingerprint() -> VisualFingerprint:
    """Fingerprint of a solid orange 100x100 reference image."""
    return fingerprint_from_pixels(solid(100, 100, ORANGE), "Orange cat", FingerprintOptions())


@pytest.fixture
def textured_image() -> np.ndarray:
    """Deterministic image with several colors and edges."""
    rng = np.random.default_rng(42)
    img = solid(120, 90, (40, 120, 200))
    img[10:60, 20:80, :3] = (220, 60, 30)
    img[50:85, 70:110, :3] = (30, 200, 90)
    noise = rng.integers(0, 20, size=(90, 120, 3))
    img[:, :, :3] = np.clip(img[:, :, :3].astype(int) + noise, 0, 255)
    return img
