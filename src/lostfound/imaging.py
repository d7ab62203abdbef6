"""Pixel buffer utilities: coercion, decoding, resizing and encoding."""

from __future__ import annotations

import base64
from pathlib import Path

import cv2
import numpy as np
import numpy.typing as npt

_RGB_CHANNELS = 3
_RGBA_CHANNELS = 4
_JPEG_QUALITY = 80

ImageSource = str | Path | bytes | bytearray | np.ndarray


def as_rgba(
    data: npt.ArrayLike | bytes | bytearray | memoryview,
    width: int | None = None,
    height: int | None = None,
) -> npt.NDArray[np.uint8]:
    """Interpret a pixel buffer as an (H, W, 4) uint8 RGBA array.

    Args:
        data: (H, W, 4) RGBA array, (H, W, 3) RGB array, or a flat
            bytes-like / 1-D buffer of width * height * 4 bytes.
        width: Width for flat buffers.
        height: Height for flat buffers.

    Returns:
        RGBA array. Arrays already in the right shape and dtype are returned
        as-is (not copied).

    Raises:
        ValueError: If the buffer cannot be interpreted as RGBA pixels.
    """
    if isinstance(data, (bytes, bytearray, memoryview)):
        arr = np.frombuffer(data, dtype=np.uint8)
    else:
        arr = np.asarray(data)

    if arr.ndim == 1:
        if width is None or height is None:
            msg = "width and height are required for flat pixel buffers"
            raise ValueError(msg)
        if arr.size != width * height * _RGBA_CHANNELS:
            msg = f"Buffer of {arr.size} values does not hold {width}x{height} RGBA pixels"
            raise ValueError(msg)
        arr = arr.reshape(height, width, _RGBA_CHANNELS)

    if arr.ndim != 3 or arr.shape[2] not in (_RGB_CHANNELS, _RGBA_CHANNELS):
        msg = f"Expected (H, W, 3) or (H, W, 4) pixels, got shape {arr.shape}"
        raise ValueError(msg)

    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)

    if arr.shape[2] == _RGB_CHANNELS:
        alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
        arr = np.concatenate([arr, alpha], axis=2)
    return arr


def _from_cv2(img: np.ndarray) -> npt.NDArray[np.uint8]:
    """Convert an OpenCV BGR / BGRA / grayscale image to RGBA."""
    if img.dtype != np.uint8:
        # 16-bit PNGs and the like
        img = cv2.convertScaleAbs(img, alpha=255.0 / max(float(img.max()), 1.0))
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    if img.shape[2] == _RGBA_CHANNELS:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
    return cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)


def bgr_to_rgba(frame: np.ndarray) -> npt.NDArray[np.uint8]:
    """Convert a frame read by OpenCV into an RGBA array."""
    return _from_cv2(frame)


def load_image(source: ImageSource) -> npt.NDArray[np.uint8]:
    """Load a reference image as RGBA.

    Args:
        source: File path, encoded image bytes (PNG, JPEG, ...) or a pixel
            array accepted by :func:`as_rgba`.

    Returns:
        RGBA array at the source resolution.

    Raises:
        FileNotFoundError: If a path does not exist.
        ValueError: If the data cannot be decoded.
    """
    if isinstance(source, np.ndarray):
        return as_rgba(source)

    if isinstance(source, (bytes, bytearray)):
        img = cv2.imdecode(np.frombuffer(source, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        if img is None:
            msg = "Could not decode image from bytes"
            raise ValueError(msg)
        return _from_cv2(img)

    path = Path(source)
    if not path.exists():
        msg = f"Image not found: {path}"
        raise FileNotFoundError(msg)
    img = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if img is None:
        msg = f"Could not decode image: {path}"
        raise ValueError(msg)
    return _from_cv2(img)


def fit_within(
    image: npt.NDArray[np.uint8], max_width: int = 256, max_height: int = 256
) -> npt.NDArray[np.uint8]:
    """Downscale an image to fit a bounding box, never upscaling.

    Args:
        image: RGBA array.
        max_width: Maximum output width.
        max_height: Maximum output height.

    Returns:
        The input if it already fits, otherwise an area-resampled copy.
    """
    h, w = image.shape[:2]
    if h == 0 or w == 0:
        return image
    scale = min(max_width / w, max_height / h, 1.0)
    if scale >= 1.0:
        return image
    new_w = max(1, round(w * scale))
    new_h = max(1, round(h * scale))
    return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)


def crop_region(
    image: npt.NDArray[np.uint8], x: int, y: int, width: int, height: int
) -> npt.NDArray[np.uint8] | None:
    """Cut a rectangle out of an image, clamped to its bounds.

    Returns:
        A view of the clamped region, or None if it is empty.
    """
    src_h, src_w = image.shape[:2]
    if src_w == 0 or src_h == 0:
        return None
    sx = max(0, min(x, src_w - 1))
    sy = max(0, min(y, src_h - 1))
    sw = min(width, src_w - sx)
    sh = min(height, src_h - sy)
    if sw <= 0 or sh <= 0:
        return None
    return image[sy:sy + sh, sx:sx + sw]


def apply_offset(image: npt.NDArray[np.uint8], offset: npt.ArrayLike) -> npt.NDArray[np.uint8]:
    """Add a per-channel RGB offset, clamped to 0-255; alpha is preserved."""
    shifted = image.astype(np.int16)
    shifted[:, :, :3] += np.asarray(offset, dtype=np.int16)
    return np.clip(shifted, 0, 255).astype(np.uint8)


def encode_data_url(
    image: npt.NDArray[np.uint8],
    size: tuple[int, int] | None = None,
    quality: int = _JPEG_QUALITY,
) -> str:
    """Encode an RGBA image as a JPEG data URL.

    Args:
        image: RGBA array.
        size: Optional (width, height) to resize to first.
        quality: JPEG quality (0-100).

    Returns:
        ``data:image/jpeg;base64,...`` string.

    Raises:
        ValueError: If OpenCV fails to encode the image.
    """
    bgr = cv2.cvtColor(image, cv2.COLOR_RGBA2BGR)
    if size is not None:
        bgr = cv2.resize(bgr, size, interpolation=cv2.INTER_AREA)
    ok, encoded = cv2.imencode(".jpg", bgr, [cv2.IMWRITE_JPEG_QUALITY, quality])
    if not ok:
        msg = "Could not encode image as JPEG"
        raise ValueError(msg)
    return "data:image/jpeg;base64," + base64.b64encode(encoded.tobytes()).decode("ascii")
