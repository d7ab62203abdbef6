"""Feature extraction from RGBA pixel buffers.

Every extractor takes a ``(height, width, 4)`` uint8 array. Pixels whose
alpha is below 128 are treated as transparent and left out of the
statistics. Regions without any valid pixel yield neutral defaults
(mid-gray colors, empty histogram, zero edges, zero size) rather than NaN.
"""

import logging

import numpy as np
import numpy.typing as npt

from .colors import distances_to, quantize_keys, quantize_levels, rgb_from_array
from .models import NEUTRAL_GRAY, RGB, ColorBucket

logger = logging.getLogger(__name__)

ALPHA_CUTOFF = 128
KMEANS_ITERATIONS = 10
KMEANS_SAMPLE_STRIDE = 4
EDGE_SAMPLE_STRIDE = 2
FOREGROUND_THRESHOLD = 50.0
CORNER_PATCH_MAX = 10

Image = npt.NDArray[np.uint8]


def valid_mask(image: Image) -> npt.NDArray[np.bool_]:
    """Boolean (H, W) mask of opaque-enough pixels."""
    return image[:, :, 3] >= ALPHA_CUTOFF


def valid_pixels(image: Image) -> npt.NDArray[np.int32]:
    """RGB values of all valid pixels as an (N, 3) int array."""
    return image[valid_mask(image)][:, :3].astype(np.int32)


def extract_color_histogram(image: Image, buckets: int = 32) -> list[ColorBucket]:
    """Quantized color histogram.

    Each channel is split into ceil(cbrt(buckets)) uniform levels. Occupied
    cells keep the mean color of their pixels. Cells are sorted by count
    (descending) and truncated to ``buckets``.

    Args:
        image: RGBA pixel buffer.
        buckets: Bucket budget.

    Returns:
        Histogram buckets; percentages are relative to the valid pixel count.
    """
    pixels = valid_pixels(image)
    total = len(pixels)
    if total == 0:
        return []

    levels = quantize_levels(buckets)
    keys = quantize_keys(pixels, levels)
    cells, inverse, counts = np.unique(keys, return_inverse=True, return_counts=True)
    inverse = inverse.reshape(-1)

    sums = np.stack(
        [np.bincount(inverse, weights=pixels[:, c], minlength=len(cells)) for c in range(3)],
        axis=1,
    )
    means = sums / counts[:, None]

    order = np.argsort(-counts, kind="stable")[:buckets]
    return [
        ColorBucket(
            color=rgb_from_array(means[i]),
            count=int(counts[i]),
            percentage=float(counts[i]) / total * 100,
        )
        for i in order
    ]


def _kmeans(
    samples: npt.NDArray[np.float64], centroids: npt.NDArray[np.float64], iterations: int
) -> npt.NDArray[np.float64]:
    """Lloyd iterations with rounded centroids.

    A centroid whose cluster comes up empty keeps its previous value.
    """
    k = len(centroids)
    for _ in range(iterations):
        diff = samples[:, None, :] - centroids[None, :, :]
        labels = np.argmin(np.einsum("ijk,ijk->ij", diff, diff), axis=1)
        sizes = np.bincount(labels, minlength=k)
        sums = np.stack(
            [np.bincount(labels, weights=samples[:, c], minlength=k) for c in range(3)], axis=1
        )
        occupied = sizes > 0
        centroids = centroids.copy()
        centroids[occupied] = np.floor(sums[occupied] / sizes[occupied, None] + 0.5)
    return centroids


def extract_dominant_colors(image: Image, count: int = 5) -> list[RGB]:
    """Dominant colors by k-means over every 4th pixel.

    Centroids start at evenly spaced samples and run a fixed number of
    iterations.

    Args:
        image: RGBA pixel buffer.
        count: Number of clusters (k).

    Returns:
        Exactly ``count`` cluster centers.
    """
    flat = image.reshape(-1, 4)[::KMEANS_SAMPLE_STRIDE]
    samples = flat[flat[:, 3] >= ALPHA_CUTOFF][:, :3].astype(np.float64)
    if len(samples) == 0 or count <= 0:
        return [NEUTRAL_GRAY] * max(count, 0)

    step = len(samples) // count
    initial = samples[np.arange(count) * step].copy()
    centroids = _kmeans(samples, initial, KMEANS_ITERATIONS)
    return [rgb_from_array(c) for c in centroids]


def calculate_average_color(image: Image) -> RGB:
    """Mean color of valid pixels, mid-gray when there are none."""
    pixels = valid_pixels(image)
    if len(pixels) == 0:
        return NEUTRAL_GRAY
    return rgb_from_array(pixels.mean(axis=0))


def calculate_color_variance(image: Image, avg_color: RGB) -> float:
    """Mean RGB distance of valid pixels from ``avg_color``."""
    pixels = valid_pixels(image)
    if len(pixels) == 0:
        return 0.0
    return float(distances_to(pixels, avg_color.as_tuple()).mean())


def gradient_magnitude(image: Image) -> npt.NDArray[np.float64]:
    """Combined forward-difference gradient magnitude.

    Horizontal and vertical differences are summed over the three color
    channels, then combined as sqrt(h^2 + v^2). The result has shape
    (H - 1, W - 1); entry (y, x) belongs to pixel (y, x).
    """
    rgb = image[:, :, :3].astype(np.int32)
    h_grad = np.abs(rgb[:-1, :-1] - rgb[:-1, 1:]).sum(axis=2)
    v_grad = np.abs(rgb[:-1, :-1] - rgb[1:, :-1]).sum(axis=2)
    return np.sqrt(h_grad.astype(np.float64) ** 2 + v_grad.astype(np.float64) ** 2)


def extract_edge_signature(image: Image, grid_size: int = 8) -> list[float]:
    """Per-cell gradient energy normalized to 0-100.

    The image is cut into ``grid_size`` x ``grid_size`` cells. Every 2nd
    pixel of a cell contributes its gradient magnitude; cell averages are
    divided by the largest one so the signature describes shape only.

    Args:
        image: RGBA pixel buffer.
        grid_size: Cells per side.

    Returns:
        ``grid_size ** 2`` values in [0, 100], row-major.
    """
    height, width = image.shape[:2]
    cell_w = width // grid_size
    cell_h = height // grid_size
    signature = np.zeros(grid_size * grid_size, dtype=np.float64)
    if cell_w == 0 or cell_h == 0 or width < 2 or height < 2:
        return signature.tolist()

    magnitude = gradient_magnitude(image)
    mask = valid_mask(image)[:-1, :-1]

    for gy in range(grid_size):
        for gx in range(grid_size):
            x0 = gx * cell_w
            y0 = gy * cell_h
            x1 = min(x0 + cell_w, width - 1)
            y1 = min(y0 + cell_h, height - 1)
            cell = magnitude[y0:y1:EDGE_SAMPLE_STRIDE, x0:x1:EDGE_SAMPLE_STRIDE]
            keep = mask[y0:y1:EDGE_SAMPLE_STRIDE, x0:x1:EDGE_SAMPLE_STRIDE]
            if keep.any():
                signature[gy * grid_size + gx] = np.floor(cell[keep].mean() + 0.5)

    peak = max(float(signature.max()), 1.0)
    return np.floor(signature / peak * 100 + 0.5).tolist()


def _estimate_background(image: Image) -> npt.NDArray[np.float64]:
    """Background color from the average of four corner patches."""
    height, width = image.shape[:2]
    size = min(CORNER_PATCH_MAX, width // 10, height // 10)
    patches = []
    if size > 0:
        for cx, cy in ((0, 0), (width - size, 0), (0, height - size), (width - size, height - size)):
            patch = image[cy:cy + size, cx:cx + size]
            pixels = valid_pixels(patch)
            if len(pixels):
                patches.append(np.floor(pixels.mean(axis=0) + 0.5))
    if not patches:
        # Too small for corner sampling: assume a white backdrop
        return np.array([255.0, 255.0, 255.0])
    return np.floor(np.mean(patches, axis=0) + 0.5)


def estimate_size_ratio(image: Image) -> float:
    """Fraction of pixels that differ from the estimated background.

    A coarse background-subtraction heuristic: pixels farther than 50 (RGB
    distance) from the corner-derived background count as foreground.

    Returns:
        Foreground pixels divided by total pixels, in [0, 1].
    """
    height, width = image.shape[:2]
    total = height * width
    if total == 0:
        return 0.0

    background = _estimate_background(image)
    mask = valid_mask(image)
    pixels = image[mask][:, :3]
    if len(pixels) == 0:
        return 0.0
    foreground = int(np.count_nonzero(distances_to(pixels, background) > FOREGROUND_THRESHOLD))
    return foreground / total
