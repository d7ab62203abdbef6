"""Fingerprint generation, merging and JSON persistence."""

import json
import logging
from collections import defaultdict
from pathlib import Path

import numpy as np
import numpy.typing as npt

from .colors import color_distance, quantize_keys, quantize_levels, rgb_from_array, round_half_up
from .config import FingerprintOptions
from .features import (
    calculate_average_color,
    calculate_color_variance,
    estimate_size_ratio,
    extract_color_histogram,
    extract_dominant_colors,
    extract_edge_signature,
    valid_mask,
)
from .imaging import ImageSource, encode_data_url, fit_within, load_image
from .models import RGB, ColorBucket, VisualFingerprint

logger = logging.getLogger(__name__)

MAX_REFERENCE_IMAGES = 5
MERGE_CLUSTER_RADIUS = 50.0


def fingerprint_from_pixels(
    image: npt.NDArray[np.uint8],
    name: str,
    options: FingerprintOptions | None = None,
    reference_images: list[str] | None = None,
) -> VisualFingerprint:
    """Run every feature extractor over an RGBA buffer.

    The buffer is only read during the call.

    Args:
        image: RGBA pixel buffer at working resolution.
        name: Subject name.
        options: Extraction budgets (defaults to FingerprintOptions()).
        reference_images: Encoded thumbnails to attach.

    Returns:
        A new fingerprint.
    """
    opts = options or FingerprintOptions()
    average_color = calculate_average_color(image)
    return VisualFingerprint(
        name=name,
        color_histogram=extract_color_histogram(image, opts.histogram_buckets),
        dominant_colors=extract_dominant_colors(image, opts.dominant_color_count),
        average_color=average_color,
        color_variance=calculate_color_variance(image, average_color),
        estimated_size_ratio=estimate_size_ratio(image),
        edge_signature=extract_edge_signature(image, opts.edge_grid_size),
        reference_images=reference_images or [],
    )


def generate_fingerprint(
    source: ImageSource, name: str, options: FingerprintOptions | None = None
) -> VisualFingerprint:
    """Build a fingerprint from one reference image.

    The image is downscaled to fit ``options.max_dimension`` before
    extraction and a small JPEG thumbnail is stored with the fingerprint.

    Args:
        source: Image path, encoded bytes or pixel array.
        name: Subject name.
        options: Extraction budgets.

    Returns:
        Fingerprint of the image.

    Raises:
        FileNotFoundError: If a path does not exist.
        ValueError: If the image cannot be decoded or options are invalid.
    """
    opts = options or FingerprintOptions()
    opts.validate()

    image = load_image(source)
    working = fit_within(image, opts.max_dimension, opts.max_dimension)
    if not valid_mask(working).any():
        logger.warning(f"Reference image for '{name}' has no opaque pixels, using neutral defaults")

    thumbnails = []
    if working.size:
        thumbnails.append(encode_data_url(working, (opts.thumbnail_size, opts.thumbnail_size)))

    fingerprint = fingerprint_from_pixels(working, name, opts, thumbnails)
    logger.info(
        f"Generated fingerprint {fingerprint.id} for '{name}' "
        f"({working.shape[1]}x{working.shape[0]}, {len(fingerprint.color_histogram)} buckets)"
    )
    return fingerprint


def _mean_rgb(colors: list[RGB], weights: list[float] | None = None) -> RGB:
    values = np.array([c.as_tuple() for c in colors], dtype=np.float64)
    return rgb_from_array(np.average(values, axis=0, weights=weights))


def _merge_histograms(
    fingerprints: list[VisualFingerprint], buckets: int
) -> list[ColorBucket]:
    """Union buckets by quantized color and average over all fingerprints."""
    levels = quantize_levels(buckets)
    members: dict[int, list[ColorBucket]] = defaultdict(list)
    for fp in fingerprints:
        if not fp.color_histogram:
            continue
        colors = np.array([b.color.as_tuple() for b in fp.color_histogram])
        for key, bucket in zip(quantize_keys(colors, levels), fp.color_histogram, strict=True):
            members[int(key)].append(bucket)

    n = len(fingerprints)
    merged = []
    for group in members.values():
        total = sum(b.count for b in group)
        weights = [b.count for b in group] if total > 0 else None
        merged.append(
            ColorBucket(
                color=_mean_rgb([b.color for b in group], weights),
                count=round_half_up(total / n),
                percentage=sum(b.percentage for b in group) / n,
            )
        )
    merged.sort(key=lambda b: b.count, reverse=True)
    return merged[:buckets]


def cluster_colors(colors: list[RGB], count: int) -> list[RGB]:
    """Pick ``count`` representative colors by greedy agglomeration.

    Each color joins the first cluster whose center lies within 50 (RGB
    distance), otherwise it starts a new cluster. Centers are member means.
    The ``count`` most populous clusters are returned; when there are fewer
    clusters than ``count`` their centers repeat, most populous first.
    """
    if not colors or count <= 0:
        return []

    clusters: list[tuple[RGB, list[RGB]]] = []
    for color in colors:
        for i, (center, group) in enumerate(clusters):
            if color_distance(color, center) < MERGE_CLUSTER_RADIUS:
                group.append(color)
                clusters[i] = (_mean_rgb(group), group)
                break
        else:
            clusters.append((color, [color]))

    clusters.sort(key=lambda c: len(c[1]), reverse=True)
    centers = [center for center, _ in clusters[:count]]
    return [centers[i % len(centers)] for i in range(count)]


def merge_fingerprints(
    fingerprints: list[VisualFingerprint], histogram_buckets: int | None = None
) -> VisualFingerprint:
    """Merge fingerprints of several reference images into one.

    Args:
        fingerprints: Fingerprints of the same subject. The first one
            provides id, name, creation time and edge signature length.
        histogram_buckets: Bucket budget of the merged histogram. Defaults
            to the longest input histogram, but never below
            FingerprintOptions().histogram_buckets.

    Returns:
        The single input unchanged, or a new averaged fingerprint whose
        dominant colors keep the length of the first input.

    Raises:
        ValueError: If ``fingerprints`` is empty.
    """
    if not fingerprints:
        msg = "No fingerprints to merge"
        raise ValueError(msg)
    if len(fingerprints) == 1:
        return fingerprints[0]

    base = fingerprints[0]
    n = len(fingerprints)
    buckets = histogram_buckets or max(
        FingerprintOptions().histogram_buckets, *(len(fp.color_histogram) for fp in fingerprints)
    )

    edge_len = len(base.edge_signature)
    if any(len(fp.edge_signature) != edge_len for fp in fingerprints):
        logger.warning("Merging fingerprints with different edge grid sizes, padding with zeros")
    edge_signature = [
        float(round_half_up(sum(fp.edge_signature[i] if i < len(fp.edge_signature) else 0.0
                                for fp in fingerprints) / n))
        for i in range(edge_len)
    ]

    all_dominant = [c for fp in fingerprints for c in fp.dominant_colors]
    references = [img for fp in fingerprints for img in fp.reference_images]

    merged = VisualFingerprint(
        id=base.id,
        name=base.name,
        color_histogram=_merge_histograms(fingerprints, buckets),
        dominant_colors=cluster_colors(all_dominant, len(base.dominant_colors)),
        average_color=_mean_rgb([fp.average_color for fp in fingerprints]),
        color_variance=sum(fp.color_variance for fp in fingerprints) / n,
        estimated_size_ratio=sum(fp.estimated_size_ratio for fp in fingerprints) / n,
        edge_signature=edge_signature,
        reference_images=references[:MAX_REFERENCE_IMAGES],
        created_at=base.created_at,
    )
    logger.info(f"Merged {n} fingerprints into {merged.id} ('{merged.name}')")
    return merged


def save_fingerprint(fingerprint: VisualFingerprint, path: Path) -> None:
    """Write a fingerprint as camelCase JSON.

    Args:
        fingerprint: Fingerprint to save.
        path: Destination file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as f:
        json.dump(fingerprint.model_dump(by_alias=True), f, indent=2)


def load_fingerprint(path: Path) -> VisualFingerprint:
    """Read a fingerprint written by :func:`save_fingerprint`.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the JSON does not describe a fingerprint.
    """
    with Path(path).open() as f:
        return VisualFingerprint.model_validate(json.load(f))
