#!/usr/bin/env python3
"""Multi-factor fingerprint comparison."""

from __future__ import annotations

import numpy as np
import numpy.typing as npt

from .colors import color_distance, perceptual_color_distance, round_half_up
from .config import ComparisonWeights
from .features import calculate_average_color, extract_dominant_colors
from .models import RGB, ColorBucket, ComparisonResult, VisualFingerprint

# Normalizers for each distance
_HISTOGRAM_DISTANCE_SCALE = 442.0
_DOMINANT_DISTANCE_SCALE = 500.0
_QUICK_AVERAGE_SCALE = 5.0
_QUICK_DOMINANT_SCALE = 2.55
_QUICK_DOMINANT_COUNT = 3


def compare_histograms(h1: list[ColorBucket], h2: list[ColorBucket]) -> float:
    """Asymmetric histogram similarity (0-100).

    For every bucket of ``h1`` the best bucket of ``h2`` is scored by color
    closeness times share closeness. Scores are weighted by the share of
    the ``h1`` bucket, a simplified earth mover's style measure.
    """
    if not h1 or not h2:
        return 0.0

    match_score = 0.0
    total_weight = 0.0
    for b1 in h1:
        best = 0.0
        for b2 in h2:
            color_similarity = max(0.0, 1 - color_distance(b1.color, b2.color) / _HISTOGRAM_DISTANCE_SCALE)
            percent_similarity = 1 - abs(b1.percentage - b2.percentage) / 100
            best = max(best, color_similarity * percent_similarity)
        match_score += best * b1.percentage
        total_weight += b1.percentage

    return match_score / total_weight * 100 if total_weight > 0 else 0.0


def compare_dominant_colors(d1: list[RGB], d2: list[RGB]) -> float:
    """Mean best perceptual match of each color of ``d1`` within ``d2`` (0-100)."""
    if not d1 or not d2:
        return 0.0

    total = 0.0
    for c1 in d1:
        total += max(
            max(0.0, 1 - perceptual_color_distance(c1, c2) / _DOMINANT_DISTANCE_SCALE) for c2 in d2
        )
    return total / len(d1) * 100


def compare_edge_signatures(e1: list[float], e2: list[float]) -> float:
    """100 minus the mean absolute difference; 0 for mismatched or empty signatures."""
    if len(e1) != len(e2) or not e1:
        return 0.0
    diff = np.abs(np.asarray(e1, dtype=np.float64) - np.asarray(e2, dtype=np.float64))
    return max(0.0, 100 - float(diff.mean()))


def compare_sizes(ratio1: float, ratio2: float) -> float:
    """Size ratio similarity; a 0.5 difference already scores 0."""
    return max(0.0, 100 - abs(ratio1 - ratio2) * 200)


def compare_fingerprints(
    fp1: VisualFingerprint,
    fp2: VisualFingerprint,
    weights: ComparisonWeights | None = None,
) -> ComparisonResult:
    """Weighted similarity between two fingerprints.

    Args:
        fp1: Reference fingerprint (drives the asymmetric factors).
        fp2: Candidate fingerprint.
        weights: Factor weights, defaults to color .4, dominant .35,
            edge .15, size .1.

    Returns:
        Overall score and per-factor breakdown, each 0-100.
    """
    w = weights or ComparisonWeights()

    color_match = compare_histograms(fp1.color_histogram, fp2.color_histogram)
    dominant_match = compare_dominant_colors(fp1.dominant_colors, fp2.dominant_colors)
    edge_match = compare_edge_signatures(fp1.edge_signature, fp2.edge_signature)
    size_match = compare_sizes(fp1.estimated_size_ratio, fp2.estimated_size_ratio)

    overall = round_half_up(
        color_match * w.color
        + dominant_match * w.dominant
        + edge_match * w.edge
        + size_match * w.size
    )

    color_pct = round_half_up(color_match)
    dominant_pct = round_half_up(dominant_match)
    edge_pct = round_half_up(edge_match)
    size_pct = round_half_up(size_match)
    return ComparisonResult(
        overall=overall,
        color_match=color_pct,
        dominant_match=dominant_pct,
        edge_match=edge_pct,
        size_match=size_pct,
        details=f"Color: {color_pct}%, Dominant: {dominant_pct}%, Edge: {edge_pct}%, Size: {size_pct}%",
    )


def quick_compare(fingerprint: VisualFingerprint, image: npt.NDArray[np.uint8]) -> int:
    """Cheap pre-filter score of a frame against a fingerprint (0-100).

    Only average color (40%) and the best pairing between the first three
    fingerprint dominant colors and three freshly clustered frame colors
    (60%) are considered. Use it to reject frames, not to rank them.
    """
    frame_average = calculate_average_color(image)
    frame_dominant = extract_dominant_colors(image, _QUICK_DOMINANT_COUNT)

    avg_distance = perceptual_color_distance(fingerprint.average_color, frame_average)
    avg_match = max(0.0, 100 - avg_distance / _QUICK_AVERAGE_SCALE)

    dominant_match = 0.0
    for fp_color in fingerprint.dominant_colors[:_QUICK_DOMINANT_COUNT]:
        for frame_color in frame_dominant:
            match = max(0.0, 100 - color_distance(fp_color, frame_color) / _QUICK_DOMINANT_SCALE)
            dominant_match = max(dominant_match, match)

    return round_half_up(avg_match * 0.4 + dominant_match * 0.6)
