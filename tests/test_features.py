"""
Unit tests for feature extractors.
"""

import numpy as np
import pytest
from conftest import BLUE, GRAY, RED, solid

from lostfound import RGB
from lostfound.features import (
    calculate_average_color,
    calculate_color_variance,
    estimate_size_ratio,
    extract_color_histogram,
    extract_dominant_colors,
    extract_edge_signature,
)

NEUTRAL = RGB(r=128, g=128, b=128)


def half_and_half(top: tuple[int, int, int], bottom: tuple[int, int, int]) -> np.ndarray:
    """100x100 image split horizontally into two colors."""
    img = solid(100, 100, top)
    img[50:, :, :3] = bottom
    return img


class TestColorHistogram:
    """Test quantized color histograms."""

    def test_solid_color_single_bucket(self):
        """Test that a solid image yields one bucket holding every pixel."""
        histogram = extract_color_histogram(solid(40, 30, RED))

        assert len(histogram) == 1
        assert histogram[0].color == RGB(r=255, g=0, b=0)
        assert histogram[0].count == 1200
        assert histogram[0].percentage == pytest.approx(100.0)

    def test_respects_bucket_budget(self):
        """Test that the histogram is truncated to the budget."""
        rng = np.random.default_rng(0)
        img = solid(64, 64, GRAY)
        img[:, :, :3] = rng.integers(0, 256, size=(64, 64, 3))

        histogram = extract_color_histogram(img, buckets=8)

        assert 0 < len(histogram) <= 8

    def test_sorted_by_count(self, textured_image):
        """Test that buckets are ordered by descending count."""
        counts = [b.count for b in extract_color_histogram(textured_image)]
        assert counts == sorted(counts, reverse=True)

    def test_transparent_pixels_excluded(self):
        """Test that percentages use the valid pixel count as denominator."""
        img = half_and_half(RED, BLUE)
        img[50:, :, 3] = 0

        histogram = extract_color_histogram(img)

        assert len(histogram) == 1
        assert histogram[0].color == RGB(r=255, g=0, b=0)
        assert histogram[0].count == 5000
        assert histogram[0].percentage == pytest.approx(100.0)

    def test_percentages_share_denominator(self):
        """Test that bucket percentages add up to 100 without truncation."""
        histogram = extract_color_histogram(half_and_half(RED, BLUE))
        assert sum(b.percentage for b in histogram) == pytest.approx(100.0)
        assert [b.percentage for b in histogram] == pytest.approx([50.0, 50.0])

    def test_fully_transparent_is_empty(self):
        """Test that an image without valid pixels has an empty histogram."""
        assert extract_color_histogram(solid(10, 10, RED, alpha=0)) == []


class TestDominantColors:
    """Test k-means dominant color extraction."""

    def test_returns_exactly_k(self, textured_image):
        """Test that exactly k colors are returned."""
        assert len(extract_dominant_colors(textured_image, 5)) == 5
        assert len(extract_dominant_colors(textured_image, 3)) == 3

    def test_two_color_image(self):
        """Test that both halves of a two-color image are found."""
        colors = extract_dominant_colors(half_and_half(RED, BLUE), 2)
        assert set(colors) == {RGB(r=255, g=0, b=0), RGB(r=0, g=0, b=255)}

    def test_empty_clusters_keep_previous_centroid(self):
        """Test that a centroid left without members keeps its last value."""
        # Only every 4th pixel is sampled; centroids start at samples 0, 3 and 6.
        # The middle centroid moves to 100 after the first pass, then both of
        # its members are closer to the outer clusters (24 and 179).
        reds = [0, 24, 24, 50, 24, 24, 255, 24, 150, 155, 155]
        img = solid(4 * len(reds), 1, (0, 0, 0))
        img[0, ::4, 0] = reds

        colors = extract_dominant_colors(img, 3)

        assert colors == [RGB(r=24, g=0, b=0), RGB(r=100, g=0, b=0), RGB(r=179, g=0, b=0)]

    def test_identical_samples(self):
        """Test that duplicate starting centroids all survive."""
        colors = extract_dominant_colors(solid(50, 50, BLUE), 4)
        assert colors == [RGB(r=0, g=0, b=255)] * 4

    def test_fewer_samples_than_k(self):
        """Test that tiny images still yield k centroids."""
        colors = extract_dominant_colors(solid(2, 2, RED), 5)
        assert colors == [RGB(r=255, g=0, b=0)] * 5

    def test_no_valid_pixels_neutral(self):
        """Test that a transparent image yields k neutral grays."""
        assert extract_dominant_colors(solid(20, 20, RED, alpha=10), 3) == [NEUTRAL] * 3


class TestAverageAndVariance:
    """Test average color and color variance."""

    def test_average_of_solid(self):
        """Test that the average of a solid image is its color."""
        assert calculate_average_color(solid(10, 10, (10, 20, 30))) == RGB(r=10, g=20, b=30)

    def test_average_of_two_halves(self):
        """Test that the average of black and light gray halves is their midpoint."""
        img = half_and_half((0, 0, 0), (200, 200, 200))
        assert calculate_average_color(img) == RGB(r=100, g=100, b=100)

    def test_average_without_valid_pixels(self):
        """Test that transparent images average to mid gray."""
        assert calculate_average_color(solid(5, 5, RED, alpha=0)) == NEUTRAL

    def test_variance_of_solid_is_zero(self):
        """Test that a solid image has no color variance."""
        img = solid(10, 10, RED)
        assert calculate_color_variance(img, calculate_average_color(img)) == 0.0

    def test_variance_of_two_halves(self):
        """Test that variance is the mean distance from the average."""
        img = half_and_half((0, 0, 0), (200, 200, 200))
        variance = calculate_color_variance(img, RGB(r=100, g=100, b=100))
        assert variance == pytest.approx(np.sqrt(3 * 100**2))

    def test_variance_without_valid_pixels(self):
        """Test that transparent images have zero variance."""
        assert calculate_color_variance(solid(5, 5, RED, alpha=0), NEUTRAL) == 0.0


class TestEdgeSignature:
    """Test gradient-based edge signatures."""

    @pytest.mark.parametrize("grid_size", [1, 4, 8])
    def test_length_and_range(self, textured_image, grid_size):
        """Test that the signature has grid_size^2 values in [0, 100]."""
        signature = extract_edge_signature(textured_image, grid_size)
        assert len(signature) == grid_size**2
        assert all(0 <= v <= 100 for v in signature)

    def test_normalized_to_peak(self, textured_image):
        """Test that the strongest cell scores 100."""
        assert max(extract_edge_signature(textured_image, 4)) == 100

    def test_solid_image_has_no_edges(self):
        """Test that a flat image yields an all-zero signature."""
        assert extract_edge_signature(solid(64, 64, RED), 4) == [0.0] * 16

    def test_independent_of_contrast(self):
        """Test that scaling the contrast of an edge does not change the signature."""
        strong = solid(64, 64, (0, 0, 0))
        strong[:, 33:, :3] = 240
        weak = solid(64, 64, (0, 0, 0))
        weak[:, 33:, :3] = 60
        assert extract_edge_signature(strong, 4) == extract_edge_signature(weak, 4)

    def test_image_smaller_than_grid(self):
        """Test that tiny images give a zero signature of the right length."""
        assert extract_edge_signature(solid(3, 3, RED), 8) == [0.0] * 64

    def test_transparent_image(self):
        """Test that an image without valid pixels gives zeros."""
        img = half_and_half(RED, BLUE)
        img[:, :, 3] = 0
        assert extract_edge_signature(img, 4) == [0.0] * 16


class TestSizeRatio:
    """Test foreground size estimation."""

    def test_solid_image_has_no_foreground(self):
        """Test that a uniform image is all background."""
        assert estimate_size_ratio(solid(100, 100, RED)) == 0.0

    def test_centered_square(self):
        """Test that a 50x50 square on white covers a quarter."""
        img = solid(100, 100, (255, 255, 255))
        img[25:75, 25:75, :3] = RED
        assert estimate_size_ratio(img) == pytest.approx(0.25)

    def test_in_unit_range(self, textured_image):
        """Test that the ratio lies in [0, 1]."""
        assert 0.0 <= estimate_size_ratio(textured_image) <= 1.0

    def test_tiny_image_assumes_white_background(self):
        """Test that images too small for corner sampling compare against white."""
        assert estimate_size_ratio(solid(5, 5, (0, 0, 0))) == 1.0

    def test_transparent_image(self):
        """Test that an image without valid pixels has size 0."""
        assert estimate_size_ratio(solid(50, 50, RED, alpha=0)) == 0.0
