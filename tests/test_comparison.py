"""
Unit tests for fingerprint comparison.
"""

import pytest
from conftest import BLUE, ORANGE, RED, solid

from lostfound import ComparisonWeights, FingerprintOptions, fingerprint_from_pixels
from lostfound.comparison import (
    compare_dominant_colors,
    compare_edge_signatures,
    compare_fingerprints,
    compare_histograms,
    compare_sizes,
    quick_compare,
)
from lostfound.models import RGB, ColorBucket


class TestFactorScores:
    """Test the individual similarity factors."""

    def test_histogram_identical(self):
        """Test that identical histograms score 100."""
        h = [ColorBucket(color=RGB(r=10, g=20, b=30), count=5, percentage=100.0)]
        assert compare_histograms(h, h) == pytest.approx(100.0)

    def test_histogram_empty(self):
        """Test that an empty side scores 0."""
        h = [ColorBucket(color=RGB(r=10, g=20, b=30), count=5, percentage=100.0)]
        assert compare_histograms([], h) == 0.0
        assert compare_histograms(h, []) == 0.0

    def test_histogram_share_mismatch(self):
        """Test that equal colors with different shares are penalized."""
        h1 = [ColorBucket(color=RGB(r=0, g=0, b=0), count=1, percentage=100.0)]
        h2 = [ColorBucket(color=RGB(r=0, g=0, b=0), count=1, percentage=40.0)]
        assert compare_histograms(h1, h2) == pytest.approx(40.0)

    def test_dominant_identical(self):
        """Test that identical palettes score 100."""
        colors = [RGB(r=255, g=0, b=0), RGB(r=0, g=255, b=0)]
        assert compare_dominant_colors(colors, colors) == pytest.approx(100.0)

    def test_dominant_opposite(self):
        """Test that red against blue scores 0."""
        assert compare_dominant_colors([RGB(r=255, g=0, b=0)], [RGB(r=0, g=0, b=255)]) == 0.0

    def test_edge_mean_difference(self):
        """Test that edge similarity is 100 minus the mean absolute difference."""
        assert compare_edge_signatures([0.0, 100.0], [20.0, 60.0]) == pytest.approx(70.0)

    def test_edge_length_mismatch(self):
        """Test that signatures of different grids are not comparable."""
        assert compare_edge_signatures([0.0] * 64, [0.0] * 16) == 0.0
        assert compare_edge_signatures([], []) == 0.0

    def test_size_similarity(self):
        """Test the size ratio similarity curve."""
        assert compare_sizes(0.3, 0.3) == pytest.approx(100.0)
        assert compare_sizes(0.2, 0.4) == pytest.approx(60.0)
        assert compare_sizes(0.0, 0.6) == 0.0


class TestCompareFingerprints:
    """Test weighted fingerprint comparison."""

    def test_self_match(self, textured_image):
        """Test that a fingerprint matches itself almost perfectly."""
        fp = fingerprint_from_pixels(textured_image, "Rex")

        result = compare_fingerprints(fp, fp)

        assert result.overall >= 95
        assert result.edge_match == 100
        assert result.size_match == 100

    def test_red_vs_blue(self):
        """Test that unrelated solid colors stay below the record threshold."""
        red = fingerprint_from_pixels(solid(50, 50, RED), "red")
        blue = fingerprint_from_pixels(solid(50, 50, BLUE), "blue")

        result = compare_fingerprints(red, blue)

        assert result.overall < 40
        assert result.dominant_match == 0

    def test_scores_are_integers_in_range(self, textured_image, orange_fingerprint):
        """Test that all factors are rounded to integers within 0-100."""
        fp = fingerprint_from_pixels(textured_image, "Rex")

        result = compare_fingerprints(orange_fingerprint, fp)

        for value in (result.overall, result.color_match, result.dominant_match,
                      result.edge_match, result.size_match):
            assert isinstance(value, int)
            assert 0 <= value <= 100

    def test_details_string(self):
        """Test the human readable factor summary."""
        red = fingerprint_from_pixels(solid(50, 50, RED), "red")

        result = compare_fingerprints(red, red)

        assert result.details == "Color: 100%, Dominant: 100%, Edge: 100%, Size: 100%"

    def test_edge_grid_mismatch_zeroes_edge(self, orange_fingerprint):
        """Test that fingerprints with different edge grids get no edge credit."""
        tile = fingerprint_from_pixels(
            solid(24, 24, ORANGE), "tile", FingerprintOptions(edge_grid_size=4)
        )

        result = compare_fingerprints(orange_fingerprint, tile)

        assert result.edge_match == 0
        assert result.overall == 85

    def test_custom_weights(self):
        """Test that weights change how factors are combined."""
        red = fingerprint_from_pixels(solid(50, 50, RED), "red")
        blue = fingerprint_from_pixels(solid(50, 50, BLUE), "blue")
        color_only = ComparisonWeights(color=1.0, dominant=0.0, edge=0.0, size=0.0)

        result = compare_fingerprints(red, blue, color_only)

        assert result.overall == result.color_match


class TestQuickCompare:
    """Test the whole-frame pre-filter."""

    def test_same_color(self, orange_fingerprint):
        """Test that a frame of the subject's color scores 100."""
        assert quick_compare(orange_fingerprint, solid(64, 48, ORANGE)) == 100

    def test_opposite_color(self, orange_fingerprint):
        """Test that a blue frame scores 0 against an orange subject."""
        assert quick_compare(orange_fingerprint, solid(64, 48, BLUE)) == 0

    def test_partial_frame(self, orange_fingerprint):
        """Test that a frame holding the subject passes the default reject cutoff."""
        frame = solid(100, 100, (128, 128, 128))
        frame[24:48, 24:48, :3] = ORANGE

        assert quick_compare(orange_fingerprint, frame) >= 20
