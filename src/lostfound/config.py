#!/usr/bin/env python3
"""Configuration dataclasses for fingerprint extraction and frame matching."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

# Type aliases
ProcessingMode = Literal["local", "hybrid"]


@dataclass(frozen=True)
class FingerprintOptions:
    """Feature extraction budgets used when building a fingerprint."""

    histogram_buckets: int = 32
    dominant_color_count: int = 5
    edge_grid_size: int = 8

    # Reference images are downscaled to fit this box before extraction
    max_dimension: int = 256
    thumbnail_size: int = 64

    def validate(self) -> None:
        """Validate extraction options.

        Raises:
            ValueError: If any option is not a positive integer.
        """
        for name in (
            "histogram_buckets",
            "dominant_color_count",
            "edge_grid_size",
            "max_dimension",
            "thumbnail_size",
        ):
            value = getattr(self, name)
            if value <= 0:
                msg = f"{name} must be positive, got {value}"
                raise ValueError(msg)


# Reduced budgets for the per-tile fingerprints built during region scans
QUICK_FINGERPRINT_OPTIONS = FingerprintOptions(
    histogram_buckets=16, dominant_color_count=3, edge_grid_size=4
)


@dataclass(frozen=True)
class ComparisonWeights:
    """Relative weight of each factor in the overall comparison score."""

    color: float = 0.4
    dominant: float = 0.35
    edge: float = 0.15
    size: float = 0.1


@dataclass(frozen=True)
class MatcherSettings:
    """Runtime settings for a realtime subject matcher."""

    # Confidence thresholds (0-100)
    min_confidence_for_alert: float = 60.0
    min_confidence_for_record: float = 40.0

    # 0 = very lenient, 100 = very strict, 50 = no adjustment
    color_sensitivity: float = 50.0
    size_tolerance: float = 50.0

    # Region scan grid (scan_grid_size x scan_grid_size cells)
    scan_grid_size: int = 8
    processing_mode: ProcessingMode = "local"

    # Feature toggles
    adaptive_lighting: bool = True
    motion_priority: bool = True

    def validate(self) -> None:
        """Validate matcher settings.

        Raises:
            ValueError: If any parameter is out of range.
        """
        for name in (
            "min_confidence_for_alert",
            "min_confidence_for_record",
            "color_sensitivity",
            "size_tolerance",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 100.0:
                msg = f"{name} must be in [0,100], got {value}"
                raise ValueError(msg)
        if not 2 <= self.scan_grid_size <= 32:
            msg = f"scan_grid_size must be in [2,32], got {self.scan_grid_size}"
            raise ValueError(msg)
        if self.processing_mode not in ("local", "hybrid"):
            msg = f"Unknown processing mode: {self.processing_mode}"
            raise ValueError(msg)
