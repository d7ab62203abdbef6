"""Realtime subject matching against a visual fingerprint.

A :class:`SubjectMatcher` is a per-session engine. It is fed successive
frames, keeps the previous frame for motion detection, tracks lighting
drift, and runs a two-stage pipeline: a cheap whole-frame reject followed
by a tiled region scan.

Instances are not reentrant. Drive ``process_frame`` from one thread at a
time; sessions that run concurrently need their own instance.
"""

import dataclasses
import logging
import time
from typing import Any

import numpy as np
import numpy.typing as npt

from .comparison import compare_fingerprints, quick_compare
from .config import QUICK_FINGERPRINT_OPTIONS, MatcherSettings
from .features import calculate_average_color
from .fingerprint import fingerprint_from_pixels
from .imaging import apply_offset, as_rgba, crop_region, encode_data_url
from .models import MatchDetails, MatcherState, MatchRegion, MatchResult, VisualFingerprint

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 20
MOTION_THRESHOLD = 10.0
MOTION_SAMPLE_STRIDE = 4
LIGHTING_SMOOTHING = 0.1
TILE_CELLS = 2


class SubjectMatcher:
    """Stateful frame matcher for one search session.

    States:
        inactive: frames are ignored.
        active, no fingerprint: frames are ignored.
        active with fingerprint: frames are processed.

    Installing a fingerprint (or None) and :meth:`reset` clear the rolling
    statistics together with the frame and lighting history.
    """

    def __init__(self, settings: MatcherSettings | None = None):
        """Initialize an inactive matcher.

        Args:
            settings: Matcher settings (defaults to MatcherSettings()).

        Raises:
            ValueError: If the settings are invalid.
        """
        self._settings = settings or MatcherSettings()
        self._settings.validate()
        self._fingerprint: VisualFingerprint | None = None

        self._is_active = False
        self._last_match: MatchResult | None = None
        self._history: list[MatchResult] = []
        self._consecutive_matches = 0
        self._average_confidence = 0.0

        # Owned copies, never caller memory
        self._previous_frame: npt.NDArray[np.uint8] | None = None
        self._motion_mask: npt.NDArray[np.bool_] | None = None
        self._lighting_offset = np.zeros(3, dtype=np.int64)
        self._frame_count = 0

    # Configuration and state

    @property
    def fingerprint(self) -> VisualFingerprint | None:
        return self._fingerprint

    def set_fingerprint(self, fingerprint: VisualFingerprint | None) -> None:
        """Install the fingerprint to search for, or None to clear it."""
        self._fingerprint = fingerprint
        self.reset()
        if fingerprint is None:
            logger.info("Fingerprint cleared")
        else:
            logger.info(f"Installed fingerprint {fingerprint.id} ('{fingerprint.name}')")

    @property
    def settings(self) -> MatcherSettings:
        return dataclasses.replace(self._settings)

    def update_settings(self, **changes: Any) -> MatcherSettings:
        """Replace individual settings.

        Args:
            **changes: MatcherSettings fields to change.

        Returns:
            The new settings.

        Raises:
            TypeError: If a key is not a MatcherSettings field.
            ValueError: If the resulting settings are invalid.
        """
        updated = dataclasses.replace(self._settings, **changes)
        updated.validate()
        if updated.scan_grid_size != self._settings.scan_grid_size:
            self._motion_mask = None
        self._settings = updated
        return dataclasses.replace(updated)

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def is_ready(self) -> bool:
        """True when active with a fingerprint installed."""
        return self._is_active and self._fingerprint is not None

    @property
    def state(self) -> MatcherState:
        """Snapshot of the rolling statistics."""
        return MatcherState(
            is_active=self._is_active,
            last_match=self._last_match,
            match_history=list(self._history),
            consecutive_matches=self._consecutive_matches,
            average_confidence=self._average_confidence,
        )

    @property
    def match_history(self) -> list[MatchResult]:
        """Retained matches, newest first."""
        return list(self._history)

    @property
    def frame_count(self) -> int:
        """Frames processed since the last reset."""
        return self._frame_count

    def set_active(self, active: bool) -> None:
        """Start or stop matching. Deactivating also resets the session."""
        self._is_active = active
        if not active:
            self.reset()
        logger.info(f"Matcher {'activated' if active else 'deactivated'}")

    def reset(self) -> None:
        """Clear statistics and frame history, keeping the active flag."""
        self._last_match = None
        self._history = []
        self._consecutive_matches = 0
        self._average_confidence = 0.0
        self._previous_frame = None
        self._motion_mask = None
        self._lighting_offset = np.zeros(3, dtype=np.int64)
        self._frame_count = 0

    def clear_history(self) -> None:
        """Drop retained matches; last match and counters are kept."""
        self._history = []
        self._average_confidence = 0.0

    # Frame processing

    def process_frame(self, frame: npt.ArrayLike | None) -> MatchResult | None:
        """Process the next frame of the session.

        The first frame after activation or a reset only becomes the motion
        baseline. The frame is copied; the caller keeps ownership of it.

        Args:
            frame: RGBA (or RGB) pixel array, or None if no frame is available.

        Returns:
            The best qualifying match, or None.

        Raises:
            ValueError: If the frame is not an RGB/RGBA pixel array.
        """
        fingerprint = self._fingerprint
        if not self._is_active or fingerprint is None or frame is None:
            return None

        image = as_rgba(frame)
        if image.size == 0:
            return None

        start = time.perf_counter()
        previous = self._previous_frame

        if self._settings.motion_priority and previous is not None:
            self._motion_mask = self._compute_motion_mask(image, previous)

        if self._settings.adaptive_lighting:
            self._update_lighting_offset(image, fingerprint)

        self._previous_frame = image.copy()
        self._frame_count += 1

        if previous is None:
            logger.debug("Captured baseline frame")
            self._consecutive_matches = 0
            return None

        mask = self._motion_mask if self._settings.motion_priority else None
        result = self._evaluate(image, start, mask, self._lighting_offset)
        if result is None:
            self._consecutive_matches = 0
            return None

        self._record(result)
        if result.confidence >= self._settings.min_confidence_for_record:
            result.frame_data = encode_data_url(image)
        logger.info(
            f"Match {result.confidence:.0f}% at "
            f"({result.region.x}, {result.region.y}, {result.region.width}x{result.region.height})"
        )
        return result

    def evaluate(self, frame: npt.ArrayLike | None) -> MatchResult | None:
        """Match a single still image without touching session state.

        No motion mask, lighting offset or history is used or updated.

        Args:
            frame: RGBA (or RGB) pixel array.

        Returns:
            The best qualifying match, or None.
        """
        if not self.is_ready or frame is None:
            return None
        image = as_rgba(frame)
        if image.size == 0:
            return None
        return self._evaluate(image, time.perf_counter(), None, None)

    def should_alert(self) -> bool:
        """True if the last match reaches the alert threshold."""
        return (
            self._last_match is not None
            and self._last_match.confidence >= self._settings.min_confidence_for_alert
        )

    def should_record(self) -> bool:
        """True if the last match reaches the record threshold."""
        return (
            self._last_match is not None
            and self._last_match.confidence >= self._settings.min_confidence_for_record
        )

    # Pipeline stages

    def _evaluate(
        self,
        image: npt.NDArray[np.uint8],
        start: float,
        motion_mask: npt.NDArray[np.bool_] | None,
        lighting_offset: npt.NDArray[np.int64] | None,
    ) -> MatchResult | None:
        """Quick whole-frame reject, then region scan."""
        fingerprint = self._fingerprint
        if fingerprint is None:
            return None

        checked = image
        if lighting_offset is not None and lighting_offset.any():
            checked = apply_offset(image, lighting_offset)

        quick_score = quick_compare(fingerprint, checked)
        if quick_score < self._settings.min_confidence_for_record / 2:
            logger.debug(f"Quick reject (score {quick_score})")
            return None

        return self._scan_regions(fingerprint, image, start, motion_mask)

    def _scan_regions(
        self,
        fingerprint: VisualFingerprint,
        image: npt.NDArray[np.uint8],
        start: float,
        motion_mask: npt.NDArray[np.bool_] | None,
    ) -> MatchResult | None:
        """Score overlapping 2x2-cell tiles and keep the best qualifying one."""
        height, width = image.shape[:2]
        grid = self._settings.scan_grid_size
        cell_w = width // grid
        cell_h = height // grid
        if cell_w == 0 or cell_h == 0:
            return None

        threshold = self._settings.min_confidence_for_record
        best: MatchResult | None = None
        best_confidence = 0.0
        scanned = 0

        for gy in range(grid - 1):
            for gx in range(grid - 1):
                if motion_mask is not None and not motion_mask[gy:gy + TILE_CELLS, gx:gx + TILE_CELLS].any():
                    continue

                x = gx * cell_w
                y = gy * cell_h
                w = cell_w * TILE_CELLS
                h = cell_h * TILE_CELLS
                region = crop_region(image, x, y, w, h)
                if region is None:
                    continue
                scanned += 1

                tile = fingerprint_from_pixels(region, "region", QUICK_FINGERPRINT_OPTIONS)
                comparison = compare_fingerprints(fingerprint, tile)
                confidence = self._apply_sensitivity(comparison.overall)

                if confidence > best_confidence and confidence >= threshold:
                    best_confidence = confidence
                    best = MatchResult(
                        confidence=confidence,
                        details=MatchDetails(
                            color_match=comparison.color_match,
                            dominant_match=comparison.dominant_match,
                            edge_match=comparison.edge_match,
                            size_match=comparison.size_match,
                        ),
                        region=MatchRegion(
                            x=x,
                            y=y,
                            width=w,
                            height=h,
                            center_x=x + w / 2,
                            center_y=y + h / 2,
                        ),
                    )

        logger.debug(f"Scanned {scanned} of {(grid - 1) ** 2} tiles, best {best_confidence:.1f}")
        if best is not None:
            best.processing_time_ms = (time.perf_counter() - start) * 1000
        return best

    def _apply_sensitivity(self, raw_confidence: float) -> float:
        """Rescale a score by (100 - sensitivity) / 50, clamped to [0, 100].

        Sensitivity 50 leaves scores unchanged; lower values boost them,
        higher values shrink them.
        """
        factor = (100 - self._settings.color_sensitivity) / 50
        return float(min(100.0, max(0.0, raw_confidence * factor)))

    def _compute_motion_mask(
        self, current: npt.NDArray[np.uint8], previous: npt.NDArray[np.uint8]
    ) -> npt.NDArray[np.bool_] | None:
        """Mark grid cells whose mean channel difference exceeds the threshold.

        Every 4th pixel (in both directions) of a cell is sampled. Returns
        None when the frame size changed or cells would be empty, which
        disables tile skipping.
        """
        if current.shape != previous.shape:
            return None

        grid = self._settings.scan_grid_size
        height, width = current.shape[:2]
        cell_w = width // grid
        cell_h = height // grid
        if cell_w == 0 or cell_h == 0:
            return None

        span_h = grid * cell_h
        span_w = grid * cell_w
        cur = current[:span_h, :span_w, :3].astype(np.int16)
        prev = previous[:span_h, :span_w, :3].astype(np.int16)
        diff = np.abs(cur - prev).sum(axis=2).reshape(grid, cell_h, grid, cell_w)
        sampled = diff[:, ::MOTION_SAMPLE_STRIDE, :, ::MOTION_SAMPLE_STRIDE]
        mean_diff = sampled.mean(axis=(1, 3)) / 3
        return mean_diff > MOTION_THRESHOLD

    def _update_lighting_offset(
        self, image: npt.NDArray[np.uint8], fingerprint: VisualFingerprint
    ) -> None:
        """Move the lighting offset toward (reference average - frame average)."""
        frame_avg = np.array(calculate_average_color(image).as_tuple(), dtype=np.float64)
        ref_avg = np.array(fingerprint.average_color.as_tuple(), dtype=np.float64)
        blended = (
            self._lighting_offset * (1 - LIGHTING_SMOOTHING)
            + (ref_avg - frame_avg) * LIGHTING_SMOOTHING
        )
        self._lighting_offset = np.floor(blended + 0.5).astype(np.int64)

    def _record(self, result: MatchResult) -> None:
        self._last_match = result
        self._consecutive_matches += 1
        self._history = [result, *self._history][:HISTORY_LIMIT]
        self._average_confidence = sum(m.confidence for m in self._history) / len(self._history)
