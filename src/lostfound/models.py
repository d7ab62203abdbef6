"""Pydantic models for fingerprints, comparisons and match results.

Attributes use snake_case in Python and camelCase in JSON so that records
handed to external stores keep their established shape. Dump with
``model_dump(by_alias=True)`` (or ``model_dump_json(by_alias=True)``).
"""

import random
import string
import time
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ID_ALPHABET[rem])
    return "".join(reversed(digits)) or "0"


def make_id(prefix: str) -> str:
    """Build an identifier like ``fp-1718000000000-k3j9x0a``.

    Args:
        prefix: Leading tag ("fp", "match").

    Returns:
        Prefix, epoch milliseconds and seven random base36 characters.
    """
    suffix = _base36(random.getrandbits(40)).rjust(7, "0")[:7]
    return f"{prefix}-{now_ms()}-{suffix}"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class _Record(BaseModel):
    """Base for all records: camelCase JSON aliases, snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RGB(BaseModel):
    """An 8-bit RGB color."""

    model_config = ConfigDict(frozen=True)

    r: int = Field(ge=0, le=255)
    g: int = Field(ge=0, le=255)
    b: int = Field(ge=0, le=255)

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.r, self.g, self.b)


class HSL(BaseModel):
    """Hue in degrees, saturation and lightness as percentages."""

    model_config = ConfigDict(frozen=True)

    h: int
    s: int
    l: int  # noqa: E741


# Returned by extractors when a region holds no valid pixels
NEUTRAL_GRAY = RGB(r=128, g=128, b=128)


class ColorBucket(BaseModel):
    """Quantized histogram cell.

    Attributes:
        color: Mean color of the pixels that fell into the cell.
        count: Number of pixels in the cell.
        percentage: Share of all valid pixels (0-100).
    """

    color: RGB
    count: int = Field(ge=0)
    percentage: float = Field(ge=0.0)


class VisualFingerprint(_Record):
    """Multi-factor visual description of a subject.

    Attributes:
        id: Unique identifier.
        name: Display name of the subject.
        color_histogram: Buckets sorted by count, descending.
        dominant_colors: K-means cluster centers.
        average_color: Mean color of valid pixels.
        color_variance: Mean RGB distance of pixels from average_color.
        estimated_size_ratio: Foreground fraction in [0, 1].
        edge_signature: Per-cell gradient energy in [0, 100], grid_size^2 values.
        reference_images: Encoded thumbnails (informational only).
        created_at: ISO-8601 creation time.
    """

    id: str = Field(default_factory=lambda: make_id("fp"))
    name: str
    color_histogram: list[ColorBucket] = Field(default_factory=list)
    dominant_colors: list[RGB] = Field(default_factory=list)
    average_color: RGB = NEUTRAL_GRAY
    color_variance: float = 0.0
    estimated_size_ratio: float = Field(default=0.0, ge=0.0, le=1.0)
    edge_signature: list[float] = Field(default_factory=list)
    reference_images: list[str] = Field(default_factory=list)
    created_at: str = Field(default_factory=now_iso)


class ComparisonResult(_Record):
    """Weighted multi-factor similarity between two fingerprints (0-100)."""

    overall: int
    color_match: int
    dominant_match: int
    edge_match: int
    size_match: int
    details: str


class MatchDetails(_Record):
    """Per-factor breakdown attached to a match."""

    color_match: int
    dominant_match: int
    edge_match: int
    size_match: int


class MatchRegion(_Record):
    """Bounding box and center in source-frame pixel coordinates."""

    x: int
    y: int
    width: int
    height: int
    center_x: float
    center_y: float


class MatchResult(_Record):
    """Outcome of a frame that contained a plausible match.

    Attributes:
        id: Unique identifier.
        timestamp: Epoch milliseconds.
        confidence: Sensitivity-adjusted score in [0, 100].
        details: Factor breakdown of the best tile.
        frame_data: JPEG data URL of the frame, only above the record threshold.
        region: Location of the best tile.
        processing_time_ms: Wall time spent on the frame.
    """

    id: str = Field(default_factory=lambda: make_id("match"))
    timestamp: int = Field(default_factory=now_ms)
    confidence: float = Field(ge=0.0, le=100.0)
    details: MatchDetails
    frame_data: str | None = None
    region: MatchRegion | None = None
    processing_time_ms: float = 0.0


class MatcherState(_Record):
    """Snapshot of a matcher's rolling statistics."""

    is_active: bool = False
    last_match: MatchResult | None = None
    match_history: list[MatchResult] = Field(default_factory=list)
    consecutive_matches: int = 0
    average_confidence: float = 0.0


class MatchQuality(BaseModel):
    """Display tier for a confidence value."""

    label: str
    color: str
    description: str


class FormattedMatch(BaseModel):
    """Display strings for a match."""

    time: str
    confidence: str
    quality: MatchQuality


class ProcessingInfo(_Record):
    """Display descriptor for a processing mode."""

    label: str
    description: str
    estimated_latency: str
    color: str


class VideoInfo(BaseModel):
    """Video file metadata.

    Attributes:
        fps: Frames per second.
        width: Frame width in pixels.
        height: Frame height in pixels.
        total_frames: Total number of frames in video.
    """
    fps: float
    width: int
    height: int
    total_frames: int
