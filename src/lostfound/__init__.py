"""Lost & found subject matching - visual fingerprints and realtime frame matching."""

from .colors import color_distance, normalize_brightness, perceptual_color_distance, rgb_to_hsl
from .comparison import compare_fingerprints, quick_compare
from .config import ComparisonWeights, FingerprintOptions, MatcherSettings
from .fingerprint import (
    fingerprint_from_pixels,
    generate_fingerprint,
    load_fingerprint,
    merge_fingerprints,
    save_fingerprint,
)
from .matcher import SubjectMatcher
from .models import (
    HSL,
    RGB,
    ColorBucket,
    ComparisonResult,
    MatchDetails,
    MatcherState,
    MatchRegion,
    MatchResult,
    VisualFingerprint,
)
from .quality import format_match_result, get_match_quality, get_processing_info

__version__ = "0.1.0"

__all__ = [
    "HSL",
    "RGB",
    "ColorBucket",
    "ComparisonResult",
    "ComparisonWeights",
    "FingerprintOptions",
    "MatchDetails",
    "MatchRegion",
    "MatchResult",
    "MatcherSettings",
    "MatcherState",
    "SubjectMatcher",
    "VisualFingerprint",
    "color_distance",
    "compare_fingerprints",
    "fingerprint_from_pixels",
    "format_match_result",
    "generate_fingerprint",
    "get_match_quality",
    "get_processing_info",
    "load_fingerprint",
    "merge_fingerprints",
    "normalize_brightness",
    "perceptual_color_distance",
    "quick_compare",
    "rgb_to_hsl",
    "save_fingerprint",
]
