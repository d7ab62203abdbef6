"""Display helpers: confidence tiers and result formatting."""

from datetime import datetime

from .config import ProcessingMode
from .models import FormattedMatch, MatchQuality, MatchResult, ProcessingInfo

# (minimum confidence, label, color, description), best tier first
_TIERS = (
    (85, "Excellent", "green", "Very high likelihood of match"),
    (70, "Good", "emerald", "Strong potential match"),
    (55, "Possible", "yellow", "Worth checking"),
    (40, "Weak", "orange", "Low confidence, may be false positive"),
)
_UNLIKELY = MatchQuality(label="Unlikely", color="red", description="Probably not a match")


def get_match_quality(confidence: float) -> MatchQuality:
    """Map a confidence (0-100) to its display tier."""
    for minimum, label, color, description in _TIERS:
        if confidence >= minimum:
            return MatchQuality(label=label, color=color, description=description)
    return _UNLIKELY


def format_match_result(result: MatchResult) -> FormattedMatch:
    """Local time, rounded percentage and tier of a match."""
    moment = datetime.fromtimestamp(result.timestamp / 1000)
    return FormattedMatch(
        time=moment.strftime("%H:%M:%S"),
        confidence=f"{result.confidence:.0f}%",
        quality=get_match_quality(result.confidence),
    )


def get_processing_info(mode: ProcessingMode) -> ProcessingInfo:
    """Describe a processing mode for display.

    Raises:
        ValueError: If the mode is unknown.
    """
    if mode == "local":
        return ProcessingInfo(
            label="Local Instant",
            description="All processing on-device, no internet required",
            estimated_latency="< 50ms",
            color="green",
        )
    if mode == "hybrid":
        return ProcessingInfo(
            label="AI Enhanced",
            description="Local + cloud AI for higher accuracy",
            estimated_latency="1-5s",
            color="blue",
        )
    msg = f"Unknown processing mode: {mode}"
    raise ValueError(msg)
