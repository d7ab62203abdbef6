#!/usr/bin/env python3
"""CLI interface for lostfound.

This module is the application's composition boundary: it owns the
process-wide default matcher used by command-line runs.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from tqdm import tqdm

from .comparison import compare_fingerprints
from .config import FingerprintOptions, MatcherSettings
from .fingerprint import generate_fingerprint, load_fingerprint, merge_fingerprints, save_fingerprint
from .matcher import SubjectMatcher
from .quality import get_match_quality
from .video import VideoFrameSource

logger = logging.getLogger(__name__)

_default_matcher: SubjectMatcher | None = None


def get_default_matcher(settings: MatcherSettings | None = None) -> SubjectMatcher:
    """Return the process-wide matcher, creating it on first use.

    Passing settings to an existing matcher replaces its settings. The
    instance is not thread-safe; concurrent sessions must construct their
    own SubjectMatcher.
    """
    global _default_matcher  # noqa: PLW0603
    if _default_matcher is None:
        _default_matcher = SubjectMatcher(settings)
    elif settings is not None:
        _default_matcher.update_settings(**dataclasses.asdict(settings))
    return _default_matcher


def reset_default_matcher() -> None:
    """Reset and drop the process-wide matcher."""
    global _default_matcher  # noqa: PLW0603
    if _default_matcher is not None:
        _default_matcher.reset()
    _default_matcher = None


def _cmd_fingerprint(args: argparse.Namespace) -> int:
    options = FingerprintOptions(
        histogram_buckets=args.buckets,
        dominant_color_count=args.colors,
        edge_grid_size=args.edge_grid,
    )
    fingerprints = [generate_fingerprint(Path(p), args.name, options) for p in args.images]
    merged = merge_fingerprints(fingerprints, histogram_buckets=args.buckets)
    save_fingerprint(merged, Path(args.output))
    print(f"Saved fingerprint {merged.id} ({len(fingerprints)} image(s)) to {args.output}")
    return 0


def _cmd_compare(args: argparse.Namespace) -> int:
    fp1 = load_fingerprint(Path(args.first))
    fp2 = load_fingerprint(Path(args.second))
    result = compare_fingerprints(fp1, fp2)
    quality = get_match_quality(result.overall)
    print(f"{fp1.name} vs {fp2.name}: {result.overall}% ({quality.label})")
    print(result.details)
    return 0


def _cmd_scan(args: argparse.Namespace) -> int:
    fingerprint = load_fingerprint(Path(args.fingerprint))
    settings = MatcherSettings(
        min_confidence_for_alert=args.alert,
        min_confidence_for_record=args.record,
        color_sensitivity=args.sensitivity,
        scan_grid_size=args.grid,
        adaptive_lighting=not args.no_lighting,
        motion_priority=not args.no_motion,
    )
    source = VideoFrameSource(Path(args.video), every=args.every, max_frames=args.max_frames)
    info = source.info
    logger.info(f"Scanning {args.video} ({info.width}x{info.height} @ {info.fps:.1f} fps)")

    matcher = get_default_matcher(settings)
    matcher.set_fingerprint(fingerprint)
    matcher.set_active(True)

    frames = 0
    matches = 0
    alerts = 0
    best = 0.0
    try:
        for index, frame in tqdm(source, total=source.expected_frames, desc="Scanning", unit="frame"):
            frames += 1
            result = matcher.process_frame(frame)
            if result is None:
                continue
            matches += 1
            best = max(best, result.confidence)
            if matcher.should_alert():
                alerts += 1
                seconds = index / info.fps if info.fps else 0.0
                logger.info(f"Alert at frame {index} ({seconds:.1f}s): {result.confidence:.0f}%")
        state = matcher.state
    finally:
        reset_default_matcher()

    print(f"\nFrames processed: {frames}")
    print(f"Matches: {matches} (alerts: {alerts})")
    print(f"Best confidence: {best:.0f}%")
    print(f"Average confidence (last {len(state.match_history)}): {state.average_confidence:.1f}%")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        description="Build visual fingerprints and search footage for a lost subject",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    fp = sub.add_parser("fingerprint", help="Build a fingerprint from reference images",
                        formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    fp.add_argument("name", type=str, help="Subject name")
    fp.add_argument("images", type=str, nargs="+", help="Reference image files")
    fp.add_argument("-o", "--output", type=str, required=True, help="Output JSON file")
    fp.add_argument("--buckets", type=int, default=32, help="Histogram bucket budget")
    fp.add_argument("--colors", type=int, default=5, help="Number of dominant colors")
    fp.add_argument("--edge-grid", type=int, default=8, help="Edge signature grid size")
    fp.set_defaults(func=_cmd_fingerprint)

    cmp_parser = sub.add_parser("compare", help="Compare two saved fingerprints")
    cmp_parser.add_argument("first", type=str, help="Reference fingerprint JSON")
    cmp_parser.add_argument("second", type=str, help="Candidate fingerprint JSON")
    cmp_parser.set_defaults(func=_cmd_compare)

    scan = sub.add_parser("scan", help="Scan a video for a fingerprinted subject",
                          formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    scan.add_argument("fingerprint", type=str, help="Fingerprint JSON")
    scan.add_argument("video", type=str, help="Video file")
    scan.add_argument("--grid", type=int, default=8, help="Scan grid size")
    scan.add_argument("--sensitivity", type=float, default=50.0,
                      help="Color sensitivity (0=lenient, 100=strict)")
    scan.add_argument("--record", type=float, default=40.0, help="Minimum confidence to record")
    scan.add_argument("--alert", type=float, default=60.0, help="Minimum confidence to alert")
    scan.add_argument("--no-motion", action="store_true", help="Scan every tile, not only moving ones")
    scan.add_argument("--no-lighting", action="store_true", help="Disable adaptive lighting")
    scan.add_argument("--every", type=int, default=1, help="Process every Nth frame")
    scan.add_argument("--max-frames", type=int, default=None, help="Stop after N processed frames")
    scan.set_defaults(func=_cmd_scan)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for lostfound.

    Returns:
        Process exit status.
    """
    args = build_parser().parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S"
    )

    try:
        return int(args.func(args))
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
