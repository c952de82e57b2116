"""
Command line entry point.

    python -m montage audio.json video1.json [video2.json ...] [options]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog
from pydantic import ValidationError

from .config import EditStyle, EngineConfig
from .engine import generate_edit
from .errors import InvalidInputError, MontageError
from .models import AudioAnalysis, VideoAnalysis

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID_INPUT = 2


def _load_json(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise InvalidInputError(f"file not found: {path}", stage="cli") from e
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"{path} is not valid JSON: {e}", stage="cli") from e
    if not isinstance(data, dict):
        raise InvalidInputError(f"{path} must contain a JSON object", stage="cli")
    return data


def load_audio(path: str) -> AudioAnalysis:
    data = _load_json(path)
    data.setdefault("id", Path(path).stem)
    try:
        return AudioAnalysis.model_validate(data)
    except ValidationError as e:
        raise InvalidInputError(f"invalid audio analysis in {path}: {e}", stage="cli") from e


def load_video(path: str) -> VideoAnalysis:
    data = _load_json(path)
    data.setdefault("video_id", Path(path).stem)
    try:
        return VideoAnalysis.model_validate(data)
    except ValidationError as e:
        raise InvalidInputError(f"invalid video analysis in {path}: {e}", stage="cli") from e


def build_config(args: argparse.Namespace) -> EngineConfig:
    overrides = {
        "edit_style": args.style,
        "rng_seed": args.seed,
        "min_scene_duration": args.min_scene,
        "max_scene_duration": args.max_scene,
        "beat_cut_percentage": args.beat_percentage,
        "strict": args.strict,
    }
    try:
        return EngineConfig.model_validate({k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        raise InvalidInputError(f"invalid options: {e}", stage="cli") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="montage",
        description="Beat-synchronized edit decision engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m montage track.json clip_a.json
  python -m montage track.json clip_a.json clip_b.json --style energy_based --seed 7
  python -m montage track.json clip_a.json --max-scene 4 --output edl.json

Edit Styles:
  rhythm_match, segment_based, energy_based, cinematic
        """
    )
    parser.add_argument("audio", help="Audio analysis JSON file")
    parser.add_argument("videos", nargs="+", help="Video analysis JSON file(s)")
    parser.add_argument(
        "-s", "--style",
        default=None,
        choices=[s.value for s in EditStyle],
        help="Edit style (default: rhythm_match)"
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed (default: 0)")
    parser.add_argument("--min-scene", type=float, default=None, help="Minimum clip duration in seconds")
    parser.add_argument("--max-scene", type=float, default=None, help="Maximum clip duration in seconds")
    parser.add_argument(
        "--beat-percentage",
        type=float,
        default=None,
        help="Share of strongest beats considered for cuts (0-100)"
    )
    parser.add_argument("--strict", action="store_true", default=None, help="Fail instead of degrading clips")
    parser.add_argument("-o", "--output", default=None, help="Write the result JSON here")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    return parser


def configure_logging(verbose: bool = False) -> None:
    """Route structlog events through stdlib logging on stderr"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point"""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        config = build_config(args)
        audio = load_audio(args.audio)
        videos = {}
        for path in args.videos:
            video = load_video(path)
            videos[video.video_id] = video
        result = generate_edit(audio, videos, config)
    except InvalidInputError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_INVALID_INPUT
    except MontageError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_FAILED

    payload = result.model_dump_json(indent=2)
    if args.output:
        Path(args.output).write_text(payload, encoding="utf-8")
        print(f"EDL written to: {args.output}")
    else:
        print(payload)

    stats = result.stats
    print(f"\n{'=' * 60}", file=sys.stderr)
    print("Edit Decision Complete", file=sys.stderr)
    print(f"   Cuts: {stats.total_cuts}", file=sys.stderr)
    print(f"   Average clip: {stats.average_scene_duration:.2f}s", file=sys.stderr)
    print(f"   Beat alignment: {stats.beat_alignment_score:.2f}", file=sys.stderr)
    print(f"   Transitions: {len(result.edl.transitions)}", file=sys.stderr)
    print(f"   Issues: {len(result.issues)}", file=sys.stderr)
    print(f"{'=' * 60}", file=sys.stderr)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
