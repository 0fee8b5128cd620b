"""
Command line interface for shrinkray.

    shrinkray probe video.mkv
    shrinkray plan video.mkv
    shrinkray convert video.mkv --video size_8mb --audio bitrate_low
    shrinkray previews video.mkv --interval 5 -o previews/
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import load_config, set_config
from .constants import AUDIO_PRESET_HIGH, AUDIO_PRESET_NONE
from .errors import ShrinkRayError
from .logging_config import configure_logging
from .models import ConvertInstructions, Cut, FormatOptions, ProgressEvent
from .transcoding import FFmpegEncoder, TranscodeEngine
from .transcoding.commands import output_file_name

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shrinkray",
        description="Plan and run size-constrained H.264/AAC conversions"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-c", "--config", help="Path to a YAML configuration file")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        help="Override the configured log level"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    probe = sub.add_parser("probe", help="Print the source format as JSON")
    probe.add_argument("file", type=Path)

    plan = sub.add_parser("plan", help="List the target options for a source")
    plan.add_argument("file", type=Path)

    convert = sub.add_parser("convert", help="Convert a source to a planned target")
    convert.add_argument("file", type=Path)
    convert.add_argument("--video", required=True, help="Video preset, eg. size_8mb or crf_720p")
    convert.add_argument("--audio", help="Audio preset (default: bitrate_high, or none without audio)")
    convert.add_argument("--start", type=float, help="Start of the kept part in seconds")
    convert.add_argument("--duration", type=float, help="Length of the kept part in seconds")
    convert.add_argument("-o", "--output", type=Path, help="Output file")

    previews = sub.add_parser("previews", help="Extract preview JPEGs")
    previews.add_argument("file", type=Path)
    previews.add_argument("--interval", type=float, help="Seconds between previews")
    previews.add_argument("-o", "--output", type=Path, default=Path("."), help="Output directory")

    return parser


def format_options(options: FormatOptions) -> str:
    lines = []
    for video in options.video:
        if video.implausible:
            detail = "not achievable"
        elif video.original:
            detail = f"{video.width}x{video.height}@{video.fps:g} (original stream)"
        else:
            rate = f"crf {video.crf:g}" if video.crf is not None else f"{video.bitrate:g}kbit/s"
            detail = f"{video.width}x{video.height}@{video.fps:g} {rate}"
        lines.append(f"{video.preset:<16} {detail:<40} ~{video.expected_size:.0f}KB")
    for audio in options.audio:
        if audio.is_absent:
            detail = "no audio"
        else:
            detail = f"{audio.codec} {audio.bitrate:g}kbit/s {audio.channel_setup}"
        lines.append(f"{audio.preset:<16} {detail:<40} ~{audio.expected_size:.0f}KB")
    return "\n".join(lines)


def _print_progress(event: ProgressEvent) -> None:
    sys.stderr.write(f"\r{event.percent:5.1f}%")
    if event.percent >= 100:
        sys.stderr.write("\n")
    sys.stderr.flush()


async def _run(args: argparse.Namespace, config) -> int:
    encoder = FFmpegEncoder(config.encoding)
    try:
        engine = TranscodeEngine(encoder, config)
        input_name = encoder.import_file(args.file)
        source = await engine.analyze(input_name)

        if args.command == "probe":
            print(json.dumps(source.to_dict(), indent=2))
            return 0

        options = engine.plan(source)

        if args.command == "plan":
            print(format_options(options))
            return 0

        if args.command == "previews":
            args.output.mkdir(parents=True, exist_ok=True)
            count = 0
            async for frame in engine.previews(input_name, source, args.interval):
                count += 1
                (args.output / f"preview_{count:04d}.jpg").write_bytes(frame)
            print(f"Wrote {count} previews to {args.output}")
            return 0

        video = options.find_video(args.video)
        if video is None:
            print(f"Unknown video preset: {args.video}", file=sys.stderr)
            return 2
        if video.implausible:
            print(f"Video preset {args.video} is not achievable for this source", file=sys.stderr)
            return 1

        audio_preset = args.audio or (AUDIO_PRESET_HIGH if source.has_audio else AUDIO_PRESET_NONE)
        audio = options.find_audio(audio_preset)
        if audio is None:
            print(f"Unknown audio preset: {audio_preset}", file=sys.stderr)
            return 2

        start = args.start if args.start is not None else source.container.start
        duration = args.duration
        if duration is None:
            duration = source.container.duration - (start - source.container.start)
        instructions = ConvertInstructions(cuts=[Cut(start, duration)], video=video, audio=audio)

        data = await engine.convert(
            input_name, source, instructions.to_target_format(), on_progress=_print_progress
        )
        output = args.output or Path(output_file_name(args.file.name, config.encoding.container_format))
        output.write_bytes(data)
        print(f"Wrote {len(data) / 1000:.0f}KB to {output}")
        return 0
    finally:
        # a preview job left running after early stop ends with the session
        await encoder.terminate()
        encoder.cleanup()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    if args.log_level:
        config.logging.level = args.log_level
    set_config(config)
    configure_logging(config.logging)

    try:
        return asyncio.run(_run(args, config))
    except ShrinkRayError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
