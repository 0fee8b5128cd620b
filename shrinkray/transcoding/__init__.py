"""
Transcoding package for shrinkray.
Probing, target planning, argument synthesis and preview extraction.
"""

from .probe import MediaProbe, parse_line, parse_timestamp, probe_arguments
from .resolution import (
    Resolution,
    create_resolution,
    dedupe_resolutions,
    estimate_h264_size,
    h264_compatible,
)
from .planner import FormatPlanner
from .commands import CommandBuilder, output_file_name, synthesize_arguments
from .progress import parse_progress, progress_reporter
from .extraction import ExtractionState, FrameExtractor
from .encoder import Encoder, FFmpegEncoder, sanitize_file_name
from .engine import TranscodeEngine

__all__ = [
    # Probe
    "MediaProbe",
    "parse_line",
    "parse_timestamp",
    "probe_arguments",
    # Resolution ladder
    "Resolution",
    "create_resolution",
    "dedupe_resolutions",
    "estimate_h264_size",
    "h264_compatible",
    # Classes
    "FormatPlanner",
    "CommandBuilder",
    "output_file_name",
    "synthesize_arguments",
    "parse_progress",
    "progress_reporter",
    # Extraction
    "ExtractionState",
    "FrameExtractor",
    # Encoder
    "Encoder",
    "FFmpegEncoder",
    "sanitize_file_name",
    "TranscodeEngine",
]
