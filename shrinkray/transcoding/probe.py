"""
Metadata recovery from encoder diagnostic output.

There is no separate probe tool in the encoder runtime, so the encoder is run
with only an input file and its banner lines are parsed, one line at a time.
"""

import logging
import re
from typing import Callable, List, Optional

from ..constants import PROBE_NOISE
from ..errors import EncoderError
from ..models import AudioFormat, ContainerFormat, Format, PartialFormat, VideoFormat

logger = logging.getLogger(__name__)


TIMESTAMP_PATTERN = r"\d+:\d+:\d+(?:\.\d+)?"

CONTAINER_RE = re.compile(
    rf"Duration: (?P<duration>{TIMESTAMP_PATTERN}), "
    r"start: (?P<start>-?[\d.]+), "
    r"bitrate: (?:(?P<bitrate>[\d.]+) kb/s|N/A)"
)
STREAM_RE = re.compile(r"Stream #[^:,]+:[^:,]+: (?P<kind>Video|Audio): (?P<rest>.*)$")
CODEC_RE = re.compile(r"^[^(),]+(?:\([^()/]+\))?")
DIMENSIONS_RE = re.compile(r"^(?P<width>\d+)x(?P<height>\d+)")
BITRATE_RE = re.compile(r"^(?P<value>[\d.]+) kb/s")
FPS_RE = re.compile(r"^(?P<value>[\d.]+k?) fps")
TBR_RE = re.compile(r"^(?P<value>[\d.]+k?) tbr")
SAMPLE_RATE_RE = re.compile(r"^(?P<value>\d+) Hz")


def parse_timestamp(value: str) -> float:
    """Convert ``H:MM:SS.frac`` to seconds, folding left to right."""
    seconds = 0.0
    for part in value.split(":"):
        seconds = seconds * 60 + float(part)
    return seconds


def _number(value: str) -> float:
    if value.endswith("k"):
        return float(value[:-1]) * 1000
    return float(value)


def split_fields(text: str) -> List[str]:
    """
    Split a stream description on top-level ", " separators.

    Commas inside parentheses or brackets belong to annotations such as
    ``yuv420p(tv, bt709)`` and do not separate fields.
    """
    fields = []
    depth = 0
    current = []
    for char in text:
        if char in "([":
            depth += 1
        elif char in ")]" and depth > 0:
            depth -= 1
        if char == "," and depth == 0:
            fields.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        fields.append(tail)
    return fields


def _first_match(pattern: re.Pattern, fields: List[str]) -> Optional[re.Match]:
    for item in fields:
        match = pattern.match(item)
        if match:
            return match
    return None


def _codec_name(field: str) -> str:
    match = CODEC_RE.match(field)
    return (match.group(0) if match else field).strip()


def _stream_size(bitrate: Optional[float], duration: float) -> float:
    # kbit/s * s / 8 = kilobytes
    return (bitrate or 0) * duration / 8


def _parse_container(match: re.Match) -> ContainerFormat:
    bitrate = match.group("bitrate")
    return ContainerFormat(
        duration=parse_timestamp(match.group("duration")),
        start=max(0.0, float(match.group("start"))),
        bitrate=float(bitrate) if bitrate else None,
    )


def _parse_video(fields: List[str], container: ContainerFormat) -> Optional[VideoFormat]:
    if len(fields) < 3:
        return None
    codec = _codec_name(fields[0])
    color = fields[1].split("(")[0].strip()
    # everything after the pixel format; annotations and tb* counts vary
    tail = fields[2:]

    dimensions = _first_match(DIMENSIONS_RE, tail)
    if not dimensions:
        return None

    rates = []
    for pattern in (FPS_RE, TBR_RE):
        match = _first_match(pattern, tail)
        if match:
            rates.append(_number(match.group("value")))
    if not rates:
        return None

    bitrate_match = _first_match(BITRATE_RE, tail)
    if bitrate_match:
        bitrate = float(bitrate_match.group("value"))
    else:
        # streams without their own figure fall back to the overall bitrate
        bitrate = container.bitrate

    return VideoFormat(
        codec=codec,
        color=color,
        width=int(dimensions.group("width")),
        height=int(dimensions.group("height")),
        fps=max(rates),
        bitrate=bitrate,
        expected_size=_stream_size(bitrate, container.duration),
        original=True,
    )


def _parse_audio(fields: List[str], container: ContainerFormat) -> Optional[AudioFormat]:
    codec = _codec_name(fields[0])
    sample_rate = None
    channel_setup = None
    for i, item in enumerate(fields[1:], start=1):
        match = SAMPLE_RATE_RE.match(item)
        if match:
            sample_rate = int(match.group("value"))
            if i + 1 < len(fields):
                channel_setup = fields[i + 1]
            break

    bitrate_match = _first_match(BITRATE_RE, fields[1:])
    if sample_rate is None or channel_setup is None or not bitrate_match:
        return None

    bitrate = float(bitrate_match.group("value"))
    return AudioFormat(
        codec=codec,
        sample_rate=sample_rate,
        channel_setup=channel_setup,
        bitrate=bitrate,
        expected_size=_stream_size(bitrate, container.duration),
        original=True,
    )


def parse_line(line: str, metadata: PartialFormat) -> None:
    """
    Parse one diagnostic line into the accumulator.

    Unrecognized lines are ignored. Stream lines are only accepted once the
    container is known, since stream sizes are derived from its duration.
    Only the first video and the first audio stream are recorded.
    """
    container_match = CONTAINER_RE.search(line)
    if container_match:
        metadata.container = _parse_container(container_match)
        return

    stream_match = STREAM_RE.search(line)
    if not stream_match or metadata.container is None:
        return

    fields = split_fields(stream_match.group("rest"))
    if not fields:
        return

    if stream_match.group("kind") == "Video":
        if metadata.video is not None:
            logger.debug(f"[Probe] Ignoring additional video stream: {line.strip()}")
            return
        video = _parse_video(fields, metadata.container)
        if video:
            metadata.video = video
        return

    if metadata.audio is not None:
        logger.debug(f"[Probe] Ignoring additional audio stream: {line.strip()}")
        return
    audio = _parse_audio(fields, metadata.container)
    if audio:
        metadata.audio = audio


def probe_arguments(input_name: str) -> List[str]:
    """Arguments that make the encoder print stream information and exit."""
    return ["-hide_banner", "-v", "info", "-i", input_name]


class MediaProbe:
    """Runs the probe invocation through an encoder and collects metadata."""

    def __init__(self, encoder):
        self.encoder = encoder

    async def analyze(
        self,
        input_name: str,
        line_callback: Optional[Callable[[str], None]] = None
    ) -> Format:
        """
        Probe ``input_name`` and return its source format.

        The encoder exits with an error because no output is given; that
        failure is expected. Missing container or video info is the real
        failure signal and raises ``MetadataError`` with the raw output.
        """
        metadata = PartialFormat()
        lines: List[str] = []

        def on_line(line: str) -> None:
            lines.append(line)
            parse_line(line, metadata)
            if line_callback:
                line_callback(line)

        try:
            await self.encoder.run(probe_arguments(input_name), on_line)
        except EncoderError as e:
            logger.debug(f"[Probe] Probe exited with code {e.returncode} (expected)")

        diagnostics = "\n".join(lines).replace(PROBE_NOISE, "").strip()
        source = metadata.to_format(diagnostics)
        logger.info(
            f"[Probe] {input_name}: {source.container.duration:.2f}s, "
            f"video {source.video.codec} {source.video.width}x{source.video.height}"
            f"@{source.video.fps:g}, audio {source.audio.codec if source.audio else 'none'}"
        )
        return source
