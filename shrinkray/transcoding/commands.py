"""
Encoder argument synthesis.
Builds the ordered argument lists for conversion and preview jobs.
"""

import logging
import math
import re
from pathlib import PurePosixPath
from typing import List, Optional

from ..config import EncodingConfig, ExtractionConfig
from ..constants import (
    AUDIO_ENCODERS,
    HE_AAC_MAX_BITRATE,
    HE_AAC_V2_MAX_BITRATE,
    PREVIEW_FILE_PATTERN,
    VIDEO_ENCODERS,
)
from ..errors import UnsupportedCodecError
from ..models import AudioFormat, Format, StreamAction, VideoFormat
from .resolution import create_resolution

logger = logging.getLogger(__name__)

# Highest lowres decode factor the decoders accept
MAX_LOWRES = 3


def codec_family(codec: str) -> str:
    """``"h264 (High)"`` -> ``"h264"``"""
    return re.split(r"[\s(]", codec.strip(), maxsplit=1)[0].lower()


def format_number(value: float) -> str:
    """Render a number the way the encoder expects, without a trailing ``.0``."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def output_file_name(input_name: str, extension: str = "mp4") -> str:
    return f"output {PurePosixPath(input_name).stem}.{extension}"


def preview_frame_name(index: int) -> str:
    return PREVIEW_FILE_PATTERN % index


class CommandBuilder:
    """Builds encoder arguments for conversion and preview jobs."""

    def __init__(
        self,
        encoding_config: Optional[EncodingConfig] = None,
        extraction_config: Optional[ExtractionConfig] = None
    ):
        self.encoding_config = encoding_config or EncodingConfig()
        self.extraction_config = extraction_config or ExtractionConfig()

    def _video_encoder(self, video: VideoFormat) -> str:
        encoder = VIDEO_ENCODERS.get(codec_family(video.codec))
        if encoder is None:
            raise UnsupportedCodecError("video", video.codec)
        return encoder

    def _audio_encoder(self, audio: AudioFormat) -> str:
        encoder = AUDIO_ENCODERS.get(codec_family(audio.codec))
        if encoder is None:
            raise UnsupportedCodecError("audio", audio.codec)
        return encoder

    def build_convert_command(
        self,
        source: Format,
        target: Format,
        input_name: str,
        output_name: Optional[str] = None
    ) -> List[str]:
        """
        Build the arguments that turn ``source`` into ``target``.

        Everything is validated before the first argument is produced, so an
        unsupported codec or a missing rate parameter never yields a partial
        command.
        """
        video_encoder = self._video_encoder(target.video)
        video_action = target.video.action()

        audio_action = StreamAction.ABSENT
        audio_encoder = None
        if target.audio is not None and not target.audio.is_absent:
            audio_encoder = self._audio_encoder(target.audio)
            audio_action = target.audio.action(source.audio)

        if target.video.implausible:
            logger.warning(f"[Command] Building arguments for implausible target {target.video.preset}")

        if output_name is None:
            output_name = output_file_name(input_name, self.encoding_config.container_format)

        cmd = ["-hide_banner", "-y"]

        cmd.extend(self.seek_arguments(source, target))

        # Stream exclusions (subtitles and data streams are never carried)
        if audio_action == StreamAction.ABSENT:
            cmd.append("-an")
        cmd.extend(["-sn", "-dn"])

        cmd.extend(["-i", input_name])

        cmd.extend(self.video_arguments(source, target, video_action, video_encoder))
        cmd.extend(self.audio_arguments(target, audio_action, audio_encoder))

        # Faststart moves the index to the front for streaming playback
        cmd.extend([
            "-f", self.encoding_config.container_format,
            "-movflags", "+faststart",
            output_name,
        ])

        return cmd

    def seek_arguments(self, source: Format, target: Format) -> List[str]:
        args: List[str] = []
        offset = target.container.start - source.container.start

        if offset > 0:
            args.extend(["-ss", f"{offset:.3f}", "-accurate_seek"])

        remaining = source.container.duration - max(offset, 0.0)
        if target.container.duration < remaining:
            args.extend(["-t", f"{target.container.duration:.3f}"])

        return args

    def video_arguments(
        self,
        source: Format,
        target: Format,
        action: StreamAction,
        encoder: str
    ) -> List[str]:
        video = target.video

        if action == StreamAction.COPY:
            return ["-c:v", "copy"]

        args = [
            "-pix_fmt:v", video.color,
            "-sws_flags", self.encoding_config.scaling_algorithm,
        ]

        if video.width != source.video.width or video.height != source.video.height:
            args.extend(["-s:v", f"{video.width}x{video.height}"])

        if source.video.fps > video.fps:
            args.extend(["-r:v", format_number(video.fps)])

        args.extend([
            "-c:v", encoder,
            "-preset:v", self.encoding_config.video_preset,
            "-profile:v", self.encoding_config.video_profile,
        ])

        if action == StreamAction.ENCODE_CRF:
            args.extend(["-crf:v", format_number(video.crf)])
        elif action == StreamAction.ENCODE_BITRATE:
            bitrate = format_number(video.bitrate)
            bufsize = max(1, math.floor(video.bitrate * min(10, target.container.duration / 4)))
            args.extend([
                "-b:v", f"{bitrate}k",
                "-maxrate:v", f"{bitrate}k",
                "-bufsize:v", f"{bufsize}k",
            ])

        return args

    def audio_arguments(
        self,
        target: Format,
        action: StreamAction,
        encoder: Optional[str]
    ) -> List[str]:
        if action == StreamAction.ABSENT:
            return []
        if action == StreamAction.COPY:
            return ["-c:a", "copy"]

        audio = target.audio
        args = [
            "-ar", str(audio.sample_rate),
            "-c:a", encoder,
            "-b:a", f"{format_number(audio.bitrate)}k",
            "-ac", "2",  # always stereo
        ]

        stereo = audio.channel_setup == "stereo"
        mono = audio.channel_setup == "mono"
        # TODO: confirm whether the 72 kbit/s HE-AAC bound is meant for mono only
        if stereo and audio.bitrate <= HE_AAC_V2_MAX_BITRATE:
            args.extend(["-profile:a", "aac_he_v2"])
        elif (mono and audio.bitrate <= HE_AAC_V2_MAX_BITRATE) or audio.bitrate <= HE_AAC_MAX_BITRATE:
            args.extend(["-profile:a", "aac_he"])

        return args

    def preview_arguments(
        self,
        source: Format,
        input_name: str,
        interval: float
    ) -> List[str]:
        """
        Build a fast-decode job that writes one numbered JPEG per ``interval``.
        """
        config = self.extraction_config
        cmd = ["-hide_banner", "-y"]

        # Skip non-key frames when previews are sparse enough
        cmd.extend(["-skip_frame", "nokey" if interval >= 2 else "default", "-vsync", "2"])
        cmd.extend(["-flags2", "fast"])

        resolution = create_resolution(source, config.preview_width, config.preview_height)
        if resolution.width > 0:
            lowres = math.floor(math.log2(source.video.width / resolution.width))
            if lowres >= 1:
                cmd.extend(["-lowres:v", str(min(MAX_LOWRES, lowres))])

        cmd.extend(["-an", "-sn", "-dn"])
        cmd.extend(["-i", input_name])
        cmd.extend([
            "-r", f"1/{format_number(interval)}",
            "-sws_flags", "fast_bilinear",
            "-s:v", f"{resolution.width}x{resolution.height}",
            "-f", "image2",
            # write each frame to a temp file and rename it into place
            "-atomic_writing", "1",
            "-q:v", str(config.quality),
            PREVIEW_FILE_PATTERN,
        ])

        return cmd


def synthesize_arguments(
    source: Format,
    target: Format,
    input_name: str = "input",
    output_name: Optional[str] = None
) -> List[str]:
    """Arguments for converting ``source`` into ``target`` with default settings."""
    return CommandBuilder().build_convert_command(source, target, input_name, output_name)
