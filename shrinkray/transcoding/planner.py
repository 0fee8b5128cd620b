"""
Target format planning.

Enumerates size-budget presets, quality presets and audio presets for one
source. Options that cannot be met are still returned, flagged
``implausible``, so callers can show why a choice is unusable.
"""

import logging
import math
from dataclasses import replace
from typing import List, Optional

from ..config import PlanningConfig
from ..constants import (
    AUDIO_PRESET_HIGH,
    AUDIO_PRESET_LOW,
    AUDIO_PRESET_NONE,
    HIGH_AUDIO_CODEC,
    LOW_AUDIO_CODEC,
    TARGET_COLOR,
    TARGET_VIDEO_CODEC,
)
from ..models import NO_CODEC, AudioFormat, Format, FormatOptions, VideoFormat
from .resolution import (
    Resolution,
    create_resolution,
    dedupe_resolutions,
    downsampled_fps,
    estimate_resolution_size,
    h264_compatible,
)

logger = logging.getLogger(__name__)


def size_preset(total_kb: float) -> str:
    return f"size_{total_kb / 1000:g}mb"


def quality_preset(resolution: Resolution) -> str:
    return f"crf_{resolution.label}"


class FormatPlanner:
    """Builds candidate target formats for a source."""

    def __init__(self, config: Optional[PlanningConfig] = None):
        self.config = config or PlanningConfig()

    def resolutions(self, source: Format) -> List[Resolution]:
        """The configured ladder scaled to ``source``, highest rung first."""
        return dedupe_resolutions(
            create_resolution(source, rung.width, rung.height, rung.fps)
            for rung in self.config.resolution_ladder
        )

    def plan(self, source: Format) -> FormatOptions:
        resolutions = self.resolutions(source)
        options = FormatOptions(
            size=self.video_size_targets(source, resolutions),
            quality=self.video_quality_targets(source, resolutions),
            audio=self.audio_formats(source),
        )
        logger.info(
            f"[Planner] {len(options.size)} size, {len(options.quality)} quality, "
            f"{len(options.audio)} audio options over {len(resolutions)} rungs"
        )
        return options

    def _passthrough(self, video: VideoFormat, resolution: Resolution) -> bool:
        """The source already is what this rung would produce."""
        return (
            video.original
            and h264_compatible(video)
            and video.width == resolution.width
            and video.height == resolution.height
            and video.fps <= resolution.fps
        )

    @staticmethod
    def _audio_size(source: Format) -> float:
        return source.audio.expected_size if source.has_audio else 0.0

    def video_size_targets(
        self,
        source: Format,
        resolutions: Optional[List[Resolution]] = None
    ) -> List[VideoFormat]:
        """
        One option per file size budget, ascending.

        The highest rung whose estimate at the fit crf stays within the
        budget (minus the audio) is chosen. Its bitrate is the undershot
        budget, capped at what the rung needs at the ceiling crf.
        """
        if resolutions is None:
            resolutions = self.resolutions(source)
        duration = source.container.duration
        video = source.video
        audio_size = self._audio_size(source)
        options: List[VideoFormat] = []

        for total_kb in self.config.size_targets_kb:
            preset = size_preset(total_kb)
            video_budget = total_kb - audio_size

            if duration <= 0:
                logger.warning(f"[Planner] {preset}: source has no duration, cannot plan")
                options.append(self._implausible(preset, 0, audio_size))
                continue

            bitrate = max(0.0, video_budget * 8 * self.config.undershoot_factor / duration)
            resolution = next(
                (
                    res for res in resolutions
                    if estimate_resolution_size(res, self.config.fit_crf, duration) <= video_budget
                ),
                None,
            )

            if resolution is None:
                option = self._implausible(preset, bitrate, bitrate * duration / 8 + audio_size)
                logger.debug(f"[Planner] {preset}: no rung fits {video_budget:.0f}KB, implausible")
                options.append(option)
                continue

            ceiling = estimate_resolution_size(resolution, self.config.ceiling_crf, duration)
            bitrate = min(bitrate, ceiling * 8 / duration)

            if self._passthrough(video, resolution) and video.expected_size <= video_budget:
                logger.debug(f"[Planner] {preset}: source fits, passing through")
                options.append(replace(
                    video,
                    preset=preset,
                    expected_size=video.expected_size + audio_size,
                ))
                continue

            bitrate = math.floor(bitrate)
            option = VideoFormat(
                preset=preset,
                codec=TARGET_VIDEO_CODEC,
                color=TARGET_COLOR,
                width=resolution.width,
                height=resolution.height,
                fps=downsampled_fps(video.fps, resolution.fps),
                bitrate=bitrate,
                expected_size=math.floor(bitrate * duration / 8 + audio_size),
            )
            logger.debug(
                f"[Planner] {preset}: {option.width}x{option.height}@{option.fps:g} "
                f"{bitrate}kbit/s (~{option.expected_size}KB)"
            )
            options.append(option)

        return options

    def _implausible(self, preset: str, bitrate: float, expected_size: float) -> VideoFormat:
        return VideoFormat(
            preset=preset,
            implausible=True,
            codec=TARGET_VIDEO_CODEC,
            color=TARGET_COLOR,
            width=0,
            height=0,
            fps=0,
            bitrate=math.floor(bitrate),
            expected_size=math.floor(expected_size),
        )

    def video_quality_targets(
        self,
        source: Format,
        resolutions: Optional[List[Resolution]] = None
    ) -> List[VideoFormat]:
        """One constant-quality option per rung, lowest rung first."""
        if resolutions is None:
            resolutions = self.resolutions(source)
        duration = source.container.duration
        video = source.video
        audio_size = self._audio_size(source)
        crf = self.config.quality_crf
        options: List[VideoFormat] = []

        for resolution in reversed(resolutions):
            preset = quality_preset(resolution)
            ceiling = estimate_resolution_size(resolution, self.config.ceiling_crf, duration)

            # no byte cap here, but avoid passing through oversized sources
            if self._passthrough(video, resolution) and video.expected_size <= ceiling:
                options.append(replace(
                    video,
                    preset=preset,
                    expected_size=video.expected_size + audio_size,
                ))
                continue

            options.append(VideoFormat(
                preset=preset,
                codec=TARGET_VIDEO_CODEC,
                color=TARGET_COLOR,
                width=resolution.width,
                height=resolution.height,
                fps=downsampled_fps(video.fps, resolution.fps),
                crf=crf,
                expected_size=math.floor(
                    estimate_resolution_size(resolution, crf, duration) + audio_size
                ),
            ))

        return options

    def audio_formats(self, source: Format) -> List[AudioFormat]:
        options = [
            AudioFormat(
                preset=AUDIO_PRESET_NONE,
                codec=NO_CODEC,
                sample_rate=0,
                channel_setup=NO_CODEC,
                bitrate=0,
            )
        ]

        if not source.has_audio:
            return options

        audio = source.audio
        duration = source.container.duration
        sample_rate = 44100 if audio.sample_rate == 44100 else 48000

        low = self.config.low_audio_bitrate
        options.append(AudioFormat(
            preset=AUDIO_PRESET_LOW,
            codec=LOW_AUDIO_CODEC,
            sample_rate=sample_rate,
            channel_setup="stereo",
            bitrate=low,
            expected_size=low * duration / 8,
        ))

        original_suitable = (
            audio.original
            and audio.codec.startswith("aac")
            and audio.bitrate < self.config.passthrough_audio_max_bitrate
        )
        if original_suitable:
            options.append(replace(audio, preset=AUDIO_PRESET_HIGH))
        else:
            high = self.config.high_audio_bitrate
            options.append(AudioFormat(
                preset=AUDIO_PRESET_HIGH,
                codec=HIGH_AUDIO_CODEC,
                sample_rate=sample_rate,
                channel_setup="stereo",
                bitrate=high,
                expected_size=high * duration / 8,
            ))

        return options
