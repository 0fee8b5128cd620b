"""
Resolution ladder and H.264 size heuristics.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List

from ..constants import H264_MAX_FPS, H264_MAX_MACROBLOCKS, SIZE_ESTIMATE_DIVISOR
from ..models import Format, VideoFormat


@dataclass(frozen=True)
class Resolution:
    """One rung of a resolution ladder, scaled to a particular source."""
    width: int
    height: int
    fps: float
    expected_width: int
    expected_height: int

    @property
    def label(self) -> str:
        return f"{self.expected_height}p"


def create_resolution(source: Format, width: int, height: int, fps: float = 30) -> Resolution:
    """
    Fit the source video into a ``width`` x ``height`` bounding box.

    The box is matched by orientation, so a 1280x720 box also fits portrait
    sources into 720x1280. Sources are never scaled up, and both output
    dimensions are rounded to even numbers as 4:2:0 chroma requires.
    """
    video = source.video
    scale = min(
        min(width, height) / min(video.width, video.height),
        max(width, height) / max(video.width, video.height),
        1.0,
    )
    return Resolution(
        width=_even(video.width * scale),
        height=_even(video.height * scale),
        fps=fps,
        expected_width=width,
        expected_height=height,
    )


def _even(value: float) -> int:
    # halves round up
    return int(math.floor(value / 2 + 0.5)) * 2


def dedupe_resolutions(resolutions: Iterable[Resolution]) -> List[Resolution]:
    """
    Drop rungs that collapse onto their successor.

    When a small source makes two rungs scale to the same size, only the
    lower rung is kept.
    """
    items = list(resolutions)
    result = []
    for i, res in enumerate(items):
        following = items[i + 1] if i + 1 < len(items) else None
        if (
            following is None
            or following.width != res.width
            or following.height != res.height
            or following.fps != res.fps
        ):
            result.append(res)
    return result


def estimate_h264_size(width: int, height: int, fps: float, crf: float, duration: float = 8) -> float:
    """
    Estimate the size in kilobytes of an H.264 stream.

    This is a rough heuristic: real output varies widely with the content.
    It grows with pixel count, duration and frame rate, and shrinks as the
    crf rises. Sensible crf values are 18 (good) to 28 (poor). With the
    default duration of 8 seconds the result reads directly as kbit/s.
    """
    if crf <= 0:
        raise ValueError(f"Cannot estimate size for crf={crf}")
    # very low frame rates count as 2 fps
    return width * height * duration * math.log2(max(fps, 2)) / SIZE_ESTIMATE_DIVISOR / crf


def estimate_resolution_size(resolution: Resolution, crf: float, duration: float) -> float:
    return estimate_h264_size(resolution.width, resolution.height, resolution.fps, crf, duration)


def h264_compatible(video: VideoFormat) -> bool:
    """True when the stream can be passed through as H.264 level 4.2, 4:2:0."""
    macroblocks = math.ceil(video.width / 16) * math.ceil(video.height / 16)
    return (
        video.codec.startswith("h264")
        and video.color == "yuv420p"
        and macroblocks <= H264_MAX_MACROBLOCKS
        and video.fps <= H264_MAX_FPS
    )


def downsampled_fps(source_fps: float, target_fps: float) -> float:
    """Drop whole frames so the rate does not exceed ``target_fps``."""
    if source_fps <= 0 or target_fps <= 0:
        return 0.0
    return source_fps / math.ceil(source_fps / target_fps)
