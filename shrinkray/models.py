"""
Data models for probed sources and encode targets.

``Format`` records are immutable; planning always derives new objects with
``dataclasses.replace``. Only ``PartialFormat`` is mutable, since the probe
fills it one diagnostic line at a time.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import MetadataError, MissingEncodeParameterError

NO_CODEC = "none"


class StreamAction(str, Enum):
    """How a target stream is produced from the source stream."""
    ABSENT = "absent"
    COPY = "copy"
    ENCODE_CRF = "encode_crf"
    ENCODE_BITRATE = "encode_bitrate"


@dataclass(frozen=True)
class ContainerFormat:
    duration: float = 0.0  # seconds
    start: float = 0.0  # seconds, timestamp of the first sample
    bitrate: Optional[float] = None  # kbit/s over all streams


@dataclass(frozen=True)
class VideoFormat:
    codec: str  # eg. "h264 (High)"
    color: str  # pixel format, eg. "yuv420p"
    width: int
    height: int
    fps: float
    bitrate: Optional[float] = None  # kbit/s
    crf: Optional[float] = None
    expected_size: float = 0.0  # kilobytes
    preset: Optional[str] = None
    implausible: bool = False
    original: bool = False

    def action(self) -> StreamAction:
        """Tag this target as a copy, a crf encode or a bitrate encode."""
        if self.original:
            return StreamAction.COPY
        if self.crf is not None:
            return StreamAction.ENCODE_CRF
        if self.bitrate:
            return StreamAction.ENCODE_BITRATE
        raise MissingEncodeParameterError(self.preset)


@dataclass(frozen=True)
class AudioFormat:
    codec: str  # eg. "aac (LC)"
    sample_rate: int  # Hz
    channel_setup: str  # eg. "stereo"
    bitrate: float  # kbit/s
    expected_size: float = 0.0  # kilobytes
    preset: Optional[str] = None
    implausible: bool = False
    original: bool = False

    @property
    def is_absent(self) -> bool:
        return self.codec == NO_CODEC

    def matches(self, other: "AudioFormat") -> bool:
        """True when codec, sample rate and channel layout are identical."""
        return (
            self.codec == other.codec
            and self.sample_rate == other.sample_rate
            and self.channel_setup == other.channel_setup
        )

    def action(self, source: Optional["AudioFormat"]) -> StreamAction:
        """
        Tag this target against the source audio stream.

        Copying is always correct when the source already meets the target:
        same codec, rate and layout at a bitrate no higher than requested.
        """
        if self.is_absent or source is None:
            return StreamAction.ABSENT
        if self.original:
            return StreamAction.COPY
        if self.matches(source) and source.bitrate <= self.bitrate:
            return StreamAction.COPY
        return StreamAction.ENCODE_BITRATE


@dataclass(frozen=True)
class Format:
    container: ContainerFormat
    video: VideoFormat
    audio: Optional[AudioFormat] = None

    @property
    def has_audio(self) -> bool:
        return self.audio is not None and not self.audio.is_absent

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PartialFormat:
    """Accumulator filled by the metadata parser across probe lines."""
    container: Optional[ContainerFormat] = None
    video: Optional[VideoFormat] = None
    audio: Optional[AudioFormat] = None

    @property
    def is_complete(self) -> bool:
        return self.container is not None and self.video is not None

    def to_format(self, diagnostics: str = "") -> Format:
        if self.container is None or self.video is None:
            missing = "container" if self.container is None else "video stream"
            raise MetadataError(f"Could not analyze video: no {missing} found", diagnostics)
        return Format(container=self.container, video=self.video, audio=self.audio)


@dataclass(frozen=True)
class Cut:
    start: float  # seconds on the source timeline
    duration: float  # seconds


@dataclass(frozen=True)
class ConvertInstructions:
    """A chosen video/audio target plus the parts of the source to keep."""
    cuts: List[Cut]
    video: VideoFormat
    audio: Optional[AudioFormat] = None

    @property
    def duration(self) -> float:
        return sum(cut.duration for cut in self.cuts)

    def to_target_format(self) -> Format:
        if not self.cuts:
            raise ValueError("At least one cut is required")
        container = ContainerFormat(
            start=min(cut.start for cut in self.cuts),
            duration=self.duration,
        )
        return Format(container=container, video=self.video, audio=self.audio)


@dataclass
class FormatOptions:
    """Candidate targets offered for one source."""
    size: List[VideoFormat] = field(default_factory=list)
    quality: List[VideoFormat] = field(default_factory=list)
    audio: List[AudioFormat] = field(default_factory=list)

    @property
    def video(self) -> List[VideoFormat]:
        return self.size + self.quality

    def find_video(self, preset: str) -> Optional[VideoFormat]:
        for option in self.video:
            if option.preset == preset:
                return option
        return None

    def find_audio(self, preset: str) -> Optional[AudioFormat]:
        for option in self.audio:
            if option.preset == preset:
                return option
        return None


@dataclass
class ProgressEvent:
    percent: float
    message: str = ""
