"""
shrinkray Test Configuration and Fixtures

Provides:
- An in-memory encoder with scripted jobs (no ffmpeg needed)
- Sample ffmpeg probe output and parsed source formats
- Auto-generated test media files for tests that need a real ffmpeg
"""

import shutil
import subprocess
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

import pytest

from shrinkray.config import ShrinkRayConfig, set_config
from shrinkray.errors import EncoderError
from shrinkray.models import AudioFormat, ContainerFormat, Format, VideoFormat


# =============================================================================
# FAKE ENCODER
# =============================================================================

JobScript = Callable[["FakeEncoder", List[str], Optional[Callable[[str], None]]], Awaitable[None]]


class FakeEncoder:
    """
    In-memory stand-in for FFmpegEncoder.

    By default a job replays ``lines`` to the line callback, then writes
    ``outputs`` into the namespace and fails if ``returncode`` is non-zero.
    Set ``script`` to take full control of a job.
    """

    def __init__(self):
        self.files: Dict[str, bytes] = {}
        self.calls: List[List[str]] = []
        self.lines: List[str] = []
        self.outputs: Dict[str, bytes] = {}
        self.returncode = 0
        self.script: Optional[JobScript] = None

    async def run(self, args, on_line=None):
        self.calls.append(list(args))
        if self.script is not None:
            await self.script(self, args, on_line)
            return
        for line in self.lines:
            if on_line:
                on_line(line)
        self.files.update(self.outputs)
        if self.returncode:
            raise EncoderError(self.returncode, "\n".join(self.lines))

    def write_file(self, name: str, data: bytes) -> None:
        self.files[name] = data

    def read_file(self, name: str) -> bytes:
        if name not in self.files:
            raise FileNotFoundError(name)
        return self.files[name]

    def unlink(self, name: str) -> None:
        del self.files[name]


@pytest.fixture
def fake_encoder() -> FakeEncoder:
    return FakeEncoder()


# =============================================================================
# SAMPLE METADATA
# =============================================================================

PROBE_OUTPUT = """\
Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'input.mp4':
  Metadata:
    major_brand     : isom
    encoder         : Lavf58.76.100
  Duration: 00:02:00.00, start: 0.000000, bitrate: 4200 kb/s
  Stream #0:0(und): Video: h264 (High) (avc1 / 0x31637661), yuv420p(tv, bt709), 1920x1080 [SAR 1:1 DAR 16:9], 4000 kb/s, 30 fps, 30 tbr, 15360 tbn, 60 tbc (default)
    Metadata:
      handler_name    : VideoHandler
  Stream #0:1(und): Audio: aac (LC) (mp4a / 0x6134706D), 48000 Hz, stereo, fltp, 192 kb/s (default)
    Metadata:
      handler_name    : SoundHandler
At least one output file must be specified"""


@pytest.fixture
def probe_lines() -> List[str]:
    return PROBE_OUTPUT.splitlines()


def make_source(
    duration: float = 120,
    width: int = 1920,
    height: int = 1080,
    fps: float = 30,
    video_bitrate: float = 4000,
    codec: str = "h264 (High)",
    color: str = "yuv420p",
    audio_bitrate: Optional[float] = 192,
    start: float = 0.0
) -> Format:
    """Build a probed source format; ``audio_bitrate=None`` means no audio."""
    container = ContainerFormat(duration=duration, start=start, bitrate=None)
    video = VideoFormat(
        codec=codec,
        color=color,
        width=width,
        height=height,
        fps=fps,
        bitrate=video_bitrate,
        expected_size=video_bitrate * duration / 8,
        original=True,
    )
    audio = None
    if audio_bitrate is not None:
        audio = AudioFormat(
            codec="aac (LC)",
            sample_rate=48000,
            channel_setup="stereo",
            bitrate=audio_bitrate,
            expected_size=audio_bitrate * duration / 8,
            original=True,
        )
    return Format(container=container, video=video, audio=audio)


@pytest.fixture
def source_1080p() -> Format:
    """Two minute 1080p30 H.264 source with 192 kbit/s AAC."""
    return make_source()


@pytest.fixture
def test_config():
    """Fresh default configuration installed as the global instance."""
    config = ShrinkRayConfig()
    set_config(config)
    yield config
    set_config(None)


# =============================================================================
# TEST MEDIA GENERATION
# =============================================================================

class TestMediaGenerator:
    """
    Generates test media files using FFmpeg.
    No external downloads - creates synthetic test videos.
    """

    __test__ = False

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self._ffmpeg = shutil.which("ffmpeg")

    @property
    def has_ffmpeg(self) -> bool:
        return self._ffmpeg is not None

    def generate_test_video(
        self,
        name: str = "test_video",
        duration: int = 5,
        width: int = 1280,
        height: int = 720,
        fps: int = 30,
        audio: bool = True
    ) -> Optional[Path]:
        """Generate a test video with a test pattern and a sine tone."""
        if not self.has_ffmpeg:
            return None

        output_path = self.output_dir / f"{name}.mp4"

        cmd = [
            self._ffmpeg,
            "-y",
            "-f", "lavfi",
            "-i", f"testsrc=duration={duration}:size={width}x{height}:rate={fps}",
        ]

        if audio:
            cmd.extend([
                "-f", "lavfi",
                "-i", f"sine=frequency=440:duration={duration}",
            ])

        cmd.extend([
            "-c:v", "libx264",
            "-preset", "ultrafast",  # Fast encoding for tests
            "-pix_fmt", "yuv420p",
        ])

        if audio:
            cmd.extend(["-c:a", "aac", "-b:a", "128k"])

        cmd.append(str(output_path))

        try:
            result = subprocess.run(cmd, capture_output=True, timeout=60)
            if result.returncode == 0 and output_path.exists():
                return output_path
        except (subprocess.TimeoutExpired, OSError) as e:
            print(f"Failed to generate test video: {e}")

        return None


@pytest.fixture(scope="session")
def test_media_dir(tmp_path_factory) -> Path:
    return tmp_path_factory.mktemp("shrinkray_test_media")


@pytest.fixture(scope="session")
def quick_test_video(test_media_dir) -> Path:
    """Three second 640x360 test video with audio."""
    generator = TestMediaGenerator(test_media_dir)
    if not generator.has_ffmpeg:
        pytest.skip("FFmpeg not available for test media generation")
    path = generator.generate_test_video("test_quick", duration=3, width=640, height=360)
    if path is None:
        pytest.skip("Failed to generate test video")
    return path


# =============================================================================
# SKIP CONDITIONS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "requires_ffmpeg: marks tests that require FFmpeg"
    )


@pytest.fixture
def requires_ffmpeg():
    """Skip test if FFmpeg not available."""
    if not shutil.which("ffmpeg"):
        pytest.skip("FFmpeg not available")

