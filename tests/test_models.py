"""
Tests for the format data model.
"""

from dataclasses import replace

import pytest

from shrinkray.errors import (
    EncoderError,
    ExtractionStalledError,
    MetadataError,
    MissingEncodeParameterError,
    StaleJobError,
)
from shrinkray.models import (
    AudioFormat,
    ContainerFormat,
    ConvertInstructions,
    Cut,
    FormatOptions,
    PartialFormat,
    StreamAction,
    VideoFormat,
)

from conftest import make_source


def video(**overrides):
    values = dict(codec="h264 (High)", color="yuv420p", width=640, height=360, fps=30)
    values.update(overrides)
    return VideoFormat(**values)


class TestVideoAction:

    def test_original_is_copied(self):
        assert video(original=True, bitrate=1000).action() == StreamAction.COPY

    def test_crf_wins_over_bitrate(self):
        assert video(crf=21, bitrate=1000).action() == StreamAction.ENCODE_CRF

    def test_bitrate(self):
        assert video(bitrate=1000).action() == StreamAction.ENCODE_BITRATE

    def test_neither(self):
        with pytest.raises(MissingEncodeParameterError) as exc_info:
            video(preset="size_8mb").action()
        assert "size_8mb" in str(exc_info.value)


class TestAudioAction:

    def test_absent_target(self):
        source = make_source().audio
        none = AudioFormat(codec="none", sample_rate=0, channel_setup="none", bitrate=0)
        assert none.action(source) == StreamAction.ABSENT

    def test_source_without_audio(self):
        target = AudioFormat(codec="aac (LC)", sample_rate=48000, channel_setup="stereo", bitrate=128)
        assert target.action(None) == StreamAction.ABSENT

    def test_copy_when_source_meets_target(self):
        source = make_source(audio_bitrate=128).audio
        target = replace(source, original=False, bitrate=128)
        assert target.action(source) == StreamAction.COPY

    def test_encode_when_layout_differs(self):
        source = make_source(audio_bitrate=96).audio
        target = replace(source, original=False, channel_setup="mono", bitrate=128)
        assert target.action(source) == StreamAction.ENCODE_BITRATE


class TestPartialFormat:

    def test_incomplete_raises(self):
        partial = PartialFormat(container=ContainerFormat(duration=10))
        assert not partial.is_complete
        with pytest.raises(MetadataError) as exc_info:
            partial.to_format("raw output")
        assert "video stream" in str(exc_info.value)
        assert exc_info.value.diagnostics == "raw output"

    def test_complete(self):
        partial = PartialFormat(container=ContainerFormat(duration=10), video=video())
        source = partial.to_format()
        assert source.audio is None
        assert not source.has_audio


class TestConvertInstructions:

    def test_requires_a_cut(self):
        with pytest.raises(ValueError):
            ConvertInstructions(cuts=[], video=video(crf=21)).to_target_format()

    def test_single_cut(self):
        target = ConvertInstructions(cuts=[Cut(5, 15)], video=video(crf=21)).to_target_format()
        assert target.container.start == 5
        assert target.container.duration == 15


class TestFormatOptions:

    def test_find(self):
        options = FormatOptions(size=[video(preset="size_8mb", bitrate=700)], quality=[video(preset="crf_360p", crf=21)])
        assert options.find_video("crf_360p").crf == 21
        assert options.find_audio("none") is None
        assert [o.preset for o in options.video] == ["size_8mb", "crf_360p"]

    def test_format_to_dict(self):
        data = make_source(duration=10).to_dict()
        assert data["container"]["duration"] == 10
        assert data["video"]["width"] == 1920
        assert data["audio"]["bitrate"] == 192


class TestErrors:

    def test_metadata_error_includes_diagnostics(self):
        assert str(MetadataError("no video", "line 1")) == "no video\nline 1"

    def test_stale_job_is_encoder_error(self):
        error = StaleJobError()
        assert isinstance(error, EncoderError)
        assert error.returncode == -1

    def test_stall_message(self):
        assert str(ExtractionStalledError(4, 10)).startswith("Preview generation stopped")
