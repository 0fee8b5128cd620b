"""
Tests for configuration loading.
"""

import pytest
from pydantic import ValidationError

from shrinkray.config import (
    ExtractionConfig,
    PlanningConfig,
    ShrinkRayConfig,
    find_config_file,
    get_config,
    load_config,
    set_config,
)


class TestDefaults:

    def test_planning_defaults(self):
        config = ShrinkRayConfig()
        assert config.planning.size_targets_kb == [8000, 16000, 50000]
        assert config.planning.undershoot_factor == 0.9
        assert [(r.width, r.height) for r in config.planning.resolution_ladder] == [
            (1280, 720), (854, 480), (640, 360)
        ]

    def test_extraction_defaults(self):
        config = ShrinkRayConfig()
        assert config.extraction.stall_timeout == 10.0
        assert config.extraction.poll_interval == 0.2
        assert config.encoding.ffmpeg_path == "auto"


class TestValidation:

    @pytest.mark.parametrize("factor", [0, 1.5])
    def test_undershoot_factor_range(self, factor):
        with pytest.raises(ValidationError):
            PlanningConfig(undershoot_factor=factor)

    def test_stall_timeout_positive(self):
        with pytest.raises(ValidationError):
            ExtractionConfig(stall_timeout=0)


class TestLoading:

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text(
            "planning:\n"
            "  size_targets_kb: [4000, 10000]\n"
            "  resolution_ladder:\n"
            "    - {width: 854, height: 480}\n"
            "extraction:\n"
            "  interval: 2.5\n"
        )

        config = load_config(str(path))

        assert config.planning.size_targets_kb == [4000, 10000]
        assert config.planning.resolution_ladder[0].fps == 30
        assert config.extraction.interval == 2.5
        assert config.encoding.video_preset == "medium"

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(str(path)) == ShrinkRayConfig()

    def test_finds_file_in_working_directory(self, tmp_path, monkeypatch):
        (tmp_path / "shrinkray.yaml").write_text("logging:\n  level: DEBUG\n")
        monkeypatch.chdir(tmp_path)

        assert find_config_file() == tmp_path / "shrinkray.yaml"
        assert load_config().logging.level == "DEBUG"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("SHRINKRAY_EXTRACTION__STALL_TIMEOUT", "5")
        monkeypatch.setenv("SHRINKRAY_ENCODING__FFMPEG_PATH", "/opt/ffmpeg/bin/ffmpeg")

        config = ShrinkRayConfig()

        assert config.extraction.stall_timeout == 5
        assert config.encoding.ffmpeg_path == "/opt/ffmpeg/bin/ffmpeg"


class TestGlobalConfig:

    def test_set_and_get(self):
        config = ShrinkRayConfig()
        set_config(config)
        try:
            assert get_config() is config
        finally:
            set_config(None)
