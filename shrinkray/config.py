"""
Configuration management for shrinkray
"""

import yaml
from pathlib import Path
from typing import Optional, List
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import constants


class LadderRung(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    fps: float = Field(default=30, gt=0)


def _default_ladder() -> List[LadderRung]:
    return [
        LadderRung(width=w, height=h, fps=fps)
        for w, h, fps in constants.RESOLUTION_LADDER
    ]


class PlanningConfig(BaseModel):
    size_targets_kb: List[int] = Field(default_factory=lambda: list(constants.SIZE_TARGETS_KB))
    undershoot_factor: float = Field(default=constants.UNDERSHOOT_FACTOR, gt=0, le=1)
    fit_crf: float = constants.FIT_CRF
    ceiling_crf: float = constants.CEILING_CRF
    quality_crf: float = constants.QUALITY_CRF
    resolution_ladder: List[LadderRung] = Field(default_factory=_default_ladder)  # highest first
    low_audio_bitrate: int = constants.LOW_AUDIO_BITRATE
    high_audio_bitrate: int = constants.HIGH_AUDIO_BITRATE
    passthrough_audio_max_bitrate: float = constants.PASSTHROUGH_AUDIO_MAX_BITRATE


class EncodingConfig(BaseModel):
    ffmpeg_path: str = "auto"
    work_directory: str = "./shrinkray_temp"
    video_preset: str = "medium"
    video_profile: str = "high"
    scaling_algorithm: str = "bilinear"
    container_format: str = "mp4"
    terminate_timeout: float = 5.0  # seconds to wait for a graceful exit


class ExtractionConfig(BaseModel):
    interval: float = Field(default=1.0, gt=0)  # seconds between previews
    stall_timeout: float = Field(default=constants.STALL_TIMEOUT, gt=0)
    poll_interval: float = Field(default=constants.POLL_INTERVAL, gt=0)
    preview_width: int = constants.PREVIEW_WIDTH
    preview_height: int = constants.PREVIEW_HEIGHT
    quality: int = Field(default=constants.PREVIEW_QUALITY, ge=1, le=31)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "text"
    file: Optional[str] = None


class ShrinkRayConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SHRINKRAY_", env_nested_delimiter="__")

    planning: PlanningConfig = Field(default_factory=PlanningConfig)
    encoding: EncodingConfig = Field(default_factory=EncodingConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def find_config_file() -> Optional[Path]:
    """Find the configuration file in standard locations."""
    search_paths = [
        Path.cwd() / "shrinkray.yaml",
        Path.cwd() / "shrinkray.yml",
        Path.cwd() / "config" / "shrinkray.yaml",
        Path.home() / ".config" / "shrinkray" / "shrinkray.yaml",
        Path("/etc/shrinkray/shrinkray.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None


def load_config(config_path: Optional[str] = None) -> ShrinkRayConfig:
    """Load configuration from YAML file or use defaults."""
    config_file = Path(config_path) if config_path else find_config_file()

    if config_file and config_file.exists():
        with open(config_file, "r") as f:
            yaml_data = yaml.safe_load(f) or {}
        return ShrinkRayConfig(**yaml_data)

    return ShrinkRayConfig()


# Global config instance
_config: Optional[ShrinkRayConfig] = None


def get_config() -> ShrinkRayConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: Optional[ShrinkRayConfig]) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
