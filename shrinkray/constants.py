"""
Constants and presets for planning and encoding.
"""

from typing import Dict, List, Tuple


# (width, height, fps) rungs for automatic selection, highest first
RESOLUTION_LADDER: List[Tuple[int, int, float]] = [
    (1280, 720, 30),
    (854, 480, 30),
    (640, 360, 30),
]

# Total file size budgets in kilobytes, ascending
SIZE_TARGETS_KB: List[int] = [8000, 16000, 50000]

# Overheads and bitrate variance make encoders overshoot an average bitrate
UNDERSHOOT_FACTOR = 0.9

# Reference qualities for the size estimate
FIT_CRF = 25  # a rung is selected when it fits the budget at this quality
CEILING_CRF = 18  # no rung needs a higher bitrate than at this quality
QUALITY_CRF = 21  # quality-target presets

# Divisor of the size heuristic, calibrated so that 1280x720@30 at
# crf 28 for 8 seconds estimates ~2520 kilobytes (= kbit/s)
SIZE_ESTIMATE_DIVISOR = 512

# H.264 level 4.2 limits
H264_MAX_MACROBLOCKS = 8704
H264_MAX_FPS = 60

# Audio presets
AUDIO_PRESET_NONE = "none"
AUDIO_PRESET_LOW = "bitrate_low"
AUDIO_PRESET_HIGH = "bitrate_high"
LOW_AUDIO_CODEC = "aac (HE-AACv2)"
HIGH_AUDIO_CODEC = "aac (LC)"
LOW_AUDIO_BITRATE = 32
HIGH_AUDIO_BITRATE = 128
PASSTHROUGH_AUDIO_MAX_BITRATE = 300

# Codec family -> encoder. Adding a codec means adding an entry here.
VIDEO_ENCODERS: Dict[str, str] = {
    "h264": "libx264",
}

AUDIO_ENCODERS: Dict[str, str] = {
    "aac": "libfdk_aac",
}

# Pixel format produced for every encoded video target
TARGET_COLOR = "yuv420p"
TARGET_VIDEO_CODEC = "h264 (High)"

# HE-AAC profile thresholds in kbit/s
HE_AAC_V2_MAX_BITRATE = 48
HE_AAC_MAX_BITRATE = 72

# Preview extraction
PREVIEW_WIDTH = 640
PREVIEW_HEIGHT = 360
PREVIEW_QUALITY = 10  # 1-31, lower is better
PREVIEW_FILE_PATTERN = "frame_%d.jpg"
STALL_TIMEOUT = 10.0  # seconds without a new frame before giving up
POLL_INTERVAL = 0.2  # seconds between file polls

# Probe
PROBE_NOISE = "At least one output file must be specified"
