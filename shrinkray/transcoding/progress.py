"""
Encoder progress parsing.

Progress is advisory: lines without a time marker are ignored, never errors.
"""

import logging
import re
from typing import Callable, Optional

from ..models import ProgressEvent
from .probe import TIMESTAMP_PATTERN, parse_timestamp

logger = logging.getLogger(__name__)

# frame= 1199 fps= 23 q=31.0 size=    4096kB time=00:00:40.26 bitrate= 833.4kbits/s speed=0.773x
TIME_RE = re.compile(rf"time=\s*(?P<time>{TIMESTAMP_PATTERN})")


def parse_progress(line: str, duration: float, offset: float = 0.0) -> Optional[float]:
    """
    Percentage of ``duration`` reached according to a status line.

    ``offset`` shifts the measured window to ``[offset, offset + duration]``,
    which lets several passes share one 0-100 scale.
    """
    match = TIME_RE.search(line)
    if not match or duration <= 0:
        return None
    elapsed = parse_timestamp(match.group("time"))
    percent = (elapsed - offset) / duration * 100
    return min(100.0, max(0.0, percent))


def progress_reporter(
    duration: float,
    callback: Callable[[ProgressEvent], None],
    offset: float = 0.0
) -> Callable[[str], None]:
    """Adapt a progress callback into an encoder line callback."""

    def on_line(line: str) -> None:
        percent = parse_progress(line, duration, offset)
        if percent is None:
            return
        try:
            callback(ProgressEvent(percent=percent, message=line.strip()))
        except Exception as e:
            logger.warning(f"Progress callback error: {e}")

    return on_line
