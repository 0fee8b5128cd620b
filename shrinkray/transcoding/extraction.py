"""
Preview frame extraction.

A preview job writes numbered JPEGs into the encoder namespace while it runs.
``FrameExtractor`` collects them in order as they appear, tolerating frames
the job never produced and aborting when the job stops making progress.
"""

import asyncio
import logging
import math
import time
from enum import Enum
from typing import AsyncIterator, Optional

from ..config import ExtractionConfig
from ..errors import ExtractionStalledError, StaleJobError
from ..models import Format
from .commands import CommandBuilder, preview_frame_name

logger = logging.getLogger(__name__)


class ExtractionState(str, Enum):
    RUNNING = "running"  # job active, missing frames are polled for
    DRAINING = "draining"  # job finished, missing frames are skipped
    DONE = "done"


class FrameExtractor:
    """
    Yields preview frames from one preview job.

    Each instance drives a single job and can be iterated once. Stopping
    early never aborts the job: it keeps running until it finishes or the
    encoder's next job supersedes it. Frames that were written but not yet
    yielded are left in the namespace for the caller to clean up.
    """

    def __init__(
        self,
        encoder,
        source: Format,
        input_name: str,
        interval: Optional[float] = None,
        config: Optional[ExtractionConfig] = None,
        command_builder: Optional[CommandBuilder] = None
    ):
        self.encoder = encoder
        self.source = source
        self.input_name = input_name
        self.config = config or ExtractionConfig()
        self.interval = interval if interval is not None else self.config.interval
        if self.interval <= 0:
            raise ValueError(f"Preview interval must be positive, got {self.interval}")
        self.command_builder = command_builder or CommandBuilder(extraction_config=self.config)
        self.state = ExtractionState.RUNNING
        self.job: Optional[asyncio.Future] = None
        self._started = False

    @property
    def frame_count(self) -> int:
        return math.floor(self.source.container.duration / self.interval)

    def _read_frame(self, name: str) -> Optional[bytes]:
        try:
            data = self.encoder.read_file(name)
        except FileNotFoundError:
            return None
        # a file may exist before the encoder has flushed it
        return data or None

    def _check_job(self, job: asyncio.Future) -> None:
        """Note a finished job; superseded jobs end the extraction at once."""
        if self.state == ExtractionState.RUNNING and job.done():
            self.state = ExtractionState.DRAINING
            if job.cancelled():
                logger.warning("[Extract] Preview job was cancelled, draining")
                return
            error = job.exception()
            if isinstance(error, StaleJobError):
                raise error
            if error is not None:
                logger.warning(f"[Extract] Preview job failed, draining: {error}")
            else:
                logger.debug("[Extract] Preview job finished, draining")

    @staticmethod
    def _job_outcome(job: asyncio.Future) -> None:
        if job.cancelled():
            return
        error = job.exception()
        if isinstance(error, StaleJobError):
            logger.debug("[Extract] Preview job was superseded")
        elif error is not None:
            logger.debug(f"[Extract] Preview job ended with error: {error}")

    async def frames(self) -> AsyncIterator[bytes]:
        """Yield JPEG payloads in frame order."""
        if self._started:
            raise RuntimeError("FrameExtractor can only be iterated once")
        self._started = True

        args = self.command_builder.preview_arguments(self.source, self.input_name, self.interval)
        job = self.job = asyncio.ensure_future(self.encoder.run(args))
        total = self.frame_count
        logger.info(f"[Extract] Extracting {total} previews every {self.interval:g}s")

        stall_timeout = self.config.stall_timeout
        poll_interval = self.config.poll_interval
        last_frame = time.monotonic()
        index = 1

        try:
            while index <= total:
                name = preview_frame_name(index)
                data = self._read_frame(name)

                if data is not None:
                    self.encoder.unlink(name)
                    index += 1
                    yield data
                    last_frame = time.monotonic()
                    continue

                if time.monotonic() - last_frame > stall_timeout:
                    logger.error(f"[Extract] No preview for {stall_timeout:.1f}s at frame {index}")
                    raise ExtractionStalledError(index, stall_timeout)

                self._check_job(job)
                if self.state == ExtractionState.DRAINING:
                    logger.debug(f"[Extract] Frame {index} was never produced, skipping")
                    index += 1
                    continue

                await asyncio.wait({job}, timeout=poll_interval)
                self._check_job(job)
        finally:
            self.state = ExtractionState.DONE
            job.add_done_callback(self._job_outcome)

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.frames()
