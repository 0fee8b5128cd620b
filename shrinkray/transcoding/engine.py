"""
Transcode engine: probe, plan, convert and preview through one encoder.
"""

import logging
from contextlib import aclosing
from typing import AsyncIterator, Callable, Optional

from ..config import ShrinkRayConfig, get_config
from ..errors import ExtractionStalledError
from ..models import Format, FormatOptions, ProgressEvent
from .commands import CommandBuilder, output_file_name
from .extraction import FrameExtractor
from .planner import FormatPlanner
from .probe import MediaProbe
from .progress import progress_reporter

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class TranscodeEngine:
    """
    Runs every job for a session on a single encoder.

    The encoder runs one job at a time, so callers should await each
    operation before starting the next one.
    """

    def __init__(self, encoder, config: Optional[ShrinkRayConfig] = None):
        self.encoder = encoder
        self.config = config or get_config()
        self.probe = MediaProbe(encoder)
        self.planner = FormatPlanner(self.config.planning)
        self.command_builder = CommandBuilder(self.config.encoding, self.config.extraction)

    async def analyze(self, input_name: str) -> Format:
        """Probe ``input_name``; raises ``MetadataError`` if it is not a video."""
        return await self.probe.analyze(input_name)

    def plan(self, source: Format) -> FormatOptions:
        return self.planner.plan(source)

    async def convert(
        self,
        input_name: str,
        source: Format,
        target: Format,
        on_progress: Optional[ProgressCallback] = None,
        output_name: Optional[str] = None
    ) -> bytes:
        """
        Convert ``input_name`` into ``target`` and return the output bytes.

        The output file is removed from the encoder namespace once read.
        """
        if output_name is None:
            output_name = output_file_name(input_name, self.config.encoding.container_format)
        args = self.command_builder.build_convert_command(source, target, input_name, output_name)

        on_line = None
        if on_progress is not None:
            on_line = progress_reporter(target.container.duration, on_progress)

        logger.info(
            f"[Engine] Converting {input_name} -> {output_name} "
            f"({target.video.preset or 'custom'}, "
            f"{target.audio.preset if target.audio else 'no audio'})"
        )
        await self.encoder.run(args, on_line)

        data = self.encoder.read_file(output_name)
        self.encoder.unlink(output_name)
        if on_progress is not None:
            on_progress(ProgressEvent(percent=100.0, message="done"))
        logger.info(f"[Engine] Converted {input_name}: {len(data) / 1000:.0f}KB")
        return data

    async def previews(
        self,
        input_name: str,
        source: Format,
        interval: Optional[float] = None
    ) -> AsyncIterator[bytes]:
        """
        Yield preview JPEGs for ``source``.

        A stalled preview job ends the sequence early instead of raising.
        """
        extractor = FrameExtractor(
            self.encoder,
            source,
            input_name,
            interval=interval,
            config=self.config.extraction,
            command_builder=self.command_builder,
        )
        try:
            async with aclosing(extractor.frames()) as frames:
                async for frame in frames:
                    yield frame
        except ExtractionStalledError as e:
            logger.warning(f"[Engine] {e}")
