"""
Exception hierarchy for shrinkray.

Planner infeasibility is not an error: it is reported through the
``implausible`` flag on each option.
"""

from typing import Optional


class ShrinkRayError(Exception):
    """Base class for all shrinkray errors."""


class MetadataError(ShrinkRayError):
    """The probe finished without a container or video record."""

    def __init__(self, message: str, diagnostics: str = ""):
        super().__init__(message)
        self.diagnostics = diagnostics

    def __str__(self) -> str:
        base = super().__str__()
        if self.diagnostics:
            return f"{base}\n{self.diagnostics}"
        return base


class UnsupportedCodecError(ShrinkRayError):
    """A target asks for a codec family that has no encoder mapping."""

    def __init__(self, stream: str, codec: str):
        super().__init__(f"Unsupported {stream} codec: {codec}")
        self.stream = stream
        self.codec = codec


class MissingEncodeParameterError(ShrinkRayError):
    """An encoded video target carries neither a bitrate nor a crf."""

    def __init__(self, preset: Optional[str] = None):
        label = f" (preset {preset})" if preset else ""
        super().__init__(f"No video bitrate or crf specified{label}")
        self.preset = preset


class ExtractionStalledError(ShrinkRayError):
    """No preview frame appeared within the stall window."""

    def __init__(self, frame: int, timeout: float):
        super().__init__(
            f"Preview generation stopped: frame {frame} not produced within {timeout:.1f}s"
        )
        self.frame = frame
        self.timeout = timeout


class EncoderError(ShrinkRayError):
    """The encoder process failed."""

    def __init__(self, returncode: int, output: str = ""):
        tail = output[-1000:] if output else "Unknown error"
        super().__init__(f"Encoder failed (code {returncode}): {tail}")
        self.returncode = returncode
        self.output = output


class StaleJobError(EncoderError):
    """The job was terminated because a newer job started on the same encoder."""

    def __init__(self, output: str = ""):
        super().__init__(-1, output or "Superseded by a newer job")
