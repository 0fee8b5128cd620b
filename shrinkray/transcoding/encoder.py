"""
Encoder capability.

The engine only needs four operations from an encoder: run an argument list
while reporting diagnostic lines, and write, read and unlink named files in
the namespace the job runs in. ``FFmpegEncoder`` provides them on top of an
ffmpeg subprocess whose working directory is the namespace.
"""

import asyncio
import logging
import os
import re
import shutil
import signal
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Set

from ..config import EncodingConfig
from ..errors import EncoderError, StaleJobError

logger = logging.getLogger(__name__)

LineCallback = Callable[[str], None]

# ffmpeg ends status lines with \r, diagnostics with \n
LINE_SPLIT_RE = re.compile(rb"[\r\n]")

MAX_TAIL_LINES = 100


class Encoder(Protocol):
    """What the engine expects from an encoder runtime."""

    async def run(self, args: List[str], on_line: Optional[LineCallback] = None) -> None:
        ...

    def write_file(self, name: str, data: bytes) -> None:
        ...

    def read_file(self, name: str) -> bytes:
        """Return the file contents, raising ``FileNotFoundError`` if absent."""
        ...

    def unlink(self, name: str) -> None:
        ...


def sanitize_file_name(name: str) -> str:
    """Replace non-ASCII characters, which the encoder cannot address."""
    return re.sub(r"[^\x00-\x7F]", "_", name)


class FFmpegEncoder:
    """Runs ffmpeg jobs one at a time inside a private working directory."""

    def __init__(
        self,
        config: Optional[EncodingConfig] = None,
        work_dir: Optional[Path] = None
    ):
        self.config = config or EncodingConfig()
        self.ffmpeg_path = self._find_ffmpeg()

        if work_dir is None:
            parent = Path(self.config.work_directory)
            parent.mkdir(parents=True, exist_ok=True)
            self.work_dir = Path(tempfile.mkdtemp(prefix="job_", dir=parent))
            self._owns_work_dir = True
        else:
            self.work_dir = Path(work_dir)
            self.work_dir.mkdir(parents=True, exist_ok=True)
            self._owns_work_dir = False

        self._process: Optional[asyncio.subprocess.Process] = None
        self._generation = 0
        self._superseded: Set[int] = set()

    def _find_ffmpeg(self) -> str:
        """Find ffmpeg executable."""
        if self.config.ffmpeg_path != "auto":
            return self.config.ffmpeg_path

        ffmpeg = shutil.which("ffmpeg")
        if ffmpeg:
            return ffmpeg

        raise RuntimeError("FFmpeg not found")

    def _path(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise ValueError(f"Invalid file name: {name!r}")
        return self.work_dir / name

    def write_file(self, name: str, data: bytes) -> None:
        self._path(name).write_bytes(data)

    def read_file(self, name: str) -> bytes:
        return self._path(name).read_bytes()

    def unlink(self, name: str) -> None:
        self._path(name).unlink()

    def import_file(self, path: Path) -> str:
        """
        Make a local file available to jobs and return its name.

        The file is symlinked where possible and copied otherwise.
        """
        path = Path(path).resolve()
        name = sanitize_file_name(path.name)
        target = self._path(name)
        if target.exists() or target.is_symlink():
            target.unlink()
        try:
            os.symlink(path, target)
        except OSError:
            shutil.copyfile(path, target)
        return name

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def run(self, args: List[str], on_line: Optional[LineCallback] = None) -> None:
        """
        Run one ffmpeg job to completion.

        A job still running from an earlier call is terminated first, and
        that earlier call raises ``StaleJobError``. Raises ``EncoderError``
        when ffmpeg exits with a non-zero code.
        """
        if self.running:
            logger.warning("[Encoder] ffmpeg is already running, terminating it")
            self._superseded.add(self._generation)
            await self.terminate()

        self._generation += 1
        generation = self._generation

        cmd = [self.ffmpeg_path, *args]
        logger.info(f"[Encoder] Running ffmpeg: {' '.join(cmd[:12])}...")

        kwargs: Dict[str, Any] = {
            "cwd": str(self.work_dir),
            "stdin": asyncio.subprocess.DEVNULL,
            "stdout": asyncio.subprocess.DEVNULL,
            "stderr": asyncio.subprocess.PIPE,
        }
        if sys.platform == "win32":
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP

        try:
            process = await asyncio.create_subprocess_exec(*cmd, **kwargs)
        except OSError as e:
            logger.error(f"[Encoder] Failed to start ffmpeg: {e}")
            raise EncoderError(-1, str(e)) from e

        self._process = process
        tail: List[str] = []

        def emit(raw: bytes) -> None:
            line = raw.decode("utf-8", errors="ignore").rstrip()
            if not line:
                return
            tail.append(line)
            # Keep only the last lines to avoid memory growth
            if len(tail) > MAX_TAIL_LINES:
                tail.pop(0)
            if on_line:
                try:
                    on_line(line)
                except Exception as e:
                    logger.warning(f"Line callback error: {e}")

        buffer = b""
        try:
            while True:
                chunk = await process.stderr.read(4096)
                if not chunk:
                    break
                buffer += chunk
                parts = LINE_SPLIT_RE.split(buffer)
                buffer = parts.pop()
                for part in parts:
                    emit(part)
            emit(buffer)
            returncode = await process.wait()
        except asyncio.CancelledError:
            logger.info("[Encoder] Job cancelled, stopping ffmpeg")
            await asyncio.shield(self._graceful_terminate(process))
            raise
        finally:
            if self._process is process:
                self._process = None

        output = "\n".join(tail)
        if generation in self._superseded:
            self._superseded.discard(generation)
            raise StaleJobError(output)
        if returncode != 0:
            raise EncoderError(returncode, output)

    async def terminate(self) -> None:
        """Stop the running job, if any."""
        if self._process is not None:
            await self._graceful_terminate(self._process)

    async def _graceful_terminate(self, process: asyncio.subprocess.Process) -> None:
        """
        Gracefully terminate ffmpeg with platform-specific signals.

        SIGINT lets ffmpeg finalize its output; SIGTERM and SIGKILL follow if
        it does not exit in time.
        """
        if process.returncode is not None:
            return

        timeout = self.config.terminate_timeout
        try:
            if sys.platform == "win32":
                process.send_signal(signal.CTRL_BREAK_EVENT)
            else:
                process.send_signal(signal.SIGINT)
        except (ProcessLookupError, OSError):
            pass

        try:
            await asyncio.wait_for(process.wait(), timeout=timeout)
            logger.debug("[Encoder] ffmpeg terminated gracefully")
            return
        except asyncio.TimeoutError:
            pass

        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=timeout)
            logger.debug("[Encoder] ffmpeg terminated with SIGTERM")
            return
        except (asyncio.TimeoutError, ProcessLookupError, OSError):
            pass

        try:
            process.kill()
            await process.wait()
            logger.warning("[Encoder] ffmpeg killed forcefully")
        except (ProcessLookupError, OSError):
            pass

    def cleanup(self) -> None:
        """Remove the working directory if this encoder created it."""
        if self._owns_work_dir and self.work_dir.exists():
            shutil.rmtree(self.work_dir, ignore_errors=True)
            logger.info(f"[Encoder] Cleaned up work directory: {self.work_dir}")
