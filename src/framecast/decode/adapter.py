"""
Decoder Adapter
===============

Extracts a single rgb24 frame from a video source with ffmpeg.

This module:
    - Runs ffmpeg as an asyncio subprocess (never blocks the event loop)
    - Bounds every call with a hard timeout
    - Kills and reaps the subprocess on timeout, cancellation and completion
    - Resolves every call to exactly one DecodeOutcome

Design Rules:
    - No state between calls
    - Never raises for decode failures (they are outcomes)
    - Output after the deadline is discarded, never parsed
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Protocol

from framecast.decode.pixels import classify_buffer
from framecast.models.frame import FrameDimensions, VideoSource
from framecast.models.outcome import DecodeOutcome


logger = logging.getLogger(__name__)


NOT_FOUND_MARKERS = (
    "no such file or directory",
    "404 not found",
    "server returned 404",
    "http error 404",
)


class FrameDecoder(Protocol):
    """
    Protocol for decode backends.

    Implemented by:
        - FFmpegFrameDecoder (production)
        - fakes in tests
    """

    async def decode_frame(
        self,
        source: VideoSource,
        seek_seconds: float,
        dimensions: FrameDimensions,
    ) -> DecodeOutcome:
        """
        Decode the frame at `seek_seconds`.

        Args:
            source: Video source to read from
            seek_seconds: Position in the video
            dimensions: Output frame size

        Returns:
            Exactly one DecodeOutcome
        """
        ...


def stderr_tail(stderr: bytes, default: str = "") -> str:
    """Last non-empty line of decoder diagnostics."""
    text = stderr.decode("utf-8", errors="replace").strip()
    if not text:
        return default
    return text.splitlines()[-1].strip()


def looks_like_not_found(stderr: bytes) -> bool:
    text = stderr.decode("utf-8", errors="replace").lower()
    return any(marker in text for marker in NOT_FOUND_MARKERS)


async def terminate_process(process: asyncio.subprocess.Process) -> None:
    """Kill a subprocess if it is still running and reap it."""
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


class FFmpegFrameDecoder:
    """
    Single-frame decoder backed by the ffmpeg CLI.

    Attributes:
        ffmpeg_path: Executable name or path
        timeout_seconds: Hard deadline per decode
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        timeout_seconds: float = 10.0,
    ) -> None:
        """
        Initialize decoder.

        Args:
            ffmpeg_path: ffmpeg executable
            timeout_seconds: Deadline for one decode (> 0)
        """
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self.ffmpeg_path = ffmpeg_path
        self.timeout_seconds = timeout_seconds

        logger.info(
            f"FFmpegFrameDecoder initialized: ffmpeg={ffmpeg_path}, "
            f"timeout={timeout_seconds}s"
        )

    def build_command(
        self,
        source: VideoSource,
        seek_seconds: float,
        dimensions: FrameDimensions,
    ) -> List[str]:
        """ffmpeg argv for a single scaled rgb24 frame written to stdout."""
        return [
            self.ffmpeg_path,
            "-hide_banner",
            "-loglevel", "error",
            "-nostdin",
            "-ss", f"{max(0.0, seek_seconds):.3f}",
            "-i", source.locator,
            "-frames:v", "1",
            "-vf", f"scale={dimensions.width}:{dimensions.height}",
            "-f", "rawvideo",
            "-pix_fmt", "rgb24",
            "-",
        ]

    async def decode_frame(
        self,
        source: VideoSource,
        seek_seconds: float,
        dimensions: FrameDimensions,
    ) -> DecodeOutcome:
        """
        Decode one frame.

        See FrameDecoder.decode_frame.
        """
        if not source.is_remote and not Path(source.locator).exists():
            return DecodeOutcome.source_not_found(f"No such file: {source.locator}")

        cmd = self.build_command(source, seek_seconds, dimensions)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            return DecodeOutcome.subprocess_error(
                f"Decoder executable not found: {self.ffmpeg_path}"
            )
        except OSError as e:
            return DecodeOutcome.subprocess_error(f"Failed to start decoder: {e}")

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            return DecodeOutcome.timeout(
                f"Decode at {seek_seconds:.3f}s exceeded {self.timeout_seconds}s"
            )
        finally:
            # Covers timeout and cancellation; no-op after a normal exit
            await terminate_process(process)

        if process.returncode != 0:
            if looks_like_not_found(stderr):
                return DecodeOutcome.source_not_found(stderr_tail(stderr))
            return DecodeOutcome.subprocess_error(
                stderr_tail(stderr, default=f"ffmpeg exited with code {process.returncode}")
            )

        return classify_buffer(stdout, dimensions)
