"""
Source Prober
=============

Determines the duration of a video source once at startup.

This module:
    - Checks remote URLs with an HTTP HEAD request (status + content type)
    - Runs ffprobe as an asyncio subprocess with a timeout
    - Retries with a fixed backoff, then tries the fallback source
    - Falls back to a default duration when everything fails

Design Rules:
    - probe_with_fallback() NEVER raises; startup must always succeed
    - Failures are logged, not propagated
"""

import asyncio
import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import requests

from framecast.decode.adapter import stderr_tail, terminate_process
from framecast.decode.retry import RetryPolicy, retry_async
from framecast.models.frame import VideoSource


logger = logging.getLogger(__name__)


DEFAULT_DURATION_SECONDS = 60.0

ACCEPTED_CONTENT_TYPES = (
    "video/",
    "application/octet-stream",
    "application/vnd.apple.mpegurl",
    "application/x-mpegurl",
    "binary/octet-stream",
)


class ProbeError(Exception):
    """Base class for probe failures."""
    pass


class SourceUnreachableError(ProbeError):
    """Raised when a remote source cannot be reached or is not video."""
    pass


class ProbeTimeoutError(ProbeError):
    """Raised when ffprobe does not finish in time."""
    pass


class ProbeFailedError(ProbeError):
    """Raised when ffprobe fails or reports no usable duration."""
    pass


@dataclass(frozen=True)
class ProbeResult:
    """Successful probe of a single source."""

    duration_seconds: float
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProbeReport:
    """
    Final result of startup probing.

    Attributes:
        source: Source that will be decoded (primary or fallback)
        duration_seconds: Duration used to size the frame cursor
        metadata: Raw ffprobe output for the chosen source (may be empty)
        used_default: True when no source could be probed
        error: Last probe error message, if any
    """

    source: VideoSource
    duration_seconds: float
    metadata: Dict[str, Any] = field(default_factory=dict)
    used_default: bool = False
    error: Optional[str] = None

    def total_frames(self, fps: float) -> int:
        """floor(duration * fps), at least 1."""
        return max(1, math.floor(self.duration_seconds * fps))


class SourceProbe(Protocol):
    """Protocol for a single-source probe backend."""

    async def probe(self, source: VideoSource) -> ProbeResult:
        """
        Probe one source.

        Raises:
            ProbeError: On any failure
        """
        ...


def parse_duration(metadata: Dict[str, Any]) -> float:
    """
    Extract a positive duration from ffprobe JSON.

    Prefers format.duration, then the longest stream duration.

    Raises:
        ProbeFailedError: If no positive duration is present
    """
    if not isinstance(metadata, dict):
        raise ProbeFailedError("ffprobe metadata is not a JSON object")

    format_info = metadata.get("format") or {}
    if not isinstance(format_info, dict):
        raise ProbeFailedError("ffprobe 'format' is not a JSON object")

    format_duration = _positive_float(format_info.get("duration"))
    if format_duration is not None:
        return format_duration

    streams = metadata.get("streams") or []
    if not isinstance(streams, list):
        raise ProbeFailedError("ffprobe 'streams' is not a JSON list")

    stream_durations = [
        d for d in (
            _positive_float(s.get("duration")) for s in streams if isinstance(s, dict)
        )
        if d is not None
    ]
    if not stream_durations:
        raise ProbeFailedError("ffprobe reported no usable duration")
    return max(stream_durations)


def _positive_float(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isfinite(number) and number > 0:
        return number
    return None


class FFprobeProbe:
    """
    ffprobe-backed probe.

    Attributes:
        ffprobe_path: Executable name or path
        timeout_seconds: Deadline for the ffprobe call
        http_timeout_seconds: Deadline for the remote HEAD check
    """

    def __init__(
        self,
        ffprobe_path: str = "ffprobe",
        timeout_seconds: float = 15.0,
        http_timeout_seconds: float = 5.0,
    ) -> None:
        self.ffprobe_path = ffprobe_path
        self.timeout_seconds = timeout_seconds
        self.http_timeout_seconds = http_timeout_seconds

    async def probe(self, source: VideoSource) -> ProbeResult:
        if source.is_remote:
            await asyncio.to_thread(self.check_remote, source)

        metadata = await self._run_ffprobe(source)
        return ProbeResult(duration_seconds=parse_duration(metadata), metadata=metadata)

    def check_remote(self, source: VideoSource) -> None:
        """
        HEAD-check a remote source (blocking, run in a worker thread).

        Raises:
            SourceUnreachableError: On connection failure, HTTP error
                status, or a content type that is not video
        """
        try:
            response = requests.head(
                source.locator,
                allow_redirects=True,
                timeout=self.http_timeout_seconds,
            )
        except requests.RequestException as e:
            raise SourceUnreachableError(f"Cannot reach {source}: {e}") from e

        if response.status_code >= 400:
            raise SourceUnreachableError(
                f"Source {source} returned HTTP {response.status_code}"
            )

        content_type = response.headers.get("Content-Type", "").lower()
        if content_type and not content_type.startswith(ACCEPTED_CONTENT_TYPES):
            raise SourceUnreachableError(
                f"Source {source} has non-video content type: {content_type}"
            )

    async def _run_ffprobe(self, source: VideoSource) -> Dict[str, Any]:
        cmd = [
            self.ffprobe_path,
            "-v", "error",
            "-show_format",
            "-show_streams",
            "-of", "json",
            source.locator,
        ]

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProbeFailedError(f"Failed to start ffprobe: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ProbeTimeoutError(
                f"ffprobe timed out after {self.timeout_seconds}s for {source}"
            ) from e
        finally:
            await terminate_process(process)

        if process.returncode != 0:
            raise ProbeFailedError(
                stderr_tail(stderr, default=f"ffprobe exited with code {process.returncode}")
            )

        try:
            metadata = json.loads(stdout)
        except (ValueError, UnicodeDecodeError) as e:
            raise ProbeFailedError(f"Failed to parse ffprobe output: {e}") from e

        if not isinstance(metadata, dict):
            raise ProbeFailedError("ffprobe output is not a JSON object")
        return metadata


class SourceProber:
    """
    Startup probing with retry, fallback source and default duration.

    Example:
        prober = SourceProber(FFprobeProbe(), RetryPolicy(3, 2.0))
        report = await prober.probe_with_fallback(primary, fallback)
        cursor = FrameCursor(report.total_frames(fps))
    """

    def __init__(
        self,
        backend: SourceProbe,
        retry_policy: Optional[RetryPolicy] = None,
        default_duration_seconds: float = DEFAULT_DURATION_SECONDS,
        sleep=asyncio.sleep,
    ) -> None:
        if default_duration_seconds <= 0:
            raise ValueError("default_duration_seconds must be > 0")

        self.backend = backend
        self.retry_policy = retry_policy or RetryPolicy()
        self.default_duration_seconds = default_duration_seconds
        self._sleep = sleep

    async def probe(self, source: VideoSource) -> ProbeResult:
        """
        Probe one source with retries.

        Raises:
            ProbeError: After all attempts fail
        """
        return await retry_async(
            lambda: self.backend.probe(source),
            self.retry_policy,
            retry_on=(ProbeError,),
            sleep=self._sleep,
            description=f"Probe of {source}",
        )

    async def probe_with_fallback(
        self,
        source: VideoSource,
        fallback: Optional[VideoSource] = None,
    ) -> ProbeReport:
        """
        Probe the primary source, then the fallback, then use the default.

        Never raises.
        """
        last_error: Optional[str] = None

        for candidate in (source, fallback):
            if candidate is None:
                continue
            try:
                result = await self.probe(candidate)
            except ProbeError as e:
                last_error = str(e)
                logger.warning(f"Probing {candidate} failed: {e}")
                continue
            except Exception as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.exception(f"Unexpected error probing {candidate}")
                continue

            if candidate is not source:
                logger.warning(f"Using fallback source {candidate}")
            logger.info(
                f"Probed {candidate}: duration={result.duration_seconds:.2f}s"
            )
            return ProbeReport(
                source=candidate,
                duration_seconds=result.duration_seconds,
                metadata=result.metadata,
            )

        logger.error(
            f"All probes failed, using default duration "
            f"{self.default_duration_seconds:.0f}s (last error: {last_error})"
        )
        return ProbeReport(
            source=source,
            duration_seconds=self.default_duration_seconds,
            used_default=True,
            error=last_error,
        )
