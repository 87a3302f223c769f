"""
Decode Module
=============

Everything between a video source and a PixelFrame:
    - FFmpegFrameDecoder: single-frame extraction via ffmpeg
    - bytes_to_pixels / classify_buffer: raw rgb24 buffer codec
    - SourceProber: startup duration probing with retry and fallback
    - RetryPolicy / retry_async: fixed-backoff retry helper
"""

from framecast.decode.adapter import FFmpegFrameDecoder, FrameDecoder
from framecast.decode.pixels import (
    BufferSizeError,
    EmptyBufferError,
    PixelBufferError,
    bytes_to_pixels,
    classify_buffer,
    truncate_to_pixels,
)
from framecast.decode.prober import (
    DEFAULT_DURATION_SECONDS,
    FFprobeProbe,
    ProbeError,
    ProbeFailedError,
    ProbeReport,
    ProbeResult,
    ProbeTimeoutError,
    SourceProbe,
    SourceProber,
    SourceUnreachableError,
)
from framecast.decode.retry import RetryPolicy, retry_async


__all__ = [
    "FrameDecoder",
    "FFmpegFrameDecoder",
    "PixelBufferError",
    "EmptyBufferError",
    "BufferSizeError",
    "bytes_to_pixels",
    "classify_buffer",
    "truncate_to_pixels",
    "DEFAULT_DURATION_SECONDS",
    "SourceProbe",
    "FFprobeProbe",
    "SourceProber",
    "ProbeResult",
    "ProbeReport",
    "ProbeError",
    "SourceUnreachableError",
    "ProbeTimeoutError",
    "ProbeFailedError",
    "RetryPolicy",
    "retry_async",
]
