"""
Pixel Buffer Codec
==================

Converts raw rgb24 byte buffers into PixelFrames.

Design Rules:
    - This is the ONLY place raw decoder bytes become pixels
    - Validates size against width * height * 3
    - Fails fast on empty or wrong-sized buffers

Size Mismatch Policy:
    A buffer that is not exactly width*height*3 bytes is rejected with
    BufferSizeError. The error still carries a best-effort `partial`
    frame, truncated to the largest whole number of pixels that fits
    (and never more than width*height). Callers may log or inspect the
    partial frame but it is never published as a current frame.
"""

import logging

import numpy as np

from framecast.models.frame import BYTES_PER_PIXEL, FrameDimensions, PixelFrame
from framecast.models.outcome import DecodeOutcome


logger = logging.getLogger(__name__)


class PixelBufferError(Exception):
    """Raised when a raw buffer cannot be turned into a frame."""
    pass


class EmptyBufferError(PixelBufferError):
    """Raised when the decoder produced zero bytes."""
    pass


class BufferSizeError(PixelBufferError):
    """Raised when the buffer length differs from the expected frame size."""

    def __init__(self, actual: int, expected: int, partial: PixelFrame) -> None:
        super().__init__(
            f"Buffer size mismatch: got {actual} bytes, expected {expected} "
            f"({len(partial)} whole pixels recovered)"
        )
        self.actual = actual
        self.expected = expected
        self.partial = partial


def truncate_to_pixels(raw: bytes, dimensions: FrameDimensions) -> PixelFrame:
    """
    Best-effort conversion of a wrong-sized buffer.

    Keeps the largest whole number of pixels that fits, capped at
    the frame's pixel count. Trailing partial pixels are dropped.

    Args:
        raw: Raw rgb24 bytes of any length
        dimensions: Target frame size

    Returns:
        PixelFrame with possibly fewer than width*height pixels
    """
    whole_pixels = min(len(raw) // BYTES_PER_PIXEL, dimensions.pixel_count)
    usable = raw[: whole_pixels * BYTES_PER_PIXEL]
    array = np.frombuffer(usable, dtype=np.uint8).reshape(whole_pixels, BYTES_PER_PIXEL)
    return PixelFrame.from_array(array, dimensions.width, dimensions.height)


def bytes_to_pixels(raw: bytes, dimensions: FrameDimensions) -> PixelFrame:
    """
    Decode an interleaved rgb24 buffer into a PixelFrame.

    Args:
        raw: Raw bytes, row-major, top-left origin, 3 bytes per pixel
        dimensions: Expected frame size

    Returns:
        PixelFrame with exactly width*height pixels

    Raises:
        EmptyBufferError: If the buffer is empty
        BufferSizeError: If the buffer is not exactly width*height*3 bytes
    """
    if not raw:
        raise EmptyBufferError("Decoder produced an empty buffer")

    expected = dimensions.expected_bytes
    if len(raw) != expected:
        raise BufferSizeError(len(raw), expected, truncate_to_pixels(raw, dimensions))

    array = np.frombuffer(raw, dtype=np.uint8).reshape(
        dimensions.pixel_count, BYTES_PER_PIXEL
    )
    return PixelFrame.from_array(array, dimensions.width, dimensions.height)


def classify_buffer(raw: bytes, dimensions: FrameDimensions) -> DecodeOutcome:
    """
    Turn a raw buffer into a DecodeOutcome.

    Never raises: empty buffers become EMPTY_OUTPUT and wrong-sized
    buffers become SIZE_MISMATCH with the truncated partial frame.
    """
    try:
        return DecodeOutcome.success(bytes_to_pixels(raw, dimensions))
    except EmptyBufferError as e:
        return DecodeOutcome.empty_output(str(e))
    except BufferSizeError as e:
        logger.debug(str(e))
        return DecodeOutcome.size_mismatch(
            actual_bytes=e.actual,
            partial=e.partial,
            message=str(e),
        )
