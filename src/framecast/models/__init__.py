"""
Data Models
===========

Frame, outcome and HTTP response models for framecast.

Models:
    Frame:
        - VideoSource: Source locator (path or URL)
        - FrameDimensions: Output width/height
        - PixelFrame: Decoded RGB pixels
        - FrameSnapshot: Published frame as seen by readers

    Outcome:
        - OutcomeKind: Decode result classification
        - DecodeOutcome: Tagged decode result

    Output:
        - FrameResponse, FrameBatchResponse, CompactBatchResponse
        - PingResponse, StatusResponse, InfoResponse
"""

from framecast.models.frame import (
    BYTES_PER_PIXEL,
    FrameDimensions,
    FrameSnapshot,
    PixelFrame,
    VideoSource,
)
from framecast.models.outcome import DecodeOutcome, OutcomeKind
from framecast.models.output import (
    BatchFrame,
    CompactBatchResponse,
    FrameBatchResponse,
    FrameResponse,
    InfoResponse,
    PingResponse,
    StatusResponse,
)

__all__ = [
    # Frame
    "BYTES_PER_PIXEL",
    "VideoSource",
    "FrameDimensions",
    "PixelFrame",
    "FrameSnapshot",
    # Outcome
    "OutcomeKind",
    "DecodeOutcome",
    # Output
    "FrameResponse",
    "BatchFrame",
    "FrameBatchResponse",
    "CompactBatchResponse",
    "PingResponse",
    "StatusResponse",
    "InfoResponse",
]
