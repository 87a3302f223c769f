"""
Frame Data Models
=================

Internal representations shared by the decode pipeline and readers.

Design Rules:
    - PixelFrame is immutable once built (read-only numpy buffer)
    - Pixel order is row-major, top-left origin, 3 bytes per pixel (RGB)
    - A FrameSnapshot is the ONLY thing handed to the HTTP layer
"""

from dataclasses import dataclass
from typing import List

import numpy as np


BYTES_PER_PIXEL = 3


@dataclass(frozen=True, slots=True)
class VideoSource:
    """
    Video source locator, immutable for the process lifetime.

    Attributes:
        locator: Local filesystem path or http(s) URL
    """

    locator: str

    @property
    def is_remote(self) -> bool:
        """True for http(s) URLs."""
        return self.locator.lower().startswith(("http://", "https://"))

    def __str__(self) -> str:
        return self.locator


@dataclass(frozen=True, slots=True)
class FrameDimensions:
    """Output frame size in pixels, fixed at process start."""

    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError(
                f"Frame dimensions must be positive, got {self.width}x{self.height}"
            )

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def expected_bytes(self) -> int:
        """Size of one raw rgb24 frame."""
        return self.pixel_count * BYTES_PER_PIXEL

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True, slots=True)
class PixelFrame:
    """
    Decoded RGB frame.

    Attributes:
        width: Frame width in pixels
        height: Frame height in pixels
        data: Read-only uint8 array of shape (N, 3). N equals width*height
            for a complete frame and may be smaller for a truncated one.

    Note:
        Conversion helpers return fresh Python lists so the JSON layer
        can choose triplets or a flat list without touching the buffer.
    """

    width: int
    height: int
    data: np.ndarray

    @classmethod
    def from_array(cls, array: np.ndarray, width: int, height: int) -> "PixelFrame":
        """Build a frame from an (N, 3) array, freezing the buffer."""
        data = np.ascontiguousarray(array, dtype=np.uint8).reshape(-1, BYTES_PER_PIXEL)
        data.flags.writeable = False
        return cls(width=width, height=height, data=data)

    @property
    def is_complete(self) -> bool:
        return len(self) == self.width * self.height

    def triplets(self) -> List[List[int]]:
        """Pixels as [[r, g, b], ...]."""
        return self.data.tolist()

    def flat(self) -> List[int]:
        """Pixels as [r, g, b, r, g, b, ...]."""
        return self.data.reshape(-1).tolist()

    def to_bytes(self) -> bytes:
        return self.data.tobytes()

    def __len__(self) -> int:
        return int(self.data.shape[0])

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixels."""
        return f"PixelFrame({self.width}x{self.height}, pixels={len(self)})"


@dataclass(frozen=True, slots=True)
class FrameSnapshot:
    """
    A published frame as seen by readers.

    Attributes:
        pixels: The frame's pixel data
        index: Cursor index the frame was decoded at
        timestamp: Position in the video, index / fps (seconds)
        decoded_at: UNIX time the frame was published
        is_fallback: True when the pixels are the procedural pattern
    """

    pixels: PixelFrame
    index: int
    timestamp: float
    decoded_at: float
    is_fallback: bool = False

    def __repr__(self) -> str:
        return (
            f"FrameSnapshot(index={self.index}, "
            f"timestamp={self.timestamp:.3f}, "
            f"fallback={self.is_fallback})"
        )
