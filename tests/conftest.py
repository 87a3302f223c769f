"""
Test Configuration
==================

Pytest fixtures and fakes for framecast.
"""

import asyncio
from typing import List, Optional

import numpy as np
import pytest

from framecast.models import DecodeOutcome, FrameDimensions, PixelFrame, VideoSource


def solid_frame(dimensions: FrameDimensions, value: int = 7) -> PixelFrame:
    """Complete frame with every channel set to `value`."""
    array = np.full((dimensions.pixel_count, 3), value, dtype=np.uint8)
    return PixelFrame.from_array(array, dimensions.width, dimensions.height)


class FakeClock:
    """Manually stepped monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedDecoder:
    """
    Decoder that returns queued outcomes.

    Records every call and the peak number of concurrent decodes.
    When `gate` is set, each decode waits on it before resolving.
    """

    def __init__(
        self,
        outcomes: Optional[List[DecodeOutcome]] = None,
        default: Optional[DecodeOutcome] = None,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.outcomes = list(outcomes or [])
        self.default = default
        self.gate = gate
        self.calls: List[float] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def decode_frame(self, source, seek_seconds, dimensions):
        self.calls.append(seek_seconds)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            if self.outcomes:
                return self.outcomes.pop(0)
            if self.default is not None:
                return self.default
            return DecodeOutcome.success(solid_frame(dimensions))
        finally:
            self.in_flight -= 1


@pytest.fixture
def dimensions():
    """Small frame size used by most tests."""
    return FrameDimensions(width=4, height=2)


@pytest.fixture
def source():
    return VideoSource("clip.mp4")


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def scenario_bytes():
    """The 4x2 reference buffer (24 bytes)."""
    return bytes([
        0, 0, 0,
        255, 0, 0,
        0, 255, 0,
        0, 0, 255,
        255, 255, 255,
        128, 128, 128,
        10, 20, 30,
        40, 50, 60,
    ])
