"""
Pixel Buffer Codec Tests
========================
"""

import numpy as np
import pytest

from framecast.decode.pixels import (
    BufferSizeError,
    EmptyBufferError,
    bytes_to_pixels,
    classify_buffer,
    truncate_to_pixels,
)
from framecast.models import FrameDimensions, OutcomeKind, PixelFrame


class TestBytesToPixels:
    """Conversion of exact-size buffers."""

    def test_reference_scenario(self, dimensions, scenario_bytes):
        frame = bytes_to_pixels(scenario_bytes, dimensions)

        assert frame.triplets() == [
            [0, 0, 0],
            [255, 0, 0],
            [0, 255, 0],
            [0, 0, 255],
            [255, 255, 255],
            [128, 128, 128],
            [10, 20, 30],
            [40, 50, 60],
        ]
        assert len(frame) == 8
        assert frame.is_complete

    def test_bytes_preserved_exactly(self):
        dims = FrameDimensions(width=16, height=9)
        raw = bytes((i * 7) % 256 for i in range(dims.expected_bytes))

        frame = bytes_to_pixels(raw, dims)

        assert len(frame) == dims.pixel_count
        assert frame.to_bytes() == raw
        assert frame.flat() == list(raw)

    def test_row_major_order(self, dimensions, scenario_bytes):
        frame = bytes_to_pixels(scenario_bytes, dimensions)
        # Second row starts at pixel index width
        assert frame.triplets()[dimensions.width] == [255, 255, 255]

    def test_frame_is_read_only(self, dimensions, scenario_bytes):
        frame = bytes_to_pixels(scenario_bytes, dimensions)
        with pytest.raises(ValueError):
            frame.data[0, 0] = 1

    def test_empty_buffer_raises(self, dimensions):
        with pytest.raises(EmptyBufferError):
            bytes_to_pixels(b"", dimensions)

    def test_short_buffer_raises_with_partial(self, dimensions, scenario_bytes):
        with pytest.raises(BufferSizeError) as info:
            bytes_to_pixels(scenario_bytes[:-1], dimensions)

        error = info.value
        assert error.actual == 23
        assert error.expected == 24
        # 23 bytes hold 7 whole pixels; the broken last pixel is dropped
        assert len(error.partial) == 7
        assert error.partial.triplets()[-1] == [10, 20, 30]


class TestTruncation:
    """Best-effort conversion of wrong-sized buffers."""

    def test_oversized_buffer_capped_at_pixel_count(self, dimensions, scenario_bytes):
        partial = truncate_to_pixels(scenario_bytes + b"\x01\x02\x03\x04", dimensions)
        assert len(partial) == dimensions.pixel_count
        assert partial.to_bytes() == scenario_bytes

    def test_less_than_one_pixel(self, dimensions):
        partial = truncate_to_pixels(b"\x01\x02", dimensions)
        assert len(partial) == 0
        assert not partial.is_complete


class TestClassifyBuffer:
    """Buffers to DecodeOutcomes."""

    def test_success(self, dimensions, scenario_bytes):
        outcome = classify_buffer(scenario_bytes, dimensions)
        assert outcome.ok
        assert outcome.frame.to_bytes() == scenario_bytes

    def test_empty_output(self, dimensions):
        outcome = classify_buffer(b"", dimensions)
        assert outcome.kind is OutcomeKind.EMPTY_OUTPUT
        assert outcome.frame is None

    def test_size_mismatch_one_byte_short(self, dimensions, scenario_bytes):
        outcome = classify_buffer(scenario_bytes[:-1], dimensions)

        assert outcome.kind is OutcomeKind.SIZE_MISMATCH
        assert outcome.actual_bytes == dimensions.expected_bytes - 1
        assert outcome.frame is None
        assert len(outcome.partial) == dimensions.pixel_count - 1


class TestPixelFrame:
    """PixelFrame conversions."""

    def test_from_array_reshapes(self):
        array = np.arange(12, dtype=np.uint8).reshape(2, 2, 3)
        frame = PixelFrame.from_array(array, width=2, height=2)
        assert frame.data.shape == (4, 3)
        assert frame.flat() == list(range(12))

    def test_repr_is_compact(self, dimensions, scenario_bytes):
        frame = bytes_to_pixels(scenario_bytes, dimensions)
        assert repr(frame) == "PixelFrame(4x2, pixels=8)"

    def test_dimensions_validation(self):
        with pytest.raises(ValueError):
            FrameDimensions(width=0, height=10)
        assert FrameDimensions(192, 144).expected_bytes == 192 * 144 * 3
