"""
Procedural Fallback Pattern
===========================

Animated ripple pattern served until the first frame is decoded.

For a pixel at distance d from the centre and time t = index / fps:
    ripple = sin(0.1 * d - 3 * t) * 127 + 128
    hue    = (2 * d + 50 * t) mod 360
    rgb    = hsl(hue, 0.8, 0.6)
    pixel  = floor(rgb * ripple / 255)
"""

from functools import lru_cache

import numpy as np

from framecast.models.frame import FrameDimensions, PixelFrame


SATURATION = 0.8
LIGHTNESS = 0.6


def _hue_to_channel(p: np.ndarray, q: np.ndarray, t: np.ndarray) -> np.ndarray:
    t = np.where(t < 0, t + 1, t)
    t = np.where(t > 1, t - 1, t)
    return np.select(
        [t < 1 / 6, t < 1 / 2, t < 2 / 3],
        [p + (q - p) * 6 * t, q, p + (q - p) * (2 / 3 - t) * 6],
        default=p,
    )


def hsl_to_rgb(h: np.ndarray, s: float, l: float) -> np.ndarray:
    """
    Vectorised HSL -> RGB.

    Args:
        h: Hue in [0, 1)
        s: Saturation in [0, 1]
        l: Lightness in [0, 1]

    Returns:
        Array of shape h.shape + (3,), values rounded to 0..255
    """
    h = np.asarray(h, dtype=np.float64)
    if s == 0:
        gray = np.full(h.shape, round(l * 255), dtype=np.float64)
        return np.stack([gray, gray, gray], axis=-1)

    q = l * (1 + s) if l < 0.5 else l + s - l * s
    p = 2 * l - q
    p_arr = np.full(h.shape, p)
    q_arr = np.full(h.shape, q)
    channels = [
        _hue_to_channel(p_arr, q_arr, h + 1 / 3),
        _hue_to_channel(p_arr, q_arr, h),
        _hue_to_channel(p_arr, q_arr, h - 1 / 3),
    ]
    return np.round(np.stack(channels, axis=-1) * 255)


@lru_cache(maxsize=8)
def _distance_grid(width: int, height: int) -> np.ndarray:
    ys, xs = np.mgrid[0:height, 0:width]
    return np.sqrt((xs - width / 2) ** 2 + (ys - height / 2) ** 2)


def generate_pattern(frame_index: int, dimensions: FrameDimensions, fps: float) -> PixelFrame:
    """
    Render the fallback pattern for one frame index.

    Args:
        frame_index: Cursor index (drives the animation time)
        dimensions: Output size
        fps: Target frame rate

    Returns:
        Complete PixelFrame
    """
    t = frame_index / fps
    distance = _distance_grid(dimensions.width, dimensions.height)

    ripple = np.sin(distance * 0.1 - t * 3) * 127 + 128
    hue = np.mod(distance * 2 + t * 50, 360)
    rgb = hsl_to_rgb(hue / 360, SATURATION, LIGHTNESS)

    pixels = np.floor(rgb * ripple[..., np.newaxis] / 255).astype(np.uint8)
    return PixelFrame.from_array(pixels.reshape(-1, 3), dimensions.width, dimensions.height)
