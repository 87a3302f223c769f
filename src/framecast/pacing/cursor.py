"""
Frame Cursor & Cache
====================

Wrap-around frame cursor and the bounded cache of published frames.

Design Rules:
    - 0 <= index < total_frames at all times
    - Only the pacing controller mutates the cursor or publishes frames
    - Publishing is a single reference swap; readers never see a mix
      of old and new pixels
    - Cache is bounded (drops oldest on overflow)
"""

import logging
from collections import OrderedDict
from typing import List, Optional

from framecast.models.frame import FrameSnapshot


logger = logging.getLogger(__name__)


class FrameCursor:
    """
    Current position in the video, in frames.

    Attributes:
        index: Current frame index
        total_frames: Number of frames in one loop of the video

    Example:
        cursor = FrameCursor(total_frames=10, index=9)
        cursor.advance()   # -> 0
    """

    def __init__(self, total_frames: int, index: int = 0) -> None:
        if total_frames < 1:
            raise ValueError("total_frames must be >= 1")
        if not 0 <= index < total_frames:
            raise ValueError(f"index must be in [0, {total_frames}), got {index}")

        self._total_frames = total_frames
        self._index = index
        self._wraps: int = 0

    @property
    def index(self) -> int:
        return self._index

    @property
    def total_frames(self) -> int:
        return self._total_frames

    @property
    def wraps(self) -> int:
        """Number of times the cursor has passed the end of the video."""
        return self._wraps

    def advance(self, step: int = 1) -> int:
        """
        Move forward `step` frames, wrapping at total_frames.

        Args:
            step: Frames to advance (>= 1)

        Returns:
            The new index
        """
        if step < 1:
            raise ValueError("step must be >= 1")

        target = self._index + step
        self._wraps += target // self._total_frames
        self._index = target % self._total_frames
        return self._index

    def seek_seconds(self, fps: float) -> float:
        """Seek position of the current index."""
        return self._index / fps

    def __repr__(self) -> str:
        return f"FrameCursor(index={self._index}, total_frames={self._total_frames})"


class FrameCache:
    """
    Single "current" slot plus a bounded index -> frame mapping.

    The current slot is replaced by assignment, which is atomic for
    readers in the same interpreter. Recent frames are kept in
    insertion order and the oldest is evicted when full.

    Attributes:
        capacity: Maximum number of recent frames kept
        evicted_count: Frames evicted due to overflow
    """

    def __init__(self, capacity: int = 60) -> None:
        """
        Initialize frame cache.

        Args:
            capacity: Maximum frames to keep. Must be >= 1.
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")

        self._capacity = capacity
        self._current: Optional[FrameSnapshot] = None
        self._recent: "OrderedDict[int, FrameSnapshot]" = OrderedDict()
        self._evicted_count: int = 0
        self._total_published: int = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        return len(self._recent)

    @property
    def current(self) -> Optional[FrameSnapshot]:
        """Last published frame, or None before the first success."""
        return self._current

    @property
    def evicted_count(self) -> int:
        return self._evicted_count

    @property
    def total_published(self) -> int:
        return self._total_published

    def publish(self, snapshot: FrameSnapshot) -> None:
        """
        Make `snapshot` the current frame and remember it.

        A frame re-decoded at an index already cached replaces the
        older entry and moves to the newest position.
        """
        recent = self._recent
        recent.pop(snapshot.index, None)
        recent[snapshot.index] = snapshot

        while len(recent) > self._capacity:
            recent.popitem(last=False)
            self._evicted_count += 1

        self._total_published += 1
        self._current = snapshot

    def recent(self, count: int) -> List[FrameSnapshot]:
        """
        Up to `count` most recent frames, oldest first.

        Returns a copy; later publishes do not affect it.
        """
        if count <= 0:
            return []
        snapshots = list(self._recent.values())
        return snapshots[-count:]

    def metrics(self) -> dict:
        """
        Get cache metrics for observability.

        Returns:
            Dict with size, capacity, evicted_count, total_published
        """
        return {
            "size": self.size,
            "capacity": self._capacity,
            "evicted_count": self._evicted_count,
            "total_published": self._total_published,
        }
