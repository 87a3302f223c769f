"""
HTTP Response Models
====================

Pydantic models for the JSON payloads served by framecast.

Frame payload:
    {
        "pixels": [[0, 0, 0], [255, 0, 0], ...],
        "frame": 42,
        "timestamp": 7.0,
        "width": 192,
        "height": 144,
        "status": "ready"
    }

Design Rules:
    - Models are built from FrameSnapshot / controller status only
    - Decode failures never change the HTTP status code
    - Staleness is visible via frame index, decoded_at and error_streak
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from framecast.models.frame import FrameSnapshot


class FrameResponse(BaseModel):
    """Single frame with pixels as RGB triplets."""

    pixels: List[List[int]] = Field(..., description="Row-major [r, g, b] triplets")
    frame: int = Field(..., ge=0, description="Cursor index of the frame")
    timestamp: float = Field(..., ge=0.0, description="Position in video (seconds)")
    width: int = Field(..., ge=1)
    height: int = Field(..., ge=1)
    status: str = Field(default="ready", description="'ready' or 'fallback'")
    decoded_at: float = Field(default=0.0, description="UNIX time of publication")

    @classmethod
    def from_snapshot(cls, snapshot: FrameSnapshot) -> "FrameResponse":
        return cls(
            pixels=snapshot.pixels.triplets(),
            frame=snapshot.index,
            timestamp=snapshot.timestamp,
            width=snapshot.pixels.width,
            height=snapshot.pixels.height,
            status="fallback" if snapshot.is_fallback else "ready",
            decoded_at=snapshot.decoded_at,
        )


class BatchFrame(BaseModel):
    """One entry of a batch response."""

    pixels: List[List[int]]
    frame: int = Field(..., ge=0)
    timestamp: float = Field(..., ge=0.0)

    @classmethod
    def from_snapshot(cls, snapshot: FrameSnapshot) -> "BatchFrame":
        return cls(
            pixels=snapshot.pixels.triplets(),
            frame=snapshot.index,
            timestamp=snapshot.timestamp,
        )


class FrameBatchResponse(BaseModel):
    """Batch of cached frames, oldest first."""

    frames: List[BatchFrame]
    start_frame: int = Field(..., ge=0, serialization_alias="startFrame")
    width: int
    height: int
    fps: float
    batch_size: int = Field(..., ge=0, serialization_alias="batchSize")


class CompactBatchResponse(BaseModel):
    """Batch of cached frames as flat RGB lists."""

    frames: List[List[int]]
    start_frame: int = Field(..., ge=0, serialization_alias="startFrame")
    width: int
    height: int
    fps: float
    format: str = "flat_rgb"


class PingResponse(BaseModel):
    """Liveness payload used by keep-alive pingers."""

    pong: bool = True
    ready: bool
    frame: int


class StatusResponse(BaseModel):
    """Observability view of the pacing controller."""

    state: str
    frame: int
    total_frames: int
    wraps: int = 0
    timestamp: float
    duration_seconds: float
    error_streak: int
    paused_for_seconds: Optional[float] = None
    last_outcome: Optional[str] = None
    last_decode_ms: float = 0.0
    counters: Dict[str, int] = Field(default_factory=dict)
    cache: Dict[str, Any] = Field(default_factory=dict)


class InfoResponse(BaseModel):
    """Source and stream description."""

    current_frame: int = Field(..., serialization_alias="currentFrame")
    timestamp: float
    duration: float
    fps: float
    width: int
    height: int
    total_frames: int = Field(..., serialization_alias="totalFrames")
    source: str
    probe_used_default: bool = Field(..., serialization_alias="probeUsedDefault")
    status: str
    endpoints: Dict[str, str]
