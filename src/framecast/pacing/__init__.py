"""
Pacing Module
=============

Frame-pacing and decode-pipeline control.

This module provides:
    - FrameCursor: Wrap-around frame index
    - FrameCache: Current frame slot plus bounded recent-frame cache
    - FailurePolicy: Error-streak state machine (skip / skip ahead / pause)
    - PacingController: Gated decode loop and non-blocking read side

Example:
    from framecast.pacing import FrameCursor, PacingController

    controller = PacingController(decoder, source, dimensions,
                                  FrameCursor(total_frames=360), fps=6)
    task = asyncio.create_task(controller.run())

    snapshot = controller.current_frame()
"""

from framecast.pacing.controller import (
    ControllerState,
    PacingController,
    PacingCounters,
    PacingMode,
)
from framecast.pacing.cursor import FrameCache, FrameCursor
from framecast.pacing.policy import (
    FailurePolicy,
    FailureThresholds,
    PolicyAction,
    PolicyDecision,
)


__all__ = [
    "FrameCursor",
    "FrameCache",
    "FailurePolicy",
    "FailureThresholds",
    "PolicyAction",
    "PolicyDecision",
    "ControllerState",
    "PacingMode",
    "PacingCounters",
    "PacingController",
]
