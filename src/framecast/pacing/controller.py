"""
Pacing Controller
=================

Drives the decoder at the target frame rate and publishes frames.

This module provides the PacingController class which:
    - Issues at most one decode at a time (IDLE -> DECODING -> IDLE)
    - Applies the failure policy after every attempt
    - Pauses decoding during cooldown windows (PAUSED)
    - Exposes a non-blocking read side for the HTTP layer

Pacing Modes:
    fixed:    a tick fires every 1/fps seconds regardless of decode time.
              A tick that finds a decode in flight is a no-op (not queued).
    adaptive: the next tick is scheduled
              max(min_delay, 1/fps - last_decode_duration) after the
              previous attempt completes.

State Machine:
    IDLE     --tick-->              DECODING
    DECODING --outcome, no pause--> IDLE
    DECODING --outcome, pause-->    PAUSED
    PAUSED   --tick after cooldown-> IDLE (streak reset) -> DECODING

Design Rules:
    - The controller is the ONLY writer of cursor, cache and streak
    - Readers never wait on decoding
    - Decode failures never propagate out of tick()
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, List, Optional

from framecast.decode.adapter import FrameDecoder
from framecast.models.frame import FrameDimensions, FrameSnapshot, PixelFrame, VideoSource
from framecast.models.outcome import DecodeOutcome, OutcomeKind
from framecast.pacing.cursor import FrameCache, FrameCursor
from framecast.pacing.policy import FailurePolicy, PolicyAction
from framecast.pattern import generate_pattern


logger = logging.getLogger(__name__)


class ControllerState(str, Enum):
    """
    Gate states of the pacing controller.

    Attributes:
        IDLE: Ready to start the next decode
        DECODING: A decode is in flight; ticks are no-ops
        PAUSED: Cooling down after sustained failure; no decodes issued
    """

    IDLE = "IDLE"
    DECODING = "DECODING"
    PAUSED = "PAUSED"


class PacingMode(str, Enum):
    """Tick scheduling strategy."""

    FIXED = "fixed"
    ADAPTIVE = "adaptive"


class PacingCounters:
    """Counters for controller observability."""

    __slots__ = (
        "attempts",
        "successes",
        "failures",
        "skipped_ticks",
        "paused_ticks",
        "pauses",
        "failures_by_kind",
    )

    def __init__(self) -> None:
        self.attempts: int = 0
        self.successes: int = 0
        self.failures: int = 0
        self.skipped_ticks: int = 0
        self.paused_ticks: int = 0
        self.pauses: int = 0
        self.failures_by_kind: dict = {}

    def record(self, outcome: DecodeOutcome) -> None:
        self.attempts += 1
        if outcome.ok:
            self.successes += 1
        else:
            self.failures += 1
            kind = outcome.kind.value
            self.failures_by_kind[kind] = self.failures_by_kind.get(kind, 0) + 1

    def to_dict(self) -> dict:
        """Export counters as a flat dict."""
        data = {
            "attempts": self.attempts,
            "successes": self.successes,
            "failures": self.failures,
            "skipped_ticks": self.skipped_ticks,
            "paused_ticks": self.paused_ticks,
            "pauses": self.pauses,
        }
        for kind, count in self.failures_by_kind.items():
            data[f"failures_{kind.lower()}"] = count
        return data


FallbackProducer = Callable[[int, FrameDimensions, float], PixelFrame]


class PacingController:
    """
    Frame-pacing and decode-pipeline controller.

    Attributes:
        source: Video source being decoded
        dimensions: Output frame size
        fps: Target frame rate
        mode: fixed or adaptive pacing
        cursor: Wrap-around frame cursor
        cache: Published frames
        counters: Operational counters

    Example:
        controller = PacingController(
            decoder=FFmpegFrameDecoder(),
            source=VideoSource("clip.mp4"),
            dimensions=FrameDimensions(192, 144),
            cursor=FrameCursor(total_frames=360),
            fps=6,
        )

        task = asyncio.create_task(controller.run())
        snapshot = controller.current_frame()

        await controller.stop()
        await task
    """

    def __init__(
        self,
        decoder: FrameDecoder,
        source: VideoSource,
        dimensions: FrameDimensions,
        cursor: FrameCursor,
        fps: float,
        policy: Optional[FailurePolicy] = None,
        cache: Optional[FrameCache] = None,
        mode: PacingMode = PacingMode.FIXED,
        min_delay_seconds: float = 0.02,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        fallback: FallbackProducer = generate_pattern,
    ) -> None:
        """
        Initialize pacing controller.

        Args:
            decoder: Decode backend
            source: Video source to decode
            dimensions: Output frame size
            cursor: Cursor sized from the probed duration
            fps: Target frame rate (> 0)
            policy: Failure policy (defaults scaled to fps)
            cache: Frame cache (default capacity 60)
            mode: Tick scheduling strategy
            min_delay_seconds: Lower bound between adaptive ticks
            clock: Monotonic clock used for pacing and cooldowns
            wall_clock: UNIX clock used for decoded_at stamps
            fallback: Producer of the procedural fallback frame
        """
        if fps <= 0:
            raise ValueError("fps must be > 0")
        if min_delay_seconds < 0:
            raise ValueError("min_delay_seconds must be >= 0")

        self.decoder = decoder
        self.source = source
        self.dimensions = dimensions
        self.cursor = cursor
        self.fps = fps
        self.policy = policy or FailurePolicy()
        self.cache = cache or FrameCache()
        self.mode = PacingMode(mode)
        self.min_delay_seconds = min_delay_seconds

        self._clock = clock
        self._wall_clock = wall_clock
        self._fallback = fallback

        # Gate and failure state
        self._state: ControllerState = ControllerState.IDLE
        self._error_streak: int = 0
        self._paused_until: Optional[float] = None
        self._last_outcome: Optional[OutcomeKind] = None
        self._last_decode_seconds: float = 0.0

        # Scheduling
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()
        self._decode_task: Optional[asyncio.Task] = None
        self._fallback_snapshot: Optional[FrameSnapshot] = None

        self.counters = PacingCounters()

        logger.info(
            f"PacingController initialized: source={source}, "
            f"size={dimensions}, fps={fps}, mode={self.mode.value}, "
            f"total_frames={cursor.total_frames}"
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def error_streak(self) -> int:
        return self._error_streak

    @property
    def paused_until(self) -> Optional[float]:
        """Monotonic time the current pause ends, or None."""
        return self._paused_until

    @property
    def last_outcome(self) -> Optional[OutcomeKind]:
        return self._last_outcome

    @property
    def last_decode_seconds(self) -> float:
        return self._last_decode_seconds

    @property
    def interval_seconds(self) -> float:
        """Target time between frames."""
        return 1.0 / self.fps

    @property
    def running(self) -> bool:
        return self._running

    @property
    def ready(self) -> bool:
        """True once at least one frame has been decoded."""
        return self.cache.current is not None

    # -------------------------------------------------------------------------
    # Single step
    # -------------------------------------------------------------------------

    async def tick(self) -> Optional[DecodeOutcome]:
        """
        Run one gated decode attempt.

        Returns:
            The DecodeOutcome, or None if the tick was a no-op
            (decode already in flight, or paused).
        """
        if self._state is ControllerState.DECODING:
            self.counters.skipped_ticks += 1
            return None

        if self._state is ControllerState.PAUSED:
            if self._paused_until is not None and self._clock() < self._paused_until:
                self.counters.paused_ticks += 1
                return None
            self._resume()

        self._state = ControllerState.DECODING
        index = self.cursor.index
        seek_seconds = self.cursor.seek_seconds(self.fps)
        started = self._clock()

        try:
            outcome = await self._decode(seek_seconds)
        finally:
            self._last_decode_seconds = self._clock() - started
            self._state = ControllerState.IDLE

        self._apply(index, outcome)
        return outcome

    async def _decode(self, seek_seconds: float) -> DecodeOutcome:
        try:
            return await self.decoder.decode_frame(self.source, seek_seconds, self.dimensions)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Decoder raised at {seek_seconds:.3f}s")
            return DecodeOutcome.subprocess_error(f"{type(e).__name__}: {e}")

    def _apply(self, index: int, outcome: DecodeOutcome) -> None:
        """Apply the failure policy to one outcome."""
        decision = self.policy.decide(self._error_streak, outcome)

        self._error_streak = decision.error_streak
        self._last_outcome = outcome.kind
        self.counters.record(outcome)

        if decision.action is PolicyAction.ADVANCE:
            self.cache.publish(
                FrameSnapshot(
                    pixels=outcome.frame,
                    index=index,
                    timestamp=index / self.fps,
                    decoded_at=self._wall_clock(),
                )
            )
            self.cursor.advance(decision.step)
            return

        if decision.action is PolicyAction.PAUSE:
            self._state = ControllerState.PAUSED
            self._paused_until = self._clock() + decision.pause_seconds
            self.counters.pauses += 1
            logger.warning(
                f"Decode failing ({outcome.kind.value}, streak={self._error_streak}), "
                f"pausing for {decision.pause_seconds:.1f}s at frame {index}: "
                f"{outcome.message}"
            )
            return

        if decision.step > 0:
            self.cursor.advance(decision.step)

        logger.warning(
            f"Decode failed at frame {index} ({outcome.kind.value}): {outcome.message}. "
            f"{decision.action.value} -> frame {self.cursor.index}, "
            f"streak={self._error_streak}"
        )

    def _resume(self) -> None:
        self._error_streak = self.policy.resume_streak()
        self._paused_until = None
        self._state = ControllerState.IDLE
        logger.info(f"Cooldown over, resuming decode at frame {self.cursor.index}")

    # -------------------------------------------------------------------------
    # Scheduling loop
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        """
        Start pacing.

        Runs until stop() is called. A stop() issued before the loop
        starts is honoured: run() then returns at once.
        """
        if self._stop_event.is_set():
            logger.info("PacingController stopped before start")
            return
        self._running = True

        logger.info(f"PacingController starting ({self.mode.value} mode)")

        try:
            if self.mode is PacingMode.FIXED:
                await self._run_fixed()
            else:
                await self._run_adaptive()
        finally:
            self._running = False
            await self._cancel_decode()
            logger.info("PacingController stopped")

    async def stop(self) -> None:
        """
        Stop pacing gracefully.

        Signals the run loop to exit and cancels any in-flight decode.
        """
        logger.info("PacingController stopping...")
        self._running = False
        self._stop_event.set()
        await self._cancel_decode()

    async def _run_fixed(self) -> None:
        interval = self.interval_seconds
        while self._running and not self._stop_event.is_set():
            if self._state is ControllerState.DECODING:
                # Gate closed: counted as a skipped tick, returns at once
                await self.tick()
            else:
                self._decode_task = asyncio.create_task(
                    self.tick(),
                    name="framecast_decode",
                )
                self._decode_task.add_done_callback(self._on_tick_done)

            if await self._wait(interval):
                break

    async def _run_adaptive(self) -> None:
        while self._running and not self._stop_event.is_set():
            await self.tick()

            if self._state is ControllerState.PAUSED and self._paused_until is not None:
                delay = max(self.min_delay_seconds, self._paused_until - self._clock())
            else:
                delay = max(
                    self.min_delay_seconds,
                    self.interval_seconds - self._last_decode_seconds,
                )

            if await self._wait(delay):
                break

    async def _wait(self, delay: float) -> bool:
        """Sleep for `delay`, returning True early if stop() was called."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False

    async def _cancel_decode(self) -> None:
        task = self._decode_task
        self._decode_task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _on_tick_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Decode tick crashed: {error!r}")

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def current_frame(self) -> FrameSnapshot:
        """
        Latest published frame, never blocking.

        Returns the procedural fallback pattern at the current cursor
        index if nothing has been decoded yet.
        """
        snapshot = self.cache.current
        if snapshot is not None:
            return snapshot
        return self._fallback_frame()

    def recent_frames(self, count: int) -> List[FrameSnapshot]:
        """Up to `count` recently published frames, oldest first."""
        frames = self.cache.recent(count)
        if not frames and count > 0:
            return [self.current_frame()]
        return frames

    def _fallback_frame(self) -> FrameSnapshot:
        index = self.cursor.index
        cached = self._fallback_snapshot
        if cached is not None and cached.index == index:
            return cached

        snapshot = FrameSnapshot(
            pixels=self._fallback(index, self.dimensions, self.fps),
            index=index,
            timestamp=index / self.fps,
            decoded_at=self._wall_clock(),
            is_fallback=True,
        )
        self._fallback_snapshot = snapshot
        return snapshot

    def server_status(self) -> dict:
        """
        Controller status for observability.

        Returns:
            Dict matching the StatusResponse model
        """
        paused_for: Optional[float] = None
        if self._paused_until is not None:
            paused_for = max(0.0, self._paused_until - self._clock())

        return {
            "state": self._state.value,
            "frame": self.cursor.index,
            "total_frames": self.cursor.total_frames,
            "wraps": self.cursor.wraps,
            "timestamp": self.cursor.index / self.fps,
            "duration_seconds": self.cursor.total_frames / self.fps,
            "error_streak": self._error_streak,
            "paused_for_seconds": paused_for,
            "last_outcome": self._last_outcome.value if self._last_outcome else None,
            "last_decode_ms": round(self._last_decode_seconds * 1000.0, 1),
            "counters": self.counters.to_dict(),
            "cache": self.cache.metrics(),
        }
