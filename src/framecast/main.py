"""
framecast Main Application
==========================

FastAPI entry point for the frame server.

Startup:
    1. Probe the source (retry, fallback source, default duration)
    2. Size the frame cursor from duration x fps
    3. Start the pacing controller (and keep-alive pinger if enabled)

Endpoints:
    GET  /                       - Service summary
    GET  /ping                   - Keep-alive / liveness ping
    GET  /health                 - Liveness probe
    GET  /frame                  - Current frame, pixels as [r, g, b] triplets
    GET  /frames/{count}         - Batch of recent frames (default 30, max 60)
    GET  /frames-compact/{count} - Batch as flat RGB lists (default 20, max 40)
    GET  /frame-stream           - Up to 10 recent frames as data: records
    GET  /info                   - Source, duration and endpoint map
    GET  /status                 - Controller state, error streak, counters
    WS   /ws/frames              - Current frame pushed at the target fps
"""

import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from framecast.config import Settings, settings as default_settings
from framecast.decode import (
    FFmpegFrameDecoder,
    FFprobeProbe,
    FrameDecoder,
    ProbeReport,
    RetryPolicy,
    SourceProber,
)
from framecast.keepalive import KeepAlivePinger, resolve_keepalive_url
from framecast.models import (
    BatchFrame,
    CompactBatchResponse,
    FrameBatchResponse,
    FrameDimensions,
    FrameResponse,
    InfoResponse,
    PingResponse,
    StatusResponse,
    VideoSource,
)
from framecast.pacing import (
    FailurePolicy,
    FailureThresholds,
    FrameCache,
    FrameCursor,
    PacingController,
    PacingMode,
)


logger = logging.getLogger(__name__)


BATCH_DEFAULT = 30
BATCH_MAX = 60
COMPACT_DEFAULT = 20
COMPACT_MAX = 40
STREAM_FRAMES = 10

ENDPOINTS = {
    "/frame": "Single frame",
    "/frames/30": "Batch of up to 30 recent frames",
    "/frames-compact/20": "Compact batch of up to 20 recent frames",
    "/frame-stream": "Stream of up to 10 recent frames",
    "/status": "Decode pipeline status",
    "/ws/frames": "WebSocket frame push",
}


# =============================================================================
# Component Factories
# =============================================================================

def create_prober(settings: Settings) -> SourceProber:
    """Startup prober from config."""
    return SourceProber(
        FFprobeProbe(
            ffprobe_path=settings.decoder.ffprobe_path,
            timeout_seconds=settings.decoder.probe_timeout_seconds,
            http_timeout_seconds=settings.probe.http_timeout_seconds,
        ),
        retry_policy=RetryPolicy(
            max_attempts=settings.probe.max_attempts,
            backoff_seconds=settings.probe.backoff_seconds,
        ),
        default_duration_seconds=settings.probe.default_duration_seconds,
    )


def create_policy(settings: Settings) -> FailurePolicy:
    """Failure policy from config; large skip defaults to two seconds of video."""
    failure = settings.failure
    overrides = dict(
        low_threshold=failure.low_threshold,
        high_threshold=failure.high_threshold,
        small_skip=failure.small_skip,
        cooldown_seconds=failure.cooldown_seconds,
        resume_streak=failure.resume_streak,
        retry_in_place=failure.retry_in_place,
    )
    if failure.large_skip is not None:
        overrides["large_skip"] = failure.large_skip
    return FailurePolicy(FailureThresholds.for_fps(settings.frame.fps, **overrides))


def create_controller(
    settings: Settings,
    report: ProbeReport,
    decoder: Optional[FrameDecoder] = None,
) -> PacingController:
    """Pacing controller for the probed source."""
    fps = settings.frame.fps
    if decoder is None:
        decoder = FFmpegFrameDecoder(
            ffmpeg_path=settings.decoder.ffmpeg_path,
            timeout_seconds=settings.decoder.decode_timeout_seconds,
        )

    return PacingController(
        decoder=decoder,
        source=report.source,
        dimensions=FrameDimensions(settings.frame.width, settings.frame.height),
        cursor=FrameCursor(total_frames=report.total_frames(fps)),
        fps=fps,
        policy=create_policy(settings),
        cache=FrameCache(capacity=settings.cache.capacity),
        mode=PacingMode(settings.pacing.mode),
        min_delay_seconds=settings.pacing.min_delay_ms / 1000.0,
    )


def _batch_size(count: Optional[int], default: int, maximum: int) -> int:
    if count is None or count <= 0:
        return default
    return min(count, maximum)


async def _stop_task(task: Optional[asyncio.Task], timeout: float = 5.0) -> None:
    if task is None:
        return
    try:
        await asyncio.wait_for(task, timeout=timeout)
    except asyncio.TimeoutError:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    settings: Settings = default_settings,
    decoder: Optional[FrameDecoder] = None,
    prober: Optional[SourceProber] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Loaded configuration
        decoder: Decode backend (default: ffmpeg)
        prober: Startup prober (default: ffprobe with configured retries)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Application lifespan manager with graceful shutdown."""
        app.state.startup_time = time.time()
        logger.info(f"Starting {settings.service.name} {settings.service.version}")

        source = VideoSource(settings.source.url)
        fallback = (
            VideoSource(settings.source.fallback_url)
            if settings.source.fallback_url
            else None
        )
        logger.info(f"Video source: {source} (fallback: {fallback})")

        report = await (prober or create_prober(settings)).probe_with_fallback(source, fallback)
        controller = create_controller(settings, report, decoder)

        app.state.probe_report = report
        app.state.controller = controller
        pacing_task = asyncio.create_task(controller.run(), name="pacing_controller")

        pinger: Optional[KeepAlivePinger] = None
        pinger_task: Optional[asyncio.Task] = None
        keepalive_url = resolve_keepalive_url(
            enabled=settings.keepalive.enabled,
            url=settings.keepalive.url,
            environment=settings.service.environment,
            external_url=settings.keepalive.external_url,
        )
        if keepalive_url:
            pinger = KeepAlivePinger(keepalive_url, settings.keepalive.interval_seconds)
            pinger_task = asyncio.create_task(pinger.run(), name="keepalive")

        logger.info(
            f"Serving {settings.frame.width}x{settings.frame.height} @ "
            f"{settings.frame.fps}fps, {controller.cursor.total_frames} frames"
        )

        yield

        # Shutdown
        logger.info("Shutting down gracefully...")
        if pinger:
            await pinger.stop()
        await controller.stop()
        await _stop_task(pacing_task)
        await _stop_task(pinger_task)
        logger.info("Shutdown complete")

    app = FastAPI(
        title="framecast",
        description="Decoded video frames as pixel arrays",
        version=settings.service.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    _register_routes(app)
    return app


# =============================================================================
# HTTP Endpoints
# =============================================================================

def _controller(request: Request) -> PacingController:
    return request.app.state.controller


def _register_routes(app: FastAPI) -> None:

    @app.get("/")
    async def root(request: Request) -> JSONResponse:
        """Service summary."""
        controller = _controller(request)
        cfg: Settings = request.app.state.settings
        return JSONResponse({
            "service": cfg.service.name,
            "version": cfg.service.version,
            "status": "running",
            "uptime": int(time.time() - request.app.state.startup_time),
            "frame": controller.cursor.index,
            "resolution": str(controller.dimensions),
            "fps": controller.fps,
            "state": controller.state.value,
        })

    @app.get("/ping")
    async def ping(request: Request) -> JSONResponse:
        controller = _controller(request)
        payload = PingResponse(ready=controller.ready, frame=controller.cursor.index)
        return JSONResponse(payload.model_dump())

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        """
        Liveness probe - is the process alive?

        Always returns 200 while the service runs, whatever the
        state of the decode pipeline.
        """
        return JSONResponse({
            "status": "healthy",
            "uptime_seconds": round(time.time() - request.app.state.startup_time, 1),
        })

    @app.get("/frame")
    async def frame(request: Request) -> JSONResponse:
        """Current frame."""
        snapshot = _controller(request).current_frame()
        return JSONResponse(FrameResponse.from_snapshot(snapshot).model_dump())

    @app.get("/frames")
    @app.get("/frames/{count}")
    async def frames(request: Request, count: Optional[int] = None) -> JSONResponse:
        """Batch of recent frames, oldest first."""
        controller = _controller(request)
        snapshots = controller.recent_frames(_batch_size(count, BATCH_DEFAULT, BATCH_MAX))
        payload = FrameBatchResponse(
            frames=[BatchFrame.from_snapshot(s) for s in snapshots],
            start_frame=snapshots[0].index,
            width=controller.dimensions.width,
            height=controller.dimensions.height,
            fps=controller.fps,
            batch_size=len(snapshots),
        )
        return JSONResponse(payload.model_dump(by_alias=True))

    @app.get("/frames-compact")
    @app.get("/frames-compact/{count}")
    async def frames_compact(request: Request, count: Optional[int] = None) -> JSONResponse:
        """Batch of recent frames as flat RGB lists."""
        controller = _controller(request)
        snapshots = controller.recent_frames(_batch_size(count, COMPACT_DEFAULT, COMPACT_MAX))
        payload = CompactBatchResponse(
            frames=[s.pixels.flat() for s in snapshots],
            start_frame=snapshots[0].index,
            width=controller.dimensions.width,
            height=controller.dimensions.height,
            fps=controller.fps,
        )
        return JSONResponse(payload.model_dump(by_alias=True))

    @app.get("/frame-stream")
    async def frame_stream(request: Request) -> StreamingResponse:
        """Recent frames as `data: {...}` records."""
        snapshots = _controller(request).recent_frames(STREAM_FRAMES)

        async def records() -> AsyncIterator[str]:
            for snapshot in snapshots:
                body = BatchFrame.from_snapshot(snapshot).model_dump()
                yield f"data: {json.dumps(body)}\n\n"

        return StreamingResponse(
            records(),
            media_type="text/plain",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.get("/info")
    async def info(request: Request) -> JSONResponse:
        """Source and stream description."""
        controller = _controller(request)
        report: ProbeReport = request.app.state.probe_report
        payload = InfoResponse(
            current_frame=controller.cursor.index,
            timestamp=controller.cursor.index / controller.fps,
            duration=controller.cursor.total_frames / controller.fps,
            fps=controller.fps,
            width=controller.dimensions.width,
            height=controller.dimensions.height,
            total_frames=controller.cursor.total_frames,
            source=str(controller.source),
            probe_used_default=report.used_default,
            status="decoding" if controller.ready else "fallback pattern",
            endpoints=ENDPOINTS,
        )
        return JSONResponse(payload.model_dump(by_alias=True))

    @app.get("/status")
    async def status(request: Request) -> JSONResponse:
        """Decode pipeline status for observability."""
        payload = StatusResponse.model_validate(_controller(request).server_status())
        return JSONResponse(payload.model_dump())

    @app.websocket("/ws/frames")
    async def frame_push(websocket: WebSocket) -> None:
        """Push the current frame at the target rate."""
        await websocket.accept()
        controller: PacingController = websocket.app.state.controller
        logger.info("Client connected to /ws/frames")

        last_sent: Optional[tuple] = None
        try:
            while controller.running:
                snapshot = controller.current_frame()
                key = (snapshot.index, snapshot.decoded_at)
                if key != last_sent:
                    await websocket.send_json(FrameResponse.from_snapshot(snapshot).model_dump())
                    last_sent = key
                await asyncio.sleep(controller.interval_seconds)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.warning(f"WebSocket error: {e}")
        finally:
            logger.info("Client disconnected from /ws/frames")


app = create_app()


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(
        "framecast.main:app",
        host=default_settings.server.host,
        port=default_settings.server.port,
        reload=False,
    )


if __name__ == "__main__":
    run()
