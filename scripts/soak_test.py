#!/usr/bin/env python3
"""
Decode Pipeline Soak Test
=========================

Standalone script that runs the pacing controller against a real video
source with ffmpeg, without the HTTP layer.

This script:
    1. Probes the source (retry, fallback, default duration)
    2. Runs the controller for a configurable duration
    3. Logs decode stats every N seconds
    4. Reports a final summary

Prerequisites:
    - ffmpeg and ffprobe on PATH
    - Install the package: pip install -e .

Usage:
    python scripts/soak_test.py --source ./video.mp4 --duration 120
    python scripts/soak_test.py --source https://cdn.example.com/clip.mp4 --mode adaptive
"""

import argparse
import asyncio
import logging
import os
import sys
import time

from framecast.decode import FFmpegFrameDecoder, FFprobeProbe, RetryPolicy, SourceProber
from framecast.models import FrameDimensions, VideoSource
from framecast.pacing import (
    FailurePolicy,
    FailureThresholds,
    FrameCursor,
    PacingController,
    PacingMode,
)


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_soak(
    source: str,
    width: int,
    height: int,
    fps: float,
    mode: str,
    duration: int,
    report_interval: int,
) -> dict:
    """
    Run the soak test.

    Returns:
        Final counters dict
    """
    logger.info("=" * 60)
    logger.info("Decode Pipeline Soak Test")
    logger.info("=" * 60)
    logger.info(f"Source: {source}")
    logger.info(f"Output: {width}x{height} @ {fps}fps ({mode})")
    logger.info(f"Duration: {duration} seconds")
    logger.info("=" * 60)

    prober = SourceProber(FFprobeProbe(), RetryPolicy(max_attempts=2, backoff_seconds=1.0))
    report = await prober.probe_with_fallback(VideoSource(source))

    controller = PacingController(
        decoder=FFmpegFrameDecoder(),
        source=report.source,
        dimensions=FrameDimensions(width, height),
        cursor=FrameCursor(total_frames=report.total_frames(fps)),
        fps=fps,
        policy=FailurePolicy(FailureThresholds.for_fps(fps)),
        mode=PacingMode(mode),
    )
    controller_task = asyncio.create_task(controller.run())

    start_time = time.time()
    last_report_time = start_time
    last_successes = 0

    try:
        while time.time() - start_time < duration:
            await asyncio.sleep(0.5)

            since_report = time.time() - last_report_time
            if since_report < report_interval:
                continue

            status = controller.server_status()
            counters = status["counters"]
            rate = (counters["successes"] - last_successes) / since_report

            logger.info("-" * 40)
            logger.info(f"Progress Report (elapsed: {time.time() - start_time:.0f}s)")
            logger.info(f"  State: {status['state']}")
            logger.info(f"  Frame: {status['frame']}/{status['total_frames']}")
            logger.info(f"  Decoded FPS: {rate:.1f}")
            logger.info(f"  Last decode: {status['last_decode_ms']}ms ({status['last_outcome']})")
            logger.info(f"  Error streak: {status['error_streak']}")
            logger.info(f"  Skipped ticks: {counters['skipped_ticks']}")

            last_report_time = time.time()
            last_successes = counters["successes"]
    finally:
        await controller.stop()
        try:
            await asyncio.wait_for(controller_task, timeout=5.0)
        except asyncio.TimeoutError:
            controller_task.cancel()
            try:
                await controller_task
            except asyncio.CancelledError:
                pass

    total_time = time.time() - start_time
    counters = controller.counters.to_dict()

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {total_time:.1f} seconds")
    for name, value in counters.items():
        logger.info(f"{name}: {value}")
    logger.info("=" * 60)

    if counters["successes"] > 0:
        logger.info("PASSED - frames decoded")
    else:
        logger.error("FAILED - no frames decoded")

    return counters


def main():
    parser = argparse.ArgumentParser(description="Soak test for the frame decode pipeline")
    parser.add_argument(
        "--source",
        type=str,
        default=os.environ.get("FRAMECAST_VIDEO_URL", "./video.mp4"),
        help="Video path or URL",
    )
    parser.add_argument("--width", type=int, default=192, help="Frame width (default: 192)")
    parser.add_argument("--height", type=int, default=144, help="Frame height (default: 144)")
    parser.add_argument("--fps", type=float, default=6.0, help="Target FPS (default: 6)")
    parser.add_argument(
        "--mode",
        choices=["fixed", "adaptive"],
        default="fixed",
        help="Pacing mode (default: fixed)",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=120,
        help="Test duration in seconds (default: 120)",
    )
    parser.add_argument(
        "--report-interval",
        type=int,
        default=10,
        help="Seconds between progress reports (default: 10)",
    )

    args = parser.parse_args()

    result = asyncio.run(run_soak(
        source=args.source,
        width=args.width,
        height=args.height,
        fps=args.fps,
        mode=args.mode,
        duration=args.duration,
        report_interval=args.report_interval,
    ))

    sys.exit(0 if result["successes"] > 0 else 1)


if __name__ == "__main__":
    main()
