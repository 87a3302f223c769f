"""
Keep-Alive Pinger
=================

Periodically requests the service's own /ping endpoint so hosting
platforms that idle inactive instances keep the process warm.

Failures are logged and ignored; the pinger never affects serving.
"""

import asyncio
import logging
from typing import Optional

import requests


logger = logging.getLogger(__name__)


class KeepAlivePinger:
    """
    Background self-ping loop.

    Attributes:
        url: Public base URL of this service
        interval_seconds: Time between pings
        ping_count: Successful pings
        error_count: Failed pings
    """

    def __init__(
        self,
        url: str,
        interval_seconds: float = 840.0,
        request_timeout_seconds: float = 10.0,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self.url = url.rstrip("/")
        self.interval_seconds = interval_seconds
        self.request_timeout_seconds = request_timeout_seconds

        self.ping_count: int = 0
        self.error_count: int = 0

        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()

    @property
    def ping_url(self) -> str:
        return f"{self.url}/ping"

    def ping_once(self) -> bool:
        """
        Issue one blocking ping.

        Returns:
            True if the service answered with a 2xx status.
        """
        try:
            response = requests.get(self.ping_url, timeout=self.request_timeout_seconds)
        except requests.RequestException as e:
            self.error_count += 1
            logger.debug(f"Keep-alive ping failed: {e}")
            return False

        if response.ok:
            self.ping_count += 1
            return True

        self.error_count += 1
        logger.debug(f"Keep-alive ping returned HTTP {response.status_code}")
        return False

    async def run(self) -> None:
        """Ping every interval until stop() is called."""
        if self._stop_event.is_set():
            return
        self._running = True
        logger.info(f"Keep-alive pinging {self.ping_url} every {self.interval_seconds:.0f}s")

        while self._running:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                break
            except asyncio.TimeoutError:
                pass
            await asyncio.to_thread(self.ping_once)

        logger.info("Keep-alive stopped")

    async def stop(self) -> None:
        self._running = False
        self._stop_event.set()


def resolve_keepalive_url(
    enabled: bool,
    url: Optional[str],
    environment: str,
    external_url: Optional[str],
) -> Optional[str]:
    """
    Decide whether to run the pinger and against which URL.

    An explicit `enabled` flag with a URL always wins. Otherwise the
    pinger runs in production when the platform exposes an external URL.
    """
    target = url or external_url
    if not target:
        return None
    if enabled or environment.lower() == "production":
        return target
    return None
