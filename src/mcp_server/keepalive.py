"""Periodic keepalive ping.

Some hosts idle a service that receives no traffic. When a keepalive URL
is configured the server pings it on a fixed interval from a background
task that shares no state with request handling.
"""

import asyncio
from typing import Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from shared.config import KeepaliveSettings
from shared.logging import get_logger

logger = get_logger(__name__)


class KeepaliveTask:
    """Background task pinging a URL every ``interval_seconds``."""

    def __init__(
        self,
        url: str,
        interval_seconds: float = 600.0,
        timeout_seconds: float = 10.0,
        attempts: int = 3,
        backoff_seconds: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        self.url = url
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self._transport = transport
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(cls, settings: KeepaliveSettings) -> Optional["KeepaliveTask"]:
        """Build the task, or None when no URL is configured."""
        if not settings.url:
            return None
        return cls(
            url=settings.url,
            interval_seconds=settings.interval_seconds,
            timeout_seconds=settings.timeout_seconds,
            attempts=settings.attempts,
            backoff_seconds=settings.backoff_seconds,
        )

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="keepalive")
        logger.info("Keepalive started", url=self.url, interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Keepalive stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.ping()

    async def ping(self) -> bool:
        """
        Ping the URL, retrying with exponential backoff.

        Returns:
            True if a ping got a success status; failures are logged only
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.attempts),
                wait=wait_exponential(multiplier=self.backoff_seconds, max=30),
                retry=retry_if_exception_type(httpx.HTTPError),
                reraise=True,
            ):
                with attempt:
                    async with httpx.AsyncClient(
                        timeout=self.timeout_seconds,
                        transport=self._transport
                    ) as client:
                        response = await client.get(self.url)
                        response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Keepalive ping failed", url=self.url, error_type=type(e).__name__)
            return False

        logger.debug("Keepalive ping ok", url=self.url, status_code=response.status_code)
        return True
