import asyncio
import contextlib
from typing import Optional

from relay_service.core.interfaces import DisplaySurface
from relay_service.core.logging import logger


class TypingHeartbeat:
    """Sends a typing indicator now and then every `interval` seconds until stopped.

    Use as an async context manager; leaving the block always stops and joins
    the background task. Send failures are logged and never propagate.
    """

    def __init__(self, surface: DisplaySurface, interval: float = 2.0):
        self.surface = surface
        self.interval = interval
        self._stopped = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _pulse(self) -> None:
        try:
            await self.surface.send_typing()
        except Exception as e:
            logger.info(f"Typing indicator failed: {e}")

    async def _loop(self) -> None:
        while not self._stopped.is_set():
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                await self._pulse()

    async def start(self) -> None:
        await self._pulse()
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        self._stopped.set()
        task, self._task = self._task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def __aenter__(self) -> "TypingHeartbeat":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
