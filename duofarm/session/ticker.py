"""
Health ticker - periodically refreshes animal health for the presentation layer

The engine never schedules itself; whoever draws the farm owns a ticker and
decides the cadence. A slower cadence only means a larger decay step on the
next refresh.

Usage:
    ticker = HealthTicker(lambda: session.async_refresh(room_id), interval_seconds=30)
    ticker.start()      # inside a running event loop
    ...
    await ticker.stop()
"""
import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class HealthTicker:
    def __init__(self, refresh: Callable[[], Any], interval_seconds: float = 30.0):
        if interval_seconds <= 0:
            raise ValueError('interval_seconds must be positive')
        self._refresh = refresh
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self):
        """Run one refresh; failures are logged and do not stop the ticker"""
        try:
            result = self._refresh()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Health refresh failed")
        finally:
            self.ticks += 1

    async def _run(self):
        while True:
            await self.tick()
            await asyncio.sleep(self.interval_seconds)

    def start(self):
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
