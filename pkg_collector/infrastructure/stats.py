import asyncio
import logging
import os
import resource
import sys
import time
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 15.0


def _max_rss_mb() -> float:
    usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is reported in bytes on macOS and in kilobytes elsewhere
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return usage / divisor


class ProcessStats:
    """
    Periodically logs the process pid, peak memory and uptime.
    Only runs when the stats logger is enabled for DEBUG.
    """

    def __init__(self, interval: float = DEFAULT_INTERVAL):
        self.interval = interval
        self.started_at = time.monotonic()
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is not None or not logger.isEnabledFor(logging.DEBUG):
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    def line(self) -> str:
        uptime = int(time.monotonic() - self.started_at)
        return f"pid: {os.getpid()}; memory: {_max_rss_mb():.2f} MB; uptime: {uptime}s"

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            logger.debug(self.line())
