import asyncio
import logging
import os
import unittest

from pkg_collector.infrastructure.stats import ProcessStats

STATS_LOGGER = "pkg_collector.infrastructure.stats"


class TestProcessStats(unittest.IsolatedAsyncioTestCase):
    def test_line(self) -> None:
        line = ProcessStats().line()

        self.assertIn(f"pid: {os.getpid()}", line)
        self.assertIn("MB", line)

    async def test_does_not_start_below_debug(self) -> None:
        logger = logging.getLogger(STATS_LOGGER)
        logger.setLevel(logging.INFO)
        self.addCleanup(logger.setLevel, logging.NOTSET)
        stats = ProcessStats()

        stats.start()

        self.assertIsNone(stats._task)

    async def test_logs_periodically_until_stopped(self) -> None:
        stats = ProcessStats(interval=0.01)

        # assertLogs lowers the logger to DEBUG, which enables the stats task
        with self.assertLogs(STATS_LOGGER, level="DEBUG") as logs:
            stats.start()
            await asyncio.sleep(0.05)
            await stats.stop()

        self.assertIsNone(stats._task)
        self.assertIn("uptime", logs.output[0])
