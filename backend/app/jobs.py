"""
In-flight scrape jobs, keyed by place id.

A second request for the same place awaits the running job instead of
starting another browser session. Entries leave the map when the job
finishes, or when they are older than the stale timeout.
"""

import asyncio
import logging
import time

from app.config import get_settings


logger = logging.getLogger(__name__)


class ScrapeJobRegistry:
    def __init__(self, stale_after: float | None = None, clock=time.monotonic):
        self.stale_after = stale_after if stale_after is not None else get_settings().scrape_job_timeout
        self._clock = clock
        self._jobs: dict[str, tuple[float, asyncio.Task]] = {}

    def in_progress(self, key: str) -> asyncio.Task | None:
        entry = self._jobs.get(key)
        return entry[1] if entry else None

    def sweep_stale(self) -> int:
        now = self._clock()
        stale = [key for key, (started, _) in self._jobs.items() if now - started > self.stale_after]
        for key in stale:
            logger.info("[jobs] removing stale scrape job for %s", key)
            self._jobs.pop(key, None)
        return len(stale)

    def start(self, key: str, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._jobs[key] = (self._clock(), task)

        def _done(_):
            entry = self._jobs.get(key)
            if entry and entry[1] is task:
                self._jobs.pop(key, None)

        task.add_done_callback(_done)
        return task

    async def join(self, key: str):
        """Await the running job for `key`. None if there is none or it failed."""
        existing = self.in_progress(key)
        if existing is None:
            return None
        logger.info("[jobs] scrape already in progress for %s, waiting", key)
        try:
            return await asyncio.shield(existing)
        except Exception as e:
            logger.warning("[jobs] in-flight job for %s failed: %s", key, e)
            return None

    async def run(self, key: str, factory):
        """
        Run factory() as the job for `key`, or await the one already running.
        Returns (result, joined). For a joined job the result is whatever the
        running job returned, or None if it failed.
        """
        if self.in_progress(key) is not None:
            return await self.join(key), True
        return await self.start(key, factory()), False

    def __len__(self) -> int:
        return len(self._jobs)


registry = ScrapeJobRegistry()
