"""
Periodic background workers.

A worker runs one coroutine every ``interval_seconds`` on the application's
event loop, opening a fresh database session per pass. A failing pass is
logged and the loop keeps going; ``stop()`` wakes the loop and waits for it.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal_apr.core.logging_config import get_logger
from portal_apr.core.monitoring import log_sync_pass

logger = get_logger(__name__)


class PeriodicWorker:
    """Base class for interval jobs. Subclasses implement :meth:`run_once`."""

    name = "worker"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: float,
        run_on_start: bool = False,
    ) -> None:
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._run_on_start = run_on_start
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.passes = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self, session: AsyncSession) -> int:
        """Do one pass and return the number of rows changed."""
        raise NotImplementedError

    async def tick(self) -> int:
        """Run a single pass with its own session, logging instead of raising."""
        started = time.perf_counter()
        try:
            async with self._session_factory() as session:
                changed = await self.run_once(session)
        except Exception as e:
            logger.error(f"{self.name} pass failed: {e}", exc_info=True)
            return 0
        finally:
            self.passes += 1

        duration_ms = (time.perf_counter() - started) * 1000
        log_sync_pass(self.name, changed, duration_ms)
        if changed:
            logger.info(f"{self.name} pass changed {changed} row(s) in {duration_ms:.0f}ms")
        else:
            logger.debug(f"{self.name} pass found nothing to do")
        return changed

    async def _loop(self) -> None:
        if self._run_on_start:
            await self.tick()
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                await self.tick()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info(f"{self.name} started (interval={self._interval}s)")

    async def stop(self, timeout: float = 5.0) -> None:
        """Signal the loop to stop and wait for the current pass to finish."""
        if self._task is None:
            return
        self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self.name} did not stop within {timeout}s, cancelling")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None
        logger.info(f"{self.name} stopped")
