from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable, List, Optional

from .alerts.models import Alert
from .monitor import AlertMonitor


logger = logging.getLogger("creditwatch.scheduler")

ScanCallback = Callable[[List[Alert]], None]


class ScanScheduler:
    """
    Repeats ``AlertMonitor.scan_once`` every ``interval_seconds``.

    Scans run in a worker thread so the event loop stays responsive, and
    ``stop()`` returns without waiting out the current interval. A failing
    scan is logged and counted; the next one runs on schedule.
    """

    def __init__(
        self,
        monitor: AlertMonitor,
        *,
        interval_seconds: float = 900.0,
        on_scan: Optional[ScanCallback] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._monitor = monitor
        self._interval_seconds = interval_seconds
        self._on_scan = on_scan
        self._task: Optional[asyncio.Task] = None
        self._stop_requested = asyncio.Event()
        self.scans_completed = 0
        self.scans_failed = 0
        self.last_error: Optional[Exception] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop_requested.clear()
        self._task = asyncio.create_task(self._scan_until_stopped())
        logger.info("Portfolio scans every %ss", self._interval_seconds)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        self._stop_requested.set()
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info(
            "Scan loop stopped after %s scans (%s failed)",
            self.scans_completed,
            self.scans_failed,
        )

    async def wait(self) -> None:
        await self._stop_requested.wait()

    async def _scan_until_stopped(self) -> None:
        while not self._stop_requested.is_set():
            await self._scan()
            if await self._stop_within(self._interval_seconds):
                return

    async def _stop_within(self, seconds: float) -> bool:
        try:
            await asyncio.wait_for(self._stop_requested.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def _scan(self) -> None:
        try:
            created = await asyncio.to_thread(self._monitor.scan_once)
        except Exception as exc:  # noqa: BLE001 - the loop outlives a bad scan
            self.scans_failed += 1
            self.last_error = exc
            logger.exception("Portfolio scan failed (%s failures so far)", self.scans_failed)
            return
        self.scans_completed += 1
        self.last_error = None
        if self._on_scan is None:
            return
        try:
            self._on_scan(created)
        except Exception:  # noqa: BLE001 - reporting problems never stop the loop
            logger.exception("Scan callback failed for %s new alerts", len(created))
