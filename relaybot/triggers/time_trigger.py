"""Time-driven trigger: fixed interval or cron expression in a named timezone.

Intervals use a private `schedule.Scheduler`; cron expressions are evaluated
with croniter against timezone-aware datetimes. Both are polled from one
asyncio loop. A tick that comes due while the previous run is still in
flight is skipped (logged), so runs never overlap.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

import schedule
from croniter import croniter

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[Any]]


class TimeTrigger:
    def __init__(
        self,
        job: Job,
        *,
        interval_minutes: Optional[int] = None,
        cron: Optional[str] = None,
        timezone_name: str = "UTC",
        run_on_boot: bool = False,
        poll_seconds: float = 1.0,
        shutdown_grace: float = 30.0,
        name: str = "digest",
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        if not cron and not interval_minutes:
            raise ValueError("TimeTrigger needs interval_minutes or a cron expression")
        if cron and not croniter.is_valid(cron):
            raise ValueError(f"Invalid cron expression: {cron!r}")
        self.job = job
        self.cron = cron or None
        self.interval_minutes = interval_minutes
        self.tz = ZoneInfo(timezone_name)
        self.run_on_boot = run_on_boot
        self.poll_seconds = poll_seconds
        self.shutdown_grace = shutdown_grace
        self.name = name
        self.clock = clock

        self.fired = 0
        self.skipped = 0
        self._inflight: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._scheduler = schedule.Scheduler()
        self._cron_next: Optional[datetime] = None
        if self.cron:
            self._cron_next = self.next_cron_fire(self.clock())
        else:
            self._scheduler.every(interval_minutes).minutes.do(self.fire)

    def next_cron_fire(self, after: datetime) -> datetime:
        """Next cron occurrence strictly after `after`, in the configured timezone."""
        if after.tzinfo is None:
            after = after.replace(tzinfo=timezone.utc)
        return croniter(self.cron, after.astimezone(self.tz)).get_next(datetime)

    def describe(self) -> str:
        if self.cron:
            return f"cron '{self.cron}' ({self.tz.key}), next at {self._cron_next.isoformat()}"
        return f"every {self.interval_minutes} minute(s), next at {self._scheduler.next_run}"

    @property
    def running(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def fire(self) -> bool:
        """Start a run now unless the previous one is still going."""
        if self.running:
            self.skipped += 1
            logger.warning("[%s] previous run still in progress; skipping this tick", self.name)
            return False
        self.fired += 1
        self._inflight = asyncio.get_running_loop().create_task(self._run_job())
        return True

    async def _run_job(self) -> None:
        try:
            await self.job()
        except Exception as e:
            logger.error("[%s] run raised past its failure boundary: %s", self.name, e, exc_info=True)

    def poll(self) -> None:
        if self.cron:
            now = self.clock()
            if now >= self._cron_next:
                self.fire()
                self._cron_next = self.next_cron_fire(now)
        else:
            self._scheduler.run_pending()

    def stop(self) -> None:
        self._stop_event.set()

    async def run(self) -> None:
        logger.info("[%s] scheduled %s", self.name, self.describe())
        if self.run_on_boot:
            logger.info("[%s] running initial tick on boot", self.name)
            self.fire()
        while not self._stop_event.is_set():
            self.poll()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_seconds)
            except asyncio.TimeoutError:
                pass
        await self._drain()
        logger.info("[%s] trigger stopped (fired=%d skipped=%d)", self.name, self.fired, self.skipped)

    async def _drain(self) -> None:
        if not self.running:
            return
        logger.info("[%s] waiting up to %.0fs for in-flight run", self.name, self.shutdown_grace)
        try:
            await asyncio.wait_for(asyncio.shield(self._inflight), timeout=self.shutdown_grace)
        except asyncio.TimeoutError:
            logger.warning("[%s] in-flight run did not finish; cancelling", self.name)
            self._inflight.cancel()
            try:
                await self._inflight
            except asyncio.CancelledError:
                pass
