"""Daily recurring jobs.

Each :class:`DailyJob` waits until the next occurrence of its local time of
day, runs its callback once and schedules the following day. Jobs only read
the store; they never take part in shift transitions.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

JobCallback = Callable[[], Awaitable[None]]


def next_fire_time(now: dt.datetime, at: dt.time, tz: dt.tzinfo) -> dt.datetime:
    """First occurrence of ``at`` in ``tz`` strictly after ``now``."""
    local_now = now.astimezone(tz)
    candidate = dt.datetime.combine(local_now.date(), at, tzinfo=tz)
    if candidate <= local_now:
        candidate = dt.datetime.combine(local_now.date() + dt.timedelta(days=1), at, tzinfo=tz)
    return candidate


class DailyJob:
    def __init__(
        self,
        name: str,
        at: dt.time,
        callback: JobCallback,
        *,
        tz: dt.tzinfo,
        clock: Optional[Callable[[], dt.datetime]] = None,
    ) -> None:
        self.name = name
        self.at = at
        self.callback = callback
        self.tz = tz
        self.clock = clock or (lambda: dt.datetime.now(dt.timezone.utc))
        self.scheduled_for: Optional[dt.datetime] = None

    def next_run(self) -> dt.datetime:
        return next_fire_time(self.clock(), self.at, self.tz)

    def seconds_until_next_run(self) -> float:
        delay = (self.next_run() - self.clock()).total_seconds()
        return max(delay, 0.0)

    async def run_once(self) -> None:
        try:
            await self.callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Scheduled job %s failed; next attempt at %s", self.name, self.next_run().isoformat())

    async def run_forever(self) -> None:
        self.scheduled_for = self.next_run()
        while True:
            delay = max((self.scheduled_for - self.clock()).total_seconds(), 0.0)
            logger.debug("Job %s sleeping %.0fs", self.name, delay)
            await asyncio.sleep(delay)
            await self.run_once()
            # A wall clock still short of the slot must not re-fire it.
            self.scheduled_for = next_fire_time(max(self.clock(), self.scheduled_for), self.at, self.tz)


class DailyScheduler:
    def __init__(self, timezone: str = "UTC") -> None:
        self.tz = ZoneInfo(timezone)
        self.jobs: List[DailyJob] = []
        self._tasks: Dict[str, asyncio.Task] = {}

    def add(self, name: str, at: dt.time, callback: JobCallback) -> DailyJob:
        job = DailyJob(name, at, callback, tz=self.tz)
        self.jobs.append(job)
        return job

    def start(self) -> None:
        for job in self.jobs:
            if job.name in self._tasks:
                continue
            self._tasks[job.name] = asyncio.create_task(job.run_forever(), name=f"daily:{job.name}")
            logger.info("Scheduled %s daily at %s", job.name, job.at.strftime("%H:%M"))

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["JobCallback", "next_fire_time", "DailyJob", "DailyScheduler"]
