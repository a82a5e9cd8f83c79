"""Named recurring jobs driven by Quartz-style cron expressions.

One ScheduleManager exists per job name (one per display surface). The
registry of managers is the single process-wide map in this package:
a manager is created on first ``get_instance(name)`` and removed again by
``stop_job()``.

Cron expressions use six fields with seconds first, as in Quartz:

    sec  min  hour  day-of-month  month  day-of-week  [year]
    */10 *    *     *             *      ?

``?`` means "no specific value". Numeric days of week are 1-7 = SUN-SAT.
The optional year field may only be ``*`` or ``?``.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from croniter import croniter

from .errors import CronExpressionError

logger = logging.getLogger(__name__)

Job = Callable[[Any], Awaitable[None]]

_QUARTZ_WEEKDAY_RE = re.compile(r"(?<![/#\d])([1-7])(?!\d)")

_managers: dict[str, ScheduleManager] = {}


def to_croniter_expression(expression: str) -> str:
    """Convert a Quartz expression to croniter's order (seconds last)."""
    fields = (expression or "").split()
    if len(fields) == 7:
        if fields[6] not in ("*", "?"):
            raise CronExpressionError(f"year field not supported: {expression!r}", {"expression": expression})
        fields = fields[:6]
    if len(fields) != 6:
        raise CronExpressionError(
            f"expected 6 fields (sec min hour day month weekday): {expression!r}",
            {"expression": expression},
        )

    second, minute, hour, day, month, weekday = ("*" if f == "?" else f for f in fields)
    weekday = _QUARTZ_WEEKDAY_RE.sub(lambda m: str(int(m.group(1)) - 1), weekday)
    converted = " ".join((minute, hour, day, month, weekday, second))
    if not croniter.is_valid(converted):
        raise CronExpressionError(f"invalid cron expression: {expression!r}", {"expression": expression})
    return converted


def next_fire_time(expression: str, after: datetime | None = None) -> datetime:
    """Next time ``expression`` (Quartz form) fires strictly after ``after``."""
    return croniter(to_croniter_expression(expression), after or datetime.now()).get_next(datetime)


def advance_schedule(schedule: croniter, now: datetime) -> datetime:
    """Next slot of ``schedule`` that is not before ``now``.

    Slots are taken from the iterator in order, so a slot is never returned
    twice even when ``now`` lags behind the previous one. Slots missed while
    the loop was suspended are skipped.
    """
    fire_at = schedule.get_next(datetime)
    while fire_at < now:
        fire_at = schedule.get_next(datetime)
    return fire_at


@dataclass
class ScheduledJob:
    name: str
    cron_expression: str
    job: Job
    payload: Any
    task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()


class ScheduleManager:
    """Runs at most one recurring job under a given name.

    Each tick spawns the job as its own task, so a slow or hung fetch never
    delays the timer. Tick failures are logged and the timer keeps going.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._job: ScheduledJob | None = None
        self._ticks: set[asyncio.Task] = set()

    @classmethod
    def get_instance(cls, name: str) -> ScheduleManager:
        manager = _managers.get(name)
        if manager is None:
            manager = cls(name)
            _managers[name] = manager
        return manager

    @classmethod
    def find(cls, name: str) -> ScheduleManager | None:
        """Registered manager for ``name``, without creating one."""
        return _managers.get(name)

    @classmethod
    def active_names(cls) -> list[str]:
        return [name for name, manager in _managers.items() if manager.running]

    @property
    def job(self) -> ScheduledJob | None:
        return self._job

    @property
    def running(self) -> bool:
        return self._job is not None and self._job.running

    def run_job(self, job: Job, cron_expression: str, payload: Any) -> ScheduledJob:
        """Schedule ``job(payload)`` on ``cron_expression``, replacing any current job.

        Must be called from a running event loop. Raises CronExpressionError
        (leaving the current job untouched) if the expression is invalid.
        """
        expression = to_croniter_expression(cron_expression)
        self._cancel()
        _managers[self.name] = self

        scheduled = ScheduledJob(name=self.name, cron_expression=cron_expression, job=job, payload=payload)
        scheduled.task = asyncio.create_task(self._run(scheduled, expression), name=f"schedule-{self.name}")
        self._job = scheduled
        logger.info("Job %s scheduled: %s", self.name, cron_expression)
        return scheduled

    def stop_job(self) -> None:
        """Cancel the job, if any, and drop this manager from the registry."""
        had_job = self._job is not None
        self._cancel()
        if _managers.get(self.name) is self:
            del _managers[self.name]
        if had_job:
            logger.info("Job %s stopped", self.name)

    # --- Internal ---

    def _cancel(self) -> None:
        if self._job is not None and self._job.task is not None and not self._job.task.done():
            self._job.task.cancel()
        self._job = None

    async def _run(self, scheduled: ScheduledJob, expression: str) -> None:
        schedule = croniter(expression, datetime.now())
        while True:
            now = datetime.now()
            fire_at = advance_schedule(schedule, now)
            delay = (fire_at - now).total_seconds()
            await asyncio.sleep(max(delay, 0.0))
            self._dispatch(scheduled)

    def _dispatch(self, scheduled: ScheduledJob) -> None:
        try:
            tick = asyncio.create_task(scheduled.job(scheduled.payload), name=f"{self.name}-tick")
        except Exception as e:
            logger.error("Job %s could not start: %s", self.name, e)
            return
        self._ticks.add(tick)
        tick.add_done_callback(self._tick_done)

    def _tick_done(self, tick: asyncio.Task) -> None:
        self._ticks.discard(tick)
        if tick.cancelled():
            return
        exc = tick.exception()
        if exc is not None:
            logger.error("Job %s tick failed: %s", self.name, exc)
