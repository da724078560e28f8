"""Periodic flush trigger for the notify stage."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MAX_INSTANCES, JobEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from salewatch.logging import get_logger
from salewatch.pipeline.messages import NotifyMessage, TimerFired

__all__ = ["NotifyClock"]

JOB_ID = "notify_tick"


class NotifyClock:
    """Puts a TimerFired message on the notify queue at a fixed interval.

    The first tick fires as soon as the clock starts. If the queue is full
    the tick waits for room, and overlapping ticks are skipped rather than
    piled up.
    """

    def __init__(self, outbox: asyncio.Queue[NotifyMessage], interval_secs: float):
        """Initialize the clock.

        Args:
            outbox: Queue consumed by the notify stage.
            interval_secs: Seconds between ticks.
        """
        self.outbox = outbox
        self.interval_secs = interval_secs
        self.log = get_logger("salewatch.pipeline.clock")

        self.scheduler = AsyncIOScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": None,
            },
            timezone="UTC",
        )
        self.scheduler.add_listener(self._on_job_event, EVENT_JOB_ERROR | EVENT_JOB_MAX_INSTANCES)

    def _on_job_event(self, event: JobEvent) -> None:
        if event.code == EVENT_JOB_MAX_INSTANCES:
            self.log.warning("Skipped tick, notify queue is backed up", job_id=event.job_id)
        else:
            self.log.error("Tick failed", job_id=event.job_id, exception=str(event.exception))

    async def tick(self) -> None:
        """Enqueue one TimerFired message."""
        await self.outbox.put(TimerFired())
        self.log.debug("Tick")

    def start(self) -> None:
        """Start ticking. Must be called from a running event loop."""
        self.scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self.interval_secs),
            id=JOB_ID,
            name="Flush notification queue",
            next_run_time=datetime.now(timezone.utc),
            replace_existing=True,
        )
        self.scheduler.start()
        self.log.info("Clock started", interval_secs=self.interval_secs)

    def stop(self) -> None:
        """Stop ticking."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.log.info("Clock stopped")
