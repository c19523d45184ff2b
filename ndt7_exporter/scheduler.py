"""Background scheduler orchestration."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.base import BaseTrigger

from .config import SchedulerConfig
from .errors import ConfigurationError

LOGGER = logging.getLogger(__name__)

JOB_ID = "ndt7-cycle"


class MemorylessTrigger(BaseTrigger):
    """Fire at exponentially distributed intervals clamped to ``[minimum, maximum]``.

    Independent deployments sharing one server fleet drift apart instead of
    testing in lockstep. The first fire time is immediate.
    """

    def __init__(
        self,
        mean: float,
        minimum: float,
        maximum: float,
        rng: Optional[random.Random] = None,
    ) -> None:
        for name, value in (("mean", mean), ("minimum", minimum), ("maximum", maximum)):
            if value <= 0:
                raise ConfigurationError(f"Scheduler {name} interval must be positive, got {value}")
        if not minimum <= mean <= maximum:
            raise ConfigurationError(
                f"Scheduler intervals must satisfy min <= mean <= max, got "
                f"min={minimum} mean={mean} max={maximum}"
            )
        self.mean = mean
        self.minimum = minimum
        self.maximum = maximum
        self.rng = rng or random.Random()

    def next_wait(self) -> float:
        wait = self.rng.expovariate(1.0 / self.mean)
        return min(max(wait, self.minimum), self.maximum)

    def get_next_fire_time(self, previous_fire_time: Optional[datetime], now: datetime) -> datetime:
        if previous_fire_time is None:
            return now
        return max(previous_fire_time, now) + timedelta(seconds=self.next_wait())

    def __str__(self) -> str:
        return f"memoryless[mean={self.mean}s, min={self.minimum}s, max={self.maximum}s]"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} ({self})>"


class CycleScheduler:
    def __init__(self, config: SchedulerConfig, rng: Optional[random.Random] = None) -> None:
        self.trigger = MemorylessTrigger(
            config.mean_seconds, config.min_seconds, config.max_seconds, rng=rng
        )
        self.scheduler = BackgroundScheduler(timezone="UTC")
        self.started = False

    def start(self, cycle: Callable[[], object]) -> None:
        if self.started:
            LOGGER.warning("Scheduler already started, ignoring duplicate start request")
            return

        # A tick that arrives while a cycle is still running is dropped, not queued
        self.scheduler.add_job(
            cycle,
            trigger=self.trigger,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
        )
        self.scheduler.start()
        self.started = True
        LOGGER.info("Scheduler started with %s", self.trigger)

    @property
    def next_run_time(self) -> Optional[datetime]:
        if not self.started:
            return None
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def shutdown(self, wait: bool = True) -> None:
        if self.started:
            self.scheduler.shutdown(wait=wait)
            self.started = False
            LOGGER.info("Scheduler stopped")
