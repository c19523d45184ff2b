"""Tests for the memoryless trigger and the APScheduler wrapper."""

from __future__ import annotations

import random
import statistics
import threading
from datetime import datetime, timedelta, timezone

import pytest

from ndt7_exporter.config import SchedulerConfig
from ndt7_exporter.errors import ConfigurationError
from ndt7_exporter.scheduler import CycleScheduler, MemorylessTrigger


def _intervals(trigger: MemorylessTrigger, count: int):
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    previous = trigger.get_next_fire_time(None, now)
    intervals = []
    for _ in range(count):
        following = trigger.get_next_fire_time(previous, previous)
        intervals.append((following - previous).total_seconds())
        previous = following
    return intervals


def test_first_fire_time_is_immediate():
    trigger = MemorylessTrigger(0.1, 0.05, 0.2)
    now = datetime.now(timezone.utc)
    assert trigger.get_next_fire_time(None, now) == now


@pytest.mark.parametrize(
    "mean,minimum,maximum",
    [(0.1, 0.05, 0.2), (21600, 2160, 54000), (1.0, 1.0, 1.0), (5.0, 0.5, 60.0)],
)
def test_intervals_stay_within_bounds(mean, minimum, maximum):
    trigger = MemorylessTrigger(mean, minimum, maximum, rng=random.Random(7))
    for interval in _intervals(trigger, 500):
        # timedelta has microsecond resolution
        assert minimum - 1e-6 <= interval <= maximum + 1e-6


def test_intervals_are_not_periodic():
    trigger = MemorylessTrigger(0.1, 0.05, 0.2, rng=random.Random(42))
    intervals = _intervals(trigger, 200)
    assert statistics.pvariance(intervals) > 1e-6
    assert len(set(intervals)) > 10


def test_next_fire_time_is_relative_to_wall_clock_when_late():
    trigger = MemorylessTrigger(10, 5, 20, rng=random.Random(1))
    previous = datetime(2024, 1, 1, tzinfo=timezone.utc)
    late_now = previous + timedelta(minutes=5)
    following = trigger.get_next_fire_time(previous, late_now)
    assert late_now + timedelta(seconds=5) <= following <= late_now + timedelta(seconds=20)


@pytest.mark.parametrize(
    "mean,minimum,maximum",
    [
        (0, 1, 2),
        (1, 0, 2),
        (1, 0.5, -2),
        (1, 2, 3),
        (3, 1, 2),
        (-1, -2, -0.5),
    ],
)
def test_invalid_bounds_are_configuration_errors(mean, minimum, maximum):
    with pytest.raises(ConfigurationError):
        MemorylessTrigger(mean, minimum, maximum)


def test_cycle_scheduler_rejects_bad_config_at_construction():
    with pytest.raises(ConfigurationError):
        CycleScheduler(SchedulerConfig(mean_seconds=10, min_seconds=20, max_seconds=30))


def test_cycle_scheduler_ticks_until_shutdown(scheduler):
    ticks = []
    reached = threading.Event()

    def cycle():
        ticks.append(datetime.now(timezone.utc))
        if len(ticks) >= 3:
            reached.set()

    scheduler.start(cycle)
    try:
        assert scheduler.started
        assert reached.wait(timeout=5)
        assert scheduler.next_run_time is not None
    finally:
        scheduler.shutdown()

    assert not scheduler.started
    assert scheduler.next_run_time is None
    count = len(ticks)
    threading.Event().wait(0.4)
    assert len(ticks) == count
    gaps = [(b - a).total_seconds() for a, b in zip(ticks, ticks[1:])]
    assert all(gap >= 0.03 for gap in gaps)


def test_duplicate_start_is_ignored(scheduler):
    scheduler.start(lambda: None)
    try:
        scheduler.start(lambda: None)
        assert len(scheduler.scheduler.get_jobs()) == 1
    finally:
        scheduler.shutdown()
