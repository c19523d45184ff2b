"""Shared fixtures: an isolated metric sink and a scriptable measurement client."""

from __future__ import annotations

import io
import time
from typing import List, Optional

import pytest

from ndt7_exporter.config import SchedulerConfig
from ndt7_exporter.measurements.models import CycleConfig, Direction, MeasurementEvent, Summary
from ndt7_exporter.metrics import MetricSink
from ndt7_exporter.scheduler import CycleScheduler

CLIENT_IP = "192.0.2.10"
SERVER_IP = "198.51.100.7"


class StubClient:
    def __init__(
        self,
        config: CycleConfig,
        throughput: float = 100.0,
        latency: float = 0.02,
        events: int = 3,
        delay: float = 0.0,
        error: Optional[BaseException] = None,
    ) -> None:
        self.config = config
        self.throughput = throughput
        self.latency = latency
        self.events = events
        self.delay = delay
        self.error = error
        self.server_fqdn = "ndt.example.net"
        self.directions: List[Direction] = []

    def run(self, direction: Direction, deadline: float):
        self.directions.append(direction)
        for index in range(self.events):
            if self.delay:
                time.sleep(self.delay)
            yield MeasurementEvent(
                direction=direction,
                origin="client",
                elapsed_seconds=0.25 * (index + 1),
                throughput_bps=self.throughput,
            )
        if self.error is not None:
            raise self.error

    def summary(self, direction: Direction) -> Summary:
        return Summary(
            throughput_bps=self.throughput,
            latency_seconds=self.latency,
            client_ip=CLIENT_IP,
            server_ip=SERVER_IP,
            server_fqdn=self.server_fqdn,
        )


class StubFactory:
    """Builds a fresh ``StubClient`` per call and remembers every one of them."""

    def __init__(self, **behaviour) -> None:
        self.behaviour = behaviour
        self.clients: List[StubClient] = []

    def __call__(self, config: CycleConfig) -> StubClient:
        client = StubClient(config, **self.behaviour)
        self.clients.append(client)
        return client

    @property
    def directions(self) -> List[Direction]:
        return [direction for client in self.clients for direction in client.directions]


@pytest.fixture
def sink() -> MetricSink:
    return MetricSink()


@pytest.fixture
def stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def cycle_config() -> CycleConfig:
    return CycleConfig(timeout=5.0)


@pytest.fixture
def scheduler() -> CycleScheduler:
    return CycleScheduler(SchedulerConfig(mean_seconds=0.1, min_seconds=0.05, max_seconds=0.2))


@pytest.fixture
def factory() -> StubFactory:
    return StubFactory()
