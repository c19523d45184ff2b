"""Test cycle orchestration driven by the scheduler."""

from __future__ import annotations

import ipaddress
import logging
import threading
import time
from dataclasses import replace
from typing import Callable, Iterable, List, Protocol
from urllib.parse import urlsplit

from .emitters import Emitter
from .errors import ConfigurationError, DeadlineExceeded, MeasurementError
from .measurements.models import (
    Completed,
    CycleConfig,
    Direction,
    Failed,
    MeasurementEvent,
    Outcome,
    Summary,
)
from .scheduler import CycleScheduler

LOGGER = logging.getLogger(__name__)

DOWNLOAD_URL_PATH = "/ndt/v7/download"
UPLOAD_URL_PATH = "/ndt/v7/upload"


class MeasurementClient(Protocol):
    def run(self, direction: Direction, deadline: float) -> Iterable[MeasurementEvent]:
        ...

    def summary(self, direction: Direction) -> Summary:
        ...


ClientFactory = Callable[[CycleConfig], MeasurementClient]


def resolve_cycle_config(config: CycleConfig) -> CycleConfig:
    """Settle target direction and source address once for the process lifetime."""

    if config.service_url:
        path = urlsplit(config.service_url).path
        # A service URL names exactly one direction
        if DOWNLOAD_URL_PATH in path:
            config = replace(config, download=True, upload=False)
        elif UPLOAD_URL_PATH in path:
            config = replace(config, download=False, upload=True)
        else:
            LOGGER.warning("Ignoring unsupported service URL %s", config.service_url)
            config = replace(config, service_url=None)

    if config.source_ip:
        try:
            ipaddress.ip_address(config.source_ip)
        except ValueError:
            LOGGER.warning("Ignoring unparsed source IP %s, using default routing", config.source_ip)
            config = replace(config, source_ip=None)

    return config


class Runner:
    def __init__(
        self,
        config: CycleConfig,
        client_factory: ClientFactory,
        emitter: Emitter,
        scheduler: CycleScheduler,
    ) -> None:
        self.config = resolve_cycle_config(config)
        self.client_factory = client_factory
        self.emitter = emitter
        self.scheduler = scheduler
        self._stop = threading.Event()

    @property
    def directions(self):
        return self.config.directions

    def run_loop(self) -> None:
        """Run cycles on every scheduler tick until ``stop`` is called."""

        if not self.directions:
            raise ConfigurationError("Both download and upload are disabled, nothing to measure")

        self.scheduler.start(self.run_once)
        try:
            self._stop.wait()
        finally:
            # Lets an in-flight cycle finish; its deadline bounds the wait
            self.scheduler.shutdown(wait=True)

    def stop(self) -> None:
        self._stop.set()

    def run_once(self) -> List[Outcome]:
        LOGGER.info("Starting test cycle (%s)", ", ".join(d.value for d in self.directions))
        outcomes = []
        for direction in self.directions:
            if self._stop.is_set():
                LOGGER.info("Stop requested, skipping remaining tests in this cycle")
                break
            outcomes.append(self._run_test(direction))
        LOGGER.info(
            "Test cycle finished: %s",
            ", ".join(f"{o.direction.value}={'ok' if o.succeeded else 'failed'}" for o in outcomes),
        )
        return outcomes

    def _run_test(self, direction: Direction) -> Outcome:
        deadline = time.monotonic() + self.config.timeout
        try:
            outcome: Outcome = Completed(direction, self._measure(direction, deadline))
        except MeasurementError as exc:
            LOGGER.warning("%s test failed: %s", direction.value, exc)
            outcome = Failed(direction, exc)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.exception("%s test failed unexpectedly: %s", direction.value, exc)
            outcome = Failed(direction, exc)
        self.emitter.on_outcome(outcome)
        return outcome

    def _measure(self, direction: Direction, deadline: float) -> Summary:
        client = self.client_factory(self.config)
        self.emitter.on_starting(direction)
        announced = False
        events = client.run(direction, deadline)
        try:
            for event in events:
                if not announced:
                    announced = self._announce(client, direction)
                self.emitter.on_event(event)
                if time.monotonic() > deadline:
                    raise DeadlineExceeded(
                        f"{direction} did not finish within {self.config.timeout:g}s"
                    )
        finally:
            close = getattr(events, "close", None)
            if close is not None:
                close()
        if not announced:
            self._announce(client, direction)
        return client.summary(direction)

    def _announce(self, client: MeasurementClient, direction: Direction) -> bool:
        server = getattr(client, "server_fqdn", None)
        if server:
            self.emitter.on_connected(direction, server)
            return True
        return False
