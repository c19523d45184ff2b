"""Plain-text rendering of test progress and results."""

from __future__ import annotations

import sys
from typing import Optional, TextIO

from ..measurements.models import Completed, Direction, MeasurementEvent, Outcome
from .base import Emitter


class HumanReadable(Emitter):
    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream

    def _write(self, text: str) -> None:
        stream = self.stream or sys.stdout
        stream.write(text)
        stream.flush()

    def on_starting(self, direction: Direction) -> None:
        self._write(f"starting {direction}\n")

    def on_connected(self, direction: Direction, server: str) -> None:
        self._write(f"{direction} in progress with {server}\n")

    def on_event(self, event: MeasurementEvent) -> None:
        if event.throughput_bps is None:
            return
        self._write(f"{event.direction}: {event.throughput_bps / 1e6:7.1f} Mbit/s\n")

    def on_outcome(self, outcome: Outcome) -> None:
        if isinstance(outcome, Completed):
            summary = outcome.summary
            self._write(
                f"{outcome.direction}: complete "
                f"({summary.throughput_bps / 1e6:.1f} Mbit/s, "
                f"{summary.latency_seconds * 1000:.1f} ms, "
                f"client {summary.client_ip}, server {summary.server_ip})\n"
            )
        else:
            self._write(f"{outcome.direction} failed: {outcome.cause}\n")
