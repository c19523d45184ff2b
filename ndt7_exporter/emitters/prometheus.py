"""Emitter stage recording outcomes as Prometheus gauges."""

from __future__ import annotations

import logging

from ..measurements.models import Completed, Outcome
from ..metrics import MetricSink
from .base import Emitter, Wrapper

LOGGER = logging.getLogger(__name__)


class Prometheus(Wrapper):
    def __init__(self, inner: Emitter, sink: MetricSink) -> None:
        super().__init__(inner)
        self.sink = sink

    def on_outcome(self, outcome: Outcome) -> None:
        test = outcome.direction.value
        if isinstance(outcome, Completed):
            summary = outcome.summary
            labels = (summary.client_ip, summary.server_ip)
            self.sink.throughput[outcome.direction].labels(*labels).set(summary.throughput_bps)
            self.sink.latency[outcome.direction].labels(*labels).set(summary.latency_seconds)
            self.sink.result_timestamp.labels(test, "success").set_to_current_time()
            LOGGER.debug("Recorded %s result for %s -> %s", test, *labels)
        else:
            # Failures keep the last known speed; only the error timestamp moves
            self.sink.result_timestamp.labels(test, "error").set_to_current_time()
        self.inner.on_outcome(outcome)
