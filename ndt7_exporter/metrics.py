"""Prometheus metric definitions backing the scrape endpoint."""

from __future__ import annotations

from typing import Dict, Optional

from prometheus_client import (
    CollectorRegistry,
    Gauge,
    Info,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)

from . import __version__
from .measurements.models import Direction

NAMESPACE = "ndt7"
PAIR_LABELS = ("client_ip", "server_ip")


class MetricSink:
    """Owns the registry shared by the test loop (writer) and the scrape handler (reader).

    ``prometheus_client`` metrics are thread-safe, so gauge updates and
    scrape collection need no extra locking.
    """

    def __init__(
        self,
        registry: Optional[CollectorRegistry] = None,
        process_metrics: bool = False,
    ) -> None:
        self.registry = registry or CollectorRegistry()
        self.throughput: Dict[Direction, Gauge] = {}
        self.latency: Dict[Direction, Gauge] = {}
        for direction in Direction:
            self.throughput[direction] = Gauge(
                f"{direction.value}_throughput_bps",
                f"m-lab ndt7 {direction.value} speed in bits/s",
                PAIR_LABELS,
                namespace=NAMESPACE,
                registry=self.registry,
            )
            self.latency[direction] = Gauge(
                f"{direction.value}_latency_seconds",
                f"m-lab ndt7 {direction.value} latency time in seconds",
                PAIR_LABELS,
                namespace=NAMESPACE,
                registry=self.registry,
            )

        # Value is a timestamp, so the latest result per test is
        #   time() - topk(1, ndt7_result_timestamp_seconds) without (result)
        self.result_timestamp = Gauge(
            "result_timestamp_seconds",
            "m-lab ndt7 test completion time in seconds since 1970-01-01",
            ("test", "result"),
            namespace=NAMESPACE,
            registry=self.registry,
        )

        build_info = Info(
            "ndt7_exporter_build",
            "ndt7 exporter build information",
            registry=self.registry,
        )
        build_info.info({"version": __version__})

        if process_metrics:
            ProcessCollector(registry=self.registry)
            PlatformCollector(registry=self.registry)

    def value(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        return self.registry.get_sample_value(name, labels or {})

    def render(self) -> bytes:
        return generate_latest(self.registry)
