"""Application bootstrap helpers."""

from __future__ import annotations

__version__ = "0.1.0"

from pathlib import Path
from typing import Callable, Optional

from .config import AppConfig, load_config, validate_config
from .emitters import build_emitter_chain
from .logging_setup import configure_logging
from .measurements.ndt7_client import Ndt7Client
from .metrics import MetricSink
from .runner import ClientFactory, Runner
from .scheduler import CycleScheduler
from .web.app import MetricsServer, create_web_app


class ApplicationContext:
    """Holds shared singletons for the service."""

    def __init__(
        self,
        config: AppConfig,
        client_factory: ClientFactory = Ndt7Client,
        setup_logging: bool = True,
    ):
        self.config = config
        # Rejects bad interval bounds before anything else is touched
        self.scheduler = CycleScheduler(config.scheduler)
        if setup_logging:
            configure_logging(config)
        self.sink = MetricSink(process_metrics=config.metrics.process_metrics)
        self.emitter = build_emitter_chain(self.sink, progress=config.logging.progress)
        self.runner = Runner(config.cycle_config(), client_factory, self.emitter, self.scheduler)
        self.web_app = create_web_app(config=config, sink=self.sink, runner=self.runner)
        self.server: Optional[MetricsServer] = None

    def start(self) -> None:
        self.server = MetricsServer(self.web_app, self.config.web.host, self.config.web.port)
        self.server.start()

    def run(self) -> None:
        self.runner.run_loop()

    def stop(self) -> None:
        self.runner.stop()

    def close(self) -> None:
        if self.server is not None:
            self.server.shutdown()
            self.server = None


def bootstrap(
    config_path: Optional[str] = None,
    overrides: Optional[Callable[[AppConfig], None]] = None,
    **kwargs,
) -> ApplicationContext:
    """Load configuration, apply command line overrides and wire dependencies."""

    config_file = Path(config_path).resolve() if config_path else None
    config = load_config(str(config_file)) if config_file else load_config()
    if overrides is not None:
        overrides(config)
        validate_config(config)
    return ApplicationContext(config, **kwargs)
