"""Entry point for running the ndt7 Prometheus exporter."""

from __future__ import annotations

import argparse
import logging
import signal
import sys

from ndt7_exporter import bootstrap
from ndt7_exporter.config import AppConfig
from ndt7_exporter.errors import ConfigurationError

LOGGER = logging.getLogger("ndt7_exporter.main")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="ndt7 speed test Prometheus exporter")
    parser.add_argument("--config", help="Path to config.yaml", default=None)
    parser.add_argument("--host", default=None, help="Override metrics server host")
    parser.add_argument("--port", type=int, default=None, help="Override metrics server port")
    parser.add_argument("--server", default=None, help="ndt7 server hostname")
    parser.add_argument(
        "--service-url",
        default=None,
        help="Complete ndt7 service URL; selects a single direction and overrides --server",
    )
    parser.add_argument("--scheme", choices=("wss", "ws"), default=None, help="WebSocket scheme")
    parser.add_argument("--timeout", type=float, default=None, help="Seconds after which a test is aborted")
    parser.add_argument("--source-ip", default=None, help="Source IP to use for tests")
    parser.add_argument("--no-verify", action="store_true", help="Skip TLS certificate verification")
    parser.add_argument("--no-download", action="store_true", help="Skip the download measurement")
    parser.add_argument("--no-upload", action="store_true", help="Skip the upload measurement")
    parser.add_argument("--progress", action="store_true", help="Print per-sample progress lines")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def apply_overrides(args: argparse.Namespace):
    def _apply(config: AppConfig) -> None:
        if args.host:
            config.web.host = args.host
        if args.port is not None:
            config.web.port = args.port
        if args.server:
            config.ndt7.server = args.server
        if args.service_url:
            config.ndt7.service_url = args.service_url
        if args.scheme:
            config.ndt7.scheme = args.scheme
        if args.timeout is not None:
            config.ndt7.timeout_seconds = args.timeout
        if args.source_ip:
            config.ndt7.source_ip = args.source_ip
        if args.no_verify:
            config.ndt7.no_verify = True
        if args.no_download:
            config.ndt7.download = False
        if args.no_upload:
            config.ndt7.upload = False
        if args.progress:
            config.logging.progress = True
        if args.debug:
            config.logging.level = "DEBUG"

    return _apply


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        context = bootstrap(args.config, overrides=apply_overrides(args))
    except (ConfigurationError, FileNotFoundError) as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 2

    def _handle_signal(signum, _frame):
        LOGGER.info("Received signal %s, shutting down", signum)
        context.stop()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    try:
        context.start()
    except OSError as exc:
        LOGGER.error("Cannot serve metrics on %s:%s: %s", context.config.web.host, context.config.web.port, exc)
        return 1

    try:
        context.run()
    except ConfigurationError as exc:
        LOGGER.error("%s", exc)
        return 2
    finally:
        context.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
