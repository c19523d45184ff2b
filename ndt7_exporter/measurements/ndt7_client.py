"""ndt7 measurement client backed by the ``ndt7-client`` CLI in JSON mode."""

from __future__ import annotations

import json
import logging
import platform
import shutil
import subprocess
import threading
import time
from collections import deque
from typing import Any, Deque, Dict, Iterator, List, Optional

from ..errors import ClientStartError, DeadlineExceeded, ProtocolError
from .models import CycleConfig, Direction, MeasurementEvent, Summary

LOGGER = logging.getLogger(__name__)

# Unit multipliers for the values reported in the CLI summary
THROUGHPUT_UNITS = {"bit/s": 1.0, "kbit/s": 1e3, "Mbit/s": 1e6, "Gbit/s": 1e9}
LATENCY_UNITS = {"s": 1.0, "ms": 1e-3, "us": 1e-6, "µs": 1e-6}
# Printed by Go's flag package when a build lacks source address support
UNDEFINED_SOURCE_FLAG = "flag provided but not defined: -source-ip"


def _platform_binary_name(binary: str) -> str:
    suffix = ".exe" if platform.system().lower().startswith("win") else ""
    if suffix and not binary.endswith(suffix):
        binary = f"{binary}{suffix}"
    return binary


def resolve_binary(binary: str) -> str:
    name = _platform_binary_name(binary)
    resolved = shutil.which(name)
    if not resolved:
        raise ClientStartError(f"ndt7 client binary {name!r} not found on PATH")
    return resolved


def build_command(config: CycleConfig, direction: Direction, binary: str) -> List[str]:
    command = [
        binary,
        "-format=json",
        f"-scheme={config.scheme}",
        f"-timeout={config.timeout:g}s",
        f"-download={'true' if direction is Direction.DOWNLOAD else 'false'}",
        f"-upload={'true' if direction is Direction.UPLOAD else 'false'}",
    ]
    if config.service_url:
        command.append(f"-service-url={config.service_url}")
    elif config.server:
        command.append(f"-server={config.server}")
    if config.no_verify:
        command.append("-no-verify")
    if config.source_ip:
        command.append(f"-source-ip={config.source_ip}")
    command += list(config.extra_args)
    return command


class Ndt7Client:
    """Runs one direction per ``run`` call; build a fresh instance per test."""

    def __init__(self, config: CycleConfig) -> None:
        self.config = config
        self.server_fqdn: Optional[str] = None
        self._summaries: Dict[Direction, Summary] = {}

    def run(self, direction: Direction, deadline: float) -> Iterator[MeasurementEvent]:
        """Yield events until the test ends; ``deadline`` is a ``time.monotonic`` value."""

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise DeadlineExceeded(f"{direction} deadline expired before start")

        command = build_command(self.config, direction, resolve_binary(self.config.binary))
        LOGGER.debug("Running %s", " ".join(command))
        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as exc:
            raise ClientStartError(f"cannot start {command[0]}: {exc}") from exc

        expired = threading.Event()

        def _expire() -> None:
            expired.set()
            process.kill()

        timer = threading.Timer(remaining, _expire)
        timer.daemon = True
        timer.start()

        failure: Optional[str] = None
        summary: Optional[Dict[str, Any]] = None
        other_output: Deque[str] = deque(maxlen=5)
        lacks_source_flag = False
        try:
            for line in process.stdout:
                record = _decode(line)
                if record is None:
                    if line.strip():
                        other_output.append(line.strip())
                    if UNDEFINED_SOURCE_FLAG in line:
                        lacks_source_flag = True
                    continue
                key = record.get("Key")
                value = record.get("Value") or {}
                if key == "measurement":
                    event = event_from_measurement(direction, value)
                    if event is not None:
                        yield event
                elif key == "connected":
                    self.server_fqdn = value.get("Server")
                elif key == "error":
                    failure = value.get("Failure") or "unknown failure"
                elif key is None and ("ClientIP" in record or "ServerIP" in record):
                    summary = record
            returncode = process.wait()
        finally:
            timer.cancel()
            if process.poll() is None:
                process.kill()
                process.wait()
            if process.stdout is not None:
                process.stdout.close()

        if expired.is_set():
            raise DeadlineExceeded(f"{direction} did not finish within {self.config.timeout:g}s")
        if failure:
            raise ProtocolError(f"{direction}: {failure}")
        if returncode != 0:
            detail = "; ".join(other_output) or "no output"
            if lacks_source_flag:
                raise ClientStartError(
                    f"{command[0]} does not accept -source-ip; unset ndt7.source_ip "
                    "or install a client build that supports it"
                )
            raise ProtocolError(f"{command[0]} exited with status {returncode}: {detail}")
        if summary is None:
            raise ProtocolError(f"{direction}: client produced no summary")
        self._summaries[direction] = summary_from_record(direction, summary)

    def summary(self, direction: Direction) -> Summary:
        try:
            return self._summaries[direction]
        except KeyError:
            raise ProtocolError(f"no {direction} result available") from None


def _decode(line: str) -> Optional[Dict[str, Any]]:
    line = line.strip()
    if not line.startswith("{"):
        return None
    try:
        record = json.loads(line)
    except json.JSONDecodeError:
        return None
    return record if isinstance(record, dict) else None


def event_from_measurement(direction: Direction, value: Dict[str, Any]) -> Optional[MeasurementEvent]:
    """Convert a ``measurement`` record; times in the record are microseconds."""

    app_info = value.get("AppInfo") or {}
    tcp_info = value.get("TCPInfo") or {}
    elapsed_us = app_info.get("ElapsedTime") or tcp_info.get("ElapsedTime")
    if not elapsed_us:
        return None
    elapsed = elapsed_us / 1e6

    throughput = None
    if app_info.get("NumBytes") is not None:
        throughput = app_info["NumBytes"] * 8 / elapsed

    latency = None
    if tcp_info.get("RTT"):
        latency = tcp_info["RTT"] / 1e6

    if throughput is None and latency is None:
        return None
    return MeasurementEvent(
        direction=direction,
        origin=value.get("Origin") or "client",
        elapsed_seconds=elapsed,
        throughput_bps=throughput,
        latency_seconds=latency,
    )


def _scaled(entry: Optional[Dict[str, Any]], units: Dict[str, float], what: str) -> float:
    if not entry or entry.get("Value") is None:
        raise ProtocolError(f"summary is missing {what}")
    unit = entry.get("Unit", "")
    if unit not in units:
        raise ProtocolError(f"unsupported {what} unit {unit!r}")
    return float(entry["Value"]) * units[unit]


def summary_from_record(direction: Direction, record: Dict[str, Any]) -> Summary:
    section = record.get(direction.value.capitalize())
    if not section:
        raise ProtocolError(f"summary has no {direction} section")
    return Summary(
        throughput_bps=_scaled(section.get("Throughput"), THROUGHPUT_UNITS, "throughput"),
        latency_seconds=_scaled(section.get("Latency"), LATENCY_UNITS, "latency"),
        client_ip=record.get("ClientIP") or "",
        server_ip=record.get("ServerIP") or "",
        server_fqdn=record.get("ServerFQDN"),
    )
