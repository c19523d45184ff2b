"""Shared dataclasses for measurements."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Tuple, Union


class Direction(str, enum.Enum):
    DOWNLOAD = "download"
    UPLOAD = "upload"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CycleConfig:
    """Everything a measurement client needs to run one test direction."""

    binary: str = "ndt7-client"
    server: Optional[str] = None
    service_url: Optional[str] = None
    scheme: str = "wss"
    timeout: float = 55.0
    no_verify: bool = False
    source_ip: Optional[str] = None
    download: bool = True
    upload: bool = True
    extra_args: Tuple[str, ...] = ()

    @property
    def directions(self) -> Tuple[Direction, ...]:
        enabled = []
        if self.download:
            enabled.append(Direction.DOWNLOAD)
        if self.upload:
            enabled.append(Direction.UPLOAD)
        return tuple(enabled)

    @property
    def target_kind(self) -> str:
        if self.service_url:
            return "service-url"
        if self.server:
            return "server"
        return "auto"


@dataclass(frozen=True)
class MeasurementEvent:
    direction: Direction
    origin: str
    elapsed_seconds: float
    throughput_bps: Optional[float] = None
    latency_seconds: Optional[float] = None


@dataclass(frozen=True)
class Summary:
    throughput_bps: float
    latency_seconds: float
    client_ip: str
    server_ip: str
    server_fqdn: Optional[str] = None


@dataclass(frozen=True)
class Completed:
    direction: Direction
    summary: Summary

    succeeded = True


@dataclass(frozen=True)
class Failed:
    direction: Direction
    cause: BaseException

    succeeded = False


Outcome = Union[Completed, Failed]
