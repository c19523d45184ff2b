"""Configuration loading helpers for the ndt7 exporter."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional
import platform
import re

import yaml

from .errors import ConfigurationError
from .logging_setup import resolve_level
from .measurements.models import CycleConfig

SCHEMES = ("wss", "ws")


def default_scheme() -> str:
    """Return "ws" on CPUs without AES instructions, where TLS performs poorly."""
    if platform.system().lower() != "linux":
        return "wss"
    try:
        cpuinfo = Path("/proc/cpuinfo").read_text(encoding="utf-8")
    except OSError:
        return "wss"
    for line in cpuinfo.splitlines():
        key, _, value = line.partition(":")
        # x86 lists "flags", ARM lists "Features"
        if key.strip().lower() in ("flags", "features") and "aes" in value.split():
            return "wss"
    return "ws"


@dataclass
class PathsConfig:
    logs_dir: Path


@dataclass
class Ndt7Config:
    binary: str = "ndt7-client"
    server: Optional[str] = None
    service_url: Optional[str] = None
    scheme: str = field(default_factory=default_scheme)
    timeout_seconds: float = 55.0
    no_verify: bool = False
    download: bool = True
    upload: bool = True
    source_ip: Optional[str] = None
    extra_args: List[str] = field(default_factory=list)


@dataclass
class SchedulerConfig:
    # Rate limits recommended for unattended clients: mean 6h, 36m..15h
    mean_seconds: float = 6 * 60 * 60
    min_seconds: float = 36 * 60
    max_seconds: float = 15 * 60 * 60


@dataclass
class WebConfig:
    host: str = "localhost"
    port: int = 9191
    metrics_path: str = "/metrics"
    reverse_proxy_headers: bool = False


@dataclass
class MetricsConfig:
    process_metrics: bool = True


@dataclass
class LoggingConfig:
    level: str = "INFO"
    progress: bool = False


@dataclass
class AppConfig:
    root_dir: Path
    paths: PathsConfig
    ndt7: Ndt7Config
    scheduler: SchedulerConfig
    web: WebConfig
    metrics: MetricsConfig
    logging: LoggingConfig

    def cycle_config(self) -> CycleConfig:
        return CycleConfig(
            binary=self.ndt7.binary,
            server=self.ndt7.server or None,
            service_url=self.ndt7.service_url or None,
            scheme=self.ndt7.scheme,
            timeout=float(self.ndt7.timeout_seconds),
            no_verify=self.ndt7.no_verify,
            source_ip=self.ndt7.source_ip or None,
            download=self.ndt7.download,
            upload=self.ndt7.upload,
            extra_args=tuple(self.ndt7.extra_args),
        )


def _as_path(base: Path, maybe_path: Optional[str]) -> Path:
    if not maybe_path:
        raise ConfigurationError("Path configuration entries cannot be empty")
    path = (base / maybe_path).resolve()
    path.mkdir(parents=True, exist_ok=True)
    return path


# Go-style durations such as "15s", "36m" or "1h30m"
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def _seconds(value: Any, key: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        parts = _DURATION_PART.findall(text)
        if parts and "".join(number + unit for number, unit in parts) == text:
            return sum(float(number) * _DURATION_UNITS[unit] for number, unit in parts)
    raise ConfigurationError(f"{key} must be a number of seconds or a duration like '15s', got {value!r}")


def _coerce(key: str, kind: str, value: Any) -> Any:
    """Check a YAML value against the dataclass field annotation ``kind``."""

    if kind == "float":
        return _seconds(value, key)
    if kind == "int":
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise ConfigurationError(f"{key} must be an integer, got {value!r}")
    if kind == "bool":
        if isinstance(value, bool):
            return value
        raise ConfigurationError(f"{key} must be true or false, got {value!r}")
    if kind == "List[str]":
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return value
        raise ConfigurationError(f"{key} must be a list of strings, got {value!r}")
    if value is None and kind.startswith("Optional"):
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"{key} must be a string, got {value!r}")
    return value


def _mapping(data: Dict[str, Any], name: str, known) -> Dict[str, Any]:
    values = data.get(name) or {}
    if not isinstance(values, dict):
        raise ConfigurationError(f"Section '{name}' must be a mapping")
    unknown = sorted(set(values) - set(known))
    if unknown:
        raise ConfigurationError(f"Unknown keys in section '{name}': {', '.join(unknown)}")
    return values


def _section(cls, data: Dict[str, Any], name: str):
    kinds = {f.name: str(f.type) for f in fields(cls)}
    values = _mapping(data, name, kinds)
    return cls(**{key: _coerce(f"{name}.{key}", kinds[key], value) for key, value in values.items()})


def validate_config(config: AppConfig) -> None:
    if config.ndt7.scheme not in SCHEMES:
        raise ConfigurationError(
            f"Unsupported scheme {config.ndt7.scheme!r}, expected one of {', '.join(SCHEMES)}"
        )
    if config.ndt7.timeout_seconds <= 0:
        raise ConfigurationError("ndt7.timeout_seconds must be positive")
    if not 0 <= config.web.port <= 65535:
        raise ConfigurationError(f"Invalid web.port {config.web.port}")
    resolve_level(config.logging.level)
    if not config.web.metrics_path.startswith("/"):
        config.web.metrics_path = f"/{config.web.metrics_path}"


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load application configuration from a YAML file.

    Without an explicit path, ``config.yaml`` in the working directory is used
    when present; otherwise every section falls back to its defaults.
    """

    root_dir = Path(path).resolve().parent if path else Path.cwd()
    source_path = Path(path) if path else root_dir / "config.yaml"
    data: Dict[str, Any] = {}
    if source_path.exists():
        with source_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    elif path:
        raise FileNotFoundError(f"Missing configuration file at {source_path}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration root in {source_path} must be a mapping")

    paths_data = _mapping(data, "paths", ("logs_dir",))
    logs_dir = _coerce("paths.logs_dir", "str", paths_data.get("logs_dir", "logs"))
    paths = PathsConfig(logs_dir=_as_path(root_dir, logs_dir))

    config = AppConfig(
        root_dir=root_dir,
        paths=paths,
        ndt7=_section(Ndt7Config, data, "ndt7"),
        scheduler=_section(SchedulerConfig, data, "scheduler"),
        web=_section(WebConfig, data, "web"),
        metrics=_section(MetricsConfig, data, "metrics"),
        logging=_section(LoggingConfig, data, "logging"),
    )
    validate_config(config)
    return config
