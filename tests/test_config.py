"""Tests for YAML configuration loading."""

from __future__ import annotations

import pytest

from ndt7_exporter.config import default_scheme, load_config
from ndt7_exporter.errors import ConfigurationError
from ndt7_exporter.measurements.models import Direction


def _write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_defaults_without_config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = load_config()

    assert config.scheduler.mean_seconds == 21600
    assert config.scheduler.min_seconds == 2160
    assert config.scheduler.max_seconds == 54000
    assert config.web.host == "localhost"
    assert config.web.port == 9191
    assert config.ndt7.timeout_seconds == 55
    assert config.ndt7.scheme in ("wss", "ws")
    assert config.paths.logs_dir == (tmp_path / "logs").resolve()
    assert config.paths.logs_dir.is_dir()


def test_missing_explicit_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "absent.yaml"))


def test_sections_are_loaded(tmp_path):
    path = _write(
        tmp_path,
        """
ndt7:
  server: ndt.example.net
  scheme: ws
  timeout_seconds: 30
  upload: false
  extra_args: ["-quiet=false"]
scheduler:
  mean_seconds: 600
  min_seconds: 60
  max_seconds: 3600
web:
  port: 9999
  metrics_path: scrape
logging:
  level: debug
  progress: true
""",
    )
    config = load_config(path)
    cycle = config.cycle_config()

    assert cycle.server == "ndt.example.net"
    assert cycle.scheme == "ws"
    assert cycle.timeout == 30.0
    assert cycle.directions == (Direction.DOWNLOAD,)
    assert cycle.extra_args == ("-quiet=false",)
    assert cycle.target_kind == "server"
    assert config.scheduler.mean_seconds == 600
    assert config.web.port == 9999
    assert config.web.metrics_path == "/scrape"
    assert config.logging.progress is True


def test_blank_strings_mean_unset(tmp_path):
    path = _write(tmp_path, "ndt7:\n  server: ''\n  source_ip: ''\n")
    cycle = load_config(path).cycle_config()
    assert cycle.server is None
    assert cycle.source_ip is None
    assert cycle.target_kind == "auto"


@pytest.mark.parametrize(
    "text",
    [
        "ndt7:\n  scheme: https\n",
        "ndt7:\n  timeout_seconds: 0\n",
        "ndt7:\n  colour: blue\n",
        "web:\n  port: 70000\n",
        "scheduler: 5\n",
        "- just\n- a list\n",
        "ndt7:\n  timeout_seconds: soon\n",
        "ndt7:\n  timeout_seconds: 15x\n",
        "ndt7:\n  download: \"no\"\n",
        "ndt7:\n  extra_args: -quiet\n",
        "ndt7:\n  binary: 7\n",
        "scheduler:\n  mean_seconds: true\n",
        "scheduler:\n  mean_seconds: 6 hours\n",
        "web:\n  port: \"9191\"\n",
        "paths: logs\n",
        "paths:\n  cache_dir: cache\n",
        "paths:\n  logs_dir: [a, b]\n",
        "logging:\n  level: loud\n",
    ],
)
def test_invalid_configuration(tmp_path, text):
    with pytest.raises(ConfigurationError):
        load_config(_write(tmp_path, text))


def test_default_scheme_without_aes(monkeypatch, tmp_path):
    cpuinfo = tmp_path / "cpuinfo"
    cpuinfo.write_text("processor\t: 0\nflags\t\t: fpu vme sse2\n", encoding="utf-8")

    import ndt7_exporter.config as config_module

    monkeypatch.setattr(config_module.platform, "system", lambda: "Linux")
    monkeypatch.setattr(config_module, "Path", lambda _: cpuinfo)
    assert default_scheme() == "ws"

    cpuinfo.write_text("Features\t: fp asimd aes pmull sha1\n", encoding="utf-8")
    assert default_scheme() == "wss"


def test_go_style_durations_are_accepted(tmp_path):
    path = _write(
        tmp_path,
        """
ndt7:
  timeout_seconds: 15s
scheduler:
  mean_seconds: 6h
  min_seconds: 36m
  max_seconds: 14h60m
""",
    )
    config = load_config(path)

    assert config.ndt7.timeout_seconds == 15.0
    assert config.cycle_config().timeout == 15.0
    assert config.scheduler.mean_seconds == 21600.0
    assert config.scheduler.min_seconds == 2160.0
    assert config.scheduler.max_seconds == 54000.0

