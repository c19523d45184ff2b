"""Exception hierarchy for the exporter."""

from __future__ import annotations


class Ndt7ExporterError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(Ndt7ExporterError):
    """Invalid configuration detected at startup."""


class MeasurementError(Ndt7ExporterError):
    """A single test direction failed; the cycle carries on."""


class ClientStartError(MeasurementError):
    """The measurement client could not be started."""


class DeadlineExceeded(MeasurementError):
    """The per-direction timeout expired before the test finished."""


class ProtocolError(MeasurementError):
    """The measurement client reported a failure mid-test."""
