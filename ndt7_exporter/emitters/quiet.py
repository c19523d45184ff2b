"""Emitter stage that hides per-sample progress output."""

from __future__ import annotations

from ..measurements.models import MeasurementEvent
from .base import Wrapper


class Quiet(Wrapper):
    """Drops measurement events; starts, connections and outcomes pass through."""

    def on_event(self, event: MeasurementEvent) -> None:
        return None
