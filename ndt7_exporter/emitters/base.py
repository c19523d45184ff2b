"""Emitter interface and the pass-through wrapper stages build on."""

from __future__ import annotations

from ..measurements.models import Direction, MeasurementEvent, Outcome


class Emitter:
    """Receives the callbacks of one test direction.

    Hooks default to no-ops so a stage only implements what it cares about.
    """

    def on_starting(self, direction: Direction) -> None:
        pass

    def on_connected(self, direction: Direction, server: str) -> None:
        pass

    def on_event(self, event: MeasurementEvent) -> None:
        pass

    def on_outcome(self, outcome: Outcome) -> None:
        pass


class Wrapper(Emitter):
    """Forwards every hook to ``inner`` unchanged."""

    def __init__(self, inner: Emitter) -> None:
        self.inner = inner

    def on_starting(self, direction: Direction) -> None:
        self.inner.on_starting(direction)

    def on_connected(self, direction: Direction, server: str) -> None:
        self.inner.on_connected(direction, server)

    def on_event(self, event: MeasurementEvent) -> None:
        self.inner.on_event(event)

    def on_outcome(self, outcome: Outcome) -> None:
        self.inner.on_outcome(outcome)
