"""Emitter chain turning measurement callbacks into output and metrics."""

from __future__ import annotations

from typing import Optional, TextIO

from ..metrics import MetricSink
from .base import Emitter, Wrapper
from .human import HumanReadable
from .prometheus import Prometheus
from .quiet import Quiet

__all__ = ["Emitter", "HumanReadable", "Prometheus", "Quiet", "Wrapper", "build_emitter_chain"]


def build_emitter_chain(
    sink: MetricSink,
    stream: Optional[TextIO] = None,
    progress: bool = False,
) -> Emitter:
    """Compose ``Prometheus(Quiet(HumanReadable))``, dropping ``Quiet`` when progress is wanted."""

    emitter: Emitter = HumanReadable(stream)
    if not progress:
        emitter = Quiet(emitter)
    return Prometheus(emitter, sink)
