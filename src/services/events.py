"""Pipeline event registration.

The launcher only registers listeners; the engine fires events as stages
start and finish.
"""

from __future__ import annotations

import enum
import logging
import time
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger("bpipe.services.events")

Listener = Callable[..., None]


class PipelineEvent(str, enum.Enum):
    STAGE_STARTED = "STAGE_STARTED"
    STAGE_COMPLETED = "STAGE_COMPLETED"
    FINISHED = "FINISHED"


class EventManager:
    def __init__(self) -> None:
        self._listeners: dict[PipelineEvent, list[Listener]] = defaultdict(list)

    def add_listener(self, event: PipelineEvent, listener: Listener) -> None:
        self._listeners[event].append(listener)

    def listeners(self, event: PipelineEvent) -> list[Listener]:
        return list(self._listeners.get(event, []))

    def fire(self, event: PipelineEvent, **details: Any) -> None:
        for listener in self.listeners(event):
            try:
                listener(event, **details)
            except Exception:
                logger.exception("Listener %r failed handling %s", listener, event.value)


class ReportStatisticsListener:
    """Collects per-stage wall-clock durations for the `-r` report."""

    def __init__(self) -> None:
        self._started: dict[str, float] = {}
        self.durations: dict[str, float] = {}

    def __call__(self, event: PipelineEvent, stage: str = "", **_: Any) -> None:
        if event is PipelineEvent.STAGE_STARTED:
            self._started[stage] = time.monotonic()
        elif event is PipelineEvent.STAGE_COMPLETED and stage in self._started:
            self.durations[stage] = time.monotonic() - self._started.pop(stage)
            logger.info("Stage %s took %.3fs", stage, self.durations[stage])
