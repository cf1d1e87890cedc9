"""Execution engine interface exposed to pipeline definitions as ``run``."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Sequence

from src.core.config import RunnerConfig
from src.core.exceptions import PipelineScriptError
from src.services.events import EventManager, PipelineEvent

logger = logging.getLogger("bpipe.services.engine")

Stage = Callable[..., Any]


class PipelineEngine(ABC):
    inputs: list[str]

    @abstractmethod
    def run(self, *stages: Stage) -> Any:
        """Execute the given stages against the pipeline inputs."""

    def exports(self) -> dict[str, Any]:
        """Names made visible to the pipeline definition."""
        return {"run": self.run}


class SequentialEngine(PipelineEngine):
    """Runs stages one after another, each receiving the previous outputs.

    A stage returning None forwards its inputs unchanged. In test mode the
    stages are only reported, never called.
    """

    def __init__(
        self,
        config: RunnerConfig,
        events: Optional[EventManager] = None,
        test_mode: bool = False,
        echo: Callable[[str], None] = print,
    ):
        self.config = config
        self.events = events or EventManager()
        self.test_mode = test_mode
        self.echo = echo
        self.inputs: list[str] = []

    def exports(self) -> dict[str, Any]:
        return {"run": self.run, "pipeline_config": self.config}

    def run(self, *stages: Stage) -> Any:
        if not stages:
            raise PipelineScriptError("run() needs at least one pipeline stage")
        for stage in stages:
            if not callable(stage):
                raise PipelineScriptError(f"Pipeline stage {stage!r} is not callable")

        current: Sequence[Any] = list(self.inputs)
        for stage in stages:
            name = getattr(stage, "__name__", repr(stage))
            if self.test_mode:
                self.echo(f"Would run stage {name} with inputs {list(current)}")
                continue

            logger.info("Starting stage %s", name)
            self.events.fire(PipelineEvent.STAGE_STARTED, stage=name)
            result = stage(list(current))
            if result is not None:
                current = [result] if isinstance(result, str) else list(result)
            self.events.fire(PipelineEvent.STAGE_COMPLETED, stage=name)

        self.events.fire(PipelineEvent.FINISHED, outputs=list(current))
        return list(current)
