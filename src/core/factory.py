"""Run context factory for bpipe.

Builds the single RunContext a process uses. Everything that would
otherwise be process-wide state (identity, config, parameters, services)
lives on this object and is handed to each component explicitly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

import click

from src.core.config import AppConfig, RunnerConfig
from src.core.exceptions import FilesystemError
from src.core.models import RunIdentity
from src.runner.history import HistoryLog
from src.runner.params import ParameterEnvironment
from src.services.commands import CommandService, LocalCommandService
from src.services.concurrency import ResourceLimits
from src.services.dependencies import DependencyService, LocalDependencyService
from src.services.diagram import DiagramRenderer, OutlineRenderer
from src.services.engine import PipelineEngine, SequentialEngine
from src.services.events import EventManager

logger = logging.getLogger("bpipe.factory")

EngineFactory = Callable[[RunnerConfig, EventManager, bool], PipelineEngine]


def _default_engine(config: RunnerConfig, events: EventManager, test_mode: bool) -> PipelineEngine:
    return SequentialEngine(config=config, events=events, test_mode=test_mode, echo=click.echo)


@dataclass
class RunContext:
    """Everything one bpipe process needs, built once at startup.

    Fields are assigned by build_run_context and not replaced afterwards;
    the config's runner section is the only part updated from CLI flags.
    """

    config: AppConfig
    identity: RunIdentity
    history: HistoryLog
    params: ParameterEnvironment
    events: EventManager
    limits: ResourceLimits
    commands: CommandService
    dependencies: DependencyService
    diagrams: DiagramRenderer
    engine_factory: EngineFactory = _default_engine
    echo: Callable[[str], None] = click.echo
    # Files owned by this run, removed by the termination hook
    markers: list[Path] = field(default_factory=list)

    @property
    def work_dir(self) -> Path:
        return Path(self.config.paths.work_dir)


def ensure_work_dir(config: AppConfig) -> Path:
    """Create ``.bpipe`` in the working directory if needed.

    Raises:
        FilesystemError: If the directory cannot be created.
    """
    work_dir = Path(config.paths.work_dir)
    try:
        work_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(
            f"Bpipe was not able to make its database directory, {work_dir} in the "
            "local folder. Is this folder read-only?"
        ) from e
    return work_dir


def build_run_context(
    config: AppConfig,
    identity: RunIdentity,
    echo: Callable[[str], None] = click.echo,
    confirm: Optional[Callable[[str], bool]] = None,
    engine_factory: Optional[EngineFactory] = None,
) -> RunContext:
    """Wire the default local services around a resolved identity."""
    if confirm is None:
        def confirm(message: str) -> bool:
            return config.runner.auto_confirm or click.confirm(message, default=False)

    paths = config.paths
    context = RunContext(
        config=config,
        identity=identity,
        history=HistoryLog(paths.history_file),
        params=ParameterEnvironment(),
        events=EventManager(),
        limits=ResourceLimits(),
        commands=LocalCommandService(paths.commands_dir),
        dependencies=LocalDependencyService(paths.preserved_file, echo=echo, confirm=confirm),
        diagrams=OutlineRenderer(echo=echo),
        engine_factory=engine_factory or _default_engine,
        echo=echo,
    )
    logger.debug("Built run context for run %s", identity.run_id)
    return context
