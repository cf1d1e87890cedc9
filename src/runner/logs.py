"""Diagnostic log files for a run.

``.bpipe/bpipe.log`` always holds the latest run; ``.bpipe/logs/<run_id>.bpipe.log``
keeps one file per run for `bpipe log`.
"""

from __future__ import annotations

import logging
import platform
import sys
from pathlib import Path

from src.core.config import AppConfig
from src.core.exceptions import FilesystemError

ROOT_LOGGER = "bpipe"
CONSOLE_RUN_ID = "tests"

_VERBOSE_HANDLER_NAME = "bpipe-verbose"


def run_log_path(logs_dir: Path, run_id: str) -> Path:
    return logs_dir / f"{run_id}.bpipe.log"


def initialize_logging(config: AppConfig, run_id: str) -> logging.Logger:
    """Attach the file handlers for this run to the ``bpipe`` logger."""
    parent = logging.getLogger(ROOT_LOGGER)
    for handler in list(parent.handlers):
        parent.removeHandler(handler)
        handler.close()

    level = getattr(logging, config.logging.level.upper(), logging.INFO)
    formatter = logging.Formatter(config.logging.format)
    parent.setLevel(logging.DEBUG)
    parent.propagate = False

    logs_dir = config.paths.logs_dir
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        handlers: list[logging.Handler] = [
            logging.FileHandler(Path(config.paths.work_dir) / "bpipe.log", mode="w", encoding="utf-8")
        ]
        if run_id == CONSOLE_RUN_ID:
            handlers.append(logging.StreamHandler(sys.stderr))
        else:
            handlers.append(logging.FileHandler(run_log_path(logs_dir, run_id), encoding="utf-8"))
    except OSError as e:
        raise FilesystemError(f"Unable to create log files under {logs_dir}: {e}") from e

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        parent.addHandler(handler)

    parent.info("Starting")
    parent.info(
        "OS: %s (%s) Python: %s",
        platform.system(), platform.release(), platform.python_version(),
    )
    return parent


def enable_verbose_logging() -> None:
    """Mirror all internal logging to stderr at DEBUG (``-v``)."""
    parent = logging.getLogger(ROOT_LOGGER)
    if any(h.get_name() == _VERBOSE_HANDLER_NAME for h in parent.handlers):
        return
    console = logging.StreamHandler(sys.stderr)
    console.set_name(_VERBOSE_HANDLER_NAME)
    console.setLevel(logging.DEBUG)
    console.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    parent.addHandler(console)
