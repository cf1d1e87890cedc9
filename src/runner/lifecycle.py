"""Per-run marker files and the hook that removes them at exit."""

from __future__ import annotations

import logging
import os
import signal
from pathlib import Path
from types import FrameType
from typing import Any, Optional

from src.core.exceptions import FilesystemError
from src.core.factory import RunContext

logger = logging.getLogger("bpipe.runner.lifecycle")

_EXIT_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGTERM", None), getattr(signal, "SIGHUP", None)) if sig
)


def job_marker_path(context: RunContext) -> Path:
    return context.config.paths.expanded_jobs_dir / context.identity.run_id


def erase_marker_path(context: RunContext) -> Optional[Path]:
    ref = context.identity.handshake_ref
    if not ref:
        return None
    return context.config.paths.logs_dir / f"{ref}.erase.log"


def write_run_markers(context: RunContext) -> None:
    """Record this run as a live job and note our pid for `bpipe stop`."""
    job_file = job_marker_path(context)
    pid_file = context.config.paths.run_pid_file
    try:
        job_file.parent.mkdir(parents=True, exist_ok=True)
        job_file.write_text(str(Path.cwd()), encoding="utf-8")
        context.markers.append(job_file)
        pid_file.parent.mkdir(parents=True, exist_ok=True)
        pid_file.write_text(str(os.getpid()), encoding="utf-8")
        context.markers.append(pid_file)
    except OSError as e:
        raise FilesystemError(f"Unable to write run marker files: {e}") from e


def _raise_exit(signum: int, frame: Optional[FrameType]) -> None:
    raise SystemExit(128 + signum)


class TerminationHook:
    """Releases per-run files exactly once, however the process ends.

    Use as a context manager around the whole run. SIGTERM and SIGHUP are
    turned into SystemExit so the release happens on those paths too.
    """

    def __init__(self, context: RunContext):
        self.context = context
        self._released = False
        self._previous: dict[int, Any] = {}

    def __enter__(self) -> "TerminationHook":
        for sig in _EXIT_SIGNALS:
            try:
                self._previous[sig] = signal.signal(sig, _raise_exit)
            except ValueError:
                # not on the main thread
                pass
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            self.release()
        finally:
            for sig, handler in self._previous.items():
                signal.signal(sig, handler)
            self._previous.clear()
        return False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True

        for marker in self.context.markers:
            if not marker.exists():
                continue
            logger.info("Deleting marker file %s", marker)
            try:
                marker.unlink()
            except OSError:
                logger.warning("Unable to delete marker file %s for run %s",
                               marker, self.context.identity.run_id)
                self.context.echo(
                    f"WARN: Unable to delete job file for job {self.context.identity.run_id}"
                )

        erase = erase_marker_path(self.context)
        if erase is not None and self.context.config.runner.erase_logs_on_exit:
            try:
                erase.parent.mkdir(parents=True, exist_ok=True)
                erase.write_text("", encoding="utf-8")
            except OSError:
                logger.warning("Unable to truncate erase marker %s", erase)
