"""Append-only history of bpipe invocations.

Each line is the run id, a tab, then ``bpipe <mode> <args>`` with arguments
re-quoted. The log is only ever appended to; `bpipe retry` reads it back.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from src.core.exceptions import FilesystemError
from src.core.models import HistoryEntry
from src.runner.shell_args import join_shell_args

logger = logging.getLogger("bpipe.runner.history")


def format_command_line(mode: str | None, args: Sequence[str]) -> str:
    command = f"bpipe {mode or 'run'}"
    if args:
        command += " " + join_shell_args(list(args))
    return command


class HistoryLog:
    """The `.bpipe/history` file."""

    def __init__(self, path: Path):
        self.path = path

    def append(self, run_id: str, mode: str | None, args: Sequence[str]) -> HistoryEntry:
        """Record one invocation. Creates the log if it does not exist yet.

        Raises:
            FilesystemError: If the log cannot be created or written.
        """
        entry = HistoryEntry(run_id=run_id, command_line=format_command_line(mode, args))
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8", newline="") as f:
                f.write(entry.to_line())
        except OSError as e:
            raise FilesystemError(f"Unable to write history file {self.path}: {e}") from e
        logger.info("Recorded command in history: %s", entry.command_line)
        return entry

    def read_lines(self) -> list[str]:
        """Return raw lines, oldest first. A missing log reads as empty.

        Records are split on ``\\n`` only; other separators such as ``\\x1c``
        or ``\\u2028`` can appear inside a quoted argument.
        """
        if not self.path.exists():
            return []
        try:
            with open(self.path, encoding="utf-8", newline="") as f:
                text = f.read()
        except OSError as e:
            raise FilesystemError(f"Unable to read history file {self.path}: {e}") from e
        return [line for line in text.split("\n") if line.strip()]

    def entries(self) -> list[HistoryEntry]:
        return [HistoryEntry.from_line(line) for line in self.read_lines()]
