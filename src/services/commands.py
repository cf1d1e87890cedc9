"""Commands launched by a pipeline, as seen by `bpipe stopcommands`.

The engine records each running command as ``.bpipe/commands/<id>`` whose
content is the process id.
"""

from __future__ import annotations

import logging
import os
import signal
from abc import ABC, abstractmethod
from pathlib import Path

from src.core.exceptions import ServiceError

logger = logging.getLogger("bpipe.services.commands")


class CommandService(ABC):
    @abstractmethod
    def stop_all(self) -> int:
        """Stop every running command and return how many were stopped."""


class LocalCommandService(CommandService):
    def __init__(self, commands_dir: Path):
        self.commands_dir = commands_dir

    def register(self, command_id: str, pid: int) -> Path:
        self.commands_dir.mkdir(parents=True, exist_ok=True)
        path = self.commands_dir / command_id
        path.write_text(str(pid), encoding="utf-8")
        return path

    def stop_all(self) -> int:
        if not self.commands_dir.is_dir():
            return 0

        count = 0
        for path in sorted(self.commands_dir.iterdir()):
            if not path.is_file():
                continue
            if self._stop(path):
                count += 1
            path.unlink(missing_ok=True)
        return count

    def _stop(self, path: Path) -> bool:
        try:
            pid = int(path.read_text(encoding="utf-8").strip())
        except ValueError:
            logger.warning("Ignoring command file %s with no valid pid", path)
            return False
        except OSError as e:
            raise ServiceError(f"Unable to read command file {path}: {e}") from e

        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            logger.info("Command %s (pid %d) already finished", path.name, pid)
            return False
        except PermissionError as e:
            raise ServiceError(f"Not permitted to stop command {path.name} (pid {pid})") from e
        logger.info("Stopped command %s (pid %d)", path.name, pid)
        return True
