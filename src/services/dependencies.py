"""Output file bookkeeping used by `bpipe query`, `cleanup` and `preserve`.

Preserved files are listed one per line in ``.bpipe/preserved``; cleanup
never removes them.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Callable, Sequence

from src.core.exceptions import ServiceError

logger = logging.getLogger("bpipe.services.dependencies")


class DependencyService(ABC):
    @abstractmethod
    def query_outputs(self, files: Sequence[str]) -> None: ...

    @abstractmethod
    def cleanup(self, files: Sequence[str]) -> int: ...

    @abstractmethod
    def preserve(self, files: Sequence[str]) -> None: ...


class LocalDependencyService(DependencyService):
    def __init__(
        self,
        preserved_file: Path,
        echo: Callable[[str], None] = print,
        confirm: Callable[[str], bool] = lambda _msg: False,
    ):
        self.preserved_file = preserved_file
        self.echo = echo
        self.confirm = confirm

    def preserved(self) -> list[str]:
        if not self.preserved_file.exists():
            return []
        return [
            line.strip()
            for line in self.preserved_file.read_text(encoding="utf-8").splitlines()
            if line.strip()
        ]

    def preserve(self, files: Sequence[str]) -> None:
        current = self.preserved()
        added = [f for f in dict.fromkeys(files) if f not in current]
        if not added:
            self.echo("All specified files are already preserved")
            return
        try:
            self.preserved_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.preserved_file, "a", encoding="utf-8") as f:
                for name in added:
                    f.write(name + "\n")
        except OSError as e:
            raise ServiceError(f"Unable to update {self.preserved_file}: {e}") from e
        for name in added:
            self.echo(f"Preserving {name}")

    def cleanup(self, files: Sequence[str]) -> int:
        keep = set(self.preserved())
        skipped = [f for f in files if f in keep]
        targets = [f for f in files if f not in keep and Path(f).exists()]
        for name in skipped:
            self.echo(f"Not removing preserved file {name}")
        if not targets:
            self.echo("No files to clean up")
            return 0

        listing = "\n".join(f"    {t}" for t in targets)
        if not self.confirm(f"The following files will be removed:\n\n{listing}\n\nProceed?"):
            self.echo("Cleanup cancelled")
            return 0

        removed = 0
        for name in targets:
            try:
                Path(name).unlink()
            except OSError as e:
                logger.warning("Unable to remove %s: %s", name, e)
                self.echo(f"WARN: unable to remove {name}")
                continue
            removed += 1
        self.echo(f"Removed {removed} file(s)")
        return removed

    def query_outputs(self, files: Sequence[str]) -> None:
        keep = set(self.preserved())
        names = list(files) or sorted(keep)
        if not names:
            self.echo("No outputs specified and no files are preserved")
            return
        for name in names:
            path = Path(name)
            flag = " [preserved]" if name in keep else ""
            if not path.exists():
                self.echo(f"{name}: missing{flag}")
                continue
            stat = path.stat()
            modified = datetime.fromtimestamp(stat.st_mtime).isoformat(timespec="seconds")
            self.echo(f"{name}: {stat.st_size} bytes, modified {modified}{flag}")
