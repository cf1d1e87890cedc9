"""Pydantic data models for bpipe.

Defines the records passed between the launcher components: run identity,
history entries, retry requests, parameter bindings and interval values.
"""

from __future__ import annotations

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from src.core.exceptions import ParameterError

_INTERVAL_RE = re.compile(r"^([^:\s]+)(?::([0-9,]+)(?:-([0-9,]+))?)?$")


class RunIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    run_id: str
    handshake_ref: Optional[str] = None

    @property
    def managed(self) -> bool:
        return self.handshake_ref is not None


class HistoryEntry(BaseModel):
    """One line of the history log: ``run_id<TAB>command_line``."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    command_line: str

    def to_line(self) -> str:
        return f"{self.run_id}\t{self.command_line}\n"

    @classmethod
    def from_line(cls, line: str) -> "HistoryEntry":
        run_id, sep, command_line = line.rstrip("\n").partition("\t")
        if not sep:
            return cls(run_id="", command_line=run_id)
        return cls(run_id=run_id, command_line=command_line)


class RetryRequest(BaseModel):
    job_selector: Optional[int] = None
    test_mode: bool = False


class Interval(BaseModel):
    """A genomic interval in samtools notation, e.g. ``chr1:1-1000``."""

    model_config = ConfigDict(frozen=True)

    chrom: str
    start: Optional[int] = None
    end: Optional[int] = None
    value: str

    @classmethod
    def parse(cls, text: str) -> "Interval":
        match = _INTERVAL_RE.match(text.strip())
        if not match:
            raise ParameterError(
                f"Bad format for interval '{text}' - expect format <chr>:<start>-<end>"
            )
        chrom, start, end = match.groups()
        start_pos = int(start.replace(",", "")) if start else None
        end_pos = int(end.replace(",", "")) if end else None
        if start_pos is not None and end_pos is not None and end_pos < start_pos:
            raise ParameterError(f"Interval '{text}' ends before it starts")
        return cls(chrom=chrom, start=start_pos, end=end_pos, value=text.strip())

    def __str__(self) -> str:
        return self.value


class ParameterBinding(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    value: Any
    locked: bool = False
