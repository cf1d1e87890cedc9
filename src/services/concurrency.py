"""Named resource limits handed to the execution engine."""

from __future__ import annotations

import logging

from src.core.exceptions import ParameterError

logger = logging.getLogger("bpipe.services.concurrency")


class ResourceLimits:
    def __init__(self) -> None:
        self._limits: dict[str, int] = {}

    def set_limit(self, name: str, value: int) -> None:
        if not name:
            raise ParameterError("Resource limit needs a name")
        if value < 0:
            raise ParameterError(f"Resource limit for {name} must not be negative: {value}")
        logger.info("Resource limit %s set to %d", name, value)
        self._limits[name] = value

    def get_limit(self, name: str) -> int | None:
        return self._limits.get(name)

    def as_dict(self) -> dict[str, int]:
        return dict(self._limits)


def parse_limit(spec: str) -> tuple[str, int]:
    """Parse ``name=value`` as given to ``-l``.

    Raises:
        ParameterError: If the text is not exactly one name and an integer.
    """
    parts = spec.split("=")
    if len(parts) != 2 or not parts[0]:
        raise ParameterError(f"Bad format for limit {spec} - expect format <name>=<value>")
    try:
        return parts[0], int(parts[1])
    except ValueError as e:
        raise ParameterError(f"Bad format for limit {spec} - expect format <name>=<value>") from e
