"""Write-once parameter environment for pipeline definitions.

Parameters given on the command line are bound before the pipeline
definition runs and are locked: later writes to the same name, including
plain assignments in the definition, are dropped. A definition can
therefore declare defaults (``threads = 1``) that any ``-p threads=8``
overrides.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Iterator, Optional

from src.core.models import Interval, ParameterBinding

logger = logging.getLogger("bpipe.runner.params")

REGION_PARAM = "region"

_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1

_INT_RE = re.compile(r"^[+-]?[0-9]+$")
_FLOAT_RE = re.compile(
    r"^[+-]?(NaN|Infinity|([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?)[fFdD]?$"
)


def coerce_value(raw: str) -> int | float | bool | str:
    """Coerce a raw token: int32, int64, float, boolean literal, else string."""
    if _INT_RE.match(raw):
        number = int(raw)
        # int32 and int64 both land in int; wider values fall through to float
        if _INT64_MIN <= number <= _INT64_MAX:
            return number
    if _FLOAT_RE.match(raw):
        return float(raw.rstrip("fFdD"))
    if raw.lower() in ("true", "false"):
        return raw.lower() == "true"
    return raw


def parse_param(item: str) -> Optional[tuple[str, Any]]:
    """Parse ``key=value``; ``key`` or ``key=`` mean ``key=True``.

    Returns None when the key is missing.
    """
    if not item:
        return None

    key, sep, value = item.partition("=")
    if not key:
        return None
    if not sep or not value:
        return key, True
    if key == REGION_PARAM:
        # parsed as an interval from the text as given
        return key, value
    return key, coerce_value(value)


def split_param_option(values: Iterable[str]) -> list[str]:
    """Expand repeated ``-p`` values, each of which may hold ``a=1,b=2``."""
    pairs: list[str] = []
    for value in values:
        pairs.extend(part for part in value.split(",") if part)
    return pairs


class ParameterEnvironment:
    """Explicit map of name to binding with a per-entry lock."""

    def __init__(self) -> None:
        self._bindings: dict[str, ParameterBinding] = {}

    def bind_param(self, name: str, value: Any) -> bool:
        """Bind an external parameter and lock it.

        Returns False (and keeps the earlier value) if the name is already locked.
        """
        if self.is_locked(name):
            logger.debug("Parameter %s already bound; ignoring new value %r", name, value)
            return False
        if name == REGION_PARAM and not isinstance(value, Interval):
            value = Interval.parse(str(value))
        self._bindings[name] = ParameterBinding(name=name, value=value, locked=True)
        return True

    def assign(self, name: str, value: Any) -> bool:
        """Unlocked write, as made by the pipeline definition itself."""
        if self.is_locked(name):
            logger.debug("Ignoring assignment to parameter %s", name)
            return False
        self._bindings[name] = ParameterBinding(name=name, value=value, locked=False)
        return True

    def add_params(self, items: Iterable[str]) -> None:
        """Bind a list of ``key=value`` tokens, skipping ones without a key."""
        for item in items:
            entry = parse_param(item)
            if entry is None:
                logger.warning(
                    "The specified value is not a valid parameter: '%s'. "
                    "It must be in format 'key=value'",
                    item,
                )
                continue
            self.bind_param(*entry)

    def is_locked(self, name: str) -> bool:
        binding = self._bindings.get(name)
        return binding is not None and binding.locked

    def get(self, name: str, default: Any = None) -> Any:
        binding = self._bindings.get(name)
        return default if binding is None else binding.value

    def binding(self, name: str) -> Optional[ParameterBinding]:
        return self._bindings.get(name)

    def values(self) -> dict[str, Any]:
        return {name: b.value for name, b in self._bindings.items()}

    def parameters(self) -> dict[str, Any]:
        """Only the locked (externally supplied) bindings."""
        return {name: b.value for name, b in self._bindings.items() if b.locked}

    def __contains__(self, name: object) -> bool:
        return name in self._bindings

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)
