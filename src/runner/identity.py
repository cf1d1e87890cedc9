"""Run identity resolution.

The launching shell script writes the run id to ``.bpipe/launch/<ref>`` and
passes ``<ref>`` to us in the environment. The file may be written after
this process starts, so we poll for it for a short, bounded time and then
consume it so nothing else picks up the same id.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Callable, Mapping, Optional

from src.core.config import IdentityConfig
from src.core.exceptions import FilesystemError, IdentityHandshakeError
from src.core.models import RunIdentity

logger = logging.getLogger("bpipe.runner.identity")


def resolve_run_identity(
    launch_dir: Path,
    config: Optional[IdentityConfig] = None,
    environ: Optional[Mapping[str, str]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunIdentity:
    """Resolve the run id for this process.

    Args:
        launch_dir: Directory the launcher writes handshake files into.
        config: Poll interval, attempt ceiling and placeholder id.
        environ: Where to look up the handshake reference (defaults to os.environ).
        sleep: Injected for tests.

    Returns:
        RunIdentity carrying the handshake content, or the placeholder id when
        no handshake reference was supplied.

    Raises:
        IdentityHandshakeError: If the handshake file never appears.
        FilesystemError: If the handshake file exists but cannot be consumed.
    """
    config = config or IdentityConfig()
    environ = os.environ if environ is None else environ

    ref = environ.get(config.handshake_env_var)
    if not ref:
        return RunIdentity(run_id=config.placeholder)

    handshake = launch_dir / ref
    interval = config.poll_interval_ms / 1000.0
    for attempt in range(config.poll_attempts):
        if handshake.exists():
            run_id = _consume(handshake)
            logger.debug("Resolved run id %s after %d poll(s)", run_id, attempt + 1)
            return RunIdentity(run_id=run_id, handshake_ref=ref)
        sleep(interval)

    raise IdentityHandshakeError(str(handshake.absolute()))


def _consume(handshake: Path) -> str:
    try:
        run_id = handshake.read_text(encoding="utf-8").strip()
        handshake.unlink()
    except OSError as e:
        raise FilesystemError(f"Failed to consume handshake file {handshake}: {e}") from e
    return run_id
