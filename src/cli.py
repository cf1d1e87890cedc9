"""CLI entrypoint for bpipe."""

from __future__ import annotations

import logging
import signal
import sys
from typing import Any, Optional, Sequence

import click

from src.core.config import AppConfig, load_config
from src.core.exceptions import (
    BpipeError,
    ConfigError,
    FilesystemError,
    MalformedHistoryError,
    UndefinedVariableError,
    UsageError,
)
from src.core.factory import RunContext, build_run_context, ensure_work_dir
from src.runner.dispatcher import DEFAULT_HELP, Dispatcher, split_mode
from src.runner.identity import resolve_run_identity
from src.runner.lifecycle import TerminationHook
from src.runner.logs import initialize_logging

logger = logging.getLogger("bpipe.cli")

# Track the running context for the interrupt summary
_active_context: RunContext | None = None


def _sigint_handler(signum: int, frame: Any) -> None:
    """Handle Ctrl+C with a short summary instead of a bare traceback."""
    click.echo("\n")
    click.echo(click.style("Interrupted.", fg="yellow", bold=True))
    if _active_context is not None:
        click.echo(f"  Run ID:  {_active_context.identity.run_id}")
        click.echo(f"  Mode:    {_active_context.config.runner.mode}")
    click.echo("\nRe-run the last recorded command with:\n  bpipe retry")
    sys.exit(130)


def _setup_logging(config: AppConfig, run_id: str) -> None:
    """Attach the run's log files; a logging failure must not stop the run."""
    try:
        initialize_logging(config, run_id)
    except FilesystemError as e:
        logging.basicConfig(level=logging.WARNING, format=config.logging.format, stream=sys.stderr)
        logger.warning("Falling back to console logging: %s", e)


def _undefined_variable_message(error: UndefinedVariableError) -> str:
    line = error.line if error.line is not None else "?"
    return (
        "\nPipeline Failed!\n\n"
        f"A variable referred to in your script on line {line}, '{error.name}' was not defined.\n\n"
        "Please check that all pipeline stages or other variables you have referenced "
        "by this name are defined.\n"
    )


def _dispatch(context: RunContext, argv: list[str]) -> int:
    mode, args = split_mode(argv)
    try:
        return Dispatcher(context).dispatch(mode, args)
    except click.ClickException as e:
        e.show()
        return 1
    except click.Abort:
        click.echo("Aborted!", err=True)
        return 1
    except UndefinedVariableError as e:
        click.echo(_undefined_variable_message(e))
        return 1
    except MalformedHistoryError as e:
        logger.error("%s", e)
        click.echo(str(e), err=True)
        return 1
    except UsageError as e:
        click.echo(f"\n{e}\n", err=True)
        click.echo(DEFAULT_HELP)
        return 1
    except BpipeError as e:
        logger.error("%s", e)
        click.echo(f"ERROR: {e}", err=True)
        return 1


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Run one bpipe invocation and return its exit status."""
    global _active_context

    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        click.echo(DEFAULT_HELP)
        return 1

    try:
        config = load_config()
        ensure_work_dir(config)
        identity = resolve_run_identity(config.paths.launch_dir, config.identity)
    except ConfigError as e:
        click.echo(str(e), err=True)
        return 1
    except FilesystemError as e:
        click.echo(f"ERROR: {e}", err=True)
        return 1

    context = build_run_context(config, identity)
    _active_context = context
    previous = signal.signal(signal.SIGINT, _sigint_handler)
    try:
        with TerminationHook(context):
            _setup_logging(config, identity.run_id)
            return _dispatch(context, argv)
    finally:
        signal.signal(signal.SIGINT, previous)
        _active_context = None


def main() -> None:
    """Entry point used by the `bpipe` console script."""
    sys.exit(run())


if __name__ == "__main__":
    main()
