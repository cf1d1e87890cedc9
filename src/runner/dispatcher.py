"""Mode dispatch for the bpipe command line.

Each family of modes has its own click command with its own options. The
dispatcher picks exactly one per invocation: single-shot modes do their
one action and return, `retry` rewrites the mode and arguments from
history and dispatches again, and run/test/debug/execute go down the
standard path which ends in the script bootstrap.
"""

from __future__ import annotations

import logging
import os
import signal
from dataclasses import dataclass
from importlib import metadata
from pathlib import Path
from typing import Sequence

import click

from src.core.exceptions import MissingHistoryError, UsageError
from src.core.factory import RunContext
from src.core.models import Interval
from src.runner.bootstrap import (
    INLINE_FILENAME,
    ScriptBootstrap,
    inline_pipeline_src,
    load_pipeline_src,
)
from src.runner.lifecycle import write_run_markers
from src.runner.logs import enable_verbose_logging, run_log_path
from src.runner.params import REGION_PARAM, split_param_option
from src.runner.retry import resolve_retry
from src.services.concurrency import parse_limit
from src.services.events import PipelineEvent, ReportStatisticsListener

logger = logging.getLogger("bpipe.runner.dispatcher")

DEFAULT_HELP = """\
bpipe [run|test|debug|execute] [options] <pipeline> <in1> <in2>...
      retry [test] [jobid]
      stop
      history
      log [jobid]
      jobs
      cleanup [-y] <file1> ...
      query [<file1> ...]
      preserve <file1> ...
      stopcommands
      diagram [-e] <pipeline> <in1> <in2>...
      documentation <pipeline> <in1> <in2>...
      diagrameditor <pipeline> <in1> <in2>..."""

STANDARD_MODES = ("run", "test", "debug", "execute")
DIAGRAM_MODES = ("diagram", "documentation", "diagrameditor")
SINGLE_SHOT_MODES = (
    *DIAGRAM_MODES,
    "cleanup",
    "query",
    "preserve",
    "stopcommands",
    "stop",
    "history",
    "log",
    "jobs",
)
MODES = (*STANDARD_MODES, "retry", *SINGLE_SHOT_MODES)

_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"], "allow_interspersed_args": False}


def version_info() -> str:
    try:
        version = metadata.version("bpipe-runner")
    except metadata.PackageNotFoundError:
        version = "dev"
    return f"Bpipe Version {version}"


@dataclass
class Invocation:
    context: RunContext
    mode: str
    args: list[str]


# ---------------------------------------------------------------------------
# Standard path
# ---------------------------------------------------------------------------

@click.command("run", context_settings=_CONTEXT_SETTINGS)
@click.option("-d", "--dir", "output_dir", default=None, help="output directory")
@click.option("-t", "--test", "test_mode", is_flag=True, default=False, help="test mode")
@click.option("-r", "--report", is_flag=True, default=False,
              help="generate an HTML report / documentation for pipeline")
@click.option("-n", "--threads", type=int, default=None, help="maximum threads")
@click.option("-m", "--memory", type=int, default=None, help="maximum memory (MB)")
@click.option("-l", "--resource", "resources", multiple=True, metavar="RESOURCE=VALUE",
              help="place limit on named resource")
@click.option("-v", "--verbose", is_flag=True, default=False,
              help="print internal logging to standard error")
@click.option("-y", "--yes", is_flag=True, default=False,
              help="answer yes to any prompts or questions")
@click.option("-p", "--param", "params", multiple=True, metavar="PARAM=VALUE",
              help="defines a pipeline parameter")
@click.option("-L", "--interval", default=None,
              help="the default genomic interval to execute pipeline for (samtools format)")
@click.argument("arguments", nargs=-1)
@click.pass_obj
def standard_command(
    invocation: Invocation,
    output_dir: str | None,
    test_mode: bool,
    report: bool,
    threads: int | None,
    memory: int | None,
    resources: tuple[str, ...],
    verbose: bool,
    yes: bool,
    params: tuple[str, ...],
    interval: str | None,
    arguments: tuple[str, ...],
) -> int:
    """Run a pipeline file (or, for execute, an inline pipeline body)."""
    context = invocation.context
    runner = context.config.runner
    mode = invocation.mode
    test_mode = test_mode or mode == "test"

    if verbose or mode == "debug":
        enable_verbose_logging()

    if not arguments:
        click.echo(f"\n{version_info()}\n")
        raise click.UsageError("No pipeline was specified")

    runner.mode = mode
    if output_dir:
        runner.default_output_directory = output_dir
    if threads is not None:
        logger.info("Maximum threads specified as %d", threads)
        runner.max_threads = threads
        runner.custom_threads = True
    if memory is not None:
        logger.info("Maximum memory specified as %d MB", memory)
        runner.max_memory_mb = memory
    for spec in resources:
        logger.info("Resource limit specified as %s", spec)
        context.limits.set_limit(*parse_limit(spec))
    if yes:
        runner.auto_confirm = True
    if report:
        runner.report = True
        stats = ReportStatisticsListener()
        context.events.add_listener(PipelineEvent.STAGE_STARTED, stats)
        context.events.add_listener(PipelineEvent.STAGE_COMPLETED, stats)

    if mode == "execute":
        source = inline_pipeline_src(arguments[0])
        filename = INLINE_FILENAME
    else:
        source = load_pipeline_src(Path(arguments[0]))
        filename = arguments[0]
    pipeline_args = list(arguments[1:])

    if params:
        logger.info("Adding CLI parameters: %s", list(params))
        context.params.add_params(split_param_option(params))
    else:
        logger.info("No CLI parameters specified")
    if interval:
        context.params.bind_param(REGION_PARAM, Interval.parse(interval))

    # From here on the run is real: keep its logs and record it for retry
    if not test_mode:
        runner.erase_logs_on_exit = False
        context.history.append(context.identity.run_id, mode, invocation.args)
    write_run_markers(context)

    engine = context.engine_factory(runner, context.events, test_mode)
    ScriptBootstrap(context.params, engine).run(source, filename, pipeline_args)
    return 0


# ---------------------------------------------------------------------------
# Single-shot modes
# ---------------------------------------------------------------------------

@click.command("diagram", context_settings=_CONTEXT_SETTINGS)
@click.option("-e", "--editor", is_flag=True, default=False, help="open the diagram editor")
@click.argument("pipeline", type=click.Path(path_type=Path))
@click.argument("inputs", nargs=-1)
@click.pass_obj
def diagram_command(invocation: Invocation, editor: bool, pipeline: Path, inputs: tuple[str, ...]) -> int:
    """Outline the stages of a pipeline without running it."""
    mode = "diagrameditor" if editor else invocation.mode
    invocation.context.config.runner.mode = mode
    invocation.context.diagrams.render(mode, pipeline, list(inputs))
    return 0


@click.command("cleanup", context_settings=_CONTEXT_SETTINGS)
@click.option("-y", "--yes", is_flag=True, default=False,
              help="answer yes to any prompts or questions")
@click.argument("files", nargs=-1)
@click.pass_obj
def cleanup_command(invocation: Invocation, yes: bool, files: tuple[str, ...]) -> int:
    """Remove output files that are not preserved."""
    if yes:
        invocation.context.config.runner.auto_confirm = True
    invocation.context.dependencies.cleanup(list(files))
    return 0


@click.command("query", context_settings=_CONTEXT_SETTINGS)
@click.argument("files", nargs=-1)
@click.pass_obj
def query_command(invocation: Invocation, files: tuple[str, ...]) -> int:
    """Show what is known about output files."""
    logger.info("Showing dependency graph for %s", list(files))
    invocation.context.dependencies.query_outputs(list(files))
    return 0


@click.command("preserve", context_settings=_CONTEXT_SETTINGS)
@click.argument("files", nargs=-1, required=True)
@click.pass_obj
def preserve_command(invocation: Invocation, files: tuple[str, ...]) -> int:
    """Protect output files from cleanup."""
    logger.info("Preserving %s", list(files))
    invocation.context.dependencies.preserve(list(files))
    return 0


@click.command("stopcommands", context_settings=_CONTEXT_SETTINGS)
@click.pass_obj
def stopcommands_command(invocation: Invocation) -> int:
    """Stop every command started by pipelines in this directory."""
    logger.info("Stopping running commands")
    count = invocation.context.commands.stop_all()
    invocation.context.echo(f"Stopped {count} commands")
    return 0


@click.command("stop", context_settings=_CONTEXT_SETTINGS)
@click.pass_obj
def stop_command(invocation: Invocation) -> int:
    """Stop the pipeline running in this directory and its commands."""
    context = invocation.context
    pid_file = context.config.paths.run_pid_file
    raw_pid = pid_file.read_text(encoding="utf-8").strip() if pid_file.exists() else ""
    if not raw_pid.isdigit() or int(raw_pid) <= 0:
        context.echo("No running pipeline found in this directory")
    else:
        pid = int(raw_pid)
        try:
            os.kill(pid, signal.SIGTERM)
            context.echo(f"Stopped pipeline (pid {pid})")
        except ProcessLookupError:
            context.echo(f"Pipeline process {pid} is not running")
    pid_file.unlink(missing_ok=True)
    count = context.commands.stop_all()
    context.echo(f"Stopped {count} commands")
    return 0


@click.command("history", context_settings=_CONTEXT_SETTINGS)
@click.pass_obj
def history_command(invocation: Invocation) -> int:
    """Print previously recorded commands."""
    context = invocation.context
    entries = context.history.entries()
    if not entries:
        context.echo("No previous Bpipe command seems to have been run in this directory.")
    for entry in entries:
        context.echo(f"{entry.run_id}\t{entry.command_line}")
    return 0


@click.command("log", context_settings=_CONTEXT_SETTINGS)
@click.option("-n", "--lines", type=int, default=200, show_default=True,
              help="number of trailing lines to show")
@click.argument("job_id", required=False)
@click.pass_obj
def log_command(invocation: Invocation, lines: int, job_id: str | None) -> int:
    """Print the diagnostic log of the most recent (or given) run."""
    context = invocation.context
    if job_id is None:
        entries = context.history.entries()
        if not entries:
            raise MissingHistoryError(
                "No previous Bpipe command seems to have been run in this directory."
            )
        job_id = entries[-1].run_id

    path = run_log_path(context.config.paths.logs_dir, job_id)
    if not path.is_file():
        raise UsageError(f"No log file found for job {job_id}")
    text = path.read_text(encoding="utf-8").splitlines()
    if lines > 0:
        text = text[-lines:]
    for line in text:
        context.echo(line)
    return 0


@click.command("jobs", context_settings=_CONTEXT_SETTINGS)
@click.pass_obj
def jobs_command(invocation: Invocation) -> int:
    """List bpipe runs that are still marked as live."""
    context = invocation.context
    jobs_dir = context.config.paths.expanded_jobs_dir
    markers = sorted(p for p in jobs_dir.iterdir() if p.is_file()) if jobs_dir.is_dir() else []
    if not markers:
        context.echo("No jobs are currently running")
    for marker in markers:
        directory = marker.read_text(encoding="utf-8").strip()
        context.echo(f"{marker.name}\t{directory}")
    return 0


_SINGLE_SHOT_COMMANDS: dict[str, click.Command] = {
    **{mode: diagram_command for mode in DIAGRAM_MODES},
    "cleanup": cleanup_command,
    "query": query_command,
    "preserve": preserve_command,
    "stopcommands": stopcommands_command,
    "stop": stop_command,
    "history": history_command,
    "log": log_command,
    "jobs": jobs_command,
}


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

def split_mode(argv: Sequence[str]) -> tuple[str, list[str]]:
    """Take the mode off the front of argv; anything else means ``run``."""
    args = list(argv)
    if args and args[0] in MODES:
        return args[0], args[1:]
    return "run", args


class Dispatcher:
    def __init__(self, context: RunContext):
        self.context = context

    def dispatch(self, mode: str | None, args: Sequence[str]) -> int:
        """Run exactly one action for ``mode`` and return the exit status."""
        mode = mode or "run"
        args = list(args)

        if mode in _SINGLE_SHOT_COMMANDS:
            logger.info("Mode is %s", mode)
            self.context.config.runner.mode = mode
            return self._invoke(_SINGLE_SHOT_COMMANDS[mode], mode, args)

        if mode == "retry":
            mode, args = resolve_retry(self.context.history, args)
            mode = mode or "run"
            if mode not in STANDARD_MODES:
                raise UsageError(f"A '{mode}' command cannot be retried")

        if mode in STANDARD_MODES:
            return self._invoke(standard_command, mode, args)

        raise UsageError(f"Unknown command '{mode}'")

    def _invoke(self, command: click.Command, mode: str, args: list[str]) -> int:
        result = command.main(
            args=args,
            prog_name=f"bpipe {mode}",
            standalone_mode=False,
            obj=Invocation(context=self.context, mode=mode, args=args),
        )
        return result if isinstance(result, int) else 0
