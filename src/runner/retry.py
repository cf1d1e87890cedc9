"""Reconstruct a previous invocation from the history log for `bpipe retry`."""

from __future__ import annotations

import logging
import re
from typing import Sequence

from src.core.exceptions import MalformedHistoryError, MissingHistoryError, RetryUsageError
from src.core.models import RetryRequest
from src.runner.history import HistoryLog
from src.runner.shell_args import split_shell_args

logger = logging.getLogger("bpipe.runner.retry")

RETRY_USAGE = "Usage: bpipe retry [test] [jobid]"
TEST_FLAG = "-t"

_SELECTOR_RE = re.compile(r"^[+-]?[0-9]+$")
_LEADING_ID_RE = re.compile(r"^\S+\t")
_COMMAND_RE = re.compile(r"^bpipe ([a-z]*)(?: (.*))?$", re.DOTALL)


def parse_retry_request(args: Sequence[str]) -> RetryRequest:
    """Parse ``[test] [jobid]``.

    Raises:
        RetryUsageError: If the job id is not an integer or extra tokens follow it.
    """
    remaining = list(args)
    test_mode = False
    if remaining and remaining[0] == "test":
        test_mode = True
        remaining.pop(0)

    if not remaining:
        return RetryRequest(test_mode=test_mode)

    if len(remaining) > 1 or not _SELECTOR_RE.match(remaining[0]):
        raise RetryUsageError(f"Job ID could not be parsed as integer\n{RETRY_USAGE}")
    return RetryRequest(job_selector=int(remaining[0]), test_mode=test_mode)


def select_command_line(lines: Sequence[str], request: RetryRequest) -> str:
    """Pick the history line to replay: newest first, first match wins."""
    if not lines:
        raise MissingHistoryError(
            "No previous Bpipe command seems to have been run in this directory."
        )

    if request.job_selector is None:
        return lines[-1]

    prefix = f"{request.job_selector}\t"
    for line in reversed(lines):
        if line.startswith(prefix):
            return line
    raise MissingHistoryError(
        f"No previous Bpipe command with job id {request.job_selector} was found in history."
    )


def parse_command_line(command_line: str) -> tuple[str, list[str]]:
    """Split ``bpipe <mode> <args>`` back into mode and argument vector.

    Raises:
        MalformedHistoryError: If the line does not follow the recorded grammar.
    """
    stripped = _LEADING_ID_RE.sub("", command_line, count=1)
    match = _COMMAND_RE.match(stripped)
    if not match:
        raise MalformedHistoryError(command_line)
    mode, rest = match.group(1), match.group(2) or ""
    return mode, split_shell_args(rest)


def resolve_retry(history: HistoryLog, args: Sequence[str]) -> tuple[str, list[str]]:
    """Return ``(mode, argv)`` of the invocation selected by `bpipe retry` args.

    For an unchanged log the same args always resolve to the same result.
    """
    request = parse_retry_request(args)
    line = select_command_line(history.read_lines(), request)
    mode, argv = parse_command_line(line)
    if request.test_mode:
        argv = [TEST_FLAG, *argv]
    logger.info("Retrying %s command with arguments %s", mode, argv)
    return mode, argv
