"""Custom exception hierarchy for bpipe.

All exceptions inherit from BpipeError so the CLI can catch broadly
or narrowly as needed.
"""


class BpipeError(Exception):
    """Base exception for all bpipe errors."""


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------

class UsageError(BpipeError):
    """Bad flags, missing pipeline file or unknown command."""


class RetryUsageError(UsageError):
    """Arguments to `bpipe retry` could not be understood."""


class ParameterError(UsageError):
    """Malformed parameter, limit or interval syntax."""


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

class HistoryError(BpipeError):
    """Failed history log operation."""


class MissingHistoryError(HistoryError):
    """No prior invocation is available to replay."""


class MalformedHistoryError(HistoryError):
    """A history line does not follow the replay grammar.

    This is an internal defect, not a user error: every line is written by
    this program in a known format.
    """

    def __init__(self, command_line: str):
        self.command_line = command_line
        super().__init__(
            "Internal error: failed to understand format of command from history:"
            f"\n\n{command_line}\n"
        )


# ---------------------------------------------------------------------------
# Pipeline script
# ---------------------------------------------------------------------------

class PipelineScriptError(BpipeError):
    """Failure while executing a pipeline definition."""


class UndefinedVariableError(PipelineScriptError):
    """The pipeline definition referenced a name that was never defined."""

    def __init__(self, name: str, line: int | None):
        self.name = name
        self.line = line
        where = f"on line {line}" if line is not None else "at an unknown line"
        super().__init__(
            f"A variable referred to in your script {where}, '{name}' was not defined."
        )


# ---------------------------------------------------------------------------
# Filesystem
# ---------------------------------------------------------------------------

class FilesystemError(BpipeError):
    """Cannot create, read or write a file bpipe depends on."""


class IdentityHandshakeError(FilesystemError):
    """The launcher's handshake file never appeared."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Bpipe was unable to read its startup PID file from {path}\n"
            "This may indicate you are in a read-only directory or one to which "
            "you do not have full permissions"
        )


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------

class ServiceError(BpipeError):
    """A collaborator service failed."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigError(BpipeError):
    """Invalid or missing configuration."""
