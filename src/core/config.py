"""Configuration loader for bpipe.

Loads config from a YAML cascade: config/default.yaml is always loaded,
then environment-specific overrides, then the user's bpipe.yaml in the
working directory, then environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from src.core.exceptions import ConfigError

USER_CONFIG_NAME = "bpipe.yaml"


# ---------------------------------------------------------------------------
# Config schema
# ---------------------------------------------------------------------------

class RunnerConfig(BaseModel):
    """Mutable run settings. The launcher writes CLI flags back into these."""

    model_config = ConfigDict(validate_assignment=True)

    mode: str = "run"
    default_output_directory: str = "."
    max_threads: int = 32
    custom_threads: bool = False
    max_memory_mb: Optional[int] = None
    report: bool = False
    auto_confirm: bool = False
    erase_logs_on_exit: bool = True


class PathsConfig(BaseModel):
    work_dir: str = ".bpipe"
    jobs_dir: str = "~/.bpipedb/jobs"

    @property
    def history_file(self) -> Path:
        return Path(self.work_dir) / "history"

    @property
    def launch_dir(self) -> Path:
        return Path(self.work_dir) / "launch"

    @property
    def logs_dir(self) -> Path:
        return Path(self.work_dir) / "logs"

    @property
    def commands_dir(self) -> Path:
        return Path(self.work_dir) / "commands"

    @property
    def run_pid_file(self) -> Path:
        return Path(self.work_dir) / "run.pid"

    @property
    def preserved_file(self) -> Path:
        return Path(self.work_dir) / "preserved"

    @property
    def expanded_jobs_dir(self) -> Path:
        return Path(self.jobs_dir).expanduser()


class IdentityConfig(BaseModel):
    handshake_env_var: str = "BPIPE_PID"
    poll_interval_ms: int = 20
    poll_attempts: int = 101
    placeholder: str = "command"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class AppConfig(BaseModel):
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing '{path.name}' file. Cause: {e}") from e
    return data if isinstance(data, dict) else {}


_ENV_OVERRIDES = {
    "BPIPE_OUTPUT_DIR": ("runner", "default_output_directory"),
    "BPIPE_MAX_THREADS": ("runner", "max_threads"),
    "BPIPE_JOBS_DIR": ("paths", "jobs_dir"),
}


def load_config(
    config_dir: Optional[Path] = None,
    env: Optional[str] = None,
    user_config: Optional[Path] = None,
) -> AppConfig:
    """Load application config from YAML cascade.

    Order: default.yaml -> {env}.yaml -> ./bpipe.yaml -> env vars (BPIPE_*)
    """
    if config_dir is None:
        config_dir = Path(__file__).parent.parent.parent / "config"
    if user_config is None:
        user_config = Path(USER_CONFIG_NAME)

    # Base config
    merged = _load_yaml(config_dir / "default.yaml")

    # Environment overlay
    if env:
        overlay = _load_yaml(config_dir / f"{env}.yaml")
        merged = _deep_merge(merged, overlay)

    # User config in the working directory
    merged = _deep_merge(merged, _load_yaml(user_config))

    # Environment variable overrides
    for var, (section, key) in _ENV_OVERRIDES.items():
        value = os.getenv(var)
        if value:
            merged.setdefault(section, {})
            merged[section][key] = value

    try:
        return AppConfig(**merged)
    except ValueError as e:
        raise ConfigError(f"Error parsing '{user_config.name}' file. Cause: {e}") from e
