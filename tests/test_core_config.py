"""Tests for src/core/config.py: YAML cascade config loader."""

from pathlib import Path

import pytest
import yaml

from src.core.config import (
    AppConfig,
    IdentityConfig,
    LoggingConfig,
    PathsConfig,
    RunnerConfig,
    _deep_merge,
    load_config,
)
from src.core.exceptions import ConfigError


class TestRunnerConfig:
    def test_defaults(self):
        c = RunnerConfig()
        assert c.mode == "run"
        assert c.max_threads == 32
        assert c.custom_threads is False
        assert c.max_memory_mb is None
        assert c.erase_logs_on_exit is True

    def test_assignment_is_validated(self):
        c = RunnerConfig()
        c.max_threads = "8"
        assert c.max_threads == 8
        with pytest.raises(ValueError):
            c.max_threads = "many"


class TestPathsConfig:
    def test_derived_paths(self):
        p = PathsConfig(work_dir=".bpipe")
        assert p.history_file == Path(".bpipe/history")
        assert p.launch_dir == Path(".bpipe/launch")
        assert p.logs_dir == Path(".bpipe/logs")
        assert p.run_pid_file == Path(".bpipe/run.pid")

    def test_jobs_dir_expands_home(self):
        p = PathsConfig(jobs_dir="~/.bpipedb/jobs")
        assert "~" not in str(p.expanded_jobs_dir)


class TestIdentityConfig:
    def test_defaults(self):
        c = IdentityConfig()
        assert c.handshake_env_var == "BPIPE_PID"
        assert c.poll_interval_ms == 20
        assert c.poll_attempts == 101
        assert c.placeholder == "command"


class TestDeepMerge:
    def test_nested_override(self):
        base = {"runner": {"mode": "run", "max_threads": 4}, "logging": {"level": "INFO"}}
        override = {"runner": {"max_threads": 8}}
        merged = _deep_merge(base, override)
        assert merged["runner"] == {"mode": "run", "max_threads": 8}
        assert merged["logging"] == {"level": "INFO"}
        assert base["runner"]["max_threads"] == 4


class TestLoadConfig:
    def test_loads_repo_defaults(self, config_dir):
        config = load_config(config_dir=config_dir)
        assert isinstance(config, AppConfig)
        assert config.paths.work_dir == ".bpipe"
        assert isinstance(config.logging, LoggingConfig)

    def test_missing_dir_gives_defaults(self, tmp_path):
        config = load_config(config_dir=tmp_path / "nope", user_config=tmp_path / "none.yaml")
        assert config.runner.max_threads == 32

    def test_env_overlay(self, tmp_path):
        (tmp_path / "default.yaml").write_text(yaml.dump({"runner": {"max_threads": 4}}))
        (tmp_path / "cluster.yaml").write_text(yaml.dump({"runner": {"max_threads": 64}}))
        config = load_config(config_dir=tmp_path, env="cluster", user_config=tmp_path / "x.yaml")
        assert config.runner.max_threads == 64

    def test_user_config_overrides_defaults(self, tmp_path, workspace):
        (workspace / "bpipe.yaml").write_text(yaml.dump({"runner": {"report": True}}))
        config = load_config(config_dir=tmp_path)
        assert config.runner.report is True

    def test_env_var_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BPIPE_MAX_THREADS", "3")
        config = load_config(config_dir=tmp_path)
        assert config.runner.max_threads == 3

    def test_unparseable_user_config_raises(self, tmp_path, workspace):
        (workspace / "bpipe.yaml").write_text("runner: [unclosed\n")
        with pytest.raises(ConfigError, match="Error parsing 'bpipe.yaml'"):
            load_config(config_dir=tmp_path)

    def test_invalid_value_raises(self, tmp_path, workspace):
        (workspace / "bpipe.yaml").write_text(yaml.dump({"runner": {"max_threads": "lots"}}))
        with pytest.raises(ConfigError):
            load_config(config_dir=tmp_path)
