"""Tests for src/core/factory.py: run context wiring."""

import pytest

from src.core.exceptions import FilesystemError
from src.core.factory import RunContext, build_run_context, ensure_work_dir
from src.core.models import RunIdentity
from src.runner.history import HistoryLog
from src.runner.params import ParameterEnvironment
from src.services.commands import LocalCommandService
from src.services.dependencies import LocalDependencyService
from src.services.diagram import OutlineRenderer
from src.services.engine import SequentialEngine


class TestEnsureWorkDir:
    def test_creates_directory(self, app_config, workspace):
        work_dir = ensure_work_dir(app_config)
        assert work_dir.is_dir()
        assert (workspace / ".bpipe").is_dir()

    def test_read_only_location_raises(self, app_config, workspace):
        (workspace / "blocker").write_text("not a dir")
        app_config.paths.work_dir = "blocker/.bpipe"
        with pytest.raises(FilesystemError, match="read-only"):
            ensure_work_dir(app_config)


class TestBuildRunContext:
    def test_wires_local_services(self, app_config):
        context = build_run_context(app_config, RunIdentity(run_id="7"))
        assert isinstance(context, RunContext)
        assert isinstance(context.history, HistoryLog)
        assert context.history.path == app_config.paths.history_file
        assert isinstance(context.params, ParameterEnvironment)
        assert isinstance(context.commands, LocalCommandService)
        assert isinstance(context.dependencies, LocalDependencyService)
        assert isinstance(context.diagrams, OutlineRenderer)
        assert context.markers == []

    def test_default_engine_factory(self, run_context):
        engine = run_context.engine_factory(run_context.config.runner, run_context.events, True)
        assert isinstance(engine, SequentialEngine)
        assert engine.test_mode is True

    def test_default_confirm_honours_auto_confirm(self, app_config, workspace):
        app_config.runner.auto_confirm = True
        context = build_run_context(app_config, RunIdentity(run_id="7"))
        assert context.dependencies.confirm("Proceed?") is True
